from django.urls import path
from . import views

app_name = 'accounts'

urlpatterns = [
    # Auth
    path('auth/csrf', views.csrf_view, name='csrf'),
    path('auth/login', views.login_view, name='login'),
    path('auth/logout', views.logout_view, name='logout'),
    path('auth/user', views.current_user, name='current_user'),
    path('auth/register', views.register_view, name='register'),
    path('auth/change-password', views.change_password, name='change_password'),

    # Admin user management
    path('admin/users', views.admin_users, name='admin_users'),
    path('admin/users/<int:user_id>', views.admin_delete_user, name='admin_delete_user'),
    path('admin/users/<int:user_id>/approve', views.admin_approve_user, name='admin_approve_user'),
    path('admin/users/<int:user_id>/role', views.admin_change_role, name='admin_change_role'),
    path('admin/users/<int:user_id>/toggle-active', views.admin_toggle_active, name='admin_toggle_active'),
    path('admin/users/<int:user_id>/reset-password', views.admin_reset_password, name='admin_reset_password'),

    # Team directory
    path('team-members', views.team_members, name='team_members'),
    path('team-members/<int:member_id>', views.team_member_detail, name='team_member_detail'),
    path('team-members/<int:member_id>/profile-image', views.team_member_profile_image, name='team_member_profile_image'),
]
