from django.urls import path
from . import views

app_name = 'performance'

urlpatterns = [
    path('team-points', views.team_points, name='team_points'),
    path('team-points/stats', views.team_points_stats, name='team_points_stats'),
    path('team-points/reset-all', views.reset_all_member_points, name='reset_all_points'),
    path('team-points/<int:member_id>/add', views.add_member_points, name='add_points'),
    path('team-points/<int:member_id>/reset', views.reset_member_points, name='reset_points'),
    path('points-history', views.points_history, name='points_history'),
]
