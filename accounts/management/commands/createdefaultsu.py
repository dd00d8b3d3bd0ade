from django.conf import settings
from django.core.management.base import BaseCommand
from django.db import transaction

from accounts.models import User, TeamMember


DEFAULT_TEAM_MEMBERS = [
    {'name': 'Sarah Thompson', 'job_title': 'Project Manager', 'email': 'sarah.thompson@company.com', 'status': 'available'},
    {'name': 'Mike Johnson', 'job_title': 'Field Technician', 'email': 'mike.johnson@company.com', 'status': 'busy'},
    {'name': 'Emma Davis', 'job_title': 'Customer Support', 'email': 'emma.davis@company.com', 'status': 'available'},
    {'name': 'Alex Rodriguez', 'job_title': 'Field Technician', 'email': 'alex.rodriguez@company.com', 'status': 'offline'},
]


class Command(BaseCommand):
    help = 'Create the default admin account and seed the team directory'

    def add_arguments(self, parser):
        parser.add_argument(
            '--no-seed',
            action='store_true',
            help='Skip seeding default team members',
        )

    @transaction.atomic
    def handle(self, *args, **options):
        username = settings.DEFAULT_ADMIN_USERNAME
        password = settings.DEFAULT_ADMIN_PASSWORD

        if not User.objects.filter(username=username).exists():
            User.objects.create_superuser(username=username, password=password)
            self.stdout.write(self.style.SUCCESS(f'Admin "{username}" created'))
        else:
            self.stdout.write(self.style.SUCCESS(f'Admin "{username}" already exists'))

        if options['no_seed']:
            return

        # Only the admin's own profile exists on a fresh install
        if TeamMember.objects.filter(user__isnull=True).exists():
            self.stdout.write('Team directory already seeded')
            return

        for data in DEFAULT_TEAM_MEMBERS:
            TeamMember.objects.get_or_create(email=data['email'], defaults=data)
        self.stdout.write(self.style.SUCCESS(f'Seeded {len(DEFAULT_TEAM_MEMBERS)} team members'))
