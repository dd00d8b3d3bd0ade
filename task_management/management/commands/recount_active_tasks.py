from django.core.management.base import BaseCommand
from django.db import transaction

from task_management.utils.active_tasks import recount_active_tasks


class Command(BaseCommand):
    help = 'Recompute TeamMember.active_tasks from the tasks table and report drift'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Only report drift, do not fix it',
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']

        with transaction.atomic():
            drift = recount_active_tasks(dry_run=dry_run)

        if not drift:
            self.stdout.write(self.style.SUCCESS('✓ All active task counters are correct'))
            return

        for member, stored, expected in drift:
            self.stdout.write(
                self.style.WARNING(f'✗ {member.name}: stored {stored}, expected {expected}')
            )

        if dry_run:
            self.stdout.write(f'{len(drift)} counters drifted (dry run, nothing changed)')
        else:
            self.stdout.write(self.style.SUCCESS(f'✓ Fixed {len(drift)} counters'))
