from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone
from django.utils.translation import gettext as _

from task_management.models import Task
from task_management.utils.notifications import notify_members


class Command(BaseCommand):
    help = 'Notify assignees of open tasks whose due date has passed (once per task)'

    def handle(self, *args, **options):
        now = timezone.now()

        overdue_tasks = Task.objects.exclude(
            status__in=Task.TERMINAL_STATUSES
        ).filter(
            due_date__lt=now,
            overdue_notified_at__isnull=True,
        )

        count = overdue_tasks.count()

        if count > 0:
            self.stdout.write(f'Found {count} overdue tasks...')

            for task in overdue_tasks:
                with transaction.atomic():
                    sent = notify_members(
                        task.assignee_ids,
                        'task_overdue',
                        _('Task overdue'),
                        _('"%(title)s" was due on %(due)s') % {
                            'title': task.title,
                            'due': timezone.localtime(task.due_date).strftime('%Y-%m-%d %H:%M'),
                        },
                        related_id=task.pk,
                    )
                    task.overdue_notified_at = now
                    task.save(update_fields=['overdue_notified_at'])
                self.stdout.write(
                    self.style.WARNING(f'✗ Overdue: {task.task_id} ({sent} notified)')
                )

            self.stdout.write(
                self.style.SUCCESS(f'✓ Notified assignees of {count} overdue tasks')
            )
        else:
            self.stdout.write(
                self.style.SUCCESS('✓ No overdue tasks')
            )
