"""
Management command to materialize due recurring transactions.

Creates the occurrences of every active recurring template whose next
period falls on or before the given date. Safe to run repeatedly (e.g. from
a daily cron job): periods already materialized are skipped.

Usage:
    python manage.py materialize_recurring
    python manage.py materialize_recurring --as-of 2024-03-31 --dry-run
"""

from datetime import date

from django.core.management.base import BaseCommand, CommandError

from apps.transactions.models import Transaction, TransactionType, TransactionStatus
from apps.transactions.services import materialize_due


def _parse_date(value):
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise CommandError(f'Invalid date: {value} (expected YYYY-MM-DD)')


class Command(BaseCommand):
    help = 'Materialize occurrences of recurring transactions that are due'

    def add_arguments(self, parser):
        parser.add_argument(
            '--as-of',
            type=_parse_date,
            default=None,
            help='Materialize periods on or before this date (YYYY-MM-DD, default: today)',
        )
        parser.add_argument(
            '--limit',
            type=int,
            default=None,
            help='Max occurrences per template in this run',
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show which templates are due without making changes',
        )

    def handle(self, *args, **options):
        as_of = options['as_of'] or date.today()

        due_templates = Transaction.objects.filter(
            type=TransactionType.RECURRING,
            status=TransactionStatus.PENDING,
            next_occurrence__lte=as_of,
        ).order_by('next_occurrence')

        count = due_templates.count()

        if count == 0:
            self.stdout.write(
                self.style.SUCCESS(f'No recurring transactions due as of {as_of}.')
            )
            return

        self.stdout.write(f'\nFound {count} recurring transaction(s) due as of {as_of}:\n')

        for template in due_templates:
            self.stdout.write(
                f'  - {template.id} | {template.recurrence_pattern} | next: {template.next_occurrence}'
            )

        if options['dry_run']:
            self.stdout.write(
                self.style.WARNING('\n--dry-run mode: No changes made.')
            )
            return

        created = materialize_due(as_of=as_of, limit=options['limit'])

        self.stdout.write(
            self.style.SUCCESS(f'\nMaterialized {len(created)} occurrence(s).')
        )
