"""
Management command to clean up redemption confirmations.

Marks overdue pending confirmations expired, then deletes resolved ones
older than the retention period.

Usage:
    python manage.py purge_confirmations [--older-than-hours 24] [--dry-run]
"""

import logging
from datetime import timedelta

from django.core.management.base import BaseCommand
from django.utils import timezone

from apps.wallet.models import ConfirmationState, PendingConfirmation
from apps.wallet.services import expire_overdue_confirmations, purge_resolved_confirmations


logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Expire overdue redemption confirmations and delete old resolved ones'

    def add_arguments(self, parser):
        parser.add_argument(
            '--older-than-hours',
            type=int,
            default=24,
            help='Delete resolved confirmations older than this many hours (default 24)',
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show what would be updated without making changes',
        )

    def handle(self, *args, **options):
        now = timezone.now()
        cutoff = now - timedelta(hours=options['older_than_hours'])

        overdue = PendingConfirmation.objects.filter(
            state=ConfirmationState.PENDING,
            expires_at__lte=now,
        ).count()
        stale = PendingConfirmation.objects.exclude(
            state=ConfirmationState.PENDING
        ).filter(resolved_at__lt=cutoff).count()

        self.stdout.write(f'{overdue} overdue pending, {stale} resolved before {cutoff:%Y-%m-%d %H:%M}.')

        if options['dry_run']:
            self.stdout.write(self.style.WARNING('--dry-run mode: No changes made.'))
            return

        expired = expire_overdue_confirmations(now=now)
        deleted = purge_resolved_confirmations(older_than=cutoff)
        logger.info("purge_confirmations expired %d and deleted %d", expired, deleted)
        self.stdout.write(self.style.SUCCESS(f'Expired {expired}, deleted {deleted} confirmation(s).'))
