"""
Management command to follow a redemption awaiting customer approval.

Polls the wallet item's status the way the vendor scanner does, for
support staff checking a disputed scan. Ctrl-C stops polling.

Usage:
    python manage.py watch_redemption <wallet_item_id> --as partner@example.com
"""

from django.core.management.base import BaseCommand, CommandError

from apps.accounts.models import User
from apps.wallet.services import (
    CancellationToken,
    PollOutcome,
    RedemptionStatusPoller,
    get_redemption_status,
    # Exceptions
    WalletServiceError,
)


class Command(BaseCommand):
    help = 'Poll a wallet item until its redemption settles'

    def add_arguments(self, parser):
        parser.add_argument('wallet_item_id', help='Wallet item UUID')
        parser.add_argument(
            '--as',
            dest='viewer_email',
            required=True,
            help='Partner or staff account to poll as',
        )
        parser.add_argument('--interval', type=float, default=None, help='Seconds between polls')
        parser.add_argument('--max-attempts', type=int, default=None, help='Polls before giving up')

    def handle(self, *args, **options):
        try:
            viewer = User.objects.get(email=options['viewer_email'])
        except User.DoesNotExist:
            raise CommandError(f"No user with email {options['viewer_email']}")

        def fetch(wallet_item_id):
            status = get_redemption_status(wallet_item_id=wallet_item_id, viewer=viewer)
            self.stdout.write(f'  status={status.status} confirmation={status.confirmation_state}')
            return status

        poller = RedemptionStatusPoller(
            fetch,
            interval=options['interval'],
            max_attempts=options['max_attempts'],
        )
        token = CancellationToken()

        try:
            result = poller.poll(options['wallet_item_id'], token)
        except KeyboardInterrupt:
            token.cancel()
            self.stdout.write(self.style.WARNING('Cancelled.'))
            return
        except WalletServiceError as e:
            raise CommandError(str(e.detail))

        if result.outcome == PollOutcome.REDEEMED:
            self.stdout.write(self.style.SUCCESS(f'Redeemed after {result.attempts} poll(s).'))
        else:
            self.stdout.write(self.style.WARNING(
                f'{PollOutcome(result.outcome).label} after {result.attempts} poll(s).'
            ))
