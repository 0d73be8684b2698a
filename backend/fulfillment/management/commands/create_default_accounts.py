"""
Management command to create the default chart of accounts.

Creates the general-ledger accounts the stock ledger posts to (41 goods in
stock, 91.2 losses, ...) if they don't already exist.
It's safe to run multiple times (idempotent).

Usage:
    python manage.py create_default_accounts
"""

from django.core.management.base import BaseCommand

from fulfillment.models import Account
from utils.constants import DEFAULT_ACCOUNTS


class Command(BaseCommand):
    help = 'Creates the default chart of accounts (41, 60, 90.2, 91.1, 91.2, 99)'

    def handle(self, *args, **options):
        """Create default accounts if they don't exist."""
        created_count = 0
        existing_count = 0

        self.stdout.write(self.style.WARNING('\n' + '='*80))
        self.stdout.write(self.style.WARNING('Creating Default Chart of Accounts'))
        self.stdout.write(self.style.WARNING('='*80 + '\n'))

        for account_data in DEFAULT_ACCOUNTS:
            account, created = Account.objects.get_or_create(
                code=account_data['code'],
                defaults=account_data
            )

            if created:
                created_count += 1
                self.stdout.write(
                    self.style.SUCCESS(f'✓ Created: {account.code} {account.name} ({account.account_type})')
                )
            else:
                existing_count += 1
                self.stdout.write(
                    self.style.WARNING(f'○ Already exists: {account.code} {account.name}')
                )

        self.stdout.write(self.style.WARNING('\n' + '='*80))
        self.stdout.write(self.style.SUCCESS(f'\n✓ Created {created_count} new account(s)'))
        self.stdout.write(self.style.WARNING(f'○ Found {existing_count} existing account(s)'))
        self.stdout.write(
            self.style.SUCCESS(f'\nTotal accounts in database: {Account.objects.count()}')
        )
        self.stdout.write(self.style.WARNING('='*80 + '\n'))
