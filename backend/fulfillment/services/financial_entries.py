"""
Financial Entry Writer

Posts double-entry accounting records into the minimal general ledger
(Account / FinTransaction) on behalf of the stock ledger.

Postings used by the warehouse:
- Write-off / shortage: Debit 91.2 "Losses and shortages", Credit 41 "Goods in stock"

Balance rule: a debit increases ASSET and EXPENSE accounts and decreases
LIABILITY, EQUITY and INCOME accounts; a credit does the opposite.
"""

import logging
from decimal import Decimal
from typing import Optional

from django.db import transaction
from django.db.models import F

from fulfillment.conf import ledger_setting
from fulfillment.models import Account, FinTransaction
from utils.constants import MONEY_QUANT
from utils.exceptions import InvalidInput

logger = logging.getLogger(__name__)

DEBIT_NORMAL_TYPES = (Account.AccountType.ASSET, Account.AccountType.EXPENSE)


def _signed_delta(account: Account, amount: Decimal, is_debit: bool) -> Decimal:
    increases = account.account_type in DEBIT_NORMAL_TYPES
    if not is_debit:
        increases = not increases
    return amount if increases else -amount


class FinancialEntryWriter:
    """Writes FinTransaction rows and keeps account balances in step."""

    @staticmethod
    def record_entry(debit_code: str, credit_code: str, amount, description: str = '') -> Optional[FinTransaction]:
        """
        Post one double-entry transaction between two accounts.

        Args:
            debit_code: Chart-of-accounts code to debit
            credit_code: Chart-of-accounts code to credit
            amount: Positive amount (Decimal or anything Decimal() accepts)
            description: Free-text posting description

        Returns:
            The created FinTransaction, or None if either account is missing

        Raises:
            InvalidInput: If amount is not positive
        """
        amount = Decimal(str(amount)).quantize(MONEY_QUANT)
        if amount <= 0:
            raise InvalidInput('Posting amount must be greater than zero')

        with transaction.atomic():
            accounts = {
                account.code: account
                for account in Account.objects.select_for_update().filter(
                    code__in=[debit_code, credit_code]
                ).order_by('pk')
            }
            debit_account = accounts.get(debit_code)
            credit_account = accounts.get(credit_code)

            if debit_account is None or credit_account is None:
                logger.warning(
                    f"Accounts {debit_code} or {credit_code} not found, skipping financial entry: {description}"
                )
                return None

            fin_transaction = FinTransaction.objects.create(
                debit_account=debit_account,
                credit_account=credit_account,
                amount=amount,
                description=description,
            )

            Account.objects.filter(pk=debit_account.pk).update(
                balance=F('balance') + _signed_delta(debit_account, amount, is_debit=True)
            )
            Account.objects.filter(pk=credit_account.pk).update(
                balance=F('balance') + _signed_delta(credit_account, amount, is_debit=False)
            )

        logger.info(f"Posted Dr {debit_code} / Cr {credit_code} {amount}: {description}")
        return fin_transaction

    @staticmethod
    def record_write_off(amount, description: str) -> Optional[FinTransaction]:
        """Post a stock loss: Debit losses (91.2), Credit goods in stock (41)."""
        return FinancialEntryWriter.record_entry(
            ledger_setting('WRITE_OFF_DEBIT_ACCOUNT'),
            ledger_setting('INVENTORY_ACCOUNT'),
            amount,
            description,
        )
