"""
Database helpers shared by the ledger services.
"""
import logging
from contextlib import contextmanager

from django.db import transaction, IntegrityError, OperationalError

from utils.exceptions import TransactionConflict

logger = logging.getLogger(__name__)


@contextmanager
def atomic_operation(label: str):
    """
    Run a block as one all-or-nothing database transaction.

    Database errors that prevent the commit (serialization failures, lock
    timeouts, racing inserts on a unique key) are re-raised as
    TransactionConflict. LedgerError subclasses raised inside the block
    roll the transaction back and propagate unchanged.

    Usage:
        with atomic_operation('transfer'):
            ...
    """
    try:
        with transaction.atomic():
            yield
    except (OperationalError, IntegrityError) as e:
        logger.warning(f"{label} could not be committed: {e}")
        raise TransactionConflict(
            f'{label.capitalize()} could not be committed because of a concurrent change. Please retry.'
        ) from e
