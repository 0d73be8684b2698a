"""
Custom exceptions for the Fulfillment Ledger.

These are raised by the service layer and carry no HTTP knowledge.
The API layer maps them to responses in utils.exception_handler.
"""


class LedgerError(Exception):
    """
    Base class for every failure the ledger services report to callers.

    Any LedgerError raised inside a service call aborts the enclosing
    database transaction, so no partial state is ever persisted.
    """
    default_detail = 'Ledger operation failed.'
    default_code = 'ledger_error'
    retryable = False

    def __init__(self, detail=None, code=None):
        self.detail = detail if detail is not None else self.default_detail
        self.code = code or self.default_code
        super().__init__(self.detail)

    def __str__(self):
        return str(self.detail)


class InvalidInput(LedgerError):
    """
    Raised for non-positive quantities, missing identifiers and bad
    query parameters. Rejected before anything is written.
    """
    default_detail = 'Invalid input.'
    default_code = 'invalid_input'


class InsufficientStock(LedgerError):
    """
    Raised when a transfer or write-off asks for more than the source
    stock record holds.
    """
    default_detail = 'Insufficient stock for this operation.'
    default_code = 'insufficient_stock'


class NotFound(LedgerError):
    """
    Raised when a referenced product, location, order or operation does not exist.
    """
    default_detail = 'Requested object not found.'
    default_code = 'not_found'


class TransactionConflict(LedgerError):
    """
    Raised when the database refused to commit the operation, typically
    because a concurrent transaction modified the same rows.
    Callers may retry; the ledger never retries on its own.
    """
    default_detail = 'The operation conflicted with a concurrent change. Please retry.'
    default_code = 'transaction_conflict'
    retryable = True
