"""
Domain settings for the fulfillment ledger.

Defaults below are overridden per key by settings.FULFILLMENT_LEDGER,
e.g. FULFILLMENT_LEDGER = {'DEFAULT_TARIFF_RATE': Decimal('1.5')}.
"""
from decimal import Decimal

from django.conf import settings

DEFAULTS = {
    'DEFAULT_TARIFF_RATE': Decimal('1.3'),
    'MOVEMENT_LOG_DEFAULT_LIMIT': 100,
    'MOVEMENT_LOG_MAX_LIMIT': 500,
    'WRITE_OFF_DEBIT_ACCOUNT': '91.2',
    'INVENTORY_ACCOUNT': '41',
}


def ledger_setting(name):
    """Return one FULFILLMENT_LEDGER value, falling back to DEFAULTS."""
    if name not in DEFAULTS:
        raise KeyError(f"Unknown fulfillment ledger setting: {name}")
    overrides = getattr(settings, 'FULFILLMENT_LEDGER', {}) or {}
    value = overrides.get(name, DEFAULTS[name])
    if name == 'DEFAULT_TARIFF_RATE':
        return Decimal(str(value))
    return value
