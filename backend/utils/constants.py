"""
Constants used throughout the application.
"""
from decimal import Decimal

# Storage Location Status Colors
# Using Tailwind CSS color palette for consistency
LOCATION_STATUS_COLORS = {
    'FREE': '#10B981',       # Green-500 - Empty, ready for stock
    'OCCUPIED': '#3B82F6',   # Blue-500 - Holds stock
}

# Movement Type Colors
MOVEMENT_TYPE_COLORS = {
    'INBOUND': '#10B981',    # Green-500 - Stock added
    'TRANSFER': '#8B5CF6',   # Purple-500 - Stock moved
    'WRITE_OFF': '#EF4444',  # Red-500 - Stock lost
}

# Movement Type Icons (optional, for frontend use)
MOVEMENT_TYPE_ICONS = {
    'INBOUND': '📥',
    'TRANSFER': '🔁',
    'WRITE_OFF': '🗑️',
}

# Shipping weight bracket markers matched against vendor service names.
# The residual bucket (> 10 kg) matches any name containing RESIDUAL_BRACKET_MARKER.
SHIPPING_BRACKET_UP_TO_1KG = 'до 1кг'
SHIPPING_BRACKET_1_TO_5KG = '1-5кг'
SHIPPING_BRACKET_5_TO_10KG = '5-10кг'
RESIDUAL_BRACKET_MARKER = '10'

# Rounding
MONEY_QUANT = Decimal('0.01')
QUANTITY_QUANT = Decimal('0.001')

# Chart of accounts used by the financial entry writer
DEFAULT_ACCOUNTS = [
    {'code': '41', 'name': 'Goods in stock', 'account_type': 'ASSET'},
    {'code': '60', 'name': 'Settlements with suppliers', 'account_type': 'LIABILITY'},
    {'code': '90.2', 'name': 'Cost of sales', 'account_type': 'EXPENSE'},
    {'code': '91.1', 'name': 'Other income', 'account_type': 'INCOME'},
    {'code': '91.2', 'name': 'Losses and shortages', 'account_type': 'EXPENSE'},
    {'code': '99', 'name': 'Profit and loss', 'account_type': 'EQUITY'},
]

# Largest value a PositiveIntegerField column holds on every supported backend
MAX_QUANTITY = 2147483647
