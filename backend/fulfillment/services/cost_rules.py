"""
Cost Rule Engine

Derives an order's cost composition from the active vendor-service catalog.

Each active service is tested independently against the order aggregates
(total weight, total volume, total item count):

    PICKING  / ORDER  -> always, quantity 1
    PICKING  / PIECE  -> if there are items, quantity = item count
    PACKING  / ORDER  -> always, quantity 1
    SHIPPING / ORDER  -> weight bracket encoded in the service name, quantity 1
    SHIPPING / KG     -> if weight > 0, quantity = total weight
    anything else     -> not applicable (storage is billed monthly elsewhere)

Every applicable service yields one CostLine. No deduplication or vendor
selection is done: two picking services from two vendors give two lines.
"""

from dataclasses import asdict, dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Optional

from fulfillment.models import VendorService
from utils.constants import (
    MONEY_QUANT,
    QUANTITY_QUANT,
    RESIDUAL_BRACKET_MARKER,
    SHIPPING_BRACKET_1_TO_5KG,
    SHIPPING_BRACKET_5_TO_10KG,
    SHIPPING_BRACKET_UP_TO_1KG,
)

ONE = Decimal('1')
FIVE = Decimal('5')
TEN = Decimal('10')


@dataclass(frozen=True)
class CostLine:
    """One priced charge produced by the engine."""
    vendor_id: int
    vendor_service_id: int
    service_type: str
    quantity: Decimal
    unit_price: Decimal
    calculated_amount: Decimal
    description: str

    def to_dict(self) -> Dict:
        return asdict(self)


def _item_value(item, name) -> Decimal:
    if isinstance(item, dict):
        value = item.get(name)
    else:
        value = getattr(item, name, None)
    return Decimal(str(value)) if value not in (None, '') else Decimal('0')


def order_totals(items: Iterable) -> Dict[str, Decimal]:
    """Aggregate weight, volume and piece count over order line items."""
    total_weight = Decimal('0')
    total_volume = Decimal('0')
    total_items = Decimal('0')
    for item in items:
        quantity = _item_value(item, 'quantity')
        total_weight += _item_value(item, 'weight') * quantity
        total_volume += _item_value(item, 'volume') * quantity
        total_items += quantity
    return {
        'total_weight': total_weight,
        'total_volume': total_volume,
        'total_items': total_items,
    }


def shipping_bracket_matches(service_name: str, total_weight: Decimal) -> bool:
    """
    Select a per-order shipping tariff by the weight range in its name.

    Evaluated as an ordered chain. The last branch matches any name
    containing "10" once the weight exceeds 10 kg, so a "5-10кг" service
    also applies to heavy orders.
    """
    if SHIPPING_BRACKET_UP_TO_1KG in service_name and total_weight <= ONE:
        return True
    elif SHIPPING_BRACKET_1_TO_5KG in service_name and ONE < total_weight <= FIVE:
        return True
    elif SHIPPING_BRACKET_5_TO_10KG in service_name and FIVE < total_weight <= TEN:
        return True
    elif total_weight > TEN and RESIDUAL_BRACKET_MARKER in service_name:
        return True
    return False


def service_quantity(service: VendorService, totals: Dict[str, Decimal]) -> Decimal:
    """
    Billable quantity of a service for the given order totals.

    Returns:
        The quantity, or 0 when the service does not apply
    """
    service_type = service.type
    unit = service.unit
    Type = VendorService.ServiceType
    Unit = VendorService.Unit

    if service_type == Type.PICKING:
        if unit == Unit.ORDER:
            return ONE
        if unit == Unit.PIECE:
            return totals['total_items']
    elif service_type == Type.PACKING:
        if unit == Unit.ORDER:
            return ONE
    elif service_type == Type.SHIPPING:
        if unit == Unit.ORDER:
            return ONE if shipping_bracket_matches(service.name, totals['total_weight']) else Decimal('0')
        if unit == Unit.KG:
            return totals['total_weight']
    return Decimal('0')


class CostRuleEngine:
    """Matches order aggregates against vendor services."""

    @staticmethod
    def active_services() -> List[VendorService]:
        return list(
            VendorService.objects.filter(is_active=True).select_related('vendor').order_by('pk')
        )

    @staticmethod
    def calculate(items: Iterable, services: Optional[Iterable[VendorService]] = None) -> List[CostLine]:
        """
        Produce the cost lines for a set of order items.

        Args:
            items: Order line items (dicts or objects) with weight, volume, quantity
            services: Vendor services to evaluate; defaults to all active ones

        Returns:
            List of CostLine in service order
        """
        items = list(items)
        totals = order_totals(items)
        if services is None:
            services = CostRuleEngine.active_services()

        lines = []
        for service in services:
            quantity = service_quantity(service, totals)
            if quantity <= 0:
                continue

            quantity = quantity.quantize(QUANTITY_QUANT, rounding=ROUND_HALF_UP)
            unit_price = Decimal(str(service.price))
            lines.append(CostLine(
                vendor_id=service.vendor_id,
                vendor_service_id=service.pk,
                service_type=service.type,
                quantity=quantity,
                unit_price=unit_price,
                calculated_amount=(quantity * unit_price).quantize(MONEY_QUANT, rounding=ROUND_HALF_UP),
                description=f'{service.vendor.name}: {service.name}',
            ))
        return lines

    @staticmethod
    def estimate(items: Iterable, services: Optional[Iterable[VendorService]] = None) -> Dict:
        """
        Preview an order's costs without persisting anything.

        Returns:
            Dict with the order totals, the cost lines and estimated_cost_total
        """
        items = list(items)
        lines = CostRuleEngine.calculate(items, services)
        totals = order_totals(items)
        return {
            'total_weight': totals['total_weight'],
            'total_volume': totals['total_volume'],
            'total_items': totals['total_items'],
            'lines': lines,
            'estimated_cost_total': sum((line.calculated_amount for line in lines), Decimal('0.00')),
        }
