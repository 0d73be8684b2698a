"""
Order Ledger Service

Creates orders from cost estimates and keeps each order's profit snapshot
(actual_cost, total_income, profit, margin_percent) in step with its cost
and income operations.

Business Rules:
- actual_cost  = sum of CostOperation.actual_amount
- total_income = sum of IncomeOperation.paid_amount
- profit       = total_income - actual_cost
- margin       = profit / total_income * 100, or 0 when nothing was paid
- The snapshot is only ever written by _apply_snapshot(); every mutation
  below ends by calling it inside the same transaction
"""

import logging
import secrets
import string
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Dict, List, Optional

from django.db.models import Sum
from django.utils import timezone

from fulfillment.conf import ledger_setting
from fulfillment.models import (
    Client,
    CostOperation,
    IncomeOperation,
    Order,
    OrderItem,
    VendorService,
)
from fulfillment.services.cost_rules import CostRuleEngine
from utils.constants import MAX_QUANTITY, MONEY_QUANT, QUANTITY_QUANT
from utils.db import atomic_operation
from utils.exceptions import InvalidInput, NotFound

logger = logging.getLogger(__name__)

ORDER_NUMBER_ALPHABET = string.ascii_uppercase + string.digits
ORDER_NUMBER_SUFFIX_LENGTH = 6
ZERO = Decimal('0.00')


def to_decimal(value, field: str, quant: Decimal = MONEY_QUANT, allow_negative: bool = False) -> Decimal:
    try:
        result = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidInput(f'{field} must be a number')
    if not result.is_finite():
        raise InvalidInput(f'{field} must be a number')
    if not allow_negative and result < 0:
        raise InvalidInput(f'{field} cannot be negative')
    return result.quantize(quant, rounding=ROUND_HALF_UP)


def generate_order_number() -> str:
    """ORD-YYMMDD-XXXXXX with a random upper-case alphanumeric suffix."""
    while True:
        suffix = ''.join(secrets.choice(ORDER_NUMBER_ALPHABET) for _ in range(ORDER_NUMBER_SUFFIX_LENGTH))
        order_number = f"ORD-{timezone.localdate():%y%m%d}-{suffix}"
        if not Order.objects.filter(order_number=order_number).exists():
            return order_number


def line_amount(quantity: Decimal, unit_price: Decimal) -> Decimal:
    """Price of a cost line, rounded to cents."""
    return (Decimal(str(quantity)) * Decimal(str(unit_price))).quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


def derive_snapshot(actual_cost: Decimal, total_income: Decimal) -> Dict[str, Decimal]:
    """Profit and margin from cost and income totals."""
    actual_cost = actual_cost.quantize(MONEY_QUANT)
    total_income = total_income.quantize(MONEY_QUANT)
    profit = total_income - actual_cost
    if total_income > 0:
        margin_percent = (profit / total_income * 100).quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)
    else:
        margin_percent = ZERO
    return {
        'actual_cost': actual_cost,
        'total_income': total_income,
        'profit': profit,
        'margin_percent': margin_percent,
    }


class OrderLedgerService:
    """Service for order costing, payments and profit snapshots."""

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _lock_order(order_id) -> Order:
        order = Order.objects.select_for_update().filter(pk=order_id).first()
        if order is None:
            raise NotFound(f'Order {order_id} not found')
        return order

    @staticmethod
    def _apply_snapshot(order: Order) -> Dict[str, Decimal]:
        """Recompute and persist the order's snapshot from operation sums."""
        actual_cost = CostOperation.objects.filter(order=order).aggregate(
            total=Sum('actual_amount')
        )['total'] or ZERO
        total_income = IncomeOperation.objects.filter(order=order).aggregate(
            total=Sum('paid_amount')
        )['total'] or ZERO

        snapshot = derive_snapshot(actual_cost, total_income)
        for field, value in snapshot.items():
            setattr(order, field, value)
        order.save(update_fields=list(snapshot.keys()) + ['updated_at'])
        return snapshot

    @staticmethod
    def _clean_items(items) -> List[Dict]:
        if not isinstance(items, (list, tuple)) or not items:
            raise InvalidInput('An order needs at least one item')

        cleaned = []
        for index, item in enumerate(items):
            if not isinstance(item, dict):
                raise InvalidInput(f'Item {index + 1} must be an object')
            quantity = item.get('quantity', 1)
            if isinstance(quantity, bool) or not isinstance(quantity, int) or not 0 < quantity <= MAX_QUANTITY:
                raise InvalidInput(
                    f'Item {index + 1}: quantity must be a whole number between 1 and {MAX_QUANTITY}'
                )
            cleaned.append({
                'sku': item.get('sku') or '',
                'name': item.get('name') or item.get('sku') or '',
                'quantity': quantity,
                'weight': to_decimal(item.get('weight') or 0, f'Item {index + 1} weight', QUANTITY_QUANT),
                'volume': to_decimal(item.get('volume') or 0, f'Item {index + 1} volume', QUANTITY_QUANT),
                'unit_cost': to_decimal(item.get('unit_cost') or 0, f'Item {index + 1} unit_cost'),
                'unit_price': to_decimal(item.get('unit_price') or 0, f'Item {index + 1} unit_price'),
            })
        return cleaned

    # ------------------------------------------------------------------
    # Order creation
    # ------------------------------------------------------------------

    @staticmethod
    def create_from_estimate(client_id, items, income_amount=None, shipping_address: str = '',
                             notes: str = '', created_by: str = 'System') -> Dict:
        """
        Create an order with its items, estimated cost operations and invoice.

        Business Rules:
        - One CostOperation per applicable vendor service, actual = calculated
        - One unpaid IncomeOperation for the invoice amount
        - Invoice = income_amount if given, else estimated cost x client tariff
          (DEFAULT_TARIFF_RATE when the client has none)

        Args:
            client_id: ID of the ordering client
            items: List of dicts with sku, name, quantity, weight, volume,
                unit_cost, unit_price (weight/volume per unit)
            income_amount: Explicit invoice amount (optional)
            shipping_address: Delivery address
            notes: Free-text notes
            created_by: User creating the order

        Returns:
            Dict with order identifiers, cost lines, invoice amount and snapshot

        Raises:
            InvalidInput: If items are missing or malformed
            NotFound: If the client does not exist
            TransactionConflict: If a concurrent change prevented the commit
        """
        cleaned_items = OrderLedgerService._clean_items(items)
        if income_amount is not None:
            income_amount = to_decimal(income_amount, 'income_amount')

        with atomic_operation('order creation'):
            client = Client.objects.filter(pk=client_id).first()
            if client is None:
                raise NotFound(f'Client {client_id} not found')

            estimate = CostRuleEngine.estimate(cleaned_items)
            estimated_cost_total = estimate['estimated_cost_total']

            if income_amount is None:
                tariff_rate = client.tariff_rate
                if tariff_rate is None:
                    tariff_rate = ledger_setting('DEFAULT_TARIFF_RATE')
                income_amount = (estimated_cost_total * tariff_rate).quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)

            order = Order.objects.create(
                order_number=generate_order_number(),
                client=client,
                shipping_address=shipping_address or '',
                notes=notes or '',
                created_by=created_by,
                estimated_cost=estimated_cost_total,
            )

            OrderItem.objects.bulk_create([
                OrderItem(order=order, **item) for item in cleaned_items
            ])

            for line in estimate['lines']:
                CostOperation.objects.create(
                    order=order,
                    vendor_id=line.vendor_id,
                    vendor_service_id=line.vendor_service_id,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    calculated_amount=line.calculated_amount,
                    actual_amount=line.calculated_amount,
                    description=line.description,
                )

            invoice = IncomeOperation.objects.create(
                order=order,
                client=client,
                invoice_amount=income_amount,
                paid_amount=ZERO,
                description=f'Payment for order {order.order_number}',
            )

            snapshot = OrderLedgerService._apply_snapshot(order)

        logger.info(
            f"Created order {order.order_number} for client {client.pk}: "
            f"{len(estimate['lines'])} cost lines, estimated {estimated_cost_total}, invoice {income_amount}"
        )

        return {
            'success': True,
            'order_id': order.pk,
            'order_number': order.order_number,
            'estimated_cost': estimated_cost_total,
            'invoice_amount': income_amount,
            'income_operation_id': invoice.pk,
            'cost_lines': [line.to_dict() for line in estimate['lines']],
            'snapshot': snapshot,
            'message': f'Order {order.order_number} created'
        }

    # ------------------------------------------------------------------
    # Payments & recalculation
    # ------------------------------------------------------------------

    @staticmethod
    def record_payment(income_operation_id, amount, payment_method: Optional[str] = None,
                       payment_date=None) -> Dict:
        """
        Register a payment against an invoice and refresh the order snapshot.

        Overpayment is not capped: paid_amount may exceed invoice_amount.

        Args:
            income_operation_id: ID of the IncomeOperation being paid
            amount: Amount received (> 0)
            payment_method: One of IncomeOperation.PaymentMethod (optional)
            payment_date: When the payment was received (defaults to now)

        Returns:
            Dict with the updated paid amount and the order snapshot

        Raises:
            InvalidInput: If amount is not positive or the method is unknown
            NotFound: If the income operation does not exist
            TransactionConflict: If a concurrent change prevented the commit
        """
        amount = to_decimal(amount, 'amount', allow_negative=True)
        if amount <= 0:
            raise InvalidInput('Payment amount must be greater than zero')
        if payment_method and payment_method not in IncomeOperation.PaymentMethod.values:
            raise InvalidInput(f"Unknown payment method '{payment_method}'")

        with atomic_operation('payment'):
            order_id = IncomeOperation.objects.filter(
                pk=income_operation_id
            ).values_list('order_id', flat=True).first()
            if order_id is None:
                raise NotFound(f'Income operation {income_operation_id} not found')

            order = OrderLedgerService._lock_order(order_id)
            income = IncomeOperation.objects.select_for_update().get(pk=income_operation_id)

            income.paid_amount += amount
            if payment_method:
                income.payment_method = payment_method
            income.payment_date = payment_date or timezone.now()
            income.save(update_fields=['paid_amount', 'payment_method', 'payment_date'])

            snapshot = OrderLedgerService._apply_snapshot(order)

        logger.info(
            f"Recorded payment of {amount} on income operation {income.pk} "
            f"(order {order.order_number}), paid {income.paid_amount} of {income.invoice_amount}"
        )

        return {
            'success': True,
            'income_operation_id': income.pk,
            'order_id': order.pk,
            'paid_amount': income.paid_amount,
            'invoice_amount': income.invoice_amount,
            'outstanding_amount': income.outstanding_amount,
            'snapshot': snapshot,
            'message': f'Payment of {amount} recorded for order {order.order_number}'
        }

    @staticmethod
    def recalculate(order_id) -> Dict:
        """
        Resynchronise an order's snapshot with its cost and income operations.

        Idempotent: calling it twice in a row yields the same snapshot.
        """
        with atomic_operation('recalculation'):
            order = OrderLedgerService._lock_order(order_id)
            snapshot = OrderLedgerService._apply_snapshot(order)

        logger.info(f"Recalculated order {order.order_number}: {snapshot}")

        return {
            'success': True,
            'order_id': order.pk,
            'order_number': order.order_number,
            'snapshot': snapshot,
            'message': f'Order {order.order_number} recalculated'
        }

    # ------------------------------------------------------------------
    # Manual cost & income operations
    # ------------------------------------------------------------------

    @staticmethod
    def add_cost_operation(order_id, vendor_service_id, quantity, actual_amount=None,
                           description: str = '') -> Dict:
        """
        Charge an extra vendor service to an order.

        calculated_amount = quantity x service price; actual_amount defaults to it.
        """
        quantity = to_decimal(quantity, 'quantity', QUANTITY_QUANT, allow_negative=True)
        if quantity <= 0:
            raise InvalidInput('Quantity must be greater than zero')
        if actual_amount is not None:
            actual_amount = to_decimal(actual_amount, 'actual_amount')

        service = VendorService.objects.select_related('vendor').filter(pk=vendor_service_id).first()
        if service is None:
            raise NotFound(f'Vendor service {vendor_service_id} not found')

        with atomic_operation('cost operation'):
            order = OrderLedgerService._lock_order(order_id)
            calculated_amount = line_amount(quantity, service.price)

            operation = CostOperation.objects.create(
                order=order,
                vendor=service.vendor,
                vendor_service=service,
                quantity=quantity,
                unit_price=service.price,
                calculated_amount=calculated_amount,
                actual_amount=actual_amount if actual_amount is not None else calculated_amount,
                description=description or f'{service.vendor.name}: {service.name}',
            )

            snapshot = OrderLedgerService._apply_snapshot(order)

        logger.info(
            f"Added cost operation {operation.pk} to order {order.order_number}: {operation.actual_amount}"
        )

        return {
            'success': True,
            'cost_operation_id': operation.pk,
            'order_id': order.pk,
            'calculated_amount': operation.calculated_amount,
            'actual_amount': operation.actual_amount,
            'snapshot': snapshot,
            'message': f'Cost operation added to order {order.order_number}'
        }

    @staticmethod
    def adjust_cost_operation(cost_operation_id, quantity=None, actual_amount=None,
                              description: Optional[str] = None) -> Dict:
        """
        Correct a cost operation after the fact.

        Changing quantity re-prices calculated_amount; actual_amount then
        follows the new calculated amount unless given explicitly.
        """
        if quantity is not None:
            quantity = to_decimal(quantity, 'quantity', QUANTITY_QUANT, allow_negative=True)
            if quantity <= 0:
                raise InvalidInput('Quantity must be greater than zero')
        if actual_amount is not None:
            actual_amount = to_decimal(actual_amount, 'actual_amount')

        with atomic_operation('cost adjustment'):
            order_id = CostOperation.objects.filter(
                pk=cost_operation_id
            ).values_list('order_id', flat=True).first()
            if order_id is None:
                raise NotFound(f'Cost operation {cost_operation_id} not found')

            order = OrderLedgerService._lock_order(order_id)
            operation = CostOperation.objects.select_for_update().get(pk=cost_operation_id)

            if quantity is not None:
                operation.quantity = quantity
                operation.calculated_amount = line_amount(quantity, operation.unit_price)
                if actual_amount is None:
                    actual_amount = operation.calculated_amount
            if actual_amount is not None:
                operation.actual_amount = actual_amount
            if description is not None:
                operation.description = description
            operation.save()

            snapshot = OrderLedgerService._apply_snapshot(order)

        logger.info(
            f"Adjusted cost operation {operation.pk} on order {order.order_number}: "
            f"calculated {operation.calculated_amount}, actual {operation.actual_amount}"
        )

        return {
            'success': True,
            'cost_operation_id': operation.pk,
            'order_id': order.pk,
            'quantity': operation.quantity,
            'calculated_amount': operation.calculated_amount,
            'actual_amount': operation.actual_amount,
            'snapshot': snapshot,
            'message': f'Cost operation {operation.pk} updated'
        }

    @staticmethod
    def delete_cost_operation(cost_operation_id) -> Dict:
        """Remove a cost line from its order and refresh the snapshot."""
        with atomic_operation('cost deletion'):
            order_id = CostOperation.objects.filter(
                pk=cost_operation_id
            ).values_list('order_id', flat=True).first()
            if order_id is None:
                raise NotFound(f'Cost operation {cost_operation_id} not found')

            order = OrderLedgerService._lock_order(order_id)
            CostOperation.objects.filter(pk=cost_operation_id).delete()

            snapshot = OrderLedgerService._apply_snapshot(order)

        logger.info(f"Deleted cost operation {cost_operation_id} from order {order.order_number}")

        return {
            'success': True,
            'cost_operation_id': cost_operation_id,
            'order_id': order.pk,
            'snapshot': snapshot,
            'message': f'Cost operation {cost_operation_id} deleted'
        }

    @staticmethod
    def add_income_operation(order_id, invoice_amount, paid_amount=0, payment_method: Optional[str] = None,
                             payment_date=None, description: str = '') -> Dict:
        """Issue an additional invoice (e.g. an installment) against an order."""
        invoice_amount = to_decimal(invoice_amount, 'invoice_amount')
        paid_amount = to_decimal(paid_amount or 0, 'paid_amount')
        if payment_method and payment_method not in IncomeOperation.PaymentMethod.values:
            raise InvalidInput(f"Unknown payment method '{payment_method}'")

        with atomic_operation('income operation'):
            order = OrderLedgerService._lock_order(order_id)

            if paid_amount > 0 and payment_date is None:
                payment_date = timezone.now()

            operation = IncomeOperation.objects.create(
                order=order,
                client_id=order.client_id,
                invoice_amount=invoice_amount,
                paid_amount=paid_amount,
                payment_method=payment_method or '',
                payment_date=payment_date,
                description=description or f'Payment for order {order.order_number}',
            )

            snapshot = OrderLedgerService._apply_snapshot(order)

        logger.info(
            f"Added income operation {operation.pk} to order {order.order_number}: "
            f"invoice {invoice_amount}, paid {paid_amount}"
        )

        return {
            'success': True,
            'income_operation_id': operation.pk,
            'order_id': order.pk,
            'invoice_amount': operation.invoice_amount,
            'paid_amount': operation.paid_amount,
            'snapshot': snapshot,
            'message': f'Income operation added to order {order.order_number}'
        }

    @staticmethod
    def update_income_operation(income_operation_id, invoice_amount=None, paid_amount=None,
                                payment_method: Optional[str] = None, payment_date=None,
                                description: Optional[str] = None) -> Dict:
        """
        Correct an invoice: amounts, payment method, payment date or description.

        Fields left as None keep their current value. Unlike record_payment,
        paid_amount replaces the stored amount instead of adding to it.

        Raises:
            InvalidInput: If an amount is negative or the method is unknown
            NotFound: If the income operation does not exist
            TransactionConflict: If a concurrent change prevented the commit
        """
        if invoice_amount is not None:
            invoice_amount = to_decimal(invoice_amount, 'invoice_amount')
        if paid_amount is not None:
            paid_amount = to_decimal(paid_amount, 'paid_amount')
        if payment_method and payment_method not in IncomeOperation.PaymentMethod.values:
            raise InvalidInput(f"Unknown payment method '{payment_method}'")

        with atomic_operation('income update'):
            order_id = IncomeOperation.objects.filter(
                pk=income_operation_id
            ).values_list('order_id', flat=True).first()
            if order_id is None:
                raise NotFound(f'Income operation {income_operation_id} not found')

            order = OrderLedgerService._lock_order(order_id)
            operation = IncomeOperation.objects.select_for_update().get(pk=income_operation_id)

            if invoice_amount is not None:
                operation.invoice_amount = invoice_amount
            if paid_amount is not None:
                operation.paid_amount = paid_amount
            if payment_method:
                operation.payment_method = payment_method
            if payment_date is not None:
                operation.payment_date = payment_date
            if description is not None:
                operation.description = description
            operation.save()

            snapshot = OrderLedgerService._apply_snapshot(order)

        logger.info(
            f"Updated income operation {operation.pk} on order {order.order_number}: "
            f"invoice {operation.invoice_amount}, paid {operation.paid_amount}"
        )

        return {
            'success': True,
            'income_operation_id': operation.pk,
            'order_id': order.pk,
            'invoice_amount': operation.invoice_amount,
            'paid_amount': operation.paid_amount,
            'outstanding_amount': operation.outstanding_amount,
            'snapshot': snapshot,
            'message': f'Income operation {operation.pk} updated'
        }

    @staticmethod
    def delete_income_operation(income_operation_id) -> Dict:
        """Remove an invoice from its order and refresh the snapshot."""
        with atomic_operation('income deletion'):
            order_id = IncomeOperation.objects.filter(
                pk=income_operation_id
            ).values_list('order_id', flat=True).first()
            if order_id is None:
                raise NotFound(f'Income operation {income_operation_id} not found')

            order = OrderLedgerService._lock_order(order_id)
            IncomeOperation.objects.filter(pk=income_operation_id).delete()

            snapshot = OrderLedgerService._apply_snapshot(order)

        logger.info(f"Deleted income operation {income_operation_id} from order {order.order_number}")

        return {
            'success': True,
            'income_operation_id': income_operation_id,
            'order_id': order.pk,
            'snapshot': snapshot,
            'message': f'Income operation {income_operation_id} deleted'
        }

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    @staticmethod
    def pnl(order_id) -> Dict:
        """
        Profit and loss breakdown of one order, computed from its operations.

        Returns:
            {
                'actual_cost', 'total_income', 'profit', 'margin_percent',
                'costs_by_type': {'PICKING': Decimal, ...},
                'unit_economics': {'total_items': int, 'profit_per_unit': Decimal}
            }
        """
        order = Order.objects.filter(pk=order_id).first()
        if order is None:
            raise NotFound(f'Order {order_id} not found')

        actual_cost = CostOperation.objects.filter(order=order).aggregate(
            total=Sum('actual_amount')
        )['total'] or ZERO
        total_income = IncomeOperation.objects.filter(order=order).aggregate(
            total=Sum('paid_amount')
        )['total'] or ZERO
        result = derive_snapshot(actual_cost, total_income)

        costs_by_type = {
            row['vendor_service__type']: row['total']
            for row in CostOperation.objects.filter(order=order).values(
                'vendor_service__type'
            ).annotate(total=Sum('actual_amount')).order_by('vendor_service__type')
        }

        total_items = OrderItem.objects.filter(order=order).aggregate(
            total=Sum('quantity')
        )['total'] or 0
        if total_items > 0:
            profit_per_unit = (result['profit'] / total_items).quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)
        else:
            profit_per_unit = ZERO

        result['costs_by_type'] = costs_by_type
        result['unit_economics'] = {
            'total_items': total_items,
            'profit_per_unit': profit_per_unit,
        }
        return result
