"""
Unit tests for OrderLedgerService.

Tests order creation from estimates, payments, snapshot derivation,
idempotent recalculation and manual cost/income operations.
"""

import re
from decimal import Decimal
from unittest.mock import patch

from django.db import IntegrityError, connection
from django.test import TestCase, TransactionTestCase, override_settings

from fulfillment.models import (
    Client, Vendor, VendorService, Order, OrderItem, CostOperation, IncomeOperation
)
from fulfillment.services.cost_rules import CostRuleEngine
from fulfillment.services.order_ledger import OrderLedgerService, derive_snapshot, generate_order_number
from utils.exceptions import InvalidInput, NotFound, TransactionConflict


class OrderLedgerTestCase(TestCase):

    def setUp(self):
        """Set up a client, a vendor and the two services of the 650 estimate."""
        self.client_obj = Client.objects.create(name='Acme Shop')
        self.vendor = Vendor.objects.create(name='FastLog')
        self.shipping = VendorService.objects.create(
            vendor=self.vendor,
            name='Доставка (1-5кг)',
            type=VendorService.ServiceType.SHIPPING,
            unit=VendorService.Unit.ORDER,
            price=Decimal('450.00')
        )
        self.picking = VendorService.objects.create(
            vendor=self.vendor,
            name='Комплектация (за единицу)',
            type=VendorService.ServiceType.PICKING,
            unit=VendorService.Unit.PIECE,
            price=Decimal('10.00')
        )
        self.items = [
            {'sku': 'MUG-001', 'name': 'Mug', 'quantity': 20, 'weight': '0.150', 'volume': '0.001'},
        ]

    def create_order(self, **kwargs):
        kwargs.setdefault('items', self.items)
        return OrderLedgerService.create_from_estimate(self.client_obj.id, **kwargs)


class CreateFromEstimateTest(OrderLedgerTestCase):

    def test_create_order_with_default_tariff(self):
        """Test estimated 650 with unset tariff gives an 845 invoice."""
        result = self.create_order(created_by='manager1')

        self.assertTrue(result['success'])
        self.assertEqual(result['estimated_cost'], Decimal('650.00'))
        self.assertEqual(result['invoice_amount'], Decimal('845.00'))
        self.assertRegex(result['order_number'], r'^ORD-\d{6}-[A-Z0-9]{6}$')

        order = Order.objects.get(id=result['order_id'])
        self.assertEqual(order.client, self.client_obj)
        self.assertEqual(order.status, Order.Status.NEW)
        self.assertEqual(order.created_by, 'manager1')
        self.assertEqual(order.estimated_cost, Decimal('650.00'))

        self.assertEqual(OrderItem.objects.filter(order=order).count(), 1)

        cost_ops = CostOperation.objects.filter(order=order).order_by('id')
        self.assertEqual(cost_ops.count(), 2)
        for op in cost_ops:
            self.assertEqual(op.calculated_amount, op.actual_amount)
        self.assertEqual(cost_ops[0].description, 'FastLog: Доставка (1-5кг)')

        income = IncomeOperation.objects.get(order=order)
        self.assertEqual(income.invoice_amount, Decimal('845.00'))
        self.assertEqual(income.paid_amount, Decimal('0.00'))

    def test_snapshot_after_creation_is_derived_from_operations(self):
        """Test nothing paid yet: income 0, cost = estimate, negative profit."""
        result = self.create_order()

        order = Order.objects.get(id=result['order_id'])
        self.assertEqual(order.actual_cost, Decimal('650.00'))
        self.assertEqual(order.total_income, Decimal('0.00'))
        self.assertEqual(order.profit, Decimal('-650.00'))
        self.assertEqual(order.margin_percent, Decimal('0.00'))

    def test_client_tariff_rate_used(self):
        self.client_obj.tariff_rate = Decimal('1.5')
        self.client_obj.save()

        result = self.create_order()

        self.assertEqual(result['invoice_amount'], Decimal('975.00'))

    @override_settings(FULFILLMENT_LEDGER={'DEFAULT_TARIFF_RATE': '2'})
    def test_default_tariff_from_settings(self):
        result = self.create_order()
        self.assertEqual(result['invoice_amount'], Decimal('1300.00'))

    def test_explicit_income_amount(self):
        result = self.create_order(income_amount=Decimal('1000'))

        self.assertEqual(result['invoice_amount'], Decimal('1000.00'))
        self.assertEqual(IncomeOperation.objects.get().invoice_amount, Decimal('1000.00'))

    def test_empty_items_rejected(self):
        with self.assertRaises(InvalidInput):
            self.create_order(items=[])
        self.assertEqual(Order.objects.count(), 0)

    def test_non_positive_item_quantity_rejected(self):
        with self.assertRaises(InvalidInput):
            self.create_order(items=[{'name': 'Mug', 'quantity': 0, 'weight': 1}])
        self.assertEqual(Order.objects.count(), 0)

    def test_unknown_client(self):
        with self.assertRaises(NotFound):
            OrderLedgerService.create_from_estimate(99999, self.items)

    def test_conflict_rolls_back_everything(self):
        """Test a failing insert leaves no order, items or operations behind."""
        with patch.object(
            IncomeOperation.objects, 'create',
            side_effect=IntegrityError('duplicate key')
        ):
            with self.assertRaises(TransactionConflict):
                self.create_order()

        self.assertEqual(Order.objects.count(), 0)
        self.assertEqual(OrderItem.objects.count(), 0)
        self.assertEqual(CostOperation.objects.count(), 0)

    def test_item_quantity_above_column_limit_rejected(self):
        with self.assertRaises(InvalidInput):
            self.create_order(items=[{'name': 'Mug', 'quantity': 2 ** 63}])
        self.assertEqual(Order.objects.count(), 0)


class CreateFromEstimateTransactionTest(TransactionTestCase):
    """Order creation reads the client and prices inside its own transaction."""

    def setUp(self):
        self.client_obj = Client.objects.create(name='Acme Shop')
        vendor = Vendor.objects.create(name='FastLog')
        VendorService.objects.create(
            vendor=vendor,
            name='Packing',
            type=VendorService.ServiceType.PACKING,
            unit=VendorService.Unit.ORDER,
            price=Decimal('30.00')
        )

    def test_estimate_runs_inside_transaction(self):
        seen = []
        original = CostRuleEngine.estimate

        def recording_estimate(items):
            seen.append(connection.in_atomic_block)
            return original(items)

        with patch.object(CostRuleEngine, 'estimate', side_effect=recording_estimate):
            result = OrderLedgerService.create_from_estimate(self.client_obj.id, [{'name': 'Mug', 'quantity': 1}])

        self.assertEqual(seen, [True])
        self.assertEqual(result['estimated_cost'], Decimal('30.00'))

    def test_failed_estimate_leaves_nothing(self):
        with patch.object(CostRuleEngine, 'estimate', side_effect=IntegrityError('deadlock')):
            with self.assertRaises(TransactionConflict):
                OrderLedgerService.create_from_estimate(self.client_obj.id, [{'name': 'Mug', 'quantity': 1}])

        self.assertEqual(Order.objects.count(), 0)
        self.assertFalse(connection.in_atomic_block)


class PaymentTest(OrderLedgerTestCase):

    def setUp(self):
        super().setUp()
        result = self.create_order()
        self.order = Order.objects.get(id=result['order_id'])
        self.income = IncomeOperation.objects.get(id=result['income_operation_id'])

    def test_full_payment_scenario(self):
        """Test paying 845 on a 650 order gives profit 195 and margin 23.08%."""
        result = OrderLedgerService.record_payment(self.income.id, Decimal('845.00'), payment_method='BANK_TRANSFER')

        self.assertTrue(result['success'])
        self.assertEqual(result['snapshot']['total_income'], Decimal('845.00'))
        self.assertEqual(result['snapshot']['profit'], Decimal('195.00'))
        self.assertEqual(result['snapshot']['margin_percent'], Decimal('23.08'))

        self.order.refresh_from_db()
        self.assertEqual(self.order.total_income, Decimal('845.00'))
        self.assertEqual(self.order.profit, Decimal('195.00'))
        self.assertEqual(self.order.margin_percent, Decimal('23.08'))

        self.income.refresh_from_db()
        self.assertEqual(self.income.payment_method, 'BANK_TRANSFER')
        self.assertIsNotNone(self.income.payment_date)

    def test_partial_payments_accumulate(self):
        OrderLedgerService.record_payment(self.income.id, '300')
        OrderLedgerService.record_payment(self.income.id, '200')

        self.income.refresh_from_db()
        self.assertEqual(self.income.paid_amount, Decimal('500.00'))
        self.assertEqual(self.income.outstanding_amount, Decimal('345.00'))
        self.order.refresh_from_db()
        self.assertEqual(self.order.total_income, Decimal('500.00'))

    def test_overpayment_is_not_capped(self):
        OrderLedgerService.record_payment(self.income.id, '1000')

        self.income.refresh_from_db()
        self.assertEqual(self.income.paid_amount, Decimal('1000.00'))

    def test_non_positive_payment_rejected(self):
        for amount in ('0', '-10'):
            with self.assertRaises(InvalidInput):
                OrderLedgerService.record_payment(self.income.id, amount)

        self.income.refresh_from_db()
        self.assertEqual(self.income.paid_amount, Decimal('0.00'))

    def test_unknown_payment_method_rejected(self):
        with self.assertRaises(InvalidInput):
            OrderLedgerService.record_payment(self.income.id, '10', payment_method='BITCOIN')

    def test_unknown_income_operation(self):
        with self.assertRaises(NotFound):
            OrderLedgerService.record_payment(99999, '10')


class RecalculateTest(OrderLedgerTestCase):

    def setUp(self):
        super().setUp()
        result = self.create_order()
        self.order = Order.objects.get(id=result['order_id'])
        OrderLedgerService.record_payment(result['income_operation_id'], '845')

    def test_recalculate_picks_up_direct_changes(self):
        """Test recalculation reads actual_amount, not calculated_amount."""
        CostOperation.objects.filter(order=self.order, vendor_service=self.shipping).update(
            actual_amount=Decimal('500.00')
        )

        result = OrderLedgerService.recalculate(self.order.id)

        self.assertEqual(result['snapshot']['actual_cost'], Decimal('700.00'))
        self.assertEqual(result['snapshot']['profit'], Decimal('145.00'))
        self.order.refresh_from_db()
        self.assertEqual(self.order.actual_cost, Decimal('700.00'))

    def test_recalculate_is_idempotent(self):
        first = OrderLedgerService.recalculate(self.order.id)['snapshot']
        second = OrderLedgerService.recalculate(self.order.id)['snapshot']

        self.assertEqual(first, second)
        self.order.refresh_from_db()
        self.assertEqual(self.order.snapshot, second)

    def test_recalculate_unknown_order(self):
        with self.assertRaises(NotFound):
            OrderLedgerService.recalculate(99999)


class ManualOperationsTest(OrderLedgerTestCase):

    def setUp(self):
        super().setUp()
        result = self.create_order()
        self.order = Order.objects.get(id=result['order_id'])
        self.packing = VendorService.objects.create(
            vendor=self.vendor,
            name='Упаковка',
            type=VendorService.ServiceType.PACKING,
            unit=VendorService.Unit.ORDER,
            price=Decimal('30.00')
        )

    def test_add_cost_operation(self):
        result = OrderLedgerService.add_cost_operation(self.order.id, self.packing.id, 2)

        operation = CostOperation.objects.get(id=result['cost_operation_id'])
        self.assertEqual(operation.calculated_amount, Decimal('60.00'))
        self.assertEqual(operation.actual_amount, Decimal('60.00'))
        self.assertEqual(operation.description, 'FastLog: Упаковка')
        self.assertEqual(result['snapshot']['actual_cost'], Decimal('710.00'))

    def test_add_cost_operation_with_actual_amount(self):
        result = OrderLedgerService.add_cost_operation(
            self.order.id, self.packing.id, 1, actual_amount='25.50', description='Discounted packing'
        )

        operation = CostOperation.objects.get(id=result['cost_operation_id'])
        self.assertEqual(operation.calculated_amount, Decimal('30.00'))
        self.assertEqual(operation.actual_amount, Decimal('25.50'))

    def test_add_cost_operation_unknown_service(self):
        with self.assertRaises(NotFound):
            OrderLedgerService.add_cost_operation(self.order.id, 99999, 1)

    def test_adjust_quantity_reprices(self):
        """Test changing quantity re-prices calculated and actual amounts."""
        operation = CostOperation.objects.get(order=self.order, vendor_service=self.picking)

        result = OrderLedgerService.adjust_cost_operation(operation.id, quantity=25)

        self.assertEqual(result['calculated_amount'], Decimal('250.00'))
        self.assertEqual(result['actual_amount'], Decimal('250.00'))
        self.assertEqual(result['snapshot']['actual_cost'], Decimal('700.00'))

    def test_adjust_actual_amount_only(self):
        operation = CostOperation.objects.get(order=self.order, vendor_service=self.shipping)

        result = OrderLedgerService.adjust_cost_operation(operation.id, actual_amount='400')

        self.assertEqual(result['calculated_amount'], Decimal('450.00'))
        self.assertEqual(result['actual_amount'], Decimal('400.00'))
        self.order.refresh_from_db()
        self.assertEqual(self.order.actual_cost, Decimal('600.00'))

    def test_adjust_unknown_operation(self):
        with self.assertRaises(NotFound):
            OrderLedgerService.adjust_cost_operation(99999, actual_amount='1')

    def test_add_income_operation_installment(self):
        result = OrderLedgerService.add_income_operation(
            self.order.id, '200', paid_amount='200', payment_method='CASH'
        )

        operation = IncomeOperation.objects.get(id=result['income_operation_id'])
        self.assertEqual(operation.client, self.client_obj)
        self.assertIsNotNone(operation.payment_date)
        self.assertEqual(IncomeOperation.objects.filter(order=self.order).count(), 2)
        self.assertEqual(result['snapshot']['total_income'], Decimal('200.00'))

    def test_delete_cost_operation(self):
        operation = CostOperation.objects.get(order=self.order, vendor_service=self.shipping)

        result = OrderLedgerService.delete_cost_operation(operation.id)

        self.assertEqual(result['order_id'], self.order.id)
        self.assertFalse(CostOperation.objects.filter(id=operation.id).exists())
        self.assertEqual(result['snapshot']['actual_cost'], Decimal('200.00'))
        self.order.refresh_from_db()
        self.assertEqual(self.order.actual_cost, Decimal('200.00'))

    def test_delete_unknown_cost_operation(self):
        with self.assertRaises(NotFound):
            OrderLedgerService.delete_cost_operation(99999)

    def test_update_income_operation_replaces_paid_amount(self):
        income = IncomeOperation.objects.get(order=self.order)
        OrderLedgerService.record_payment(income.id, '100')

        result = OrderLedgerService.update_income_operation(
            income.id, paid_amount='845', payment_method='CARD', description='Paid in full'
        )

        income.refresh_from_db()
        self.assertEqual(income.paid_amount, Decimal('845.00'))
        self.assertEqual(income.payment_method, 'CARD')
        self.assertEqual(income.description, 'Paid in full')
        self.assertEqual(result['outstanding_amount'], Decimal('0.00'))
        self.assertEqual(result['snapshot']['profit'], Decimal('195.00'))
        self.assertEqual(result['snapshot']['margin_percent'], Decimal('23.08'))

    def test_update_income_operation_keeps_unset_fields(self):
        income = IncomeOperation.objects.get(order=self.order)

        OrderLedgerService.update_income_operation(income.id, invoice_amount='900')

        income.refresh_from_db()
        self.assertEqual(income.invoice_amount, Decimal('900.00'))
        self.assertEqual(income.paid_amount, Decimal('0.00'))

    def test_update_income_operation_rejects_bad_input(self):
        income = IncomeOperation.objects.get(order=self.order)

        with self.assertRaises(InvalidInput):
            OrderLedgerService.update_income_operation(income.id, paid_amount='-1')
        with self.assertRaises(InvalidInput):
            OrderLedgerService.update_income_operation(income.id, payment_method='BARTER')
        with self.assertRaises(NotFound):
            OrderLedgerService.update_income_operation(99999, paid_amount='1')

    def test_delete_income_operation(self):
        income = IncomeOperation.objects.get(order=self.order)
        OrderLedgerService.record_payment(income.id, '845')

        result = OrderLedgerService.delete_income_operation(income.id)

        self.assertFalse(IncomeOperation.objects.filter(order=self.order).exists())
        self.assertEqual(result['snapshot']['total_income'], Decimal('0.00'))
        self.order.refresh_from_db()
        self.assertEqual(self.order.total_income, Decimal('0.00'))
        self.assertEqual(self.order.profit, Decimal('-650.00'))

    def test_delete_unknown_income_operation(self):
        with self.assertRaises(NotFound):
            OrderLedgerService.delete_income_operation(99999)

    def test_pnl_breakdown(self):
        """Test costs grouped by service type and per-unit profit."""
        income = IncomeOperation.objects.get(order=self.order)
        OrderLedgerService.record_payment(income.id, '845')

        pnl = OrderLedgerService.pnl(self.order.id)

        self.assertEqual(pnl['costs_by_type'], {
            'PICKING': Decimal('200.00'),
            'SHIPPING': Decimal('450.00'),
        })
        self.assertEqual(pnl['profit'], Decimal('195.00'))
        self.assertEqual(pnl['margin_percent'], Decimal('23.08'))
        self.assertEqual(pnl['unit_economics']['total_items'], 20)
        self.assertEqual(pnl['unit_economics']['profit_per_unit'], Decimal('9.75'))


class DeriveSnapshotTest(TestCase):

    def test_zero_income_gives_zero_margin(self):
        snapshot = derive_snapshot(Decimal('100'), Decimal('0'))
        self.assertEqual(snapshot['margin_percent'], Decimal('0.00'))
        self.assertEqual(snapshot['profit'], Decimal('-100.00'))

    def test_margin_rounds_half_up(self):
        # 1 / 8 * 100 = 12.5 exactly; 1 / 3 * 100 = 33.333...
        self.assertEqual(derive_snapshot(Decimal('7'), Decimal('8'))['margin_percent'], Decimal('12.50'))
        self.assertEqual(derive_snapshot(Decimal('2'), Decimal('3'))['margin_percent'], Decimal('33.33'))

    def test_order_number_format(self):
        self.assertTrue(re.match(r'^ORD-\d{6}-[A-Z0-9]{6}$', generate_order_number()))
