"""
Unit tests for ledger model constraints and helpers.
"""

from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.test import TestCase

from fulfillment.models import (
    Warehouse, StorageLocation, Product, StockRecord, Client, Order, IncomeOperation
)


class StockRecordConstraintTest(TestCase):

    def setUp(self):
        warehouse = Warehouse.objects.create(name='Main', code='WH1')
        self.location = StorageLocation.objects.create(warehouse=warehouse, code='A-01')
        self.product = Product.objects.create(sku='MUG-001', name='Mug')

    def test_available_cannot_exceed_quantity(self):
        """Test the database rejects available_qty > quantity."""
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                StockRecord.objects.create(
                    product=self.product,
                    storage_location=self.location,
                    quantity=5,
                    available_qty=6
                )

    def test_one_record_per_product_location_batch(self):
        StockRecord.objects.create(product=self.product, storage_location=self.location, quantity=1, available_qty=1)

        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                StockRecord.objects.create(
                    product=self.product, storage_location=self.location, quantity=2, available_qty=2
                )

    def test_reserved_qty(self):
        record = StockRecord(product=self.product, storage_location=self.location, quantity=10, available_qty=7)
        self.assertEqual(record.reserved_qty, 3)


class StorageLocationModelTest(TestCase):

    def test_new_location_is_free(self):
        warehouse = Warehouse.objects.create(name='Main', code='WH1')
        location = StorageLocation.objects.create(warehouse=warehouse, code='A-01')

        self.assertEqual(location.status, StorageLocation.Status.FREE)
        self.assertEqual(str(location), 'WH1/A-01')
        self.assertEqual(location.get_status_color(), '#10B981')

    def test_status_not_editable(self):
        self.assertFalse(StorageLocation._meta.get_field('status').editable)

    def test_location_code_unique_per_warehouse(self):
        wh1 = Warehouse.objects.create(name='North', code='N')
        wh2 = Warehouse.objects.create(name='South', code='S')
        StorageLocation.objects.create(warehouse=wh1, code='A-01')
        StorageLocation.objects.create(warehouse=wh2, code='A-01')

        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                StorageLocation.objects.create(warehouse=wh1, code='A-01')


class ProductModelTest(TestCase):

    def test_negative_unit_cost_invalid(self):
        product = Product(sku='BAD-1', name='Bad', unit_cost=Decimal('-1.00'))
        with self.assertRaises(ValidationError) as context:
            product.full_clean()
        self.assertIn('unit_cost', context.exception.message_dict)


class OrderModelTest(TestCase):

    def test_snapshot_property_and_outstanding(self):
        client = Client.objects.create(name='Acme')
        order = Order.objects.create(
            order_number='ORD-240101-ABC123',
            client=client,
            actual_cost=Decimal('650.00'),
            total_income=Decimal('845.00'),
            profit=Decimal('195.00'),
            margin_percent=Decimal('23.08')
        )
        income = IncomeOperation.objects.create(
            order=order, client=client, invoice_amount=Decimal('845.00'), paid_amount=Decimal('800.00')
        )

        self.assertEqual(order.snapshot['profit'], Decimal('195.00'))
        self.assertEqual(income.outstanding_amount, Decimal('45.00'))
        self.assertEqual(str(order), 'ORD-240101-ABC123 (Acme)')
