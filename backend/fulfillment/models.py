from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone

from utils.constants import LOCATION_STATUS_COLORS, MOVEMENT_TYPE_COLORS, MOVEMENT_TYPE_ICONS


# ============================================================
# WAREHOUSE & STOCK MODELS
# ============================================================

class Warehouse(models.Model):
    """
    Physical warehouse that groups storage locations.
    """
    name = models.CharField(max_length=200)
    code = models.CharField(max_length=50, unique=True, db_index=True)
    address = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['code']

    def __str__(self):
        return f"{self.code} - {self.name}"


class StorageLocation(models.Model):
    """
    A single addressable cell (shelf, pallet place, bin) inside a warehouse.

    The status field is derived from the stock held at the location and is
    recomputed by StockLedgerService after every mutation touching it.
    It is not editable through forms, serializers or the admin.
    """

    class Status(models.TextChoices):
        FREE = 'FREE', 'Free'
        OCCUPIED = 'OCCUPIED', 'Occupied'

    warehouse = models.ForeignKey(
        Warehouse,
        on_delete=models.CASCADE,
        related_name='locations'
    )
    code = models.CharField(max_length=50, help_text="Location code (e.g., A-01-03)")
    name = models.CharField(max_length=200, blank=True)
    zone = models.CharField(max_length=50, blank=True)
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.FREE,
        editable=False,
        db_index=True,
        help_text="Derived: OCCUPIED iff total stock at this location is above zero"
    )
    max_weight = models.DecimalField(
        max_digits=12,
        decimal_places=3,
        null=True,
        blank=True,
        help_text="Weight capacity in kg"
    )
    max_volume = models.DecimalField(
        max_digits=12,
        decimal_places=3,
        null=True,
        blank=True,
        help_text="Volume capacity in cubic meters"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['warehouse', 'code']
        constraints = [
            models.UniqueConstraint(
                fields=['warehouse', 'code'],
                name='unique_location_code_per_warehouse'
            ),
        ]

    def __str__(self):
        return f"{self.warehouse.code}/{self.code}"

    def get_status_color(self):
        return LOCATION_STATUS_COLORS.get(self.status, '#6B7280')


class Product(models.Model):
    """
    Product catalog entry.

    Stock levels are not stored here; they live in StockRecord rows,
    one per (product, location, batch).
    """
    sku = models.CharField(max_length=100, unique=True, db_index=True)
    name = models.CharField(max_length=200)
    unit_weight = models.DecimalField(
        max_digits=12,
        decimal_places=3,
        default=Decimal('0'),
        help_text="Weight of one unit in kg"
    )
    unit_volume = models.DecimalField(
        max_digits=12,
        decimal_places=3,
        default=Decimal('0'),
        help_text="Volume of one unit in cubic meters"
    )
    unit_cost = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
        help_text="Cost of one unit (used to value write-offs)"
    )
    unit_price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00')
    )
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['name']

    def __str__(self):
        return f"{self.sku} - {self.name}"

    def clean(self):
        """Validate product data"""
        super().clean()

        if self.unit_cost < Decimal('0.00'):
            raise ValidationError({
                'unit_cost': 'Unit cost cannot be negative'
            })


class StockRecord(models.Model):
    """
    Quantity of one product batch held at one storage location.

    quantity is the physical on-hand amount; available_qty is the part of it
    that may be moved. 0 <= available_qty <= quantity always holds.
    Rows are mutated exclusively by StockLedgerService.
    """
    product = models.ForeignKey(
        Product,
        on_delete=models.CASCADE,
        related_name='stock_records'
    )
    storage_location = models.ForeignKey(
        StorageLocation,
        on_delete=models.CASCADE,
        related_name='stock_records'
    )
    batch_number = models.CharField(
        max_length=100,
        blank=True,
        default='',
        help_text="Batch/lot number; empty string when the stock is not batch-tracked"
    )
    quantity = models.PositiveIntegerField(default=0)
    available_qty = models.PositiveIntegerField(default=0)
    last_movement_at = models.DateTimeField(default=timezone.now)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['storage_location', 'product', 'batch_number']
        constraints = [
            models.UniqueConstraint(
                fields=['product', 'storage_location', 'batch_number'],
                name='unique_stock_record_per_batch'
            ),
            models.CheckConstraint(
                condition=models.Q(available_qty__gte=0) & models.Q(available_qty__lte=models.F('quantity')),
                name='available_qty_cannot_exceed_quantity',
                violation_error_message='Available quantity cannot exceed on-hand quantity'
            ),
        ]
        indexes = [
            models.Index(fields=['storage_location'], name='stock_record_location_idx'),
            models.Index(fields=['product'], name='stock_record_product_idx'),
        ]

    def __str__(self):
        batch = f" [{self.batch_number}]" if self.batch_number else ''
        return f"{self.product.sku}{batch} @ {self.storage_location}: {self.quantity}"

    @property
    def reserved_qty(self):
        return self.quantity - self.available_qty


class StockMovement(models.Model):
    """
    Append-only audit trail of every ledger mutation.

    INBOUND has no from_location, WRITE_OFF has no to_location,
    TRANSFER has both.
    """

    class MovementType(models.TextChoices):
        INBOUND = 'INBOUND', 'Inbound'
        TRANSFER = 'TRANSFER', 'Transfer'
        WRITE_OFF = 'WRITE_OFF', 'Write-off'

    product = models.ForeignKey(
        Product,
        on_delete=models.PROTECT,
        related_name='movements'
    )
    from_location = models.ForeignKey(
        StorageLocation,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='outgoing_movements'
    )
    to_location = models.ForeignKey(
        StorageLocation,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='incoming_movements'
    )
    quantity = models.PositiveIntegerField()
    movement_type = models.CharField(
        max_length=20,
        choices=MovementType.choices,
        db_index=True
    )
    batch_number = models.CharField(max_length=100, blank=True, default='')
    reason = models.TextField(blank=True)
    created_by = models.CharField(
        max_length=255,
        blank=True,
        help_text="User who performed this movement"
    )
    created_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['product', '-created_at'], name='movement_product_created_idx'),
            models.Index(fields=['movement_type'], name='movement_type_idx'),
        ]

    def __str__(self):
        return f"{self.get_movement_type_display()}: {self.quantity} x {self.product.sku}"

    def get_movement_type_color(self):
        return MOVEMENT_TYPE_COLORS.get(self.movement_type, '#6B7280')

    def get_movement_type_icon(self):
        return MOVEMENT_TYPE_ICONS.get(self.movement_type, '❓')

    def clean(self):
        """Validate the from/to shape for the movement type."""
        super().clean()

        if self.quantity is not None and self.quantity <= 0:
            raise ValidationError({'quantity': 'Quantity must be greater than zero'})

        if self.movement_type == self.MovementType.INBOUND:
            if self.from_location_id or not self.to_location_id:
                raise ValidationError('Inbound movements need a destination and no source')
        elif self.movement_type == self.MovementType.WRITE_OFF:
            if self.to_location_id or not self.from_location_id:
                raise ValidationError('Write-off movements need a source and no destination')
        elif self.movement_type == self.MovementType.TRANSFER:
            if not self.from_location_id or not self.to_location_id:
                raise ValidationError('Transfer movements need both a source and a destination')

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError('Stock movements are append-only and cannot be modified')
        self.full_clean()
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError('Stock movements are append-only and cannot be deleted')


# ============================================================
# VENDOR CATALOG MODELS
# ============================================================

class Vendor(models.Model):
    name = models.CharField(max_length=200)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['name']

    def __str__(self):
        return self.name


class VendorService(models.Model):
    """
    A priced service offered by a vendor (picking, packing, shipping, ...).

    Read-only input to CostRuleEngine. Shipping services billed per order
    encode their weight bracket in the name (e.g. "Delivery (1-5кг)").
    """

    class ServiceType(models.TextChoices):
        PICKING = 'PICKING', 'Picking'
        PACKING = 'PACKING', 'Packing'
        SHIPPING = 'SHIPPING', 'Shipping'
        STORAGE = 'STORAGE', 'Storage'
        RECEIVING = 'RECEIVING', 'Receiving'
        LABELING = 'LABELING', 'Labeling'
        RETURNS = 'RETURNS', 'Returns'

    class Unit(models.TextChoices):
        ORDER = 'ORDER', 'Per order'
        PIECE = 'PIECE', 'Per piece'
        KG = 'KG', 'Per kg'
        PALLET = 'PALLET', 'Per pallet'
        CUBIC_METER = 'CUBIC_METER', 'Per cubic meter'

    vendor = models.ForeignKey(
        Vendor,
        on_delete=models.CASCADE,
        related_name='services'
    )
    name = models.CharField(max_length=200)
    type = models.CharField(max_length=20, choices=ServiceType.choices, db_index=True)
    unit = models.CharField(max_length=20, choices=Unit.choices)
    price = models.DecimalField(max_digits=12, decimal_places=2)
    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['vendor', 'type', 'name']

    def __str__(self):
        return f"{self.vendor.name}: {self.name}"


# ============================================================
# ORDER & FINANCE MODELS
# ============================================================

class Client(models.Model):
    name = models.CharField(max_length=200)
    company_name = models.CharField(max_length=200, blank=True)
    tariff_rate = models.DecimalField(
        max_digits=6,
        decimal_places=3,
        null=True,
        blank=True,
        help_text="Markup applied to estimated cost when invoicing (default 1.3 when unset)"
    )
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['name']

    def __str__(self):
        return self.name


class Order(models.Model):
    """
    Client order with its derived profit snapshot.

    actual_cost, total_income, profit and margin_percent are caches
    recomputed by OrderLedgerService from CostOperation and
    IncomeOperation sums. They are never edited directly.
    """

    class Status(models.TextChoices):
        NEW = 'NEW', 'New'
        PROCESSING = 'PROCESSING', 'Processing'
        PICKING = 'PICKING', 'Picking'
        PACKED = 'PACKED', 'Packed'
        SHIPPED = 'SHIPPED', 'Shipped'
        DELIVERED = 'DELIVERED', 'Delivered'
        COMPLETED = 'COMPLETED', 'Completed'
        CANCELLED = 'CANCELLED', 'Cancelled'
        RETURNED = 'RETURNED', 'Returned'

    order_number = models.CharField(max_length=50, unique=True, db_index=True)
    client = models.ForeignKey(
        Client,
        on_delete=models.PROTECT,
        related_name='orders'
    )
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.NEW,
        db_index=True
    )
    shipping_address = models.TextField(blank=True)
    notes = models.TextField(blank=True)
    created_by = models.CharField(max_length=255, blank=True)

    estimated_cost = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))

    # Derived snapshot
    actual_cost = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
        help_text="Sum of cost operations' actual amounts"
    )
    total_income = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
        help_text="Sum of income operations' paid amounts"
    )
    profit = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    margin_percent = models.DecimalField(max_digits=8, decimal_places=2, default=Decimal('0.00'))

    order_date = models.DateTimeField(default=timezone.now, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-order_date']

    def __str__(self):
        return f"{self.order_number} ({self.client.name})"

    @property
    def snapshot(self):
        return {
            'actual_cost': self.actual_cost,
            'total_income': self.total_income,
            'profit': self.profit,
            'margin_percent': self.margin_percent,
        }


class OrderItem(models.Model):
    order = models.ForeignKey(
        Order,
        on_delete=models.CASCADE,
        related_name='items'
    )
    sku = models.CharField(max_length=100, blank=True)
    name = models.CharField(max_length=200)
    quantity = models.PositiveIntegerField(default=1)
    weight = models.DecimalField(
        max_digits=12,
        decimal_places=3,
        default=Decimal('0'),
        help_text="Weight of one unit in kg"
    )
    volume = models.DecimalField(
        max_digits=12,
        decimal_places=3,
        default=Decimal('0'),
        help_text="Volume of one unit in cubic meters"
    )
    unit_cost = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    unit_price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))

    def __str__(self):
        return f"{self.quantity}x {self.name} ({self.order.order_number})"


class CostOperation(models.Model):
    """
    One priced line charged to an order by a vendor service.

    calculated_amount = quantity x unit_price at creation time.
    actual_amount starts equal to it and may be adjusted by hand later;
    order snapshots always sum actual_amount.
    """
    order = models.ForeignKey(
        Order,
        on_delete=models.CASCADE,
        related_name='cost_operations'
    )
    vendor = models.ForeignKey(
        Vendor,
        on_delete=models.PROTECT,
        related_name='cost_operations'
    )
    vendor_service = models.ForeignKey(
        VendorService,
        on_delete=models.PROTECT,
        related_name='cost_operations'
    )
    quantity = models.DecimalField(max_digits=12, decimal_places=3)
    unit_price = models.DecimalField(max_digits=12, decimal_places=2)
    calculated_amount = models.DecimalField(max_digits=12, decimal_places=2)
    actual_amount = models.DecimalField(max_digits=12, decimal_places=2)
    description = models.TextField(blank=True)
    operation_date = models.DateTimeField(default=timezone.now)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['id']

    def __str__(self):
        return f"{self.description or self.vendor_service} = {self.actual_amount}"


class IncomeOperation(models.Model):
    """
    Invoice issued against an order and the payments received for it.
    An order may have several (installments).
    """

    class PaymentMethod(models.TextChoices):
        BANK_TRANSFER = 'BANK_TRANSFER', 'Bank Transfer'
        CARD = 'CARD', 'Card'
        CASH = 'CASH', 'Cash'
        OTHER = 'OTHER', 'Other'

    order = models.ForeignKey(
        Order,
        on_delete=models.CASCADE,
        related_name='income_operations'
    )
    client = models.ForeignKey(
        Client,
        on_delete=models.PROTECT,
        related_name='income_operations'
    )
    invoice_amount = models.DecimalField(max_digits=12, decimal_places=2)
    paid_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    payment_method = models.CharField(
        max_length=20,
        choices=PaymentMethod.choices,
        blank=True
    )
    payment_date = models.DateTimeField(null=True, blank=True)
    description = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at', '-id']

    def __str__(self):
        return f"Invoice {self.invoice_amount} for {self.order.order_number} (paid {self.paid_amount})"

    @property
    def outstanding_amount(self):
        return self.invoice_amount - self.paid_amount


class Account(models.Model):
    """
    Chart-of-accounts entry for the general ledger.
    """

    class AccountType(models.TextChoices):
        ASSET = 'ASSET', 'Asset'
        LIABILITY = 'LIABILITY', 'Liability'
        EQUITY = 'EQUITY', 'Equity'
        INCOME = 'INCOME', 'Income'
        EXPENSE = 'EXPENSE', 'Expense'

    code = models.CharField(max_length=20, unique=True, db_index=True)
    name = models.CharField(max_length=200)
    account_type = models.CharField(max_length=20, choices=AccountType.choices)
    balance = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['code']

    def __str__(self):
        return f"{self.code} {self.name}"


class FinTransaction(models.Model):
    """Double-entry posting between two accounts."""
    debit_account = models.ForeignKey(
        Account,
        on_delete=models.PROTECT,
        related_name='debit_transactions'
    )
    credit_account = models.ForeignKey(
        Account,
        on_delete=models.PROTECT,
        related_name='credit_transactions'
    )
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    description = models.TextField(blank=True)
    transaction_date = models.DateTimeField(default=timezone.now)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-transaction_date', '-id']

    def __str__(self):
        return f"Dr {self.debit_account.code} / Cr {self.credit_account.code}: {self.amount}"
