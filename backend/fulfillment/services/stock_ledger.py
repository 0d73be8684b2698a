"""
Stock Ledger Service

Owns the per-location, per-batch quantity records (StockRecord) and is the
only code allowed to mutate them.

Operations:
1. receive   - inbound receipt into a location
2. transfer  - move stock between two locations
3. write_off - remove stock as lost/damaged, posting the loss to the general ledger

Business Rules:
- Every operation is one all-or-nothing transaction
- 0 <= available_qty <= quantity on every record, at all times
- A location is OCCUPIED iff the total quantity stored there is above zero;
  the status is recomputed after every mutation touching the location
- Every successful mutation appends exactly one StockMovement
- Locations are locked in ascending primary-key order, then stock records
"""

import logging
from decimal import Decimal
from typing import Dict, Iterable, Optional

from django.db import DatabaseError, transaction
from django.db.models import Sum
from django.utils import timezone

from fulfillment.models import Product, StockMovement, StockRecord, StorageLocation
from fulfillment.services.financial_entries import FinancialEntryWriter
from utils.constants import MAX_QUANTITY
from utils.db import atomic_operation
from utils.exceptions import InsufficientStock, InvalidInput, NotFound

logger = logging.getLogger(__name__)


def normalize_batch(batch_number: Optional[str]) -> str:
    """Absent batch numbers are stored as the empty string."""
    return (batch_number or '').strip()


def validate_quantity(quantity) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise InvalidInput('Quantity must be a whole number')
    if quantity <= 0:
        raise InvalidInput('Quantity must be greater than zero')
    if quantity > MAX_QUANTITY:
        raise InvalidInput(f'Quantity cannot exceed {MAX_QUANTITY}')
    return quantity


def to_id(value, field: str) -> int:
    """Primary keys arrive as ints or numeric strings."""
    if isinstance(value, bool):
        raise InvalidInput(f'{field} must be an integer id')
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidInput(f'{field} must be an integer id')


class StockLedgerService:
    """Service for inbound, transfer and write-off stock mutations."""

    # ------------------------------------------------------------------
    # Internal helpers (must run inside an open transaction)
    # ------------------------------------------------------------------

    @staticmethod
    def _get_product(product_id) -> Product:
        product = Product.objects.filter(pk=product_id).first()
        if product is None:
            raise NotFound(f'Product {product_id} not found')
        return product

    @staticmethod
    def _lock_locations(location_ids: Iterable) -> Dict[int, StorageLocation]:
        """Lock the given locations in ascending pk order."""
        wanted = sorted({to_id(location_id, 'location_id') for location_id in location_ids})
        locations = {
            location.pk: location
            for location in StorageLocation.objects.select_for_update().filter(
                pk__in=wanted
            ).order_by('pk')
        }
        for location_id in wanted:
            if location_id not in locations:
                raise NotFound(f'Storage location {location_id} not found')
        return locations

    @staticmethod
    def _lock_record(product_id, location_id, batch_number: str) -> Optional[StockRecord]:
        return StockRecord.objects.select_for_update().filter(
            product_id=product_id,
            storage_location_id=location_id,
            batch_number=batch_number,
        ).first()

    @staticmethod
    def _add_to_record(product: Product, location: StorageLocation, batch_number: str,
                       quantity: int, now) -> StockRecord:
        record = StockLedgerService._lock_record(product.pk, location.pk, batch_number)
        if record is None:
            return StockRecord.objects.create(
                product=product,
                storage_location=location,
                batch_number=batch_number,
                quantity=quantity,
                available_qty=quantity,
                last_movement_at=now,
            )

        if record.quantity + quantity > MAX_QUANTITY:
            raise InvalidInput(
                f'{location.code} would hold more than {MAX_QUANTITY} units of {product.sku}'
            )

        record.quantity += quantity
        record.available_qty += quantity
        record.last_movement_at = now
        record.save(update_fields=['quantity', 'available_qty', 'last_movement_at', 'updated_at'])
        return record

    @staticmethod
    def refresh_location_status(location: StorageLocation) -> str:
        """
        Recompute a location's status from the stock stored there.

        Returns:
            The (possibly unchanged) status
        """
        total = StockRecord.objects.filter(
            storage_location=location
        ).aggregate(total=Sum('quantity'))['total'] or 0

        new_status = (
            StorageLocation.Status.OCCUPIED if total > 0 else StorageLocation.Status.FREE
        )
        if location.status != new_status:
            location.status = new_status
            location.save(update_fields=['status', 'updated_at'])
        return location.status

    @staticmethod
    def _location_snapshot(location: StorageLocation, record: Optional[StockRecord]) -> Dict:
        return {
            'location_id': location.pk,
            'location_code': location.code,
            'status': location.status,
            'record_quantity': record.quantity if record else 0,
            'record_available_qty': record.available_qty if record else 0,
        }

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    @staticmethod
    def receive(product_id, to_location_id, quantity: int, batch_number: Optional[str] = None,
                reason: str = '', performed_by: str = 'System') -> Dict:
        """
        Register inbound stock at a storage location.

        Finds or creates the stock record for (product, location, batch) and
        increases both its on-hand and available quantities.

        Args:
            product_id: ID of the product received
            to_location_id: ID of the receiving storage location
            quantity: Number of units received (> 0)
            batch_number: Optional batch/lot number
            reason: Optional free-text note
            performed_by: User who performed the receipt

        Returns:
            Dict with the movement id and the location's new stock snapshot

        Raises:
            InvalidInput: If quantity is not a positive integer
            NotFound: If the product or location does not exist
            TransactionConflict: If a concurrent change prevented the commit
        """
        validate_quantity(quantity)
        to_location_id = to_id(to_location_id, 'to_location_id')
        batch_number = normalize_batch(batch_number)

        with atomic_operation('receipt'):
            product = StockLedgerService._get_product(product_id)
            location = StockLedgerService._lock_locations([to_location_id])[to_location_id]
            now = timezone.now()

            record = StockLedgerService._add_to_record(product, location, batch_number, quantity, now)

            movement = StockMovement.objects.create(
                product=product,
                to_location=location,
                quantity=quantity,
                movement_type=StockMovement.MovementType.INBOUND,
                batch_number=batch_number,
                reason=reason or '',
                created_by=performed_by,
                created_at=now,
            )

            StockLedgerService.refresh_location_status(location)

        logger.info(
            f"Received {quantity} x {product.sku} at {location.code} "
            f"(batch '{batch_number}') by {performed_by}, movement {movement.pk}"
        )

        return {
            'success': True,
            'movement_id': movement.pk,
            'movement_type': movement.movement_type,
            'product_id': product.pk,
            'quantity': quantity,
            'batch_number': batch_number,
            'to_location': StockLedgerService._location_snapshot(location, record),
            'message': f'Received {quantity} x {product.name} at {location.code}'
        }

    @staticmethod
    def transfer(product_id, from_location_id, to_location_id, quantity: int,
                 batch_number: Optional[str] = None, reason: str = '',
                 performed_by: str = 'System') -> Dict:
        """
        Move available stock of one product batch between two locations.

        Business Rules:
        - Source and destination must differ
        - The source record must hold at least `quantity` available units
        - Source decrement, destination increment, movement record and both
          status updates commit together or not at all

        Args:
            product_id: ID of the product to move
            from_location_id: ID of the source storage location
            to_location_id: ID of the destination storage location
            quantity: Number of units to move (> 0)
            batch_number: Optional batch/lot number
            reason: Optional free-text note
            performed_by: User who performed the transfer

        Returns:
            Dict with the movement id and stock snapshots of both locations

        Raises:
            InvalidInput: If quantity is not positive or source equals destination
            NotFound: If the product or a location does not exist
            InsufficientStock: If the source record is missing or holds too little
            TransactionConflict: If a concurrent change prevented the commit
        """
        validate_quantity(quantity)
        from_location_id = to_id(from_location_id, 'from_location_id')
        to_location_id = to_id(to_location_id, 'to_location_id')
        if from_location_id == to_location_id:
            raise InvalidInput('Source and destination locations must be different')
        batch_number = normalize_batch(batch_number)

        with atomic_operation('transfer'):
            product = StockLedgerService._get_product(product_id)
            locations = StockLedgerService._lock_locations([from_location_id, to_location_id])
            from_location = locations[from_location_id]
            to_location = locations[to_location_id]
            now = timezone.now()

            source = StockLedgerService._lock_record(product.pk, from_location.pk, batch_number)
            available = source.available_qty if source else 0
            if available < quantity:
                logger.warning(
                    f"Transfer rejected: {product.sku} at {from_location.code} has "
                    f"{available} available, {quantity} requested"
                )
                raise InsufficientStock(
                    f'Insufficient stock to transfer. Available: {available}, Requested: {quantity}'
                )

            source.quantity -= quantity
            source.available_qty -= quantity
            source.last_movement_at = now
            source.save(update_fields=['quantity', 'available_qty', 'last_movement_at', 'updated_at'])

            destination = StockLedgerService._add_to_record(
                product, to_location, batch_number, quantity, now
            )

            movement = StockMovement.objects.create(
                product=product,
                from_location=from_location,
                to_location=to_location,
                quantity=quantity,
                movement_type=StockMovement.MovementType.TRANSFER,
                batch_number=batch_number,
                reason=reason or '',
                created_by=performed_by,
                created_at=now,
            )

            StockLedgerService.refresh_location_status(from_location)
            StockLedgerService.refresh_location_status(to_location)

        logger.info(
            f"Transferred {quantity} x {product.sku} from {from_location.code} to "
            f"{to_location.code} by {performed_by}, movement {movement.pk}"
        )

        return {
            'success': True,
            'movement_id': movement.pk,
            'movement_type': movement.movement_type,
            'product_id': product.pk,
            'quantity': quantity,
            'batch_number': batch_number,
            'from_location': StockLedgerService._location_snapshot(from_location, source),
            'to_location': StockLedgerService._location_snapshot(to_location, destination),
            'message': f'Moved {quantity} x {product.name} from {from_location.code} to {to_location.code}'
        }

    @staticmethod
    def write_off(product_id, location_id, quantity: int, reason: str,
                  batch_number: Optional[str] = None, performed_by: str = 'System',
                  entry_writer=None) -> Dict:
        """
        Remove stock from a location as lost, damaged or expired.

        On-hand quantity drops by `quantity`; available quantity drops by as
        much of it as is available. When the product has a positive unit
        cost, the loss (unit_cost x quantity) is posted to the general ledger.
        That posting runs in its own savepoint: if it fails with a database
        error the failure is logged and the write-off still commits.

        Args:
            product_id: ID of the product to write off
            location_id: ID of the storage location
            quantity: Number of units to remove (> 0)
            reason: Why the stock is written off (required)
            batch_number: Optional batch/lot number
            performed_by: User who performed the write-off
            entry_writer: Object with record_write_off(amount, description);
                defaults to FinancialEntryWriter

        Returns:
            Dict with the movement id, the location's new stock snapshot and
            the id of the financial entry (None when none was posted)

        Raises:
            InvalidInput: If quantity is not positive or reason is blank
            NotFound: If the product or location does not exist
            InsufficientStock: If the record is missing or holds too little
            TransactionConflict: If a concurrent change prevented the commit
        """
        validate_quantity(quantity)
        if not reason or not reason.strip():
            raise InvalidInput('A reason is required for write-offs')
        location_id = to_id(location_id, 'location_id')
        batch_number = normalize_batch(batch_number)
        entry_writer = entry_writer or FinancialEntryWriter

        with atomic_operation('write-off'):
            product = StockLedgerService._get_product(product_id)
            location = StockLedgerService._lock_locations([location_id])[location_id]
            now = timezone.now()

            record = StockLedgerService._lock_record(product.pk, location.pk, batch_number)
            on_hand = record.quantity if record else 0
            if on_hand < quantity:
                logger.warning(
                    f"Write-off rejected: {product.sku} at {location.code} has "
                    f"{on_hand} on hand, {quantity} requested"
                )
                raise InsufficientStock(
                    f'Insufficient stock to write off. On hand: {on_hand}, Requested: {quantity}'
                )

            record.quantity -= quantity
            record.available_qty -= min(quantity, record.available_qty)
            record.last_movement_at = now
            record.save(update_fields=['quantity', 'available_qty', 'last_movement_at', 'updated_at'])

            movement = StockMovement.objects.create(
                product=product,
                from_location=location,
                quantity=quantity,
                movement_type=StockMovement.MovementType.WRITE_OFF,
                batch_number=batch_number,
                reason=reason,
                created_by=performed_by,
                created_at=now,
            )

            fin_transaction = None
            if product.unit_cost > Decimal('0'):
                amount = product.unit_cost * quantity
                description = f'Write-off: {product.name} x{quantity}. {reason}'
                try:
                    with transaction.atomic():
                        fin_transaction = entry_writer.record_write_off(amount, description)
                except DatabaseError as e:
                    logger.error(f"Failed to post write-off entry for movement {movement.pk}: {e}")

            StockLedgerService.refresh_location_status(location)

        logger.info(
            f"Wrote off {quantity} x {product.sku} at {location.code} by {performed_by}: {reason}"
        )

        return {
            'success': True,
            'movement_id': movement.pk,
            'movement_type': movement.movement_type,
            'product_id': product.pk,
            'quantity': quantity,
            'batch_number': batch_number,
            'from_location': StockLedgerService._location_snapshot(location, record),
            'financial_entry_id': getattr(fin_transaction, 'pk', None),
            'message': f'Wrote off {quantity} x {product.name} at {location.code}'
        }

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @staticmethod
    def location_contents(location_id) -> Dict:
        """
        Get everything stored at a location.

        Returns:
            Dict with location info, total quantity and the non-empty stock records
        """
        location = StorageLocation.objects.select_related('warehouse').filter(pk=location_id).first()
        if location is None:
            raise NotFound(f'Storage location {location_id} not found')

        records = StockRecord.objects.filter(
            storage_location=location, quantity__gt=0
        ).select_related('product').order_by('product__name', 'batch_number')

        items = [
            {
                'stock_record_id': record.pk,
                'product_id': record.product_id,
                'sku': record.product.sku,
                'name': record.product.name,
                'batch_number': record.batch_number,
                'quantity': record.quantity,
                'available_qty': record.available_qty,
                'last_movement_at': record.last_movement_at,
            }
            for record in records
        ]

        return {
            'location_id': location.pk,
            'location_code': location.code,
            'warehouse_id': location.warehouse_id,
            'warehouse_code': location.warehouse.code,
            'status': location.status,
            'total_quantity': sum(item['quantity'] for item in items),
            'items': items,
        }

    @staticmethod
    def product_stock(product_id) -> Dict:
        """Get per-location stock of a product with totals."""
        product = StockLedgerService._get_product(product_id)

        records = StockRecord.objects.filter(
            product=product
        ).select_related('storage_location__warehouse').order_by(
            'storage_location__warehouse__code', 'storage_location__code', 'batch_number'
        )

        locations = [
            {
                'stock_record_id': record.pk,
                'location_id': record.storage_location_id,
                'location_code': record.storage_location.code,
                'warehouse_code': record.storage_location.warehouse.code,
                'batch_number': record.batch_number,
                'quantity': record.quantity,
                'available_qty': record.available_qty,
            }
            for record in records
        ]

        return {
            'product_id': product.pk,
            'sku': product.sku,
            'name': product.name,
            'total_quantity': sum(item['quantity'] for item in locations),
            'total_available': sum(item['available_qty'] for item in locations),
            'locations': locations,
        }
