"""
Movement Log Service

Read-only query surface over the append-only StockMovement table.
Results are newest first.
"""

from datetime import datetime
from typing import Dict, List, Optional

from django.db.models import Count, Q, QuerySet, Sum
from django.utils import timezone

from fulfillment.conf import ledger_setting
from fulfillment.models import StockMovement
from utils.exceptions import InvalidInput

PRODUCT_HISTORY_LIMIT = 50
LOCATION_HISTORY_LIMIT = 50


class MovementLogService:
    """Queries for stock movement history and statistics."""

    @staticmethod
    def base_queryset() -> QuerySet:
        return StockMovement.objects.select_related(
            'product',
            'from_location__warehouse',
            'to_location__warehouse',
        ).order_by('-created_at', '-id')

    @staticmethod
    def validate_limit(limit) -> int:
        max_limit = ledger_setting('MOVEMENT_LOG_MAX_LIMIT')
        if isinstance(limit, bool) or not isinstance(limit, int) or not 1 <= limit <= max_limit:
            raise InvalidInput(f'limit must be an integer between 1 and {max_limit}')
        return limit

    @staticmethod
    def validate_date_range(date_from: Optional[datetime], date_to: Optional[datetime]):
        if date_from and date_to and date_from > date_to:
            raise InvalidInput('date_from must not be later than date_to')

    @staticmethod
    def filter_queryset(queryset: QuerySet, product_id=None, movement_type: Optional[str] = None,
                        warehouse_id=None, date_from: Optional[datetime] = None,
                        date_to: Optional[datetime] = None) -> QuerySet:
        """Apply the audit filters shared by search() and the list endpoint."""
        if movement_type and movement_type not in StockMovement.MovementType.values:
            raise InvalidInput(
                f"Unknown movement type '{movement_type}'. "
                f"Expected one of: {', '.join(StockMovement.MovementType.values)}"
            )
        MovementLogService.validate_date_range(date_from, date_to)

        if product_id:
            queryset = queryset.filter(product_id=product_id)
        if movement_type:
            queryset = queryset.filter(movement_type=movement_type)
        if warehouse_id:
            queryset = queryset.filter(
                Q(from_location__warehouse_id=warehouse_id) | Q(to_location__warehouse_id=warehouse_id)
            )
        if date_from:
            queryset = queryset.filter(created_at__gte=date_from)
        if date_to:
            queryset = queryset.filter(created_at__lte=date_to)
        return queryset

    @staticmethod
    def for_product(product_id, limit: int = PRODUCT_HISTORY_LIMIT) -> List[StockMovement]:
        """Movement history of one product."""
        limit = MovementLogService.validate_limit(limit)
        return list(MovementLogService.base_queryset().filter(product_id=product_id)[:limit])

    @staticmethod
    def for_location(location_id, limit: int = LOCATION_HISTORY_LIMIT) -> List[StockMovement]:
        """Movements into or out of one storage location."""
        limit = MovementLogService.validate_limit(limit)
        return list(
            MovementLogService.base_queryset().filter(
                Q(from_location_id=location_id) | Q(to_location_id=location_id)
            )[:limit]
        )

    @staticmethod
    def search(product_id=None, movement_type: Optional[str] = None, warehouse_id=None,
               date_from: Optional[datetime] = None, date_to: Optional[datetime] = None,
               limit: Optional[int] = None) -> List[StockMovement]:
        """
        Search the movement log.

        Args:
            product_id: Only movements of this product
            movement_type: INBOUND, TRANSFER or WRITE_OFF
            warehouse_id: Movements with either endpoint in this warehouse
            date_from: Inclusive lower bound on created_at
            date_to: Inclusive upper bound on created_at
            limit: Maximum rows (defaults to MOVEMENT_LOG_DEFAULT_LIMIT)

        Returns:
            List of StockMovement, newest first

        Raises:
            InvalidInput: On a bad limit, unknown movement type or reversed date range
        """
        if limit is None:
            limit = ledger_setting('MOVEMENT_LOG_DEFAULT_LIMIT')
        limit = MovementLogService.validate_limit(limit)

        queryset = MovementLogService.filter_queryset(
            MovementLogService.base_queryset(),
            product_id=product_id,
            movement_type=movement_type,
            warehouse_id=warehouse_id,
            date_from=date_from,
            date_to=date_to,
        )
        return list(queryset[:limit])

    @staticmethod
    def stats(date_from: Optional[datetime] = None, date_to: Optional[datetime] = None) -> Dict:
        """
        Count and quantity totals per movement type, plus today's movement count.

        Returns:
            {
                'by_type': [{'movement_type': 'INBOUND', 'count': 3, 'total_quantity': 40}, ...],
                'today_count': 2
            }
        """
        MovementLogService.validate_date_range(date_from, date_to)

        queryset = StockMovement.objects.all()
        if date_from:
            queryset = queryset.filter(created_at__gte=date_from)
        if date_to:
            queryset = queryset.filter(created_at__lte=date_to)

        by_type = [
            {
                'movement_type': row['movement_type'],
                'count': row['count'],
                'total_quantity': row['total_quantity'] or 0,
            }
            for row in queryset.values('movement_type').annotate(
                count=Count('id'),
                total_quantity=Sum('quantity'),
            ).order_by('movement_type')
        ]

        midnight = timezone.localtime().replace(hour=0, minute=0, second=0, microsecond=0)
        today_count = StockMovement.objects.filter(created_at__gte=midnight).count()

        return {
            'by_type': by_type,
            'today_count': today_count,
        }
