from django.db.models import Q
from django_filters import rest_framework as filters

from .models import StockMovement
from utils.exceptions import InvalidInput


class StockMovementFilter(filters.FilterSet):
    """
    Movement log filtering.

    Available filters:
    - product: product id
    - movement_type: INBOUND, TRANSFER or WRITE_OFF
    - warehouse: warehouse id of either the source or destination location
    - date_from, date_to: inclusive created_at range
    """

    product = filters.NumberFilter(
        field_name="product_id",
        help_text="Product ID"
    )
    movement_type = filters.ChoiceFilter(
        choices=StockMovement.MovementType.choices,
        help_text="Movement type"
    )
    warehouse = filters.NumberFilter(
        method='filter_warehouse',
        help_text="Warehouse of the source or destination location"
    )
    date_from = filters.DateTimeFilter(
        field_name="created_at",
        lookup_expr='gte',
        help_text="Movements created at or after this time"
    )
    date_to = filters.DateTimeFilter(
        field_name="created_at",
        lookup_expr='lte',
        help_text="Movements created at or before this time"
    )

    class Meta:
        model = StockMovement
        fields = ['product', 'movement_type', 'warehouse', 'date_from', 'date_to']

    def filter_warehouse(self, queryset, name, value):
        return queryset.filter(
            Q(from_location__warehouse_id=value) | Q(to_location__warehouse_id=value)
        )

    def filter_queryset(self, queryset):
        date_from = self.form.cleaned_data.get('date_from')
        date_to = self.form.cleaned_data.get('date_to')
        if date_from and date_to and date_from > date_to:
            raise InvalidInput('date_from must not be later than date_to')
        return super().filter_queryset(queryset)
