import django_filters

from marketplace.orders.models import Order


class OrderFilter(django_filters.FilterSet):
    status = django_filters.CharFilter(field_name="status", lookup_expr="iexact")
    payment_status = django_filters.CharFilter(field_name="payment_status", lookup_expr="iexact")
    customer = django_filters.UUIDFilter(field_name="customer_id")
    seller = django_filters.UUIDFilter(field_name="seller_id")
    checkout = django_filters.UUIDFilter(field_name="checkout_id")
    start_date = django_filters.DateFilter(field_name="created_at", lookup_expr="date__gte")
    end_date = django_filters.DateFilter(field_name="created_at", lookup_expr="date__lte")
    min_total = django_filters.NumberFilter(field_name="total", lookup_expr="gte")
    max_total = django_filters.NumberFilter(field_name="total", lookup_expr="lte")

    class Meta:
        model = Order
        fields = [
            "status",
            "payment_status",
            "customer",
            "seller",
            "checkout",
            "start_date",
            "end_date",
            "min_total",
            "max_total",
        ]
