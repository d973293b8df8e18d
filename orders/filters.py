"""django-filter sets for the back-office order list."""

from datetime import datetime, time, timedelta

import django_filters
from common.choices import OrderStatus, PaymentStatus
from django.db.models import Q
from django.utils import timezone

from .models import Order


class AdminOrderFilter(django_filters.FilterSet):
    """Filters: `status`, `payment_status`, `date` (YYYY-MM-DD, local day) and `search`.

    `search` matches the order number or the customer's username, name or
    email, case-insensitively.
    """

    status = django_filters.ChoiceFilter(choices=OrderStatus.choices)
    payment_status = django_filters.ChoiceFilter(choices=PaymentStatus.choices)
    date = django_filters.DateFilter(method="filter_date")
    search = django_filters.CharFilter(method="filter_search")

    class Meta:
        model = Order
        fields = ["status", "payment_status"]

    def filter_date(self, queryset, name, value):
        start = timezone.make_aware(datetime.combine(value, time.min))
        return queryset.filter(created_at__gte=start, created_at__lt=start + timedelta(days=1))

    def filter_search(self, queryset, name, value):
        value = value.strip()
        if not value:
            return queryset
        return queryset.filter(
            Q(number__icontains=value)
            | Q(user__username__icontains=value)
            | Q(user__first_name__icontains=value)
            | Q(user__last_name__icontains=value)
            | Q(user__email__icontains=value)
        )
