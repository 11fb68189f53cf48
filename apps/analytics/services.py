"""
Dashboard statistics for store admins.
"""
from decimal import Decimal
from django.db.models import Sum, Count

from apps.catalog.models import Product
from apps.orders.models import Order
from apps.rbac.models import StoreMembership


class StatsService:
    """Aggregate store numbers for the admin dashboard."""

    @staticmethod
    def get_stats(store) -> dict:
        """
        Headline numbers for one store.

        Revenue ignores cancelled orders; every other order counts towards
        ``orders``. Soft-deleted products are excluded.

        Returns:
            dict: revenue (Decimal, 2 dp), orders, products, total_stock,
                users, pending_approvals
        """
        orders = Order.objects.for_store(store)
        revenue = orders.revenue_bearing().aggregate(total=Sum('total'))['total'] or Decimal('0')
        product_totals = Product.objects.for_store(store).aggregate(
            count=Count('id'),
            stock=Sum('stock'),
        )

        return {
            'revenue': revenue.quantize(Decimal('0.01')),
            'orders': orders.count(),
            'products': product_totals['count'],
            'total_stock': product_totals['stock'] or 0,
            'users': StoreMembership.objects.for_store(store).count(),
            'pending_approvals': orders.pending_approval().count(),
        }
