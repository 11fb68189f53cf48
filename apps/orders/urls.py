"""
URL configuration for cart, wishlist and orders.
"""
from django.urls import path
from apps.orders.views import (
    CartView, CartItemView, WishlistView, WishlistItemView,
    OrderListView, OrderDetailView, OrderStatusView, OrderPaymentView,
    ApprovalRequestListView, ApproveOrderView, RejectOrderView, CompleteOrderView,
)

app_name = 'orders'

urlpatterns = [
    # Cart
    path('cart', CartView.as_view(), name='cart'),
    path('cart/<uuid:product_id>', CartItemView.as_view(), name='cart-item'),

    # Wishlist
    path('wishlist', WishlistView.as_view(), name='wishlist'),
    path('wishlist/<uuid:product_id>', WishlistItemView.as_view(), name='wishlist-item'),

    # Orders
    path('orders', OrderListView.as_view(), name='order-list'),
    path('orders/<uuid:order_id>', OrderDetailView.as_view(), name='order-detail'),
    path('orders/<uuid:order_id>/status', OrderStatusView.as_view(), name='order-status'),
    path('orders/<uuid:order_id>/payment', OrderPaymentView.as_view(), name='order-payment'),

    # Admin approval workflow
    path('admin/approval-requests', ApprovalRequestListView.as_view(), name='approval-requests'),
    path('admin/orders/<uuid:order_id>/approve', ApproveOrderView.as_view(), name='order-approve'),
    path('admin/orders/<uuid:order_id>/reject', RejectOrderView.as_view(), name='order-reject'),
    path('admin/orders/<uuid:order_id>/complete', CompleteOrderView.as_view(), name='order-complete'),
]
