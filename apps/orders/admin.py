"""
Django admin configuration for orders app.
"""
from django.contrib import admin
from .models import CartItem, WishlistItem, Order, OrderItem


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = ['product', 'product_name', 'quantity', 'price', 'rental_start_date', 'rental_end_date']


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ['id', 'store', 'user', 'total', 'status', 'admin_approval_status', 'payment_status', 'created_at']
    list_filter = ['store', 'status', 'admin_approval_status', 'payment_status']
    search_fields = ['user__email', 'payment_reference']
    inlines = [OrderItemInline]


admin.site.register(CartItem)
admin.site.register(WishlistItem)
