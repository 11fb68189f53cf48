"""
Cart, wishlist and order models.

Implements:
- Per-user, store-scoped cart lines (sale and rental)
- Wishlists
- Orders with an admin approval step before payment
- Order items that snapshot product name and price
"""
from decimal import Decimal
from django.core.validators import MinValueValidator
from django.db import models
from apps.core.models import BaseModel, BaseModelManager, StoreScopedQuerySet


class CartItemQuerySet(StoreScopedQuerySet):

    def for_user(self, store, user):
        return self.filter(store=store, user=user)


class CartItem(BaseModel):
    """
    One line in a user's cart.

    Sale products have at most one line per product; rental products get a
    line per rental period. ``unit_price`` already includes the rental days.
    """

    store = models.ForeignKey(
        'tenants.Store',
        on_delete=models.CASCADE,
        related_name='cart_items',
        db_index=True,
    )
    user = models.ForeignKey(
        'rbac.User',
        on_delete=models.CASCADE,
        related_name='cart_items',
    )
    product = models.ForeignKey(
        'catalog.Product',
        on_delete=models.CASCADE,
        related_name='cart_items',
    )
    quantity = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])

    # Rental period (inclusive), rental lines only
    rental_start_date = models.DateField(null=True, blank=True)
    rental_end_date = models.DateField(null=True, blank=True)

    unit_price = models.DecimalField(max_digits=10, decimal_places=2)
    total_price = models.DecimalField(max_digits=12, decimal_places=2)

    objects = BaseModelManager.from_queryset(CartItemQuerySet)()

    class Meta:
        db_table = 'cart_items'
        ordering = ['created_at']
        indexes = [
            models.Index(fields=['store', 'user']),
        ]

    def __str__(self):
        return f"{self.quantity} x {self.product.name}"

    @property
    def is_rental(self):
        return self.rental_start_date is not None and self.rental_end_date is not None

    @property
    def rental_days(self):
        if not self.is_rental:
            return None
        return (self.rental_end_date - self.rental_start_date).days + 1

    def recalculate(self):
        self.total_price = (self.unit_price * self.quantity).quantize(Decimal('0.01'))


class WishlistItem(models.Model):
    """Product saved for later by a user."""

    store = models.ForeignKey(
        'tenants.Store',
        on_delete=models.CASCADE,
        related_name='wishlist_items',
    )
    user = models.ForeignKey(
        'rbac.User',
        on_delete=models.CASCADE,
        related_name='wishlist_items',
    )
    product = models.ForeignKey(
        'catalog.Product',
        on_delete=models.CASCADE,
        related_name='wishlist_items',
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'wishlist_items'
        ordering = ['-created_at']
        unique_together = [('store', 'user', 'product')]

    def __str__(self):
        return f"{self.user.email} - {self.product.name}"


class OrderQuerySet(StoreScopedQuerySet):
    """Order queries with store scoping."""

    def for_user(self, store, user):
        return self.filter(store=store, user=user)

    def pending_approval(self):
        return self.filter(
            admin_approval_status='pending',
            status__in=('pending', 'awaiting_approval'),
        )

    def revenue_bearing(self):
        """Orders that count towards revenue."""
        return self.exclude(status='cancelled')


class Order(BaseModel):
    """
    Customer order.

    Lifecycle:
        awaiting_approval -> payment_pending (approved) -> confirmed (paid)
        -> processing -> shipped -> delivered
        awaiting_approval -> cancelled (rejected)
    """

    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('awaiting_approval', 'Awaiting Approval'),
        ('payment_pending', 'Payment Pending'),
        ('confirmed', 'Confirmed'),
        ('processing', 'Processing'),
        ('shipped', 'Shipped'),
        ('delivered', 'Delivered'),
        ('cancelled', 'Cancelled'),
    ]

    PAYMENT_STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('completed', 'Completed'),
        ('failed', 'Failed'),
        ('refunded', 'Refunded'),
    ]

    APPROVAL_STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('approved', 'Approved'),
        ('rejected', 'Rejected'),
    ]

    # Statuses before any payment was taken; cancelling from these returns stock
    PRE_PAYMENT_STATUSES = ('pending', 'awaiting_approval', 'payment_pending')

    store = models.ForeignKey(
        'tenants.Store',
        on_delete=models.CASCADE,
        related_name='orders',
        db_index=True,
        help_text="Store this order belongs to"
    )
    user = models.ForeignKey(
        'rbac.User',
        on_delete=models.PROTECT,
        related_name='orders',
        db_index=True,
        help_text="Customer who placed the order"
    )

    # Pricing
    subtotal = models.DecimalField(max_digits=12, decimal_places=2)
    tax = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'))
    shipping = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'))
    total = models.DecimalField(max_digits=12, decimal_places=2)

    # Status
    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default='awaiting_approval',
        db_index=True,
    )

    # Payment
    payment_method = models.CharField(max_length=50, blank=True)
    payment_status = models.CharField(
        max_length=20,
        choices=PAYMENT_STATUS_CHOICES,
        default='pending',
        db_index=True,
    )
    payment_reference = models.CharField(max_length=255, blank=True, db_index=True)

    # Addresses and notes
    shipping_address = models.JSONField(default=dict, blank=True)
    billing_address = models.JSONField(default=dict, blank=True)
    order_notes = models.TextField(blank=True)

    # Admin approval
    admin_approval_status = models.CharField(
        max_length=20,
        choices=APPROVAL_STATUS_CHOICES,
        default='pending',
        db_index=True,
    )
    admin_approved_by = models.ForeignKey(
        'rbac.User',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='approved_orders',
    )
    admin_approved_at = models.DateTimeField(null=True, blank=True)
    admin_remarks = models.TextField(blank=True)

    # Timestamps
    paid_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    objects = BaseModelManager.from_queryset(OrderQuerySet)()

    class Meta:
        db_table = 'orders'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['store', 'status', 'created_at']),
            models.Index(fields=['store', 'user', 'created_at']),
            models.Index(fields=['store', 'admin_approval_status']),
        ]

    def __str__(self):
        return f"Order #{self.order_number} - {self.total}"

    @property
    def order_number(self):
        """Short customer-facing reference."""
        return str(self.id)[:8].upper()

    @property
    def item_count(self):
        return sum(item.quantity for item in self.items.all())

    @property
    def is_paid(self):
        return self.payment_status == 'completed'


class OrderItem(BaseModel):
    """Order line with the product name and price captured at checkout."""

    order = models.ForeignKey(
        Order,
        on_delete=models.CASCADE,
        related_name='items',
    )
    product = models.ForeignKey(
        'catalog.Product',
        on_delete=models.SET_NULL,
        null=True,
        related_name='order_items',
    )
    product_name = models.CharField(max_length=500)
    quantity = models.PositiveIntegerField()
    price = models.DecimalField(max_digits=10, decimal_places=2, help_text="Unit price at checkout")
    rental_start_date = models.DateField(null=True, blank=True)
    rental_end_date = models.DateField(null=True, blank=True)

    class Meta:
        db_table = 'order_items'
        ordering = ['created_at']

    def __str__(self):
        return f"{self.quantity} x {self.product_name}"

    @property
    def line_total(self):
        return (self.price * self.quantity).quantize(Decimal('0.01'))
