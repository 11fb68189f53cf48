"""
Payment gateway transactions.

One row per payment attempt with Stripe, Benefit Pay, Credimax or cash on
delivery, kept for verification, webhooks and expiry.
"""
from django.db import models
from django.utils import timezone
from apps.core.models import BaseModel, BaseModelManager, StoreScopedQuerySet


class PaymentTransactionQuerySet(StoreScopedQuerySet):
    """Transaction queries with store scoping."""

    def by_provider(self, provider):
        return self.filter(provider=provider)

    def pending(self):
        return self.filter(status='pending')

    def expired_pending(self, now=None):
        """Pending transactions whose payment session has run out."""
        now = now or timezone.now()
        return self.filter(status='pending', expires_at__isnull=False, expires_at__lt=now)


class PaymentTransaction(BaseModel):
    """
    Payment attempt with an external gateway.

    ``raw_payload`` keeps the last webhook body received for the transaction.
    """

    PROVIDER_STRIPE = 'stripe'
    PROVIDER_BENEFIT_PAY = 'benefit_pay'
    PROVIDER_CREDIMAX = 'credimax'
    PROVIDER_COD = 'cash_on_delivery'

    PROVIDER_CHOICES = [
        (PROVIDER_STRIPE, 'Stripe'),
        (PROVIDER_BENEFIT_PAY, 'Benefit Pay'),
        (PROVIDER_CREDIMAX, 'Credimax'),
        (PROVIDER_COD, 'Cash on Delivery'),
    ]

    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('completed', 'Completed'),
        ('failed', 'Failed'),
        ('expired', 'Expired'),
    ]

    store = models.ForeignKey(
        'tenants.Store',
        on_delete=models.CASCADE,
        related_name='payment_transactions',
        db_index=True,
    )
    order = models.ForeignKey(
        'orders.Order',
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='payment_transactions',
    )
    provider = models.CharField(max_length=30, choices=PROVIDER_CHOICES, db_index=True)
    transaction_id = models.CharField(max_length=100, unique=True)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    currency = models.CharField(max_length=3)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending', db_index=True)
    payment_url = models.URLField(max_length=500, blank=True)
    expires_at = models.DateTimeField(null=True, blank=True, db_index=True)
    customer_info = models.JSONField(default=dict, blank=True)
    raw_payload = models.JSONField(default=dict, blank=True)

    objects = BaseModelManager.from_queryset(PaymentTransactionQuerySet)()

    class Meta:
        db_table = 'payment_transactions'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['store', 'provider', 'status']),
            models.Index(fields=['status', 'expires_at']),
        ]

    def __str__(self):
        return f"{self.get_provider_display()} {self.transaction_id} ({self.status})"

    @property
    def is_expired(self):
        return self.expires_at is not None and self.expires_at < timezone.now()
