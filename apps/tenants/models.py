"""
Tenant models for multi-store isolation.

A Store is an isolated storefront. Catalog, carts, orders, roles, settings
and audit rows all carry a ``store`` foreign key.
"""
from decimal import Decimal
from django.conf import settings
from django.core.validators import MinValueValidator, MaxValueValidator
from django.db import models
from apps.core.models import BaseModel, BaseModelManager
from apps.core.fields import EncryptedCharField


def default_tax_rate():
    return Decimal(getattr(settings, 'DEFAULT_STORE_TAX_RATE', '0.10'))


class StoreManager(BaseModelManager):
    """Manager for store lookups."""

    def active(self):
        """Return only active stores."""
        return self.filter(status='active')

    def by_identifier(self, identifier):
        """Find a store by UUID or slug (the X-Store-ID header accepts both)."""
        if not identifier:
            return None
        import uuid
        try:
            return self.filter(id=uuid.UUID(str(identifier))).first()
        except ValueError:
            return self.filter(slug=identifier).first()


class Store(BaseModel):
    """
    Store model representing an isolated storefront.

    Each store has its own catalog, customers (memberships), roles,
    orders, theme and SMTP relay.
    """

    STATUS_CHOICES = [
        ('active', 'Active'),
        ('suspended', 'Suspended'),
        ('closed', 'Closed'),
    ]

    name = models.CharField(
        max_length=255,
        help_text="Store display name"
    )
    slug = models.SlugField(
        max_length=100,
        unique=True,
        db_index=True,
        help_text="URL-friendly identifier, accepted in X-Store-ID"
    )
    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default='active',
        db_index=True,
    )
    contact_email = models.EmailField(
        blank=True,
        help_text="Store owner contact address"
    )
    currency = models.CharField(
        max_length=3,
        default='USD',
        help_text="ISO 4217 currency code"
    )
    tax_rate = models.DecimalField(
        max_digits=5,
        decimal_places=4,
        default=default_tax_rate,
        validators=[MinValueValidator(Decimal('0')), MaxValueValidator(Decimal('1'))],
        help_text="Tax applied at checkout, as a fraction (0.10 = 10%)"
    )

    objects = StoreManager()

    class Meta:
        db_table = 'stores'
        ordering = ['name']
        indexes = [
            models.Index(fields=['status', 'created_at']),
        ]

    def __str__(self):
        return f"{self.name} ({self.slug})"

    def is_active(self):
        return self.status == 'active'


class SiteSettings(BaseModel):
    """
    Branding, theme, footer and SMTP configuration for one store.

    Created lazily by SiteSettingsService.get_settings().
    """

    store = models.OneToOneField(
        Store,
        on_delete=models.CASCADE,
        related_name='site_settings',
    )

    # Branding
    site_name = models.CharField(max_length=255, default='Storefront')
    header_logo = models.URLField(max_length=500, blank=True)
    footer_logo = models.URLField(max_length=500, blank=True)
    login_title = models.CharField(max_length=255, blank=True)
    login_logo = models.URLField(max_length=500, blank=True)

    # Theme
    theme = models.CharField(max_length=50, default='default')
    primary_color = models.CharField(max_length=20, default='#2563eb')
    secondary_color = models.CharField(max_length=20, default='#64748b')
    accent_color = models.CharField(max_length=20, default='#0ea5e9')
    background_color = models.CharField(max_length=20, default='#ffffff')
    text_color = models.CharField(max_length=20, default='#1e293b')
    header_text_color = models.CharField(max_length=20, default='#ffffff')
    tab_text_color = models.CharField(max_length=20, default='#1e293b')

    # Footer
    footer_description = models.TextField(blank=True)
    footer_background_url = models.URLField(max_length=500, blank=True)
    contact_email = models.EmailField(blank=True)
    contact_phone = models.CharField(max_length=50, blank=True)
    contact_address = models.TextField(blank=True)
    support_email = models.EmailField(blank=True)
    business_hours = models.CharField(max_length=255, blank=True)
    copyright_text = models.CharField(max_length=255, blank=True)
    additional_footer_text = models.TextField(blank=True)
    quick_links = models.JSONField(default=list, blank=True)
    services_links = models.JSONField(default=list, blank=True)

    # Social
    social_facebook = models.URLField(max_length=500, blank=True)
    social_twitter = models.URLField(max_length=500, blank=True)
    social_instagram = models.URLField(max_length=500, blank=True)
    social_linkedin = models.URLField(max_length=500, blank=True)

    # SMTP relay
    smtp_enabled = models.BooleanField(default=False)
    smtp_host = models.CharField(max_length=255, blank=True)
    smtp_port = models.PositiveIntegerField(default=587)
    smtp_secure = models.BooleanField(
        default=False,
        help_text="Use implicit SSL on port 465; STARTTLS is used otherwise"
    )
    smtp_user = models.CharField(max_length=255, blank=True)
    smtp_password = EncryptedCharField(
        max_length=500,
        null=True,
        blank=True,
        help_text="Encrypted SMTP password (never returned by the API)"
    )
    smtp_from_name = models.CharField(max_length=255, blank=True)
    smtp_from_email = models.EmailField(blank=True)

    class Meta:
        db_table = 'site_settings'
        verbose_name_plural = 'site settings'

    def __str__(self):
        return f"Settings for {self.store.name}"

    @property
    def smtp_password_set(self):
        return bool(self.smtp_password)


class SliderImageManager(BaseModelManager):

    def for_store(self, store):
        return self.filter(store=store)

    def active(self, store):
        return self.filter(store=store, is_active=True).order_by('sort_order', 'created_at')


class SliderImage(BaseModel):
    """Homepage carousel image."""

    store = models.ForeignKey(
        Store,
        on_delete=models.CASCADE,
        related_name='slider_images',
        db_index=True,
    )
    image_url = models.CharField(max_length=500)
    title = models.CharField(max_length=255, blank=True)
    description = models.TextField(blank=True)
    is_active = models.BooleanField(default=True, db_index=True)
    sort_order = models.IntegerField(default=0)

    objects = SliderImageManager()

    class Meta:
        db_table = 'slider_images'
        ordering = ['sort_order', 'created_at']
        indexes = [
            models.Index(fields=['store', 'is_active', 'sort_order']),
        ]

    def __str__(self):
        return self.title or self.image_url
