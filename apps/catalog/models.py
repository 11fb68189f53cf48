"""
Catalog models for products, categories and units of measure.

Every row is scoped to a store. Products are either sold or rented; rental
products carry a per-period rental price.
"""
from decimal import Decimal
from django.core.validators import MinValueValidator, MaxValueValidator
from django.db import models
from apps.core.models import BaseModel, BaseModelManager, StoreScopedQuerySet


class CategoryManager(BaseModelManager.from_queryset(StoreScopedQuerySet)):
    """Manager for category queries with store scoping."""

    def by_name(self, store, name):
        return self.filter(store=store, name__iexact=name).first()


class Category(BaseModel):
    """Product category."""

    store = models.ForeignKey(
        'tenants.Store',
        on_delete=models.CASCADE,
        related_name='categories',
        db_index=True,
    )
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    image_url = models.CharField(max_length=500, blank=True)

    objects = CategoryManager()

    class Meta:
        db_table = 'categories'
        ordering = ['name']
        verbose_name_plural = 'categories'
        indexes = [
            models.Index(fields=['store', 'name']),
        ]

    def __str__(self):
        return self.name


class UnitOfMeasureQuerySet(StoreScopedQuerySet):

    def active(self):
        return self.filter(is_active=True)


class UnitOfMeasure(BaseModel):
    """Unit a product quantity is counted in (piece, kg, box...)."""

    store = models.ForeignKey(
        'tenants.Store',
        on_delete=models.CASCADE,
        related_name='units_of_measure',
        db_index=True,
    )
    name = models.CharField(max_length=100)
    abbreviation = models.CharField(max_length=20)
    is_active = models.BooleanField(default=True, db_index=True)

    objects = BaseModelManager.from_queryset(UnitOfMeasureQuerySet)()

    class Meta:
        db_table = 'units_of_measure'
        ordering = ['name']
        unique_together = [('store', 'abbreviation')]

    def __str__(self):
        return f"{self.name} ({self.abbreviation})"


class ProductQuerySet(StoreScopedQuerySet):
    """Custom QuerySet for Product with chainable methods."""

    def active(self):
        """Get only active products."""
        return self.filter(is_active=True)

    def featured(self):
        return self.filter(is_featured=True)

    def in_category(self, category):
        return self.filter(category=category)

    def search(self, query):
        """Search products by name, description or SKU."""
        return self.filter(
            models.Q(name__icontains=query)
            | models.Q(description__icontains=query)
            | models.Q(sku__icontains=query)
        )


class ProductManager(BaseModelManager.from_queryset(ProductQuerySet)):
    """Manager for product queries with store scoping."""

    def by_sku(self, store, sku):
        if not sku:
            return None
        return self.filter(store=store, sku=sku).first()


class Product(BaseModel):
    """
    Product sold or rented by a store.

    Rental products are priced per ``rental_period`` with ``rental_price``;
    cart lines multiply that price by the number of rental days.
    """

    PRODUCT_TYPE_CHOICES = [
        ('sale', 'Sale'),
        ('rental', 'Rental'),
    ]

    RENTAL_PERIOD_CHOICES = [
        ('day', 'Per day'),
        ('week', 'Per week'),
        ('month', 'Per month'),
    ]

    store = models.ForeignKey(
        'tenants.Store',
        on_delete=models.CASCADE,
        related_name='products',
        db_index=True,
        help_text="Store this product belongs to"
    )
    category = models.ForeignKey(
        Category,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='products',
    )

    # Basic Information
    name = models.CharField(max_length=500, db_index=True)
    description = models.TextField(blank=True)
    image_url = models.CharField(max_length=500, blank=True)
    sku = models.CharField(max_length=255, blank=True, db_index=True, help_text="Stock Keeping Unit")

    # Pricing
    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0'))],
        help_text="Sale price"
    )
    product_type = models.CharField(max_length=10, choices=PRODUCT_TYPE_CHOICES, default='sale')
    rental_period = models.CharField(max_length=10, choices=RENTAL_PERIOD_CHOICES, blank=True)
    rental_price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal('0'))],
    )

    # Inventory
    stock = models.PositiveIntegerField(default=0, help_text="Available stock quantity")
    unit_of_measure = models.CharField(max_length=20, default='piece')

    # Status
    is_active = models.BooleanField(default=True, db_index=True, help_text="Visible in the storefront")
    is_featured = models.BooleanField(default=False, db_index=True)

    # Reviews
    rating = models.DecimalField(
        max_digits=2,
        decimal_places=1,
        default=Decimal('0'),
        validators=[MinValueValidator(Decimal('0')), MaxValueValidator(Decimal('5'))],
    )
    review_count = models.PositiveIntegerField(default=0)

    objects = ProductManager()

    class Meta:
        db_table = 'products'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['store', 'is_active']),
            models.Index(fields=['store', 'is_featured']),
            models.Index(fields=['store', 'name']),
            models.Index(fields=['store', 'created_at']),
        ]

    def __str__(self):
        return self.name

    @property
    def is_rental(self):
        return self.product_type == 'rental'

    @property
    def is_in_stock(self):
        return self.stock > 0

    def has_stock(self, quantity=1):
        """Check if product has sufficient stock."""
        return self.stock >= quantity

    def reduce_stock(self, quantity):
        """Reduce stock by the quantity, never below zero."""
        self.stock = max(0, self.stock - quantity)
        self.save(update_fields=['stock', 'updated_at'])

    def increase_stock(self, quantity):
        self.stock += quantity
        self.save(update_fields=['stock', 'updated_at'])
