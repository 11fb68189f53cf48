"""
Catalog service for products, categories and units of measure.

Every query is scoped to the request store. Create, update and delete
operations are audit logged.
"""
import logging
from decimal import Decimal, InvalidOperation
from typing import Dict, Any, Optional

from django.db import transaction

from apps.catalog.models import Product, Category, UnitOfMeasure
from apps.core.exceptions import NotFoundError, ValidationError
from apps.rbac.models import AuditLog

logger = logging.getLogger(__name__)

PRODUCT_FIELDS = (
    'name', 'description', 'price', 'stock', 'sku', 'image_url',
    'is_active', 'is_featured', 'rating', 'review_count', 'product_type',
    'rental_period', 'rental_price', 'unit_of_measure',
)
CATEGORY_FIELDS = ('name', 'description', 'image_url')
UNIT_FIELDS = ('name', 'abbreviation', 'is_active')


def _audit_value(value):
    """Make a field value JSON serializable for the audit diff."""
    if isinstance(value, Decimal):
        return str(value)
    if hasattr(value, 'pk'):
        return str(value.pk)
    return value


def _as_bool(value):
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ('1', 'true', 'yes')


class CatalogService:
    """Service for catalog operations with store scoping."""

    # ===== PRODUCTS =====

    @staticmethod
    def list_products(store, search=None, category_id=None, featured=None,
                      active=None, include_inactive=False):
        """
        List store products with optional filters.

        Args:
            store: Store instance
            search: Matches name, description or SKU
            category_id: Category UUID
            featured: Only featured (True) or non-featured (False) products
            active: Filter by is_active; honoured only with include_inactive
            include_inactive: True for callers holding products:manage

        Returns:
            QuerySet of Product
        """
        products = Product.objects.for_store(store).select_related('category')

        if not include_inactive:
            products = products.active()
        elif active is not None:
            products = products.filter(is_active=_as_bool(active))

        if search:
            products = products.search(search)

        if category_id:
            products = products.filter(category_id=category_id)

        if featured is not None:
            products = products.filter(is_featured=_as_bool(featured))

        return products

    @staticmethod
    def featured_products(store):
        return Product.objects.for_store(store).active().featured().select_related('category')

    @staticmethod
    def get_product(store, product_id, include_inactive=True) -> Product:
        products = Product.objects.for_store(store).select_related('category')
        if not include_inactive:
            products = products.active()

        product = products.filter(id=product_id).first()
        if product is None:
            raise NotFoundError('Product not found', details={'product_id': str(product_id)})
        return product

    @classmethod
    def _resolve_category(cls, store, data):
        if 'category_id' not in data and 'category' not in data:
            return False, None

        category_id = data.get('category_id', data.get('category'))
        if isinstance(category_id, Category):
            category_id = category_id.id
        if not category_id:
            return True, None

        category = Category.objects.for_store(store).filter(id=category_id).first()
        if category is None:
            raise ValidationError(
                'Category not found in this store',
                details={'category_id': str(category_id)}
            )
        return True, category

    @staticmethod
    def _validate_product(product: Product):
        try:
            price = Decimal(str(product.price))
        except (InvalidOperation, TypeError):
            raise ValidationError('Price must be a number', details={'price': str(product.price)})

        if price < 0:
            raise ValidationError('Price must be greater than or equal to 0')

        if product.stock is not None and int(product.stock) < 0:
            raise ValidationError('Stock cannot be negative')

        if product.product_type not in dict(Product.PRODUCT_TYPE_CHOICES):
            raise ValidationError(
                'Invalid product type',
                details={'product_type': product.product_type}
            )

        if product.product_type == 'rental':
            if product.rental_price is None:
                raise ValidationError('Rental products require a rental price')
            if Decimal(str(product.rental_price)) < 0:
                raise ValidationError('Rental price must be greater than or equal to 0')
            if not product.rental_period:
                product.rental_period = 'day'

    @classmethod
    @transaction.atomic
    def create_product(cls, store, data: Dict[str, Any], user=None, request=None) -> Product:
        """
        Create a product.

        Raises:
            ValidationError: missing name, negative price, rental without
                rental_price or unknown category
        """
        if not data.get('name'):
            raise ValidationError('Product name is required')
        if data.get('price') is None:
            raise ValidationError('Product price is required')

        product = Product(
            store=store,
            **{field: data[field] for field in PRODUCT_FIELDS if field in data and data[field] is not None}
        )
        has_category, category = cls._resolve_category(store, data)
        if has_category:
            product.category = category

        cls._validate_product(product)
        product.save()

        AuditLog.log_action(
            action='product_created',
            user=user,
            store=store,
            target_type='Product',
            target_id=product.id,
            metadata={
                'name': product.name,
                'price': str(product.price),
                'product_type': product.product_type,
            },
            request=request,
        )

        logger.info(
            "Product created",
            extra={'store_id': str(store.id), 'product_id': str(product.id)}
        )
        return product

    @classmethod
    @transaction.atomic
    def update_product(cls, store, product_id, data: Dict[str, Any], user=None, request=None) -> Product:
        product = cls.get_product(store, product_id)

        diff = {}
        for field in PRODUCT_FIELDS:
            if field not in data:
                continue
            old_value = getattr(product, field)
            if old_value != data[field]:
                diff[field] = {'old': _audit_value(old_value), 'new': _audit_value(data[field])}
                setattr(product, field, data[field])

        has_category, category = cls._resolve_category(store, data)
        if has_category and product.category_id != (category.id if category else None):
            diff['category'] = {
                'old': str(product.category_id) if product.category_id else None,
                'new': str(category.id) if category else None,
            }
            product.category = category

        cls._validate_product(product)

        if diff:
            product.save()
            AuditLog.log_action(
                action='product_updated',
                user=user,
                store=store,
                target_type='Product',
                target_id=product.id,
                diff=diff,
                metadata={'updated_fields': sorted(diff.keys())},
                request=request,
            )
        return product

    @classmethod
    @transaction.atomic
    def delete_product(cls, store, product_id, user=None, request=None):
        """Soft delete a product; order history keeps its snapshot."""
        product = cls.get_product(store, product_id)
        product_info = {'name': product.name, 'price': str(product.price), 'sku': product.sku}

        product.delete()

        AuditLog.log_action(
            action='product_deleted',
            user=user,
            store=store,
            target_type='Product',
            target_id=product.id,
            metadata=product_info,
            request=request,
        )

    @staticmethod
    @transaction.atomic
    def decrement_stock(product: Product, quantity: int) -> Product:
        """Take stock for a checkout. Stock never goes below zero."""
        locked = Product.objects_with_deleted.select_for_update().get(pk=product.pk)
        locked.reduce_stock(quantity)
        product.stock = locked.stock
        return product

    @staticmethod
    @transaction.atomic
    def restore_stock(product: Product, quantity: int) -> Product:
        """Give back stock taken by a cancelled or rejected order."""
        locked = Product.objects_with_deleted.select_for_update().get(pk=product.pk)
        locked.increase_stock(quantity)
        product.stock = locked.stock
        return product

    # ===== CATEGORIES =====

    @staticmethod
    def list_categories(store):
        return Category.objects.for_store(store).order_by('name')

    @staticmethod
    def get_category(store, category_id) -> Category:
        category = Category.objects.for_store(store).filter(id=category_id).first()
        if category is None:
            raise NotFoundError('Category not found', details={'category_id': str(category_id)})
        return category

    @classmethod
    def products_in_category(cls, store, category_id, include_inactive=False):
        category = cls.get_category(store, category_id)
        products = Product.objects.for_store(store).in_category(category)
        if not include_inactive:
            products = products.active()
        return products

    @classmethod
    @transaction.atomic
    def create_category(cls, store, data: Dict[str, Any], user=None, request=None) -> Category:
        if not data.get('name'):
            raise ValidationError('Category name is required')

        category = Category.objects.create(
            store=store,
            **{field: data[field] for field in CATEGORY_FIELDS if field in data}
        )

        AuditLog.log_action(
            action='category_created',
            user=user,
            store=store,
            target_type='Category',
            target_id=category.id,
            metadata={'name': category.name},
            request=request,
        )
        return category

    @classmethod
    @transaction.atomic
    def update_category(cls, store, category_id, data: Dict[str, Any], user=None, request=None) -> Category:
        category = cls.get_category(store, category_id)

        if 'name' in data and not data['name']:
            raise ValidationError('Category name cannot be blank')

        diff = {}
        for field in CATEGORY_FIELDS:
            if field in data and getattr(category, field) != data[field]:
                diff[field] = {'old': getattr(category, field), 'new': data[field]}
                setattr(category, field, data[field])

        if diff:
            category.save()
            AuditLog.log_action(
                action='category_updated',
                user=user,
                store=store,
                target_type='Category',
                target_id=category.id,
                diff=diff,
                request=request,
            )
        return category

    @classmethod
    @transaction.atomic
    def delete_category(cls, store, category_id, user=None, request=None) -> int:
        """
        Soft delete a category and detach its products.

        Returns:
            int: number of products that lost the category
        """
        category = cls.get_category(store, category_id)
        detached = Product.objects.for_store(store).filter(category=category).update(category=None)
        category.delete()

        AuditLog.log_action(
            action='category_deleted',
            user=user,
            store=store,
            target_type='Category',
            target_id=category.id,
            metadata={'name': category.name, 'products_detached': detached},
            request=request,
        )
        return detached

    # ===== UNITS OF MEASURE =====

    @staticmethod
    def list_units(store):
        return UnitOfMeasure.objects.for_store(store).order_by('name')

    @staticmethod
    def active_units(store):
        return UnitOfMeasure.objects.for_store(store).active().order_by('name')

    @staticmethod
    def get_unit(store, unit_id) -> UnitOfMeasure:
        unit = UnitOfMeasure.objects.for_store(store).filter(id=unit_id).first()
        if unit is None:
            raise NotFoundError('Unit of measure not found', details={'unit_id': str(unit_id)})
        return unit

    @staticmethod
    def _check_abbreviation(store, abbreviation, exclude_id: Optional[str] = None):
        existing = UnitOfMeasure.objects.for_store(store).filter(abbreviation__iexact=abbreviation)
        if exclude_id:
            existing = existing.exclude(id=exclude_id)
        if existing.exists():
            raise ValidationError(
                'A unit with this abbreviation already exists',
                details={'abbreviation': abbreviation}
            )

    @classmethod
    @transaction.atomic
    def create_unit(cls, store, data: Dict[str, Any], user=None, request=None) -> UnitOfMeasure:
        if not data.get('name') or not data.get('abbreviation'):
            raise ValidationError('Name and abbreviation are required')

        cls._check_abbreviation(store, data['abbreviation'])
        unit = UnitOfMeasure.objects.create(
            store=store,
            **{field: data[field] for field in UNIT_FIELDS if field in data}
        )

        AuditLog.log_action(
            action='unit_created',
            user=user,
            store=store,
            target_type='UnitOfMeasure',
            target_id=unit.id,
            metadata={'name': unit.name, 'abbreviation': unit.abbreviation},
            request=request,
        )
        return unit

    @classmethod
    @transaction.atomic
    def update_unit(cls, store, unit_id, data: Dict[str, Any], user=None, request=None) -> UnitOfMeasure:
        unit = cls.get_unit(store, unit_id)

        if data.get('abbreviation'):
            cls._check_abbreviation(store, data['abbreviation'], exclude_id=unit.id)

        diff = {}
        for field in UNIT_FIELDS:
            if field in data and getattr(unit, field) != data[field]:
                diff[field] = {'old': getattr(unit, field), 'new': data[field]}
                setattr(unit, field, data[field])

        if diff:
            unit.save()
            AuditLog.log_action(
                action='unit_updated',
                user=user,
                store=store,
                target_type='UnitOfMeasure',
                target_id=unit.id,
                diff=diff,
                request=request,
            )
        return unit

    @classmethod
    @transaction.atomic
    def delete_unit(cls, store, unit_id, user=None, request=None):
        unit = cls.get_unit(store, unit_id)
        unit.hard_delete()

        AuditLog.log_action(
            action='unit_deleted',
            user=user,
            store=store,
            target_type='UnitOfMeasure',
            target_id=unit_id,
            metadata={'name': unit.name, 'abbreviation': unit.abbreviation},
            request=request,
        )
