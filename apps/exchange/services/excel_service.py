"""
Excel import/export of products, categories and users.

Columns map one to one onto model fields. On import each column is read
from its header label first, then its snake_case key, then the camelCase
key older exports used. Missing values fall back to the field defaults.
"""
import logging
import uuid
import zipfile
from datetime import datetime, timezone as dt_timezone
from decimal import Decimal, InvalidOperation
from io import BytesIO
from typing import Dict, Iterable, List, Optional

import openpyxl
from openpyxl.styles import Font, PatternFill, Alignment
from openpyxl.utils import get_column_letter
from openpyxl.utils.exceptions import InvalidFileException
from django.db import transaction

from apps.catalog.models import Category, Product
from apps.core.exceptions import ValidationError, ImportFormatError
from apps.rbac.models import AuditLog, Role, StoreMembership, User
from apps.rbac.services import RBACService

logger = logging.getLogger(__name__)

HEADER_FONT = Font(name='Calibri', bold=True, size=11, color='FFFFFF')
HEADER_FILL = PatternFill(start_color='2F5496', end_color='2F5496', fill_type='solid')

# (header label, field key, camelCase key)
SHEETS = {
    'products': {
        'title': 'Products',
        'columns': [
            ('ID', 'id', 'id'),
            ('Name', 'name', 'name'),
            ('Description', 'description', 'description'),
            ('Price', 'price', 'price'),
            ('Stock', 'stock', 'stock'),
            ('SKU', 'sku', 'sku'),
            ('Category ID', 'category_id', 'categoryId'),
            ('Image URL', 'image_url', 'imageUrl'),
            ('Is Active', 'is_active', 'isActive'),
            ('Is Featured', 'is_featured', 'isFeatured'),
            ('Rating', 'rating', 'rating'),
            ('Review Count', 'review_count', 'reviewCount'),
            ('Product Type', 'product_type', 'productType'),
            ('Rental Period', 'rental_period', 'rentalPeriod'),
            ('Rental Price', 'rental_price', 'rentalPrice'),
            ('Unit Of Measure', 'unit_of_measure', 'unitOfMeasure'),
            ('Created At', 'created_at', 'createdAt'),
        ],
    },
    'categories': {
        'title': 'Categories',
        'columns': [
            ('ID', 'id', 'id'),
            ('Name', 'name', 'name'),
            ('Description', 'description', 'description'),
            ('Image URL', 'image_url', 'imageUrl'),
            ('Created At', 'created_at', 'createdAt'),
        ],
    },
    'users': {
        'title': 'Users',
        'columns': [
            ('ID', 'id', 'id'),
            ('Email', 'email', 'email'),
            ('First Name', 'first_name', 'firstName'),
            ('Last Name', 'last_name', 'lastName'),
            ('Phone', 'phone', 'phone'),
            ('Role', 'role', 'role'),
            ('Is Active', 'is_active', 'isActive'),
            ('Created At', 'created_at', 'createdAt'),
        ],
    },
}

# Categories go first so product rows can reference them.
IMPORT_ORDER = ('categories', 'products', 'users')

TRUE_STRINGS = {'true', 'yes', '1'}


def _as_bool(value, default: bool) -> bool:
    if value is None or value == '':
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value == 1
    return str(value).strip().lower() in TRUE_STRINGS


def _as_decimal(value, default: Optional[Decimal] = Decimal('0')) -> Optional[Decimal]:
    if value is None or value == '':
        return default
    try:
        return Decimal(str(value)).quantize(Decimal('0.01'))
    except InvalidOperation:
        raise ValueError(f"'{value}' is not a number")


def _as_int(value, default: int = 0) -> int:
    if value is None or value == '':
        return default
    try:
        return int(float(value))
    except (TypeError, ValueError):
        raise ValueError(f"'{value}' is not a whole number")


def _as_text(value) -> str:
    return '' if value is None else str(value).strip()


def _as_uuid(value) -> Optional[uuid.UUID]:
    if not value:
        return None
    try:
        return uuid.UUID(str(value).strip())
    except ValueError:
        return None


def _cell_value(value):
    """Excel cannot hold UUIDs or timezone-aware datetimes."""
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, datetime) and value.tzinfo is not None:
        return value.astimezone(dt_timezone.utc).replace(tzinfo=None)
    return value


class ExcelService:
    """Workbook export, parsing and import."""

    @staticmethod
    def resolve_sheets(sheet_type: Optional[str] = None) -> List[str]:
        """
        Sheet keys for an optional ``sheet_type`` URL segment.

        Raises:
            ValidationError: unknown sheet type
        """
        if sheet_type is None:
            return list(SHEETS)
        if sheet_type not in SHEETS:
            raise ValidationError(
                f"Unknown sheet type '{sheet_type}'",
                details={'sheet_type': sheet_type, 'allowed': list(SHEETS)}
            )
        return [sheet_type]

    # ===== EXPORT =====

    @staticmethod
    def _product_rows(store) -> Iterable[Dict]:
        for product in Product.objects.for_store(store).order_by('name'):
            yield {
                'id': product.id,
                'name': product.name,
                'description': product.description,
                'price': product.price,
                'stock': product.stock,
                'sku': product.sku,
                'category_id': product.category_id,
                'image_url': product.image_url,
                'is_active': product.is_active,
                'is_featured': product.is_featured,
                'rating': product.rating,
                'review_count': product.review_count,
                'product_type': product.product_type,
                'rental_period': product.rental_period,
                'rental_price': product.rental_price,
                'unit_of_measure': product.unit_of_measure,
                'created_at': product.created_at,
            }

    @staticmethod
    def _category_rows(store) -> Iterable[Dict]:
        for category in Category.objects.for_store(store).order_by('name'):
            yield {
                'id': category.id,
                'name': category.name,
                'description': category.description,
                'image_url': category.image_url,
                'created_at': category.created_at,
            }

    @staticmethod
    def _user_rows(store) -> Iterable[Dict]:
        memberships = (
            StoreMembership.objects.filter(store=store)
            .select_related('user')
            .order_by('user__email')
        )
        for membership in memberships:
            user = membership.user
            roles = RBACService.get_membership_roles(membership).values_list('name', flat=True)
            yield {
                'id': user.id,
                'email': user.email,
                'first_name': user.first_name,
                'last_name': user.last_name,
                'phone': user.phone,
                'role': ', '.join(sorted(roles)),
                'is_active': membership.is_active,
                'created_at': user.created_at,
            }

    @classmethod
    def export_workbook(cls, store, sheets: Optional[List[str]] = None, actor=None, request=None) -> bytes:
        """
        Build an xlsx workbook for the store.

        Args:
            store: Store to export
            sheets: Sheet keys to include (default: all)

        Returns:
            bytes: xlsx file content
        """
        sheets = sheets or list(SHEETS)
        row_sources = {
            'products': cls._product_rows,
            'categories': cls._category_rows,
            'users': cls._user_rows,
        }

        workbook = openpyxl.Workbook()
        workbook.remove(workbook.active)
        counts = {}
        for key in sheets:
            definition = SHEETS[key]
            ws = workbook.create_sheet(definition['title'])
            ws.append([label for label, _, _ in definition['columns']])
            for cell in ws[1]:
                cell.font = HEADER_FONT
                cell.fill = HEADER_FILL
                cell.alignment = Alignment(horizontal='center')

            count = 0
            for row in row_sources[key](store):
                ws.append([_cell_value(row[field]) for _, field, _ in definition['columns']])
                count += 1
            counts[key] = count

            for col, (label, _, _) in enumerate(definition['columns'], start=1):
                ws.column_dimensions[get_column_letter(col)].width = max(len(label) + 4, 14)
            ws.freeze_panes = 'A2'

        buffer = BytesIO()
        workbook.save(buffer)

        AuditLog.log_action(
            action='excel_exported',
            user=actor,
            store=store,
            target_type='Store',
            target_id=store.id,
            metadata={'sheets': sheets, 'rows': counts},
            request=request,
        )
        logger.info("Excel export generated", extra={'store_id': str(store.id), 'rows': counts})
        return buffer.getvalue()

    # ===== PARSE =====

    @staticmethod
    def parse_workbook(data: bytes) -> Dict[str, List[Dict]]:
        """
        Read every known sheet into lists of row dicts keyed by field name.

        Raises:
            ImportFormatError: the file is not a readable xlsx workbook
        """
        try:
            workbook = openpyxl.load_workbook(BytesIO(data), read_only=True, data_only=True)
        except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as e:
            raise ImportFormatError('File is not a valid Excel workbook', details={'error': str(e)})

        result = {key: [] for key in SHEETS}
        try:
            for key, definition in SHEETS.items():
                if definition['title'] not in workbook.sheetnames:
                    continue
                rows = workbook[definition['title']].iter_rows(values_only=True)
                header = next(rows, None)
                if not header:
                    continue
                header = [_as_text(h) for h in header]

                for values in rows:
                    if values is None or all(v is None or v == '' for v in values):
                        continue
                    raw = dict(zip(header, values))
                    row = {}
                    for label, field, camel in definition['columns']:
                        value = raw.get(label)
                        if value is None:
                            value = raw.get(field)
                        if value is None:
                            value = raw.get(camel)
                        row[field] = value
                    result[key].append(row)
        finally:
            workbook.close()
        return result

    # ===== IMPORT =====

    @staticmethod
    def _claim_id(model, store, value, seen) -> Optional[uuid.UUID]:
        """
        The primary key an imported row keeps: its own UUID when unused or
        already this store's, otherwise None so a fresh one is generated.
        """
        row_id = _as_uuid(value)
        if row_id is None or row_id in seen:
            return None
        owner = model.objects_with_deleted.filter(pk=row_id).values_list('store_id', flat=True).first()
        if owner is not None and owner != store.id:
            return None
        seen.add(row_id)
        return row_id

    @staticmethod
    def _upsert(model, row_id, fields):
        """Update the row in place so foreign keys pointing at it survive."""
        if row_id is None:
            return model.objects.create(**fields)
        instance, _ = model.objects_with_deleted.update_or_create(
            id=row_id, defaults={**fields, 'deleted_at': None}
        )
        return instance

    @classmethod
    def _import_categories(cls, store, rows, errors) -> int:
        kept = set()
        imported = 0
        for index, row in enumerate(rows, start=2):
            row_id = cls._claim_id(Category, store, row.get('id'), kept)
            name = _as_text(row.get('name'))
            if not name:
                errors.append({'sheet': 'categories', 'row': index, 'error': 'Name is required'})
                continue
            category = cls._upsert(Category, row_id, {
                'store': store,
                'name': name,
                'description': _as_text(row.get('description')),
                'image_url': _as_text(row.get('image_url')),
            })
            kept.add(category.id)
            imported += 1

        # Rows missing from the sheet are removed the way CatalogService does it
        removed = Category.objects.for_store(store).exclude(id__in=kept)
        Product.objects_with_deleted.filter(store=store, category__in=removed).update(category=None)
        removed.delete()
        return imported

    @classmethod
    def _import_products(cls, store, rows, errors) -> int:
        category_ids = set(Category.objects.for_store(store).values_list('id', flat=True))
        kept = set()
        imported = 0
        for index, row in enumerate(rows, start=2):
            row_id = cls._claim_id(Product, store, row.get('id'), kept)
            name = _as_text(row.get('name'))
            if not name:
                errors.append({'sheet': 'products', 'row': index, 'error': 'Name is required'})
                continue
            try:
                product_type = _as_text(row.get('product_type')).lower() or 'sale'
                if product_type not in dict(Product.PRODUCT_TYPE_CHOICES):
                    product_type = 'sale'
                category_id = _as_uuid(row.get('category_id'))
                fields = {
                    'store': store,
                    'name': name,
                    'description': _as_text(row.get('description')),
                    'price': _as_decimal(row.get('price')),
                    'stock': max(0, _as_int(row.get('stock'))),
                    'sku': _as_text(row.get('sku')),
                    'category_id': category_id if category_id in category_ids else None,
                    'image_url': _as_text(row.get('image_url')),
                    'is_active': _as_bool(row.get('is_active'), True),
                    'is_featured': _as_bool(row.get('is_featured'), False),
                    'rating': min(Decimal('5'), max(Decimal('0'), _as_decimal(row.get('rating')))).quantize(Decimal('0.1')),
                    'review_count': max(0, _as_int(row.get('review_count'))),
                    'product_type': product_type,
                    'rental_period': _as_text(row.get('rental_period')).lower(),
                    'rental_price': _as_decimal(row.get('rental_price'), default=None),
                    'unit_of_measure': _as_text(row.get('unit_of_measure')) or 'piece',
                }
            except ValueError as e:
                errors.append({'sheet': 'products', 'row': index, 'error': str(e)})
                continue
            if fields['price'] < 0:
                errors.append({'sheet': 'products', 'row': index, 'error': 'Price cannot be negative'})
                continue
            if product_type == 'rental' and not fields['rental_period']:
                fields['rental_period'] = 'day'

            product = cls._upsert(Product, row_id, fields)
            kept.add(product.id)
            imported += 1

        # Soft delete keeps order lines, carts and wishlists pointing at real rows
        Product.objects.for_store(store).exclude(id__in=kept).delete()
        return imported

    @staticmethod
    def _import_users(store, rows, errors, actor=None, request=None) -> Dict[str, int]:
        counts = {'created': 0, 'updated': 0}
        memberships = StoreMembership.objects.filter(store=store).select_related('user')
        for index, row in enumerate(rows, start=2):
            email = _as_text(row.get('email')).lower()
            row_id = _as_uuid(row.get('id'))

            membership = None
            if row_id:
                membership = memberships.filter(user_id=row_id).first()
            if membership is None and email:
                membership = memberships.filter(user__email__iexact=email).first()

            if membership is None and not email:
                errors.append({'sheet': 'users', 'row': index, 'error': 'Email is required'})
                continue

            role_name = _as_text(row.get('role')).split(',')[0].strip()
            role = Role.objects.by_name(store, role_name) if role_name else None

            if role_name and role is None:
                errors.append({'sheet': 'users', 'row': index, 'error': f"Role '{role_name}' not found"})

            if membership is not None:
                user = membership.user
                user.first_name = _as_text(row.get('first_name')) or user.first_name
                user.last_name = _as_text(row.get('last_name')) or user.last_name
                user.phone = _as_text(row.get('phone')) or user.phone
                user.save(update_fields=['first_name', 'last_name', 'phone', 'updated_at'])
                if role is not None:
                    RBACService.set_user_role(membership, role, assigned_by=actor, request=request)
                counts['updated'] += 1
            else:
                user = User.objects.by_email(email)
                if user is None:
                    # create_user without a password stores an unusable one
                    user = User.objects.create_user(
                        email=email,
                        first_name=_as_text(row.get('first_name')),
                        last_name=_as_text(row.get('last_name')),
                        phone=_as_text(row.get('phone')),
                    )
                membership = RBACService.add_member(store, user, role=role, added_by=actor, request=request)
                counts['created'] += 1

            is_active = _as_bool(row.get('is_active'), membership.is_active)
            if membership.is_active != is_active:
                membership.is_active = is_active
                membership.save(update_fields=['is_active', 'updated_at'])
        return counts

    @classmethod
    @transaction.atomic
    def import_workbook(cls, store, data: bytes, sheets: Optional[List[str]] = None,
                        actor=None, request=None) -> Dict:
        """
        Import an xlsx workbook into the store.

        Categories and products replace the store's catalogue: rows are
        updated in place by ID and rows missing from the sheet are soft
        deleted. Users are upserted and their passwords are never touched.

        Returns:
            dict: ``{'imported': {sheet: count}, 'errors': [...]}``

        Raises:
            ImportFormatError: unreadable workbook
        """
        sheets = sheets or list(SHEETS)
        parsed = cls.parse_workbook(data)
        errors = []
        imported = {}

        for key in IMPORT_ORDER:
            if key not in sheets:
                continue
            if key == 'categories':
                imported[key] = cls._import_categories(store, parsed[key], errors)
            elif key == 'products':
                imported[key] = cls._import_products(store, parsed[key], errors)
            else:
                imported[key] = cls._import_users(store, parsed[key], errors, actor=actor, request=request)

        AuditLog.log_action(
            action='excel_imported',
            user=actor,
            store=store,
            target_type='Store',
            target_id=store.id,
            metadata={'sheets': sheets, 'imported': imported, 'error_count': len(errors)},
            request=request,
        )
        logger.info(
            "Excel import completed",
            extra={'store_id': str(store.id), 'imported': imported, 'errors': len(errors)}
        )
        return {'imported': imported, 'errors': errors}
