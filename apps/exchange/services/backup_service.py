"""
JSON backup and restore of a store's catalogue and storefront content.

Exports also carry orders and order items for record keeping; restores
only bring back categories, units, products, slider images and settings.
"""
import json
import logging
from typing import Dict

from django.db import transaction
from django.utils import timezone

from apps.catalog.models import Category, UnitOfMeasure, Product
from apps.core.exceptions import ImportFormatError
from apps.exchange.serializers import (
    BackupCategorySerializer, BackupUnitSerializer, BackupProductSerializer,
    BackupSliderImageSerializer, BackupSiteSettingsSerializer,
    BackupOrderSerializer, BackupOrderItemSerializer,
)
from apps.exchange.services.excel_service import ExcelService
from apps.orders.models import Order, OrderItem
from apps.rbac.models import AuditLog
from apps.tenants.models import SliderImage
from apps.tenants.services import SiteSettingsService

logger = logging.getLogger(__name__)

BACKUP_VERSION = '1.0.0'

# key -> (model, serializer), in restore order
RESTORABLE = (
    ('categories', Category, BackupCategorySerializer),
    ('units_of_measure', UnitOfMeasure, BackupUnitSerializer),
    ('products', Product, BackupProductSerializer),
    ('slider_images', SliderImage, BackupSliderImageSerializer),
)


class BackupService:
    """Export and restore store data as a JSON document."""

    @staticmethod
    def export_database(store, actor=None, request=None) -> Dict:
        """
        Snapshot of the store as JSON-serializable data.

        Returns:
            dict: ``{'timestamp', 'version', 'store', 'data': {...}}``
        """
        orders = Order.objects.for_store(store).select_related('user')
        data = {
            'categories': BackupCategorySerializer(Category.objects.for_store(store), many=True).data,
            'units_of_measure': BackupUnitSerializer(UnitOfMeasure.objects.for_store(store), many=True).data,
            'products': BackupProductSerializer(Product.objects.for_store(store), many=True).data,
            'slider_images': BackupSliderImageSerializer(SliderImage.objects.for_store(store), many=True).data,
            'site_settings': BackupSiteSettingsSerializer(SiteSettingsService.get_settings(store)).data,
            'orders': BackupOrderSerializer(orders, many=True).data,
            'order_items': BackupOrderItemSerializer(
                OrderItem.objects.filter(order__store=store), many=True
            ).data,
        }

        AuditLog.log_action(
            action='database_exported',
            user=actor,
            store=store,
            target_type='Store',
            target_id=store.id,
            metadata={key: len(value) for key, value in data.items() if isinstance(value, list)},
            request=request,
        )
        logger.info("Database export generated", extra={'store_id': str(store.id)})

        return {
            'timestamp': timezone.now().isoformat(),
            'version': BACKUP_VERSION,
            'store': {'id': str(store.id), 'name': store.name},
            'data': data,
        }

    @staticmethod
    def load_document(content: bytes) -> Dict:
        """
        Decode an uploaded backup file.

        Raises:
            ImportFormatError: not JSON, or no ``data`` object
        """
        try:
            document = json.loads(content.decode('utf-8') if isinstance(content, bytes) else content)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ImportFormatError('Backup file is not valid JSON', details={'error': str(e)})
        if not isinstance(document, dict) or not isinstance(document.get('data'), dict):
            raise ImportFormatError('Backup file has no data section')
        return document

    @staticmethod
    def _restore_rows(store, model, serializer_class, rows, errors, key, category_ids=None) -> int:
        kept = set()
        restored = 0
        for index, row in enumerate(rows or []):
            raw_id = row.get('id') if isinstance(row, dict) else None
            row_id = ExcelService._claim_id(model, store, raw_id, kept)
            serializer = serializer_class(data=row)
            if not serializer.is_valid():
                errors.append({'section': key, 'index': index, 'error': serializer.errors})
                continue
            fields = dict(serializer.validated_data)
            fields.pop('id', None)
            if category_ids is not None and fields.get('category_id') not in category_ids:
                fields['category_id'] = None
            instance = ExcelService._upsert(model, row_id, {'store': store, **fields})
            kept.add(instance.id)
            restored += 1

        # Soft delete keeps order lines and carts pointing at real rows
        removed = model.objects.for_store(store).exclude(id__in=kept)
        if model is Category:
            Product.objects_with_deleted.filter(store=store, category__in=removed).update(category=None)
        removed.delete()
        return restored

    @classmethod
    @transaction.atomic
    def import_database(cls, store, content: bytes, actor=None, request=None) -> Dict:
        """
        Restore a backup into the store, replacing its catalogue.

        Rows are updated in place by ID; rows missing from the backup are
        soft deleted.

        Returns:
            dict: ``{'imported': {section: count}, 'errors': [...]}``

        Raises:
            ImportFormatError: unreadable backup file
        """
        data = cls.load_document(content)['data']
        errors = []
        imported = {}

        for key, model, serializer_class in RESTORABLE:
            if key not in data:
                continue
            category_ids = None
            if model is Product:
                category_ids = set(Category.objects.for_store(store).values_list('id', flat=True))
            imported[key] = cls._restore_rows(
                store, model, serializer_class, data[key], errors, key, category_ids=category_ids
            )

        if isinstance(data.get('site_settings'), dict):
            serializer = BackupSiteSettingsSerializer(
                SiteSettingsService.get_settings(store), data=data['site_settings'], partial=True
            )
            if serializer.is_valid():
                serializer.save()
                imported['site_settings'] = 1
            else:
                errors.append({'section': 'site_settings', 'error': serializer.errors})

        AuditLog.log_action(
            action='database_imported',
            user=actor,
            store=store,
            target_type='Store',
            target_id=store.id,
            metadata={'imported': imported, 'error_count': len(errors)},
            request=request,
        )
        logger.info(
            "Database import completed",
            extra={'store_id': str(store.id), 'imported': imported, 'errors': len(errors)}
        )
        return {'imported': imported, 'errors': errors}
