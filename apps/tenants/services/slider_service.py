"""
Homepage slider image management.
"""
import logging
from typing import Dict, Any

from django.db import transaction

from apps.core.exceptions import NotFoundError, ValidationError
from apps.tenants.models import SliderImage

logger = logging.getLogger(__name__)

SLIDER_FIELDS = ('image_url', 'title', 'description', 'is_active', 'sort_order')


class SliderService:
    """CRUD for a store's slider images, every change audit logged."""

    @staticmethod
    def list_images(store):
        return SliderImage.objects.for_store(store).order_by('sort_order', 'created_at')

    @staticmethod
    def active_images(store):
        return SliderImage.objects.active(store)

    @staticmethod
    def get_image(store, image_id) -> SliderImage:
        image = SliderImage.objects.for_store(store).filter(id=image_id).first()
        if image is None:
            raise NotFoundError('Slider image not found', details={'id': str(image_id)})
        return image

    @classmethod
    @transaction.atomic
    def create_image(cls, store, data: Dict[str, Any], user=None, request=None) -> SliderImage:
        from apps.rbac.models import AuditLog

        if not data.get('image_url'):
            raise ValidationError('image_url is required')

        image = SliderImage.objects.create(
            store=store,
            **{field: data[field] for field in SLIDER_FIELDS if field in data}
        )

        AuditLog.log_action(
            action='slider_image_created',
            user=user,
            store=store,
            target_type='SliderImage',
            target_id=image.id,
            metadata={'image_url': image.image_url},
            request=request,
        )
        return image

    @classmethod
    @transaction.atomic
    def update_image(cls, store, image_id, data: Dict[str, Any], user=None, request=None) -> SliderImage:
        from apps.rbac.models import AuditLog

        image = cls.get_image(store, image_id)
        diff = {}
        for field in SLIDER_FIELDS:
            if field in data and getattr(image, field) != data[field]:
                diff[field] = {'old': getattr(image, field), 'new': data[field]}
                setattr(image, field, data[field])

        if diff:
            image.save()
            AuditLog.log_action(
                action='slider_image_updated',
                user=user,
                store=store,
                target_type='SliderImage',
                target_id=image.id,
                diff=diff,
                request=request,
            )
        return image

    @classmethod
    @transaction.atomic
    def delete_image(cls, store, image_id, user=None, request=None):
        from apps.rbac.models import AuditLog

        image = cls.get_image(store, image_id)
        image.delete()

        AuditLog.log_action(
            action='slider_image_deleted',
            user=user,
            store=store,
            target_type='SliderImage',
            target_id=image.id,
            metadata={'image_url': image.image_url},
            request=request,
        )
