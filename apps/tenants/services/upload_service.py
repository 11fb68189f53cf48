"""
Image uploads for products, categories, logos and slider images.

Files are stored through Django's default storage under ``uploads/``.
"""
import logging
import os
import uuid

from django.conf import settings
from django.core.files.storage import default_storage

from apps.core.exceptions import ValidationError

logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES = {
    'image/jpeg',
    'image/jpg',
    'image/png',
    'image/gif',
    'image/webp',
}


class MediaUploadService:

    @staticmethod
    def validate_image(uploaded_file):
        """
        Check extension, content type and size.

        Raises:
            ValidationError: missing file, disallowed type or too large
        """
        if uploaded_file is None:
            raise ValidationError('No image file provided')

        extension = os.path.splitext(uploaded_file.name)[1].lower().lstrip('.')
        allowed_extensions = getattr(settings, 'IMAGE_UPLOAD_EXTENSIONS', ['jpeg', 'jpg', 'png', 'gif', 'webp'])
        content_type = (getattr(uploaded_file, 'content_type', '') or '').lower()

        if extension not in allowed_extensions or content_type not in ALLOWED_CONTENT_TYPES:
            raise ValidationError(
                'Only image files are allowed (jpeg, jpg, png, gif, webp)',
                details={'extension': extension, 'content_type': content_type}
            )

        max_bytes = getattr(settings, 'IMAGE_UPLOAD_MAX_BYTES', 5 * 1024 * 1024)
        if uploaded_file.size > max_bytes:
            raise ValidationError(
                f'Image exceeds the maximum size of {max_bytes // (1024 * 1024)} MB',
                details={'size': uploaded_file.size, 'max_bytes': max_bytes}
            )

        return extension

    @classmethod
    def save_image(cls, store, uploaded_file) -> str:
        """Store the image and return its public URL."""
        extension = cls.validate_image(uploaded_file)

        name = f"uploads/{store.slug}/{uuid.uuid4().hex}.{extension}"
        saved_name = default_storage.save(name, uploaded_file)
        url = default_storage.url(saved_name)

        logger.info(
            "Image uploaded",
            extra={'store_id': str(store.id), 'path': saved_name, 'size': uploaded_file.size}
        )
        return url
