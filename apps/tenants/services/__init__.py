"""
Services for store configuration: site settings, themes, slider images
and media uploads.
"""
from .settings_service import SiteSettingsService, SMTP_FIELDS
from .slider_service import SliderService
from .upload_service import MediaUploadService

__all__ = [
    'SiteSettingsService',
    'SMTP_FIELDS',
    'SliderService',
    'MediaUploadService',
]
