"""
Store configuration REST API views.

Implements endpoints for:
- Site settings (branding, footer, SMTP) and theme presets
- SMTP test email and configuration status
- Homepage slider images
- Image uploads
"""
import logging
from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.parsers import MultiPartParser, FormParser
from drf_spectacular.utils import extend_schema, extend_schema_view
from drf_spectacular.types import OpenApiTypes

from apps.core.permissions import requires_scopes, HasStoreScopes
from apps.core.services.email_service import EmailService
from apps.tenants.services import SiteSettingsService, SliderService, MediaUploadService
from apps.tenants.themes import list_themes
from apps.tenants.serializers import (
    SiteSettingsSerializer, SiteSettingsUpdateSerializer, ThemeSerializer,
    ApplyThemeSerializer, SliderImageSerializer, TestEmailSerializer,
    ImageUploadSerializer,
)

logger = logging.getLogger(__name__)


class SiteSettingsView(APIView):
    """
    GET /v1/settings  (public)
    PUT /v1/settings  (settings:edit, SMTP fields also need settings:smtp)
    """

    permission_classes = [HasStoreScopes]

    @extend_schema(
        tags=['Settings'],
        summary='Get site settings',
        description='Branding, theme, footer and SMTP settings. The SMTP password is never returned.',
        responses={200: SiteSettingsSerializer},
    )
    def get(self, request):
        site_settings = SiteSettingsService.get_settings(request.store)
        return Response(SiteSettingsSerializer(site_settings).data)

    @extend_schema(
        tags=['Settings'],
        summary='Update site settings',
        description='''
Partial update of the site settings.

**Required scope:** `settings:edit`. Changing any `smtp_*` field also requires `settings:smtp`.
A blank `smtp_password` keeps the stored password.
        ''',
        request=SiteSettingsUpdateSerializer,
        responses={200: SiteSettingsSerializer, 403: OpenApiTypes.OBJECT},
    )
    @requires_scopes('settings:edit')
    def put(self, request):
        serializer = SiteSettingsUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        site_settings = SiteSettingsService.update_settings(
            request.store,
            serializer.validated_data,
            user=request.user,
            scopes=request.scopes,
            request=request,
        )
        return Response(SiteSettingsSerializer(site_settings).data)

    patch = put


@extend_schema_view(
    get=extend_schema(
        tags=['Settings'],
        summary='List theme presets',
        responses={200: ThemeSerializer(many=True)},
    )
)
class ThemeListView(APIView):
    """GET /v1/settings/themes"""

    def get(self, request):
        return Response({'themes': ThemeSerializer(list_themes(), many=True).data})


@extend_schema_view(
    post=extend_schema(
        tags=['Settings'],
        summary='Apply a theme preset',
        description='Copies the preset colors into the site settings.\n\n**Required scope:** `settings:edit`',
        request=ApplyThemeSerializer,
        responses={200: SiteSettingsSerializer, 400: OpenApiTypes.OBJECT},
    )
)
@requires_scopes('settings:edit')
class ApplyThemeView(APIView):
    """POST /v1/settings/themes/apply"""

    permission_classes = [HasStoreScopes]

    def post(self, request):
        serializer = ApplyThemeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        site_settings = SiteSettingsService.apply_theme(
            request.store,
            serializer.validated_data['theme'],
            user=request.user,
            request=request,
        )
        return Response(SiteSettingsSerializer(site_settings).data)


@extend_schema_view(
    post=extend_schema(
        tags=['Settings'],
        summary='Send SMTP test email',
        description='Sends a test message through the store SMTP relay.\n\n**Required scope:** `email:test`',
        request=TestEmailSerializer,
        responses={200: OpenApiTypes.OBJECT, 503: OpenApiTypes.OBJECT},
    )
)
@requires_scopes('email:test')
class TestEmailView(APIView):
    """POST /v1/settings/email/test"""

    permission_classes = [HasStoreScopes]

    def post(self, request):
        serializer = TestEmailSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        to_email = serializer.validated_data['to']

        EmailService.send_test_email(request.store, to_email)

        return Response({
            'success': True,
            'message': f'Test email sent to {to_email}',
        })


@extend_schema_view(
    get=extend_schema(
        tags=['Settings'],
        summary='SMTP configuration status',
        description='Reports whether SMTP is ready, without sending mail.\n\n**Required scope:** `email:view`',
        responses={200: OpenApiTypes.OBJECT},
    )
)
@requires_scopes('email:view')
class EmailStatusView(APIView):
    """GET /v1/settings/email/status"""

    permission_classes = [HasStoreScopes]

    def get(self, request):
        return Response(EmailService.diagnose(request.store))


class SliderImageListView(APIView):
    """
    GET  /v1/slider-images  (slider:view)
    POST /v1/slider-images  (slider:create)
    """

    permission_classes = [HasStoreScopes]

    @extend_schema(
        tags=['Settings'],
        summary='List slider images',
        responses={200: SliderImageSerializer(many=True)},
    )
    @requires_scopes('slider:view')
    def get(self, request):
        images = SliderService.list_images(request.store)
        return Response(SliderImageSerializer(images, many=True).data)

    @extend_schema(
        tags=['Settings'],
        summary='Create slider image',
        request=SliderImageSerializer,
        responses={201: SliderImageSerializer},
    )
    @requires_scopes('slider:create')
    def post(self, request):
        serializer = SliderImageSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        image = SliderService.create_image(
            request.store, serializer.validated_data, user=request.user, request=request
        )
        return Response(SliderImageSerializer(image).data, status=status.HTTP_201_CREATED)


@extend_schema_view(
    get=extend_schema(
        tags=['Settings'],
        summary='List active slider images',
        description='Active images ordered by sort_order. Public.',
        responses={200: SliderImageSerializer(many=True)},
    )
)
class ActiveSliderImageView(APIView):
    """GET /v1/slider-images/active"""

    def get(self, request):
        images = SliderService.active_images(request.store)
        return Response(SliderImageSerializer(images, many=True).data)


class SliderImageDetailView(APIView):
    """
    PATCH  /v1/slider-images/{id}  (slider:edit)
    DELETE /v1/slider-images/{id}  (slider:delete)
    """

    permission_classes = [HasStoreScopes]

    @extend_schema(
        tags=['Settings'],
        summary='Update slider image',
        request=SliderImageSerializer,
        responses={200: SliderImageSerializer},
    )
    @requires_scopes('slider:edit')
    def patch(self, request, image_id):
        serializer = SliderImageSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        image = SliderService.update_image(
            request.store, image_id, serializer.validated_data,
            user=request.user, request=request
        )
        return Response(SliderImageSerializer(image).data)

    put = patch

    @extend_schema(
        tags=['Settings'],
        summary='Delete slider image',
        responses={204: None},
    )
    @requires_scopes('slider:delete')
    def delete(self, request, image_id):
        SliderService.delete_image(request.store, image_id, user=request.user, request=request)
        return Response(status=status.HTTP_204_NO_CONTENT)


@extend_schema_view(
    post=extend_schema(
        tags=['Settings'],
        summary='Upload image',
        description='''
Upload a jpeg, jpg, png, gif or webp image (max 5 MB) as multipart field `image`.

**Required scope:** `media:upload`
        ''',
        request={'multipart/form-data': ImageUploadSerializer},
        responses={201: OpenApiTypes.OBJECT, 400: OpenApiTypes.OBJECT},
    )
)
@requires_scopes('media:upload')
class ImageUploadView(APIView):
    """POST /v1/media/upload"""

    permission_classes = [HasStoreScopes]
    parser_classes = [MultiPartParser, FormParser]

    def post(self, request):
        image_url = MediaUploadService.save_image(request.store, request.FILES.get('image'))
        return Response(
            {'image_url': image_url, 'message': 'Image uploaded successfully'},
            status=status.HTTP_201_CREATED
        )
