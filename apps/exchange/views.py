"""
Excel import/export and database backup views.
"""
import logging
from django.http import HttpResponse
from django.utils import timezone
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.parsers import MultiPartParser, FormParser
from drf_spectacular.utils import extend_schema
from drf_spectacular.types import OpenApiTypes

from apps.core.exceptions import ValidationError
from apps.core.permissions import requires_scopes, HasStoreScopes
from apps.exchange.services import ExcelService, BackupService
from apps.exchange.serializers import FileUploadSerializer, ImportResultSerializer

logger = logging.getLogger(__name__)

XLSX_CONTENT_TYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'


def _uploaded_file(request):
    upload = request.FILES.get('file')
    if upload is None:
        raise ValidationError('No file uploaded', details={'field': 'file'})
    return upload.read()


def _stamp():
    return timezone.now().strftime('%Y%m%d-%H%M%S')


@requires_scopes('database:excel')
class ExcelExportView(APIView):
    """
    GET /v1/admin/export/excel
    GET /v1/admin/export/excel/{sheet_type}
    """

    permission_classes = [HasStoreScopes]

    @extend_schema(
        tags=['Import & Export'],
        summary='Export Excel workbook',
        description='Products, Categories and Users sheets, or a single sheet. Passwords are never exported.',
        responses={(200, XLSX_CONTENT_TYPE): OpenApiTypes.BINARY},
    )
    def get(self, request, sheet_type=None):
        sheets = ExcelService.resolve_sheets(sheet_type)
        content = ExcelService.export_workbook(request.store, sheets, actor=request.user, request=request)

        name = sheet_type or 'data'
        response = HttpResponse(content, content_type=XLSX_CONTENT_TYPE)
        response['Content-Disposition'] = f'attachment; filename="{request.store.slug}-{name}-{_stamp()}.xlsx"'
        return response


@requires_scopes('database:excel')
class ExcelImportView(APIView):
    """
    POST /v1/admin/import/excel
    POST /v1/admin/import/excel/{sheet_type}
    """

    permission_classes = [HasStoreScopes]
    parser_classes = [MultiPartParser, FormParser]

    @extend_schema(
        tags=['Import & Export'],
        summary='Import Excel workbook',
        description=(
            'Categories and products replace the existing ones; users are matched by ID, '
            'then email. Row problems are reported in `errors`.'
        ),
        request={'multipart/form-data': FileUploadSerializer},
        responses={200: ImportResultSerializer},
    )
    def post(self, request, sheet_type=None):
        sheets = ExcelService.resolve_sheets(sheet_type)
        result = ExcelService.import_workbook(
            request.store, _uploaded_file(request), sheets, actor=request.user, request=request
        )
        return Response(ImportResultSerializer(result).data)


@requires_scopes('database:export')
class DatabaseExportView(APIView):
    """GET /v1/admin/database/export"""

    permission_classes = [HasStoreScopes]

    @extend_schema(
        tags=['Import & Export'],
        summary='Export database backup',
        description='JSON backup of catalogue, slider, settings and orders. SMTP passwords are left out.',
        responses={200: OpenApiTypes.OBJECT},
    )
    def get(self, request):
        document = BackupService.export_database(request.store, actor=request.user, request=request)
        response = Response(document)
        response['Content-Disposition'] = f'attachment; filename="{request.store.slug}-backup-{_stamp()}.json"'
        return response


@requires_scopes('database:import')
class DatabaseImportView(APIView):
    """POST /v1/admin/database/import"""

    permission_classes = [HasStoreScopes]
    parser_classes = [MultiPartParser, FormParser]

    @extend_schema(
        tags=['Import & Export'],
        summary='Restore database backup',
        request={'multipart/form-data': FileUploadSerializer},
        responses={200: ImportResultSerializer},
    )
    def post(self, request):
        result = BackupService.import_database(
            request.store, _uploaded_file(request), actor=request.user, request=request
        )
        return Response(ImportResultSerializer(result).data)
