"""
API tests for Excel import/export and database backups.
"""
import pytest
from django.core.files.uploadedfile import SimpleUploadedFile

from apps.catalog.models import Category
from apps.exchange.views import XLSX_CONTENT_TYPE


@pytest.mark.django_db
class TestExcelAPI:

    def test_export_all(self, auth_client, store, admin_user, product):
        response = auth_client(admin_user, store).get('/v1/admin/export/excel')

        assert response.status_code == 200
        assert response['Content-Type'] == XLSX_CONTENT_TYPE
        assert 'attachment;' in response['Content-Disposition']
        assert response.content[:2] == b'PK'

    def test_export_unknown_sheet(self, auth_client, store, admin_user):
        response = auth_client(admin_user, store).get('/v1/admin/export/excel/orders')

        assert response.status_code == 400

    def test_customer_forbidden(self, auth_client, store, customer_user):
        response = auth_client(customer_user, store).get('/v1/admin/export/excel')

        assert response.status_code == 403

    def test_import_one_sheet(self, auth_client, store, admin_user, category):
        client = auth_client(admin_user, store)
        exported = client.get('/v1/admin/export/excel/categories').content
        Category.objects.filter(pk=category.pk).hard_delete()

        upload = SimpleUploadedFile('categories.xlsx', exported, content_type=XLSX_CONTENT_TYPE)
        response = client.post('/v1/admin/import/excel/categories', {'file': upload}, format='multipart')

        assert response.status_code == 200
        assert response.data['imported'] == {'categories': 1}
        assert Category.objects.filter(pk=category.pk).exists()

    def test_import_requires_file(self, auth_client, store, admin_user):
        response = auth_client(admin_user, store).post('/v1/admin/import/excel', {}, format='multipart')

        assert response.status_code == 400

    def test_import_rejects_non_workbook(self, auth_client, store, admin_user):
        upload = SimpleUploadedFile('data.xlsx', b'plain text', content_type=XLSX_CONTENT_TYPE)
        response = auth_client(admin_user, store).post(
            '/v1/admin/import/excel', {'file': upload}, format='multipart'
        )

        assert response.status_code == 400
        assert response.json()['error']['code'] == 'IMPORT_FORMAT_ERROR'


@pytest.mark.django_db
class TestDatabaseAPI:

    def test_export_and_import(self, auth_client, store, admin_user, product):
        client = auth_client(admin_user, store)

        exported = client.get('/v1/admin/database/export')
        assert exported.status_code == 200
        assert exported.json()['data']['products'][0]['id'] == str(product.id)

        upload = SimpleUploadedFile('backup.json', exported.content, content_type='application/json')
        response = client.post('/v1/admin/database/import', {'file': upload}, format='multipart')

        assert response.status_code == 200
        assert response.data['imported']['products'] == 1

    def test_import_bad_json(self, auth_client, store, admin_user):
        upload = SimpleUploadedFile('backup.json', b'nope', content_type='application/json')
        response = auth_client(admin_user, store).post(
            '/v1/admin/database/import', {'file': upload}, format='multipart'
        )

        assert response.status_code == 400

    def test_manager_cannot_export(self, auth_client, store, manager_user):
        assert auth_client(manager_user, store).get('/v1/admin/database/export').status_code == 403
