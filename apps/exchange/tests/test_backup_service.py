"""
Tests for JSON database backup and restore.
"""
import json

import pytest
from rest_framework.renderers import JSONRenderer

from apps.catalog.models import Category, Product, UnitOfMeasure
from apps.core.exceptions import ImportFormatError
from apps.exchange.services import BackupService
from apps.orders.services import CartService, OrderService
from apps.tenants.models import SliderImage
from apps.tenants.services import SiteSettingsService


def as_upload(document):
    return JSONRenderer().render(document)


@pytest.mark.django_db
class TestDatabaseExport:

    def test_sections(self, store, customer_user, product, smtp_configured):
        UnitOfMeasure.objects.create(store=store, name='Kilogram', abbreviation='kg')
        SliderImage.objects.create(store=store, image_url='/uploads/hero.jpg', title='Hero')
        CartService.add_item(store, customer_user, product)
        OrderService.create_order(store, customer_user, payment_method='cash_on_delivery')

        document = BackupService.export_database(store)

        data = document['data']
        assert document['version'] == '1.0.0'
        assert len(data['categories']) == 1
        assert len(data['units_of_measure']) == 1
        assert data['products'][0]['name'] == 'Cordless Drill'
        assert len(data['slider_images']) == 1
        assert len(data['orders']) == 1
        assert data['orders'][0]['user_email'] == 'customer@test-store.com'
        assert len(data['order_items']) == 1
        assert data['site_settings']['smtp_host'] == 'smtp.office365.com'
        assert 'smtp_password' not in data['site_settings']


@pytest.mark.django_db
class TestDatabaseImport:

    def test_restore(self, store, product, category):
        SiteSettingsService.get_settings(store)
        document = json.loads(as_upload(BackupService.export_database(store)))
        document['data']['site_settings']['site_name'] = 'Restored Shop'

        Product.objects.filter(pk=product.pk).hard_delete()
        Category.objects.create(store=store, name='Leftover')

        result = BackupService.import_database(store, as_upload(document))

        assert result['errors'] == []
        assert result['imported']['categories'] == 1
        assert result['imported']['products'] == 1
        assert result['imported']['site_settings'] == 1
        restored = Product.objects.get(pk=product.pk)
        assert restored.category_id == category.id
        assert list(Category.objects.for_store(store).values_list('name', flat=True)) == ['Tools']
        assert SiteSettingsService.get_settings(store).site_name == 'Restored Shop'

    def test_restore_keeps_order_links(self, store, customer_user, admin_user, product):
        CartService.add_item(store, customer_user, product, quantity=3)
        order = OrderService.create_order(store, customer_user)
        document = json.loads(as_upload(BackupService.export_database(store)))
        document['data']['products'][0]['name'] = 'Cordless Drill v2'
        spare = Product.objects.create(store=store, name='Spare Blade', price=5, stock=1)

        BackupService.import_database(store, as_upload(document))

        item = order.items.get()
        assert item.product_id == product.id
        assert Product.objects.get(pk=product.pk).name == 'Cordless Drill v2'
        assert not Product.objects.filter(pk=spare.pk).exists()
        assert Product.objects_with_deleted.get(pk=spare.pk).deleted_at is not None

        OrderService.reject(order, admin_user, 'Restored from backup')
        product.refresh_from_db()
        assert product.stock == 10

    def test_invalid_rows_reported(self, store):
        document = {'data': {'categories': [{'name': ''}, {'name': 'Garden'}]}}

        result = BackupService.import_database(store, as_upload(document))

        assert result['imported'] == {'categories': 1}
        assert result['errors'][0]['section'] == 'categories'
        assert result['errors'][0]['index'] == 0

    def test_ids_taken_by_another_store_are_replaced(self, store, other_store, category):
        document = {'data': {'categories': [{'id': str(category.id), 'name': 'Copied'}]}}

        BackupService.import_database(other_store, as_upload(document))

        copied = Category.objects.for_store(other_store).get()
        assert copied.id != category.id
        assert Category.objects.get(pk=category.pk).store == store

    @pytest.mark.parametrize('content', [b'{not json', b'[]', b'{"version": "1.0.0"}'])
    def test_bad_file(self, store, content):
        with pytest.raises(ImportFormatError):
            BackupService.import_database(store, content)
