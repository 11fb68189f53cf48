"""
Tests for Excel export, parsing and import.
"""
import uuid
from decimal import Decimal
from io import BytesIO

import openpyxl
import pytest

from apps.catalog.models import Category, Product
from apps.core.exceptions import ValidationError, ImportFormatError
from apps.exchange.services import ExcelService, SHEETS
from apps.orders.models import CartItem, OrderItem, WishlistItem
from apps.orders.services import CartService, OrderService, WishlistService
from apps.rbac.models import StoreMembership, User
from apps.rbac.services import RBACService


def build_workbook(sheets):
    """``{'Products': [header, row, ...]}`` -> xlsx bytes"""
    workbook = openpyxl.Workbook()
    workbook.remove(workbook.active)
    for title, rows in sheets.items():
        ws = workbook.create_sheet(title)
        for row in rows:
            ws.append(row)
    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def read_workbook(content):
    return openpyxl.load_workbook(BytesIO(content))


@pytest.mark.django_db
class TestExport:

    def test_all_sheets(self, store, product, customer_user, admin_user):
        workbook = read_workbook(ExcelService.export_workbook(store))

        assert workbook.sheetnames == ['Products', 'Categories', 'Users']
        products = list(workbook['Products'].iter_rows(values_only=True))
        assert list(products[0]) == [label for label, _, _ in SHEETS['products']['columns']]
        assert products[1][0] == str(product.id)
        assert products[1][1] == 'Cordless Drill'
        assert products[1][6] == str(product.category_id)

        users = list(workbook['Users'].iter_rows(values_only=True))
        assert 'Password' not in users[0]
        emails = {row[1] for row in users[1:]}
        assert emails == {'customer@test-store.com', 'admin@test-store.com'}
        customer_row = next(row for row in users[1:] if row[1] == 'customer@test-store.com')
        assert customer_row[5] == 'Customer'

    def test_single_sheet(self, store, category):
        workbook = read_workbook(ExcelService.export_workbook(store, ['categories']))

        assert workbook.sheetnames == ['Categories']
        assert workbook['Categories'].max_row == 2

    def test_unknown_sheet_type(self):
        with pytest.raises(ValidationError):
            ExcelService.resolve_sheets('orders')

    def test_other_store_rows_excluded(self, other_store, product):
        workbook = read_workbook(ExcelService.export_workbook(other_store, ['products']))

        assert workbook['Products'].max_row == 1


class TestParse:

    def test_header_labels_and_camel_case_keys(self):
        content = build_workbook({
            'Products': [
                ['Name', 'Price', 'isFeatured', 'Is Active', 'productType'],
                ['Hammer', 12.5, 'yes', 'false', 'rental'],
            ],
            'Categories': [['name', 'description'], ['Tools', 'Hand tools']],
        })

        parsed = ExcelService.parse_workbook(content)

        product = parsed['products'][0]
        assert product['name'] == 'Hammer'
        assert product['price'] == 12.5
        assert product['is_featured'] == 'yes'
        assert product['is_active'] == 'false'
        assert product['product_type'] == 'rental'
        assert parsed['categories'] == [{
            'id': None, 'name': 'Tools', 'description': 'Hand tools',
            'image_url': None, 'created_at': None,
        }]
        assert parsed['users'] == []

    def test_blank_rows_skipped(self):
        content = build_workbook({'Categories': [['Name'], ['Tools'], [None], ['Garden']]})

        assert [row['name'] for row in ExcelService.parse_workbook(content)['categories']] == ['Tools', 'Garden']

    def test_not_a_workbook(self):
        with pytest.raises(ImportFormatError):
            ExcelService.parse_workbook(b'definitely not a spreadsheet')


@pytest.mark.django_db
class TestImport:

    def test_replaces_catalogue_and_keeps_ids(self, store, product, admin_user):
        category_id = uuid.uuid4()
        product_id = uuid.uuid4()
        content = build_workbook({
            'Categories': [['ID', 'Name', 'Description'], [str(category_id), 'Garden', 'Outdoor']],
            'Products': [
                ['ID', 'Name', 'Price', 'Stock', 'Category ID', 'Is Featured', 'Product Type'],
                [str(product_id), 'Rake', 15, 4, str(category_id), 'TRUE', None],
                [None, 'Shovel', '20.00', None, str(uuid.uuid4()), None, 'rental'],
                [None, None, 5, 1, None, None, None],
            ],
        })

        result = ExcelService.import_workbook(store, content, ['categories', 'products'], actor=admin_user)

        assert result['imported'] == {'categories': 1, 'products': 2}
        assert result['errors'] == [{'sheet': 'products', 'row': 4, 'error': 'Name is required'}]
        assert not Product.objects.filter(pk=product.pk).exists()
        assert Product.objects_with_deleted.get(pk=product.pk).deleted_at is not None
        assert list(Category.objects.for_store(store).values_list('id', flat=True)) == [category_id]

        rake = Product.objects.get(pk=product_id)
        assert rake.category_id == category_id
        assert rake.is_featured is True
        assert rake.is_active is True
        assert rake.product_type == 'sale'
        assert rake.unit_of_measure == 'piece'

        shovel = Product.objects.get(name='Shovel')
        assert shovel.category_id is None
        assert shovel.stock == 0
        assert shovel.product_type == 'rental'
        assert shovel.rental_period == 'day'

    def test_bad_number_is_row_error(self, store):
        content = build_workbook({'Products': [['Name', 'Price'], ['Saw', 'cheap']]})

        result = ExcelService.import_workbook(store, content, ['products'])

        assert result['imported'] == {'products': 0}
        assert result['errors'][0]['row'] == 2

    def test_round_trip_keeps_products(self, store, product):
        content = ExcelService.export_workbook(store)

        result = ExcelService.import_workbook(store, content, ['categories', 'products'])

        assert result['errors'] == []
        restored = Product.objects.get(pk=product.pk)
        assert restored.price == Decimal('100.00')
        assert restored.category_id == product.category_id

    def test_round_trip_keeps_order_links(self, store, product, customer_user, admin_user):
        CartService.add_item(store, customer_user, product, quantity=3)
        order = OrderService.create_order(store, customer_user, payment_method='cash_on_delivery')
        WishlistService.add(store, customer_user, product)
        CartService.add_item(store, customer_user, product, quantity=1)

        content = ExcelService.export_workbook(store, ['categories', 'products'])
        ExcelService.import_workbook(store, content, ['categories', 'products'])

        item = OrderItem.objects.get(order=order)
        assert item.product_id == product.id
        assert CartItem.objects.filter(user=customer_user, product=product).exists()
        assert WishlistItem.objects.filter(user=customer_user, product=product).exists()

        OrderService.reject(order, admin_user, 'Out of delivery range')

        product.refresh_from_db()
        assert product.stock == 10

    def test_rows_missing_from_sheet_are_soft_deleted(self, store, product, customer_user, admin_user):
        CartService.add_item(store, customer_user, product, quantity=2)
        order = OrderService.create_order(store, customer_user)
        content = build_workbook({'Products': [['Name', 'Price'], ['Ladder', 30]]})

        ExcelService.import_workbook(store, content, ['products'])

        assert not Product.objects.filter(pk=product.pk).exists()
        assert OrderItem.objects.get(order=order).product_id == product.id

        OrderService.update_status(order, 'cancelled', admin_user)
        assert Product.objects_with_deleted.get(pk=product.pk).stock == 10

    def test_reimport_revives_soft_deleted_row(self, store, product):
        content = ExcelService.export_workbook(store, ['products'])
        product.delete()

        ExcelService.import_workbook(store, content, ['products'])

        assert Product.objects.get(pk=product.pk).name == 'Cordless Drill'

    def test_category_round_trip_keeps_product_category(self, store, product, category):
        content = ExcelService.export_workbook(store, ['categories'])

        ExcelService.import_workbook(store, content, ['categories'])

        product.refresh_from_db()
        assert product.category_id == category.id
        assert Category.objects.get(pk=category.id).deleted_at is None

    def test_id_owned_by_other_store_is_replaced(self, store, other_store, product):
        content = ExcelService.export_workbook(store, ['products'])

        ExcelService.import_workbook(other_store, content, ['products'])

        copy = Product.objects.for_store(other_store).get()
        assert copy.id != product.id
        assert Product.objects.get(pk=product.pk).store_id == store.id

    def test_users_upserted(self, store, customer_user, admin_user):
        content = build_workbook({
            'Users': [
                ['ID', 'Email', 'First Name', 'Phone', 'Role', 'Is Active'],
                [str(customer_user.id), 'ignored@example.com', 'Caroline', '+97311111111', 'Manager', 'true'],
                [None, 'new.person@example.com', 'Nina', None, None, None],
                [None, 'ghost@example.com', None, None, 'Wizard', None],
            ],
        })

        result = ExcelService.import_workbook(store, content, ['users'], actor=admin_user)

        assert result['imported'] == {'users': {'created': 2, 'updated': 1}}
        assert result['errors'] == [{'sheet': 'users', 'row': 4, 'error': "Role 'Wizard' not found"}]

        customer_user.refresh_from_db()
        assert customer_user.first_name == 'Caroline'
        assert customer_user.email == 'customer@test-store.com'
        membership = StoreMembership.objects.get(store=store, user=customer_user)
        assert [r.name for r in RBACService.get_membership_roles(membership)] == ['Manager']

        newcomer = User.objects.get(email='new.person@example.com')
        assert newcomer.has_usable_password() is False
        assert newcomer.check_password('') is False
        new_membership = StoreMembership.objects.get(store=store, user=newcomer)
        assert [r.name for r in RBACService.get_membership_roles(new_membership)] == ['Customer']

    def test_existing_password_untouched(self, store, customer_user):
        password_hash = customer_user.password_hash
        content = build_workbook({'Users': [['Email', 'Last Name'], ['customer@test-store.com', 'Shopper']]})

        ExcelService.import_workbook(store, content, ['users'])

        customer_user.refresh_from_db()
        assert customer_user.password_hash == password_hash
        assert customer_user.last_name == 'Shopper'
