"""
Tests for slider images and image uploads.
"""
import pytest
from django.core.files.uploadedfile import SimpleUploadedFile

from apps.core.exceptions import NotFoundError, ValidationError
from apps.tenants.models import SliderImage
from apps.tenants.services import SliderService, MediaUploadService

PNG_BYTES = (
    b'\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01\x08\x06'
    b'\x00\x00\x00\x1f\x15\xc4\x89\x00\x00\x00\rIDATx\x9cc\xf8\x0f\x00\x00\x01\x01'
    b'\x00\x05\x18\xd8N\x00\x00\x00\x00IEND\xaeB`\x82'
)


@pytest.fixture
def media_root(settings, tmp_path):
    settings.MEDIA_ROOT = str(tmp_path)
    return tmp_path


@pytest.mark.django_db
class TestSliderService:

    def test_active_images_in_sort_order(self, store):
        SliderService.create_image(store, {'image_url': '/uploads/b.jpg', 'sort_order': 2})
        SliderService.create_image(store, {'image_url': '/uploads/a.jpg', 'sort_order': 1})
        SliderService.create_image(store, {'image_url': '/uploads/off.jpg', 'is_active': False})

        urls = [image.image_url for image in SliderService.active_images(store)]

        assert urls == ['/uploads/a.jpg', '/uploads/b.jpg']
        assert SliderService.list_images(store).count() == 3

    def test_image_url_required(self, store):
        with pytest.raises(ValidationError):
            SliderService.create_image(store, {'title': 'No picture'})

    def test_update_and_delete(self, store):
        image = SliderService.create_image(store, {'image_url': '/uploads/a.jpg'})

        updated = SliderService.update_image(store, image.id, {'title': 'Summer sale'})
        assert updated.title == 'Summer sale'

        SliderService.delete_image(store, image.id)
        assert not SliderImage.objects.filter(pk=image.pk).exists()

    def test_other_store_image_not_found(self, store, other_store):
        image = SliderService.create_image(store, {'image_url': '/uploads/a.jpg'})

        with pytest.raises(NotFoundError):
            SliderService.get_image(other_store, image.id)


@pytest.mark.django_db
class TestSliderAPI:

    def test_public_active_list(self, auth_client, store):
        SliderService.create_image(store, {'image_url': '/uploads/a.jpg', 'title': 'Hero'})

        response = auth_client(store=store).get('/v1/slider-images/active')

        assert response.status_code == 200
        assert [image['title'] for image in response.data] == ['Hero']

    def test_admin_crud(self, auth_client, store, admin_user):
        client = auth_client(admin_user, store)

        created = client.post('/v1/slider-images', {'image_url': '/uploads/a.jpg', 'sort_order': 3}, format='json')
        assert created.status_code == 201

        image_id = created.data['id']
        patched = client.patch(f'/v1/slider-images/{image_id}', {'is_active': False}, format='json')
        assert patched.status_code == 200
        assert patched.data['is_active'] is False

        assert client.get('/v1/slider-images').status_code == 200
        assert client.delete(f'/v1/slider-images/{image_id}').status_code == 204
        assert client.delete(f'/v1/slider-images/{image_id}').status_code == 404

    def test_customer_cannot_create(self, auth_client, store, customer_user):
        response = auth_client(customer_user, store).post(
            '/v1/slider-images', {'image_url': '/uploads/a.jpg'}, format='json'
        )

        assert response.status_code == 403


@pytest.mark.django_db
class TestMediaUpload:

    def test_save_image(self, store, media_root):
        upload = SimpleUploadedFile('drill.png', PNG_BYTES, content_type='image/png')

        url = MediaUploadService.save_image(store, upload)

        assert url.endswith('.png')
        assert f'uploads/{store.slug}/' in url
        assert list((media_root / 'uploads' / store.slug).iterdir())

    def test_rejects_non_image(self, store, media_root):
        upload = SimpleUploadedFile('notes.txt', b'hello', content_type='text/plain')

        with pytest.raises(ValidationError):
            MediaUploadService.save_image(store, upload)

    def test_rejects_oversized(self, store, media_root, settings):
        settings.IMAGE_UPLOAD_MAX_BYTES = 10
        upload = SimpleUploadedFile('big.png', PNG_BYTES, content_type='image/png')

        with pytest.raises(ValidationError):
            MediaUploadService.save_image(store, upload)

    def test_upload_api(self, auth_client, store, admin_user, media_root):
        upload = SimpleUploadedFile('logo.png', PNG_BYTES, content_type='image/png')

        response = auth_client(admin_user, store).post('/v1/media/upload', {'image': upload}, format='multipart')

        assert response.status_code == 201
        assert response.data['image_url'].endswith('.png')

    def test_upload_api_without_file(self, auth_client, store, admin_user, media_root):
        response = auth_client(admin_user, store).post('/v1/media/upload', {}, format='multipart')

        assert response.status_code == 400
