"""
URL configuration for store settings, themes, slider images and uploads.
"""
from django.urls import path
from apps.tenants import views

urlpatterns = [
    path('settings', views.SiteSettingsView.as_view(), name='site-settings'),
    path('settings/themes', views.ThemeListView.as_view(), name='theme-list'),
    path('settings/themes/apply', views.ApplyThemeView.as_view(), name='theme-apply'),
    path('settings/email/test', views.TestEmailView.as_view(), name='email-test'),
    path('settings/email/status', views.EmailStatusView.as_view(), name='email-status'),

    path('slider-images', views.SliderImageListView.as_view(), name='slider-image-list'),
    path('slider-images/active', views.ActiveSliderImageView.as_view(), name='slider-image-active'),
    path('slider-images/<uuid:image_id>', views.SliderImageDetailView.as_view(), name='slider-image-detail'),

    path('media/upload', views.ImageUploadView.as_view(), name='media-upload'),
]
