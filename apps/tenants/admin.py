"""
Django admin configuration for tenants app.
"""
from django.contrib import admin
from .models import Store, SiteSettings, SliderImage


@admin.register(Store)
class StoreAdmin(admin.ModelAdmin):
    list_display = ['name', 'slug', 'currency', 'status', 'created_at']
    list_filter = ['status']
    search_fields = ['name', 'slug']
    prepopulated_fields = {'slug': ('name',)}


@admin.register(SiteSettings)
class SiteSettingsAdmin(admin.ModelAdmin):
    list_display = ['store', 'site_name', 'theme', 'updated_at']
    exclude = ['smtp_password']


@admin.register(SliderImage)
class SliderImageAdmin(admin.ModelAdmin):
    list_display = ['title', 'store', 'sort_order', 'is_active']
    list_filter = ['store', 'is_active']
    ordering = ['store', 'sort_order']
