"""
Django admin configuration for catalog app.
"""
from django.contrib import admin
from .models import Product, Category, UnitOfMeasure


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ['name', 'store', 'created_at']
    list_filter = ['store']
    search_fields = ['name']


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ['name', 'store', 'category', 'price', 'stock', 'product_type', 'is_active', 'is_featured']
    list_filter = ['store', 'product_type', 'is_active', 'is_featured']
    search_fields = ['name', 'sku']


admin.site.register(UnitOfMeasure)
