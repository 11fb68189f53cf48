"""
URL configuration for catalog app.
"""
from django.urls import path
from apps.catalog.views import (
    ProductListView, FeaturedProductListView, ProductDetailView,
    CategoryListView, CategoryDetailView, CategoryProductListView,
    UnitOfMeasureListView, ActiveUnitOfMeasureListView, UnitOfMeasureDetailView,
)

app_name = 'catalog'

urlpatterns = [
    # Product endpoints
    path('products', ProductListView.as_view(), name='product-list'),
    path('products/featured', FeaturedProductListView.as_view(), name='product-featured'),
    path('products/<uuid:product_id>', ProductDetailView.as_view(), name='product-detail'),

    # Category endpoints
    path('categories', CategoryListView.as_view(), name='category-list'),
    path('categories/<uuid:category_id>', CategoryDetailView.as_view(), name='category-detail'),
    path('categories/<uuid:category_id>/products', CategoryProductListView.as_view(), name='category-products'),

    # Units of measure
    path('units-of-measure', UnitOfMeasureListView.as_view(), name='unit-list'),
    path('units-of-measure/active', ActiveUnitOfMeasureListView.as_view(), name='unit-active'),
    path('units-of-measure/<uuid:unit_id>', UnitOfMeasureDetailView.as_view(), name='unit-detail'),
]
