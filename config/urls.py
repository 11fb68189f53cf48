"""
URL configuration for the Storefront API.
"""
from django.conf import settings
from django.conf.urls.static import static
from django.contrib import admin
from django.urls import path, include
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView

urlpatterns = [
    path('admin/', admin.site.urls),

    # API Documentation
    path('schema/', SpectacularAPIView.as_view(), name='schema'),
    path('schema/swagger/', SpectacularSwaggerView.as_view(url_name='schema'), name='swagger-ui'),

    # API v1
    path('v1/', include('apps.core.urls')),

    # Authentication and profile
    path('v1/auth/', include('apps.rbac.urls_auth')),

    # Roles, permissions, store users, audit logs
    path('v1/', include('apps.rbac.urls')),

    # Site settings, themes, slider images, uploads, SMTP test
    path('v1/', include('apps.tenants.urls')),

    # Catalog: products, categories, units of measure
    path('v1/', include('apps.catalog.urls')),

    # Cart, wishlist, orders and the admin approval workflow
    path('v1/', include('apps.orders.urls')),

    # Payment gateways
    path('v1/payments/', include('apps.integrations.urls')),

    # Admin dashboard statistics
    path('v1/admin/', include('apps.analytics.urls')),

    # Excel import/export and database backup
    path('v1/admin/', include('apps.exchange.urls')),
]

if settings.DEBUG:
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
