"""
Django admin site branding for the Storefront API.
"""
from django.contrib import admin


admin.site.site_header = "Storefront Administration"
admin.site.site_title = "Storefront Admin"
admin.site.index_title = "Store back office"
