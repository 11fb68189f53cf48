"""
Django admin configuration for payments.
"""
from django.contrib import admin
from .models import PaymentTransaction


@admin.register(PaymentTransaction)
class PaymentTransactionAdmin(admin.ModelAdmin):
    list_display = ['transaction_id', 'provider', 'status', 'amount', 'currency', 'store', 'created_at']
    list_filter = ['provider', 'status', 'store']
    search_fields = ['transaction_id']
    readonly_fields = ['raw_payload', 'customer_info']
