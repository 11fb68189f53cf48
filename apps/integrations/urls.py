"""
Payment URL configuration.
"""
from django.urls import path
from . import views

app_name = 'integrations'

GATEWAY = '<str:provider>'

urlpatterns = [
    path('stripe/payment-intent', views.StripePaymentIntentView.as_view(), name='stripe-payment-intent'),
    path('cash-on-delivery', views.CashOnDeliveryView.as_view(), name='cash-on-delivery'),
    path(f'{GATEWAY}/create', views.GatewayPaymentCreateView.as_view(), name='gateway-create'),
    path(
        f'{GATEWAY}/verify/<str:transaction_id>',
        views.GatewayPaymentVerifyView.as_view(),
        name='gateway-verify',
    ),
    path(f'{GATEWAY}/webhook', views.GatewayWebhookView.as_view(), name='gateway-webhook'),
]
