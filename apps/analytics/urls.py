"""
Analytics API URL configuration.
"""
from django.urls import path
from apps.analytics import views

app_name = 'analytics'

urlpatterns = [
    path('stats', views.AdminStatsView.as_view(), name='admin-stats'),
]
