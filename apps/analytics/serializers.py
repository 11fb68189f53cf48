"""
Serializers for analytics API endpoints.
"""
from rest_framework import serializers


class AdminStatsSerializer(serializers.Serializer):
    """Headline numbers for the admin dashboard."""
    revenue = serializers.DecimalField(max_digits=14, decimal_places=2)
    orders = serializers.IntegerField()
    products = serializers.IntegerField()
    total_stock = serializers.IntegerField()
    users = serializers.IntegerField()
    pending_approvals = serializers.IntegerField()
