"""
Analytics API views.
"""
from rest_framework.views import APIView
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema

from apps.core.permissions import requires_scopes, HasStoreScopes
from apps.analytics.services import StatsService
from apps.analytics.serializers import AdminStatsSerializer


@requires_scopes('reports:stats')
class AdminStatsView(APIView):
    """GET /v1/admin/stats"""

    permission_classes = [HasStoreScopes]

    @extend_schema(
        tags=['Analytics'],
        summary='Dashboard statistics',
        description='Revenue excludes cancelled orders. `users` counts store members.',
        responses={200: AdminStatsSerializer},
    )
    def get(self, request):
        stats = StatsService.get_stats(request.store)
        return Response(AdminStatsSerializer(stats).data)
