from rest_framework.decorators import api_view
from rest_framework.response import Response

from ..responses import server_error
from ..services import StatsService
from ..serializers import ReviewerLoadSerializer, StatsSerializer


@api_view(['GET'])
def stats_overview(request):
    """
    GET /statistic - Общая статистика системы
    """
    try:
        stats = StatsService.get_review_stats()
        serializer = StatsSerializer(stats)
        return Response(serializer.data)

    except Exception:
        return server_error(request)


@api_view(['GET'])
def reviewer_load(request):
    """
    GET /analytics/pr - Количество назначений на ревью по пользователям
    """
    try:
        load = StatsService.get_reviewer_load()
        return Response({
            'stats': ReviewerLoadSerializer(load, many=True).data
        })

    except Exception:
        return server_error(request)
