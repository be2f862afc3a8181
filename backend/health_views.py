import logging

from django.db import DatabaseError, connection
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

logger = logging.getLogger(__name__)


@csrf_exempt
@require_http_methods(["GET"])
def health_check(request):
    """Liveness check that also confirms the database answers"""
    try:
        with connection.cursor() as cursor:
            cursor.execute('SELECT 1')
        database = 'ok'
    except DatabaseError as e:
        logger.error(f"Health check database query failed: {e}")
        database = 'unavailable'

    healthy = database == 'ok'
    return JsonResponse({
        'status': 'healthy' if healthy else 'degraded',
        'message': 'CourseDig backend is running' if healthy else 'Database is unavailable',
        'database': database,
        'version': '1.0.0'
    }, status=200 if healthy else 503)
