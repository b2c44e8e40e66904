from django.db import connection
from django.http import JsonResponse


def health_check(request):
    """Liveness check; also touches the database."""
    with connection.cursor() as cursor:
        cursor.execute('SELECT 1')
    return JsonResponse({'status': 'ok'})


def error_404(request, exception):
    """Custom 404 handler."""
    return JsonResponse({
        'status': 'error',
        'code': 'not_found',
        'error': 'Not found',
    }, status=404)


def error_500(request):
    """Custom 500 handler."""
    return JsonResponse({
        'status': 'error',
        'code': 'server_error',
        'error': 'Internal server error',
    }, status=500)
