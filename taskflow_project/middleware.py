import logging

from django.http import JsonResponse

logger = logging.getLogger('taskflow')


class ApiExceptionMiddleware:
    """Unhandled errors under /api/ are logged and answered with a JSON 500"""

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        return self.get_response(request)

    def process_exception(self, request, exception):
        if not request.path.startswith('/api/'):
            return None
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return JsonResponse({'success': False, 'error': 'Internal server error'}, status=500)
