"""Custom middleware for the Course Admin API."""
import logging
import traceback

from user.models import ErrorLog

logger = logging.getLogger('courseadmin.middleware')


class ErrorLoggingMiddleware:
    """
    Record unhandled exceptions server-side.
    
    The stack trace goes to the log and to the ErrorLog table; the client
    only receives the generic 500 response produced by Django.
    """
    
    def __init__(self, get_response):
        self.get_response = get_response
    
    def __call__(self, request):
        return self.get_response(request)
    
    def process_exception(self, request, exception):
        stack = ''.join(traceback.format_exception(type(exception), exception, exception.__traceback__))
        logger.error(f"Unhandled error on {request.method} {request.path}: {exception}\n{stack}")
        
        user = getattr(request, 'user', None)
        try:
            ErrorLog.objects.create(
                error_message=str(exception)[:1000] or exception.__class__.__name__,
                error_stack=stack,
                user=user if user is not None and user.is_authenticated else None,
                request_path=request.path[:500],
                request_method=request.method,
            )
        except Exception as e:
            logger.error(f"Failed to persist error log for {request.path}: {str(e)}")
        return None
