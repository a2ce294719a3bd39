"""
Custom middleware for silograph_backend.
"""
from django.middleware.common import CommonMiddleware


class APICommonMiddleware(CommonMiddleware):
    """
    CommonMiddleware that disables APPEND_SLASH for API routes.
    POST bodies are lost on a slash redirect, so /api/ paths are served as-is.
    """
    def should_redirect_with_slash(self, request):
        if request.path.startswith('/api/'):
            return False
        return super().should_redirect_with_slash(request)
