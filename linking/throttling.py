"""
Rate limiting for the link suggestion endpoint.
"""
import re

from rest_framework.throttling import SimpleRateThrottle

_RATE_PATTERN = re.compile(r'^\s*(\d+)\s*/\s*(\d*)\s*([smhd])\w*\s*$', re.IGNORECASE)
_PERIOD_SECONDS = {'s': 1, 'm': 60, 'h': 3600, 'd': 86400}


class LinkSuggestionRateThrottle(SimpleRateThrottle):
    """
    Per-caller rolling window: the authenticated user id, else the client IP.
    Rates accept a multiplier on the period, e.g. ``25/10m``.
    """
    scope = 'link_suggestions'

    def get_cache_key(self, request, view):
        if request.user and request.user.is_authenticated:
            ident = request.user.pk
        else:
            ident = self.get_ident(request)
        return self.cache_format % {'scope': self.scope, 'ident': ident}

    def parse_rate(self, rate):
        if rate is None:
            return (None, None)
        match = _RATE_PATTERN.match(str(rate))
        if not match:
            raise ValueError(f"Invalid throttle rate: {rate!r}")
        num_requests, multiplier, unit = match.groups()
        duration = int(multiplier or 1) * _PERIOD_SECONDS[unit.lower()]
        return (int(num_requests), duration)
