"""
Rate limits for the account endpoints.

Counters live in the default cache (Redis in production), so limits hold
across worker processes. Rates come from DEFAULT_THROTTLE_RATES.
"""

from rest_framework.throttling import SimpleRateThrottle


class ClientIPThrottle(SimpleRateThrottle):
    """Counts requests per client address, whether or not anyone is logged in."""

    def get_cache_key(self, request, view):
        return self.cache_format % {"scope": self.scope, "ident": self.get_ident(request)}


class AuthRateThrottle(ClientIPThrottle):
    # signup / login
    scope = "auth"


class SensitiveOperationThrottle(ClientIPThrottle):
    # OTP verification, password reset and change
    scope = "sensitive"


class OTPRateThrottle(SimpleRateThrottle):
    """Limits OTP emails per account, or per address for anonymous callers."""

    scope = "otp"

    def get_cache_key(self, request, view):
        ident = request.user.pk if request.user.is_authenticated else self.get_ident(request)
        return self.cache_format % {"scope": self.scope, "ident": ident}
