from rest_framework.throttling import SimpleRateThrottle


class ClientIPRateThrottle(SimpleRateThrottle):
    """Throttle public forms per client address, signed in or not"""

    def get_cache_key(self, request, view):
        return self.cache_format % {
            'scope': self.scope,
            'ident': self.get_ident(request),
        }


class EnquiryRateThrottle(ClientIPRateThrottle):
    scope = 'enquiry'


class NewsletterRateThrottle(ClientIPRateThrottle):
    scope = 'newsletter'


class LoginRateThrottle(ClientIPRateThrottle):
    scope = 'login'


class PasswordResetRateThrottle(ClientIPRateThrottle):
    scope = 'password_reset'
