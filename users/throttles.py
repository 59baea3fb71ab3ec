from rest_framework.throttling import SimpleRateThrottle


class RegistrationThrottle(SimpleRateThrottle):
    # rate comes from REST_FRAMEWORK['DEFAULT_THROTTLE_RATES']['register']
    scope = 'register'

    def get_cache_key(self, request, view):
        ip_addr = self.get_ident(request)
        email = (request.data.get('email') or '').lower()
        if email:
            return self.cache_format % {
                'scope': self.scope,
                'ident': f'{ip_addr}:{email}'
            }
        return self.cache_format % {
            'scope': self.scope,
            'ident': ip_addr
        }
