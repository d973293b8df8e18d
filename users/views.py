"""Token endpoints for the storefront API.

Sign-up and profile flows live with the identity provider; this service only
exchanges credentials for JWTs and refreshes them.
"""

from drf_spectacular.utils import extend_schema
from rest_framework.throttling import ScopedRateThrottle
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from .logging import log_auth_event
from .serializers import IdentifierTokenObtainPairSerializer


class SignInView(TokenObtainPairView):
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "signin"
    serializer_class = IdentifierTokenObtainPairSerializer

    @extend_schema(tags=["Auth Endpoints"], summary="Sign in")
    def post(self, request, *args, **kwargs):
        resp = super().post(request, *args, **kwargs)
        log_auth_event("signin", request, status="success" if resp.status_code == 200 else "failed")
        return resp


class RefreshView(TokenRefreshView):
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "token_refresh"

    @extend_schema(tags=["Auth Endpoints"], summary="Refresh access token")
    def post(self, request, *args, **kwargs):
        resp = super().post(request, *args, **kwargs)
        log_auth_event("token_refresh", request, status="success" if resp.status_code == 200 else "failed")
        return resp
