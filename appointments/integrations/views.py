"""Views for the calendar OAuth flow, integration settings and export."""

from __future__ import annotations

from urllib.parse import urlencode

from django.conf import settings
from django.http import HttpResponseRedirect

from rest_framework import permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView

from appointments.models import CalendarIntegration
from users.models import OAuthToken
from users.serializers import OAuthTokenSerializer

from .connection import complete_authorization, disconnect_account
from .converters import ExportOptions
from .exceptions import CalendarIntegrationError
from .exporter import export_appointments
from .oauth import OAuthIntegrationError, build_state_for_user, get_oauth_client
from .serializers import CalendarExportSerializer, CalendarIntegrationSerializer
from .tokens import get_connected_token, refresh_access_token


def _integration_error_response(exc: CalendarIntegrationError) -> Response:
    return Response(exc.as_response_data(), status=exc.status_code)


class CalendarOAuthStartView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, provider):
        try:
            client = get_oauth_client(provider)
        except OAuthIntegrationError as exc:
            return Response({"detail": str(exc), "code": exc.code}, status=status.HTTP_400_BAD_REQUEST)

        state = build_state_for_user(request.user, provider)
        authorization_url = client.build_authorization_url(state)
        if request.query_params.get("redirect") in ("1", "true"):
            return HttpResponseRedirect(authorization_url)
        return Response(
            {
                "authorization_url": authorization_url,
                "state": state,
                "redirect_uri": client.redirect_uri,
                "provider": provider,
            },
            status=status.HTTP_200_OK,
        )


class CalendarOAuthCallbackView(APIView):
    permission_classes = [permissions.AllowAny]
    authentication_classes = []

    def get(self, request, provider):
        try:
            token = complete_authorization(
                provider,
                code=request.query_params.get("code"),
                state=request.query_params.get("state"),
                error=request.query_params.get("error"),
            )
        except OAuthIntegrationError as exc:
            return self._render_error(provider, exc)

        context = {
            "detail": "Google Calendar connected successfully.",
            "provider": provider,
            "token": OAuthTokenSerializer(token).data,
            "success": True,
        }
        return self._render(context, {"success": "google_connected"}, status.HTTP_200_OK)

    def _render_error(self, provider, exc: OAuthIntegrationError):
        context = {
            "detail": str(exc),
            "code": exc.code,
            "provider": provider,
            "success": False,
        }
        return self._render(context, {"error": exc.code}, status.HTTP_400_BAD_REQUEST)

    def _render(self, context, redirect_params, http_status):
        # Browser flows land back on the frontend settings page when one is configured.
        complete_url = getattr(settings, "CALENDAR_OAUTH_COMPLETE_URL", "")
        if complete_url:
            return HttpResponseRedirect(f"{complete_url}?{urlencode(redirect_params)}")
        return Response(context, status=http_status)


class CalendarOAuthRefreshView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, provider):
        try:
            token = get_connected_token(request.user, provider)
            refresh_access_token(token)
        except CalendarIntegrationError as exc:
            return _integration_error_response(exc)

        token.refresh_from_db()
        return Response({"detail": "Token refreshed successfully.", "token": OAuthTokenSerializer(token).data})


class CalendarOAuthStatusView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, provider):
        token = OAuthToken.objects.filter(user=request.user, provider=provider).first()
        if not token or not token.is_connected:
            return Response({"connected": False, "provider": provider})

        data = OAuthTokenSerializer(token).data
        data.update(
            {
                "needs_refresh": token.needs_refresh(),
                "can_refresh": bool(token.refresh_token),
            }
        )
        return Response(data)


class CalendarSettingsView(APIView):
    """Read, upsert or drop (disconnect) the user's calendar integration."""

    permission_classes = [permissions.IsAuthenticated]
    provider = "google"

    def get(self, request):
        token = OAuthToken.objects.filter(user=request.user, provider=self.provider).first()
        integration = CalendarIntegration.objects.filter(user=request.user).first()
        return Response(
            {
                "connected": bool(token and token.is_connected),
                "token_expiry": token.expires_at if token else None,
                "settings": CalendarIntegrationSerializer(integration).data if integration else None,
            }
        )

    def put(self, request):
        integration, _ = CalendarIntegration.objects.get_or_create(user=request.user)
        serializer = CalendarIntegrationSerializer(integration, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response(
            {"settings": serializer.data, "detail": "Calendar settings updated successfully"},
            status=status.HTTP_200_OK,
        )

    def delete(self, request):
        disconnect_account(request.user, self.provider)
        return Response({"detail": "Google Calendar disconnected successfully"}, status=status.HTTP_200_OK)


class CalendarExportView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        serializer = CalendarExportSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        appointment_ids = data.pop("appointment_ids")

        integration = CalendarIntegration.objects.filter(user=request.user).first() or CalendarIntegration()
        options = ExportOptions.from_integration(integration, time_zone=settings.TIME_ZONE, **data)

        try:
            summary = export_appointments(request.user, appointment_ids, options)
        except CalendarIntegrationError as exc:
            return _integration_error_response(exc)

        return Response(
            {
                "results": [result.as_dict() for result in summary.results],
                "message": summary.message,
            },
            status=status.HTTP_200_OK,
        )


__all__ = [
    "CalendarOAuthStartView",
    "CalendarOAuthCallbackView",
    "CalendarOAuthRefreshView",
    "CalendarOAuthStatusView",
    "CalendarSettingsView",
    "CalendarExportView",
]
