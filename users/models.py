from datetime import timedelta

from django.conf import settings
from django.contrib.auth.models import AbstractBaseUser, BaseUserManager, PermissionsMixin
from django.db import models
from django.utils import timezone

from common.choices import CalendarProvider
from common.fields import EncryptedTextField

# Tokens expiring inside this window are treated as already expired.
TOKEN_REFRESH_MARGIN = timedelta(minutes=5)


# ================= Custom User =================
class UserManager(BaseUserManager):
    def create_user(self, email, password=None, **extra_fields):
        if not email:
            raise ValueError('An email address is required')
        email = self.normalize_email(email)
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('is_active', True)
        return self.create_user(email, password, **extra_fields)


class User(AbstractBaseUser, PermissionsMixin):
    email = models.EmailField(unique=True)
    name = models.CharField(max_length=150, blank=True)
    is_active = models.BooleanField(default=True)
    is_staff = models.BooleanField(default=False)
    date_joined = models.DateTimeField(default=timezone.now)

    objects = UserManager()

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = []

    def __str__(self):
        return self.email

    def get_full_name(self):
        return self.name or self.email

    def get_short_name(self):
        return self.name.split(" ")[0] if self.name else self.email


# ================= OAuth credentials =================
class OAuthToken(models.Model):
    """OAuth credential stored per user and provider for calendar integrations.

    A row survives a disconnect with its token fields nulled, so that
    ``is_connected`` is the single source of truth for the connection state.
    """

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="oauth_tokens")
    provider = models.CharField(max_length=50, choices=CalendarProvider.choices, default=CalendarProvider.GOOGLE)
    access_token = EncryptedTextField(blank=True, null=True)
    refresh_token = EncryptedTextField(blank=True, null=True)
    scope = models.CharField(max_length=255, blank=True)
    token_type = models.CharField(max_length=50, blank=True)
    expires_at = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        unique_together = ("user", "provider")
        ordering = ("user", "provider")

    def __str__(self):
        return f"{self.user_id} | {self.provider}"

    @property
    def is_connected(self):
        return bool(self.access_token and self.refresh_token)

    @property
    def is_expired(self):
        return bool(self.expires_at and self.expires_at <= timezone.now())

    def needs_refresh(self, now=None, margin=TOKEN_REFRESH_MARGIN):
        now = now or timezone.now()
        return self.expires_at is None or self.expires_at < now + margin

    def mark_refreshed(
        self,
        expires_in=None,
        access_token=None,
        refresh_token=None,
        scope=None,
        token_type=None,
        expires_at=None,
        now=None,
    ):
        update_fields = ["updated_at"]
        if access_token is not None:
            self.access_token = access_token
            update_fields.append("access_token")
        if refresh_token:
            self.refresh_token = refresh_token
            update_fields.append("refresh_token")
        if scope is not None:
            self.scope = scope
            update_fields.append("scope")
        if token_type is not None:
            self.token_type = token_type
            update_fields.append("token_type")
        if expires_in is not None:
            self.expires_at = (now or timezone.now()) + timedelta(seconds=int(expires_in))
            update_fields.append("expires_at")
        elif expires_at is not None:
            self.expires_at = expires_at
            update_fields.append("expires_at")
        self.save(update_fields=update_fields)

    def disconnect(self):
        self.access_token = None
        self.refresh_token = None
        self.expires_at = None
        self.save(update_fields=["access_token", "refresh_token", "expires_at", "updated_at"])
