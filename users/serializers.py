from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from rest_framework import serializers

from .models import OAuthToken

User = get_user_model()


class RegisterSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True, min_length=8)

    class Meta:
        model = User
        fields = ['id', 'email', 'name', 'password']
        read_only_fields = ['id']

    def validate_email(self, value):
        if User.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError('A user with this email already exists.')
        return value

    def validate_password(self, value):
        validate_password(value)
        return value

    def create(self, validated_data):
        return User.objects.create_user(**validated_data)


class UserSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ['id', 'email', 'name', 'is_active', 'date_joined']
        read_only_fields = ['id', 'email', 'is_active', 'date_joined']


class OAuthTokenSerializer(serializers.ModelSerializer):
    """Public view of a stored credential. Secrets are never serialized."""

    connected = serializers.SerializerMethodField()
    is_expired = serializers.SerializerMethodField()

    class Meta:
        model = OAuthToken
        fields = [
            'provider',
            'scope',
            'token_type',
            'expires_at',
            'connected',
            'is_expired',
            'updated_at',
        ]
        read_only_fields = fields

    def get_connected(self, obj):
        return obj.is_connected

    def get_is_expired(self, obj):
        return obj.is_expired
