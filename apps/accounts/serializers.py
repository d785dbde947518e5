from rest_framework import serializers
from django.contrib.auth.password_validation import validate_password
from .models import User


class UserSerializer(serializers.ModelSerializer):
    """User body returned by signup, login and /auth/me."""

    createdAt = serializers.DateTimeField(source='created_at', read_only=True)

    class Meta:
        model = User
        fields = ['id', 'email', 'name', 'createdAt']
        read_only_fields = fields


class SignupSerializer(serializers.Serializer):
    """Serializer for user registration."""

    email = serializers.EmailField(required=True, max_length=255)
    password = serializers.CharField(
        write_only=True,
        required=True,
        validators=[validate_password],
        style={'input_type': 'password'}
    )
    name = serializers.CharField(required=False, allow_blank=True, max_length=100, default='')


class LoginSerializer(serializers.Serializer):
    """Serializer for user login."""

    email = serializers.EmailField(required=True)
    password = serializers.CharField(
        required=True,
        write_only=True,
        style={'input_type': 'password'}
    )
