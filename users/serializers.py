"""Serializers for token sign-in."""

from django.contrib.auth import get_user_model
from rest_framework import serializers
from rest_framework_simplejwt.tokens import RefreshToken

User = get_user_model()


class IdentifierTokenObtainPairSerializer(serializers.Serializer):
    """Obtain JWTs with either an email address or a username.

    Identifiers containing `@` are treated as (case-insensitive) email.
    """

    identifier = serializers.CharField()
    password = serializers.CharField(write_only=True)

    def validate(self, attrs):
        identifier = (attrs.get("identifier") or "").strip()
        password = attrs.get("password") or ""

        if "@" in identifier:
            user = User.objects.filter(email=identifier.lower()).first()
        else:
            user = User.objects.filter(username=identifier).first()

        if not user or not user.is_active or not user.check_password(password):
            raise serializers.ValidationError({"detail": "Invalid credentials."})

        refresh = RefreshToken.for_user(user)
        return {"access": str(refresh.access_token), "refresh": str(refresh)}
