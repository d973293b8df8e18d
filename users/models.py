"""Custom user model.

Accounts are managed outside this service's scope; the model exists so
carts and orders can reference their owner, and so staff users can be told
apart from customers (`is_staff` grants administrator access to order
back-office endpoints).
"""

from django.contrib.auth.models import AbstractUser
from django.core.validators import RegexValidator
from django.db import models


class User(AbstractUser):
    """User with a unique, normalized email and optional phone."""

    email = models.EmailField(unique=True)
    phone = models.CharField(
        max_length=16,
        blank=True,
        validators=[RegexValidator(r"^\+?[1-9]\d{1,14}$", message="Use E.164 format (e.g., +821012345678)")],
    )

    def save(self, *args, **kwargs):
        if self.email:
            self.email = self.email.strip().lower()
        if self.phone:
            self.phone = self.phone.strip()
        super().save(*args, **kwargs)

    @property
    def display_name(self) -> str:
        full = self.get_full_name()
        return full or self.username
