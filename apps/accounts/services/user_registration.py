"""User registration service."""

import logging

from django.db import transaction, IntegrityError
from django.contrib.auth import get_user_model

from .exceptions import UserRegistrationError

User = get_user_model()

logger = logging.getLogger(__name__)


@transaction.atomic
def register_user(
    *,
    email: str,
    password: str,
    name: str = ""
) -> User:
    """
    Register a new user.

    Args:
        email: User's email address (login)
        password: User's password (will be hashed)
        name: Optional display name

    Returns:
        Created User instance

    Raises:
        UserRegistrationError: If the email is already registered
    """
    email = User.objects.normalize_email(email).lower()

    if User.objects.filter(email__iexact=email).exists():
        raise UserRegistrationError("A user with this email already exists")

    try:
        user = User.objects.create_user(
            email=email,
            password=password,
            name=name
        )
    except IntegrityError as e:
        raise UserRegistrationError("A user with this email already exists") from e

    logger.info("Registered user %s", user.id)
    return user
