"""Login for the mobile client: email + password in, User out."""

import logging

from django.contrib.auth import get_user_model
from django.utils import timezone

from .exceptions import InvalidCredentialsError, InactiveAccountError

User = get_user_model()

logger = logging.getLogger(__name__)

# Same message for unknown email and wrong password
CREDENTIALS_MESSAGE = "Invalid email or password"


def normalize_login_email(email: str) -> str:
    """Emails are stored lowercased at signup; match that form."""
    return User.objects.normalize_email(email.strip()).lower()


def authenticate_user(*, email: str, password: str) -> User:
    """
    Check credentials and stamp ``last_login``.

    An unknown email still runs the password hasher once, so both failure
    paths take about the same time.

    Raises:
        InvalidCredentialsError: Unknown email or wrong password
        InactiveAccountError: Correct credentials on a deactivated account
    """
    user = User.objects.filter(email=normalize_login_email(email)).first()

    if user is None:
        User().set_password(password)
        logger.warning("Login failed for unknown email")
        raise InvalidCredentialsError(CREDENTIALS_MESSAGE)

    if not user.check_password(password):
        logger.warning("Login failed for user %s", user.id)
        raise InvalidCredentialsError(CREDENTIALS_MESSAGE)

    if not user.is_active:
        logger.warning("Login refused for deactivated user %s", user.id)
        raise InactiveAccountError("Account is deactivated")

    user.last_login = timezone.now()
    User.objects.filter(pk=user.pk).update(last_login=user.last_login)

    logger.info("User %s logged in", user.id)
    return user
