"""
Email-based authentication backend.
"""

import logging

from django.contrib.auth import get_user_model
from django.contrib.auth.backends import ModelBackend

User = get_user_model()
logger = logging.getLogger(__name__)


class EmailBackend(ModelBackend):
    """
    Authenticate marketplace users by email address and password.

    Lookups are case-insensitive. Inactive accounts are refused the same way
    as wrong passwords.
    """

    def authenticate(self, request, username=None, password=None, email=None, **kwargs):
        """
        Authenticate user using email instead of username.

        Args:
            request: HTTP request object
            username: Email address (named username for compatibility)
            password: User password
            email: Email address

        Returns:
            User object if authentication successful, None otherwise
        """
        email = email or username or kwargs.get(User.USERNAME_FIELD)

        if email is None or password is None:
            return None

        try:
            user = User.objects.get(email__iexact=email.strip())
        except User.DoesNotExist:
            # Run the default password hasher once to reduce the timing
            # difference between an existing and a nonexistent user
            User().set_password(password)
            return None

        if user.check_password(password) and self.user_can_authenticate(user):
            return user

        logger.debug(f"Email authentication refused for user {user.pk}")
        return None
