"""Application services."""

from oauth_portal.application.services.auth_service import AuthService

__all__ = ["AuthService"]
