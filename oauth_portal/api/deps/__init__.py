from oauth_portal.api.deps.auth import (
    get_current_session,
    get_current_user,
    get_optional_user,
    get_session_record,
    require_provider,
)

__all__ = [
    "get_current_session",
    "get_current_user",
    "get_optional_user",
    "get_session_record",
    "require_provider",
]
