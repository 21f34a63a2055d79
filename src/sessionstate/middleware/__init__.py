from .session import (
    SessionMiddleware,
    default_error_handler,
    get_session_scope,
    EXPIRED_COOKIE_DATE,
)

__all__ = [
    'SessionMiddleware',
    'default_error_handler',
    'get_session_scope',
    'EXPIRED_COOKIE_DATE',
]
