"""Exceptions raised by the session manager and its collaborators."""


class SessionError(Exception):
    """Base class for every error raised by sessionstate."""


class TokenGenerationError(SessionError):
    """The OS entropy source could not produce a session token."""


class StoreError(SessionError):
    """A session store failed to find, commit, delete or list session data."""


class StoreTimeoutError(StoreError):
    """A session store call did not finish within the configured timeout."""


class CodecError(SessionError):
    """Session data could not be encoded to, or decoded from, bytes."""


class SessionNotLoadedError(SessionError, RuntimeError):
    """Session state was accessed before Manager.load() populated the scope."""


class UnsupportedStoreOperation(SessionError, NotImplementedError):
    """The configured store lacks a capability the caller asked for."""


__all__ = [
    "SessionError",
    "TokenGenerationError",
    "StoreError",
    "StoreTimeoutError",
    "CodecError",
    "SessionNotLoadedError",
    "UnsupportedStoreOperation",
]
