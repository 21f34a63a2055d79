import base64
import secrets

from .errors import TokenGenerationError

TOKEN_BYTES = 32


def generate_token() -> str:
    """
    Return a new session token.

    The token is 256 bits from the OS CSPRNG encoded as unpadded URL-safe
    base64, which is always 43 characters long.

    Raises:
        TokenGenerationError: if the entropy source is unavailable
    """
    try:
        raw = secrets.token_bytes(TOKEN_BYTES)
    except (OSError, NotImplementedError) as e:
        raise TokenGenerationError(f"Could not read from entropy source: {e}") from e

    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")
