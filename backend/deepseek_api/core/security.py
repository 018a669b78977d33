from typing import Optional
from deepseek_api.core.config import Settings
from deepseek_api.core.errors import Unauthorized
from deepseek_api.core.logging import setup_logger

logger = setup_logger()

def verify_api_key(authorization: Optional[str], settings: Settings) -> Optional[str]:
    """Check an ``Authorization`` header value against the configured secret.

    Runs before the request body is read, so unauthenticated callers never
    learn how their payload would have been validated.
    """
    # No configured secret means the unauthenticated deployment
    if not settings.API_KEY:
        return None
    if not authorization:
        logger.warning("Missing Authorization header")
        raise Unauthorized("Missing Authorization header", code="missing_api_key")
    scheme, _, secret = authorization.partition(" ")
    if scheme != "Bearer":
        logger.warning("Unsupported Authorization scheme")
        raise Unauthorized("Authorization header must use the Bearer scheme", code="invalid_api_key")
    if secret.encode() != settings.API_KEY.encode():
        logger.warning("Invalid API key")
        raise Unauthorized("Invalid API key", code="invalid_api_key")
    return secret
