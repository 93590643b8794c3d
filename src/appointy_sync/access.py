"""Calendar token check."""

import hmac

from src.appointy_sync.errors import AccessDenied, ConfigurationMissing
from src.appointy_sync.logging import get_logger

log = get_logger(__name__)


def verify_token(provided: str | None, expected: str | None) -> None:
    """Check a caller's token against the configured one.

    Lengths must match before the constant-time comparison runs; a length
    mismatch is rejected straight away.

    Raises:
        ConfigurationMissing: No token is configured.
        AccessDenied: The token doesn't match.
    """
    if not expected:
        raise ConfigurationMissing("Calendar token not configured")

    provided_bytes = (provided or "").encode("utf-8")
    expected_bytes = expected.encode("utf-8")

    if len(provided_bytes) != len(expected_bytes):
        log.warning("token_rejected", reason="length")
        raise AccessDenied("Invalid token")

    if not hmac.compare_digest(provided_bytes, expected_bytes):
        log.warning("token_rejected", reason="mismatch")
        raise AccessDenied("Invalid token")
