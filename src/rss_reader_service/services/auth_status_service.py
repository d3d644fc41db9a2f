"""Classification of the Inoreader OAuth tokens.

Tokens configured in the environment are taken as valid; their issue time
is unknown. Otherwise the token file decides: its modification time is the
issue time, tokens expire ``token_expiry_days`` after it and are reported
as expiring soon during the last ``token_expiry_warning_days``.
"""

from datetime import UTC, datetime

from rss_reader_service.config import settings
from rss_reader_service.inoreader.tokens import read_token_file, token_file_path
from rss_reader_service.logging_config import get_logger
from rss_reader_service.schemas.auth import AuthStatusResponse, TokenStatus
from rss_reader_service.utils import utc_now

logger = get_logger(__name__)


def _unauthenticated(status: TokenStatus, message: str, now: datetime) -> AuthStatusResponse:
    return AuthStatusResponse(
        authenticated=False,
        status=status,
        message=message,
        timestamp=now,
    )


def check_token_status(now: datetime | None = None) -> AuthStatusResponse:
    """Report whether the sync has usable Inoreader tokens."""
    now = now or utc_now()

    if settings.inoreader_access_token or settings.inoreader_refresh_token:
        return AuthStatusResponse(
            authenticated=True,
            status="valid",
            message="OAuth tokens are configured in the environment",
            timestamp=now,
        )

    if not settings.inoreader_token_file:
        return _unauthenticated("config_error", "Missing required configuration", now)

    path = token_file_path(settings.inoreader_token_file)
    try:
        data = read_token_file(path)
        modified = datetime.fromtimestamp(path.stat().st_mtime, UTC)
    except FileNotFoundError:
        return _unauthenticated("no_tokens", "OAuth token file not found", now)
    except ValueError:
        return _unauthenticated("invalid_format", "Token file contains invalid JSON", now)
    except OSError as e:
        # strerror keeps the file path out of the response
        logger.error("token_file_check_failed", error=str(e))
        return _unauthenticated("error", f"Unable to check token file: {e.strerror}", now)

    if not (data.get("access_token") or data.get("refresh_token")):
        return _unauthenticated("empty_tokens", "OAuth tokens are empty or missing", now)

    token_age = max(0, (now - modified).days)
    days_remaining = max(0, settings.token_expiry_days - token_age)

    if token_age >= settings.token_expiry_days:
        return AuthStatusResponse(
            authenticated=False,
            status="expired",
            message="OAuth tokens have expired",
            timestamp=now,
            token_age=token_age,
            days_remaining=0,
        )

    if days_remaining <= settings.token_expiry_warning_days:
        status: TokenStatus = "expiring_soon"
        message = f"OAuth tokens are expiring soon ({days_remaining} days remaining)"
    else:
        status = "valid"
        message = f"OAuth tokens are valid ({days_remaining} days remaining)"

    return AuthStatusResponse(
        authenticated=True,
        status=status,
        message=message,
        timestamp=now,
        token_age=token_age,
        days_remaining=days_remaining,
    )
