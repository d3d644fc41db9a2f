"""OAuth token file shared with the setup script.

The file is a JSON object with ``access_token`` and ``refresh_token``.
Inoreader refresh tokens live for a year from issue; the file's
modification time is the issue time.
"""

import json
from pathlib import Path
from typing import Any

from rss_reader_service.logging_config import get_logger

logger = get_logger(__name__)


def token_file_path(configured: str) -> Path:
    return Path(configured).expanduser()


def read_token_file(path: Path) -> dict[str, Any]:
    """Parse the token file.

    Raises:
        FileNotFoundError: If the file does not exist
        OSError: If the file cannot be read
        ValueError: If the content is not a JSON object
    """
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError("Token file must contain a JSON object")
    return data


def load_tokens(path: Path) -> tuple[str | None, str | None]:
    """(access token, refresh token) from the file, or (None, None) when unusable."""
    try:
        data = read_token_file(path)
    except FileNotFoundError:
        return None, None
    except (OSError, ValueError) as e:
        logger.warning("token_file_unreadable", error=str(e))
        return None, None
    return data.get("access_token") or None, data.get("refresh_token") or None
