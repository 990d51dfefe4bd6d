"""
Token persistence and client construction.

The token lifecycle is: register once with a one-time code, persist the
device token, refresh it into a user token, and reuse the saved file on
the next run. Writes are plain truncating writes, not atomic.
"""

import logging
import os
from pathlib import Path
from typing import Optional

from rm_client.client import RemarkableClient
from rm_client.errors import SETUP_HINT, TokenFileInvalid, TokenFileNotFound
from rm_client.models import Tokens

# Configuration - check env vars first, then fall back to the cache directory
REMARKABLE_TOKEN = os.environ.get("REMARKABLE_TOKEN")
REMARKABLE_DISCOVER_STORAGE = os.environ.get("REMARKABLE_DISCOVER_STORAGE", "").lower() in (
    "1",
    "true",
    "yes",
)

logger = logging.getLogger(__name__)


def get_cache_dir() -> Path:
    """Directory holding the token file."""
    override = os.environ.get("REMARKABLE_CACHE_DIR")
    if override:
        return Path(override).expanduser()
    xdg = os.environ.get("XDG_CACHE_HOME")
    base = Path(xdg).expanduser() if xdg else Path.home() / ".cache"
    return base / "rm-client"


def get_token_file() -> Path:
    return get_cache_dir() / "token"


def read_tokens(token_file: Optional[Path] = None) -> Tokens:
    """
    Load tokens from a token file.

    Raises:
        TokenFileNotFound: If the file does not exist
        TokenFileInvalid: If the file is empty or unparseable
    """
    token_file = Path(token_file) if token_file else get_token_file()
    if not token_file.exists():
        raise TokenFileNotFound(f"Token file not found: {token_file}\n{SETUP_HINT}")

    text = token_file.read_text()
    if not text.strip():
        raise TokenFileInvalid(f"Token file is empty: {token_file}\n{SETUP_HINT}")
    return Tokens.from_text(text)


def write_tokens(tokens: Tokens, token_file: Optional[Path] = None) -> Path:
    """Write tokens to the token file, readable only by the current user."""
    token_file = Path(token_file) if token_file else get_token_file()
    token_file.parent.mkdir(parents=True, exist_ok=True)

    fd = os.open(str(token_file), os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    try:
        os.write(fd, tokens.to_json().encode())
    finally:
        os.close(fd)
    logger.debug("Saved tokens to %s", token_file)
    return token_file


def register_and_get_token(one_time_code: str, token_file: Optional[Path] = None) -> str:
    """
    Register with reMarkable using a one-time code and return the token JSON.

    Get a code from: https://my.remarkable.com/device/desktop/connect
    """
    client = RemarkableClient.register(one_time_code)
    tokens = Tokens(device_token=client.device_token)
    write_tokens(tokens, token_file)
    return tokens.to_json()


def _load_tokens(token_file: Optional[Path]) -> Optional[Tokens]:
    if REMARKABLE_TOKEN:
        return Tokens.from_text(REMARKABLE_TOKEN)
    try:
        return read_tokens(token_file)
    except TokenFileNotFound:
        return None


def get_client(
    code: Optional[str] = None,
    token_file: Optional[Path] = None,
    refresh: bool = True,
    discover: Optional[bool] = None,
) -> RemarkableClient:
    """
    Build an authenticated client.

    Token sources, in order: REMARKABLE_TOKEN, the token file, then
    registration with ``code``. The refreshed tokens are written back to
    the token file so the next run can reuse them.
    """
    tokens = _load_tokens(token_file)

    if tokens is not None:
        client = RemarkableClient.from_tokens(tokens)
    elif code:
        client = RemarkableClient.register(code)
    else:
        raise TokenFileNotFound(
            "No reMarkable token found. Register first:\n"
            "  rm-client --register <code>\n\n"
            "Get a code from: https://my.remarkable.com/device/desktop/connect"
        )

    if refresh:
        client.refresh_token()
    if tokens is None or refresh:
        write_tokens(client.tokens, token_file)

    if discover is None:
        discover = REMARKABLE_DISCOVER_STORAGE
    if discover:
        client.discover_storage()
    return client
