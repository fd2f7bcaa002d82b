"""Runtime settings for copyrc.

Resolves provider credentials and run tuning from CLI args, environment
variables, ``.env`` files, and the YAML ``flags`` section.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    GITHUB_TOKEN: API token for the GitHub provider (optional)
    COPYRC_API_URL: GitHub API base URL (optional, default: https://api.github.com)
    COPYRC_CONCURRENCY: Worker threads for async passes (optional, default: 4)
    COPYRC_TIMEOUT: HTTP read timeout in seconds (optional, default: 60)
    COPYRC_DEBUG: Enable debug logging (optional, default: false)
"""

import logging
import os
from dataclasses import dataclass
from urllib.parse import urlparse

from copyrc.providers.github import DEFAULT_API_URL

logger = logging.getLogger(__name__)


@dataclass
class Settings:
    github_token: str | None = None
    api_url: str = DEFAULT_API_URL
    concurrency: int = 4
    timeout: float = 60.0
    debug: bool = False


def validate_settings(settings: Settings) -> None:
    """Validate settings values and raise ValueError if invalid.

    Raises:
        ValueError: If the API URL or a numeric value is out of range.
    """
    settings.api_url = settings.api_url.strip()
    if not settings.api_url.startswith(("http://", "https://")):
        raise ValueError(
            f"Invalid API URL '{settings.api_url}': "
            "must start with http:// or https://"
        )
    if not urlparse(settings.api_url).hostname:
        raise ValueError(
            f"Invalid API URL '{settings.api_url}': "
            "URL must include a hostname"
        )
    settings.api_url = settings.api_url.removesuffix("/")

    if not 1 <= settings.concurrency <= 64:
        raise ValueError(
            f"Invalid concurrency {settings.concurrency}: "
            "must be a number between 1 and 64"
        )
    if settings.timeout <= 0:
        raise ValueError(
            f"Invalid timeout {settings.timeout}: must be greater than 0"
        )


def _get_bool_env(key: str) -> bool | None:
    """Return True/False from env var, or None if unset."""
    val = os.getenv(key)
    if val is None:
        return None
    return val.lower() in ("true", "1", "yes", "on")


def _get_number_env(key: str, cast, hint: str):
    raw = os.getenv(key)
    if raw is None:
        return None
    try:
        return cast(raw)
    except ValueError:
        raise ValueError(f"Invalid {key} '{raw}': {hint}") from None


def load_settings(
    token: str | None = None,
    api_url: str | None = None,
    concurrency: int | None = None,
    timeout: float | None = None,
    debug: bool = False,
    yaml_fallbacks: dict | None = None,
) -> Settings:
    """Load settings with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > yaml_fallbacks > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        token: Override GitHub token.
        api_url: Override API base URL.
        concurrency: Override worker count.
        timeout: Override HTTP read timeout.
        debug: Enable debug logging (CLI flag).
        yaml_fallbacks: Dict of values from the YAML ``flags`` section.

    Returns:
        Validated Settings instance.

    Raises:
        ValueError: If an env var holds a malformed value or a resolved
            value is out of range.
    """
    fb = yaml_fallbacks or {}

    final_token = token or os.getenv("GITHUB_TOKEN") or None
    final_api_url = api_url or os.getenv("COPYRC_API_URL") or DEFAULT_API_URL

    if concurrency is not None:
        final_concurrency = concurrency
    else:
        env_concurrency = _get_number_env(
            "COPYRC_CONCURRENCY", int, "must be a number between 1 and 64"
        )
        if env_concurrency is not None:
            final_concurrency = env_concurrency
        else:
            final_concurrency = int(fb.get("concurrency", 4))

    if timeout is not None:
        final_timeout = timeout
    else:
        env_timeout = _get_number_env(
            "COPYRC_TIMEOUT", float, "must be a number of seconds"
        )
        final_timeout = env_timeout if env_timeout is not None else 60.0

    if debug:
        final_debug = True
    else:
        env_debug = _get_bool_env("COPYRC_DEBUG")
        final_debug = env_debug if env_debug is not None else False

    settings = Settings(
        github_token=final_token,
        api_url=final_api_url,
        concurrency=final_concurrency,
        timeout=final_timeout,
        debug=final_debug,
    )
    validate_settings(settings)

    if settings.github_token is None:
        logger.debug("GITHUB_TOKEN not set; using unauthenticated requests")
    return settings
