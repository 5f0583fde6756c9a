"""Centralized scheduler configuration.

Settings come from the process environment, optionally seeded from a
``.env`` file in the working directory:
    GOOGLE_CLIENT_ID        - OAuth client ID (required)
    GOOGLE_CLIENT_SECRET    - OAuth client secret (optional for PKCE public clients)
    GOOGLE_REDIRECT_URI     - Redirect URI registered for the client
    GOOGLE_REFRESH_TOKEN    - Process-wide refresh token override
    ENCRYPTION_KEY          - Base64-encoded 32-byte key for stored tokens
    CALENDAR_DATA_DIR       - Directory holding tokens.json and preferences.json
    DEMO_USER_ID            - Default user for the CLI
    GOOGLE_AUTH_PORT        - Port for the local OAuth callback listener

The .env file is loaded on import. ``Settings.from_env()`` is meant to be
called once at process start; the result is immutable and handed to each
component.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from calendar_scheduler.exceptions import ConfigurationError

ENV_FILE = Path.cwd() / ".env"

DEFAULT_REDIRECT_URI = "http://localhost:3000/oauth2/callback"
DEFAULT_DATA_DIR = "data"
DEFAULT_USER_ID = "demo-user"


def _load_env_file(env_path: Path) -> dict[str, str]:
    """Load environment variables from a file.

    Args:
        env_path: Path to .env file.

    Returns:
        Dictionary of loaded variables.
    """
    loaded = {}
    if not env_path.exists():
        return loaded

    with open(env_path) as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            if "=" not in line:
                continue

            key, _, value = line.partition("=")
            key = key.strip()
            value = value.strip()

            # Remove surrounding quotes
            if (value.startswith('"') and value.endswith('"')) or (
                value.startswith("'") and value.endswith("'")
            ):
                value = value[1:-1]

            # Env vars take precedence
            if key and key not in os.environ:
                os.environ[key] = value
                loaded[key] = value

    return loaded


@dataclass(frozen=True)
class Settings:
    """Immutable process configuration."""

    client_id: str
    client_secret: str | None = None
    redirect_uri: str = DEFAULT_REDIRECT_URI
    refresh_token_override: str | None = None
    encryption_key: str | None = None
    data_dir: Path = Path(DEFAULT_DATA_DIR)
    default_user_id: str = DEFAULT_USER_ID
    auth_port: int = 3000

    @property
    def tokens_path(self) -> Path:
        return self.data_dir / "tokens.json"

    @property
    def preferences_path(self) -> Path:
        return self.data_dir / "preferences.json"

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> Settings:
        """Build settings from environment variables.

        Args:
            environ: Mapping to read from. Defaults to ``os.environ``.

        Raises:
            ConfigurationError: If GOOGLE_CLIENT_ID is missing or a value is malformed.
        """
        env = os.environ if environ is None else environ

        client_id = env.get("GOOGLE_CLIENT_ID")
        if not client_id:
            raise ConfigurationError("GOOGLE_CLIENT_ID is required")

        port = env.get("GOOGLE_AUTH_PORT", "3000")
        try:
            auth_port = int(port)
        except ValueError as e:
            raise ConfigurationError(f"GOOGLE_AUTH_PORT must be an integer, got {port!r}") from e

        return cls(
            client_id=client_id,
            client_secret=env.get("GOOGLE_CLIENT_SECRET") or None,
            redirect_uri=env.get("GOOGLE_REDIRECT_URI") or DEFAULT_REDIRECT_URI,
            refresh_token_override=env.get("GOOGLE_REFRESH_TOKEN") or None,
            encryption_key=env.get("ENCRYPTION_KEY") or None,
            data_dir=Path(env.get("CALENDAR_DATA_DIR") or DEFAULT_DATA_DIR),
            default_user_id=env.get("DEMO_USER_ID") or DEFAULT_USER_ID,
            auth_port=auth_port,
        )

    def require_encryption_key(self) -> str:
        """Return the encryption key or raise if it is not configured."""
        if not self.encryption_key:
            raise ConfigurationError(
                "ENCRYPTION_KEY is required (base64-encoded 32-byte key). "
                'Generate one with: python -c "import os,base64;'
                'print(base64.b64encode(os.urandom(32)).decode())"'
            )
        return self.encryption_key


def ensure_data_dir(settings: Settings) -> Path:
    """Create the data directory if it doesn't exist.

    Returns:
        Path to data directory.
    """
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    return settings.data_dir


def get_config_status(environ: dict[str, str] | None = None) -> dict:
    """Get status of all configuration values.

    Returns:
        Dictionary with configuration status.
    """
    env = os.environ if environ is None else environ
    data_dir = Path(env.get("CALENDAR_DATA_DIR") or DEFAULT_DATA_DIR)
    return {
        "env_file": ENV_FILE.exists(),
        "google": {
            "client_id": bool(env.get("GOOGLE_CLIENT_ID")),
            "client_secret": bool(env.get("GOOGLE_CLIENT_SECRET")),
            "redirect_uri": env.get("GOOGLE_REDIRECT_URI") or DEFAULT_REDIRECT_URI,
            "refresh_token_override": bool(env.get("GOOGLE_REFRESH_TOKEN")),
        },
        "storage": {
            "encryption_key": bool(env.get("ENCRYPTION_KEY")),
            "data_dir": str(data_dir),
            "tokens": (data_dir / "tokens.json").exists(),
            "preferences": (data_dir / "preferences.json").exists(),
        },
    }


# Auto-load .env from the working directory on import
_loaded = _load_env_file(ENV_FILE)
