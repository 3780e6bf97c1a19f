"""Runtime configuration loaded from the environment or a .env file."""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from .errors import ConfigError

DEFAULT_BRANCH = "master"
COMPOSER_JSON_PATH = "composer.json"
GITHUB_API_URL = "https://api.github.com"


@dataclass(frozen=True)
class Settings:
    """Everything a run needs to know about the target repository."""

    token: str
    repo_owner: str
    repo_name: str
    fork_owner: str | None = None
    fork_name: str | None = None
    pause_seconds: float = 1.0
    default_branch: str = DEFAULT_BRANCH
    composer_json_path: str = COMPOSER_JSON_PATH
    api_url: str = GITHUB_API_URL
    timeout: float = 30.0
    enabled: bool = True

    @property
    def uses_fork(self) -> bool:
        return bool(self.fork_owner and self.fork_name)


def _required(name: str) -> str:
    value = os.getenv(name, "").strip()
    if not value:
        raise ConfigError(f"Environment variable {name} is required")
    return value


def _optional(name: str) -> str | None:
    value = os.getenv(name, "").strip()
    return value or None


def _number(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError as e:
        raise ConfigError(f"Environment variable {name} must be a number, got {raw!r}") from e
    if value < 0:
        raise ConfigError(f"Environment variable {name} must not be negative")
    return value


def _flag(name: str, default: bool) -> bool:
    raw = os.getenv(name, "").strip().lower()
    if not raw:
        return default
    return raw not in ("0", "false", "no", "off")


def load_settings(env_file: str | Path | None = ".env") -> Settings:
    """Load settings, reading a .env file first when one exists.

    Values already present in the environment win over the file.

    Args:
        env_file: Path of an optional dotenv file

    Returns:
        Validated settings

    Raises:
        ConfigError: If a required variable is missing or a value is malformed
    """
    if env_file and Path(env_file).exists():
        load_dotenv(env_file)

    fork_owner = _optional("FORK_OWNER")
    fork_name = _optional("FORK_NAME")
    if bool(fork_owner) != bool(fork_name):
        raise ConfigError("FORK_OWNER and FORK_NAME must be set together")

    return Settings(
        token=_required("BOT_PERSONAL_ACCESS_TOKEN"),
        repo_owner=_required("REPO_OWNER"),
        repo_name=_required("REPO_NAME"),
        fork_owner=fork_owner,
        fork_name=fork_name,
        pause_seconds=_number("API_PAUSE_BETWEEN_ACTIONS_SECONDS", 1.0),
        default_branch=_optional("REPO_DEFAULT_BRANCH_NAME") or DEFAULT_BRANCH,
        composer_json_path=_optional("COMPOSER_JSON_PATH") or COMPOSER_JSON_PATH,
        api_url=(_optional("GITHUB_API_URL") or GITHUB_API_URL).rstrip("/"),
        timeout=_number("HTTP_TIMEOUT_SECONDS", 30.0),
        enabled=_flag("IS_ENABLED", True),
    )
