from __future__ import annotations

from dataclasses import dataclass
import logging
import os
from pathlib import Path


class ConfigurationError(ValueError):
    pass


@dataclass(frozen=True)
class AppSettings:
    api_base_url: str
    me_path: str = "/me"
    status_path: str = "/auth/status"
    login_path: str = "/auth/login"
    register_path: str = "/usuarios"
    ping_path: str = "/auth/ping"
    timeout_seconds: float = 5.0
    retry_attempts: int = 3
    retry_delay_seconds: float = 0.5
    storage_path: str = ""
    log_level: str = "INFO"

    @staticmethod
    def from_env() -> "AppSettings":
        _load_dotenv_if_present()

        api_base_url = os.getenv("BOOKSHELF_API_URL", "http://localhost:3000").strip().rstrip("/")
        me_path = os.getenv("BOOKSHELF_ME_PATH", "/me").strip()
        status_path = os.getenv("BOOKSHELF_STATUS_PATH", "/auth/status").strip()
        login_path = os.getenv("BOOKSHELF_LOGIN_PATH", "/auth/login").strip()
        register_path = os.getenv("BOOKSHELF_REGISTER_PATH", "/usuarios").strip()
        ping_path = os.getenv("BOOKSHELF_PING_PATH", "/auth/ping").strip()

        timeout_seconds = _parse_float("BOOKSHELF_TIMEOUT_SECONDS", "5")
        retry_attempts = _parse_int("BOOKSHELF_RETRY_ATTEMPTS", "3")
        retry_delay_seconds = _parse_float("BOOKSHELF_RETRY_DELAY_SECONDS", "0.5")

        default_storage_path = os.path.join(
            os.getenv("LOCALAPPDATA", os.getcwd()),
            "BookshelfClient",
            "session.json",
        )
        storage_path = os.getenv("BOOKSHELF_STORAGE_PATH", default_storage_path)
        log_level = os.getenv("BOOKSHELF_LOG_LEVEL", "INFO").strip().upper()

        settings = AppSettings(
            api_base_url=api_base_url,
            me_path=me_path,
            status_path=status_path,
            login_path=login_path,
            register_path=register_path,
            ping_path=ping_path,
            timeout_seconds=timeout_seconds,
            retry_attempts=retry_attempts,
            retry_delay_seconds=retry_delay_seconds,
            storage_path=storage_path,
            log_level=log_level,
        )
        settings.validate()
        return settings

    def validate(self) -> None:
        if not self.api_base_url.startswith(("http://", "https://")):
            raise ConfigurationError("BOOKSHELF_API_URL must start with http:// or https://")

        path_fields = {
            "BOOKSHELF_ME_PATH": self.me_path,
            "BOOKSHELF_STATUS_PATH": self.status_path,
            "BOOKSHELF_LOGIN_PATH": self.login_path,
            "BOOKSHELF_REGISTER_PATH": self.register_path,
            "BOOKSHELF_PING_PATH": self.ping_path,
        }
        invalid_paths = [name for name, value in path_fields.items() if not value.startswith("/")]
        if invalid_paths:
            raise ConfigurationError(
                "Endpoint paths must start with '/': " + ", ".join(invalid_paths)
            )

        if self.timeout_seconds <= 0:
            raise ConfigurationError("BOOKSHELF_TIMEOUT_SECONDS must be greater than 0")

        if self.retry_attempts < 1:
            raise ConfigurationError("BOOKSHELF_RETRY_ATTEMPTS must be 1 or greater")

        if self.retry_delay_seconds < 0:
            raise ConfigurationError("BOOKSHELF_RETRY_DELAY_SECONDS must be 0 or greater")

        if not self.storage_path:
            raise ConfigurationError("BOOKSHELF_STORAGE_PATH must not be empty")

        if not isinstance(logging.getLevelName(self.log_level), int):
            raise ConfigurationError(
                "BOOKSHELF_LOG_LEVEL must be one of: DEBUG, INFO, WARNING, ERROR, CRITICAL"
            )


def _parse_int(name: str, default: str) -> int:
    raw = os.getenv(name, default).strip()
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from exc


def _parse_float(name: str, default: str) -> float:
    raw = os.getenv(name, default).strip()
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from exc


def _load_dotenv_if_present() -> None:
    """Copy ``KEY=value`` lines from the env file into ``os.environ``.

    ``BOOKSHELF_ENV_FILE`` names the file; otherwise ``.env`` in the working
    directory is used. Variables already set in the environment are kept.
    """
    explicit = os.getenv("BOOKSHELF_ENV_FILE", "").strip()
    path = Path(explicit).expanduser() if explicit else Path.cwd() / ".env"
    try:
        text = path.read_text(encoding="utf-8")
    except OSError:
        return

    for key, value in _parse_env_lines(text.splitlines()):
        os.environ.setdefault(key, value)


def _parse_env_lines(lines: list[str]) -> list[tuple[str, str]]:
    pairs: list[tuple[str, str]] = []
    for line in lines:
        line = line.strip()
        if line.startswith("export "):
            line = line[len("export "):].lstrip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        key = key.strip()
        if key:
            pairs.append((key, value.strip().strip("\"'")))
    return pairs
