import os
from enum import Enum
from pathlib import Path

import structlog
from pydantic import BaseModel, ConfigDict
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = structlog.get_logger(__name__)


class Settings(BaseSettings):
    config_path: str = "sci.json"
    work_dir: str = "sci-work"
    github_api_url: str = "https://api.github.com"
    github_host: str = "github.com"
    debug: bool = False
    sentry_dsn: str | None = None

    model_config = SettingsConfigDict(
        env_prefix="SCI_",
        env_file=".env",
        env_file_encoding="utf-8",
    )


settings = Settings()


class ConcurrencyPolicy(Enum):
    GLOBAL = "global"
    PER_REPOSITORY = "per_repository"


class CheckConfig(BaseModel):
    """The operator edited sci.json record."""

    # TCP port number for HTTP server.
    port: int = 8080
    # https://docs.github.com/en/webhooks/using-webhooks/validating-webhook-deliveries
    webhook_secret: str = (
        "Create a secret and set it at github.com/'name'/'repo'/settings/hooks"
    )
    # Needs the "repo:status" and "gist" scopes.
    oauth2_access_token: str = "Get one at https://github.com/settings/tokens"
    # Required for private repositories.
    use_ssh: bool = False
    # Display name used as the commit status context.
    name: str = "sci"
    # Run one after the other from the repository's root.
    checks: list[list[str]] = [["go", "test", "./..."]]
    dependencies: list[list[str]] = [["go", "mod", "download"]]
    # Builds the test binaries without running any test.
    precompile: list[list[str]] = [["go", "test", "-run", "^$", "./..."]]
    concurrency: ConcurrencyPolicy = ConcurrencyPolicy.GLOBAL
    # 0 means unbounded.
    max_backlog: int = 0
    supersede_pending: bool = False

    model_config = ConfigDict(frozen=True, extra="forbid")


class ConfigCreatedError(Exception):
    """Raised when a default configuration file had to be written."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        super().__init__(f"wrote new {self.path.name}")


def dump_config(config: CheckConfig) -> bytes:
    return (config.model_dump_json(indent=2) + "\n").encode("utf-8")


def _write(path: Path, data: bytes) -> None:
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "wb") as f:
        f.write(data)


def load_config(path: str | Path | None = None) -> CheckConfig:
    """
    Load the configuration record, creating it on first run.

    A missing file is written with the defaults and ConfigCreatedError is
    raised so the operator can edit it. A file that is not in canonical form
    is rewritten in place.
    """
    path = Path(path or settings.config_path)
    try:
        data = path.read_bytes()
    except FileNotFoundError:
        _write(path, dump_config(CheckConfig()))
        logger.warning("Wrote default configuration", path=str(path))
        raise ConfigCreatedError(path)

    config = CheckConfig.model_validate_json(data)
    canonical = dump_config(config)
    if canonical != data:
        logger.info("Updating configuration in canonical format", path=str(path))
        _write(path, canonical)
    return config
