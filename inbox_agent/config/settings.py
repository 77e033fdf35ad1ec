"""
Assistant configuration.

Settings come from environment variables (``AssistantConfig.from_env``) or a
YAML file (``AssistantConfig.from_yaml``). Missing values fall back to the
dataclass defaults.

Usage:
    from inbox_agent.config import AssistantConfig

    config = AssistantConfig.from_env()
    print(config.llm.model)
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from inbox_agent.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_URGENT_KEYWORDS = ["urgent", "asap", "deadline", "due by", "critical", "important"]

DEFAULT_DATA_DIR = Path.home() / ".inbox-agent"


def _split_list(value: str | None) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() not in ("0", "false", "no", "off", "")


def _env_number(name: str, default: Any, cast: type) -> Any:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return cast(value)
    except ValueError as e:
        raise ConfigurationError(f"Invalid value for {name}: {value!r}") from e


@dataclass
class MicrosoftAuthConfig:
    """Azure AD application used for the device code flow.

    Attributes:
        client_id: Public client application id
        tenant_id: Directory tenant ("common" accepts any account)
        scopes: Delegated Graph scopes
    """

    client_id: str = ""
    tenant_id: str = "common"
    scopes: list[str] = field(
        default_factory=lambda: [
            "User.Read",
            "Mail.Read",
            "Notes.Read",
            "Calendars.Read",
            "offline_access",
        ]
    )

    @property
    def configured(self) -> bool:
        return bool(self.client_id)


@dataclass
class GoogleAuthConfig:
    """Google OAuth client used for the authorization code flow."""

    client_id: str = ""
    client_secret: str = ""
    redirect_uri: str = "http://localhost:3000/auth/google/callback"
    scopes: list[str] = field(
        default_factory=lambda: [
            "https://www.googleapis.com/auth/gmail.readonly",
            "https://www.googleapis.com/auth/calendar.readonly",
            "https://www.googleapis.com/auth/drive.readonly",
            "https://www.googleapis.com/auth/userinfo.profile",
            "https://www.googleapis.com/auth/userinfo.email",
        ]
    )

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)


@dataclass
class LLMConfig:
    """Chat model settings.

    Attributes:
        provider: Adapter name ("openai", "deepseek", "mock")
        api_key: Provider API key
        base_url: Optional override for OpenAI-compatible endpoints
        model: Model identifier
        max_tokens: Default completion limit
        temperature: Default sampling temperature
        enable_cache: Cache identical requests
        cache_ttl_seconds: Cache entry lifetime
        max_requests_per_minute: Sliding window rate limit
    """

    provider: str = "openai"
    api_key: str = ""
    base_url: str | None = None
    model: str = "gpt-4"
    max_tokens: int = 1000
    temperature: float = 0.7
    enable_cache: bool = True
    cache_ttl_seconds: int = 3600
    max_requests_per_minute: int = 60


@dataclass
class AnalysisConfig:
    """Deterministic priority rules applied before asking the model."""

    vip_senders: list[str] = field(default_factory=list)
    urgent_keywords: list[str] = field(default_factory=lambda: list(DEFAULT_URGENT_KEYWORDS))


@dataclass
class CalendarConfig:
    """Working hours used by providers that model business hours."""

    work_start_hour: int = 9
    work_end_hour: int = 17
    timezone: str = "UTC"
    max_slots: int = 20

    def __post_init__(self) -> None:
        if not 0 <= self.work_start_hour < self.work_end_hour <= 24:
            raise ConfigurationError(
                f"Invalid work hours: {self.work_start_hour}-{self.work_end_hour}"
            )


@dataclass
class AssistantConfig:
    """Top-level configuration for the assistant."""

    microsoft: MicrosoftAuthConfig = field(default_factory=MicrosoftAuthConfig)
    google: GoogleAuthConfig = field(default_factory=GoogleAuthConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)
    calendar: CalendarConfig = field(default_factory=CalendarConfig)
    poll_interval_seconds: float = 30.0
    data_dir: Path = DEFAULT_DATA_DIR
    database_url: str | None = None
    retention_days: int = 7
    log_level: str = "INFO"

    @property
    def resolved_database_url(self) -> str:
        """SQLite URL inside ``data_dir`` unless overridden."""
        if self.database_url:
            return self.database_url
        return f"sqlite:///{Path(self.data_dir) / 'assistant.db'}"

    @property
    def credentials_dir(self) -> Path:
        return Path(self.data_dir) / "credentials"

    @classmethod
    def from_env(cls) -> "AssistantConfig":
        """Load configuration from environment variables.

        Returns:
            AssistantConfig with values from environment

        Raises:
            ConfigurationError: If a numeric variable cannot be parsed
        """
        urgent = _split_list(os.getenv("URGENT_KEYWORDS"))
        return cls(
            microsoft=MicrosoftAuthConfig(
                client_id=os.getenv("MICROSOFT_CLIENT_ID", ""),
                tenant_id=os.getenv("MICROSOFT_TENANT_ID", "common"),
            ),
            google=GoogleAuthConfig(
                client_id=os.getenv("GOOGLE_CLIENT_ID", ""),
                client_secret=os.getenv("GOOGLE_CLIENT_SECRET", ""),
                redirect_uri=os.getenv(
                    "GOOGLE_REDIRECT_URI", "http://localhost:3000/auth/google/callback"
                ),
            ),
            llm=LLMConfig(
                provider=os.getenv("LLM_PROVIDER", "openai"),
                api_key=os.getenv("OPENAI_API_KEY", ""),
                base_url=os.getenv("OPENAI_BASE_URL") or None,
                model=os.getenv("OPENAI_MODEL", "gpt-4"),
                max_tokens=_env_number("MAX_TOKENS", 1000, int),
                temperature=_env_number("TEMPERATURE", 0.7, float),
                enable_cache=_env_bool("ENABLE_CACHE", True),
                cache_ttl_seconds=_env_number("CACHE_TTL", 3600, int),
                max_requests_per_minute=_env_number("MAX_REQUESTS_PER_MINUTE", 60, int),
            ),
            analysis=AnalysisConfig(
                vip_senders=_split_list(os.getenv("VIP_SENDERS")),
                urgent_keywords=urgent or list(DEFAULT_URGENT_KEYWORDS),
            ),
            calendar=CalendarConfig(timezone=os.getenv("WORK_TIMEZONE", "UTC")),
            poll_interval_seconds=_env_number("POLL_INTERVAL", 30.0, float),
            data_dir=Path(os.getenv("ASSISTANT_DATA_DIR", str(DEFAULT_DATA_DIR))),
            database_url=os.getenv("DATABASE_URL") or None,
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )

    @classmethod
    def from_yaml(cls, path: str | Path) -> "AssistantConfig":
        """Load configuration from a YAML file.

        Args:
            path: YAML file with optional sections ``microsoft``, ``google``,
                ``llm``, ``analysis``, ``calendar`` and top-level scalars.

        Raises:
            ConfigurationError: If the file is missing or malformed
        """
        path = Path(path)
        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except FileNotFoundError as e:
            raise ConfigurationError(f"Config file not found: {path}") from e
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"Config root must be a mapping: {path}")

        def section(name: str, section_cls: type) -> Any:
            values = data.get(name) or {}
            if not isinstance(values, dict):
                raise ConfigurationError(f"Config section '{name}' must be a mapping")
            try:
                return section_cls(**values)
            except TypeError as e:
                raise ConfigurationError(f"Unknown key in section '{name}': {e}") from e

        config = cls(
            microsoft=section("microsoft", MicrosoftAuthConfig),
            google=section("google", GoogleAuthConfig),
            llm=section("llm", LLMConfig),
            analysis=section("analysis", AnalysisConfig),
            calendar=section("calendar", CalendarConfig),
        )
        if "poll_interval_seconds" in data:
            config.poll_interval_seconds = float(data["poll_interval_seconds"])
        if "data_dir" in data:
            config.data_dir = Path(data["data_dir"]).expanduser()
        if "database_url" in data:
            config.database_url = data["database_url"]
        if "retention_days" in data:
            config.retention_days = int(data["retention_days"])
        if "log_level" in data:
            config.log_level = str(data["log_level"])

        logger.info(f"Loaded configuration from {path}")
        return config

    def to_dict(self) -> dict[str, Any]:
        """Summary safe for logging (no secrets)."""
        return {
            "microsoft_configured": self.microsoft.configured,
            "google_configured": self.google.configured,
            "llm_provider": self.llm.provider,
            "llm_model": self.llm.model,
            "llm_cache_enabled": self.llm.enable_cache,
            "vip_senders": len(self.analysis.vip_senders),
            "urgent_keywords": list(self.analysis.urgent_keywords),
            "poll_interval_seconds": self.poll_interval_seconds,
            "data_dir": str(self.data_dir),
            "log_level": self.log_level,
        }
