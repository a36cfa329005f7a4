"""Configuration handling for the Platform Compliance Engine."""

import os
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv


@dataclass
class RateLimitConfig:
    """Rate limiting configuration for outbound rule fetches."""

    max_requests_per_minute: int = 60
    min_remaining_calls: int = 5
    sleep_buffer_sec: int = 2


@dataclass
class SyncConfig:
    """Rule ingestion configuration."""

    base_url: str = "https://www.reddit.com"
    user_agent: str = "compliance_engine/0.1 (Subreddit rules sync)"
    request_timeout_sec: float = 10.0
    batch_size: int = 5
    batch_delay_sec: float = 2.0


@dataclass
class GateConfig:
    """Preview gate thresholds."""

    required_ok_previews: int = 3
    window_days: int = 14


@dataclass
class MonitoringConfig:
    """Monitoring configuration."""

    enable_prometheus: bool = False
    prometheus_port: int = 8000


@dataclass
class PostgresConfig:
    """PostgreSQL connection configuration."""

    host: str = "localhost"
    port: int = 5432
    database: str = "compliance"
    user: str = "postgres"
    password: str = ""
    enabled: bool = True
    # Full SQLAlchemy URL; takes precedence over the discrete fields when set
    url: Optional[str] = None
    pool_size: int = 5
    max_overflow: int = 10

    @property
    def dbname(self) -> str:
        """Alias for database field for compatibility with configs that use 'dbname'."""
        return self.database

    @dbname.setter
    def dbname(self, value: str) -> None:
        self.database = value

    def sqlalchemy_url(self) -> str:
        """Return the SQLAlchemy connection URL for this configuration."""
        if self.url:
            return self.url
        return (
            f"postgresql+psycopg2://{self.user}:{self.password}"
            f"@{self.host}:{self.port}/{self.database}"
        )


def _merge_section(section: Any, values: Dict[str, Any]) -> Any:
    """Copy known keys from a YAML mapping onto a dataclass instance."""
    known = {f.name for f in fields(section)}
    for key, value in values.items():
        if key in known:
            setattr(section, key, value)
    return section


@dataclass
class Config:
    """Application configuration combining environment variables and YAML config."""

    log_level: str = "INFO"
    log_file: Optional[str] = "logs/compliance_engine.log"
    sync: SyncConfig = field(default_factory=SyncConfig)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    gate: GateConfig = field(default_factory=GateConfig)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)
    postgres: PostgresConfig = field(default_factory=PostgresConfig)

    @classmethod
    def from_files(cls, config_path: str, env_path: Optional[str] = None) -> "Config":
        """
        Load configuration from YAML file and environment variables.

        Args:
            config_path: Path to YAML configuration file
            env_path: Optional path to .env file (defaults to .env in current directory)

        Returns:
            Config instance with merged configuration
        """
        if env_path:
            load_dotenv(env_path)
        else:
            load_dotenv()

        config = cls()

        config.postgres = PostgresConfig(
            host=os.getenv("PG_HOST", "localhost"),
            port=int(os.getenv("PG_PORT", "5432")),
            database=os.getenv("PG_DB", "compliance"),
            user=os.getenv("PG_USER", "postgres"),
            password=os.getenv("PG_PASSWORD", ""),
            enabled=os.getenv("USE_POSTGRES", "true").lower() == "true",
            url=os.getenv("DATABASE_URL") or None,
        )
        user_agent = os.getenv("REDDIT_USER_AGENT")
        if user_agent:
            config.sync.user_agent = user_agent

        if os.path.exists(config_path):
            with open(config_path, "r", encoding="utf-8") as file:
                yaml_config = yaml.safe_load(file) or {}

            for key in ("log_level", "log_file"):
                if key in yaml_config:
                    setattr(config, key, yaml_config[key])

            sections = {
                "sync": config.sync,
                "rate_limit": config.rate_limit,
                "gate": config.gate,
                "monitoring": config.monitoring,
                "postgres": config.postgres,
            }
            for name, section in sections.items():
                values = yaml_config.get(name)
                if isinstance(values, dict):
                    # Handle special case for 'dbname' vs 'database'
                    if name == "postgres" and "dbname" in values and "database" not in values:
                        values["database"] = values["dbname"]
                    _merge_section(section, values)

        return config

    def validate(self) -> List[str]:
        """
        Validate configuration and return a list of validation errors.

        Returns:
            List of validation error messages (empty if valid)
        """
        errors = []

        if self.sync.batch_size <= 0:
            errors.append("sync.batch_size must be greater than 0")
        if self.sync.batch_delay_sec < 0:
            errors.append("sync.batch_delay_sec must not be negative")
        if self.sync.request_timeout_sec <= 0:
            errors.append("sync.request_timeout_sec must be greater than 0")
        if not self.sync.user_agent:
            errors.append("sync.user_agent must be set (Reddit rejects anonymous agents)")

        if self.rate_limit.max_requests_per_minute <= 0:
            errors.append("rate_limit.max_requests_per_minute must be greater than 0")

        if self.gate.required_ok_previews <= 0:
            errors.append("gate.required_ok_previews must be greater than 0")
        if self.gate.window_days <= 0:
            errors.append("gate.window_days must be greater than 0")

        if self.postgres.enabled and not self.postgres.url:
            if not self.postgres.host:
                errors.append("PG_HOST must be specified when PostgreSQL is enabled")
            if self.postgres.port <= 0:
                errors.append("PG_PORT must be a positive integer")
            if not self.postgres.database:
                errors.append("PG_DB must be specified when PostgreSQL is enabled")
            if not self.postgres.user:
                errors.append("PG_USER must be specified when PostgreSQL is enabled")

        return errors
