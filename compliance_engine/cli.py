"""Command-line interface for the Platform Compliance Engine."""

import asyncio
import json
import logging
import logging.config
import sys
from pathlib import Path
from typing import Optional

import typer
from typing_extensions import Annotated

from compliance_engine.config import Config
from compliance_engine.errors import ComplianceEngineError, LintValidationError
from compliance_engine.gate.preview_gate import PreviewGate
from compliance_engine.ingestion.rate_limiter import RateLimiter
from compliance_engine.ingestion.reddit_rules_client import RedditRulesClient
from compliance_engine.ingestion.sync import RuleSyncService, SyncReport
from compliance_engine.linter.policy_linter import PolicyLinter
from compliance_engine.models.preview import LintRequest, PolicyState
from compliance_engine.monitoring.metrics import PrometheusExporter
from compliance_engine.storage.community_store import SQLAlchemyCommunityStore
from compliance_engine.storage.database import create_schema, init_db
from compliance_engine.storage.event_store import SQLAlchemyPreviewEventStore
from compliance_engine.storage.rule_store import SQLAlchemyRuleStore

app = typer.Typer(help="Platform Compliance Engine - community rule sync, post linting and preview gate")

logger = logging.getLogger(__name__)

EXIT_ERROR = 1
EXIT_BLOCKED = 2
EXIT_GATE_DENIED = 3


def setup_logging(log_level: str = "INFO", log_file: Optional[str] = "logs/compliance_engine.log") -> None:
    """
    Set up logging configuration.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Path of the rotating log file; None logs to the console only
    """
    log_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": log_level,
                "formatter": "standard",
                "stream": "ext://sys.stderr",
            },
            "file": {
                "class": "logging.handlers.RotatingFileHandler",
                "level": log_level,
                "formatter": "standard",
                "filename": log_file,
                "maxBytes": 10485760,  # 10 MB
                "backupCount": 5,
                "encoding": "utf8",
            },
        },
        "loggers": {
            "": {
                "handlers": ["console", "file"],
                "level": log_level,
                "propagate": True
            },
            "asyncio": {
                "level": "WARNING",
            },
            "aiohttp": {
                "level": "WARNING",
            },
            "sqlalchemy.engine": {
                "level": "WARNING",
            },
        }
    }

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
    else:
        del log_config["handlers"]["file"]
        log_config["loggers"][""]["handlers"] = ["console"]

    logging.config.dictConfig(log_config)


def load_config(config_path: str) -> Config:
    """Load and validate configuration, exiting on errors."""
    config = Config.from_files(config_path)
    validation_errors = config.validate()

    if validation_errors:
        for error in validation_errors:
            logger.error(f"Configuration error: {error}")
        logger.critical("Invalid configuration, aborting")
        sys.exit(EXIT_ERROR)
    return config


def connect_database(config: Config) -> None:
    if not init_db(config.postgres):
        logger.critical("Database is not available, aborting")
        sys.exit(EXIT_ERROR)


def bootstrap(config_path: str, loglevel: Optional[str]) -> Config:
    """Load the configuration, set up logging from it and connect the database."""
    config = load_config(config_path)
    setup_logging(loglevel or config.log_level, config.log_file)
    connect_database(config)
    return config


async def run_sync(config: Config, community: Optional[str] = None) -> SyncReport:
    """
    Sync one community, or every known community when ``community`` is None.

    Args:
        config: Loaded configuration
        community: Community to sync

    Returns:
        SyncReport for the run
    """
    prometheus_exporter = None
    if config.monitoring.enable_prometheus:
        prometheus_exporter = PrometheusExporter(port=config.monitoring.prometheus_port)
        prometheus_exporter.start_server()

    rate_limiter = RateLimiter(config.rate_limit)
    async with RedditRulesClient(config.sync, rate_limiter, prometheus_exporter) as client:
        service = RuleSyncService(
            rule_source=client,
            rule_store=SQLAlchemyRuleStore(),
            community_store=SQLAlchemyCommunityStore(),
            config=config.sync,
            prometheus_exporter=prometheus_exporter,
        )

        if community is None:
            return await service.sync_all()

        report = SyncReport(total=1)
        try:
            await service.sync_one(community)
            report.succeeded.append(community)
        except ComplianceEngineError as e:
            logger.error(f"Failed to sync rules for {community}: {str(e)}")
            report.failed[community] = str(e)
        return report


@app.command()
def sync(
    community: Annotated[Optional[str], typer.Argument(help="Community to sync (omit to sync every known community)")] = None,
    config: Annotated[str, typer.Option("--config", "-c", help="Path to configuration file")] = "config.yaml",
    loglevel: Annotated[Optional[str], typer.Option("--loglevel", "-l", help="Logging level (defaults to log_level in the config)")] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable verbose output")] = False,
) -> None:
    """
    Fetch community rules from Reddit, compile them and store the RuleSpecs.

    Curator overrides already on file are preserved.
    """
    config_obj = bootstrap(config, "DEBUG" if verbose else loglevel)

    try:
        report = asyncio.run(run_sync(config_obj, community))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(EXIT_ERROR)
    except Exception as e:
        logger.critical(f"Unhandled exception: {str(e)}", exc_info=True)
        sys.exit(EXIT_ERROR)

    typer.echo(json.dumps(
        {"total": report.total, "succeeded": report.succeeded, "failed": report.failed},
        indent=2,
    ))
    if not report.ok:
        sys.exit(EXIT_ERROR)


@app.command()
def lint(
    subreddit: Annotated[str, typer.Argument(help="Target community, with or without r/")],
    title: Annotated[str, typer.Option("--title", "-t", help="Post title")],
    body: Annotated[str, typer.Option("--body", "-b", help="Post body")] = "",
    has_link: Annotated[bool, typer.Option("--has-link", help="The post carries a promotional link")] = False,
    user_id: Annotated[Optional[int], typer.Option("--user-id", "-u", help="Record the preview for this user")] = None,
    config: Annotated[str, typer.Option("--config", "-c", help="Path to configuration file")] = "config.yaml",
    loglevel: Annotated[Optional[str], typer.Option("--loglevel", "-l", help="Logging level (defaults to log_level in the config)")] = None,
) -> None:
    """
    Lint a candidate post against the community's rules.

    Exits with status 2 when the post would be blocked.
    """
    bootstrap(config, loglevel)

    linter = PolicyLinter(SQLAlchemyRuleStore(), SQLAlchemyPreviewEventStore())
    try:
        result = linter.lint(
            LintRequest(subreddit=subreddit, title=title, body=body, has_link=has_link),
            user_id=user_id,
        )
    except LintValidationError as e:
        logger.error(str(e))
        sys.exit(EXIT_ERROR)
    except ComplianceEngineError as e:
        logger.critical(f"Lint failed: {str(e)}")
        sys.exit(EXIT_ERROR)

    typer.echo(json.dumps(result.model_dump(mode="json", by_alias=True), indent=2))
    if result.policy_state == PolicyState.BLOCKED:
        sys.exit(EXIT_BLOCKED)


@app.command()
def gate(
    user_id: Annotated[int, typer.Argument(help="User to check")],
    config: Annotated[str, typer.Option("--config", "-c", help="Path to configuration file")] = "config.yaml",
    loglevel: Annotated[Optional[str], typer.Option("--loglevel", "-l", help="Logging level (defaults to log_level in the config)")] = None,
) -> None:
    """
    Show a user's preview stats and whether they may queue posts.

    Exits with status 3 when queueing is denied.
    """
    config_obj = bootstrap(config, loglevel)

    preview_gate = PreviewGate(SQLAlchemyPreviewEventStore(), config_obj.gate)
    stats = preview_gate.get_preview_stats(user_id)
    decision = preview_gate.decide(user_id, stats)

    output = {
        "stats": stats.model_dump(mode="json", by_alias=True),
        "decision": decision.model_dump(mode="json", by_alias=True, exclude_none=True),
        "remaining": decision.remaining,
    }
    typer.echo(json.dumps(output, indent=2))
    if not decision.can_queue:
        sys.exit(EXIT_GATE_DENIED)


@app.command("add-community")
def add_community(
    name: Annotated[str, typer.Argument(help="Community to register for syncing")],
    display_name: Annotated[Optional[str], typer.Option("--display-name", help="Display name")] = None,
    config: Annotated[str, typer.Option("--config", "-c", help="Path to configuration file")] = "config.yaml",
    loglevel: Annotated[Optional[str], typer.Option("--loglevel", "-l", help="Logging level (defaults to log_level in the config)")] = None,
) -> None:
    """Register a community so that `sync` without arguments includes it."""
    bootstrap(config, loglevel)

    try:
        added = SQLAlchemyCommunityStore().add_community(name, display_name)
    except ComplianceEngineError as e:
        logger.critical(f"Failed to add community: {str(e)}")
        sys.exit(EXIT_ERROR)

    if added:
        typer.echo(f"Added community {name}")
    else:
        typer.echo(f"Community {name} is already registered")


@app.command("show-community")
def show_community(
    name: Annotated[str, typer.Argument(help="Registered community to show")],
    config: Annotated[str, typer.Option("--config", "-c", help="Path to configuration file")] = "config.yaml",
    loglevel: Annotated[Optional[str], typer.Option("--loglevel", "-l", help="Logging level (defaults to log_level in the config)")] = None,
) -> None:
    """
    Print the community rules read-model written by the last sync.

    Exits with status 1 when the community is unknown or was never synced.
    """
    bootstrap(config, loglevel)

    try:
        rules = SQLAlchemyCommunityStore().get_community_rules(name)
    except ComplianceEngineError as e:
        logger.critical(f"Failed to read community: {str(e)}")
        sys.exit(EXIT_ERROR)

    if rules is None:
        logger.error(f"No synced rules for community {name}")
        sys.exit(EXIT_ERROR)

    typer.echo(json.dumps(rules, indent=2))


@app.command("init-db")
def init_database(
    config: Annotated[str, typer.Option("--config", "-c", help="Path to configuration file")] = "config.yaml",
    loglevel: Annotated[Optional[str], typer.Option("--loglevel", "-l", help="Logging level (defaults to log_level in the config)")] = None,
) -> None:
    """
    Create the compliance tables directly from the ORM metadata.

    Intended for local SQLite databases; PostgreSQL deployments use
    `alembic upgrade head`.
    """
    bootstrap(config, loglevel)

    try:
        create_schema()
    except Exception as e:
        logger.critical(f"Failed to create schema: {str(e)}", exc_info=True)
        sys.exit(EXIT_ERROR)

    logger.info("Database schema created")
    typer.echo("Database schema is ready")


if __name__ == "__main__":
    app()
