"""Tests for the CLI module."""

import os
import tempfile
import unittest
from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

from typer.testing import CliRunner

from compliance_engine.cli import app
from compliance_engine.ingestion.sync import SyncReport
from compliance_engine.models.rule_spec import LinkPolicy, RuleSpec
from compliance_engine.storage import database
from compliance_engine.storage.community_store import SQLAlchemyCommunityStore
from compliance_engine.storage.rule_store import SQLAlchemyRuleStore


@patch("compliance_engine.cli.setup_logging")
class TestCli(unittest.TestCase):
    """Test cases for the CLI interface, against a SQLite database file."""

    def setUp(self):
        """Set up test environment."""
        self.runner = CliRunner()

        self.temp_dir = tempfile.TemporaryDirectory()
        self.config_path = os.path.join(self.temp_dir.name, "config.yaml")
        self.db_url = f"sqlite:///{os.path.join(self.temp_dir.name, 'compliance.db')}"

        with open(self.config_path, "w", encoding="utf-8") as f:
            f.write(f"""
gate:
  required_ok_previews: 3
  window_days: 14
postgres:
  enabled: true
  url: {self.db_url}
            """)

    def tearDown(self):
        """Clean up test environment."""
        if database.engine is not None:
            database.engine.dispose()
        database.engine = None
        database.SessionLocal = None
        self.temp_dir.cleanup()

    def _invoke(self, *args):
        return self.runner.invoke(app, [*args, "--config", self.config_path])

    def _init_db(self):
        result = self._invoke("init-db")
        self.assertEqual(result.exit_code, 0, result.output)
        return result

    def test_init_db(self, mock_setup_logging):
        result = self._init_db()

        self.assertIn("Database schema is ready", result.stdout)

    def test_add_community(self, mock_setup_logging):
        self._init_db()

        first = self._invoke("add-community", "r/TestSub")
        second = self._invoke("add-community", "testsub")

        self.assertEqual(first.exit_code, 0)
        self.assertIn("Added community", first.stdout)
        self.assertIn("already registered", second.stdout)

    def test_lint_without_rules_warns(self, mock_setup_logging):
        self._init_db()

        result = self._invoke("lint", "newsub", "--title", "Hello")

        self.assertEqual(result.exit_code, 0)
        self.assertIn('"policyState": "warn"', result.stdout)
        self.assertIn("No rules on file for r/newsub", result.stdout)

    def test_lint_blocked_exit_code(self, mock_setup_logging):
        self._init_db()
        SQLAlchemyRuleStore().upsert_rule_spec("gonewild", RuleSpec(link_policy=LinkPolicy.NO_LINK))

        result = self._invoke("lint", "gonewild", "--title", "[F] hi", "--has-link")

        self.assertEqual(result.exit_code, 2)
        self.assertIn("Link policy (no-link)", result.stdout)

    def test_gate_denied_then_allowed(self, mock_setup_logging):
        self._init_db()
        SQLAlchemyRuleStore().upsert_rule_spec("testsub", RuleSpec())

        denied = self._invoke("gate", "5")
        self.assertEqual(denied.exit_code, 3)
        self.assertIn("PREVIEW_GATE_NOT_MET", denied.stdout)

        for i in range(3):
            lint = self._invoke("lint", "testsub", "--title", f"Post {i}", "--user-id", "5")
            self.assertEqual(lint.exit_code, 0)

        allowed = self._invoke("gate", "5")
        self.assertEqual(allowed.exit_code, 0)
        self.assertIn('"canQueue": true', allowed.stdout)

    @patch("compliance_engine.cli.run_sync", new_callable=AsyncMock)
    def test_sync_command(self, mock_run_sync, mock_setup_logging):
        mock_run_sync.return_value = SyncReport(total=1, succeeded=["testsub"])

        result = self._invoke("sync", "testsub")

        self.assertEqual(result.exit_code, 0)
        mock_run_sync.assert_awaited_once()
        self.assertEqual(mock_run_sync.call_args.args[1], "testsub")

    @patch("compliance_engine.cli.run_sync", new_callable=AsyncMock)
    def test_sync_command_with_failures(self, mock_run_sync, mock_setup_logging):
        mock_run_sync.return_value = SyncReport(total=2, succeeded=["a"], failed={"b": "down"})

        result = self._invoke("sync")

        self.assertEqual(result.exit_code, 1)
        self.assertIsNone(mock_run_sync.call_args.args[1])

    def test_invalid_config_exits(self, mock_setup_logging):
        with open(self.config_path, "a", encoding="utf-8") as f:
            f.write("\nsync:\n  batch_size: 0\n")

        result = self._invoke("init-db")

        self.assertEqual(result.exit_code, 1)

    def test_configured_logging_is_used(self, mock_setup_logging):
        log_path = os.path.join(self.temp_dir.name, "logs", "engine.log")
        with open(self.config_path, "a", encoding="utf-8") as f:
            f.write(f"\nlog_level: DEBUG\nlog_file: {log_path}\n")

        self._init_db()

        mock_setup_logging.assert_called_once_with("DEBUG", log_path)

    def test_loglevel_option_overrides_config(self, mock_setup_logging):
        result = self._invoke("init-db", "--loglevel", "ERROR")

        self.assertEqual(result.exit_code, 0, result.output)
        mock_setup_logging.assert_called_once_with("ERROR", "logs/compliance_engine.log")

    @patch(
        "compliance_engine.storage.event_store.SQLAlchemyPreviewEventStore.count_preview_events",
        side_effect=[2, 2, 3, 3],
    )
    def test_gate_reads_event_log_once(self, mock_count, mock_setup_logging):
        self._init_db()

        result = self._invoke("gate", "5")

        self.assertEqual(result.exit_code, 3)
        self.assertEqual(mock_count.call_count, 2)
        self.assertIn('"okCount14d": 2', result.stdout)
        self.assertIn('"current": 2', result.stdout)

    def test_show_community(self, mock_setup_logging):
        self._init_db()
        self._invoke("add-community", "testsub")
        SQLAlchemyCommunityStore().update_community_rules(
            "testsub", {"notes": ["be nice"]}, datetime.now(timezone.utc)
        )

        result = self._invoke("show-community", "r/TestSub")

        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("be nice", result.stdout)

    def test_show_unsynced_community_exits(self, mock_setup_logging):
        self._init_db()
        self._invoke("add-community", "testsub")

        result = self._invoke("show-community", "testsub")

        self.assertEqual(result.exit_code, 1)

    @patch("compliance_engine.cli.init_db", return_value=False)
    def test_database_unavailable_exits(self, mock_init_db, mock_setup_logging):
        result = self._invoke("gate", "1")

        self.assertEqual(result.exit_code, 1)


if __name__ == "__main__":
    unittest.main()
