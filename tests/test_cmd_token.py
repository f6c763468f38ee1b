"""CLI tests for the token command group."""
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, MagicMock, patch

from typer.testing import CliRunner

from renewable_token.commands.token_cmd import app
from renewable_token.errors import GrantError
from renewable_token.main import app as root_app
from renewable_token.models.auth import TokenStatus

runner = CliRunner()


def _mock_context(status: TokenStatus):
    """AppContext stand-in whose start() succeeds and reports the given status."""
    ctx = MagicMock()
    credential = MagicMock()
    credential.token_type = "bearer"
    ctx.start = AsyncMock(return_value=credential)
    ctx.aclose = AsyncMock()
    ctx.tokens.get_status.return_value = status
    return ctx


def _valid_status() -> TokenStatus:
    return TokenStatus(
        has_token=True, is_expired=False,
        expires_at=datetime.now() + timedelta(hours=1),
        seconds_remaining=3600, renewal_scheduled=True, renewal_in=3300.0,
    )


# ── fetch ────────────────────────────────────────────────────────────

def test_fetch_success(fake_settings):
    ctx = _mock_context(_valid_status())

    with patch("renewable_token.commands.token_cmd.get_settings", return_value=fake_settings), \
         patch("renewable_token.commands.token_cmd.AppContext") as context_cls:
        context_cls.from_settings.return_value = ctx
        result = runner.invoke(app, ["fetch", "--output", "json"])
    assert result.exit_code == 0
    assert '"token_type": "bearer"' in result.output
    ctx.start.assert_awaited_once()
    ctx.aclose.assert_awaited_once()


def test_fetch_failure(fake_settings):
    ctx = _mock_context(_valid_status())
    ctx.start.side_effect = GrantError(401, "invalid_client")

    with patch("renewable_token.commands.token_cmd.get_settings", return_value=fake_settings), \
         patch("renewable_token.commands.token_cmd.AppContext") as context_cls:
        context_cls.from_settings.return_value = ctx
        result = runner.invoke(app, ["fetch"])
    assert result.exit_code == 1
    assert "AUTH_ERROR" in result.output
    ctx.aclose.assert_awaited_once()


# ── watch ────────────────────────────────────────────────────────────

def test_watch_runs_for_duration(fake_settings):
    ctx = _mock_context(_valid_status())

    with patch("renewable_token.commands.token_cmd.get_settings", return_value=fake_settings), \
         patch("renewable_token.commands.token_cmd.AppContext") as context_cls:
        context_cls.from_settings.return_value = ctx
        result = runner.invoke(app, ["watch", "--duration", "0.01"])
    assert result.exit_code == 0
    ctx.aclose.assert_awaited_once()
    assert context_cls.from_settings.call_args[1]["on_renewal_error"] is not None


def test_watch_nothing_to_renew(fake_settings):
    ctx = _mock_context(TokenStatus(has_token=False, is_expired=True))

    with patch("renewable_token.commands.token_cmd.get_settings", return_value=fake_settings), \
         patch("renewable_token.commands.token_cmd.AppContext") as context_cls:
        context_cls.from_settings.return_value = ctx
        result = runner.invoke(app, ["watch"])
    assert result.exit_code == 0
    assert "nothing to renew" in result.output
    assert "Token obtained" not in result.output


# ── root app ─────────────────────────────────────────────────────────

def test_root_help_lists_token_group():
    result = runner.invoke(root_app, ["--help"])
    assert result.exit_code == 0
    assert "token" in result.output
