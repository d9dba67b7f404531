"""
Integration tests for the full FVG pipeline.

Tests cover the complete flow:
BingX klines (mocked HTTP) -> Candle parsing -> FVG detection
    -> SQLite storage -> in-app and e-mail notification (mocked HTTP)

Verifies:
- Events survive the whole flow with exact values
- FvgMonitorApp wires configuration and environment correctly
- Resources are released on exit
"""

import asyncio
from unittest.mock import patch

import pytest
import pytest_asyncio

from fvg_monitor.app import FvgMonitorApp
from fvg_monitor.core.config import (
    AppConfig,
    DatabaseSettings,
    EmailCredentials,
    NotificationSettings,
)
from fvg_monitor.core.exceptions import CredentialError
from fvg_monitor.core.retry import RetryPolicy
from fvg_monitor.data.market_data import BingXMarketData
from fvg_monitor.notification.dispatcher import EmailNotifier, InAppNotifier, NotificationDispatcher
from fvg_monitor.pipeline.cycle import FvgPipeline
from fvg_monitor.pipeline.scheduler import PipelineScheduler
from fvg_monitor.storage.repository import FvgRepository, create_engine_from_settings
from tests.conftest import make_session

# Newest first, as BingX returns them: window 0 bullish (gap 1), window 3 bearish (gap 2)
KLINES = [
    {"open": "103", "close": "103", "high": "104", "low": "102", "volume": "140", "time": 6000},
    {"open": "110", "close": "108", "high": "112", "low": "105", "volume": "130", "time": 5000},
    {"open": "110", "close": "112", "high": "116", "low": "106", "volume": "120", "time": 4000},
    {"open": "112", "close": "114", "high": "115", "low": "111", "volume": "200", "time": 3000},
    {"open": "104", "close": "110", "high": "112", "low": "102", "volume": "150", "time": 2000},
    {"open": "96", "close": "108", "high": "110", "low": "95", "volume": "100", "time": 1000},
]


@pytest_asyncio.fixture
async def pipeline_parts(market_data_settings, api_credentials):
    """
    Assemble a real pipeline with mocked HTTP sessions.

    Returns:
        Tuple: (pipeline, repository, in_app, email_session)
    """
    market_session = make_session(payload={"code": 0, "msg": "", "data": KLINES})
    email_session = make_session(status=202)

    engine = create_engine_from_settings(DatabaseSettings(url="sqlite://"))
    repository = FvgRepository(engine)
    repository.create_tables()

    in_app = InAppNotifier()
    email = EmailNotifier(
        EmailCredentials(api_url="https://email.example.com/v3/mail/send", api_key="SG.test"),
        "alerts@example.com",
        retry_policy=RetryPolicy(max_attempts=2, delay=0),
        session=email_session,
    )
    settings = NotificationSettings(
        enabled=True,
        user_id="trader",
        recipient_email="me@example.com",
        sender_email="alerts@example.com",
    )

    pipeline = FvgPipeline(
        BingXMarketData(market_data_settings, api_credentials, session=market_session),
        repository,
        NotificationDispatcher(in_app, email),
        settings,
        symbol="BTC-USDT",
    )

    yield pipeline, repository, in_app, email_session

    engine.dispose()


class TestPipelineEndToEnd:
    """Test a cycle through every real component."""

    @pytest.mark.asyncio
    async def test_cycle_stores_and_notifies(self, pipeline_parts):
        """Test that both gaps are stored exactly and announced on both channels."""
        pipeline, repository, in_app, email_session = pipeline_parts

        result = await pipeline.run_cycle()

        assert result.is_success is True
        stored = [row.to_event() for row in repository.fetch_all()]
        assert [(e.fvg_type, e.start_time, e.end_time, e.gap_size, e.volume) for e in stored] == [
            ("bullish", 1000, 3000, 1.0, 450.0),
            ("bearish", 4000, 6000, 2.0, 390.0),
        ]

        assert len(in_app.sent) == 1
        assert in_app.sent[0]["title"] == "BTC-USDT: 2 Fair Value Gap(s) detected (1 bullish, 1 bearish)"

        email_session.post.assert_called_once()
        payload = email_session.post.call_args.kwargs["json"]
        assert payload["personalizations"] == [{"to": [{"email": "me@example.com"}]}]
        assert payload["subject"] == in_app.sent[0]["title"]

    @pytest.mark.asyncio
    async def test_email_failure_keeps_stored_results(self, pipeline_parts):
        """Test that an unreachable e-mail service does not undo storage."""
        pipeline, repository, in_app, email_session = pipeline_parts
        email_session.response.status = 503

        result = await pipeline.run_cycle()

        assert result.is_success is True
        assert len(repository.fetch_all()) == 2
        assert len(in_app.sent) == 1
        assert email_session.post.call_count == 2

    @pytest.mark.asyncio
    async def test_scheduled_cycles_accumulate_results(self, pipeline_parts):
        """Test that each scheduled cycle appends its own rows."""
        pipeline, repository, _, _ = pipeline_parts
        scheduler = PipelineScheduler(pipeline, interval_seconds=3600)

        await pipeline.run_cycle()
        async with scheduler:
            await asyncio.sleep(0.05)

        assert scheduler.run_count == 1
        assert len(repository.fetch_all()) == 4


class TestFvgMonitorApp:
    """Test application assembly from configuration and environment."""

    @pytest.fixture
    def environment(self, monkeypatch):
        monkeypatch.setenv("BINGX_API_URL", "http://dummy-api.com/")
        monkeypatch.setenv("BINGX_API_KEY", "dummy-key")
        monkeypatch.setenv("BINGX_API_SECRET", "dummy-secret")
        monkeypatch.setenv("EMAIL_API_URL", "https://email.example.com/v3/mail/send")
        monkeypatch.setenv("EMAIL_API_KEY", "SG.test")

    @pytest.mark.asyncio
    async def test_app_runs_cycle_and_releases_resources(self, environment):
        """Test a cycle through FvgMonitorApp with in-app notifications only."""
        config = AppConfig.model_validate({
            "market_data": {"symbol": "BTC-USDT", "limit": 6},
            "database": {"url": "sqlite://"},
            "notifications": {"enabled": True, "user_id": "trader"},
        })
        session = make_session(payload=KLINES)

        with patch("fvg_monitor.data.market_data.aiohttp.ClientSession", return_value=session):
            async with FvgMonitorApp(config) as app:
                assert app.market_data.credentials.base_url == "http://dummy-api.com"
                assert app.dispatcher.email is None

                result = await app.pipeline.run_cycle()

                assert result.is_success is True
                assert len(result.data) == 2
                assert len(app.dispatcher.in_app.sent) == 1

        session.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_app_builds_email_channel_for_recipient(self, environment):
        """Test that a configured recipient enables the e-mail channel."""
        config = AppConfig.model_validate({
            "database": {"url": "sqlite://"},
            "notifications": {
                "enabled": True,
                "recipient_email": "me@example.com",
                "sender_email": "alerts@example.com",
                "retry": {"max_attempts": 5},
            },
        })

        async with FvgMonitorApp(config) as app:
            assert isinstance(app.dispatcher.email, EmailNotifier)
            assert app.dispatcher.email.retry_policy.max_attempts == 5

    @pytest.mark.asyncio
    async def test_app_without_notifications(self, environment):
        """Test that disabled notifications build no dispatcher."""
        config = AppConfig.model_validate({"database": {"url": "sqlite://"}})

        async with FvgMonitorApp(config) as app:
            assert app.dispatcher is None
            assert app.scheduler().interval_seconds == 300

    @pytest.mark.asyncio
    async def test_missing_market_credentials_open_nothing(self, monkeypatch):
        """Test that no database engine is created when BingX credentials are missing."""
        for name in ("BINGX_API_URL", "BINGX_API_KEY", "BINGX_API_SECRET"):
            monkeypatch.delenv(name, raising=False)
        config = AppConfig.model_validate({"database": {"url": "sqlite://"}})

        with patch("fvg_monitor.app.build_repository") as mock_build:
            with pytest.raises(CredentialError, match="BINGX_API_KEY"):
                async with FvgMonitorApp(config):
                    pass

        mock_build.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_email_credentials_open_nothing(self, environment, monkeypatch):
        """Test that no database engine is created when e-mail credentials are missing."""
        monkeypatch.delenv("EMAIL_API_KEY")
        config = AppConfig.model_validate({
            "database": {"url": "sqlite://"},
            "notifications": {
                "enabled": True,
                "recipient_email": "me@example.com",
                "sender_email": "alerts@example.com",
            },
        })

        with patch("fvg_monitor.app.build_repository") as mock_build:
            with pytest.raises(CredentialError, match="EMAIL_API_KEY"):
                async with FvgMonitorApp(config):
                    pass

        mock_build.assert_not_called()
