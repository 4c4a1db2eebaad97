import logging
from logging.handlers import RotatingFileHandler
from decimal import Decimal

import pytest

from shared.config import get_config, get_settings
from shared.config.settings import Settings
from shared.exceptions import ConfigurationError
from shared.logging import get_contextual_logger, get_logger, setup_logging, timed_operation


class TestSettings:

    def test_defaults(self):
        settings = Settings()
        assert settings.trading.initial_balance == Decimal('1000000')
        assert settings.trading.minimum_investment == Decimal('1000')
        assert settings.trading.minimum_investment_enabled is False
        assert settings.trading.transaction_page_size == 50
        assert settings.quotes.cache_ttl_seconds == 300
        assert settings.watchlist.alert_threshold == Decimal('0.01')
        assert settings.watchlist.max_notifications == 5
        assert settings.watchlist.notification_ttl_seconds == 10
        assert settings.tz.zone == 'Asia/Kolkata'
        settings.validate()

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv('LEDGER_DB_NAME', 'tmp/test.db')
        monkeypatch.setenv('TRADING_ENFORCE_MINIMUM', 'true')
        monkeypatch.setenv('TRADING_MINIMUM_INVESTMENT', '2500')
        monkeypatch.setenv('QUOTE_SYMBOLS', 'tcs, infy')
        monkeypatch.setenv('WATCHLIST_CUMULATIVE', 'false')

        settings = Settings.from_env()

        assert settings.database.name == 'tmp/test.db'
        assert settings.trading.minimum_investment_enabled is True
        assert settings.trading.minimum_investment == Decimal('2500')
        assert settings.quotes.default_symbols == ['TCS', 'INFY']
        assert settings.watchlist.cumulative_threshold is False

    def test_bad_decimal_env(self, monkeypatch):
        monkeypatch.setenv('QUOTE_USD_TO_INR', 'eighty')
        with pytest.raises(ValueError):
            Settings.from_env()

    @pytest.mark.parametrize("section, name, value", [
        ('trading', 'initial_balance', Decimal('5000')),
        ('trading', 'max_retries', 0),
        ('quotes', 'usd_to_inr', Decimal('0')),
        ('watchlist', 'alert_threshold', Decimal('1.5')),
        (None, 'timezone', 'Mars/Olympus'),
    ])
    def test_validate_rejects(self, section, name, value):
        settings = Settings()
        setattr(getattr(settings, section) if section else settings, name, value)
        with pytest.raises(ValueError):
            settings.validate()

    def test_update_settings_with_dotted_key(self):
        config = get_config()
        try:
            config.update_settings(**{'trading.minimum_investment_enabled': True})
            assert get_settings().trading.minimum_investment_enabled is True
        finally:
            config.reload()
        assert get_settings().trading.minimum_investment_enabled is False

    def test_invalid_environment_raises_configuration_error(self, monkeypatch):
        config = get_config()
        monkeypatch.setenv('TIMEZONE', 'Mars/Olympus')
        try:
            with pytest.raises(ConfigurationError):
                config.reload()
        finally:
            monkeypatch.delenv('TIMEZONE')
            config.reload()
        assert get_settings().timezone == 'Asia/Kolkata'


class TestLogging:

    def test_contextual_logger_prefixes_context(self, caplog):
        caplog.set_level(logging.INFO)
        log = get_contextual_logger('trades', user='alice', op=None).bind(symbol='TCS')
        assert log.context == {'user': 'alice', 'symbol': 'TCS'}
        log.info("Bought 1")
        assert "[user=alice | symbol=TCS] Bought 1" in caplog.text

    def test_timed_operation_logs_failure(self, caplog):
        caplog.set_level(logging.INFO)
        logger = get_logger('refresh')
        with pytest.raises(RuntimeError):
            with timed_operation(logger, "quote refresh"):
                raise RuntimeError("down")
        assert "Failed quote refresh" in caplog.text

    def test_timed_operation_records_duration(self, caplog):
        caplog.set_level(logging.INFO)
        with timed_operation(get_logger('refresh'), "quote refresh") as timer:
            pass
        assert timer.duration_seconds >= 0
        assert "Completed quote refresh" in caplog.text

    def test_setup_logging_writes_rotating_file(self, tmp_path):
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        log_file = tmp_path / 'logs' / 'ledger.log'
        try:
            setup_logging(level=logging.INFO, log_file=str(log_file))
            get_logger('ledger.accounts').info("Opened account alice")
            for handler in root.handlers:
                handler.flush()

            assert "Opened account alice" in log_file.read_text()
            assert any(isinstance(h, RotatingFileHandler) for h in root.handlers)
            assert logging.getLogger('yfinance').level == logging.WARNING
        finally:
            for handler in root.handlers:
                handler.close()
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)
