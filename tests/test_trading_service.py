import asyncio
import threading
from datetime import datetime
from decimal import Decimal

import pytest
import pytz

from application.services.trading_service import TradingService
from domain.entities.watchlist import AlertDirection
from shared.exceptions import (
    AccountNotFound,
    DuplicateOperationError,
    InsufficientFunds,
    QuoteUnavailableError,
    UnknownSymbolError,
    ValidationError,
)

NOW = pytz.timezone('Asia/Kolkata').localize(datetime(2024, 1, 2, 10, 0))


@pytest.fixture
def service(ledger, watchlist_repo, quotes, settings):
    settings.quotes.default_symbols = ['RELIANCE', 'TCS', 'INFY']
    return TradingService(ledger, watchlist_repo, quotes, settings, clock=lambda: NOW)


@pytest.fixture
def alice(service):
    return asyncio.run(service.open_account('alice'))


class TestAccounts:

    def test_open_account_with_default_balance(self, service):
        account = asyncio.run(service.open_account('alice'))
        assert account.initial_balance == Decimal('1000000')
        summary = asyncio.run(service.portfolio_summary('alice'))
        assert summary.balance == Decimal('1000000')
        assert summary.net_worth == Decimal('1000000')

    def test_open_account_is_idempotent(self, service):
        asyncio.run(service.open_account('alice', initial_balance=50000))
        again = asyncio.run(service.open_account('alice', initial_balance=900000))
        assert again.initial_balance == Decimal('50000.00')

    @pytest.mark.parametrize("balance", ['9999.99', '10000000.01', 'lots', 'NaN', 'sNaN', 'Infinity', '-Infinity'])
    def test_initial_balance_out_of_range(self, service, balance):
        with pytest.raises(ValidationError):
            asyncio.run(service.open_account('alice', initial_balance=balance))

    def test_summary_requires_account(self, service):
        with pytest.raises(AccountNotFound):
            asyncio.run(service.portfolio_summary('ghost'))


class TestTrading:

    def test_reliance_scenario(self, service, quotes, alice):
        bought = asyncio.run(service.buy_stock('alice', 'RELIANCE', 10, price='2847.50'))
        assert bought.success
        assert bought.message == 'Bought 10 RELIANCE @ ₹2,847.50'

        sold = asyncio.run(service.sell_stock('alice', 'RELIANCE', 4, price='2900'))
        assert sold.success
        assert sold.transaction.total == Decimal('11600.00')

        quotes.set_price('RELIANCE', '2900')
        summary = asyncio.run(service.portfolio_summary('alice'))
        assert summary.balance == Decimal('983125.00')
        assert summary.portfolio_value == Decimal('17400.00')
        assert summary.invested_value == Decimal('17085.00')
        assert summary.total_profit_loss == Decimal('315.00')
        assert summary.net_worth == Decimal('1000525.00')
        assert summary.holdings_count == 1

    def test_price_defaults_to_quote_shown_to_user(self, service, quotes, alice):
        quotes.get_quotes(['RELIANCE'])
        quotes.set_price('RELIANCE', '3000')

        result = asyncio.run(service.buy_stock('alice', 'reliance', 2))

        assert result.success
        assert result.transaction.price == Decimal('2847.50')
        assert result.transaction.name == 'RELIANCE Ltd'

    def test_no_quote_shown_yet(self, service, alice):
        result = asyncio.run(service.buy_stock('alice', 'TCS', 1))
        assert not result.success
        assert isinstance(result.error, QuoteUnavailableError)

    def test_rejection_is_reported_as_failed_result(self, service, ledger, alice):
        result = asyncio.run(service.buy_stock('alice', 'TCS', 1000, price='3500'))

        assert not result.success
        assert isinstance(result.error, InsufficientFunds)
        data = result.to_dict()
        assert data['success'] is False
        assert data['error'] == 'InsufficientFunds'
        assert 'short by ₹2,500,000.00' in data['message']
        assert asyncio.run(ledger.get_wallet('alice')).balance == Decimal('1000000')

    def test_oversized_order_is_insufficient_funds(self, service, ledger, alice):
        result = asyncio.run(service.buy_stock('alice', 'RELIANCE', 10 ** 24, price='2847.50'))

        assert not result.success
        assert isinstance(result.error, InsufficientFunds)
        assert result.to_dict()['error'] == 'InsufficientFunds'
        assert asyncio.run(ledger.get_wallet('alice')).balance == Decimal('1000000')

    @pytest.mark.parametrize("side", ['buy', 'sell'])
    def test_unknown_symbol_rejected_even_with_price(self, service, ledger, alice, side):
        trade = service.buy_stock if side == 'buy' else service.sell_stock
        result = asyncio.run(trade('alice', 'NOTAREALSTOCK', 5, price='10'))

        assert not result.success
        assert isinstance(result.error, UnknownSymbolError)
        assert asyncio.run(ledger.get_holdings('alice')) == []
        assert asyncio.run(ledger.get_transactions('alice')) == []

    def test_operation_id_reused_for_another_order(self, service, alice):
        asyncio.run(service.buy_stock('alice', 'RELIANCE', 10, price='2847.50', operation_id='op-1'))
        asyncio.run(service.buy_stock('alice', 'TCS', 5, price='3500'))

        result = asyncio.run(service.sell_stock('alice', 'TCS', 3, price='3500', operation_id='op-1'))

        assert not result.success
        assert isinstance(result.error, DuplicateOperationError)
        assert asyncio.run(service.get_holding('alice', 'TCS')).quantity == 5

    def test_quote_fetches_run_off_the_event_loop_thread(self, service, quotes, alice, monkeypatch):
        threads = []
        fetch = quotes.get_quotes

        def recording_fetch(symbols=None):
            threads.append(threading.get_ident())
            return fetch(symbols)

        monkeypatch.setattr(quotes, 'get_quotes', recording_fetch)
        asyncio.run(service.buy_stock('alice', 'TCS', 1, price='3500'))
        asyncio.run(service.add_to_watchlist('alice', 'INFY'))
        asyncio.run(service.portfolio_summary('alice'))
        asyncio.run(service.refresh_quotes())

        assert len(threads) == 3
        assert threading.get_ident() not in threads

    def test_sell_without_account(self, service):
        result = asyncio.run(service.sell_stock('ghost', 'TCS', 1, price='100'))
        assert isinstance(result.error, AccountNotFound)

    def test_operation_id_makes_retries_safe(self, service, alice):
        first = asyncio.run(service.buy_stock('alice', 'TCS', 1, price='3500', operation_id='tap-1'))
        second = asyncio.run(service.buy_stock('alice', 'TCS', 1, price='3500', operation_id='tap-1'))

        assert first.transaction.id == second.transaction.id
        assert asyncio.run(service.get_holding('alice', 'tcs')).quantity == 1

    def test_transactions_page(self, service, alice):
        for _ in range(3):
            asyncio.run(service.buy_stock('alice', 'INFY', 1, price='1500'))
        assert len(asyncio.run(service.get_transactions('alice'))) == 3
        assert len(asyncio.run(service.get_transactions('alice', limit=2))) == 2

    def test_holdings_valuation_marks_missing_quotes_stale(self, service, quotes, alice):
        asyncio.run(service.buy_stock('alice', 'TCS', 2, price='3400'))
        quotes.unavailable.add('TCS')

        valuation = asyncio.run(service.get_holdings_valuation('alice'))

        assert valuation.stale_symbols == ('TCS',)
        assert valuation.holdings[0].current_value == Decimal('6800.00')


class TestWatchlist:

    def test_add_and_list(self, service, alice):
        assert asyncio.run(service.add_to_watchlist('alice', 'tcs')) is True
        assert asyncio.run(service.add_to_watchlist('alice', 'TCS')) is False
        assert asyncio.run(service.is_watched('alice', 'TCS')) is True

        entries = asyncio.run(service.get_watchlist('alice'))
        assert [(e.symbol, e.name) for e in entries] == [('TCS', 'TCS Ltd')]

    def test_unknown_symbol_rejected(self, service, alice):
        with pytest.raises(UnknownSymbolError):
            asyncio.run(service.add_to_watchlist('alice', 'NOPE'))

    def test_requires_account(self, service):
        with pytest.raises(AccountNotFound):
            asyncio.run(service.add_to_watchlist('ghost', 'TCS'))

    def test_refresh_raises_alerts_for_watchers(self, service, quotes, alice):
        asyncio.run(service.add_to_watchlist('alice', 'TCS'))
        received = []
        service.on_alert('alice', received.append)

        assert asyncio.run(service.refresh_quotes()) == {}
        quotes.set_price('TCS', '3535')
        raised = asyncio.run(service.refresh_quotes())

        assert list(raised) == ['alice']
        alert = raised['alice'][0]
        assert alert.symbol == 'TCS'
        assert alert.direction == AlertDirection.GAIN
        assert alert.price_delta == Decimal('35.00')
        assert received == [alert]
        assert service.active_alerts('alice') == [alert]
        assert service.dismiss_alert('alice', alert.id) is True

    def test_small_moves_accumulate(self, service, quotes, alice):
        asyncio.run(service.add_to_watchlist('alice', 'TCS'))
        asyncio.run(service.refresh_quotes())

        quotes.set_price('TCS', '3520')
        assert asyncio.run(service.refresh_quotes()) == {}
        quotes.set_price('TCS', '3540')
        assert 'alice' in asyncio.run(service.refresh_quotes())

    def test_removing_symbol_resets_its_state(self, service, quotes, alice):
        asyncio.run(service.add_to_watchlist('alice', 'TCS'))
        asyncio.run(service.refresh_quotes())

        assert asyncio.run(service.remove_from_watchlist('alice', 'TCS')) is True
        quotes.set_price('TCS', '4000')
        asyncio.run(service.add_to_watchlist('alice', 'TCS'))

        assert asyncio.run(service.refresh_quotes()) == {}
        assert asyncio.run(service.is_watched('alice', 'TCS')) is True
