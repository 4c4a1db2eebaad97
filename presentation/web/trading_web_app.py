"""
Virtual Trading Web Application

JSON API over the trading service:
1. Accounts, portfolio summary and holdings valuation
2. Buy and sell orders with optional idempotency keys
3. Transaction history and realized P&L
4. Watchlist and price alerts
5. Quotes and price history
"""

import asyncio
from typing import Any, Dict, Optional, Tuple

from flask import Flask, jsonify, request

from shared.config import get_settings, setup_logging
from shared.exceptions import (
    AuthenticationError,
    ConcurrentModificationError,
    DuplicateOperationError,
    NotAuthenticated,
    TradeError,
    ValidationError,
    VirtualTradingError,
)
from shared.logging import get_logger
from infrastructure.database import SqliteLedgerRepository, SqliteWatchlistRepository
from infrastructure.market_data import QuoteCache, YFinanceQuoteSource
from application.services.trading_service import TradingService, TradeResult
from application.services.ledger_report_service import LedgerReportService
from application.services.quote_refresh_service import QuoteRefreshService

USER_HEADER = 'X-User-Id'
IDEMPOTENCY_HEADER = 'Idempotency-Key'


def status_for(error: VirtualTradingError) -> int:
    """HTTP status code for an application error."""
    if isinstance(error, ValidationError):
        return 400
    if isinstance(error, AuthenticationError):
        return 401
    if isinstance(error, (ConcurrentModificationError, DuplicateOperationError)):
        return 409
    if isinstance(error, TradeError):
        return 422
    return 503


def _run_async(coro):
    """Run a coroutine to completion on a private event loop."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


class TradingWebApp:
    """Flask application exposing the virtual trading ledger."""

    def __init__(
        self,
        trading_service: Optional[TradingService] = None,
        report_service: Optional[LedgerReportService] = None,
        refresh_service: Optional[QuoteRefreshService] = None,
        db_path: Optional[str] = None
    ):
        setup_logging()
        self.logger = get_logger(__name__)
        self.settings = get_settings()

        if trading_service is None:
            ledger_repo = SqliteLedgerRepository(db_path=db_path)
            watchlist_repo = SqliteWatchlistRepository(db_path=db_path)
            quote_source = YFinanceQuoteSource(
                self.settings.quotes, cache=QuoteCache(self.settings.quotes.cache_ttl_seconds)
            )
            trading_service = TradingService(ledger_repo, watchlist_repo, quote_source, self.settings)

        self.trading = trading_service
        self.reports = report_service or LedgerReportService(self.trading.ledger)
        self.refresher = refresh_service

        self.app = Flask(__name__)
        self._setup_routes()

    @staticmethod
    def _user_id() -> str:
        user_id = request.headers.get(USER_HEADER, '').strip()
        if not user_id:
            raise NotAuthenticated("Missing caller identity", {'header': USER_HEADER})
        return user_id

    @staticmethod
    def _payload() -> Dict[str, Any]:
        data = request.get_json(silent=True)
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ValidationError("Request body must be a JSON object")
        return data

    @staticmethod
    def _int_arg(name: str) -> Optional[int]:
        raw = request.args.get(name)
        if raw is None:
            return None
        try:
            value = int(raw)
        except ValueError:
            raise ValidationError(f"'{name}' must be an integer", {name: raw})
        if value <= 0:
            raise ValidationError(f"'{name}' must be positive", {name: raw})
        return value

    @staticmethod
    def _trade_response(result: TradeResult) -> Tuple[Any, int]:
        if result.success:
            return jsonify(result.to_dict()), 200
        return jsonify(result.to_dict()), status_for(result.error)

    def _setup_routes(self):
        """Setup Flask routes."""

        @self.app.errorhandler(VirtualTradingError)
        def handle_app_error(error: VirtualTradingError):
            status = status_for(error)
            if status >= 500:
                self.logger.error(f"{request.method} {request.path} failed: {error}")
            return jsonify(error.to_dict()), status

        @self.app.route('/api/health')
        def api_health():
            """Service health and refresh task status."""
            return jsonify({
                'status': 'ok',
                'environment': self.settings.environment,
                'refresh': self.refresher.get_task_status() if self.refresher else None,
            })

        # Account routes
        @self.app.route('/api/accounts', methods=['POST'])
        def api_open_account():
            """Open a virtual trading account for the caller."""
            user_id = self._user_id()
            data = self._payload()
            account = _run_async(self.trading.open_account(
                user_id,
                initial_balance=data.get('initial_balance'),
                display_name=data.get('display_name'),
            ))
            return jsonify({
                'user_id': account.user_id,
                'display_name': account.display_name,
                'initial_balance': str(account.initial_balance),
                'created_at': account.created_at.isoformat(),
            }), 201

        # Portfolio routes
        @self.app.route('/api/portfolio')
        def api_portfolio_summary():
            user_id = self._user_id()
            summary = _run_async(self.trading.portfolio_summary(user_id))
            return jsonify(summary.to_dict())

        @self.app.route('/api/holdings')
        def api_holdings():
            user_id = self._user_id()
            valuation = _run_async(self.trading.get_holdings_valuation(user_id))
            return jsonify(valuation.to_dict())

        @self.app.route('/api/holdings/<symbol>')
        def api_holding(symbol):
            user_id = self._user_id()
            holding = _run_async(self.trading.get_holding(user_id, symbol))
            if holding is None:
                return jsonify({'error': 'NoSuchHolding', 'message': f"You don't own {symbol.upper()}"}), 404
            return jsonify(holding.to_dict())

        # Trading routes
        def execute(side: str):
            user_id = self._user_id()
            data = self._payload()
            order = self.trading.buy_stock if side == 'buy' else self.trading.sell_stock
            result = _run_async(order(
                user_id,
                data.get('symbol', ''),
                data.get('quantity'),
                price=data.get('price'),
                operation_id=data.get('operation_id') or request.headers.get(IDEMPOTENCY_HEADER),
            ))
            return self._trade_response(result)

        @self.app.route('/api/trades/buy', methods=['POST'])
        def api_buy_stock():
            return execute('buy')

        @self.app.route('/api/trades/sell', methods=['POST'])
        def api_sell_stock():
            return execute('sell')

        # History routes
        @self.app.route('/api/transactions')
        def api_transactions():
            user_id = self._user_id()
            transactions = _run_async(self.trading.get_transactions(user_id, limit=self._int_arg('limit')))
            return jsonify([t.to_dict() for t in transactions])

        @self.app.route('/api/transactions/realized')
        def api_realized():
            """Realized profit/loss per symbol."""
            user_id = self._user_id()
            by_symbol = _run_async(self.reports.realized_by_symbol(user_id))
            total = _run_async(self.reports.total_realized(user_id))
            return jsonify({
                'total_realized': str(total),
                'by_symbol': [{
                    'symbol': row.symbol,
                    'shares_sold': int(row.shares_sold),
                    'proceeds': float(row.proceeds),
                    'cost_basis': float(row.cost_basis),
                    'realized_pl': float(row.realized_pl),
                } for row in by_symbol.itertuples(index=False)],
            })

        # Watchlist routes
        @self.app.route('/api/watchlist', methods=['GET'])
        def api_watchlist():
            user_id = self._user_id()
            entries = _run_async(self.trading.get_watchlist(user_id))
            return jsonify([e.to_dict() for e in entries])

        @self.app.route('/api/watchlist', methods=['POST'])
        def api_watchlist_add():
            user_id = self._user_id()
            symbol = self._payload().get('symbol', '')
            added = _run_async(self.trading.add_to_watchlist(user_id, symbol))
            return jsonify({'symbol': symbol.strip().upper(), 'added': added}), 201 if added else 200

        @self.app.route('/api/watchlist/<symbol>', methods=['DELETE'])
        def api_watchlist_remove(symbol):
            user_id = self._user_id()
            removed = _run_async(self.trading.remove_from_watchlist(user_id, symbol))
            return jsonify({'symbol': symbol.upper(), 'removed': removed})

        @self.app.route('/api/alerts')
        def api_alerts():
            user_id = self._user_id()
            return jsonify([a.to_dict() for a in self.trading.active_alerts(user_id)])

        # Quote routes
        @self.app.route('/api/quotes')
        def api_quotes():
            raw = request.args.get('symbols')
            symbols = [s for s in raw.split(',') if s.strip()] if raw else None
            quotes = self.trading.quotes.get_quotes(symbols)
            return jsonify([q.to_dict() for q in quotes])

        @self.app.route('/api/quotes/<symbol>/history')
        def api_quote_history(symbol):
            history = self.trading.quotes.get_history(symbol)
            return jsonify({
                'symbol': symbol.upper(),
                'history': [p.to_dict() for p in history],
            })

    def run(self, host: str = '127.0.0.1', port: int = 5000):
        """Start the refresh loop and serve the API."""
        if self.refresher is None:
            self.refresher = QuoteRefreshService(
                self.trading, interval_seconds=self.settings.quotes.refresh_interval_seconds
            )
        self.refresher.start()
        self.logger.info(f"Starting virtual trading API on http://{host}:{port}")
        try:
            self.app.run(host=host, port=port, debug=self.settings.debug, use_reloader=False)
        finally:
            self.refresher.stop()


def create_app(**kwargs) -> Flask:
    """Flask application factory."""
    return TradingWebApp(**kwargs).app


def main():
    TradingWebApp().run()


if __name__ == '__main__':
    main()
