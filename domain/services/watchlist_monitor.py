"""Watchlist price monitor and alert feed."""
import threading
import uuid
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from ..entities.money import quantize_money, percent_of
from ..entities.quote import Quote
from ..entities.watchlist import AlertDirection, WatchlistAlert
from shared.logging import get_logger

AlertCallback = Callable[[WatchlistAlert], None]


class WatchlistMonitor:
    """Tracks the baseline price of each watched symbol and detects big moves.

    A symbol is Unobserved until its first quote, which only seeds the
    baseline. Afterwards a move of at least ``threshold`` (a fraction of the
    baseline) raises an alert and moves the baseline to the new price.

    With ``cumulative=True`` smaller moves leave the baseline alone, so
    drift accumulates until it crosses the threshold from the last alerted
    price. With ``cumulative=False`` the baseline follows every observed
    price and only per-refresh movement counts.
    """

    def __init__(self, threshold: Decimal = Decimal('0.01'), cumulative: bool = True,
                 clock: Optional[Callable[[], datetime]] = None):
        if not Decimal('0') < threshold < Decimal('1'):
            raise ValueError("Alert threshold must be between 0 and 1")
        self.threshold = threshold
        self.cumulative = cumulative
        self._clock = clock or datetime.now
        self._baselines: Dict[str, Decimal] = {}
        self.logger = get_logger(__name__)

    def baseline(self, symbol: str) -> Optional[Decimal]:
        """Last reference price for ``symbol``; None while unobserved."""
        return self._baselines.get(symbol)

    def forget(self, symbol: str) -> None:
        """Return a symbol to the Unobserved state."""
        self._baselines.pop(symbol, None)

    def observe(self, quotes: Iterable[Quote], watched: Iterable[str],
                now: Optional[datetime] = None) -> List[WatchlistAlert]:
        """Process one refresh cycle and return the alerts it raised."""
        now = now or self._clock()
        watched = set(watched)
        by_symbol = {q.symbol: q for q in quotes}

        for symbol in list(self._baselines):
            if symbol not in watched:
                self.forget(symbol)

        alerts: List[WatchlistAlert] = []
        for symbol in sorted(watched):
            quote = by_symbol.get(symbol)
            if quote is None:
                continue

            last_price = self._baselines.get(symbol)
            if last_price is None:
                self._baselines[symbol] = quote.price
                continue

            delta = quote.price - last_price
            if abs(delta) >= last_price * self.threshold:
                alerts.append(self._make_alert(quote, last_price, delta, now))
                self._baselines[symbol] = quote.price
            elif not self.cumulative:
                self._baselines[symbol] = quote.price

        if alerts:
            self.logger.info(f"Watchlist cycle raised {len(alerts)} alerts: "
                             f"{', '.join(a.symbol for a in alerts)}")
        return alerts

    @staticmethod
    def _make_alert(quote: Quote, last_price: Decimal, delta: Decimal,
                    now: datetime) -> WatchlistAlert:
        return WatchlistAlert(
            id=f"{quote.symbol}-{int(now.timestamp() * 1000)}-{uuid.uuid4().hex[:6]}",
            symbol=quote.symbol,
            name=quote.name,
            price=quote.price,
            previous_price=last_price,
            price_delta=quantize_money(delta),
            change_percent=percent_of(delta, last_price),
            day_change_percent=quote.change_percent,
            direction=AlertDirection.GAIN if delta > 0 else AlertDirection.LOSS,
            timestamp=now,
        )


class AlertFeed:
    """Holds the most recent alerts and notifies subscribers.

    At most ``max_notifications`` alerts are kept. Each alert expires
    ``ttl_seconds`` after it was published regardless of later arrivals.
    """

    def __init__(self, max_notifications: int = 5, ttl_seconds: int = 10,
                 clock: Optional[Callable[[], datetime]] = None):
        self.max_notifications = max_notifications
        self.ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock or datetime.now
        self._alerts: List[Tuple[WatchlistAlert, datetime]] = []
        self._subscribers: List[AlertCallback] = []
        self._lock = threading.Lock()
        self.logger = get_logger(__name__)

    def subscribe(self, callback: AlertCallback) -> Callable[[], None]:
        """Register ``callback`` for every new alert. Returns an unsubscribe function."""
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def publish(self, alert: WatchlistAlert) -> None:
        published_at = self._clock()
        with self._lock:
            self._alerts.insert(0, (alert, published_at + self.ttl))
            del self._alerts[self.max_notifications:]
            subscribers = list(self._subscribers)

        for callback in subscribers:
            try:
                callback(alert)
            except Exception:
                self.logger.exception(f"Alert subscriber failed for {alert.symbol}")

    def active(self, now: Optional[datetime] = None) -> List[WatchlistAlert]:
        """Unexpired alerts, newest first."""
        now = now or self._clock()
        with self._lock:
            self._alerts = [(a, expires) for a, expires in self._alerts if expires > now]
            return [a for a, _ in self._alerts]

    def dismiss(self, alert_id: str) -> bool:
        with self._lock:
            before = len(self._alerts)
            self._alerts = [(a, e) for a, e in self._alerts if a.id != alert_id]
            return len(self._alerts) < before
