from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from domain.entities.quote import Quote
from domain.entities.watchlist import AlertDirection
from domain.services.watchlist_monitor import AlertFeed, WatchlistMonitor

T0 = datetime(2024, 1, 2, 10, 0, 0)


def quote(symbol, price, day_change='0.50'):
    return Quote(
        symbol=symbol, name=f"{symbol} Ltd", price=Decimal(price), change=Decimal('0'),
        change_percent=Decimal(day_change), volume=0, is_live=True, last_updated=T0,
    )


class TestWatchlistMonitor:

    def test_first_observation_seeds_without_alert(self):
        monitor = WatchlistMonitor()
        assert monitor.observe([quote('TCS', '100')], ['TCS'], now=T0) == []
        assert monitor.baseline('TCS') == Decimal('100')

    def test_gain_alert_at_threshold(self):
        monitor = WatchlistMonitor()
        monitor.observe([quote('TCS', '100')], ['TCS'], now=T0)

        alerts = monitor.observe([quote('TCS', '101', day_change='1.20')], ['TCS'], now=T0)

        assert len(alerts) == 1
        alert = alerts[0]
        assert alert.direction == AlertDirection.GAIN
        assert alert.price_delta == Decimal('1.00')
        assert alert.change_percent == Decimal('1.00')
        assert alert.day_change_percent == Decimal('1.20')
        assert alert.previous_price == Decimal('100')
        assert alert.name == 'TCS Ltd'
        assert alert.id.startswith('TCS-')
        assert monitor.baseline('TCS') == Decimal('101')

    def test_loss_alert(self):
        monitor = WatchlistMonitor()
        monitor.observe([quote('INFY', '2000')], ['INFY'], now=T0)

        alerts = monitor.observe([quote('INFY', '1970')], ['INFY'], now=T0)

        assert alerts[0].direction == AlertDirection.LOSS
        assert alerts[0].price_delta == Decimal('-30.00')
        assert alerts[0].change_percent == Decimal('-1.50')

    def test_cumulative_drift_triggers_alert(self):
        monitor = WatchlistMonitor(cumulative=True)
        monitor.observe([quote('TCS', '100')], ['TCS'], now=T0)

        assert monitor.observe([quote('TCS', '100.60')], ['TCS'], now=T0) == []
        assert monitor.baseline('TCS') == Decimal('100')
        alerts = monitor.observe([quote('TCS', '101.10')], ['TCS'], now=T0)

        assert len(alerts) == 1
        assert alerts[0].price_delta == Decimal('1.10')

    def test_per_cycle_mode_ignores_slow_drift(self):
        monitor = WatchlistMonitor(cumulative=False)
        monitor.observe([quote('TCS', '100')], ['TCS'], now=T0)

        assert monitor.observe([quote('TCS', '100.60')], ['TCS'], now=T0) == []
        assert monitor.baseline('TCS') == Decimal('100.60')
        assert monitor.observe([quote('TCS', '101.10')], ['TCS'], now=T0) == []

    def test_unwatched_symbols_are_forgotten(self):
        monitor = WatchlistMonitor()
        monitor.observe([quote('TCS', '100')], ['TCS'], now=T0)
        monitor.observe([quote('TCS', '150')], [], now=T0)
        assert monitor.baseline('TCS') is None

        # Re-watching starts again from Unobserved
        assert monitor.observe([quote('TCS', '200')], ['TCS'], now=T0) == []

    def test_missing_quote_keeps_state(self):
        monitor = WatchlistMonitor()
        monitor.observe([quote('TCS', '100')], ['TCS'], now=T0)
        assert monitor.observe([], ['TCS'], now=T0) == []
        assert monitor.baseline('TCS') == Decimal('100')

    def test_invalid_threshold(self):
        with pytest.raises(ValueError):
            WatchlistMonitor(threshold=Decimal('0'))


class TestAlertFeed:

    def _alerts(self, count):
        monitor = WatchlistMonitor()
        monitor.observe([quote('TCS', '100')], ['TCS'], now=T0)
        alerts = []
        price = Decimal('100')
        for _ in range(count):
            price = price * Decimal('1.02')
            alerts.extend(monitor.observe([quote('TCS', str(price))], ['TCS'], now=T0))
        return alerts

    def test_keeps_five_most_recent_newest_first(self):
        clock = lambda: T0
        feed = AlertFeed(clock=clock)
        alerts = self._alerts(7)
        for alert in alerts:
            feed.publish(alert)

        active = feed.active()
        assert len(active) == 5
        assert [a.id for a in active] == [a.id for a in reversed(alerts[2:])]

    def test_each_alert_expires_after_ttl(self):
        now = {'t': T0}
        feed = AlertFeed(ttl_seconds=10, clock=lambda: now['t'])
        first, second = self._alerts(2)

        feed.publish(first)
        now['t'] = T0 + timedelta(seconds=6)
        feed.publish(second)

        assert len(feed.active(T0 + timedelta(seconds=9))) == 2
        assert [a.id for a in feed.active(T0 + timedelta(seconds=10))] == [second.id]
        assert feed.active(T0 + timedelta(seconds=16)) == []

    def test_subscribers_receive_alerts_and_can_unsubscribe(self):
        feed = AlertFeed(clock=lambda: T0)
        received = []
        unsubscribe = feed.subscribe(received.append)
        first, second = self._alerts(2)

        feed.publish(first)
        unsubscribe()
        feed.publish(second)

        assert received == [first]

    def test_failing_subscriber_does_not_block_others(self):
        feed = AlertFeed(clock=lambda: T0)
        received = []

        def broken(alert):
            raise RuntimeError("subscriber down")

        feed.subscribe(broken)
        feed.subscribe(received.append)
        alert = self._alerts(1)[0]
        feed.publish(alert)

        assert received == [alert]
        assert feed.active() == [alert]

    def test_dismiss(self):
        feed = AlertFeed(clock=lambda: T0)
        alert = self._alerts(1)[0]
        feed.publish(alert)
        assert feed.dismiss(alert.id) is True
        assert feed.dismiss(alert.id) is False
        assert feed.active() == []
