"""
Tests for the Trade Lifecycle Monitor

Monitor cycles run against an in-memory repository with scripted pair
evaluations.

Run: pytest tests/test_monitor.py -v
"""

from unittest.mock import MagicMock

import pytest

from statarb.errors import InsufficientData, StateConflict, UpstreamUnavailable
from statarb.lifecycle import (
    AdmissionConfig,
    CycleConfig,
    Direction,
    ExitReason,
    MonitorConfig,
    PositionState,
    RescanGovernor,
    TradeMonitor,
)
from statarb.market_data import AssetContext
from statarb.storage import InMemoryRepository

from conftest import (
    NOW,
    FakeMarketDataClient,
    build_entry,
    build_evaluation,
    build_position,
    cointegrated_prices,
    partially_exited,
)


# ========================================
# FIXTURES
# ========================================

@pytest.fixture
def repository():
    return InMemoryRepository()


@pytest.fixture
def rescan():
    return MagicMock()


@pytest.fixture
def make_monitor(repository, scripted, notifier, rescan):
    """Monitor factory with scripted evaluations and a fixed clock."""
    def factory(config=None):
        monitor = TradeMonitor(
            FakeMarketDataClient(),
            repository,
            config=config or MonitorConfig(),
            notifier=notifier,
            rescan_requester=rescan,
            clock=lambda: NOW,
        )
        monitor.evaluate_pair = scripted
        return monitor
    return factory


@pytest.fixture
def monitor(make_monitor):
    return make_monitor()


class TestEntries:
    """Test watchlist evaluation and entry."""

    def test_enters_valid_pair(self, monitor, repository, scripted, rescan):
        """A validated, admitted pair becomes a position."""
        repository.upsert_watchlist([build_entry("BTC", "ETH")])
        scripted.set("BTC", "ETH", build_evaluation(z=-2.5, beta=0.8))

        result = monitor.run_cycle()

        assert result.entries == ["BTC/ETH"]
        assert result.watchlist_checked == 1
        assert not result.rescan_requested
        rescan.assert_not_called()

        positions = repository.list_positions()
        assert len(positions) == 1
        position = positions[0]
        assert position.direction == Direction.LONG
        assert position.long_asset == "BTC"
        assert position.short_asset == "ETH"
        assert position.long_weight == pytest.approx(1 / 1.8)
        assert position.long_entry_price == 100.0
        assert position.short_entry_price == 50.0
        assert position.entry_z_score == -2.5
        assert position.entry_beta == 0.8
        assert position.state == PositionState.ENTERED
        assert position.source == "bot"

    def test_positive_z_shorts_first_leg(self, monitor, repository, scripted):
        """Spread above its mean: long asset2, short asset1."""
        repository.upsert_watchlist([build_entry("BTC", "ETH")])
        scripted.set("BTC", "ETH", build_evaluation(z=2.5))

        monitor.run_cycle()

        position = repository.list_positions()[0]
        assert position.direction == Direction.SHORT
        assert position.long_asset == "ETH"
        assert position.long_entry_price == 50.0

    def test_watchlist_metrics_refreshed(self, monitor, repository, scripted):
        """Refreshed metrics are written back; discovery fields are kept."""
        repository.upsert_watchlist([build_entry("BTC", "ETH", entry_threshold=2.4, initial_beta=0.9)])
        scripted.set("BTC", "ETH", build_evaluation(z=-1.0, beta=0.72, conviction=55.0))

        monitor.run_cycle()

        entry = repository.get_watchlist_entry("BTC/ETH")
        assert entry.z_score == -1.0
        assert entry.conviction == 55.0
        assert entry.entry_threshold == 2.4
        assert entry.initial_beta == 0.9
        assert entry.beta_drift == pytest.approx(0.2)
        assert not entry.is_ready
        assert entry.updated_at == NOW

    def test_approaching_pair_reported(self, monitor, repository, scripted):
        """Pairs within half the threshold are listed, with blockers."""
        repository.upsert_watchlist([build_entry("BTC", "ETH")])
        scripted.set("BTC", "ETH", build_evaluation(z=-1.2, hurst=0.6))

        result = monitor.run_cycle()

        assert result.entries == []
        assert len(result.approaching) == 1
        approaching = result.approaching[0]
        assert approaching['pair'] == "BTC/ETH"
        assert approaching['proximity'] == pytest.approx(0.6)
        assert approaching['hurst_blocked'] is True
        assert approaching['overlap'] is None

    def test_invalid_pair_not_entered(self, monitor, repository, scripted):
        """At threshold but failing a statistical check."""
        repository.upsert_watchlist([build_entry("BTC", "ETH")])
        scripted.set("BTC", "ETH", build_evaluation(z=-2.5, is_cointegrated=False))

        result = monitor.run_cycle()

        assert result.entries == []
        assert repository.list_positions() == []

    def test_conviction_order_and_overlap(self, monitor, repository, scripted):
        """The higher conviction pair enters; the overlapping one is rejected."""
        repository.upsert_watchlist([
            build_entry("SOL", "BTC"),
            build_entry("BTC", "ETH"),
        ])
        scripted.set("BTC", "ETH", build_evaluation(z=-2.5, conviction=80.0))
        scripted.set("SOL", "BTC", build_evaluation(z=-2.5, conviction=60.0))

        result = monitor.run_cycle()

        assert result.entries == ["BTC/ETH"]
        assert [p.pair for p in repository.list_positions()] == ["BTC/ETH"]

    def test_capacity_limit(self, make_monitor, repository, scripted):
        """Entries stop once the pool is full."""
        monitor = make_monitor(MonitorConfig(admission=AdmissionConfig(max_positions=1)))
        repository.upsert_watchlist([build_entry("BTC", "ETH"), build_entry("SOL", "AVAX")])
        scripted.set("BTC", "ETH", build_evaluation(z=-2.5, conviction=80.0))
        scripted.set("SOL", "AVAX", build_evaluation(z=-2.5, conviction=60.0))

        result = monitor.run_cycle()

        assert result.entries == ["BTC/ETH"]
        assert len(repository.list_positions()) == 1

    def test_blacklisted_pair_skipped(self, monitor, repository, scripted):
        """A blacklisted member blocks entry."""
        repository.upsert_watchlist([build_entry("BTC", "ETH")])
        repository.add_blacklist("eth", "delisting")
        scripted.set("BTC", "ETH", build_evaluation(z=-2.5))

        result = monitor.run_cycle()

        assert result.entries == []
        assert result.skipped["BTC/ETH"].startswith("blacklisted")

    def test_failed_pair_skipped(self, monitor, repository, scripted):
        """One failing pair does not stop the cycle."""
        repository.upsert_watchlist([build_entry("SOL", "AVAX"), build_entry("BTC", "ETH")])
        scripted.set("SOL", "AVAX", InsufficientData("12 aligned bars", available=12, required=15))
        scripted.set("BTC", "ETH", build_evaluation(z=-2.5))

        result = monitor.run_cycle()

        assert "InsufficientData" in result.skipped["SOL/AVAX"]
        assert result.entries == ["BTC/ETH"]
        assert result.watchlist_checked == 1

    def test_notifications_sent(self, monitor, repository, scripted, notifier):
        """Entry message and cycle report."""
        repository.upsert_watchlist([build_entry("BTC", "ETH")])
        scripted.set("BTC", "ETH", build_evaluation(z=-2.5))

        monitor.run_cycle()

        assert any("ENTRY BTC/ETH" in m for m in notifier.messages)
        assert "Monitor: 1/5 positions" in notifier.messages[-1]


class TestExits:
    """Test position exits during the cycle."""

    def test_partial_exit(self, monitor, repository, scripted):
        """Entry z 2.2, threshold 2.0, current z 0.9: half is taken off."""
        repository.create_position(build_position(entry_z=2.2, entry_threshold=2.0))
        scripted.set("BTC", "ETH", build_evaluation(z=0.9))

        result = monitor.run_cycle()

        assert result.partial_exits == ["BTC/ETH"]
        position = repository.get_position("BTC/ETH")
        assert position.state == PositionState.PARTIALLY_EXITED
        assert position.partial_exit_taken
        assert position.partial_exit_pnl == pytest.approx(0.0)
        assert position.partial_exit_time == NOW

    def test_stop_loss_archives(self, monitor, repository, scripted):
        """Stop after partial: position removed, history blended."""
        repository.create_position(partially_exited(
            build_position(entry_z=2.0, entry_threshold=2.0, max_historical_z=2.5), pnl=1.0
        ))
        # Long BTC -1%, short ETH -1%
        scripted.set("BTC", "ETH", build_evaluation(z=3.2, price1=99.0, price2=50.5))

        result = monitor.run_cycle()

        assert result.exits == [{'pair': "BTC/ETH", 'reason': "STOP_LOSS", 'pnl': pytest.approx(0.0)}]
        assert repository.list_positions() == []
        history = repository.list_history()
        assert len(history) == 1
        record = history[0]
        assert record.exit_reason == ExitReason.STOP_LOSS
        assert record.exit_z_score == 3.2
        assert record.long_exit_price == 99.0
        assert record.short_exit_price == 50.5
        assert record.partial_exit_taken
        assert record.days_in_trade == pytest.approx(1.0)

    def test_hold_updates_running_fields(self, monitor, repository, scripted):
        """A held position gets current z, PnL and health."""
        repository.create_position(build_position(entry_z=-2.2))
        scripted.set("BTC", "ETH", build_evaluation(z=-1.5, beta=1.1, price1=101.0, price2=50.0))

        result = monitor.run_cycle()

        assert result.positions_checked == 1
        position = repository.get_position("BTC/ETH")
        assert position.current_z == -1.5
        assert position.current_pnl == pytest.approx(0.5)
        assert position.beta_drift == pytest.approx(0.1)
        assert position.max_beta_drift == pytest.approx(0.1)
        assert position.health_score is not None
        assert position.health_status in ("STRONG", "OK", "WEAK", "BROKEN")
        assert position.last_checked == NOW

    def test_position_fetch_failure_keeps_position(self, monitor, repository):
        """No data for a position leaves it untouched."""
        repository.create_position(build_position())

        result = monitor.run_cycle()

        assert "UpstreamUnavailable" in result.skipped["BTC/ETH"]
        assert result.positions_checked == 0
        assert repository.get_position("BTC/ETH").current_z is None

    def test_open_pair_not_reentered(self, monitor, repository, scripted):
        """A watchlist pair with an open position reuses its evaluation."""
        repository.create_position(build_position())
        repository.upsert_watchlist([build_entry("BTC", "ETH")])
        scripted.set("BTC", "ETH", build_evaluation(z=-2.5))

        result = monitor.run_cycle()

        assert scripted.calls == [("BTC", "ETH")]
        assert result.entries == []
        assert result.watchlist_checked == 1

    def test_closed_pair_not_reentered_same_cycle(self, monitor, repository, scripted):
        """A pair closed by the cycle is not entered again in that cycle."""
        repository.create_position(build_position(entry_z=-2.2, half_life=0.2))
        repository.upsert_watchlist([build_entry("BTC", "ETH")])
        scripted.set("BTC", "ETH", build_evaluation(z=-2.5))

        result = monitor.run_cycle()

        assert result.exits[0]['reason'] == "TIME_STOP"
        assert result.entries == []
        assert repository.list_positions() == []

        # Next cycle the pair is eligible again
        assert monitor.run_cycle().entries == ["BTC/ETH"]


class TestFunding:
    """Test net funding on open positions."""

    def test_net_funding_recorded_and_reported(self, monitor, repository, scripted, notifier):
        """Long BTC / short ETH receives ETH funding and pays BTC funding."""
        monitor.client.contexts = {
            "BTC": AssetContext("BTC", 100.0, 1e9, 1e9, 0.00001),
            "ETH": AssetContext("ETH", 50.0, 1e9, 1e9, 0.00005),
        }
        repository.create_position(build_position(entry_z=-2.2))
        scripted.set("BTC", "ETH", build_evaluation(z=-1.5))

        monitor.run_cycle()

        position = repository.get_position("BTC/ETH")
        assert position.net_funding_8h == pytest.approx(0.032)
        assert "funding +0.0320%/8h" in notifier.messages[-1]

    def test_funding_unavailable_keeps_cycle(self, monitor, repository, scripted, notifier):
        """A failed funding fetch leaves funding out but still runs the cycle."""
        monitor.client.contexts_error = UpstreamUnavailable("metaAndAssetCtxs failed")
        repository.create_position(build_position(entry_z=-2.2))
        scripted.set("BTC", "ETH", build_evaluation(z=-1.5))

        result = monitor.run_cycle()

        assert result.positions_checked == 1
        assert result.error is None
        assert repository.get_position("BTC/ETH").net_funding_8h is None
        assert "funding" not in notifier.messages[-1]

    def test_missing_leg_context(self, monitor, repository, scripted):
        monitor.client.contexts = {"BTC": AssetContext("BTC", 100.0, 1e9, 1e9, 0.00001)}
        repository.create_position(build_position(entry_z=-2.2))
        scripted.set("BTC", "ETH", build_evaluation(z=-1.5))

        monitor.run_cycle()

        assert repository.get_position("BTC/ETH").net_funding_8h is None

    def test_watchlist_funding_spread_refreshed(self, monitor, repository, scripted):
        """Annualized funding of asset1 minus asset2 is stored on the entry."""
        monitor.client.contexts = {
            "SOL": AssetContext("SOL", 100.0, 1e9, 1e9, 0.00001),
            "AVAX": AssetContext("AVAX", 20.0, 1e9, 1e9, 0.00005),
        }
        repository.upsert_watchlist([build_entry("SOL", "AVAX", funding_spread=1.0)])
        scripted.set("SOL", "AVAX", build_evaluation(z=-0.5))

        monitor.run_cycle()

        entry = repository.get_watchlist_entry("SOL/AVAX")
        assert entry.funding_spread == pytest.approx(-35.04)

    def test_watchlist_funding_kept_when_unavailable(self, monitor, repository, scripted):
        monitor.client.contexts_error = UpstreamUnavailable("metaAndAssetCtxs failed")
        repository.upsert_watchlist([build_entry("SOL", "AVAX", funding_spread=1.0)])
        scripted.set("SOL", "AVAX", build_evaluation(z=-0.5))

        result = monitor.run_cycle()

        assert result.error is None
        assert repository.get_watchlist_entry("SOL/AVAX").funding_spread == 1.0


class TestCycle:
    """Test cycle-level behaviour."""

    def test_rescan_once_per_freed_slot(self, monitor, rescan):
        """Idle capacity asks for one rescan, not one per cycle."""
        first = monitor.run_cycle()
        second = monitor.run_cycle()

        assert first.rescan_requested
        assert not second.rescan_requested
        rescan.assert_called_once()

    def test_timeout_skips_remaining(self, make_monitor, repository, scripted):
        """Pairs not reached before the deadline are skipped."""
        monitor = make_monitor(MonitorConfig(cycle=CycleConfig(cycle_timeout_seconds=0)))
        repository.create_position(build_position())
        scripted.set("BTC", "ETH", build_evaluation(z=-1.5))

        result = monitor.run_cycle()

        assert result.timed_out
        assert result.skipped["BTC/ETH"] == "timeout"
        assert repository.get_position("BTC/ETH") is not None

    def test_parallel_fetch(self, make_monitor, repository, scripted):
        """A worker pool gives the same outcome as sequential fetches."""
        monitor = make_monitor(MonitorConfig(cycle=CycleConfig(max_workers=4)))
        repository.upsert_watchlist([build_entry("BTC", "ETH"), build_entry("SOL", "AVAX")])
        scripted.set("BTC", "ETH", build_evaluation(z=-2.5, conviction=80.0))
        scripted.set("SOL", "AVAX", build_evaluation(z=2.5, conviction=60.0))

        result = monitor.run_cycle()

        assert result.entries == ["BTC/ETH", "SOL/AVAX"]
        assert not result.timed_out

    def test_state_unavailable(self, notifier):
        """A failed state load aborts the cycle with an error."""
        repository = MagicMock()
        repository.list_positions.side_effect = UpstreamUnavailable("redis down")
        monitor = TradeMonitor(FakeMarketDataClient(), repository, notifier=notifier, clock=lambda: NOW)

        result = monitor.run_cycle()

        assert result.error.startswith("State unavailable")
        assert result.finished_at == NOW
        assert monitor.last_result is result
        assert notifier.messages[-1].endswith(result.error)

    def test_status(self, monitor, repository):
        repository.create_position(build_position())
        status = monitor.status()

        assert status['open_positions'] == 1
        assert status['free_slots'] == 4
        assert status['positions'] == ["BTC/ETH"]
        assert status['last_cycle'] is None

    def test_real_engine_evaluation(self):
        """Windows are fetched through the client and evaluated."""
        p1, p2 = cointegrated_prices(90)
        client = FakeMarketDataClient({"BTC": list(p1), "ETH": list(p2)})
        monitor = TradeMonitor(client, InMemoryRepository())

        windows, evaluation = monitor.evaluate_pair("BTC", "ETH")

        assert len(windows) == 90
        assert evaluation.reactive.observations == 30
        assert evaluation.current_price1 == pytest.approx(p1[-1])
        assert ("BTC", "1d") in client.candle_calls


class TestTransitions:
    """Test direct state transitions."""

    def test_enter_rejected_by_admission(self, monitor, repository):
        """An entry on an open pair carries the conflict reason."""
        repository.create_position(build_position())

        with pytest.raises(StateConflict) as exc_info:
            monitor.enter_position(build_entry("ETH", "BTC"), build_evaluation(z=-2.5))
        assert exc_info.value.reason == "active_trade"

    def test_partial_only_once(self, monitor, repository):
        repository.create_position(build_position())
        position = monitor.apply_partial_exit(repository.get_position("BTC/ETH"), 1.5)

        with pytest.raises(StateConflict) as exc_info:
            monitor.apply_partial_exit(position, 2.0)
        assert exc_info.value.reason == "partial_taken"

    def test_failed_partial_write_leaves_position(self, monitor, repository):
        """The caller's position is unchanged when persistence fails."""
        position = build_position()
        with pytest.raises(StateConflict):
            monitor.apply_partial_exit(position, 1.5)
        assert not position.partial_exit_taken
        assert position.state == PositionState.ENTERED

    def test_manual_exit_by_either_orientation(self, monitor, repository, scripted):
        """Positions are found by their members."""
        repository.create_position(build_position())
        scripted.set("BTC", "ETH", build_evaluation(z=-1.0, price1=110.0, price2=45.0))

        record = monitor.exit_position("ETH/BTC")

        assert record.exit_reason == ExitReason.MANUAL
        assert record.total_pnl == pytest.approx(10.0)
        assert repository.list_positions() == []

    def test_exit_missing_position(self, monitor):
        with pytest.raises(StateConflict) as exc_info:
            monitor.exit_position("BTC/ETH")
        assert exc_info.value.reason == "not_found"


class TestRescanGovernor:
    """Test rescan request limiting."""

    def test_one_request_per_freed_slot(self):
        governor = RescanGovernor()

        assert governor.should_request(2, False)
        assert not governor.should_request(2, False)
        assert not governor.should_request(1, False)
        assert governor.should_request(2, False)

    def test_no_request_when_full_or_enterable(self):
        governor = RescanGovernor()

        assert not governor.should_request(0, False)
        assert not governor.should_request(3, True)
        assert governor.should_request(3, False)

    def test_reset(self):
        governor = RescanGovernor()
        governor.should_request(2, False)
        governor.reset()
        assert governor.should_request(2, False)
