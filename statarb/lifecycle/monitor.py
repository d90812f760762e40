"""
Trade Lifecycle Monitor

Runs the periodic monitor cycle: evaluates open positions against the exit
rules, refreshes watchlist metrics, enters validated pairs under admission
control and asks for a rescan when capacity sits idle.

Flow per cycle:
    load state → fetch funding → fetch/evaluate positions → apply exits
              → fetch/evaluate watchlist → refresh metrics → enter
              → upsert watchlist → rescan check → report

Fetches may run on a bounded thread pool; every state mutation happens in
the cycle thread, one pair at a time.
"""

import logging
import threading
import time
from collections import deque
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout, as_completed
from dataclasses import replace
from datetime import datetime
from typing import Callable, Deque, Dict, List, Optional, Sequence, Tuple

from statarb.errors import InsufficientData, InvalidFitness, StateConflict, UpstreamUnavailable
from statarb.fitness_engine import PairEvaluation, PairFitnessEngine
from statarb.lifecycle.admission import admit
from statarb.lifecycle.config import MonitorConfig
from statarb.lifecycle.health import calculate_health
from statarb.lifecycle.pnl import blended_pnl, calculate_pnl
from statarb.lifecycle.report import format_cycle_report, format_entry, format_exit, format_partial
from statarb.lifecycle.rules import (
    calculate_weights,
    check_exit_conditions,
    direction_for,
    validate_entry,
)
from statarb.lifecycle.schemas import (
    CycleResult,
    Direction,
    ExitReason,
    HistoryRecord,
    Position,
    PositionState,
    WatchlistEntry,
    pair_members,
    utcnow,
)
from statarb.market_data import (
    AssetContext,
    MarketDataClient,
    MarketDataConfig,
    PriceWindows,
    calculate_net_funding,
    fetch_pair_windows,
    pair_funding_spread,
)
from statarb.notifications import Notifier, NullNotifier

LOG = logging.getLogger(__name__)

# Per-pair failures that skip the pair for this cycle
PAIR_ERRORS = (InsufficientData, InvalidFitness, UpstreamUnavailable)


class RescanGovernor:
    """
    Limits rescan requests to one per freed slot.

    Remembers the free-slot count at the last request; a new request is
    allowed only once more slots are free than at that time. Slots consumed
    in between lower the remembered count.
    """

    def __init__(self):
        self._requested_free: Optional[int] = None
        self._lock = threading.Lock()

    def should_request(self, free_slots: int, has_enterable: bool) -> bool:
        with self._lock:
            if self._requested_free is not None and free_slots < self._requested_free:
                self._requested_free = free_slots

            if free_slots <= 0 or has_enterable:
                return False

            if self._requested_free is not None and free_slots <= self._requested_free:
                return False

            self._requested_free = free_slots
            return True

    def reset(self):
        with self._lock:
            self._requested_free = None


class TradeMonitor:
    """
    Trade lifecycle monitor.

    Owns the WATCHED → ENTERED → PARTIALLY_EXITED → CLOSED transitions. The
    repository is the source of truth; every transition is persisted before
    it is reported.
    """

    def __init__(
        self,
        client: MarketDataClient,
        repository,
        config: Optional[MonitorConfig] = None,
        engine: Optional[PairFitnessEngine] = None,
        notifier: Optional[Notifier] = None,
        rescan_requester: Optional[Callable[[], object]] = None,
        market_config: Optional[MarketDataConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize trade monitor.

        Args:
            client: Market data client
            repository: PairRepository holding watchlist, positions and history
            config: Monitor configuration
            engine: Fitness engine
            notifier: Notification sink (defaults to logging only)
            rescan_requester: Called when capacity is free and nothing is enterable
            market_config: Candle interval and coverage settings
            clock: Returns the current UTC time
        """
        self.client = client
        self.repository = repository
        self.config = config or MonitorConfig()
        self.engine = engine or PairFitnessEngine()
        self.notifier = notifier or NullNotifier()
        self.rescan_requester = rescan_requester
        self.market_config = market_config or MarketDataConfig()
        self._clock = clock or utcnow

        self.rescan_governor = RescanGovernor()
        self._z_history: Dict[frozenset, Deque[float]] = {}
        self._lock = threading.RLock()
        self.last_result: Optional[CycleResult] = None

        LOG.info(
            f"Trade monitor initialized: max {self.config.admission.max_positions} positions, "
            f"{self.config.cycle.max_workers} fetch workers (config {self.config.get_config_hash()})"
        )

    # ========================================
    # EVALUATION
    # ========================================

    def fetch_windows(self, asset1: str, asset2: str) -> PriceWindows:
        return fetch_pair_windows(
            self.client,
            asset1,
            asset2,
            bars=self.engine.config.windows.structural,
            interval=self.market_config.candle_interval,
            min_observations=self.engine.config.windows.min_observations,
            min_coverage=self.market_config.min_coverage,
        )

    def _history_for(self, asset1: str, asset2: str) -> List[float]:
        return list(self._z_history.get(frozenset((asset1, asset2)), ()))

    def _record_z(self, asset1: str, asset2: str, z: float):
        key = frozenset((asset1, asset2))
        if key not in self._z_history:
            self._z_history[key] = deque(maxlen=self.config.cycle.z_history_length)
        self._z_history[key].append(z)

    def evaluate_pair(
        self,
        asset1: str,
        asset2: str,
        entry_threshold: float = 2.0,
        z_history: Optional[Sequence[float]] = None,
    ) -> Tuple[PriceWindows, PairEvaluation]:
        """
        Fetch aligned windows and evaluate the pair.

        Raises:
            UpstreamUnavailable: Market data fetch failed
            InsufficientData: Too few aligned observations
        """
        if z_history is None:
            z_history = self._history_for(asset1, asset2)
        windows = self.fetch_windows(asset1, asset2)
        evaluation = self.engine.evaluate(
            windows.prices1, windows.prices2, entry_threshold, z_history
        )
        return windows, evaluation

    def _fetch_all(
        self,
        items: List[Tuple[str, str, str, float]],
        deadline: float,
        result: CycleResult,
    ) -> Dict[str, object]:
        """
        Evaluate (key, asset1, asset2, threshold) items.

        Returns:
            key -> PairEvaluation, or the exception that skipped the pair.
            Keys missing from the result were not reached before the deadline.
        """
        outcomes: Dict[str, object] = {}
        if not items:
            return outcomes

        histories = {key: self._history_for(a1, a2) for key, a1, a2, _ in items}

        def work(key, a1, a2, threshold):
            return self.evaluate_pair(a1, a2, threshold, histories[key])[1]

        if self.config.cycle.max_workers <= 1:
            for key, a1, a2, threshold in items:
                if time.monotonic() >= deadline:
                    result.timed_out = True
                    break
                try:
                    outcomes[key] = work(key, a1, a2, threshold)
                except PAIR_ERRORS as e:
                    outcomes[key] = e
            return outcomes

        executor = ThreadPoolExecutor(
            max_workers=self.config.cycle.max_workers, thread_name_prefix="monitor-fetch"
        )
        futures = {executor.submit(work, *item): item[0] for item in items}
        try:
            for future in as_completed(futures, timeout=max(0.0, deadline - time.monotonic())):
                key = futures[future]
                try:
                    outcomes[key] = future.result()
                except PAIR_ERRORS as e:
                    outcomes[key] = e
        except FutureTimeout:
            result.timed_out = True
            LOG.warning(f"Cycle deadline reached, {len(futures) - len(outcomes)} fetches abandoned")
        finally:
            executor.shutdown(wait=False, cancel_futures=True)
        return outcomes

    def fetch_funding(self) -> Dict[str, AssetContext]:
        """Asset contexts for this cycle's funding; empty when unavailable"""
        try:
            return self.client.get_asset_contexts()
        except UpstreamUnavailable as e:
            LOG.warning(f"Funding rates unavailable this cycle: {e}")
            return {}

    def _outcome(self, key: str, outcomes: Dict[str, object], result: CycleResult) -> Optional[PairEvaluation]:
        outcome = outcomes.get(key)
        if outcome is None:
            result.skipped[key] = "timeout"
            return None
        if isinstance(outcome, Exception):
            LOG.warning(f"Skipping {key}: {outcome}")
            result.skipped[key] = f"{type(outcome).__name__}: {outcome}"
            return None
        return outcome

    # ========================================
    # TRANSITIONS
    # ========================================

    def enter_position(
        self,
        entry: WatchlistEntry,
        evaluation: PairEvaluation,
        direction: Optional[Direction] = None,
        source: str = "bot",
        size: float = 1.0,
    ) -> Position:
        """
        Open a position for a watchlist pair.

        Args:
            entry: Watchlist entry (thresholds, sector, max historical z)
            evaluation: Current evaluation (prices, z, beta)
            direction: Forced direction; derived from the z sign when None
            source: "bot" or "manual"
            size: Position size multiplier

        Returns:
            The persisted Position

        Raises:
            StateConflict: Rejected by admission control or pair already open
        """
        now = self._clock()
        z = evaluation.reactive.z_score
        direction = direction or direction_for(z)
        w1, w2 = calculate_weights(evaluation.reactive.beta)
        price1, price2 = evaluation.current_price1, evaluation.current_price2

        if direction == Direction.LONG:
            long_asset, short_asset = entry.asset1, entry.asset2
            long_weight, short_weight = w1, w2
            long_price, short_price = price1, price2
        else:
            long_asset, short_asset = entry.asset2, entry.asset1
            long_weight, short_weight = w2, w1
            long_price, short_price = price2, price1

        half_life = evaluation.reactive.half_life.or_none()
        hurst = evaluation.hurst.metric.or_none()

        position = Position(
            pair=entry.pair,
            asset1=entry.asset1,
            asset2=entry.asset2,
            direction=direction,
            long_asset=long_asset,
            short_asset=short_asset,
            long_weight=long_weight,
            short_weight=short_weight,
            long_entry_price=long_price,
            short_entry_price=short_price,
            entry_z_score=z,
            entry_threshold=entry.entry_threshold,
            entry_time=now,
            sector=entry.sector,
            size=size,
            half_life=half_life,
            max_historical_z=entry.max_historical_z,
            entry_correlation=evaluation.reactive.correlation,
            entry_beta=evaluation.reactive.beta,
            entry_hurst=hurst,
            source=source,
            current_z=z,
            current_correlation=evaluation.reactive.correlation,
            current_half_life=half_life,
            current_hurst=hurst,
            current_beta=evaluation.reactive.beta,
            last_checked=now,
        )

        with self._lock:
            admission = admit(
                long_asset, short_asset, self.repository.list_positions(), self.config.admission
            )
            if not admission.allowed:
                raise StateConflict(admission.message, reason=admission.conflict_type.value)
            self.repository.create_position(position)

        LOG.info(
            f"ENTERED {position.pair} ({source}): long {long_asset} / short {short_asset}, "
            f"z={z:.2f}, threshold={entry.entry_threshold:.2f}"
        )
        self.notifier.send(format_entry(position))
        return position

    def apply_partial_exit(self, position: Position, pnl: float, now: Optional[datetime] = None) -> Position:
        """
        Take the one-time partial exit.

        The updated position is persisted first; the caller's object is left
        untouched if the write fails.

        Returns:
            The updated Position
        """
        if position.partial_exit_taken:
            raise StateConflict(f"Partial exit already taken on {position.pair}", reason="partial_taken")

        now = now or self._clock()
        updated = replace(
            position,
            partial_exit_taken=True,
            partial_exit_pnl=pnl,
            partial_exit_time=now,
            state=PositionState.PARTIALLY_EXITED,
        )
        self.repository.update_position(updated)

        LOG.info(f"PARTIAL EXIT {updated.pair}: {self.config.exit.partial_size:.0%} at {pnl:+.2f}%")
        self.notifier.send(format_partial(updated))
        return updated

    def close_position(
        self,
        position: Position,
        reason: ExitReason,
        evaluation: PairEvaluation,
        now: Optional[datetime] = None,
    ) -> HistoryRecord:
        """Archive and remove a position at the evaluation's prices"""
        now = now or self._clock()
        price1, price2 = evaluation.current_price1, evaluation.current_price2
        current_pnl = calculate_pnl(position, price1, price2)
        total_pnl = blended_pnl(position, current_pnl, self.config.exit.partial_size)
        long_exit, short_exit = position.leg_prices(price1, price2)

        record = HistoryRecord.from_position(
            position,
            exit_reason=reason,
            total_pnl=total_pnl,
            long_exit_price=long_exit,
            short_exit_price=short_exit,
            exit_z_score=evaluation.reactive.z_score,
            exit_hurst=evaluation.hurst.metric.or_none(),
            exit_time=now,
        )
        self.repository.close_position(position.pair, record)

        LOG.info(f"CLOSED {position.pair} [{reason.value}]: PnL {total_pnl:+.2f}%")
        self.notifier.send(format_exit(record))
        return record

    def _find_position(self, pair: str) -> Position:
        members = pair_members(pair)
        for position in self.repository.list_positions():
            if position.members == members:
                return position
        raise StateConflict(f"No open position for {pair}", reason="not_found")

    def exit_position(self, pair: str, reason: ExitReason = ExitReason.MANUAL) -> HistoryRecord:
        """
        Close an open position at current prices.

        Raises:
            StateConflict: No open position for the pair
            UpstreamUnavailable: Prices could not be fetched
        """
        with self._lock:
            position = self._find_position(pair)
            _, evaluation = self.evaluate_pair(
                position.asset1, position.asset2, position.entry_threshold
            )
            return self.close_position(position, reason, evaluation)

    def partial_exit(self, pair: str) -> Position:
        """Force the partial exit of an open position at current prices"""
        with self._lock:
            position = self._find_position(pair)
            _, evaluation = self.evaluate_pair(
                position.asset1, position.asset2, position.entry_threshold
            )
            pnl = calculate_pnl(position, evaluation.current_price1, evaluation.current_price2)
            return self.apply_partial_exit(position, pnl)

    # ========================================
    # CYCLE
    # ========================================

    def _update_position(
        self,
        position: Position,
        evaluation: PairEvaluation,
        now: datetime,
        contexts: Optional[Dict[str, AssetContext]] = None,
    ) -> Position:
        """Running fields, funding and health, on a copy"""
        contexts = contexts or {}
        net_funding = None
        if position.long_asset in contexts and position.short_asset in contexts:
            net_funding = calculate_net_funding(
                contexts[position.long_asset], contexts[position.short_asset]
            ).net_8h

        reactive = evaluation.reactive
        z = reactive.z_score
        pnl = calculate_pnl(position, evaluation.current_price1, evaluation.current_price2)
        half_life = reactive.half_life.or_none()
        hurst = evaluation.hurst.metric.or_none()

        if position.entry_beta:
            drift = abs(reactive.beta - position.entry_beta) / abs(position.entry_beta)
        else:
            drift = evaluation.beta_drift

        health = calculate_health(position, z, pnl, reactive.correlation, half_life, hurst, drift)

        return replace(
            position,
            current_z=z,
            current_pnl=pnl,
            current_correlation=reactive.correlation,
            current_half_life=half_life,
            current_hurst=hurst,
            current_beta=reactive.beta,
            beta_drift=drift,
            max_beta_drift=max(position.max_beta_drift, drift or 0.0),
            health_score=health.score,
            health_status=health.status.value,
            net_funding_8h=net_funding,
            last_checked=now,
        )

    def _process_position(
        self,
        position: Position,
        evaluation: PairEvaluation,
        now: datetime,
        result: CycleResult,
        contexts: Optional[Dict[str, AssetContext]] = None,
    ) -> Optional[Position]:
        """
        Apply the exit rules to one position.

        Returns:
            The position as it stands after this cycle, or None if closed
        """
        updated = self._update_position(position, evaluation, now, contexts)
        decision = check_exit_conditions(
            updated, updated.current_z, updated.current_pnl,
            updated.current_correlation, now, self.config.exit,
        )

        try:
            if decision.should_exit and decision.is_partial:
                LOG.info(f"{position.pair}: {decision.message}")
                updated = self.apply_partial_exit(updated, updated.current_pnl, now)
                result.partial_exits.append(position.pair)
                return updated

            if decision.should_exit:
                LOG.info(f"{position.pair}: {decision.message}")
                record = self.close_position(updated, decision.reason, evaluation, now)
                result.exits.append({
                    'pair': position.pair,
                    'reason': decision.reason.value,
                    'pnl': record.total_pnl,
                })
                return None

            self.repository.update_position(updated)
            return updated

        except (StateConflict, UpstreamUnavailable) as e:
            LOG.error(f"Failed to apply cycle update to {position.pair}: {e}")
            result.skipped[position.pair] = f"{type(e).__name__}: {e}"
            return position

    def _process_entry(
        self,
        entry: WatchlistEntry,
        evaluation: PairEvaluation,
        open_positions: List[Position],
        result: CycleResult,
    ) -> Tuple[bool, Optional[Position]]:
        """
        Validate and possibly enter a watchlist pair.

        Returns:
            (enterable, entered position or None)
        """
        validation = validate_entry(
            evaluation, entry.entry_threshold, entry.reversion_warning, self.config.entry
        )
        z = evaluation.reactive.z_score
        direction = direction_for(z)
        if direction == Direction.LONG:
            long_asset, short_asset = entry.asset1, entry.asset2
        else:
            long_asset, short_asset = entry.asset2, entry.asset1
        admission = admit(long_asset, short_asset, open_positions, self.config.admission)

        if validation.valid and admission.allowed:
            try:
                return True, self.enter_position(entry, evaluation, direction)
            except (StateConflict, UpstreamUnavailable) as e:
                LOG.error(f"Entry failed for {entry.pair}: {e}")
                result.skipped[entry.pair] = f"{type(e).__name__}: {e}"
                return True, None

        if validation.valid:
            LOG.info(f"{entry.pair} valid but not admitted: {admission.message}")
        elif validation.is_ready:
            LOG.info(f"{entry.pair} at threshold but blocked: {validation.reason}")

        band = self.config.cycle.approaching_ratio * entry.entry_threshold
        if not validation.is_ready and abs(z) >= band:
            result.approaching.append({
                'pair': entry.pair,
                'z_score': z,
                'entry_threshold': entry.entry_threshold,
                'proximity': abs(z) / entry.entry_threshold if entry.entry_threshold else 0.0,
                'hurst_blocked': not validation.checks['hurst_trending'],
                'overlap': None if admission.allowed else admission.conflict_type.value,
            })
        return False, None

    def run_cycle(self) -> CycleResult:
        """
        Run one monitor cycle.

        Returns:
            CycleResult; ``error`` is set when state could not be loaded
        """
        with self._lock:
            result = CycleResult(started_at=self._clock())
            deadline = time.monotonic() + self.config.cycle.cycle_timeout_seconds

            try:
                positions = self.repository.list_positions()
                watchlist = self.repository.list_watchlist()
                blacklist = self.repository.list_blacklist()
            except UpstreamUnavailable as e:
                LOG.error(f"Monitor cycle aborted, state unavailable: {e}")
                result.error = f"State unavailable: {e}"
                return self._finish(result, [])

            LOG.info(f"Monitor cycle: {len(positions)} positions, {len(watchlist)} watchlist pairs")

            # Open positions
            outcomes = self._fetch_all(
                [(p.pair, p.asset1, p.asset2, p.entry_threshold) for p in positions],
                deadline,
                result,
            )
            contexts = self.fetch_funding()
            evaluations: Dict[frozenset, PairEvaluation] = {}
            open_positions: List[Position] = []
            exited = set()
            for position in positions:
                evaluation = self._outcome(position.pair, outcomes, result)
                if evaluation is None:
                    open_positions.append(position)
                    continue
                result.positions_checked += 1
                evaluations[position.members] = evaluation
                self._record_z(position.asset1, position.asset2, evaluation.reactive.z_score)
                remaining = self._process_position(position, evaluation, self._clock(), result, contexts)
                if remaining is None:
                    exited.add(position.members)
                else:
                    open_positions.append(remaining)

            # Watchlist
            pending = [
                (e.pair, e.asset1, e.asset2, e.entry_threshold)
                for e in watchlist
                if e.members not in evaluations
            ]
            outcomes = self._fetch_all(pending, deadline, result) if not result.timed_out else {}

            refreshed: List[WatchlistEntry] = []
            for entry in watchlist:
                evaluation = evaluations.get(entry.members)
                if evaluation is None:
                    evaluation = self._outcome(entry.pair, outcomes, result)
                    if evaluation is None:
                        continue
                    self._record_z(entry.asset1, entry.asset2, evaluation.reactive.z_score)
                entry.update_metrics(evaluation, self._clock())
                spread = pair_funding_spread(contexts, entry.asset1, entry.asset2)
                if spread is not None:
                    entry.funding_spread = spread
                refreshed.append(entry)
                result.watchlist_checked += 1

            has_enterable = False
            candidates = sorted(refreshed, key=lambda e: e.conviction, reverse=True)
            for entry in candidates:
                if any(p.members == entry.members for p in open_positions):
                    continue
                # No re-entry in the cycle that closed the pair
                if entry.members in exited:
                    continue
                blocked = [a for a in (entry.asset1, entry.asset2) if a in blacklist]
                if blocked:
                    result.skipped[entry.pair] = f"blacklisted: {', '.join(blocked)}"
                    continue
                evaluation = evaluations.get(entry.members) or outcomes[entry.pair]
                enterable, position = self._process_entry(entry, evaluation, open_positions, result)
                has_enterable = has_enterable or enterable
                if position is not None:
                    open_positions.append(position)
                    result.entries.append(position.pair)

            if refreshed:
                try:
                    self.repository.upsert_watchlist(refreshed)
                except UpstreamUnavailable as e:
                    LOG.error(f"Watchlist refresh not persisted: {e}")
                    result.error = f"Watchlist not persisted: {e}"

            free_slots = self.config.admission.max_positions - len(open_positions)
            if self.rescan_governor.should_request(free_slots, has_enterable):
                result.rescan_requested = True
                LOG.info(f"{free_slots} free slots and no enterable pair, requesting rescan")
                if self.rescan_requester is not None:
                    self.rescan_requester()

            return self._finish(result, open_positions)

    def _finish(self, result: CycleResult, open_positions: List[Position]) -> CycleResult:
        result.finished_at = self._clock()
        self.last_result = result
        LOG.info(
            f"Monitor cycle done: {result.positions_checked} positions, "
            f"{result.watchlist_checked} watchlist, {len(result.entries)} entries, "
            f"{len(result.partial_exits)} partial, {len(result.exits)} exits, "
            f"{len(result.skipped)} skipped"
        )
        self.notifier.send(
            format_cycle_report(result, open_positions, self.config.admission.max_positions)
        )
        return result

    def status(self) -> dict:
        """Capacity and last-cycle summary"""
        positions = self.repository.list_positions()
        max_positions = self.config.admission.max_positions
        return {
            'open_positions': len(positions),
            'max_positions': max_positions,
            'free_slots': max(0, max_positions - len(positions)),
            'positions': [p.pair for p in positions],
            'last_cycle': self.last_result.to_dict() if self.last_result else None,
        }
