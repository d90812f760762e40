"""
Pair Scanner

Discovers tradeable pairs and publishes them to the watchlist.

Flow:
    asset contexts → liquidity/blacklist filter → sector grouping
        → candidate pairs → daily windows + fitness evaluation
        → statistical filters → conviction ranking → per-sector selection
        → hourly divergence profile → watchlist publish
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Dict, List, Optional, Tuple

from statarb.errors import InsufficientData, InvalidFitness, UpstreamUnavailable
from statarb.fitness_engine import PairEvaluation, PairFitnessEngine, max_abs_zscore, quality_score
from statarb.fitness_engine.divergence import reversion_warning
from statarb.lifecycle.rules import direction_for
from statarb.lifecycle.schemas import WatchlistEntry, utcnow
from statarb.market_data import (
    MarketDataClient,
    MarketDataConfig,
    PriceWindows,
    fetch_pair_windows,
    funding_spread,
)
from statarb.notifications import Notifier, NullNotifier
from statarb.scanner.config import ScannerConfig
from statarb.scanner.report import format_scan_report
from statarb.scanner.schemas import CandidatePair, ScanResult, ScoredPair
from statarb.scanner.universe import filter_liquid, generate_candidates, group_by_sector

LOG = logging.getLogger(__name__)

PAIR_ERRORS = (InsufficientData, InvalidFitness, UpstreamUnavailable)


def filter_reason(
    candidate: CandidatePair,
    evaluation: PairEvaluation,
    config: ScannerConfig,
) -> Optional[str]:
    """First failed discovery filter, or None if the pair qualifies"""
    min_correlation = (
        config.cross_sector_min_correlation if candidate.cross_sector else config.min_correlation
    )
    if evaluation.reactive.correlation < min_correlation:
        return "low_corr"
    if not evaluation.structural.is_cointegrated:
        return "not_coint"
    if not evaluation.reactive.half_life.passes(lambda hl: hl <= config.max_half_life):
        return "slow_reversion"
    if not evaluation.hurst.metric.passes(lambda h: h < config.max_hurst):
        return "hurst_trending"
    return None


def select_top(
    scored: List[ScoredPair],
    top_per_sector: int = 3,
    top_cross_sector: int = 5,
) -> List[ScoredPair]:
    """Highest conviction pairs, capped per sector and across sectors"""
    selected = []
    per_sector: Dict[str, int] = {}
    cross = 0
    for s in sorted(scored, key=lambda s: s.conviction, reverse=True):
        if s.candidate.cross_sector:
            if cross < top_cross_sector:
                selected.append(s)
                cross += 1
            continue
        count = per_sector.get(s.candidate.sector, 0)
        if count < top_per_sector:
            selected.append(s)
            per_sector[s.candidate.sector] = count + 1
    return selected


class PairScanner:
    """
    Discovery scan over the exchange universe.

    Writes only to the watchlist; never touches positions.
    """

    def __init__(
        self,
        client: MarketDataClient,
        repository,
        config: Optional[ScannerConfig] = None,
        engine: Optional[PairFitnessEngine] = None,
        notifier: Optional[Notifier] = None,
        market_config: Optional[MarketDataConfig] = None,
    ):
        self.client = client
        self.repository = repository
        self.config = config or ScannerConfig()
        self.engine = engine or PairFitnessEngine()
        self.notifier = notifier or NullNotifier()
        self.market_config = market_config or MarketDataConfig()

        LOG.info(
            f"Pair scanner initialized: {len(self.config.sectors)} sectors, "
            f"{self.config.max_workers} workers (config {self.config.get_config_hash()})"
        )

    # ========================================
    # EVALUATION
    # ========================================

    def _evaluate(self, candidate: CandidatePair) -> Tuple[PriceWindows, PairEvaluation]:
        windows = fetch_pair_windows(
            self.client,
            candidate.asset1.symbol,
            candidate.asset2.symbol,
            bars=self.engine.config.windows.structural,
            interval=self.market_config.candle_interval,
            min_observations=self.engine.config.windows.min_observations,
            min_coverage=self.market_config.min_coverage,
        )
        evaluation = self.engine.evaluate(
            windows.prices1, windows.prices2, self.config.default_entry_threshold
        )
        return windows, evaluation

    def evaluate_candidates(self, candidates: List[CandidatePair], result: ScanResult) -> List[ScoredPair]:
        """Fetch and evaluate candidates on a bounded pool; failures are skipped"""
        scored = []
        with ThreadPoolExecutor(
            max_workers=max(1, self.config.max_workers), thread_name_prefix="scanner"
        ) as executor:
            futures = {executor.submit(self._evaluate, c): c for c in candidates}
            for future in as_completed(futures):
                candidate = futures[future]
                try:
                    windows, evaluation = future.result()
                except PAIR_ERRORS as e:
                    LOG.debug(f"Skipping {candidate.pair}: {e}")
                    result.skipped[candidate.pair] = f"{type(e).__name__}: {e}"
                    continue

                result.evaluated += 1
                reason = filter_reason(candidate, evaluation, self.config)
                if reason is not None:
                    result.skipped[candidate.pair] = reason
                    continue
                scored.append(ScoredPair(candidate=candidate, windows=windows, evaluation=evaluation))
        return scored

    def profile(self, scored: ScoredPair) -> Tuple[float, float, bool, Optional[float]]:
        """
        Entry threshold from the hourly divergence profile.

        Returns:
            (entry_threshold, max_historical_z, reversion_warning, reversion_rate).
            Falls back to the default threshold and the daily max |z| when
            the profile cannot be built.
        """
        beta = scored.evaluation.reactive.beta
        fallback = (
            self.config.default_entry_threshold,
            max_abs_zscore(
                scored.windows.prices1, scored.windows.prices2, beta,
                self.engine.config.windows.reactive,
            ),
            False,
            None,
        )
        if not self.config.enable_profile:
            return fallback

        try:
            windows = fetch_pair_windows(
                self.client,
                scored.candidate.asset1.symbol,
                scored.candidate.asset2.symbol,
                bars=int(self.market_config.profile_days * self.config.profile_bars_per_day),
                interval=self.market_config.profile_interval,
                min_observations=self.config.profile_z_window + 1,
                min_coverage=self.market_config.min_coverage,
            )
            profile = self.engine.profile(
                windows.prices1, windows.prices2, beta,
                window=self.config.profile_z_window,
                bars_per_day=self.config.profile_bars_per_day,
            )
        except PAIR_ERRORS as e:
            LOG.warning(f"Divergence profile failed for {scored.pair}, using defaults: {e}")
            return fallback

        if profile.observations == 0:
            return fallback

        scored.profile = profile
        warning, rate = reversion_warning(
            profile, scored.evaluation.reactive.z_score, self.engine.config.divergence
        )
        return profile.optimal_entry, profile.max_historical_z, warning, rate

    def build_entry(self, scored: ScoredPair) -> WatchlistEntry:
        """Watchlist entry for a selected pair"""
        now = utcnow()
        candidate = scored.candidate
        evaluation = scored.evaluation
        entry_threshold, max_z, warning, rate = self.profile(scored)

        entry = WatchlistEntry(
            pair=candidate.pair,
            asset1=candidate.asset1.symbol,
            asset2=candidate.asset2.symbol,
            sector=candidate.sector,
            direction=direction_for(evaluation.reactive.z_score),
            entry_threshold=entry_threshold,
            exit_threshold=self.config.exit_threshold,
            max_historical_z=max_z,
            reversion_warning=warning,
            reversion_rate=rate,
            funding_spread=funding_spread(candidate.asset1.funding_rate, candidate.asset2.funding_rate),
            last_scan=now,
        )
        entry.update_metrics(evaluation, now)
        entry.quality_score = quality_score(
            evaluation.reactive.correlation,
            evaluation.reactive.half_life,
            evaluation.reactive.mean_reversion_rate,
        )
        return entry

    # ========================================
    # PUBLISH
    # ========================================

    def publish(self, entries: List[WatchlistEntry], result: ScanResult):
        """
        Upsert selected entries and retire stale ones.

        Existing entries keep their ``initial_beta`` and manual flag. Stale
        entries backing an open position, or added manually, are kept.
        """
        existing = self.repository.list_watchlist()
        by_members = {e.members: e for e in existing}

        to_write = []
        for entry in entries:
            previous = by_members.get(entry.members)
            if previous is None:
                entry.initial_beta = entry.beta
            elif previous.pair != entry.pair:
                # Keep the published orientation; the monitor refreshes it
                LOG.info(f"{entry.pair} already listed as {previous.pair}, keeping existing entry")
                continue
            else:
                entry.initial_beta = (
                    previous.initial_beta if previous.initial_beta is not None else entry.beta
                )
                entry.added_manually = previous.added_manually
            to_write.append(entry)

        if to_write:
            self.repository.upsert_watchlist(to_write)

        selected = {e.members for e in entries}
        for previous in existing:
            if previous.members in selected or previous.added_manually:
                continue
            if self.repository.delete_watchlist(previous.pair):
                result.removed.append(previous.pair)
            else:
                result.kept_for_positions.append(previous.pair)

    # ========================================
    # SCAN
    # ========================================

    def run(self) -> ScanResult:
        """
        Run one discovery scan.

        Returns:
            ScanResult; ``error`` is set when the universe or the watchlist
            could not be read or written
        """
        started = time.monotonic()
        result = ScanResult()

        try:
            contexts = self.client.get_asset_contexts()
            blacklist = self.repository.list_blacklist()
        except UpstreamUnavailable as e:
            LOG.error(f"Scan aborted: {e}")
            result.error = str(e)
            return self._finish(result, started)

        result.universe_size = len(contexts)
        liquid = filter_liquid(
            contexts.values(), self.config.min_volume, self.config.min_open_interest, blacklist
        )
        result.liquid_assets = len(liquid)

        groups, result.unmapped = group_by_sector(liquid, self.config.symbol_to_sector())
        candidates = generate_candidates(
            groups, self.config.enable_cross_sector, self.config.cross_sector_top_k
        )
        result.candidates = len(candidates)
        LOG.info(
            f"Scan: {result.universe_size} assets, {result.liquid_assets} liquid, "
            f"{result.candidates} candidate pairs"
        )

        scored = self.evaluate_candidates(candidates, result)
        result.passed = len(scored)

        selected = select_top(scored, self.config.top_per_sector, self.config.top_cross_sector)
        entries = [self.build_entry(s) for s in selected]
        result.selected = entries

        try:
            self.publish(entries, result)
        except UpstreamUnavailable as e:
            LOG.error(f"Watchlist publish failed: {e}")
            result.error = f"Publish failed: {e}"

        return self._finish(result, started)

    def _finish(self, result: ScanResult, started: float) -> ScanResult:
        result.duration_seconds = time.monotonic() - started
        LOG.info(
            f"Scan done in {result.duration_seconds:.1f}s: {result.passed} passed, "
            f"{len(result.selected)} selected, {len(result.removed)} removed"
        )
        self.notifier.send(format_scan_report(result))
        return result
