"""
Component Wiring

Builds the market data client, repository, engines, monitor, scanner and
scheduler from environment-driven configuration.
"""

from dataclasses import dataclass
import logging

from statarb.fitness_engine import PairFitnessEngine
from statarb.lifecycle import CommandHandler, MonitorConfig, TradeMonitor
from statarb.market_data import HyperliquidClient, MarketDataConfig, TokenBucket
from statarb.notifications import Notifier, build_notifier
from statarb.scanner import PairScanner, ScannerConfig
from statarb.scheduler import JobScheduler, SchedulerConfig
from statarb.storage import PairRepository, StorageConfig, create_repository

LOG = logging.getLogger(__name__)


@dataclass
class Components:
    client: HyperliquidClient
    repository: PairRepository
    notifier: Notifier
    monitor: TradeMonitor
    scanner: PairScanner
    scheduler: JobScheduler
    commands: CommandHandler

    def close(self):
        """Stop jobs and release connections"""
        self.scheduler.stop()
        self.notifier.close()
        self.repository.close()
        self.client.close()


def build_components(notifications: bool = True) -> Components:
    """Wire every collaborator from environment configuration"""
    market_config = MarketDataConfig.from_env()
    rate_limiter = TokenBucket(market_config.burst, market_config.requests_per_second)
    client = HyperliquidClient(market_config, rate_limiter).connect()

    repository = create_repository(StorageConfig.from_env())
    engine = PairFitnessEngine()
    notifier = build_notifier(enabled=notifications)

    monitor = TradeMonitor(
        client,
        repository,
        config=MonitorConfig.from_env(),
        engine=engine,
        notifier=notifier,
        market_config=market_config,
    )
    scanner = PairScanner(
        client,
        repository,
        config=ScannerConfig.from_env(),
        engine=engine,
        notifier=notifier,
        market_config=market_config,
    )
    scheduler = JobScheduler(monitor, scanner, SchedulerConfig.from_env())

    LOG.info("✓ Components initialized")
    return Components(
        client=client,
        repository=repository,
        notifier=notifier,
        monitor=monitor,
        scanner=scanner,
        scheduler=scheduler,
        commands=CommandHandler(monitor),
    )
