# vault_arb/main.py
"""
Vault Arbitrage Bot Entry Point

THIS IS THE ENTRY POINT - Run with: python -m vault_arb.main <key>

One invocation = one tick. Schedule it externally (cron, systemd timer)
with at most one in-flight run per key.
"""

import sys
import logging
import argparse
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from zoneinfo import ZoneInfo

from vault_arb.config import load_environment, load_settings, Settings
from vault_arb.state import StateStore
from vault_arb.market_data import MarketDataFetcher
from vault_arb.profit_calculator import ProfitEvaluator
from vault_arb.executor import ExecutionPlanner
from vault_arb.runner import RunLoop

logger = logging.getLogger(__name__)


# =============================================================================
# LOGGING SETUP
# =============================================================================

LOG_FORMAT = "[%(asctime)s %(strategy)s %(levelname)s] %(message)s"


class StrategyFilter(logging.Filter):
    """Stamp every record with the invocation key"""

    def __init__(self, key: str):
        super().__init__()
        self.key = key

    def filter(self, record: logging.LogRecord) -> bool:
        record.strategy = self.key
        return True


class ZonedFormatter(logging.Formatter):
    """Timestamps rendered in a fixed zone regardless of host TZ"""

    def __init__(self, fmt: str, tz: str):
        super().__init__(fmt)
        self.tz = ZoneInfo(tz)

    def formatTime(self, record, datefmt=None):
        return datetime.fromtimestamp(record.created, self.tz).strftime("%Y-%m-%d %H:%M:%S")


def setup_logging(key: str, log_dir: Path, tz: str = "America/Chicago", level=logging.INFO):
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    handlers = [
        logging.StreamHandler(sys.stdout),
        logging.FileHandler(log_dir / f"bot_{key}_{datetime.now().strftime('%Y%m%d')}.log"),
    ]
    formatter = ZonedFormatter(LOG_FORMAT, tz)
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(StrategyFilter(key))

    logging.basicConfig(level=level, handlers=handlers, force=True)


# =============================================================================
# WIRING
# =============================================================================

def build_run_loop(settings: Settings, client) -> RunLoop:
    """Assemble the components around one shared client"""
    fetcher = MarketDataFetcher(client, settings)
    return RunLoop(
        settings=settings,
        store=StateStore(settings.key, settings.state_dir),
        fetcher=fetcher,
        evaluator=ProfitEvaluator(fetcher, settings),
        planner=ExecutionPlanner(client, settings),
    )


# =============================================================================
# ENTRY POINT
# =============================================================================

def main(argv=None):
    """Main entry point"""
    parser = argparse.ArgumentParser(description="Vault / AMM arbitrage bot (one tick per run)")
    parser.add_argument(
        "key",
        help="Invocation key: selects .env.<key> and results<key>.txt",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Evaluate and log the plan without broadcasting",
    )
    args = parser.parse_args(argv)

    load_environment(args.key)
    settings = load_settings(args.key)
    if args.dry_run:
        settings = replace(settings, dry_run=True)

    setup_logging(settings.key, settings.log_dir, settings.log_timezone)

    # secret-sdk is only needed once we actually talk to the chain
    from vault_arb.client import ChainClient

    try:
        outcome = build_run_loop(settings, ChainClient(settings)).tick()
    except Exception as e:
        logger.exception(f"Run failed: {e}")
        sys.exit(1)

    logger.debug(f"Run finished: {outcome.value}")


if __name__ == "__main__":
    main()
