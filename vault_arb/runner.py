# vault_arb/runner.py
"""
Run Loop
One tick per process invocation:
cooldown check -> report -> fetch -> evaluate -> gate -> execute -> persist

There is no in-process retry; the external scheduler re-invokes the bot and
the persisted state carries cooldown and statistics between ticks.
"""

import time
import logging
from enum import Enum
from typing import Callable, Optional

from vault_arb.config import COOLDOWN_MS, REPORT_INTERVAL_MS, Settings
from vault_arb.executor import ExecutionPlanner, ExecutionStatus
from vault_arb.market_data import MarketDataFetcher, TransientQueryError
from vault_arb.profit_calculator import ProfitEvaluator
from vault_arb.state import StateStore, StrategyState

logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


class RunOutcome(Enum):
    COOLDOWN = "cooldown"
    QUERY_FAILED = "query_failed"
    BELOW_THRESHOLD = "below_threshold"
    DRY_RUN = "dry_run"
    SUCCESS = "success"
    FAILED = "failed"


class RunLoop:
    """
    Orchestrates a single arbitrage tick

    State is saved on every exit path once it has been loaded,
    including when a fatal error propagates.
    """

    def __init__(
        self,
        settings: Settings,
        store: StateStore,
        fetcher: MarketDataFetcher,
        evaluator: ProfitEvaluator,
        planner: ExecutionPlanner,
        clock: Optional[Callable[[], int]] = None,
    ):
        self.settings = settings
        self.store = store
        self.fetcher = fetcher
        self.evaluator = evaluator
        self.planner = planner
        self.clock = clock or now_ms

    def tick(self) -> RunOutcome:
        state = self.store.load()
        try:
            return self._run(state)
        finally:
            self.store.save(state)

    # -----------------------------
    # Reporting
    # -----------------------------

    def should_report(self, state: StrategyState, now: int, first_run: bool) -> bool:
        if first_run:
            return True

        if self.settings.is_borrow:
            return now - (state.last_update or 0) > REPORT_INTERVAL_MS

        # wallet variant: startup window, then around each 2h boundary
        elapsed = now - state.start
        if elapsed < self.settings.report_startup_seconds * 1000:
            return True
        window = self.settings.report_window_seconds * 1000
        offset = elapsed % REPORT_INTERVAL_MS
        return offset < window or REPORT_INTERVAL_MS - offset < window

    def report(self, state: StrategyState, now: int) -> None:
        hours = (now - state.start) // 3_600_000
        logger.info(
            f"Bot running for {hours} hours"
            f"  Total Attempts: {state.total_attempts}"
            f"  Successful: {state.successful_attempts}"
            f"  Failed: {state.failed_attempts}"
            f"  Failed Queries: {state.failed_queries}"
            f"  Average Query Length: {state.average_query_length():.3f}"
            f"  Average Profit: {state.average_profit():.3f}"
        )
        state.last_update = now
        state.profit = []

    # -----------------------------
    # Tick
    # -----------------------------

    def _run(self, state: StrategyState) -> RunOutcome:
        now = self.clock()

        if now - (state.last_failed or 0) < COOLDOWN_MS:
            if not state.has_notified:
                logger.info("On cooldown from last failed")
            state.has_notified = True
            return RunOutcome.COOLDOWN
        state.has_notified = False

        first_run = state.start is None
        if first_run:
            state.start = now
        if self.should_report(state, now, first_run):
            self.report(state, now)

        # Fetch
        queries = self.fetcher.build_queries()
        before_query = self.clock()
        try:
            responses = self.fetcher.fetch_batch(queries)
        except TransientQueryError as e:
            state.failed_queries += 1
            logger.warning(f"Batch query failed: {e}")
            return RunOutcome.QUERY_FAILED
        state.record_query_length((self.clock() - before_query) / 1000)

        snapshot = self.fetcher.decode_snapshot(responses, queries)

        # Evaluate
        try:
            evaluation = self.evaluator.evaluate(snapshot)
        except TransientQueryError as e:
            state.failed_queries += 1 + e.failed_simulations
            logger.warning(f"Swap simulation failed: {e}")
            return RunOutcome.QUERY_FAILED
        state.failed_queries += evaluation.failed_simulations

        plan = evaluation.chosen
        state.record_profit(plan.profit)

        if not self.evaluator.is_executable(plan):
            logger.debug(
                f"Skipping {plan.label}: profit {plan.profit:.6f} "
                f"< {self.settings.minimum_profit}"
            )
            return RunOutcome.BELOW_THRESHOLD

        # Execute
        if self.settings.dry_run:
            self.planner.execute(plan, now)
            return RunOutcome.DRY_RUN

        state.total_attempts += 1
        state.last_attempt = now
        before_execute = self.clock()

        result = self.planner.execute(plan, now)

        if result.status == ExecutionStatus.SUCCESS:
            state.successful_attempts += 1
            outcome = RunOutcome.SUCCESS
        else:
            state.last_failed = now
            state.failed_attempts += 1
            outcome = RunOutcome.FAILED

        state.record_execute_length((self.clock() - before_execute) / 1000)
        return outcome
