# vault_arb/state.py
"""
Persistent strategy statistics
One JSON file per invocation key: {key: StrategyState}
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from statistics import mean
from typing import Dict, List, Optional

from vault_arb.config import QUERY_LENGTH_CAP

logger = logging.getLogger(__name__)


@dataclass
class StrategyState:
    """Counters and rolling samples for one strategy instance"""
    total_attempts: int = 0
    successful_attempts: int = 0
    failed_attempts: int = 0
    failed_queries: int = 0
    query_length: List[float] = field(default_factory=list)
    profit: List[float] = field(default_factory=list)
    start: Optional[int] = None
    last_update: Optional[int] = None
    last_attempt: Optional[int] = None
    last_failed: Optional[int] = None
    execute_length: Optional[float] = None
    has_notified: Optional[bool] = None

    # attribute -> on-disk name
    _FIELDS = {
        "start": "start",
        "last_update": "lastUpdate",
        "last_attempt": "lastAttempt",
        "total_attempts": "totalAttempts",
        "successful_attempts": "successfulAttempts",
        "failed_attempts": "failedAttempts",
        "failed_queries": "failedQueries",
        "query_length": "queryLength",
        "profit": "profit",
        "execute_length": "executeLength",
        "last_failed": "lastFailed",
        "has_notified": "hasNotified",
    }

    @classmethod
    def from_dict(cls, data: dict) -> "StrategyState":
        kwargs = {}
        for attr, name in cls._FIELDS.items():
            if name in data and data[name] is not None:
                kwargs[attr] = data[name]
        state = cls(**kwargs)
        state.query_length = list(state.query_length)
        state.profit = list(state.profit)
        return state

    def to_dict(self) -> dict:
        """Unset optionals are left out of the file"""
        out = {}
        for attr, name in self._FIELDS.items():
            value = getattr(self, attr)
            if value is None:
                continue
            out[name] = value
        return out

    # -----------------------------
    # Sample bookkeeping
    # -----------------------------

    def record_query_length(self, seconds: float) -> None:
        self.query_length.append(seconds)
        if len(self.query_length) > QUERY_LENGTH_CAP:
            self.query_length.pop(0)

    def record_execute_length(self, seconds: float) -> None:
        # two-point average, not a true EMA
        if self.execute_length:
            self.execute_length = (self.execute_length + seconds) / 2
        else:
            self.execute_length = seconds

    def record_profit(self, profit: float) -> None:
        self.profit.append(profit)

    def average_query_length(self) -> float:
        return mean(self.query_length) if self.query_length else float("nan")

    def average_profit(self) -> float:
        return mean(self.profit) if self.profit else float("nan")


class StateStore:
    """
    Flat-file store for StrategyState records

    Writes are synchronous full overwrites. There is no locking, so at most
    one invocation per key may run at a time.
    """

    def __init__(self, key: str, state_dir: Path = Path(".")):
        self.key = key
        self.path = Path(state_dir) / f"results{key}.txt"
        self._full: Dict[str, dict] = {}

    def load(self) -> StrategyState:
        """Create the file with a zeroed record if missing, then read it"""
        if not self.path.exists():
            self.path.parent.mkdir(parents=True, exist_ok=True)
            initial = {self.key: StrategyState().to_dict()}
            self.path.write_text(json.dumps(initial), encoding="utf-8")
            logger.debug(f"Created state file {self.path}")

        # corrupt file -> json.JSONDecodeError propagates
        self._full = json.loads(self.path.read_text(encoding="utf-8"))
        return StrategyState.from_dict(self._full.get(self.key, {}))

    def save(self, state: StrategyState) -> None:
        """Merge this key back into the full mapping and overwrite the file"""
        self._full = {**self._full, self.key: state.to_dict()}
        self.path.write_text(json.dumps(self._full, indent=2), encoding="utf-8")
