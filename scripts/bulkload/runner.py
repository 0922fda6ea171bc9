"""
Benchmark runner: loads generated datasets with each strategy at each
scale and records timing and row-count verification.
"""
import csv
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from .config import LoadConfig
from .database import DatabaseManager
from .generator import generate_messages
from .logger import get_logger
from .metrics import MetricsCollector, format_duration
from .strategies import get_strategy

DEFAULT_SCALES = (1_000, 10_000, 100_000)

RESULT_FIELDS = ["strategy", "rows_requested", "rows_inserted", "duration", "rows_per_second", "verified"]


@dataclass
class StrategyResult:
    """Outcome of one strategy run."""
    strategy: str
    rows_requested: int
    rows_inserted: int
    duration: float
    verified: bool

    @property
    def rows_per_second(self) -> float:
        return self.rows_inserted / self.duration if self.duration > 0 else 0.0

    def as_dict(self) -> dict:
        return {
            "strategy": self.strategy,
            "rows_requested": self.rows_requested,
            "rows_inserted": self.rows_inserted,
            "duration": round(self.duration, 6),
            "rows_per_second": round(self.rows_per_second, 1),
            "verified": self.verified,
        }


class BenchmarkRunner:
    """Runs strategies against a database and collects results."""

    def __init__(
        self,
        config: LoadConfig,
        database: DatabaseManager,
        metrics: Optional[MetricsCollector] = None
    ):
        self.config = config
        self.database = database
        self.metrics = metrics or database.metrics
        self.logger = get_logger()

    def run(self, strategy_name: str, row_count: int, reset: Optional[bool] = None) -> StrategyResult:
        """
        Load `row_count` generated rows with one strategy.

        The table is truncated first unless `reset` (default from config)
        is false; in that case ids continue after the highest stored id.
        """
        strategy = get_strategy(strategy_name, self.database, self.config, self.metrics)
        reset = self.config.reset_before_run if reset is None else reset

        if reset:
            self.database.truncate()
            existing, next_id = 0, 1
        else:
            existing = self.database.count_rows()
            next_id = self.database.max_id() + 1

        rows = generate_messages(
            row_count,
            start_id=next_id,
            seed=self.config.seed,
            words_per_message=self.config.words_per_message,
        )

        self.logger.info(f"Loading with {strategy_name}", rows=row_count)
        started = time.perf_counter()
        inserted = strategy.load(rows, total=row_count)
        duration = time.perf_counter() - started

        stored = self.database.count_rows()
        verified = inserted == row_count and stored == existing + inserted
        if not verified:
            self.logger.error(
                "Row count mismatch after load",
                strategy=strategy_name,
                requested=row_count,
                inserted=inserted,
                stored=stored - existing,
            )

        result = StrategyResult(
            strategy=strategy_name,
            rows_requested=row_count,
            rows_inserted=inserted,
            duration=duration,
            verified=verified,
        )
        self.logger.success(
            f"{strategy_name} finished",
            rows=inserted,
            time=format_duration(duration),
            rows_per_s=int(result.rows_per_second),
        )
        return result

    def run_matrix(self, strategy_names: Sequence[str], scales: Sequence[int]) -> List[StrategyResult]:
        """Run every strategy at every scale, skipping unsupported combinations."""
        results = []
        for scale in scales:
            self.logger.section(f"SCALE: {scale:,} rows")
            for name in strategy_names:
                strategy = get_strategy(name, self.database, self.config, self.metrics)
                if not strategy.is_supported():
                    self.logger.warning(f"Skipping {name}", reason=f"needs COPY, dialect is {self.database.dialect}")
                    continue
                if strategy.max_rows is not None and scale > strategy.max_rows:
                    self.logger.warning(f"Skipping {name}", reason=f"capped at {strategy.max_rows:,} rows")
                    continue
                results.append(self.run(name, scale, reset=True))
        return results


def format_results(results: Iterable[StrategyResult]) -> str:
    """Aligned text table of results."""
    header = f"{'strategy':<15} {'rows':>12} {'time':>10} {'rows/s':>14}  ok"
    lines = [header, "-" * len(header)]
    for result in results:
        lines.append(
            f"{result.strategy:<15} {result.rows_inserted:>12,} "
            f"{format_duration(result.duration):>10} {result.rows_per_second:>14,.0f}  "
            f"{'yes' if result.verified else 'NO'}"
        )
    return "\n".join(lines)


def write_results_csv(path: Path, results: Iterable[StrategyResult]) -> int:
    """Write results to a CSV file. Returns the number of result rows."""
    count = 0
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=RESULT_FIELDS)
        writer.writeheader()
        for result in results:
            writer.writerow(result.as_dict())
            count += 1
    return count
