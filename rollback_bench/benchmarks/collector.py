from __future__ import annotations

import collections
import datetime as dt
import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Iterator

import pandas as pd

from ..classifier import ErrorKind

LOGGER = logging.getLogger("rollback_bench.benchmark.collector")

OBJECT_TYPES: tuple[str, ...] = ("owned", "shared", "none")
ABORT_DEPTHS: tuple[str, ...] = ("early", "shallow", "medium", "deep", "na")

MAX_ERROR_MESSAGE_LENGTH = 500

CSV_COLUMNS: list[str] = [
    "category",
    "object_type",
    "abort_depth",
    "pattern",
    "iteration",
    "expected_abort",
    "actual_abort",
    "abort_code",
    "computation_cost",
    "storage_cost",
    "storage_rebate",
    "net_gas_cost",
    "latency_ms",
    "error_message",
    "error_type",
    "timestamp",
    "digest",
]


@dataclass(frozen=True)
class OutcomeRecord:
    """Normalised outcome of one submitted transaction."""

    category: str
    object_type: str
    abort_depth: str
    pattern: str
    iteration: int
    expected_abort: bool
    actual_abort: bool
    computation_cost: int
    storage_cost: int
    storage_rebate: int
    latency_ms: float
    timestamp: str
    abort_code: int | None = None
    error_type: ErrorKind | None = None
    error_message: str | None = None
    digest: str | None = None
    net_gas_cost: int = field(init=False)

    def __post_init__(self) -> None:
        if self.object_type not in OBJECT_TYPES:
            raise ValueError(f"unknown object type {self.object_type!r}")
        if self.abort_depth not in ABORT_DEPTHS:
            raise ValueError(f"unknown abort depth {self.abort_depth!r}")
        if not self.actual_abort and (self.abort_code is not None or self.error_type is not None):
            raise ValueError("a committed transaction cannot carry an abort code or error type")
        if self.error_message is not None and len(self.error_message) > MAX_ERROR_MESSAGE_LENGTH:
            object.__setattr__(self, "error_message", self.error_message[:MAX_ERROR_MESSAGE_LENGTH])
        object.__setattr__(
            self,
            "net_gas_cost",
            self.computation_cost + self.storage_cost - self.storage_rebate,
        )

    @property
    def matches_expectation(self) -> bool:
        return self.expected_abort == self.actual_abort

    def to_row(self) -> dict[str, object]:
        row = asdict(self)
        row["error_type"] = self.error_type.value if self.error_type is not None else None
        return row


def utc_timestamp() -> str:
    return dt.datetime.now(dt.timezone.utc).isoformat(timespec="milliseconds")


class ResultStore:
    """Append-only, ordered store of outcome records for one benchmark run."""

    def __init__(self) -> None:
        self._records: list[OutcomeRecord] = []

    def append(self, record: OutcomeRecord) -> None:
        self._records.append(record)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[OutcomeRecord]:
        return iter(tuple(self._records))

    def __bool__(self) -> bool:
        return bool(self._records)

    def snapshot(self) -> tuple[OutcomeRecord, ...]:
        return tuple(self._records)

    def summaries(self) -> dict[str, int]:
        counter = collections.Counter(
            "aborted" if record.actual_abort else "committed" for record in self._records
        )
        return dict(counter)

    def to_dataframe(self) -> pd.DataFrame:
        rows = [record.to_row() for record in self._records]
        if not rows:
            return pd.DataFrame(columns=CSV_COLUMNS)
        df = pd.DataFrame(rows, columns=CSV_COLUMNS)
        df["abort_code"] = df["abort_code"].astype("Int64")
        return df

    def export_csv(self, output_dir: Path, stamp: str | None = None) -> Path:
        """Write every record to a new timestamped CSV and return its path.

        Each call picks a fresh file name so an earlier run's output is never
        truncated; a name collision within the same second gets a numeric suffix.
        """
        output_dir.mkdir(parents=True, exist_ok=True)
        stamp = stamp or dt.datetime.now(dt.timezone.utc).strftime("%Y-%m-%dT%H-%M-%S")
        path = output_dir / f"comprehensive_benchmark_{stamp}.csv"
        suffix = 1
        while path.exists():
            path = output_dir / f"comprehensive_benchmark_{stamp}-{suffix}.csv"
            suffix += 1

        df = self.to_dataframe()
        df.to_csv(path, index=False, float_format="%.2f")
        LOGGER.info("Exported %d records to %s", len(df), path)
        return path
