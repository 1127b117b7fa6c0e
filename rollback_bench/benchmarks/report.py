from __future__ import annotations

import collections
import math
from dataclasses import dataclass
from typing import Hashable, Iterable, Sequence

import pandas as pd

from .collector import OutcomeRecord

MISMATCH_PREVIEW = 8
TOP_N = 3

BREAKDOWN_COLUMNS: list[str] = [
    "category",
    "pattern",
    "object_type",
    "abort_depth",
    "count",
    "ok",
    "fail",
    "ok_rate",
    "avg_net_gas",
    "avg_latency_ms",
    "top_error_types",
    "top_abort_codes",
]


@dataclass(frozen=True)
class BenchmarkSummary:
    total: int
    succeeded: int
    failed: int
    mismatches: tuple[OutcomeRecord, ...]

    @property
    def ok(self) -> bool:
        return not self.mismatches


@dataclass(frozen=True)
class GroupBreakdown:
    category: str
    pattern: str
    object_type: str
    abort_depth: str
    count: int
    ok: int
    fail: int
    ok_rate: float
    avg_net_gas: float
    avg_latency_ms: float
    top_error_types: tuple[tuple[str, int], ...]
    top_abort_codes: tuple[tuple[int, int], ...]


@dataclass(frozen=True)
class PairedComparison:
    category: str
    pattern: str
    abort_depth: str
    owned_count: int
    shared_count: int
    owned_ok_rate: float
    shared_ok_rate: float
    owned_avg_net_gas: float
    shared_avg_net_gas: float
    owned_avg_latency_ms: float
    shared_avg_latency_ms: float

    @property
    def delta_ok_rate(self) -> float:
        return self.shared_ok_rate - self.owned_ok_rate

    @property
    def delta_net_gas(self) -> float:
        return self.shared_avg_net_gas - self.owned_avg_net_gas

    @property
    def delta_latency_ms(self) -> float:
        return self.shared_avg_latency_ms - self.owned_avg_latency_ms


def mean(values: Sequence[float]) -> float:
    # fsum keeps the result independent of record order.
    if not values:
        return math.nan
    return math.fsum(values) / len(values)


def top_frequent(values: Iterable[Hashable | None], limit: int = TOP_N) -> tuple[tuple, ...]:
    """Most frequent non-empty values; ties keep first-encountered order."""
    counter = collections.Counter(value for value in values if value is not None and value != "")
    return tuple(counter.most_common(limit))


def _ok_rate(records: Sequence[OutcomeRecord]) -> float:
    if not records:
        return math.nan
    return sum(1 for record in records if not record.actual_abort) / len(records)


class ResultAggregator:
    """Read-only statistics over a closed snapshot of outcome records."""

    def __init__(self, records: Iterable[OutcomeRecord]) -> None:
        self._records = tuple(records)

    @property
    def records(self) -> tuple[OutcomeRecord, ...]:
        return self._records

    def summarize(self) -> BenchmarkSummary:
        failed = sum(1 for record in self._records if record.actual_abort)
        return BenchmarkSummary(
            total=len(self._records),
            succeeded=len(self._records) - failed,
            failed=failed,
            mismatches=tuple(record for record in self._records if not record.matches_expectation),
        )

    def breakdown(self) -> list[GroupBreakdown]:
        groups: dict[tuple[str, str, str, str], list[OutcomeRecord]] = {}
        for record in self._records:
            key = (record.category, record.pattern, record.object_type, record.abort_depth)
            groups.setdefault(key, []).append(record)

        rows = []
        for (category, pattern, object_type, abort_depth), records in sorted(groups.items()):
            fail = sum(1 for record in records if record.actual_abort)
            rows.append(
                GroupBreakdown(
                    category=category,
                    pattern=pattern,
                    object_type=object_type,
                    abort_depth=abort_depth,
                    count=len(records),
                    ok=len(records) - fail,
                    fail=fail,
                    ok_rate=(len(records) - fail) / len(records),
                    avg_net_gas=mean([record.net_gas_cost for record in records]),
                    avg_latency_ms=mean([record.latency_ms for record in records]),
                    top_error_types=top_frequent(
                        record.error_type.value if record.error_type is not None else None
                        for record in records
                    ),
                    top_abort_codes=top_frequent(record.abort_code for record in records),
                )
            )
        return rows

    def paired_comparison(self) -> list[PairedComparison]:
        groups: dict[tuple[str, str, str], dict[str, list[OutcomeRecord]]] = {}
        for record in self._records:
            if record.object_type not in ("owned", "shared"):
                continue
            key = (record.category, record.pattern, record.abort_depth)
            groups.setdefault(key, {"owned": [], "shared": []})[record.object_type].append(record)

        rows = []
        for (category, pattern, abort_depth), partitions in sorted(groups.items()):
            owned, shared = partitions["owned"], partitions["shared"]
            if not owned or not shared:
                continue
            rows.append(
                PairedComparison(
                    category=category,
                    pattern=pattern,
                    abort_depth=abort_depth,
                    owned_count=len(owned),
                    shared_count=len(shared),
                    owned_ok_rate=_ok_rate(owned),
                    shared_ok_rate=_ok_rate(shared),
                    owned_avg_net_gas=mean([record.net_gas_cost for record in owned]),
                    shared_avg_net_gas=mean([record.net_gas_cost for record in shared]),
                    owned_avg_latency_ms=mean([record.latency_ms for record in owned]),
                    shared_avg_latency_ms=mean([record.latency_ms for record in shared]),
                )
            )
        return rows

    def breakdown_frame(self) -> pd.DataFrame:
        rows = self.breakdown()
        if not rows:
            return pd.DataFrame(columns=BREAKDOWN_COLUMNS)
        frame = pd.DataFrame(
            [
                {
                    "category": row.category,
                    "pattern": row.pattern,
                    "object_type": row.object_type,
                    "abort_depth": row.abort_depth,
                    "count": row.count,
                    "ok": row.ok,
                    "fail": row.fail,
                    "ok_rate": row.ok_rate,
                    "avg_net_gas": row.avg_net_gas,
                    "avg_latency_ms": row.avg_latency_ms,
                    "top_error_types": _format_top(row.top_error_types),
                    "top_abort_codes": _format_top(row.top_abort_codes),
                }
                for row in rows
            ],
            columns=BREAKDOWN_COLUMNS,
        )
        return frame


def _fmt(value: float) -> str:
    return f"{value:.2f}" if math.isfinite(value) else "n/a"


def _fmt_pct(value: float) -> str:
    return f"{value * 100:.1f}%" if math.isfinite(value) else "n/a"


def _format_top(items: tuple[tuple, ...]) -> str:
    return ", ".join(f"{value}({count})" for value, count in items) or "-"


def format_summary(summary: BenchmarkSummary) -> list[str]:
    lines = [
        "========================================",
        "COMPREHENSIVE BENCHMARK SUMMARY",
        "========================================",
        f"Total Transactions: {summary.total}",
        f"  Succeeded: {summary.succeeded}",
        f"  Failed/Aborted: {summary.failed}",
        f"Expectation mismatches: {len(summary.mismatches)}",
    ]
    for record in summary.mismatches[:MISMATCH_PREVIEW]:
        line = (
            f"  - {record.category}/{record.pattern}/{record.object_type}/{record.abort_depth}"
            f" #{record.iteration} expectedAbort={record.expected_abort} actualAbort={record.actual_abort}"
        )
        if record.error_type is not None:
            line += f" type={record.error_type}"
        if record.abort_code is not None:
            line += f" code={record.abort_code}"
        lines.append(line)
    if len(summary.mismatches) > MISMATCH_PREVIEW:
        lines.append(f"  ... and {len(summary.mismatches) - MISMATCH_PREVIEW} more")
    return lines


def format_breakdown(rows: Sequence[GroupBreakdown]) -> list[str]:
    lines = [
        "========================================",
        "BREAKDOWN (category/pattern/objectType/depth)",
        "count ok fail okRate avgNetGas avgLatencyMs topErrorType topAbortCode",
        "========================================",
    ]
    for row in rows:
        lines.append(
            f"{row.category}/{row.pattern}/{row.object_type}/{row.abort_depth}"
            f" | count={row.count} ok={row.ok} fail={row.fail} okRate={_fmt_pct(row.ok_rate)}"
            f" | avgNetGas={_fmt(row.avg_net_gas)} avgLatencyMs={_fmt(row.avg_latency_ms)}"
            f" | topType={_format_top(row.top_error_types)} topCode={_format_top(row.top_abort_codes)}"
        )
    return lines


def format_comparison(rows: Sequence[PairedComparison]) -> list[str]:
    lines = [
        "========================================",
        "OWNED vs SHARED (paired comparison)",
        "category/pattern/depth | okRate(owned,shared,d) | avgNetGas(owned,shared,d) | avgLatencyMs(owned,shared,d)",
        "========================================",
    ]
    for row in rows:
        lines.append(
            f"{row.category}/{row.pattern}/{row.abort_depth}"
            f" | okRate={_fmt_pct(row.owned_ok_rate)}, {_fmt_pct(row.shared_ok_rate)}, d={_fmt_pct(row.delta_ok_rate)}"
            f" | avgNetGas={_fmt(row.owned_avg_net_gas)}, {_fmt(row.shared_avg_net_gas)}, d={_fmt(row.delta_net_gas)}"
            f" | avgLatencyMs={_fmt(row.owned_avg_latency_ms)}, {_fmt(row.shared_avg_latency_ms)}, d={_fmt(row.delta_latency_ms)}"
        )
    return lines
