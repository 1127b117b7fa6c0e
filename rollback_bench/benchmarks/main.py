from __future__ import annotations

import argparse
import datetime as dt
import json
import logging
import os
import sys
import threading
from pathlib import Path
from typing import Callable

from dotenv import load_dotenv

from ..ledger import LedgerClient, LedgerConnectionError
from .charts import render_report_charts
from .collector import ResultStore
from .config import (
    BenchmarkPlan,
    BenchmarkSettings,
    ConfigurationError,
    parse_categories,
)
from .executor import ThrottledExecutor
from .pool import PoolInitialisationError, SharedObjectPool
from .report import (
    ResultAggregator,
    format_breakdown,
    format_comparison,
    format_summary,
)
from .scenarios import ScenarioEnvironment, count_submissions, run_scenarios

LOGGER = logging.getLogger("rollback_bench.benchmark")

ClientFactory = Callable[[BenchmarkSettings], LedgerClient]


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Sui abort/rollback cost benchmark")
    parser.add_argument("--package-id", help="Published taxonomy package id (env PACKAGE_ID)")
    parser.add_argument("--network", help="testnet, devnet, mainnet or localnet (env SUI_NETWORK)")
    parser.add_argument("--rpc-url", help="Explicit fullnode URL (env SUI_RPC_URL)")
    parser.add_argument("--gas-budget", type=int, help="Fixed gas budget per transaction (env GAS_BUDGET)")
    parser.add_argument("--pool-size", type=int, help="Number of pooled shared objects (env SHARED_POOL_SIZE)")
    parser.add_argument(
        "--categories",
        default=os.environ.get("BENCHMARK_CATEGORIES"),
        help="Comma-separated scenario categories to run (default: all)",
    )
    parser.add_argument("--iterations", type=int, default=10, help="Iterations per abort/commit grid cell")
    parser.add_argument(
        "--output-dir",
        help="Directory to store benchmark artefacts (env BENCHMARK_OUTPUT_DIR)",
    )
    parser.add_argument(
        "--no-charts",
        action="store_true",
        help="Skip chart rendering",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Only print the planned scenario categories without submitting anything",
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get("BENCHMARK_LOG_LEVEL", "INFO"),
        help="Logging level",
    )
    return parser.parse_args(argv)


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def load_settings(args: argparse.Namespace, env: dict[str, str] | None = None) -> BenchmarkSettings:
    return BenchmarkSettings.from_env(
        os.environ if env is None else env,
        package_id=args.package_id,
        network=args.network,
        rpc_url=args.rpc_url,
        gas_budget=args.gas_budget,
        pool_size=args.pool_size,
        output_dir=Path(args.output_dir) if args.output_dir else None,
    )


def connect_sui(settings: BenchmarkSettings) -> LedgerClient:
    try:
        from ..sui_client import SuiLedgerClient
    except ImportError as exc:
        raise LedgerConnectionError(
            f"Sui client unavailable ({exc}); install the 'sui' extra: pip install 'sui-rollback-bench[sui]'"
        ) from exc

    return SuiLedgerClient.connect(settings.network, settings.private_key, settings.rpc_url)


def main(argv: list[str] | None = None, client_factory: ClientFactory = connect_sui) -> int:
    load_dotenv()
    args = parse_args(argv)
    setup_logging(args.log_level)

    try:
        plan = BenchmarkPlan(categories=parse_categories(args.categories), iterations=args.iterations)
    except ConfigurationError as exc:
        LOGGER.error("Invalid benchmark plan: %s", exc)
        return 1

    if args.dry_run:
        _print_plan(plan)
        return 0

    try:
        settings = load_settings(args)
    except ConfigurationError as exc:
        LOGGER.error("%s", exc)
        return 1

    try:
        client = client_factory(settings)
    except LedgerConnectionError as exc:
        LOGGER.error("%s", exc)
        return 1

    return run_benchmark(settings, plan, client, render_charts=not args.no_charts)


def run_benchmark(
    settings: BenchmarkSettings,
    plan: BenchmarkPlan,
    client: LedgerClient,
    render_charts: bool = True,
    stop_event: threading.Event | None = None,
) -> int:
    stop_event = stop_event or threading.Event()
    output_dir = settings.output_dir
    output_dir.mkdir(parents=True, exist_ok=True)

    LOGGER.info("Package ID: %s", settings.package_id)
    LOGGER.info("Gas budget (fixed): %d", settings.gas_budget)
    LOGGER.info("Benchmark output directory: %s", output_dir)
    LOGGER.info("Categories: %s", ", ".join(plan.categories))

    pool: SharedObjectPool | None = None
    if plan.uses_shared_pool():
        pool = SharedObjectPool(
            client,
            settings.package_id,
            settings.gas_budget,
            settle_seconds=settings.shared_delay_seconds,
            stop_event=stop_event,
        )
        try:
            pool.initialize(settings.pool_size)
        except PoolInitialisationError:
            LOGGER.exception("Shared object pool could not be initialised; aborting run")
            return 1

    store = ResultStore()
    executor = ThrottledExecutor(
        client,
        delay_seconds=settings.delay_seconds,
        shared_delay_seconds=settings.shared_delay_seconds,
        stop_event=stop_event,
    )
    env = ScenarioEnvironment(
        package_id=settings.package_id,
        gas_budget=settings.gas_budget,
        plan=plan,
        pool=pool,
    )

    started_at = dt.datetime.now(dt.timezone.utc)
    try:
        run_scenarios(plan.categories, env, executor, store, stop_event)
    except (Exception, KeyboardInterrupt):
        stop_event.set()
        LOGGER.exception("Benchmark failed after %d submissions", len(store))
        if store:
            store.export_csv(output_dir)
            LOGGER.warning("Partial results exported")
        return 1

    csv_path = store.export_csv(output_dir)
    aggregator = ResultAggregator(store.snapshot())
    summary = aggregator.summarize()
    breakdown = aggregator.breakdown()
    comparison = aggregator.paired_comparison()

    for line in format_summary(summary) + format_breakdown(breakdown) + format_comparison(comparison):
        print(line)

    breakdown_path = csv_path.with_name(csv_path.stem + "__breakdown.csv")
    aggregator.breakdown_frame().to_csv(breakdown_path, index=False, float_format="%.2f")
    LOGGER.info("Breakdown written to %s", breakdown_path)

    chart_paths: list[Path] = []
    if render_charts:
        chart_paths = render_report_charts(store.to_dataframe(), output_dir)

    manifest = {
        "package_id": settings.package_id,
        "network": settings.network,
        "started_at": started_at.isoformat(),
        "finished_at": dt.datetime.now(dt.timezone.utc).isoformat(),
        "results_csv": str(csv_path),
        "breakdown_csv": str(breakdown_path),
        "charts": [str(path) for path in chart_paths],
        "shared_pool": list(pool.handles) if pool is not None else [],
        "total": summary.total,
        "succeeded": summary.succeeded,
        "failed": summary.failed,
        "mismatches": len(summary.mismatches),
        "outcomes": store.summaries(),
        "submissions": executor.statistics.submitted,
        "aborted": executor.statistics.aborted,
        "rejected": executor.statistics.rejected,
    }
    manifest_path = csv_path.with_name(csv_path.stem + "__manifest.json")
    with open(manifest_path, "w", encoding="utf-8") as f:
        json.dump(manifest, f, indent=2)
    LOGGER.info("Benchmark manifest written to %s", manifest_path)

    if summary.mismatches:
        print("\nBenchmark status: MISMATCH", file=sys.stderr)
        return 1
    print("\nBenchmark status: OK", file=sys.stderr)
    return 0


def _print_plan(plan: BenchmarkPlan) -> None:
    counts = count_submissions(plan.categories, plan)
    for name in plan.categories:
        print(f"  - {name}: {counts[name]} submissions")
    print(f"Total: {sum(counts.values())} submissions")
    if plan.uses_shared_pool():
        print("Shared object pool required")


if __name__ == "__main__":
    sys.exit(main())
