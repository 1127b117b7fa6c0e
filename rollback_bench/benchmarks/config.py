from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Mapping

LOGGER = logging.getLogger("rollback_bench.benchmark.config")

DEFAULT_GAS_BUDGET = 100_000_000
DEFAULT_DELAY_SECONDS = 1.2
DEFAULT_SHARED_DELAY_SECONDS = 2.5
# Ten pooled writes per scenario, plus headroom.
DEFAULT_POOL_SIZE = 12
DEFAULT_NETWORK = "testnet"
DEFAULT_OUTPUT_DIR = "results"

DEFAULT_PAYLOAD_SIZES: tuple[int, ...] = (0, 1024, 4096, 16384, 65536)

# Driver names in execution order; see scenarios.CATEGORY_DRIVERS.
CATEGORY_ORDER: tuple[str, ...] = (
    "depth",
    "vm",
    "rollback",
    "balance",
    "rebate",
    "rollback-depth",
    "payload",
)


class ConfigurationError(Exception):
    """Raised when required benchmark settings are missing or malformed."""


@dataclass(frozen=True)
class BenchmarkSettings:
    """Process-wide settings, read once at startup."""

    package_id: str
    private_key: str = field(repr=False)
    network: str = DEFAULT_NETWORK
    rpc_url: str | None = None
    gas_budget: int = DEFAULT_GAS_BUDGET
    delay_seconds: float = DEFAULT_DELAY_SECONDS
    shared_delay_seconds: float = DEFAULT_SHARED_DELAY_SECONDS
    pool_size: int = DEFAULT_POOL_SIZE
    output_dir: Path = Path(DEFAULT_OUTPUT_DIR)

    def __post_init__(self) -> None:
        if not self.package_id or not self.private_key:
            raise ConfigurationError("PACKAGE_ID and SUI_PRIVATE_KEY must be set")
        if self.gas_budget <= 0:
            raise ConfigurationError("gas budget must be > 0")
        if self.pool_size <= 0:
            raise ConfigurationError("shared pool size must be > 0")
        if self.delay_seconds < 0 or self.shared_delay_seconds < 0:
            raise ConfigurationError("throttle delays must be >= 0")

    @classmethod
    def from_env(cls, env: Mapping[str, str], **overrides: object) -> BenchmarkSettings:
        """Build settings from environment variables; ``overrides`` win when not None.

        Delays are given in milliseconds (``SLEEP_MS``, ``SLEEP_SHARED_MS``).
        """
        values: dict[str, object] = {
            "package_id": env.get("PACKAGE_ID", "").strip(),
            "private_key": env.get("SUI_PRIVATE_KEY", "").strip(),
            "network": env.get("SUI_NETWORK", DEFAULT_NETWORK),
            "rpc_url": env.get("SUI_RPC_URL") or None,
            "gas_budget": _env_number(env, "GAS_BUDGET", DEFAULT_GAS_BUDGET, int),
            "delay_seconds": _env_number(env, "SLEEP_MS", DEFAULT_DELAY_SECONDS * 1000, float) / 1000.0,
            "shared_delay_seconds": _env_number(
                env, "SLEEP_SHARED_MS", DEFAULT_SHARED_DELAY_SECONDS * 1000, float
            )
            / 1000.0,
            "pool_size": _env_number(env, "SHARED_POOL_SIZE", DEFAULT_POOL_SIZE, int),
            "output_dir": Path(env.get("BENCHMARK_OUTPUT_DIR", DEFAULT_OUTPUT_DIR)),
        }
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**values)  # type: ignore[arg-type]


@dataclass(frozen=True)
class BenchmarkPlan:
    """Which scenario categories run, and how many iterations each grid cell gets."""

    categories: tuple[str, ...] = CATEGORY_ORDER
    iterations: int = 10
    rollback_depth_iterations: int = 20
    payload_sizes: tuple[int, ...] = DEFAULT_PAYLOAD_SIZES
    payload_owned_iterations: int = 5
    payload_shared_iterations: int = 3

    def __post_init__(self) -> None:
        unknown = [name for name in self.categories if name not in CATEGORY_ORDER]
        if unknown:
            raise ConfigurationError(
                f"unknown categories: {', '.join(unknown)} (known: {', '.join(CATEGORY_ORDER)})"
            )
        if self.iterations < 2 or self.iterations % 2:
            raise ConfigurationError("iterations must be an even number >= 2")

    @property
    def abort_iterations(self) -> int:
        """Leading iterations of each abort/commit scenario that are built to abort."""
        return self.iterations // 2

    def uses_shared_pool(self) -> bool:
        return any(name in {"rollback", "balance"} for name in self.categories)


def parse_categories(value: str | Iterable[str] | None) -> tuple[str, ...]:
    if value is None:
        return CATEGORY_ORDER
    items = value.split(",") if isinstance(value, str) else list(value)
    selected = {item.strip() for item in items if item.strip()}
    if not selected:
        return CATEGORY_ORDER
    # Catalogue order regardless of the order given on the command line.
    ordered = tuple(name for name in CATEGORY_ORDER if name in selected)
    unknown = selected.difference(CATEGORY_ORDER)
    if unknown:
        raise ConfigurationError(
            f"unknown categories: {', '.join(sorted(unknown))} (known: {', '.join(CATEGORY_ORDER)})"
        )
    return ordered


def _env_number(env: Mapping[str, str], key: str, default: float, kind: type) -> float:
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return kind(default)
    try:
        return kind(raw)
    except ValueError:
        LOGGER.warning("invalid %s value %r; defaulting to %s", key, raw, kind(default))
        return kind(default)
