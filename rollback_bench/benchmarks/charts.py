from __future__ import annotations

import logging
from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns

LOGGER = logging.getLogger("rollback_bench.benchmark.charts")

sns.set_style("whitegrid")
plt.rcParams["figure.dpi"] = 100
plt.rcParams["savefig.dpi"] = 300
plt.rcParams["font.size"] = 10
plt.rcParams["axes.labelsize"] = 11
plt.rcParams["axes.titlesize"] = 13
plt.rcParams["xtick.labelsize"] = 9
plt.rcParams["ytick.labelsize"] = 10
plt.rcParams["legend.fontsize"] = 9

OBJECT_COLORS = {
    "owned": "#2E86AB",  # Blue
    "shared": "#F18F01",  # Orange
    "none": "#6A994E",  # Green
}

OBJECT_ORDER = ["owned", "shared", "none"]


def render_report_charts(records: pd.DataFrame, output_dir: Path) -> list[Path]:
    """Render every report chart for ``records``; returns the written paths."""
    if records.empty:
        LOGGER.warning("No records available; skipping charts")
        return []

    output_dir.mkdir(parents=True, exist_ok=True)
    paths = [
        _render_net_gas_chart(records, output_dir / "net_gas_by_pattern.png"),
        _render_latency_chart(records, output_dir / "latency_by_category.png"),
    ]
    heatmap = _render_error_heatmap(records, output_dir / "error_types_by_category.png")
    if heatmap is not None:
        paths.append(heatmap)
    return paths


def _object_order(df: pd.DataFrame) -> list[str]:
    present = set(df["object_type"].unique())
    return [object_type for object_type in OBJECT_ORDER if object_type in present]


def _render_net_gas_chart(df: pd.DataFrame, chart_path: Path) -> Path:
    """Mean net gas per pattern, owned and shared side by side."""
    categories = sorted(df["category"].unique())
    hue_order = _object_order(df)
    fig, axes = plt.subplots(
        len(categories), 1, figsize=(12, 3.5 * len(categories)), squeeze=False
    )

    for ax, category in zip(axes[:, 0], categories):
        subset = df[df["category"] == category]
        sns.barplot(
            data=subset,
            x="pattern",
            y="net_gas_cost",
            hue="object_type",
            hue_order=hue_order,
            palette=[OBJECT_COLORS[object_type] for object_type in hue_order],
            estimator="mean",
            errorbar=None,
            ax=ax,
        )
        ax.set_title(category, fontweight="bold", pad=10)
        ax.set_xlabel("")
        ax.set_ylabel("Mean net gas (MIST)", fontweight="semibold")
        ax.axhline(0, color="#333333", linewidth=0.8)
        ax.tick_params(axis="x", rotation=30)
        ax.grid(True, alpha=0.3, axis="y", linestyle="--")

    plt.tight_layout()
    fig.savefig(chart_path, bbox_inches="tight", facecolor="white")
    plt.close(fig)
    LOGGER.info("Rendering chart %s", chart_path)
    return chart_path


def _render_latency_chart(df: pd.DataFrame, chart_path: Path) -> Path:
    """Latency distribution per category, split by object type."""
    df = df[df["latency_ms"].notna() & (df["latency_ms"] >= 0)]
    hue_order = _object_order(df)
    fig, ax = plt.subplots(figsize=(14, 7))

    sns.boxplot(
        data=df,
        x="category",
        y="latency_ms",
        hue="object_type",
        order=sorted(df["category"].unique()),
        hue_order=hue_order,
        palette=[OBJECT_COLORS[object_type] for object_type in hue_order],
        ax=ax,
        linewidth=1.5,
        width=0.7,
    )

    ax.set_xlabel("Category", fontweight="semibold", labelpad=12)
    ax.set_ylabel("Latency (ms)", fontweight="semibold", labelpad=12)
    ax.set_ylim(bottom=0)
    ax.set_title("Submission Latency by Category & Object Type", fontweight="bold", pad=15)
    ax.legend(loc="upper right", frameon=True, title="Object")
    ax.grid(True, alpha=0.3, linestyle="--", linewidth=0.5, axis="y")
    ax.set_axisbelow(True)
    ax.spines["top"].set_visible(False)
    ax.spines["right"].set_visible(False)

    fig.savefig(chart_path, bbox_inches="tight", facecolor="white", edgecolor="none")
    plt.close(fig)
    LOGGER.info("Rendering chart %s", chart_path)
    return chart_path


def _render_error_heatmap(df: pd.DataFrame, chart_path: Path) -> Path | None:
    """Count of classified error types per category."""
    aborted = df[df["actual_abort"].astype(bool) & df["error_type"].notna()]
    if aborted.empty:
        LOGGER.warning("No aborted records; skipping error type heatmap")
        return None

    counts = aborted.groupby(["category", "error_type"]).size().unstack(fill_value=0)
    matrix = counts.to_numpy(dtype=float)
    fig, ax = plt.subplots(figsize=(max(8, 1.6 * len(counts.columns)), 1 + 0.8 * len(counts.index)))

    sns.heatmap(
        matrix,
        annot=True,
        fmt=".0f",
        xticklabels=list(counts.columns),
        yticklabels=list(counts.index),
        cmap="YlOrRd",
        vmin=0,
        vmax=max(float(np.max(matrix)), 1.0),
        cbar_kws={"label": "Aborted transactions"},
        ax=ax,
    )
    ax.set_xlabel("Error type", fontweight="semibold")
    ax.set_ylabel("Category", fontweight="semibold")
    ax.set_title("Classified Failures by Category", fontweight="bold", pad=15)
    ax.tick_params(axis="x", rotation=30)

    plt.tight_layout()
    fig.savefig(chart_path, bbox_inches="tight", facecolor="white")
    plt.close(fig)
    LOGGER.info("Rendering chart %s", chart_path)
    return chart_path
