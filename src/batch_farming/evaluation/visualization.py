"""Plots of simulated run traces."""

from pathlib import Path

import numpy as np
import matplotlib.pyplot as plt

from batch_farming.evaluation.metrics import RunMetrics, ScenarioMetrics

STRATEGY_COLORS = {
    "farming": "#2ecc71",  # Green
    "preparation": "#3498db",  # Blue
}
DEFAULT_COLOR = "#95a5a6"  # Gray for skipped cycles


def plot_run_trace(
    run: RunMetrics,
    figsize: tuple[float, float] = (10, 8),
    title: str | None = None,
) -> plt.Figure:
    """Value ratio, pressure delta and utilization per cycle.

    Markers on the value panel are colored by the cycle's strategy.
    """
    fig, axes = plt.subplots(3, 1, figsize=figsize, sharex=True)
    cycles = np.array([r.cycle for r in run.reports])
    colors = [STRATEGY_COLORS.get(r.strategy or "", DEFAULT_COLOR) for r in run.reports]

    ax = axes[0]
    ax.plot(cycles, run.value_ratios * 100.0, color="black", linewidth=1.0)
    ax.scatter(cycles, run.value_ratios * 100.0, c=colors, s=18, zorder=3)
    ax.set_ylabel("Value [%]")
    ax.set_ylim(0, 105)

    ax = axes[1]
    ax.plot(cycles, run.pressure_deltas, color="#e74c3c")
    ax.set_ylabel("Pressure delta")

    ax = axes[2]
    ax.bar(cycles, run.utilizations, color="#9b59b6", width=0.8)
    shortfall = [r.cycle for r in run.reports if r.shortfall > 0]
    if shortfall:
        ax.scatter(shortfall, [0] * len(shortfall), marker="x", color="#e74c3c", zorder=3)
    ax.set_ylabel("Utilization [%]")
    ax.set_xlabel("Cycle")

    for ax in axes:
        ax.spines["top"].set_visible(False)
        ax.spines["right"].set_visible(False)

    if title is None:
        title = f"{run.scenario_name} ({run.mode}, seed {run.seed})"
    fig.suptitle(title)
    plt.tight_layout()
    return fig


def plot_extraction_comparison(
    results: dict[str, ScenarioMetrics],
    figsize: tuple[float, float] = (10, 6),
) -> plt.Figure:
    """Bar chart of extraction rate IQM per scenario with bootstrap CIs."""
    fig, ax = plt.subplots(figsize=figsize)
    names = list(results.keys())
    values = [results[n].extraction_rate_iqm for n in names]
    cis = [results[n].extraction_rate_ci for n in names]
    errors = [
        [max(v - lo, 0.0) for v, (lo, _) in zip(values, cis)],
        [max(hi - v, 0.0) for v, (_, hi) in zip(values, cis)],
    ]

    x = np.arange(len(names))
    ax.bar(x, values, color="#2ecc71", edgecolor="black", linewidth=0.5)
    ax.errorbar(x, values, yerr=errors, fmt="none", color="black", capsize=4)
    ax.set_xticks(x)
    ax.set_xticklabels(names, rotation=30, ha="right")
    ax.set_ylabel("Extraction rate [value/s] (IQM)")
    ax.set_title("Extraction rate across scenarios")
    ax.spines["top"].set_visible(False)
    ax.spines["right"].set_visible(False)
    plt.tight_layout()
    return fig


def save_all_plots(results: dict[str, ScenarioMetrics], output_dir: str | Path) -> list[Path]:
    """Save a trace per scenario (first seed) and the comparison chart."""
    plots_dir = Path(output_dir) / "plots"
    plots_dir.mkdir(parents=True, exist_ok=True)
    saved = []

    for name, result in results.items():
        if not result.runs:
            continue
        fig = plot_run_trace(result.runs[0])
        path = plots_dir / f"{name}_trace.png"
        fig.savefig(path, dpi=150, bbox_inches="tight")
        plt.close(fig)
        saved.append(path)

    if results:
        fig = plot_extraction_comparison(results)
        path = plots_dir / "extraction_comparison.png"
        fig.savefig(path, dpi=150, bbox_inches="tight")
        plt.close(fig)
        saved.append(path)

    return saved
