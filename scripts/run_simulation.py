#!/usr/bin/env python3
"""CLI entry point for simulated control-loop runs.

Runs the control loop against a simulated network for one or more
scenarios and seeds, then writes a metrics summary and trace plots.

Usage:
    # Quick run of every scenario
    python scripts/run_simulation.py --quick --output results/sim_test

    # Single scenario in continuous mode with debug logging
    python scripts/run_simulation.py --scenarios preparation --mode continuous -v
"""

import argparse
import sys
import time
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from batch_farming.evaluation.runner import RunnerConfig, ScenarioRunner
from batch_farming.evaluation.visualization import save_all_plots
from batch_farming.logging_setup import configure_logging
from batch_farming.simulation.scenarios import list_scenarios


def main():
    parser = argparse.ArgumentParser(
        description="Run simulated batch farming scenarios",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Quick test run
  %(prog)s --quick --output results/test

  # Three seeds of two scenarios
  %(prog)s --scenarios steady_farming preparation --seeds 3
        """,
    )
    parser.add_argument(
        "--output",
        "-o",
        type=str,
        default="results/simulation",
        help="Output directory for results (default: results/simulation)",
    )
    parser.add_argument(
        "--seeds",
        "-s",
        type=int,
        default=3,
        help="Number of seeds per scenario (default: 3)",
    )
    parser.add_argument(
        "--base-seed",
        type=int,
        default=42,
        help="Base random seed (default: 42)",
    )
    parser.add_argument(
        "--cycles",
        "-c",
        type=int,
        default=None,
        help="Control cycles per run (default: per scenario)",
    )
    parser.add_argument(
        "--mode",
        choices=["timed", "continuous"],
        default="timed",
        help="Control loop mode (default: timed)",
    )
    parser.add_argument(
        "--scenarios",
        nargs="+",
        default=None,
        help=f"Scenarios to run (default: all). Available: {list_scenarios()}",
    )
    parser.add_argument(
        "--quick",
        action="store_true",
        help="Quick run for CI/testing (1 seed, 10 cycles)",
    )
    parser.add_argument(
        "--skip-plots",
        action="store_true",
        help="Skip generating plots",
    )
    parser.add_argument(
        "--log-file",
        type=str,
        default=None,
        help="Also write logs to this rotating file",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Log every cycle at DEBUG level",
    )

    args = parser.parse_args()

    if args.quick:
        args.seeds = 1
        args.cycles = 10

    if args.scenarios:
        available = set(list_scenarios())
        invalid = set(args.scenarios) - available
        if invalid:
            print(f"Error: Unknown scenarios: {invalid}")
            print(f"Available: {list_scenarios()}")
            return 1

    configure_logging("DEBUG" if args.verbose else "INFO", log_file=args.log_file)

    output_dir = Path(args.output)
    output_dir.mkdir(parents=True, exist_ok=True)

    config = RunnerConfig(
        n_seeds=args.seeds,
        base_seed=args.base_seed,
        mode=args.mode,
        cycles=args.cycles,
        log_cycles=args.verbose,
    )

    print("=" * 60)
    print("Batch Farming Simulation")
    print("=" * 60)
    print(f"Mode: {args.mode}")
    print(f"Seeds: {args.seeds}")
    print(f"Scenarios: {args.scenarios or 'all'}")
    print(f"Output: {output_dir}")
    print()

    runner = ScenarioRunner(config)
    start_time = time.time()
    results = runner.run_all_scenarios(scenarios=args.scenarios)
    elapsed = time.time() - start_time
    print(f"Simulation completed in {elapsed:.1f}s")
    print()

    print("=" * 60)
    print("Results Summary")
    print("=" * 60)
    for scenario_name, result in results.items():
        ci_low, ci_high = result.extraction_rate_ci
        print(f"\n{scenario_name}:")
        print(
            f"  extraction rate {result.extraction_rate_iqm:.2f}/s "
            f"[{ci_low:.2f}, {ci_high:.2f}], "
            f"time-miss rate {result.mean_time_miss_rate:.1%}"
        )
        for run in result.runs:
            farming = run.first_farming_cycle
            print(
                f"  seed {run.seed}: {run.dispatch_cycles}/{run.cycles} cycles dispatched, "
                f"farming from cycle {farming if farming is not None else '-'}"
            )

    print(f"\nSaving results to {output_dir}...")
    runner.save_results(output_dir, results)

    if not args.skip_plots:
        print("Generating plots...")
        save_all_plots(results, output_dir)

    print("Done!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
