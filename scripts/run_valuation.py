#!/usr/bin/env python3
"""Generate a synthetic loan book and run a portfolio valuation over it.

Applications are submitted through the lending service, underwritten,
disbursed and repaid according to sampled borrower behavior. The book is then
classified as of the reference date and the provisioning report is printed.
Optionally the loan book and valuation are exported as JSON files.
"""

import argparse
import logging
import sys
import time
from dataclasses import replace
from datetime import date
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from lending_core.config import LendingConfig
from lending_core.exceptions import LendingError
from lending_core.logging import setup_logging
from lending_core.scenarios import LoanBookScenario
from lending_core.sinks import ConsoleSink, JsonFileSink

logger = logging.getLogger(__name__)


def print_report(summary: dict, elapsed: float) -> None:
    """Print the portfolio summary."""
    print(f"\n{'='*60}")
    print("Loan Book Summary")
    print("=" * 60)
    for key, value in summary.items():
        if isinstance(value, dict):
            print(f"  {key}:")
            for name, count in sorted(value.items()):
                print(f"    {name:<20} {count}")
        else:
            print(f"  {key:<24} {value}")
    print(f"\nCompleted in {elapsed:.2f}s")


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Generate a synthetic loan book and run a portfolio valuation"
    )
    parser.add_argument(
        "--applicants",
        type=int,
        default=200,
        help="Number of loan applications to generate (default: 200)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=42,
        help="Random seed for reproducibility (default: 42)",
    )
    parser.add_argument(
        "--as-of",
        type=date.fromisoformat,
        default=None,
        help="Valuation date in YYYY-MM-DD format (default: today)",
    )
    parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="Directory to write JSON files to (optional)",
    )
    parser.add_argument(
        "--console",
        action="store_true",
        help="Print exported records to stdout",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Number of valuation worker threads (default: VALUATION_WORKERS or 4)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        help="Log level (default: LOG_LEVEL or INFO)",
    )
    parser.add_argument(
        "--log-format",
        type=str,
        choices=["standard", "json"],
        default="standard",
        help="Log output format (default: standard)",
    )
    args = parser.parse_args()

    try:
        config = LendingConfig.from_env()
    except LendingError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(2)

    setup_logging(args.log_level or config.log_level, args.log_format)

    config.seed = args.seed
    if args.workers is not None:
        config.valuation = replace(config.valuation, workers=args.workers)

    start = time.perf_counter()
    scenario = LoanBookScenario(
        num_applicants=args.applicants,
        as_of=args.as_of,
        seed=args.seed,
        config=config,
    )
    scenario.generate()
    result = scenario.run_valuation()
    if result.failed:
        logger.warning("Valuation failed for %d loans: %s", len(result.failed), ", ".join(result.failed))

    sinks = []
    if args.output:
        sinks.append(JsonFileSink(args.output, pretty=True))
    if args.console:
        sinks.append(ConsoleSink(max_records=5))

    if sinks:
        try:
            scenario.export(sinks)
        except LendingError as e:
            logger.error("Export failed: %s", e)
            sys.exit(1)
        finally:
            for sink in sinks:
                sink.close()

    print_report(scenario.get_portfolio_summary(), time.perf_counter() - start)


if __name__ == "__main__":
    main()
