#!/usr/bin/env python3
"""
Run a severity calculation over a household dataset exported as JSON.

This script loads the calculation model, household records and optional
boundary / population tables from disk, runs SeverityCalculationService and
writes the full result as JSON.

Usage:
    # Households already shaped as HouseholdRecord objects
    python run_calculation.py --model model.json --households households.json

    # Raw survey rows; pcode / household id / group columns are detected
    python run_calculation.py --model model.json --households rows.json --raw-rows

    # Per population group, with PIN denominators
    python run_calculation.py --model model.json --households households.json \\
        --population population.json --population-group IDP --population-group "Host community"
"""
import sys
import os
import argparse
import json
import logging
from datetime import datetime
from pathlib import Path

from dotenv import load_dotenv

# Add parent directory to path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
sys.path.insert(0, project_root)

# Load SSC_* settings from the project .env before the package reads them
env_file = os.path.join(project_root, ".env")
if os.path.exists(env_file):
    load_dotenv(env_file)

from shelter_severity.core.config import DecisionTreePolicy, SeveritySettings, settings
from shelter_severity.core.exceptions import ConfigurationError
from shelter_severity.scoring.households import build_household_records, validate_household_dataset
from shelter_severity.scoring.schemas import CalculationOptions
from shelter_severity.scoring.services import SeverityCalculationService
from shelter_severity.scoring.validation import load_calculation_model

logger = logging.getLogger(__name__)


def _read_json(path: str):
    return json.loads(Path(path).expanduser().read_text(encoding="utf-8"))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Run a household severity calculation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--model", required=True, help="Calculation model JSON (template parser output)")
    parser.add_argument("--households", required=True, help="JSON list of household records or raw survey rows")
    parser.add_argument("--raw-rows", action="store_true", help="Treat --households as raw survey rows")
    parser.add_argument("--boundaries", default=None, help="JSON list of {id, pcode, name, level}")
    parser.add_argument("--population", default=None, help="JSON list of {pcode, population, population_group?}")
    parser.add_argument(
        "--population-group",
        action="append",
        dest="population_groups",
        default=None,
        help="Aggregate separately for this population group (repeatable)",
    )
    parser.add_argument(
        "--policy",
        choices=[p.value for p in DecisionTreePolicy],
        default=None,
        help="Decision tree fallback policy (default from SSC_DECISION_TREE_POLICY)",
    )
    parser.add_argument("--output", default=None, help="Where to write the result JSON (default: stdout)")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    config = settings
    if args.policy:
        config = SeveritySettings(**{**settings.model_dump(), "DECISION_TREE_POLICY": args.policy})

    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )

    print("=" * 80, file=sys.stderr)
    print("SEVERITY CALCULATION", file=sys.stderr)
    print("=" * 80, file=sys.stderr)
    print(f"Started at: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}", file=sys.stderr)

    try:
        model = load_calculation_model(_read_json(args.model))
        service = SeverityCalculationService(model, config=config)
    except ConfigurationError as e:
        print(f"\n✗ Configuration error: {e}", file=sys.stderr)
        for detail in e.errors:
            print(f"  - {detail}", file=sys.stderr)
        return 2

    households = _read_json(args.households)
    if args.raw_rows:
        processed = build_household_records(households)
        report = validate_household_dataset(processed)
        for message in report.warnings:
            logger.warning(message)
        if not report.valid:
            for message in report.errors:
                print(f"✗ {message}", file=sys.stderr)
            return 1
        households = processed.records

    options = CalculationOptions(
        admin_boundaries=_read_json(args.boundaries) if args.boundaries else (),
        population_data=_read_json(args.population) if args.population else (),
        population_groups=args.population_groups or (),
    )

    result = service.calculate(households, options)
    payload = result.model_dump_json(by_alias=True, indent=2)
    if args.output:
        Path(args.output).expanduser().write_text(payload, encoding="utf-8")
    else:
        print(payload)

    summary = result.summary
    print(f"Model: {model.name} v{model.version}", file=sys.stderr)
    print(f"Households: {summary.total_households}", file=sys.stderr)
    print(f"Areas: {summary.total_areas}", file=sys.stderr)
    print(f"Total PIN: {summary.total_pin}", file=sys.stderr)
    for phase in range(1, 6):
        print(f"  Phase {phase}: {summary.severity_breakdown.get(phase)}", file=sys.stderr)
    for message in result.diagnostics.warnings:
        print(f"⚠️  {message}", file=sys.stderr)
    print(f"Completed at: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}", file=sys.stderr)
    print("=" * 80, file=sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(main())
