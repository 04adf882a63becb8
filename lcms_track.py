#!/usr/bin/env python
"""
LC-MS Method Tracker CLI

This script provides a command-line interface for the injection log: recording
and deleting injection batches, estimating solvent usage for a method, checking
guard column status and exporting batch reports.
"""

import argparse
import json
import logging
import os
import sys

from lcms_tracker.batching import format_injection_range
from lcms_tracker.gradient_utils import calculate_solvent_usage, normalize_gradient_profile
from lcms_tracker.guard_columns import (
    current_guard_column,
    guard_column_status,
    guard_columns_from_rows,
    lookup_expected_lifetime,
)
from lcms_tracker.injection_log import InjectionLog, InjectionNotFoundError
from lcms_tracker.lock_manager import LockAcquisitionError
from lcms_tracker.logging_config import configure_logging
from lcms_tracker.reporting import export_batch_report, load_methods, plot_gradient_profile
from lcms_tracker.settings import guard_column_types, load_config

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="LC-MS Method Tracker",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Estimate solvent usage for 20 injections of a method
  python lcms_track.py solvent --method_id m1 --batch_size 20

  # Record a batch of 8 injections
  python lcms_track.py add-batch --method_id m1 --column_id c1 --batch_size 8 --sample_id QC-01

  # Delete a single injection (the batch is recounted)
  python lcms_track.py delete --injection_id 3f2c...

  # List batches and check the guard column on a column
  python lcms_track.py batches
  python lcms_track.py guard-status --column_id c1 --guard_file lcms_data/guard_columns.json

  # Export a batch report with solvent estimates
  python lcms_track.py export --output lcms_reports/batches.csv
        """,
    )

    parser.add_argument("--config", help="JSON config file")
    parser.add_argument("--injection_log", help="Injection log CSV (overrides config)")
    parser.add_argument("--methods_file", help="Methods JSON file (overrides config)")
    parser.add_argument("--log_level", help="Logging level (overrides config)")

    subparsers = parser.add_subparsers(dest="command", required=True)

    # solvent command
    solvent_parser = subparsers.add_parser("solvent", help="Estimate solvent usage for a batch")
    source = solvent_parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--method_id", help="Method whose gradient to use")
    source.add_argument("--gradient_file", help="JSON file with gradient steps")
    solvent_parser.add_argument("--batch_size", type=int, required=True, help="Injections in batch")
    solvent_parser.add_argument(
        "--injection_volume",
        type=float,
        help="Injection volume per injection (defaults to the method's value, else 0)",
    )
    solvent_parser.add_argument("--plot", help="Also save a gradient plot to this PNG path")

    # add-batch command
    add_parser = subparsers.add_parser("add-batch", help="Record a batch of injections")
    add_parser.add_argument("--method_id", required=True)
    add_parser.add_argument("--column_id", required=True)
    add_parser.add_argument("--batch_size", type=int, default=1)
    add_parser.add_argument("--sample_id")
    add_parser.add_argument("--injection_date", help="ISO date (defaults to now)")
    add_parser.add_argument("--notes")
    add_parser.add_argument(
        "--failed", action="store_true", help="Mark the batch's runs as unsuccessful"
    )

    # delete command
    delete_parser = subparsers.add_parser("delete", help="Delete a single injection")
    delete_parser.add_argument("--injection_id", required=True)

    # batches command
    batches_parser = subparsers.add_parser("batches", help="List injection batches")
    batches_parser.add_argument(
        "--success_policy", choices=["all", "latest"], help="How batch success is decided"
    )

    # guard-status command
    guard_parser = subparsers.add_parser("guard-status", help="Guard column status for a column")
    guard_parser.add_argument("--column_id", required=True)
    guard_parser.add_argument(
        "--guard_file", required=True, help="JSON file with the guard column history"
    )

    # export command
    export_parser = subparsers.add_parser("export", help="Export batches to CSV")
    export_parser.add_argument("--output", help="Output CSV path")

    return parser


def _method_names(methods):
    return {mid: m.get("name") for mid, m in methods.items()}


def _load_methods_or_empty(path):
    if path and os.path.exists(path):
        return load_methods(path)
    return {}


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    config = load_config(args.config)

    configure_logging(
        log_level=args.log_level or config["log_level"],
        log_dir=config["log_dir"],
    )

    log_path = args.injection_log or config["injection_log"]
    methods_path = args.methods_file or config["methods_file"]
    log = InjectionLog(
        log_path, lock_timeout_sec=float(config["advanced"]["lock_timeout_seconds"])
    )

    try:
        if args.command == "solvent":
            return _cmd_solvent(args, methods_path)
        elif args.command == "add-batch":
            methods = _load_methods_or_empty(methods_path)
            records = log.add_batch(
                method_id=args.method_id,
                column_id=args.column_id,
                batch_size=args.batch_size,
                sample_id=args.sample_id,
                injection_date=args.injection_date,
                run_successful=not args.failed,
                notes=args.notes,
                method_name=_method_names(methods).get(args.method_id),
            )
            first, last = records[0].injection_number, records[-1].injection_number
            print(f"✓ Recorded batch {records[0].batch_id}: injections #{first}-{last}")
        elif args.command == "delete":
            record = log.delete_injection(args.injection_id)
            print(f"✓ Deleted injection #{record.injection_number}")
        elif args.command == "batches":
            policy = args.success_policy or config["batches"]["success_policy"]
            batches = log.batches(success_policy=policy)
            if not batches:
                print("No injections found.")
            for batch in batches:
                status = "Success" if batch.run_successful else "Failed"
                print(
                    f"{format_injection_range(batch):>12}  {batch.actual_batch_size:>3} inj  "
                    f"{batch.method_name or batch.method_id:<20} "
                    f"{batch.injection_date or '-':<20} {status}"
                )
        elif args.command == "guard-status":
            return _cmd_guard_status(args, log, config)
        elif args.command == "export":
            output = args.output or os.path.join(config["output_dir"], "injection_batches.csv")
            policy = config["batches"]["success_policy"]
            df = export_batch_report(
                log.batches(success_policy=policy), output, _load_methods_or_empty(methods_path)
            )
            print(f"Exported {len(df)} batches to {output}")
    except (InjectionNotFoundError, LockAcquisitionError, FileNotFoundError, ValueError) as e:
        logger.error(f"{args.command} failed: {e}")
        print(f"❌ Error: {e}", file=sys.stderr)
        return 1

    return 0


def _cmd_solvent(args, methods_path) -> int:
    injection_volume = args.injection_volume
    if args.gradient_file:
        with open(args.gradient_file) as f:
            raw_gradient = f.read()
        title = os.path.basename(args.gradient_file)
    else:
        methods = load_methods(methods_path)
        method = methods.get(args.method_id)
        if method is None:
            raise ValueError(f"Unknown method '{args.method_id}' in {methods_path}")
        raw_gradient = method.get("gradient_steps")
        if injection_volume is None:
            injection_volume = method.get("injection_volume")
        title = method.get("name") or args.method_id

    profile = normalize_gradient_profile(raw_gradient)
    if not profile:
        print("No gradient data available.")
        return 0

    usage = calculate_solvent_usage(profile, args.batch_size, injection_volume or 0.0)
    print(f"Solvent usage for {args.batch_size} injection(s) of {title}:")
    print(f"  Solvent A:    {usage.solvent_a_ml:10.2f} mL")
    print(f"  Solvent B:    {usage.solvent_b_ml:10.2f} mL")
    print(f"  Total volume: {usage.total_volume_ml:10.2f} mL")
    print(json.dumps(usage.to_dict()))

    if args.plot:
        plot_gradient_profile(profile, args.plot, title=title)
    return 0


def _cmd_guard_status(args, log, config) -> int:
    with open(args.guard_file) as f:
        rows = json.load(f)
    guard_columns = guard_columns_from_rows(r for r in rows if r.get("column_id") == args.column_id)
    total_injections = sum(1 for r in log.load() if r.column_id == args.column_id)

    current = current_guard_column(guard_columns)
    lifetime = lookup_expected_lifetime(
        current.part_number if current else None,
        guard_column_types(config),
        default=int(config["guard_columns"]["default_lifetime"]),
    )
    status = guard_column_status(guard_columns, total_injections, lifetime)

    print(f"Column {args.column_id}: {total_injections} total injections")
    print(f"Guard column status: {status.label}")
    if status.injections_remaining is not None:
        print(f"Injections since install: {status.injections_since_install}")
        print(f"Injections remaining: {status.injections_remaining} (lifetime {lifetime})")
    return 0


if __name__ == "__main__":
    sys.exit(main())
