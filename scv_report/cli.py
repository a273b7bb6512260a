"""CLI entry point for the SCV report builder.

Runs the full pipeline against a local blob-store directory: data
ingestion, workbook generation, upload, and QA validation.

Usage::

    # Generate a report (pricing auto-detected)
    python -m scv_report.cli generate \\
        --project mlab_superdairy_usa_2 \\
        --bucket-dir data/bucket

    # Interim data set, pricing forced on, tracked as a pollable job
    python -m scv_report.cli generate \\
        --project niq_store_01 --interim --prices \\
        --bucket-dir data/bucket --jobs-dir var/jobs --job-id run-42

    # Run a named preset from a YAML file
    python -m scv_report.cli generate \\
        --preset superdairy --presets presets.yaml --bucket-dir data/bucket

    # Poll a tracked job
    python -m scv_report.cli status run-42 --jobs-dir var/jobs

    # Validate an existing workbook
    python -m scv_report.cli validate --project niq_store_01 --xlsx report.xlsx

    # Show the column layouts for a project
    python -m scv_report.cli inspect --project niq_store_01 --products 40 --prices
"""

import argparse
import json
import logging
import os
import sys
import uuid
from pathlib import Path

from .errors import ReportError
from .jobs import JsonJobStore, run_tracked_report
from .qa.validator import WorkbookValidator
from .report import ReportOrchestrator
from .schema.config import ReportConfiguration, partner_for
from .schema.layout import section_layouts
from .schema.loader import configuration_from_preset, load_presets
from .storage import LocalBlobStore


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

def _images_base_url(args):
    if args.images_url:
        return args.images_url
    if os.environ.get("IMAGES_BASE_URL"):
        return os.environ["IMAGES_BASE_URL"]
    bucket = os.environ.get("IMAGES_BUCKET")
    region = os.environ.get("IMAGES_REGION")
    if bucket and region:
        return f"https://{bucket}.s3.{region}.amazonaws.com"
    return None


def _cli_options(args):
    """Collect run options given explicitly on the command line."""
    options = {
        "is_final": False if args.interim else None,
        "has_prices": args.prices,
        "has_findability": False if args.no_findability else None,
        "is_aoi": True if args.aoi else None,
        "large_dataset": True if args.large_dataset else None,
        "large_dataset_threshold": args.large_dataset_threshold,
        "price_threshold": args.price_threshold,
        "images_base_url": _images_base_url(args),
    }
    return {k: v for k, v in options.items() if v is not None}


def _build_config(args):
    """Build a ReportConfiguration from --project or --preset."""
    options = _cli_options(args)
    if args.preset:
        if not args.presets:
            _error("--preset requires --presets FILE")
        path = Path(args.presets)
        if not path.exists():
            _error(f"Presets file not found: {path}")
        presets = load_presets(path)
        if args.preset in presets:
            presets[args.preset]["options"].update(options)
        return configuration_from_preset(presets, args.preset)
    return ReportConfiguration.from_options(args.project, options)


def _bucket_dir(args):
    bucket = args.bucket_dir or os.environ.get("REPORT_BUCKET_DIR")
    if not bucket:
        _error("No blob store: pass --bucket-dir or set REPORT_BUCKET_DIR")
    path = Path(bucket)
    if not path.is_dir():
        _error(f"Bucket directory not found: {path}")
    return path


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def cmd_generate(args):
    """Generate a report workbook and store it in the bucket directory."""
    store = LocalBlobStore(_bucket_dir(args))
    try:
        config = _build_config(args)
    except ReportError as exc:
        _error(str(exc))

    _info(f"Project: {config.project_id} (partner {config.partner_code!r})")

    try:
        if args.jobs_dir:
            jobs = JsonJobStore(args.jobs_dir)
            job_id = args.job_id or uuid.uuid4().hex
            jobs.create_job(job_id, config.project_id, _cli_options(args))
            _info(f"Tracking as job {job_id}")
            manifest = run_tracked_report(config, store, jobs, job_id)
        else:
            manifest = ReportOrchestrator(config, store).generate()
    except ReportError as exc:
        _error(f"{exc.category}: {exc}")

    _info(f"Written: {manifest.storage_key} in {manifest.duration_seconds:.1f}s "
          f"({manifest.product_count} products, {manifest.user_count} users, "
          f"{manifest.dataset_size_mode.value} mode)")

    if not args.skip_qa:
        _info("Running QA validation...")
        qa_result = WorkbookValidator(config.project_id).validate(
            store.path_for(manifest.storage_key))
        if qa_result.passed:
            _info(qa_result.summary())
        else:
            _warn(qa_result.summary())
            if args.verbose:
                print(qa_result.report(), file=sys.stderr)
    else:
        _info("QA validation skipped (--skip-qa)")

    print(json.dumps(manifest.to_dict(), indent=2))


def cmd_validate(args):
    """Validate an existing workbook against the project's layouts."""
    path = Path(args.xlsx)
    if not path.exists():
        _error(f"Workbook not found: {path}")
    _info(f"Validating {path} for {args.project}")
    qa_result = WorkbookValidator(args.project).validate(path)
    print(qa_result.report())
    sys.exit(0 if qa_result.passed else 1)


def cmd_inspect(args):
    """Show the section layouts for a project and product count."""
    partner = partner_for(args.project)
    layouts = section_layouts(args.products, partner, args.prices)

    print(f"Project:     {args.project}")
    print(f"Partner:     {partner.code}")
    print(f"Products:    {args.products}")
    print(f"Pricing:     {'yes' if args.prices else 'no'}")
    print()
    for section, layout in layouts.items():
        print(f"  {section:<14} {layout.total_columns:>6} columns"
              f"  first indexed {layout.first_indexed_column}"
              f"  block {layout.block_width}")
        if args.verbose:
            print(f"       base:    {', '.join(layout.base_columns) or '-'}")
            print(f"       indexed: {', '.join(layout.indexed_columns)}")


def cmd_status(args):
    """Print a tracked job's record."""
    jobs = JsonJobStore(args.jobs_dir)
    job = jobs.get_job(args.job_id)
    if job is None:
        _error(f"Job not found: {args.job_id}")
    print(json.dumps(job.to_dict(), indent=2))


# ---------------------------------------------------------------------------
# Output helpers
# ---------------------------------------------------------------------------

def _info(msg):
    print(f"  {msg}", file=sys.stderr)


def _warn(msg):
    print(f"  WARNING: {msg}", file=sys.stderr)


def _error(msg):
    print(f"  ERROR: {msg}", file=sys.stderr)
    sys.exit(1)


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------

def build_parser():
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="scv-report",
        description="Generate shopper session spreadsheet reports from JSON data.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # ---- generate ----
    gen = subparsers.add_parser(
        "generate",
        help="Generate a report workbook from a project's input documents.",
    )
    _add_project_args(gen)
    _add_option_args(gen)
    gen.add_argument(
        "--bucket-dir",
        help="Local blob store root (default: $REPORT_BUCKET_DIR).",
    )
    gen.add_argument(
        "--jobs-dir",
        help="Record progress as a pollable job in this directory.",
    )
    gen.add_argument(
        "--job-id",
        help="Job identifier to use with --jobs-dir (default: random).",
    )
    gen.add_argument(
        "--skip-qa",
        action="store_true",
        default=False,
        help="Skip QA validation after generation.",
    )
    gen.add_argument(
        "-v", "--verbose",
        action="store_true",
        default=False,
        help="Debug logging and the full QA report on failure.",
    )
    gen.set_defaults(func=cmd_generate)

    # ---- validate ----
    val = subparsers.add_parser(
        "validate",
        help="Validate an existing workbook's structure.",
    )
    val.add_argument("--project", required=True, help="Project identifier.")
    val.add_argument("--xlsx", required=True, help="Path to the workbook.")
    val.set_defaults(func=cmd_validate)

    # ---- inspect ----
    insp = subparsers.add_parser(
        "inspect",
        help="Show section column layouts.",
    )
    insp.add_argument("--project", required=True, help="Project identifier.")
    insp.add_argument("--products", type=int, required=True,
                      help="Number of products on the shelf.")
    insp.add_argument("--prices", action="store_true", default=False,
                      help="Include pricing columns.")
    insp.add_argument("-v", "--verbose", action="store_true", default=False,
                      help="Show base and indexed column names.")
    insp.set_defaults(func=cmd_inspect)

    # ---- status ----
    stat = subparsers.add_parser(
        "status",
        help="Show a tracked job's status.",
    )
    stat.add_argument("job_id", help="Job identifier.")
    stat.add_argument("--jobs-dir", required=True, help="Job store directory.")
    stat.set_defaults(func=cmd_status)

    return parser


def _add_project_args(parser):
    """Add --project / --preset args to a subparser."""
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument(
        "--project",
        help="Project identifier.",
    )
    group.add_argument(
        "--preset",
        help="Preset name from --presets.",
    )
    parser.add_argument(
        "--presets",
        help="YAML presets file.",
    )


def _add_option_args(parser):
    """Add run option flags."""
    opts = parser.add_argument_group("run options")
    opts.add_argument(
        "--interim",
        action="store_true",
        default=False,
        help="Name the output as an interim data set.",
    )
    pricing = opts.add_mutually_exclusive_group()
    pricing.add_argument(
        "--prices",
        dest="prices",
        action="store_true",
        default=None,
        help="Force pricing columns on (default: auto-detect).",
    )
    pricing.add_argument(
        "--no-prices",
        dest="prices",
        action="store_false",
        help="Force pricing columns off.",
    )
    opts.add_argument(
        "--no-findability",
        action="store_true",
        default=False,
        help="Skip the findability sheet.",
    )
    opts.add_argument(
        "--aoi",
        action="store_true",
        default=False,
        help="AOI run: leave the sales section empty.",
    )
    opts.add_argument(
        "--large-dataset",
        action="store_true",
        default=False,
        help="Start in large dataset mode (no zero pre-fill).",
    )
    opts.add_argument(
        "--large-dataset-threshold",
        type=int,
        help="Estimated cell count above which large dataset mode is used.",
    )
    opts.add_argument(
        "--price-threshold",
        type=float,
        help="Share of priced products needed to include pricing (0-1).",
    )
    opts.add_argument(
        "--images-url",
        help="Thumbnail base URL (default: $IMAGES_BASE_URL or IMAGES_BUCKET/IMAGES_REGION).",
    )


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def main(argv=None):
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    verbose = getattr(args, "verbose", False)
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    args.func(args)


if __name__ == "__main__":
    main()
