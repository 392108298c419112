from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
import argparse
import json
import logging
import sys

from .adapters.base import DateRange
from .config import OUTPUT_FORMATS, OutputConfig, load_config, parse_timestamp
from .errors import FetchError, PublishError
from .orchestrator import run
from .registry import build_registry
from .report import build_summary, format_summary, to_json_dict
from .sink import build_sink

logger = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Download bank statements and publish them as tables"
    )

    parser.add_argument(
        "--config",
        default="config.yml",
        help="Path to the YAML config with bank credentials"
    )

    parser.add_argument(
        "--since",
        default=None,
        help="Start of the period (YYYY-MM-DD). Overrides 'since' from the config."
    )

    parser.add_argument(
        "--until",
        default=None,
        help="End of the period (YYYY-MM-DD). Defaults to now (UTC)."
    )

    parser.add_argument(
        "--output",
        default=None,
        help="Directory (csv) or workbook path (xlsx). Overrides the config."
    )

    parser.add_argument(
        "--format",
        default=None,
        choices=list(OUTPUT_FORMATS),
        help="Output format. Overrides the config."
    )

    parser.add_argument(
        "--json",
        default="",
        help="Write JSON run report to this path (e.g. out/report.json)."
    )

    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log every protocol step"
    )

    return parser.parse_args(argv)


def setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )


def _output_config(args: argparse.Namespace, configured: OutputConfig) -> OutputConfig:
    output = configured
    if args.format is not None and args.format != configured.format:
        default_path = Path("statements.xlsx") if args.format == "xlsx" else Path("statements")
        output = OutputConfig(format=args.format, path=default_path)
    if args.output:
        output = replace(output, path=Path(args.output))
    return output


def main(argv=None) -> int:
    args = parse_args(argv)
    setup_logging(args.verbose)

    try:
        config = load_config(Path(args.config))
        start = parse_timestamp(args.since) if args.since else config.since
        end = parse_timestamp(args.until) if args.until else datetime.now(timezone.utc)
        period = DateRange(start, end)
    except (FileNotFoundError, ValueError) as exc:
        print(f"failed to load config: {exc}", file=sys.stderr)
        return 2

    banks = build_registry(config)
    if not banks:
        logger.warning("No banks configured in %s", args.config)

    sink = build_sink(_output_config(args, config.output))

    try:
        results = run(banks, period, sink)
    except FetchError as exc:
        print(f"failed to get statements for: {exc.bank} - {exc.cause}", file=sys.stderr)
        return 1
    except PublishError as exc:
        print(f"failed to publish statements for: {exc.bank} - {exc.cause}", file=sys.stderr)
        return 1

    summary = build_summary(period.start, period.end, results)
    print(format_summary(summary))

    if args.json:
        out_path = Path(args.json)
        out_path.parent.mkdir(parents=True, exist_ok=True)

        with out_path.open("w", encoding="utf-8") as f:
            json.dump(to_json_dict(summary), f, indent=2, ensure_ascii=False)

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
