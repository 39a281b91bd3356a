"""Command-line entry point: check which catalog applications are installed on this machine.

    launchscript-detect --scripts "VSCode,Git,7Zip" --output-format Table --include-portable
"""

import argparse
import logging
import sys
from typing import List, Optional

from launchscript.catalog import Catalog, CatalogError, validate_app_ids
from launchscript.models import DetectionOptions
from launchscript.pipeline import DetectionPipeline
from launchscript.report import OUTPUT_FORMATS, render, write_report
from launchscript.settings import configure_logging, load_settings

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_INVALID_INPUT = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="launchscript-detect",
        description="Detect installed applications from registry, Windows Store, portable installs and WMI.",
    )
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--scripts", help="Comma-separated application ids, e.g. \"VSCode,Git\"")
    target.add_argument("--all", action="store_true", help="Check every application in the catalog")
    target.add_argument("--list", action="store_true", help="List catalog application ids and exit")

    parser.add_argument("--output-format", default="JSON", choices=OUTPUT_FORMATS, type=_format_choice,
                        help="Report format (default: JSON)")
    parser.add_argument("--output", help="Write the report to this file instead of stdout")
    parser.add_argument("--include-windows-store", action="store_true", help="Also check AppX/MSIX packages")
    parser.add_argument("--include-portable", action="store_true", help="Also probe portable install folders")
    parser.add_argument("--include-wmi", dest="include_wmi", action="store_true", default=True,
                        help="Fall back to the WMI software inventory (default)")
    parser.add_argument("--no-wmi", dest="include_wmi", action="store_false",
                        help="Skip the WMI software inventory fallback")
    parser.add_argument("--catalog", help="YAML file with extra or overriding application definitions")
    parser.add_argument("--config", help="YAML settings file (default: ~/.launchscript/config.yaml)")
    parser.add_argument("--workers", type=int, default=None, help="Check applications in parallel")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def _format_choice(value: str) -> str:
    # Accept json/csv/table in any case
    for fmt in OUTPUT_FORMATS:
        if fmt.lower() == value.lower():
            return fmt
    return value


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    # Handler first so config file warnings are formatted; level refined once settings are known
    configure_logging("DEBUG" if args.verbose else "INFO")
    settings = load_settings(args.config)
    configure_logging("DEBUG" if args.verbose else settings["log_level"])

    catalog = Catalog()
    try:
        if args.catalog:
            catalog.load_file(args.catalog)
        if args.list:
            for app_id in catalog.app_ids:
                print(f"{app_id}\t{catalog.get(app_id).label}")
            return EXIT_OK
        if args.all:
            app_ids = catalog.app_ids
        else:
            app_ids = validate_app_ids(args.scripts, max_apps=settings["max_apps"])
    except CatalogError as e:
        logger.error(f"Invalid request: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_INVALID_INPUT

    options = DetectionOptions(
        include_windows_store=args.include_windows_store,
        include_portable=args.include_portable,
        include_inventory=args.include_wmi,
    )
    workers = args.workers if args.workers is not None else settings["max_workers"]

    pipeline = DetectionPipeline.from_settings(settings)
    report = pipeline.detect_batch(catalog.resolve(app_ids), options, max_workers=max(1, workers))

    if args.output:
        write_report(report, args.output, args.output_format)
    else:
        print(render(report, args.output_format))
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
