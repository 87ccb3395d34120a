from __future__ import annotations

"""
Regenerate the nutristream report from the command line.

Reads the USDA food nutrient table and the SBC LTER stream chemistry table,
runs the PCA and clustering pipelines, and saves one self-contained HTML
page. Data paths default to the files under data/ and can be overridden:

  python scripts/build_reports.py -o out/report.html
  python scripts/build_reports.py --food-data data/usda.xlsx --log-level DEBUG
  python scripts/build_reports.py --dry-run > report.html

The exit status is 0 on success and 1 if any stage fails.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

# ---------------------------------------------------------------------------
# Path setup so "nutristream" can be imported when running this file directly
# ---------------------------------------------------------------------------

CURRENT_FILE_PATH: Path = Path(__file__).resolve()
PROJECT_ROOT_DIRECTORY: Path = CURRENT_FILE_PATH.parents[1]
SOURCE_DIRECTORY: Path = PROJECT_ROOT_DIRECTORY / "src"

if str(SOURCE_DIRECTORY) not in sys.path:
  sys.path.insert(0, str(SOURCE_DIRECTORY))

from nutristream.config import DEFAULT_REPORT_PATH, AnalysisConfig  # type: ignore  # noqa: E402
from nutristream.report import build_report_html  # type: ignore  # noqa: E402


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def parse_command_line_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
  """Read output_path, food_data, stream_data, log_level and dry_run from argv."""
  argument_parser = argparse.ArgumentParser(
      description="Regenerate the nutristream HTML report."
  )

  argument_parser.add_argument(
      "-o",
      "--output",
      dest="output_path",
      default=str(DEFAULT_REPORT_PATH),
      help=f"Destination of the HTML report (default: {DEFAULT_REPORT_PATH}).",
  )

  argument_parser.add_argument(
      "--food-data",
      dest="food_data",
      default=None,
      help="CSV or Excel file with USDA food nutrients.",
  )

  argument_parser.add_argument(
      "--stream-data",
      dest="stream_data",
      default=None,
      help="CSV or Excel file with SBC LTER stream chemistry samples.",
  )

  argument_parser.add_argument(
      "--log-level",
      dest="log_level",
      default="INFO",
      choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
      help="Minimum level of log records to show (default: INFO).",
  )

  argument_parser.add_argument(
      "--dry-run",
      dest="dry_run",
      action="store_true",
      help="Print the report to standard output and skip writing a file.",
  )

  return argument_parser.parse_args(argv)


# ---------------------------------------------------------------------------
# Report build
# ---------------------------------------------------------------------------


def configure_logging(log_level_name: str) -> None:
  """Send log records from every nutristream module to stderr at the given level."""
  logging.basicConfig(
      level=getattr(logging, log_level_name.upper(), logging.INFO),
      format="[%(asctime)s] %(levelname)s in %(name)s: %(message)s",
  )


def build_configuration(arguments: argparse.Namespace) -> AnalysisConfig:
  """Create an AnalysisConfig with any data paths given on the command line."""
  configuration = AnalysisConfig()

  if arguments.food_data:
    configuration.food_data_path = Path(arguments.food_data).resolve()
  if arguments.stream_data:
    configuration.stream_data_path = Path(arguments.stream_data).resolve()

  return configuration


def save_report(document: str, destination: Path) -> Path:
  """Write the report, creating missing parent folders. Returns the resolved path."""
  destination = Path(destination).resolve()
  destination.parent.mkdir(parents=True, exist_ok=True)
  destination.write_text(document, encoding="utf-8")
  return destination


def main(argv: Optional[List[str]] = None) -> int:
  """Build the report and return the process exit status."""
  arguments = parse_command_line_arguments(argv)
  configure_logging(arguments.log_level)

  logger = logging.getLogger("build_reports")
  logger.debug("Arguments: %s", vars(arguments))

  try:
    document = build_report_html(build_configuration(arguments))

    if arguments.dry_run:
      print(document)
      logger.info("Printed %d characters of HTML", len(document))
    else:
      written = save_report(document, Path(arguments.output_path))
      logger.info("Report saved to %s", written)
  except Exception as exception:
    logger.exception("Report build failed: %s", exception)
    return 1

  return 0


if __name__ == "__main__":
  sys.exit(main())
