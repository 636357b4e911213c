"""
Command-line entry point

Runs the analytics pipeline with the configured settings and prints the
report to stdout.
"""

import sys

import structlog

from retail_dw.config import get_settings
from retail_dw.config.logging import configure_logging
from retail_dw.exceptions import AnalyticsError
from retail_dw.pipeline import AnalyticsPipeline
from retail_dw.reporting.console import render_report

logger = structlog.get_logger(__name__)


def main() -> int:
    """Run the pipeline once; returns the process exit code."""
    settings = get_settings()
    configure_logging("DEBUG" if settings.debug else None)

    try:
        result = AnalyticsPipeline(settings).run()
    except AnalyticsError as e:
        logger.error("Analytics pipeline aborted", stage=e.stage, error=e.message)
        return 1

    print(render_report(result))
    if result.exported:
        print(f"\nExported {len(result.exported)} files to {settings.export.export_dir}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
