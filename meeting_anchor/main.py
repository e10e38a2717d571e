"""Main entry point for Meeting Anchor application.

This module provides the main entry point for the Meeting Anchor menu bar
application using the MVP (Model-View-Presenter) architecture pattern.
"""

import sys
from argparse import ArgumentParser, RawDescriptionHelpFormatter
from datetime import datetime

from PyQt6.QtWidgets import QApplication

from .models.event_source import EventKitEventSource, StaticEventSource, create_demo_events
from .models.preferences_model import JsonFileStore, MemoryStore
from .presenters.anchor_presenter import AnchorPresenter
from .utils.logging_config import setup_logging
from .utils.structured_logging import get_structured_logger


def create_argument_parser() -> ArgumentParser:
    """Create and configure the argument parser.

    Returns:
        ArgumentParser: Configured argument parser
    """
    parser = ArgumentParser(
        description="Meeting Anchor - Menu bar meeting reminders",
        formatter_class=RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                    # Run with default settings
  %(prog)s -v                 # Run with verbose logging
  %(prog)s --demo -vv         # Run with demo events and debug logging
""",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (use -v for info, -vv for debug, -vvv for trace)",
    )

    parser.add_argument("--log-file", type=str, help="Log to file (in addition to console)")

    parser.add_argument("--no-structured-logging", action="store_true", help="Disable structured logging features")

    parser.add_argument("--no-redaction", action="store_true", help="Disable sensitive data redaction in logs")

    parser.add_argument("--preferences-file", type=str, help="Preferences JSON file (default: OS config directory)")

    parser.add_argument(
        "--demo",
        action="store_true",
        help="Use generated demo events and in-memory preferences instead of the system calendar",
    )

    parser.add_argument("--performance-stats", action="store_true", help="Show performance statistics on exit")

    return parser


def main() -> None:
    """Main entry point for the Meeting Anchor application."""
    parser = create_argument_parser()
    args = parser.parse_args()

    # Setup enhanced logging
    setup_logging(
        verbosity=args.verbose,
        log_file=args.log_file,
        log_to_console=True,
        enable_structured_logging=not args.no_structured_logging,
        redact_sensitive_data=not args.no_redaction,
    )

    # Get structured logger for main
    logger = get_structured_logger(__name__)

    logger.info(
        "Meeting Anchor application starting",
        verbosity_level=args.verbose,
        structured_logging=not args.no_structured_logging,
        data_redaction=not args.no_redaction,
        log_file=args.log_file or "console_only",
        demo=args.demo,
    )

    try:
        # Create Qt application; closing the overlay must not end the process
        app = QApplication(sys.argv)
        app.setApplicationName("Meeting Anchor")
        app.setQuitOnLastWindowClosed(False)

        logger.info("Qt application created", qt_version=app.applicationVersion())

        if args.demo:
            event_source = StaticEventSource(create_demo_events(datetime.now()))
            store = JsonFileStore(args.preferences_file) if args.preferences_file else MemoryStore()
        else:
            event_source = EventKitEventSource()
            store = JsonFileStore(args.preferences_file)

        with logger.context(component="presenter_initialization"):
            presenter = AnchorPresenter(event_source, store)
            presenter.start()
            logger.info("Menu bar item initialized and displayed")

        # Start the event loop
        logger.info("Starting Qt event loop")
        exit_code = app.exec()
        presenter.cleanup()

        logger.info("Application shutting down", exit_code=exit_code)

        if args.performance_stats:
            _show_performance_statistics(logger, presenter)

        sys.exit(exit_code)

    except Exception as e:
        logger.exception("Application startup failed", error_type=type(e).__name__, error_message=str(e))
        raise


def _show_performance_statistics(logger, presenter: AnchorPresenter) -> None:
    """Display performance statistics.

    Args:
        logger: Logger instance for output
        presenter: Presenter whose scheduler timings are reported
    """
    stats = presenter.scheduler.structured_logger.get_performance_stats()
    if not stats:
        logger.info("No performance data collected")

    for operation, metrics in stats.items():
        logger.info(
            "Performance Statistics",
            operation=operation,
            count=metrics["count"],
            avg_duration=f"{metrics['avg_duration']:.3f}s",
            max_duration=f"{metrics['max_duration']:.3f}s",
        )
    logger.info("Application statistics", **presenter.get_stats())


if __name__ == "__main__":
    main()
