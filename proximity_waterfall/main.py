#!/usr/bin/env python3
"""
Proximity Waterfall Monitor
Main entry point for the waterfall monitoring tool.
"""

import argparse
import sys
import traceback

from PyQt5.QtCore import QTimer
from PyQt5.QtWidgets import QApplication

from proximity_waterfall.config import Configuration
from proximity_waterfall.display import CLIDisplay
from proximity_waterfall.modes import WaterfallMode, RangeMode
from proximity_waterfall.session import WaterfallSession
from proximity_waterfall.viewer import WaterfallViewer


def parse_arguments(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description='Proximity Waterfall Monitor - scrolling strength and difference waterfall',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --mode strength --scans 200 --snapshot strength.png
  %(prog)s --mode difference --range fixed --delta 150
  %(prog)s --config custom.yaml --gui
        """
    )

    parser.add_argument(
        '--config', '-c',
        default='config.yaml',
        help='Configuration file path (default: config.yaml)'
    )

    parser.add_argument(
        '--mode', '-m',
        choices=[m.value for m in WaterfallMode],
        help='Override rendering mode from config'
    )

    parser.add_argument(
        '--range', '-r',
        dest='range_mode',
        choices=[m.value for m in RangeMode],
        help='Override range mode from config'
    )

    parser.add_argument(
        '--min',
        dest='strength_min',
        type=float,
        help='Override minimum strength bound (dB)'
    )

    parser.add_argument(
        '--max',
        dest='strength_max',
        type=float,
        help='Override maximum strength bound (dB)'
    )

    parser.add_argument(
        '--delta',
        type=float,
        help='Override difference range (percent of primary peak)'
    )

    parser.add_argument(
        '--scans', '-n',
        type=int,
        help='Stop after this many scans (0 = until interrupted)'
    )

    parser.add_argument(
        '--snapshot', '-o',
        help='Save the final waterfall image to this file'
    )

    parser.add_argument(
        '--gui',
        action='store_true',
        help='Show the waterfall in a window'
    )

    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose output'
    )

    parser.add_argument(
        '--no-color',
        action='store_true',
        help='Disable colored output'
    )

    return parser.parse_args(argv)


def apply_command_line_overrides(config, args):
    """Apply command line argument overrides to configuration.

    Args:
        config: Configuration object to modify
        args: Parsed command line arguments
    """
    if args.mode is not None:
        config.waterfall.mode = args.mode

    if args.range_mode is not None:
        config.waterfall.range_mode = args.range_mode

    if args.strength_min is not None:
        config.waterfall.strength_min = args.strength_min

    if args.strength_max is not None:
        config.waterfall.strength_max = args.strength_max

    if args.delta is not None:
        config.waterfall.delta_range = args.delta

    if args.scans is not None:
        config.session.max_scans = args.scans

    if args.snapshot:
        config.session.snapshot_file = args.snapshot

    if args.verbose:
        config.display.verbose = True

    if args.no_color:
        config.display.use_colors = False

    config.validate()


def create_display(config):
    """Create display object from configuration.

    Args:
        config: Configuration object

    Returns:
        CLIDisplay object
    """
    return CLIDisplay(use_colors=config.display.use_colors, verbose=config.display.verbose)


def run_console(session):
    """Run a session with console output and keyboard controls."""
    return session.run(enable_keyboard=True)


def run_gui(session):
    """Run a session with the waterfall shown in a window.

    The window closes when the session finishes; closing the window ends
    the session.
    """
    app = QApplication.instance() or QApplication(sys.argv)
    app.setApplicationName("Proximity Waterfall")

    viewer = WaterfallViewer(session.controller)
    viewer.show()

    try:
        if not session.start(enable_keyboard=False):
            return False

        timer = QTimer()
        timer.timeout.connect(lambda: app.quit() if session.is_done() else None)
        timer.start(100)

        app.exec_()
        return session.finish()
    finally:
        session.cleanup()


def main(argv=None):
    """Main function."""
    args = parse_arguments(argv)

    try:
        # Load configuration
        try:
            config = Configuration(args.config)
            apply_command_line_overrides(config, args)
        except FileNotFoundError:
            print(f"Error: Configuration file not found: {args.config}")
            print("Create a config.yaml file or specify a different config with --config")
            return 1
        except Exception as e:
            print(f"Error loading configuration: {e}")
            return 1

        display = create_display(config)

        if config.display.verbose:
            display.print_info(str(config))

        session = WaterfallSession(config, display)
        success = run_gui(session) if args.gui else run_console(session)

        return 0 if success else 1

    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 130
    except Exception as e:
        print(f"Unexpected error: {e}")
        if args.verbose:
            traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
