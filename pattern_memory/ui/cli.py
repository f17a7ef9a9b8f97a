"""
Command Line Interface for Pattern Memory

This module implements the CLI for systematic pattern testing including:
- Interactive session (draw, judge, dismiss, export, reset)
- One-shot checks and recordings of single patterns
- Statistics, export and configuration commands
"""

import argparse
import re
import sys
from typing import Callable, List, Optional

from ..interfaces import (
    Classification, Outcome, PatternMemoryException,
    PatternEngineError, IKeyValueStore, TOTAL_PATTERNS
)
from ..engine.pattern_engine import Dot, GRID_SIZE
from ..models.session import SessionSnapshot
from ..services.scheduler import ManualScheduler
from ..services.session_controller import SessionController
from ..services.exporter import PatternExporter
from ..logging_system import setup_logging, ActivityLog
from ..config import ConfigManager, config_manager


__version__ = "1.0.0"


class CLIColors:
    """ANSI color codes for CLI output"""
    HEADER = '\033[95m'
    OKBLUE = '\033[94m'
    OKGREEN = '\033[92m'
    WARNING = '\033[93m'
    FAIL = '\033[91m'
    ENDC = '\033[0m'
    BOLD = '\033[1m'


def parse_dots(tokens: List[str]) -> List[int]:
    """
    Parse dot ids from command line tokens

    Accepts "0-1-2-5", "0,1,2,5", "0 1 2 5" and compact "0125".

    Raises:
        PatternEngineError: If a token is not a dot id 0-8
    """
    dots = []
    for part in re.split(r'[\s,\-]+', " ".join(tokens).strip()):
        if not part:
            continue
        if not part.isdecimal():
            raise PatternEngineError(f"Invalid dot: {part!r}")
        dots.extend(Dot(int(ch)).index for ch in part)
    return dots


def render_grid(sequence) -> List[str]:
    """Draw the 3x3 grid with the drawing order of each used dot"""
    order = {dot: position for position, dot in enumerate(sequence, 1)}
    lines = []
    for row in range(GRID_SIZE):
        cells = []
        for col in range(GRID_SIZE):
            position = order.get(row * GRID_SIZE + col)
            cells.append(f"[{position}]" if position else " . ")
        lines.append(" ".join(cells))
    return lines


class PatternMemoryCLI:
    """
    Command Line Interface for Pattern Memory

    Owns one session controller, created on first use from the
    configuration. Session output is rendered from controller snapshots.
    """

    def __init__(self,
                 config: Optional[ConfigManager] = None,
                 backend: Optional[IKeyValueStore] = None,
                 input_func: Callable[[str], str] = input):
        self.config = config or config_manager
        self.backend = backend
        self.input_func = input_func
        self.scheduler = ManualScheduler()
        self.controller: Optional[SessionController] = None
        self.activity_log: Optional[ActivityLog] = None

        self.parser = self._setup_argument_parser()

    def _setup_argument_parser(self) -> argparse.ArgumentParser:
        """Setup command line argument parser"""
        parser = argparse.ArgumentParser(
            prog='patternmemory',
            description='Pattern Memory - find a forgotten Android unlock pattern',
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog="""
Dots are numbered 0-8 from the top-left, row by row:

  0 1 2
  3 4 5
  6 7 8

Examples:
  patternmemory interactive              # Draw and judge patterns one by one
  patternmemory check 0-1-2-5-8          # Was this pattern already rejected?
  patternmemory record 0-2-8-6 --invalid # Remember a wrong pattern
  patternmemory stats                    # Tested / invalid / remaining
  patternmemory export --output out.json # Export the rejected patterns
  patternmemory reset --yes              # Forget everything
            """
        )

        # Global options
        parser.add_argument('--version', action='version', version=f'Pattern Memory {__version__}')
        parser.add_argument('--verbose', '-v', action='store_true', help='Enable verbose output')
        parser.add_argument('--config', help='Configuration file path')

        subparsers = parser.add_subparsers(dest='command', help='Available commands')

        subparsers.add_parser('interactive', help='Start an interactive test session')

        check_parser = subparsers.add_parser('check', help='Classify a pattern against the history')
        check_parser.add_argument('pattern', nargs='+', help='Dot sequence, e.g. 0-1-2-5-8')

        record_parser = subparsers.add_parser('record', help='Record the result of testing a pattern')
        record_parser.add_argument('pattern', nargs='+', help='Dot sequence, e.g. 0-1-2-5-8')
        verdict = record_parser.add_mutually_exclusive_group(required=True)
        verdict.add_argument('--invalid', action='store_true', help='The pattern did not unlock the device')
        verdict.add_argument('--valid', action='store_true', help='The pattern unlocked the device')

        subparsers.add_parser('stats', help='Show session statistics')

        export_parser = subparsers.add_parser('export', help='Export rejected patterns as JSON')
        export_parser.add_argument('--output', help='Output file path')

        reset_parser = subparsers.add_parser('reset', help='Delete all rejected patterns')
        reset_parser.add_argument('--yes', action='store_true', help='Do not ask for confirmation')

        subparsers.add_parser('gui', help='Start the graphical drawing surface')

        config_parser = subparsers.add_parser('config', help='Configuration management')
        config_subparsers = config_parser.add_subparsers(dest='config_command')
        config_subparsers.add_parser('show', help='Show current configuration')
        set_parser = config_subparsers.add_parser('set', help='Set configuration value')
        set_parser.add_argument('key', help='Setting as category.name, e.g. session.dismiss_delay')
        set_parser.add_argument('value', help='New value')

        return parser

    def run(self, args: List[str] = None) -> int:
        """
        Run CLI with provided arguments

        Args:
            args: Command line arguments (defaults to sys.argv)

        Returns:
            int: Exit code (0 for success, non-zero for error)
        """
        try:
            parsed_args = self.parser.parse_args(args)

            if parsed_args.config:
                self.config = ConfigManager(parsed_args.config)

            if not parsed_args.command:
                self.parser.print_help()
                return 0

            self._setup_logging(parsed_args.verbose)

            handlers = {
                'interactive': self._run_interactive_mode,
                'check': self._handle_check_command,
                'record': self._handle_record_command,
                'stats': self._handle_stats_command,
                'export': self._handle_export_command,
                'reset': self._handle_reset_command,
                'gui': self._handle_gui_command,
                'config': self._handle_config_command,
            }
            return handlers[parsed_args.command](parsed_args)

        except KeyboardInterrupt:
            self._print_warning("\nOperation cancelled by user")
            return 130
        except PatternMemoryException as e:
            self._print_error(e.message)
            return 1

    def _setup_logging(self, verbose: bool):
        settings = self.config.logging_settings
        setup_logging(level="DEBUG" if verbose else settings.level,
                      log_directory=settings.log_directory,
                      console=verbose)

    def get_controller(self) -> SessionController:
        """Create the session on first use"""
        if self.controller is None:
            self.controller = SessionController.from_config(
                self.config, scheduler=self.scheduler, backend=self.backend)
            self.controller.subscribe(self._render_snapshot)

            settings = self.config.logging_settings
            if settings.activity_log:
                self.activity_log = ActivityLog(settings.log_directory,
                                                encrypt_logs=settings.encrypt_activity_log)
                self.activity_log.attach(self.controller)
        return self.controller

    # Interactive mode

    def _run_interactive_mode(self, args=None) -> int:
        """Run interactive mode"""
        self._print_header("Pattern Memory - Interactive Mode")
        controller = self.get_controller()
        self._print_stats(controller)
        self._print_help()

        while True:
            try:
                line = self.input_func(f"{CLIColors.OKBLUE}pattern> {CLIColors.ENDC}").strip()
            except EOFError:
                break
            except KeyboardInterrupt:
                self._print_warning("\nUse 'quit' to exit")
                continue

            if not line:
                continue
            command, _, rest = line.partition(' ')
            command = command.lower()

            if command in ('q', 'quit', 'exit'):
                break

            try:
                self._dispatch_interactive(command, rest.split())
            except PatternMemoryException as e:
                self._print_error(e.message)

        self._print_success("Goodbye!")
        return 0

    def _dispatch_interactive(self, command: str, arguments: List[str]):
        controller = self.get_controller()

        if command in ('draw', 'd'):
            if not arguments:
                self._print_warning("Usage: draw 0 1 2 5 8")
                return
            controller.draw(parse_dots(arguments))
        elif command in ('no', 'n'):
            if not controller.mark_invalid():
                self._print_warning("No pattern is waiting for a judgment")
        elif command in ('yes', 'y'):
            if not controller.mark_valid():
                self._print_warning("No pattern is waiting for a judgment")
        elif command == 'dismiss':
            controller.dismiss()
        elif command == 'stats':
            self._print_stats(controller)
        elif command == 'export':
            self._export(controller, arguments[0] if arguments else None)
        elif command == 'reset':
            self._confirm_and_reset(controller, assume_yes=False)
        elif command in ('help', '?'):
            self._print_help()
        else:
            self._print_warning(f"Unknown command: {command}")
            return

        # Results stay visible until the next prompt, then auto-dismiss
        self.scheduler.run_all()

    def _print_help(self):
        print("Commands: draw <dots> | yes | no | dismiss | stats | export [file] | reset | quit")

    def _render_snapshot(self, snapshot: SessionSnapshot):
        """Print the session state after the transitions a user cares about"""
        event = snapshot.event

        if event == Classification.TOO_SHORT.value:
            self._print_warning("Connect at least 4 dots. Pattern discarded.")
        elif event == Classification.DUPLICATE.value:
            self._print_grid(snapshot.sequence, CLIColors.WARNING)
            self._print_warning("Already tested: you marked this pattern as incorrect before")
        elif event == Classification.PENDING.value:
            self._print_grid(snapshot.sequence, CLIColors.BOLD)
            print("Is this your correct pattern? (yes / no, or draw again)")
        elif event == Outcome.INVALID.value:
            print(f"{CLIColors.FAIL}Pattern marked invalid. It won't be suggested again.{CLIColors.ENDC}")
            self._print_snapshot_stats(snapshot)
        elif event == Outcome.VALID.value:
            self._print_success("Pattern found! This is your correct pattern.")
        elif event == "reset":
            self._print_success("All saved patterns deleted")

    def _print_grid(self, sequence, color: str):
        print(f"{color}{'-'.join(map(str, sequence))}{CLIColors.ENDC}")
        for line in render_grid(sequence):
            print(f"  {color}{line}{CLIColors.ENDC}")

    # Command handlers

    def _handle_check_command(self, args) -> int:
        controller = self.get_controller()
        sequence = controller.engine.build(parse_dots(args.pattern))
        classification = controller.engine.classify(sequence, controller.store)
        key = controller.engine.encode(sequence)

        if classification == Classification.TOO_SHORT:
            self._print_warning(f"{key}: too short, Android needs at least 4 dots")
        elif classification == Classification.DUPLICATE:
            self._print_warning(f"{key}: already marked invalid")
        else:
            self._print_info(f"{key}: not tested yet")
        return 0

    def _handle_record_command(self, args) -> int:
        controller = self.get_controller()
        classification = controller.draw(parse_dots(args.pattern))

        if classification == Classification.TOO_SHORT:
            return 1
        if classification == Classification.DUPLICATE:
            return 0

        if args.invalid:
            controller.mark_invalid()
        else:
            controller.mark_valid()
        return 0

    def _handle_stats_command(self, args) -> int:
        self._print_stats(self.get_controller())
        return 0

    def _handle_export_command(self, args) -> int:
        return 0 if self._export(self.get_controller(), args.output) else 1

    def _handle_reset_command(self, args) -> int:
        controller = self.get_controller()
        self._confirm_and_reset(controller, assume_yes=args.yes)
        return 0

    def _handle_gui_command(self, args) -> int:
        try:
            from .gui import main as gui_main
        except ImportError as e:
            self._print_error(f"GUI not available, PyQt5 is required: {e}")
            return 1
        return gui_main(self.config)

    def _handle_config_command(self, args) -> int:
        if args.config_command == 'show':
            self._show_configuration()
            return 0
        elif args.config_command == 'set':
            category, _, setting = args.key.partition('.')
            if self.config.update_setting(category, setting, args.value):
                self._print_success(f"Updated {args.key} to {args.value}")
                return 0
            self._print_error(f"Failed to save {args.key}")
            return 1
        else:
            self._print_error("Unknown config command")
            return 1

    # Shared helpers

    def _export(self, controller: SessionController, output: Optional[str]) -> bool:
        if not controller.has_history:
            self._print_warning("Nothing to export yet")
            return False

        exporter = PatternExporter(self.config.storage_settings.export_directory)
        path = exporter.export(controller, output)
        self._print_success(f"Exported {controller.rejected_count} patterns to: {path.absolute()}")
        return True

    def _confirm_and_reset(self, controller: SessionController, assume_yes: bool):
        confirmed = assume_yes
        if not confirmed:
            answer = self.input_func(
                f"{CLIColors.WARNING}Delete all saved patterns? This cannot be undone. (yes/no): {CLIColors.ENDC}")
            confirmed = answer.strip().lower() in ('yes', 'y')

        if not controller.reset(confirmed=confirmed):
            self._print_info("Reset cancelled")

    def _print_stats(self, controller: SessionController):
        self._print_snapshot_stats(controller.snapshot())

    def _print_snapshot_stats(self, snapshot: SessionSnapshot):
        print(f"Tested: {snapshot.tested_count}  "
              f"Invalid: {snapshot.invalid_count}  "
              f"Remaining: {snapshot.remaining:,} of {TOTAL_PATTERNS:,}")

    def _show_configuration(self):
        for category, values in self.config.to_dict().items():
            print(f"\n{CLIColors.OKBLUE}{category}:{CLIColors.ENDC}")
            for name, value in values.items():
                print(f"  {name}: {value}")

    # Utility methods for colored output
    def _print_header(self, text: str):
        print(f"\n{CLIColors.HEADER}=== {text} ==={CLIColors.ENDC}")

    def _print_success(self, text: str):
        print(f"{CLIColors.OKGREEN}[SUCCESS] {text}{CLIColors.ENDC}")

    def _print_error(self, text: str):
        print(f"{CLIColors.FAIL}[ERROR] {text}{CLIColors.ENDC}")

    def _print_warning(self, text: str):
        print(f"{CLIColors.WARNING}[WARNING] {text}{CLIColors.ENDC}")

    def _print_info(self, text: str):
        print(f"{CLIColors.OKBLUE}[INFO] {text}{CLIColors.ENDC}")


def main():
    """Main entry point for CLI"""
    cli = PatternMemoryCLI()
    return cli.run()


if __name__ == '__main__':
    sys.exit(main())
