"""
Unit tests for CLI interface functionality
"""

import io
import json
import logging
import unittest
import tempfile
import shutil
from pathlib import Path
from unittest.mock import Mock, patch

from pattern_memory.ui.cli import PatternMemoryCLI, CLIColors, parse_dots, render_grid
from pattern_memory.services.pattern_store import InMemoryStore
from pattern_memory.config import ConfigManager
from pattern_memory.interfaces import (
    SessionState, Outcome, PatternEngineError, TOTAL_PATTERNS
)
from pattern_memory.logging_system import ROOT_LOGGER


class TestParseDots(unittest.TestCase):
    """Test parsing of dot sequences from the command line"""

    def test_separators(self):
        self.assertEqual(parse_dots(["0-1-2-5"]), [0, 1, 2, 5])
        self.assertEqual(parse_dots(["0,1,2,5"]), [0, 1, 2, 5])
        self.assertEqual(parse_dots(["0", "1", "2", "5"]), [0, 1, 2, 5])

    def test_compact_form(self):
        self.assertEqual(parse_dots(["0125"]), [0, 1, 2, 5])

    def test_empty(self):
        self.assertEqual(parse_dots([]), [])

    def test_invalid_tokens(self):
        with self.assertRaises(PatternEngineError):
            parse_dots(["0-a-2"])
        with self.assertRaises(PatternEngineError):
            parse_dots(["0129"])


class TestRenderGrid(unittest.TestCase):
    """Test the text rendering of a pattern"""

    def test_drawing_order(self):
        self.assertEqual(render_grid([0, 1, 2, 5]), [
            "[1] [2] [3]",
            " .   .  [4]",
            " .   .   . ",
        ])

    def test_empty_grid(self):
        self.assertEqual(render_grid(()), [" .   .   . "] * 3)


class TestPatternMemoryCLI(unittest.TestCase):
    """Test CLI commands"""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.config = ConfigManager(str(Path(self.temp_dir) / "config.json"))
        self.config.storage_settings.data_directory = self.temp_dir
        self.config.storage_settings.export_directory = self.temp_dir
        self.config.logging_settings.log_directory = str(Path(self.temp_dir) / "logs")
        self.backend = InMemoryStore()
        self.inputs = []

        self.cli = self.make_cli()

    def tearDown(self):
        logger = logging.getLogger(ROOT_LOGGER)
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def make_cli(self):
        return PatternMemoryCLI(config=self.config,
                                backend=self.backend,
                                input_func=self.fake_input)

    def fake_input(self, prompt):
        if not self.inputs:
            raise EOFError
        return self.inputs.pop(0)

    def run_cli(self, args, cli=None):
        with patch('sys.stdout', new_callable=io.StringIO) as stdout:
            code = (cli or self.cli).run(args)
        return code, stdout.getvalue()

    def stored_keys(self):
        raw = self.backend.get("invalidPatterns")
        return json.loads(raw) if raw else []

    def test_no_command_prints_help(self):
        code, output = self.run_cli([])
        self.assertEqual(code, 0)
        self.assertIn("usage:", output)

    def test_record_invalid(self):
        code, output = self.run_cli(["record", "0-1-2-5-8", "--invalid"])

        self.assertEqual(code, 0)
        self.assertEqual(self.stored_keys(), ["0-1-2-5-8"])
        self.assertIn("marked invalid", output)
        self.assertIn(f"Remaining: {TOTAL_PATTERNS - 1:,}", output)

    def test_record_fills_skipped_dots(self):
        self.run_cli(["record", "0", "2", "8", "--invalid"])
        self.assertEqual(self.stored_keys(), ["0-1-2-5-8"])

    def test_record_valid(self):
        code, output = self.run_cli(["record", "3-4-5-8", "--valid"])

        self.assertEqual(code, 0)
        self.assertEqual(self.stored_keys(), [])
        self.assertIn("Pattern found", output)

    def test_record_too_short(self):
        code, output = self.run_cli(["record", "0-1-4", "--invalid"])

        self.assertEqual(code, 1)
        self.assertIn("at least 4 dots", output)
        self.assertEqual(self.stored_keys(), [])

    def test_record_duplicate(self):
        self.backend.set("invalidPatterns", json.dumps(["0-1-2-5"]))
        code, output = self.run_cli(["record", "0-1-2-5", "--invalid"])

        self.assertEqual(code, 0)
        self.assertIn("Already tested", output)
        self.assertEqual(self.stored_keys(), ["0-1-2-5"])

    def test_record_requires_verdict(self):
        with patch('sys.stderr', new_callable=io.StringIO):
            with self.assertRaises(SystemExit):
                self.cli.run(["record", "0-1-2-5"])

    def test_record_invalid_dot(self):
        code, output = self.run_cli(["record", "0-1-9-5", "--invalid"])

        self.assertEqual(code, 1)
        self.assertIn("[ERROR]", output)

    def test_check(self):
        self.backend.set("invalidPatterns", json.dumps(["0-1-2-5"]))

        _, output = self.run_cli(["check", "0-1-2-5"])
        self.assertIn("already marked invalid", output)

        _, output = self.run_cli(["check", "0-1-2-4"], cli=self.make_cli())
        self.assertIn("not tested yet", output)

        _, output = self.run_cli(["check", "0-1"], cli=self.make_cli())
        self.assertIn("too short", output)

    def test_check_does_not_record(self):
        self.run_cli(["check", "0-1-2-5"])
        self.assertEqual(self.stored_keys(), [])

    def test_stats(self):
        self.backend.set("invalidPatterns", json.dumps(["0-1-2-5", "3-4-5-8"]))
        code, output = self.run_cli(["stats"])

        self.assertEqual(code, 0)
        self.assertIn("Tested: 2", output)
        self.assertIn("Invalid: 2", output)
        self.assertIn(f"Remaining: {TOTAL_PATTERNS - 2:,}", output)

    def test_export(self):
        self.backend.set("invalidPatterns", json.dumps(["0-1-2-5"]))
        target = Path(self.temp_dir) / "export.json"

        code, _ = self.run_cli(["export", "--output", str(target)])

        self.assertEqual(code, 0)
        with open(target) as f:
            self.assertEqual(json.load(f)["invalidPatterns"], ["0-1-2-5"])

    def test_export_without_history(self):
        code, output = self.run_cli(["export"])

        self.assertEqual(code, 1)
        self.assertIn("Nothing to export", output)

    def test_reset_with_yes(self):
        self.backend.set("invalidPatterns", json.dumps(["0-1-2-5"]))
        code, output = self.run_cli(["reset", "--yes"])

        self.assertEqual(code, 0)
        self.assertIsNone(self.backend.get("invalidPatterns"))
        self.assertIn("All saved patterns deleted", output)

    def test_reset_asks_for_confirmation(self):
        self.backend.set("invalidPatterns", json.dumps(["0-1-2-5"]))
        self.inputs = ["no"]

        code, output = self.run_cli(["reset"])

        self.assertEqual(code, 0)
        self.assertIn("Reset cancelled", output)
        self.assertEqual(self.stored_keys(), ["0-1-2-5"])

    def test_reset_confirmed_interactively(self):
        self.backend.set("invalidPatterns", json.dumps(["0-1-2-5"]))
        self.inputs = ["y"]

        self.run_cli(["reset"])
        self.assertEqual(self.stored_keys(), [])

    def test_config_show(self):
        code, output = self.run_cli(["config", "show"])

        self.assertEqual(code, 0)
        self.assertIn("dismiss_delay: 1.5", output)

    def test_config_set(self):
        code, _ = self.run_cli(["config", "set", "session.dismiss_delay", "2"])

        self.assertEqual(code, 0)
        self.assertEqual(self.config.session_settings.dismiss_delay, 2.0)
        self.assertEqual(ConfigManager(str(self.config.config_path)).session_settings.dismiss_delay, 2.0)

    def test_config_set_unknown(self):
        code, output = self.run_cli(["config", "set", "session.nothing", "2"])

        self.assertEqual(code, 1)
        self.assertIn("Unknown setting", output)

    def test_config_path_option(self):
        other_path = Path(self.temp_dir) / "other.json"
        with open(other_path, 'w') as f:
            json.dump({"session": {"dismiss_delay": 4.0},
                       "logging": {"log_directory": str(Path(self.temp_dir) / "logs")}}, f)

        _, output = self.run_cli(["--config", str(other_path), "config", "show"])
        self.assertIn("dismiss_delay: 4.0", output)

    def test_gui_unavailable(self):
        with patch.dict('sys.modules', {'pattern_memory.ui.gui': None}):
            code, output = self.run_cli(["gui"])

        self.assertEqual(code, 1)
        self.assertIn("GUI not available", output)

    def test_keyboard_interrupt(self):
        with patch.object(self.cli, '_handle_stats_command', side_effect=KeyboardInterrupt):
            code, output = self.run_cli(["stats"])

        self.assertEqual(code, 130)
        self.assertIn("cancelled", output)

    def test_activity_log_written(self):
        self.run_cli(["record", "0-1-2-5", "--invalid"])

        entries = self.cli.activity_log.read_entries()
        self.assertEqual([e.event for e in entries], ["invalid"])

    def test_activity_log_disabled(self):
        self.config.logging_settings.activity_log = False
        self.run_cli(["stats"])
        self.assertIsNone(self.cli.activity_log)


class TestInteractiveMode(unittest.TestCase):
    """Test the interactive session loop"""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.config = ConfigManager(str(Path(self.temp_dir) / "config.json"))
        self.config.storage_settings.export_directory = self.temp_dir
        self.config.logging_settings.log_directory = str(Path(self.temp_dir) / "logs")
        self.config.logging_settings.activity_log = False
        self.backend = InMemoryStore()

    def tearDown(self):
        logger = logging.getLogger(ROOT_LOGGER)
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def run_session(self, *lines):
        cli = PatternMemoryCLI(config=self.config,
                               backend=self.backend,
                               input_func=Mock(side_effect=list(lines) + [EOFError()]))
        with patch('sys.stdout', new_callable=io.StringIO) as stdout:
            code = cli.run(["interactive"])
        return cli, code, stdout.getvalue()

    def test_draw_and_reject(self):
        cli, code, output = self.run_session("draw 0 1 2 5 8", "no")

        self.assertEqual(code, 0)
        self.assertIn("Is this your correct pattern?", output)
        self.assertEqual(json.loads(self.backend.get("invalidPatterns")), ["0-1-2-5-8"])
        self.assertEqual(cli.controller.statistics.tested_count, 1)
        # The invalid result auto-dismisses before the next prompt
        self.assertEqual(cli.controller.state, SessionState.IDLE)
        self.assertIn("Goodbye!", output)

    def test_duplicate_is_reported(self):
        _, _, output = self.run_session("draw 0-1-2-5", "n", "d 0125")
        self.assertIn("Already tested", output)

    def test_valid_result_stays(self):
        cli, _, output = self.run_session("draw 3 4 5 8", "yes")

        self.assertIn("Pattern found", output)
        self.assertEqual(cli.controller.outcome, Outcome.VALID)
        self.assertEqual(cli.controller.state, SessionState.RESOLVED)

    def test_dismiss(self):
        cli, _, _ = self.run_session("draw 3 4 5 8", "yes", "dismiss")
        self.assertEqual(cli.controller.state, SessionState.IDLE)

    def test_judgment_without_pattern(self):
        _, _, output = self.run_session("no")
        self.assertIn("No pattern is waiting for a judgment", output)

    def test_quit(self):
        cli, code, output = self.run_session("quit", "draw 0 1 2 5")

        self.assertEqual(code, 0)
        self.assertEqual(cli.controller.state, SessionState.IDLE)
        self.assertEqual(cli.controller.sequence, ())

    def test_unknown_command(self):
        _, _, output = self.run_session("fly")
        self.assertIn("Unknown command: fly", output)

    def test_bad_dots_do_not_end_session(self):
        cli, code, output = self.run_session("draw 0 x 2", "draw 0 1 2 5", "no")

        self.assertEqual(code, 0)
        self.assertIn("[ERROR]", output)
        self.assertEqual(cli.controller.rejected_count, 1)

    def test_interactive_reset(self):
        self.backend.set("invalidPatterns", json.dumps(["0-1-2-5"]))
        cli, _, output = self.run_session("reset", "yes")

        self.assertEqual(cli.controller.rejected_count, 0)
        self.assertIn("All saved patterns deleted", output)

    def test_interactive_export(self):
        target = Path(self.temp_dir) / "session.json"
        self.run_session("draw 0 1 2 5", "no", f"export {target}")

        with open(target) as f:
            data = json.load(f)
        self.assertEqual(data["stats"], {"tested": 1, "invalid": 1})

    def test_colors_reset_after_prompt(self):
        cli = PatternMemoryCLI(config=self.config, backend=self.backend)
        prompt = Mock(side_effect=EOFError())
        cli.input_func = prompt

        with patch('sys.stdout', new_callable=io.StringIO):
            cli.run(["interactive"])
        self.assertTrue(prompt.call_args[0][0].endswith(CLIColors.ENDC))


if __name__ == '__main__':
    unittest.main()
