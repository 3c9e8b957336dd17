import io
import json
import logging
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path
from unittest.mock import patch

from mutagen.flac import FLAC

from lyricsync import cli
from lyricsync.config import Settings

from audio_fixtures import LYRICS, write_corrupt_m4a, write_flac, write_lrc, write_mp3


class TestCli(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)
        self.music = self.tmp / "music"
        self.music.mkdir()
        self.config = self.tmp / "config.yaml"
        self.config.write_text("logging:\n  warning_log: null\n", encoding="utf-8")
        root = logging.getLogger()
        self._saved = (root.level, list(root.handlers))

    def tearDown(self) -> None:
        root = logging.getLogger()
        for handler in root.handlers:
            if handler not in self._saved[1]:
                handler.close()
        root.handlers[:] = self._saved[1]
        root.setLevel(self._saved[0])
        self._tmp.cleanup()

    def invoke(self, *args: str) -> tuple[int, str, str]:
        out, err = io.StringIO(), io.StringIO()
        with redirect_stdout(out), redirect_stderr(err):
            code = cli.main(["--config", str(self.config), *args])
        return code, out.getvalue(), err.getvalue()

    def test_embeds_and_prints_summary(self) -> None:
        song = write_flac(self.music / "song.flac")
        write_lrc(song)
        write_mp3(self.music / "lonely.mp3")

        code, out, _err = self.invoke("-d", str(self.music))

        self.assertEqual(code, 0)
        self.assertEqual(FLAC(song)["LYRICS"], [LYRICS])
        self.assertIn("Summary:", out)
        self.assertIn("Total audio files: 2", out)
        self.assertIn("Embedded lyrics in 1 audio files", out)
        self.assertIn("Success rate: 50.00%", out)

    def test_failures_set_exit_code_and_are_listed(self) -> None:
        broken = write_corrupt_m4a(self.music / "broken.m4a")
        write_lrc(broken)

        code, out, _err = self.invoke("-d", str(self.music))

        self.assertEqual(code, 1)
        self.assertIn("Failed to embed LRC for the following files:", out)
        self.assertIn("[corrupt]", out)
        self.assertIn("Warnings/Errors summary:", out)

    def test_reduce_and_skip_flags(self) -> None:
        song = write_flac(self.music / "song.flac", lyrics="old")
        lrc = write_lrc(song)

        code, _out, _err = self.invoke("-d", str(self.music), "-s", "-r")
        self.assertEqual(code, 0)
        self.assertEqual(FLAC(song)["LYRICS"], ["old"])
        self.assertTrue(lrc.exists())

        code, _out, _err = self.invoke("-d", str(self.music), "-r")
        self.assertEqual(code, 0)
        self.assertEqual(FLAC(song)["LYRICS"], [LYRICS])
        self.assertFalse(lrc.exists())

    def test_recursive_flag(self) -> None:
        nested = self.music / "disc1"
        nested.mkdir()
        song = write_flac(nested / "song.flac")
        write_lrc(song)

        _code, out, _err = self.invoke("-d", str(self.music))
        self.assertIn("Total audio files: 0", out)

        _code, out, _err = self.invoke("-d", str(self.music), "-R")
        self.assertIn("Total audio files: 1", out)
        self.assertEqual(FLAC(song)["LYRICS"], [LYRICS])

    def test_dry_run_output_implies_dry_run(self) -> None:
        song = write_flac(self.music / "song.flac")
        write_lrc(song)
        before = song.read_bytes()
        plan = self.tmp / "plan.jsonl"

        code, out, _err = self.invoke("-d", str(self.music), "--dry-run-output", str(plan))

        self.assertEqual(code, 0)
        self.assertEqual(song.read_bytes(), before)
        self.assertIn("Would embed lyrics in 1 audio files", out)
        records = [json.loads(line) for line in plan.read_text(encoding="utf-8").splitlines()]
        self.assertEqual(len(records), 1)
        self.assertEqual(records[0]["status"], "embedded")
        self.assertTrue(records[0]["simulated"])

    def test_missing_directory_is_a_usage_error(self) -> None:
        code, out, err = self.invoke("-d", str(self.tmp / "nope"))
        self.assertEqual(code, cli.EXIT_USAGE)
        self.assertIn("not a directory", err)
        self.assertNotIn("Summary:", out)

    def test_invalid_config_is_a_usage_error(self) -> None:
        self.config.write_text("runner:\n  worker_concurrency: -1\n", encoding="utf-8")
        code, _out, err = self.invoke("-d", str(self.music))
        self.assertEqual(code, cli.EXIT_USAGE)
        self.assertIn("Invalid configuration", err)

    def test_directory_is_required(self) -> None:
        with redirect_stderr(io.StringIO()):
            with self.assertRaises(SystemExit) as ctx:
                cli.main([])
        self.assertEqual(ctx.exception.code, 2)

    def test_interrupt_reports_partial_summary(self) -> None:
        with patch("lyricsync.cli.EmbedRunner.run_sync", side_effect=KeyboardInterrupt):
            code, out, _err = self.invoke("-d", str(self.music))
        self.assertEqual(code, 130)
        self.assertIn("Interrupted", out)
        self.assertIn("Summary:", out)

    def test_warning_log_file(self) -> None:
        log_path = self.tmp / "warnings.log"
        self.config.write_text(f"logging:\n  warning_log: {log_path}\n", encoding="utf-8")
        broken = write_corrupt_m4a(self.music / "broken.m4a")
        write_lrc(broken)

        code, out, _err = self.invoke("-d", str(self.music))

        self.assertEqual(code, 1)
        self.assertIn(f"Full warning log: {log_path}", out)
        self.assertIn("broken.m4a", log_path.read_text(encoding="utf-8"))


class TestResolvePolicy(unittest.TestCase):
    def test_cli_flags_override_config(self) -> None:
        settings = Settings.model_validate(
            {"embed": {"skip_existing": True, "reduce_lrc": True, "dry_run": False}}
        )
        args = cli.build_parser().parse_args(["-d", "/music", "-n"])
        policy = cli.resolve_policy(args, settings)
        self.assertTrue(policy.skip_if_present)
        self.assertTrue(policy.delete_lrc_on_success)
        self.assertTrue(policy.dry_run)

    def test_defaults_come_from_config(self) -> None:
        args = cli.build_parser().parse_args(["-d", "/music"])
        policy = cli.resolve_policy(args, Settings())
        self.assertFalse(policy.skip_if_present)
        self.assertFalse(policy.delete_lrc_on_success)
        self.assertFalse(policy.dry_run)


class TestFormatters(unittest.TestCase):
    def test_short_path_formatter_strips_library_root(self) -> None:
        formatter = cli.ShortPathFormatter("%(message)s", [Path("/music/library")])
        record = logging.LogRecord(
            "lyricsync", logging.WARNING, __file__, 1, "Failed: /music/library/a/b.flac", None, None
        )
        self.assertEqual(formatter.format(record), "Failed: a/b.flac")

    def test_color_formatter_wraps_message(self) -> None:
        formatter = cli.ColorFormatter("%(message)s", [])
        record = logging.LogRecord("x", logging.WARNING, __file__, 1, "careful", None, None)
        self.assertEqual(
            formatter.format(record), f"{cli.LEVEL_COLORS[logging.WARNING]}careful{cli.C_RESET}"
        )

    def test_warning_buffer_collects_warnings_only(self) -> None:
        handler = cli.WarningBufferHandler()
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger = logging.getLogger("lyricsync.tests.buffer")
        logger.propagate = False
        logger.addHandler(handler)
        try:
            logger.warning("first")
            logger.info("ignored")
            logger.error("second")
        finally:
            logger.removeHandler(handler)
        self.assertEqual(handler.records, ["first", "second"])


if __name__ == "__main__":
    unittest.main()
