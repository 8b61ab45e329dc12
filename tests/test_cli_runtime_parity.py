from __future__ import annotations

import builtins
import contextlib
import importlib
import io
import json
import os
import tempfile
import time
import unittest
from pathlib import Path
from unittest.mock import patch


class CliRuntimeParityTests(unittest.TestCase):
    def test_import_cli_without_apscheduler_side_effect(self) -> None:
        original_import = builtins.__import__

        def guarded_import(name, globals=None, locals=None, fromlist=(), level=0):
            if name.startswith("apscheduler"):
                raise AssertionError("apscheduler should not be imported when importing cli module")
            return original_import(name, globals, locals, fromlist, level)

        with patch("builtins.__import__", side_effect=guarded_import):
            cli = importlib.import_module("profile_timer.workers.cli")
            importlib.reload(cli)

    def test_plan_prints_mutations_and_catch_up(self) -> None:
        cli = importlib.import_module("profile_timer.workers.cli")
        with tempfile.TemporaryDirectory() as td:
            p = Path(td) / "profiles.yaml"
            updated = int(time.time()) - 7200
            p.write_text(
                "items:\n"
                f"  - uid: a\n    updated: {updated}\n    option:\n      update_interval: 30\n"
                "  - uid: b\n    option:\n      update_interval: 0\n",
                encoding="utf-8",
            )
            buf = io.StringIO()
            with contextlib.redirect_stdout(buf):
                rc = cli.main(["plan", "--profiles", str(p)])
            self.assertEqual(rc, 0)
            out = json.loads(buf.getvalue())
            self.assertEqual(out["mutations"], {"a": {"op": "add", "task_id": 1, "interval": 30}})
            self.assertEqual(out["advance"], ["a"])

    def test_plan_reports_invalid_profiles(self) -> None:
        cli = importlib.import_module("profile_timer.workers.cli")
        with tempfile.TemporaryDirectory() as td:
            p = Path(td) / "profiles.yaml"
            p.write_text("items: 3\n", encoding="utf-8")
            buf = io.StringIO()
            with contextlib.redirect_stdout(buf):
                rc = cli.main(["plan", "--profiles", str(p)])
            self.assertEqual(rc, 10)
            self.assertEqual(json.loads(buf.getvalue())["error_code"], "PROFILES_INVALID")

    def test_reload_touches_signal_file(self) -> None:
        cli = importlib.import_module("profile_timer.workers.cli")
        with tempfile.TemporaryDirectory() as td:
            signal = Path(td) / "sub" / "reload.signal"
            with patch.dict(os.environ, {"PROFILE_TIMER_RELOAD_SIGNAL": str(signal)}):
                with contextlib.redirect_stdout(io.StringIO()):
                    rc = cli.main(["reload"])
            self.assertEqual(rc, 0)
            self.assertTrue(signal.exists())

    def test_unknown_command(self) -> None:
        cli = importlib.import_module("profile_timer.workers.cli")
        with contextlib.redirect_stderr(io.StringIO()):
            self.assertEqual(cli.main(["nope"]), 2)
            self.assertEqual(cli.main([]), 2)


if __name__ == "__main__":
    unittest.main()
