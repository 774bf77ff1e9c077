from __future__ import annotations

import json
import os
import subprocess
import sys
import tempfile
import unittest
from pathlib import Path
from typing import Any


class TestCLISmoke(unittest.TestCase):
    def _run(self, repo_root: Path, env: dict[str, str], *args: str) -> subprocess.CompletedProcess:
        return subprocess.run(
            [sys.executable, "-m", "li_scraper", *args],
            cwd=repo_root,
            env=env,
            capture_output=True,
            text=True,
        )

    def _json(self, proc: subprocess.CompletedProcess) -> Any:
        return json.loads(proc.stdout.strip().splitlines()[-1])

    def test_offline_scrape_flow(self) -> None:
        repo_root = Path(__file__).resolve().parents[1]

        with tempfile.TemporaryDirectory() as td:
            cfg_path = Path(td) / "config.yaml"
            cfg_path.write_text(
                "scrape:\n"
                "  poll_interval_seconds: 0\n"
                "storage:\n"
                f"  database_path: {json.dumps(str(Path(td) / 'state.sqlite'))}\n"
                "logging:\n"
                f"  run_log_path: {json.dumps(str(Path(td) / 'run.log'))}\n",
                encoding="utf-8",
            )

            env = dict(os.environ)
            env.pop("APIFY_TOKEN", None)

            existing_pp = env.get("PYTHONPATH", "")
            env["PYTHONPATH"] = (
                f"{repo_root}{os.pathsep}{existing_pp}" if existing_pp else str(repo_root)
            )

            common = ("--config", str(cfg_path))

            proc = self._run(
                repo_root, env, "add-profile", *common, "--url", "https://www.linkedin.com/in/someone"
            )
            self.assertEqual(proc.returncode, 0, msg=proc.stderr)
            added = self._json(proc)
            self.assertEqual(added["status"], "pending")
            profile_id = added["profileId"]

            proc = self._run(repo_root, env, "status", *common, "--profile-id", profile_id)
            self.assertEqual(proc.returncode, 0, msg=proc.stderr)
            self.assertEqual(self._json(proc), {"lastScraped": None, "status": "pending"})

            proc = self._run(
                repo_root, env, "scrape", *common, "--profile-id", profile_id, "--offline"
            )
            self.assertEqual(proc.returncode, 0, msg=proc.stderr)
            self.assertEqual(
                self._json(proc), {"postsScraped": 4, "postsStored": 4, "success": True}
            )

            proc = self._run(repo_root, env, "status", *common, "--profile-id", profile_id)
            status = self._json(proc)
            self.assertEqual(status["status"], "completed")
            self.assertIsNotNone(status["lastScraped"])

            proc = self._run(repo_root, env, "stats", *common, "--profile-id", profile_id)
            self.assertEqual(proc.returncode, 0, msg=proc.stderr)
            stats = self._json(proc)
            self.assertEqual(stats["totalPosts"], 4)
            self.assertEqual(stats["withImages"], 2)
            self.assertEqual(stats["withLists"], 1)

            out_path = Path(td) / "profile.xlsx"
            proc = self._run(
                repo_root, env, "export", *common, "--profile-id", profile_id, "--out", str(out_path)
            )
            self.assertEqual(proc.returncode, 0, msg=proc.stderr)
            self.assertIn("workbook=", proc.stdout)
            self.assertTrue(out_path.exists())

    def test_scrape_unknown_profile(self) -> None:
        repo_root = Path(__file__).resolve().parents[1]

        with tempfile.TemporaryDirectory() as td:
            cfg_path = Path(td) / "config.yaml"
            cfg_path.write_text(
                "logging:\n"
                f"  run_log_path: {json.dumps(str(Path(td) / 'run.log'))}\n",
                encoding="utf-8",
            )

            env = dict(os.environ)
            existing_pp = env.get("PYTHONPATH", "")
            env["PYTHONPATH"] = (
                f"{repo_root}{os.pathsep}{existing_pp}" if existing_pp else str(repo_root)
            )

            proc = self._run(
                repo_root,
                env,
                "scrape",
                "--config",
                str(cfg_path),
                "--db",
                str(Path(td) / "state.sqlite"),
                "--profile-id",
                "missing",
                "--offline",
            )

            self.assertEqual(proc.returncode, 3, msg=proc.stderr)
            self.assertEqual(self._json(proc), {"error": "Profile not found"})


if __name__ == "__main__":
    unittest.main()
