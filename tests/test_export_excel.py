from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from li_scraper.errors import ExportError
from li_scraper.export_excel import POST_COLUMNS, TOP_HOOK_COLUMNS, export_profile_workbook
from li_scraper.post import CanonicalPost, PostAnalysis
from li_scraper.storage import SQLiteProfileStore


class TestExportExcel(unittest.TestCase):
    def test_exports_required_sheets(self) -> None:
        try:
            from openpyxl import load_workbook  # type: ignore[import-not-found]
        except Exception as e:  # pragma: no cover
            raise AssertionError("openpyxl is required for this test") from e

        with tempfile.TemporaryDirectory() as td:
            out_path = Path(td) / "exports" / "profile.xlsx"

            with SQLiteProfileStore.open(Path(td) / "state.sqlite") as store:
                store.create_profile(
                    linkedin_url="https://www.linkedin.com/in/someone",
                    full_name="Some One",
                    profile_id="prof_1",
                )
                store.insert_post(
                    "prof_1",
                    CanonicalPost(
                        external_id="p1",
                        url="https://www.linkedin.com/posts/p1",
                        content="=HYPERLINK(\"x\")\nFollow me for more",
                        posted_at="2025-01-01T00:00:00+00:00",
                        likes=4,
                        comments=1,
                        has_images=True,
                        image_count=1,
                    ),
                    PostAnalysis(
                        hook="=HYPERLINK(\"x\")",
                        word_count=5,
                        topic_category="general",
                        call_to_action="Follow me for more",
                    ),
                )
                store.insert_post("prof_1", CanonicalPost(external_id="p2", content="unanalyzed"))

                result = export_profile_workbook(store, "prof_1", out_path)

            self.assertEqual(result, out_path)
            self.assertTrue(out_path.exists())

            wb = load_workbook(out_path)
            self.assertEqual(wb.sheetnames, ["posts", "topics", "top_hooks", "profile"])

            rows = list(wb["posts"].iter_rows(values_only=True))
            self.assertEqual(len(rows), 3)
            header = list(rows[0])
            self.assertEqual(header, list(POST_COLUMNS))

            first = dict(zip(header, rows[1]))
            self.assertEqual(first["linkedin_post_id"], "p1")
            self.assertEqual(first["likes"], 4)
            self.assertEqual(first["num_images"], 1)
            self.assertEqual(first["topic_category"], "general")
            self.assertEqual(first["cta"], "Follow me for more")
            # Formula-like text is written as literal text.
            self.assertEqual(first["hook"], "'=HYPERLINK(\"x\")")

            second = dict(zip(header, rows[2]))
            self.assertEqual(second["linkedin_post_id"], "p2")
            self.assertIsNone(second["topic_category"])

            topics = list(wb["topics"].iter_rows(values_only=True))
            self.assertEqual(topics, [("topic_category", "count"), ("general", 1), ("unknown", 1)])

            hooks = list(wb["top_hooks"].iter_rows(values_only=True))
            self.assertEqual(hooks[0], TOP_HOOK_COLUMNS)
            self.assertEqual(hooks[1:], [(1, "'=HYPERLINK(\"x\")", 4, 1, 9, "general")])

            profile = {k: v for k, v in wb["profile"].iter_rows(min_row=2, values_only=True)}
            self.assertEqual(profile["profile_id"], "prof_1")
            self.assertEqual(profile["full_name"], "Some One")
            self.assertEqual(profile["stats.total_posts"], 2)

    def test_missing_profile(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            with SQLiteProfileStore.open(":memory:") as store:
                with self.assertRaises(ExportError):
                    export_profile_workbook(store, "missing", Path(td) / "out.xlsx")


if __name__ == "__main__":
    unittest.main()
