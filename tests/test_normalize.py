from __future__ import annotations

import unittest

from li_scraper.normalize import canonical_post_from_apify_item


class TestNormalize(unittest.TestCase):
    def test_extracts_profile_post_fields(self) -> None:
        item = {
            "id": "p1",
            "content": "Here's why most founders fail.\n\nDM me for more.",
            "linkedinUrl": "https://www.linkedin.com/posts/p1",
            "postedAt": {"date": "2025-03-04T10:15:00.000Z"},
            "engagement": {"likes": 10, "comments": 2, "shares": 0},
            "postImages": [],
        }

        post = canonical_post_from_apify_item(item)

        self.assertEqual(post.external_id, "p1")
        self.assertEqual(post.url, "https://www.linkedin.com/posts/p1")
        self.assertEqual(post.content, item["content"])
        self.assertEqual(post.posted_at, "2025-03-04T10:15:00+00:00")
        self.assertEqual((post.likes, post.comments, post.reposts), (10, 2, 0))
        self.assertFalse(post.has_images)
        self.assertEqual(post.image_count, 0)

    def test_counts_images(self) -> None:
        post = canonical_post_from_apify_item({"postImages": [{"url": "a"}, {"url": "b"}]})
        self.assertTrue(post.has_images)
        self.assertEqual(post.image_count, 2)

    def test_empty_item_gets_defaults(self) -> None:
        post = canonical_post_from_apify_item({})

        self.assertEqual(post.external_id, "")
        self.assertEqual(post.url, "")
        self.assertEqual(post.content, "")
        self.assertIsNone(post.posted_at)
        self.assertEqual((post.likes, post.comments, post.reposts), (0, 0, 0))
        self.assertFalse(post.has_images)
        self.assertEqual(post.image_count, 0)

    def test_malformed_fields_degrade_instead_of_raising(self) -> None:
        items = [
            None,
            "not a mapping",
            ["also", "not"],
            {"engagement": "lots", "postImages": "one", "postedAt": "2025-01-01"},
            {"engagement": {"likes": -3, "comments": "12", "shares": 4.7}},
            {"engagement": {"likes": True, "comments": None, "shares": float("nan")}},
            {"postedAt": {"date": "yesterday"}},
            {"postedAt": {"timestamp": 1700000000}},
            {"id": 12345, "content": 42},
        ]

        for item in items:
            with self.subTest(item=item):
                post = canonical_post_from_apify_item(item)
                self.assertEqual(post.has_images, post.image_count > 0)
                self.assertGreaterEqual(post.likes, 0)
                self.assertGreaterEqual(post.comments, 0)
                self.assertGreaterEqual(post.reposts, 0)

        odd = canonical_post_from_apify_item({"engagement": {"likes": -3, "comments": "12", "shares": 4.7}})
        self.assertEqual((odd.likes, odd.comments, odd.reposts), (0, 12, 4))

        self.assertIsNone(canonical_post_from_apify_item({"postedAt": "2025-01-01"}).posted_at)
        self.assertIsNone(canonical_post_from_apify_item({"postedAt": {"date": "yesterday"}}).posted_at)

        numeric = canonical_post_from_apify_item({"id": 12345, "content": 42})
        self.assertEqual(numeric.external_id, "12345")
        self.assertEqual(numeric.content, "")

    def test_is_deterministic(self) -> None:
        item = {"id": "x", "content": "hello", "engagement": {"likes": 3}, "postImages": [{}]}
        self.assertEqual(canonical_post_from_apify_item(item), canonical_post_from_apify_item(item))

    def test_tolerates_url_and_text_variants(self) -> None:
        post = canonical_post_from_apify_item({"url": "https://example.com/p", "text": "body"})
        self.assertEqual(post.url, "https://example.com/p")
        self.assertEqual(post.content, "body")


if __name__ == "__main__":
    unittest.main()
