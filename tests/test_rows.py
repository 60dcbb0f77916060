# Copyright (c) 2025 Alexandre Tavares
# Licensed under the Creative Commons Attribution-NonCommercial 4.0 International (CC BY-NC 4.0)
# See the LICENSE file in the project root for more information.
from datetime import timezone
from app.db.rows import DOCUMENT_JSON_KEYS, row_to_dict


class TestRowToDict:
    def test_content_stays_text_by_default(self):
        row = row_to_dict({"content": "123", "mentioned_user_ids": '["a"]'})
        assert row == {"content": "123", "mentioned_user_ids": ["a"]}

    def test_document_content_is_decoded(self):
        row = row_to_dict({"content": '{"type": "doc"}'}, DOCUMENT_JSON_KEYS)
        assert row["content"] == {"type": "doc"}

    def test_bools_and_timestamps(self):
        row = row_to_dict({"is_read": 0, "created_at": "2025-01-02 03:04:05.000000"})
        assert row["is_read"] is False
        assert row["created_at"].tzinfo == timezone.utc
