from datetime import date

from db.db import from_json, to_json


def test_to_json_handles_dates_and_none():
    assert to_json(None) is None
    assert to_json({"a": 1}) == '{"a": 1}'
    assert to_json({"d": date(2024, 5, 1)}) == '{"d": "2024-05-01"}'


def test_from_json_variants():
    assert from_json(None) is None
    assert from_json({"a": 1}) == {"a": 1}
    assert from_json(b'[1, 2]') == [1, 2]
    assert from_json('{"ok": true}') == {"ok": True}
    assert from_json("{not json") is None
