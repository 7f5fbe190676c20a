from __future__ import annotations

from hoststore._logfmt import summarize_for_log


def test_sensitive_keys_are_redacted() -> None:
    value = {"theme": "dark", "apiKey": "sk-123", "nested": {"Token": "abc", "ok": 1}}

    summary = summarize_for_log(value)

    assert summary == {"theme": "dark", "apiKey": "<redacted>", "nested": {"Token": "<redacted>", "ok": 1}}
    assert value["apiKey"] == "sk-123"


def test_long_strings_and_lists_are_truncated() -> None:
    summary = summarize_for_log({"body": "x" * 50, "items": list(range(8))}, max_string=10, max_items=5)

    assert summary["body"] == "x" * 10 + "…<50 chars>"
    assert summary["items"] == [0, 1, 2, 3, 4, "<3 more items>"]


def test_wide_mappings_are_truncated() -> None:
    summary = summarize_for_log({f"k{i}": i for i in range(4)}, max_items=2)

    assert summary == {"k0": 0, "k1": 1, "…": "<2 more keys>"}


def test_scalars_pass_through() -> None:
    assert summarize_for_log(None) is None
    assert summarize_for_log(3.5) == 3.5
    assert summarize_for_log(b"abc") == "<bytes:3b>"
