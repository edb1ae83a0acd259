"""Unit tests for argument redaction."""

from gateway.core.redaction import is_likely_secret, redact_object, redact_value


def test_secret_keys_replaced():
    redacted = redact_object({"apiToken": "abc", "client_secret": "s3cret", "title": "Call"})

    assert redacted == {"apiToken": "[REDACTED]", "client_secret": "[REDACTED]", "title": "Call"}


def test_bearer_value_keeps_head_and_tail():
    assert redact_value("note", "Bearer abcdefgh1234") == "Bear…1234"


def test_long_mixed_token_keeps_head_and_tail():
    assert redact_value("ref", "abcd1234efgh5678ijkl9") == "abcd…jkl9"


def test_long_plain_string_truncated():
    value = "a" * 150

    assert redact_value("description", value) == "a" * 60 + "…" + "a" * 20


def test_short_plain_values_untouched():
    assert redact_value("title", "Call back") == "Call back"
    assert redact_value("count", 3) == 3


def test_lists_and_nested_objects_redacted():
    redacted = redact_object({
        "tags": ["vip", "Bearer abcdefgh1234"],
        "contact": {"password": "hunter2", "firstName": "Ann"},
    })

    assert redacted["tags"] == ["vip", "Bear…1234"]
    assert redacted["contact"] == {"password": "[REDACTED]", "firstName": "Ann"}


def test_is_likely_secret():
    assert is_likely_secret("Bearer xyz")
    assert is_likely_secret("pk_live_1234567890abcdefgh")
    assert not is_likely_secret("abcdefghijklmnopqrstuvwxyz")
    assert not is_likely_secret(12345678901234567890)


def test_non_mapping_returned_unchanged():
    assert redact_object(["a"]) == ["a"]
