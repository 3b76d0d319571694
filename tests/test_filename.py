"""Tests for file name sanitizing and header encoding."""

from tubezip.core.orchestrator import NameAllocator
from tubezip.utils.filename import (
    content_disposition,
    encode_header_value,
    sanitize,
    split_extension,
)


def test_sanitize_replaces_hostile_characters():
    assert sanitize('a/b:c*?"<>|') == "a_b_c______"
    assert sanitize("back\\slash") == "back_slash"
    assert sanitize("tab\x00null\x7fdel") == "tab_null_del"


def test_sanitize_collapses_whitespace():
    assert sanitize("  many   spaces  here ") == "many spaces here"


def test_sanitize_treats_control_whitespace_as_hostile():
    assert sanitize("a\tb\nc") == "a_b_c"


def test_sanitize_falls_back_for_empty_names():
    assert sanitize("") == "download"
    assert sanitize(None) == "download"
    assert sanitize("    ") == "download"


def test_sanitize_truncates_to_140_characters():
    assert len(sanitize("x" * 200)) == 140
    # Truncation must not leave trailing whitespace behind
    assert sanitize("a" * 139 + " bcd") == "a" * 139


def test_sanitize_keeps_unicode():
    assert sanitize("Café – Ünïcode 日本") == "Café – Ünïcode 日本"


def test_encode_header_value_escapes_rfc5987_specials():
    assert encode_header_value("it's (a)*") == "it%27s%20%28a%29%2A"
    assert encode_header_value("Café.mp4") == "Caf%C3%A9.mp4"
    assert encode_header_value("a!b") == "a!b"


def test_content_disposition_has_ascii_fallback_and_utf8_name():
    value = content_disposition("Café.mp4")
    assert value == (
        "attachment; filename=\"Caf_.mp4\"; filename*=UTF-8''Caf%C3%A9.mp4"
    )


def test_content_disposition_plain_name():
    assert content_disposition("downloads.zip") == (
        "attachment; filename=\"downloads.zip\"; filename*=UTF-8''downloads.zip"
    )


def test_split_extension():
    assert split_extension("Song.mp4") == ("Song", ".mp4")
    assert split_extension("a.b.c") == ("a.b", ".c")
    assert split_extension("noext") == ("noext", "")
    assert split_extension(".hidden") == (".hidden", "")


def test_name_allocator_adds_counters():
    names = NameAllocator()
    assert names.allocate("Song.mp4") == "Song.mp4"
    assert names.allocate("Song.mp4") == "Song (1).mp4"
    assert names.allocate("Song.mp4") == "Song (2).mp4"
    assert names.allocate("Other.mp4") == "Other.mp4"


def test_name_allocator_skips_names_already_taken():
    names = NameAllocator()
    assert names.allocate("Song (1).mp4") == "Song (1).mp4"
    assert names.allocate("Song.mp4") == "Song.mp4"
    assert names.allocate("Song.mp4") == "Song (2).mp4"


def test_name_allocator_without_extension():
    names = NameAllocator()
    names.allocate("README")
    assert names.allocate("README") == "README (1)"
