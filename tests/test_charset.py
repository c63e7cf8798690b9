import pytest

from helpdesk2pg.charset import (
    Ambiguous, Unambiguous, Unrecognized,
    guess_encoding, is_valid_utf8, repair_charset,
)
from helpdesk2pg.errors import EncodingUnrecoverable


def test_guess_pure_ascii_is_unambiguous_ascii():
    assert guess_encoding(b"plain old text\n") == Unambiguous("ascii")


def test_guess_utf8_text_is_ambiguous_with_latin1():
    guess = guess_encoding("Grüße aus Köln".encode("utf-8"))
    assert guess == Ambiguous(frozenset({"utf-8", "iso-8859-1"}))


def test_guess_invalid_utf8_is_latin1():
    assert guess_encoding(b"caf\xe9 \xff") == Unambiguous("iso-8859-1")


def test_guess_nothing_matches():
    assert guess_encoding(b"\xff\xfe", suspects=("utf-8", "ascii")) == Unrecognized()


def test_repair_strips_trailing_nul_padding():
    outcome = repair_charset(b"hello\x00\x00\x00")
    assert outcome.valid
    assert outcome.data == b"hello"


def test_repair_utf8_text_is_already_valid():
    data = "naïve café".encode("utf-8")
    outcome = repair_charset(data)
    assert outcome.valid
    assert outcome.data == data


def test_repair_latin1_only_payload_is_not_utf8_text():
    outcome = repair_charset(b"r\xe9sum\xe9 \xff")
    assert not outcome.valid
    assert outcome.data == b"r\xe9sum\xe9 \xff"


def test_repair_ambiguous_without_utf8_is_unrecoverable():
    with pytest.raises(EncodingUnrecoverable, match="multiple candidate charsets"):
        repair_charset(b"\xe9t\xe9", suspects=("utf-8", "iso-8859-1", "iso-8859-15", "ascii"))


def test_repair_unrecognized_is_unrecoverable():
    with pytest.raises(EncodingUnrecoverable, match="no known character encoding"):
        repair_charset(b"\xe9t\xe9", suspects=("utf-8", "ascii"))


def test_is_valid_utf8():
    assert is_valid_utf8("ü".encode("utf-8"))
    assert not is_valid_utf8(b"\xfc")
