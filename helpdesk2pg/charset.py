"""
Character set guessing and best-effort repair of text payloads.

The guess is a tagged result: ``Unambiguous``, ``Ambiguous`` or
``Unrecognized``. ``repair_charset`` turns it into either a UTF-8 payload,
a verdict that the payload cannot travel as UTF-8 text, or an
``EncodingUnrecoverable`` error.
"""

from dataclasses import dataclass

from helpdesk2pg.errors import EncodingUnrecoverable


# Tried in this order; ascii wins whenever the payload is pure ASCII.
SUSPECTS = ("utf-8", "iso-8859-1", "ascii")

# Valid UTF-8 always decodes as Latin-1 too; this pair resolves to UTF-8.
UTF8_OR_LATIN1 = frozenset({"utf-8", "iso-8859-1"})


@dataclass(frozen=True)
class Unambiguous:
    encoding: str


@dataclass(frozen=True)
class Ambiguous:
    encodings: frozenset


@dataclass(frozen=True)
class Unrecognized:
    pass


@dataclass(frozen=True)
class RepairOutcome:
    valid: bool
    data: bytes


def _decodes(data: bytes, encoding: str) -> bool:
    try:
        data.decode(encoding)
    except UnicodeDecodeError:
        return False
    return True


def is_valid_utf8(data: bytes) -> bool:
    return _decodes(data, "utf-8")


def guess_encoding(data: bytes, suspects=SUSPECTS):
    matches = [enc for enc in suspects if _decodes(data, enc)]
    if "ascii" in matches:
        return Unambiguous("ascii")
    if len(matches) == 1:
        return Unambiguous(matches[0])
    if matches:
        return Ambiguous(frozenset(matches))
    return Unrecognized()


def repair_charset(data: bytes, suspects=SUSPECTS) -> RepairOutcome:
    """Strip trailing NUL padding and bring ``data`` to valid UTF-8 if possible.

    Raises EncodingUnrecoverable when the guess is ambiguous in a way that
    cannot be resolved safely, or when no suspect encoding fits at all.
    """
    stripped = bytes(data).rstrip(b"\x00")
    guess = guess_encoding(stripped, suspects)

    if isinstance(guess, Unambiguous):
        # ascii/utf-8 need nothing; a single 8-bit match is not UTF-8 text
        return RepairOutcome(guess.encoding in ("ascii", "utf-8"), stripped)

    if isinstance(guess, Ambiguous):
        if guess.encodings == UTF8_OR_LATIN1:
            repaired = stripped.decode("utf-8", errors="replace").encode("utf-8")
            return RepairOutcome(is_valid_utf8(repaired), repaired)
        raise EncodingUnrecoverable(
            f"multiple candidate charsets: {', '.join(sorted(guess.encodings))}"
        )

    raise EncodingUnrecoverable("no known character encoding recognized")
