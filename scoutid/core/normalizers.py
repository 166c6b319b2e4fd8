"""Name token and personnummer normalization.

Name tokens feed the ``firstlast`` attribute and the local part of group
email aliases, so two spellings of the same name must collapse to one token:

    >>> first_last("Müller", "Øresund")
    'muller.oresund'
    >>> format_name_token("Jean-Pierre")
    'jean-pierre'

The personnummer helper turns the 10-digit form members type at login into
the 12-digit form the Scoutnet API expects.
"""
from __future__ import annotations
import re
import unicodedata
from datetime import date
from typing import Optional

# Letters that Unicode decomposition does not reduce to a plain ASCII base,
# plus ligatures that expand to more than one letter.
_DIACRITIC_TABLE = str.maketrans({
    "ß": "ss",
    "æ": "ae",
    "Æ": "AE",
    "œ": "oe",
    "Œ": "OE",
    "ð": "d",
    "Ð": "D",
    "þ": "th",
    "Þ": "TH",
    "ł": "l",
    "Ł": "L",
    "ø": "o",
    "Ø": "O",
    "đ": "d",
    "Đ": "D",
    "ħ": "h",
    "Ħ": "H",
    "ı": "i",
    "ĳ": "ij",
    "Ĳ": "IJ",
})

_WHITESPACE_RUN = re.compile(r"\s+")
_DISALLOWED = re.compile(r"[^0-9a-zA-Z.\-]")
_DOT_RUN = re.compile(r"\.{2,}")
_EDGE_DOTS = re.compile(r"^\.|\.$")

_MEMBER_NUMBER = re.compile(r"\d{7}")
_PERSONNUMMER_SEPARATORS = re.compile(r"[-+]")


def remove_diacritics(text: Optional[str]) -> Optional[str]:
    """Fold Latin-script diacritics and ligatures to ASCII letters."""
    if text is None:
        return None
    folded = text.translate(_DIACRITIC_TABLE)
    decomposed = unicodedata.normalize("NFKD", folded)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def format_name_token(name: Optional[str]) -> str:
    """Turn a raw name into a lowercase, email-safe token.

    Whitespace runs become ``.``, diacritics are folded, anything other than
    letters, digits, ``.`` and ``-`` is dropped. Blank input gives ``""``.
    """
    if name is None or not name.strip():
        return ""

    formatted = _WHITESPACE_RUN.sub(".", name.strip())
    formatted = formatted.replace(".-", "-").replace("-.", "-")
    formatted = remove_diacritics(formatted)
    formatted = _DISALLOWED.sub("", formatted)
    formatted = _DOT_RUN.sub(".", formatted)
    formatted = _EDGE_DOTS.sub("", formatted)
    return formatted.lower()


def first_last(first_name: Optional[str], last_name: Optional[str]) -> Optional[str]:
    """Build the ``first.last`` token, or None when either name is missing."""
    if first_name is None or last_name is None:
        return None
    return f"{format_name_token(first_name)}.{format_name_token(last_name)}"


def needs_personnummer_normalization(identifier: str) -> bool:
    """Email logins and 7-digit member numbers bypass normalization."""
    if "@" in identifier:
        return False
    if _MEMBER_NUMBER.fullmatch(identifier):
        return False
    return True


def normalize_personnummer(identifier: str, today: Optional[date] = None) -> str:
    """Normalize a Swedish personnummer to 12 digits (YYYYMMDDNNNN).

    A 10-digit input gets its century inferred from ``today``: the previous
    century is used when the embedded year lies in the future or would make
    the person 100 or older, otherwise the current one. Input that is not a
    recognizable personnummer is returned unchanged.
    """
    digits = _PERSONNUMMER_SEPARATORS.sub("", identifier.strip())

    if re.fullmatch(r"\d{10}", digits):
        today = today or date.today()
        year = int(digits[:2])
        current_century = today.year // 100
        current_year_in_century = today.year % 100

        if year > current_year_in_century or today.year - (current_century * 100 + year) >= 100:
            century = current_century - 1
        else:
            century = current_century
        return f"{century}{digits}"

    if re.fullmatch(r"\d{12}", digits):
        return digits

    return identifier
