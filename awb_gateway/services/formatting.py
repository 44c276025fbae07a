"""
Text and number formatting helpers shared by the CARGO-IMP encoder.

CARGO-IMP only carries uppercase letters, digits, spaces and the `.`, `-` and
`/` separators, so every free-text value goes through `normalize` before it is
placed into a segment.
"""
import re
import time
import unicodedata
from datetime import date, datetime, timezone
from typing import Iterable, Optional, Union

from awb_gateway.core.config import settings

MONTHS = ["JAN", "FEB", "MAR", "APR", "MAY", "JUN", "JUL", "AUG", "SEP", "OCT", "NOV", "DEC"]

# Characters that become a separator (space or nothing) before the final filter
_SEPARATOR_CHARS = "-/#'?ñÑ*&°:\n\r+_@"
_QUOTE_CHARS = "\"“”`´"
_DISALLOWED = re.compile(r"[^A-Z0-9 .]")

_DESTINATION_ALIASES = {"LON": "LHR", "RNG": "MDE"}


def _transliterate(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(c for c in decomposed if not unicodedata.combining(c))


def normalize(text: Optional[str], length: int = 0, with_spaces: bool = False, evalpoint: bool = True) -> str:
    """
    Cleans free text for a CARGO-IMP field.

    with_spaces: separators become a space instead of being removed.
    evalpoint: dots are treated as separators too (keep them for decimals).
    The result is uppercase, trimmed, single-spaced and at most `length`
    characters long when `length` > 0.
    """
    if not text:
        return ""

    space = " " if with_spaces else ""

    text = text.replace(",", ".")
    text = text.replace("Ü", "U").replace("ü", "u")
    for char in _SEPARATOR_CHARS:
        text = text.replace(char, space)
    for char in _QUOTE_CHARS:
        text = text.replace(char, " ")
    text = text.replace("(", "").replace(")", "")

    if evalpoint:
        text = text.replace(".", space)

    text = _transliterate(text).upper()
    text = _DISALLOWED.sub(space, text)

    if length > 0 and len(text) > length:
        text = text[:length]

    text = re.sub(r"\s+", " ", text.strip())
    return text


def fwb_post_replacements(message: str) -> str:
    """Blanks `:`, `$`, `=` and `»` in body lines; EDIFACT envelope lines need their colons."""
    lines = []
    for line in message.split("\n"):
        if not line.startswith(("UNB+", "UNT+")):
            for char in ":$=»":
                line = line.replace(char, " ")
        lines.append(line)
    return "\n".join(lines)


def fhl_post_replacements(message: str, include_question_mark: bool = False) -> str:
    for char in "(),&":
        message = message.replace(char, "")
    message = message.replace("Ñ", "N").replace("ñ", "n")
    if include_question_mark:
        message = message.replace("?", "")
    return message


def format_number(value: Union[float, int, str, None], decimals: int = 1) -> str:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return "0.0"
    if number != number:  # NaN
        return "0.0"
    return f"{number:.{decimals}f}"


def _to_date(value: Union[date, datetime, str, None]) -> date:
    if value is None or value == "":
        return datetime.now(timezone.utc).date()
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).date()
    except ValueError:
        return datetime.now(timezone.utc).date()


def format_date(value: Union[date, datetime, str, None] = None) -> str:
    """DDMMMYY, e.g. 24JAN26."""
    d = _to_date(value)
    return f"{d.day:02d}{MONTHS[d.month - 1]}{d.year % 100:02d}"


def flight_day(value: Union[date, datetime, str, None]) -> str:
    return f"{_to_date(value).day:02d}"


def format_unb_datetime(now: Optional[datetime] = None) -> str:
    """YYMMDD:HHMM for the UNB interchange header."""
    now = now or datetime.now()
    return now.strftime("%y%m%d:%H%M")


def format_typeb_timestamp(now: Optional[datetime] = None) -> str:
    """DDHHmm in UTC for the Type B origin line."""
    now = now or datetime.now(timezone.utc)
    return now.strftime("%d%H%M")


def control_number() -> str:
    if settings.CONTROL_NUMBER and settings.CONTROL_NUMBER.strip():
        return settings.CONTROL_NUMBER.strip()
    return str(int(time.time() * 1000))[-14:]


def normalize_awb(awb: str) -> str:
    return re.sub(r"[\s-]", "", awb or "")


def format_awb_dashed(awb: str) -> str:
    """PPP-SSSSSSSS, the form used in AWB and MBI lines."""
    clean = normalize_awb(awb)
    if len(clean) >= 11:
        return f"{clean[:3]}-{clean[3:]}"
    return clean


def awb_prefix(awb: str) -> str:
    return normalize_awb(awb)[:3]


def normalize_destination(code: str) -> str:
    code = (code or "").upper()
    return _DESTINATION_ALIASES.get(code, code)


def normalize_hawb(hawb: str, prefixes: Iterable[str] = ("CM", "SK", "LG")) -> str:
    result = re.sub(r"[^A-Z0-9]", "", (hawb or "").upper())
    for prefix in prefixes:
        if result.startswith(prefix):
            return "0" + result
    return result


def postal_code_for(postal_code: Optional[str], country: str, agency_postal_code: Optional[str] = None) -> str:
    if postal_code and postal_code.strip():
        return normalize(postal_code.strip()[:9], 9)
    if agency_postal_code and agency_postal_code.strip():
        return normalize(agency_postal_code.strip()[:9], 9)

    defaults = settings.DEFAULT_POSTAL_CODES
    if country in ("EC", "CO"):
        return defaults.get(country) or defaults.get("DEFAULT", "10")
    return defaults.get("DEFAULT", "10")


def phone_digits(number: Optional[str]) -> str:
    return re.sub(r"\D", "", number or "")[:25]
