import hashlib
import re

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h)")
_DURATION_UNITS = {"ms": 0.001, "s": 1, "m": 60, "h": 3600}


def safe_int(value) -> int:
    try:
        return int(value)
    except (ValueError, TypeError):
        return 0


def safe_float(value) -> float:
    try:
        return float(value)
    except (ValueError, TypeError):
        return 0.0


def to_utf16_md5(s: str) -> str:
    # the router replaces everything outside Latin-1 with a dot before hashing
    s = "".join(c if ord(c) <= 0xFF else "." for c in s)
    return hashlib.md5(s.encode("utf-16-le")).hexdigest()


def parse_duration(value: str) -> float:
    """
    Parse a duration such as "90s", "5m", "1h30m" or "250ms" into seconds.
    A bare number is taken as seconds.
    """
    value = str(value).strip()
    try:
        return float(value)
    except ValueError:
        pass

    pos = 0
    seconds = 0.0
    for m in _DURATION_PART.finditer(value):
        if m.start() != pos:
            break
        seconds += float(m.group(1)) * _DURATION_UNITS[m.group(2)]
        pos = m.end()

    if pos == 0 or pos != len(value):
        raise ValueError(f"invalid duration: {value!r}")
    return seconds
