from __future__ import annotations

import math
import uuid
from datetime import datetime, date, timedelta, timezone
from typing import Any

# Balances at or below this are treated as depleted (float drift).
EPSILON = 0.0001

CODE_WIDTH = 3

_EXCEL_EPOCH = date(1899, 12, 30)


def iso_now() -> str:
    # Use UTC ISO timestamps for consistency.
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def safe_div(n: float, d: float) -> float:
    return float(n) / float(d) if d else 0.0


def new_id() -> str:
    return str(uuid.uuid4())


def is_blank(v: Any) -> bool:
    if v is None:
        return True
    if isinstance(v, float) and math.isnan(v):
        return True
    if not isinstance(v, (str, int)) and v != v:
        # pandas NaT never equals itself
        return True
    return isinstance(v, str) and not v.strip()


def to_float(v: Any, default: float = 0.0) -> float:
    if is_blank(v):
        return default
    if isinstance(v, str):
        # "1.234,5" and "1234,5" both come out of pt-BR spreadsheets
        s = v.strip()
        if "," in s and s.rfind(",") > s.rfind("."):
            s = s.replace(".", "").replace(",", ".")
        else:
            s = s.replace(",", "")
        v = s
    try:
        f = float(v)
    except (TypeError, ValueError):
        return default
    return default if math.isnan(f) else f


def pad_code(v: Any, width: int = CODE_WIDTH) -> str:
    """
    Left-pad a registry code with zeros.

    Spreadsheets turn "007" into the number 7 (or 7.0), so numbers are
    converted back to their integer text first.
    """
    if is_blank(v):
        return ""
    if isinstance(v, float) and v.is_integer():
        v = int(v)
    return str(v).strip().zfill(width)


def is_valid_code(code: str, width: int = CODE_WIDTH) -> bool:
    return len(code) == width and code.isdigit()


def normalize_date(v: Any) -> str:
    """
    Canonical YYYY-MM-DD for a date cell.

    Accepts date/datetime objects (pandas Timestamps included), Excel serial
    numbers, ISO strings (optionally with a time part) and slash-delimited
    strings, yyyy/mm/dd when the first part has four digits, else dd/mm/yyyy.
    Anything unrecognised comes back as "".
    """
    if is_blank(v):
        return ""
    if isinstance(v, datetime):
        return v.date().isoformat()
    if isinstance(v, date):
        return v.isoformat()
    if isinstance(v, (int, float)) and not isinstance(v, bool):
        if v <= 0:
            return ""
        return (_EXCEL_EPOCH + timedelta(days=int(v))).isoformat()

    s = str(v).strip()
    if "/" in s:
        parts = [p.strip() for p in s.split("/")]
        if len(parts) != 3 or not all(p.isdigit() for p in parts):
            return ""
        if len(parts[0]) == 4:
            year, month, day = parts
        else:
            day, month, year = parts
        if len(year) == 2:
            year = "20" + year
        try:
            return date(int(year), int(month), int(day)).isoformat()
        except ValueError:
            return ""

    s = s.split("T")[0].split(" ")[0]
    try:
        return date.fromisoformat(s).isoformat()
    except ValueError:
        return ""
