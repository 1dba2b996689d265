from __future__ import annotations

import io
import re
import unicodedata
from datetime import datetime

import pandas as pd


def read_excel_bytes(content: bytes) -> pd.DataFrame:
    """Read .xlsx bytes into a DataFrame (first sheet only)."""
    bio = io.BytesIO(content)
    df = pd.read_excel(bio, engine="openpyxl")
    df.columns = [str(c).strip() for c in df.columns]
    return df


def normalize_col_name(name: str) -> str:
    """Normalize spreadsheet headers to an ASCII snake_case token.

    "Estimated Hours", "estimated-hours" and "Estimated hours " all become
    ``estimated_hours``; accents and non-breaking spaces are dropped.
    """
    s = str(name or "").strip().lower()
    s = unicodedata.normalize("NFKD", s)
    s = "".join(ch for ch in s if not unicodedata.combining(ch))
    s = s.replace("\u00a0", " ")
    s = re.sub(r"[^a-z0-9 ]+", " ", s)
    s = re.sub(r"\s+", "_", s).strip("_")
    return s


def normalize_columns(df: pd.DataFrame) -> pd.DataFrame:
    df = df.copy()
    df.columns = [normalize_col_name(c) for c in df.columns]
    return df


def is_blank(value) -> bool:
    if value is None:
        return True
    try:
        if pd.isna(value):
            return True
    except (TypeError, ValueError):
        pass
    s = str(value).strip()
    return not s or s.lower() == "nan"


def coerce_date(value, *, field: str = "date") -> str:
    """Coerce Excel/pandas date representations to ISO YYYY-MM-DD."""
    if is_blank(value):
        raise ValueError(f"{field} is empty")

    if isinstance(value, datetime):
        return value.date().isoformat()

    # pandas Timestamp
    if hasattr(value, "to_pydatetime"):
        return value.to_pydatetime().date().isoformat()

    s = str(value).strip()
    try:
        return datetime.fromisoformat(s).date().isoformat()
    except ValueError:
        pass

    for fmt in ("%d-%m-%Y", "%d/%m/%Y", "%Y/%m/%d"):
        try:
            return datetime.strptime(s, fmt).date().isoformat()
        except ValueError:
            continue

    raise ValueError(f"{field} is not a valid date: {value!r}")


def coerce_optional_date(value, *, field: str = "date") -> str | None:
    if is_blank(value):
        return None
    return coerce_date(value, field=field)


def coerce_float(value) -> float | None:
    """Coerce spreadsheet numbers to float; ``None`` when empty.

    Accepts strings with ',' as decimal separator (1.234,5 -> 1234.5).
    """
    if is_blank(value):
        return None

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)

    s = str(value).strip()
    if "," in s and "." in s:
        s = s.replace(".", "").replace(",", ".")
    elif "," in s:
        s = s.replace(",", ".")

    try:
        return float(s)
    except ValueError:
        return None
