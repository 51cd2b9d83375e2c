from __future__ import annotations

import logging
import math
import re
import threading
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from order_core.columns import CANONICAL_FIELDS, resolve_columns
from order_core.config import Settings, load_settings
from order_core.errors import EmptySourceError, SourceFormatError
from order_core.filters import DashboardFilters, apply_filters, normalize_filters


logger = logging.getLogger(__name__)

SPREADSHEET_EPOCH = "1899-12-30"
UNKNOWN = "Unknown"
NA_TOKENS = {"", "nan", "none", "null", "<na>", "nat", "n/a"}
TEXT_FIELDS = ("status", "payment_method", "city", "product", "sku", "fulfillment_partner")
WORKBOOK_SUFFIXES = {".xlsx", ".xlsm", ".xls"}

_CURRENCY_RE = re.compile(r"(₹|\$|€|£|\binr\b|\brs\.?|,|\s)", re.IGNORECASE)
_DMY_SPLIT_RE = re.compile(r"[/-]")
_SERIAL_RE = re.compile(r"\d{1,5}(\.\d+)?")
# bare four-digit years read as 1 January, not as a serial day count
_YEAR_RE = re.compile(r"(19|20)\d{2}")

Rows = Union[pd.DataFrame, Sequence[Mapping[str, Any]]]


def drop_duplicate_columns(df: pd.DataFrame) -> pd.DataFrame:
    return df.loc[:, ~df.columns.duplicated()]


def round_half_up(value: object, ndigits: int = 0) -> Optional[float]:
    if value is None or pd.isna(value):
        return None
    q = Decimal(10) ** -ndigits
    return float(Decimal(str(value)).quantize(q, rounding=ROUND_HALF_UP))


def percentage(part: float, whole: float, ndigits: int = 2) -> float:
    if not whole:
        return 0.0
    return round_half_up(part / whole * 100, ndigits) or 0.0


def is_blank(value: object) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip().lower() in NA_TOKENS
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


# ---------------- Field coercion ----------------
def parse_amount(value: object) -> float:
    """Currency cell -> non-negative float, 0.0 when absent or unparseable."""
    if is_blank(value) or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float, np.integer, np.floating)):
        out = float(value)
    else:
        cleaned = _CURRENCY_RE.sub("", str(value))
        try:
            out = float(cleaned)
        except ValueError:
            logger.debug("amount %r not parseable; using 0", value)
            return 0.0
    if math.isnan(out) or math.isinf(out) or out < 0:
        return 0.0
    return out


def _from_serial(value: float) -> pd.Timestamp:
    # Day offset from the spreadsheet epoch; fractional days are time-of-day.
    ts = pd.to_datetime(value, unit="D", origin=SPREADSHEET_EPOCH, errors="coerce")
    return ts.normalize() if pd.notna(ts) else pd.NaT


def _from_day_first(text: str) -> pd.Timestamp:
    parts = _DMY_SPLIT_RE.split(text.split()[0]) if text.split() else []
    if len(parts) != 3 or not all(p.strip().isdigit() for p in parts):
        return pd.NaT
    day, month, year = (int(p) for p in parts)
    if year < 100:
        year += 2000
    try:
        return pd.Timestamp(year=year, month=month, day=day)
    except ValueError:
        return pd.NaT


def _strip_tz(ts: pd.Timestamp) -> pd.Timestamp:
    if ts.tzinfo is not None:
        ts = ts.tz_localize(None)
    return ts.normalize()


def _in_range(ts: pd.Timestamp) -> pd.Timestamp:
    # anything a datetime64[ns] column cannot hold (e.g. a 9999-12-31 sentinel) is unknown
    if pd.isna(ts) or not (pd.Timestamp.min <= ts <= pd.Timestamp.max):
        return pd.NaT
    return ts


def parse_order_date(value: object) -> pd.Timestamp:
    """Coerce a raw date cell to a midnight Timestamp, or NaT."""
    ts = _in_range(_parse_date_cell(value))
    if pd.isna(ts) and not isinstance(value, bool) and not is_blank(value):
        logger.debug("order date %r not parseable", value)
    return ts


def _parse_date_cell(value: object) -> pd.Timestamp:
    if isinstance(value, bool) or is_blank(value):
        return pd.NaT
    if isinstance(value, (pd.Timestamp, datetime, date, np.datetime64)):
        try:
            ts = pd.Timestamp(value)
        except (ValueError, OverflowError):
            return pd.NaT
        return _strip_tz(ts) if pd.notna(ts) else pd.NaT
    if isinstance(value, (int, float, np.integer, np.floating)):
        return _from_serial(float(value))

    text = str(value).strip()
    if _YEAR_RE.fullmatch(text):
        return pd.Timestamp(year=int(text), month=1, day=1)
    if _SERIAL_RE.fullmatch(text):
        return _from_serial(float(text))
    iso = pd.to_datetime(text, format="ISO8601", errors="coerce")
    if pd.notna(iso):
        return _strip_tz(iso)
    dmy = _from_day_first(text)
    if pd.notna(dmy):
        return dmy
    loose = pd.to_datetime(text, dayfirst=True, errors="coerce")
    if pd.notna(loose):
        return _strip_tz(loose)
    return pd.NaT


def clean_text(value: object, default: Optional[str] = UNKNOWN) -> Optional[str]:
    if is_blank(value):
        return default
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


# ---------------- Record loader ----------------
def empty_frame() -> pd.DataFrame:
    frame = pd.DataFrame({c: pd.Series(dtype=object) for c in CANONICAL_FIELDS})
    frame["order_date"] = pd.Series(dtype="datetime64[ns]")
    frame["amount"] = pd.Series(dtype=float)
    return frame


def _coalesce(raw: pd.DataFrame, headers: Sequence[object]) -> pd.Series:
    result = pd.Series([None] * len(raw), index=raw.index, dtype=object)
    for header in headers:
        col = raw[header].astype(object)
        take = result.isna() & ~col.map(is_blank)
        if take.any():
            result[take] = col[take]
    return result


def normalize_records(rows: Rows, origin: str = "spreadsheet") -> pd.DataFrame:
    """Raw rows -> canonical order frame.

    Canonical columns come first in `CANONICAL_FIELDS` order, followed by any
    source columns no rule recognised, under their original headers.
    """
    if isinstance(rows, pd.DataFrame):
        raw = rows.copy()
    else:
        raw = pd.DataFrame.from_records(list(rows))
    raw = drop_duplicate_columns(raw).reset_index(drop=True)
    if not raw.empty:
        raw = raw[~raw.apply(lambda r: all(is_blank(v) for v in r), axis=1)].reset_index(drop=True)
    if raw.empty:
        raise EmptySourceError(f"No data found in {origin} source")

    resolution = resolve_columns(raw.columns)
    logger.debug("column resolution (%s): %s; extras=%s", origin, resolution.sources, resolution.extras)

    df = pd.DataFrame(index=raw.index)
    for canonical in CANONICAL_FIELDS:
        df[canonical] = _coalesce(raw, resolution.sources.get(canonical, []))

    raw_dates = df["order_date"]
    df["order_date"] = pd.to_datetime(raw_dates.map(parse_order_date), errors="coerce").astype("datetime64[ns]")
    bad_dates = int((df["order_date"].isna() & ~raw_dates.map(is_blank)).sum())
    df["amount"] = df["amount"].map(parse_amount).astype(float)
    df["order_id"] = df["order_id"].map(lambda v: clean_text(v, default=None))
    df["pincode"] = df["pincode"].map(clean_text)
    for col in TEXT_FIELDS:
        df[col] = df[col].map(clean_text)

    for extra in resolution.extras:
        df[extra] = raw[extra]

    if bad_dates:
        logger.info("%s source: %d of %d order dates could not be parsed", origin, bad_dates, len(df))
    logger.info("normalized %d %s rows (%d extra columns)", len(df), origin, len(resolution.extras))
    return df


@dataclass(frozen=True, eq=False)
class OrderSnapshot:
    """An immutable, fully-loaded record set."""

    frame: pd.DataFrame
    origin: str
    source: str = ""
    loaded_at: datetime = field(default_factory=datetime.now)

    @property
    def row_count(self) -> int:
        return int(len(self.frame))


def empty_snapshot(origin: str = "empty") -> OrderSnapshot:
    return OrderSnapshot(frame=empty_frame(), origin=origin)


def load_workbook(path: Path | str, sheet_name: Union[int, str] = 0) -> OrderSnapshot:
    path = Path(path)
    raw = pd.read_excel(path, sheet_name=sheet_name)
    return OrderSnapshot(frame=normalize_records(raw, origin="spreadsheet"), origin="spreadsheet", source=path.name)


def load_csv(path: Path | str) -> OrderSnapshot:
    path = Path(path)
    raw = pd.read_csv(path, dtype=str, keep_default_na=False, encoding="utf-8-sig")
    return OrderSnapshot(frame=normalize_records(raw, origin="csv"), origin="csv", source=path.name)


def load_api_payload(payload: object, source: str = "api") -> OrderSnapshot:
    if isinstance(payload, Mapping):
        if payload.get("success") is False or "data" not in payload:
            raise SourceFormatError("API payload is not a successful order envelope")
        payload = payload["data"]
    if not isinstance(payload, list) or not all(isinstance(r, Mapping) for r in payload):
        raise SourceFormatError("API payload must be a list of order objects")
    return OrderSnapshot(frame=normalize_records(payload, origin="api"), origin="api", source=source)


def load_source(path: Path | str) -> OrderSnapshot:
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix in WORKBOOK_SUFFIXES:
        return load_workbook(path)
    if suffix == ".csv":
        return load_csv(path)
    raise SourceFormatError(f"Unsupported source file type: {path.name}")


def get_source_files(settings: Settings) -> List[Path]:
    return sorted(Path(settings.data_dir).glob(settings.file_glob))


def file_signature(files: List[Path]) -> Tuple[Tuple[str, float], ...]:
    return tuple((str(f), f.stat().st_mtime) for f in files)


@lru_cache(maxsize=4)
def _load_files_cached(files_sig: Tuple[Tuple[str, float], ...]) -> OrderSnapshot:
    snapshots = [load_source(Path(name)) for name, _ in files_sig]
    frame = pd.concat([s.frame for s in snapshots], ignore_index=True)
    origin = snapshots[0].origin if len({s.origin for s in snapshots}) == 1 else "mixed"
    return OrderSnapshot(frame=frame, origin=origin, source=", ".join(s.source for s in snapshots))


def load_dashboard_data(settings: Optional[Settings] = None) -> OrderSnapshot:
    settings = settings or load_settings()
    files = get_source_files(settings)
    if not files:
        raise EmptySourceError(f"No files matching {settings.file_glob!r} in {settings.data_dir}")
    return _load_files_cached(file_signature(files))


def clear_load_cache() -> None:
    _load_files_cached.cache_clear()


class OrderStore:
    """Holds the current snapshot; replacement swaps the reference wholesale."""

    def __init__(self, snapshot: Optional[OrderSnapshot] = None) -> None:
        self._lock = threading.Lock()
        self._snapshot = snapshot or empty_snapshot()

    @property
    def snapshot(self) -> OrderSnapshot:
        return self._snapshot

    def replace(self, snapshot: OrderSnapshot) -> OrderSnapshot:
        with self._lock:
            previous, self._snapshot = self._snapshot, snapshot
        logger.info("record set replaced: %d rows from %s", snapshot.row_count, snapshot.source or snapshot.origin)
        return previous

    def clear(self) -> OrderSnapshot:
        return self.replace(empty_snapshot())


def prepare_context(
    filters: dict | DashboardFilters,
    snapshot: OrderSnapshot,
    *,
    today: Optional[date] = None,
) -> Dict[str, object]:
    filt = filters if isinstance(filters, DashboardFilters) else normalize_filters(filters)
    orders = snapshot.frame
    filtered = apply_filters(orders, filt, today=today)
    logger.debug("filters %s kept %d of %d rows", filt, len(filtered), len(orders))
    return {
        "filters": filt,
        "orders": orders,
        "filtered_orders": filtered,
        "source": snapshot.source,
        "loaded_at": snapshot.loaded_at,
    }

