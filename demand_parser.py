# demand_parser.py
import re
from typing import Any, Dict, List, Optional, Tuple

PARSER_SOURCE = __file__

_PAIR_RE = re.compile(
    r"^\s*(?P<sym>[A-Za-z0-9_]+)\s*[=:]\s*(?P<n>-?\d+(?:\.0+)?)\s*$",
)


def _to_int(x: Any) -> Optional[int]:
    try:
        f = float(x)
    except Exception:
        return None
    if f != int(f):
        return None
    return int(f)


def _normalize_symbol(key: Any) -> str:
    k = str(key or "").strip()
    for pre in ("q_", "qty_", "count_", "cnt_"):
        if k.lower().startswith(pre):
            k = k[len(pre):]
            break
    return k


def parse_counts_text(text: str) -> Tuple[bool, Dict[str, int], Optional[str]]:
    """
    Parse ``"A=3,B=2,C:1"`` into ``{"A": 3, "B": 2, "C": 1}``.
    Key order is preserved; repeated symbols are summed.
    """
    counts: Dict[str, int] = {}
    if text is None:
        return False, {}, "no counts given"
    for chunk in re.split(r"[,;\s]+", str(text).strip()):
        if not chunk:
            continue
        m = _PAIR_RE.match(chunk)
        if not m:
            return False, {}, f"bad count entry: {chunk!r}"
        n = int(float(m.group("n")))
        if n < 0:
            return False, {}, f"negative count for {m.group('sym')!r}"
        sym = m.group("sym")
        counts[sym] = counts.get(sym, 0) + n
    if not counts:
        return False, {}, "no counts given"
    return True, counts, None


def parse_counts(payload: Any) -> Tuple[bool, Dict[str, int], Optional[str]]:
    """
    Parse a request-like payload into ``{symbol: count}``.

    Accepts a ``"A=3,B=2"`` string, a mapping ``{"A": 3, "qty_B": "2"}``,
    a mapping holding such a string under ``"counts"``, or a list of
    ``{"symbol": .., "count": ..}`` items.  Zero counts are kept (they still
    name a symbol), negative or non-integral counts are errors.
    """
    if isinstance(payload, str):
        return parse_counts_text(payload)

    if isinstance(payload, dict) and "counts" in payload:
        inner = payload["counts"]
        if isinstance(inner, (list, tuple)) and len(inner) == 1 and isinstance(inner[0], str):
            inner = inner[0]
        return parse_counts(inner)

    items: List[Tuple[Any, Any]] = []
    if isinstance(payload, dict):
        items = list(payload.items())
    elif isinstance(payload, (list, tuple)):
        for entry in payload:
            if not isinstance(entry, dict):
                return False, {}, f"bad count entry: {entry!r}"
            items.append((entry.get("symbol"), entry.get("count")))
    else:
        return False, {}, "nothing parsed from request"

    counts: Dict[str, int] = {}
    for raw_k, raw_v in items:
        if isinstance(raw_v, (list, tuple)):
            raw_v = raw_v[0] if raw_v else None
        if raw_v is None or str(raw_v).strip() == "":
            continue
        sym = _normalize_symbol(raw_k)
        if not sym:
            return False, {}, f"missing symbol for count {raw_v!r}"
        n = _to_int(raw_v)
        if n is None:
            return False, {}, f"count for {sym!r} is not an integer: {raw_v!r}"
        if n < 0:
            return False, {}, f"negative count for {sym!r}"
        counts[sym] = counts.get(sym, 0) + n

    if not counts:
        return False, {}, "nothing parsed from request"
    return True, counts, None


def fmt_counts(counts: Dict[str, int]) -> str:
    return ",".join(f"{sym}={n}" for sym, n in counts.items())
