from __future__ import annotations

import csv
import gzip
import logging
import math
from pathlib import Path
from typing import Any, Optional, TextIO

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)


def ensure_outdir(path: str | Path) -> Path:
    p = Path(path)
    p.mkdir(parents=True, exist_ok=True)
    return p


def open_textmaybe_gzip(path: str | Path, mode: str = "rt") -> TextIO:
    p = str(path)
    if p.endswith(".gz"):
        return gzip.open(p, mode)  # type: ignore[return-value]
    return open(p, mode)


def is_na(x: Any) -> bool:
    if x is None:
        return True
    try:
        return bool(pd.isna(x))
    except (TypeError, ValueError):
        return False


def signif(x: Any, digits: int = 2) -> Optional[float]:
    """Round to ``digits`` significant figures, like R's ``signif``. NA stays None."""
    if is_na(x):
        return None
    x = float(x)
    if x == 0 or math.isinf(x):
        return x
    return round(x, digits - 1 - int(math.floor(math.log10(abs(x)))))


def _r_value(v: Any) -> Any:
    if isinstance(v, (bool, np.bool_)):
        return "TRUE" if v else "FALSE"
    return v


def _r_style(df: pd.DataFrame) -> pd.DataFrame:
    # Booleans as TRUE/FALSE so R readers (read.delim) parse them as logical.
    out = df.copy()
    for col in out.columns:
        if out[col].dtype == object or str(out[col].dtype) in ("bool", "boolean"):
            out[col] = out[col].astype(object).map(_r_value)
    return out


def write_tsv(df: pd.DataFrame, path: str | Path) -> None:
    """Write a table tab-delimited with a header, no index, unquoted, NA for missing.

    Tabs and double quotes inside a field are backslash-escaped.
    """
    logger.debug("Writing %d rows to %s", len(df), path)
    _r_style(df).to_csv(path, sep="\t", index=False, na_rep="NA", quoting=csv.QUOTE_NONE, escapechar="\\")
