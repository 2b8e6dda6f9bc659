"""Reading snp-pileup output into a tumor/normal read-count table.

snp-pileup writes one row per SNP with four counts per BAM (R=ref, A=alt,
E=errors, D=deletions). File1 is the normal, File2 the tumor.
"""

from __future__ import annotations

import logging
import math
from pathlib import Path

import pandas as pd

from .models import ReadCounts
from .utils import open_textmaybe_gzip
from .validation import check_counts_file, strip_chr_prefix

logger = logging.getLogger(__name__)

PILEUP_COLUMNS = [
    "Chromosome",
    "Position",
    "Ref",
    "Alt",
    "File1R",
    "File1A",
    "File1E",
    "File1D",
    "File2R",
    "File2A",
    "File2E",
    "File2D",
]

READ_COUNT_COLUMNS = ["Chromosome", "Position", "NOR.DP", "NOR.RD", "TUM.DP", "TUM.RD"]


def _sniff_delimiter(path: str | Path) -> str:
    with open_textmaybe_gzip(path) as fh:
        header = fh.readline()
    if not header.strip():
        raise ValueError(f"Counts file is empty: {path}")
    return "\t" if "\t" in header else ","


def read_snp_matrix(
    path: str | Path,
    *,
    err_thresh: float = math.inf,
    del_thresh: float = math.inf,
) -> ReadCounts:
    """Load a gzipped snp-pileup file.

    Loci where either sample has more than ``err_thresh`` errors or
    ``del_thresh`` deletions are dropped. A leading ``chr`` is removed from
    every contig name, whatever style the rest of the file uses, so
    ``chr1`` and ``1`` both reach FACETS as ``1`` and ``chrM`` as ``M``.

    Raises
    ------
    FileNotFoundError
        If ``path`` does not exist.
    ValueError
        If the file is not gzip-compressed or lacks the snp-pileup columns.
    """
    check_counts_file(path)
    sep = _sniff_delimiter(path)

    pileup = pd.read_csv(path, sep=sep, dtype={"Chromosome": str}, compression="gzip")
    missing = [c for c in PILEUP_COLUMNS if c not in pileup.columns]
    if missing:
        raise ValueError(
            f"Counts file {path} is missing snp-pileup columns: {', '.join(missing)}"
        )

    counts = pileup[PILEUP_COLUMNS[4:]].apply(pd.to_numeric, errors="coerce")
    if counts.isna().any().any():
        raise ValueError(f"Counts file {path} has missing or non-numeric read counts")
    pileup[PILEUP_COLUMNS[4:]] = counts

    keep = (
        (pileup["File1E"] <= err_thresh)
        & (pileup["File1D"] <= del_thresh)
        & (pileup["File2E"] <= err_thresh)
        & (pileup["File2D"] <= del_thresh)
    )
    pileup = pileup.loc[keep].reset_index(drop=True)

    chroms = pileup["Chromosome"].map(strip_chr_prefix)

    table = pd.DataFrame(
        {
            "Chromosome": chroms,
            "Position": pileup["Position"].astype(int),
            "NOR.DP": (pileup["File1R"] + pileup["File1A"]).astype(int),
            "NOR.RD": pileup["File1R"].astype(int),
            "TUM.DP": (pileup["File2R"] + pileup["File2A"]).astype(int),
            "TUM.RD": pileup["File2R"].astype(int),
        },
        columns=READ_COUNT_COLUMNS,
    )

    dropped = int((~keep).sum())
    logger.info("Loaded %d SNPs from %s (%d dropped by error/deletion filters)", len(table), path, dropped)
    return ReadCounts(table=table, source=str(path))
