from __future__ import annotations

import logging
from pathlib import Path

logger = logging.getLogger(__name__)


_UCSC_PREFIX = "chr"


def check_counts_file(counts_path: str | Path) -> None:
    """Ensure the counts file exists and looks gzip-compressed; raise with fix instructions."""
    p = Path(counts_path)
    if not p.is_file():
        raise FileNotFoundError(f"Counts file not found: {p}")
    with open(p, "rb") as fh:
        magic = fh.read(2)
    if magic != b"\x1f\x8b":
        raise ValueError(
            f"Counts file is not gzip-compressed: {p}. "
            "Run snp-pileup with a .gz output name, or compress it with: gzip " + str(p)
        )


def strip_chr_prefix(contig: str) -> str:
    """Contig name without a leading 'chr' (chr1 -> 1, chrM -> M); other names unchanged."""
    if contig.startswith(_UCSC_PREFIX):
        return contig[len(_UCSC_PREFIX) :]
    return contig
