from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

import pandas as pd

from .models import InstabilityMetrics, RunConfig, SegmentationResult
from .utils import signif, write_tsv

logger = logging.getLogger(__name__)

IGV_COLUMNS = ["ID", "chrom", "loc.start", "loc.end", "num.mark", "seg.mean"]


def format_igv_seg(result: SegmentationResult, sample_id: str, *, normalize: bool) -> pd.DataFrame:
    """IGV-style segmentation table for one pass.

    Segment bounds come from the outermost SNPs of each (chrom, seg) group.
    With ``normalize``, ``seg.mean`` is the segment log ratio minus the pass's
    dipLogR, so copy-neutral segments sit at zero.
    """
    snps = result.snps
    segs = result.segs
    missing = [c for c in ("chrom", "seg", "maploc") if c not in snps.columns]
    missing += [c for c in ("chrom", "seg", "num.mark", "cnlr.median") if c not in segs.columns]
    if missing:
        raise ValueError(f"Segmentation result lacks columns required for IGV output: {missing}")

    bounds = (
        snps.groupby(["chrom", "seg"], sort=True)["maploc"]
        .agg(["min", "max"])
        .rename(columns={"min": "loc.start", "max": "loc.end"})
        .reset_index()
    )
    seg = bounds.merge(segs[["chrom", "seg", "num.mark", "cnlr.median"]], on=["chrom", "seg"], how="left")

    seg_mean = seg["cnlr.median"]
    if normalize:
        seg_mean = seg_mean - result.dip_log_r

    return pd.DataFrame(
        {
            "ID": sample_id,
            "chrom": seg["chrom"],
            "loc.start": seg["loc.start"],
            "loc.end": seg["loc.end"],
            "num.mark": seg["num.mark"],
            "seg.mean": seg_mean,
        },
        columns=IGV_COLUMNS,
    )


def write_igv_seg(result: SegmentationResult, sample_id: str, out_path: str | Path, *, normalize: bool) -> None:
    write_tsv(format_igv_seg(result, sample_id, normalize=normalize), out_path)


def build_run_details(
    config: RunConfig,
    results: Sequence[SegmentationResult],
    metrics: Optional[Sequence[InstabilityMetrics]] = None,
) -> pd.DataFrame:
    """One summary row per pass: fit, parameters, flags and optional instability metrics."""
    rows = []
    for i, res in enumerate(results):
        row: Dict[str, Any] = {
            "sample": config.sample_id,
            "run_type": res.params.label,
            "purity": signif(res.purity, 2),
            "ploidy": signif(res.ploidy, 2),
            "dipLogR": signif(res.dip_log_r, 2),
            "facets_version": res.engine_version,
            "cval": res.params.cval,
            "snp_nbhd": res.params.snp_nbhd,
            "min_nhet": res.params.min_nhet,
            "ndepth": res.params.ndepth,
            "genome": res.params.genome,
            "seed": res.params.seed,
            "flags": "; ".join(res.flags),
            "input_file": Path(config.counts_file).name,
        }
        if metrics:
            m = metrics[i]
            row.update(
                {
                    "genome_doubled": m.genome_doubled,
                    "fraction_cna": signif(m.fraction_cna, 2),
                    "hypoploid": m.hypoploid,
                    "fraction_loh": signif(m.fraction_loh, 2),
                    "lst": m.lst,
                    "ntai": m.ntai,
                    "hrd_loh": m.hrd_loh,
                }
            )
        rows.append(row)
    return pd.DataFrame(rows)


def _with_sample(df: pd.DataFrame, sample_id: str) -> pd.DataFrame:
    out = df.copy()
    if "sample" in out.columns:
        out = out.drop(columns="sample")
    out.insert(0, "sample", sample_id)
    return out


def build_qc_table(sample_id: str, cvals: Sequence[int], fits: Sequence[Dict[str, Any]]) -> pd.DataFrame:
    """Fit diagnostics, one row per pass, led by ``sample`` and ``cval``."""
    table = pd.DataFrame(list(fits)).drop(columns=["sample", "cval"], errors="ignore")
    table.insert(0, "cval", list(cvals))
    table.insert(0, "sample", sample_id)
    return table


def write_qc(sample_id: str, cvals: Sequence[int], fits: Sequence[Dict[str, Any]], out_path: str | Path) -> None:
    write_tsv(build_qc_table(sample_id, cvals, fits), out_path)


def write_gene_level(gene_level: pd.DataFrame, sample_id: str, out_path: str | Path) -> None:
    write_tsv(_with_sample(gene_level, sample_id), out_path)


def write_arm_level(arm_level: pd.DataFrame, sample_id: str, out_path: str | Path) -> None:
    write_tsv(_with_sample(arm_level, sample_id), out_path)
