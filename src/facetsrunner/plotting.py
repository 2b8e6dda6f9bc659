from __future__ import annotations

import logging
import warnings
from pathlib import Path
from typing import Dict, Tuple

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from .models import SegmentationResult

logger = logging.getLogger(__name__)

WIDTH_PX = 850
HEIGHT_PX = 999
DPI = 96
HEIGHT_RATIOS = (1, 1, 1, 0.15, 1, 0.15)

_CHROM_COLORS = ("#0080FF", "#4d4d4d")


def _chrom_offsets(snps: pd.DataFrame) -> Dict[object, float]:
    """Cumulative genome offset per chromosome, in SNP table order."""
    offsets: Dict[object, float] = {}
    total = 0.0
    for chrom, maploc in snps.groupby("chrom", sort=False)["maploc"]:
        offsets[chrom] = total
        total += float(maploc.max())
    return offsets


def _genome_pos(chrom: pd.Series, pos: pd.Series, offsets: Dict[object, float]) -> np.ndarray:
    return pos.to_numpy(dtype=float) + chrom.map(offsets).fillna(0.0).to_numpy(dtype=float)


def _seg_span(segs: pd.DataFrame, offsets: Dict[object, float]) -> Tuple[np.ndarray, np.ndarray]:
    return _genome_pos(segs["chrom"], segs["start"], offsets), _genome_pos(segs["chrom"], segs["end"], offsets)


def _chrom_bounds(axes, snps: pd.DataFrame, offsets: Dict[object, float]) -> None:
    ends = snps.groupby("chrom", sort=False)["maploc"].max()
    ticks = []
    for chrom, start in offsets.items():
        end = start + float(ends.loc[chrom])
        for ax in axes:
            ax.axvline(end, color="#d9d9d9", linewidth=0.5)
        ticks.append((start + end) / 2.0)
    for ax in axes:
        ax.tick_params(axis="x", length=0)
        ax.tick_params(axis="y", labelsize=7)
    # x axes are shared, so ticks set on the bottom panel apply to all
    axes[-1].set_xticks(ticks)
    axes[-1].set_xticklabels([str(c) for c in offsets], fontsize=6)


def _snp_colors(snps: pd.DataFrame, offsets: Dict[object, float]) -> list:
    parity = {chrom: i % 2 for i, chrom in enumerate(offsets)}
    return [_CHROM_COLORS[parity.get(c, 0)] for c in snps["chrom"]]


def _cnlr_panel(ax, result: SegmentationResult, offsets) -> None:
    snps, segs = result.snps, result.segs
    ax.scatter(_genome_pos(snps["chrom"], snps["maploc"], offsets), snps["cnlr"], s=0.5, c=_snp_colors(snps, offsets))
    x0, x1 = _seg_span(segs, offsets)
    ax.hlines(segs["cnlr.median"], x0, x1, colors="red", linewidth=1.5)
    ax.axhline(result.dip_log_r, color="#ff7f0e", linestyle="--", linewidth=0.8)
    ax.set_ylabel("Copy number\nlog ratio", fontsize=7)


def _valor_panel(ax, result: SegmentationResult, offsets) -> None:
    snps, segs = result.snps, result.segs
    het = snps[snps["het"] == 1] if "het" in snps.columns else snps
    ax.scatter(_genome_pos(het["chrom"], het["maploc"], offsets), het["valor"], s=0.5, c=_snp_colors(het, offsets))
    x0, x1 = _seg_span(segs, offsets)
    maf = np.sqrt(np.abs(segs["mafR"].to_numpy(dtype=float)))
    ax.hlines(maf, x0, x1, colors="red", linewidth=1.5)
    ax.hlines(-maf, x0, x1, colors="red", linewidth=1.5)
    ax.set_ylabel("Variant allele\nlog odds ratio", fontsize=7)


def _icn_panel(ax, result: SegmentationResult, offsets, method: str) -> None:
    segs = result.segs
    tcn_col, lcn_col = ("tcn.em", "lcn.em") if method == "em" else ("tcn", "lcn")
    x0, x1 = _seg_span(segs, offsets)
    # very high copy numbers are compressed so the diploid range stays readable
    tcn = segs[tcn_col].to_numpy(dtype=float)
    tcn = np.where(tcn > 10, 9 + np.log10(np.maximum(tcn, 1.0)), tcn)
    ax.hlines(tcn, x0, x1, colors="black", linewidth=2)
    ax.hlines(segs[lcn_col].to_numpy(dtype=float) - 0.1, x0, x1, colors="red", linewidth=2)
    ax.set_ylim(-0.5, max(4.0, float(np.nanmax(tcn)) + 0.5) if len(tcn) else 4.0)
    ax.set_ylabel(f"Integer copy\nnumber ({method.upper()})", fontsize=7)


def _cf_panel(ax, result: SegmentationResult, offsets, method: str) -> None:
    segs = result.segs
    col = "cf.em" if method == "em" else "cf"
    x0, x1 = _seg_span(segs, offsets)
    cmap = plt.get_cmap("Blues")
    for a, b, cf in zip(x0, x1, segs[col].to_numpy(dtype=float)):
        color = "white" if np.isnan(cf) else cmap(float(cf))
        ax.axvspan(a, b, color=color, linewidth=0)
    ax.set_yticks([])
    ax.set_ylabel("CF", fontsize=7, rotation=0, ha="right", va="center")


def plot_title(result: SegmentationResult, sample_id: str, cval: int) -> str:
    purity = "NA" if result.purity is None else f"{round(result.purity, 2):g}"
    return (
        f"{sample_id} | cval={cval} | purity={purity}"
        f" | ploidy={round(result.ploidy, 2):g} | dipLogR={round(result.dip_log_r, 2):g}"
    )


def plot_facets(
    *,
    result: SegmentationResult,
    sample_id: str,
    cval: int,
    out_png: str | Path,
) -> None:
    """Six-panel genome-wide summary of one segmentation pass.

    Panels, top to bottom: log ratio, variant allele log odds ratio, EM integer
    copy number, EM cellular fraction, CNCF integer copy number, CNCF cellular
    fraction. Written at 850x999 px.
    """
    out_png = Path(out_png)
    out_png.parent.mkdir(parents=True, exist_ok=True)

    offsets = _chrom_offsets(result.snps)

    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        fig, axes = plt.subplots(
            nrows=6,
            ncols=1,
            sharex=True,
            figsize=(WIDTH_PX / DPI, HEIGHT_PX / DPI),
            dpi=DPI,
            gridspec_kw={"height_ratios": HEIGHT_RATIOS},
        )
        _cnlr_panel(axes[0], result, offsets)
        _valor_panel(axes[1], result, offsets)
        _icn_panel(axes[2], result, offsets, "em")
        _cf_panel(axes[3], result, offsets, "em")
        _icn_panel(axes[4], result, offsets, "cncf")
        _cf_panel(axes[5], result, offsets, "cncf")

        _chrom_bounds(axes, result.snps, offsets)

        fig.suptitle(plot_title(result, sample_id, cval), fontsize=9)
        fig.tight_layout()
        fig.savefig(out_png, dpi=DPI)
        plt.close(fig)

    logger.debug("Plot written: %s", out_png)
