"""Single- and two-pass FACETS runs and their output files.

A run is a straight line: load counts, segment (purity pass first when
two-pass, its dipLogR seeding the hisens pass), write per-pass plots and
IGV files, optional instability outputs, run details, then persist.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

from .counts import read_snp_matrix
from .engine import SegmentationEngine
from .models import InstabilityMetrics, PassParams, ReadCounts, RunConfig, SegmentationResult
from .plotting import plot_facets
from .utils import ensure_outdir, write_tsv
from .writers import build_run_details, write_arm_level, write_gene_level, write_igv_seg, write_qc

logger = logging.getLogger(__name__)

LEGACY_SUFFIXES = (".out", ".cncf.txt", ".Rdata")


@dataclass
class PipelineRun:
    results: List[SegmentationResult]
    outputs: List[Path] = field(default_factory=list)


def _pass_prefix(config: RunConfig, label: str) -> Path:
    return Path(f"{config.prefix}_{label}") if label else config.prefix


def _pass_outputs(prefix: Path) -> List[Path]:
    return [
        Path(f"{prefix}_diplogR.adjusted.seg"),
        Path(f"{prefix}_diplogR.unadjusted.seg"),
        Path(f"{prefix}.png"),
    ]


def pass_labels(config: RunConfig) -> List[str]:
    return ["purity", "hisens"] if config.two_pass else [""]


def planned_outputs(config: RunConfig) -> List[Path]:
    """Every file a run with ``config`` writes, in write order."""
    labels = pass_labels(config)
    prefix = config.prefix

    outputs: List[Path] = []
    for label in labels:
        outputs.extend(_pass_outputs(_pass_prefix(config, label)))

    if config.everything:
        outputs.extend(
            [
                Path(f"{prefix}.qc.txt"),
                Path(f"{prefix}.gene_level.txt"),
                Path(f"{prefix}.arm_level.txt"),
            ]
        )

    if config.legacy_output:
        # legacy export runs hisens first, then purity
        for label in reversed(labels):
            legacy_prefix = _pass_prefix(config, label)
            outputs.extend(Path(f"{legacy_prefix}{suffix}") for suffix in LEGACY_SUFFIXES)
    else:
        outputs.append(Path(f"{prefix}.txt"))
        outputs.extend(Path(f"{_pass_prefix(config, label)}.rds") for label in labels)

    return outputs


def facets_iteration(
    engine: SegmentationEngine,
    read_counts: ReadCounts,
    params: PassParams,
    *,
    sample_id: str,
    name_prefix: Path,
) -> tuple[SegmentationResult, List[Path]]:
    """Segment once and write the pass's IGV files and plot."""
    result = engine.run(read_counts, params)

    adjusted, unadjusted, png = _pass_outputs(name_prefix)
    write_igv_seg(result, sample_id, adjusted, normalize=True)
    write_igv_seg(result, sample_id, unadjusted, normalize=False)
    plot_facets(result=result, sample_id=sample_id, cval=params.cval, out_png=png)

    return result, [adjusted, unadjusted, png]


def _write_extended(
    engine: SegmentationEngine,
    config: RunConfig,
    results: Sequence[SegmentationResult],
    metrics: Sequence[InstabilityMetrics],
) -> List[Path]:
    prefix = config.prefix
    qc_path = Path(f"{prefix}.qc.txt")
    gene_path = Path(f"{prefix}.gene_level.txt")
    arm_path = Path(f"{prefix}.arm_level.txt")

    fits = [engine.check_fit(res, config.genome) for res in results]
    write_qc(config.sample_id, [res.params.cval for res in results], fits, qc_path)

    # gene level from the most sensitive pass, arm level from the first one
    write_gene_level(engine.gene_level_changes(results[-1], config.genome), config.sample_id, gene_path)
    write_arm_level(metrics[0].arm_level, config.sample_id, arm_path)

    return [qc_path, gene_path, arm_path]


def run_pipeline(
    config: RunConfig,
    engine: SegmentationEngine,
    *,
    read_counts: Optional[ReadCounts] = None,
) -> PipelineRun:
    directory = ensure_outdir(config.directory)

    if read_counts is None:
        logger.info("Reading %s", config.counts_file)
        read_counts = read_snp_matrix(config.counts_file)
    logger.info("Writing to %s", directory)

    run = PipelineRun(results=[])
    dip_log_r = config.dip_log_r
    for label in pass_labels(config):
        params = config.pass_params(label, dip_log_r=dip_log_r)
        result, written = facets_iteration(
            engine,
            read_counts,
            params,
            sample_id=config.sample_id,
            name_prefix=_pass_prefix(config, label),
        )
        run.results.append(result)
        run.outputs.extend(written)
        # the hisens pass starts from the purity pass's estimate
        dip_log_r = result.dip_log_r

    metrics: List[InstabilityMetrics] = []
    if config.everything:
        metrics = [engine.instability_metrics(res, config.genome) for res in run.results]
        run.outputs.extend(_write_extended(engine, config, run.results, metrics))

    details = build_run_details(config, run.results, metrics or None)
    if config.legacy_output:
        # run details go to the null sink; the legacy bundle carries them
        write_tsv(details, os.devnull)
        for label, result in reversed(list(zip(pass_labels(config), run.results))):
            engine.write_legacy(
                result,
                directory=directory,
                sample_id=config.sample_id,
                counts_file=config.counts_file,
                run_type=label,
                run_details=details,
            )
            legacy_prefix = _pass_prefix(config, label)
            run.outputs.extend(Path(f"{legacy_prefix}{suffix}") for suffix in LEGACY_SUFFIXES)
    else:
        details_path = Path(f"{config.prefix}.txt")
        write_tsv(details, details_path)
        run.outputs.append(details_path)
        for label, result in zip(pass_labels(config), run.results):
            rds_path = Path(f"{_pass_prefix(config, label)}.rds")
            engine.save_result(result, rds_path)
            run.outputs.append(rds_path)

    logger.info("Wrote %d files to %s", len(run.outputs), directory)
    return run
