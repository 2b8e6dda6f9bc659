"""Boundary to the external FACETS segmentation engine.

The pipeline only talks to a :class:`SegmentationEngine`. The production
implementation, :class:`FacetsEngine`, renders R driver scripts
(:mod:`facetsrunner.rscripts`) and runs them with ``Rscript``. Each pass keeps
its native R object (``.rds``) in a private work directory; metrics, QC and
persistence reload it from there.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional, Protocol

import pandas as pd

from .external import ensure_executable_in_path, run_command
from .models import InstabilityMetrics, PassParams, ReadCounts, SegmentationResult
from .rscripts import render_script
from .utils import is_na, write_tsv

logger = logging.getLogger(__name__)

_RSCRIPT_HINT = (
    "Install R and the FACETS packages, then make sure 'Rscript' works from your shell:\n"
    "  R -e \"devtools::install_github('mskcc/facets')\"\n"
    "  R -e \"devtools::install_github('mskcc/facets-suite')\"\n"
    "Or point --rscript-path at a specific Rscript binary."
)


class SegmentationEngine(Protocol):
    def run(self, read_counts: ReadCounts, params: PassParams) -> SegmentationResult:
        ...

    def instability_metrics(self, result: SegmentationResult, genome: str) -> InstabilityMetrics:
        ...

    def check_fit(self, result: SegmentationResult, genome: str) -> Dict[str, Any]:
        ...

    def gene_level_changes(self, result: SegmentationResult, genome: str) -> pd.DataFrame:
        ...

    def save_result(self, result: SegmentationResult, path: str | Path) -> None:
        ...

    def write_legacy(
        self,
        result: SegmentationResult,
        *,
        directory: str | Path,
        sample_id: str,
        counts_file: str,
        run_type: str,
        run_details: pd.DataFrame,
    ) -> None:
        ...


def _read_table(path: Path) -> pd.DataFrame:
    return pd.read_csv(path, sep="\t")


def _read_verbatim(path: Path) -> pd.DataFrame:
    # tables written back out untouched keep R's text (1 stays 1 next to NA)
    return pd.read_csv(path, sep="\t", dtype=str, keep_default_na=False)


def _absolute_executable(exe: str) -> str:
    found = shutil.which(exe)
    return str(Path(found).absolute()) if found else exe


def _optional(value: Any, cast) -> Any:
    return None if is_na(value) else cast(value)


class FacetsEngine:
    """Run FACETS through ``Rscript``.

    Use as a context manager; the work directory (staged counts, R scripts,
    per-pass ``.rds`` files) is removed on exit, so persist results before
    leaving the block.
    """

    def __init__(self, *, facets_lib_path: str = "", rscript: str = "Rscript") -> None:
        # scripts run inside scratch directories, so relative paths must be pinned now
        self.facets_lib_path = str(Path(facets_lib_path).expanduser().resolve()) if facets_lib_path else ""
        self.rscript = _absolute_executable(rscript)
        self._tmp: Optional[tempfile.TemporaryDirectory] = None
        self._staged: Dict[int, Path] = {}
        self._n_scripts = 0

    def __enter__(self) -> "FacetsEngine":
        ensure_executable_in_path(self.rscript, hint=_RSCRIPT_HINT)
        self._tmp = tempfile.TemporaryDirectory(prefix="facetsrunner_")
        return self

    def __exit__(self, *exc: object) -> None:
        if self._tmp is not None:
            self._tmp.cleanup()
            self._tmp = None
        self._staged.clear()

    @property
    def workdir(self) -> Path:
        if self._tmp is None:
            raise RuntimeError("FacetsEngine must be used inside a 'with' block")
        return Path(self._tmp.name)

    def _scratch(self, name: str) -> Path:
        self._n_scripts += 1
        d = self.workdir / f"{self._n_scripts:02d}_{name}"
        d.mkdir()
        return d

    def _rscript(self, scratch: Path, name: str, **params: Any) -> None:
        script = scratch / f"{name}.R"
        script.write_text(
            render_script(name, facets_lib_path=self.facets_lib_path, **params),
            encoding="utf-8",
        )
        cp = run_command([self.rscript, "--no-save", "--no-restore", script], cwd=scratch)
        if cp.stderr:
            logger.debug("Rscript %s stderr:\n%s", name, cp.stderr.rstrip())

    def _stage_counts(self, read_counts: ReadCounts) -> Path:
        key = id(read_counts)
        if key not in self._staged:
            path = self.workdir / f"read_counts_{len(self._staged)}.tsv.gz"
            read_counts.table.to_csv(path, sep="\t", index=False, compression="gzip")
            self._staged[key] = path
        return self._staged[key]

    def run(self, read_counts: ReadCounts, params: PassParams) -> SegmentationResult:
        counts_path = self._stage_counts(read_counts)
        scratch = self._scratch(params.label or "single")

        logger.info(
            "Running FACETS%s: cval=%d, min_nhet=%d, dipLogR=%s",
            f" ({params.label})" if params.label else "",
            params.cval,
            params.min_nhet,
            "auto" if params.dip_log_r is None else params.dip_log_r,
        )
        self._rscript(
            scratch,
            "run",
            counts_path=counts_path,
            cval=params.cval,
            dip_log_r=params.dip_log_r,
            ndepth=params.ndepth,
            snp_nbhd=params.snp_nbhd,
            min_nhet=params.min_nhet,
            genome=params.genome,
            seed=params.seed,
            rds_path=scratch / "output.rds",
            segs_path=scratch / "segs.tsv",
            snps_path=scratch / "snps.tsv",
            summary_path=scratch / "summary.tsv",
            flags_path=scratch / "flags.txt",
        )

        summary = _read_table(scratch / "summary.tsv").iloc[0]
        flags_text = (scratch / "flags.txt").read_text(encoding="utf-8")
        result = SegmentationResult(
            purity=_optional(summary["purity"], float),
            ploidy=float(summary["ploidy"]),
            dip_log_r=float(summary["dipLogR"]),
            segs=_read_table(scratch / "segs.tsv"),
            snps=_read_table(scratch / "snps.tsv"),
            params=params,
            engine_version=str(summary["facets_version"]),
            flags=tuple(line for line in flags_text.splitlines() if line.strip()),
            handle=scratch / "output.rds",
        )
        logger.info(
            "FACETS%s: purity=%s, ploidy=%.3f, dipLogR=%.3f",
            f" ({params.label})" if params.label else "",
            "NA" if result.purity is None else f"{result.purity:.3f}",
            result.ploidy,
            result.dip_log_r,
        )
        return result

    def instability_metrics(self, result: SegmentationResult, genome: str) -> InstabilityMetrics:
        scratch = self._scratch("metrics")
        self._rscript(
            scratch,
            "metrics",
            rds_path=result.handle,
            genome=genome,
            metrics_path=scratch / "metrics.tsv",
            arm_level_path=scratch / "arm_level.tsv",
        )
        row = _read_table(scratch / "metrics.tsv").iloc[0]
        return InstabilityMetrics(
            genome_doubled=_optional(row["genome_doubled"], bool),
            fraction_cna=_optional(row["fraction_cna"], float),
            hypoploid=_optional(row["hypoploid"], bool),
            fraction_loh=_optional(row["fraction_loh"], float),
            lst=_optional(row["lst"], int),
            ntai=_optional(row["ntai"], int),
            hrd_loh=_optional(row["hrd_loh"], int),
            arm_level=_read_verbatim(scratch / "arm_level.tsv"),
        )

    def check_fit(self, result: SegmentationResult, genome: str) -> Dict[str, Any]:
        scratch = self._scratch("check_fit")
        self._rscript(scratch, "check_fit", rds_path=result.handle, genome=genome, qc_path=scratch / "qc.tsv")
        return _read_verbatim(scratch / "qc.tsv").iloc[0].to_dict()

    def gene_level_changes(self, result: SegmentationResult, genome: str) -> pd.DataFrame:
        scratch = self._scratch("gene_level")
        self._rscript(
            scratch,
            "gene_level",
            rds_path=result.handle,
            genome=genome,
            gene_level_path=scratch / "gene_level.tsv",
        )
        return _read_verbatim(scratch / "gene_level.tsv")

    def save_result(self, result: SegmentationResult, path: str | Path) -> None:
        if result.handle is None or not Path(result.handle).exists():
            raise FileNotFoundError(f"No serialized FACETS object for pass {result.params.label!r}")
        shutil.copyfile(result.handle, path)

    def write_legacy(
        self,
        result: SegmentationResult,
        *,
        directory: str | Path,
        sample_id: str,
        counts_file: str,
        run_type: str,
        run_details: pd.DataFrame,
    ) -> None:
        scratch = self._scratch("legacy")
        details_path = scratch / "run_details.tsv"
        write_tsv(run_details, details_path)
        self._rscript(
            scratch,
            "legacy",
            rds_path=result.handle,
            run_details_path=details_path,
            directory=Path(directory).resolve(),
            sample_id=sample_id,
            counts_file=counts_file,
            run_type=run_type,
        )
