import gzip
from pathlib import Path
from typing import Any, Dict, List

import pandas as pd
import pytest

from facetsrunner.models import InstabilityMetrics, PassParams, RunConfig, SegmentationResult
from facetsrunner.pipeline import LEGACY_SUFFIXES

PILEUP_HEADER = "Chromosome,Position,Ref,Alt,File1R,File1A,File1E,File1D,File2R,File2A,File2E,File2D"


def make_result(params: PassParams, *, dip_log_r: float, purity=0.62, ploidy=2.87) -> SegmentationResult:
    snps = pd.DataFrame(
        {
            "chrom": [1, 1, 1, 1, 2, 2, 2, 2],
            "maploc": [1000, 2000, 3000, 4000, 500, 1500, 2500, 3500],
            "cnlr": [0.12, 0.08, -0.31, -0.28, 0.01, -0.02, 0.49, 0.52],
            "valor": [0.1, -0.1, 1.2, -1.1, 0.05, 0.0, 0.8, -0.7],
            "het": [1, 0, 1, 1, 1, 0, 1, 1],
            "seg": [1, 1, 2, 2, 3, 3, 4, 4],
        }
    )
    segs = pd.DataFrame(
        {
            "chrom": [1, 1, 2, 2],
            "seg": [1, 2, 3, 4],
            "num.mark": [2, 2, 2, 2],
            "nhet": [1, 2, 1, 2],
            "cnlr.median": [0.1, -0.3, 0.0, 0.5],
            "mafR": [0.01, 0.9, 0.0, 0.4],
            "start": [1000, 3000, 500, 2500],
            "end": [2000, 4000, 1500, 3500],
            "cf.em": [1.0, 0.6, 1.0, 0.8],
            "tcn.em": [2, 1, 2, 4],
            "lcn.em": [1, 0, 1, 1],
            "cf": [1.0, 0.58, 1.0, 0.81],
            "tcn": [2, 1, 2, 4],
            "lcn": [1, 0, 1, 1],
        }
    )
    return SegmentationResult(
        purity=purity,
        ploidy=ploidy,
        dip_log_r=dip_log_r,
        segs=segs,
        snps=snps,
        params=params,
        engine_version="0.6.2",
        flags=("dipLogR flag",) if params.label == "purity" else (),
    )


class FakeEngine:
    """In-process stand-in for FacetsEngine; records every pass it is asked to run."""

    def __init__(self, estimated_dip_log_r: float = -0.137) -> None:
        self.estimated_dip_log_r = estimated_dip_log_r
        self.calls: List[PassParams] = []
        self.legacy_calls: List[Dict[str, Any]] = []

    def run(self, read_counts, params):
        self.calls.append(params)
        dip = params.dip_log_r if params.dip_log_r is not None else self.estimated_dip_log_r
        return make_result(params, dip_log_r=dip)

    def instability_metrics(self, result, genome):
        return InstabilityMetrics(
            genome_doubled=True,
            fraction_cna=0.4321,
            hypoploid=False,
            fraction_loh=0.1789,
            lst=12,
            ntai=21,
            hrd_loh=9,
            arm_level=pd.DataFrame({"arm": ["1p"], "tcn": [1], "lcn": [0], "cn_state": ["HETLOSS"]}),
        )

    def check_fit(self, result, genome):
        return {"facets_qc": True, "dipLogR_flag": result.params.label == "purity", "n_amps": 0}

    def gene_level_changes(self, result, genome):
        return pd.DataFrame({"gene": ["TP53"], "chrom": [17], "tcn.em": [1], "cn_state": ["HETLOSS"]})

    def save_result(self, result, path):
        Path(path).write_text(f"rds {result.params.label}\n", encoding="utf-8")

    def write_legacy(self, result, *, directory, sample_id, counts_file, run_type, run_details):
        self.legacy_calls.append({"run_type": run_type, "rows": len(run_details)})
        name = f"{sample_id}_{run_type}" if run_type else sample_id
        for suffix in LEGACY_SUFFIXES:
            (Path(directory) / f"{name}{suffix}").write_text("legacy\n", encoding="utf-8")


def write_pileup(path: Path, rows: List[str], *, sep: str = ",") -> Path:
    lines = [PILEUP_HEADER.replace(",", sep)] + [r.replace(",", sep) for r in rows]
    with gzip.open(path, "wt") as fh:
        fh.write("\n".join(lines) + "\n")
    return path


@pytest.fixture
def counts_file(tmp_path: Path) -> Path:
    return write_pileup(
        tmp_path / "TUMOR_NORMAL.dat.gz",
        [
            "1,69511,A,G,0,40,0,0,10,30,0,0",
            "1,762273,G,A,20,22,0,0,15,25,0,0",
            "2,41200,C,T,18,20,1,0,30,11,0,0",
        ],
    )


@pytest.fixture
def engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def make_config(tmp_path: Path, counts_file: Path):
    def _make(**overrides) -> RunConfig:
        kwargs = dict(
            counts_file=str(counts_file),
            sample_id="TUMOR_NORMAL",
            directory=str(tmp_path / "out"),
            facets_lib_path="",
        )
        kwargs.update(overrides)
        return RunConfig(**kwargs)

    return _make
