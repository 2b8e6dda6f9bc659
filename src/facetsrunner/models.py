from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

import pandas as pd

GENOMES = ("hg18", "hg19", "hg38")

_COUNTS_SUFFIX = re.compile(r"(\.dat\.gz|\.gz)$")


def default_sample_id(counts_file: str | Path) -> str:
    """Sample ID derived from the counts file name (``.dat.gz``/``.gz`` stripped)."""
    return _COUNTS_SUFFIX.sub("", Path(counts_file).name)


@dataclass(frozen=True)
class PassParams:
    """Parameters for one invocation of the segmentation engine.

    Attributes
    ----------
    label:
        ``""`` for a single-pass run, otherwise ``"purity"`` or ``"hisens"``.
    dip_log_r:
        Manual dipLogR, or None to let the engine estimate it.
    """

    label: str
    cval: int
    min_nhet: int
    dip_log_r: Optional[float]
    snp_nbhd: int
    ndepth: int
    genome: str
    seed: int


@dataclass(frozen=True)
class RunConfig:
    counts_file: str
    sample_id: str
    directory: str
    facets_lib_path: str
    everything: bool = False
    genome: str = "hg19"
    cval: int = 50
    purity_cval: Optional[int] = None
    min_nhet: int = 15
    purity_min_nhet: int = 15
    snp_window_size: int = 250
    normal_depth: int = 35
    dip_log_r: Optional[float] = None
    seed: int = 100
    legacy_output: bool = False
    rscript_path: str = "Rscript"

    def __post_init__(self) -> None:
        if self.genome not in GENOMES:
            raise ValueError(f"genome must be one of {', '.join(GENOMES)}, got {self.genome!r}")

    @property
    def two_pass(self) -> bool:
        return self.purity_cval is not None

    @property
    def prefix(self) -> Path:
        return Path(self.directory) / self.sample_id

    def pass_params(self, label: str, *, dip_log_r: Optional[float]) -> PassParams:
        if label == "purity":
            cval, min_nhet = self.purity_cval, self.purity_min_nhet
        else:
            cval, min_nhet = self.cval, self.min_nhet
        return PassParams(
            label=label,
            cval=int(cval),
            min_nhet=int(min_nhet),
            dip_log_r=dip_log_r,
            snp_nbhd=self.snp_window_size,
            ndepth=self.normal_depth,
            genome=self.genome,
            seed=self.seed,
        )


@dataclass(frozen=True, eq=False)
class ReadCounts:
    """Tumor/normal allele depths per SNP locus.

    ``table`` columns: Chromosome, Position, NOR.DP, NOR.RD, TUM.DP, TUM.RD.
    """

    table: pd.DataFrame
    source: str

    def __len__(self) -> int:
        return len(self.table)


@dataclass(frozen=True)
class SegmentationResult:
    """Output of one segmentation pass.

    Attributes
    ----------
    purity:
        Tumor purity in [0, 1], or None when the engine reports NA.
    segs:
        One row per segment (chrom, seg, start, end, num.mark, nhet, cnlr.median,
        mafR, tcn.em, lcn.em, cf.em, tcn, lcn, cf).
    snps:
        One row per SNP (chrom, maploc, cnlr, valor, het, seg).
    handle:
        Engine-native serialized result; persistence copies or exports it.
    """

    purity: Optional[float]
    ploidy: float
    dip_log_r: float
    segs: pd.DataFrame = field(compare=False)
    snps: pd.DataFrame = field(compare=False)
    params: PassParams
    engine_version: str
    flags: Tuple[str, ...] = ()
    handle: Optional[Path] = field(default=None, compare=False)


@dataclass(frozen=True)
class InstabilityMetrics:
    genome_doubled: Optional[bool]
    fraction_cna: Optional[float]
    hypoploid: Optional[bool]
    fraction_loh: Optional[float]
    lst: Optional[int]
    ntai: Optional[int]
    hrd_loh: Optional[int]
    arm_level: pd.DataFrame = field(default_factory=pd.DataFrame, compare=False)
