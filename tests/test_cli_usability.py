import subprocess
import sys
from pathlib import Path

import pytest

from facetsrunner.cli import build_parser, config_from_args


def _run_cli(args: list[str]) -> subprocess.CompletedProcess:
    return subprocess.run(
        [sys.executable, "-m", "facetsrunner"] + args,
        check=False,
        capture_output=True,
        text=True,
    )


@pytest.mark.parametrize(
    "omitted, flag",
    [
        ("-f", "--counts-file"),
        ("-D", "--directory"),
        ("-fl", "--facets-lib-path"),
    ],
)
def test_missing_required_arguments(tmp_path: Path, counts_file: Path, omitted: str, flag: str) -> None:
    outdir = tmp_path / "out"
    given = {"-f": str(counts_file), "-D": str(outdir), "-fl": ""}
    del given[omitted]
    args = [x for pair in given.items() for x in pair]

    cp = _run_cli(args)

    assert cp.returncode == 2
    assert flag in cp.stderr
    assert not outdir.exists()
    assert list(tmp_path.iterdir()) == [counts_file]


def test_dry_run_lists_outputs_without_writing(tmp_path: Path, counts_file: Path) -> None:
    outdir = tmp_path / "out"
    cp = _run_cli(["-f", str(counts_file), "-D", str(outdir), "-fl", "", "--dry-run"])
    assert cp.returncode == 0
    assert "Dry-run" in cp.stdout
    assert "single-pass" in cp.stdout
    assert "TUMOR_NORMAL.rds" in cp.stdout
    assert "TUMOR_NORMAL_diplogR.adjusted.seg" in cp.stdout
    assert not outdir.exists()


def test_bare_purity_cval_plans_two_passes(tmp_path: Path, counts_file: Path) -> None:
    cp = _run_cli(
        ["-f", str(counts_file), "-D", str(tmp_path / "out"), "-fl", "", "-e", "-pc", "--dry-run"]
    )
    assert cp.returncode == 0
    assert "two-pass" in cp.stdout
    assert "TUMOR_NORMAL_purity.png" in cp.stdout
    assert "TUMOR_NORMAL_hisens.rds" in cp.stdout
    assert "TUMOR_NORMAL.qc.txt" in cp.stdout


def test_missing_counts_file_exits_2(tmp_path: Path) -> None:
    cp = _run_cli(["-f", str(tmp_path / "missing.dat.gz"), "-D", str(tmp_path / "out"), "-fl", ""])
    assert cp.returncode == 2
    assert "Counts file not found" in cp.stderr


def test_missing_rscript_exits_2(tmp_path: Path, counts_file: Path) -> None:
    cp = _run_cli(
        [
            "-f",
            str(counts_file),
            "-D",
            str(tmp_path / "out"),
            "-fl",
            "",
            "--rscript-path",
            "definitely-not-rscript-xyz",
        ]
    )
    assert cp.returncode == 2
    assert "not found in your PATH" in cp.stderr


@pytest.mark.parametrize(
    "extra, expected",
    [
        ([], (None, False)),
        (["-pc"], (100, False)),
        (["-pc", "500", "-l"], (500, True)),
        (["-l", "FALSE"], (None, False)),
    ],
)
def test_optional_value_flags(extra, expected) -> None:
    args = build_parser().parse_args(["-f", "x/S1.dat.gz", "-D", "out", "-fl", ""] + extra)
    config = config_from_args(args)
    assert (config.purity_cval, config.legacy_output) == expected
    assert config.sample_id == "S1"


def test_invalid_genome_rejected(tmp_path: Path) -> None:
    cp = _run_cli(["-f", "x.gz", "-D", str(tmp_path / "out"), "-fl", "", "-g", "mm10"])
    assert cp.returncode == 2
    assert "invalid choice" in cp.stderr
