from pathlib import Path

import pandas as pd

from facetsrunner.pipeline import planned_outputs, run_pipeline

from conftest import FakeEngine


def _files(directory: Path) -> set:
    return {p.name for p in directory.iterdir()}


def test_single_pass_outputs(make_config, engine: FakeEngine) -> None:
    config = make_config()

    run = run_pipeline(config, engine)

    out = Path(config.directory)
    assert _files(out) == {
        "TUMOR_NORMAL_diplogR.adjusted.seg",
        "TUMOR_NORMAL_diplogR.unadjusted.seg",
        "TUMOR_NORMAL.png",
        "TUMOR_NORMAL.txt",
        "TUMOR_NORMAL.rds",
    }
    assert len(engine.calls) == 1
    assert engine.calls[0].label == ""
    assert engine.calls[0].dip_log_r is None
    assert len(run.results) == 1

    details = pd.read_csv(out / "TUMOR_NORMAL.txt", sep="\t")
    assert len(details) == 1
    assert details["dipLogR"].iloc[0] == -0.14

    seg = pd.read_csv(out / "TUMOR_NORMAL_diplogR.adjusted.seg", sep="\t")
    assert list(seg.columns) == ["ID", "chrom", "loc.start", "loc.end", "num.mark", "seg.mean"]
    assert len(seg) == 4


def test_two_pass_hands_dip_log_r_to_hisens(make_config) -> None:
    engine = FakeEngine(estimated_dip_log_r=-0.21)
    config = make_config(purity_cval=100, cval=50)

    run_pipeline(config, engine)

    purity, hisens = engine.calls
    assert (purity.label, purity.cval, purity.dip_log_r) == ("purity", 100, None)
    assert (hisens.label, hisens.cval, hisens.dip_log_r) == ("hisens", 50, -0.21)

    out = Path(config.directory)
    files = _files(out)
    for label in ("purity", "hisens"):
        assert f"TUMOR_NORMAL_{label}.png" in files
        assert f"TUMOR_NORMAL_{label}.rds" in files
    details = pd.read_csv(out / "TUMOR_NORMAL.txt", sep="\t")
    assert details["run_type"].tolist() == ["purity", "hisens"]


def test_manual_dip_log_r_reaches_first_pass(make_config, engine: FakeEngine) -> None:
    run_pipeline(make_config(purity_cval=100, dip_log_r=0.05), engine)
    assert [c.dip_log_r for c in engine.calls] == [0.05, 0.05]


def test_everything_writes_instability_outputs(make_config, engine: FakeEngine) -> None:
    config = make_config(purity_cval=100, everything=True)

    run_pipeline(config, engine)

    out = Path(config.directory)
    qc = pd.read_csv(out / "TUMOR_NORMAL.qc.txt", sep="\t")
    assert list(qc.columns[:2]) == ["sample", "cval"]
    assert qc["cval"].tolist() == [100, 50]

    gene = pd.read_csv(out / "TUMOR_NORMAL.gene_level.txt", sep="\t")
    arm = pd.read_csv(out / "TUMOR_NORMAL.arm_level.txt", sep="\t")
    assert gene.columns[0] == "sample" and len(gene) == 1
    assert arm.columns[0] == "sample" and len(arm) == 1

    details = pd.read_csv(out / "TUMOR_NORMAL.txt", sep="\t")
    for col in ("genome_doubled", "fraction_cna", "hypoploid", "fraction_loh", "lst", "ntai", "hrd_loh"):
        assert col in details.columns
    assert details["genome_doubled"].tolist() == [True, True]


def test_legacy_output_replaces_rds_and_details(make_config, engine: FakeEngine) -> None:
    config = make_config(purity_cval=100, legacy_output=True)

    run_pipeline(config, engine)

    files = _files(Path(config.directory))
    assert not any(name.endswith(".rds") for name in files)
    assert "TUMOR_NORMAL.txt" not in files
    assert "TUMOR_NORMAL_hisens.cncf.txt" in files
    assert "TUMOR_NORMAL_purity.Rdata" in files
    assert [c["run_type"] for c in engine.legacy_calls] == ["hisens", "purity"]
    assert all(c["rows"] == 2 for c in engine.legacy_calls)


def test_planned_outputs_match_written_files(make_config, engine: FakeEngine) -> None:
    for overrides in ({}, {"purity_cval": 100, "everything": True}, {"legacy_output": True}):
        config = make_config(directory=str(Path(make_config().directory) / str(len(overrides))), **overrides)
        run = run_pipeline(config, engine)
        assert [str(p) for p in run.outputs] == [str(p) for p in planned_outputs(config)]
        assert {p.name for p in planned_outputs(config)} == _files(Path(config.directory))


def test_runs_are_deterministic(make_config, tmp_path: Path) -> None:
    a = make_config(directory=str(tmp_path / "a"), purity_cval=100, everything=True)
    b = make_config(directory=str(tmp_path / "b"), purity_cval=100, everything=True)

    run_pipeline(a, FakeEngine())
    run_pipeline(b, FakeEngine())

    for name in ("TUMOR_NORMAL.txt", "TUMOR_NORMAL_hisens_diplogR.adjusted.seg", "TUMOR_NORMAL.qc.txt"):
        assert (tmp_path / "a" / name).read_bytes() == (tmp_path / "b" / name).read_bytes()
