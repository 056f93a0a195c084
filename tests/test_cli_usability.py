import shutil
import subprocess
import sys
from pathlib import Path

from seqartifacts.toy_data import make_toy_data


def _run_cli(args: list[str]) -> subprocess.CompletedProcess:
    return subprocess.run(
        [sys.executable, "-m", "seqartifacts"] + args,
        check=False,
        capture_output=True,
        text=True,
    )


def test_quickstart_output() -> None:
    cp = _run_cli(["quickstart"])
    assert cp.returncode == 0
    assert "seqartifacts collect" in cp.stdout
    assert "seqartifacts make-toy-data" in cp.stdout


def test_collect_dry_run_does_not_write_outputs(tmp_path: Path) -> None:
    toy = make_toy_data(outdir=tmp_path / "toy")
    outdir = tmp_path / "out"
    cp = _run_cli(
        [
            "collect",
            "--bam",
            toy["bam"],
            "--ref",
            toy["ref_fa"],
            "--output-prefix",
            str(outdir / "toy"),
            "--dry-run",
        ]
    )
    assert cp.returncode == 0
    assert "Dry-run" in cp.stdout
    assert not outdir.exists()


def test_make_toy_data_and_collect(tmp_path: Path) -> None:
    toy_dir = tmp_path / "toy"
    cp = _run_cli(["make-toy-data", "--outdir", str(toy_dir)])
    assert cp.returncode == 0

    outdir = tmp_path / "out"
    cp = _run_cli(
        [
            "collect",
            "--bam",
            str(toy_dir / "toy.bam"),
            "--ref",
            str(toy_dir / "toy_ref.fa"),
            "--output-prefix",
            str(outdir / "toy"),
            "--oxog",
            "--no-progress",
        ]
    )
    assert cp.returncode == 0, cp.stderr
    assert (outdir / "report.html").exists()
    assert (outdir / "summary.json").exists()
    for ext in (
        ".pre_adapter_summary_metrics",
        ".pre_adapter_detail_metrics",
        ".bait_bias_summary_metrics",
        ".bait_bias_detail_metrics",
        ".oxog_metrics",
    ):
        assert (outdir / ("toy" + ext)).exists()
    assert (outdir / "logs" / "collect.log").exists()


def test_unindexed_reference_message(tmp_path: Path) -> None:
    toy = make_toy_data(outdir=tmp_path / "toy")
    bare = tmp_path / "bare"
    bare.mkdir()
    ref = bare / "ref.fa"
    shutil.copy(toy["ref_fa"], ref)

    cp = _run_cli(
        [
            "collect",
            "--bam",
            toy["bam"],
            "--ref",
            str(ref),
            "--output-prefix",
            str(tmp_path / "out" / "toy"),
        ]
    )
    assert cp.returncode == 2
    assert "not indexed" in cp.stderr


def test_bad_context_to_print(tmp_path: Path) -> None:
    toy = make_toy_data(outdir=tmp_path / "toy")
    cp = _run_cli(
        [
            "collect",
            "--bam",
            toy["bam"],
            "--ref",
            toy["ref_fa"],
            "--output-prefix",
            str(tmp_path / "out" / "toy"),
            "--context-to-print",
            "ACGT",
            "--dry-run",
        ]
    )
    assert cp.returncode == 2
    assert "ValueError" in cp.stderr
