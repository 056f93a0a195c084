from pathlib import Path

from seqartifacts.counter import ArtifactCounter
from seqartifacts.models import Mate, Strand
from seqartifacts.writers import write_reports


def _read_table(path: str) -> list[list[str]]:
    return [line.rstrip("\n").split("\t") for line in Path(path).read_text().splitlines()]


def test_write_reports(tmp_path: Path) -> None:
    counter = ArtifactCounter("S", "L", 1)
    counter.record("ACA", "A", Mate.FIRST, Strand.FORWARD)
    report = counter.finish()

    outputs = write_reports(tmp_path / "out" / "sample", [report], contexts_to_print=["aca"], oxog=True)
    assert set(outputs) == {
        "pre_adapter_summary",
        "pre_adapter_detail",
        "bait_bias_summary",
        "bait_bias_detail",
        "oxog",
    }

    summary = _read_table(outputs["pre_adapter_summary"])
    assert summary[0][:4] == ["SAMPLE_ALIAS", "LIBRARY", "REF_BASE", "ALT_BASE"]
    assert len(summary) == 1 + 12
    name_col = summary[0].index("ARTIFACT_NAME")
    assert {row[name_col] for row in summary[1:]} == {"OxoG", "Deamination", "NA"}

    # only ACA survives the filter, once per substitution of C
    detail = _read_table(outputs["pre_adapter_detail"])
    assert len(detail) == 1 + 3
    ctx_col = detail[0].index("CONTEXT")
    assert {row[ctx_col] for row in detail[1:]} == {"ACA"}
    err_col = detail[0].index("ERROR_RATE")
    assert "1.000000" in [row[err_col] for row in detail[1:]]

    # the OxoG view is built from all contexts, not just the printed ones
    assert len(_read_table(outputs["oxog"])) == 1 + 16
