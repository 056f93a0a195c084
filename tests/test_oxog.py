import pytest

from seqartifacts.accumulator import MAX_QSCORE
from seqartifacts.counter import ArtifactCounter
from seqartifacts.models import Mate, Strand
from seqartifacts.oxog import convert_to_oxog


def test_oxog_rows_for_c_contexts():
    counter = ArtifactCounter("S", "L", 1)
    counter.record("TGT", "T", Mate.FIRST, Strand.FORWARD)
    for _ in range(3):
        counter.record("TGT", "G", Mate.FIRST, Strand.FORWARD)
    report = counter.finish()

    rows = convert_to_oxog(report.pre_adapter_detail, report.bait_bias_detail)
    assert len(rows) == 16
    assert all(r.context[1] == "C" for r in rows)

    (aca,) = [r for r in rows if r.context == "ACA"]
    assert aca.ref_oxo_bases == 3
    assert aca.alt_oxo_bases == 1
    assert aca.total_bases == 4
    assert aca.oxidation_error_rate == pytest.approx(0.25)
    assert aca.oxidation_q == 6
    assert aca.c_ref_ref_bases == 0
    assert aca.g_ref_ref_bases == 3
    assert aca.g_ref_alt_bases == 1
    assert aca.c_ref_oxo_q == MAX_QSCORE
    assert aca.g_ref_oxo_error_rate == pytest.approx(0.25)
    assert aca.g_ref_oxo_q == 6


def test_oxog_requires_matching_rows():
    report = ArtifactCounter("S", "L", 1).finish()
    padm = list(report.pre_adapter_detail)
    bbdm = [b for b in report.bait_bias_detail if b.context != "ACA"]
    with pytest.raises(ValueError):
        convert_to_oxog(padm, bbdm)
