from __future__ import annotations

import tracemalloc
from pathlib import Path
from typing import Dict, List

import numpy as np
import pysam

from seqartifacts.accumulator import MAX_QSCORE
from seqartifacts.collector import (
    collect_artifact_metrics,
    iter_observations,
    load_intervals,
    load_known_sites,
    read_skip_reason,
)
from seqartifacts.toy_data import ARTIFACT_LIBRARY, CLEAN_LIBRARY, make_toy_data

REF = "AACAGGTTCA"


def make_read(seq: str, start: int = 1, quals: str | None = None, flag: int = 0) -> pysam.AlignedSegment:
    a = pysam.AlignedSegment()
    a.query_name = "r1"
    a.query_sequence = seq
    a.flag = flag
    a.reference_start = start
    a.mapping_quality = 60
    a.cigartuples = [(0, len(seq))]  # M
    a.query_qualities = pysam.qualitystring_to_array(quals or "I" * len(seq))
    return a


def test_iter_observations_filters_bases():
    # qualities: 40 40 40 10 40; third base is N
    read = make_read("ACNGG", quals="III+I")
    obs = list(iter_observations(read, REF, context_size=1, min_baseq=20))
    assert obs == [("AAC", "A"), ("ACA", "C"), ("GGT", "G")]


def test_iter_observations_masks():
    read = make_read("ACAGG")
    known = np.zeros(len(REF), dtype=bool)
    known[2:4] = True
    obs = list(iter_observations(read, REF, context_size=1, min_baseq=20, known_sites=known))
    assert [c for c, _ in obs] == ["AAC", "AGG", "GGT"]


def test_iter_observations_skips_clipped_contexts():
    read = make_read("AACAG", start=0)
    obs = list(iter_observations(read, REF, context_size=2, min_baseq=20))
    assert [c for c, _ in obs] == ["AACAG", "ACAGG", "CAGGT"]


def test_iter_observations_original_qualities():
    read = make_read("ACAGG")
    read.set_tag("OQ", "+++++")
    assert list(iter_observations(read, REF, context_size=1, min_baseq=20)) == []
    assert len(list(iter_observations(read, REF, context_size=1, min_baseq=20, use_oq=False))) == 5


def test_iter_observations_ignores_truncated_original_qualities():
    read = make_read("ACAGG", quals="II+II")
    read.set_tag("OQ", "+++")
    obs = list(iter_observations(read, REF, context_size=1, min_baseq=20))
    assert [c for c, _ in obs] == ["AAC", "ACA", "AGG", "GGT"]


def test_read_skip_reason():
    read = make_read("ACAGG")
    assert read_skip_reason(read, min_mapq=30, min_insert_size=60, max_insert_size=600) == (
        "reads_skipped_insert_size"
    )
    assert read_skip_reason(read, min_mapq=30, min_insert_size=0, max_insert_size=0) is None
    assert read_skip_reason(read, min_mapq=61, min_insert_size=0, max_insert_size=0) == "reads_skipped_mapq"

    dup = make_read("ACAGG", flag=0x400)
    assert read_skip_reason(dup, min_mapq=30, min_insert_size=0, max_insert_size=0) == (
        "reads_skipped_duplicates"
    )
    secondary = make_read("ACAGG", flag=0x100)
    assert read_skip_reason(secondary, min_mapq=30, min_insert_size=0, max_insert_size=0) == (
        "reads_skipped_not_primary"
    )


def test_load_intervals_merges(tmp_path: Path) -> None:
    bed = tmp_path / "targets.bed"
    bed.write_text("track name=x\nchr1\t10\t20\nchr1\t15\t30\nchr1\t40\t50\n", encoding="utf-8")
    mask = load_intervals(str(bed))["chr1"]
    assert mask.starts == [10, 40]
    assert mask.ends == [30, 50]
    assert not mask.contains(9)
    assert mask.contains(10)
    assert mask.contains(29)
    assert not mask.contains(30)
    assert mask.contains(45)


def test_collect_on_toy_data(tmp_path: Path) -> None:
    toy = make_toy_data(outdir=tmp_path / "toy")
    reports, run = collect_artifact_metrics(bam_path=toy["bam"], ref_fasta=toy["ref_fa"], progress=False)

    assert [r.library for r in reports] == [CLEAN_LIBRARY, ARTIFACT_LIBRARY]
    assert run["sample_alias"] == "TOY"
    counts = run["counts"]
    assert counts["reads_used"] == counts["reads_total"] > 0
    assert counts["bases_counted"] > 0

    clean, oxo = reports
    assert all(m.total_qscore == MAX_QSCORE for m in clean.pre_adapter_summary)

    pre = {(m.ref_base, m.alt_base): m for m in oxo.pre_adapter_summary}
    assert pre[("G", "T")].total_qscore < 20
    assert pre[("C", "A")].total_qscore == MAX_QSCORE
    assert pre[("A", "C")].total_qscore == MAX_QSCORE

    # read1 forward / read2 reverse only: every G>T lands in the pre-adapter orientation
    g_to_t = [d for d in oxo.pre_adapter_detail if (d.ref_base, d.alt_base) == ("G", "T")]
    assert sum(d.pro_alt_bases for d in g_to_t) > 0
    assert sum(d.con_alt_bases for d in g_to_t) == 0


def test_collect_with_intervals(tmp_path: Path) -> None:
    toy = make_toy_data(outdir=tmp_path / "toy")
    bed = tmp_path / "none.bed"
    bed.write_text("chr2\t0\t100\n", encoding="utf-8")
    reports, run = collect_artifact_metrics(
        bam_path=toy["bam"], ref_fasta=toy["ref_fa"], intervals_bed=str(bed), progress=False
    )
    assert run["counts"]["bases_counted"] == 0
    for rep in reports:
        assert all(m.total_qscore == MAX_QSCORE for m in rep.pre_adapter_summary)


def write_vcf(path: Path, contig_lengths: Dict[str, int], records: List[str]) -> Path:
    lines = ["##fileformat=VCFv4.2"]
    lines += [f"##contig=<ID={name},length={length}>" for name, length in contig_lengths.items()]
    lines += [
        '##INFO=<ID=END,Number=1,Type=Integer,Description="End position">',
        '##INFO=<ID=SVTYPE,Number=1,Type=String,Description="Structural variant type">',
        "#CHROM\tPOS\tID\tREF\tALT\tQUAL\tFILTER\tINFO",
    ]
    lines += records
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


KNOWN_RECORDS = [
    "chr1\t3\trs1\tC\tT\t.\t.\t.",
    "chr1\t6\t.\tN\t<DEL>\t.\t.\tSVTYPE=DEL;END=8",
    "chr2\t2\trs2\tA\tG\t.\t.\t.",
]


def test_load_known_sites_masks_record_spans(tmp_path: Path) -> None:
    vcf = write_vcf(tmp_path / "known.vcf", {"chr1": 20, "chr2": 20}, KNOWN_RECORDS)
    indexed = pysam.tabix_index(str(vcf), preset="vcf", force=True, keep_original=True)

    for path in (str(vcf), indexed):
        known = load_known_sites(path, {"chr1": 20})
        try:
            mask = known.for_contig("chr1")
            assert mask is not None
            assert np.flatnonzero(mask).tolist() == [2, 5, 6, 7]
            # contigs absent from the reference are never masked
            assert known.for_contig("chr2") is None
        finally:
            known.close()


def test_known_sites_large_deletion_stays_compact(tmp_path: Path) -> None:
    vcf = write_vcf(
        tmp_path / "sv.vcf",
        {"chr1": 6_000_000},
        ["chr1\t1000\t.\tN\t<DEL>\t.\t.\tSVTYPE=DEL;END=5001000"],
    )
    tracemalloc.start()
    try:
        known = load_known_sites(str(vcf), {"chr1": 6_000_000})
        mask = known.for_contig("chr1")
        known.close()
        _, peak = tracemalloc.get_traced_memory()
    finally:
        tracemalloc.stop()

    assert peak < 50 * 1024 * 1024
    assert mask is not None
    assert int(mask.sum()) == 5_000_001
    assert not mask[998] and mask[999] and mask[5_000_999] and not mask[5_001_000]


def test_collect_with_known_sites(tmp_path: Path) -> None:
    toy = make_toy_data(outdir=tmp_path / "toy")
    vcf = write_vcf(
        tmp_path / "known.vcf",
        {"chr1": 1000},
        ["chr1\t1\t.\tN\t<DEL>\t.\t.\tSVTYPE=DEL;END=1000"],
    )
    indexed = pysam.tabix_index(str(vcf), preset="vcf", force=True)

    reports, run = collect_artifact_metrics(
        bam_path=toy["bam"], ref_fasta=toy["ref_fa"], known_sites_vcf=indexed, progress=False
    )
    assert run["counts"]["reads_used"] > 0
    assert run["counts"]["bases_counted"] == 0
    for rep in reports:
        assert all(m.total_qscore == MAX_QSCORE for m in rep.pre_adapter_summary)
