from __future__ import annotations

import random
from pathlib import Path
from typing import Dict, List

import pysam

from .utils import ensure_outdir, write_json

TOY_CONTIG = "chr1"
TOY_REF_LENGTH = 1000
TOY_READ_LENGTH = 50
TOY_INSERT_SIZE = 150
# library carrying the injected G>T pre-adapter artifact, and a clean one
ARTIFACT_LIBRARY = "libOxo"
CLEAN_LIBRARY = "libClean"


def _write_fasta(path: Path, contig: str, seq: str) -> None:
    lines = [f">{contig}"]
    for i in range(0, len(seq), 60):
        lines.append(seq[i : i + 60])
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")


def _make_read(
    name: str,
    start0: int,
    seq: str,
    *,
    flag: int,
    mate_start0: int,
    tlen: int,
    read_group: str,
    mapq: int = 60,
) -> pysam.AlignedSegment:
    a = pysam.AlignedSegment()
    a.query_name = name
    a.query_sequence = seq
    a.flag = flag
    a.reference_id = 0
    a.reference_start = start0
    a.mapping_quality = mapq
    a.cigartuples = [(0, len(seq))]
    a.next_reference_id = 0
    a.next_reference_start = mate_start0
    a.template_length = tlen
    a.query_qualities = pysam.qualitystring_to_array("I" * len(seq))
    a.set_tag("RG", read_group, value_type="Z")
    return a


def _oxidize(seq: List[str], rng: random.Random, rate: float) -> None:
    """Turn G into T in place (as seen on the reference strand)."""
    for i, b in enumerate(seq):
        if b == "G" and rng.random() < rate:
            seq[i] = "T"


def make_toy_data(*, outdir: str | Path, artifact_rate: float = 0.2, seed: int = 7) -> Dict[str, str]:
    """Create a tiny reference and paired-end BAM with two libraries.

    Read pairs are laid out as read1 forward / read2 reverse. In library ``libOxo`` a
    fraction of reference G bases is read as T on both mates, which is the orientation
    signature of an oxidative pre-adapter artifact. Library ``libClean`` matches the
    reference exactly.

    The outputs include:
    - toy_ref.fa (+ .fai)
    - toy.bam (+ .bai)

    Returns
    -------
    dict
        Paths to the generated files.
    """
    outdir_p = ensure_outdir(outdir)
    rng = random.Random(seed)

    ref_seq = "".join(rng.choice("ACGT") for _ in range(TOY_REF_LENGTH))
    ref_fa = outdir_p / "toy_ref.fa"
    _write_fasta(ref_fa, TOY_CONTIG, ref_seq)
    pysam.faidx(str(ref_fa))

    bam_path = outdir_p / "toy.bam"
    header = {
        "HD": {"VN": "1.6", "SO": "coordinate"},
        "SQ": [{"SN": TOY_CONTIG, "LN": len(ref_seq)}],
        "RG": [
            {"ID": "rg_oxo", "SM": "TOY", "LB": ARTIFACT_LIBRARY},
            {"ID": "rg_clean", "SM": "TOY", "LB": CLEAN_LIBRARY},
        ],
    }

    reads: List[pysam.AlignedSegment] = []
    n_pairs = 0
    for rg, lib in (("rg_oxo", ARTIFACT_LIBRARY), ("rg_clean", CLEAN_LIBRARY)):
        for start1 in range(0, TOY_REF_LENGTH - TOY_INSERT_SIZE + 1, 5):
            start2 = start1 + TOY_INSERT_SIZE - TOY_READ_LENGTH
            seq1 = list(ref_seq[start1 : start1 + TOY_READ_LENGTH])
            seq2 = list(ref_seq[start2 : start2 + TOY_READ_LENGTH])
            if lib == ARTIFACT_LIBRARY:
                _oxidize(seq1, rng, artifact_rate)
                _oxidize(seq2, rng, artifact_rate)
            name = f"{lib}_{start1}"
            # 99 = paired, proper, mate reverse, read1; 147 = paired, proper, reverse, read2
            reads.append(
                _make_read(
                    name,
                    start1,
                    "".join(seq1),
                    flag=99,
                    mate_start0=start2,
                    tlen=TOY_INSERT_SIZE,
                    read_group=rg,
                )
            )
            reads.append(
                _make_read(
                    name,
                    start2,
                    "".join(seq2),
                    flag=147,
                    mate_start0=start1,
                    tlen=-TOY_INSERT_SIZE,
                    read_group=rg,
                )
            )
            n_pairs += 1

    reads.sort(key=lambda r: r.reference_start)

    with pysam.AlignmentFile(str(bam_path), "wb", header=header) as bam:
        for r in reads:
            bam.write(r)

    pysam.index(str(bam_path))

    summary = {
        "ref_fa": str(ref_fa),
        "bam": str(bam_path),
        "outdir": str(outdir_p),
        "read_pairs": str(n_pairs),
    }

    write_json(outdir_p / "toy_summary.json", summary)
    return summary
