"""Drive artifact counters from a coordinate-sorted BAM.

This module is the only place that touches reads: it applies the read- and base-level
filters, extracts the reference context around each aligned base and hands clean
observation events to one :class:`~seqartifacts.counter.ArtifactCounter` per library.
"""

from __future__ import annotations

import bisect
import logging
import time
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

import numpy as np
import pysam
from tqdm import tqdm

from .counter import ArtifactCounter, ArtifactReport
from .models import Mate, Strand
from .utils import open_textmaybe_gzip, phred_string_to_quals

logger = logging.getLogger(__name__)

UNKNOWN_LIBRARY = "UnknownLibrary"
UNKNOWN_SAMPLE = "UnknownSample"

_ACGT = frozenset("ACGT")


@dataclass(frozen=True)
class IntervalMask:
    """Merged, sorted 0-based half-open intervals on one contig."""

    starts: List[int]
    ends: List[int]

    def contains(self, pos0: int) -> bool:
        i = bisect.bisect_right(self.starts, pos0) - 1
        return i >= 0 and pos0 < self.ends[i]


def load_intervals(bed_path: str) -> Dict[str, IntervalMask]:
    """Load a BED file into per-contig masks (overlapping intervals are merged)."""
    raw: Dict[str, List[Tuple[int, int]]] = {}
    with open_textmaybe_gzip(bed_path, "rt") as fh:
        for line in fh:
            if not line.strip() or line.startswith(("#", "track", "browser")):
                continue
            parts = line.rstrip("\n").split("\t")
            if len(parts) < 3:
                raise ValueError(f"Malformed BED line in {bed_path}: {line.rstrip()}")
            raw.setdefault(parts[0], []).append((int(parts[1]), int(parts[2])))

    masks: Dict[str, IntervalMask] = {}
    for chrom, ivs in raw.items():
        ivs.sort()
        starts: List[int] = []
        ends: List[int] = []
        for s, e in ivs:
            if starts and s <= ends[-1]:
                ends[-1] = max(ends[-1], e)
            else:
                starts.append(s)
                ends.append(e)
        masks[chrom] = IntervalMask(starts=starts, ends=ends)
    logger.info("Loaded intervals on %d contigs from %s", len(masks), bed_path)
    return masks


class KnownSitesMask:
    """Reference positions overlapped by a known-variant VCF, one boolean array per contig.

    An indexed VCF is fetched lazily, one contig at a time, as the BAM scan reaches it.
    An unindexed VCF is read once up front into arrays for every contig it touches.
    """

    def __init__(self, vcf_path: str, contig_lengths: Dict[str, int]) -> None:
        self.vcf_path = vcf_path
        self._lengths = dict(contig_lengths)
        self._vcf = pysam.VariantFile(vcf_path)
        self._preloaded: Optional[Dict[str, np.ndarray]] = None
        if self._vcf.index is None:
            logger.warning(
                "Known-sites VCF %s is not indexed; loading it whole. bgzip + tabix it for large files.",
                vcf_path,
            )
            self._preloaded = {}
            n = 0
            for rec in self._vcf:
                contig = str(rec.contig)
                if contig not in self._lengths:
                    continue
                if contig not in self._preloaded:
                    self._preloaded[contig] = np.zeros(self._lengths[contig], dtype=bool)
                self._preloaded[contig][rec.start : rec.stop] = True
                n += 1
            logger.info("Masking %d known variant records from %s", n, vcf_path)

    def for_contig(self, contig: str) -> Optional[np.ndarray]:
        """Boolean mask over the contig's 0-based positions, or None when nothing is masked."""
        if self._preloaded is not None:
            return self._preloaded.get(contig)
        if contig not in self._lengths or contig not in self._vcf.index:
            return None
        mask = np.zeros(self._lengths[contig], dtype=bool)
        n = 0
        for rec in self._vcf.fetch(contig):
            mask[rec.start : rec.stop] = True
            n += 1
        logger.debug("Masking %d known variant records on %s", n, contig)
        return mask

    def close(self) -> None:
        self._vcf.close()


def load_known_sites(vcf_path: str, contig_lengths: Dict[str, int]) -> KnownSitesMask:
    """Open a known-variant VCF as a per-contig mask for the given reference contigs."""
    return KnownSitesMask(vcf_path, contig_lengths)


def read_group_libraries(header: pysam.AlignmentHeader) -> Tuple[str, Dict[str, str], List[str]]:
    """Return (sample alias, read-group id -> library, sorted libraries)."""
    read_groups = header.to_dict().get("RG", [])
    samples = sorted({rg.get("SM") or UNKNOWN_SAMPLE for rg in read_groups})
    rg_to_lib = {rg["ID"]: rg.get("LB") or UNKNOWN_LIBRARY for rg in read_groups}
    libraries = sorted(set(rg_to_lib.values())) or [UNKNOWN_LIBRARY]
    sample_alias = ",".join(samples) if samples else UNKNOWN_SAMPLE
    return sample_alias, rg_to_lib, libraries


def read_skip_reason(
    read: pysam.AlignedSegment,
    *,
    min_mapq: int,
    min_insert_size: int,
    max_insert_size: int,
) -> Optional[str]:
    """Name of the first read-level filter the read fails, or None to keep it."""
    if read.is_unmapped:
        return "reads_skipped_unmapped"
    if read.is_secondary or read.is_supplementary:
        return "reads_skipped_not_primary"
    if read.is_duplicate:
        return "reads_skipped_duplicates"
    if read.is_qcfail:
        return "reads_skipped_qcfail"
    if read.mapping_quality < min_mapq:
        return "reads_skipped_mapq"
    insert = abs(int(read.template_length))
    if (min_insert_size > 0 and insert < min_insert_size) or (
        max_insert_size > 0 and insert > max_insert_size
    ):
        return "reads_skipped_insert_size"
    return None


def iter_observations(
    read: pysam.AlignedSegment,
    ref_seq: str,
    *,
    context_size: int,
    min_baseq: int,
    use_oq: bool = True,
    intervals: Optional[IntervalMask] = None,
    known_sites: Optional[np.ndarray] = None,
) -> Iterator[Tuple[str, str]]:
    """Yield (reference context, called base) for every usable aligned base of a read.

    ``ref_seq`` is the upper-case sequence of the read's contig and ``known_sites`` a
    boolean mask over the same contig.
    """
    seq = read.query_sequence
    if seq is None:
        return

    quals = None
    if use_oq and read.has_tag("OQ"):
        oq = str(read.get_tag("OQ"))
        if len(oq) == len(seq):
            quals = np.asarray(phred_string_to_quals(oq), dtype=np.int64)
        else:
            logger.debug(
                "Read %s: OQ length %d != read length %d; using base qualities",
                read.query_name,
                len(oq),
                len(seq),
            )
    if quals is None:
        if read.query_qualities is None:
            return
        quals = np.asarray(read.query_qualities, dtype=np.int64)
    passes_bq = quals >= min_baseq

    width = 2 * context_size + 1
    for qpos, rpos in read.get_aligned_pairs(matches_only=True):
        if intervals is not None and not intervals.contains(rpos):
            continue
        if known_sites is not None and rpos < len(known_sites) and known_sites[rpos]:
            continue
        start = rpos - context_size
        if start < 0 or start + width > len(ref_seq):
            continue
        context = ref_seq[start : start + width]
        if not _ACGT.issuperset(context):
            continue
        if not passes_bq[qpos]:
            continue
        base = seq[qpos].upper()
        if base not in _ACGT:
            continue
        yield context, base


def collect_artifact_metrics(
    *,
    bam_path: str,
    ref_fasta: str,
    context_size: int = 1,
    min_baseq: int = 20,
    min_mapq: int = 30,
    min_insert_size: int = 60,
    max_insert_size: int = 600,
    use_oq: bool = True,
    intervals_bed: Optional[str] = None,
    known_sites_vcf: Optional[str] = None,
    progress: bool = True,
) -> Tuple[List[ArtifactReport], Dict[str, object]]:
    """Main workhorse: scan a BAM, count artifacts per library and return finished reports.

    Returns
    -------
    reports:
        One :class:`ArtifactReport` per library, sorted by library name.
    run:
        Settings, read/base counters and runtime, suitable for ``summary.json``.
    """
    t0 = time.time()
    intervals = load_intervals(intervals_bed) if intervals_bed else None

    counts: Dict[str, int] = {
        "reads_total": 0,
        "reads_used": 0,
        "reads_skipped_unmapped": 0,
        "reads_skipped_not_primary": 0,
        "reads_skipped_duplicates": 0,
        "reads_skipped_qcfail": 0,
        "reads_skipped_mapq": 0,
        "reads_skipped_insert_size": 0,
        "reads_skipped_library": 0,
        "bases_counted": 0,
    }

    with pysam.AlignmentFile(bam_path, "rb") as bam, pysam.FastaFile(ref_fasta) as fasta:
        sample_alias, rg_to_lib, libraries = read_group_libraries(bam.header)
        counters = {lib: ArtifactCounter(sample_alias, lib, context_size) for lib in libraries}
        logger.info("Counting %d libraries for sample %s", len(counters), sample_alias)
        known = (
            load_known_sites(
                known_sites_vcf,
                {name: bam.get_reference_length(name) for name in bam.references},
            )
            if known_sites_vcf
            else None
        )

        try:
            cur_contig: Optional[str] = None
            ref_seq = ""
            known_mask: Optional[np.ndarray] = None

            it: Iterable[pysam.AlignedSegment] = bam.fetch(until_eof=True)
            if progress:
                it = tqdm(it, unit="read", desc="Counting artifacts")

            for read in it:
                counts["reads_total"] += 1
                reason = read_skip_reason(
                    read,
                    min_mapq=min_mapq,
                    min_insert_size=min_insert_size,
                    max_insert_size=max_insert_size,
                )
                if reason is not None:
                    counts[reason] += 1
                    continue

                rg = read.get_tag("RG") if read.has_tag("RG") else None
                library = rg_to_lib.get(str(rg), UNKNOWN_LIBRARY) if rg is not None else UNKNOWN_LIBRARY
                counter = counters.get(library)
                if counter is None:
                    counts["reads_skipped_library"] += 1
                    continue

                contig = read.reference_name
                if contig != cur_contig:
                    ref_seq = fasta.fetch(contig).upper()
                    known_mask = known.for_contig(contig) if known is not None else None
                    cur_contig = contig
                    logger.debug("Loaded reference contig %s (%d bp)", contig, len(ref_seq))

                mate = Mate.SECOND if read.is_paired and read.is_read2 else Mate.FIRST
                strand = Strand.REVERSE if read.is_reverse else Strand.FORWARD
                counts["reads_used"] += 1
                for context, base in iter_observations(
                    read,
                    ref_seq,
                    context_size=context_size,
                    min_baseq=min_baseq,
                    use_oq=use_oq,
                    intervals=intervals.get(contig, IntervalMask([], [])) if intervals is not None else None,
                    known_sites=known_mask,
                ):
                    counter.record(context, base, mate, strand)
                    counts["bases_counted"] += 1
        finally:
            if known is not None:
                known.close()

    reports = [counters[lib].finish() for lib in sorted(counters)]

    run: Dict[str, object] = {
        "bam_path": bam_path,
        "ref_fasta": ref_fasta,
        "sample_alias": sample_alias,
        "libraries": sorted(counters),
        "context_size": int(context_size),
        "min_baseq": int(min_baseq),
        "min_mapq": int(min_mapq),
        "min_insert_size": int(min_insert_size),
        "max_insert_size": int(max_insert_size),
        "use_oq": bool(use_oq),
        "intervals_bed": intervals_bed,
        "known_sites_vcf": known_sites_vcf,
        "counts": counts,
        "runtime_seconds": float(time.time() - t0),
    }
    return reports, run
