from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List

logger = logging.getLogger(__name__)


def check_bam_index(bam_path: str | Path) -> None:
    """Ensure a BAM has an index; raise ValueError with fix instructions."""
    bam = Path(bam_path)
    bai1 = bam.with_suffix(bam.suffix + ".bai")
    bai2 = bam.with_suffix(".bai")
    if bai1.exists() or bai2.exists():
        return
    raise ValueError(
        "BAM is not indexed. Run: samtools index " + str(bam)
    )


def check_fasta_index(fasta_path: str | Path) -> None:
    """Ensure a reference FASTA has a .fai index; raise ValueError with fix instructions."""
    fa = Path(fasta_path)
    fai = fa.with_suffix(fa.suffix + ".fai")
    if not fai.exists():
        raise ValueError("Reference FASTA is not indexed. Run: samtools faidx " + str(fa))


def check_context_size(context_size: int) -> None:
    if context_size < 0:
        raise ValueError(f"--context-size cannot be negative (got {context_size})")
    if context_size > 4:
        logger.warning(
            "context_size=%d registers %d contexts per accumulator; this is slow and memory hungry.",
            context_size,
            4 ** (2 * context_size + 1),
        )


def normalize_contexts(contexts: Iterable[str], context_size: int) -> List[str]:
    """Upper-case contexts to print and check they have the expected length and alphabet."""
    out: List[str] = []
    for c in contexts:
        cu = c.strip().upper()
        if len(cu) != 2 * context_size + 1 or not set(cu) <= set("ACGT"):
            raise ValueError(
                f"Context {c!r} must be {2 * context_size + 1} bases of A/C/G/T for "
                f"context_size={context_size}"
            )
        out.append(cu)
    return out
