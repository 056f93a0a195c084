from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Dict, Iterable, List

from . import transitions
from .contexts import center_base
from .models import (
    BaitBiasDetailMetric,
    DetailPair,
    InternalConsistencyError,
    Mate,
    PreAdapterDetailMetric,
    Strand,
)
from .transitions import Transition, reverse_complement

logger = logging.getLogger(__name__)

MAX_QSCORE = 100


def error_rate(alt: int, ref: int) -> float:
    denom = alt + ref
    if denom <= 0:
        return 0.0
    return alt / denom


def quality_score(alt: int, ref: int) -> int:
    """Phred-scaled quality of the alt fraction.

    MAX_QSCORE is reserved for "no alt bases seen"; any observed alt base scores below it.
    """
    if alt == 0:
        return MAX_QSCORE
    q = -10.0 * math.log10(error_rate(alt, ref))
    # round half up
    return min(int(math.floor(q + 0.5)), MAX_QSCORE - 1)


@dataclass
class OrientationTally:
    """Observation counts for one (transition, context) cell, split by mate and strand."""

    r1_pos: int = 0
    r1_neg: int = 0
    r2_pos: int = 0
    r2_neg: int = 0

    def increment(self, mate: Mate, strand: Strand) -> None:
        if mate is Mate.SECOND:
            if strand is Strand.REVERSE:
                self.r2_neg += 1
            else:
                self.r2_pos += 1
        else:
            if strand is Strand.REVERSE:
                self.r1_neg += 1
            else:
                self.r1_pos += 1

    @property
    def total(self) -> int:
        return self.r1_pos + self.r1_neg + self.r2_pos + self.r2_neg


class ContextAccumulator:
    """Tallies per (transition, context) for a fixed set of equal-length contexts.

    Every context is registered under the four transitions whose reference base is the
    context's center base. Looking a context up under any other transition is a bookkeeping
    error and raises :class:`InternalConsistencyError`.
    """

    def __init__(self, contexts: Iterable[str]) -> None:
        self._cells: Dict[Transition, Dict[str, OrientationTally]] = {
            txn: {} for txn in transitions.values()
        }
        length = None
        for cxt in sorted(set(contexts)):
            if length is None:
                length = len(cxt)
            elif len(cxt) != length:
                raise InternalConsistencyError(
                    f"Contexts must all have the same length: {cxt!r} is not {length} bases"
                )
            ref = center_base(cxt)
            for called in transitions.BASES:
                self._cells[transitions.transition_of(ref, called)][cxt] = OrientationTally()
        self.context_length = length

    def tally(self, txn: Transition, context: str) -> OrientationTally:
        try:
            return self._cells[txn][context]
        except KeyError:
            raise InternalConsistencyError(
                f"Context {context!r} was never registered under transition {txn}"
            ) from None

    def contexts(self, txn: Transition) -> List[str]:
        """Registered contexts for a transition, sorted."""
        return list(self._cells[txn].keys())

    def record(self, context: str, called_base: str, mate: Mate, strand: Strand) -> None:
        txn = transitions.transition_of(center_base(context), called_base)
        self.tally(txn, context).increment(mate, strand)

    def derive_metrics(self, sample_alias: str, library: str) -> Dict[Transition, List[DetailPair]]:
        """Convert the tallies into one detail pair per (alt transition, context).

        The reverse-strand tallies come from the complementary transition at the
        reverse-complement context, so both strands of the same biological event land in the
        same row.
        """
        out: Dict[Transition, List[DetailPair]] = {}
        for txn_alt in transitions.alt_values():
            txn_ref = txn_alt.matching_ref()
            rows: List[DetailPair] = []
            for cxt in self.contexts(txn_alt):
                rc = reverse_complement(cxt)
                fwd_ref = self.tally(txn_ref, cxt)
                fwd_alt = self.tally(txn_alt, cxt)
                rev_ref = self.tally(txn_ref.complement(), rc)
                rev_alt = self.tally(txn_alt.complement(), rc)

                pro_ref = fwd_ref.r1_pos + fwd_ref.r2_neg + rev_ref.r1_neg + rev_ref.r2_pos
                pro_alt = fwd_alt.r1_pos + fwd_alt.r2_neg + rev_alt.r1_neg + rev_alt.r2_pos
                con_ref = fwd_ref.r1_neg + fwd_ref.r2_pos + rev_ref.r1_pos + rev_ref.r2_neg
                con_alt = fwd_alt.r1_neg + fwd_alt.r2_pos + rev_alt.r1_pos + rev_alt.r2_neg

                padm = PreAdapterDetailMetric(
                    sample_alias=sample_alias,
                    library=library,
                    context=cxt,
                    ref_base=txn_alt.ref,
                    alt_base=txn_alt.call,
                    pro_ref_bases=pro_ref,
                    pro_alt_bases=pro_alt,
                    con_ref_bases=con_ref,
                    con_alt_bases=con_alt,
                    error_rate=error_rate(pro_alt, pro_ref),
                    qscore=quality_score(pro_alt, pro_ref),
                )
                bbdm = BaitBiasDetailMetric(
                    sample_alias=sample_alias,
                    library=library,
                    context=cxt,
                    ref_base=txn_alt.ref,
                    alt_base=txn_alt.call,
                    fwd_cxt_ref_bases=fwd_ref.total,
                    fwd_cxt_alt_bases=fwd_alt.total,
                    rev_cxt_ref_bases=rev_ref.total,
                    rev_cxt_alt_bases=rev_alt.total,
                    fwd_error_rate=error_rate(fwd_alt.total, fwd_ref.total),
                    fwd_qscore=quality_score(fwd_alt.total, fwd_ref.total),
                    rev_error_rate=error_rate(rev_alt.total, rev_ref.total),
                    rev_qscore=quality_score(rev_alt.total, rev_ref.total),
                )
                rows.append(DetailPair(pre_adapter=padm, bait_bias=bbdm))
            out[txn_alt] = rows
        logger.debug(
            "Derived %d detail rows from %s-base contexts",
            sum(len(v) for v in out.values()),
            self.context_length,
        )
        return out
