"""Derive the classic 8-oxoG metrics from the generalized artifact detail metrics.

OxoG is reported on C-centered contexts only. The pre-adapter artifact itself shows up as
G>T on the reference strand, so for context ``ACA`` the pre-adapter numbers are taken from
the G>T row at ``TGT``. The bait-bias numbers are reported for both directions: C_REF from
the C>A row at the context, G_REF from the G>T row at its reverse complement.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Tuple

from .models import BaitBiasDetailMetric, OxoGMetric, PreAdapterDetailMetric
from .transitions import reverse_complement

logger = logging.getLogger(__name__)


def _is_oxog(ref_base: str, alt_base: str) -> bool:
    return (ref_base, alt_base) in {("C", "A"), ("G", "T")}


def convert_to_oxog(
    pre_adapter_detail: Iterable[PreAdapterDetailMetric],
    bait_bias_detail: Iterable[BaitBiasDetailMetric],
) -> List[OxoGMetric]:
    """Build one OxoG row per (library, C-centered context)."""
    padm_by_key: Dict[Tuple[str, str], PreAdapterDetailMetric] = {}
    sample_by_library: Dict[str, str] = {}
    contexts_by_library: Dict[str, set] = {}
    for m in pre_adapter_detail:
        sample_by_library.setdefault(m.library, m.sample_alias)
        if m.ref_base == "C":
            contexts_by_library.setdefault(m.library, set()).add(m.context)
        if _is_oxog(m.ref_base, m.alt_base):
            padm_by_key[(m.library, m.context)] = m

    bbdm_by_key: Dict[Tuple[str, str], BaitBiasDetailMetric] = {}
    for b in bait_bias_detail:
        if _is_oxog(b.ref_base, b.alt_base):
            bbdm_by_key[(b.library, b.context)] = b

    out: List[OxoGMetric] = []
    for library in sorted(contexts_by_library):
        for context in sorted(contexts_by_library[library]):
            rc = reverse_complement(context)
            try:
                padm = padm_by_key[(library, rc)]
                bb_fwd = bbdm_by_key[(library, context)]
                bb_rev = bbdm_by_key[(library, rc)]
            except KeyError as e:
                raise ValueError(
                    f"Detail metrics for library {library!r} lack the rows needed for context "
                    f"{context!r}: {e.args[0]}"
                ) from None

            out.append(
                OxoGMetric(
                    sample_alias=sample_by_library[library],
                    library=library,
                    context=context,
                    total_bases=padm.pro_ref_bases
                    + padm.pro_alt_bases
                    + padm.con_ref_bases
                    + padm.con_alt_bases,
                    ref_total_bases=padm.pro_ref_bases + padm.con_ref_bases,
                    ref_nonoxo_bases=padm.con_ref_bases,
                    ref_oxo_bases=padm.pro_ref_bases,
                    alt_nonoxo_bases=padm.con_alt_bases,
                    alt_oxo_bases=padm.pro_alt_bases,
                    oxidation_error_rate=padm.error_rate,
                    oxidation_q=padm.qscore,
                    c_ref_ref_bases=bb_fwd.fwd_cxt_ref_bases,
                    g_ref_ref_bases=bb_fwd.rev_cxt_ref_bases,
                    c_ref_alt_bases=bb_fwd.fwd_cxt_alt_bases,
                    g_ref_alt_bases=bb_fwd.rev_cxt_alt_bases,
                    c_ref_oxo_error_rate=bb_fwd.fwd_error_rate,
                    c_ref_oxo_q=bb_fwd.fwd_qscore,
                    g_ref_oxo_error_rate=bb_rev.fwd_error_rate,
                    g_ref_oxo_q=bb_rev.fwd_qscore,
                )
            )
    logger.debug("Built %d OxoG rows", len(out))
    return out
