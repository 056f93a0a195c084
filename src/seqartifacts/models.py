from __future__ import annotations

import enum
from dataclasses import dataclass


class InternalConsistencyError(RuntimeError):
    """Raised when the counters' own bookkeeping is violated.

    These indicate a defect in how contexts were registered or routed, never bad input,
    and abort the counting session.
    """


class CounterStateError(RuntimeError):
    """Raised when a finalized counter is asked to record or finish again."""


NO_ARTIFACT_NAME = "NA"

# Pre-adapter substitutions with a well-known chemical origin.
PRE_ADAPTER_ARTIFACT_NAMES = {
    ("G", "T"): "OxoG",
    ("C", "T"): "Deamination",
}


def infer_artifact_name(ref_base: str, alt_base: str, *, pre_adapter: bool) -> str:
    """Common name of a summarized artifact, or ``NA`` when it has none.

    Bait-bias artifacts are not named.
    """
    if not pre_adapter:
        return NO_ARTIFACT_NAME
    return PRE_ADAPTER_ARTIFACT_NAMES.get((ref_base, alt_base), NO_ARTIFACT_NAME)


class Mate(enum.Enum):
    FIRST = 1
    SECOND = 2


class Strand(enum.Enum):
    FORWARD = "+"
    REVERSE = "-"


@dataclass(frozen=True)
class PreAdapterDetailMetric:
    """Pre-adapter counts for one (alt transition, context) cell.

    Attributes
    ----------
    pro_ref_bases, pro_alt_bases:
        Reference / alternate bases in the orientation consistent with an artifact
        introduced before adapter ligation (read1 on the context strand, read2 on the
        opposite strand).
    con_ref_bases, con_alt_bases:
        The same counts in the opposite orientation; serves as an internal control.
    error_rate, qscore:
        Derived from the pro counts.
    """

    sample_alias: str
    library: str
    context: str
    ref_base: str
    alt_base: str
    pro_ref_bases: int
    pro_alt_bases: int
    con_ref_bases: int
    con_alt_bases: int
    error_rate: float
    qscore: int


@dataclass(frozen=True)
class BaitBiasDetailMetric:
    """Bait-bias counts for one (alt transition, context) cell.

    ``fwd_*`` fields count bases at the context itself; ``rev_*`` fields count the
    complementary event at the reverse-complement context.
    """

    sample_alias: str
    library: str
    context: str
    ref_base: str
    alt_base: str
    fwd_cxt_ref_bases: int
    fwd_cxt_alt_bases: int
    rev_cxt_ref_bases: int
    rev_cxt_alt_bases: int
    fwd_error_rate: float
    fwd_qscore: int
    rev_error_rate: float
    rev_qscore: int

    @property
    def qscore(self) -> int:
        # The row's own context drives worst-context selection.
        return self.fwd_qscore


@dataclass(frozen=True)
class PreAdapterSummaryMetric:
    sample_alias: str
    library: str
    ref_base: str
    alt_base: str
    total_qscore: int
    worst_cxt: str
    worst_cxt_qscore: int
    worst_pre_cxt: str
    worst_pre_cxt_qscore: int
    worst_post_cxt: str
    worst_post_cxt_qscore: int
    artifact_name: str = NO_ARTIFACT_NAME


@dataclass(frozen=True)
class BaitBiasSummaryMetric:
    sample_alias: str
    library: str
    ref_base: str
    alt_base: str
    total_qscore: int
    worst_cxt: str
    worst_cxt_qscore: int
    worst_pre_cxt: str
    worst_pre_cxt_qscore: int
    worst_post_cxt: str
    worst_post_cxt_qscore: int
    artifact_name: str = NO_ARTIFACT_NAME


@dataclass(frozen=True)
class DetailPair:
    """Pre-adapter and bait-bias detail rows derived from the same cell."""

    pre_adapter: PreAdapterDetailMetric
    bait_bias: BaitBiasDetailMetric


@dataclass(frozen=True)
class OxoGMetric:
    """8-oxoG view of one C-centered context, built from the detail metrics."""

    sample_alias: str
    library: str
    context: str
    total_bases: int
    ref_total_bases: int
    ref_nonoxo_bases: int
    ref_oxo_bases: int
    alt_nonoxo_bases: int
    alt_oxo_bases: int
    oxidation_error_rate: float
    oxidation_q: int
    c_ref_ref_bases: int
    g_ref_ref_bases: int
    c_ref_alt_bases: int
    g_ref_alt_bases: int
    c_ref_oxo_error_rate: float
    c_ref_oxo_q: int
    g_ref_oxo_error_rate: float
    g_ref_oxo_q: int
