from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple, TypeVar

from . import transitions
from .accumulator import ContextAccumulator
from .contexts import leading, trailing, zero
from .models import (
    BaitBiasDetailMetric,
    BaitBiasSummaryMetric,
    CounterStateError,
    DetailPair,
    InternalConsistencyError,
    Mate,
    PreAdapterDetailMetric,
    PreAdapterSummaryMetric,
    Strand,
    infer_artifact_name,
)
from .transitions import Transition, generate_all_kmers, reverse_complement

logger = logging.getLogger(__name__)

M = TypeVar("M", PreAdapterDetailMetric, BaitBiasDetailMetric)


@dataclass(frozen=True)
class ArtifactReport:
    """Finished metrics for one library; rows ordered by transition, then context."""

    sample_alias: str
    library: str
    pre_adapter_summary: Tuple[PreAdapterSummaryMetric, ...]
    pre_adapter_detail: Tuple[PreAdapterDetailMetric, ...]
    bait_bias_summary: Tuple[BaitBiasSummaryMetric, ...]
    bait_bias_detail: Tuple[BaitBiasDetailMetric, ...]


def _worst(metrics: Iterable[M]) -> M:
    """Lowest-Q row; on ties the first (lexicographically smallest context) wins."""
    worst: Optional[M] = None
    for m in metrics:
        if worst is None or m.qscore < worst.qscore:
            worst = m
    if worst is None:
        raise InternalConsistencyError("Cannot pick a worst context from an empty set of metrics")
    return worst


class ArtifactCounter:
    """Counts substitution artifacts for a single library and extracts metrics once done.

    Every observation is fanned out to three accumulators: the full contexts, the half
    contexts (leading bases only and trailing bases only) and the context-free view of the
    center base. :meth:`finish` may be called once; the counter refuses further use after.
    """

    def __init__(
        self,
        sample_alias: str,
        library: str,
        context_size: int,
        *,
        contexts: Optional[Iterable[str]] = None,
    ) -> None:
        if context_size < 0:
            raise ValueError(f"context_size cannot be negative: {context_size}")
        self.sample_alias = sample_alias
        self.library = library
        self.context_size = context_size

        if contexts is None:
            full = set(generate_all_kmers(2 * context_size + 1))
        else:
            full = set()
            for cxt in contexts:
                cxt = cxt.upper()
                if len(cxt) != 2 * context_size + 1 or not set(cxt) <= set(transitions.BASES):
                    raise ValueError(
                        f"Context {cxt!r} is not {2 * context_size + 1} bases of A/C/G/T"
                    )
                full.add(cxt)
                full.add(reverse_complement(cxt))
            missing = set(transitions.BASES) - {c[context_size] for c in full}
            if missing:
                raise ValueError(
                    "Contexts must cover every center base; missing: " + ",".join(sorted(missing))
                )

        self._leading_map: Dict[str, str] = {c: leading(c, context_size) for c in full}
        self._trailing_map: Dict[str, str] = {c: trailing(c, context_size) for c in full}
        self._zero_map: Dict[str, str] = {c: zero(c, context_size) for c in full}
        self._leading_contexts: Set[str] = set(self._leading_map.values())
        self._trailing_contexts: Set[str] = set(self._trailing_map.values())

        self._full = ContextAccumulator(full)
        self._half = ContextAccumulator(self._leading_contexts | self._trailing_contexts)
        self._zero = ContextAccumulator(set(self._zero_map.values()))

        self._finished = False
        self.events_recorded = 0

    @property
    def finished(self) -> bool:
        return self._finished

    def record(self, context: str, called_base: str, mate: Mate, strand: Strand) -> None:
        """Add one observed base at a reference context to all accumulators."""
        if self._finished:
            raise CounterStateError(f"Counter for library {self.library!r} is already finished")
        try:
            lead = self._leading_map[context]
            trail = self._trailing_map[context]
            zero_cxt = self._zero_map[context]
        except KeyError:
            if len(context) != 2 * self.context_size + 1 or not set(context) <= set(transitions.BASES):
                raise ValueError(f"Malformed reference context: {context!r}") from None
            raise InternalConsistencyError(f"Context {context!r} is not registered") from None
        self._full.record(context, called_base, mate, strand)
        self._half.record(lead, called_base, mate, strand)
        self._half.record(trail, called_base, mate, strand)
        self._zero.record(zero_cxt, called_base, mate, strand)
        self.events_recorded += 1

    def finish(self) -> ArtifactReport:
        """Stop counting, tally everything up and return the finished metrics."""
        if self._finished:
            raise CounterStateError(f"Counter for library {self.library!r} is already finished")
        self._finished = True

        full = self._full.derive_metrics(self.sample_alias, self.library)
        half = self._half.derive_metrics(self.sample_alias, self.library)
        zero_metrics = self._zero.derive_metrics(self.sample_alias, self.library)

        pasm: List[PreAdapterSummaryMetric] = []
        padm: List[PreAdapterDetailMetric] = []
        bbsm: List[BaitBiasSummaryMetric] = []
        bbdm: List[BaitBiasDetailMetric] = []

        for txn in transitions.alt_values():
            zero_rows = zero_metrics[txn]
            if len(zero_rows) != 1:
                raise InternalConsistencyError(
                    f"Should have exactly one context-free metric pair for transition {txn}, "
                    f"found {len(zero_rows)}"
                )
            total = zero_rows[0]
            full_rows = full[txn]

            leading_rows: List[DetailPair] = []
            trailing_rows: List[DetailPair] = []
            for pair in half[txn]:
                if pair.pre_adapter.context != pair.bait_bias.context:
                    raise InternalConsistencyError(
                        "Detail metrics are not matched up properly - contexts differ: "
                        f"{pair.pre_adapter.context!r} vs {pair.bait_bias.context!r}"
                    )
                # with context_size == 0 a half context is both leading and trailing
                if pair.pre_adapter.context in self._leading_contexts:
                    leading_rows.append(pair)
                if pair.pre_adapter.context in self._trailing_contexts:
                    trailing_rows.append(pair)

            pasm.append(
                self._summarize(
                    PreAdapterSummaryMetric,
                    txn,
                    total.pre_adapter.qscore,
                    [full_rows, leading_rows, trailing_rows],
                    lambda p: p.pre_adapter,
                )
            )
            bbsm.append(
                self._summarize(
                    BaitBiasSummaryMetric,
                    txn,
                    total.bait_bias.qscore,
                    [full_rows, leading_rows, trailing_rows],
                    lambda p: p.bait_bias,
                )
            )
            for pair in full_rows:
                padm.append(pair.pre_adapter)
                bbdm.append(pair.bait_bias)

        logger.info(
            "Finished library %s: %d events, %d detail rows",
            self.library,
            self.events_recorded,
            len(padm),
        )
        return ArtifactReport(
            sample_alias=self.sample_alias,
            library=self.library,
            pre_adapter_summary=tuple(pasm),
            pre_adapter_detail=tuple(padm),
            bait_bias_summary=tuple(bbsm),
            bait_bias_detail=tuple(bbdm),
        )

    def _summarize(
        self,
        row_type: type,
        txn: Transition,
        total_qscore: int,
        groups: List[List[DetailPair]],
        channel: Callable[[DetailPair], M],
    ):
        worst_full, worst_pre, worst_post = (_worst(channel(p) for p in g) for g in groups)
        return row_type(
            sample_alias=self.sample_alias,
            library=self.library,
            ref_base=txn.ref,
            alt_base=txn.call,
            total_qscore=total_qscore,
            worst_cxt=worst_full.context,
            worst_cxt_qscore=worst_full.qscore,
            worst_pre_cxt=worst_pre.context,
            worst_pre_cxt_qscore=worst_pre.qscore,
            worst_post_cxt=worst_post.context,
            worst_post_cxt_qscore=worst_post.qscore,
            artifact_name=infer_artifact_name(
                txn.ref, txn.call, pre_adapter=row_type is PreAdapterSummaryMetric
            ),
        )
