"""Base alphabet and the catalog of (reference, called) base transitions.

A transition is an ordered pair of bases. The twelve pairs where the called base differs
from the reference are the substitutions of interest ("alt" transitions); the four
self-transitions serve as the no-error baseline for the same reference context.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass
from typing import Dict, List, Tuple

BASES: Tuple[str, ...] = ("A", "C", "G", "T")

_COMPLEMENT: Dict[str, str] = {"A": "T", "C": "G", "G": "C", "T": "A"}


def complement_base(base: str) -> str:
    try:
        return _COMPLEMENT[base]
    except KeyError:
        raise ValueError(f"Not a valid base: {base!r}") from None


def reverse_complement(context: str) -> str:
    """Reverse complement of a context. Non-ACGT symbols (e.g. the ``N`` wildcard) are kept."""
    return "".join(_COMPLEMENT.get(b, b) for b in reversed(context))


def generate_all_kmers(length: int) -> List[str]:
    """All ``4**length`` sequences over A/C/G/T, in lexicographic order."""
    if length < 0:
        raise ValueError(f"k-mer length cannot be negative: {length}")
    return ["".join(p) for p in itertools.product(BASES, repeat=length)]


@dataclass(frozen=True)
class Transition:
    """An ordered (reference base, called base) pair."""

    ref: str
    call: str

    @property
    def is_alt(self) -> bool:
        return self.ref != self.call

    def complement(self) -> "Transition":
        """The same event seen from the opposite strand."""
        return transition_of(_COMPLEMENT[self.ref], _COMPLEMENT[self.call])

    def matching_ref(self) -> "Transition":
        """The self-transition sharing this transition's reference base."""
        return transition_of(self.ref, self.ref)

    def __str__(self) -> str:
        return f"{self.ref}>{self.call}"


_CATALOG: Dict[Tuple[str, str], Transition] = {
    (ref, call): Transition(ref, call) for ref in BASES for call in BASES
}
_VALUES: Tuple[Transition, ...] = tuple(_CATALOG.values())
_ALT_VALUES: Tuple[Transition, ...] = tuple(t for t in _VALUES if t.is_alt)


def values() -> Tuple[Transition, ...]:
    """All 16 transitions, ordered by reference base then called base."""
    return _VALUES


def alt_values() -> Tuple[Transition, ...]:
    """The 12 substitution transitions, in catalog order."""
    return _ALT_VALUES


def transition_of(ref: str, call: str) -> Transition:
    try:
        return _CATALOG[(ref, call)]
    except KeyError:
        raise ValueError(f"Invalid base in transition: ref={ref!r}, call={call!r}") from None
