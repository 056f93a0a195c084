import pytest

from seqartifacts import transitions
from seqartifacts.contexts import center_base, leading, trailing, zero
from seqartifacts.models import InternalConsistencyError
from seqartifacts.transitions import generate_all_kmers, reverse_complement, transition_of


def test_catalog_sizes():
    assert len(transitions.values()) == 16
    assert len(transitions.alt_values()) == 12
    assert all(t.ref != t.call for t in transitions.alt_values())


def test_complement_and_matching_ref():
    c_to_a = transition_of("C", "A")
    assert c_to_a.complement() == transition_of("G", "T")
    assert c_to_a.matching_ref() == transition_of("C", "C")
    assert c_to_a.complement().complement() is c_to_a
    assert str(c_to_a) == "C>A"


def test_transition_of_rejects_ambiguous_bases():
    with pytest.raises(ValueError):
        transition_of("N", "A")
    with pytest.raises(ValueError):
        transition_of("C", "n")


def test_reverse_complement_is_an_involution():
    for kmer in generate_all_kmers(3):
        assert reverse_complement(reverse_complement(kmer)) == kmer
    assert reverse_complement("ACN") == "NGT"


def test_context_reduction():
    assert leading("ACG", 1) == "ACN"
    assert trailing("ACG", 1) == "NCG"
    assert zero("ACG", 1) == "NCN"
    assert leading("AACGT", 2) == "AACNN"
    assert trailing("AACGT", 2) == "NNCGT"
    # with no flanks every view is the context itself
    for base in "ACGT":
        assert leading(base, 0) == trailing(base, 0) == zero(base, 0) == base


def test_center_base_rejects_even_length():
    assert center_base("ACG") == "C"
    with pytest.raises(InternalConsistencyError):
        center_base("AC")
