"""SeqArtifacts: context-resolved pre-adapter and bait-bias substitution artifact metrics.

Most users should use the CLI:

    seqartifacts collect --bam ... --ref ... --output-prefix ...

The counting core is usable on its own through :class:`seqartifacts.counter.ArtifactCounter`.
"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"
