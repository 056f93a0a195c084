from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence

import matplotlib.pyplot as plt
import numpy as np

from .models import (
    BaitBiasSummaryMetric,
    PreAdapterDetailMetric,
    PreAdapterSummaryMetric,
)

logger = logging.getLogger(__name__)


def plot_summary_qscores(
    *,
    pre_adapter: Sequence[PreAdapterSummaryMetric],
    bait_bias: Sequence[BaitBiasSummaryMetric],
    out_png: str | Path,
    title: str = "Context-free Q-score per substitution",
) -> None:
    """Grouped bars of the total Q-score per transition for both artifact channels."""
    out_png = Path(out_png)
    out_png.parent.mkdir(parents=True, exist_ok=True)

    labels = [f"{m.ref_base}>{m.alt_base}" for m in pre_adapter]
    pre_q = np.array([m.total_qscore for m in pre_adapter], dtype=float)
    bb_by_txn = {(m.ref_base, m.alt_base): m.total_qscore for m in bait_bias}
    bb_q = np.array([bb_by_txn.get((m.ref_base, m.alt_base), np.nan) for m in pre_adapter], dtype=float)

    x = np.arange(len(labels))
    width = 0.4

    plt.figure(figsize=(8, 4))
    plt.bar(x - width / 2, pre_q, width=width, label="Pre-adapter")
    plt.bar(x + width / 2, bb_q, width=width, label="Bait bias")
    plt.xticks(x, labels, rotation=0)
    plt.ylabel("Q-score")
    plt.title(title)
    plt.legend()
    plt.tight_layout()
    plt.savefig(out_png, dpi=160)
    plt.close()


def plot_context_error_rates(
    *,
    details: Sequence[PreAdapterDetailMetric],
    ref_base: str,
    alt_base: str,
    out_png: str | Path,
    library: str | None = None,
    title: str | None = None,
) -> None:
    """Pre-adapter error rate per reference context for one substitution."""
    out_png = Path(out_png)
    out_png.parent.mkdir(parents=True, exist_ok=True)

    rows = [
        d
        for d in details
        if d.ref_base == ref_base
        and d.alt_base == alt_base
        and (library is None or d.library == library)
    ]
    contexts = [d.context for d in rows]
    rates = np.array([d.error_rate for d in rows], dtype=float)

    plt.figure(figsize=(max(6, 0.35 * len(contexts)), 4))
    plt.bar(range(len(contexts)), rates)
    plt.xticks(range(len(contexts)), contexts, rotation=90)
    plt.xlabel("Reference context")
    plt.ylabel("Error rate")
    plt.title(title or f"Pre-adapter {ref_base}>{alt_base} error rate by context")
    plt.tight_layout()
    plt.savefig(out_png, dpi=160)
    plt.close()
