from __future__ import annotations

import logging
from dataclasses import fields
from pathlib import Path
from typing import Dict, Iterable, Optional, Sequence

from .counter import ArtifactReport
from .models import (
    BaitBiasDetailMetric,
    BaitBiasSummaryMetric,
    OxoGMetric,
    PreAdapterDetailMetric,
    PreAdapterSummaryMetric,
)
from .oxog import convert_to_oxog
from .utils import open_textmaybe_gzip

logger = logging.getLogger(__name__)

PRE_ADAPTER_SUMMARY_EXT = ".pre_adapter_summary_metrics"
PRE_ADAPTER_DETAIL_EXT = ".pre_adapter_detail_metrics"
BAIT_BIAS_SUMMARY_EXT = ".bait_bias_summary_metrics"
BAIT_BIAS_DETAIL_EXT = ".bait_bias_detail_metrics"
OXOG_EXT = ".oxog_metrics"


def _fmt(value: object) -> str:
    if isinstance(value, float):
        return f"{value:.6f}"
    return str(value)


def write_metrics_table(path: str | Path, rows: Sequence[object], row_type: type) -> Path:
    """Write dataclass rows as a tab-separated table with an upper-case header line."""
    path = Path(path)
    names = [f.name for f in fields(row_type)]
    with open_textmaybe_gzip(path, "wt") as fh:
        fh.write("\t".join(n.upper() for n in names) + "\n")
        for row in rows:
            fh.write("\t".join(_fmt(getattr(row, n)) for n in names) + "\n")
    logger.debug("Wrote %d rows to %s", len(rows), path)
    return path


def write_reports(
    output_prefix: str | Path,
    reports: Iterable[ArtifactReport],
    *,
    contexts_to_print: Optional[Iterable[str]] = None,
    oxog: bool = False,
) -> Dict[str, str]:
    """Write the four metric tables (and optionally the OxoG table) for all libraries.

    ``contexts_to_print`` only restricts the detail tables; summaries already reflect
    every context.
    """
    prefix = str(output_prefix)
    Path(prefix).parent.mkdir(parents=True, exist_ok=True)
    keep = {c.upper() for c in contexts_to_print} if contexts_to_print else None

    reports = list(reports)
    pasm = [m for r in reports for m in r.pre_adapter_summary]
    bbsm = [m for r in reports for m in r.bait_bias_summary]
    padm_all = [m for r in reports for m in r.pre_adapter_detail]
    bbdm_all = [m for r in reports for m in r.bait_bias_detail]
    padm = [m for m in padm_all if keep is None or m.context in keep]
    bbdm = [m for m in bbdm_all if keep is None or m.context in keep]

    out = {
        "pre_adapter_summary": str(
            write_metrics_table(prefix + PRE_ADAPTER_SUMMARY_EXT, pasm, PreAdapterSummaryMetric)
        ),
        "pre_adapter_detail": str(
            write_metrics_table(prefix + PRE_ADAPTER_DETAIL_EXT, padm, PreAdapterDetailMetric)
        ),
        "bait_bias_summary": str(
            write_metrics_table(prefix + BAIT_BIAS_SUMMARY_EXT, bbsm, BaitBiasSummaryMetric)
        ),
        "bait_bias_detail": str(
            write_metrics_table(prefix + BAIT_BIAS_DETAIL_EXT, bbdm, BaitBiasDetailMetric)
        ),
    }
    if oxog:
        rows = convert_to_oxog(padm_all, bbdm_all)
        out["oxog"] = str(write_metrics_table(prefix + OXOG_EXT, rows, OxoGMetric))
    return out
