from __future__ import annotations

import datetime as _dt
import logging
from pathlib import Path
from typing import Any, Dict, Sequence

from jinja2 import Template

from .accumulator import MAX_QSCORE
from .counter import ArtifactReport

logger = logging.getLogger(__name__)


_REPORT_TEMPLATE = Template(
    """<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>SeqArtifacts Report</title>
  <style>
    body { font-family: Arial, Helvetica, sans-serif; margin: 24px; }
    code, pre { background: #f6f8fa; padding: 2px 4px; border-radius: 4px; }
    h1, h2, h3 { margin-top: 1.2em; }
    table { border-collapse: collapse; margin-top: 0.6em; }
    th, td { border: 1px solid #ddd; padding: 6px 8px; }
    th { background: #f2f2f2; text-align: left; }
    td.num { text-align: right; }
    .grid { display: grid; grid-template-columns: 1fr 1fr; gap: 16px; }
    .card { border: 1px solid #ddd; border-radius: 8px; padding: 12px; }
    .small { color: #666; font-size: 0.9em; }
    .low { background: #fde2e2; }
    img { max-width: 100%; height: auto; border: 1px solid #eee; border-radius: 6px; }
  </style>
</head>
<body>

<h1>SeqArtifacts Report</h1>
<p class="small">Generated: {{ generated_at }}</p>

<h2>Run summary</h2>
<div class="grid">
  <div class="card">
    <h3>Inputs</h3>
    <table>
      <tr><th>BAM</th><td><code>{{ run.bam_path }}</code></td></tr>
      <tr><th>Reference</th><td><code>{{ run.ref_fasta }}</code></td></tr>
      <tr><th>Sample</th><td><code>{{ run.sample_alias }}</code></td></tr>
      <tr><th>Libraries</th><td>{{ run.libraries | join(", ") }}</td></tr>
    </table>
  </div>
  <div class="card">
    <h3>Settings</h3>
    <table>
      <tr><th>Context size</th><td>{{ run.context_size }}</td></tr>
      <tr><th>Min baseQ</th><td>{{ run.min_baseq }}</td></tr>
      <tr><th>Min MAPQ</th><td>{{ run.min_mapq }}</td></tr>
      <tr><th>Insert size</th><td>{{ run.min_insert_size }} - {{ run.max_insert_size }}</td></tr>
      <tr><th>Use OQ</th><td>{{ run.use_oq }}</td></tr>
    </table>
  </div>
</div>

<h2>Reads</h2>
<table>
  {% for key, value in counts.items() %}
  <tr><th>{{ key }}</th><td class="num">{{ value }}</td></tr>
  {% endfor %}
</table>

{% for rep in reports %}
<h2>Library {{ rep.library }}</h2>
{% for title, rows in [("Pre-adapter", rep.pre_adapter_summary), ("Bait bias", rep.bait_bias_summary)] %}
<h3>{{ title }} summary</h3>
<table>
  <tr>
    <th>Substitution</th><th>Artifact</th><th>Total Q</th>
    <th>Worst context</th><th>Q</th>
    <th>Worst leading</th><th>Q</th>
    <th>Worst trailing</th><th>Q</th>
  </tr>
  {% for m in rows %}
  <tr{% if m.total_qscore < low_q %} class="low"{% endif %}>
    <td>{{ m.ref_base }}&gt;{{ m.alt_base }}</td><td>{{ m.artifact_name }}</td><td class="num">{{ m.total_qscore }}</td>
    <td><code>{{ m.worst_cxt }}</code></td><td class="num">{{ m.worst_cxt_qscore }}</td>
    <td><code>{{ m.worst_pre_cxt }}</code></td><td class="num">{{ m.worst_pre_cxt_qscore }}</td>
    <td><code>{{ m.worst_post_cxt }}</code></td><td class="num">{{ m.worst_post_cxt_qscore }}</td>
  </tr>
  {% endfor %}
</table>
{% endfor %}
{% endfor %}

{% if plots %}
<h2>Plots</h2>
<div class="grid">
  {% for name, path in plots.items() %}
  <div class="card">
    <h3>{{ name }}</h3>
    <img src="{{ path }}" alt="{{ name }}">
  </div>
  {% endfor %}
</div>
{% endif %}

<h2>Outputs</h2>
<ul>
  {% for name, path in outputs.items() %}
  <li><code>{{ path }}</code> ({{ name }})</li>
  {% endfor %}
  <li><code>summary.json</code> (machine-readable summary)</li>
</ul>

<h2>Interpretation notes</h2>
<ul>
  <li>Pre-adapter artifacts (e.g. 8-oxoG, seen as G&gt;T) appear in one read orientation only.</li>
  <li>Bait-bias artifacts differ between a context and its reverse complement.</li>
  <li>A Q-score of {{ max_q }} means no alternate bases were observed.</li>
</ul>

<hr>
<p class="small">SeqArtifacts {{ version }}</p>
</body>
</html>"""
)


def render_report(
    *,
    outdir: str | Path,
    version: str,
    run: Dict[str, Any],
    reports: Sequence[ArtifactReport],
    outputs: Dict[str, str],
    plots: Dict[str, str],
    low_q: int = 30,
) -> Path:
    outdir = Path(outdir)
    outdir.mkdir(parents=True, exist_ok=True)

    html = _REPORT_TEMPLATE.render(
        generated_at=_dt.datetime.now().isoformat(timespec="seconds"),
        version=version,
        run=run,
        counts=run.get("counts", {}),
        reports=reports,
        outputs=outputs,
        plots=plots,
        low_q=low_q,
        max_q=MAX_QSCORE,
    )

    out_path = outdir / "report.html"
    out_path.write_text(html, encoding="utf-8")
    return out_path
