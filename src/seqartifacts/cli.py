from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Dict, Optional

from . import __version__
from .collector import collect_artifact_metrics
from .plotting import plot_context_error_rates, plot_summary_qscores
from .report import render_report
from .toy_data import make_toy_data
from .utils import ensure_outdir, write_json
from .validation import check_bam_index, check_context_size, check_fasta_index, normalize_contexts
from .writers import write_reports


def _setup_logging(verbosity: int, *, logfile: Optional[Path] = None) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    log_fmt = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    logging.basicConfig(level=level, format=log_fmt, stream=sys.stderr)

    if logfile is not None:
        logfile.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(logfile)
        fh.setLevel(level)
        fh.setFormatter(logging.Formatter(log_fmt))
        logging.getLogger().addHandler(fh)


def _path_exists(p: str) -> str:
    if not Path(p).exists():
        raise argparse.ArgumentTypeError(f"Path does not exist: {p}")
    return p


def _log_path(outdir: Path, name: str) -> Path:
    return outdir / "logs" / name


def _handle_error(err: Exception, *, log_path: Optional[Path] = None) -> int:
    sys.stderr.write(f"{err.__class__.__name__}: {err}\n")
    if log_path is not None:
        sys.stderr.write(f"See log: {log_path}\n")
    return 2


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="seqartifacts",
        description=(
            "SeqArtifacts: quantify pre-adapter (e.g. 8-oxoG) and bait-bias substitution "
            "artifacts in sequencing libraries by reference context, mate and strand."
        ),
    )
    p.add_argument("--version", action="version", version=f"seqartifacts {__version__}")

    sub = p.add_subparsers(dest="cmd", required=True)

    # -----------------
    # quickstart
    # -----------------
    sub.add_parser(
        "quickstart",
        help="Print ready-to-run recipes for common scenarios.",
    )

    # -----------------
    # make-toy-data
    # -----------------
    t = sub.add_parser(
        "make-toy-data",
        help="Generate a tiny reference and paired-end BAM (with an injected artifact) for demos/tests.",
    )
    t.add_argument("--outdir", required=True, help="Output directory for toy data.")
    t.add_argument("--dry-run", action="store_true", help="Validate paths without writing files.")

    # -----------------
    # collect
    # -----------------
    c = sub.add_parser(
        "collect",
        help="Count substitution artifacts in a BAM and write pre-adapter / bait-bias metrics.",
    )
    c.add_argument("--bam", required=True, type=_path_exists, help="Input BAM (coordinate sorted, indexed).")
    c.add_argument("--ref", required=True, type=_path_exists, help="Reference FASTA (indexed).")
    c.add_argument(
        "--output-prefix",
        required=True,
        help="Prefix for metric files, e.g. results/sample -> results/sample.pre_adapter_summary_metrics.",
    )
    c.add_argument(
        "--intervals",
        default=None,
        type=_path_exists,
        help="Optional BED file restricting analysis to these intervals.",
    )
    c.add_argument(
        "--known-sites",
        default=None,
        type=_path_exists,
        help="Optional VCF of known polymorphisms (e.g. dbSNP); their positions are excluded. "
        "bgzip + tabix index it so it is read one contig at a time.",
    )
    c.add_argument(
        "--context-size",
        type=int,
        default=1,
        help="Number of reference bases on each side of the assayed base.",
    )
    c.add_argument("--min-baseq", type=int, default=20, help="Minimum base quality for a base to count.")
    c.add_argument("--min-mapq", type=int, default=30, help="Minimum mapping quality for a read to count.")
    c.add_argument(
        "--min-insert-size",
        type=int,
        default=60,
        help="Minimum insert size for a read to count. Set to 0 (with --max-insert-size 0) to allow unpaired reads.",
    )
    c.add_argument(
        "--max-insert-size",
        type=int,
        default=600,
        help="Maximum insert size for a read to count (0 disables the bound).",
    )
    c.add_argument(
        "--no-use-oq",
        action="store_true",
        help="Do not use original base qualities (OQ tag) for filtering even when present.",
    )
    c.add_argument(
        "--context-to-print",
        action="append",
        default=[],
        help="Only write these contexts to the detail tables (repeatable). Summaries use all contexts.",
    )
    c.add_argument("--oxog", action="store_true", help="Also write an 8-oxoG view (.oxog_metrics).")
    c.add_argument("--no-report", action="store_true", help="Skip plots and the HTML report.")
    c.add_argument("--no-progress", action="store_true", help="Disable the progress bar.")
    c.add_argument("--dry-run", action="store_true", help="Validate inputs and print planned outputs.")
    c.add_argument("-v", "--verbose", action="count", default=0, help="Increase verbosity (-v/-vv).")

    return p


# -----------------
# Command handlers
# -----------------

def cmd_quickstart() -> int:
    lines = [
        "SeqArtifacts quickstart (copy/paste):",
        "",
        "1) Collect artifact metrics for a BAM:",
        "   seqartifacts collect \\",
        "     --bam sample.bam \\",
        "     --ref ref.fa \\",
        "     --output-prefix results/sample",
        "   Outputs: results/sample.pre_adapter_summary_metrics (+ detail, bait_bias_*),",
        "            results/report.html, results/summary.json",
        "",
        "2) Exome / panel: restrict to targets, mask dbSNP, add the 8-oxoG view:",
        "   seqartifacts collect \\",
        "     --bam sample.bam --ref ref.fa \\",
        "     --intervals targets.bed --known-sites dbsnp.vcf.gz \\",
        "     --oxog --output-prefix results/sample",
        "",
        "3) Try it on toy data:",
        "   seqartifacts make-toy-data --outdir toy/",
        "   seqartifacts collect --bam toy/toy.bam --ref toy/toy_ref.fa --output-prefix toy/out/toy",
        "",
        "Tip: use --dry-run to validate inputs and print the planned outputs.",
    ]
    print("\n".join(lines))
    return 0


def cmd_make_toy_data(args: argparse.Namespace) -> int:
    outdir = Path(args.outdir).expanduser().resolve()
    if args.dry_run:
        print(f"Would write toy data into: {outdir}")
        return 0

    summary = make_toy_data(outdir=outdir)
    print(json.dumps(summary, indent=2))
    return 0


def cmd_collect(args: argparse.Namespace) -> int:
    prefix = Path(args.output_prefix).expanduser().resolve()
    outdir = prefix.parent
    log_path = _log_path(outdir, "collect.log")
    _setup_logging(args.verbose, logfile=None if args.dry_run else log_path)

    logger = logging.getLogger("seqartifacts")
    logger.info("seqartifacts %s", __version__)

    try:
        check_bam_index(args.bam)
        check_fasta_index(args.ref)
        check_context_size(int(args.context_size))
        contexts_to_print = normalize_contexts(args.context_to_print, int(args.context_size))

        if args.dry_run:
            print("Dry-run: inputs look OK.")
            print("Planned outputs:")
            for ext in (
                ".pre_adapter_summary_metrics",
                ".pre_adapter_detail_metrics",
                ".bait_bias_summary_metrics",
                ".bait_bias_detail_metrics",
            ):
                print(f"  {prefix}{ext}")
            if args.oxog:
                print(f"  {prefix}.oxog_metrics")
            if not args.no_report:
                print(f"  {outdir / 'report.html'}")
            print(f"  {outdir / 'summary.json'}")
            return 0

        ensure_outdir(outdir)

        reports, run = collect_artifact_metrics(
            bam_path=args.bam,
            ref_fasta=args.ref,
            context_size=int(args.context_size),
            min_baseq=int(args.min_baseq),
            min_mapq=int(args.min_mapq),
            min_insert_size=int(args.min_insert_size),
            max_insert_size=int(args.max_insert_size),
            use_oq=not bool(args.no_use_oq),
            intervals_bed=args.intervals,
            known_sites_vcf=args.known_sites,
            progress=not bool(args.no_progress),
        )

        outputs = write_reports(
            prefix,
            reports,
            contexts_to_print=contexts_to_print,
            oxog=bool(args.oxog),
        )
        run["outputs"] = outputs
        write_json(outdir / "summary.json", run)

        if args.no_report:
            print(outputs["pre_adapter_summary"])
            return 0

        plots_dir = outdir / "plots"
        plots_rel: Dict[str, str] = {}
        for rep in reports:
            q_png = plots_dir / f"{rep.library}.summary_qscores.png"
            gt_png = plots_dir / f"{rep.library}.G_T_context_error_rates.png"
            plot_summary_qscores(
                pre_adapter=rep.pre_adapter_summary,
                bait_bias=rep.bait_bias_summary,
                out_png=q_png,
                title=f"{rep.library}: context-free Q-score per substitution",
            )
            plot_context_error_rates(
                details=rep.pre_adapter_detail,
                ref_base="G",
                alt_base="T",
                out_png=gt_png,
            )
            plots_rel[f"{rep.library} Q-scores"] = str(Path("plots") / q_png.name)
            plots_rel[f"{rep.library} G>T by context"] = str(Path("plots") / gt_png.name)

        report_path = render_report(
            outdir=outdir,
            version=__version__,
            run=run,
            reports=reports,
            outputs=outputs,
            plots=plots_rel,
        )

        logger.info("Report written: %s", report_path)
        print(str(report_path))
        return 0
    except Exception as e:
        return _handle_error(e, log_path=None if args.dry_run else log_path)


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.cmd == "quickstart":
        return cmd_quickstart()
    if args.cmd == "make-toy-data":
        return cmd_make_toy_data(args)
    if args.cmd == "collect":
        return cmd_collect(args)

    parser.error(f"Unknown command: {args.cmd}")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
