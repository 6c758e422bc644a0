#!/usr/bin/env python3
"""Audit a music library directory and export the quality report as CSV.

Usage:
    python scripts/audit_library.py /music --out reports/ --concurrency 4
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from ripaudit.analysis.settings import AnalysisScope, AnalysisSettings
from ripaudit.catalog import DirectoryCatalog
from ripaudit.config import settings
from ripaudit.export import export_rerip_list, export_results, export_summary
from ripaudit.orchestrator import AnalysisProgress, QualityAnalysisService


def _print_progress(p: AnalysisProgress) -> None:
    eta = f"{p.eta_s:.0f}s" if p.eta_s is not None else "--"
    print(
        f"\r  [{p.processed}/{p.total_tracks}] {p.percentage:5.1f}%  "
        f"ok={p.succeeded} failed={p.failed}  {p.tracks_per_second:.2f} tr/s  "
        f"ETA {eta}  {p.current_track[:40]:<40}",
        end="",
        flush=True,
    )


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("library", nargs="?", default=str(settings.library_dir))
    parser.add_argument("--out", default=str(settings.reports_dir), help="Report directory")
    parser.add_argument("--concurrency", type=int, default=None)
    parser.add_argument("--rerip-threshold", type=float, default=60.0)
    parser.add_argument("--max-seconds", type=float, default=300.0)
    parser.add_argument("--category", action="append", default=[], help="Only these folders")
    parser.add_argument("--only-problematic", action="store_true")
    args = parser.parse_args(argv)

    options: dict[str, object] = {
        "rerip_threshold": args.rerip_threshold,
        "max_analysis_seconds": args.max_seconds,
        # local files need no request pacing
        "catalog_request_delay_s": 0.0,
    }
    if args.concurrency:
        options["max_concurrent_analyses"] = args.concurrency
    if args.category:
        options["scope"] = AnalysisScope.CATEGORIES
        options["include_categories"] = tuple(args.category)
    analysis_settings = AnalysisSettings(**options)

    service = QualityAnalysisService(
        DirectoryCatalog(args.library),
        settings=analysis_settings,
        on_progress=_print_progress,
        on_status=lambda msg: print(f"\n{msg}"),
    )
    report = service.run_sync()

    print()
    print("=" * 50)
    print("QUALITY REPORT")
    print("=" * 50)
    print(f"Status:          {report.status}")
    print(f"Analyzed:        {report.total_tracks_analyzed}")
    print(f"Failed:          {report.failed_analyses}")
    print(f"Unresolved:      {len(report.unresolved)}")
    print(f"Average score:   {report.average_score:.1f}")
    print(f"Median score:    {report.median_score:.1f}")
    print(
        f"Needs re-rip:    {report.tracks_needing_rerip} "
        f"({report.percentage_needing_rerip:.1f}%)"
    )
    for label, count in report.quality_distribution.items():
        print(f"  {label:<20} {count}")

    out = Path(args.out)
    stamp = report.generated_at.strftime("%Y%m%d_%H%M%S")
    export_results(report, out / f"quality_{stamp}.csv", only_problematic=args.only_problematic)
    export_rerip_list(report, out / f"rerip_{stamp}.csv")
    export_summary(report, out / f"summary_{stamp}.csv")
    print(f"\nReports written to {out}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
