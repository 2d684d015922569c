"""
Report generation for topology validation runs.
"""

from __future__ import annotations

import csv
import os

from .log import logger
from .validator import ValidationReport


def write_violations_csv(report: ValidationReport, path: str) -> None:
    """Write one row per violation; header only when the snapshot is clean."""
    headers = [
        "violation_kind",
        "entity_kind",
        "entity_id",
        "detail",
    ]
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    with open(path, "w", newline="") as f:
        w = csv.writer(f)
        w.writerow(headers)
        for v in report:
            w.writerow([v.kind.value, v.entity_kind, v.entity_id, v.detail])
    logger.info("Wrote: %s", path)


def print_summary(report: ValidationReport) -> None:
    """Print human-readable summary to stdout."""
    print(f"\n--- Topology Validation Summary ---")
    if report.ok:
        print("No violations")
        return
    print(f"Violations: {len(report)}")
    for kind, n in sorted(report.counts().items(), key=lambda kv: kv[0].value):
        print(f"  {kind.value}: {n}")
    for v in report:
        print(f"  [{v.kind.value}] {v.entity_kind} {v.entity_id!r}")
        print(f"       - {v.detail}")
