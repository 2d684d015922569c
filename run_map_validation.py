#!/usr/bin/env python3
"""
Validate logical-lane topology of a map snapshot.

Usage:
  # Snapshot description (YAML or JSON)
  python run_map_validation.py --snapshot maps/junction.yaml --output results/violations.csv

  # Generated road
  python run_map_validation.py --generated s_curve --lanes-left 2 --lanes-right 2 --sections 3
"""

from __future__ import annotations

import argparse
import dataclasses
import logging
import os

from st_topology import Snapshot, TopologyConfig, TopologyValidator
from st_topology.log import logger, setup_logging
from st_topology.report import print_summary, write_violations_csv
from st_topology.roadgen import RoadSpec, build_road_snapshot


def main() -> int:
    ap = argparse.ArgumentParser(description="Logical lane topology validator")
    ap.add_argument("--snapshot", help="Snapshot description (.yaml/.yml/.json)")
    ap.add_argument(
        "--generated",
        choices=["tangent", "horizontal_curve", "s_curve", "hairpin", "roundabout"],
        help="Validate a generated road instead of a file",
    )
    ap.add_argument("--lanes-left", type=int, default=1)
    ap.add_argument("--lanes-right", type=int, default=1)
    ap.add_argument("--sections", type=int, default=1)
    ap.add_argument("--config", help="Validator config (.yaml/.json)")
    ap.add_argument("--strict-extent", action="store_true", help="Boundaries may not extend beyond their lane")
    ap.add_argument("--workers", type=int, default=None, help="Validator thread fan-out")
    ap.add_argument("--output", default=None, help="Write violations CSV here")
    ap.add_argument("-v", "--verbose", action="store_true")
    args = ap.parse_args()

    setup_logging(logging.DEBUG if args.verbose else logging.INFO)

    if not args.snapshot and not args.generated:
        ap.error("Provide --snapshot or --generated")
    if args.snapshot and args.generated:
        ap.error("Provide only one of --snapshot or --generated")

    config = None
    if args.config:
        if args.config.endswith(".json"):
            config = TopologyConfig.from_json(args.config)
        else:
            config = TopologyConfig.from_yaml(args.config)

    if args.snapshot:
        if not os.path.exists(args.snapshot):
            logger.error("snapshot not found: %s", args.snapshot)
            return 2
        if args.snapshot.endswith(".json"):
            snapshot = Snapshot.from_json(args.snapshot, config)
        else:
            snapshot = Snapshot.from_yaml(args.snapshot, config)
    else:
        spec = RoadSpec(
            shape=args.generated,
            lanes_left=args.lanes_left,
            lanes_right=args.lanes_right,
            sections=args.sections,
        )
        snapshot = build_road_snapshot(spec, config)

    # flags apply on top of the config the snapshot was built with
    overrides = {}
    if args.strict_extent:
        overrides["strict_boundary_extent"] = True
    if args.workers:
        overrides["workers"] = args.workers
    config = dataclasses.replace(snapshot.config, **overrides)

    report = TopologyValidator(config).validate(snapshot)

    if args.output:
        write_violations_csv(report, args.output)
    print_summary(report)

    return 0 if report.ok else 1


if __name__ == "__main__":
    raise SystemExit(main())
