#!/usr/bin/env python3
"""
Consult a process or run a monitoring cycle from the command line

Usage:
    python3 consult_process.py --case 11001310300120240000100
    python3 consult_process.py --case 11001310300120240000100 --diff
    python3 consult_process.py --run-cycle
"""

import argparse
import json
import logging
import sys

from elasticsearch_client import connect_to_elasticsearch, ensure_indices, get_table_store
from change_detector import decide
from snapshot_store import SnapshotStore
from portal_client import fetch_case
from monitor import run_monitoring_cycle

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def consult(case_number: str, active_only: bool, diff: bool) -> int:
    case_number = case_number.strip()
    case = fetch_case(case_number, active_only)
    if case is None:
        logger.error(f"❌ Process {case_number} not found on the portal")
        return 1

    print(json.dumps(case.model_dump(), indent=2, ensure_ascii=False))

    if diff:
        if connect_to_elasticsearch(retry=False) is None:
            logger.error("❌ Failed to connect to Elasticsearch")
            return 1
        previous = SnapshotStore(get_table_store()).get(case_number)
        message = decide(previous, case)
        if message is None:
            logger.info("No changes against the stored snapshot")
        else:
            # Dry run: the snapshot is not updated and nobody is notified
            logger.info(f"Change that the next cycle would report: {message}")
    return 0


def main():
    parser = argparse.ArgumentParser(
        description='Consult a judicial process or run one monitoring cycle'
    )
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument(
        '--case',
        help='Case number (numero de radicacion) to consult'
    )
    group.add_argument(
        '--run-cycle',
        action='store_true',
        help='Run one monitoring cycle over all favorites and exit'
    )
    parser.add_argument(
        '--active-only',
        action='store_true',
        help='Only consult active processes'
    )
    parser.add_argument(
        '--diff',
        action='store_true',
        help='Compare the consulted process with its stored snapshot'
    )

    args = parser.parse_args()

    if args.case:
        sys.exit(consult(args.case, args.active_only, args.diff))

    if connect_to_elasticsearch(retry=True) is None or not ensure_indices():
        logger.error("❌ Elasticsearch is not available")
        sys.exit(1)

    changed = run_monitoring_cycle()
    logger.info(f"✅ Monitoring cycle finished, {changed or 0} processes changed")


if __name__ == "__main__":
    main()
