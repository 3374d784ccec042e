#!/usr/bin/env python3
"""
Shipping script - Feed queue messages through the batching pipeline.

Reads one queue message per line (pipe-delimited or JSON, see
logbatch_sdk.wire) from files or stdin, ingests them and flushes whatever
is still buffered at the end.

Usage:
    # Ship a captured queue dump using logbatch.yaml
    python scripts/ship.py messages.log

    # Explicit config, read from stdin
    cat messages.log | python scripts/ship.py --config logbatch.yaml

    # Override thresholds and the target cluster
    python scripts/ship.py messages.log --sink-url http://localhost:9200 --flush-count 100
"""

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, TextIO

import yaml

# Add logbatch_sdk to path
sys.path.insert(0, str(Path(__file__).parent.parent / "logbatch_sdk"))

from logbatch_sdk.config import PipelineConfig, load_config
from logbatch_sdk.errors import InvalidRecord, StorageUnavailable
from logbatch_sdk.ingest import IngestionEntrypoint
from logbatch_sdk.pipeline import build_entrypoint
from logbatch_sdk.wire import decode_message


logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def read_lines(streams: Iterable[TextIO]) -> Iterator[str]:
    """Yield non-empty lines from every stream in order."""
    for stream in streams:
        for line in stream:
            line = line.rstrip("\n")
            if line.strip():
                yield line


def ship(entrypoint: IngestionEntrypoint, lines: Iterable[str]) -> Dict[str, int]:
    """
    Ingest every line and flush remaining buffers.

    Returns:
        Summary counters
    """
    summary = {"ingested": 0, "invalid": 0, "storage_errors": 0}
    defaults = entrypoint.default_configuration

    for number, line in enumerate(lines, start=1):
        try:
            entrypoint.ingest_request(decode_message(line, defaults))
            summary["ingested"] += 1
        except InvalidRecord as e:
            logger.warning(f"Line {number}: {e}")
            summary["invalid"] += 1
        except StorageUnavailable as e:
            logger.error(f"Line {number}: {e}")
            summary["storage_errors"] += 1

    summary["sessions_flushed_at_exit"] = entrypoint.flush_all()
    summary.update(entrypoint.coordinator.counters)
    return summary


def build_config(args: argparse.Namespace) -> PipelineConfig:
    """Load the config file and apply command line overrides."""
    config_dict: Dict[str, Any] = load_config(args.config).to_dict()
    if args.sink_url:
        config_dict["sink"] = {**config_dict.get("sink", {}), "url": args.sink_url}
    if args.index:
        config_dict["sink"] = {**config_dict.get("sink", {}), "index": args.index}
    if args.flush_count is not None:
        config_dict["flush"] = {**config_dict.get("flush", {}), "count": args.flush_count}
    if args.flush_after:
        config_dict["flush"] = {**config_dict.get("flush", {}), "after": args.flush_after}
    return PipelineConfig(config_dict)


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Ship queue messages through the session batching pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("files", nargs="*", type=Path, help="Message files (default: stdin)")
    parser.add_argument("--config", default=os.environ.get("LOGBATCH_CONFIG"), help="Path to logbatch.yaml")
    parser.add_argument("--sink-url", help="Elasticsearch URL")
    parser.add_argument("--index", help="Target index")
    parser.add_argument("--flush-count", type=int, help="Flush after N records per session")
    parser.add_argument("--flush-after", help='Flush after a duration, e.g. "5m"')
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    args = parser.parse_args(argv)

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    entrypoint = build_entrypoint(build_config(args))

    if args.files:
        streams = [open(path, "r", encoding="utf-8") for path in args.files]
    else:
        streams = [sys.stdin]

    try:
        summary = ship(entrypoint, read_lines(streams))
    finally:
        for stream in streams:
            if stream is not sys.stdin:
                stream.close()

    print(yaml.safe_dump(summary, default_flow_style=False, sort_keys=False))
    return 1 if summary["storage_errors"] or summary["failed_flushes"] else 0


if __name__ == "__main__":
    sys.exit(main())
