"""CLI entry point: python -m event_merge.cli {check,process,export}"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any

import structlog
from pydantic_core import to_jsonable_python

from event_merge.config.settings import get_settings
from event_merge.export.service import chunk_events, dump_document, event_to_output
from event_merge.logging_config import configure_logging
from event_merge.matching.config import load_dedup_config
from event_merge.models import ProcessingMode
from event_merge.orchestrator import DeduplicationOrchestrator


def load_events(path: Path) -> list[Any]:
    """Read events from a JSON file holding a list or an ``{"events": [...]}`` object."""
    data = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data.get("events", [])
    if not isinstance(data, list):
        raise ValueError(f"{path}: expected a list of events")
    return data


def build_orchestrator(config_path: str | None) -> DeduplicationOrchestrator:
    path = Path(config_path) if config_path else get_settings().config_path
    orchestrator = DeduplicationOrchestrator(load_dedup_config(path))
    orchestrator.initialize()
    return orchestrator


def run_check(orchestrator: DeduplicationOrchestrator, candidate_path: Path, pool_path: Path) -> dict:
    candidate = json.loads(candidate_path.read_text(encoding="utf-8"))
    result = orchestrator.check_for_duplicates(candidate, load_events(pool_path))
    return to_jsonable_python(result)


async def run_process(
    orchestrator: DeduplicationOrchestrator, input_path: Path, mode: str
) -> dict:
    result = await orchestrator.process_events(load_events(input_path), mode)
    return {
        "processed_count": result.processed_count,
        "duplicates_found": result.duplicates_found,
        "clusters": [sorted(cluster) for cluster in result.clusters],
        "errors": to_jsonable_python(result.errors),
        "stats": to_jsonable_python(result.stats),
    }


async def run_export(
    orchestrator: DeduplicationOrchestrator,
    input_path: Path,
    output_path: Path,
    events_dir: Path | None,
) -> dict:
    """Merge every duplicate cluster of the input and write the export document.

    Within a cluster the earliest event in input order is the primary.
    """
    log = structlog.get_logger()
    events = load_events(input_path)
    result = await orchestrator.process_events(events, ProcessingMode.BATCH)

    # A repeated id keeps its first occurrence, matching process_events
    by_id: dict[str, dict] = {}
    for event in events:
        if isinstance(event, dict):
            by_id.setdefault(str(event.get("id")), event)
    order = {event_id: position for position, event_id in enumerate(by_id)}
    merged_events = []
    failed = 0
    for cluster in result.clusters:
        ids = sorted(cluster, key=order.__getitem__)
        merge = orchestrator.merge_events(
            by_id[ids[0]], [by_id[i] for i in ids[1:]], merged_by="cli"
        )
        if merge.success:
            merged_events.append(event_to_output(merge.merged_event))
        else:
            failed += 1
            log.warning("cluster_merge_rejected", primary_event_id=ids[0], errors=merge.errors)

    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(dump_document(orchestrator.export_data()), encoding="utf-8")
    log.info("export_document_written", path=str(output_path))

    if events_dir is not None:
        events_dir.mkdir(parents=True, exist_ok=True)
        for filename, content in chunk_events(merged_events):
            (events_dir / filename).write_text(content, encoding="utf-8")
        log.info("merged_events_written", directory=str(events_dir), count=len(merged_events))

    return {
        "clusters": len(result.clusters),
        "merged": len(merged_events),
        "rejected": failed,
        "output": str(output_path),
    }


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="event_merge.cli",
        description="Event duplicate detection and merge CLI",
    )
    parser.add_argument("--config", type=str, default=None, help="Path to a dedup YAML config")
    subparsers = parser.add_subparsers(dest="command")

    check_parser = subparsers.add_parser("check", help="Check one event against a pool")
    check_parser.add_argument("--candidate", type=Path, required=True, help="JSON file with one event")
    check_parser.add_argument("--pool", type=Path, required=True, help="JSON file with existing events")

    process_parser = subparsers.add_parser("process", help="Find duplicates in a batch of events")
    process_parser.add_argument("--input", type=Path, required=True, help="JSON file with events")
    process_parser.add_argument(
        "--mode",
        choices=[mode.value for mode in ProcessingMode],
        default=ProcessingMode.BATCH.value,
        help="Processing mode (default: batch)",
    )

    export_parser = subparsers.add_parser(
        "export", help="Merge duplicate clusters and write the export document"
    )
    export_parser.add_argument("--input", type=Path, required=True, help="JSON file with events")
    export_parser.add_argument("--output", type=Path, required=True, help="Export document path")
    export_parser.add_argument(
        "--events-dir",
        type=Path,
        default=None,
        help="Also write the merged events as chunked JSON files here",
    )

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    settings = get_settings()
    configure_logging(json_output=settings.log_json, log_level=settings.log_level)
    orchestrator = build_orchestrator(args.config)

    try:
        if args.command == "check":
            output = run_check(orchestrator, args.candidate, args.pool)
        elif args.command == "process":
            output = asyncio.run(run_process(orchestrator, args.input, args.mode))
        else:
            output = asyncio.run(run_export(orchestrator, args.input, args.output, args.events_dir))
    finally:
        orchestrator.cleanup()

    print(json.dumps(output, ensure_ascii=False, indent=2))


if __name__ == "__main__":
    main()
