"""Export and import of engine state, and serialization of merged events.

The export document is a JSON object with three keys: ``mergeHistory``
(serialized history entries), ``configuration`` (the full live
configuration) and ``performance`` (informational metrics, ignored on
import).
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from pydantic_core import to_jsonable_python

from event_merge.errors import ConfigurationError
from event_merge.history.tracker import parse_history_records
from event_merge.matching.config import DedupConfig, apply_overrides
from event_merge.models.event import EventRecord

EXPORT_CHUNK_SIZE = 200


@dataclass
class ImportResult:
    success: bool
    imported_history: int = 0
    configuration_applied: bool = False
    errors: list[str] = field(default_factory=list)


@dataclass
class ParsedImport:
    """A fully validated import document, ready to apply."""

    configuration: DedupConfig | None
    history: list[dict[str, Any]]


def build_export_document(
    history: list[dict[str, Any]],
    configuration: DedupConfig,
    performance: dict[str, Any],
) -> dict[str, Any]:
    return {
        "mergeHistory": history,
        "configuration": configuration.model_dump(mode="json"),
        "performance": to_jsonable_python(performance),
    }


def dump_document(document: dict[str, Any]) -> str:
    return json.dumps(document, ensure_ascii=False, indent=2)


def parse_import_document(
    data: Any, current: DedupConfig
) -> tuple[ParsedImport | None, list[str]]:
    """Validate an export document against the live configuration.

    Args:
        data: The document as a mapping, or as JSON text.
        current: Live configuration the imported one is merged onto.

    Returns:
        The parsed document, or ``None`` together with field-level errors
        (``"configuration.thresholds.overall: ..."``,
        ``"mergeHistory.record 2: merged_at: ..."``).
    """
    if isinstance(data, (str, bytes)):
        try:
            data = json.loads(data)
        except json.JSONDecodeError as e:
            return None, [f"document: invalid JSON: {e}"]

    if not isinstance(data, dict):
        return None, ["document: expected a JSON object"]

    errors: list[str] = []
    configuration = None
    if data.get("configuration") is not None:
        try:
            configuration = apply_overrides(current, data["configuration"])
        except ConfigurationError as e:
            errors.extend(f"configuration.{message}" for message in e.errors)

    history = data.get("mergeHistory", [])
    if not isinstance(history, list):
        errors.append("mergeHistory: expected a list")
    else:
        _, history_errors = parse_history_records(history)
        errors.extend(f"mergeHistory.{message}" for message in history_errors)

    if errors:
        return None, errors
    return ParsedImport(configuration=configuration, history=history), []


def event_to_output(event: EventRecord) -> dict[str, Any]:
    """Serialize a merged event, leaving out empty fields."""
    output = event.model_dump(mode="json", exclude_none=True)
    if output.get("tags"):
        output["tags"] = sorted(output["tags"])
    else:
        output.pop("tags", None)
    return output


def chunk_events(
    events: list[dict[str, Any]],
    chunk_size: int = EXPORT_CHUNK_SIZE,
) -> list[tuple[str, str]]:
    """Split serialized events into named JSON chunks.

    Returns a list of ``(filename, json_content)`` tuples.  Each chunk is a
    complete JSON document with an ``events`` array and ``metadata`` block.
    When *events* is empty a single file with an empty ``events`` array is
    returned (never an empty list).
    """
    timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M")
    exported_at = datetime.now(timezone.utc).isoformat()
    total_parts = max(1, (len(events) + chunk_size - 1) // chunk_size)

    chunks: list[tuple[str, str]] = []
    for part in range(1, total_parts + 1):
        chunk = events[(part - 1) * chunk_size : part * chunk_size]
        content = json.dumps(
            {
                "events": chunk,
                "metadata": {
                    "exportedAt": exported_at,
                    "eventCount": len(chunk),
                    "part": part,
                    "totalParts": total_parts,
                },
            },
            ensure_ascii=False,
            indent=2,
        )
        chunks.append((f"merged_{timestamp}_part_{part}.json", content))
    return chunks
