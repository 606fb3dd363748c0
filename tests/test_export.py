"""Tests for the export service module."""

import json

import pytest

from event_merge.export.service import (
    EXPORT_CHUNK_SIZE,
    build_export_document,
    chunk_events,
    dump_document,
    event_to_output,
    parse_import_document,
)
from event_merge.matching.config import DedupConfig
from event_merge.models import EventRecord


# ---------------------------------------------------------------------------
# event_to_output
# ---------------------------------------------------------------------------


class TestEventToOutput:
    def test_empty_fields_left_out(self):
        event = EventRecord(id="ev-1", title="Jazz Night", tags={"live", "jazz"})
        assert event_to_output(event) == {
            "id": "ev-1",
            "title": "Jazz Night",
            "tags": ["jazz", "live"],
        }

    def test_no_tags(self):
        output = event_to_output(EventRecord(id="ev-1"))
        assert "tags" not in output

    def test_datetimes_serialized(self):
        event = EventRecord.from_raw({"id": "ev-1", "start_time": "2024-01-15T20:00:00Z"})
        output = event_to_output(event)
        assert output["start_time"].startswith("2024-01-15T20:00:00")
        json.dumps(output)


# ---------------------------------------------------------------------------
# chunk_events
# ---------------------------------------------------------------------------


class TestChunkEvents:
    def test_empty_yields_one_file(self):
        [(filename, content)] = chunk_events([])
        assert filename.startswith("merged_")
        assert filename.endswith("_part_1.json")
        data = json.loads(content)
        assert data["events"] == []
        assert data["metadata"]["totalParts"] == 1

    def test_split_into_parts(self):
        events = [{"id": str(n)} for n in range(5)]
        chunks = chunk_events(events, chunk_size=2)
        assert len(chunks) == 3
        parts = [json.loads(content) for _, content in chunks]
        assert [len(p["events"]) for p in parts] == [2, 2, 1]
        assert [p["metadata"]["part"] for p in parts] == [1, 2, 3]
        assert all(p["metadata"]["totalParts"] == 3 for p in parts)
        assert [name.rsplit("_", 1)[-1] for name, _ in chunks] == ["1.json", "2.json", "3.json"]

    def test_default_chunk_size(self):
        events = [{"id": str(n)} for n in range(EXPORT_CHUNK_SIZE + 1)]
        assert len(chunk_events(events)) == 2


# ---------------------------------------------------------------------------
# build / parse documents
# ---------------------------------------------------------------------------


class TestDocuments:
    def test_build_document(self):
        document = build_export_document([], DedupConfig(), {"runs": 0})
        assert document["mergeHistory"] == []
        assert document["configuration"] == DedupConfig().model_dump(mode="json")
        assert document["performance"] == {"runs": 0}

    def test_parse_round_trip(self):
        text = dump_document(build_export_document([], DedupConfig(), {}))
        parsed, errors = parse_import_document(text, DedupConfig())
        assert errors == []
        assert parsed.configuration == DedupConfig()
        assert parsed.history == []

    def test_partial_configuration_merged(self):
        parsed, errors = parse_import_document(
            {"configuration": {"location": {"radius_km": 2.0}}}, DedupConfig()
        )
        assert errors == []
        assert parsed.configuration.location.radius_km == 2.0
        assert parsed.configuration.thresholds.overall == 0.80

    @pytest.mark.parametrize(
        "document,expected",
        [
            ("[1, 2", "document: invalid JSON"),
            ([1, 2], "document: expected a JSON object"),
            ({"mergeHistory": {"a": 1}}, "mergeHistory: expected a list"),
            ({"configuration": {"thresholds": {"overall": -1}}}, "configuration.thresholds.overall:"),
            ({"mergeHistory": [{"history_id": "x"}]}, "mergeHistory.record 0:"),
        ],
    )
    def test_errors(self, document, expected):
        parsed, errors = parse_import_document(document, DedupConfig())
        assert parsed is None
        assert errors[0].startswith(expected)

    def test_performance_ignored(self):
        parsed, errors = parse_import_document({"performance": "anything"}, DedupConfig())
        assert errors == []
        assert parsed.configuration is None
