"""
Tests for sidecar parsing, including every malformed-content fallback.
"""
import json
import os
import stat
from pathlib import Path

from treedump.models import SelectionRecord, SidecarState
from treedump.sidecar import (
    SIDECAR_NAME,
    build_selection_index,
    parse_sidecar,
    read_sidecar,
    write_sidecar,
)


def test_parse_valid_sidecar():
    raw = json.dumps(
        {
            "ignore_patterns": "*.log\nbuild",
            "files": [
                {"id": "a.txt", "checked": True, "lineFrom": 1, "lineTo": 5},
                {"id": "sub/c.txt"},
            ],
        }
    )

    state = parse_sidecar(raw)

    assert state.ignore_patterns == "*.log\nbuild"
    assert [record.id for record in state.files] == ["a.txt", "sub/c.txt"]
    assert state.files[0].line_from == 1
    assert state.files[0].line_to == 5
    assert state.files[1].line_from is None


def test_parse_none_is_empty():
    state = parse_sidecar(None)
    assert state.ignore_patterns == ""
    assert state.files == []


def test_parse_invalid_json_is_empty():
    state = parse_sidecar("{not json")
    assert state.ignore_patterns == ""
    assert state.files == []


def test_parse_scalar_top_level_is_empty():
    assert parse_sidecar("42").files == []
    assert parse_sidecar('"text"').ignore_patterns == ""


def test_parse_bytes():
    state = parse_sidecar(b'{"ignore_patterns": "dist", "files": []}')
    assert state.ignore_patterns == "dist"


def test_parse_wrong_field_types():
    """Each broken field falls back on its own."""
    state = parse_sidecar({"ignore_patterns": 5, "files": [{"id": "a.txt"}]})
    assert state.ignore_patterns == ""
    assert [record.id for record in state.files] == ["a.txt"]

    state = parse_sidecar({"ignore_patterns": "*.log", "files": {"id": "a.txt"}})
    assert state.ignore_patterns == "*.log"
    assert state.files == []


def test_parse_missing_fields():
    state = parse_sidecar("{}")
    assert state.ignore_patterns == ""
    assert state.files == []


def test_records_without_string_id_are_dropped():
    state = parse_sidecar(
        {
            "files": [
                {"id": 3},
                "x",
                {"label": "no id"},
                {"id": "b.txt", "label": "b.txt", "children": []},
            ]
        }
    )

    assert [record.id for record in state.files] == ["b.txt"]


def test_invalid_fields_are_dropped_and_record_kept():
    """A bad field never costs the record its id."""
    state = parse_sidecar(
        {
            "files": [
                {"id": "a.txt", "lineFrom": "abc", "lineTo": 7},
                {"id": "b.txt", "checked": None},
                {"id": "c.txt", "checked": "maybe", "lineFrom": 1.5, "lineTo": 3},
            ]
        }
    )

    assert [record.id for record in state.files] == ["a.txt", "b.txt", "c.txt"]
    a, b, c = state.files
    assert (a.line_from, a.line_to) == (None, 7)
    assert b.checked is True
    assert (c.checked, c.line_from, c.line_to) == (True, None, 3)


def test_legacy_list_format():
    """A bare list of selected nodes (absolute ids) is still understood."""
    state = parse_sidecar([{"id": "/r/a.txt", "label": "a.txt", "checked": True}])

    assert state.ignore_patterns == ""
    assert [record.id for record in state.files] == ["/r/a.txt"]

    index = build_selection_index("/r", state.files)
    assert list(index) == [str(Path("/r/a.txt"))]


def test_build_selection_index_joins_root():
    records = [SelectionRecord(id="a.txt"), SelectionRecord(id="sub/c.txt")]

    index = build_selection_index(Path("/r"), records)

    assert set(index) == {str(Path("/r/a.txt")), str(Path("/r/sub/c.txt"))}
    assert index[str(Path("/r/a.txt"))].id == "a.txt"


def test_read_sidecar_missing(tmp_path):
    assert read_sidecar(tmp_path) is None


def test_write_then_read(tmp_path):
    state = SidecarState(ignore_patterns="*.log", files=[SelectionRecord(id="a.txt")])

    outcome = write_sidecar(tmp_path, state)

    assert outcome.success
    raw = read_sidecar(tmp_path)
    assert raw == (tmp_path / SIDECAR_NAME).read_text()
    assert parse_sidecar(raw) == state


def test_record_serializes_aliases():
    record = SelectionRecord.model_validate({"id": "a.txt", "lineFrom": 2, "lineTo": 4})

    assert record.to_dict() == {"id": "a.txt", "checked": True, "lineFrom": 2, "lineTo": 4}


def test_write_keeps_existing_mode(tmp_path):
    write_sidecar(tmp_path, SidecarState())
    path = tmp_path / SIDECAR_NAME
    path.chmod(0o600)

    outcome = write_sidecar(tmp_path, SidecarState(ignore_patterns="*.log"))

    assert outcome.success
    assert stat.S_IMODE(path.stat().st_mode) == 0o600


def test_new_sidecar_respects_umask(tmp_path):
    old_umask = os.umask(0o027)
    try:
        outcome = write_sidecar(tmp_path, SidecarState())
    finally:
        os.umask(old_umask)

    assert outcome.success
    assert stat.S_IMODE((tmp_path / SIDECAR_NAME).stat().st_mode) == 0o640
