"""
Reading, parsing and writing the per-directory selection sidecar.
"""

import contextlib
import json
import logging
import os
import stat
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from treedump.models import PersistResult, SelectionRecord, SidecarState

logger = logging.getLogger(__name__)

SIDECAR_NAME = "treedump.json"

RawState = Union[str, bytes, Dict[str, Any], List[Any], None]


def sidecar_path(root_path: Union[str, Path]) -> Path:
    return Path(root_path) / SIDECAR_NAME


def read_sidecar(root_path: Union[str, Path]) -> Optional[str]:
    """Return the raw sidecar content under root_path, or None if there is none."""
    path = sidecar_path(root_path)
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except (OSError, UnicodeDecodeError) as e:
        logger.warning(f"Cannot read sidecar {path}: {e}")
        return None


def _parse_records(entries: List[Any]) -> List[SelectionRecord]:
    records = []
    for entry in entries:
        if not isinstance(entry, dict) or not isinstance(entry.get("id"), str):
            logger.warning(f"Dropping sidecar entry without a string id: {entry!r}")
            continue
        try:
            records.append(SelectionRecord.model_validate(entry))
        except ValidationError:
            records.append(_salvage_record(entry))
    return records


def _salvage_record(entry: Dict[str, Any]) -> SelectionRecord:
    # Keep the id, drop only the fields that fail on their own
    kept = {"id": entry["id"]}
    for key, value in entry.items():
        if key == "id":
            continue
        try:
            SelectionRecord.model_validate({"id": entry["id"], key: value})
        except ValidationError:
            logger.warning(f"Ignoring invalid {key!r} of sidecar entry {entry['id']!r}: {value!r}")
            continue
        kept[key] = value
    return SelectionRecord.model_validate(kept)


def parse_sidecar(raw: RawState) -> SidecarState:
    """
    Parse raw sidecar content into a SidecarState.

    Malformed content never raises. Each broken part falls back to its
    empty default:

    - undecodable JSON, or a top level that is neither object nor list,
      gives an empty state
    - a top-level list is the legacy format (bare list of selected nodes)
    - a non-string ``ignore_patterns`` becomes ""
    - a non-list ``files`` becomes []
    - entries without a string id are dropped
    - invalid fields of an entry (bad line numbers, a non-bool checked)
      are dropped, the entry and its id are kept
    """
    if raw is None:
        return SidecarState()

    data: Any = raw
    if isinstance(raw, (str, bytes)):
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"Ignoring malformed sidecar content: {e}")
            return SidecarState()

    if isinstance(data, list):
        return SidecarState(files=_parse_records(data))

    if not isinstance(data, dict):
        logger.warning(f"Ignoring sidecar content of type {type(data).__name__}")
        return SidecarState()

    ignore_patterns = data.get("ignore_patterns", "")
    if not isinstance(ignore_patterns, str):
        logger.warning("Sidecar ignore_patterns is not text, using no patterns")
        ignore_patterns = ""

    files = data.get("files", [])
    if not isinstance(files, list):
        logger.warning("Sidecar files is not a list, using no selection")
        files = []

    return SidecarState(ignore_patterns=ignore_patterns, files=_parse_records(files))


def build_selection_index(
    root_path: Union[str, Path], records: List[SelectionRecord]
) -> Dict[str, SelectionRecord]:
    """Key each record by its absolute path under root_path."""
    root = Path(root_path)
    return {str(root / record.id): record for record in records}


def _file_mode(path: Path) -> int:
    """Mode of the existing sidecar, or the umask default for a new file."""
    try:
        return stat.S_IMODE(path.stat().st_mode)
    except FileNotFoundError:
        umask = os.umask(0)
        os.umask(umask)
        return 0o666 & ~umask


def write_sidecar(root_path: Union[str, Path], state: SidecarState) -> PersistResult:
    """
    Overwrite the sidecar under root_path with state.

    The content goes to a temporary file in the same directory first and is
    then moved into place, so readers never see a half-written sidecar.
    """
    path = sidecar_path(root_path)
    content = json.dumps(state.to_dict(), indent=2)

    tmp_name = None
    try:
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{SIDECAR_NAME}.", suffix=".tmp", dir=str(path.parent)
        )
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.chmod(tmp_name, _file_mode(path))
        os.replace(tmp_name, path)
    except OSError as e:
        logger.error(f"Failed to write sidecar {path}: {e}")
        if tmp_name:
            with contextlib.suppress(OSError):
                os.unlink(tmp_name)
        return PersistResult(success=False, path=path, error=str(e))

    logger.debug(f"Wrote {len(state.files)} selection(s) to {path}")
    return PersistResult(success=True, path=path)
