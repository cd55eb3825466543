"""
Directory tree scanning merged with the persisted selection.
"""

import logging
import os
import stat
from pathlib import Path
from typing import (
    Any,
    FrozenSet,
    Iterable,
    Iterator,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
    Union,
)

from pydantic import ValidationError

from treedump.matcher import normalize_path, parse_ignore_patterns, should_ignore
from treedump.models import (
    PersistResult,
    ScanResult,
    SelectionRecord,
    SidecarState,
    TreeNode,
)
from treedump.sidecar import (
    SIDECAR_NAME,
    RawState,
    build_selection_index,
    parse_sidecar,
    read_sidecar,
    write_sidecar,
)

logger = logging.getLogger(__name__)

DirKey = Tuple[int, int]


class Scanner:
    """
    Recursively builds the tree for a root directory, pruning ignored entries
    and marking entries found in the selection index as checked.
    """

    def __init__(
        self,
        root_path: Union[str, Path],
        ignore_patterns: Optional[Sequence[str]] = None,
        selection_index: Optional[Mapping[str, SelectionRecord]] = None,
    ):
        self.root_path = Path(root_path).absolute()
        self.ignore_patterns = list(ignore_patterns or [])
        self.selection_index = selection_index or {}

    def should_ignore(self, path: Path) -> bool:
        """
        Check an entry against the ignore patterns.

        Matching uses the path relative to the directory being listed, so
        patterns apply to entry names at any depth.
        """
        if path.parent == self.root_path and path.name == SIDECAR_NAME:
            return True
        return should_ignore(path.name, self.ignore_patterns)

    def scan_tree(self) -> Optional[List[TreeNode]]:
        """
        Build the top-level nodes of the tree.

        Returns None when the root itself cannot be listed.
        """
        try:
            root_stat = self.root_path.stat()
            entries = list(self.root_path.iterdir())
        except OSError as e:
            logger.warning(f"Cannot list root directory {self.root_path}: {e}")
            return None

        ancestors = frozenset([(root_stat.st_dev, root_stat.st_ino)])
        return list(self._build_nodes(entries, ancestors))

    def walk(self, dir_path: Path, ancestors: FrozenSet[DirKey]) -> Tuple[TreeNode, ...]:
        """Build the children of a nested directory; unreadable means empty."""
        try:
            entries = list(dir_path.iterdir())
        except OSError as e:
            logger.warning(f"Cannot list directory {dir_path}: {e}")
            return ()
        return self._build_nodes(entries, ancestors)

    def _build_nodes(
        self, entries: Iterable[Path], ancestors: FrozenSet[DirKey]
    ) -> Tuple[TreeNode, ...]:
        nodes = []
        for entry in entries:
            if self.should_ignore(entry):
                logger.debug(f"Ignoring {entry}")
                continue

            try:
                entry_stat = entry.stat()
            except OSError as e:
                logger.warning(f"Skipping {entry}: {e}")
                continue

            is_directory = stat.S_ISDIR(entry_stat.st_mode)
            children = None
            if is_directory:
                key = (entry_stat.st_dev, entry_stat.st_ino)
                if key in ancestors:
                    logger.warning(f"Not following directory loop at {entry}")
                    children = ()
                else:
                    children = self.walk(entry, ancestors | {key})

            nodes.append(self._make_node(entry, is_directory, children))
        return tuple(nodes)

    def _make_node(
        self,
        entry: Path,
        is_directory: bool,
        children: Optional[Tuple[TreeNode, ...]],
    ) -> TreeNode:
        node_id = str(entry)
        record = self.selection_index.get(node_id)
        if record is None:
            return TreeNode(
                id=node_id,
                label=entry.name,
                is_directory=is_directory,
                children=children,
            )
        return TreeNode(
            id=node_id,
            label=entry.name,
            is_directory=is_directory,
            checked=True,
            line_from=record.line_from,
            line_to=record.line_to,
            children=children,
        )


def scan(root_path: Union[str, Path], persisted_state: RawState = None) -> ScanResult:
    """
    Scan root_path and merge it with the persisted selection.

    Args:
        root_path: Directory to scan
        persisted_state: Raw sidecar content (text, bytes or decoded JSON).
            When None, the sidecar file under root_path is read, if any.

    Returns:
        ScanResult with the tree, every persisted selection id (including
        ids no longer on disk) and the ignore-pattern text verbatim. An
        unreadable root gives an empty tree and no selections.
    """
    root = Path(root_path).absolute()
    if persisted_state is None:
        persisted_state = read_sidecar(root)

    state = parse_sidecar(persisted_state)
    selection_index = build_selection_index(root, state.files)
    patterns = parse_ignore_patterns(state.ignore_patterns)

    scanner = Scanner(root, ignore_patterns=patterns, selection_index=selection_index)
    tree = scanner.scan_tree()
    if tree is None:
        return ScanResult(ignore_patterns_text=state.ignore_patterns)

    return ScanResult(
        tree=tree,
        selected_ids=list(selection_index),
        ignore_patterns_text=state.ignore_patterns,
    )


def persist(
    root_path: Union[str, Path],
    selection: Sequence[Union[SelectionRecord, Mapping[str, Any]]],
    ignore_patterns_text: str,
) -> PersistResult:
    """
    Overwrite the sidecar under root_path with the given selection.

    Every entry is written as given; nothing is filtered by ``checked``.
    Returns a failed PersistResult instead of raising when an entry is
    invalid, the ignore patterns are not text, or the file cannot be
    written.
    """
    records = []
    for entry in selection:
        if isinstance(entry, SelectionRecord):
            records.append(entry)
            continue
        try:
            records.append(SelectionRecord.model_validate(dict(entry)))
        except (ValidationError, TypeError, ValueError) as e:
            logger.error(f"Refusing to persist invalid selection entry {entry!r}: {e}")
            return PersistResult(success=False, error=f"Invalid selection entry: {e}")

    try:
        state = SidecarState(ignore_patterns=ignore_patterns_text, files=records)
    except ValidationError as e:
        logger.error(f"Refusing to persist ignore patterns {ignore_patterns_text!r}: {e}")
        return PersistResult(success=False, error=f"Invalid ignore patterns: {e}")
    return write_sidecar(root_path, state)


def iter_nodes(nodes: Iterable[TreeNode]) -> Iterator[TreeNode]:
    """Yield every node depth-first, parents before children."""
    for node in nodes:
        yield node
        if node.children:
            yield from iter_nodes(node.children)


def collect_selection(
    nodes: Iterable[TreeNode], root_path: Union[str, Path]
) -> List[SelectionRecord]:
    """Checked nodes as root-relative selection records, line ranges kept."""
    root = str(Path(root_path).absolute())
    return [
        SelectionRecord(
            id=normalize_path(os.path.relpath(node.id, root)),
            checked=True,
            line_from=node.line_from,
            line_to=node.line_to,
        )
        for node in iter_nodes(nodes)
        if node.checked
    ]

