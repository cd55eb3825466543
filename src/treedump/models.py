"""Data models for scan results and the persisted sidecar state."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class SelectionRecord(BaseModel):
    """One selected entry as stored in the sidecar file."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str  # Relative to the scanned root
    checked: bool = True
    line_from: Optional[int] = Field(default=None, alias="lineFrom")
    line_to: Optional[int] = Field(default=None, alias="lineTo")

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class SidecarState(BaseModel):
    """Complete content of a sidecar file."""

    ignore_patterns: str = ""
    files: List[SelectionRecord] = Field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ignore_patterns": self.ignore_patterns,
            "files": [record.to_dict() for record in self.files],
        }


@dataclass(frozen=True)
class TreeNode:
    """A single filesystem entry in a scan result."""

    id: str  # Absolute path, stable across rescans
    label: str
    is_directory: bool
    checked: bool = False
    line_from: Optional[int] = None
    line_to: Optional[int] = None
    children: Optional[Tuple["TreeNode", ...]] = None

    def to_dict(self) -> Dict[str, Any]:
        node: Dict[str, Any] = {
            "id": self.id,
            "label": self.label,
            "isDirectory": self.is_directory,
            "checked": self.checked,
        }
        if self.line_from is not None:
            node["lineFrom"] = self.line_from
        if self.line_to is not None:
            node["lineTo"] = self.line_to
        if self.children is not None:
            node["children"] = [child.to_dict() for child in self.children]
        return node


@dataclass
class ScanResult:
    """Output of one scan: the tree, the persisted selection and the raw patterns."""

    tree: List[TreeNode] = field(default_factory=list)
    selected_ids: List[str] = field(default_factory=list)
    ignore_patterns_text: str = ""

    @property
    def stale_ids(self) -> List[str]:
        """Selected ids that no longer appear anywhere in the tree."""
        present = set()
        stack = list(self.tree)
        while stack:
            node = stack.pop()
            present.add(node.id)
            if node.children:
                stack.extend(node.children)
        return [node_id for node_id in self.selected_ids if node_id not in present]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tree": [node.to_dict() for node in self.tree],
            "selectedIds": list(self.selected_ids),
            "ignorePatternsText": self.ignore_patterns_text,
        }


@dataclass
class PersistResult:
    """Outcome of writing a sidecar or config file."""

    success: bool
    path: Optional[Path] = None
    error: Optional[str] = None
