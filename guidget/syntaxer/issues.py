"""Issue data model for analysis and refactoring reports."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .nodes import Node


@dataclass(frozen=True)
class Issue:
    """Structured representation of a skipped or suspicious situation."""

    kind: str
    file: str
    line: int
    col: int
    message: str

    def __str__(self) -> str:
        return f"{self.file}:{self.line}:{self.col}: [{self.kind}] {self.message}"


def make_issue(kind: str, node: "Node | None", message: str) -> Issue:
    """Create an Issue using the node's start position (1-based column)."""
    pos = node.position if node is not None else None
    if pos is None:
        return Issue(kind=kind, file="<synthetic>", line=-1, col=-1, message=message)
    return Issue(kind=kind, file=pos.file, line=pos.line, col=pos.column + 1, message=message)
