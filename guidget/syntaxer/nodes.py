"""
guidget/syntaxer/nodes.py

Mutable syntax tree used by the analyses and the refactoring.

Nodes are produced from tree-sitter parse trees by the builder, or created
synthetically by the refactoring. Every node keeps a print template (the
source text around its children) so that untouched code prints verbatim.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Callable, Iterator, Optional


class NodeKind(Enum):
    """Closed set of node kinds handled by the analyses."""
    COMPILATION_UNIT = auto()
    CLASS = auto()
    INTERFACE = auto()
    INTERFACE_LIST = auto()
    TYPE = auto()
    FIELD = auto()
    METHOD = auto()
    CONSTRUCTOR = auto()
    PARAMETER = auto()
    VARIABLE = auto()
    LOCAL_DECL = auto()
    BLOCK = auto()
    IF = auto()
    SWITCH = auto()
    CASE = auto()
    RETURN = auto()
    BREAK = auto()
    CONTINUE = auto()
    THROW = auto()
    EXPRESSION_STATEMENT = auto()
    STATEMENT = auto()
    INVOCATION = auto()
    NEW_CLASS = auto()
    LAMBDA = auto()
    VARIABLE_ACCESS = auto()
    THIS = auto()
    LITERAL = auto()
    BINARY = auto()
    UNARY = auto()
    PAREN = auto()
    OTHER = auto()


STATEMENT_KINDS = frozenset({
    NodeKind.FIELD,
    NodeKind.LOCAL_DECL,
    NodeKind.BLOCK,
    NodeKind.IF,
    NodeKind.SWITCH,
    NodeKind.CASE,
    NodeKind.RETURN,
    NodeKind.BREAK,
    NodeKind.CONTINUE,
    NodeKind.THROW,
    NodeKind.EXPRESSION_STATEMENT,
    NodeKind.STATEMENT,
})

EXECUTABLE_KINDS = frozenset({NodeKind.METHOD, NodeKind.CONSTRUCTOR, NodeKind.LAMBDA})

TYPE_KINDS = frozenset({NodeKind.CLASS, NodeKind.INTERFACE})

VARIABLE_KINDS = frozenset({NodeKind.VARIABLE, NodeKind.PARAMETER})

# Removing a child from these kinds cannot be expressed by cutting the
# template, they are printed again from their structure.
_RESTRUCTURE_ON_REMOVE = frozenset({
    NodeKind.FIELD,
    NodeKind.LOCAL_DECL,
    NodeKind.INTERFACE_LIST,
})


@dataclass(frozen=True)
class SourcePosition:
    """Location of a node in its source file (lines are 1-based)."""
    file: str
    line: int
    end_line: int
    column: int = 0
    start_byte: int = 0
    end_byte: int = 0

    def __str__(self) -> str:
        return f"{self.file}:{self.line}-{self.end_line}"


@dataclass(eq=False)
class Node:
    """
    A syntax tree node.

    Identity is the node object itself: two structurally identical nodes
    are different nodes. ``role`` names the slot the node occupies in its
    parent (``condition``, ``then``, ``argument``...).
    """
    kind: NodeKind
    name: Optional[str] = None
    attrs: dict[str, Any] = field(default_factory=dict)
    children: list[Node] = field(default_factory=list)
    role: Optional[str] = None
    parent: Optional[Node] = None
    position: Optional[SourcePosition] = None
    template: Optional[list] = None
    origin: Optional[Node] = None
    dirty: bool = False

    def __repr__(self) -> str:
        where = f" @{self.position.line}" if self.position else ""
        label = f" {self.name!r}" if self.name is not None else ""
        return f"<{self.kind.name}{label}{where}>"

    # -- navigation -------------------------------------------------------

    @property
    def is_statement(self) -> bool:
        return self.kind in STATEMENT_KINDS

    def child(self, role: str) -> Optional[Node]:
        """First child occupying ``role``."""
        for c in self.children:
            if c.role == role:
                return c
        return None

    def children_with(self, role: str) -> list[Node]:
        return [c for c in self.children if c.role == role]

    def walk(self) -> Iterator[Node]:
        """Iterative preorder traversal."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def filter(self, predicate: Callable[[Node], bool]) -> list[Node]:
        """All nodes of the sub-tree (self included) matching ``predicate``."""
        return [n for n in self.walk() if predicate(n)]

    def ancestors(self) -> Iterator[Node]:
        node = self.parent
        while node is not None:
            yield node
            node = node.parent

    def ancestor(self, *kinds: NodeKind) -> Optional[Node]:
        """Closest ancestor of one of the given kinds, if any."""
        for node in self.ancestors():
            if node.kind in kinds:
                return node
        return None

    def root(self) -> Node:
        node = self
        while node.parent is not None:
            node = node.parent
        return node

    def contains(self, other: Node) -> bool:
        """True if ``other`` is this node or one of its descendants."""
        node: Optional[Node] = other
        while node is not None:
            if node is self:
                return True
            node = node.parent
        return False

    def sort_key(self) -> tuple[str, int]:
        pos = self.position
        if pos is None:
            return ("", -1)
        return (pos.file, pos.start_byte)

    # -- mutation ---------------------------------------------------------

    def add_child(self, node: Node, role: Optional[str] = None, index: Optional[int] = None) -> Node:
        if node.parent is not None:
            node.parent.remove_child(node)
        node.parent = self
        if role is not None:
            node.role = role
        if index is None:
            self.children.append(node)
        else:
            self.children.insert(index, node)
        if self.template is not None:
            self.dirty = True
        return node

    def remove_child(self, node: Node) -> None:
        for i, c in enumerate(self.children):
            if c is node:
                del self.children[i]
                break
        else:
            return
        node.parent = None
        if self.template is None:
            return
        if self.kind in _RESTRUCTURE_ON_REMOVE:
            self.dirty = True
            return
        for i, seg in enumerate(self.template):
            if seg is node:
                del self.template[i]
                if i > 0 and isinstance(self.template[i - 1], str):
                    before = _trim_line_tail(self.template[i - 1])
                    following = self.template[i] if i < len(self.template) else None
                    if before == self.template[i - 1] and isinstance(following, str) and following[:1].isspace():
                        before = before.rstrip(" \t")
                    self.template[i - 1] = before
                break

    def replace_child(self, old: Node, new: Node) -> Node:
        if new.parent is not None:
            new.parent.remove_child(new)
        for i, c in enumerate(self.children):
            if c is old:
                self.children[i] = new
                break
        else:
            raise ValueError(f"{old!r} is not a child of {self!r}")
        new.parent = self
        new.role = old.role
        old.parent = None
        if self.template is not None:
            for i, seg in enumerate(self.template):
                if seg is old:
                    self.template[i] = new
                    break
        return new

    def delete(self) -> None:
        """Detach the node from its parent (no-op when already detached)."""
        if self.parent is not None:
            self.parent.remove_child(self)

    def clone(self) -> Node:
        """Deep copy of the sub-tree, detached, remembering its origin."""
        mapping: dict[int, Node] = {}
        copy = self._clone_into(mapping)
        return copy

    def _clone_into(self, mapping: dict[int, Node]) -> Node:
        copy = Node(
            kind=self.kind,
            name=self.name,
            attrs=dict(self.attrs),
            role=self.role,
            position=self.position,
            origin=self.origin or self,
            dirty=self.dirty,
        )
        for c in self.children:
            cc = c._clone_into(mapping)
            cc.parent = copy
            copy.children.append(cc)
            mapping[id(c)] = cc
        if self.template is not None:
            copy.template = [
                mapping.get(id(seg), seg) if isinstance(seg, Node) else seg
                for seg in self.template
            ]
        return copy


def _trim_line_tail(text: str) -> str:
    """Drop the indentation and line break that preceded a removed child."""
    stripped = text.rstrip(" \t")
    if stripped.endswith("\n"):
        return stripped[:-1].rstrip("\r")
    return text


def make_node(kind: NodeKind, name: Optional[str] = None, children=(), **attrs) -> Node:
    """Create a synthetic node; ``children`` is an iterable of (role, node)."""
    node = Node(kind=kind, name=name, attrs=attrs)
    for role, child in children:
        node.add_child(child, role)
    return node
