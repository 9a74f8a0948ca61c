"""
guidget/syntaxer/model.py

The owning syntax model: a set of parsed compilation units with their
sources, plus the queries the analyses need on top of the raw tree
(lexical name resolution, approximate static typing, class index and
toolkit-backed widget/listener questions).

Typing is deliberately shallow: simple type names only, no generics, no
overload resolution. Anything that cannot be decided returns None.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, Iterator, Optional

from ..errors import FrontEndError
from ..toolkit import TOOLKIT, Toolkit
from .builder import parse_unit
from .nodes import EXECUTABLE_KINDS, STATEMENT_KINDS, TYPE_KINDS, Node, NodeKind

log = logging.getLogger(__name__)

_BOOLEAN_OPERATORS = frozenset({"==", "!=", "<", ">", "<=", ">=", "&&", "||", "instanceof"})

# Scopes whose earlier children may declare names visible to later ones.
_SCOPE_DECLARING_KINDS = frozenset({NodeKind.LOCAL_DECL, NodeKind.PARAMETER})


@dataclass
class SyntaxModel:
    """
    Compilation units under analysis plus library units used for type
    knowledge only.

    Example:
        model = SyntaxModel.from_source(java_text, "Foo.java")
        for inv in model.filter(lambda n: n.kind is NodeKind.INVOCATION):
            ...
    """

    units: list[Node]
    sources: dict[str, bytes] = field(default_factory=dict)
    toolkit: Toolkit = TOOLKIT
    library_units: list[Node] = field(default_factory=list)
    _types: dict[str, list[Node]] = field(init=False, default_factory=dict)

    def __post_init__(self):
        self._unit_ids = {id(u) for u in self.units}
        self._index_types()

    # -- construction -----------------------------------------------------

    @classmethod
    def from_source(cls, text: str, filename: str = "Unit.java", toolkit: Optional[Toolkit] = None) -> SyntaxModel:
        return cls.from_sources({filename: text}, toolkit=toolkit)

    @classmethod
    def from_sources(cls, sources: dict[str, str], toolkit: Optional[Toolkit] = None) -> SyntaxModel:
        """Model over in-memory sources keyed by file name."""
        encoded = {name: text.encode("utf-8") for name, text in sources.items()}
        units = [parse_unit(data, name) for name, data in encoded.items()]
        return cls(units=units, sources=encoded, toolkit=toolkit or TOOLKIT)

    @classmethod
    def from_paths(
        cls,
        sources: Iterable[str | Path],
        classpath: Iterable[str | Path] = (),
        toolkit: Optional[Toolkit] = None,
    ) -> SyntaxModel:
        """
        Parse every ``.java`` file found under ``sources``.

        Classpath entries are Java source roots parsed for type knowledge
        only. Raises FrontEndError when a source path is missing or no Java
        file can be found.
        """
        encoded: dict[str, bytes] = {}
        units = [cls._load(path, encoded) for path in _java_files(sources, required=True)]
        if not units:
            raise FrontEndError("no Java source file found")
        library = [cls._load(path, encoded) for path in _java_files(classpath, required=False)]
        log.info("parsed %d source unit(s) and %d library unit(s)", len(units), len(library))
        return cls(units=units, sources=encoded, toolkit=toolkit or TOOLKIT, library_units=library)

    @staticmethod
    def _load(path: Path, encoded: dict[str, bytes]) -> Node:
        try:
            data = path.read_bytes()
        except OSError as exc:
            raise FrontEndError(f"cannot read {path}: {exc}") from exc
        encoded[str(path)] = data
        return parse_unit(data, str(path))

    def _index_types(self) -> None:
        self._types.clear()
        for unit in self.all_units:
            for node in unit.walk():
                if node.kind in TYPE_KINDS and node.name:
                    self._types.setdefault(node.name, []).append(node)

    # -- traversal --------------------------------------------------------

    @property
    def all_units(self) -> list[Node]:
        return self.units + self.library_units

    def walk(self) -> Iterator[Node]:
        """Preorder traversal of the analysed units."""
        for unit in self.units:
            yield from unit.walk()

    def filter(self, predicate: Callable[[Node], bool]) -> list[Node]:
        return [n for n in self.walk() if predicate(n)]

    def of_kind(self, *kinds: NodeKind) -> list[Node]:
        return self.filter(lambda n: n.kind in kinds)

    def is_attached(self, node: Node) -> bool:
        """True when the node hangs from one of the analysed units."""
        return id(node.root()) in self._unit_ids

    def enclosing_statement(self, node: Node) -> Optional[Node]:
        """Closest statement strictly above ``node``; None once detached."""
        if not self.is_attached(node):
            return None
        for anc in node.ancestors():
            if anc.kind in STATEMENT_KINDS:
                return anc
        return None

    def enclosing_executable(self, node: Node) -> Optional[Node]:
        return node.ancestor(*EXECUTABLE_KINDS)

    def enclosing_class(self, node: Node) -> Optional[Node]:
        return node.ancestor(*TYPE_KINDS)

    def enclosing_classes(self, node: Node) -> Iterator[Node]:
        for anc in node.ancestors():
            if anc.kind in TYPE_KINDS:
                yield anc

    # -- class index ------------------------------------------------------

    def find_class(self, name: Optional[str]) -> Optional[Node]:
        if not name:
            return None
        found = self._types.get(name)
        if not found:
            return None
        if len(found) > 1:
            log.debug("several declarations of type %s, using the first one", name)
        return found[0]

    @staticmethod
    def class_type_name(cls_node: Optional[Node]) -> Optional[str]:
        """Name of a class; the instantiated supertype for anonymous classes."""
        if cls_node is None:
            return None
        if cls_node.attrs.get("anonymous"):
            creation = cls_node.parent
            return creation.attrs.get("type_name") if creation is not None else None
        return cls_node.name

    def supertype_name(self, cls_node: Node) -> Optional[str]:
        if cls_node.attrs.get("anonymous"):
            return self.class_type_name(cls_node)
        return cls_node.attrs.get("superclass")

    def superclass_of(self, cls_node: Node) -> Optional[Node]:
        sup = self.find_class(self.supertype_name(cls_node))
        if sup is None or sup is cls_node or sup.kind is not NodeKind.CLASS:
            return None
        return sup

    def type_hierarchy(self, cls_node: Optional[Node]) -> Iterator[Node]:
        """The class and its in-model superclasses, most derived first."""
        seen: set[int] = set()
        node = cls_node
        while node is not None and id(node) not in seen:
            seen.add(id(node))
            yield node
            node = self.superclass_of(node)

    def supertype_names(self, type_name: Optional[str]) -> Iterator[str]:
        """``type_name`` and the names of its superclasses, including the
        first one declared outside the model."""
        seen: set[str] = set()
        name = type_name
        while name and name not in seen:
            seen.add(name)
            yield name
            cls_node = self.find_class(name)
            name = cls_node.attrs.get("superclass") if cls_node is not None else None

    @staticmethod
    def methods_named(cls_node: Node, name: str) -> list[Node]:
        return [m for m in cls_node.children
                if m.kind is NodeKind.METHOD and m.name == name and m.role == "member"]

    @staticmethod
    def fields_of(cls_node: Node) -> Iterator[Node]:
        for member in cls_node.children:
            if member.kind is NodeKind.FIELD:
                yield from (v for v in member.children if v.kind is NodeKind.VARIABLE)

    def implemented_interfaces(self, cls_node: Node) -> list[str]:
        """Interfaces of a class and its supertypes, adapters expanded."""
        result: list[str] = []

        def add(name: Optional[str]):
            if not name or name in result:
                return
            result.append(name)
            iface = self.find_class(name)
            if iface is not None and iface.kind is NodeKind.INTERFACE:
                for parent in iface.attrs.get("extends", []):
                    add(parent)

        for cls in self.type_hierarchy(cls_node):
            if cls.attrs.get("anonymous"):
                add(self.class_type_name(cls))
            interfaces = cls.child("interfaces")
            if interfaces is not None:
                for t in interfaces.children:
                    add(t.name)
            for name in self.supertype_names(self.supertype_name(cls)):
                for adapted in self.toolkit.adapter_interfaces(name):
                    add(adapted)
        return result

    # -- resolution -------------------------------------------------------

    def resolve(self, access: Node) -> Optional[Node]:
        """
        Declaration (VARIABLE or PARAMETER node) of a variable access.

        Detached clones are resolved through the node they were cloned from.
        """
        if access.kind is not NodeKind.VARIABLE_ACCESS:
            return None
        if not self.is_attached(access) and access.origin is not None and self.is_attached(access.origin):
            return self.resolve(access.origin)
        target = access.child("target")
        if target is None:
            return self._resolve_name(access, access.name)
        if target.kind is NodeKind.THIS:
            return self._field_in_hierarchy(self.enclosing_class(target), access.name)
        type_name = self.type_of(target)
        if type_name is None and self.is_type_access(target):
            type_name = target.name
        return self._field_in_hierarchy(self.find_class(type_name), access.name)

    def _resolve_name(self, node: Node, name: Optional[str]) -> Optional[Node]:
        if not name:
            return None
        prev = node
        for anc in node.ancestors():
            found = None
            for child in anc.children:
                if child is prev:
                    break
                if child.kind is NodeKind.LOCAL_DECL:
                    found = next((v for v in child.children if v.name == name), found)
                elif child.kind is NodeKind.PARAMETER and child.name == name:
                    found = child
                elif anc.kind is NodeKind.LOCAL_DECL and child.kind is NodeKind.VARIABLE and child.name == name:
                    found = child
            if found is not None:
                return found
            if anc.kind in TYPE_KINDS:
                found = self._field_in_hierarchy(anc, name)
                if found is not None:
                    return found
            prev = anc
        return None

    def _field_in_hierarchy(self, cls_node: Optional[Node], name: Optional[str]) -> Optional[Node]:
        if cls_node is None or not name:
            return None
        for cls in self.type_hierarchy(cls_node):
            for var in self.fields_of(cls):
                if var.name == name:
                    return var
        for iface_name in self.implemented_interfaces(cls_node):
            iface = self.find_class(iface_name)
            if iface is not None:
                for var in self.fields_of(iface):
                    if var.name == name:
                        return var
        return None

    def usages_of(self, declaration: Node) -> list[Node]:
        """Accesses of the analysed units resolving to ``declaration``, in document order."""
        return [
            n for n in self.walk()
            if n.kind is NodeKind.VARIABLE_ACCESS and n.name == declaration.name
            and self.resolve(n) is declaration
        ]

    def is_type_access(self, node: Node) -> bool:
        """True for a bare identifier naming a type (``Color`` in ``Color.RED``)."""
        if node.kind is not NodeKind.VARIABLE_ACCESS or node.child("target") is not None:
            return False
        if self.resolve(node) is not None:
            return False
        name = node.name or ""
        return self.find_class(name) is not None or name[:1].isupper()

    # -- typing -----------------------------------------------------------

    def type_of(self, expr: Optional[Node]) -> Optional[str]:
        """Simple static type name of an expression, if it can be decided."""
        if expr is None:
            return None
        kind = expr.kind
        if kind is NodeKind.VARIABLE_ACCESS:
            decl = self.resolve(expr)
            return decl.attrs.get("type_name") if decl is not None else None
        if kind is NodeKind.THIS:
            return self.class_type_name(self.enclosing_class(expr))
        if kind is NodeKind.NEW_CLASS:
            return expr.attrs.get("type_name")
        if kind is NodeKind.LITERAL:
            return expr.attrs.get("literal_type")
        if kind is NodeKind.PAREN:
            return self.type_of(expr.child("expression"))
        if kind is NodeKind.INVOCATION:
            methods = self.invoked_methods(expr)
            return methods[0].attrs.get("type_name") if methods else None
        if kind is NodeKind.OTHER and "cast_type" in expr.attrs:
            return expr.attrs["cast_type"]
        if kind is NodeKind.UNARY and expr.attrs.get("operator") == "!":
            return "boolean"
        if kind is NodeKind.BINARY:
            op = expr.attrs.get("operator")
            if op in _BOOLEAN_OPERATORS:
                return "boolean"
            if op == "+" and "String" in (self.type_of(expr.child("left")), self.type_of(expr.child("right"))):
                return "String"
        return None

    def declaring_type(self, inv: Node) -> Optional[str]:
        """Static type the invoked method is looked up in."""
        target = inv.child("target")
        if target is None:
            for cls in self.enclosing_classes(inv):
                if any(self.methods_named(c, inv.name) for c in self.type_hierarchy(cls)):
                    return self.class_type_name(cls)
            return self.class_type_name(self.enclosing_class(inv))
        if target.kind is NodeKind.THIS:
            return self.class_type_name(self.enclosing_class(target))
        if self.is_type_access(target):
            return target.name
        return self.type_of(target)

    def invoked_methods(self, inv: Node) -> list[Node]:
        """In-model declarations the invocation may call (same name, any arity)."""
        if inv.kind is not NodeKind.INVOCATION:
            return []
        target = inv.child("target")
        if target is None:
            classes: Iterable[Node] = self.enclosing_classes(inv)
        else:
            cls = self.find_class(self.declaring_type(inv))
            classes = [cls] if cls is not None else []
        for cls in classes:
            for c in self.type_hierarchy(cls):
                found = self.methods_named(c, inv.name)
                if found:
                    return found
        return []

    # -- toolkit-backed queries -------------------------------------------

    def is_widget_type(self, type_name: Optional[str]) -> bool:
        """Toolkit widget class, or an in-model class extending one."""
        return any(self.toolkit.is_widget_type(n) for n in self.supertype_names(type_name))

    def is_widget_class(self, cls_node: Optional[Node]) -> bool:
        if cls_node is None:
            return False
        return self.is_widget_type(self.supertype_name(cls_node))

    def interface_methods(self, type_name: Optional[str]) -> list[tuple[str, Optional[str]]]:
        """Abstract callbacks of a listener interface as (name, event type)."""
        if not type_name:
            return []
        known = self.toolkit.interface_methods(type_name)
        if known:
            return list(known)
        iface = self.find_class(type_name)
        if iface is None or iface.kind is not NodeKind.INTERFACE:
            return []
        result: list[tuple[str, Optional[str]]] = []
        for parent in iface.attrs.get("extends", []):
            result.extend(self.interface_methods(parent))
        for member in iface.children:
            if member.kind is not NodeKind.METHOD or member.child("body") is not None:
                continue
            if {"default", "static"} & set(member.attrs.get("modifiers", [])):
                continue
            params = member.children_with("parameter")
            result.append((member.name, params[0].attrs.get("type_name") if params else None))
        return result

    def is_listener_interface(self, type_name: Optional[str]) -> bool:
        return bool(self.interface_methods(type_name))

    def registration_interface(self, inv: Node) -> Optional[str]:
        """Listener interface a one-argument registration call expects."""
        if inv.kind is not NodeKind.INVOCATION or len(inv.children_with("argument")) != 1:
            return None
        iface = self.toolkit.registration_interface(inv.name)
        if iface is None or not self.is_listener_interface(iface):
            return None
        return iface

    def listener_interface(self, executable: Node) -> Optional[str]:
        """Listener interface implemented by a method or lambda, if any."""
        if executable.kind is NodeKind.LAMBDA:
            parent = executable.parent
            if parent is None:
                return None
            if parent.kind is NodeKind.INVOCATION and executable.role == "argument":
                return self.registration_interface(parent)
            if parent.kind is NodeKind.VARIABLE and self.is_listener_interface(parent.attrs.get("type_name")):
                return parent.attrs.get("type_name")
            return None
        if executable.kind is not NodeKind.METHOD:
            return None
        cls_node = executable.parent
        if cls_node is None or cls_node.kind is not NodeKind.CLASS:
            return None
        for iface in self.implemented_interfaces(cls_node):
            if any(name == executable.name for name, _ in self.interface_methods(iface)):
                return iface
        return None

    def is_listener_method(self, executable: Node) -> bool:
        return self.listener_interface(executable) is not None


def _java_files(paths: Iterable[str | Path], required: bool) -> list[Path]:
    files: list[Path] = []
    for raw in paths:
        path = Path(raw)
        if path.is_dir():
            files.extend(sorted(path.rglob("*.java")))
        elif path.is_file():
            files.append(path)
        elif required:
            raise FrontEndError(f"source path not found: {path}")
        else:
            log.warning("classpath entry not found: %s", path)
    return files
