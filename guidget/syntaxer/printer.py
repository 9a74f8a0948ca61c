"""
guidget/syntaxer/printer.py

Prints node trees back to Java text.

Untouched nodes print from their template, so formatting and comments of
the original source survive. Nodes that were restructured (``dirty``) or
created by the refactoring (no template) print from their structure, and
cloned code moved to another nesting level is re-indented.
"""

from __future__ import annotations

import json
import logging
from typing import Callable, Optional

from .nodes import Node, NodeKind
from .utils import line_indent

log = logging.getLogger(__name__)

INDENT_UNIT = "    "


class JavaPrinter:
    """
    Example:
        printer = JavaPrinter(model.sources)
        text = printer.print(model.units[0])
    """

    def __init__(self, sources: Optional[dict[str, bytes]] = None):
        self.sources = sources or {}

    def print(self, node: Node, indent: str = "") -> str:
        return self._render(node, indent)

    # -- dispatch ---------------------------------------------------------

    def _render(self, node: Node, indent: str) -> str:
        if node.template is not None and not node.dirty:
            return self._render_template(node, indent)
        renderer = _RENDERERS.get(node.kind)
        if renderer is None:
            log.debug("no structural form for %r, printing its name", node)
            return node.name or ""
        return renderer(self, node, indent)

    def _source_indent(self, node: Node) -> Optional[str]:
        pos = node.position
        if pos is None or pos.file not in self.sources:
            return None
        return line_indent(self.sources[pos.file], pos.start_byte)

    def _render_template(self, node: Node, indent: str) -> str:
        old = self._source_indent(node)
        base = old if old is not None else indent
        pieces: list[str] = []
        for seg in node.template:
            if isinstance(seg, str):
                pieces.append(seg)
            else:
                pieces.append(self._render(seg, _current_indent(pieces, base)))
        text = "".join(pieces)
        if old is not None and old != indent:
            text = text.replace("\n" + old, "\n" + indent)
        return text

    def _join(self, nodes: list[Node], indent: str, sep: str = ", ") -> str:
        return sep.join(self._render(n, indent) for n in nodes)

    # -- structural forms -------------------------------------------------

    def _block(self, node: Node, indent: str) -> str:
        inner = indent + INDENT_UNIT
        lines = [inner + self._render(s, inner) for s in node.children]
        if not lines:
            return "{\n" + indent + "}"
        return "{\n" + "\n".join(lines) + "\n" + indent + "}"

    def _declaration(self, node: Node, indent: str) -> str:
        head = " ".join(node.attrs.get("annotations", []) + node.attrs.get("modifiers", []) + [node.attrs.get("type") or "var"])
        return f"{head} {self._join(node.children, indent)};"

    def _variable(self, node: Node, indent: str) -> str:
        value = node.child("value")
        if value is None:
            return node.name or ""
        return f"{node.name} = {self._render(value, indent)}"

    def _interface_list(self, node: Node, indent: str) -> str:
        names = [t.attrs.get("type") or t.name for t in node.children]
        return f"{node.attrs.get('keyword', 'implements')} {', '.join(names)}"

    def _parameter(self, node: Node, indent: str) -> str:
        type_text = node.attrs.get("type")
        if not type_text:
            return node.name or ""
        return f"{type_text} {node.name}"

    def _method(self, node: Node, indent: str) -> str:
        if node.attrs.get("implicit"):
            return ""
        head = node.attrs.get("annotations", []) + node.attrs.get("modifiers", [])
        if node.kind is NodeKind.METHOD:
            head.append(node.attrs.get("type") or "void")
        params = self._join(node.children_with("parameter"), indent)
        signature = " ".join(head + [f"{node.name}({params})"])
        body = node.child("body")
        if body is None:
            return signature + ";"
        return f"{signature} {self._render(body, indent)}"

    def _class(self, node: Node, indent: str) -> str:
        inner = indent + INDENT_UNIT
        members = [inner + self._render(m, inner) for m in node.children_with("member")
                   if not m.attrs.get("implicit")]
        body = "{\n" + "\n\n".join(members) + "\n" + indent + "}" if members else "{\n" + indent + "}"
        if node.attrs.get("anonymous"):
            return body
        head = " ".join(node.attrs.get("annotations", []) + node.attrs.get("modifiers", []) + ["class", node.name or ""])
        if node.attrs.get("superclass"):
            head += f" extends {node.attrs['superclass']}"
        interfaces = node.child("interfaces")
        if interfaces is not None:
            head += " " + self._render(interfaces, indent)
        return f"{head} {body}"

    def _lambda(self, node: Node, indent: str) -> str:
        params = node.children_with("parameter")
        if len(params) == 1 and not params[0].attrs.get("type"):
            head = params[0].name
        else:
            head = f"({self._join(params, indent)})"
        body = node.child("body")
        return f"{head} -> {self._render(body, indent) if body is not None else '{}'}"

    def _new_class(self, node: Node, indent: str) -> str:
        text = f"new {node.attrs.get('type') or node.attrs.get('type_name')}({self._join(node.children_with('argument'), indent)})"
        body = node.child("body")
        if body is not None:
            text += " " + self._render(body, indent)
        return text

    def _invocation(self, node: Node, indent: str) -> str:
        target = node.child("target")
        prefix = self._render(target, indent) + "." if target is not None else ""
        return f"{prefix}{node.name}({self._join(node.children_with('argument'), indent)})"

    def _access(self, node: Node, indent: str) -> str:
        target = node.child("target")
        return f"{self._render(target, indent)}.{node.name}" if target is not None else node.name or ""

    def _literal(self, node: Node, indent: str) -> str:
        value = node.attrs.get("value")
        literal_type = node.attrs.get("literal_type")
        if literal_type == "String":
            return json.dumps(value)
        if literal_type == "char":
            return "'" + json.dumps(value)[1:-1].replace("'", "\\'") + "'"
        if literal_type == "boolean":
            return "true" if value else "false"
        if literal_type == "null":
            return "null"
        return str(value)

    def _binary(self, node: Node, indent: str) -> str:
        return f"{self._render(node.child('left'), indent)} {node.attrs.get('operator')} {self._render(node.child('right'), indent)}"

    def _unary(self, node: Node, indent: str) -> str:
        return f"{node.attrs.get('operator', '')}{self._render(node.child('operand'), indent)}"

    def _paren(self, node: Node, indent: str) -> str:
        return f"({self._render(node.child('expression'), indent)})"

    def _if(self, node: Node, indent: str) -> str:
        text = f"if ({self._render(node.child('condition'), indent)}) {self._render(node.child('then'), indent)}"
        other = node.child("else")
        if other is not None:
            text += f" else {self._render(other, indent)}"
        return text

    def _statement(self, node: Node, indent: str) -> str:
        expr = node.child("expression")
        return f"{self._render(expr, indent)};" if expr is not None else ";"

    def _return(self, node: Node, indent: str) -> str:
        value = node.child("value")
        keyword = "throw" if node.kind is NodeKind.THROW else "return"
        return f"{keyword} {self._render(value, indent)};" if value is not None else f"{keyword};"

    def _jump(self, node: Node, indent: str) -> str:
        keyword = "break" if node.kind is NodeKind.BREAK else "continue"
        return f"{keyword} {node.name};" if node.name else f"{keyword};"

    def _unit(self, node: Node, indent: str) -> str:
        return "\n\n".join(self._render(c, indent) for c in node.children) + "\n"


def _current_indent(pieces: list[str], base: str) -> str:
    """Indentation of the line the next piece starts on."""
    text = "".join(pieces)
    cut = text.rfind("\n")
    if cut < 0:
        return base
    line = text[cut + 1:]
    return line[:len(line) - len(line.lstrip(" \t"))]


_RENDERERS: dict[NodeKind, Callable[[JavaPrinter, Node, str], str]] = {
    NodeKind.COMPILATION_UNIT: JavaPrinter._unit,
    NodeKind.CLASS: JavaPrinter._class,
    NodeKind.INTERFACE_LIST: JavaPrinter._interface_list,
    NodeKind.FIELD: JavaPrinter._declaration,
    NodeKind.LOCAL_DECL: JavaPrinter._declaration,
    NodeKind.VARIABLE: JavaPrinter._variable,
    NodeKind.METHOD: JavaPrinter._method,
    NodeKind.CONSTRUCTOR: JavaPrinter._method,
    NodeKind.PARAMETER: JavaPrinter._parameter,
    NodeKind.BLOCK: JavaPrinter._block,
    NodeKind.IF: JavaPrinter._if,
    NodeKind.RETURN: JavaPrinter._return,
    NodeKind.THROW: JavaPrinter._return,
    NodeKind.BREAK: JavaPrinter._jump,
    NodeKind.CONTINUE: JavaPrinter._jump,
    NodeKind.EXPRESSION_STATEMENT: JavaPrinter._statement,
    NodeKind.INVOCATION: JavaPrinter._invocation,
    NodeKind.NEW_CLASS: JavaPrinter._new_class,
    NodeKind.LAMBDA: JavaPrinter._lambda,
    NodeKind.VARIABLE_ACCESS: JavaPrinter._access,
    NodeKind.THIS: lambda printer, node, indent: "this",
    NodeKind.LITERAL: JavaPrinter._literal,
    NodeKind.BINARY: JavaPrinter._binary,
    NodeKind.UNARY: JavaPrinter._unary,
    NodeKind.PAREN: JavaPrinter._paren,
}


def to_source(node: Optional[Node], sources: Optional[dict[str, bytes]] = None) -> str:
    """One-off printing helper."""
    if node is None:
        return ""
    return JavaPrinter(sources).print(node)
