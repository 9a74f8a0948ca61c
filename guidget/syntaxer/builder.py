"""
guidget/syntaxer/builder.py

Conversion of tree-sitter Java parse trees into guidget syntax nodes.

Each tree-sitter node type is mapped by a handler to a node kind, a name,
attributes and the list of tree-sitter descendants that become structural
children. The source text between those children is kept as the node's
print template.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

import tree_sitter

from .nodes import Node, NodeKind, SourcePosition
from .utils import create_java_parser, node_text, simple_type_name, unquote_java_string

log = logging.getLogger(__name__)

COMMENT_TYPES = frozenset({"line_comment", "block_comment", "comment"})

_INT_LITERALS = frozenset({
    "decimal_integer_literal",
    "hex_integer_literal",
    "octal_integer_literal",
    "binary_integer_literal",
})


@dataclass
class _Shape:
    kind: NodeKind
    name: Optional[str] = None
    attrs: dict[str, Any] = field(default_factory=dict)
    # (tree-sitter node, role, optional handler override)
    parts: list[tuple] = field(default_factory=list)


Handler = Callable[["TreeBuilder", tree_sitter.Node], _Shape]


def _named(ts: Optional[tree_sitter.Node]) -> list[tree_sitter.Node]:
    if ts is None:
        return []
    return [c for c in ts.named_children if c.type not in COMMENT_TYPES]


class TreeBuilder:
    """
    Builds the node tree of one compilation unit.

    Example:
        builder = TreeBuilder(source_bytes, "Foo.java")
        unit = builder.build(parser.parse(source_bytes))
    """

    def __init__(self, source_bytes: bytes, file: str):
        self.source = source_bytes
        self.file = file

    def text(self, ts: Optional[tree_sitter.Node]) -> str:
        return node_text(ts, self.source) if ts is not None else ""

    def build(self, tree: tree_sitter.Tree) -> Node:
        root = tree.root_node
        if root.has_error:
            log.warning("syntax errors in %s, analysis may be partial", self.file)
        return self._build(root)

    # -- core -------------------------------------------------------------

    def _build(self, ts: tree_sitter.Node, role: Optional[str] = None,
               handler: Optional[Handler] = None) -> Node:
        if handler is None:
            handler = _HANDLERS.get(ts.type, TreeBuilder._generic)
        shape = handler(self, ts)
        node = Node(
            kind=shape.kind,
            name=shape.name,
            attrs=shape.attrs,
            role=role,
            position=SourcePosition(
                file=self.file,
                line=ts.start_point[0] + 1,
                end_line=ts.end_point[0] + 1,
                column=ts.start_point[1],
                start_byte=ts.start_byte,
                end_byte=ts.end_byte,
            ),
        )

        parts = sorted(shape.parts, key=lambda p: p[0].start_byte)
        template: list = []
        cursor = ts.start_byte
        for part in parts:
            child_ts, child_role = part[0], part[1]
            child_handler = part[2] if len(part) > 2 else None
            if child_ts.start_byte < cursor:
                log.debug("overlapping child %s in %s", child_ts.type, ts.type)
                continue
            if child_ts.start_byte > cursor:
                template.append(self.source[cursor:child_ts.start_byte].decode("utf-8", errors="replace"))
            child = self._build(child_ts, child_role, child_handler)
            child.parent = node
            node.children.append(child)
            template.append(child)
            cursor = child_ts.end_byte
        if cursor < ts.end_byte:
            template.append(self.source[cursor:ts.end_byte].decode("utf-8", errors="replace"))
        node.template = template

        if node.kind in (NodeKind.FIELD, NodeKind.LOCAL_DECL):
            for var in node.children:
                var.attrs.setdefault("type", node.attrs.get("type"))
                var.attrs.setdefault("type_name", node.attrs.get("type_name"))
                var.attrs.setdefault("modifiers", node.attrs.get("modifiers", []))
        return node

    # -- helpers ----------------------------------------------------------

    def _modifiers(self, ts: tree_sitter.Node) -> tuple[list[str], list[str]]:
        modifiers: list[str] = []
        annotations: list[str] = []
        for child in ts.children:
            if child.type != "modifiers":
                continue
            for mod in child.children:
                if mod.type in ("marker_annotation", "annotation"):
                    annotations.append(self.text(mod))
                elif mod.type not in COMMENT_TYPES:
                    modifiers.append(self.text(mod))
        return modifiers, annotations

    def _type_attrs(self, type_ts: Optional[tree_sitter.Node]) -> dict[str, Any]:
        type_text = self.text(type_ts) if type_ts is not None else None
        return {"type": type_text, "type_name": simple_type_name(type_text)}

    # -- handlers ---------------------------------------------------------

    def _generic(self, ts: tree_sitter.Node) -> _Shape:
        kind = NodeKind.STATEMENT if ts.type.endswith("_statement") else NodeKind.OTHER
        return _Shape(kind, attrs={"ts_type": ts.type}, parts=[(c, "child") for c in _named(ts)])

    def _verbatim(self, ts: tree_sitter.Node) -> _Shape:
        attrs: dict[str, Any] = {"ts_type": ts.type}
        if ts.type == "package_declaration":
            names = _named(ts)
            attrs["package"] = self.text(names[0]) if names else ""
        return _Shape(NodeKind.OTHER, attrs=attrs)

    def _program(self, ts: tree_sitter.Node) -> _Shape:
        return _Shape(NodeKind.COMPILATION_UNIT, name=self.file,
                      parts=[(c, "declaration") for c in _named(ts)])

    def _class(self, ts: tree_sitter.Node) -> _Shape:
        modifiers, annotations = self._modifiers(ts)
        attrs: dict[str, Any] = {"modifiers": modifiers, "annotations": annotations, "anonymous": False}
        superclass = ts.child_by_field_name("superclass")
        sup_types = _named(superclass)
        attrs["superclass"] = simple_type_name(self.text(sup_types[0])) if sup_types else None
        parts: list[tuple] = []
        interfaces = ts.child_by_field_name("interfaces")
        if interfaces is not None:
            parts.append((interfaces, "interfaces", TreeBuilder._interface_list))
        body = ts.child_by_field_name("body")
        parts.extend((m, "member") for m in _named(body))
        return _Shape(NodeKind.CLASS, name=self.text(ts.child_by_field_name("name")), attrs=attrs, parts=parts)

    def _anonymous_class(self, ts: tree_sitter.Node) -> _Shape:
        attrs = {"modifiers": [], "annotations": [], "anonymous": True, "superclass": None}
        return _Shape(NodeKind.CLASS, attrs=attrs, parts=[(m, "member") for m in _named(ts)])

    def _interface(self, ts: tree_sitter.Node) -> _Shape:
        modifiers, annotations = self._modifiers(ts)
        extends: list[str] = []
        for child in ts.children:
            if child.type == "extends_interfaces":
                for type_list in _named(child):
                    extends.extend(simple_type_name(self.text(t)) for t in _named(type_list))
        body = ts.child_by_field_name("body")
        return _Shape(
            NodeKind.INTERFACE,
            name=self.text(ts.child_by_field_name("name")),
            attrs={"modifiers": modifiers, "annotations": annotations, "extends": extends},
            parts=[(m, "member") for m in _named(body)],
        )

    def _interface_list(self, ts: tree_sitter.Node) -> _Shape:
        parts = []
        for type_list in _named(ts):
            parts.extend((t, "interface", TreeBuilder._type) for t in _named(type_list))
        return _Shape(NodeKind.INTERFACE_LIST, attrs={"keyword": "implements"}, parts=parts)

    def _type(self, ts: tree_sitter.Node) -> _Shape:
        text = self.text(ts)
        return _Shape(NodeKind.TYPE, name=simple_type_name(text), attrs={"type": text})

    def _field(self, ts: tree_sitter.Node) -> _Shape:
        modifiers, annotations = self._modifiers(ts)
        attrs = {"modifiers": modifiers, "annotations": annotations}
        attrs.update(self._type_attrs(ts.child_by_field_name("type")))
        parts = [(d, "declarator") for d in ts.children_by_field_name("declarator")]
        kind = NodeKind.FIELD if ts.type == "field_declaration" else NodeKind.LOCAL_DECL
        return _Shape(kind, attrs=attrs, parts=parts)

    def _declarator(self, ts: tree_sitter.Node) -> _Shape:
        parts = []
        value = ts.child_by_field_name("value")
        if value is not None:
            parts.append((value, "value"))
        return _Shape(NodeKind.VARIABLE, name=self.text(ts.child_by_field_name("name")), parts=parts)

    def _method(self, ts: tree_sitter.Node) -> _Shape:
        modifiers, annotations = self._modifiers(ts)
        attrs: dict[str, Any] = {"modifiers": modifiers, "annotations": annotations}
        parts: list[tuple] = []
        params = ts.child_by_field_name("parameters")
        for p in _named(params):
            if p.type in ("formal_parameter", "spread_parameter"):
                parts.append((p, "parameter"))
        body = ts.child_by_field_name("body")
        if body is not None:
            parts.append((body, "body", TreeBuilder._block))
        if ts.type == "method_declaration":
            attrs.update(self._type_attrs(ts.child_by_field_name("type")))
            kind = NodeKind.METHOD
        else:
            kind = NodeKind.CONSTRUCTOR
        return _Shape(kind, name=self.text(ts.child_by_field_name("name")), attrs=attrs, parts=parts)

    def _parameter(self, ts: tree_sitter.Node) -> _Shape:
        if ts.type == "spread_parameter":
            names = _named(ts)
            type_ts = next((c for c in names if c.type not in ("modifiers", "variable_declarator")), None)
            decl = next((c for c in names if c.type == "variable_declarator"), None)
            name = self.text(decl.child_by_field_name("name")) if decl is not None else ""
            attrs = self._type_attrs(type_ts)
            attrs["type"] = f"{attrs['type']}..."
            attrs["type_name"] = f"{attrs['type_name']}[]"
            return _Shape(NodeKind.PARAMETER, name=name, attrs=attrs)
        if ts.type == "catch_formal_parameter":
            catch_type = next((c for c in _named(ts) if c.type == "catch_type"), None)
            name_ts = ts.child_by_field_name("name")
            if name_ts is None:
                ids = [c for c in _named(ts) if c.type == "identifier"]
                name_ts = ids[-1] if ids else None
            return _Shape(NodeKind.PARAMETER, name=self.text(name_ts), attrs=self._type_attrs(catch_type))
        attrs = self._type_attrs(ts.child_by_field_name("type"))
        return _Shape(NodeKind.PARAMETER, name=self.text(ts.child_by_field_name("name")), attrs=attrs)

    def _inferred_parameter(self, ts: tree_sitter.Node) -> _Shape:
        return _Shape(NodeKind.PARAMETER, name=self.text(ts), attrs={"type": None, "type_name": None})

    def _lambda(self, ts: tree_sitter.Node) -> _Shape:
        parts: list[tuple] = []
        params = ts.child_by_field_name("parameters")
        if params is not None:
            if params.type == "identifier":
                parts.append((params, "parameter", TreeBuilder._inferred_parameter))
            elif params.type == "inferred_parameters":
                parts.extend((p, "parameter", TreeBuilder._inferred_parameter) for p in _named(params))
            else:
                parts.extend((p, "parameter") for p in _named(params)
                             if p.type in ("formal_parameter", "spread_parameter"))
        body = ts.child_by_field_name("body")
        if body is not None:
            parts.append((body, "body"))
        return _Shape(NodeKind.LAMBDA, parts=parts)

    def _block(self, ts: tree_sitter.Node) -> _Shape:
        return _Shape(NodeKind.BLOCK, parts=[(s, "statement") for s in _named(ts)])

    def _if(self, ts: tree_sitter.Node) -> _Shape:
        parts: list[tuple] = []
        cond = ts.child_by_field_name("condition")
        inner = _named(cond)
        if cond is not None and cond.type == "parenthesized_expression" and len(inner) == 1:
            parts.append((inner[0], "condition"))
        elif cond is not None:
            parts.append((cond, "condition"))
        for field_name, role in (("consequence", "then"), ("alternative", "else")):
            branch = ts.child_by_field_name(field_name)
            if branch is not None:
                parts.append((branch, role))
        return _Shape(NodeKind.IF, parts=parts)

    def _switch(self, ts: tree_sitter.Node) -> _Shape:
        parts: list[tuple] = []
        cond = ts.child_by_field_name("condition")
        inner = _named(cond)
        if cond is not None and cond.type == "parenthesized_expression" and len(inner) == 1:
            parts.append((inner[0], "selector"))
        elif cond is not None:
            parts.append((cond, "selector"))
        body = ts.child_by_field_name("body")
        for group in _named(body):
            if group.type in ("switch_block_statement_group", "switch_rule"):
                parts.append((group, "case"))
        return _Shape(NodeKind.SWITCH, attrs={"ts_type": ts.type}, parts=parts)

    def _case(self, ts: tree_sitter.Node) -> _Shape:
        parts: list[tuple] = []
        attrs: dict[str, Any] = {"default": False, "rule": ts.type == "switch_rule"}
        for child in _named(ts):
            if child.type == "switch_label":
                if self.text(child).strip().startswith("default"):
                    attrs["default"] = True
                parts.extend((e, "label") for e in _named(child))
            else:
                parts.append((child, "statement"))
        return _Shape(NodeKind.CASE, attrs=attrs, parts=parts)

    def _enhanced_for(self, ts: tree_sitter.Node) -> _Shape:
        parts: list[tuple] = []
        loop_type = ts.child_by_field_name("type")

        def loop_variable(builder: "TreeBuilder", name_ts: tree_sitter.Node) -> _Shape:
            return _Shape(NodeKind.PARAMETER, name=builder.text(name_ts), attrs=builder._type_attrs(loop_type))

        name = ts.child_by_field_name("name")
        if name is not None:
            parts.append((name, "parameter", loop_variable))
        value = ts.child_by_field_name("value")
        if value is not None:
            parts.append((value, "value"))
        body = ts.child_by_field_name("body")
        if body is not None:
            parts.append((body, "body"))
        return _Shape(NodeKind.STATEMENT, attrs={"ts_type": ts.type}, parts=parts)

    def _invocation(self, ts: tree_sitter.Node) -> _Shape:
        parts: list[tuple] = []
        target = ts.child_by_field_name("object")
        if target is not None:
            parts.append((target, "target"))
        parts.extend((a, "argument") for a in _named(ts.child_by_field_name("arguments")))
        return _Shape(NodeKind.INVOCATION, name=self.text(ts.child_by_field_name("name")), parts=parts)

    def _new_class(self, ts: tree_sitter.Node) -> _Shape:
        attrs = self._type_attrs(ts.child_by_field_name("type"))
        parts: list[tuple] = [(a, "argument") for a in _named(ts.child_by_field_name("arguments"))]
        for child in ts.named_children:
            if child.type == "class_body":
                parts.append((child, "body", TreeBuilder._anonymous_class))
        return _Shape(NodeKind.NEW_CLASS, attrs=attrs, parts=parts)

    def _field_access(self, ts: tree_sitter.Node) -> _Shape:
        target = ts.child_by_field_name("object")
        parts = [(target, "target")] if target is not None else []
        return _Shape(NodeKind.VARIABLE_ACCESS, name=self.text(ts.child_by_field_name("field")), parts=parts)

    def _identifier(self, ts: tree_sitter.Node) -> _Shape:
        return _Shape(NodeKind.VARIABLE_ACCESS, name=self.text(ts))

    def _this(self, ts: tree_sitter.Node) -> _Shape:
        return _Shape(NodeKind.THIS)

    def _literal(self, ts: tree_sitter.Node) -> _Shape:
        text = self.text(ts)
        if ts.type in ("string_literal", "text_block"):
            return _Shape(NodeKind.LITERAL, attrs={"literal_type": "String", "value": unquote_java_string(text)})
        if ts.type == "character_literal":
            return _Shape(NodeKind.LITERAL, attrs={"literal_type": "char", "value": unquote_java_string(text)})
        if ts.type in ("true", "false"):
            return _Shape(NodeKind.LITERAL, attrs={"literal_type": "boolean", "value": ts.type == "true"})
        if ts.type == "null_literal":
            return _Shape(NodeKind.LITERAL, attrs={"literal_type": "null", "value": None})
        if ts.type in _INT_LITERALS:
            literal_type = "long" if text[-1:] in "lL" else "int"
        else:
            literal_type = "float" if text[-1:] in "fF" else "double"
        return _Shape(NodeKind.LITERAL, attrs={"literal_type": literal_type, "value": text})

    def _binary(self, ts: tree_sitter.Node) -> _Shape:
        parts = [(ts.child_by_field_name("left"), "left"), (ts.child_by_field_name("right"), "right")]
        return _Shape(
            NodeKind.BINARY,
            attrs={"operator": self.text(ts.child_by_field_name("operator"))},
            parts=[p for p in parts if p[0] is not None],
        )

    def _unary(self, ts: tree_sitter.Node) -> _Shape:
        operand = ts.child_by_field_name("operand")
        return _Shape(
            NodeKind.UNARY,
            attrs={"operator": self.text(ts.child_by_field_name("operator"))},
            parts=[(operand, "operand")] if operand is not None else [],
        )

    def _paren(self, ts: tree_sitter.Node) -> _Shape:
        return _Shape(NodeKind.PAREN, parts=[(c, "expression") for c in _named(ts)[:1]])

    def _cast(self, ts: tree_sitter.Node) -> _Shape:
        type_ts = ts.child_by_field_name("type")
        attrs = {"ts_type": ts.type, "cast_type": simple_type_name(self.text(type_ts))}
        value = ts.child_by_field_name("value")
        return _Shape(NodeKind.OTHER, attrs=attrs, parts=[(value, "value")] if value is not None else [])


def _single_value(kind: NodeKind, role: str) -> Handler:
    def handler(builder: TreeBuilder, ts: tree_sitter.Node) -> _Shape:
        return _Shape(kind, parts=[(c, role) for c in _named(ts)[:1]])
    return handler


def _jump(kind: NodeKind) -> Handler:
    def handler(builder: TreeBuilder, ts: tree_sitter.Node) -> _Shape:
        label = _named(ts)
        return _Shape(kind, name=builder.text(label[0]) if label else None)
    return handler


_HANDLERS: dict[str, Handler] = {
    "program": TreeBuilder._program,
    "package_declaration": TreeBuilder._verbatim,
    "import_declaration": TreeBuilder._verbatim,
    "class_declaration": TreeBuilder._class,
    "interface_declaration": TreeBuilder._interface,
    "field_declaration": TreeBuilder._field,
    "local_variable_declaration": TreeBuilder._field,
    "variable_declarator": TreeBuilder._declarator,
    "method_declaration": TreeBuilder._method,
    "constructor_declaration": TreeBuilder._method,
    "formal_parameter": TreeBuilder._parameter,
    "spread_parameter": TreeBuilder._parameter,
    "catch_formal_parameter": TreeBuilder._parameter,
    "lambda_expression": TreeBuilder._lambda,
    "block": TreeBuilder._block,
    "constructor_body": TreeBuilder._block,
    "if_statement": TreeBuilder._if,
    "switch_expression": TreeBuilder._switch,
    "switch_statement": TreeBuilder._switch,
    "switch_block_statement_group": TreeBuilder._case,
    "switch_rule": TreeBuilder._case,
    "return_statement": _single_value(NodeKind.RETURN, "value"),
    "throw_statement": _single_value(NodeKind.THROW, "value"),
    "expression_statement": _single_value(NodeKind.EXPRESSION_STATEMENT, "expression"),
    "break_statement": _jump(NodeKind.BREAK),
    "continue_statement": _jump(NodeKind.CONTINUE),
    "enhanced_for_statement": TreeBuilder._enhanced_for,
    "method_invocation": TreeBuilder._invocation,
    "object_creation_expression": TreeBuilder._new_class,
    "field_access": TreeBuilder._field_access,
    "identifier": TreeBuilder._identifier,
    "this": TreeBuilder._this,
    "string_literal": TreeBuilder._literal,
    "text_block": TreeBuilder._literal,
    "character_literal": TreeBuilder._literal,
    "true": TreeBuilder._literal,
    "false": TreeBuilder._literal,
    "null_literal": TreeBuilder._literal,
    "decimal_integer_literal": TreeBuilder._literal,
    "hex_integer_literal": TreeBuilder._literal,
    "octal_integer_literal": TreeBuilder._literal,
    "binary_integer_literal": TreeBuilder._literal,
    "decimal_floating_point_literal": TreeBuilder._literal,
    "hex_floating_point_literal": TreeBuilder._literal,
    "binary_expression": TreeBuilder._binary,
    "unary_expression": TreeBuilder._unary,
    "parenthesized_expression": TreeBuilder._paren,
    "cast_expression": TreeBuilder._cast,
    "line_comment": TreeBuilder._verbatim,
    "block_comment": TreeBuilder._verbatim,
    "type_identifier": TreeBuilder._verbatim,
    "scoped_type_identifier": TreeBuilder._verbatim,
    "generic_type": TreeBuilder._verbatim,
    "integral_type": TreeBuilder._verbatim,
    "floating_point_type": TreeBuilder._verbatim,
    "boolean_type": TreeBuilder._verbatim,
    "void_type": TreeBuilder._verbatim,
    "array_type": TreeBuilder._verbatim,
}


def parse_unit(source: bytes | str, file: str) -> Node:
    """Parse one Java compilation unit into a node tree."""
    if isinstance(source, str):
        source = source.encode("utf-8")
    parser = create_java_parser()
    tree = parser.parse(source)
    return TreeBuilder(source, file).build(tree)
