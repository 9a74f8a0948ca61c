"""Shared utilities for Tree-sitter parsing and node helpers."""

from __future__ import annotations

import re

import tree_sitter
import tree_sitter_java


JAVA_LANGUAGE = tree_sitter.Language(tree_sitter_java.language())

_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "b": "\b",
    "f": "\f",
    "s": " ",
    "0": "\0",
    "'": "'",
    '"': '"',
    "\\": "\\",
}
_ESCAPE_RE = re.compile(r"\\(u+[0-9a-fA-F]{4}|.)", re.DOTALL)


def create_java_parser() -> tree_sitter.Parser:
    """
    Create a Tree-sitter parser configured for Java.

    Supports both the modern bindings (Parser(language)) and older
    releases that expect set_language.
    """

    try:
        parser = tree_sitter.Parser(JAVA_LANGUAGE)
    except TypeError:
        parser = tree_sitter.Parser()
        parser.set_language(JAVA_LANGUAGE)
    return parser


def node_text(node: tree_sitter.Node, source_bytes: bytes) -> str:
    """Decode the bytes that correspond to a node."""
    return source_bytes[node.start_byte:node.end_byte].decode("utf-8", errors="replace")


def line_indent(source_bytes: bytes, byte_offset: int) -> str:
    """Leading whitespace of the line containing ``byte_offset``."""
    start = source_bytes.rfind(b"\n", 0, byte_offset) + 1
    end = start
    while end < len(source_bytes) and source_bytes[end:end + 1] in (b" ", b"\t"):
        end += 1
    return source_bytes[start:end].decode("utf-8", errors="replace")


def unquote_java_string(literal: str) -> str:
    """Value of a Java string literal given its source text (quotes included)."""
    if literal.startswith('"""'):
        body = literal[3:-3]
        if body.startswith("\n"):
            body = body[1:]
    elif len(literal) >= 2 and literal[0] == literal[-1] and literal[0] in "\"'":
        body = literal[1:-1]
    else:
        return literal

    def _replace(match: re.Match) -> str:
        esc = match.group(1)
        if esc.startswith("u"):
            return chr(int(esc.lstrip("u"), 16))
        return _ESCAPES.get(esc, esc)

    return _ESCAPE_RE.sub(_replace, body)


def simple_type_name(type_text: str | None) -> str | None:
    """
    Reduce a Java type as written in source to its simple name.

    ``javax.swing.JComboBox<String>`` becomes ``JComboBox``; array
    brackets are kept so that ``JButton[]`` is not mistaken for a widget.
    """
    if not type_text:
        return None
    text = type_text.strip()
    depth = 0
    out = []
    for ch in text:
        if ch == "<":
            depth += 1
        elif ch == ">":
            depth -= 1
        elif depth == 0 and not ch.isspace():
            out.append(ch)
    text = "".join(out)
    # Annotations on types, e.g. "@NonNull JButton"
    text = re.sub(r"@[\w.]+(\([^)]*\))?", "", text)
    suffix = ""
    while text.endswith("[]"):
        suffix += "[]"
        text = text[:-2]
    if text.endswith("..."):
        suffix += "[]"
        text = text[:-3]
    return text.rsplit(".", 1)[-1] + suffix
