"""
guidget/syntaxer/__init__.py

Java front-end for guidget.

- Source parsing with tree-sitter into a mutable node tree
- Owning model with name resolution and shallow static typing
- Printing of (possibly transformed) trees back to Java text
"""

from guidget.syntaxer.nodes import (
    Node,
    NodeKind,
    SourcePosition,
    STATEMENT_KINDS,
    EXECUTABLE_KINDS,
    make_node,
)

from guidget.syntaxer.builder import (
    TreeBuilder,
    parse_unit,
)

from guidget.syntaxer.model import SyntaxModel

from guidget.syntaxer.printer import (
    JavaPrinter,
    to_source,
)

from guidget.syntaxer.issues import Issue, make_issue


__all__ = [
    # Nodes
    "Node",
    "NodeKind",
    "SourcePosition",
    "STATEMENT_KINDS",
    "EXECUTABLE_KINDS",
    "make_node",

    # Parsing
    "TreeBuilder",
    "parse_unit",
    "SyntaxModel",

    # Printing
    "JavaPrinter",
    "to_source",

    # Reports
    "Issue",
    "make_issue",
]
