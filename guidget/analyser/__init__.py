"""
guidget/analyser/__init__.py

Command model, guard solving, widget discovery and widget attribution.
"""

from guidget.analyser.widgets import WidgetUsage, find_widget_usages

from guidget.analyser.conditions import (
    CommandConditionEntry,
    ConditionalSolution,
    ConditionSolver,
)

from guidget.analyser.commands import (
    CodeBlockPos,
    Command,
    CommandExtractor,
    CommandStatmtEntry,
)

from guidget.analyser.finder import (
    CmdWidgetMatch,
    CommandWidgetFinder,
    StringLitMatch,
    VarMatch,
    WidgetFinderEntry,
)


__all__ = [
    "WidgetUsage",
    "find_widget_usages",
    "CommandConditionEntry",
    "ConditionalSolution",
    "ConditionSolver",
    "CodeBlockPos",
    "Command",
    "CommandExtractor",
    "CommandStatmtEntry",
    "CmdWidgetMatch",
    "CommandWidgetFinder",
    "StringLitMatch",
    "VarMatch",
    "WidgetFinderEntry",
]
