"""
guidget/analyser/commands.py

Command model and command extraction.

A command is a group of statements of a listener that run under one guard
chain. ``CommandExtractor`` finds the listeners of a model and splits their
bodies into commands: every leaf branch of an if/else chain and every switch
case gives a command carrying its guards (innermost first).
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Optional

from ..syntaxer.model import SyntaxModel
from ..syntaxer.nodes import EXECUTABLE_KINDS, Node, NodeKind
from .conditions import (
    CommandConditionEntry,
    ConditionalSolution,
    ConditionSolver,
    default_case_condition,
    negate,
)

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class CodeBlockPos:
    file: str
    start_line: int
    end_line: int

    def __str__(self) -> str:
        return f"{self.file}:{self.start_line}-{self.end_line}"


@dataclass(eq=False)
class CommandStatmtEntry:
    """Statements of a command; the main entry is the group actually analysed."""

    main_entry: bool
    statmts: list[Node] = field(default_factory=list)

    def contains(self, other: CommandStatmtEntry) -> bool:
        """True if every statement of ``other`` lies inside a statement of this entry."""
        if other is self or not other.statmts:
            return False
        return all(any(s.contains(o) for s in self.statmts) for o in other.statmts)


@dataclass(eq=False)
class Command:
    executable: Node
    statements: list[CommandStatmtEntry] = field(default_factory=list)
    conditions: list[CommandConditionEntry] = field(default_factory=list)

    def __post_init__(self):
        self._optimise()

    @property
    def main_entry(self) -> Optional[CommandStatmtEntry]:
        return next((e for e in self.statements if e.main_entry), None)

    @property
    def line_start(self) -> int:
        lines = [s.position.line for s in self._main_statmts() if s.position is not None]
        return min(lines, default=-1)

    @property
    def line_end(self) -> int:
        lines = [s.position.end_line for s in self._main_statmts() if s.position is not None]
        return max(lines, default=-1)

    def _main_statmts(self) -> list[Node]:
        main = self.main_entry
        return main.statmts if main is not None else []

    @property
    def signature(self) -> str:
        exe = self.executable
        types = ",".join(p.attrs.get("type_name") or "?" for p in exe.children_with("parameter"))
        if exe.kind is NodeKind.LAMBDA:
            line = exe.position.line if exe.position is not None else 0
            return f"lambda${line}({types})"
        return f"{exe.name}({types})"

    def all_statements(self) -> list[Node]:
        seen: set[int] = set()
        result = []
        for entry in self.statements:
            for stat in entry.statmts:
                if id(stat) not in seen:
                    seen.add(id(stat))
                    result.append(stat)
        return result

    def local_statements_ordered(self) -> list[Node]:
        """Statements lying in the listener itself, in document order."""
        local = [s for s in self.all_statements() if self.executable.contains(s)]
        return sorted(local, key=lambda s: s.sort_key())

    def add_all_statements(self, index: int, entries: list[CommandStatmtEntry]) -> None:
        self.statements[index:index] = entries
        self._optimise()

    def _optimise(self) -> None:
        """Drop the entries wholly contained in another entry."""
        contained = [e for e in self.statements if any(o.contains(e) for o in self.statements)]
        self.statements = [e for e in self.statements if e not in contained]

    def extract_local_dispatch_call_without_gui_param(self, model: SyntaxModel) -> None:
        """
        Inline the bodies of the local methods the main entry calls without
        passing them the listener's parameters.

        A main entry made of a single such call is replaced by the callee's
        body; the call site stays in the command as a secondary entry.
        """
        main = self.main_entry
        if main is None:
            return
        owner = next((c for c in self.executable.ancestors()
                      if c.kind is NodeKind.CLASS and not c.attrs.get("anonymous")), None)
        if owner is None:
            return
        params = self.executable.children_with("parameter")
        callees = []
        for stat in main.statmts:
            for inv in stat.filter(lambda n: n.kind is NodeKind.INVOCATION):
                callee = self._local_callee(model, inv, owner, params)
                # one entry per helper, repeated calls would contain each other
                if callee is not None and all(callee is not c for c in callees):
                    callees.append(callee)

        if len(callees) == 1 and len(main.statmts) == 1:
            main.main_entry = False
            self.statements.append(CommandStatmtEntry(True, list(callees[0].child("body").children)))
        else:
            self.statements.extend(CommandStatmtEntry(False, list(c.child("body").children)) for c in callees)
        self._optimise()

    def _local_callee(self, model: SyntaxModel, inv: Node, owner: Node, params: list[Node]) -> Optional[Node]:
        target = inv.child("target")
        if target is not None and target.kind is not NodeKind.THIS:
            return None
        for arg in inv.children_with("argument"):
            for acc in arg.filter(lambda n: n.kind is NodeKind.VARIABLE_ACCESS):
                if any(model.resolve(acc) is p for p in params):
                    return None
        for method in model.invoked_methods(inv):
            body = method.child("body")
            if method.parent is owner and body is not None and body.children and method is not self.executable:
                return method
        return None

    def _positions(self):
        for entry in self.statements:
            if entry.statmts and entry.statmts[0].position is not None:
                yield entry.statmts[0].position
        for cond in self.conditions:
            if cond.real.position is not None:
                yield cond.real.position

    def optimal_code_blocks(self) -> list[CodeBlockPos]:
        """Line ranges of the command, merged when adjacent or overlapping."""
        by_file: dict[str, list[CodeBlockPos]] = defaultdict(list)
        for pos in self._positions():
            by_file[pos.file].append(CodeBlockPos(pos.file, pos.line, pos.end_line))

        result: list[CodeBlockPos] = []
        for file in sorted(by_file):
            blocks = sorted(by_file[file], key=lambda b: (b.start_line, b.end_line))
            merged = [blocks[0]]
            for block in blocks[1:]:
                last = merged[-1]
                if block.start_line <= last.end_line + 1:
                    merged[-1] = CodeBlockPos(file, last.start_line, max(last.end_line, block.end_line))
                else:
                    merged.append(block)
            result.extend(merged)
        return result

    @property
    def nb_lines(self) -> int:
        return sum(p.end_line - p.line + 1 for p in self._positions())

    def solve_conditions(self, solver: Optional[ConditionSolver] = None) -> ConditionalSolution:
        return (solver or ConditionSolver()).solve_entries(self.conditions)

    def __str__(self) -> str:
        blocks = ";".join(str(b) for b in self.optimal_code_blocks())
        return f"{self.signature};{self.nb_lines};{blocks}"

    def __repr__(self) -> str:
        return f"Command({self.signature}, lines {self.line_start}-{self.line_end}, {len(self.conditions)} guard(s))"


def _is_plumbing(stat: Node) -> bool:
    """``return;``, ``break;`` and empty statements carry no behaviour."""
    if stat.kind is NodeKind.RETURN:
        return stat.child("value") is None
    if stat.kind is NodeKind.BREAK:
        return True
    return stat.kind is NodeKind.STATEMENT and stat.attrs.get("ts_type") == "empty_statement"


def _branch_statements(branch: Optional[Node]) -> list[Node]:
    if branch is None:
        return []
    if branch.kind is NodeKind.BLOCK:
        return list(branch.children)
    return [branch]


class CommandExtractor:
    """
    Example:
        commands = CommandExtractor(model).extract()
    """

    def __init__(self, model: SyntaxModel, inline_local_calls: bool = True):
        self.model = model
        self.inline_local_calls = inline_local_calls

    def listeners(self) -> list[Node]:
        """Listener methods and lambdas of the analysed units, in document order."""
        found = self.model.filter(
            lambda n: n.kind in EXECUTABLE_KINDS and n.child("body") is not None
            and self.model.is_listener_method(n))
        return sorted(found, key=lambda n: n.sort_key())

    def extract(self) -> list[Command]:
        commands: list[Command] = []
        for listener in self.listeners():
            found = self.extract_from(listener)
            log.debug("%d command(s) in %r", len(found), listener)
            commands.extend(found)
        log.info("extracted %d command(s)", len(commands))
        return commands

    def extract_from(self, executable: Node) -> list[Command]:
        body = executable.child("body")
        if body is None:
            return []
        if body.kind is not NodeKind.BLOCK:
            commands = [Command(executable, [CommandStatmtEntry(True, [body])])]
        else:
            commands = []
            self._segment(executable, list(body.children), [], commands, top=True)
        if self.inline_local_calls:
            for cmd in commands:
                cmd.extract_local_dispatch_call_without_gui_param(self.model)
        return commands

    def _segment(self, executable: Node, stats: list[Node], conds: list[CommandConditionEntry],
                 out: list[Command], top: bool = False) -> None:
        before = len(out)
        plain = []
        for stat in stats:
            if stat.kind is NodeKind.IF:
                self._segment_if(executable, stat, conds, out)
            elif stat.kind is NodeKind.SWITCH:
                self._segment_switch(executable, stat, conds, out)
            else:
                plain.append(stat)
        guarded = len(out) > before
        if not plain or all(_is_plumbing(s) for s in plain):
            return
        if top and guarded:
            return
        out.insert(before, Command(executable, [CommandStatmtEntry(True, plain)], list(conds)))

    def _segment_if(self, executable: Node, stat: Node, conds: list[CommandConditionEntry],
                    out: list[Command]) -> None:
        cond = stat.child("condition")
        if cond is None:
            return
        then_entry = CommandConditionEntry(cond, cond)
        self._segment(executable, _branch_statements(stat.child("then")), [then_entry] + conds, out)
        other = stat.child("else")
        if other is not None:
            else_entry = CommandConditionEntry(cond, negate(cond))
            self._segment(executable, _branch_statements(other), [else_entry] + conds, out)

    def _segment_switch(self, executable: Node, stat: Node, conds: list[CommandConditionEntry],
                        out: list[Command]) -> None:
        selector = stat.child("selector")
        if selector is None:
            return
        cases = stat.children_with("case")
        all_labels = [label for case in cases for label in case.children_with("label")]
        for case in cases:
            labels = case.children_with("label")
            if case.attrs.get("default"):
                entries = [CommandConditionEntry(selector, default_case_condition(selector, all_labels), selector)]
                entries.extend(CommandConditionEntry(label, label, selector) for label in labels)
            else:
                entries = [CommandConditionEntry(label, label, selector) for label in labels]
            self._segment(executable, _case_statements(case), entries + conds, out)


def _case_statements(case: Node) -> list[Node]:
    stats = case.children_with("statement")
    if len(stats) == 1 and stats[0].kind is NodeKind.BLOCK:
        return list(stats[0].children)
    return stats
