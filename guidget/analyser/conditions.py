"""
guidget/analyser/conditions.py

Guard conditions of commands and their boolean solutions.

A guard chain is turned into disjunctive normal form: each disjunct is one
solution, listing the named sub-conditions (atoms) and the value they must
take. Negations coming from ``else`` branches and ``default`` cases are
pushed down to the atoms (De Morgan). Operators the solver does not know are
kept as opaque atoms, so solving never fails.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from ..syntaxer.nodes import Node, NodeKind, make_node
from ..syntaxer.printer import JavaPrinter

log = logging.getLogger(__name__)

# Above this many disjuncts the expression is kept as a single atom.
MAX_SOLUTIONS = 64

Assignment = list[tuple[str, bool]]


@dataclass
class ConditionalSolution:
    """All the assignments of named conditions that make ``expression`` true."""

    expression: str
    solutions: list[Assignment] = field(default_factory=list)

    @property
    def number_of_solutions(self) -> int:
        return len(self.solutions)

    def solution(self, index: int) -> Assignment:
        return self.solutions[index]

    def __str__(self) -> str:
        alts = [" && ".join(name if value else f"!({name})" for name, value in sol) or "true"
                for sol in self.solutions]
        return f"{self.expression} <=> " + (" || ".join(alts) if alts else "false")


@dataclass(eq=False)
class CommandConditionEntry:
    """
    One guard of a command.

    ``real`` is the guard node as found in the source (an ``if`` condition,
    a ``case`` label, or the selector for a ``default`` case). ``effective``
    is the guard that actually holds: ``real`` itself, or a detached negation
    for else branches and default cases.
    """

    real: Node
    effective: Node
    selector: Optional[Node] = None

    @property
    def negated(self) -> bool:
        return self.real is not self.effective


# -- guard synthesis ------------------------------------------------------

def negate(expr: Node) -> Node:
    """Detached ``!(expr)`` built from a clone of ``expr``."""
    inner = make_node(NodeKind.PAREN, children=[("expression", expr.clone())])
    return make_node(NodeKind.UNARY, children=[("operand", inner)], operator="!")


def case_condition(selector: Node, label: Node) -> Node:
    """Detached ``selector == label``."""
    return make_node(
        NodeKind.BINARY,
        children=[("left", selector.clone()), ("right", label.clone())],
        operator="==",
    )


def default_case_condition(selector: Node, labels: Iterable[Node]) -> Node:
    """Detached negation of the disjunction of every ``selector == label``."""
    alternatives = [case_condition(selector, label) for label in labels]
    if not alternatives:
        return make_node(NodeKind.LITERAL, literal_type="boolean", value=True)
    expr = alternatives[0]
    for alt in alternatives[1:]:
        expr = make_node(NodeKind.BINARY, children=[("left", expr), ("right", alt)], operator="||")
    inner = make_node(NodeKind.PAREN, children=[("expression", expr)])
    return make_node(NodeKind.UNARY, children=[("operand", inner)], operator="!")


# -- solving --------------------------------------------------------------

class ConditionSolver:
    """
    Example:
        solver = ConditionSolver()
        sol = solver.solve(if_node.child("condition"))
        for assignment in sol.solutions:
            ...
    """

    def __init__(self, printer: Optional[JavaPrinter] = None):
        self.printer = printer or JavaPrinter()

    def text(self, node: Node) -> str:
        return " ".join(self.printer.print(node).split())

    def solve(self, expr: Node) -> ConditionalSolution:
        return ConditionalSolution(self.text(expr), self._dnf_or_atom(expr, True))

    def solve_entries(self, entries: list[CommandConditionEntry]) -> ConditionalSolution:
        """Conjunction of the effective guards of a command."""
        if not entries:
            return ConditionalSolution("true", [[]])
        groups = _group_case_labels(entries)
        result: list[Assignment] = [[]]
        texts = []
        for group in groups:
            exprs = [self._entry_expression(e) for e in group]
            parts: list[Assignment] = []
            for expr in exprs:
                parts.extend(self._dnf_or_atom(expr, True))
            texts.append(" || ".join(self.text(e) for e in exprs))
            result = _product(result, parts)
            if len(result) > MAX_SOLUTIONS:
                log.debug("guard chain too large, solutions truncated to opaque atoms")
                result = [[(t, True) for t in texts]]
        expression = " && ".join(f"({t})" if len(groups) > 1 else t for t in texts)
        return ConditionalSolution(expression, result)

    @staticmethod
    def _entry_expression(entry: CommandConditionEntry) -> Node:
        if entry.selector is not None and not entry.negated:
            return case_condition(entry.selector, entry.real)
        return entry.effective

    def _dnf_or_atom(self, expr: Node, positive: bool) -> list[Assignment]:
        dnf = self._dnf(expr, positive)
        if len(dnf) > MAX_SOLUTIONS:
            return [[(self.text(expr), positive)]]
        return dnf

    def _dnf(self, expr: Node, positive: bool) -> list[Assignment]:
        kind = expr.kind
        if kind is NodeKind.PAREN and expr.child("expression") is not None:
            return self._dnf(expr.child("expression"), positive)
        if kind is NodeKind.UNARY and expr.attrs.get("operator") == "!":
            return self._dnf(expr.child("operand"), not positive)
        if kind is NodeKind.LITERAL and expr.attrs.get("literal_type") == "boolean":
            return [[]] if bool(expr.attrs.get("value")) == positive else []
        if kind is NodeKind.BINARY:
            op = expr.attrs.get("operator")
            left, right = expr.child("left"), expr.child("right")
            if op in ("&&", "||") and left is not None and right is not None:
                conjunctive = (op == "&&") == positive
                lhs, rhs = self._dnf(left, positive), self._dnf(right, positive)
                if conjunctive:
                    return _product(lhs, rhs)
                return _dedupe(lhs + rhs)
            if op == "!=":
                return [[(self._equality_text(expr), not positive)]]
        return [[(self.text(expr), positive)]]

    def _equality_text(self, expr: Node) -> str:
        return f"{self.text(expr.child('left'))} == {self.text(expr.child('right'))}"


def _product(lhs: list[Assignment], rhs: list[Assignment]) -> list[Assignment]:
    result = []
    for a in lhs:
        for b in rhs:
            merged = _merge(a, b)
            if merged is not None:
                result.append(merged)
    return _dedupe(result)


def _merge(a: Assignment, b: Assignment) -> Optional[Assignment]:
    """Conjunction of two assignments; None when they contradict each other."""
    values = dict(a)
    merged = list(a)
    for name, value in b:
        if name in values:
            if values[name] != value:
                return None
            continue
        values[name] = value
        merged.append((name, value))
    return merged


def _dedupe(solutions: list[Assignment]) -> list[Assignment]:
    seen = set()
    result = []
    for sol in solutions:
        key = frozenset(sol)
        if key not in seen:
            seen.add(key)
            result.append(sol)
    return result


def _group_case_labels(entries: list[CommandConditionEntry]) -> list[list[CommandConditionEntry]]:
    """Consecutive labels of one ``case`` are alternatives, everything else is conjoined."""
    groups: list[list[CommandConditionEntry]] = []
    for entry in entries:
        if (groups and entry.selector is not None and not entry.negated
                and groups[-1][-1].selector is not None and not groups[-1][-1].negated
                and groups[-1][-1].real.parent is entry.real.parent):
            groups[-1].append(entry)
        else:
            groups.append([entry])
    return groups
