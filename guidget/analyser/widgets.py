"""Widget discovery: widget-typed variables and the places they are accessed."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ..syntaxer.model import SyntaxModel
from ..syntaxer.nodes import Node, NodeKind

log = logging.getLogger(__name__)


@dataclass(eq=False)
class WidgetUsage:
    """A widget variable (field or local) and its access sites, in document order."""

    widget_var: Node
    accesses: list[Node] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.widget_var.name or "?"

    def __repr__(self) -> str:
        pos = self.widget_var.position
        where = f"@{pos.line}" if pos else ""
        return f"WidgetUsage({self.name}{where}, {len(self.accesses)} access(es))"


def find_widget_usages(model: SyntaxModel) -> list[WidgetUsage]:
    """One usage per declared variable whose type is a widget (toolkit or in-model subclass)."""
    usages: dict[int, WidgetUsage] = {}
    order: list[WidgetUsage] = []
    for node in model.walk():
        if node.kind is NodeKind.VARIABLE and model.is_widget_type(node.attrs.get("type_name")):
            usage = WidgetUsage(node)
            usages[id(node)] = usage
            order.append(usage)
    if not usages:
        log.info("no widget variable found")
        return []

    for node in model.walk():
        if node.kind is not NodeKind.VARIABLE_ACCESS:
            continue
        decl = model.resolve(node)
        if decl is not None and id(decl) in usages:
            usages[id(decl)].accesses.append(node)

    log.info("found %d widget usage(s)", len(order))
    return order
