"""
guidget/analyser/finder.py

Widget attribution: for every command, the widgets that may have produced it.

Evidence comes from independent heuristics:
  1. registration   - where the listener is registered (``w.addXListener(this)``
                      or ``w.addXListener(e -> ...)``), one accessor level deep
  2. widget class   - the listener belongs to a widget subclass itself
  3. condition type - widget variables read in the command's guards
  4. cross-reference - configuration statements of a widget sharing a variable
                      or a string literal with the command's guards

``WidgetFinderEntry.get_widget_usages`` combines them by a fixed precedence.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Optional, TypeVar

from ..errors import AmbiguousEvidence, GuidgetError, StructuralPreconditionError, UnresolvedReference
from ..syntaxer.model import SyntaxModel
from ..syntaxer.nodes import Node, NodeKind
from .commands import Command
from .widgets import WidgetUsage

log = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(eq=False)
class CmdWidgetMatch:
    usage: WidgetUsage


@dataclass(eq=False)
class VarMatch(CmdWidgetMatch):
    """Configuration statement of ``usage`` reading variables also read by the guards."""
    vars: list[Node] = field(default_factory=list)


@dataclass(eq=False)
class StringLitMatch(CmdWidgetMatch):
    """Configuration statement of ``usage`` holding string literals also found in the guards."""
    stringlit: list[Node] = field(default_factory=list)

    @property
    def values(self) -> list[str]:
        return [lit.attrs.get("value") for lit in self.stringlit]


def _distinct(items):
    seen: set[int] = set()
    result = []
    for item in items:
        if id(item) not in seen:
            seen.add(id(item))
            result.append(item)
    return result


@dataclass(eq=False)
class WidgetFinderEntry:
    """Attribution evidence gathered for one command."""

    registered_widgets: list[WidgetUsage] = field(default_factory=list)
    widgets_used_in_conditions: list[WidgetUsage] = field(default_factory=list)
    widget_classes: Optional[Node] = None
    widgets_from_shared_vars: list[VarMatch] = field(default_factory=list)
    widgets_from_string_literals: list[StringLitMatch] = field(default_factory=list)

    def get_widget_usages(self) -> list[WidgetUsage]:
        """
        Widgets attributed to the command.

        First non-empty source wins: string literals, shared variables,
        condition types; the registration widgets are used only when the
        three are empty. The widget class never takes part.
        """
        if self.widgets_from_string_literals:
            return _distinct(m.usage for m in self.widgets_from_string_literals)
        if self.widgets_from_shared_vars:
            return _distinct(m.usage for m in self.widgets_from_shared_vars)
        if self.widgets_used_in_conditions:
            return _distinct(self.widgets_used_in_conditions)
        return _distinct(self.registered_widgets)

    def nb_distinct_widgets(self) -> int:
        usages = _distinct(
            self.registered_widgets
            + self.widgets_used_in_conditions
            + [m.usage for m in self.widgets_from_shared_vars]
            + [m.usage for m in self.widgets_from_string_literals]
        )
        return len(usages) + (1 if self.widget_classes is not None else 0)

    def distinct_used_widgets(self) -> list[Node]:
        return _distinct(
            [m.usage.widget_var for m in self.widgets_from_shared_vars]
            + [u.widget_var for u in self.widgets_used_in_conditions]
            + [m.usage.widget_var for m in self.widgets_from_string_literals]
        )

    def supposed_associated_widgets(self) -> list[Node]:
        widgets = self.distinct_used_widgets()
        registered = [u.widget_var for u in self.registered_widgets]
        if not widgets:
            return registered
        if len(widgets) == 1:
            return widgets
        common = [w for w in registered if any(w is o for o in widgets)]
        return common or widgets

    def precise_widgets(self, model: SyntaxModel) -> None:
        """
        Narrow an ambiguous registration (two widgets or more) to the widgets
        whose access statements hold the shared variables or string literals
        matched for this command. Never adds widgets.
        """
        if len(self.registered_widgets) < 2:
            return
        if not self.widgets_from_shared_vars and not self.widgets_from_string_literals:
            return
        variables = _distinct(v for m in self.widgets_from_shared_vars for v in m.vars)
        values = {v for m in self.widgets_from_string_literals for v in m.values}

        def confirmed(usage: WidgetUsage) -> bool:
            for acc in usage.accesses:
                stmt = model.enclosing_statement(acc)
                if stmt is None:
                    continue
                if any(_reads(model, stmt, var) for var in variables):
                    return True
                if any(v in values for v in _string_values(stmt)):
                    return True
            return False

        kept = [u for u in self.registered_widgets if confirmed(u)]
        if len(kept) != len(self.registered_widgets):
            log.debug("registration narrowed from %d to %d widget(s)", len(self.registered_widgets), len(kept))
        self.registered_widgets = kept


def _reads(model: SyntaxModel, stmt: Node, var: Node) -> bool:
    return any(n.kind is NodeKind.VARIABLE_ACCESS and n.name == var.name and model.resolve(n) is var
               for n in stmt.walk())


def _string_literals(node: Node) -> list[Node]:
    return node.filter(lambda n: n.kind is NodeKind.LITERAL and n.attrs.get("literal_type") == "String")


def _string_values(node: Node) -> list[str]:
    return [lit.attrs.get("value") for lit in _string_literals(node)]


class CommandWidgetFinder:
    """
    Runs the attribution of a list of commands on a worker pool.

    Example:
        finder = CommandWidgetFinder(commands, find_widget_usages(model), model)
        finder.process()
        for cmd, entry in finder.results.items():
            print(cmd, entry.get_widget_usages())
    """

    def __init__(self, commands: list[Command], usages: list[WidgetUsage], model: SyntaxModel,
                 workers: Optional[int] = None):
        self.commands = list(commands)
        self.usages = list(usages)
        self.model = model
        self.workers = workers
        self._by_var = {id(u.widget_var): u for u in self.usages}
        self._entries: list[Optional[WidgetFinderEntry]] = [None] * len(self.commands)

    def process(self) -> None:
        """Attribute every command; each worker fills the slot of its own command."""
        if not self.commands:
            return
        if self.workers == 1:
            for index in range(len(self.commands)):
                self._process_slot(index)
            return
        with ThreadPoolExecutor(max_workers=self.workers) as pool:
            list(pool.map(self._process_slot, range(len(self.commands))))

    @property
    def results(self) -> dict[Command, WidgetFinderEntry]:
        return {cmd: entry for cmd, entry in zip(self.commands, self._entries) if entry is not None}

    def _process_slot(self, index: int) -> None:
        cmd = self.commands[index]
        try:
            self._entries[index] = self.process_command(cmd)
        except Exception:
            log.exception("attribution failed for %s", cmd)
            self._entries[index] = WidgetFinderEntry()

    def process_command(self, cmd: Command) -> WidgetFinderEntry:
        listener_class = self._listener_class(cmd)
        entry = WidgetFinderEntry()
        entry.registered_widgets = self._guarded("registration", lambda: self.registered_widgets(cmd), [])
        entry.widgets_used_in_conditions = self._guarded(
            "condition type", lambda: self.widgets_used_in_conditions(cmd), [])
        entry.widget_classes = self._guarded("widget class", lambda: self.widget_class(cmd), None)
        entry.widgets_from_shared_vars = self._guarded(
            "shared variables",
            lambda: self.check_listener_matching(listener_class, self.match_shared_vars(cmd)), [])
        entry.widgets_from_string_literals = self._guarded(
            "string literals",
            lambda: self.check_listener_matching(listener_class, self.match_string_literals(cmd)), [])
        entry.precise_widgets(self.model)
        return entry

    @staticmethod
    def _guarded(name: str, heuristic: Callable[[], T], default: T) -> T:
        try:
            return heuristic()
        except AmbiguousEvidence as exc:
            log.error("%s heuristic: %s", name, exc)
        except GuidgetError as exc:
            log.info("%s heuristic: %s", name, exc)
        return default

    # -- helpers ----------------------------------------------------------

    @staticmethod
    def _listener_class(cmd: Command) -> Optional[Node]:
        parent = cmd.executable.parent
        if parent is not None and parent.kind is NodeKind.CLASS:
            return parent
        return None

    def _usage_of(self, decl: Optional[Node]) -> Optional[WidgetUsage]:
        if decl is None:
            return None
        return self._by_var.get(id(decl))

    @staticmethod
    def registration_invocation(executable: Node) -> Optional[Node]:
        """Closest invocation holding a lambda or an anonymous class listener."""
        for anc in executable.ancestors():
            if anc.kind is NodeKind.INVOCATION:
                return anc
            if anc.kind is NodeKind.CLASS and not anc.attrs.get("anonymous"):
                return None
        return None

    def _in_listener(self, node: Node) -> bool:
        exe = self.model.enclosing_executable(node)
        return exe is not None and self.model.is_listener_method(exe)

    def _where(self, node: Node) -> str:
        return str(node.position) if node.position is not None else "<synthetic>"

    # -- 1. registration --------------------------------------------------

    def registered_widgets(self, cmd: Command) -> list[WidgetUsage]:
        exe = cmd.executable
        inv = self.registration_invocation(exe)
        if inv is None:
            if exe.parent is not None and exe.parent.kind is NodeKind.CLASS:
                found = self._through_class(exe.parent, cmd, set())
                return found + [u for u in self._through_variable(exe) if u not in found]
            return self._through_variable(exe)
        usage = self.through_invocation(inv)
        return [usage] if usage is not None else []

    def _through_class(self, cls: Node, cmd: Command, seen: set[int]) -> list[WidgetUsage]:
        """``widget.addXListener(this)`` in the listener class or its superclasses."""
        if id(cls) in seen:
            return []
        seen.add(id(cls))
        iface = self.model.listener_interface(cmd.executable)
        found: list[WidgetUsage] = []
        for this in cls.filter(lambda n: n.kind is NodeKind.THIS):
            inv = this.parent
            if (inv is None or inv.kind is not NodeKind.INVOCATION or this.role != "argument"
                    or self.model.enclosing_class(this) is not cls):
                continue
            if iface is None or self.model.registration_interface(inv) != iface:
                continue
            try:
                usage = self.through_invocation(inv)
            except AmbiguousEvidence as exc:
                log.error("registration at %s: %s", self._where(inv), exc)
                continue
            except GuidgetError as exc:
                log.info("registration at %s: %s", self._where(inv), exc)
                continue
            if usage is not None and usage not in found:
                found.append(usage)
        superclass = self.model.superclass_of(cls)
        if superclass is not None:
            found.extend(u for u in self._through_class(superclass, cmd, seen) if u not in found)
        return found

    def _through_variable(self, exe: Node) -> list[WidgetUsage]:
        """Listener object stored in a variable and registered through it."""
        holder = exe if exe.kind is NodeKind.LAMBDA else exe.parent
        if holder is not None and holder.kind is NodeKind.CLASS and holder.attrs.get("anonymous"):
            holder = holder.parent
        if holder is None or holder.parent is None or holder.parent.kind is not NodeKind.VARIABLE:
            return []
        found: list[WidgetUsage] = []
        for acc in self.model.usages_of(holder.parent):
            inv = acc.parent
            if inv is None or inv.kind is not NodeKind.INVOCATION or acc.role != "argument":
                continue
            if self.model.registration_interface(inv) is None:
                continue
            usage = self.through_invocation(inv)
            if usage is not None and usage not in found:
                found.append(usage)
        return found

    def through_invocation(self, inv: Node) -> Optional[WidgetUsage]:
        """Widget usage on which a registration call is made."""
        if not self.model.is_widget_type(self.model.declaring_type(inv)):
            return None
        target = inv.child("target")
        if target is None or target.kind is NodeKind.THIS:
            # handled by the widget class heuristic
            return None
        if target.kind is NodeKind.VARIABLE_ACCESS:
            if self.model.is_type_access(target):
                return None
            return self._usage_of(self.model.resolve(target))
        if target.kind is NodeKind.INVOCATION:
            return self._through_accessor(target)
        raise UnresolvedReference(f"unsupported registration target {target!r} at {self._where(inv)}")

    def _through_accessor(self, accessor: Node) -> Optional[WidgetUsage]:
        type_name = self.model.declaring_type(accessor)
        cls = self.model.find_class(type_name)
        if cls is None:
            raise UnresolvedReference(f"cannot find the class {type_name}")
        methods: list[Node] = []
        for c in self.model.type_hierarchy(cls):
            methods = self.model.methods_named(c, accessor.name)
            if methods:
                break
        if len(methods) != 1:
            raise AmbiguousEvidence(
                f"incorrect number of methods found for {accessor.name}(): {len(methods)}")
        body = methods[0].child("body")
        if body is None:
            raise StructuralPreconditionError(f"accessor {accessor.name}() has no body")
        returns = [r for r in body.walk() if r.kind is NodeKind.RETURN]
        if len(returns) != 1:
            raise AmbiguousEvidence(f"unsupported return statement(s) in {accessor.name}(): {len(returns)}")
        value = returns[0].child("value")
        if value is None or value.kind is not NodeKind.VARIABLE_ACCESS:
            raise AmbiguousEvidence(f"{accessor.name}() does not return a variable")
        return self._usage_of(self.model.resolve(value))

    # -- 2. widget class --------------------------------------------------

    def widget_class(self, cmd: Command) -> Optional[Node]:
        exe = cmd.executable
        if self.registration_invocation(exe) is not None:
            return None
        cls = exe.parent
        if cls is None or cls.kind is not NodeKind.CLASS:
            return None
        for this in cls.filter(lambda n: n.kind is NodeKind.THIS):
            inv = this.parent
            if inv is None or inv.kind is not NodeKind.INVOCATION:
                continue
            target = inv.child("target")
            if target is not None and target.kind is not NodeKind.THIS:
                continue
            declaring = self.model.declaring_type(inv)
            if not self.model.is_widget_type(declaring):
                continue
            found = self.model.find_class(declaring)
            if found is not None:
                return found
        return None

    # -- 3. condition type ------------------------------------------------

    def widgets_used_in_conditions(self, cmd: Command) -> list[WidgetUsage]:
        found: list[WidgetUsage] = []
        for cond in cmd.conditions:
            for acc in cond.real.filter(lambda n: n.kind is NodeKind.VARIABLE_ACCESS):
                usage = self._usage_of(self.model.resolve(acc))
                if usage is not None and usage not in found:
                    found.append(usage)
        return found

    # -- 4. cross-reference -----------------------------------------------

    def _configuration_statements(self, usage: WidgetUsage) -> list[Node]:
        stmts = []
        for acc in usage.accesses:
            if self._in_listener(acc):
                continue
            stmt = self.model.enclosing_statement(acc)
            if stmt is not None:
                stmts.append(stmt)
        return stmts

    @staticmethod
    def _evidence_conditions(cmd: Command) -> list[Node]:
        # negated guards (else branches, default cases) are not evidence
        return [c.effective for c in cmd.conditions if not c.negated]

    def match_shared_vars(self, cmd: Command) -> list[VarMatch]:
        variables: list[Node] = []
        for cond in self._evidence_conditions(cmd):
            for acc in cond.filter(lambda n: n.kind is NodeKind.VARIABLE_ACCESS):
                decl = self.model.resolve(acc)
                if decl is not None and decl not in variables:
                    variables.append(decl)
        if not variables:
            return []
        matches = []
        for usage in self.usages:
            for stmt in self._configuration_statements(usage):
                shared = [v for v in variables if _reads(self.model, stmt, v)]
                if shared:
                    matches.append(VarMatch(usage, shared))
        return matches

    def match_string_literals(self, cmd: Command) -> list[StringLitMatch]:
        literals: list[Node] = []
        for cond in self._evidence_conditions(cmd):
            for lit in _string_literals(cond):
                if all(lit.attrs.get("value") != other.attrs.get("value") for other in literals):
                    literals.append(lit)
        if not literals:
            return []
        matches = []
        for usage in self.usages:
            for stmt in self._configuration_statements(usage):
                values = set(_string_values(stmt))
                shared = [lit for lit in literals if lit.attrs.get("value") in values]
                if shared:
                    matches.append(StringLitMatch(usage, shared))
        return matches

    def check_listener_matching(self, listener_class: Optional[Node], matches: list) -> list:
        """
        Keep the matches whose widget is wired to the listener class of the
        command: one of its access statements must reference that class.
        """
        if listener_class is None:
            return matches
        kept = []
        for match in matches:
            stmts = [self.model.enclosing_statement(a) for a in match.usage.accesses]
            if any(s is not None and self._references_class(s, listener_class) for s in stmts):
                kept.append(match)
        return kept

    def _references_class(self, stmt: Node, cls: Node) -> bool:
        for node in stmt.walk():
            if node.kind is NodeKind.NEW_CLASS and node.child("body") is cls:
                return True
            if cls.attrs.get("anonymous"):
                continue
            if node.kind in (NodeKind.THIS, NodeKind.VARIABLE_ACCESS, NodeKind.NEW_CLASS):
                if self.model.type_of(node) == cls.name:
                    return True
        return False
