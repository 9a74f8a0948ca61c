"""
guidget/refactoring/listener_refactor.py

Splits one command out of a multi-command listener.

For every widget the command is attributed to, the unique registration call
of that widget gets a new dedicated listener (a lambda, or an anonymous
class) holding a copy of the command's code. The command's statements, the
guards left empty and the listener itself when it ends up empty are then
removed from the original code.
"""

from __future__ import annotations

import logging
from typing import Optional

from ..analyser.commands import Command
from ..analyser.finder import WidgetFinderEntry
from ..analyser.widgets import WidgetUsage
from ..errors import AmbiguousEvidence, StructuralPreconditionError
from ..syntaxer.issues import Issue, make_issue
from ..syntaxer.model import SyntaxModel
from ..syntaxer.nodes import STATEMENT_KINDS, Node, NodeKind, make_node

log = logging.getLogger(__name__)


def _is_return_or_break(node: Node) -> bool:
    return node.kind in (NodeKind.RETURN, NodeKind.BREAK)


def _is_plumbing(node: Node) -> bool:
    return node.kind is NodeKind.BREAK or (node.kind is NodeKind.RETURN and node.child("value") is None)


def _is_empty_branch(branch: Optional[Node]) -> bool:
    return branch is None or (branch.kind is NodeKind.BLOCK and not branch.children)


def is_empty_if(node: Node) -> bool:
    return _is_empty_branch(node.child("then")) and _is_empty_branch(node.child("else"))


def is_empty_case(case: Node) -> bool:
    for stat in case.children_with("statement"):
        if stat.kind is NodeKind.BLOCK:
            if any(not _is_plumbing(s) for s in stat.children):
                return False
        elif not _is_plumbing(stat):
            return False
    return True


def is_empty_switch(node: Node) -> bool:
    return all(is_empty_case(c) for c in node.children_with("case"))


def empty_block() -> Node:
    return make_node(NodeKind.BLOCK)


def delete_statement(stmt: Node) -> None:
    """Detach a statement, keeping the enclosing construct well formed."""
    parent = stmt.parent
    if parent is None:
        return
    if stmt.role in ("then", "body") or (parent.kind is NodeKind.CASE and parent.attrs.get("rule")):
        parent.replace_child(stmt, empty_block())
    elif stmt.role == "else":
        parent.remove_child(stmt)
        parent.dirty = True
    else:
        stmt.delete()


def delete_variable(var: Node) -> None:
    """Delete a declarator, and its declaration once it declares nothing else."""
    decl = var.parent
    if decl is None:
        return
    if decl.kind in (NodeKind.FIELD, NodeKind.LOCAL_DECL):
        if len([c for c in decl.children if c.kind is NodeKind.VARIABLE]) <= 1:
            delete_statement(decl)
            return
    var.delete()


class ListenerCommandRefactor:
    """
    Example:
        refactor = ListenerCommandRefactor(cmd, entry, model, as_lambda=True)
        issues = refactor.execute()
    """

    def __init__(self, command: Command, entry: WidgetFinderEntry, model: SyntaxModel, as_lambda: bool = True):
        self.cmd = command
        self.entry = entry
        self.model = model
        self.as_lambda = as_lambda
        self.interface = model.listener_interface(command.executable)

    # -- driver -----------------------------------------------------------

    def execute(self) -> list[Issue]:
        issues: list[Issue] = []
        exe = self.cmd.executable
        usages = self.entry.get_widget_usages()
        if not usages:
            issues.append(make_issue("no-widget", exe, f"no widget attributed to {self.cmd.signature}"))
            return issues
        if self.cmd.conditions and not self._guards_select_widgets():
            # the new listener would run the command without its guards
            log.error("the guards of %s do not select a widget", self.cmd)
            issues.append(make_issue("non-widget-guard", exe,
                                     f"the guards of {self.cmd.signature} do not select a widget"))
            return issues

        plans: list[tuple[WidgetUsage, Node]] = []
        for usage in usages:
            try:
                plans.append((usage, self.registration_of(usage)))
            except AmbiguousEvidence as exc:
                log.error("cannot find a unique widget registration for %s: %s", self.cmd, exc)
                issues.append(make_issue("ambiguous-registration", usage.widget_var, str(exc)))
        if not plans:
            return issues
        if len(plans) == 1 and self._already_split(plans[0][1]):
            log.debug("%s is already a dedicated listener", self.cmd)
            return issues

        self._strip_trailing_return(exe.child("body"))
        read_locals = self._locals_read_by_command()
        stats = self.prepare_statements()

        replaced: list[Optional[Node]] = []
        for usage, inv in plans:
            old_arg = inv.children_with("argument")[0]
            try:
                listener = self.build_listener(inv, [s.clone() for s in stats])
            except StructuralPreconditionError as exc:
                log.error("cannot refactor %s for %s: %s", self.cmd, usage.name, exc)
                issues.append(make_issue("structural-precondition", inv, str(exc)))
                continue
            replaced.append(self._listener_variable(old_arg))
            inv.replace_child(old_arg, listener)
            log.info("%s extracted for widget %s", self.cmd.signature, usage.name)

        if replaced:
            self.remove_old_command(replaced, read_locals)
        return issues

    # -- registration -----------------------------------------------------

    def _guards_select_widgets(self) -> bool:
        entry = self.entry
        return bool(entry.widgets_from_string_literals or entry.widgets_from_shared_vars
                    or entry.widgets_used_in_conditions)

    def registration_of(self, usage: WidgetUsage) -> Node:
        """The single call registering this command's listener on ``usage``."""
        found: list[Node] = []
        for acc in usage.accesses:
            stmt = self.model.enclosing_statement(acc)
            if stmt is None:
                continue
            for inv in stmt.filter(lambda n: n.kind is NodeKind.INVOCATION):
                iface = self.model.registration_interface(inv)
                if iface is None or (self.interface is not None and iface != self.interface):
                    continue
                args = inv.children_with("argument")
                if len(args) != 1 or not self._refers_to_listener(args[0]):
                    continue
                if all(inv is not other for other in found):
                    found.append(inv)
        if len(found) != 1:
            raise AmbiguousEvidence(f"{len(found)} registration call(s) found for widget {usage.name}")
        return found[0]

    def _refers_to_listener(self, arg: Node) -> bool:
        """``arg`` is the listener holding the command: ``this``, a variable or the listener itself."""
        exe = self.cmd.executable
        if arg.contains(exe):
            return True
        if arg.kind is NodeKind.THIS and exe.kind is NodeKind.METHOD:
            this_class = self.model.enclosing_class(arg)
            hierarchy = self.model.type_hierarchy(self.model.enclosing_class(exe))
            return this_class is not None and any(c is this_class for c in hierarchy)
        if arg.kind is NodeKind.VARIABLE_ACCESS:
            decl = self.model.resolve(arg)
            return decl is not None and decl.contains(exe)
        return False

    def _already_split(self, inv: Node) -> bool:
        """The registered listener is this command's own single-purpose listener."""
        arg = inv.children_with("argument")[0]
        exe = self.cmd.executable
        if not arg.contains(exe):
            return False
        if self.cmd.conditions:
            return False
        body = exe.child("body")
        if body is None or body.kind is not NodeKind.BLOCK:
            return True
        covered = self.cmd.local_statements_ordered()
        return all(any(c.contains(s) for c in covered) for s in body.children if not _is_return_or_break(s))

    # -- clone preparation ------------------------------------------------

    @staticmethod
    def _strip_trailing_return(body: Optional[Node]) -> None:
        if body is not None and body.kind is NodeKind.BLOCK and body.children:
            last = body.children[-1]
            # a valued return is command code, the clone keeps its expression
            if _is_plumbing(last):
                last.delete()

    def prepare_statements(self) -> list[Node]:
        """Clone of the command code, ready to become the body of a new listener."""
        local = self.cmd.local_statements_ordered()
        clones = [decl.clone() for decl in self._outer_locals(local)]
        for stat in local:
            clones += [s.clone() for s in self._inlined(stat)]
        clones = self._remove_last_break_return(clones)
        self.remove_action_command_statements(clones)
        return self.remove_unused_locals(clones)

    def _inlined(self, stat: Node) -> list[Node]:
        """
        The body of the helper called by ``stat`` when the command collected
        it during local dispatch extraction, ``[stat]`` otherwise.

        Only argument-less calls standing as a whole statement are inlined,
        and only when the helper body can move into the listener as is: no
        early return, no ``this`` and no local clashing with a name declared
        in the listener.
        """
        expr = stat.child("expression") if stat.kind is NodeKind.EXPRESSION_STATEMENT else None
        if expr is None or expr.kind is not NodeKind.INVOCATION or expr.children_with("argument"):
            return [stat]
        helper_entries = [e.statmts for e in self.cmd.statements
                          if e.statmts and not self.cmd.executable.contains(e.statmts[0])]
        for method in self.model.invoked_methods(expr):
            body = method.child("body")
            if body is None or method.children_with("parameter"):
                continue
            stats = list(body.children)
            if not any(len(s) == len(stats) and all(a is b for a, b in zip(s, stats)) for s in helper_entries):
                continue
            if stats and _is_plumbing(stats[-1]):
                stats = stats[:-1]
            if not stats or not self._movable(stats):
                return [stat]
            log.debug("inlining %s() into the extracted command", method.name)
            return stats
        return [stat]

    def _movable(self, stats: list[Node]) -> bool:
        nodes = [n for s in stats for n in s.walk()]
        if any(n.kind in (NodeKind.RETURN, NodeKind.THIS) for n in nodes):
            return False
        taken = {n.name for n in self.cmd.executable.walk() if n.kind in (NodeKind.VARIABLE, NodeKind.PARAMETER)}
        return not any(n.kind is NodeKind.VARIABLE and n.name in taken for n in nodes)

    def _outer_locals(self, local: list[Node]) -> list[Node]:
        """Local declarations of the listener, outside the command, that the command reads."""
        exe = self.cmd.executable
        needed: list[Node] = []
        pending = list(local)
        while pending:
            node = pending.pop()
            for acc in node.filter(lambda n: n.kind is NodeKind.VARIABLE_ACCESS):
                decl = self.model.resolve(acc)
                holder = decl.parent if decl is not None else None
                if holder is None or holder.kind is not NodeKind.LOCAL_DECL or not exe.contains(holder):
                    continue
                if any(s.contains(holder) for s in local) or any(h is holder for h in needed):
                    continue
                needed.append(holder)
                pending.append(holder)
        return sorted(needed, key=lambda n: n.sort_key())

    @staticmethod
    def _remove_last_break_return(stats: list[Node]) -> list[Node]:
        if not stats or not _is_return_or_break(stats[-1]):
            return stats
        last = stats[-1]
        value = last.child("value") if last.kind is NodeKind.RETURN else None
        if value is None:
            return stats[:-1]
        last.remove_child(value)
        return stats[:-1] + [value]

    def remove_action_command_statements(self, clones: list[Node]) -> None:
        """
        Delete the configuration calls (``setActionCommand``...) of the
        attributed widgets, then the non-public variables they used that are
        left with fewer than two uses.
        """
        toolkit = self.model.toolkit
        for usage in self.entry.get_widget_usages():
            stmts: list[Node] = []
            for acc in usage.accesses:
                stmt = self.model.enclosing_statement(acc)
                if stmt is None or any(stmt is s for s in stmts):
                    continue
                if stmt.filter(lambda n: n.kind is NodeKind.INVOCATION and toolkit.is_action_command_method(n.name)):
                    stmts.append(stmt)

            variables: list[Node] = []
            for stmt in stmts:
                for acc in stmt.filter(lambda n: n.kind is NodeKind.VARIABLE_ACCESS):
                    decl = self.model.resolve(acc)
                    if decl is not None and decl.kind is NodeKind.VARIABLE and all(decl is not v for v in variables):
                        variables.append(decl)
            for stmt in stmts:
                log.debug("removing configuration statement at %s", stmt.position)
                delete_statement(stmt)
            for var in variables:
                if "public" in var.attrs.get("modifiers", []) or usage.widget_var is var:
                    continue
                if len(self.model.usages_of(var)) < 2 and not self._read_by(clones, var):
                    log.debug("removing unused variable %s", var.name)
                    delete_variable(var)

    def _read_by(self, nodes: list[Node], var: Node) -> bool:
        return any(
            acc.name == var.name and self.model.resolve(acc) is var
            for node in nodes for acc in node.filter(lambda n: n.kind is NodeKind.VARIABLE_ACCESS)
        )

    def remove_unused_locals(self, clones: list[Node]) -> list[Node]:
        """Drop the local variables no statement of the clone reads any more."""
        changed = True
        while changed:
            changed = False
            for decl in [n for c in clones for n in c.walk() if n.kind is NodeKind.LOCAL_DECL]:
                for var in [v for v in decl.children if v.kind is NodeKind.VARIABLE]:
                    target = var.origin or var
                    if self._reads_clone_var(clones, var, target):
                        continue
                    if len([v for v in decl.children if v.kind is NodeKind.VARIABLE]) > 1:
                        var.delete()
                    elif any(decl is c for c in clones):
                        clones = [c for c in clones if c is not decl]
                    else:
                        delete_statement(decl)
                    changed = True
        return clones

    def _reads_clone_var(self, clones: list[Node], var: Node, target: Node) -> bool:
        for clone in clones:
            for acc in clone.filter(lambda n: n.kind is NodeKind.VARIABLE_ACCESS):
                if acc.name != var.name:
                    continue
                origin = acc.origin or acc
                if self.model.resolve(origin) is target:
                    return True
        return False

    # -- new listener -----------------------------------------------------

    def build_listener(self, inv: Node, stats: list[Node]) -> Node:
        iface = self.model.registration_interface(inv)
        methods = self.model.interface_methods(iface)
        if self.as_lambda:
            if len(methods) <= 1:
                return self._build_lambda(stats)
            log.warning("%s has %d methods, using an anonymous class instead of a lambda", iface, len(methods))
        return self._build_anonymous_class(iface, methods, stats)

    def _parameter_name(self) -> str:
        params = self.cmd.executable.children_with("parameter")
        return params[0].name if params else "e"

    @staticmethod
    def _as_statement(node: Node) -> Node:
        if node.kind in STATEMENT_KINDS:
            return node
        return make_node(NodeKind.EXPRESSION_STATEMENT, children=[("expression", node)])

    def _build_lambda(self, stats: list[Node]) -> Node:
        param = make_node(NodeKind.PARAMETER, self._parameter_name(), type=None, type_name=None)
        if len(stats) == 1 and stats[0].kind not in STATEMENT_KINDS:
            body = stats[0]
        elif len(stats) == 1 and stats[0].kind is NodeKind.EXPRESSION_STATEMENT and stats[0].child("expression"):
            body = stats[0].child("expression")
        else:
            body = make_node(NodeKind.BLOCK, children=[("statement", self._as_statement(s)) for s in stats])
        return make_node(NodeKind.LAMBDA, children=[("parameter", param), ("body", body)])

    def _build_anonymous_class(self, iface: Optional[str], methods: list, stats: list[Node]) -> Node:
        if not methods:
            raise StructuralPreconditionError(f"no abstract method to implement in {iface}")
        exe_name = self.cmd.executable.name
        implemented = next((m for m in methods if m[0] == exe_name), methods[0])
        members = [make_node(NodeKind.CONSTRUCTOR, iface, children=[("body", empty_block())], implicit=True)]
        for name, event_type in methods:
            body = empty_block()
            if (name, event_type) == implemented:
                for stat in stats:
                    body.add_child(self._as_statement(stat), "statement")
            members.append(self._method(name, event_type, body))
        anonymous = make_node(NodeKind.CLASS, children=[("member", m) for m in members],
                              anonymous=True, modifiers=[], annotations=[], superclass=None)
        return make_node(NodeKind.NEW_CLASS, children=[("body", anonymous)], type=iface, type_name=iface)

    def _method(self, name: str, event_type: Optional[str], body: Node) -> Node:
        params = self.cmd.executable.children_with("parameter")
        param_type = event_type or (params[0].attrs.get("type") if params else None) or "Object"
        param = make_node(NodeKind.PARAMETER, self._parameter_name(), type=param_type, type_name=param_type)
        return make_node(
            NodeKind.METHOD, name,
            children=[("parameter", param), ("body", body)],
            annotations=["@Override"], modifiers=["public"], type="void", type_name="void",
        )

    # -- cleaning the original listener -----------------------------------

    def _locals_read_by_command(self) -> list[Node]:
        exe = self.cmd.executable
        nodes = self.cmd.local_statements_ordered() + [c.real for c in self.cmd.conditions]
        found: list[Node] = []
        for node in nodes:
            for acc in node.filter(lambda n: n.kind is NodeKind.VARIABLE_ACCESS):
                decl = self.model.resolve(acc)
                if (decl is not None and decl.parent is not None and decl.parent.kind is NodeKind.LOCAL_DECL
                        and exe.contains(decl) and all(decl is not f for f in found)):
                    found.append(decl)
        return found

    def remove_old_command(self, old_variables: list[Optional[Node]], read_locals: list[Node]) -> None:
        exe = self.cmd.executable
        for stmt in self.cmd.local_statements_ordered():
            delete_statement(stmt)

        for cond in self.cmd.conditions:
            construct = self.model.enclosing_statement(cond.real)
            if construct is not None and construct.kind is NodeKind.SWITCH and cond.negated:
                for case in construct.children_with("case"):
                    if case.attrs.get("default") and is_empty_case(case):
                        case.delete()
            self._delete_if_empty(construct)

        for var in read_locals:
            if self.model.is_attached(var) and not self.model.usages_of(var):
                log.debug("removing local %s left unused in %r", var.name, exe)
                delete_variable(var)

        body = exe.child("body")
        if exe.kind is NodeKind.METHOD and body is not None and body.kind is NodeKind.BLOCK and not body.children:
            self._delete_listener_method(exe)

        for var in old_variables:
            if var is not None and self.model.is_attached(var) and not self.model.usages_of(var):
                log.debug("removing dead listener variable %s", var.name)
                delete_variable(var)

    def _delete_if_empty(self, construct: Optional[Node]) -> None:
        if construct is None:
            return
        if construct.kind is NodeKind.CASE:
            if is_empty_case(construct):
                switch = construct.parent
                construct.delete()
                if switch is not None and is_empty_switch(switch):
                    delete_statement(switch)
        elif construct.kind is NodeKind.IF and is_empty_if(construct):
            delete_statement(construct)
        elif construct.kind is NodeKind.SWITCH and is_empty_switch(construct):
            delete_statement(construct)

    def _delete_listener_method(self, method: Node) -> None:
        cls = method.parent
        method.delete()
        log.info("listener method %s is now empty and has been removed", method.name)
        if cls is None or self.interface is None:
            return
        iface_methods = {name for name, _ in self.model.interface_methods(self.interface)}
        if any(m.kind is NodeKind.METHOD and m.name in iface_methods for m in cls.children):
            return
        for this in cls.filter(lambda n: n.kind is NodeKind.THIS):
            inv = this.parent
            if (inv is not None and inv.kind is NodeKind.INVOCATION and this.role == "argument"
                    and self.model.registration_interface(inv) == self.interface):
                return
        interfaces = cls.child("interfaces")
        if interfaces is None:
            return
        for t in list(interfaces.children):
            if t.name == self.interface:
                t.delete()
        if not interfaces.children:
            interfaces.delete()

    def _listener_variable(self, old_arg: Node) -> Optional[Node]:
        """Local variable read as the registration argument, if any."""
        if old_arg.kind is not NodeKind.VARIABLE_ACCESS or old_arg.child("target") is not None:
            return None
        decl = self.model.resolve(old_arg)
        if decl is None or decl.kind is not NodeKind.VARIABLE:
            return None
        if decl.parent is None or decl.parent.kind is not NodeKind.LOCAL_DECL:
            return None
        return decl
