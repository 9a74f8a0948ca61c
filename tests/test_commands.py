"""
Test suite for command extraction and the command model.
"""

import sys
from pathlib import Path
from textwrap import dedent

import pytest

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from guidget.analyser.commands import CodeBlockPos, Command, CommandExtractor, CommandStatmtEntry
from guidget.analyser.widgets import find_widget_usages
from guidget.syntaxer import NodeKind, SourcePosition, SyntaxModel, make_node


def extract(source):
    model = SyntaxModel.from_source(source, "Form.java")
    return model, CommandExtractor(model).extract()


class TestExtraction:
    """Tests for splitting listener bodies into commands."""

    def test_if_else_gives_two_commands(self, if_else_form):
        model, cmds = extract(if_else_form)
        assert len(cmds) == 2
        then_cmd, else_cmd = cmds
        assert len(then_cmd.conditions) == 1
        assert not then_cmd.conditions[0].negated
        assert else_cmd.conditions[0].negated
        assert else_cmd.conditions[0].real is then_cmd.conditions[0].real

    def test_else_if_chain_accumulates_guards(self, action_command_form):
        model, cmds = extract(action_command_form)
        assert len(cmds) == 2
        second = cmds[1]
        assert len(second.conditions) == 2
        assert not second.conditions[0].negated
        assert second.conditions[1].negated

    def test_unguarded_listener_is_one_command(self):
        model, cmds = extract(dedent("""\
            class Form implements ActionListener {
                public void actionPerformed(ActionEvent e) {
                    a();
                    b();
                }
            }
            """))
        assert len(cmds) == 1
        assert cmds[0].conditions == []
        assert len(cmds[0].main_entry.statmts) == 2

    def test_top_level_statements_beside_guards_are_dropped(self):
        model, cmds = extract(dedent("""\
            class Form implements ActionListener {
                public void actionPerformed(ActionEvent e) {
                    log();
                    if (flag) {
                        a();
                    }
                }
            }
            """))
        assert len(cmds) == 1
        assert cmds[0].main_entry.statmts[0].child("expression").name == "a"

    def test_nested_branch_keeps_innermost_guard_first(self):
        model, cmds = extract(dedent("""\
            class Form implements ActionListener {
                public void actionPerformed(ActionEvent e) {
                    if (outer) {
                        if (inner) {
                            a();
                        }
                    }
                }
            }
            """))
        assert len(cmds) == 1
        names = [c.real.name for c in cmds[0].conditions]
        assert names == ["inner", "outer"]

    def test_empty_branches_give_no_command(self):
        model, cmds = extract(dedent("""\
            class Form implements ActionListener {
                public void actionPerformed(ActionEvent e) {
                    if (flag) {
                        return;
                    }
                }
            }
            """))
        assert cmds == []

    def test_lambda_listener(self):
        model, cmds = extract(dedent("""\
            class Form {
                JButton b = new JButton();
                void init() {
                    b.addActionListener(e -> go());
                }
            }
            """))
        assert len(cmds) == 1
        assert cmds[0].executable.kind is NodeKind.LAMBDA
        assert cmds[0].signature == "lambda$4(?)"

    def test_non_listener_methods_are_ignored(self):
        model, cmds = extract("class Form { void helper() { if (x) { a(); } } }")
        assert cmds == []


class TestLocalDispatch:
    """Tests for inlining local methods called by a command."""

    SOURCE = dedent("""\
        class Form implements ActionListener {
            public void actionPerformed(ActionEvent e) {
                if (flag) {
                    save();
                } else {
                    handle(e);
                }
            }
            void save() {
                store();
                flush();
            }
            void handle(ActionEvent e) {
                other();
            }
        }
        """)

    def test_single_call_is_replaced_by_callee_body(self):
        model, cmds = extract(self.SOURCE)
        cmd = cmds[0]
        main = cmd.main_entry
        assert [s.child("expression").name for s in main.statmts] == ["store", "flush"]
        secondary = [e for e in cmd.statements if not e.main_entry]
        assert len(secondary) == 1
        # the call site stays local to the listener
        assert [s.child("expression").name for s in cmd.local_statements_ordered()] == ["save"]

    def test_calls_receiving_the_event_are_not_inlined(self):
        model, cmds = extract(self.SOURCE)
        cmd = cmds[1]
        assert [s.child("expression").name for s in cmd.main_entry.statmts] == ["handle"]
        assert len(cmd.statements) == 1

    def test_repeated_call_gives_one_helper_entry(self):
        model, cmds = extract(dedent("""\
            class Form implements ActionListener {
                public void actionPerformed(ActionEvent e) {
                    if (flag) {
                        save();
                        save();
                    }
                }
                void save() {
                    store();
                }
            }
            """))
        cmd = cmds[0]
        assert len(cmd.statements) == 2
        helpers = [e for e in cmd.statements if not e.main_entry]
        assert [s.child("expression").name for e in helpers for s in e.statmts] == ["store"]
        assert [s.child("expression").name for s in cmd.main_entry.statmts] == ["save", "save"]

    def test_inlining_can_be_disabled(self):
        model = SyntaxModel.from_source(self.SOURCE, "Form.java")
        cmds = CommandExtractor(model, inline_local_calls=False).extract()
        assert [s.child("expression").name for s in cmds[0].main_entry.statmts] == ["save"]


class TestCommandModel:
    """Tests for the command positions and text form."""

    def test_code_blocks_and_text(self, if_else_form):
        model, (then_cmd, else_cmd) = extract(if_else_form)
        assert then_cmd.optimal_code_blocks() == [CodeBlockPos("Form.java", 6, 7)]
        assert str(then_cmd) == "actionPerformed(ActionEvent);2;Form.java:6-7"
        assert str(else_cmd) == "actionPerformed(ActionEvent);2;Form.java:6-6;Form.java:9-9"

    def test_line_range(self, if_else_form):
        model, (then_cmd, else_cmd) = extract(if_else_form)
        assert (then_cmd.line_start, then_cmd.line_end) == (7, 7)
        assert (else_cmd.line_start, else_cmd.line_end) == (9, 9)

    def test_merge_keeps_the_largest_end(self):
        def stmt(line, end_line, file="F.java"):
            node = make_node(NodeKind.EXPRESSION_STATEMENT)
            node.position = SourcePosition(file, line, end_line)
            return node

        cmd = Command(make_node(NodeKind.METHOD, "m"), [
            CommandStatmtEntry(True, [stmt(1, 10)]),
            CommandStatmtEntry(False, [stmt(3, 4)]),
            CommandStatmtEntry(False, [stmt(11, 12)]),
            CommandStatmtEntry(False, [stmt(20, 20)]),
            CommandStatmtEntry(False, [stmt(5, 5, "G.java")]),
        ])
        assert cmd.optimal_code_blocks() == [
            CodeBlockPos("F.java", 1, 12),
            CodeBlockPos("F.java", 20, 20),
            CodeBlockPos("G.java", 5, 5),
        ]
        assert cmd.nb_lines == 10 + 2 + 2 + 1 + 1
        assert str(cmd) == "m();16;F.java:1-12;F.java:20-20;G.java:5-5"

    def test_contained_entries_are_dropped(self, if_else_form):
        model, (then_cmd, _) = extract(if_else_form)
        outer = model.of_kind(NodeKind.IF)[0]
        inner = then_cmd.main_entry.statmts[0]
        big = CommandStatmtEntry(True, [outer])
        small = CommandStatmtEntry(False, [inner])
        assert big.contains(small)
        assert not small.contains(big)
        cmd = Command(then_cmd.executable, [big, small])
        assert cmd.statements == [big]

    def test_add_all_statements(self, if_else_form):
        model, (then_cmd, else_cmd) = extract(if_else_form)
        extra = CommandStatmtEntry(False, list(else_cmd.main_entry.statmts))
        then_cmd.add_all_statements(0, [extra])
        assert then_cmd.statements[0] is extra
        assert len(then_cmd.all_statements()) == 2


class TestWidgetUsages:
    """Tests for the widget variables and their accesses."""

    def test_usages_in_document_order(self, action_command_form):
        model = SyntaxModel.from_source(action_command_form, "Form.java")
        usages = find_widget_usages(model)
        assert [u.name for u in usages] == ["btn1", "btn2"]
        btn1 = usages[0]
        assert len(btn1.accesses) == 2
        lines = [a.position.line for a in btn1.accesses]
        assert lines == sorted(lines)

    def test_no_widget(self):
        model = SyntaxModel.from_source("class A { int x; }", "A.java")
        assert find_widget_usages(model) == []

    def test_local_and_custom_widgets(self):
        model = SyntaxModel.from_source(dedent("""\
            class Fancy extends JButton {}
            class Form {
                Fancy fancy;
                JButton[] many;
                void init() {
                    JCheckBox box = new JCheckBox();
                    box.setSelected(true);
                }
            }
            """), "Form.java")
        usages = find_widget_usages(model)
        assert [u.name for u in usages] == ["fancy", "box"]
        assert len(usages[1].accesses) == 1
