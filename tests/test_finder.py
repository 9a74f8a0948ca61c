"""
Test suite for widget attribution.

Covers each evidence heuristic, the precedence used to combine them,
narrowing of ambiguous registrations and the worker pool.
"""

import sys
from pathlib import Path
from textwrap import dedent

import pytest

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from guidget.analyser.commands import CommandExtractor
from guidget.analyser.finder import (
    CommandWidgetFinder,
    StringLitMatch,
    VarMatch,
    WidgetFinderEntry,
)
from guidget.analyser.widgets import WidgetUsage, find_widget_usages
from guidget.syntaxer import NodeKind, SyntaxModel, make_node


class TestEndToEndAttribution:
    """The reference attribution scenarios."""

    def test_registration_only(self, analyse, if_else_form):
        """Both branches of a `this` listener go to the registered widget."""
        result = analyse(if_else_form)
        assert len(result.commands) == 2
        for index, cmd in enumerate(result.commands):
            entry = result.results[cmd]
            assert result.widgets_of(index) == ["btn"]
            assert [u.name for u in entry.registered_widgets] == ["btn"]
            assert entry.widgets_used_in_conditions == []
            assert entry.widgets_from_shared_vars == []
            assert entry.widgets_from_string_literals == []
            assert entry.widget_classes is None

    def test_string_literal_wins(self, analyse, action_command_form):
        """Action commands select one of the widgets sharing the listener."""
        result = analyse(action_command_form)
        assert result.widgets_of(0) == ["btn1"]
        assert result.widgets_of(1) == ["btn2"]
        first = result.results[result.commands[0]]
        assert first.widgets_from_string_literals[0].values == ["X"]

    def test_registration_is_narrowed(self, analyse, action_command_form):
        result = analyse(action_command_form)
        entry = result.results[result.commands[0]]
        assert [u.name for u in entry.registered_widgets] == ["btn1"]

    def test_shared_variable(self, analyse, source_form):
        result = analyse(source_form)
        assert result.widgets_of(0) == ["ok"]
        assert result.widgets_of(1) == ["cancel"]
        entry = result.results[result.commands[0]]
        assert entry.widgets_from_shared_vars[0].usage.name == "ok"

    def test_no_cross_reference_keeps_all_registrations(self, analyse):
        """Without shared variable or literal evidence nothing is narrowed."""
        result = analyse(dedent("""\
            class Form implements ActionListener {
                JButton b1 = new JButton();
                JButton b2 = new JButton();
                Form() {
                    b1.addActionListener(this);
                    b2.addActionListener(this);
                }
                public void actionPerformed(ActionEvent e) {
                    if (flag) {
                        go();
                    }
                }
            }
            """))
        entry = result.results[result.commands[0]]
        assert entry.widgets_from_shared_vars == []
        assert entry.widgets_from_string_literals == []
        assert [u.name for u in entry.registered_widgets] == ["b1", "b2"]
        assert result.widgets_of(0) == ["b1", "b2"]

    def test_condition_type_alone_keeps_all_registrations(self, analyse):
        """`b1` is read in a negated guard only: condition type evidence, nothing else."""
        result = analyse(dedent("""\
            class Form implements ActionListener {
                JButton b1 = new JButton();
                JButton b2 = new JButton();
                Form() {
                    b1.addActionListener(this);
                    b2.addActionListener(this);
                }
                public void actionPerformed(ActionEvent e) {
                    if (e.getSource() == b1) {
                    } else {
                        go();
                    }
                }
            }
            """))
        assert len(result.commands) == 1
        entry = result.results[result.commands[0]]
        assert [u.name for u in entry.widgets_used_in_conditions] == ["b1"]
        assert entry.widgets_from_shared_vars == []
        assert entry.widgets_from_string_literals == []
        assert [u.name for u in entry.registered_widgets] == ["b1", "b2"]

    def test_negated_guards_are_not_evidence(self, analyse, source_form):
        """The else-if command reads `ok` in a negated guard only."""
        result = analyse(source_form)
        entry = result.results[result.commands[1]]
        assert [u.name for u in entry.widgets_used_in_conditions] == ["cancel", "ok"]
        assert [m.usage.name for m in entry.widgets_from_shared_vars] == ["cancel"]


class TestHeuristics:
    """Tests for each heuristic taken alone."""

    def test_lambda_registration(self, analyse):
        result = analyse(dedent("""\
            class Form {
                JButton b = new JButton();
                void init() {
                    b.addActionListener(e -> go());
                }
            }
            """))
        assert result.widgets_of(0) == ["b"]

    def test_anonymous_class_registration(self, analyse):
        result = analyse(dedent("""\
            class Form {
                JButton b = new JButton();
                void init() {
                    b.addActionListener(new ActionListener() {
                        public void actionPerformed(ActionEvent e) {
                            go();
                        }
                    });
                }
            }
            """))
        assert result.widgets_of(0) == ["b"]

    def test_registration_through_accessor(self, analyse):
        result = analyse(dedent("""\
            class Form implements ActionListener {
                JButton b = new JButton();
                JButton getB() { return b; }
                void init() { getB().addActionListener(this); }
                public void actionPerformed(ActionEvent e) { go(); }
            }
            """))
        assert result.widgets_of(0) == ["b"]

    def test_ambiguous_accessor_gives_no_widget(self, analyse):
        result = analyse(dedent("""\
            class Form implements ActionListener {
                JButton b = new JButton();
                JButton c = new JButton();
                JButton getB() {
                    if (flag) return b;
                    return c;
                }
                void init() { getB().addActionListener(this); }
                public void actionPerformed(ActionEvent e) { go(); }
            }
            """))
        assert result.widgets_of(0) == []

    def test_registration_through_listener_variable(self, analyse):
        result = analyse(dedent("""\
            class Form {
                JButton b = new JButton();
                void init() {
                    ActionListener l = e -> go();
                    b.addActionListener(l);
                }
            }
            """))
        assert result.widgets_of(0) == ["b"]

    def test_registration_filtered_by_interface(self, analyse):
        """A mouse registration does not count for the action listener."""
        result = analyse(dedent("""\
            class Form implements ActionListener, MouseListener {
                JButton b = new JButton();
                JButton c = new JButton();
                void init() {
                    b.addActionListener(this);
                    c.addMouseListener(this);
                }
                public void actionPerformed(ActionEvent e) { go(); }
                public void mouseClicked(MouseEvent e) { click(); }
            }
            """))
        assert [str(c).split(";")[0] for c in result.commands] == [
            "actionPerformed(ActionEvent)", "mouseClicked(MouseEvent)"]
        assert result.widgets_of(0) == ["b"]
        assert result.widgets_of(1) == ["c"]

    def test_widget_class(self, analyse):
        result = analyse(dedent("""\
            class Fancy extends JButton implements ActionListener {
                Fancy() { addActionListener(this); }
                public void actionPerformed(ActionEvent e) { go(); }
            }
            """))
        entry = result.results[result.commands[0]]
        assert entry.widget_classes is not None
        assert entry.widget_classes.name == "Fancy"
        # the widget class never takes part in the attributed widgets
        assert entry.get_widget_usages() == []
        assert entry.nb_distinct_widgets() == 1

    def test_condition_type(self, analyse):
        result = analyse(dedent("""\
            class Form implements ActionListener {
                JButton ok = new JButton();
                JButton no = new JButton();
                public void actionPerformed(ActionEvent e) {
                    if (e.getSource() == ok) {
                        go();
                    }
                }
            }
            """))
        entry = result.results[result.commands[0]]
        assert [u.name for u in entry.widgets_used_in_conditions] == ["ok"]
        assert result.widgets_of(0) == ["ok"]

    def test_configuration_inside_listeners_is_ignored(self, analyse):
        """A literal set on a widget from a listener is not a configuration."""
        result = analyse(dedent("""\
            class Form implements ActionListener {
                JButton b = new JButton();
                public void actionPerformed(ActionEvent e) {
                    if (e.getActionCommand().equals("X")) {
                        b.setText("X");
                    }
                }
            }
            """))
        entry = result.results[result.commands[0]]
        assert entry.widgets_from_string_literals == []


def usage(name):
    return WidgetUsage(make_node(NodeKind.VARIABLE, name))


class TestWidgetFinderEntry:
    """Tests for the evidence combination."""

    @pytest.fixture
    def evidence(self):
        a, b, c, d = (usage(n) for n in "abcd")
        entry = WidgetFinderEntry(
            registered_widgets=[a],
            widgets_used_in_conditions=[b],
            widgets_from_shared_vars=[VarMatch(c)],
            widgets_from_string_literals=[StringLitMatch(d), StringLitMatch(d)],
        )
        return entry, a, b, c, d

    def test_precedence(self, evidence):
        entry, a, b, c, d = evidence
        assert entry.get_widget_usages() == [d]
        entry.widgets_from_string_literals = []
        assert entry.get_widget_usages() == [c]
        entry.widgets_from_shared_vars = []
        assert entry.get_widget_usages() == [b]
        entry.widgets_used_in_conditions = []
        assert entry.get_widget_usages() == [a]
        entry.registered_widgets = []
        assert entry.get_widget_usages() == []

    def test_counts(self, evidence):
        entry, a, b, c, d = evidence
        assert entry.nb_distinct_widgets() == 4
        assert entry.distinct_used_widgets() == [c.widget_var, b.widget_var, d.widget_var]

    def test_supposed_associated_widgets(self, evidence):
        entry, a, b, c, d = evidence
        assert entry.supposed_associated_widgets() == [c.widget_var, b.widget_var, d.widget_var]
        entry.widgets_used_in_conditions = []
        entry.widgets_from_shared_vars = []
        assert entry.supposed_associated_widgets() == [d.widget_var]
        entry.widgets_from_string_literals = []
        assert entry.supposed_associated_widgets() == [a.widget_var]

    def test_single_registration_is_not_narrowed(self, evidence):
        entry, a, *_ = evidence
        entry.precise_widgets(SyntaxModel(units=[]))
        assert entry.registered_widgets == [a]


class TestWorkerPool:
    """Tests for the parallel attribution."""

    def test_results_do_not_depend_on_workers(self, analyse, source_form, action_command_form):
        for source in (source_form, action_command_form):
            sequential = analyse(source, workers=1)
            parallel = analyse(source, workers=4)
            assert [sequential.widgets_of(i) for i in range(len(sequential.commands))] == \
                [parallel.widgets_of(i) for i in range(len(parallel.commands))]

    def test_failing_command_gets_an_empty_entry(self, source_form):
        model = SyntaxModel.from_source(source_form, "Form.java")
        commands = CommandExtractor(model).extract()

        class FailingFinder(CommandWidgetFinder):
            def process_command(self, cmd):
                if cmd is commands[0]:
                    raise RuntimeError("boom")
                return super().process_command(cmd)

        finder = FailingFinder(commands, find_widget_usages(model), model, workers=2)
        finder.process()
        results = finder.results
        assert len(results) == 2
        assert results[commands[0]].get_widget_usages() == []
        assert [u.name for u in results[commands[1]].get_widget_usages()] == ["cancel"]

    def test_no_command(self):
        model = SyntaxModel.from_source("class A {}", "A.java")
        finder = CommandWidgetFinder([], [], model)
        finder.process()
        assert finder.results == {}
