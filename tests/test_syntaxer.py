"""
Test suite for the Java front-end: node tree, builder, model queries and printer.
"""

import sys
from pathlib import Path
from textwrap import dedent

import pytest

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from guidget.errors import FrontEndError
from guidget.syntaxer import JavaPrinter, NodeKind, SyntaxModel, make_node, to_source
from guidget.syntaxer.utils import simple_type_name, unquote_java_string
from guidget.toolkit import TOOLKIT


PANEL = dedent("""\
    class Panel {
        int count;
        JButton button = new JButton();
        MyButton custom;
        void run(int count) {
            int local = count;
            this.count = local;
            Color c = Color.RED;
            button.setText("go");
        }
    }
    class MyButton extends JButton {
    }
    """)


def accesses(model, name):
    return model.filter(lambda n: n.kind is NodeKind.VARIABLE_ACCESS and n.name == name)


class TestNodes:
    """Tests for the mutable node tree."""

    def test_make_node_links_children(self):
        """Synthetic children get their role and parent."""
        arg = make_node(NodeKind.VARIABLE_ACCESS, "x")
        inv = make_node(NodeKind.INVOCATION, "run", children=[("argument", arg)])
        assert arg.parent is inv
        assert inv.child("argument") is arg
        assert inv.children_with("argument") == [arg]

    def test_delete_detaches(self):
        arg = make_node(NodeKind.VARIABLE_ACCESS, "x")
        inv = make_node(NodeKind.INVOCATION, "run", children=[("argument", arg)])
        arg.delete()
        assert arg.parent is None
        assert inv.children == []
        arg.delete()  # already detached

    def test_clone_remembers_first_origin(self):
        """A clone of a clone points back to the tree node."""
        leaf = make_node(NodeKind.VARIABLE_ACCESS, "x")
        stmt = make_node(NodeKind.EXPRESSION_STATEMENT, children=[("expression", leaf)])
        copy = stmt.clone()
        again = copy.clone()
        assert copy is not stmt
        assert copy.origin is stmt
        assert again.origin is stmt
        assert again.children[0].origin is leaf
        assert copy.parent is None

    def test_contains_and_ancestors(self):
        leaf = make_node(NodeKind.VARIABLE_ACCESS, "x")
        paren = make_node(NodeKind.PAREN, children=[("expression", leaf)])
        unary = make_node(NodeKind.UNARY, children=[("operand", paren)], operator="!")
        assert unary.contains(leaf)
        assert not leaf.contains(unary)
        assert list(leaf.ancestors()) == [paren, unary]
        assert leaf.ancestor(NodeKind.UNARY) is unary
        assert leaf.root() is unary

    def test_replace_child_requires_a_child(self):
        inv = make_node(NodeKind.INVOCATION, "run")
        with pytest.raises(ValueError):
            inv.replace_child(make_node(NodeKind.THIS), make_node(NodeKind.THIS))


class TestModel:
    """Tests for name resolution and typing in the syntax model."""

    @pytest.fixture
    def model(self):
        return SyntaxModel.from_source(PANEL, "Panel.java")

    def test_parameter_shadows_field(self, model):
        """`count` in the method body is the parameter, not the field."""
        read = next(a for a in accesses(model, "count") if a.child("target") is None)
        decl = model.resolve(read)
        assert decl.kind is NodeKind.PARAMETER

    def test_this_access_resolves_to_field(self, model):
        write = next(a for a in accesses(model, "count") if a.child("target") is not None)
        decl = model.resolve(write)
        assert decl.kind is NodeKind.VARIABLE
        assert decl.parent.kind is NodeKind.FIELD

    def test_local_variable(self, model):
        decl = model.resolve(accesses(model, "local")[0])
        assert decl.parent.kind is NodeKind.LOCAL_DECL
        assert model.usages_of(decl) == accesses(model, "local")

    def test_type_access(self, model):
        """`Color` in `Color.RED` names a type, not a variable."""
        color = accesses(model, "Color")[0]
        assert model.is_type_access(color)
        assert model.resolve(accesses(model, "RED")[0]) is None

    def test_type_of_and_declaring_type(self, model):
        button = accesses(model, "button")[0]
        assert model.type_of(button) == "JButton"
        set_text = model.filter(lambda n: n.kind is NodeKind.INVOCATION and n.name == "setText")[0]
        assert model.declaring_type(set_text) == "JButton"

    def test_widget_types(self, model):
        """In-model subclasses of a toolkit widget are widgets too."""
        assert model.is_widget_type("JButton")
        assert model.is_widget_type("MyButton")
        assert not model.is_widget_type("Panel")
        assert model.is_widget_class(model.find_class("MyButton"))

    def test_enclosing_queries(self, model):
        access = accesses(model, "local")[0]
        assert model.enclosing_statement(access).kind is NodeKind.EXPRESSION_STATEMENT
        assert model.enclosing_executable(access).name == "run"
        assert model.enclosing_class(access).name == "Panel"

    def test_detached_node_has_no_enclosing_statement(self, model):
        stmt = model.enclosing_statement(accesses(model, "local")[0])
        stmt.delete()
        assert not model.is_attached(stmt)
        assert model.enclosing_statement(stmt.children[0]) is None

    def test_clone_resolves_through_origin(self, model):
        stmt = model.enclosing_statement(accesses(model, "local")[0])
        copy = stmt.clone()
        access = next(n for n in copy.walk() if n.kind is NodeKind.VARIABLE_ACCESS and n.name == "local")
        decl = model.resolve(access)
        assert decl is not None
        assert decl.parent.kind is NodeKind.LOCAL_DECL

    def test_listener_interface_of_lambda(self):
        model = SyntaxModel.from_source(dedent("""\
            class A {
                JButton b;
                void init() { b.addActionListener(e -> go()); }
            }
            """))
        lam = model.of_kind(NodeKind.LAMBDA)[0]
        assert model.listener_interface(lam) == "ActionListener"
        assert model.is_listener_method(lam)

    def test_listener_interface_through_adapter(self):
        model = SyntaxModel.from_source(dedent("""\
            class A extends MouseAdapter {
                public void mouseClicked(MouseEvent e) { go(); }
            }
            """))
        method = model.filter(lambda n: n.kind is NodeKind.METHOD)[0]
        assert model.listener_interface(method) == "MouseListener"

    def test_from_paths_missing_source(self, tmp_path):
        with pytest.raises(FrontEndError):
            SyntaxModel.from_paths([tmp_path / "nope"])

    def test_from_paths_without_java_files(self, tmp_path):
        (tmp_path / "README").write_text("nothing")
        with pytest.raises(FrontEndError):
            SyntaxModel.from_paths([tmp_path])

    def test_from_paths_with_classpath(self, tmp_path):
        src, lib = tmp_path / "src", tmp_path / "lib"
        src.mkdir()
        lib.mkdir()
        (src / "Form.java").write_text("class Form { FancyButton b; }")
        (lib / "FancyButton.java").write_text("class FancyButton extends JButton {}")
        model = SyntaxModel.from_paths([src], [lib])
        assert len(model.units) == 1
        assert len(model.library_units) == 1
        assert model.is_widget_type("FancyButton")
        # library units are not analysed
        assert all(n.name != "FancyButton" for n in model.of_kind(NodeKind.CLASS))


class TestPrinter:
    """Tests for printing trees back to Java."""

    def test_untouched_unit_prints_verbatim(self):
        model = SyntaxModel.from_source(PANEL, "Panel.java")
        text = JavaPrinter(model.sources).print(model.units[0])
        assert text.strip() == PANEL.strip()

    def test_deleted_statement_disappears(self):
        model = SyntaxModel.from_source(PANEL, "Panel.java")
        stmt = model.enclosing_statement(accesses(model, "local")[-1])
        stmt.delete()
        text = to_source(model.units[0], model.sources)
        assert "this.count = local;" not in text
        assert "int local = count;" in text
        assert "\n\n        Color" not in text

    def test_synthetic_lambda(self):
        param = make_node(NodeKind.PARAMETER, "e", type=None, type_name=None)
        body = make_node(NodeKind.INVOCATION, "run")
        lam = make_node(NodeKind.LAMBDA, children=[("parameter", param), ("body", body)])
        assert to_source(lam) == "e -> run()"

    def test_synthetic_block(self):
        call = make_node(NodeKind.INVOCATION, "run")
        stmt = make_node(NodeKind.EXPRESSION_STATEMENT, children=[("expression", call)])
        block = make_node(NodeKind.BLOCK, children=[("statement", stmt)])
        assert to_source(block) == "{\n    run();\n}"

    def test_string_literal_is_escaped(self):
        lit = make_node(NodeKind.LITERAL, literal_type="String", value='a"b')
        assert to_source(lit) == '"a\\"b"'


class TestUtilsAndToolkit:
    """Tests for the helpers and the toolkit vocabulary."""

    def test_unquote_java_string(self):
        assert unquote_java_string('"X"') == "X"
        assert unquote_java_string('"a\\nb"') == "a\nb"

    def test_simple_type_name(self):
        assert simple_type_name("javax.swing.JButton") == "JButton"
        assert simple_type_name("List<String>") == "List"
        assert simple_type_name(None) is None

    def test_registration_interface(self):
        assert TOOLKIT.registration_interface("addActionListener") == "ActionListener"
        assert TOOLKIT.registration_interface("setOnAction") == "EventHandler"
        assert TOOLKIT.registration_interface("removeActionListener") is None
        assert TOOLKIT.registration_interface("setText") is None

    def test_action_command_methods(self):
        assert TOOLKIT.is_action_command_method("setActionCommand")
        assert not TOOLKIT.is_action_command_method("setText")

    def test_with_extras(self):
        toolkit = TOOLKIT.with_extras(["FancyButton"], {"FancyListener": (("fancy", "FancyEvent"),)})
        assert toolkit.is_widget_type("FancyButton")
        assert toolkit.is_listener_interface("FancyListener")
        assert not TOOLKIT.is_widget_type("FancyButton")
