"""
Shared fixtures: small Swing programs and a helper running the analysis
pipeline on in-memory sources.
"""

import sys
from pathlib import Path
from textwrap import dedent

import pytest

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from guidget.analyser.commands import CommandExtractor
from guidget.analyser.finder import CommandWidgetFinder
from guidget.analyser.widgets import find_widget_usages
from guidget.syntaxer.model import SyntaxModel


IF_ELSE_FORM = dedent("""\
    class Form implements ActionListener {
        JButton btn = new JButton();
        boolean flag;
        Form() { btn.addActionListener(this); }
        public void actionPerformed(ActionEvent e) {
            if (flag) {
                a();
            } else {
                b();
            }
        }
    }
    """)

ACTION_COMMAND_FORM = dedent("""\
    class Form implements ActionListener {
        JButton btn1 = new JButton();
        JButton btn2 = new JButton();
        Form() {
            btn1.setActionCommand("X");
            btn2.setActionCommand("Y");
            btn1.addActionListener(this);
            btn2.addActionListener(this);
        }
        public void actionPerformed(ActionEvent e) {
            if (e.getActionCommand().equals("X")) {
                open();
            } else if (e.getActionCommand().equals("Y")) {
                close();
            }
        }
    }
    """)

SOURCE_FORM = dedent("""\
    class Form implements ActionListener {
        JButton ok = new JButton();
        JButton cancel = new JButton();
        Form() {
            ok.addActionListener(this);
            cancel.addActionListener(this);
        }
        public void actionPerformed(ActionEvent e) {
            Object src = e.getSource();
            String name = "draft";
            if (src == ok) {
                int tmp = 1;
                save(name);
            } else if (src == cancel) {
                close();
            }
        }
    }
    """)


class Analysis:
    """Result of the analysis pipeline on one model."""

    def __init__(self, model, usages, commands, results):
        self.model = model
        self.usages = usages
        self.commands = commands
        self.results = results

    def usage(self, name):
        return next(u for u in self.usages if u.name == name)

    def widgets_of(self, index):
        return [u.name for u in self.results[self.commands[index]].get_widget_usages()]


def run_analysis(model, workers=1):
    usages = find_widget_usages(model)
    commands = CommandExtractor(model).extract()
    finder = CommandWidgetFinder(commands, usages, model, workers=workers)
    finder.process()
    return Analysis(model, usages, commands, finder.results)


@pytest.fixture
def analyse():
    """Parse a Java source and run widget discovery, extraction and attribution."""
    def _analyse(source, filename="Form.java", workers=1):
        return run_analysis(SyntaxModel.from_source(source, filename), workers=workers)
    return _analyse


@pytest.fixture
def if_else_form():
    return IF_ELSE_FORM


@pytest.fixture
def action_command_form():
    return ACTION_COMMAND_FORM


@pytest.fixture
def source_form():
    return SOURCE_FORM


@pytest.fixture
def reanalyse():
    """Run the analysis again on an already built (possibly transformed) model."""
    return run_analysis
