"""
Test suite for the pipeline driver and the command line interface.
"""

import sys
from pathlib import Path

import pytest

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from guidget.config import InspectorConfig
from guidget.inspector import Inspector, build_parser, main
from guidget.toolkit import TOOLKIT


@pytest.fixture
def project(tmp_path, action_command_form):
    src = tmp_path / "src" / "app"
    src.mkdir(parents=True)
    (src / "Form.java").write_text(action_command_form)
    return tmp_path / "src"


class TestConfig:
    """Tests for building the configuration from arguments."""

    def test_defaults(self):
        args = build_parser().parse_args(["src"])
        config = InspectorConfig.from_args(args)
        assert config.sources == [Path("src")]
        assert config.classpath == []
        assert not config.refactor
        assert config.as_lambda
        assert config.output_dir is None
        assert config.toolkit() is TOOLKIT

    def test_flags(self):
        args = build_parser().parse_args([
            "a", "b", "--refactor", "--anonymous", "--workers", "2",
            "--widget-type", "FancyButton", "--output", "out", "-q",
        ])
        config = InspectorConfig.from_args(args)
        assert config.sources == [Path("a"), Path("b")]
        assert config.refactor
        assert not config.as_lambda
        assert config.workers == 2
        assert config.output_dir == Path("out")
        assert config.toolkit().is_widget_type("FancyButton")

    def test_listener_interface(self):
        args = build_parser().parse_args([
            "src", "--listener-interface", "ValueListener=valueChanged:ValueEvent,reset:ValueEvent",
        ])
        config = InspectorConfig.from_args(args)
        assert config.extra_listener_interfaces == {
            "ValueListener": (("valueChanged", "ValueEvent"), ("reset", "ValueEvent")),
        }
        toolkit = config.toolkit()
        assert toolkit.is_listener_interface("ValueListener")
        assert toolkit.interface_methods("ValueListener")[0] == ("valueChanged", "ValueEvent")

    def test_malformed_listener_interface(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["src", "--listener-interface", "ValueListener"])


class TestInspector:
    """Tests for the pipeline."""

    def test_report(self, project):
        result = Inspector(InspectorConfig(sources=[project], workers=1)).run()
        lines = result.report_lines()
        assert len(lines) == 2
        assert lines[0].startswith("actionPerformed(ActionEvent);")
        assert lines[0].endswith(";btn1@2")
        assert lines[1].endswith(";btn2@3")
        assert result.summary() == "2 command(s), 2 attributed, 2 widget(s), 0 issue(s)"

    def test_refactor_writes_modified_units(self, project, tmp_path):
        out = tmp_path / "out"
        config = InspectorConfig(sources=[project], refactor=True, output_dir=out, workers=1)
        inspector = Inspector(config)
        result = inspector.run()
        inspector.write(result)
        written = out / "app" / "Form.java"
        assert written.exists()
        text = written.read_text()
        assert "btn1.addActionListener(e -> open());" in text
        # sources are never modified in place
        assert "setActionCommand" in (project / "app" / "Form.java").read_text()


class TestMain:
    """Tests for the command line entry point."""

    def test_prints_the_report(self, project, capsys):
        main([str(project), "--workers", "1"])
        out = capsys.readouterr().out.splitlines()
        assert len(out) == 2
        assert out[0].endswith(";btn1@2")

    def test_refactor_prints_units_without_output(self, project, capsys):
        main([str(project), "--refactor", "-q"])
        out = capsys.readouterr().out
        assert "btn2.addActionListener(e -> close());" in out

    def test_missing_source_exits_with_error(self, tmp_path):
        with pytest.raises(SystemExit) as exc:
            main([str(tmp_path / "missing")])
        assert exc.value.code == 1
