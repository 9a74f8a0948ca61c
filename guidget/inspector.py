"""
guidget/inspector.py

Pipeline driver and command line interface.

    parse -> widget discovery -> command extraction -> attribution
          -> (optional) listener splitting -> report / printing

Usage:
    guidget src/main/java
    guidget --refactor --output out/ src/main/java --classpath lib-src/
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from loguru import logger

from .analyser.commands import Command, CommandExtractor
from .analyser.finder import CommandWidgetFinder, WidgetFinderEntry
from .analyser.widgets import WidgetUsage, find_widget_usages
from .config import InspectorConfig, listener_interface_arg
from .errors import FrontEndError
from .refactoring.listener_refactor import ListenerCommandRefactor
from .syntaxer.issues import Issue
from .syntaxer.model import SyntaxModel
from .syntaxer.nodes import Node
from .syntaxer.printer import JavaPrinter

log = logging.getLogger(__name__)


class InterceptHandler(logging.Handler):
    """Forwards standard logging records to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno
        logger.opt(depth=6, exception=record.exc_info).log(level, record.getMessage())


def configure_logging(level: int) -> None:
    logger.remove()
    logger.add(sys.stderr, level=logging.getLevelName(level), format="[{level}] {message}")
    logging.basicConfig(handlers=[InterceptHandler()], level=level, force=True)


def describe_usage(usage: WidgetUsage) -> str:
    pos = usage.widget_var.position
    return f"{usage.name}@{pos.line}" if pos is not None else usage.name


@dataclass
class InspectionResult:
    model: SyntaxModel
    usages: list[WidgetUsage] = field(default_factory=list)
    commands: list[Command] = field(default_factory=list)
    results: dict[Command, WidgetFinderEntry] = field(default_factory=dict)
    issues: list[Issue] = field(default_factory=list)
    modified_units: list[Node] = field(default_factory=list)

    def report_lines(self) -> list[str]:
        lines = []
        for cmd in self.commands:
            entry = self.results.get(cmd, WidgetFinderEntry())
            widgets = ",".join(describe_usage(u) for u in entry.get_widget_usages())
            lines.append(f"{cmd};{widgets}")
        return lines

    def summary(self) -> str:
        attributed = sum(1 for cmd in self.commands if self.results.get(cmd) and self.results[cmd].get_widget_usages())
        return (f"{len(self.commands)} command(s), {attributed} attributed, "
                f"{len(self.usages)} widget(s), {len(self.issues)} issue(s)")


class Inspector:
    """
    Example:
        inspector = Inspector(InspectorConfig(sources=[Path("src")]))
        result = inspector.run()
        print("\\n".join(result.report_lines()))
    """

    def __init__(self, config: InspectorConfig):
        self.config = config

    def load(self) -> SyntaxModel:
        return SyntaxModel.from_paths(self.config.sources, self.config.classpath, toolkit=self.config.toolkit())

    def analyse(self, model: SyntaxModel) -> InspectionResult:
        usages = find_widget_usages(model)
        commands = CommandExtractor(model).extract()
        finder = CommandWidgetFinder(commands, usages, model, workers=self.config.workers)
        finder.process()
        return InspectionResult(model=model, usages=usages, commands=commands, results=finder.results)

    def refactor(self, result: InspectionResult) -> None:
        """Split the listeners, one command at a time."""
        model = result.model
        for cmd in result.commands:
            if not model.is_attached(cmd.executable):
                log.debug("listener of %s no longer exists, skipped", cmd)
                continue
            unit = cmd.executable.root()
            entry = result.results.get(cmd, WidgetFinderEntry())
            issues = ListenerCommandRefactor(cmd, entry, model, as_lambda=self.config.as_lambda).execute()
            result.issues.extend(issues)
            if all(unit is not u for u in result.modified_units):
                result.modified_units.append(unit)

    def write(self, result: InspectionResult) -> None:
        printer = JavaPrinter(result.model.sources)
        for unit in result.modified_units:
            text = printer.print(unit)
            if self.config.output_dir is None:
                print(f"// {unit.name}")
                print(text)
                continue
            target = self.config.output_dir / self._relative_path(Path(unit.name))
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(text, encoding="utf-8")
            log.info("wrote %s", target)

    def _relative_path(self, path: Path) -> Path:
        for root in self.config.sources:
            if root.is_dir():
                try:
                    return path.relative_to(root)
                except ValueError:
                    continue
        return Path(path.name)

    def run(self) -> InspectionResult:
        model = self.load()
        result = self.analyse(model)
        if self.config.refactor:
            self.refactor(result)
        return result


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="guidget",
        description="Find the widgets producing each command of GUI listeners, and split the listeners",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Attribution report
  guidget src/main/java

  # Split the listeners into lambdas and write the result
  guidget --refactor --output out/ src/main/java
        """,
    )
    parser.add_argument("sources", nargs="+", help="Java source files or directories")
    parser.add_argument("--classpath", nargs="+", metavar="DIR",
                        help="Java source roots used for type knowledge only")
    parser.add_argument("--refactor", action="store_true",
                        help="Split multi-command listeners into dedicated listeners")
    parser.add_argument("--anonymous", action="store_true",
                        help="Create anonymous classes instead of lambdas when splitting")
    parser.add_argument("--output", type=Path, metavar="DIR",
                        help="Directory receiving the refactored sources (printed otherwise)")
    parser.add_argument("--workers", type=int, default=None,
                        help="Number of attribution workers (default: executor default)")
    parser.add_argument("--widget-type", action="append", metavar="NAME",
                        help="Additional widget class name (repeatable)")
    parser.add_argument("--listener-interface", action="append", type=listener_interface_arg,
                        metavar="NAME=METHOD:EVENT[,...]",
                        help="Additional listener interface with its methods (repeatable)")
    parser.add_argument("--quiet", "-q", action="store_true", help="Only warnings and errors")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug output")
    return parser


def main(argv: Optional[list[str]] = None) -> None:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    config = InspectorConfig.from_args(args)
    configure_logging(config.log_level)

    inspector = Inspector(config)
    try:
        result = inspector.run()
    except FrontEndError as e:
        log.error(f"Error: {e}")
        sys.exit(1)

    for line in result.report_lines():
        print(line)
    if config.refactor:
        inspector.write(result)
        for issue in result.issues:
            log.warning(str(issue))
    log.info(result.summary())


if __name__ == "__main__":
    main()
