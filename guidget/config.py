"""Run configuration of the inspector."""

from __future__ import annotations

import argparse
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .toolkit import TOOLKIT, Toolkit


def listener_interface_arg(text: str) -> tuple[str, tuple[tuple[str, str], ...]]:
    """
    Parse ``Name=method:EventType[,method:EventType...]`` into a listener
    interface entry of the toolkit.
    """
    name, sep, methods = text.partition("=")
    entries = []
    for item in methods.split(","):
        method, colon, event_type = item.strip().partition(":")
        if not colon or not method or not event_type:
            entries = []
            break
        entries.append((method, event_type))
    if not sep or not name.strip() or not entries:
        raise argparse.ArgumentTypeError(
            f"expected Name=method:EventType[,method:EventType...], got {text!r}")
    return name.strip(), tuple(entries)


@dataclass
class InspectorConfig:
    sources: list[Path] = field(default_factory=list)
    classpath: list[Path] = field(default_factory=list)
    refactor: bool = False
    as_lambda: bool = True
    workers: Optional[int] = None
    output_dir: Optional[Path] = None
    extra_widget_types: list[str] = field(default_factory=list)
    extra_listener_interfaces: dict[str, tuple[tuple[str, str], ...]] = field(default_factory=dict)
    log_level: int = logging.INFO

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> InspectorConfig:
        if args.quiet:
            level = logging.WARNING
        elif args.verbose:
            level = logging.DEBUG
        else:
            level = logging.INFO
        return cls(
            sources=[Path(p) for p in args.sources],
            classpath=[Path(p) for p in args.classpath or []],
            refactor=args.refactor,
            as_lambda=not args.anonymous,
            workers=args.workers,
            output_dir=args.output,
            extra_widget_types=list(args.widget_type or []),
            extra_listener_interfaces=dict(args.listener_interface or []),
            log_level=level,
        )

    def toolkit(self) -> Toolkit:
        if not self.extra_widget_types and not self.extra_listener_interfaces:
            return TOOLKIT
        return TOOLKIT.with_extras(self.extra_widget_types, self.extra_listener_interfaces)
