"""Error taxonomy of the analysis and refactoring stages."""

from __future__ import annotations


class GuidgetError(Exception):
    """Base class of all guidget errors."""


class FrontEndError(GuidgetError):
    """The syntax tree cannot be produced (missing or unreadable sources). Fatal."""


class UnresolvedReference(GuidgetError):
    """A declaration, parent link or type cannot be resolved in the model."""


class AmbiguousEvidence(GuidgetError):
    """Several candidates were found where exactly one is required."""


class StructuralPreconditionError(GuidgetError):
    """The tree does not have the shape a transformation requires."""
