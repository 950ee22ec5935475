"""Capability names and the catalog used to extend them.

Well-known capabilities are members of the ``Capability`` enum. Because it is
a ``StrEnum`` its members compare equal to plain strings, so registry lookups
work the same whether callers pass ``Capability.TESTING`` or ``"testing"``.
Deployments that need additional names register them on a
``CapabilityCatalog`` instead of editing the enum.
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import StrEnum


class Capability(StrEnum):
    """Capabilities known out of the box."""

    DESIGN = "design"
    ARCHITECTURE = "architecture"
    SYSTEM_ARCHITECTURE = "system-architecture"
    IMPLEMENTATION = "implementation"
    CODING = "coding"
    TESTING = "testing"
    CODE_REVIEW = "code-review"
    PROJECT_MANAGEMENT = "project-management"
    TASK_BREAKDOWN = "task-breakdown"
    PLANNING = "planning"
    ANALYSIS = "analysis"
    RESEARCH = "research"
    DOCUMENTATION = "documentation"


def normalize_capabilities(capabilities: Iterable[str]) -> tuple[str, ...]:
    """Strip, de-duplicate and validate capability names.

    Order of first appearance is preserved.

    Raises:
        ValueError: If a name is empty after stripping.
    """
    seen: dict[str, None] = {}
    for raw in capabilities:
        name = str(raw).strip()
        if not name:
            msg = "Capability names must be non-empty"
            raise ValueError(msg)
        seen.setdefault(name, None)
    return tuple(seen)


class CapabilityCatalog:
    """Set of capability names accepted by a deployment.

    Starts with every ``Capability`` member. With ``strict=True``,
    ``validate`` rejects names that were never registered.
    """

    def __init__(self, *, strict: bool = False) -> None:
        self._names: set[str] = {c.value for c in Capability}
        self._strict = strict

    @property
    def strict(self) -> bool:
        return self._strict

    def register(self, name: str) -> str:
        """Register a new capability name and return its normalized form."""
        (normalized,) = normalize_capabilities([name])
        self._names.add(normalized)
        return normalized

    def is_known(self, name: str) -> bool:
        return name in self._names

    def validate(self, capabilities: Iterable[str]) -> tuple[str, ...]:
        """Normalize capabilities, enforcing registration in strict mode.

        Raises:
            ValueError: On empty names, or unknown names when strict.
        """
        normalized = normalize_capabilities(capabilities)
        if self._strict:
            unknown = [c for c in normalized if c not in self._names]
            if unknown:
                msg = f"Unknown capabilities: {', '.join(unknown)}"
                raise ValueError(msg)
        return normalized

    def names(self) -> frozenset[str]:
        return frozenset(self._names)


__all__ = [
    "Capability",
    "CapabilityCatalog",
    "normalize_capabilities",
]
