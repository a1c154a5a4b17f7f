"""Hierarchical validation results.

Validators write into a :class:`ResultCollector`; once a run finishes the
collector is frozen into a :class:`ValidationResult` tree which is what
publishers, errors and reports hand around.
"""

from __future__ import annotations

import dataclasses
import threading
import typing as typ

__all__ = ["ResultCollector", "ValidationResult", "render_result"]


@dataclasses.dataclass(frozen=True, slots=True)
class ValidationResult:
    """Immutable node of a validation report.

    Attributes
    ----------
    name : str
        Node label: a store name, validator name or artifact id.
    info, warnings, errors : tuple[str, ...]
        Messages recorded on this node, in insertion order.
    children : tuple[ValidationResult, ...]
        Child nodes in creation order.
    """

    name: str
    info: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()
    errors: tuple[str, ...] = ()
    children: tuple[ValidationResult, ...] = ()

    def is_valid(self) -> bool:
        """Return ``True`` when neither this node nor any descendant has errors."""
        return not self.errors and all(child.is_valid() for child in self.children)

    def walk(self, depth: int = 0) -> typ.Iterator[tuple[int, ValidationResult]]:
        """Yield ``(depth, node)`` pairs depth first, this node first."""
        yield depth, self
        for child in self.children:
            yield from child.walk(depth + 1)

    def child(self, name: str) -> ValidationResult | None:
        return next((child for child in self.children if child.name == name), None)

    def error_count(self) -> int:
        return sum(len(node.errors) for _, node in self.walk())


class ResultCollector:
    """Mutable builder for a :class:`ValidationResult` tree.

    ``add_*`` methods return the collector so calls can be chained. Child
    creation is guarded so parallel validators may share a parent.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self.info: list[str] = []
        self.warnings: list[str] = []
        self.errors: list[str] = []
        self._children: dict[str, ResultCollector] = {}
        self._lock = threading.Lock()

    def __repr__(self) -> str:
        return f"ResultCollector({self.name!r})"

    def add_info(self, message: str) -> ResultCollector:
        self.info.append(message)
        return self

    def add_warning(self, message: str) -> ResultCollector:
        self.warnings.append(message)
        return self

    def add_error(self, message: str) -> ResultCollector:
        self.errors.append(message)
        return self

    def child(self, name: str) -> ResultCollector:
        """Return the child called ``name``, creating it on first use."""
        with self._lock:
            existing = self._children.get(name)
            if existing is None:
                existing = self._children[name] = ResultCollector(name)
            return existing

    @property
    def children(self) -> list[ResultCollector]:
        with self._lock:
            return list(self._children.values())

    def is_empty(self) -> bool:
        """``True`` when no message was recorded here or in any descendant."""
        if self.info or self.warnings or self.errors:
            return False
        return all(child.is_empty() for child in self.children)

    def drop_if_empty(self, child: ResultCollector) -> bool:
        """Remove ``child`` when it recorded nothing; return whether it was removed."""
        if not child.is_empty():
            return False
        with self._lock:
            if self._children.get(child.name) is child:
                del self._children[child.name]
                return True
        return False

    def result(self) -> ValidationResult:
        """Freeze the collected messages into a :class:`ValidationResult`."""
        return ValidationResult(
            name=self.name,
            info=tuple(self.info),
            warnings=tuple(self.warnings),
            errors=tuple(self.errors),
            children=tuple(child.result() for child in self.children),
        )


def render_result(result: ValidationResult, indent: str = "  ") -> str:
    """Render ``result`` as an indented text report.

    Examples
    --------
    >>> print(render_result(ValidationResult("demo", errors=("MISSING sha1",))))
    demo
      ERROR: MISSING sha1
    """
    lines: list[str] = []
    for depth, node in result.walk():
        lines.append(f"{indent * depth}{node.name}")
        pad = indent * (depth + 1)
        lines.extend(f"{pad}ERROR: {message}" for message in node.errors)
        lines.extend(f"{pad}WARNING: {message}" for message in node.warnings)
        lines.extend(f"{pad}INFO: {message}" for message in node.info)
    return "\n".join(lines)
