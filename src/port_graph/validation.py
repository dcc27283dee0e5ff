"""
Input validation utilities for the node graph engine.

Provides centralized validation for port placements, port templates, sizes,
sampling parameters and connection references. Setup-time mistakes raise
descriptive exceptions; layout and interaction code uses the non-strict
variants and falls back instead of raising.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Any, Iterable, Optional

from .types import UNLIMITED, AbsolutePlacement, PositionUnit, SidePlacement, Size

if TYPE_CHECKING:
    from .definitions import PortTemplate
    from .graph import GraphSnapshot


class ValidationError(ValueError):
    """Base exception for engine validation errors."""

    pass


class InvalidPlacementError(ValidationError):
    """Raised when a port placement is malformed."""

    pass


class InvalidPortTemplateError(ValidationError):
    """Raised when a port template is malformed."""

    pass


class DuplicateNodeTypeError(ValidationError):
    """Raised when a node type name is registered twice."""

    pass


class UnknownNodeTypeError(ValidationError):
    """Raised when a node type name is not registered."""

    pass


class PortConfigurationWarning(UserWarning):
    """Warning for port declarations that were repaired by a fallback."""

    pass


def validate_size(size: Optional[Size]) -> Optional[Size]:
    """
    Validate a node size.

    Args:
        size: Measured or declared node size

    Returns:
        The size if both dimensions are finite and positive, otherwise None
    """
    if size is None:
        return None
    width, height = size.width, size.height
    if not (_is_finite(width) and _is_finite(height)):
        return None
    if width <= 0 or height <= 0:
        return None
    return size


def validate_placement(placement: Any, strict: bool = True) -> list[str]:
    """
    Validate a port placement descriptor.

    Args:
        placement: SidePlacement or AbsolutePlacement
        strict: If True, raises on invalid. If False, returns list of issues.

    Returns:
        List of issue descriptions

    Raises:
        InvalidPlacementError: If strict=True and issues were found
    """
    issues: list[str] = []

    if isinstance(placement, SidePlacement):
        if placement.align is not None and not _is_finite(placement.align):
            issues.append(f"align must be a finite number, got {placement.align}")
        if placement.segment_span is not None and not _is_finite(placement.segment_span):
            issues.append(f"segment_span must be a finite number, got {placement.segment_span}")
        if placement.segment_order is not None and not _is_finite(placement.segment_order):
            issues.append(f"segment_order must be a finite number, got {placement.segment_order}")
    elif isinstance(placement, AbsolutePlacement):
        if not (_is_finite(placement.x) and _is_finite(placement.y)):
            issues.append(f"absolute coordinates must be finite, got ({placement.x}, {placement.y})")
        if not isinstance(placement.unit, PositionUnit):
            issues.append(f"unknown absolute unit {placement.unit!r}")
    else:
        issues.append(f"unknown placement type {type(placement).__name__}")

    if strict and issues:
        msg = "Invalid port placement:\n" + "\n".join(issues)
        raise InvalidPlacementError(msg)

    return issues


def validate_max_connections(value: Any) -> list[str]:
    """Check a ``max_connections`` value; returns issue descriptions."""
    if value == UNLIMITED:
        return []
    if isinstance(value, bool) or not isinstance(value, int):
        return [f"max_connections must be an int or {UNLIMITED!r}, got {value!r}"]
    if value < 0:
        return [f"max_connections must be >= 0, got {value}"]
    return []


def validate_port_template(template: PortTemplate, strict: bool = True) -> list[str]:
    """
    Validate a port template declaration.

    Args:
        template: Template to check
        strict: If True, raises on invalid. If False, returns list of issues.

    Returns:
        List of issue descriptions

    Raises:
        InvalidPortTemplateError: If strict=True and issues were found
    """
    issues: list[str] = []

    if not template.id:
        issues.append("Port template id must be a non-empty string")
    issues.extend(
        f"Port template {template.id!r}: {issue}"
        for issue in validate_placement(template.placement, strict=False)
    )
    issues.extend(
        f"Port template {template.id!r}: {issue}"
        for issue in validate_max_connections(template.max_connections)
    )
    instances = template.instances
    if instances is not None and not callable(instances):
        if isinstance(instances, bool) or not isinstance(instances, int) or instances < 0:
            issues.append(
                f"Port template {template.id!r}: instances must be a non-negative int "
                f"or a callable, got {instances!r}"
            )

    if strict and issues:
        msg = "Invalid port template:\n" + "\n".join(issues)
        raise InvalidPortTemplateError(msg)

    return issues


def validate_connection_references(snapshot: GraphSnapshot) -> list[tuple[str, str]]:
    """
    Find connections whose endpoints no longer resolve to existing ports.

    Args:
        snapshot: Graph snapshot to inspect

    Returns:
        List of (connection_id, issue_description) tuples
    """
    issues: list[tuple[str, str]] = []

    for connection in snapshot.connections.values():
        for node_id, port_id, end in (
            (connection.from_node_id, connection.from_port_id, "source"),
            (connection.to_node_id, connection.to_port_id, "target"),
        ):
            if snapshot.node(node_id) is None:
                issues.append((connection.id, f"Connection {connection.id}: {end} node {node_id!r} not found"))
            elif snapshot.port(node_id, port_id) is None:
                issues.append(
                    (
                        connection.id,
                        f"Connection {connection.id}: {end} port {node_id}:{port_id} not found",
                    )
                )

    return issues


def validate_segments(segments: int) -> int:
    """
    Validate a curve sampling segment count.

    Args:
        segments: Number of polyline segments

    Returns:
        Validated segment count

    Raises:
        ValidationError: If segments < 1
    """
    if isinstance(segments, bool) or not isinstance(segments, int):
        raise ValidationError(f"segments must be an int, got {segments!r}")
    if segments < 1:
        raise ValidationError(f"segments must be >= 1, got {segments}")
    return segments


def validate_unique_ids(ids: Iterable[str], what: str) -> list[str]:
    """Return the ids that appear more than once, in first-repeat order."""
    seen: set[str] = set()
    duplicates: list[str] = []
    for item in ids:
        if item in seen and item not in duplicates:
            duplicates.append(item)
        seen.add(item)
    return [f"duplicate {what} id {item!r}" for item in duplicates]


def _is_finite(value: Any) -> bool:
    try:
        return math.isfinite(value)
    except TypeError:
        return False
