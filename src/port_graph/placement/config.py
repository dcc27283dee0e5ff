"""Tunable constants for port placement."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..types import Size
from ..validation import ValidationError


@dataclass(frozen=True)
class PortPositionConfig:
    """
    Port placement parameters.

    Attributes:
        visual_size: Diameter of a port's visual element in pixels
        inset_offset: Distance inset ports sit inside the boundary; visual_size when None
        min_bound: Lowest fraction a port in a multi-port segment may take
        max_bound: Highest fraction a port in a multi-port segment may take
        max_gap: Upper limit of the minimum separation between neighbouring ports
        default_node_size: Size assumed when neither the node nor its type has one
    """

    visual_size: float = 12.0
    inset_offset: Optional[float] = None
    min_bound: float = 0.05
    max_bound: float = 0.95
    max_gap: float = 0.14
    default_node_size: Size = Size(150.0, 50.0)

    def __post_init__(self) -> None:
        if not 0.0 <= self.min_bound <= self.max_bound <= 1.0:
            raise ValidationError(
                f"bounds must satisfy 0 <= min_bound <= max_bound <= 1, "
                f"got ({self.min_bound}, {self.max_bound})"
            )
        if self.max_gap < 0:
            raise ValidationError(f"max_gap must be >= 0, got {self.max_gap}")

    @property
    def effective_inset(self) -> float:
        return self.visual_size if self.inset_offset is None else self.inset_offset


DEFAULT_PORT_POSITION_CONFIG = PortPositionConfig()
