"""Piecewise cubic Bézier path through anchors with left and right control points."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from os import PathLike
from typing import Sequence

logger = logging.getLogger(__name__)

Vec3 = tuple[float, float, float]

DEFAULT_SEGMENTS = 50


def lerp(p0: Sequence[float], p1: Sequence[float], t: float) -> Vec3:
    """Linearly interpolate between two 3D points."""
    return (
        p0[0] + t * (p1[0] - p0[0]),
        p0[1] + t * (p1[1] - p0[1]),
        p0[2] + t * (p1[2] - p0[2]),
    )


@dataclass(frozen=True)
class _Anchor:
    position: Vec3
    left: Vec3
    right: Vec3


class Path:
    """A trajectory defined by anchors joined by cubic Bézier segments.

    Each anchor carries a left and a right control point. The curve is sampled
    with ``n_segments + 1`` points per segment as anchors are added.
    """

    def __init__(self, n_segments: int = DEFAULT_SEGMENTS) -> None:
        if n_segments <= 0:
            raise ValueError("n_segments must be positive")
        self.n_segments = n_segments
        self._anchors: list[_Anchor] = []
        self._curve: list[Vec3] = []

    def add_point(self, values: Sequence[float]) -> None:
        """Add an anchor given as nine numbers: position, left control, right control."""
        if len(values) != 9:
            raise ValueError(f"expected 9 values per point, got {len(values)}")
        v = [float(x) for x in values]
        self._anchors.append(
            _Anchor(
                position=(v[0], v[1], v[2]),
                left=(v[3], v[4], v[5]),
                right=(v[6], v[7], v[8]),
            )
        )
        if len(self._anchors) < 2:
            return
        base = len(self._anchors) - 2
        self._curve.extend(
            self.point_at(i / self.n_segments + base)
            for i in range(self.n_segments + 1)
        )

    def point_at(self, t: float) -> Vec3:
        """Evaluate the path at parameter ``t``; segment ``i`` spans ``[i, i + 1]``."""
        if len(self._anchors) < 2:
            raise ValueError("a path needs at least two anchors to be evaluated")
        frac, whole = math.modf(t)
        i = int(whole)
        if i >= len(self._anchors) - 1:
            i = len(self._anchors) - 2
            frac = 1.0
        if i < 0:
            raise ValueError(f"parameter {t} lies before the start of the path")

        start, end = self._anchors[i], self._anchors[i + 1]
        p0, a0, a1, p1 = start.position, start.right, end.left, end.position

        p0_a0 = lerp(p0, a0, frac)
        a0_a1 = lerp(a0, a1, frac)
        a1_p1 = lerp(a1, p1, frac)
        first = lerp(p0_a0, a0_a1, frac)
        second = lerp(a0_a1, a1_p1, frac)
        return lerp(first, second, frac)

    def anchor(self, i: int) -> Vec3:
        """Position of anchor ``i``."""
        return self._anchors[i].position

    def left_control(self, i: int) -> Vec3:
        """Left control point of anchor ``i``."""
        return self._anchors[i].left

    def right_control(self, i: int) -> Vec3:
        """Right control point of anchor ``i``."""
        return self._anchors[i].right

    def num_anchors(self) -> int:
        """Number of anchors in the path."""
        return len(self._anchors)

    def curve_points(self) -> list[Vec3]:
        """The sampled curve as a list of 3D points."""
        return list(self._curve)

    def load_from_file(self, path: str | PathLike[str]) -> int:
        """Append anchors from a CSV file with nine numbers per line.

        Returns the total number of anchors afterwards. Raises ``OSError`` if the
        file cannot be opened and ``ValueError`` on a malformed line.
        """
        with open(path, encoding="utf-8") as handle:
            for lineno, line in enumerate(handle, start=1):
                fields = line.rstrip("\r\n").split(",")
                if len(fields) < 9:
                    raise ValueError(
                        f"{path}:{lineno}: expected 9 values, got {len(fields)}"
                    )
                try:
                    values = [float(field) for field in fields[:9]]
                except ValueError as exc:
                    raise ValueError(f"{path}:{lineno}: {exc}") from exc
                self.add_point(values)
        logger.info("Loaded %d points from %s", self.num_anchors(), path)
        return self.num_anchors()