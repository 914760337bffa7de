"""Experiment metrics: trajectory error, timing, success rate and sensor series."""

from __future__ import annotations

import math
import struct
from dataclasses import dataclass, field
from typing import BinaryIO, Iterator, Sequence

_POINT_FORMAT = "<3d"
_POINT_SIZE = struct.calcsize(_POINT_FORMAT)


@dataclass(frozen=True)
class Point:
    """A 3D point or vector."""

    x: float
    y: float
    z: float

    def __iter__(self) -> Iterator[float]:
        yield self.x
        yield self.y
        yield self.z


def _as_point(value: Point | Sequence[float]) -> Point:
    if isinstance(value, Point):
        return value
    x, y, z = value
    return Point(float(x), float(y), float(z))


def format_points(points: Sequence[Point]) -> str:
    """Format points as a quoted, comma separated list of ``(x,y,z)`` tuples."""
    body = ",".join("(%e,%e,%e)" % (p.x, p.y, p.z) for p in points)
    return f'"{body}"'


@dataclass
class _Series:
    site: list[Point] = field(default_factory=list)
    centre_of_mass: list[Point] = field(default_factory=list)
    euler: list[Point] = field(default_factory=list)
    linear_velocity: list[Point] = field(default_factory=list)
    angular_velocity: list[Point] = field(default_factory=list)
    target: list[Point] = field(default_factory=list)
    control_effort: list[float] = field(default_factory=list)
    time: list[float] = field(default_factory=list)


class Metrics:
    """Collects the metrics of a single path-following run.

    Times are given in seconds as floats; ``None`` means not yet set.
    """

    def __init__(self, n_points: int) -> None:
        self.closest_distance: list[float] = [0.0] * n_points
        self.start_time: float | None = None
        self.end_time: float | None = None
        self.final_point = -1
        self.max_index = -1
        self.series = _Series()

    def update_trajectory_error(
        self, path: Sequence[float], current_point: int, current_distance: float
    ) -> bool:
        """Record a distance to a curve point if it beats the best so far."""
        best = self.closest_distance[current_point]
        if current_distance < best or best == 0:
            self.closest_distance[current_point] = current_distance
            return True
        return False

    def update_trajectory_time(self, start_time: float, end_time: float) -> None:
        self.start_time = start_time
        self.end_time = end_time

    def update_success_rate(self, current_point: int, max_index: int) -> None:
        self.final_point = current_point
        self.max_index = max_index

    def reset(self) -> None:
        """Clear distances and times; the success rate and series are kept."""
        self.closest_distance = [0.0] * len(self.closest_distance)
        self.start_time = None
        self.end_time = None

    def report(self) -> str:
        """The summary block printed at the end of a run."""
        return (
            "metrics: TrajectoryError, TrajectoryTime, FinalPoint, TotalPoints\n"
            "data: %e,%e,%d,%d\n"
            % (
                self.trajectory_error(),
                self.trajectory_time(),
                self.final_point,
                self.max_index,
            )
        )

    def trajectory_error(self) -> float:
        """Sum of the best distances to every curve point."""
        return sum(self.closest_distance)

    def trajectory_time(self) -> float:
        """Elapsed time in seconds, truncated to whole microseconds."""
        if self.start_time is None or self.end_time is None:
            return 0.0
        elapsed = self.end_time - self.start_time
        return math.trunc(round(elapsed * 1e6, 3)) / 1e6

    def success_rate(self) -> float:
        """Fraction of the path reached."""
        return self.final_point / self.max_index

    def update_time_series(
        self,
        site: Point | Sequence[float],
        com: Point | Sequence[float],
        euler: Point | Sequence[float],
        linear: Point | Sequence[float],
        angular: Point | Sequence[float],
        target: Point | Sequence[float],
        control_effort: float,
        time: float,
    ) -> None:
        """Append one sample of sensor data."""
        s = self.series
        s.site.append(_as_point(site))
        s.centre_of_mass.append(_as_point(com))
        s.euler.append(_as_point(euler))
        s.linear_velocity.append(_as_point(linear))
        s.angular_velocity.append(_as_point(angular))
        s.target.append(_as_point(target))
        s.control_effort.append(float(control_effort))
        s.time.append(float(time))

    def write_sensor_data(self, stream: BinaryIO) -> None:
        """Write all sensor series to a binary stream.

        Layout: sample count and point size as little-endian unsigned 64-bit
        integers, then six arrays of points (three doubles each) and two arrays
        of doubles, all little-endian.
        """
        s = self.series
        count = len(s.site)
        stream.write(struct.pack("<QQ", count, _POINT_SIZE))
        for points in (
            s.site,
            s.centre_of_mass,
            s.euler,
            s.linear_velocity,
            s.angular_velocity,
            s.target,
        ):
            stream.write(
                b"".join(struct.pack(_POINT_FORMAT, p.x, p.y, p.z) for p in points)
            )
        stream.write(struct.pack(f"<{count}d", *s.control_effort))
        stream.write(struct.pack(f"<{count}d", *s.time))