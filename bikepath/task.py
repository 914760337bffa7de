"""Path-following task for a humanoid riding a bicycle: residuals, progress and metrics."""

from __future__ import annotations

import math
import time as _time
from dataclasses import dataclass, field
from typing import BinaryIO, Callable, Mapping, Sequence

from bikepath.metrics import Metrics, Point
from bikepath.path import Path, Vec3

HUMANOID_CONTROLS = 21
MAX_SPEED = 5.0
GOAL_TOLERANCE = 0.5
GOAL_STEP = 3.0
TANGENT_STEP = 0.01
ADVANCE_TIMEOUT = 2.0
_MIN_NORM = 1e-15

ARMS_POSE = (0.477525, -0.31974, -0.750274, 0.477525, -0.31974, -0.750274)
ABDOMEN_POSE = (0.0, -0.26, 0.0)


def _sub(a: Sequence[float], b: Sequence[float]) -> Vec3:
    return (a[0] - b[0], a[1] - b[1], a[2] - b[2])


def _norm(v: Sequence[float]) -> float:
    return math.sqrt(v[0] * v[0] + v[1] * v[1] + v[2] * v[2])


def _scale(v: Sequence[float], s: float) -> Vec3:
    return (v[0] * s, v[1] * s, v[2] * s)


def _normalize(v: Sequence[float]) -> Vec3:
    n = _norm(v)
    if n < _MIN_NORM:
        return (1.0, 0.0, 0.0)
    return (v[0] / n, v[1] / n, v[2] / n)


def _vec3(values: Sequence[float]) -> Vec3:
    return (float(values[0]), float(values[1]), float(values[2]))


@dataclass
class State:
    """A snapshot of the simulation: joint positions, controls and named sensors."""

    qpos: Sequence[float] = field(default_factory=list)
    ctrl: Sequence[float] = field(default_factory=list)
    sensors: Mapping[str, Sequence[float]] = field(default_factory=dict)

    def sensor(self, name: str) -> Sequence[float]:
        """Values of the sensor called ``name``."""
        try:
            return self.sensors[name]
        except KeyError:
            raise KeyError(f"{name}: sensor not found") from None


def velocity_goal(axes: Sequence[float] | None) -> tuple[Vec3, float] | None:
    """Target velocity and heading from joystick axes, or ``None`` without a joystick."""
    if axes is None or len(axes) < 5:
        return None
    heading = -axes[0] * math.pi
    speed = (axes[4] + 1) / 2 * MAX_SPEED
    return (speed * math.cos(heading), speed * math.sin(heading), 0.0), heading


def action_residual(state: State) -> list[float]:
    """The humanoid's controls, which are the last ones of the control vector."""
    ctrl = list(state.ctrl)
    if len(ctrl) < HUMANOID_CONTROLS:
        raise ValueError(
            f"expected at least {HUMANOID_CONTROLS} controls, got {len(ctrl)}"
        )
    return [float(c) for c in ctrl[len(ctrl) - HUMANOID_CONTROLS:]]


def pose_residual(state: State) -> list[float]:
    """Deviation of arms and abdomen from a riding pose."""
    qpos = list(state.qpos)
    nq = len(qpos)
    if nq < 21:
        raise ValueError(f"expected at least 21 joint positions, got {nq}")
    arms = [q - target for q, target in zip(qpos[nq - 6:], ARMS_POSE)]
    abdomen = [q - target for q, target in zip(qpos[nq - 21:nq - 18], ABDOMEN_POSE)]
    return arms + abdomen


def velocity_residual(
    state: State, parameters: Sequence[float], axes: Sequence[float] | None = None
) -> list[float]:
    """Distance between the frame velocity and the commanded velocity.

    The command comes from ``parameters`` (speed, heading) unless joystick
    ``axes`` are given, which then take precedence.
    """
    speed = parameters[0]
    heading = -parameters[1]
    target: Vec3 = (speed * math.cos(heading), speed * math.sin(heading), 0.0)
    goal = velocity_goal(axes)
    if goal is not None:
        target = goal[0]
    current = state.sensor("frame_subtreelinvel")
    return [_norm(_sub(target, current))]


def balance_residual(state: State) -> list[float]:
    """How far the bicycle's up axis leans away from vertical."""
    return [state.sensor("bicycle_yaxis")[2] - 1.0]


def position_residual(state: State) -> list[float]:
    """Distance between the goal and the bicycle."""
    return [_norm(_sub(state.sensor("goal_pos"), state.sensor("bicycle_pos")))]


def goal_residual(state: State, parameters: Sequence[float]) -> list[float]:
    """Horizontal distance to the goal and velocity error against the goal's direction."""
    displacement = _sub(state.sensor("goal_pos"), state.sensor("bicycle_pos"))
    distance = _norm((displacement[0], displacement[1], 0.0))
    goal_velocity = _scale(state.sensor("goal_zaxis"), parameters[0])
    velocity_error = _sub(goal_velocity, state.sensor("frame_subtreelinvel"))
    return [distance, _norm(velocity_error)]


def closest_point(path: Path, position: Sequence[float], start: int) -> int:
    """Index of the closest curve point, searching forward from ``start``.

    The search stops at the first point that is further away than the best one.
    """
    curve = path.curve_points()
    best = start
    best_point = curve[start]
    for i, candidate in enumerate(curve[start + 1:], start=start + 1):
        if math.dist(position, best_point) >= math.dist(position, candidate):
            best, best_point = i, candidate
        else:
            break
    return best


def path_velocity_target(path: Path, index: int, speed: float) -> Vec3:
    """Velocity of magnitude ``speed`` along the path's tangent at curve point ``index``."""
    curve = path.curve_points()
    n_points = len(curve)
    here = curve[index]
    t = index / n_points * (path.num_anchors() - 1)
    before = here if index == 0 else path.point_at(t - TANGENT_STEP)
    after = here if index == n_points - 1 else path.point_at(t + TANGENT_STEP)
    return _scale(_normalize(_sub(after, before)), speed)


def path_residual(
    state: State, parameters: Sequence[float], path: Path, current_point: int
) -> list[float]:
    """Distance to the closest curve point and velocity error along the path."""
    position = state.sensor("track_pos")
    index = closest_point(path, position, current_point)
    distance = math.dist(position, path.curve_points()[index])
    target = path_velocity_target(path, index, parameters[0])
    current = state.sensor("frame_subtreelinvel")
    return [distance, _norm(_sub(current, target))]


def _format_number(value: float) -> str:
    text = repr(float(value))
    return text[:-2] if text.endswith(".0") else text


class BicycleTask:
    """Follow a path on a bicycle while tracking progress and run metrics.

    ``clock`` returns the current time in seconds; ``output`` receives the
    binary sensor data when the run is finished.
    """

    name = "Bicycle"

    def __init__(
        self,
        path: Path,
        parameters: Sequence[float],
        output: BinaryIO | None = None,
        clock: Callable[[], float] = _time.monotonic,
    ) -> None:
        self.path = path
        self.parameters = [float(p) for p in parameters]
        self.output = output
        self.clock = clock
        self.metrics = Metrics(len(path.curve_points()))
        self.current_point = 0
        self.start_time: float | None = None
        self.last_advance: float | None = None
        self.advance_timeout = ADVANCE_TIMEOUT

    def residual(self, state: State) -> list[float]:
        """The cost terms: humanoid controls, then path distance and velocity error."""
        return action_residual(state) + path_residual(
            state, self.parameters, self.path, self.current_point
        )

    def transition(self, state: State, mocap_pos: Sequence[float]) -> Vec3:
        """Advance along the path, record metrics, and return the new goal position."""
        goal = _vec3(mocap_pos)
        if _norm(_sub(goal, state.sensor("bicycle_pos"))) < GOAL_TOLERANCE:
            goal = (goal[0] + GOAL_STEP, goal[1], goal[2])

        now = self.clock()
        curve = self.path.curve_points()
        position = state.sensor("track_pos")
        index = closest_point(self.path, position, self.current_point)
        if index != self.current_point:
            self.last_advance = now
            if self.start_time is None:
                self.start_time = now
        self.current_point = index

        target = curve[index]
        distance = math.hypot(target[0] - position[0], target[1] - position[1])
        if self.metrics.update_trajectory_error(curve, index, distance):
            self._record_sample(state, target, now)
        return goal

    def _record_sample(self, state: State, target: Vec3, now: float) -> None:
        site = Point(*_vec3(state.sensor("track_pos")))
        com = Point(*_vec3(state.sensor("frame_subtreecom")))
        euler = Point(
            float(state.sensor("bicycle_xaxis")[0]),
            float(state.sensor("bicycle_yaxis")[0]),
            float(state.sensor("bicycle_zaxis")[0]),
        )
        linear = Point(*_vec3(state.sensor("frame_subtreelinvel")))
        angular = Point(*_vec3(state.sensor("frame_frameangvel")))
        ctrl = list(state.ctrl)
        effort = math.fsum(abs(c) for c in ctrl) / len(ctrl) if ctrl else 0.0
        elapsed = 0.0 if self.start_time is None else now - self.start_time
        self.metrics.update_time_series(
            site, com, euler, linear, angular, Point(*target), effort, elapsed
        )

    def reset(self) -> None:
        """Start the run over from the first curve point."""
        self.current_point = 0
        self.metrics.reset()
        self.start_time = None
        self.last_advance = None

    def info(self, weights: Sequence[float]) -> str:
        """Listing of the task parameters and the non-zero cost weights."""
        lines = [
            f"Parameter {i}: {_format_number(p)}" for i, p in enumerate(self.parameters)
        ]
        lines += [
            f"Weight: {i}: {_format_number(w)}" for i, w in enumerate(weights) if w != 0
        ]
        return "\n" + "".join(line + "\n" for line in lines) + "\n"

    def finish(self) -> str:
        """Close the run: store time and progress, write sensor data, return the report."""
        now = self.clock()
        self.metrics.update_trajectory_time(self.start_time, now)
        self.metrics.update_success_rate(
            self.current_point, len(self.path.curve_points()) - 1
        )
        if self.output is not None:
            self.metrics.write_sensor_data(self.output)
        return self.metrics.report()