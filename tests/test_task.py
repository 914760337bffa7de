import io
import math
import struct

import pytest

from bikepath.path import Path
from bikepath.task import (
    ABDOMEN_POSE,
    ARMS_POSE,
    BicycleTask,
    State,
    action_residual,
    balance_residual,
    closest_point,
    goal_residual,
    path_residual,
    path_velocity_target,
    pose_residual,
    position_residual,
    velocity_goal,
    velocity_residual,
)


def straight_path(n_segments=3):
    path = Path(n_segments)
    path.add_point([0, 0, 0, -1, 0, 0, 1, 0, 0])
    path.add_point([3, 0, 0, 2, 0, 0, 4, 0, 0])
    return path


def make_state(**overrides):
    sensors = {
        "track_pos": (1.0, 0.2, 0.0),
        "bicycle_pos": (0.0, 0.0, 0.0),
        "frame_subtreecom": (0.5, 0.0, 1.0),
        "bicycle_xaxis": (1.0, 0.0, 0.0),
        "bicycle_yaxis": (0.0, 0.0, 1.0),
        "bicycle_zaxis": (0.0, 1.0, 0.0),
        "frame_subtreelinvel": (2.0, 0.0, 0.0),
        "frame_frameangvel": (0.0, 0.0, 0.0),
    }
    sensors.update(overrides)
    return State(qpos=[0.0] * 30, ctrl=[0.0] * 25, sensors=sensors)


def ticking_clock(start=10.0):
    values = iter(range(1000))
    return lambda: start + next(values)


def test_velocity_goal_without_joystick():
    assert velocity_goal(None) is None
    assert velocity_goal([0.0, 0.0, 0.0, 0.0]) is None


def test_velocity_goal_full_throttle_straight():
    velocity, heading = velocity_goal([0.0, 0.0, 0.0, 0.0, 1.0])
    assert heading == 0.0
    assert velocity == pytest.approx((5.0, 0.0, 0.0))


def test_velocity_goal_zero_throttle():
    velocity, heading = velocity_goal([-0.5, 0.0, 0.0, 0.0, -1.0])
    assert heading == pytest.approx(math.pi / 2)
    assert velocity == pytest.approx((0.0, 0.0, 0.0))


def test_action_residual_takes_last_controls():
    state = State(ctrl=list(range(25)))
    assert action_residual(state) == [float(i) for i in range(4, 25)]


def test_action_residual_needs_enough_controls():
    with pytest.raises(ValueError):
        action_residual(State(ctrl=[0.0] * 5))


def test_pose_residual_zero_at_target_pose():
    qpos = [0.0] * 30
    qpos[-6:] = ARMS_POSE
    qpos[9:12] = ABDOMEN_POSE
    residual = pose_residual(State(qpos=qpos))
    assert len(residual) == 9
    assert residual == pytest.approx([0.0] * 9)


def test_pose_residual_too_few_joints():
    with pytest.raises(ValueError):
        pose_residual(State(qpos=[0.0] * 10))


def test_balance_residual_upright():
    assert balance_residual(make_state()) == [0.0]


def test_position_residual():
    state = make_state(goal_pos=(3.0, 4.0, 0.0))
    assert position_residual(state) == pytest.approx([5.0])


def test_goal_residual_ignores_height_and_matches_velocity():
    state = make_state(goal_pos=(0.0, 0.0, 7.0), goal_zaxis=(1.0, 0.0, 0.0))
    assert goal_residual(state, [2.0]) == pytest.approx([0.0, 0.0])


def test_velocity_residual_from_parameters():
    state = make_state(frame_subtreelinvel=(1.0, 0.0, 0.0))
    assert velocity_residual(state, [1.0, 0.0]) == pytest.approx([0.0])


def test_velocity_residual_joystick_overrides_parameters():
    state = make_state(frame_subtreelinvel=(5.0, 0.0, 0.0))
    axes = [0.0, 0.0, 0.0, 0.0, 1.0]
    assert velocity_residual(state, [1.0, 0.0], axes) == pytest.approx([0.0])


def test_closest_point_searches_forward():
    path = straight_path()
    assert closest_point(path, (1.1, 0.0, 0.0), 0) == 1
    assert closest_point(path, (2.9, 0.0, 0.0), 0) == 3


def test_closest_point_never_goes_back():
    path = straight_path()
    assert closest_point(path, (0.0, 0.0, 0.0), 2) == 2


@pytest.mark.parametrize("index", [0, 1, 3])
def test_path_velocity_target_follows_tangent(index):
    velocity = path_velocity_target(straight_path(), index, 2.0)
    assert velocity == pytest.approx((2.0, 0.0, 0.0))


def test_path_velocity_target_degenerate_path():
    path = Path(2)
    path.add_point([1, 1, 1] * 3)
    path.add_point([1, 1, 1] * 3)
    assert path_velocity_target(path, 1, 3.0) == pytest.approx((3.0, 0.0, 0.0))


def test_path_residual():
    state = make_state(track_pos=(1.0, 0.5, 0.0))
    residual = path_residual(state, [2.0], straight_path(), 0)
    assert residual == pytest.approx([0.5, 0.0])


def test_state_missing_sensor():
    with pytest.raises(KeyError):
        State().sensor("track_pos")


def test_task_residual_layout():
    task = BicycleTask(straight_path(), [2.0], clock=ticking_clock())
    state = make_state(track_pos=(1.0, 0.5, 0.0))
    residual = task.residual(state)
    assert len(residual) == 23
    assert residual[:21] == [0.0] * 21
    assert residual[21:] == pytest.approx([0.5, 0.0])


def test_transition_moves_goal_when_reached():
    task = BicycleTask(straight_path(), [2.0], clock=ticking_clock())
    goal = task.transition(make_state(), (0.3, 0.0, 0.0))
    assert goal == pytest.approx((3.3, 0.0, 0.0))
    far = task.transition(make_state(), (5.0, 0.0, 0.0))
    assert far == (5.0, 0.0, 0.0)


def test_transition_advances_and_records():
    task = BicycleTask(straight_path(), [2.0], clock=ticking_clock(10.0))
    task.transition(make_state(), (9.0, 0.0, 0.0))
    assert task.current_point == 1
    assert task.start_time == 10.0
    assert task.last_advance == 10.0
    assert task.metrics.closest_distance[1] == pytest.approx(0.2)
    assert len(task.metrics.series.site) == 1
    assert task.metrics.series.time == [0.0]

    task.transition(make_state(), (9.0, 0.0, 0.0))
    assert task.start_time == 10.0
    assert len(task.metrics.series.site) == 1


def test_finish_writes_sensor_data_and_reports():
    output = io.BytesIO()
    task = BicycleTask(straight_path(), [2.0], output=output, clock=ticking_clock())
    task.transition(make_state(), (9.0, 0.0, 0.0))
    report = task.finish()
    assert report.startswith(
        "metrics: TrajectoryError, TrajectoryTime, FinalPoint, TotalPoints\n"
    )
    assert report.rstrip().endswith(",1,3")
    data = output.getvalue()
    assert struct.unpack("<QQ", data[:16]) == (1, 24)
    assert len(data) == 16 + 6 * 24 + 2 * 8
    assert task.metrics.success_rate() == pytest.approx(1 / 3)


def test_reset_restarts_run():
    task = BicycleTask(straight_path(), [2.0], clock=ticking_clock())
    task.transition(make_state(), (9.0, 0.0, 0.0))
    task.reset()
    assert task.current_point == 0
    assert task.start_time is None
    assert task.last_advance is None
    assert task.metrics.closest_distance == [0.0] * 4


def test_info_lists_parameters_and_nonzero_weights():
    task = BicycleTask(straight_path(), [1.5, 2.0])
    assert task.info([0.0, 3.0]) == (
        "\nParameter 0: 1.5\nParameter 1: 2\nWeight: 1: 3\n\n"
    )