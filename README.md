# bikepath

Tools for a bicycle path-following task: a cubic Bezier path built from
anchor points and control handles, residual terms that score how well a
rider tracks it, and metrics collected over a run.

The package has no dependencies beyond the Python standard library
(Python 3.10 or later).

## Installation

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Paths (`bikepath.path`)

A `Path` is a chain of cubic Bezier segments. Each anchor is given as nine
numbers: its position `x, y, z`, its left control handle and its right
control handle. When an anchor is added after the first one, the new segment
is sampled into `n_segments + 1` points (50 by default) and appended to the
curve.

```python
from bikepath.path import Path

path = Path(50)
path.add_point([0, 0, 0,  -1, 0, 0,  1, 0, 0])
path.add_point([4, 0, 0,   3, 0, 0,  5, 0, 0])

path.num_anchors()       # 2
path.point_at(0.5)       # position halfway along the first segment
path.curve_points()      # sampled points along the whole path, as (x, y, z) tuples
path.anchor(1)           # (4.0, 0.0, 0.0)
path.left_control(1)     # (3.0, 0.0, 0.0)
path.right_control(0)    # (1.0, 0.0, 0.0)
```

`point_at(t)` evaluates segment `i` for `t` in `[i, i + 1]`; values past the
last segment give the last anchor. It raises `ValueError` when the path has
fewer than two anchors or when `t` is negative. `add_point` raises
`ValueError` unless exactly nine values are given. `lerp(p0, p1, t)`
interpolates between two 3D points.

A path can also be read from a CSV file with nine comma-separated values per
line. `load_from_file` returns the number of anchors afterwards, raises
`OSError` if the file cannot be opened and `ValueError` for a malformed line,
and logs the number of points loaded:

```python
path = Path(50)
path.load_from_file("path.csv")
```

## Metrics (`bikepath.metrics`)

`Metrics` keeps the best distance to each sampled point of the path, the run
time, how far along the path the rider got, and a time series of sensor
readings. Times are seconds as floats.

```python
from bikepath.metrics import Metrics, Point

metrics = Metrics(len(path.curve_points()))
metrics.update_trajectory_error(path.curve_points(), 0, 0.25)   # True: new best
metrics.trajectory_error()   # 0.25
metrics.update_trajectory_time(10.0, 12.5)
metrics.trajectory_time()    # 2.5
metrics.update_success_rate(40, 100)
metrics.success_rate()       # 0.4
print(metrics.report())
```

`report()` returns a two-line summary: a `metrics:` header line naming
TrajectoryError, TrajectoryTime, FinalPoint and TotalPoints, and a `data:`
line with their values. `reset()` clears the distances and times.
`format_points(points)` renders points as a quoted list of `(x,y,z)` tuples.

`update_time_series(site, com, euler, linear, angular, target,
control_effort, time)` appends one sample; points may be `Point` objects or
three-number sequences. `write_sensor_data(stream)` writes the recorded
series to a binary stream: the number of samples and the size of one point
(24) as unsigned 64-bit integers, followed by the site, centre-of-mass,
orientation, linear velocity, angular velocity and target point series
(three doubles per point), then the control effort and time series. All
values are little-endian.

## The task (`bikepath.task`)

`BicycleTask(path, parameters, output=None, clock=time.monotonic)` ties a
path to simulation readings. The readings are passed in as a `State`: joint
positions (`qpos`), controls (`ctrl`) and a mapping of named sensors
(`track_pos`, `bicycle_pos`, `frame_subtreelinvel`, and so on). A missing
sensor raises `KeyError`. `parameters[0]` is the target speed.

- `residual(state)` returns the residual vector: the last 21 controls
  (the humanoid's), the distance to the closest curve point and the velocity
  error against the path's tangent direction.
- `transition(state, mocap_pos)` advances along the path, records the best
  distance for the current point (and a sensor sample whenever it improves),
  and returns the goal position, moved 3 units along x once the bicycle is
  within 0.5 of it.
- `reset()` starts the run over from the first curve point.
- `finish()` stores the run time and progress, writes the sensor data to
  `output` if one was given, and returns the metrics report.
- `info(weights)` lists the parameters and the non-zero weights.

The individual residual terms are available as functions in the same
module: `action_residual`, `pose_residual`, `velocity_residual`,
`balance_residual`, `position_residual`, `goal_residual` and
`path_residual`, together with `closest_point`, `path_velocity_target` and
`velocity_goal` (which turns joystick axis values into a velocity and
heading).

## What this package does not do

It does not run a physics simulation, load a model, read a joystick or draw
anything: the caller supplies the `State` readings and any axis values.
`BicycleTask` never ends a run by itself; call `finish()` when the run is
over. There is no command-line program.