# quadflight

Building blocks for simulating and estimating the flight of a quadcopter.
Vectors are NumPy arrays of three floats and attitudes are
`scipy.spatial.transform.Rotation` objects that map body-frame vectors into
the world frame.

## What is in the package

| Module | Contents |
| --- | --- |
| `quadflight.simulation_object` | `ManualClock` (simulated time in microseconds), `Timer` (elapsed time on a clock), `SimulationObject` (abstract base with `run()`) |
| `quadflight.estimated_state` | `EstimatedState`: `pos`, `vel`, `att`, `ang_vel`, and `copy()` |
| `quadflight.prediction_pipe` | `PredictionPipe`: messages that become active a fixed delay after `add()`; `active_message(t)` returns the newest active message and how long it stays active, or `None` |
| `quadflight.communications_delay` | `CommunicationsDelay`: a first-in first-out channel; `add()`, `has_message()`, `pop()` |
| `quadflight.uwb_radio` | `UWBRadio` and `RangingMeasurement` |
| `quadflight.uwb_network` | `UWBNetwork`: ranges between radios once per communication period, with optional Gaussian noise and outliers (`set_noise()`) |
| `quadflight.aruco_camera` | `ArucoCamera`: reports its own pose as a measurement every `fake_run_time` seconds |
| `quadflight.motor` | `Motor` and `PropellerHandedness`: first-order speed response, thrust, aerodynamic and reaction torque, angular momentum, power |
| `quadflight.safety_net` | `SafetyNet` and `SafetyState`: flight-box, visibility timeout, upside-down-and-low and user-triggered checks; `status()` gives a text summary |
| `quadflight.single_axis_trajectory` | `SingleAxisTrajectory`: jerk-optimal polynomial in one axis with any combination of fixed end position, velocity and acceleration |
| `quadflight.rapid_trajectory` | `RapidTrajectoryGenerator`, `InputFeasibility`, `StateFeasibility`: three-axis motion primitives with thrust/body-rate, velocity and planar-boundary feasibility tests |
| `quadflight.mocap_estimator` | `MocapStateEstimator`: position and attitude measurements, decoupled two-state filters, measurement rejection and forced reset after 10 consecutive rejections |
| `quadflight.gps_estimator` | `GPSStateEstimator`: position measurements, nine-state Kalman filter, prediction with delayed commands |
| `quadflight.gps_imu_estimator` | `GPSIMUStateEstimator`: accelerometer and rate-gyro prediction (`predict()`) with position updates (`update()`) |

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Example: simulated time

Every component reads a shared `ManualClock`; nothing moves until the clock
is advanced.

```python
from quadflight.simulation_object import ManualClock
from quadflight.communications_delay import CommunicationsDelay

clock = ManualClock()
channel = CommunicationsDelay(clock, 0.03)
channel.add("thrust command")

clock.advance_microseconds(20_000)
assert not channel.has_message()

clock.advance_microseconds(10_000)
assert channel.has_message()
assert channel.pop() == "thrust command"
```

## Example: a trajectory

```python
from quadflight.rapid_trajectory import RapidTrajectoryGenerator

traj = RapidTrajectoryGenerator(
    (0.0, 0.0, 2.0),    # initial position
    (0.0, 0.0, 0.0),    # initial velocity
    (0.0, 0.0, 0.0),    # initial acceleration
    (0.0, 0.0, -9.81),  # gravity
)
traj.set_goal_position((1.0, 0.0, 2.0))
traj.set_goal_velocity((0.0, 0.0, 0.0))
traj.set_goal_acceleration((0.0, 0.0, 0.0))
traj.generate(2.0)

print(traj.position(1.0), traj.thrust(1.0), traj.cost())

inputs = traj.check_input_feasibility(5.0, 30.0, 20.0, 0.02)
print(inputs.label)

floor = traj.check_position_feasibility((0.0, 0.0, 0.0), (0.0, 0.0, 1.0))
print(floor)
```

`check_velocity_feasibility(vmax)` reports an axis whose velocity has no
cubic term as infeasible.

## Example: estimating from motion capture

```python
from scipy.spatial.transform import Rotation
from quadflight.simulation_object import ManualClock
from quadflight.mocap_estimator import MocapStateEstimator

clock = ManualClock()
est = MocapStateEstimator(clock, 1, 0.03)

est.update((0.0, 0.0, 1.0), Rotation.identity())
clock.advance_microseconds(5_000)
est.update((0.01, 0.0, 1.0), Rotation.identity())

state = est.prediction(0.03)
print(state.pos, state.vel)
```

Commands queued with `set_predicted_values(angular_velocity, acceleration)`
are used by the estimators once the communications delay has passed.

## What the package does not do

- There is no complete vehicle model: `Motor` produces forces and torques, but
  nothing here integrates a full quadcopter body or runs onboard flight logic.
- There is no position or attitude controller and no depth-image planner.
- There is no command-line program, no connection to an external simulator or
  renderer, and no logging of flights to files. Components are driven from
  your own Python code by advancing a `ManualClock` and calling `run()`,
  `update()` or `predict()`.