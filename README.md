# fusioneval

Tools for describing the state vector of an error-state Kalman filter, and a
command that evaluates an estimated pose trajectory against ground truth.

## Installation

    pip install .

For the tests:

    pip install .[test]
    pytest

## Evaluating a trajectory

The `fusioneval` command reads two CSV files:

    fusioneval estimate.csv ground_truth.csv

- Estimated poses: `stamp, x, y, z, qx, qy, qz, qw`, optionally followed by
  the 36 values of the 6x6 pose covariance (44 values in all). Without them
  the covariance is taken as zero.
- Ground truth: `stamp, x, y, z, qx, qy, qz, qw`.

Quaternions are given as `(x, y, z, w)`. Empty lines and lines starting with
`#` are skipped.

Ground-truth stamps are shifted by 0.0039 s and synchronised with the first
estimate. The two world frames are aligned from the first compared pair,
using a fixed body-frame calibration (`DEFAULT_CALIBRATION`). A pair yields a
row when its stamps differ by less than 0.005 s and at least 0.049 s have
passed since the previous row. Each row holds the elapsed time, the distance
travelled by the ground truth, the position error, the orientation error, the
gravity-direction (tilt) error and the six diagonal entries of the pose
covariance.

The first run starts 10 s after the synchronised start; further runs start
10 s later each, until a run compares nothing. Give a non-zero third argument
to do a single run only:

    fusioneval estimate.csv ground_truth.csv 1

The result is written as a MATLAB script defining `data`, `poses` and
`poses_GT` (the positions come from the first run). By default it goes to
`matlab_data<unix time>.m` in the current directory; choose another file with
`-o`/`--output`:

    fusioneval estimate.csv ground_truth.csv -o result.m

The command exits with status 1 if a file cannot be read, holds no poses, or
the time synchronisation fails.

From Python the same work is done by `fusioneval.evaluation.evaluate`, which
takes sequences of `PoseSample` and `GroundTruthSample`, an optional
calibration (4x4 matrix or `Transformation`) and `single_run`, and returns an
`EvaluationResult` of `EvaluationRow`s. `read_pose_csv`,
`read_ground_truth_csv` and `write_matlab` handle input and output; problems
with the data raise `EvaluationError`.

## Library modules

- `fusioneval.geometry`: `Transformation` (JPL quaternion `(x, y, z, w)` plus
  translation) with `from_matrix`, `matrix`, `rotation_matrix`, `inverse`,
  `normalized` and composition with `*`; `quat_multiply`, `quat_to_rotation`,
  `sincos`, and `cov_block` / `set_cov_block` for 3x3 blocks of a flat
  36-entry pose covariance (`COV_P`, `COV_Q` give the block starts).
- `fusioneval.statevars`: `StateVar` and `StateType` describe one state
  variable, a vector or a quaternion; `correction_length`, `state_length`,
  `core_state_length`, `core_error_state_length`,
  `propagated_core_state_length`, `propagated_core_error_state_length`,
  `describe_type`, `is_quaternion` and `is_non_temporal_drifting` report its
  sizes and kind.
- `fusioneval.statelayout`: `StateLayout` holds an ordered list of state
  variables and computes their start indices in the state and error-state
  vectors, checks that names match positions (`IndexingError`), finds the
  best non-temporal drifting state, resets and copies states, places the
  auxiliary Q blocks into a full Q matrix, and flattens or prints the state.
  `assert_core_ordering` checks that the core states start at 0, 3, 6, 9 and
  12 in the error state.
- `fusioneval.tools`: `get_median`, `is_approx` and the `GRAVITY` constant.

## What it does not do

The command works on CSV files only; it does not read recorded sensor-message
logs, and it runs no filter itself. The state-layout modules describe and
manipulate a filter state but do not implement propagation or updates.