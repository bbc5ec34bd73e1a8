"""Compare an estimated pose trajectory with ground truth.

The evaluation aligns both trajectories in time and space and, for several
starting points, records position, orientation and gravity-direction errors
together with the estimator's reported covariances. The result can be
written as a MATLAB script.
"""

from __future__ import annotations

import argparse
import csv
import logging
import math
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence, TextIO

import numpy as np

from fusioneval.geometry import Transformation

logger = logging.getLogger(__name__)

GT_TIME_SHIFT = 0.0039
"""Seconds added to every ground-truth time stamp."""
TIME_SYNC_THRESHOLD = 0.005
"""Largest time gap between paired samples that still yields a row."""
START_OFFSET_STEP = 10.0
"""Seconds between the starting points of consecutive runs."""
TRAJECTORY_TIME_STEP = 0.049
"""Smallest time between two rows of one run."""
START_TIME_OFFSET = 10.0
"""Seconds into the data at which the first run starts."""

DEFAULT_CALIBRATION = np.array(
    [
        [0.999706627053000, -0.022330158354000, 0.005123243528000, -0.060614697387000],
        [0.022650462142000, 0.997389634278000, -0.068267398302000, 0.035557942651000],
        [-0.003589706237000, 0.068397960288000, 0.997617159323000, -0.042589657349000],
        [0.0, 0.0, 0.0, 1.000000000000000],
    ]
)
"""Transformation from the estimator's body frame to the ground-truth body frame."""

_ZERO_COVARIANCE = (0.0,) * 36


class EvaluationError(Exception):
    """The data cannot be evaluated."""


@dataclass(frozen=True)
class PoseSample:
    """An estimated pose; ``orientation`` is a Hamilton ``(x, y, z, w)``."""

    stamp: float
    position: tuple[float, float, float]
    orientation: tuple[float, float, float, float]
    covariance: tuple[float, ...] = _ZERO_COVARIANCE

    def __post_init__(self) -> None:
        if len(self.position) != 3:
            raise ValueError("position needs 3 values")
        if len(self.orientation) != 4:
            raise ValueError("orientation needs 4 values (x, y, z, w)")
        if len(self.covariance) != 36:
            raise ValueError("covariance needs 36 values")

    def transformation(self) -> Transformation:
        return _to_transformation(self.orientation, self.position)


@dataclass(frozen=True)
class GroundTruthSample:
    """A ground-truth pose; ``rotation`` is a Hamilton ``(x, y, z, w)``."""

    stamp: float
    translation: tuple[float, float, float]
    rotation: tuple[float, float, float, float]

    def __post_init__(self) -> None:
        if len(self.translation) != 3:
            raise ValueError("translation needs 3 values")
        if len(self.rotation) != 4:
            raise ValueError("rotation needs 4 values (x, y, z, w)")

    def transformation(self) -> Transformation:
        return _to_transformation(self.rotation, self.translation)


@dataclass(frozen=True)
class EvaluationRow:
    """One compared pair of samples."""

    time: float
    distance: float
    position_error: float
    orientation_error: float
    gravity_error: float
    covariance_diagonal: tuple[float, float, float, float, float, float]

    def values(self) -> tuple[float, ...]:
        return (
            self.time,
            self.distance,
            self.position_error,
            self.orientation_error,
            self.gravity_error,
            *self.covariance_diagonal,
        )


@dataclass
class EvaluationResult:
    """Rows of all runs, the first run's positions and per-run pair counts."""

    rows: list[EvaluationRow] = field(default_factory=list)
    poses: list[tuple[float, float, float]] = field(default_factory=list)
    poses_gt: list[tuple[float, float, float]] = field(default_factory=list)
    comparisons: list[int] = field(default_factory=list)


def _to_transformation(orientation, position) -> Transformation:
    x, y, z, w = (float(v) for v in orientation)
    # A Hamilton quaternion is the conjugate of the JPL one.
    return Transformation((-x, -y, -z, w), position)


def _calibration(calibration) -> Transformation:
    if calibration is None:
        return Transformation.from_matrix(DEFAULT_CALIBRATION)
    if isinstance(calibration, Transformation):
        return calibration
    return Transformation.from_matrix(calibration)


def _synchronise(
    eval_samples: Sequence[PoseSample], gt_samples: Sequence[GroundTruthSample]
) -> tuple[int, float]:
    """Return the first ground-truth index later than the first estimate."""
    time_ekf = eval_samples[0].stamp
    for index, truth in enumerate(gt_samples):
        time_gt = truth.stamp + GT_TIME_SHIFT
        if time_ekf < time_gt:
            logger.info("Time synced! GT start: %s EVAL start: %s", time_gt, time_ekf)
            return index, time_gt
    raise EvaluationError("Time synchronization failed")


def _run(
    eval_samples: Sequence[PoseSample],
    gt_samples: Sequence[GroundTruthSample],
    calibration: Transformation,
    start_offset: float,
    result: EvaluationResult,
    record_poses: bool,
) -> int:
    gt_index, start = _synchronise(eval_samples, gt_samples)
    eval_index = 0
    count = 0
    distance = 0.0
    last_time = 0.0
    world_alignment = Transformation()
    last_truth = Transformation()
    calibration_inverse = calibration.inverse()
    e_z = np.array([0.0, 0.0, 1.0])

    logger.info(
        "Processing measurements... Current start point: %ss into the data.",
        start_offset,
    )

    for truth in gt_samples[gt_index:]:
        time_gt = truth.stamp + GT_TIME_SHIFT
        pose = eval_samples[eval_index]
        while time_gt > pose.stamp:
            eval_index += 1
            if eval_index == len(eval_samples):
                logger.info("done. All EKF meas processed!")
                return count
            pose = eval_samples[eval_index]
        time_ekf = pose.stamp

        if time_gt - start < start_offset:
            continue

        t_wa_ba = pose.transformation()
        t_wg_bg = truth.transformation()
        if count == 0:
            world_alignment = t_wa_ba * calibration * t_wg_bg.inverse()
            last_truth = t_wg_bg

        t_wa_ba_gt = (world_alignment * t_wg_bg * calibration_inverse).normalized()
        delta = (t_wa_ba * t_wa_ba_gt.inverse()).normalized()

        distance += float(np.linalg.norm(t_wg_bg.t - last_truth.t))
        last_truth = t_wg_bg

        e_z_wa = delta.rotation_matrix() @ e_z
        gravity_error = math.acos(min(1.0, float(e_z @ e_z_wa)))

        if (
            abs(time_gt - time_ekf) < TIME_SYNC_THRESHOLD
            and time_ekf - last_time > TRAJECTORY_TIME_STEP
        ):
            if record_poses:
                result.poses.append(tuple(float(v) for v in t_wa_ba.t))
                result.poses_gt.append(tuple(float(v) for v in t_wg_bg.t))
            cov = np.array(pose.covariance, dtype=float).reshape(6, 6)
            result.rows.append(
                EvaluationRow(
                    time=time_gt - start,
                    distance=distance,
                    position_error=float(np.linalg.norm(t_wa_ba.t - t_wa_ba_gt.t)),
                    orientation_error=2.0
                    * math.acos(min(1.0, abs(float(delta.q[3])))),
                    gravity_error=gravity_error,
                    covariance_diagonal=tuple(float(v) for v in np.diag(cov)),
                )
            )
            last_time = time_ekf
        count += 1
    return count


def evaluate(
    eval_samples: Sequence[PoseSample],
    gt_samples: Sequence[GroundTruthSample],
    calibration=None,
    single_run: bool = False,
) -> EvaluationResult:
    """Compare estimated poses with ground truth from several starting points.

    Runs start 10 s, 20 s, ... after the synchronised start and continue
    until a run adds no comparison, or after one run if ``single_run``.
    ``calibration`` maps the estimator's body frame to the ground-truth body
    frame; it defaults to :data:`DEFAULT_CALIBRATION`.
    """
    eval_samples = list(eval_samples)
    gt_samples = list(gt_samples)
    if not eval_samples:
        raise EvaluationError("no estimated poses to evaluate")
    if not gt_samples:
        raise EvaluationError("no ground-truth poses to evaluate against")
    t_ba_bg = _calibration(calibration)

    result = EvaluationResult()
    start_offset = START_TIME_OFFSET
    first = True
    while True:
        count = _run(eval_samples, gt_samples, t_ba_bg, start_offset, result, first)
        logger.info("Added %d measurement edges.", count)
        result.comparisons.append(count)
        start_offset += START_OFFSET_STEP
        first = False
        if count == 0 or single_run:
            return result


def _fmt(value: float) -> str:
    return f"{value:g}"


def write_matlab(result: EvaluationResult, stream: TextIO) -> None:
    """Write ``result`` as a MATLAB script defining data, poses and poses_GT."""
    stream.write("data=[\n")
    for row in result.rows:
        stream.write(" ".join(_fmt(v) for v in row.values()) + ";\n")
    stream.write("];")
    poses = "".join(" ".join(_fmt(v) for v in p) + ";\n" for p in result.poses)
    poses_gt = "".join(" ".join(_fmt(v) for v in p) + ";\n" for p in result.poses_gt)
    stream.write(f"poses = [{poses}];\n")
    stream.write(f"poses_GT = [{poses_gt}];\n")


def _read_rows(path) -> list[tuple[int, list[float]]]:
    rows = []
    with open(path, newline="") as handle:
        for line_number, fields in enumerate(csv.reader(handle), start=1):
            if not fields or not "".join(fields).strip():
                continue
            if fields[0].lstrip().startswith("#"):
                continue
            try:
                rows.append((line_number, [float(v) for v in fields]))
            except ValueError as exc:
                raise EvaluationError(f"{path}:{line_number}: {exc}") from exc
    return rows


def read_pose_csv(path) -> list[PoseSample]:
    """Read estimated poses: stamp, 3 position, 4 orientation, optionally 36 covariance."""
    samples = []
    for line_number, values in _read_rows(path):
        if len(values) == 8:
            covariance = _ZERO_COVARIANCE
        elif len(values) == 44:
            covariance = tuple(values[8:])
        else:
            raise EvaluationError(
                f"{path}:{line_number}: expected 8 or 44 values, got {len(values)}"
            )
        samples.append(
            PoseSample(values[0], tuple(values[1:4]), tuple(values[4:8]), covariance)
        )
    return samples


def read_ground_truth_csv(path) -> list[GroundTruthSample]:
    """Read ground-truth poses: stamp, 3 translation, 4 rotation."""
    samples = []
    for line_number, values in _read_rows(path):
        if len(values) != 8:
            raise EvaluationError(
                f"{path}:{line_number}: expected 8 values, got {len(values)}"
            )
        samples.append(
            GroundTruthSample(values[0], tuple(values[1:4]), tuple(values[4:8]))
        )
    return samples


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Evaluate two CSV trajectories and write a MATLAB data file."""
    parser = argparse.ArgumentParser(
        description="Compare an estimated pose trajectory with ground truth."
    )
    parser.add_argument("eval_file", help="CSV file of estimated poses")
    parser.add_argument("gt_file", help="CSV file of ground-truth poses")
    parser.add_argument(
        "single_run", nargs="?", type=int, default=0,
        help="non-zero to evaluate from the first starting point only",
    )
    parser.add_argument("-o", "--output", help="MATLAB file to write")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(message)s")
    single_run = bool(args.single_run)
    if single_run:
        logger.warning("Doing only a single run.")
    else:
        logger.warning("Will process the dataset from different starting points.")

    try:
        eval_samples = read_pose_csv(args.eval_file)
        gt_samples = read_ground_truth_csv(args.gt_file)
    except (OSError, EvaluationError) as exc:
        logger.error("%s", exc)
        return 1
    if not eval_samples:
        logger.error("%s contains no estimated poses", args.eval_file)
        return 1
    if not gt_samples:
        logger.error("%s contains no ground-truth poses", args.gt_file)
        return 1

    logger.info("Estimated poses: %d, ground-truth poses: %d",
                len(eval_samples), len(gt_samples))
    logger.info("First GT data at %s", gt_samples[0].stamp)
    logger.info("First EVAL data at %s", eval_samples[0].stamp)

    try:
        result = evaluate(eval_samples, gt_samples, single_run=single_run)
    except EvaluationError as exc:
        logger.error("%s", exc)
        return 1

    output = Path(args.output or f"matlab_data{int(time.time())}.m")
    with output.open("w") as stream:
        write_matlab(result, stream)
    logger.info("Wrote %s", output)
    return 0


if __name__ == "__main__":
    sys.exit(main())