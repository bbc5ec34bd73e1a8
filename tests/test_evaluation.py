import io
import math

import pytest

from fusioneval.evaluation import (
    EvaluationError,
    GroundTruthSample,
    PoseSample,
    evaluate,
    main,
    read_ground_truth_csv,
    read_pose_csv,
    write_matlab,
)
from fusioneval.geometry import Transformation

IDENTITY = [[1, 0, 0, 0], [0, 1, 0, 0], [0, 0, 1, 0], [0, 0, 0, 1]]
STEP = 0.05
COUNT = 500
COV = tuple(float(i % 7 + 1) if i % 7 == 0 else 0.0 for i in range(36))


def _gt(rotating=False):
    samples = []
    for k in range(COUNT):
        t = k * STEP
        angle = 0.1 * t if rotating else 0.0
        samples.append(
            GroundTruthSample(
                t, (t, 0.5 * t, 1.0),
                (0.0, 0.0, math.sin(angle / 2), math.cos(angle / 2)),
            )
        )
    return samples


def _eval_from(gt, calibration=None, bump_after=None, bump=0.0):
    samples = []
    for truth in gt:
        pose = truth
        if calibration is not None:
            jpl = Transformation(
                (-truth.rotation[0], -truth.rotation[1], -truth.rotation[2],
                 truth.rotation[3]),
                truth.translation,
            )
            estimate = jpl * calibration.inverse()
            q = estimate.q
            position = tuple(estimate.t)
            orientation = (-q[0], -q[1], -q[2], q[3])
        else:
            position = tuple(pose.translation)
            orientation = tuple(pose.rotation)
        if bump_after is not None and truth.stamp > bump_after:
            position = (position[0], position[1], position[2] + bump)
        samples.append(PoseSample(truth.stamp + 0.004, position, orientation, COV))
    return samples


def test_identical_trajectories_have_no_error():
    gt = _gt()
    result = evaluate(_eval_from(gt), gt, IDENTITY, single_run=True)
    assert result.rows
    for row in result.rows:
        assert row.position_error == pytest.approx(0.0, abs=1e-6)
        assert row.orientation_error == pytest.approx(0.0, abs=1e-6)
        assert row.gravity_error == pytest.approx(0.0, abs=1e-6)


def test_single_run_starts_after_offset():
    gt = _gt()
    result = evaluate(_eval_from(gt), gt, IDENTITY, single_run=True)
    assert len(result.comparisons) == 1
    assert all(row.time >= 10.0 for row in result.rows)
    assert len(result.poses) == len(result.rows)
    assert len(result.poses_gt) == len(result.rows)


def test_multiple_runs_until_no_comparison():
    gt = _gt()
    samples = _eval_from(gt)
    single = evaluate(samples, gt, IDENTITY, single_run=True)
    multi = evaluate(samples, gt, IDENTITY)
    assert multi.comparisons[-1] == 0
    assert all(c > 0 for c in multi.comparisons[:-1])
    assert len(multi.rows) > len(single.rows)
    assert multi.poses == single.poses
    assert multi.rows[: len(single.rows)] == single.rows


def test_distance_follows_ground_truth_path():
    gt = _gt()
    result = evaluate(_eval_from(gt), gt, IDENTITY, single_run=True)
    speed = math.hypot(1.0, 0.5)
    first = result.rows[0]
    assert first.distance == pytest.approx(0.0, abs=1e-9)
    for row in result.rows:
        assert row.distance == pytest.approx((row.time - first.time) * speed, abs=1e-6)


def test_calibration_is_accounted_for():
    gt = _gt(rotating=True)
    calibration = Transformation(
        (0.0, math.sin(0.2), 0.0, math.cos(0.2)), (0.1, -0.2, 0.05)
    )
    samples = _eval_from(gt, calibration=calibration)
    result = evaluate(samples, gt, calibration, single_run=True)
    assert result.rows
    for row in result.rows:
        assert row.position_error == pytest.approx(0.0, abs=1e-6)
        assert row.orientation_error == pytest.approx(0.0, abs=1e-5)


def test_position_offset_shows_up_as_error():
    gt = _gt()
    samples = _eval_from(gt, bump_after=15.0, bump=0.1)
    result = evaluate(samples, gt, IDENTITY, single_run=True)
    late = [r for r in result.rows if r.time > 16.0]
    early = [r for r in result.rows if r.time < 14.0]
    assert late and early
    assert all(r.position_error == pytest.approx(0.1, abs=1e-6) for r in late)
    assert all(r.position_error == pytest.approx(0.0, abs=1e-6) for r in early)
    assert all(r.orientation_error == pytest.approx(0.0, abs=1e-6) for r in late)


def test_covariance_diagonal_is_reported():
    gt = _gt()
    result = evaluate(_eval_from(gt), gt, IDENTITY, single_run=True)
    expected = tuple(COV[i * 7] for i in range(6))
    assert all(row.covariance_diagonal == expected for row in result.rows)


def test_empty_input_raises():
    gt = _gt()
    with pytest.raises(EvaluationError):
        evaluate([], gt)
    with pytest.raises(EvaluationError):
        evaluate(_eval_from(gt), [])


def test_synchronisation_failure_raises():
    gt = [GroundTruthSample(t * 0.1, (0, 0, 0), (0, 0, 0, 1)) for t in range(10)]
    samples = [PoseSample(100.0, (0, 0, 0), (0, 0, 0, 1))]
    with pytest.raises(EvaluationError, match="synchronization"):
        evaluate(samples, gt)


def test_write_matlab_round_trip():
    gt = _gt()
    result = evaluate(_eval_from(gt), gt, IDENTITY, single_run=True)
    buffer = io.StringIO()
    write_matlab(result, buffer)
    text = buffer.getvalue()
    assert text.startswith("data=[\n")
    data_part, rest = text[len("data=[\n"):].split("];poses = [", 1)
    lines = data_part.splitlines()
    assert len(lines) == len(result.rows)
    values = [float(v) for v in lines[0].rstrip(";").split()]
    assert len(values) == 11
    assert values == pytest.approx(list(result.rows[0].values()), rel=1e-5, abs=1e-5)
    assert "poses_GT = [" in rest
    assert text.endswith("];\n")


def test_write_matlab_empty_result():
    gt = _gt()
    result = evaluate(_eval_from(gt)[:10], gt[:10], IDENTITY)
    buffer = io.StringIO()
    write_matlab(result, buffer)
    assert result.rows == []
    assert buffer.getvalue() == "data=[\n];poses = [];\nposes_GT = [];\n"


def test_read_csv_round_trip(tmp_path):
    pose_file = tmp_path / "eval.csv"
    pose_file.write_text(
        "# stamp,px,py,pz,qx,qy,qz,qw\n"
        "1.5,1,2,3,0,0,0,1\n"
        "\n"
        "2.5,4,5,6,0,0,1,0," + ",".join(["0.5"] * 36) + "\n"
    )
    poses = read_pose_csv(pose_file)
    assert len(poses) == 2
    assert poses[0].stamp == 1.5
    assert poses[0].position == (1.0, 2.0, 3.0)
    assert poses[0].covariance == (0.0,) * 36
    assert poses[1].orientation == (0.0, 0.0, 1.0, 0.0)
    assert poses[1].covariance == (0.5,) * 36

    gt_file = tmp_path / "gt.csv"
    gt_file.write_text("0.25,7,8,9,0,1,0,0\n")
    truth = read_ground_truth_csv(gt_file)
    assert truth == [GroundTruthSample(0.25, (7.0, 8.0, 9.0), (0.0, 1.0, 0.0, 0.0))]


def test_read_csv_rejects_bad_rows(tmp_path):
    bad = tmp_path / "bad.csv"
    bad.write_text("1,2,3\n")
    with pytest.raises(EvaluationError):
        read_pose_csv(bad)
    with pytest.raises(EvaluationError):
        read_ground_truth_csv(bad)
    text = tmp_path / "text.csv"
    text.write_text("a,b,c,d,e,f,g,h\n")
    with pytest.raises(EvaluationError):
        read_ground_truth_csv(text)


def _write_csv(path, rows):
    path.write_text("".join(",".join(repr(float(v)) for v in row) + "\n" for row in rows))


def test_main_writes_matlab_file(tmp_path):
    gt = _gt()
    samples = _eval_from(gt)
    eval_file = tmp_path / "eval.csv"
    gt_file = tmp_path / "gt.csv"
    _write_csv(eval_file, [(s.stamp, *s.position, *s.orientation) for s in samples])
    _write_csv(gt_file, [(g.stamp, *g.translation, *g.rotation) for g in gt])
    out = tmp_path / "out.m"
    assert main([str(eval_file), str(gt_file), "1", "-o", str(out)]) == 0
    text = out.read_text()
    assert text.startswith("data=[\n")
    assert "poses_GT = [" in text


def test_main_reports_empty_input(tmp_path):
    eval_file = tmp_path / "eval.csv"
    gt_file = tmp_path / "gt.csv"
    eval_file.write_text("")
    gt_file.write_text("0,0,0,0,0,0,0,1\n")
    out = tmp_path / "out.m"
    assert main([str(eval_file), str(gt_file), "-o", str(out)]) == 1
    assert not out.exists()