"""Tests for ImageSort CLI."""

import json
from unittest.mock import patch

import numpy as np
import pytest
from typer.testing import CliRunner

from imagesort.cli import app
from imagesort.constants import ExitCode
from imagesort.watcher import WatchTarget

from conftest import make_corrupt

runner = CliRunner()


def _flat(output: str) -> str:
    """Collapse rich line wrapping."""
    return " ".join(output.split())


@pytest.fixture
def mock_classifier():
    """Mock classifier whose oracle returns cat 0.95 / dog 0.05."""
    with patch("imagesort.cli.ImageClassifier") as mock:
        instance = mock.from_pretrained.return_value
        instance.evaluate.return_value = np.array([0.95, 0.05], dtype=np.float32)
        instance.categories = ["cat", "dog"]
        mock.bundled_categories.return_value = ["cat", "dog"]
        yield mock


def test_cli_help():
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "watch a folder and sort new images" in _flat(result.output)


def test_watch_command_help():
    result = runner.invoke(app, ["watch", "--help"])
    assert result.exit_code == 0
    assert "Watch a directory and sort new images" in _flat(result.output)


def test_classify_command_help():
    result = runner.invoke(app, ["classify", "--help"])
    assert result.exit_code == 0
    assert "Classify a single image" in _flat(result.output)


def test_classify_accepted(photo, labels_file, mock_classifier):
    result = runner.invoke(app, ["classify", str(photo), "--labels", str(labels_file)])

    assert result.exit_code == ExitCode.OK
    assert "cat: 95%" in result.output
    assert photo.exists()


def test_classify_uses_model_categories_without_label_file(photo, mock_classifier, monkeypatch):
    monkeypatch.delenv("IMAGESORT_LABELS", raising=False)

    result = runner.invoke(app, ["classify", str(photo)])

    assert result.exit_code == ExitCode.OK
    assert "cat: 95%" in result.output


def test_classify_below_confidence(photo, labels_file, mock_classifier):
    mock_classifier.from_pretrained.return_value.evaluate.return_value = np.array([0.6, 0.4], dtype=np.float32)

    result = runner.invoke(app, ["classify", str(photo), "--labels", str(labels_file)])

    assert result.exit_code == ExitCode.BELOW_CONFIDENCE
    assert "Below confidence" in _flat(result.output)


def test_classify_custom_confidence(photo, labels_file, mock_classifier):
    mock_classifier.from_pretrained.return_value.evaluate.return_value = np.array([0.6, 0.4], dtype=np.float32)

    result = runner.invoke(app, ["classify", str(photo), "-l", str(labels_file), "-c", "0.5"])

    assert result.exit_code == ExitCode.OK
    assert "cat: 60%" in result.output


def test_classify_json_output(photo, labels_file, mock_classifier):
    result = runner.invoke(app, ["classify", str(photo), "--labels", str(labels_file), "--json"])

    assert result.exit_code == ExitCode.OK
    record = json.loads(result.stdout)
    assert record["image"] == str(photo)
    assert record["predicted_label"] == "cat"
    assert record["accepted"] is True
    assert [item["label"] for item in record["topk"]] == ["cat", "dog"]


@pytest.mark.parametrize("confidence", ["0", "1.5"])
def test_classify_invalid_confidence(photo, confidence, mock_classifier):
    result = runner.invoke(app, ["classify", str(photo), "--confidence", confidence])

    assert result.exit_code == ExitCode.INVALID_ARGUMENTS
    mock_classifier.from_pretrained.assert_not_called()


def test_classify_nonexistent_file(mock_classifier):
    result = runner.invoke(app, ["classify", "missing.jpg"])

    assert result.exit_code == ExitCode.INVALID_ARGUMENTS
    assert "does not exist" in _flat(result.output)


def test_classify_corrupt_image(tmp_path, labels_file, mock_classifier):
    broken = make_corrupt(tmp_path / "broken.png")

    result = runner.invoke(app, ["classify", str(broken), "--labels", str(labels_file)])

    assert result.exit_code == ExitCode.UNHANDLED_ERROR
    assert "Error" in result.output


def test_classify_bad_label_file(photo, tmp_path, mock_classifier):
    bad = tmp_path / "labels.json"
    bad.write_text("{}")

    result = runner.invoke(app, ["classify", str(photo), "--labels", str(bad)])

    assert result.exit_code == ExitCode.STARTUP_FAILURE


def test_classify_label_table_size_mismatch(photo, tmp_path, mock_classifier):
    three = tmp_path / "labels.json"
    three.write_text(json.dumps({"0": "cat", "1": "dog", "2": "bird"}))

    result = runner.invoke(app, ["classify", str(photo), "--labels", str(three)])

    assert result.exit_code == ExitCode.UNHANDLED_ERROR


def test_watch_missing_directory(tmp_path, mock_classifier):
    result = runner.invoke(app, ["watch", str(tmp_path / "missing")])

    assert result.exit_code == ExitCode.STARTUP_FAILURE
    assert "does not exist" in _flat(result.output)
    mock_classifier.from_pretrained.assert_not_called()


def test_watch_invalid_confidence(tmp_path, mock_classifier):
    result = runner.invoke(app, ["watch", str(tmp_path), "--confidence", "0"])

    assert result.exit_code == ExitCode.INVALID_ARGUMENTS
    mock_classifier.from_pretrained.assert_not_called()


def test_watch_invalid_extension(tmp_path, mock_classifier):
    result = runner.invoke(app, ["watch", str(tmp_path), "--ext", "."])

    assert result.exit_code == ExitCode.INVALID_ARGUMENTS
    mock_classifier.from_pretrained.assert_not_called()


def test_watch_runs_loop(tmp_path, labels_file, mock_classifier):
    with patch("imagesort.cli.WatchLoop") as loop_class:
        result = runner.invoke(
            app,
            ["watch", str(tmp_path), "--ext", ".PNG", "--ext", "gif", "-c", "0.8", "--labels", str(labels_file)]
        )

    assert result.exit_code == ExitCode.OK
    target, sorter = loop_class.call_args[0]
    assert isinstance(target, WatchTarget)
    assert target.directory == tmp_path
    assert target.extensions == frozenset({"png", "gif"})
    assert target.confidence == 0.8
    assert list(sorter.labels) == ["cat", "dog"]
    loop_class.return_value.run.assert_called_once()


def test_watch_default_extensions(tmp_path, labels_file, mock_classifier):
    with patch("imagesort.cli.WatchLoop") as loop_class:
        result = runner.invoke(app, ["watch", str(tmp_path), "--labels", str(labels_file)])

    assert result.exit_code == ExitCode.OK
    target = loop_class.call_args[0][0]
    assert target.extensions == frozenset({"png", "jpg", "jpeg"})
    assert target.confidence == 0.9
    assert target.debounce == 1.0


def test_watch_model_load_failure(tmp_path, mock_classifier):
    from imagesort.errors import OracleError
    mock_classifier.from_pretrained.side_effect = OracleError("Failed to load model")

    result = runner.invoke(app, ["watch", str(tmp_path)])

    assert result.exit_code == ExitCode.STARTUP_FAILURE
    assert "Failed to load model" in _flat(result.output)


def test_labels_command_writes_table(tmp_path, mock_classifier):
    output = tmp_path / "labels.json"

    result = runner.invoke(app, ["labels", str(output)])

    assert result.exit_code == ExitCode.OK
    assert json.loads(output.read_text()) == {"0": "cat", "1": "dog"}
