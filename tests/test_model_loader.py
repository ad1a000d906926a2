"""
Tests for the model loading module.
"""

import cv2
import numpy as np
import pytest

from face_roi.config import ModelConfig
from face_roi.errors import InferenceError, ModelBuildError
from face_roi.model_loader import (
    InferenceModel,
    _configure,
    load_model,
    load_model_from_bytes,
    resolve_output_indices,
)


class StubNet:
    """Minimal cv2.dnn.Net stand-in."""

    def __init__(self, outputs=None, fail=False):
        self._outputs = outputs or {}
        self._fail = fail
        self.blob = None
        self.requested = None

    def getUnconnectedOutLayersNames(self):
        return tuple(self._outputs)

    def setInput(self, blob):
        self.blob = blob

    def forward(self, names):
        if self._fail:
            raise cv2.error("forward failed")
        self.requested = list(names)
        return [self._outputs[n] for n in names]

    def setPreferableBackend(self, backend):
        self.backend = backend

    def setPreferableTarget(self, target):
        self.target = target


def test_resolve_output_indices():
    indices = resolve_output_indices(["classificators", "regressors"], ["regressors", "classificators"])
    assert indices == {"regressors": 1, "classificators": 0}


def test_resolve_output_indices_missing_name():
    with pytest.raises(ModelBuildError, match="classificators"):
        resolve_output_indices(["regressors", "scores"], ["regressors", "classificators"])


def test_inference_model_round_trip():
    net = StubNet({
        "regressors": np.ones((1, 896, 16), dtype=np.float32),
        "classificators": np.zeros((1, 896, 1), dtype=np.float32),
    })
    model = InferenceModel(net, ModelConfig(input_size=(128, 96)))

    assert model.input_size == (96, 128)
    assert model.output_names == ["regressors", "classificators"]

    blob = np.zeros((1, 3, 96, 128), dtype=np.float32)
    model.set_input(blob)
    model.invoke()

    assert net.blob is blob
    assert net.requested == ["regressors", "classificators"]
    assert model.output(0).shape == (896 * 16,)
    assert model.output(1).dtype == np.float32


def test_output_before_invoke_fails():
    model = InferenceModel(StubNet({"regressors": np.zeros(1)}), ModelConfig())
    with pytest.raises(InferenceError, match="invoke"):
        model.output(0)


def test_forward_failure_raises_inference_error():
    model = InferenceModel(StubNet({"regressors": np.zeros(1)}, fail=True), ModelConfig())
    model.set_input(np.zeros((1, 3, 128, 128), dtype=np.float32))

    with pytest.raises(InferenceError) as excinfo:
        model.invoke()
    assert isinstance(excinfo.value.__cause__, cv2.error)


def test_closed_model_rejects_calls():
    model = InferenceModel(StubNet({"regressors": np.zeros(1)}), ModelConfig())
    model.close()

    assert model.closed
    with pytest.raises(RuntimeError, match="closed"):
        model.invoke()


def test_load_model_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError, match="Model file not found"):
        load_model(ModelConfig(model_path=str(tmp_path / "missing.tflite")))


def test_load_model_corrupt_file(tmp_path):
    broken = tmp_path / "broken.onnx"
    broken.write_bytes(b"this is not a model")

    with pytest.raises(ModelBuildError):
        load_model(ModelConfig(model_path=str(broken)))


def test_load_model_from_empty_bytes():
    with pytest.raises(ModelBuildError, match="empty"):
        load_model_from_bytes(b"", "tflite", ModelConfig())


def test_load_model_from_bytes_unknown_format():
    with pytest.raises(ModelBuildError, match="Unsupported"):
        load_model_from_bytes(b"\x00\x01", "caffe", ModelConfig())


def test_configure_sets_process_thread_count(monkeypatch):
    """The thread setting applies to OpenCV as a whole, not one net."""
    calls = []
    monkeypatch.setattr(cv2, "setNumThreads", calls.append)

    model = _configure(StubNet({"regressors": np.zeros(16)}), ModelConfig(num_threads=3))

    assert calls == [3]
    assert model.output_names == ["regressors"]
