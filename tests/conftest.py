"""
Shared fixtures: a scripted stand-in for the OpenCV inference model.
"""

import numpy as np
import pytest

from face_roi.config import AppConfig

ANCHOR_COUNT = 896


class FakeModel:
    """Duck-typed InferenceModel returning fixed outputs."""

    def __init__(
        self,
        regressors=None,
        scores=None,
        input_size=(128, 128),
        output_names=("classificators", "regressors"),
    ):
        self.regressors = (
            np.zeros((ANCHOR_COUNT, 16), dtype=np.float32) if regressors is None else regressors
        )
        self.scores = (
            np.full(ANCHOR_COUNT, -10.0, dtype=np.float32) if scores is None else scores
        )
        self.input_size = input_size
        self.output_names = list(output_names)
        self.invoke_count = 0
        self.last_blob = None
        self.closed = False

    def set_input(self, blob):
        self.last_blob = blob

    def invoke(self):
        self.invoke_count += 1

    def output(self, index):
        name = self.output_names[index]
        data = self.regressors if name == "regressors" else self.scores
        return np.asarray(data, dtype=np.float32).ravel()

    def close(self):
        self.closed = True


@pytest.fixture
def config():
    return AppConfig()


@pytest.fixture
def fake_model():
    return FakeModel()


@pytest.fixture
def face_model():
    """Fake model whose best anchor (row 512) holds a face.

    Anchor 512 is the first cell of the stride-16 grid, center
    (0.0625, 0.0625) -> (8, 8) in model pixels.
    """
    regressors = np.zeros((ANCHOR_COUNT, 16), dtype=np.float32)
    regressors[512, :8] = [10, 20, 4, 6, 0, 0, 4, 4]
    scores = np.full(ANCHOR_COUNT, -10.0, dtype=np.float32)
    scores[512] = 2.0
    return FakeModel(regressors=regressors, scores=scores)
