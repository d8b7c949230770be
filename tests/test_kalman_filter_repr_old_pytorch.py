import importlib

import torch

import timed_kf._printing
from timed_kf import KalmanFilter


def test_repr_is_fine_with_old_pytorch():
    kf = KalmanFilter(
        torch.eye(2),
        None,
        torch.eye(2) * 0.01,
        torch.tensor([[0.0], [1.0]]),
        torch.eye(2),
        0.0,
        dtype=torch.float32,
    )

    # Mock printoptions
    old_printoptions = None
    if hasattr(torch._tensor_str, "printoptions"):
        old_printoptions = torch._tensor_str.printoptions
        delattr(torch._tensor_str, "printoptions")

    try:
        importlib.reload(timed_kf._printing)
        kf_repr = str(kf)
    finally:  # RESET just in case other test depend on it.
        if old_printoptions is not None:
            torch._tensor_str.printoptions = old_printoptions
        importlib.reload(timed_kf._printing)

    lines = kf_repr.split("\n")
    assert lines[0] == "Kalman Filter (State dimension: 2, Control dimension: 2, Last timestamp: 0.0)"
    assert lines[2] == "Belief: x = tensor([[0.],   &  P = tensor([[1., 0.],"
    assert "Process: Q = tensor([[0.01, 0.00]," in kf_repr
