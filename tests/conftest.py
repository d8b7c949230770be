import logging

import pytest
import torch


def pytest_configure(config):
    config.addinivalue_line("markers", "cuda: test requiring a cuda device")


@pytest.fixture(autouse=True)
def deterministic():
    torch.manual_seed(0)
    torch.cuda.manual_seed_all(0)
    torch.use_deterministic_algorithms(True)


@pytest.fixture
def debug_logs(caplog):
    """Capture the debug logs of timed_kf."""
    caplog.set_level(logging.DEBUG, logger="timed_kf")
    return caplog


def pytest_runtest_setup(item):
    if "cuda" in item.keywords and not torch.cuda.is_available():
        pytest.skip("CUDA not available")
