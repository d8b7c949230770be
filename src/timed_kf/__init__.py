"""Timed-KF: Linear Kalman filtering of irregularly-timed observations in PyTorch.

timed-kf provides a stateful implementation of the classic (linear, Gaussian)
Kalman filter for a single tracked system. The filter owns its belief (state
estimate and error covariance) and the time of its last prediction, so that
observations coming at irregular times (and from heterogeneous sensors) can be
incorporated as they arrive.

Key features
------------
- **Time-varying models**: transition and control matrices are functions of the
  elapsed time between two predictions.
- **Heterogeneous observations**: each update comes with its own observation model,
  of any dimension (including scalar observations).
- **Checked shapes and numerical failures**: wrong shapes and singular innovation
  covariances raise dedicated errors instead of silently producing NaNs.
- **Configurable covariance update**: simplified (default) or Joseph form.

Background
----------
This package is inspired by Roger R. Labbe Jr.'s `filterpy` and his companion
book *Kalman and Bayesian Filters in Python*. It does not provide non-linear
filters nor smoothing.

Numerical notes
---------------
By default, timed-kf runs in ``float64`` and uses the simplified covariance
update ``P = (I - K H) P``. If the covariance loses its symmetry or positiveness,
consider ``covariance_update=CovarianceUpdate.JOSEPH`` on :class:`~timed_kf.KalmanFilter`.

Getting started
---------------
The core API consists of:
- :class:`~timed_kf.KalmanFilter` with :meth:`~timed_kf.KalmanFilter.predict`,
  :meth:`~timed_kf.KalmanFilter.update` and the ``state_estimate`` /
  ``error_covariance`` accessors.
- :class:`~timed_kf.GaussianState` to represent Gaussian means/covariances.

:mod:`timed_kf.models` provides ready-to-use constant-derivative models
(constant velocity / acceleration) with transitions depending on the elapsed time.

Notes on shapes
---------------
timed-kf uses column vectors. State and measurement vectors have shape ``(dim, 1)``.

Logging
-------
Modules log through the standard :mod:`logging` package (``timed_kf.*`` loggers).
No handler is configured by the library.
"""

from .errors import KalmanFilterError, NumericalError, ShapeMismatchError
from .kalman_filter import CovarianceUpdate, GaussianState, KalmanFilter, Model, constant_model

__all__ = [
    "CovarianceUpdate",
    "GaussianState",
    "KalmanFilter",
    "KalmanFilterError",
    "Model",
    "NumericalError",
    "ShapeMismatchError",
    "constant_model",
]
__version__ = "0.1.0"
