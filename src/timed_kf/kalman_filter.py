from __future__ import annotations

import dataclasses
import enum
import logging
from typing import Callable, Sequence, overload

import torch
import torch.linalg

from . import _printing
from .errors import NumericalError, ShapeMismatchError
from .time_utils import unix_time

# Note on runtime:
# The innovation covariance S is inverted explicitly (rather than solved with cholesky).
# Observations are small (dim_z is usually < 10) and the precision S^{-1} is kept in the returned
# projection, so that gating / likelihood computations after an update do not require another solve.

logger = logging.getLogger(__name__)

Model = Callable[[float], torch.Tensor]
"""Function of the elapsed time ``dt`` returning a matrix (transition ``A`` or control ``B``)."""


@dataclasses.dataclass
class GaussianState:
    """Multivariate Gaussian distribution ``N(mean, covariance)``.

    It is used both for the filter belief on the state (x, P) and for the
    expected distribution of an observation (H x, S).

    Conventions:
    - Vectors are **column vectors** with shape ``(dim, 1)``.
    - A leading time dimension is added by :meth:`KalmanFilter.filter` when all the
      beliefs are returned. Methods below still broadcast over it.

    Attributes:
        mean: Mean of the distribution.
            Shape: ``(..., dim, 1)``
        covariance: Covariance matrix of the distribution.
            Shape: ``(..., dim, dim)``
        precision: Optional precision matrix (inverse covariance).
            Shape: ``(..., dim, dim)``
            If ``None``, it is computed lazily when needed.
    """

    mean: torch.Tensor
    covariance: torch.Tensor
    precision: torch.Tensor | None = None

    def clone(self) -> GaussianState:
        """Return a deep copy of the state."""
        return GaussianState(
            self.mean.clone(), self.covariance.clone(), self.precision.clone() if self.precision is not None else None
        )

    @overload
    def to(self, dtype: torch.dtype) -> GaussianState: ...

    @overload
    def to(self, device: torch.device) -> GaussianState: ...

    def to(self, fmt):
        """Convert a GaussianState to a specific device or dtype.

        Args:
            fmt (torch.dtype | torch.device): Memory format to send the state to.

        Returns:
            GaussianState: The GaussianState with the right format
        """
        return GaussianState(
            self.mean.to(fmt),
            self.covariance.to(fmt),
            self.precision.to(fmt) if self.precision is not None else None,
        )

    def mahalanobis_squared(self, measure: torch.Tensor) -> torch.Tensor:
        """Compute squared Mahalanobis distance to a measure.

            MAHA^2 = (x - μ)^T P^{-1} (x - μ)

        Typically used on the projection returned by :meth:`KalmanFilter.update` to gate
        observations or detect a diverging filter (the squared distance follows a chi2 law
        with ``dim`` degrees of freedom).

        Args:
            measure (torch.Tensor): Measure to evaluate (column vector).
                Shape: ``(..., dim, 1)``

        Returns:
            torch.Tensor: Squared Mahalanobis distance
                Shape: ``(...)``
        """
        diff = self.mean - measure
        if self.precision is None:
            self.precision = self.covariance.inverse()
        return (diff.mT @ self.precision @ diff)[..., 0, 0]

    def mahalanobis(self, measure: torch.Tensor) -> torch.Tensor:
        """Compute Mahalanobis distance to a measure (square root of :meth:`mahalanobis_squared`).

        Args:
            measure (torch.Tensor): Measure to evaluate (column vector).
                Shape: ``(..., dim, 1)``

        Returns:
            torch.Tensor: Mahalanobis distance
                Shape: ``(...)``
        """
        return self.mahalanobis_squared(measure).sqrt()

    def log_likelihood(self, measure: torch.Tensor) -> torch.Tensor:
        """Compute the log-likelihood of the given measure under the Gaussian distribution.

            log p(x) = -1/2 * ( dim*log(2π) + log|Σ| + MAHA^2 )

        Args:
            measure (torch.Tensor): Measure to evaluate (column vector).
                Shape: ``(..., dim, 1)``

        Returns:
            torch.Tensor: Log-likelihood of the measure
                Shape: ``(...)``
        """
        maha_2 = self.mahalanobis_squared(measure)
        log_det = torch.log(torch.det(self.covariance))
        pi = torch.tensor(torch.pi, device=log_det.device, dtype=log_det.dtype)
        dim = self.covariance.shape[-1]
        return -0.5 * (dim * torch.log(2 * pi) + log_det + maha_2)

    def likelihood(self, measure: torch.Tensor) -> torch.Tensor:
        """Compute the likelihood of the given measure (exponential of :meth:`log_likelihood`)."""
        return self.log_likelihood(measure).exp()


class CovarianceUpdate(enum.Enum):
    """Covariance update policy of :meth:`KalmanFilter.update`.

    SIMPLIFIED: P' = (I - K H) P
        Cheap, but floating point rounding (or large gains) can break the symmetry and
        positive semi-definiteness of P.
    JOSEPH: P' = (I - K H) P (I - K H)ᵀ + K R Kᵀ
        Valid for any gain and robust to rounding. Typically ~50% slower.
    """

    SIMPLIFIED = "simplified"
    JOSEPH = "joseph"


def constant_model(matrix: torch.Tensor) -> Model:
    """Wrap a matrix into a model that ignores the elapsed time.

    Args:
        matrix (torch.Tensor): Time-invariant transition or control matrix.

    Returns:
        Model: Function returning ``matrix`` for any ``dt``.
    """

    def model(dt: float) -> torch.Tensor:  # noqa: ARG001
        return matrix

    return model


def _check_shape(name: str, tensor: torch.Tensor, shape: tuple[int, ...]) -> None:
    if tensor.shape != shape:
        raise ShapeMismatchError(name, shape, tuple(tensor.shape))


class KalmanFilter:
    """Linear Kalman filter tracking a single system observed at irregular times.

    The filter holds its own belief x ~ N(x, P) on the hidden state of a linear system:

        x(t) = A(dt) x(t - dt) + B(dt) u + w,   w ~ N(0, Q)
        z    = H x(t) + v,                      v ~ N(0, R)

    where:
    - ``x`` is the hidden state (dimension ``state_dim`` = N),
    - ``u`` is an optional control input (dimension ``control_dim`` = M, default N),
    - ``A(dt)`` / ``B(dt)`` are the transition / control models, functions of the elapsed time,
    - ``Q`` is the (constant) process noise covariance,
    - ``z`` is an observation of any dimension U, with its own ``H`` (U x N) and ``R`` (U x U).

    Calls to :meth:`predict` move the belief forward in time, calls to :meth:`update`
    incorporate observations. They can be interleaved in any order. Observations from
    heterogeneous sensors (different U, H and R) can feed the same filter.

    Timestamps:
        Only :meth:`predict` reads and writes the last timestamp. :meth:`update` never touches
        it: call ``predict`` up to the observation time before updating. Negative ``dt``
        (time going backward) is propagated as is.

    Shapes:
        Vectors are column vectors ``(dim, 1)`` (1-d vectors ``(dim,)`` are accepted and reshaped).
        Every input is converted to the filter dtype/device and checked against N, M and U.
        Mismatches raise :class:`~timed_kf.errors.ShapeMismatchError`.

    Numerical notes:
        The simplified covariance update is used by default. It may lose symmetry / PSD-ness
        with ill-conditioned problems: switch to ``CovarianceUpdate.JOSEPH`` if needed.
        No path validates that P is PSD (including the setters).

    Thread safety:
        None. A filter must be driven by a single thread (or externally locked).

    Attributes:
        process_noise (torch.Tensor): Process noise covariance ``Q``.
            Shape: ``(N, N)``
        covariance_update (CovarianceUpdate): Covariance update policy.
            Default: CovarianceUpdate.SIMPLIFIED
    """

    def __init__(  # noqa: PLR0913
        self,
        transition_model: torch.Tensor | Model,
        control_model: torch.Tensor | Model | None,
        process_noise: torch.Tensor,
        initial_state: torch.Tensor,
        initial_covariance: torch.Tensor,
        initial_timestamp: float | None = None,
        *,
        covariance_update: CovarianceUpdate | str = CovarianceUpdate.SIMPLIFIED,
        dtype: torch.dtype = torch.float64,
        device: torch.device | str | None = None,
        max_condition_number: float | None = None,
        control_dim: int | None = None,
    ) -> None:
        """Constructor.

        Args:
            transition_model (torch.Tensor | Model): Transition matrix ``A`` or function ``dt -> A``.
                Shape: ``(N, N)``
            control_model (torch.Tensor | Model | None): Control matrix ``B`` or function ``dt -> B``.
                None means no control (zeros with M = N).
                Shape: ``(N, M)``
            process_noise (torch.Tensor): Process noise covariance ``Q``. It defines N.
                Shape: ``(N, N)``
            initial_state (torch.Tensor): Initial state estimate ``x0``.
                Shape: ``(N, 1)``
            initial_covariance (torch.Tensor): Initial error covariance ``P0``.
                Shape: ``(N, N)``
            initial_timestamp (float | None): Time of the initial belief.
                Default: None (current unix time)
            covariance_update (CovarianceUpdate | str): Covariance update policy.
                Default: CovarianceUpdate.SIMPLIFIED
            dtype (torch.dtype): Dtype of the filter.
                Default: torch.float64
            device (torch.device | str | None): Device of the filter.
                Default: None (device of ``process_noise``)
            max_condition_number (float | None): Maximum condition number of the innovation covariance
                before ``update`` refuses to invert it.
                Default: None (1 / eps of the dtype)
            control_dim (int | None): Dimension M of the control input. Only needed with a callable
                control model (models are never evaluated before the first ``predict``). With a control
                matrix, M is read from it (and checked against this value if given).
                Default: None (N for a callable or absent control model)
        """
        self.process_noise = torch.as_tensor(process_noise, dtype=dtype, device=device).clone()
        state_dim = self.process_noise.shape[0] if self.process_noise.ndim else 1
        _check_shape("process_noise", self.process_noise, (state_dim, state_dim))

        # Callable models are only evaluated (and checked) in predict
        if not callable(transition_model):
            transition_model = self._matrix(transition_model, "transition_model", (state_dim, state_dim))
        self._transition_model = self._as_model(transition_model)

        if control_model is None:
            control_model = torch.zeros(state_dim, state_dim if control_dim is None else control_dim)
        if callable(control_model):
            self._control_dim = state_dim if control_dim is None else control_dim
        else:
            control_model = self._as_tensor(control_model)
            if control_dim is None:
                control_dim = control_model.shape[-1] if control_model.ndim else 1
            self._control_dim = control_dim
            _check_shape("control_model", control_model, (state_dim, self._control_dim))
        self._control_model = self._as_model(control_model)

        self._mean = self._column(initial_state, "initial_state", state_dim).clone()
        self._covariance = self._matrix(initial_covariance, "initial_covariance", (state_dim, state_dim)).clone()
        self._last_timestamp = float(unix_time() if initial_timestamp is None else initial_timestamp)

        self.covariance_update = covariance_update
        self._max_condition_number = max_condition_number

    @property
    def state_dim(self) -> int:
        """Dimension of the state variable (N)."""
        return self.process_noise.shape[0]

    @property
    def control_dim(self) -> int:
        """Dimension of the control input (M)."""
        return self._control_dim

    @property
    def device(self) -> torch.device:
        """Device of the Kalman filter."""
        return self.process_noise.device

    @property
    def dtype(self) -> torch.dtype:
        """Dtype of the Kalman filter."""
        return self.process_noise.dtype

    @property
    def covariance_update(self) -> CovarianceUpdate:
        """Covariance update policy. Strings ("simplified", "joseph") are converted."""
        return self._covariance_update

    @covariance_update.setter
    def covariance_update(self, policy: CovarianceUpdate | str) -> None:
        self._covariance_update = CovarianceUpdate(policy)

    @property
    def max_condition_number(self) -> float:
        """Maximum condition number of the innovation covariance accepted by `update`."""
        if self._max_condition_number is None:
            return 1 / torch.finfo(self.dtype).eps
        return self._max_condition_number

    @property
    def last_timestamp(self) -> float:
        """Timestamp of the last prediction (or the initial timestamp). Updates do not change it."""
        return self._last_timestamp

    @property
    def state_estimate(self) -> torch.Tensor:
        """Copy of the current state estimate ``x``.

        Setting it overwrites the estimate (e.g. to reinitialize a diverging filter).
        The last timestamp is NOT modified.

        Shape: ``(N, 1)``
        """
        return self._mean.clone()

    @state_estimate.setter
    def state_estimate(self, state: torch.Tensor) -> None:
        self._mean = self._column(state, "state_estimate", self.state_dim).clone()

    @property
    def error_covariance(self) -> torch.Tensor:
        """Copy of the current error covariance ``P``.

        Setting it overwrites the covariance. The caller is responsible for providing a
        symmetric positive semi-definite matrix: it is not validated. The last timestamp is NOT modified.

        Shape: ``(N, N)``
        """
        return self._covariance.clone()

    @error_covariance.setter
    def error_covariance(self, covariance: torch.Tensor) -> None:
        self._covariance = self._matrix(covariance, "error_covariance", (self.state_dim, self.state_dim)).clone()

    @property
    def belief(self) -> GaussianState:
        """Copy of the current belief N(x, P)."""
        return GaussianState(self._mean.clone(), self._covariance.clone())

    @overload
    def to(self, dtype: torch.dtype) -> KalmanFilter: ...

    @overload
    def to(self, device: torch.device) -> KalmanFilter: ...

    def to(self, fmt):
        """Convert a Kalman filter to a specific device or dtype.

        The new filter shares the models, the last timestamp and the configuration,
        but not the belief (it is copied).

        Args:
            fmt (torch.dtype | torch.device): Memory format to send the filter to.

        Returns:
            KalmanFilter: The filter with the right format
        """
        dtype = fmt if isinstance(fmt, torch.dtype) else self.dtype
        device = self.device if isinstance(fmt, torch.dtype) else fmt

        return KalmanFilter(
            self._transition_model,
            self._control_model,
            self.process_noise,
            self._mean,
            self._covariance,
            self._last_timestamp,
            covariance_update=self.covariance_update,
            dtype=dtype,
            device=device,
            max_condition_number=self._max_condition_number,
            control_dim=self.control_dim,
        )

    @overload
    def predict(self, timestamp: float) -> None: ...

    @overload
    def predict(self, timestamp: float, control: torch.Tensor) -> None: ...

    def predict(self, timestamp, control=None):
        """Move the belief forward to ``timestamp``.

        With ``dt = timestamp - last_timestamp``, ``A = A(dt)`` and ``B = B(dt)``:

            x = A x + B u
            P = A P Aᵀ + Q

        The last timestamp is then set to ``timestamp``. ``dt`` is not bounded: zero or negative
        values are propagated through the models exactly like positive ones.

        Example:
        ```python
            kf = KalmanFilter(transition, None, process_noise, x0, p0, initial_timestamp=0.0)

            kf.predict(0.5)  # No control input
            kf.predict(1.2, torch.tensor([[0.1], [0.0]]))  # With a control input u (M x 1)
        ```

        Args:
            timestamp (float): Time to predict the belief at.
            control (torch.Tensor | None): Control input ``u``.
                Shape: ``(M, 1)``
                Default: None (zero input)
        """
        timestamp = float(timestamp)
        dt = timestamp - self._last_timestamp

        # Everything is evaluated and checked before modifying the filter
        transition = self._evaluate(self._transition_model, dt, "transition_model", (self.state_dim, self.state_dim))
        control_matrix = self._evaluate(self._control_model, dt, "control_model", (self.state_dim, self.control_dim))
        if control is None:
            control = torch.zeros(self.control_dim, 1, dtype=self.dtype, device=self.device)
        else:
            control = self._column(control, "control", self.control_dim)

        if dt < 0:
            logger.warning("Predicting backward in time (dt=%s)", dt)
        logger.debug("Predict: dt=%s", dt)

        self._last_timestamp = timestamp
        self._mean = transition @ self._mean + control_matrix @ control
        self._covariance = transition @ self._covariance @ transition.mT + self.process_noise

    def project(
        self, measurement_matrix: torch.Tensor, measurement_noise: torch.Tensor
    ) -> GaussianState:
        """Project the current belief into a measurement space.

        With the measurement model z = H x + v, v ~ N(0, R), the expected observation follows
        N(H x, S) with:

            S = H P Hᵀ + R

        The precision ``S^{-1}`` is computed and stored in the returned state.

        Args:
            measurement_matrix (torch.Tensor): Observation model ``H``.
                Shape: ``(U, N)``
            measurement_noise (torch.Tensor): Observation noise covariance ``R``.
                Shape: ``(U, U)``

        Returns:
            GaussianState: Expected distribution of the observation.
                Shape (mean): ``(U, 1)``
                Shape (covariance): ``(U, U)``

        Raises:
            ShapeMismatchError: If ``H`` or ``R`` do not have the expected shapes.
            NumericalError: If ``S`` cannot be safely inverted.
        """
        measurement_matrix = self._as_tensor(measurement_matrix)
        measure_dim = measurement_matrix.shape[0] if measurement_matrix.ndim else 1
        _check_shape("measurement_matrix", measurement_matrix, (measure_dim, self.state_dim))
        measurement_noise = self._matrix(measurement_noise, "measurement_noise", (measure_dim, measure_dim))

        mean = measurement_matrix @ self._mean
        covariance = measurement_matrix @ self._covariance @ measurement_matrix.mT + measurement_noise

        return GaussianState(mean, covariance, self._invert(covariance))

    @overload
    def update(self, measure: float, measurement_matrix: torch.Tensor, measurement_noise: float) -> GaussianState: ...

    @overload
    def update(
        self, measure: torch.Tensor, measurement_matrix: torch.Tensor, measurement_noise: torch.Tensor
    ) -> GaussianState: ...

    def update(self, measure, measurement_matrix, measurement_noise):
        """Incorporate an observation ``z`` into the belief.

        Steps:
        1. Innovation: y = z - H x
        2. Innovation covariance: S = H P Hᵀ + R
        3. Kalman gain: K = P Hᵀ S^{-1}
        4. x = x + K y
        5. P = (I - K H) P   OR [JOSEPH] P = (I - K H) P (I - K H)ᵀ + K R Kᵀ

        The observation dimension U is free and may change between calls. A scalar observation
        can be given directly: ``update(z, H, r)`` with floats ``z`` and ``r`` and ``H`` of shape
        ``(1, N)`` (or ``(N,)``). It is equivalent to the (1, 1) matrix form.

        The last timestamp is neither used nor modified: the belief should already be predicted
        at the observation time.

        Example:
        ```python
            # Scalar observation of the first state variable
            kf.update(1.3, torch.tensor([[1.0, 0.0]]), 0.25)

            # 2d observation of the full state
            kf.update(torch.tensor([[1.3], [0.2]]), torch.eye(2), 0.25 * torch.eye(2))
        ```

        Args:
            measure (float | torch.Tensor): Observation ``z``.
                Shape: ``(U, 1)``
            measurement_matrix (torch.Tensor): Observation model ``H``.
                Shape: ``(U, N)``
            measurement_noise (float | torch.Tensor): Observation noise covariance ``R``.
                Shape: ``(U, U)``

        Returns:
            GaussianState: Expected distribution of the observation before the update (see `project`).
                Useful to compute the Mahalanobis distance or the likelihood of ``z``.

        Raises:
            ShapeMismatchError: If an argument does not match N and U.
            NumericalError: If ``S`` cannot be safely inverted. The filter is left unchanged.
        """
        measure = self._as_tensor(measure)
        if measure.ndim == 0:  # Scalar observation: U = 1
            measurement_matrix = self._as_tensor(measurement_matrix)
            measurement_noise = self._as_tensor(measurement_noise)
            if measurement_noise.numel() != 1:
                raise ShapeMismatchError("measurement_noise", (1, 1), tuple(measurement_noise.shape))
            return self.update(
                measure.reshape(1, 1), measurement_matrix.reshape(1, -1), measurement_noise.reshape(1, 1)
            )

        measure = self._column(measure, "measure")
        measurement_matrix = self._as_tensor(measurement_matrix)
        _check_shape("measurement_matrix", measurement_matrix, (measure.shape[0], self.state_dim))

        projection = self.project(measurement_matrix, measurement_noise)
        measurement_noise = self._as_tensor(measurement_noise)
        logger.debug("Update: measure dimension=%d", measure.shape[0])

        residual = measure - projection.mean
        kalman_gain = self._covariance @ measurement_matrix.mT @ projection.precision
        factor = torch.eye(self.state_dim, dtype=self.dtype, device=self.device) - kalman_gain @ measurement_matrix

        self._mean = self._mean + kalman_gain @ residual
        if self.covariance_update is CovarianceUpdate.JOSEPH:
            self._covariance = factor @ self._covariance @ factor.mT + kalman_gain @ measurement_noise @ kalman_gain.mT
        else:
            self._covariance = factor @ self._covariance

        return projection

    def filter(  # noqa: PLR0913
        self,
        timestamps: Sequence[float] | torch.Tensor,
        measures: torch.Tensor,
        measurement_matrix: torch.Tensor,
        measurement_noise: torch.Tensor,
        controls: torch.Tensor | None = None,
        return_all=False,
    ) -> GaussianState:
        """Run the classic predict/update loop over a sequence of timed observations.

        This is a convenience method for common use cases. It assumes:
        - A single sensor (constant ``H, R``).
        - Measurements may contain NaNs: if any component of a measurement is NaN,
          the update is skipped for that timestep (the prediction is still done).

        For more complex cases (several sensors, gating, ...), one should directly call
        `predict` and `update`.

        Args:
            timestamps (Sequence[float] | torch.Tensor): Time of each observation.
                Shape: ``(T,)``
            measures (torch.Tensor): Sequence of observations.
                Shape: ``(T, U, 1)`` (or ``(T,)`` for scalar observations)
            measurement_matrix (torch.Tensor): Observation model ``H``.
                Shape: ``(U, N)``
            measurement_noise (torch.Tensor): Observation noise covariance ``R``.
                Shape: ``(U, U)``
            controls (torch.Tensor | None): Optional control input for each prediction.
                Shape: ``(T, M, 1)``
            return_all (bool): If True, return the posterior belief at every timestep as a single
                `GaussianState` with a leading time dimension. Otherwise only the last one.
                Default: False

        Returns:
            GaussianState: Either the last posterior belief, or all the posterior beliefs.
                Shape (mean): ``([T, ]N, 1)``
                Shape (covariance): ``([T, ]N, N)``
        """
        measures = self._as_tensor(measures)
        if len(timestamps) != len(measures):
            raise ShapeMismatchError("timestamps", (len(measures),), (len(timestamps),))
        if controls is not None and len(controls) != len(measures):
            raise ShapeMismatchError("controls", (len(measures),), (len(controls),))

        saver = GaussianState(
            torch.empty((len(measures), self.state_dim, 1), dtype=self.dtype, device=self.device),
            torch.empty((len(measures), self.state_dim, self.state_dim), dtype=self.dtype, device=self.device),
        )

        for t, (timestamp, measure) in enumerate(zip(timestamps, measures)):
            self.predict(timestamp, None if controls is None else controls[t])

            # Support for nan measure: Do not update with a nan measure
            if torch.isnan(measure).any():
                logger.debug("Skipping update at timestamp %s (nan measure)", float(timestamp))
            else:
                self.update(measure, measurement_matrix, measurement_noise)

            if return_all:
                saver.mean[t] = self._mean
                saver.covariance[t] = self._covariance

        if return_all:
            return saver

        return self.belief

    def _as_model(self, model: torch.Tensor | Model) -> Model:
        if callable(model):
            return model
        return constant_model(self._as_tensor(model).clone())

    def _as_tensor(self, value: float | torch.Tensor) -> torch.Tensor:
        return torch.as_tensor(value, dtype=self.dtype, device=self.device)

    def _evaluate(self, model: Model, dt: float, name: str, shape: tuple[int, int]) -> torch.Tensor:
        matrix = self._as_tensor(model(dt))
        _check_shape(name, matrix, shape)
        return matrix

    def _matrix(self, value: torch.Tensor, name: str, shape: tuple[int, int]) -> torch.Tensor:
        matrix = self._as_tensor(value)
        _check_shape(name, matrix, shape)
        return matrix

    def _column(self, value: torch.Tensor, name: str, dim: int | None = None) -> torch.Tensor:
        vector = self._as_tensor(value)
        if vector.ndim <= 1:
            vector = vector.reshape(-1, 1)
        _check_shape(name, vector, (vector.shape[0] if dim is None else dim, 1))
        return vector

    def _invert(self, covariance: torch.Tensor) -> torch.Tensor:
        """Invert the innovation covariance, or raise a NumericalError."""
        if not torch.isfinite(covariance).all():
            logger.warning("Innovation covariance is not finite")
            raise NumericalError("Innovation covariance contains non-finite values")

        condition_number = torch.linalg.cond(covariance).item()
        if not condition_number <= self.max_condition_number:  # Also catches nan
            logger.warning("Innovation covariance is singular (condition number: %s)", condition_number)
            raise NumericalError(
                f"Innovation covariance is singular or ill-conditioned (condition number: {condition_number:.3e},"
                f" limit: {self.max_condition_number:.3e})"
            )

        try:
            return torch.linalg.inv(covariance)
        except torch.linalg.LinAlgError as error:
            logger.warning("Failed to invert the innovation covariance: %s", error)
            raise NumericalError("Innovation covariance cannot be inverted") from error

    def __repr__(self) -> str:
        """Convert the Kalman filter into a readable string."""
        header = (
            f"Kalman Filter (State dimension: {self.state_dim}, Control dimension: {self.control_dim},"
            f" Last timestamp: {self._last_timestamp})"
        )
        belief = _printing.side_by_side("Belief", ("x", self._mean), ("P", self._covariance))
        process = _printing.named("Process", "Q", self.process_noise)
        process += f"\nCovariance update: {self.covariance_update.value}"

        n_char = max(len(line) for line in (belief + "\n" + process).split("\n"))
        return ("\n" + "-" * n_char + "\n").join([header, belief, process])
