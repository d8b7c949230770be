"""Time-varying models for constant-derivative motion.

This module builds the transition model ``A(dt)``, the process noise ``Q`` and the
position measurement model ``(H, R)`` of *constant-derivative* systems:

- constant position (order = 0),
- constant velocity (order = 1),
- constant acceleration (order = 2), etc.

The state is composed of a value and its derivatives up to a given order, for each
spatial dimension. As observations may come at irregular times, the transition is
returned as a function of the elapsed time ``dt``. The process noise of
:class:`~timed_kf.KalmanFilter` is constant: it is computed once for a nominal ``dt``.
"""

from __future__ import annotations

import torch

from .kalman_filter import KalmanFilter, Model


def interleave(x: torch.Tensor, size: int) -> torch.Tensor:
    """Interleave tensor along the first dimension.

    Indices ``0, 1, ..., k*size-1`` are remapped as:
    ``0, size, 2*size, ..., (k-1)*size, 1, 1+size, ..., size-1, 2*size-1, ..., k*size-1``

    It converts a state grouped by dimension (``x, x', y, y'``) into a state grouped
    by derivative order (``x, y, x', y'``) and conversely.

    Example:
        >>> interleave(torch.arange(6), 3)
        tensor([0, 3, 1, 4, 2, 5])

    Args:
        x (torch.Tensor): Tensor to interleave.
            Shape: ``(B, ...)``
        size (int): Block size used for interleaving. Must divide ``B``.

    Returns:
        torch.Tensor: Interleaved tensor with the same shape as ``x``.
    """
    shape = list(x.shape)
    return x.reshape([-1, size, *shape[1:]]).transpose(0, 1).reshape([-1, *shape[1:]])


def _taylor_coefficients(order: int, dt: float) -> torch.Tensor:
    # (1, dt, dt^2 / 2, ... dt^order / order!)
    range_ = torch.arange(order + 1, dtype=torch.float64)
    range_[0] = 1
    return torch.tensor([dt**k for k in range(order + 1)], dtype=torch.float64) / range_.cumprod(0)


def create_process_matrix(order: int, dt=1.0, approximate=False) -> torch.Tensor:
    r"""Create the transition matrix ``A`` of a 1d constant-derivative model for a given ``dt``.

    Assuming the (order+1)-th derivative and above are zero, the Taylor expansion yields:

    x^{(i)}(t + dt) = \sum_{k=0}^{order - i} \frac{dt^k}{k!} x^{(i+k)}(t)

    Example (constant acceleration with ``dt = 0.5``)::

        [
            [1, 0.5, 0.125],
            [0, 1.0, 0.5],
            [0, 0.0, 1.0],
        ]

    Args:
        order (int): Highest derivative order included in the state.
        dt (float): Elapsed time. Can be zero or negative.
            Default: 1.0
        approximate (bool): If True, keep only first-order terms:
            ``x^{(i)}(t+dt) = x^{(i)}(t) + dt * x^{(i+1)}(t)``.
            Default: False

    Returns:
        torch.Tensor: Transition matrix (float64)
            Shape: ``(order + 1, order + 1)``
    """
    coefficients = _taylor_coefficients(order, dt)
    if approximate:
        coefficients[2:] = 0  # Keep only 1 and dt

    # Sum of diagonal tensors
    process_matrix = torch.zeros(order + 1, order + 1, dtype=torch.float64)
    for k, coef in enumerate(coefficients):
        process_matrix += torch.diag(coef.repeat(order + 1 - k), k)
    return process_matrix


def create_process_noise(
    process_std: float, order: int, dt=1.0, expected_model=False, approximate=False
) -> torch.Tensor:
    r"""Create the process noise covariance ``Q`` of a 1d constant-derivative model.

    Two models are supported:

    **1. Constant order-th derivative (default)**
    The highest derivative is constant over a time step, with additive noise:
    x^{(order)}(t + dt) = x^{(order)}(t) + w, where w \sim N(0, process_std**2).

    **2. Zero-mean (order+1)-th derivative (expected model)**
    The (order+1)-th derivative is a white Gaussian noise over the interval:
    x^{(order + 1)}(t + h) = w, where w \sim N(0, process_std**2), for 0 < h <= dt.

    Args:
        process_std (float): Process noise standard deviation.
        order (int): Highest derivative order included in the state.
        dt (float): Nominal time step.
            Default: 1.0
        expected_model (bool): Use the zero-mean (order+1)-th derivative model.
            Default: False
        approximate (bool): If True, only the highest derivative receives noise.
            Default: False

    Returns:
        torch.Tensor: Process noise covariance (float64)
            Shape: ``(order + 1, order + 1)``
    """
    coefficients = _taylor_coefficients(order + expected_model, dt)
    if approximate:
        coefficients[1 + expected_model :] = 0

    # For the expected model, we drop the first element (shifted by 1)
    coefficients = coefficients[expected_model:].flip(0)
    return process_std**2 * coefficients[:, None] @ coefficients[None]


def constant_derivative_model(order=1, dim=2, approximate=False, order_by_dim=False) -> Model:
    """Create the transition model ``dt -> A(dt)`` of a constant-derivative system.

    Args:
        order (int): Highest derivative order included in the state.
            Default: 1 (constant velocity)
        dim (int): Number of independent spatial dimensions.
            Default: 2
        approximate (bool): Keep only first-order terms (see `create_process_matrix`).
            Default: False
        order_by_dim (bool): State ordering convention.
            - True: group by dimension (e.g. ``x, x', y, y'``),
            - False: group by derivative order (e.g. ``x, y, x', y'``).
            Default: False

    Returns:
        Model: Function of ``dt`` returning the transition matrix.
            Shape: ``((order + 1) * dim, (order + 1) * dim)``
    """

    def transition_model(dt: float) -> torch.Tensor:
        process_matrix = torch.block_diag(*(create_process_matrix(order, dt, approximate) for _ in range(dim)))
        if not order_by_dim:
            process_matrix = interleave(interleave(process_matrix, order + 1).T, order + 1).T
        return process_matrix.contiguous()

    return transition_model


def constant_derivative_noise(  # noqa: PLR0913
    process_std: float | torch.Tensor,
    *,
    order=1,
    dim=2,
    dt=1.0,
    expected_model=False,
    approximate=False,
    order_by_dim=False,
) -> torch.Tensor:
    """Create the process noise ``Q`` of a constant-derivative system for a nominal ``dt``.

    Args:
        process_std (float | torch.Tensor): Process noise standard deviation.
            Shape: broadcastable to ``(dim,)``
        order (int): Highest derivative order included in the state.
            Default: 1
        dim (int): Number of independent spatial dimensions.
            Default: 2
        dt (float): Nominal time step.
            Default: 1.0
        expected_model (bool): Use the zero-mean (order+1)-th derivative model.
            Default: False
        approximate (bool): Only the highest derivative receives noise.
            Default: False
        order_by_dim (bool): State ordering convention (see `constant_derivative_model`).
            Default: False

    Returns:
        torch.Tensor: Process noise covariance
            Shape: ``((order + 1) * dim, (order + 1) * dim)``
    """
    process_std = torch.broadcast_to(torch.as_tensor(process_std), (dim,))
    process_noise = torch.block_diag(
        *(create_process_noise(process_std[k].item(), order, dt, expected_model, approximate) for k in range(dim))
    )
    if not order_by_dim:
        process_noise = interleave(interleave(process_noise, order + 1).T, order + 1).T
    return process_noise.contiguous()


def position_measurement(
    measurement_std: float | torch.Tensor, *, order=1, dim=2, order_by_dim=False
) -> tuple[torch.Tensor, torch.Tensor]:
    """Create the observation model ``(H, R)`` of a sensor measuring the positions only.

    Measurement noise is independent between dimensions.

    Args:
        measurement_std (float | torch.Tensor): Measurement noise standard deviation.
            Approximately 99.7% of measurements fall within ``±3 * measurement_std`` of the true value.
            Shape: broadcastable to ``(dim,)``
        order (int): Highest derivative order included in the state.
            Default: 1
        dim (int): Number of independent spatial dimensions.
            Default: 2
        order_by_dim (bool): State ordering convention (see `constant_derivative_model`).
            Default: False

    Returns:
        torch.Tensor: Observation model ``H``
            Shape: ``(dim, (order + 1) * dim)``
        torch.Tensor: Observation noise ``R``
            Shape: ``(dim, dim)``
    """
    measurement_std = torch.broadcast_to(torch.as_tensor(measurement_std, dtype=torch.float64), (dim,))

    measurement_matrix = torch.eye(dim, (order + 1) * dim, dtype=torch.float64)
    if order_by_dim:
        measurement_matrix = interleave(measurement_matrix.T, dim).T

    return measurement_matrix.contiguous(), torch.diag(measurement_std**2)


def constant_kalman_filter(  # noqa: PLR0913
    process_std: float | torch.Tensor,
    initial_state: torch.Tensor,
    initial_covariance: torch.Tensor,
    initial_timestamp: float | None = None,
    *,
    dim=2,
    order=1,
    dt=1.0,
    expected_model=False,
    approximate=False,
    order_by_dim=False,
    **kwargs,
) -> KalmanFilter:
    """Create a constant-derivative Kalman filter.

    The transition follows the elapsed time between predictions, while the process noise
    is computed for the nominal time step ``dt``. There is no control input.

    Example:
    ```python
        # Constant velocity in 2d: state is (x, y, x', y')
        kf = constant_kalman_filter(0.5, torch.zeros(4, 1), torch.eye(4) * 10, initial_timestamp=0.0)
        measurement_matrix, measurement_noise = position_measurement(1.0)

        kf.predict(0.7)
        kf.update(torch.tensor([[1.0], [2.0]]), measurement_matrix, measurement_noise)
    ```

    Args:
        process_std (float | torch.Tensor): Process noise standard deviation.
            Shape: broadcastable to ``(dim,)``
        initial_state (torch.Tensor): Initial state estimate.
            Shape: ``((order + 1) * dim, 1)``
        initial_covariance (torch.Tensor): Initial error covariance.
            Shape: ``((order + 1) * dim, (order + 1) * dim)``
        initial_timestamp (float | None): Time of the initial belief.
            Default: None (current unix time)
        dim (int): Number of independent spatial dimensions.
            Default: 2
        order (int): Highest derivative order included in the state.
            Default: 1 (constant velocity)
        dt (float): Nominal time step used for the process noise.
            Default: 1.0
        expected_model (bool): Use the zero-mean (order+1)-th derivative noise model.
            Default: False
        approximate (bool): Use a first-order approximation of the model.
            Default: False
        order_by_dim (bool): State ordering convention (see `constant_derivative_model`).
            Default: False
        **kwargs: Configuration forwarded to `KalmanFilter` (covariance_update, dtype, ...).

    Returns:
        KalmanFilter: Filter configured for constant velocity/acceleration/jerk models.
    """
    return KalmanFilter(
        constant_derivative_model(order, dim, approximate, order_by_dim),
        None,
        constant_derivative_noise(
            process_std,
            order=order,
            dim=dim,
            dt=dt,
            expected_model=expected_model,
            approximate=approximate,
            order_by_dim=order_by_dim,
        ),
        initial_state,
        initial_covariance,
        initial_timestamp,
        **kwargs,
    )
