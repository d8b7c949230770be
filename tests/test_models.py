import pytest
import torch

from timed_kf import KalmanFilter
from timed_kf.models import (
    constant_derivative_model,
    constant_derivative_noise,
    constant_kalman_filter,
    create_process_matrix,
    create_process_noise,
    interleave,
    position_measurement,
)


def test_interleave_matches_expected():
    x = torch.tensor([[1, 1], [2, 2], [3, 3], [4, 4], [5, 5], [6, 6], [7, 7], [8, 8], [9, 9]])
    y = interleave(x, 3)
    expected = torch.tensor([[1, 1], [4, 4], [7, 7], [2, 2], [5, 5], [8, 8], [3, 3], [6, 6], [9, 9]])
    assert torch.equal(y, expected)


def test_create_process_matrix_order1_dt1():
    process_matrix = create_process_matrix(order=1, dt=1.0)
    expected = torch.tensor([[1.0, 1.0], [0.0, 1.0]], dtype=torch.float64)
    assert torch.allclose(process_matrix, expected)


def test_create_process_matrix_order2_dt05():
    process_matrix = create_process_matrix(order=2, dt=0.5)
    expected = torch.tensor(
        [
            [1.0, 0.5, 0.125],
            [0.0, 1.0, 0.5],
            [0.0, 0.0, 1.0],
        ],
        dtype=torch.float64,
    )
    assert torch.allclose(process_matrix, expected)


def test_create_process_matrix_approximate_drops_higher_terms():
    process_matrix = create_process_matrix(order=2, dt=0.5, approximate=True)
    expected = torch.tensor(
        [
            [1.0, 0.5, 0.0],
            [0.0, 1.0, 0.5],
            [0.0, 0.0, 1.0],
        ],
        dtype=torch.float64,
    )
    assert torch.allclose(process_matrix, expected)


def test_create_process_matrix_zero_and_negative_dt():
    assert torch.equal(create_process_matrix(order=2, dt=0.0), torch.eye(3, dtype=torch.float64))

    # Going backward in time inverts the transition
    forward = create_process_matrix(order=2, dt=0.7)
    backward = create_process_matrix(order=2, dt=-0.7)
    assert torch.allclose(forward @ backward, torch.eye(3, dtype=torch.float64))


def test_create_process_noise_shapes_and_symmetry():
    process_noise = create_process_noise(process_std=2.0, order=2, dt=1.0)
    assert process_noise.shape == (3, 3)
    assert torch.allclose(process_noise, process_noise.mT)

    # Eigenvalues should be >= small negative tolerance
    eig = torch.linalg.eigvalsh(process_noise)
    tol = 1e-6
    assert torch.all(eig > -tol)


def test_create_process_noise_order_3():
    process_noise = create_process_noise(process_std=1.5, order=3, dt=1.0)

    expected = torch.tensor(
        [
            [0.0625, 0.1875, 0.3750, 0.3750],
            [0.1875, 0.5625, 1.1250, 1.1250],
            [0.3750, 1.1250, 2.2500, 2.2500],
            [0.3750, 1.1250, 2.2500, 2.2500],
        ],
        dtype=torch.float64,
    )

    assert torch.allclose(process_noise, expected)


def test_create_process_noise_expected_model():
    process_noise = create_process_noise(process_std=1.0, order=5, dt=0.5, expected_model=False)
    process_noise_expected = create_process_noise(process_std=1.0, order=5, dt=0.5, expected_model=True)

    # One can show that the expected model has an offset of 1 in the resulting noises
    assert torch.allclose(process_noise[:-1, :-1], process_noise_expected[1:, 1:])


@pytest.mark.parametrize(
    ("process_std", "order", "dt", "expected"),
    [
        (1.0, 3, 1.0, False),
        (1.0, 3, 0.5, True),
        (5.0, 2, 0.5, True),
        (0.2, 0, 2.0, False),
    ],
)
def test_create_process_noise_approximate(process_std: float, order: int, dt: float, expected: bool):
    process_noise = create_process_noise(
        process_std=process_std, order=order, dt=dt, expected_model=expected, approximate=True
    )
    assert process_noise[-1, -1] == pytest.approx(process_std**2 * (dt**2 if expected else 1))
    process_noise[-1, -1] = 0

    assert (process_noise == 0).all()


def test_constant_derivative_model_default_ordering():
    transition_model = constant_derivative_model(order=1, dim=2)

    expected = torch.tensor(
        [
            # x, y, dx, dy
            [1.0, 0.0, 0.5, 0.0],
            [0.0, 1.0, 0.0, 0.5],
            [0.0, 0.0, 1.0, 0.0],
            [0.0, 0.0, 0.0, 1.0],
        ],
        dtype=torch.float64,
    )
    assert torch.allclose(transition_model(0.5), expected)


def test_constant_derivative_model_order_by_dim():
    transition_model = constant_derivative_model(order=1, dim=2, order_by_dim=True)

    expected = torch.tensor(
        [
            # x, dx, y, dy
            [1.0, 2.0, 0.0, 0.0],
            [0.0, 1.0, 0.0, 0.0],
            [0.0, 0.0, 1.0, 2.0],
            [0.0, 0.0, 0.0, 1.0],
        ],
        dtype=torch.float64,
    )
    assert torch.allclose(transition_model(2.0), expected)


def test_constant_derivative_noise_layout():
    noise = constant_derivative_noise(torch.tensor([1.0, 2.0]), order=1, dim=2, order_by_dim=True)
    noise_by_order = constant_derivative_noise(torch.tensor([1.0, 2.0]), order=1, dim=2)

    assert noise.shape == noise_by_order.shape == (4, 4)
    assert torch.allclose(noise[:2, :2], create_process_noise(1.0, 1))
    assert torch.allclose(noise[2:, 2:], create_process_noise(2.0, 1))
    assert torch.allclose(noise_by_order, interleave(interleave(noise, 2).T, 2).T)


def test_position_measurement():
    measurement_matrix, measurement_noise = position_measurement(torch.tensor([1.0, 3.0]), order=1, dim=2)

    assert (
        measurement_matrix
        == torch.tensor(
            [
                # x, y, dx, dy
                [1, 0, 0, 0],
                [0, 1, 0, 0],
            ]
        )
    ).all()
    assert torch.allclose(measurement_noise, torch.diag(torch.tensor([1.0, 9.0], dtype=torch.float64)))

    measurement_matrix, _ = position_measurement(3.0, order=2, dim=3, order_by_dim=True)

    assert (
        measurement_matrix
        == torch.tensor(
            [
                # x,dx,ddx,y,dy,ddy,z,dz,ddz
                [1, 0, 0, 0, 0, 0, 0, 0, 0],
                [0, 0, 0, 1, 0, 0, 0, 0, 0],
                [0, 0, 0, 0, 0, 0, 1, 0, 0],
            ]
        )
    ).all()


def test_constant_kalman_filter_shapes():
    kf = constant_kalman_filter(1.5, torch.zeros(6, 1), torch.eye(6), 0.0, dim=3, order=1)

    assert isinstance(kf, KalmanFilter)
    assert kf.state_dim == 6
    assert kf.control_dim == 6
    assert kf.process_noise.shape == (6, 6)


def test_constant_kalman_filter_tracks_constant_velocity():
    kf = constant_kalman_filter(
        1e-3, torch.zeros(2, 1), torch.eye(2) * 100, 0.0, dim=1, order=1, covariance_update="joseph"
    )
    measurement_matrix, measurement_noise = position_measurement(0.01, order=1, dim=1)

    # Irregular sampling of x(t) = 2 t + 1
    for timestamp in (0.3, 0.5, 1.4, 1.5, 2.9, 3.0, 4.7, 6.1):
        kf.predict(timestamp)
        kf.update(2 * timestamp + 1, measurement_matrix, measurement_noise.item())

    assert torch.allclose(kf.state_estimate, torch.tensor([[13.2], [2.0]], dtype=torch.float64), atol=5e-2)
