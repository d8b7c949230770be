"""Example filtering sinusoidal data observed at irregular times"""

import argparse
import logging
from typing import Tuple

import matplotlib.pyplot as plt
import torch

from timed_kf import NumericalError
from timed_kf.models import constant_kalman_filter, position_measurement


def generate_data(n: int, w0: float, noise: float, amplitude: float) -> Tuple[torch.Tensor, torch.Tensor, torch.Tensor]:
    """Generate sinusoidal data at random times:

    t_k = t_{k-1} + dt_k, dt_k ~ Exp(1)
    x(t) = A sin(w0t)
    z(t) = x(t) + noise * N(0, 1)

    Args:
        n (int): Size of the sequence to generate
        w0 (float): Angular frequency
        noise (float): Gaussian noise standard deviation
        amplitude (float): Amplitude A of the sinus

    Returns:
        torch.Tensor: Timestamps of the observations
            Shape: (T,)
        torch.Tensor: x(t) state of the system
            Shape: (T,)
        torch.Tensor: z(t) measure for each state
            Shape: (T,)
    """
    t = torch.distributions.Exponential(1.0).sample((n,)).cumsum(0).to(torch.float64)
    x = amplitude * torch.sin(w0 * t)
    return t, x, x + noise * torch.randn_like(x)


def main(order: int, n: int, measurement_std: float, amplitude: float, nans: bool):
    # Let's do 2 full periods of sinus (The mean time step is 1.0)
    w0 = 4 * torch.pi / n

    # Process noise: a fifth of the amplitude of the order-th derivative (A w0^order), scaled by 1 / order!
    process_std = amplitude * w0 ** (order + 0.5 * (order == 0)) / torch.prod(torch.arange(1, order + 1)) / 5
    process_std = max(process_std.item(), 1e-7)  # Prevent floating errors

    logging.info("Kalman order: %d", order)
    logging.info("Measurement noise: %s", measurement_std)
    logging.info("Process noise: %s", process_std)
    logging.info("Using w0=%s for %d points sampled at irregular times", w0, n)

    t, x, z = generate_data(n, w0, measurement_std, amplitude)
    if nans:
        z[n // 2 : n // 2 + n // 20] = torch.nan  # Create nan measures in the middle

    # Let's create an unkown initial state
    # Set estimation at 0, with a std of amplitude * 3
    state_dim = order + 1
    kf = constant_kalman_filter(
        process_std,
        torch.zeros(state_dim, 1),
        torch.diag(torch.tensor([amplitude * w0**k * 3 for k in range(state_dim)]) ** 2),
        initial_timestamp=0.0,
        dim=1,
        order=order,
    )
    measurement_matrix, measurement_noise = position_measurement(measurement_std, order=order, dim=1)

    try:
        states = kf.filter(t, z, measurement_matrix, measurement_noise, return_all=True)
    except NumericalError:
        logging.exception("The filter diverged")
        raise

    logging.info("Filtering MSE: %s", (states.mean[:, 0, 0] - x).pow(2).mean().item())

    plt.rcParams["font.size"] = 20

    plt.figure(figsize=(24, 16))
    plt.plot(t, x, color="k", label="True trajectory - x = A sin(w0 t)")
    plt.plot(t, states.mean[:, 0, 0], color="y", label="Filtered trajectory")
    plt.plot(t, z, "o", color="r", markersize=2.0, label="Observerd trajectory - z = x + noise * N(0, 1)")

    mini = states.mean[:, 0, 0] - 3 * states.covariance[:, 0, 0].sqrt()
    maxi = states.mean[:, 0, 0] + 3 * states.covariance[:, 0, 0].sqrt()
    plt.fill_between(t, mini, maxi, color="y", alpha=0.5)

    plt.ylim(-amplitude * 1.4, amplitude * 1.4)

    plt.xlabel("t")
    plt.ylabel("x")

    plt.legend(loc="upper right")

    if order > 0:
        plt.figure(figsize=(24, 16))
        plt.plot(t, amplitude * w0 * torch.cos(w0 * t), color="k", label="True velocity - v = A w0 cos(w0 t)")
        plt.plot(t, states.mean[:, 1, 0], color="y", label="Estimated velocity (Filtering)")

        mini = states.mean[:, 1, 0] - 3 * states.covariance[:, 1, 1].sqrt()
        maxi = states.mean[:, 1, 0] + 3 * states.covariance[:, 1, 1].sqrt()
        plt.fill_between(t, mini, maxi, color="y", alpha=0.5)

        plt.ylim(-amplitude * w0 * 1.4, amplitude * w0 * 1.4)

        plt.xlabel("t")
        plt.ylabel("v")

        plt.legend(loc="upper right")

    plt.show()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Kalman filter example, filtering a noisy sinus sampled irregularly")
    parser.add_argument(
        "--order",
        default=2,
        type=int,
        help="Order of the kalman filter (estimate derivative up to order to predict next pos)",
    )
    parser.add_argument("--noise", default=2.0, type=float, help="Observation noise")
    parser.add_argument("--amplitude", default=20, type=int, help="Amplitude of the signal")
    parser.add_argument("--n", default=500, type=int, help="Number of points")
    parser.add_argument("--nans", action="store_true", help="Some state will not be measured")
    parser.add_argument("--verbose", action="store_true", help="Log every prediction and update")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO, format="%(levelname)s--[%(name)s] %(message)s"
    )

    main(args.order, args.n, args.noise, args.amplitude, args.nans)
