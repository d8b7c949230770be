import torch

from timed_kf import GaussianState


def _spd_matrix(dim: int, batch: tuple[int, ...] = ()) -> torch.Tensor:
    # Construct a symmetric positive definite covariance.
    cov = torch.randn(*batch, dim, dim)
    return cov @ cov.mT + 1e-2 * torch.eye(dim)


def test_clone_is_deep_copy():
    mean = torch.randn(4, 1)
    cov = _spd_matrix(4)
    precision = cov.inverse()

    s = GaussianState(mean, cov, precision)
    c = s.clone()

    assert c is not s
    assert c.precision is not None
    assert s.precision is not None
    assert torch.allclose(c.mean, s.mean)
    assert torch.allclose(c.covariance, s.covariance)
    assert torch.allclose(c.precision, s.precision)

    # Mutate original, clone must not change
    s.mean.add_(1.0)
    s.covariance.mul_(2.0)
    assert not torch.allclose(c.mean, s.mean)
    assert not torch.allclose(c.covariance, s.covariance)


def test_to_dtype():
    s = GaussianState(torch.randn(3, 1), _spd_matrix(3))

    s64 = s.to(torch.float64)
    assert s64.mean.dtype == torch.float64
    assert s64.covariance.dtype == torch.float64
    assert s64.precision is None

    s64.precision = s64.covariance.inverse()

    s32 = s64.to(torch.float32)
    assert s32.mean.dtype == torch.float32
    assert s32.covariance.dtype == torch.float32
    assert s32.precision is not None
    assert s32.precision.dtype == torch.float32


def test_mahalanobis_matches_manual():
    dim = 4
    cov = _spd_matrix(dim)
    mean = torch.randn(dim, 1)
    s = GaussianState(mean, cov)

    x = torch.randn(dim, 1)
    maha = s.mahalanobis(x)

    # Manual: (x-mean)^T inv(cov) (x-mean)
    diff = mean - x
    inv = cov.inverse()
    manual = (diff.mT @ inv @ diff)[0, 0].sqrt()
    assert torch.allclose(maha, manual)
    assert s.precision is not None  # Computed lazily and stored


def test_mahalanobis_specific():
    mean = torch.zeros((3, 1, 1))
    measure = torch.tensor([1.0, 2.0, 10.0]).reshape(3, 1, 1)
    cov = torch.tensor([1.0, 4.0, 5.0]).reshape(3, 1, 1) ** 2

    expected = torch.tensor([1.0, 0.5, 2.0]).reshape(3)

    predicted = GaussianState(mean, cov).mahalanobis(measure)

    assert torch.allclose(predicted, expected)


def test_log_likelihood_specific():
    s = GaussianState(torch.zeros(1, 1), torch.ones(1, 1))

    # Standard normal density at 0
    assert torch.allclose(s.likelihood(torch.zeros(1, 1)), (2 * torch.tensor(torch.pi)).rsqrt())


def test_log_likelihood_consistency():
    s = GaussianState(torch.zeros(3, 1), _spd_matrix(3))
    x = torch.randn(3, 1)

    ll = s.log_likelihood(x)
    p = s.likelihood(x)

    assert torch.allclose(p.log(), ll, atol=1e-5, rtol=1e-5)
    assert torch.isfinite(ll)
    assert p > 0
