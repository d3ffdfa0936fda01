from numpy import arange, array, zeros
from numpy.linalg import LinAlgError, solve as dense_solve
from numpy.random import default_rng
import pytest

from bsfit.banded import BANDWIDTH, accumulate_outer_products, accumulate_projection
from bsfit.banded import band_to_dense, factorize, solve


def build_test_system(n=10, n_samples=60, seed=8):
    rng = default_rng(seed)
    start = rng.integers(0, n - BANDWIDTH, size=n_samples)
    # make sure every coefficient is touched
    start[: n - BANDWIDTH] = arange(n - BANDWIDTH)
    values = rng.uniform(0.1, 1.0, size=(n_samples, BANDWIDTH + 1))
    y = rng.normal(size=n_samples)
    return start, values, y


def dense_system(n, start, values, y):
    A = zeros([n, n])
    b = zeros(n)
    for s, v, y_i in zip(start, values, y):
        A[s : s + BANDWIDTH + 1, s : s + BANDWIDTH + 1] += v[:, None] * v[None, :]
        b[s : s + BANDWIDTH + 1] += y_i * v
    return A, b


def test_accumulation():
    n = 10
    start, values, y = build_test_system(n)
    A, b = dense_system(n, start, values, y)

    ab = accumulate_outer_products(n, start, values)
    assert ab.shape == (BANDWIDTH + 1, n)
    assert abs(band_to_dense(ab) - A).max() < 1e-12
    assert abs(accumulate_projection(n, start, values, y) - b).max() < 1e-12


def test_factorize_and_solve():
    n = 10
    start, values, y = build_test_system(n)
    A, b = dense_system(n, start, values, y)
    factor = factorize(accumulate_outer_products(n, start, values))
    x = solve(factor, b)
    assert abs(x - dense_solve(A, b)).max() < 1e-8 * abs(x).max()


def test_factorize_singular():
    # coefficients beyond the first four are never touched by the samples
    start = array([0, 0, 0])
    values = default_rng(1).uniform(size=(3, BANDWIDTH + 1))
    with pytest.raises(LinAlgError):
        factorize(accumulate_outer_products(6, start, values))


def test_factorize_rank_deficient():
    # three samples cannot determine four coefficients
    start = array([0, 0, 0])
    values = default_rng(2).uniform(size=(3, BANDWIDTH + 1))
    with pytest.raises(LinAlgError):
        factorize(accumulate_outer_products(4, start, values))


def test_band_to_dense_symmetric():
    start, values, y = build_test_system()
    A = band_to_dense(accumulate_outer_products(10, start, values))
    assert (A == A.T).all()
