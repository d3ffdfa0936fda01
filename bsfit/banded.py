from numpy import ndarray, zeros, add, sqrt
from numpy.linalg import LinAlgError
from scipy.linalg import cholesky_banded, cho_solve_banded

# half-bandwidth of the normal equations for a cubic basis
BANDWIDTH = 3


def accumulate_outer_products(n: int, start: ndarray, values: ndarray) -> ndarray:
    """
    Builds the symmetric banded matrix formed by summing, for every sample,
    the outer product of its local basis vector with itself.

    The result uses the upper-form band storage expected by ``scipy.linalg``,
    where ``ab[w + i - j, j] == A[i, j]`` for ``i <= j``.

    :param n: \
        The size of the (square) matrix.

    :param start: \
        For each sample, the index of the first of the consecutive
        coefficients touched by its local basis vector, as a 1D ``numpy.ndarray``.

    :param values: \
        The local basis vectors as a 2D ``numpy.ndarray`` of shape
        ``(start.size, BANDWIDTH + 1)``.

    :return: \
        The band as a 2D ``numpy.ndarray`` of shape ``(BANDWIDTH + 1, n)``.
    """
    assert values.ndim == 2 and values.shape[1] == BANDWIDTH + 1
    assert start.size == values.shape[0]
    ab = zeros([BANDWIDTH + 1, n])
    # add.at is unbuffered, so the samples are summed in their given order
    for p in range(BANDWIDTH + 1):
        for q in range(p, BANDWIDTH + 1):
            add.at(ab, (BANDWIDTH + p - q, start + q), values[:, p] * values[:, q])
    return ab


def accumulate_projection(n: int, start: ndarray, values: ndarray, y: ndarray) -> ndarray:
    """
    Builds the right-hand side of the normal equations by summing, for
    every sample, its local basis vector weighted by the sample value.
    """
    b = zeros(n)
    for p in range(BANDWIDTH + 1):
        add.at(b, start + p, values[:, p] * y)
    return b


def factorize(ab: ndarray, tolerance: float = 1e-10) -> ndarray:
    """
    Computes the banded Cholesky factor of a symmetric positive-definite
    matrix in upper-form band storage.

    :param ab: \
        The matrix in upper-form band storage.

    :param tolerance: \
        Pivots whose square falls below ``tolerance`` times the largest diagonal
        element of the matrix are treated as zero, and the matrix as singular.

    :return: \
        The upper-form band of the Cholesky factor.
    """
    factor = cholesky_banded(ab, lower=False)
    pivots = factor[BANDWIDTH, :]
    threshold = sqrt(tolerance * ab[BANDWIDTH, :].max())
    if not (pivots > threshold).all():
        raise LinAlgError(
            f"""\n
            [ factorize error ]
            >> The smallest pivot of the factorization ({pivots.min():.3e}) is below
            >> the singularity threshold ({threshold:.3e}).
            """
        )
    return factor


def solve(factor: ndarray, b: ndarray) -> ndarray:
    return cho_solve_banded((factor, False), b)


def band_to_dense(ab: ndarray) -> ndarray:
    """
    Expands a symmetric matrix in upper-form band storage to a full 2D array.
    """
    w = ab.shape[0] - 1
    n = ab.shape[1]
    A = zeros([n, n])
    for k in range(w + 1):
        d = ab[w - k, k:]
        A[range(n - k), range(k, n)] = d
        A[range(k, n), range(n - k)] = d
    return A
