import logging
from enum import IntEnum
from numpy import arange, array, asarray, clip, floor, isfinite, linspace, nan
from numpy import ndarray, stack, zeros
from numpy.linalg import LinAlgError

from bsfit.banded import BANDWIDTH, accumulate_outer_products, factorize
from bsfit.debug import resolve_debug
from bsfit.status import FitStatus, format_message

log = logging.getLogger(__name__)

# a cubic needs 4 coefficients per interval, and so at least 4 nodes
MINIMUM_NODES = 4
MINIMUM_POINTS = 4


class BoundaryCondition(IntEnum):
    """
    The constraint applied to the fitted curve at both ends of the domain.
    The integer values are the order of the derivative which is set to zero.
    """

    ZERO_ENDPOINTS = 0
    ZERO_FIRST_DERIVATIVE = 1
    ZERO_SECOND_DERIVATIVE = 2


# The basis function centred one node beyond each end of the domain is folded
# into the two nearest coefficients with these weights, which forces the
# corresponding derivative of every curve in the basis to be zero at that end.
boundary_weights = {
    BoundaryCondition.ZERO_ENDPOINTS: (-4.0, -1.0),
    BoundaryCondition.ZERO_FIRST_DERIVATIVE: (0.0, 1.0),
    BoundaryCondition.ZERO_SECOND_DERIVATIVE: (2.0, -1.0),
}


def cubic_segment_basis(u: ndarray, derivative=0) -> ndarray:
    """
    Evaluates the four uniform cubic b-splines which are non-zero on a single
    node interval.

    :param u: \
        The position within the interval, scaled so the interval spans ``[0, 1]``,
        as a 1D ``numpy.ndarray``.

    :param derivative: \
        The order of the derivative with respect to ``u`` to evaluate (0, 1 or 2).

    :return: \
        The basis values as a 2D ``numpy.ndarray`` of shape ``(u.size, 4)``, where
        column ``k`` is the function centred on the ``k - 1``'th node relative to
        the left edge of the interval.
    """
    v = 1 - u
    if derivative == 0:
        return stack(
            [v**3, 3 * u**3 - 6 * u**2 + 4, -3 * u**3 + 3 * u**2 + 3 * u + 1, u**3],
            axis=1,
        ) / 6
    elif derivative == 1:
        return stack([-v**2, 3 * u**2 - 4 * u, -3 * u**2 + 2 * u + 1, u**2], axis=1) / 2
    elif derivative == 2:
        return stack([v, 3 * u - 2, 1 - 3 * u, u], axis=1)
    raise ValueError(
        format_message(
            "cubic_segment_basis",
            f"The 'derivative' argument must be 0, 1 or 2, but was given as {derivative}.",
        )
    )


def select_node_intervals(span: float, n_points: int, wavelength: float):
    """
    Chooses the number of node intervals for a given smoothing wavelength.

    The number of intervals is first increased until there are at least two
    intervals per wavelength. It is then increased further until there are at
    least four intervals per wavelength and no more than two samples per node,
    but never to the point where there would be fewer than one sample per node
    or more than fifteen intervals per wavelength.

    :param span: \
        The width of the domain.

    :param n_points: \
        The number of samples in the domain.

    :param wavelength: \
        The smoothing wavelength.

    :return: \
        The number of node intervals, or ``None`` if the samples are too sparse
        to support the requested wavelength.
    """

    def ratios(intervals: int) -> tuple[float, float]:
        return wavelength * intervals / span, n_points / (intervals + 1)

    intervals = 1
    while True:
        intervals += 1
        per_wavelength, per_node = ratios(intervals)
        if per_node < 1.0:
            return None
        if per_wavelength >= 2.0:
            break

    while True:
        per_wavelength, per_node = ratios(intervals + 1)
        if per_node < 1.0 or per_wavelength > 15.0:
            break
        intervals += 1
        if per_wavelength >= 4.0 and per_node <= 2.0:
            break

    return max(intervals, MINIMUM_NODES - 1)


def float_array(values) -> ndarray:
    """
    Converts the given values to a float array, giving an empty array if
    they are not numeric.
    """
    try:
        return array(values, dtype=float)
    except (TypeError, ValueError):
        return zeros(0)


class SplineBasis:
    """
    A uniform cubic b-spline basis spanning a set of abscissas, together with
    the factorized least-squares normal equations for fitting curves in that
    basis. The factorization is computed once, and is shared by every
    ``SplineFit`` built from the basis.

    Construction never raises for invalid inputs. Instead, the outcome is
    recorded in the ``status`` and ``message`` attributes, and should be checked
    using ``is_valid()`` before the basis is used.

    :param x: \
        The abscissas of the data as a 1D ``numpy.ndarray``. The values need not
        be sorted or evenly spaced, but must be finite.

    :param wavelength: \
        The smoothing wavelength, which sets the node spacing so that the basis
        cannot represent structure much finer than the wavelength. Exactly one
        of ``wavelength`` and ``nodes`` must be given.

    :param nodes: \
        The number of evenly spaced nodes spanning the domain, as an alternative
        to specifying ``wavelength``.

    :param boundary_condition: \
        A ``BoundaryCondition`` selecting which derivative of the curve is
        constrained to zero at both ends of the domain. The default is
        ``BoundaryCondition.ZERO_SECOND_DERIVATIVE``.

    :param debug: \
        Whether setup diagnostics are reported via ``logging``. If not given,
        the process-wide setting from ``bsfit.set_debug`` is used.
    """

    def __init__(
        self,
        x: ndarray,
        wavelength: float = None,
        nodes: int = None,
        boundary_condition=BoundaryCondition.ZERO_SECOND_DERIVATIVE,
        debug: bool = None,
    ):
        self.x = float_array(x)
        self.x.flags.writeable = False
        self.wavelength = wavelength
        self.requested_nodes = nodes
        self.boundary_condition = boundary_condition
        self.debug = resolve_debug(debug)

        self.status = FitStatus.SUCCESS
        self.message = ""
        self.xmin = nan
        self.xmax = nan
        self.intervals = 0
        self.node_spacing = nan
        self.normal_matrix = None
        self.factor = None
        self._start = None
        self._values = None

        self._setup()

    def _setup(self):
        if not self._check_inputs():
            return

        self.node_spacing = (self.xmax - self.xmin) / self.intervals
        self._report(
            f"domain {self.xmin} -> {self.xmax} with {self.x.size} points, "
            f"{self.intervals + 1} nodes at spacing {self.node_spacing}, "
            f"boundary condition {self.boundary_condition.name}"
        )

        # the local basis at the abscissas is kept for building right-hand sides
        self._start, self._values = self.basis_functions(self.x)
        self._start.flags.writeable = False
        self._values.flags.writeable = False
        self.normal_matrix = accumulate_outer_products(
            self.coefficient_count(), self._start, self._values
        )
        self.normal_matrix.flags.writeable = False

        try:
            self.factor = factorize(self.normal_matrix)
        except LinAlgError:
            self._fail(
                FitStatus.NUMERICAL_FAILURE,
                "The normal equations are not positive-definite, which typically means",
                "the data are too sparse for the chosen wavelength or number of nodes.",
            )
            return
        self._report(
            f"factorized {self.coefficient_count()} x {self.coefficient_count()} "
            f"normal equations with half-bandwidth {BANDWIDTH}"
        )

    def _check_inputs(self) -> bool:
        try:
            self.boundary_condition = BoundaryCondition(self.boundary_condition)
        except ValueError:
            return self._fail(
                FitStatus.CONFIGURATION_ERROR,
                f"The 'boundary_condition' argument must be one of {[b.name for b in BoundaryCondition]},",
                f"but was given as {self.boundary_condition}.",
            )

        if self.x.ndim != 1 or self.x.size < MINIMUM_POINTS:
            return self._fail(
                FitStatus.CONFIGURATION_ERROR,
                f"The 'x' argument must be a 1D array of at least {MINIMUM_POINTS} numeric values.",
            )

        if not isfinite(self.x).all():
            return self._fail(
                FitStatus.CONFIGURATION_ERROR,
                "The 'x' argument contains non-finite values.",
            )

        self.xmin, self.xmax = float(self.x.min()), float(self.x.max())
        span = self.xmax - self.xmin
        if not span > 0.0:
            return self._fail(
                FitStatus.CONFIGURATION_ERROR,
                "The values given in the 'x' argument must span a range greater than zero.",
            )

        if (self.wavelength is None) == (self.requested_nodes is None):
            return self._fail(
                FitStatus.CONFIGURATION_ERROR,
                "Exactly one of the 'wavelength' and 'nodes' arguments must be specified.",
            )

        if self.requested_nodes is not None:
            try:
                integral = int(self.requested_nodes) == self.requested_nodes
            except (TypeError, ValueError, OverflowError):
                integral = False
            if not integral:
                return self._fail(
                    FitStatus.CONFIGURATION_ERROR,
                    f"The 'nodes' argument must be an integer, but was given as {self.requested_nodes!r}.",
                )
            if self.requested_nodes < MINIMUM_NODES:
                return self._fail(
                    FitStatus.CONFIGURATION_ERROR,
                    f"The 'nodes' argument must be at least {MINIMUM_NODES}, but was",
                    f"given as {self.requested_nodes}.",
                )
            self.intervals = int(self.requested_nodes) - 1
            return True

        try:
            self.wavelength = float(self.wavelength)
        except (TypeError, ValueError):
            return self._fail(
                FitStatus.CONFIGURATION_ERROR,
                f"The 'wavelength' argument must be a number, but was given as {self.wavelength!r}.",
            )
        if not (isfinite(self.wavelength) and self.wavelength > 0.0):
            return self._fail(
                FitStatus.CONFIGURATION_ERROR,
                f"The 'wavelength' argument must be finite and greater than zero, but",
                f"was given as {self.wavelength}.",
            )

        intervals = select_node_intervals(span, self.x.size, self.wavelength)
        if intervals is None:
            return self._fail(
                FitStatus.CONFIGURATION_ERROR,
                f"There are too few points ({self.x.size}) to resolve the given",
                f"wavelength ({self.wavelength}) over the range of 'x' ({span}).",
            )
        self.intervals = intervals
        return True

    def _fail(self, status: FitStatus, *lines: str) -> bool:
        self.status = status
        self.message = format_message("SplineBasis", *lines)
        self._report(f"setup failed with {status.value}: {' '.join(lines)}")
        return False

    def _report(self, text: str):
        if self.debug:
            log.info("[ SplineBasis ] %s", text)

    def is_valid(self) -> bool:
        """
        Returns ``True`` if the basis was set up successfully and its normal
        equations have been factorized.
        """
        return self.status.ok and self.factor is not None

    def coefficient_count(self) -> int:
        """
        The number of basis functions, which is also the size of the coefficient
        vector of any curve fitted using this basis.
        """
        return self.intervals + 1 if self.intervals > 0 else 0

    def domain_bounds(self) -> tuple[float, float]:
        return self.xmin, self.xmax

    @property
    def nodes(self) -> ndarray:
        """
        The positions of the nodes, which are the centres of the basis functions.
        """
        return linspace(self.xmin, self.xmax, self.intervals + 1)

    @property
    def knots(self) -> ndarray:
        """
        The full knot sequence of the cubic b-splines, including the three knots
        beyond each end of the domain needed to support the boundary basis functions.
        """
        return self.xmin + self.node_spacing * arange(-3, self.intervals + 4)

    def basis_functions(self, x: ndarray, derivative=0) -> tuple[ndarray, ndarray]:
        """
        Evaluates the basis functions which are non-zero at each of the given points.
        Each point lies in the support of exactly four consecutive basis functions.

        :param x: \
            The points at which the basis is evaluated, as a 1D ``numpy.ndarray``.
            Points outside the domain give the polynomial continuation of the
            nearest interval.

        :param derivative: \
            The order of the derivative with respect to ``x`` to evaluate (0, 1 or 2).

        :return: \
            The index of the first of the four basis functions for each point, as
            a 1D ``numpy.ndarray`` of integers, and the values of the four basis
            functions as a 2D ``numpy.ndarray`` of shape ``(x.size, 4)``.
        """
        x = asarray(x, dtype=float)
        M = self.intervals
        t = (x - self.xmin) / self.node_spacing
        # the interval containing each point, where the last node closes the last interval
        interval = clip(floor(t), 0, M - 1).astype(int)
        local = cubic_segment_basis(t - interval, derivative)
        if derivative > 0:
            local /= self.node_spacing**derivative

        start = clip(interval - 1, 0, M - 3)
        values = zeros([x.size, BANDWIDTH + 1])
        weights = boundary_weights[self.boundary_condition]
        rows = arange(x.size)
        for k in range(BANDWIDTH + 1):
            # column k belongs to the basis function centred on node (interval + k - 1)
            node = interval + k - 1
            inner = (node >= 0) & (node <= M)
            values[rows[inner], (node - start)[inner]] += local[inner, k]

            left = node == -1
            values[left, 0] += weights[0] * local[left, k]
            values[left, 1] += weights[1] * local[left, k]

            right = node == M + 1
            values[right, 2] += weights[1] * local[right, k]
            values[right, 3] += weights[0] * local[right, k]
        return start, values

    def design_matrix(self, x: ndarray, derivative=0) -> ndarray:
        """
        Builds the dense matrix of basis function values, where element
        :math:`i, j` is the :math:`j`'th basis function evaluated at the
        :math:`i`'th point.
        """
        x = asarray(x, dtype=float)
        start, values = self.basis_functions(x, derivative)
        D = zeros([x.size, self.coefficient_count()])
        rows = arange(x.size)
        for k in range(BANDWIDTH + 1):
            D[rows, start + k] = values[:, k]
        return D

    def fit(self, y: ndarray, debug: bool = None):
        """
        Fits a curve to the given ordinates, which must be aligned with
        the abscissas of the basis.

        :return: \
            The fitted curve as an instance of ``SplineFit``.
        """
        from bsfit.fit import SplineFit

        return SplineFit(self, y, debug=debug)

    def fit_many(self, ys, debug: bool = None) -> list:
        """
        Fits a separate curve to each of the given ordinate arrays, re-using
        the factorized normal equations for all of them.
        """
        return [self.fit(y, debug=debug) for y in ys]

    def __str__(self):
        return f"""\n
        \r[ SplineBasis object ]
        \r>>             status: {self.status.value}
        \r>>             domain: {self.xmin} -> {self.xmax}
        \r>>             points: {self.x.size}
        \r>>              nodes: {self.intervals + 1 if self.intervals > 0 else 0}
        \r>>       node spacing: {self.node_spacing}
        \r>> boundary condition: {getattr(self.boundary_condition, "name", self.boundary_condition)}
        """
