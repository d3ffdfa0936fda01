import logging
from matplotlib import pyplot as plt
from numpy import arange, asarray, full, isfinite, linspace, nan, ndarray, ndim

from bsfit.banded import BANDWIDTH, accumulate_projection, solve
from bsfit.basis import SplineBasis, float_array
from bsfit.debug import resolve_debug
from bsfit.status import FitStatus, format_message

log = logging.getLogger(__name__)


class SplineFit:
    """
    A smooth curve fitted by least-squares to a set of ordinates using the
    cubic b-spline basis of a ``SplineBasis``.

    The fit holds a reference to the basis and re-uses its factorized normal
    equations, so any number of fits to different ordinates can be built from
    a single basis without repeating the factorization. The basis must not be
    modified while any fits built from it are in use.

    Evaluating the curve or its derivatives outside the domain of the basis,
    or on a fit for which ``ok()`` is ``False``, gives ``nan``.

    :param basis: \
        An instance of ``SplineBasis`` built from the abscissas of the data.

    :param y: \
        The ordinates of the data as a 1D ``numpy.ndarray``, aligned with
        the abscissas used to build the basis.

    :param debug: \
        Whether setup diagnostics are reported via ``logging``. If not given,
        the process-wide setting from ``bsfit.set_debug`` is used.
    """

    def __init__(self, basis: SplineBasis, y: ndarray, debug: bool = None):
        self.basis = basis
        self.y = float_array(y)
        self.y.flags.writeable = False
        self.debug = resolve_debug(debug)
        self.status = FitStatus.SUCCESS
        self.message = ""
        self.coefficients = None

        if not self.basis.is_valid():
            self._fail(
                FitStatus.USAGE_ERROR,
                "The given SplineBasis is not valid, so no fit can be performed.",
                f"The basis failed with a {self.basis.status.value}.",
            )
        elif self.y.ndim != 1 or self.y.size != self.basis.x.size:
            self._fail(
                FitStatus.CONFIGURATION_ERROR,
                f"The 'y' argument must be a 1D numeric array with the same size as the",
                f"abscissas of the basis ({self.basis.x.size}), but has shape {self.y.shape}.",
            )
        elif not isfinite(self.y).all():
            self._fail(
                FitStatus.CONFIGURATION_ERROR,
                "The 'y' argument contains non-finite values.",
            )
        else:
            self._solve()

    def _solve(self):
        b = accumulate_projection(
            self.basis.coefficient_count(), self.basis._start, self.basis._values, self.y
        )
        coefficients = solve(self.basis.factor, b)
        if not isfinite(coefficients).all():
            self._fail(
                FitStatus.NUMERICAL_FAILURE,
                "The solution of the normal equations contains non-finite values.",
            )
            return
        coefficients.flags.writeable = False
        self.coefficients = coefficients
        if self.debug:
            log.info(
                "[ SplineFit ] solved for %d coefficients, residual variance %s",
                coefficients.size,
                self.variance(),
            )

    def _fail(self, status: FitStatus, *lines: str):
        self.status = status
        self.message = format_message("SplineFit", *lines)
        if self.debug:
            log.info("[ SplineFit ] fit failed with %s: %s", status.value, " ".join(lines))

    def ok(self) -> bool:
        """
        Returns ``True`` if both the basis and the fit were set up successfully.
        """
        return self.basis.is_valid() and self.status.ok

    def evaluate(self, x):
        """
        Evaluates the fitted curve.

        :param x: \
            The points at which the curve is evaluated, as a float or
            a ``numpy.ndarray``.

        :return: \
            The value of the curve, with the same shape as ``x``.
        """
        return self._combine(x, derivative=0)

    def slope(self, x):
        """
        Evaluates the first derivative of the fitted curve analytically.

        :param x: \
            The points at which the derivative is evaluated, as a float or
            a ``numpy.ndarray``.

        :return: \
            The derivative of the curve, with the same shape as ``x``.
        """
        return self._combine(x, derivative=1)

    def curvature(self, x):
        """
        Evaluates the second derivative of the fitted curve analytically.
        """
        return self._combine(x, derivative=2)

    def _combine(self, x, derivative: int):
        points = asarray(x, dtype=float)
        flat = points.reshape(-1)
        result = full(flat.size, nan)
        if self.ok():
            lower, upper = self.basis.domain_bounds()
            inside = (flat >= lower) & (flat <= upper)
            start, values = self.basis.basis_functions(flat[inside], derivative)
            weights = self.coefficients[start[:, None] + arange(BANDWIDTH + 1)[None, :]]
            result[inside] = (values * weights).sum(axis=1)
        if ndim(x) == 0:
            return float(result[0])
        return result.reshape(points.shape)

    def curve(self) -> tuple[ndarray, ndarray]:
        """
        Returns the positions of the nodes of the basis and the values of
        the fitted curve at those positions.
        """
        nodes = self.basis.nodes
        return nodes, self.evaluate(nodes)

    def residuals(self) -> ndarray:
        """
        The differences between the data ordinates and the fitted curve
        at each of the data abscissas.
        """
        return self.y - self.evaluate(self.basis.x)

    def variance(self) -> float:
        """
        The mean of the squared residuals of the fit.
        """
        return float((self.residuals() ** 2).mean())

    def plot(self, axis=None, color: str = None, points: int = 512):
        """
        Plot the fitted curve together with the data.

        :param axis: \
            A `matplotlib` axis object on which the curve will be plotted.

        :param color: \
            A valid ``matplotlib`` color string which will be used to plot the curve.

        :param points: \
            The number of evenly spaced points at which the curve is drawn.
        """
        if not self.ok():
            raise ValueError(
                format_message(
                    "SplineFit.plot",
                    "The fit was not successful, so the curve cannot be plotted.",
                    f"The fit failed with a {self.status.value}.",
                )
            )

        if axis is None:
            fig = plt.figure()
            ax = fig.add_subplot(1, 1, 1)
        else:
            ax = axis

        col = "blue" if color is None else color
        x_curve = linspace(*self.basis.domain_bounds(), points)

        ax.plot(self.basis.x, self.y, ".", color="black", label="data")
        ax.plot(x_curve, self.evaluate(x_curve), color=col, lw=2, label="spline fit")
        nodes, values = self.curve()
        ax.plot(nodes, values, "o", color=col, markerfacecolor="none", label="nodes")
        ax.grid()
        ax.legend()

        if axis is None:
            plt.show()

    def __str__(self):
        variance = self.variance() if self.ok() else nan
        return f"""\n
        \r[ SplineFit object ]
        \r>>       status: {self.status.value}
        \r>>       domain: {self.basis.xmin} -> {self.basis.xmax}
        \r>> coefficients: {self.basis.coefficient_count()}
        \r>>     variance: {variance}
        """
