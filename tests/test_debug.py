import logging
from numpy import linspace, sin

import bsfit
from bsfit import SplineBasis, SplineFit, set_debug, debug_enabled, version


def test_version():
    assert version().startswith("v")
    assert bsfit.__version__ == bsfit.BSFIT_VERSION
    assert bsfit.BSFIT_VERSION in version()
    assert bsfit.BSFIT_URL.startswith("https://")


def test_debug_reporting(caplog):
    x = linspace(0, 10, 50)
    with caplog.at_level(logging.INFO, logger="bsfit"):
        basis = SplineBasis(x, wavelength=2.0, debug=True)
        SplineFit(basis, sin(x), debug=True)
    messages = [r.getMessage() for r in caplog.records]
    assert any("SplineBasis" in m for m in messages)
    assert any("SplineFit" in m for m in messages)


def test_debug_silent(caplog):
    x = linspace(0, 10, 50)
    with caplog.at_level(logging.INFO, logger="bsfit"):
        basis = SplineBasis(x, wavelength=2.0, debug=False)
        SplineFit(basis, sin(x), debug=False)
        SplineBasis(x, wavelength=-2.0, debug=False)
    assert len(caplog.records) == 0


def test_debug_failure_reported(caplog):
    x = linspace(0, 10, 50)
    with caplog.at_level(logging.INFO, logger="bsfit"):
        SplineBasis(x, wavelength=-2.0, debug=True)
    assert any("configuration error" in r.getMessage() for r in caplog.records)


def test_process_wide_debug():
    x = linspace(0, 10, 50)
    assert not debug_enabled()
    try:
        set_debug(True)
        basis = SplineBasis(x, wavelength=2.0)
        assert basis.debug
        assert basis.fit(sin(x)).debug
        # an explicit argument takes precedence
        assert not SplineBasis(x, wavelength=2.0, debug=False).debug
    finally:
        set_debug(False)
    # the setting is frozen on instances when they are built
    assert basis.debug
    assert not SplineBasis(x, wavelength=2.0).debug


def test_results_independent_of_debug():
    x = linspace(0, 10, 50)
    y = sin(x)
    quiet = SplineBasis(x, wavelength=2.0, debug=False).fit(y, debug=False)
    loud = SplineBasis(x, wavelength=2.0, debug=True).fit(y, debug=True)
    assert (quiet.coefficients == loud.coefficients).all()
