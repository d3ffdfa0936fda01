_debug = False


def set_debug(enabled: bool):
    """
    Sets the process-wide default for reporting setup diagnostics.

    The value is read once when a ``SplineBasis`` or ``SplineFit`` is
    constructed without an explicit ``debug`` argument, so it should be
    set before any fitting takes place.
    """
    global _debug
    _debug = bool(enabled)


def debug_enabled() -> bool:
    return _debug


def resolve_debug(debug) -> bool:
    return _debug if debug is None else bool(debug)
