# The tag is exact for tagged releases; between releases the commit
# count is replaced by 'x'. Builds may fill in the revision.
BSFIT_VERSION = "v1.6-x"
BSFIT_REVISION = ""
BSFIT_URL = "https://github.com/NCAR/bspline"


def version() -> str:
    """
    Returns the identifying version string of the package, including the
    build revision when one is available.
    """
    if BSFIT_REVISION:
        return f"{BSFIT_VERSION} ({BSFIT_REVISION})"
    return BSFIT_VERSION
