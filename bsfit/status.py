from enum import Enum


class FitStatus(Enum):
    """
    The outcome of setting up a ``SplineBasis`` or solving a ``SplineFit``.
    """

    SUCCESS = "success"
    CONFIGURATION_ERROR = "configuration error"
    NUMERICAL_FAILURE = "numerical failure"
    USAGE_ERROR = "usage error"

    @property
    def ok(self) -> bool:
        return self is FitStatus.SUCCESS


def format_message(origin: str, *lines: str) -> str:
    body = "\n".join(f"\r>> {line}" for line in lines)
    return f"\n\r[ {origin} error ]\n{body}\n"
