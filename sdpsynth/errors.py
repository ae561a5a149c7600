from __future__ import annotations


class SynthError(Exception):
    """
    Base class for errors raised by the simulation engine.
    """


class _KeyLookupError(SynthError, KeyError):
    """
    KeyError whose str() is the plain message.
    """

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


class DegenerateRowError(SynthError, ValueError):
    """
    A transition row sums to zero and cannot be normalized.
    """

    def __init__(self, state) -> None:
        self.state = state
        super().__init__(f"cannot normalize transition row for state {state!r}: row sum is zero")


class InvalidStateSpaceError(SynthError, ValueError):
    """
    Matrix dimensions or labels are inconsistent with the declared states.
    """


class InsufficientDataError(SynthError, ValueError):
    """
    A fit was requested on data without any observed transition.
    """


class UnmappedGroupError(_KeyLookupError):
    """
    A group key has no entry in a conditional probability spec.
    """

    def __init__(self, *missing) -> None:
        self.missing = list(missing)
        super().__init__(f"no generator mapped for group(s): {self.missing!r}")


class BaselineLookupError(_KeyLookupError):
    """
    A baseline name or covariate combination is absent from the registry.
    """
