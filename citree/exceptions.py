"""Exceptions raised by citree.

Configuration and resampling errors subclass ValueError, invariant violations
subclass RuntimeError:

- InvalidConfig: A hyperparameter lies outside its declared domain.
- EmptyNodeError: Variable selection or splitting was asked to work on zero
  records, meaning the partition invariant of the tree was broken.
- DomainError: A prediction reached a split with a value the split never saw
  and the unseen-category policy is RAISE.
- ResamplingError: The requested fold layout cannot be built from the data.
- NotFittedError: Prediction was requested from an estimator that was never fit.

"No significant variable" and "no valid split" are not errors. Selection and
splitting return None for them and the node becomes a leaf.
"""


class CITreeError(Exception):
    """Base class for all citree errors."""


class InvalidConfig(CITreeError, ValueError):
    """Raised when a hyperparameter lies outside its declared domain.

    Attributes:
        parameter (str): Name of the offending hyperparameter.
        value (object): The rejected value.

    Examples:
        >>> err = InvalidConfig("max_depth", 0, "must be >= 1")
        >>> err.parameter
        'max_depth'
    """

    def __init__(self, parameter: str, value: object, reason: str) -> None:
        self.parameter = parameter
        self.value = value
        super().__init__(f"{parameter}={value!r} {reason}")


class EmptyNodeError(CITreeError, RuntimeError):
    """Raised when a node-level operation receives zero records."""


class DomainError(CITreeError, ValueError):
    """Raised when a split cannot route a value it never saw during training.

    Attributes:
        variable (str): Split variable of the node that rejected the value.
        value (object): The unseen value.
    """

    def __init__(self, variable: str, value: object) -> None:
        self.variable = variable
        self.value = value
        super().__init__(f"Value {value!r} of {variable!r} was not observed by this split during training")


class ResamplingError(CITreeError, ValueError):
    """Raised when k-fold partitioning is impossible for the given data."""


class NotFittedError(CITreeError, ValueError):
    """Raised when predicting with an estimator that has not been fitted."""
