"""
Error types raised by the eurocluster math modules.
"""


class InvalidParameterError(ValueError):
    """
    Raised when a clustering parameter or input matrix is unusable,
    e.g. K outside [1, N] or a restart count below one.
    """


class ZeroVarianceError(InvalidParameterError):
    """
    Raised by the scaler when one or more columns have zero variance.
    """

    def __init__(self, columns):
        self.columns = list(columns)
        super().__init__(
            f"Cannot standardize zero-variance column(s): {', '.join(map(str, self.columns))}"
        )
