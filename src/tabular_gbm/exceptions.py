"""Error kinds raised by the pipeline components."""


class TabularGBMError(Exception):
    """Base class for all pipeline errors."""


class FormatError(TabularGBMError):
    """Input row is malformed or its width differs from the declared columns."""


class MissingColumnError(TabularGBMError, KeyError):
    """A referenced column is absent from the dataset."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the plain message
        return str(self.args[0]) if self.args else ""


class InvalidProportionError(TabularGBMError, ValueError):
    """Split proportion outside the open interval (0, 1)."""


class InvalidKError(TabularGBMError, ValueError):
    """Fold count below 2 or above the number of records."""


class RecipeError(TabularGBMError, ValueError):
    """Recipe steps are inconsistent with each other or with the data."""


class ConvergenceOrEmptyGridError(TabularGBMError):
    """Grid search produced no grid point with at least one successful fold."""


class TrainingFailure(TabularGBMError):
    """A single (grid point, fold) training run failed."""

    def __init__(self, grid_id: str, fold: str, cause: BaseException):
        self.grid_id = grid_id
        self.fold = fold
        self.cause = cause
        super().__init__(f"{grid_id}/{fold}: {type(cause).__name__}: {cause}")


class UnseenCategoryWarning(UserWarning):
    """A categorical level absent from the fitted recipe was encoded as all zeros."""
