import re
from typing import Optional, Sequence

import numpy as np
import pandas as pd

from .exceptions import FormatError
from .utils.logger import get_logger

DEFAULT_MISSING_TOKENS = ("", "NA", "?")


class DataLoader:
    """Loads a delimited dataset, names its columns and normalizes missing tokens.

    Every cell equal to one of ``missing_tokens`` becomes ``NaN`` so later steps
    only deal with one missing representation. Columns whose non-missing values
    all parse as numbers are converted to numeric dtype.

    ``sep`` is handed to pandas as is, so regular expressions such as ``r"\\s+"``
    work for whitespace-aligned files.
    """

    def __init__(
        self,
        path: str,
        column_names: Sequence[str],
        missing_tokens: Sequence[str] = DEFAULT_MISSING_TOKENS,
        sep: str = ",",
        header: bool = False,
        sample_size: Optional[int] = None,
        random_state: int = 42,
    ):
        self.path = path
        self.column_names = list(column_names)
        self.missing_tokens = list(missing_tokens)
        self.sep = sep
        self.header = header
        self.sample_size = sample_size
        self.random_state = random_state
        self.logger = get_logger(self.__class__.__name__)

    def _read_raw(self) -> pd.DataFrame:
        """Read every field as text; short rows come back padded with nulls."""
        try:
            return pd.read_csv(
                self.path,
                sep=self.sep,
                header=None,
                skiprows=1 if self.header else 0,
                dtype=object,
                keep_default_na=False,
                skip_blank_lines=True,
                index_col=False,
                engine="python",
            )
        except pd.errors.ParserError as exc:
            # raised when a row is wider than the first one
            raise self._width_error(exc) from exc

    def _width_error(self, exc: Exception) -> FormatError:
        width = len(self.column_names)
        found = re.search(r"Expected (\d+) fields in line (\d+), saw (\d+)", str(exc))
        if found is None:
            return FormatError(f"{self.path}: {exc}")
        first, line, seen = (int(g) for g in found.groups())
        if first != width:
            line, seen = (2 if self.header else 1), first
        return FormatError(f"{self.path}: line {line} has {seen} fields, expected {width}")

    def _check_width(self, raw: pd.DataFrame) -> None:
        """Raise FormatError on the first row whose width differs from the declared columns.

        With ``keep_default_na=False`` an empty field reads as ``""``; only the
        padding pandas adds to a short row is null.
        """
        width = len(self.column_names)
        offset = 2 if self.header else 1
        if raw.shape[1] != width:
            raise FormatError(
                f"{self.path}: line {offset} has {raw.shape[1]} fields, expected {width}"
            )
        fields = raw.notna().sum(axis=1).to_numpy()
        short = np.flatnonzero(fields != width)
        if len(short):
            row = int(short[0])
            raise FormatError(
                f"{self.path}: line {row + offset} has {fields[row]} fields, "
                f"expected {width}: {raw.iloc[row].dropna().tolist()!r}"
            )

    def load(self) -> pd.DataFrame:
        raw = self._read_raw()
        self._check_width(raw)
        raw.columns = self.column_names

        df = raw.apply(lambda col: col.str.strip())
        df = df.replace(self.missing_tokens, np.nan)

        for col in df.columns:
            converted = pd.to_numeric(df[col], errors="coerce")
            if converted.notna().sum() == df[col].notna().sum():
                df[col] = converted

        if self.sample_size:
            df = df.sample(self.sample_size, random_state=self.random_state)

        self.logger.info(
            f"Loaded {self.path}: {df.shape[0]:,} rows x {df.shape[1]} cols, "
            f"{int(df.isna().sum().sum())} missing cells"
        )
        return df
