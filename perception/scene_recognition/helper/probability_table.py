"""
Dense probability table backed by a numpy array.

Cells hold raw counts until ``normalize()`` turns every row into a
distribution. Rows whose total is zero stay all-zero after normalization:
a row without any counts assigns zero probability to every column.
"""

import numpy as np

from ..errors import InvalidArgumentError, OutOfRangeError


class ProbabilityTable:
    """
    Table of non-negative counters indexed by row and column.

    Columns can be appended at runtime. The backing array keeps spare
    capacity and doubles when it runs out, so appending columns one by one
    is amortized constant time and existing column indices never move.

    Example:
        >>> table = ProbabilityTable(2, 3)
        >>> table.increment(1, 2, 3.0)
        >>> table.increment(1, 0)
        >>> table.normalize()
        >>> table.get(1, 2)
        0.75
    """

    def __init__(self, rows: int, columns: int):
        """
        Initialize a zero-filled table.

        Args:
            rows: Number of rows, at least one
            columns: Number of columns, at least one

        Raises:
            InvalidArgumentError: If rows or columns is smaller than one
        """
        if int(rows) < 1 or int(columns) < 1:
            raise InvalidArgumentError(
                f"Table needs at least one row and one column, got {rows}x{columns}"
            )

        self._rows = int(rows)
        self._columns = int(columns)
        self._data = np.zeros((self._rows, self._columns), dtype=np.float64)

    @property
    def row_count(self) -> int:
        """Get number of rows."""
        return self._rows

    @property
    def column_count(self) -> int:
        """Get number of columns."""
        return self._columns

    @property
    def capacity(self) -> int:
        """Get number of allocated columns."""
        return self._data.shape[1]

    def _check_index(self, row: int, column: int) -> None:
        if not 0 <= row < self._rows:
            raise OutOfRangeError(f"Row {row} out of range [0, {self._rows})")
        if not 0 <= column < self._columns:
            raise OutOfRangeError(f"Column {column} out of range [0, {self._columns})")

    def increment(self, row: int, column: int, amount: float = 1.0) -> None:
        """Add amount to a cell."""
        self._check_index(row, column)
        if amount < 0:
            raise InvalidArgumentError(f"Counters cannot be decremented (amount={amount})")
        self._data[row, column] += amount

    def set(self, row: int, column: int, value: float) -> None:
        """Overwrite a cell."""
        self._check_index(row, column)
        if value < 0:
            raise InvalidArgumentError(f"Counters must be non-negative (value={value})")
        self._data[row, column] = value

    def get(self, row: int, column: int) -> float:
        """Get the count or, after normalization, the probability of a cell."""
        self._check_index(row, column)
        return float(self._data[row, column])

    def row_sum(self, row: int) -> float:
        """Get the total of a row."""
        self._check_index(row, 0)
        return float(self._data[row, :self._columns].sum())

    def normalize(self) -> None:
        """
        Divide every row by its sum.

        Zero-sum rows are left untouched, so they remain all-zero.
        """
        active = self._data[:, :self._columns]
        sums = active.sum(axis=1)
        nonzero = sums > 0
        active[nonzero] = active[nonzero] / sums[nonzero, np.newaxis]

    def add_columns(self, count: int = 1) -> int:
        """
        Append zero-filled columns.

        Args:
            count: Number of columns to append

        Returns:
            Index of the first appended column
        """
        if count < 1:
            raise InvalidArgumentError(f"Cannot add {count} columns")

        first = self._columns
        needed = self._columns + count

        if needed > self.capacity:
            new_capacity = max(2 * self.capacity, needed)
            grown = np.zeros((self._rows, new_capacity), dtype=np.float64)
            grown[:, :self._columns] = self._data[:, :self._columns]
            self._data = grown

        self._columns = needed
        return first

    def to_array(self) -> np.ndarray:
        """Get a copy of the active cells."""
        return self._data[:, :self._columns].copy()

    def copy(self) -> "ProbabilityTable":
        """Create an independent copy."""
        clone = ProbabilityTable(self._rows, self._columns)
        clone._data[:, :] = self._data[:, :self._columns]
        return clone

    @classmethod
    def from_array(cls, values: np.ndarray) -> "ProbabilityTable":
        """Create a table holding the given 2D values."""
        values = np.asarray(values, dtype=np.float64)
        if values.ndim != 2:
            raise InvalidArgumentError(f"Expected a 2D array, got shape {values.shape}")
        if np.any(values < 0):
            raise InvalidArgumentError("Counters must be non-negative")

        table = cls(values.shape[0], values.shape[1])
        table._data[:, :] = values
        return table

    def __repr__(self) -> str:
        return f"ProbabilityTable(rows={self._rows}, columns={self._columns})"


__all__ = ['ProbabilityTable']
