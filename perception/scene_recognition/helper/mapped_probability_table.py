"""
Probability table addressed by object type name.

Column 0 is reserved for the default class. It holds the probability mass
for object types that were never learned, so lookups of unknown types fall
back to it instead of failing.
"""

import xml.etree.ElementTree as ET
from typing import Dict, List, Optional

import numpy as np

from ..errors import ModelLoadError
from .probability_table import ProbabilityTable


DEFAULT_CLASS = "default"
DEFAULT_COLUMN = 0


def format_values(values) -> str:
    """Format floats so that parsing them back is lossless."""
    return " ".join(repr(float(v)) for v in values)


def parse_values(text: Optional[str], expected: Optional[int] = None) -> List[float]:
    """Parse a whitespace separated list of floats."""
    if text is None:
        raise ModelLoadError("Missing value list")
    try:
        values = [float(v) for v in text.split()]
    except ValueError as e:
        raise ModelLoadError(f"Invalid value list '{text}': {e}") from e
    if expected is not None and len(values) != expected:
        raise ModelLoadError(f"Expected {expected} values, got {len(values)} in '{text}'")
    return values


class MappedProbabilityTable:
    """
    A probability table whose columns are addressed by object type.

    The mapping is append-only: a type keeps the column it was first
    assigned, new types get the next free column.

    Example:
        >>> table = MappedProbabilityTable(rows=2)
        >>> table.increment(1, "Cup")
        >>> table.increment(1, "Plate")
        >>> table.normalize()
        >>> table.probability(1, "Cup")
        0.5
        >>> table.probability(1, "Spoon") == table.probability(1, DEFAULT_CLASS)
        True
    """

    def __init__(self, rows: int = 1):
        """
        Initialize an empty table holding only the default column.

        Args:
            rows: Number of rows
        """
        self._table = ProbabilityTable(rows, 1)
        self._mapping: Dict[str, int] = {}

    @classmethod
    def from_element(cls, element: ET.Element) -> "MappedProbabilityTable":
        """Create a table from its XML representation."""
        table = cls()
        table.load(element)
        return table

    @property
    def row_count(self) -> int:
        """Get number of rows."""
        return self._table.row_count

    @property
    def column_count(self) -> int:
        """Get number of columns, including the default column."""
        return self._table.column_count

    @property
    def types(self) -> List[str]:
        """Get mapped object types in column order."""
        return list(self._mapping)

    @property
    def mapping(self) -> Dict[str, int]:
        """Get a copy of the type to column mapping."""
        return dict(self._mapping)

    def __contains__(self, type_name: str) -> bool:
        return type_name in self._mapping

    def index(self, type_name: str) -> int:
        """Get the column of a type, or the default column if unmapped."""
        return self._mapping.get(type_name, DEFAULT_COLUMN)

    def initialize_table(self, rows: int) -> None:
        """Reset all counters to zero with the given row count, keeping the mapping."""
        self._table = ProbabilityTable(rows, len(self._mapping) + 1)

    def add_column(self, type_name: str) -> int:
        """
        Add a column for the given type if it is not mapped yet.

        Args:
            type_name: Object type

        Returns:
            Column index of the type
        """
        if type_name == DEFAULT_CLASS:
            return DEFAULT_COLUMN

        column = self._mapping.get(type_name)
        if column is None:
            column = self._table.add_columns(1)
            self._mapping[type_name] = column
        return column

    def increment(self, row: int, type_name: str, amount: float = 1.0) -> None:
        """Add a count for the type in the given row, adding the type if unseen."""
        column = self.add_column(type_name)
        self._table.increment(row, column, amount)

    def set_default_class_counter(self, row: int, count: float) -> None:
        """Set the counter of the default class in the given row."""
        self._table.set(row, DEFAULT_COLUMN, count)

    def get(self, row: int, type_name: str) -> float:
        """Get the raw value stored for a type."""
        return self._table.get(row, self.index(type_name))

    def probability(self, row: int, type_name: str) -> float:
        """
        Get the probability of an object type.

        Unmapped types return the probability of the default class.
        """
        return self.get(row, type_name)

    def normalize(self) -> None:
        """Normalize every row so that it sums up to one."""
        self._table.normalize()

    def to_array(self) -> np.ndarray:
        """Get a copy of the table values, default column first."""
        return self._table.to_array()

    def copy(self) -> "MappedProbabilityTable":
        """Create an independent copy."""
        clone = MappedProbabilityTable.__new__(MappedProbabilityTable)
        clone._table = self._table.copy()
        clone._mapping = dict(self._mapping)
        return clone

    def load(self, element: ET.Element) -> None:
        """
        Load mapping and counters from XML.

        Expected layout::

            <probabilities rows="2">
              <default counts="0.0 0.0"/>
              <entry type="Cup" counts="1.0 1.0"/>
            </probabilities>

        Raises:
            ModelLoadError: If the element is malformed
        """
        try:
            rows = int(element.get("rows", "1"))
        except ValueError as e:
            raise ModelLoadError(f"Invalid row count in <{element.tag}>: {e}") from e
        if rows < 1:
            raise ModelLoadError(f"Invalid row count {rows} in <{element.tag}>")

        entries = []
        seen = set()
        for entry in element.findall("entry"):
            type_name = entry.get("type")
            if not type_name or type_name == DEFAULT_CLASS:
                raise ModelLoadError(f"Invalid entry type '{type_name}' in <{element.tag}>")
            if type_name in seen:
                raise ModelLoadError(f"Duplicate entry '{type_name}' in <{element.tag}>")
            seen.add(type_name)
            entries.append((type_name, parse_values(entry.get("counts"), rows)))

        default = element.find("default")
        default_counts = (
            parse_values(default.get("counts"), rows) if default is not None else [0.0] * rows
        )

        values = np.zeros((rows, len(entries) + 1), dtype=np.float64)
        values[:, DEFAULT_COLUMN] = default_counts
        for column, (_, counts) in enumerate(entries, start=1):
            values[:, column] = counts
        if np.any(values < 0):
            raise ModelLoadError(f"Negative counter in <{element.tag}>")

        self._table = ProbabilityTable.from_array(values)
        self._mapping = {name: column for column, (name, _) in enumerate(entries, start=1)}

    def save(self, element: ET.Element) -> None:
        """Write mapping and counters into the given XML element."""
        values = self._table.to_array()
        element.set("rows", str(self.row_count))

        default = ET.SubElement(element, "default")
        default.set("counts", format_values(values[:, DEFAULT_COLUMN]))

        for type_name, column in self._mapping.items():
            entry = ET.SubElement(element, "entry")
            entry.set("type", type_name)
            entry.set("counts", format_values(values[:, column]))

    def __repr__(self) -> str:
        return (
            f"MappedProbabilityTable(rows={self.row_count}, "
            f"types={self.types})"
        )


__all__ = [
    'DEFAULT_CLASS',
    'DEFAULT_COLUMN',
    'MappedProbabilityTable',
    'format_values',
    'parse_values',
]
