"""Label table: ordered mapping from oracle output channel to label."""

import json
from pathlib import Path
from typing import Dict, Iterator, Mapping, Sequence, Tuple, Union

from .errors import ConfigError
from .utils import load_json


class LabelTable:
    """Immutable, index-addressable sequence of labels.

    Index ``i`` names output channel ``i`` of the classification oracle.
    """

    __slots__ = ("_labels",)

    def __init__(self, labels: Sequence[str]):
        if not labels:
            raise ConfigError("Label table is empty")
        self._labels: Tuple[str, ...] = tuple(labels)

    @classmethod
    def load(cls, path: Union[str, Path]) -> "LabelTable":
        """
        Load a label table from a JSON file.

        The file holds a flat object of arbitrary keys to label strings; the
        values, in file order, define the index to label correspondence.

        Args:
            path: Path to the JSON label file

        Returns:
            LabelTable instance

        Raises:
            ConfigError: If the file is missing, malformed, or empty
        """
        path = Path(path)
        if not path.is_file():
            raise ConfigError(f"Label file {path} does not exist")

        try:
            data = load_json(path)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ConfigError(f"Could not read label file {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"Label file {path} must contain a JSON object")
        if not data:
            raise ConfigError(f"Label file {path} is empty")

        return cls.from_mapping(data)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, str]) -> "LabelTable":
        """Build a table from the values of a mapping, in insertion order."""
        labels = []
        for key, value in mapping.items():
            if not isinstance(value, str):
                raise ConfigError(f"Label for key {key!r} is not a string: {value!r}")
            labels.append(value)
        return cls(labels)

    @classmethod
    def from_categories(cls, categories: Sequence[str]) -> "LabelTable":
        """Build a table from a model's bundled category list."""
        return cls(list(categories))

    def to_mapping(self) -> Dict[str, str]:
        """Return the ``{"0": label, ...}`` form written to label files."""
        return {str(idx): label for idx, label in enumerate(self._labels)}

    def __len__(self) -> int:
        return len(self._labels)

    def __getitem__(self, index: int) -> str:
        return self._labels[index]

    def __iter__(self) -> Iterator[str]:
        return iter(self._labels)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, LabelTable):
            return self._labels == other._labels
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._labels)

    def __repr__(self) -> str:
        return f"LabelTable({len(self._labels)} labels)"
