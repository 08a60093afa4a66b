"""Ranking of oracle probabilities and the confidence decision."""

import math
from dataclasses import dataclass
from typing import Iterator, NamedTuple, Sequence, Tuple, Union

import numpy as np

from .errors import ShapeMismatchError
from .labels import LabelTable


class RankedLabel(NamedTuple):
    """One ranked entry: oracle channel, its label and probability."""

    index: int
    label: str
    probability: float


@dataclass(frozen=True)
class ClassificationResult:
    """All labels sorted by descending probability."""

    entries: Tuple[RankedLabel, ...]

    def top(self, k: int) -> Tuple[RankedLabel, ...]:
        """Return the ``k`` best entries (fewer if the table is smaller)."""
        return self.entries[:k]

    @property
    def best(self) -> RankedLabel:
        return self.entries[0]

    def __len__(self) -> int:
        return len(self.entries)

    def __getitem__(self, index: int) -> RankedLabel:
        return self.entries[index]

    def __iter__(self) -> Iterator[RankedLabel]:
        return iter(self.entries)


@dataclass(frozen=True)
class Decision:
    """Top-1 entry of a result and whether it clears the threshold."""

    result: ClassificationResult
    threshold: float
    accepted: bool

    @property
    def best(self) -> RankedLabel:
        return self.result.best

    @property
    def label(self) -> str:
        return self.result.best.label

    @property
    def probability(self) -> float:
        return self.result.best.probability


def rank(
    probabilities: Union[Sequence[float], np.ndarray],
    labels: LabelTable
) -> ClassificationResult:
    """
    Rank oracle probabilities against the label table.

    Scores are sorted in descending order with a stable sort, so equal scores
    keep their channel order. NaN scores sort last. Values are not clamped or
    renormalized.

    Args:
        probabilities: Oracle output; any shape that flattens to one score per label
        labels: Label table

    Returns:
        ClassificationResult covering every label

    Raises:
        ShapeMismatchError: If the number of scores differs from the number of labels
    """
    # float64 keeps large and nearly equal scores apart; decide() narrows to float32
    scores = np.asarray(probabilities, dtype=np.float64).reshape(-1)
    if scores.shape[0] != len(labels):
        raise ShapeMismatchError(expected=len(labels), actual=scores.shape[0])

    # argsort puts NaN last; negating keeps NaN as NaN
    order = np.argsort(-scores, kind="stable")

    entries = tuple(
        RankedLabel(int(idx), labels[int(idx)], float(scores[idx]))
        for idx in order
    )
    return ClassificationResult(entries)


def decide(result: ClassificationResult, threshold: float) -> Decision:
    """Accept the top-1 entry iff its probability is >= threshold (inclusive)."""
    probability = result.best.probability
    if math.isnan(probability):
        accepted = False
    else:
        # Both sides in float32 so a score equal to the threshold is accepted
        accepted = bool(np.float32(probability) >= np.float32(threshold))
    return Decision(result=result, threshold=float(threshold), accepted=accepted)
