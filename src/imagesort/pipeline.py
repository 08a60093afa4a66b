"""One classification-and-sorting attempt per image file."""

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional, Protocol, Union

import numpy as np

from .constants import TOPK_DISPLAY
from .errors import ImageSortError
from .formatting import format_percent, format_topk, topk_from_result
from .labels import LabelTable
from .preprocess import preprocess
from .ranking import Decision, decide, rank
from .sink import place

logger = logging.getLogger(__name__)


class Oracle(Protocol):
    """Anything that maps a decoded image to a probability vector."""

    def evaluate(self, image: Any) -> np.ndarray:
        ...

    def close(self) -> None:
        ...


class Outcome(str, Enum):
    MOVED = "moved"
    BELOW_THRESHOLD = "below_threshold"
    FAILED = "failed"


@dataclass(frozen=True)
class Attempt:
    """What happened to one file."""

    path: Path
    outcome: Outcome
    decision: Optional[Decision] = None
    destination: Optional[Path] = None
    error: Optional[BaseException] = None

    @property
    def moved(self) -> bool:
        return self.outcome is Outcome.MOVED


class ImageSorter:
    """Classify images and move confident ones into label folders.

    Safe to call from several threads: decoding and moving run in parallel,
    oracle calls are serialized by an internal lock.
    """

    def __init__(
        self,
        oracle: Oracle,
        labels: LabelTable,
        confidence: float,
        decoder: Callable[[Union[str, Path]], Any] = preprocess
    ):
        self.oracle = oracle
        self.labels = labels
        self.confidence = confidence
        self.decoder = decoder
        self._oracle_lock = threading.Lock()

    def classify(self, path: Union[str, Path]) -> Decision:
        """
        Decode, evaluate, rank and decide for one image, then log its top-3.

        Raises:
            ImageSortError: On decode, oracle or shape failures
        """
        image = self.decoder(path)

        with self._oracle_lock:
            probabilities = self.oracle.evaluate(image)

        result = rank(probabilities, self.labels)
        decision = decide(result, self.confidence)

        logger.info(
            format_topk(path, result),
            extra={"image": str(path), "topk": topk_from_result(result, TOPK_DISPLAY)}
        )
        return decision

    def process(self, path: Union[str, Path]) -> Attempt:
        """
        Run one isolated attempt: classify, then move if accepted.

        Never raises; failures are logged and reported in the returned Attempt.
        """
        path = Path(path)
        decision = None
        try:
            decision = self.classify(path)
            if not decision.accepted:
                logger.info(
                    f"Below confidence for {path}: \"{decision.label}\" "
                    f"{format_percent(decision.probability)} < {format_percent(decision.threshold)}"
                )
                return Attempt(path, Outcome.BELOW_THRESHOLD, decision)

            destination = place(path, decision.label)
        except ImageSortError as e:
            logger.error(f"Error when processing file {path}: {e}")
            return Attempt(path, Outcome.FAILED, decision, error=e)
        except Exception as e:
            logger.exception(f"Unexpected error when processing file {path}")
            return Attempt(path, Outcome.FAILED, decision, error=e)

        logger.info(f"Moved {path} -> {destination}")
        return Attempt(path, Outcome.MOVED, decision, destination)

    def close(self) -> None:
        """Release the oracle once no attempt is using it."""
        with self._oracle_lock:
            self.oracle.close()
