"""ImageSort: watch a folder and sort new images into label subfolders."""

from .classifier import ImageClassifier
from .labels import LabelTable
from .pipeline import Attempt, ImageSorter, Outcome
from .ranking import ClassificationResult, Decision, decide, rank
from .sink import place
from .watcher import WatchLoop, WatchState, WatchTarget

__version__ = "0.1.0"
__all__ = [
    "ImageClassifier",
    "LabelTable",
    "Attempt",
    "ImageSorter",
    "Outcome",
    "ClassificationResult",
    "Decision",
    "decide",
    "rank",
    "place",
    "WatchLoop",
    "WatchState",
    "WatchTarget",
]
