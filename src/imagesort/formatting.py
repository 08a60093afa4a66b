"""Formatting utilities for log lines and structured outputs."""

import math
from collections import OrderedDict
from pathlib import Path
from typing import Dict, List, Union

from .constants import TOPK_DISPLAY
from .ranking import ClassificationResult, Decision


def topk_from_result(result: ClassificationResult, k: int = TOPK_DISPLAY) -> List[Dict[str, float]]:
    """Extract top-k predictions as ``{"label", "prob"}`` dicts."""
    return [{"label": entry.label, "prob": float(entry.probability)} for entry in result.top(k)]


def format_topk(image_path: Union[str, Path], result: ClassificationResult, k: int = TOPK_DISPLAY) -> str:
    """Render the single log line reported for every processed file."""
    ranked = ", ".join(f'"{entry.label}": {entry.probability:.4f}' for entry in result.top(k))
    return f"File: {image_path} | {ranked}"


def format_percent(probability: float) -> str:
    """Integer percentage, e.g. ``0.953 -> '95%'``."""
    if not math.isfinite(probability):
        return "n/a"
    return f"{round(probability * 100)}%"


def build_record(image_path: Union[str, Path], decision: Decision, k: int = TOPK_DISPLAY) -> Dict:
    """Build a structured record for JSON output."""
    return OrderedDict([
        ("image", str(image_path)),
        ("predicted_label", decision.label),
        ("confidence", float(decision.probability)),
        ("threshold", decision.threshold),
        ("accepted", decision.accepted),
        ("topk", topk_from_result(decision.result, k)),
    ])
