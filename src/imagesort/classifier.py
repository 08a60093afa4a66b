"""Pretrained ImageNet classifier used as the classification oracle."""

import logging
from pathlib import Path
from typing import List, Optional, Sequence, Union

import numpy as np
import torch
import torch.nn.functional as F
from torch import nn
from torchvision.models import get_model, get_model_weights

from .constants import DEFAULT_MODEL
from .errors import OracleError

logger = logging.getLogger(__name__)


class ImageClassifier:
    """Single-label image classifier returning a probability per class.

    The wrapped module is not assumed safe for concurrent calls; callers
    serialize access (see ``ImageSorter``).
    """

    def __init__(
        self,
        model: nn.Module,
        categories: Sequence[str] = (),
        device: Optional[str] = None
    ):
        """
        Initialize classifier.

        Args:
            model: PyTorch model producing logits of shape ``(1, num_classes)``
            categories: Class names bundled with the weights, if any
            device: Device to run on ('cpu', 'cuda', or None for auto)
        """
        self.device = device or ("cuda" if torch.cuda.is_available() else "cpu")
        self.model: Optional[nn.Module] = model
        self.model.to(self.device)
        self.model.eval()

        self.categories: List[str] = list(categories)

    @classmethod
    def from_pretrained(
        cls,
        name: str = DEFAULT_MODEL,
        device: Optional[str] = None,
        weights_path: Optional[Union[str, Path]] = None
    ) -> "ImageClassifier":
        """
        Load a torchvision classifier with its ImageNet weights.

        Args:
            name: torchvision model name
            device: Device to run on
            weights_path: Local state dict to load instead of the default weights

        Returns:
            ImageClassifier instance

        Raises:
            OracleError: If the model or its weights cannot be loaded
        """
        categories = cls.bundled_categories(name)
        try:
            weights = get_model_weights(name).DEFAULT
            if weights_path:
                model = get_model(name, weights=None)
                state_dict = torch.load(weights_path, map_location="cpu")
                model.load_state_dict(state_dict)
                logger.info(f"Loaded weights from {weights_path}")
            else:
                model = get_model(name, weights=weights)
                logger.info(f"Loaded pretrained {name} ({weights})")
        except Exception as e:
            raise OracleError(f"Failed to load model {name}: {e}") from e

        return cls(model, categories=categories, device=device)

    @staticmethod
    def bundled_categories(name: str = DEFAULT_MODEL) -> List[str]:
        """Class names shipped with a model's default weights (no download)."""
        try:
            weights = get_model_weights(name).DEFAULT
        except Exception as e:
            raise OracleError(f"Unknown model {name}: {e}") from e
        return list(weights.meta.get("categories", []))

    def evaluate(self, image: torch.Tensor) -> np.ndarray:
        """
        Run one forward pass and return class probabilities.

        Args:
            image: Preprocessed tensor of shape ``(1, 3, H, W)``

        Returns:
            float32 vector with one probability per class

        Raises:
            OracleError: If the model is released or inference fails
        """
        if self.model is None:
            raise OracleError("Classifier has been closed")

        try:
            with torch.no_grad():
                logits = self.model(image.to(self.device))
                probs = F.softmax(logits, dim=1)
        except RuntimeError as e:
            raise OracleError(f"Inference failed: {e}") from e

        return probs.reshape(-1).cpu().numpy().astype(np.float32)

    def close(self) -> None:
        """Release the model."""
        if self.model is None:
            return
        self.model = None
        if self.device.startswith("cuda"):
            torch.cuda.empty_cache()
        logger.debug("Classifier released")
