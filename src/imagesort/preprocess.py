"""Image decoding and preprocessing utilities."""

import io
from pathlib import Path
from typing import Union

import numpy as np
import torch
from PIL import Image, UnidentifiedImageError
from torchvision import transforms

from .errors import DecodeError

# ImageNet statistics expected by torchvision's pretrained classifiers
IMAGENET_MEAN = [0.485, 0.456, 0.406]
IMAGENET_STD = [0.229, 0.224, 0.225]


def load_image(x: Union[str, Path, bytes, Image.Image, np.ndarray]) -> Image.Image:
    """
    Load image from various input types and return an RGB PIL Image.

    Raises:
        DecodeError: If the file is unreadable or not a valid image
        ValueError: If the input type is unsupported
    """
    if isinstance(x, np.ndarray):
        if x.dtype != np.uint8:
            x = (x * 255).astype(np.uint8)
        return Image.fromarray(x).convert("RGB")
    if isinstance(x, Image.Image):
        return x.convert("RGB")
    if not isinstance(x, (str, Path, bytes)):
        raise ValueError(f"Unsupported image type: {type(x)}")

    source = io.BytesIO(x) if isinstance(x, bytes) else x
    name = "<bytes>" if isinstance(x, bytes) else str(x)
    try:
        with Image.open(source) as img:
            # convert() forces a full decode, so truncated files fail here
            return img.convert("RGB")
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise DecodeError(f"Could not decode image {name}: {e}") from e


def build_transform(size: int = 224) -> transforms.Compose:
    """Resize, center-crop and normalize the way ImageNet models expect."""
    return transforms.Compose([
        transforms.Resize(256),
        transforms.CenterCrop(size),
        transforms.ToTensor(),
        transforms.Normalize(mean=IMAGENET_MEAN, std=IMAGENET_STD)
    ])


def preprocess(
    img: Union[str, Path, bytes, Image.Image, np.ndarray],
    size: int = 224
) -> torch.Tensor:
    """
    Decode an image into the oracle's input form.

    Args:
        img: Input image in various formats
        size: Target size for center crop (default 224)

    Returns:
        Tensor of shape ``(1, 3, size, size)``

    Raises:
        DecodeError: If the image cannot be decoded
    """
    pil_img = load_image(img)
    tensor = build_transform(size)(pil_img)

    # Add batch dimension
    return tensor.unsqueeze(0)
