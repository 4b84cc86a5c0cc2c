"""
Variant naming and sizing rules.

photo.jpg at 800px wide -> photo_800w.webp. No I/O happens here.
"""

import re
from dataclasses import dataclass, asdict
from typing import Iterable, List

from .storage import join_path
from .utils import get_basename, get_extension


VARIANT_PATTERN = re.compile(r'_(\d+)w\.webp$')

# Formats the codec can resize; the scanner also lists avif/svg as photos
RASTER_EXTENSIONS = frozenset({'jpg', 'jpeg', 'png', 'webp', 'gif'})
GALLERY_EXTENSIONS = RASTER_EXTENSIONS | {'avif', 'svg'}

VARIANT_CONTENT_TYPE = 'image/webp'


@dataclass(frozen=True)
class VariantDescriptor:
    """A variant's target width and filename."""
    width: int
    filename: str

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class VariantPlan:
    """A variant to produce from a specific original."""
    width: int
    height: int
    filename: str


def variant_filename(original_filename: str, width: int) -> str:
    """Strip the original extension and append _{width}w.webp."""
    return f"{get_basename(original_filename)}_{width}w.webp"


def variant_path(gallery_path: str, original_filename: str, width: int) -> str:
    return join_path(gallery_path, variant_filename(original_filename, width))


def is_variant(filename: str) -> bool:
    """True if the filename is a generated variant (ends with _NNNw.webp)."""
    return VARIANT_PATTERN.search(filename) is not None


def is_image_file(filename: str) -> bool:
    """True for raster formats the optimizer can process."""
    return get_extension(filename) in RASTER_EXTENSIONS


def is_gallery_image(filename: str) -> bool:
    """True for any file the scanner treats as a photo."""
    return get_extension(filename) in GALLERY_EXTENSIONS


def is_optimization_candidate(filename: str) -> bool:
    """A real raster original: an image that is not itself a variant."""
    return (
        not filename.startswith('.')
        and is_image_file(filename)
        and not is_variant(filename)
    )


def target_height(original_width: int, original_height: int, width: int) -> int:
    """Aspect-preserving height, rounded half up, never below 1."""
    return max(1, int(original_height * width / original_width + 0.5))


def plan_variants(
    original_filename: str,
    original_width: int,
    original_height: int,
    widths: Iterable[int]
) -> List[VariantPlan]:
    """
    Variants to generate for an original.

    A width is skipped whenever it is >= the original's width.
    """
    plans = []
    for width in sorted(set(widths)):
        if width >= original_width:
            continue
        plans.append(VariantPlan(
            width=width,
            height=target_height(original_width, original_height, width),
            filename=variant_filename(original_filename, width),
        ))
    return plans
