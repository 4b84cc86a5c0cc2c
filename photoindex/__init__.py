"""
Content index and WebP variant generation for file-based photo sites.

Two concerns:
    1. Content index: one cached JSON snapshot of every gallery, post and page,
       rebuilt on demand and patched in place after uploads and edits
    2. Variant optimizer: resized WebP variants for every original photo,
       generated in short resumable chunks with persisted progress

Supports both S3 and local filesystem storage.
"""

__version__ = "1.0.0"

from .config import S3Config, LocalConfig, OptimizerConfig
from .storage import Storage, FileInfo, AccessCheck
from .s3_storage import S3Storage
from .local_storage import LocalStorage
from .entries import PhotoEntry, GalleryEntry, PostEntry, PageEntry, TagEntry
from .content_index import ContentIndex, IndexStats, INDEX_VERSION
from .gallery_tree import GalleryTree, GalleryNode
from .scanner import ContentScanner
from .index_cache import ContentIndexCache
from .codec import ImageCodec, PillowCodec, DecodedImage
from .progress import OptimizationProgress, ProgressStore
from .optimizer import OptimizationCoordinator, BatchResult, GalleryResult, ImageResult, Candidate
from .errors import (
    PhotoIndexError,
    NotFoundError,
    GalleryNotFoundError,
    InvalidMetadataError,
    CodecError,
    IndexBuildError,
    StaleRunError,
    BadRequestError,
)

__all__ = [
    "S3Config",
    "LocalConfig",
    "OptimizerConfig",
    "Storage",
    "FileInfo",
    "AccessCheck",
    "S3Storage",
    "LocalStorage",
    "PhotoEntry",
    "GalleryEntry",
    "PostEntry",
    "PageEntry",
    "TagEntry",
    "ContentIndex",
    "IndexStats",
    "INDEX_VERSION",
    "GalleryTree",
    "GalleryNode",
    "ContentScanner",
    "ContentIndexCache",
    "ImageCodec",
    "PillowCodec",
    "DecodedImage",
    "OptimizationProgress",
    "ProgressStore",
    "OptimizationCoordinator",
    "BatchResult",
    "GalleryResult",
    "ImageResult",
    "Candidate",
    "PhotoIndexError",
    "NotFoundError",
    "GalleryNotFoundError",
    "InvalidMetadataError",
    "CodecError",
    "IndexBuildError",
    "StaleRunError",
    "BadRequestError",
]
