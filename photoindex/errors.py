"""
Exception types raised by the content index and the optimizer.
"""


class PhotoIndexError(Exception):
    """Base class for all photoindex errors."""
    pass


class NotFoundError(PhotoIndexError):
    """Raised when a requested original or gallery does not exist."""
    pass


class GalleryNotFoundError(NotFoundError):
    """Raised when a gallery is not in the content index or not in storage."""

    def __init__(self, gallery_path: str):
        super().__init__(f"Gallery not found: {gallery_path}")
        self.gallery_path = gallery_path


class InvalidMetadataError(PhotoIndexError):
    """Raised when a YAML metadata file or front matter block is malformed."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"Invalid metadata in {path}: {reason}")
        self.path = path
        self.reason = reason


class CodecError(PhotoIndexError):
    """Raised when an image cannot be decoded, resized or encoded."""
    pass


class IndexBuildError(PhotoIndexError):
    """Raised when a full content index build fails."""
    pass


class StaleRunError(PhotoIndexError):
    """Raised when a chunk call names a run that is no longer current."""

    def __init__(self, run_id: str, current_run_id=None):
        super().__init__(
            f"Optimization run {run_id} is not the current run "
            f"(current: {current_run_id or 'none'})"
        )
        self.run_id = run_id
        self.current_run_id = current_run_id


class BadRequestError(PhotoIndexError):
    """Raised when a request is missing or has invalid required parameters."""
    pass
