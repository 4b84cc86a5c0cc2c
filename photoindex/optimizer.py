"""
OptimizationCoordinator - Generates WebP variants in resumable chunks.

Each optimize_batch() call handles one slice of the candidate list and
returns the offset of the next slice. The caller keeps calling until
has_more is False. Nothing survives between calls except the progress
record in storage, so chunks can run in separate stateless invocations.
"""

import logging
import random
import threading
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import List, Optional, Tuple

from .batch_stats import BatchStats
from .codec import ImageCodec
from .config import OptimizerConfig
from .content_index import ContentIndex
from .errors import BadRequestError, GalleryNotFoundError, NotFoundError, StaleRunError
from .gallery_scanner import GALLERIES_PATH
from .index_cache import ContentIndexCache
from .progress import OptimizationProgress, ProgressStore
from .storage import Storage, join_path, split_path
from .variants import (
    VARIANT_CONTENT_TYPE,
    VariantDescriptor,
    is_image_file,
    is_optimization_candidate,
    is_variant,
    plan_variants,
    variant_path,
)


@dataclass(frozen=True)
class Candidate:
    """An original image that should have variants."""
    gallery_path: str
    filename: str

    @property
    def path(self) -> str:
        return join_path(self.gallery_path, self.filename)

    def variant_path(self, width: int) -> str:
        return variant_path(self.gallery_path, self.filename, width)


def enumerate_candidates(index: ContentIndex) -> List[Candidate]:
    """
    Every raster original in the index, in gallery then photo order.

    The order is stable for a given index, so offsets mean the same thing
    across the chunks of a run.
    """
    candidates = []
    for gallery in index.galleries:
        for photo in gallery.photos:
            if is_optimization_candidate(photo.filename):
                candidates.append(Candidate(gallery.path, photo.filename))
    return candidates


def _percent(done: int, total: int) -> int:
    if total <= 0:
        return 100
    return round(done * 100 / total)


@dataclass
class BatchResult:
    """Outcome of one optimize_batch() call."""
    run_id: str
    offset: int
    limit: int
    processed: int
    skipped: int
    failed: int
    variants_created: int
    variants_deleted: int
    total_images: int
    processed_so_far: int
    has_more: bool
    next_offset: int

    @property
    def percent_complete(self) -> int:
        return _percent(self.processed_so_far, self.total_images)

    def to_dict(self) -> dict:
        return {
            'runId': self.run_id,
            'batch': {
                'offset': self.offset,
                'limit': self.limit,
                'processed': self.processed,
                'skipped': self.skipped,
                'failed': self.failed,
                'variantsCreated': self.variants_created,
                'variantsDeleted': self.variants_deleted,
            },
            'progress': {
                'totalImages': self.total_images,
                'processedSoFar': self.processed_so_far,
                'percentComplete': self.percent_complete,
            },
            'hasMore': self.has_more,
            'nextOffset': self.next_offset,
        }


@dataclass
class GalleryResult:
    """Outcome of optimize_gallery()."""
    gallery_path: str
    processed: int
    skipped: int
    failed: int
    variants_created: int
    variants_deleted: int

    def to_dict(self) -> dict:
        return {
            'gallery': self.gallery_path,
            'stats': {
                'processed': self.processed,
                'skipped': self.skipped,
                'failed': self.failed,
                'variantsCreated': self.variants_created,
                'variantsDeleted': self.variants_deleted,
            },
        }


@dataclass
class ImageResult:
    """Outcome of optimize_image()."""
    path: str
    variants: List[VariantDescriptor]
    bytes_written: int

    def to_dict(self) -> dict:
        return {
            'path': self.path,
            'variantsCreated': len(self.variants),
            'variants': [v.to_dict() for v in self.variants],
            'bytesWritten': self.bytes_written,
        }


class _ProgressCounter:
    """
    Persists offset + completed-in-chunk as workers finish.

    The stored value only ever grows and never exceeds the total. A failed
    write is logged and left for the next advance (or the final write of the
    run) to catch up.
    """

    def __init__(
        self,
        store: ProgressStore,
        progress: OptimizationProgress,
        offset: int,
        logger: logging.Logger
    ):
        self.store = store
        self.progress = progress
        self.offset = offset
        self.logger = logger
        self.completed = 0
        self._lock = threading.Lock()

    def advance(self) -> None:
        with self._lock:
            self.completed += 1
            value = min(self.offset + self.completed, self.progress.total)
            if value > self.progress.processed:
                self.progress.processed = value
                try:
                    self.store.write(self.progress)
                except Exception as e:
                    self.logger.warning(f"Could not persist progress {value}/{self.progress.total}: {e}")


class OptimizationCoordinator:
    """
    Drives variant generation for every original in the content index.

    Usage:
        coordinator = OptimizationCoordinator(storage, cache, PillowCodec())
        result = coordinator.optimize_batch(offset=0)
        while result.has_more:
            result = coordinator.optimize_batch(result.next_offset, run_id=result.run_id)
    """

    def __init__(
        self,
        storage: Storage,
        index_cache: ContentIndexCache,
        codec: ImageCodec,
        config: Optional[OptimizerConfig] = None,
        progress_store: Optional[ProgressStore] = None,
        logger: Optional[logging.Logger] = None
    ):
        self.storage = storage
        self.index_cache = index_cache
        self.codec = codec
        self.config = config or OptimizerConfig()
        self.logger = logger or logging.getLogger(__name__)
        self.progress_store = progress_store or ProgressStore(storage, logger=self.logger)

    def candidates(self) -> List[Candidate]:
        return enumerate_candidates(self.index_cache.get())

    def has_variants(self, candidate: Candidate) -> bool:
        """True if the first-width variant of a candidate exists."""
        return self.storage.exists(candidate.variant_path(self.config.first_width))

    def status(self) -> dict:
        """
        Report optimization status.

        Reads the persisted progress record when there is one. Otherwise
        counts candidates and estimates how many are done from a random
        sample.
        """
        progress = self.progress_store.read()
        if progress is not None:
            return {
                'totalImages': progress.total,
                'imagesWithVariants': progress.processed,
                'imagesNeedingOptimization': progress.total - progress.processed,
                'percentOptimized': progress.percent,
                'isRunning': progress.running,
            }

        candidates = self.candidates()
        total = len(candidates)
        sample_size = min(self.config.sample_size, total)
        sample = random.sample(candidates, sample_size) if sample_size else []
        optimized = sum(1 for c in sample if self.has_variants(c))
        with_variants = round(total * optimized / sample_size) if sample_size else 0
        self.logger.debug(f"Estimated status from {sample_size} samples: {optimized} optimized")
        return {
            'totalImages': total,
            'imagesWithVariants': with_variants,
            'imagesNeedingOptimization': total - with_variants,
            'percentOptimized': _percent(with_variants, total),
        }

    def _start_or_resume(self, offset: int, run_id: Optional[str], total: int) -> OptimizationProgress:
        if run_id is None:
            if offset != 0:
                raise BadRequestError("runId is required when offset is greater than 0")
            progress = OptimizationProgress(
                run_id=uuid.uuid4().hex,
                processed=0,
                total=total,
                running=True,
            )
            self.progress_store.write(progress)
            self.logger.info(f"Started optimization run {progress.run_id}: {total} images")
            return progress

        progress = self.progress_store.read()
        if progress is None or progress.run_id != run_id:
            raise StaleRunError(run_id, progress.run_id if progress else None)
        if progress.total != total:
            self.logger.warning(
                f"Candidate count changed during run {run_id}: {progress.total} -> {total}"
            )
            progress.total = total
            progress.processed = min(progress.processed, total)
        return progress

    def optimize_batch(
        self,
        offset: int,
        limit: Optional[int] = None,
        cleanup: bool = False,
        run_id: Optional[str] = None
    ) -> BatchResult:
        """
        Process one chunk of candidates.

        Args:
            offset: Index of the first candidate in this chunk
            limit: Chunk size (default: config.batch_limit)
            cleanup: Delete all variants at current and retired widths, then regenerate
            run_id: Run identifier returned by the first chunk (None starts a new run)

        Returns:
            BatchResult with the chunk counts and the next offset

        Raises:
            BadRequestError: if offset/limit are invalid or a resumed chunk has no run_id
            StaleRunError: if run_id is not the current run
        """
        if offset is None or offset < 0:
            raise BadRequestError(f"offset must be a non-negative integer, got {offset!r}")
        if limit is None:
            limit = self.config.batch_limit
        if limit < 1:
            raise BadRequestError(f"limit must be at least 1, got {limit!r}")

        candidates = self.candidates()
        total = len(candidates)
        progress = self._start_or_resume(offset, run_id, total)

        chunk = candidates[offset:offset + limit]
        stats = BatchStats()
        counter = _ProgressCounter(self.progress_store, progress, offset, self.logger)
        mode_str = " (cleanup)" if cleanup else ""
        self.logger.info(
            f"Run {progress.run_id}: processing {len(chunk)} images "
            f"[{offset}:{offset + len(chunk)}] of {total}{mode_str}"
        )
        self._run(chunk, cleanup, stats, counter)

        next_offset = offset + len(chunk)
        has_more = next_offset < total
        if not has_more:
            progress.running = False
            progress.processed = total
            try:
                self.progress_store.write(progress)
            except Exception as e:
                self.logger.error(f"Could not persist completion of run {progress.run_id}: {e}")
            self.logger.info(f"Optimization run {progress.run_id} complete: {total} images")

        self._log_stats("Chunk", stats)

        return BatchResult(
            run_id=progress.run_id,
            offset=offset,
            limit=limit,
            processed=stats.processed,
            skipped=stats.skipped,
            failed=stats.failed,
            variants_created=stats.variants_created,
            variants_deleted=stats.variants_deleted,
            total_images=total,
            processed_so_far=progress.processed,
            has_more=has_more,
            next_offset=next_offset,
        )

    def optimize_gallery(self, gallery: str, cleanup: bool = False) -> GalleryResult:
        """
        Generate missing variants for every original in one gallery folder.

        The folder is read directly from storage, so photos uploaded since the
        last index build are included. No run or progress record is involved.

        Args:
            gallery: Gallery slug ("travel/tokyo") or path ("galleries/travel/tokyo")
            cleanup: Delete existing variants first and regenerate them

        Raises:
            BadRequestError: if no gallery is given
            GalleryNotFoundError: if the folder holds no gallery
        """
        gallery_path = gallery.strip('/') if gallery else ''
        if not gallery_path:
            raise BadRequestError("Gallery slug required")
        if gallery_path != GALLERIES_PATH and not gallery_path.startswith(GALLERIES_PATH + '/'):
            gallery_path = join_path(GALLERIES_PATH, gallery_path)

        entry = self.index_cache.scanner.galleries.scan_gallery(gallery_path)
        if entry is None:
            raise GalleryNotFoundError(gallery_path)

        candidates = [
            Candidate(entry.path, photo.filename) for photo in entry.photos
            if is_optimization_candidate(photo.filename)
        ]
        self.logger.info(f"Optimizing gallery {gallery_path}: {len(candidates)} images")
        stats = BatchStats()
        self._run(candidates, cleanup, stats)
        self._log_stats(f"Gallery {gallery_path}", stats)

        return GalleryResult(
            gallery_path=gallery_path,
            processed=stats.processed,
            skipped=stats.skipped,
            failed=stats.failed,
            variants_created=stats.variants_created,
            variants_deleted=stats.variants_deleted,
        )

    def optimize_image(self, image_path: str) -> ImageResult:
        """
        (Re)generate the variants of a single original, even if they exist.

        Raises:
            BadRequestError: if the path is empty, not an image, or a variant
            NotFoundError: if the original is missing
            CodecError: if the image cannot be processed
        """
        path = image_path.strip('/') if image_path else ''
        if not path:
            raise BadRequestError("Image path required")
        gallery_path, filename = split_path(path)
        if not is_image_file(filename):
            raise BadRequestError(f"Not an image file: {path}")
        if is_variant(filename):
            raise BadRequestError(f"Cannot process a variant file: {path}")

        variants, nbytes = self.generate_variants(Candidate(gallery_path, filename))
        self.logger.info(f"Created {len(variants)} variants for {path}")
        return ImageResult(path=path, variants=variants, bytes_written=nbytes)

    def _run(
        self,
        candidates: List[Candidate],
        cleanup: bool,
        stats: BatchStats,
        counter: Optional[_ProgressCounter] = None
    ) -> None:
        if not candidates:
            return
        with ThreadPoolExecutor(max_workers=self.config.workers) as executor:
            futures = [
                executor.submit(self._process_candidate, c, cleanup, stats, counter)
                for c in candidates
            ]
            for future in futures:
                future.result()

    def _log_stats(self, label: str, stats: BatchStats) -> None:
        self.logger.info(
            f"{label} done: {stats.processed} processed, {stats.skipped} skipped, "
            f"{stats.failed} failed, {stats.variants_created} variants created "
            f"({stats.elapsed_seconds:.1f}s, {stats.rate_per_second:.2f} images/s)"
        )
        for detail in stats.error_details:
            self.logger.warning(f"  Failed: {detail}")

    def _process_candidate(
        self,
        candidate: Candidate,
        cleanup: bool,
        stats: BatchStats,
        counter: Optional[_ProgressCounter]
    ) -> None:
        """Process a single candidate; errors are counted, never raised."""
        deleted = 0
        try:
            if cleanup:
                deleted = self._delete_variants(candidate, self.config.all_widths)
            elif self.has_variants(candidate):
                self.logger.debug(f"Skipping {candidate.path}: variants exist")
                stats.record_skipped()
                return

            variants, nbytes = self.generate_variants(candidate)
            stats.record_processed(len(variants), deleted, nbytes)
            self.logger.debug(f"Generated {len(variants)} variants for {candidate.path}")

        except Exception as e:
            self.logger.error(f"Error processing {candidate.path}: {e}")
            stats.record_failed(candidate.path, e, deleted)

        finally:
            if counter is not None:
                counter.advance()

    def generate_variants(self, candidate: Candidate) -> Tuple[List[VariantDescriptor], int]:
        """
        Write every qualifying variant of one original.

        Returns:
            Tuple of (variants written, bytes written)

        Raises:
            NotFoundError: if the original is missing
            CodecError: if the image cannot be processed
        """
        self.logger.debug(f"Downloading: {candidate.path}")
        data = self.storage.get(candidate.path)
        if data is None:
            raise NotFoundError(f"Original not found: {candidate.path}")

        decoded = self.codec.decode(data)
        written = []
        nbytes = 0
        try:
            plans = plan_variants(candidate.filename, decoded.width, decoded.height, self.config.widths)
            for plan in plans:
                resized = self.codec.resize(decoded.image, plan.width, plan.height)
                try:
                    encoded = self.codec.encode_webp(resized, self.config.quality)
                finally:
                    self.codec.free(resized)
                self.storage.put(
                    join_path(candidate.gallery_path, plan.filename),
                    encoded,
                    content_type=VARIANT_CONTENT_TYPE,
                )
                written.append(VariantDescriptor(width=plan.width, filename=plan.filename))
                nbytes += len(encoded)
        finally:
            self.codec.free(decoded.image)
        return written, nbytes

    def _delete_variants(self, candidate: Candidate, widths: List[int]) -> int:
        deleted = 0
        for width in widths:
            path = candidate.variant_path(width)
            if self.storage.exists(path):
                self.storage.delete(path)
                deleted += 1
        return deleted

    def cleanup_old_sizes(self) -> int:
        """
        Delete variants at retired widths for every candidate.

        Returns:
            Number of files deleted
        """
        if not self.config.retired_widths:
            return 0
        deleted = 0
        for candidate in self.candidates():
            deleted += self._delete_variants(candidate, self.config.retired_widths)
        self.logger.info(f"Deleted {deleted} variants at retired widths {self.config.retired_widths}")
        return deleted
