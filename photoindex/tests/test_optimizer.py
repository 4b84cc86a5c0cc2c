"""Tests for OptimizationCoordinator."""

import pytest

from photoindex.codec import PillowCodec
from photoindex.config import OptimizerConfig
from photoindex.errors import BadRequestError, GalleryNotFoundError, NotFoundError, StaleRunError
from photoindex.index_cache import ContentIndexCache
from photoindex.optimizer import OptimizationCoordinator, enumerate_candidates
from photoindex.progress import PROGRESS_KEY, OptimizationProgress


@pytest.fixture
def make_coordinator(storage, logger):
    """Factory building a coordinator over the test storage."""
    def factory(**config):
        config.setdefault('widths', [16, 32])
        config.setdefault('retired_widths', [8, 24])
        cache = ContentIndexCache(storage, logger=logger)
        return OptimizationCoordinator(
            storage, cache, PillowCodec(logger=logger),
            config=OptimizerConfig(**config), logger=logger,
        )
    return factory


def add_photos(storage, make_image, count, width=40, height=30, gallery='galleries/g'):
    for i in range(count):
        storage.put(f'{gallery}/photo{i:02d}.jpg', make_image(width, height))


def run_to_completion(coordinator, limit=None, cleanup=False):
    results = [coordinator.optimize_batch(0, limit=limit, cleanup=cleanup)]
    while results[-1].has_more:
        last = results[-1]
        results.append(coordinator.optimize_batch(
            last.next_offset, limit=limit, cleanup=cleanup, run_id=last.run_id
        ))
    return results


class TestCandidates:
    """Tests for candidate enumeration."""

    def test_stable_order_excluding_variants(self, storage, make_image, make_coordinator):
        add_photos(storage, make_image, 2, gallery='galleries/b')
        add_photos(storage, make_image, 1, gallery='galleries/a')
        storage.put('galleries/a/photo00_16w.webp', make_image(16, 12, 'WEBP'))
        storage.put('galleries/a/logo.svg', '<svg/>')

        coordinator = make_coordinator()
        paths = [c.path for c in enumerate_candidates(coordinator.index_cache.get())]

        assert paths == [
            'galleries/a/photo00.jpg',
            'galleries/b/photo00.jpg',
            'galleries/b/photo01.jpg',
        ]
        assert paths == [c.path for c in coordinator.candidates()]


class TestOptimizeBatch:
    """Tests for chunk processing."""

    def test_end_to_end(self, storage, make_image, make_coordinator):
        """Widths 2000, 600 and an already optimized image on the default ladder."""
        storage.put('galleries/demo/big.jpg', make_image(2000, 1000))
        storage.put('galleries/demo/narrow.jpg', make_image(600, 400))
        storage.put('galleries/demo/done.jpg', make_image(1000, 500))
        storage.put('galleries/demo/done_800w.webp', make_image(800, 400, 'WEBP'))
        coordinator = make_coordinator(widths=[800, 1600, 2400], retired_widths=[400, 1200])

        result = coordinator.optimize_batch(0, limit=10)

        assert (result.processed, result.skipped, result.failed) == (2, 1, 0)
        assert result.variants_created == 2
        assert storage.exists('galleries/demo/big_800w.webp')
        assert storage.exists('galleries/demo/big_1600w.webp')
        assert not storage.exists('galleries/demo/big_2400w.webp')
        assert not storage.exists('galleries/demo/narrow_800w.webp')
        assert result.has_more is False
        assert result.processed_so_far == result.total_images == 3

    def test_variant_dimensions(self, storage, make_image, make_coordinator):
        from PIL import Image
        import io

        storage.put('galleries/g/wide.jpg', make_image(40, 30))
        make_coordinator().optimize_batch(0)

        variant = Image.open(io.BytesIO(storage.get('galleries/g/wide_16w.webp')))
        assert variant.format == 'WEBP'
        assert variant.size == (16, 12)

    def test_no_upscaling(self, storage, make_image, make_coordinator):
        storage.put('galleries/g/small.jpg', make_image(500, 300))
        coordinator = make_coordinator(widths=[800, 1600, 2400])

        result = coordinator.optimize_batch(0)

        assert result.variants_created == 0
        assert result.processed == 1
        assert [f.name for f in storage.list('galleries/g')] == ['small.jpg']

    def test_idempotent_rerun(self, storage, make_image, make_coordinator):
        add_photos(storage, make_image, 4)
        coordinator = make_coordinator()

        first = run_to_completion(coordinator, limit=10)[-1]
        second = run_to_completion(coordinator, limit=10)[-1]

        assert first.processed == 4
        assert second.processed == 0
        assert second.skipped == 4
        assert second.variants_created == 0

    def test_resumable_chunks(self, storage, make_image, make_coordinator):
        add_photos(storage, make_image, 10)
        coordinator = make_coordinator()

        results = run_to_completion(coordinator, limit=4)

        assert [r.offset for r in results] == [0, 4, 8]
        assert [r.next_offset for r in results] == [4, 8, 10]
        assert [r.has_more for r in results] == [True, True, False]
        assert len({r.run_id for r in results}) == 1
        assert sum(r.processed for r in results) == 10
        for i in range(10):
            assert storage.exists(f'galleries/g/photo{i:02d}_16w.webp')

    def test_status_is_monotonic(self, storage, make_image, make_coordinator):
        add_photos(storage, make_image, 10)
        coordinator = make_coordinator()

        seen = []
        result = coordinator.optimize_batch(0, limit=4)
        seen.append(coordinator.status()['imagesWithVariants'])
        while result.has_more:
            result = coordinator.optimize_batch(result.next_offset, limit=4, run_id=result.run_id)
            seen.append(coordinator.status()['imagesWithVariants'])

        assert seen == sorted(seen)
        assert seen[-1] == 10
        assert all(v <= 10 for v in seen)

    def test_counter_writes_never_decrease(self, storage, make_image, make_coordinator, mocker):
        add_photos(storage, make_image, 6)
        coordinator = make_coordinator(workers=3)
        store = coordinator.progress_store
        original_write = store.write
        written = []

        def recording_write(progress):
            written.append(progress.processed)
            original_write(progress)

        mocker.patch.object(store, 'write', side_effect=recording_write)
        result = coordinator.optimize_batch(0, limit=3)
        coordinator.optimize_batch(3, limit=3, run_id=result.run_id)

        assert written[0] == 0
        assert written == sorted(written)
        assert written[-1] == 6

    def test_per_image_failure_does_not_abort(self, storage, make_image, make_coordinator):
        add_photos(storage, make_image, 2)
        storage.put('galleries/g/photo99.jpg', b'corrupt bytes')
        coordinator = make_coordinator()

        result = coordinator.optimize_batch(0, limit=10)

        assert result.failed == 1
        assert result.processed == 2
        assert result.has_more is False
        assert result.processed_so_far == 3

    def test_missing_original_counts_as_failure(self, storage, make_image, make_coordinator):
        add_photos(storage, make_image, 2)
        coordinator = make_coordinator()
        coordinator.index_cache.get()
        storage.delete('galleries/g/photo00.jpg')

        result = coordinator.optimize_batch(0)

        assert result.failed == 1
        assert result.processed == 1

    def test_result_dict(self, storage, make_image, make_coordinator):
        add_photos(storage, make_image, 1)
        data = make_coordinator().optimize_batch(0).to_dict()

        assert set(data) == {'runId', 'batch', 'progress', 'hasMore', 'nextOffset'}
        assert data['batch']['variantsCreated'] == 2
        assert data['progress'] == {'totalImages': 1, 'processedSoFar': 1, 'percentComplete': 100}

    def test_empty_content(self, make_coordinator):
        result = make_coordinator().optimize_batch(0)
        assert result.total_images == 0
        assert result.has_more is False
        assert result.percent_complete == 100


class TestRunIdentity:
    """Tests for run ids and request validation."""

    def test_offset_without_run_id_rejected(self, storage, make_image, make_coordinator):
        add_photos(storage, make_image, 3)
        with pytest.raises(BadRequestError):
            make_coordinator().optimize_batch(2)

    def test_negative_offset_rejected(self, make_coordinator):
        with pytest.raises(BadRequestError):
            make_coordinator().optimize_batch(-1)

    def test_stale_run_rejected(self, storage, make_image, make_coordinator):
        add_photos(storage, make_image, 6)
        coordinator = make_coordinator()
        old = coordinator.optimize_batch(0, limit=2)
        new = coordinator.optimize_batch(0, limit=2)

        assert old.run_id != new.run_id
        with pytest.raises(StaleRunError) as exc_info:
            coordinator.optimize_batch(2, limit=2, run_id=old.run_id)
        assert exc_info.value.current_run_id == new.run_id

    def test_unknown_run_rejected(self, make_coordinator):
        with pytest.raises(StaleRunError):
            make_coordinator().optimize_batch(0, run_id='never-issued')

    def test_retrying_first_chunk_keeps_progress(self, storage, make_image, make_coordinator):
        add_photos(storage, make_image, 8)
        coordinator = make_coordinator()
        first = coordinator.optimize_batch(0, limit=4)

        retry = coordinator.optimize_batch(0, limit=4, run_id=first.run_id)

        assert retry.run_id == first.run_id
        assert retry.skipped == 4
        assert retry.processed_so_far == 4
        assert coordinator.status()['imagesWithVariants'] == 4


class TestCleanup:
    """Tests for cleanup mode and retired widths."""

    def test_cleanup_then_regenerate(self, storage, make_image, make_coordinator):
        storage.put('galleries/g/a.jpg', make_image(40, 30))
        for width in (8, 16, 24):
            storage.put(f'galleries/g/a_{width}w.webp', make_image(width, 6, 'WEBP'))
        coordinator = make_coordinator()

        cleaned = coordinator.optimize_batch(0, cleanup=True)
        fresh = coordinator.optimize_batch(0)

        assert cleaned.variants_deleted == 3
        assert cleaned.variants_created == 2
        assert fresh.skipped == 1
        names = sorted(f.name for f in storage.list('galleries/g'))
        assert names == ['a.jpg', 'a_16w.webp', 'a_32w.webp']

    def test_cleanup_old_sizes(self, storage, make_image, make_coordinator):
        storage.put('galleries/g/a.jpg', make_image(40, 30))
        storage.put('galleries/g/a_8w.webp', make_image(8, 6, 'WEBP'))
        storage.put('galleries/g/a_24w.webp', make_image(24, 18, 'WEBP'))
        storage.put('galleries/g/a_16w.webp', make_image(16, 12, 'WEBP'))

        deleted = make_coordinator().cleanup_old_sizes()

        assert deleted == 2
        assert sorted(f.name for f in storage.list('galleries/g')) == ['a.jpg', 'a_16w.webp']


class TestStatus:
    """Tests for the status report."""

    def test_cold_status_estimates(self, storage, make_image, make_coordinator):
        add_photos(storage, make_image, 5)
        status = make_coordinator().status()

        assert status == {
            'totalImages': 5,
            'imagesWithVariants': 0,
            'imagesNeedingOptimization': 5,
            'percentOptimized': 0,
        }

    def test_cold_status_after_optimizing(self, storage, make_image, make_coordinator):
        add_photos(storage, make_image, 5)
        coordinator = make_coordinator()
        run_to_completion(coordinator)
        storage.delete(PROGRESS_KEY)

        status = coordinator.status()

        assert status['imagesWithVariants'] == 5
        assert status['percentOptimized'] == 100
        assert 'isRunning' not in status

    def test_warm_status(self, storage, make_image, make_coordinator):
        add_photos(storage, make_image, 5)
        coordinator = make_coordinator()
        coordinator.optimize_batch(0, limit=2)

        status = coordinator.status()

        assert status['totalImages'] == 5
        assert status['imagesWithVariants'] == 2
        assert status['imagesNeedingOptimization'] == 3
        assert status['percentOptimized'] == 40
        assert status['isRunning'] is True

    def test_legacy_record(self, storage, make_coordinator):
        storage.put('.opt-progress.json', '3/4')
        status = make_coordinator().status()
        assert status['imagesWithVariants'] == 3
        assert status['isRunning'] is True

    def test_complete_record(self, storage, make_coordinator):
        coordinator = make_coordinator()
        coordinator.progress_store.write(
            OptimizationProgress(run_id='r', processed=4, total=4, running=False)
        )
        assert coordinator.status()['isRunning'] is False


class TestStorageFailures:
    """Tests for storage errors during a chunk."""

    def test_progress_write_failure_does_not_abort_chunk(
        self, storage, make_image, make_coordinator, mocker
    ):
        add_photos(storage, make_image, 3)
        coordinator = make_coordinator(workers=1)
        store = coordinator.progress_store
        original_write = store.write
        calls = []

        def flaky_write(progress):
            calls.append(progress.processed)
            if len(calls) == 2:
                raise OSError("transient storage failure")
            original_write(progress)

        mocker.patch.object(store, 'write', side_effect=flaky_write)
        result = coordinator.optimize_batch(0, limit=10)

        assert result.processed == 3
        assert result.failed == 0
        assert result.has_more is False
        assert storage.exists('galleries/g/photo02_32w.webp')
        assert coordinator.status()['imagesWithVariants'] == 3
        assert coordinator.status()['isRunning'] is False

    def test_cleanup_failure_still_counts_deleted(self, storage, make_image, make_coordinator):
        storage.put('galleries/g/a.jpg', make_image(40, 30))
        storage.put('galleries/g/a_16w.webp', make_image(16, 12, 'WEBP'))
        storage.put('galleries/g/a_8w.webp', make_image(8, 6, 'WEBP'))
        coordinator = make_coordinator()
        coordinator.index_cache.get()
        storage.put('galleries/g/a.jpg', b'no longer an image')

        result = coordinator.optimize_batch(0, cleanup=True)

        assert result.failed == 1
        assert result.variants_deleted == 2
        assert not storage.exists('galleries/g/a_16w.webp')


class TestOptimizeGallery:
    """Tests for single-gallery optimization."""

    def test_processes_folder_contents(self, storage, make_image, make_coordinator):
        add_photos(storage, make_image, 2, gallery='galleries/trips/rome')
        add_photos(storage, make_image, 1, gallery='galleries/other')
        coordinator = make_coordinator()

        result = coordinator.optimize_gallery('trips/rome')

        assert result.gallery_path == 'galleries/trips/rome'
        assert (result.processed, result.skipped, result.failed) == (2, 0, 0)
        assert result.variants_created == 4
        assert not storage.exists('galleries/other/photo00_16w.webp')
        assert not storage.exists('.opt-progress.json')

    def test_includes_photos_missing_from_index(self, storage, make_image, make_coordinator):
        add_photos(storage, make_image, 1)
        coordinator = make_coordinator()
        coordinator.index_cache.get()
        storage.put('galleries/g/late.jpg', make_image(40, 30))

        result = coordinator.optimize_gallery('galleries/g')

        assert result.processed == 2
        assert storage.exists('galleries/g/late_16w.webp')

    def test_skips_optimized_photos(self, storage, make_image, make_coordinator):
        add_photos(storage, make_image, 2)
        coordinator = make_coordinator()
        coordinator.optimize_gallery('g')

        result = coordinator.optimize_gallery('g')

        assert result.skipped == 2
        assert result.to_dict()['stats']['variantsCreated'] == 0

    def test_unknown_gallery(self, make_coordinator):
        with pytest.raises(GalleryNotFoundError):
            make_coordinator().optimize_gallery('missing')

    def test_gallery_required(self, make_coordinator):
        with pytest.raises(BadRequestError):
            make_coordinator().optimize_gallery('')


class TestOptimizeImage:
    """Tests for single-image optimization."""

    def test_regenerates_variants(self, storage, make_image, make_coordinator):
        storage.put('galleries/g/a.jpg', make_image(40, 30))
        storage.put('galleries/g/a_16w.webp', b'stale')
        coordinator = make_coordinator()

        result = coordinator.optimize_image('galleries/g/a.jpg')

        assert [v.width for v in result.variants] == [16, 32]
        assert result.bytes_written > 0
        assert storage.get('galleries/g/a_16w.webp') != b'stale'

    def test_rejects_variant_and_non_image(self, make_coordinator):
        coordinator = make_coordinator()
        with pytest.raises(BadRequestError):
            coordinator.optimize_image('galleries/g/a_16w.webp')
        with pytest.raises(BadRequestError):
            coordinator.optimize_image('galleries/g/notes.txt')

    def test_missing_original(self, make_coordinator):
        with pytest.raises(NotFoundError):
            make_coordinator().optimize_image('galleries/g/missing.jpg')
