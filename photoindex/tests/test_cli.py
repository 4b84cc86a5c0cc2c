"""Tests for CLI module."""

import json

import pytest

from photoindex.cli import create_parser, get_optimizer_config, main


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep real environment settings out of CLI tests."""
    for name in ('CONTENT_ROOT', 'CONTENT_PREFIX', 'S3_BUCKET', 'S3_ACCESS_KEY',
                 'S3_SECRET_KEY', 'VARIANT_WIDTHS', 'RETIRED_VARIANT_WIDTHS',
                 'OPTIMIZE_BATCH_LIMIT', 'OPTIMIZE_WORKERS', 'WEBP_QUALITY'):
        monkeypatch.delenv(name, raising=False)


class TestCreateParser:
    """Tests for create_parser function."""

    def test_creates_parser(self):
        parser = create_parser()
        assert parser is not None
        assert parser.prog == 'photoindex'

    def test_optimize_arguments(self):
        args = create_parser().parse_args([
            'optimize', '--offset', '4', '--run-id', 'abc', '--limit', '2',
            '--cleanup', '--widths', '100,200', '--local-root', '/tmp/x',
        ])
        assert args.offset == 4
        assert args.run_id == 'abc'
        assert args.limit == 2
        assert args.cleanup is True
        assert args.local_root == '/tmp/x'

    def test_index_action_required(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args(['index'])


class TestOptimizerConfigOverrides:
    """Tests for CLI overrides of optimizer settings."""

    def test_overrides(self):
        args = create_parser().parse_args([
            'optimize', '--widths', '640,320', '--quality', '70', '--workers', '2', '--limit', '9',
        ])
        config = get_optimizer_config(args)
        assert config.widths == [320, 640]
        assert config.quality == 70
        assert config.workers == 2
        assert config.batch_limit == 9

    def test_environment(self, monkeypatch):
        monkeypatch.setenv('VARIANT_WIDTHS', '1000,500')
        args = create_parser().parse_args(['status'])
        assert get_optimizer_config(args).widths == [500, 1000]


class TestMain:
    """Tests for main function."""

    def test_no_command(self):
        assert main([]) == 1

    def test_index_build_and_show(self, populated_storage, content_dir, capsys):
        assert main(['index', 'build', '--local-root', str(content_dir)]) == 0
        summary = json.loads(capsys.readouterr().out)
        assert summary['total_galleries'] == 3

        assert main(['index', 'show', '--local-root', str(content_dir)]) == 0
        shown = json.loads(capsys.readouterr().out)
        assert shown['total_photos'] == 4
        assert 'age_seconds' in shown

    def test_index_invalidate(self, populated_storage, content_dir):
        main(['index', 'build', '--local-root', str(content_dir)])
        assert main(['index', 'invalidate', '--local-root', str(content_dir)]) == 0
        assert not populated_storage.exists('_content-index.json')

    def test_status(self, populated_storage, content_dir, capsys):
        assert main(['status', '--local-root', str(content_dir)]) == 0
        assert json.loads(capsys.readouterr().out)['totalImages'] == 5

    def test_optimize_runs_all_chunks(self, populated_storage, content_dir, capsys):
        code = main([
            'optimize', '--local-root', str(content_dir), '--limit', '2', '--widths', '16,32',
        ])

        assert code == 0
        assert 'Progress: 5/5 (100%)' in capsys.readouterr().out
        assert populated_storage.exists('galleries/travel/tokyo/c_32w.webp')

    def test_optimize_offset_requires_run_id(self, populated_storage, content_dir):
        assert main(['optimize', '--local-root', str(content_dir), '--offset', '2']) == 1

    def test_optimize_max_chunks(self, populated_storage, content_dir, capsys):
        main([
            'optimize', '--local-root', str(content_dir), '--limit', '2',
            '--widths', '16,32', '--max-chunks', '1',
        ])
        assert 'Progress: 2/5' in capsys.readouterr().out

    def test_cleanup(self, populated_storage, content_dir, make_image, capsys):
        populated_storage.put('galleries/street/img2_400w.webp', make_image(8, 6, 'WEBP'))
        assert main(['cleanup', '--local-root', str(content_dir)]) == 0
        assert 'Deleted: 1' in capsys.readouterr().out

    def test_check_storage(self, content_dir, capsys):
        assert main(['check-storage', '--local-root', str(content_dir)]) == 0
        assert json.loads(capsys.readouterr().out)['ok'] is True

    def test_missing_local_root(self, tmp_path):
        assert main(['status', '--local-root', str(tmp_path / 'missing')]) == 1

    def test_missing_s3_config(self):
        assert main(['status']) == 1

    def test_content_root_from_environment(self, populated_storage, content_dir, monkeypatch, capsys):
        monkeypatch.setenv('CONTENT_ROOT', str(content_dir))
        assert main(['status']) == 0
        assert json.loads(capsys.readouterr().out)['totalImages'] == 5

    def test_optimize_single_gallery(self, populated_storage, content_dir, capsys):
        code = main([
            'optimize', '--local-root', str(content_dir), '--widths', '16,32', '--gallery', 'street',
        ])

        assert code == 0
        assert 'Processed: 2, skipped: 0, variants: 4' in capsys.readouterr().out
        assert populated_storage.exists('galleries/street/img10_32w.webp')
        assert not populated_storage.exists('galleries/travel/tokyo/c_16w.webp')

    def test_optimize_single_image(self, populated_storage, content_dir, capsys):
        code = main([
            'optimize', '--local-root', str(content_dir), '--widths', '16',
            '--image', 'galleries/travel/tokyo/c.png',
        ])

        assert code == 0
        assert 'Variants: 1' in capsys.readouterr().out
        assert populated_storage.exists('galleries/travel/tokyo/c_16w.webp')

    def test_optimize_gallery_and_image_exclusive(self, content_dir):
        with pytest.raises(SystemExit):
            main(['optimize', '--local-root', str(content_dir), '--gallery', 'a', '--image', 'b.jpg'])
