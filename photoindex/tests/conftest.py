"""
Pytest fixtures for photoindex tests.
"""

import io
import logging

import pytest
from PIL import Image


def image_bytes(width: int, height: int, fmt: str = 'JPEG', mode: str = 'RGB') -> bytes:
    """Encode a solid-color test image."""
    color = (200, 40, 40, 128) if mode == 'RGBA' else 'red'
    img = Image.new(mode, (width, height), color=color)
    buffer = io.BytesIO()
    img.save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def make_image():
    """Fixture providing the image_bytes factory."""
    return image_bytes


@pytest.fixture
def logger():
    """Fixture providing a logger."""
    return logging.getLogger('test')


@pytest.fixture
def content_dir(tmp_path):
    """Fixture providing an empty content root directory."""
    root = tmp_path / 'content'
    root.mkdir()
    return root


@pytest.fixture
def storage(content_dir, logger):
    """Fixture providing LocalStorage over the content root."""
    from photoindex.config import LocalConfig
    from photoindex.local_storage import LocalStorage

    return LocalStorage(LocalConfig(root_path=str(content_dir)), logger)


@pytest.fixture
def populated_storage(storage):
    """
    Fixture providing a small content tree:

        galleries/travel/gallery.yaml          (parent gallery, no images)
        galleries/travel/tokyo/                (3 photos + photos.yaml)
        galleries/travel/tokyo/a_800w.webp     (variant, never a photo)
        galleries/street/                      (2 photos, no metadata)
        blog/first-post.md
        blog/trip/index.md + cover.jpg
        pages/about.md
    """
    storage.put('galleries/travel/gallery.yaml', 'title: Travel\ndescription: Trips\n')
    storage.put('galleries/travel/tokyo/a.jpg', image_bytes(40, 30))
    storage.put('galleries/travel/tokyo/b.jpg', image_bytes(40, 30))
    storage.put('galleries/travel/tokyo/c.png', image_bytes(40, 30, 'PNG'))
    storage.put('galleries/travel/tokyo/a_800w.webp', image_bytes(20, 15, 'WEBP'))
    storage.put(
        'galleries/travel/tokyo/photos.yaml',
        '- filename: b.jpg\n'
        '  title: Shibuya\n'
        '  tags: [Night, City]\n'
        '- filename: a.jpg\n'
        '  hidden: true\n'
        '- filename: gone.jpg\n'
    )
    storage.put('galleries/street/img10.jpg', image_bytes(40, 30))
    storage.put('galleries/street/img2.jpg', image_bytes(40, 30))
    storage.put(
        'blog/first-post.md',
        '---\ntitle: First Post\ndate: 2024-05-01\ntags: [news]\n---\nHello world.\n'
    )
    storage.put('blog/trip/index.md', '# A trip\n\nWe went somewhere nice.\n')
    storage.put('blog/trip/cover.jpg', image_bytes(40, 30))
    storage.put('pages/about.md', '---\ntitle: About Me\norder: 1\n---\nHi.\n')
    return storage


@pytest.fixture
def s3_config():
    """Fixture providing S3 configuration."""
    from photoindex.config import S3Config

    return S3Config(
        endpoint='https://test-endpoint.example.com:9000',
        bucket='test-bucket',
        prefix='content',
        access_key='test-access-key',
        secret_key='test-secret-key',
        region='us-east-1',
    )


@pytest.fixture
def s3_storage(s3_config):
    """Fixture providing S3Storage with mocked boto3."""
    from unittest.mock import MagicMock, patch
    from photoindex.s3_storage import S3Storage

    mock_boto = MagicMock()
    with patch('photoindex.s3_storage.boto3.client', return_value=mock_boto):
        storage = S3Storage(s3_config)
        # Store reference to the mock for test setup
        storage._test_mock = mock_boto
        yield storage
