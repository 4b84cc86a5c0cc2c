"""Tests for metadata parsers and text helpers."""

import pytest

from photoindex.errors import InvalidMetadataError
from photoindex.metadata import parse_front_matter, parse_gallery_yaml, parse_photos_yaml
from photoindex.utils import (
    calculate_reading_time,
    folder_name_to_title,
    generate_excerpt,
    natural_key,
    to_slug,
)


class TestGalleryYaml:
    """Tests for parse_gallery_yaml."""

    def test_empty_document(self):
        meta = parse_gallery_yaml('')
        assert meta.title is None
        assert meta.include_nested_photos is True

    def test_snake_case_nested_flag(self):
        assert parse_gallery_yaml('include_nested_photos: false').include_nested_photos is False

    def test_single_tag_string(self):
        assert parse_gallery_yaml('tags: travel').tags == ['travel']

    def test_wrong_shape(self):
        with pytest.raises(InvalidMetadataError):
            parse_gallery_yaml('- just\n- a list\n')

    def test_bad_order(self):
        with pytest.raises(InvalidMetadataError, match='order'):
            parse_gallery_yaml('order: first')


class TestPhotosYaml:
    """Tests for parse_photos_yaml."""

    def test_mapping_with_photos_key(self):
        entries = parse_photos_yaml('photos:\n  - filename: a.jpg\n  - filename: b.jpg\n')
        assert [e.filename for e in entries] == ['a.jpg', 'b.jpg']

    def test_entries_without_filename_skipped(self):
        entries = parse_photos_yaml('- title: orphan\n- filename: a.jpg\n')
        assert [e.filename for e in entries] == ['a.jpg']
        assert entries[0].position == 1

    def test_duplicate_keeps_first(self):
        entries = parse_photos_yaml('- filename: a.jpg\n  title: one\n- filename: a.jpg\n  title: two\n')
        assert len(entries) == 1
        assert entries[0].title == 'one'


class TestFrontMatter:
    """Tests for parse_front_matter."""

    def test_split(self):
        meta, body = parse_front_matter('---\ntitle: Hi\n---\nBody\n', 'p.md')
        assert meta == {'title': 'Hi'}
        assert body.strip() == 'Body'

    def test_no_front_matter(self):
        meta, body = parse_front_matter('Just text', 'p.md')
        assert meta == {}
        assert body == 'Just text'

    def test_invalid(self):
        with pytest.raises(InvalidMetadataError):
            parse_front_matter('---\ntitle: [x\n---\nBody', 'p.md')


class TestUtils:
    """Tests for text helpers."""

    def test_folder_name_to_title(self):
        assert folder_name_to_title('tokyo-2024') == 'Tokyo 2024'
        assert folder_name_to_title('street_photography') == 'Street Photography'

    def test_to_slug(self):
        assert to_slug('Café Crème!') == 'cafe-creme'

    def test_natural_key(self):
        assert sorted(['img10', 'img2', 'IMG1'], key=natural_key) == ['IMG1', 'img2', 'img10']

    def test_reading_time(self):
        assert calculate_reading_time('word ' * 201) == 2
        assert calculate_reading_time('') == 0

    def test_excerpt_truncates_at_word(self):
        excerpt = generate_excerpt('word ' * 100, max_length=20)
        assert excerpt.endswith('…')
        assert len(excerpt) <= 21
