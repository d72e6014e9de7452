"""Tests for the template and font stores."""

import threading
import time

import numpy as np
import pytest
from PIL import ImageFont

from conftest import make_template
from memecaption.errors import ConfigError, ResourceKind, ResourceLoadError, ResourceNotFound
from memecaption.fonts import Font, FontStore
from memecaption.templates import Template, TemplateStore


class TestTemplateStore:
    def test_loads_template(self, template_dir):
        store = TemplateStore(template_dir)
        template = store.get_or_load("zoidberg")
        assert isinstance(template, Template)
        assert (template.width, template.height) == (400, 300)
        assert template.pixels.shape == (300, 400, 4)
        assert template.format == "PNG"

    def test_second_access_hits_cache(self, template_dir):
        store = TemplateStore(template_dir)
        first = store.get_or_load("zoidberg")
        second = store.get_or_load("zoidberg")
        assert first is second
        assert store.stats() == {"hits": 1, "misses": 1, "loads": 1, "entries": 1}

    def test_identifier_is_normalized(self, template_dir):
        store = TemplateStore(template_dir)
        assert store.get_or_load(" zoidberg ") is store.get_or_load("zoidberg")

    def test_pixels_are_read_only(self, template_dir):
        template = TemplateStore(template_dir).get_or_load("zoidberg")
        assert not template.pixels.flags.writeable
        copy = template.copy_pixels()
        assert copy.flags.writeable
        copy[0, 0] = 0
        assert not np.array_equal(copy, template.pixels)

    def test_missing_raises_not_found(self, template_dir):
        store = TemplateStore(template_dir)
        with pytest.raises(ResourceNotFound) as exc_info:
            store.get_or_load("nonexistent")
        assert exc_info.value.kind is ResourceKind.TEMPLATE
        assert exc_info.value.resource_id == "nonexistent"

    def test_path_outside_directory_not_found(self, template_dir):
        (template_dir.parent / "secret.png").write_bytes(b"")
        store = TemplateStore(template_dir)
        with pytest.raises(ResourceNotFound):
            store.get_or_load("../secret")

    def test_ambiguous_name_raises_load_error(self, template_dir):
        make_template(template_dir / "zoidberg.jpg")
        store = TemplateStore(template_dir)
        with pytest.raises(ResourceLoadError, match="ambiguous"):
            store.get_or_load("zoidberg")

    def test_corrupt_file_raises_and_is_not_cached(self, template_dir):
        broken = template_dir / "broken.png"
        broken.write_bytes(b"definitely not a png")
        store = TemplateStore(template_dir)
        with pytest.raises(ResourceLoadError) as exc_info:
            store.get_or_load("broken")
        assert exc_info.value.kind is ResourceKind.TEMPLATE

        # Fixing the file lets the next request succeed.
        make_template(broken)
        assert store.get_or_load("broken").width == 400
        assert store.stats()["loads"] == 2

    def test_animated_gif_keeps_every_frame(self, template_dir):
        make_template(template_dir / "blink.gif", size=(20, 10),
                      frames=[(255, 0, 0), (0, 0, 255)])
        template = TemplateStore(template_dir).get_or_load("blink")
        assert template.format == "GIF"
        assert template.is_animated
        assert len(template.frames) == 2
        assert tuple(template.frames[0][5, 5]) == (255, 0, 0, 255)
        assert tuple(template.frames[1][5, 5]) == (0, 0, 255, 255)
        assert template.durations == (100, 100)
        assert template.loop == 0

    def test_copy_frames_are_writable_copies(self, template_dir):
        make_template(template_dir / "blink.gif", size=(20, 10),
                      frames=[(255, 0, 0), (0, 0, 255)])
        template = TemplateStore(template_dir).get_or_load("blink")
        frames = template.copy_frames()
        frames[1][:] = 0
        assert tuple(template.frames[1][5, 5]) == (0, 0, 255, 255)

    def test_still_image_has_one_frame(self, template_dir):
        template = TemplateStore(template_dir).get_or_load("zoidberg")
        assert not template.is_animated
        assert template.durations == ()
        assert template.loop is None

    def test_list_ids(self, template_dir):
        make_template(template_dir / "fry.jpg")
        (template_dir / "notes.txt").write_text("not an image")
        (template_dir / ".hidden.png").write_bytes(b"")
        assert TemplateStore(template_dir).list_ids() == ["fry", "zoidberg"]

    def test_missing_directory_raises_config_error(self, tmp_path):
        with pytest.raises(ConfigError, match="does not exist"):
            TemplateStore(tmp_path / "nope")

    def test_clear_drops_entries(self, template_dir):
        store = TemplateStore(template_dir)
        store.preload("zoidberg")
        store.clear()
        assert store.stats()["entries"] == 0


class TestConcurrentLoading:
    def test_simultaneous_first_access_loads_once(self, template_dir, monkeypatch):
        decoded = []
        original = TemplateStore._decode

        def slow_decode(self, resource_id, path):
            decoded.append(resource_id)
            time.sleep(0.05)
            return original(self, resource_id, path)

        monkeypatch.setattr(TemplateStore, "_decode", slow_decode)
        store = TemplateStore(template_dir)

        n = 8
        barrier = threading.Barrier(n)
        results = [None] * n
        errors = []

        def worker(i):
            barrier.wait()
            try:
                results[i] = store.get_or_load("zoidberg")
            except Exception as e:  # surfaced by the assertion below
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(n)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert decoded == ["zoidberg"]
        assert all(r is results[0] for r in results)
        assert store.stats()["loads"] == 1

    def test_waiters_share_the_failure(self, template_dir, monkeypatch):
        def failing_decode(self, resource_id, path):
            time.sleep(0.05)
            raise OSError("disk on fire")

        monkeypatch.setattr(TemplateStore, "_decode", failing_decode)
        store = TemplateStore(template_dir)

        n = 4
        barrier = threading.Barrier(n)
        errors = []

        def worker():
            barrier.wait()
            try:
                store.get_or_load("zoidberg")
            except ResourceLoadError as e:
                errors.append(e)

        threads = [threading.Thread(target=worker) for _ in range(n)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(errors) == n
        assert store.stats()["entries"] == 0


class TestFontStore:
    def test_loads_font(self, font_dir):
        font = FontStore(font_dir).get_or_load("Impact")
        assert isinstance(font, Font)
        assert font.id == "Impact"
        assert isinstance(font.face(20), ImageFont.FreeTypeFont)

    def test_faces_cached_per_size(self, font_dir):
        font = FontStore(font_dir).get_or_load("Impact")
        assert font.face(20) is font.face(20)
        assert font.face(20) is not font.face(21)

    def test_corrupt_font_raises_load_error(self, font_dir):
        (font_dir / "Broken.ttf").write_bytes(b"not a font")
        with pytest.raises(ResourceLoadError) as exc_info:
            FontStore(font_dir).get_or_load("Broken")
        assert exc_info.value.kind is ResourceKind.FONT

    def test_missing_font_not_found(self, font_dir):
        with pytest.raises(ResourceNotFound) as exc_info:
            FontStore(font_dir).get_or_load("Comic Sans")
        assert exc_info.value.kind is ResourceKind.FONT

    def test_list_ids(self, font_dir):
        (font_dir / "readme.md").write_text("fonts")
        assert FontStore(font_dir).list_ids() == ["Impact"]
