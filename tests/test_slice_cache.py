import pytest
from srctools.vtf import ImageFormats

from vtfview.cache import RGB_LAYOUT, RGBA_LAYOUT, SliceDecodeCache, SliceKey, fit_display_size
from conftest import make_vtf
from vtfview.texture import VTFTexture, compute_mipmap_dimensions, convert, image_format_info


class FakeTexture:
    """Texture handle that records every conversion request."""

    data_format = ImageFormats.RGBA8888

    def __init__(self, width=64, height=64, fmt=ImageFormats.DXT1, fail=False):
        self.width = width
        self.height = height
        self.depth = 1
        self.pixel_format = fmt
        self.fail = fail
        self.convert_calls = []
        self.dimension_calls = []

    def compute_mipmap_dimensions(self, width, height, depth, mip):
        self.dimension_calls.append(mip)
        return compute_mipmap_dimensions(width, height, depth, mip)

    def image_format_info(self, fmt):
        return image_format_info(fmt)

    def get_data(self, frame, face, slice_index, mip):
        if frame > 3:
            raise KeyError((frame, face, mip))
        width, height, _ = compute_mipmap_dimensions(self.width, self.height, 1, mip)
        return bytes([frame, face, mip, 128]) * (width * height)

    def convert(self, src, dst, width, height, src_format, dst_format):
        self.convert_calls.append((width, height, src_format, dst_format))
        if self.fail:
            return False
        return convert(src, dst, width, height, src_format, dst_format)


class FakeSurface:
    def __init__(self, width, height):
        self._width = width
        self._height = height
        self.blits = []

    def width(self):
        return self._width

    def height(self):
        return self._height

    def blit(self, buffer, width, height, layout, x, y, zoom):
        self.blits.append((len(buffer), width, height, layout, x, y, zoom))


def _bound(texture):
    cache = SliceDecodeCache()
    cache.bind(texture)
    return cache


def test_unchanged_key_decodes_once():
    texture = FakeTexture()
    cache = _bound(texture)

    first = cache.request_render(0, 0, 0)
    second = cache.request_render(0, 0, 0)
    third = cache.request_render(0, 0, 0)

    assert len(texture.convert_calls) == 1
    assert first.buffer is second.buffer is third.buffer
    assert cache.key == SliceKey(0, 0, 0)


def test_each_distinct_key_decodes_once():
    texture = FakeTexture()
    cache = _bound(texture)

    for key in [(0, 0, 0), (0, 0, 0), (1, 0, 0), (1, 0, 0), (1, 0, 2), (1, 0, 2)]:
        cache.request_render(*key)
    assert len(texture.convert_calls) == 3
    assert cache.decode_count == 3

    # Only one slice is kept, so going back decodes again.
    cache.request_render(0, 0, 0)
    assert len(texture.convert_calls) == 4


def test_bind_invalidates_cache():
    texture = FakeTexture()
    cache = _bound(texture)
    cache.request_render(0, 0, 0)
    cache.transform.zoom = 3.0
    cache.transform.offset_x = 12

    cache.bind(texture)
    assert cache.key is None
    assert cache.buffer is None
    assert cache.transform.zoom == 1.0
    assert (cache.transform.offset_x, cache.transform.offset_y) == (0, 0)

    cache.request_render(0, 0, 0)
    assert len(texture.convert_calls) == 2


def test_binding_new_texture_decodes_any_key():
    cache = _bound(FakeTexture())
    cache.request_render(0, 0, 1)

    other = FakeTexture(32, 32)
    cache.bind(other)
    result = cache.request_render(0, 0, 1)
    assert len(other.convert_calls) == 1
    assert (result.width, result.height) == (16, 16)


@pytest.mark.parametrize("mip", [0, 1, 2, 5, 7])
def test_draw_size_matches_mip_formula_on_hit_and_miss(mip):
    texture = FakeTexture(128, 32)
    cache = _bound(texture)
    expected = compute_mipmap_dimensions(128, 32, 1, mip)[:2]

    miss = cache.request_render(0, 0, mip)
    hit = cache.request_render(0, 0, mip)

    assert (miss.width, miss.height) == expected
    assert (hit.width, hit.height) == expected
    assert texture.dimension_calls == [mip, mip]


def test_failure_exposes_no_buffer_and_retries():
    texture = FakeTexture(fail=True)
    cache = _bound(texture)

    result = cache.request_render(0, 0, 0)
    assert result.buffer is None
    assert cache.buffer is None
    assert cache.key is None
    assert cache.last_error

    cache.request_render(0, 0, 0)
    assert len(texture.convert_calls) == 2

    texture.fail = False
    result = cache.request_render(0, 0, 0)
    assert result.buffer is not None
    assert cache.last_error is None
    assert len(texture.convert_calls) == 3


def test_failure_discards_previous_slice():
    texture = FakeTexture()
    cache = _bound(texture)
    cache.request_render(0, 0, 0)

    texture.fail = True
    result = cache.request_render(1, 0, 0)
    assert result.buffer is None
    assert cache.buffer is None
    assert not cache.render_to(FakeSurface(100, 100))


def test_missing_slice_is_a_decode_failure():
    texture = FakeTexture()
    cache = _bound(texture)

    result = cache.request_render(9, 0, 0)
    assert result.buffer is None
    assert cache.key is None
    assert texture.convert_calls == []
    assert "No image data" in cache.last_error


@pytest.mark.parametrize("fmt", [ImageFormats.RGBA8888, ImageFormats.RGB888, ImageFormats.DXT5])
def test_truncated_pixel_data_is_a_decode_failure(tmp_path, fmt):
    path = tmp_path / "truncated.vtf"
    VTFTexture(make_vtf(64, 64, fmt=fmt)).save(path)
    path.write_bytes(path.read_bytes()[:-4000])

    cache = _bound(VTFTexture.load(path))
    result = cache.request_render(0, 0, 0)
    assert result.buffer is None
    assert (result.width, result.height) == (64, 64)
    assert cache.key is None
    assert cache.last_error
    assert not cache.render_to(FakeSurface(100, 100))


@pytest.mark.parametrize(
    "fmt, target, layout, channels",
    [
        (ImageFormats.DXT5, ImageFormats.RGBA8888, RGBA_LAYOUT, 4),
        (ImageFormats.BGRA8888, ImageFormats.RGBA8888, RGBA_LAYOUT, 4),
        (ImageFormats.DXT1_ONEBITALPHA, ImageFormats.RGBA8888, RGBA_LAYOUT, 4),
        (ImageFormats.DXT1, ImageFormats.RGB888, RGB_LAYOUT, 3),
        (ImageFormats.RGB565, ImageFormats.RGB888, RGB_LAYOUT, 3),
        (ImageFormats.BGRX8888, ImageFormats.RGB888, RGB_LAYOUT, 3),
    ],
)
def test_target_format_follows_alpha_bits(fmt, target, layout, channels):
    texture = FakeTexture(8, 8, fmt=fmt)
    cache = _bound(texture)

    result = cache.request_render(0, 0, 0)
    assert texture.convert_calls == [(8, 8, ImageFormats.RGBA8888, target)]
    assert len(result.buffer) == 8 * 8 * channels
    assert cache.layout == layout


def test_half_size_mip_example():
    texture = FakeTexture(64, 64, fmt=ImageFormats.DXT1)
    cache = _bound(texture)

    result = cache.request_render(frame=0, face=0, mip=1)
    assert (result.width, result.height) == (32, 32)
    assert texture.convert_calls == [(32, 32, ImageFormats.RGBA8888, ImageFormats.RGB888)]
    assert bytes(result.buffer[:3]) == bytes([0, 0, 1])


def test_buffer_holds_requested_slice():
    cache = _bound(FakeTexture(4, 4, fmt=ImageFormats.RGBA8888))
    result = cache.request_render(2, 1, 0)
    assert bytes(result.buffer[:4]) == bytes([2, 1, 0, 128])


def test_render_centres_slice_with_pan_and_zoom():
    cache = _bound(FakeTexture(64, 64))
    cache.request_render(0, 0, 1)

    surface = FakeSurface(200, 100)
    assert cache.render_to(surface)
    assert surface.blits[-1] == (32 * 32 * 3, 32, 32, RGB_LAYOUT, 100 - 16, 50 - 16, 1.0)

    cache.transform.offset_x = 5
    cache.transform.offset_y = -3
    cache.transform.zoom = 2.0
    cache.render_to(surface)
    assert surface.blits[-1] == (32 * 32 * 3, 32, 32, RGB_LAYOUT, 100 - 32 + 5, 50 - 32 - 3, 2.0)


def test_render_without_texture_draws_nothing():
    cache = SliceDecodeCache()
    result = cache.request_render(0, 0, 0)
    assert result.buffer is None
    assert not cache.render_to(FakeSurface(10, 10))


def test_unbind_releases_buffer():
    cache = _bound(FakeTexture())
    cache.request_render(0, 0, 0)
    cache.unbind()
    assert cache.texture is None
    assert cache.buffer is None


def test_fit_display_size_never_shrinks():
    assert fit_display_size((256, 256), FakeTexture(512, 128)) == (512, 256)
    assert fit_display_size((800, 600), FakeTexture(64, 64)) == (800, 600)
    assert fit_display_size((100, 700), FakeTexture(300, 300)) == (300, 700)
