# tests/test_lib_helpers.py
import base64

from storybook.lib.imaging import ensure_png, sniff_mime, to_data_uri
from storybook.lib.json_tools import extract_json_block, strip_wrapping_quotes
from storybook.lib.sse import format_sse, parse_sse
from tests.conftest import _fake_jpeg_bytes, _fake_png_bytes, _tiny_png_base64


def test_extract_json_block_strips_fences():
    raw = '```json\n{"storyPages": ["a"]}\n```'
    assert extract_json_block(raw) == '{"storyPages": ["a"]}'


def test_extract_json_block_finds_object_in_chatter():
    raw = 'Sure! Here it is: {"storyPages": ["a", "b"]} Enjoy.'
    assert extract_json_block(raw) == '{"storyPages": ["a", "b"]}'


def test_extract_json_block_finds_bare_array():
    assert extract_json_block('pages: ["a", "b"]') == '["a", "b"]'


def test_strip_wrapping_quotes():
    assert strip_wrapping_quotes('  "Finn\'s Big Day" ') == "Finn's Big Day"
    assert strip_wrapping_quotes("No quotes") == "No quotes"


def test_sniff_mime_and_data_uri():
    png = _fake_png_bytes()
    assert sniff_mime(png) == "image/png"
    assert sniff_mime(base64.b64decode(_tiny_png_base64())) == "image/png"
    assert sniff_mime(_fake_jpeg_bytes()) == "image/jpeg"
    assert sniff_mime(b"nope") is None

    uri = to_data_uri(png)
    assert uri.startswith("data:image/png;base64,")
    assert base64.b64decode(uri.split(",", 1)[1]) == png


def test_ensure_png_reencodes_jpeg_and_passes_png_through():
    png = _fake_png_bytes()
    assert ensure_png(png) is png
    converted = ensure_png(_fake_jpeg_bytes())
    assert sniff_mime(converted) == "image/png"


def test_format_sse_and_parse_back():
    chunk = format_sse("progress", {"step": "writing", "message": "Crafting ✨"})
    assert chunk.startswith("event: progress\ndata: {")
    assert chunk.endswith("\n\n")
    assert "✨" in chunk
    assert parse_sse(chunk + format_sse("complete", {"storyId": "s1"})) == [
        ("progress", {"step": "writing", "message": "Crafting ✨"}),
        ("complete", {"storyId": "s1"}),
    ]
