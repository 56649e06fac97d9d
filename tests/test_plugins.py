from __future__ import annotations

import asyncio

import pytest

from assetflow.errors import TransformError
from assetflow.model import FileEntry
from assetflow.pipeline import Pipeline
from assetflow.plugins import imagemin, imagemin_png, rename_ext, uglify
from assetflow.plugins import tools
from assetflow.plugins.lint import parse_unix_report
from assetflow.plugins.styles import parse_sass_error

SASS_ERROR = (
    "Error: expected \";\".\n"
    "  - 3:18  root stylesheet\n"
)


def entry(name, data=b"x"):
    return FileEntry(path=f"/site/{name}", contents=data, metadata={"base": "/site"})


def test_parse_sass_error():
    assert parse_sass_error(SASS_ERROR) == ('expected ";".', 3, 18)
    assert parse_sass_error("") == ("sass failed", None, None)


def test_parse_unix_report():
    text = "/site/js/a.js:4:12: Missing semicolon.\n\n3 errors\n"
    assert parse_unix_report(text) == [{"line": 4, "character": 12, "reason": "Missing semicolon."}]


def test_uglify_error_carries_position(fake_tools):
    with pytest.raises(TransformError) as exc:
        asyncio.run(uglify()(entry("js/app.js", b"SYNTAX")))
    err = exc.value
    assert (err.line, err.column, err.plugin) == (1, 7, "uglify")
    assert err.message == "Parse error at 0:1,7"


def test_rename_ext():
    out = rename_ext(".min.js")(entry("js/app.js"))
    assert out.path.as_posix() == "/site/js/app.min.js"
    with pytest.raises(ValueError):
        rename_ext("js")


@pytest.fixture
def fake_optimizers(monkeypatch):
    calls = []

    async def fake_run_tool(args, stdin=None, *, env=None, cwd=None):
        calls.append(args[0])
        if args[0] == "gifsicle":
            return tools.ToolResult(0, stdin[:3], b"")
        if args[0] == "svgo":
            # bigger than the input: keep the original
            return tools.ToolResult(0, stdin + b"<!-- -->", b"")
        if args[0] == "optipng":
            return tools.ToolResult(0, b"", b"")
        if args[0] == "pngquant":
            if stdin.startswith(b"HUGE"):
                return tools.ToolResult(0, b"PNG", b"")
            return tools.ToolResult(99, b"", b"")
        raise AssertionError(f"unexpected tool {args[0]}")

    monkeypatch.setattr(tools, "run_tool", fake_run_tool)
    return calls


def test_imagemin_keeps_the_smaller_output(fake_optimizers):
    gif = asyncio.run(imagemin()(entry("img/a.gif", b"GIF89a-big")))
    assert gif.contents == b"GIF"
    assert gif.metadata["saved"] == "7"

    svg = asyncio.run(imagemin()(entry("img/b.svg", b"<svg/>")))
    assert svg.contents == b"<svg/>"
    assert svg.metadata["saved"] == "0"


def test_png_path(fake_optimizers):
    kept = asyncio.run(imagemin_png()(entry("img/a.png", b"small-png")))
    assert kept.contents == b"small-png"  # pngquant refused (exit 99)

    squeezed = asyncio.run(imagemin_png()(entry("img/b.png", b"HUGE-PNG-DATA")))
    assert squeezed.contents == b"PNG"
    assert fake_optimizers == ["optipng", "pngquant", "optipng", "pngquant"]

    # other formats pass through the PNG task untouched
    assert asyncio.run(imagemin_png()(entry("img/c.gif", b"GIF"))).contents == b"GIF"


def test_missing_tool_is_a_per_file_error(write_tree, tmp_path, fake_tools):
    write_tree({"img/a.jpg": b"\xff\xd8jpeg", "img/b.gif": b"gif"})
    result = asyncio.run(Pipeline("img/*.{jpg,gif}", imagemin(), cwd=tmp_path).run())
    assert result.failed == 2
    assert any("cjpeg is not available" in e.message for e in result.errors)
    assert all(e.plugin == "imagemin" for e in result.errors)
