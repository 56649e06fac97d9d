# plugins/images.py
# Lossless/lossy image compression through the usual command line optimizers.

from __future__ import annotations

import asyncio
import tempfile
from pathlib import Path
from typing import Awaitable, Callable, Dict, List

from ..errors import TransformError
from ..model import FileEntry
from ..transform import Transform
from . import tools

# keep the viewBox (svgo's default preset drops it)
SVGO_CONFIG = """export default {
  plugins: [{ name: "preset-default", params: { overrides: { removeViewBox: false } } }],
};
"""

Optimizer = Callable[[FileEntry], Awaitable[bytes]]


def _fail(entry: FileEntry, tool: str, res: tools.ToolResult) -> TransformError:
    return TransformError(entry.source, res.error_text or f"{tool} failed (exit {res.returncode})", plugin="imagemin")


async def _gifsicle(entry: FileEntry) -> bytes:
    res = await tools.run_tool(["gifsicle", "--interlace"], entry.contents)
    if res.returncode != 0:
        raise _fail(entry, "gifsicle", res)
    return res.stdout


async def _mozjpeg(entry: FileEntry) -> bytes:
    res = await tools.run_tool(["cjpeg", "-quality", "70", "-progressive"], entry.contents)
    if res.returncode != 0:
        raise _fail(entry, "cjpeg", res)
    return res.stdout


async def _svgo(entry: FileEntry) -> bytes:
    with tempfile.TemporaryDirectory(prefix="assetflow-svgo-") as tmp:
        config = Path(tmp) / "svgo.config.mjs"
        await asyncio.to_thread(config.write_text, SVGO_CONFIG)
        res = await tools.run_tool(["svgo", "--config", str(config), "--input", "-", "--output", "-"], entry.contents)
    if res.returncode != 0:
        raise _fail(entry, "svgo", res)
    return res.stdout


async def _png(entry: FileEntry) -> bytes:
    # optipng only works on files
    with tempfile.TemporaryDirectory(prefix="assetflow-png-") as tmp:
        work = Path(tmp) / "image.png"
        await asyncio.to_thread(work.write_bytes, entry.contents)
        res = await tools.run_tool(["optipng", "-quiet", "-o3", str(work)])
        if res.returncode != 0:
            raise _fail(entry, "optipng", res)
        optimized = await asyncio.to_thread(work.read_bytes)

    res = await tools.run_tool(["pngquant", "--quality=65-80", "--speed", "4", "-"], optimized)
    # 98/99: result would be larger / below the quality floor; keep optipng's output
    if res.returncode in (98, 99):
        return optimized
    if res.returncode != 0:
        raise _fail(entry, "pngquant", res)
    return res.stdout


OPTIMIZERS: Dict[str, Optimizer] = {
    ".gif": _gifsicle,
    ".jpg": _mozjpeg,
    ".jpeg": _mozjpeg,
    ".svg": _svgo,
    ".png": _png,
}


def _imagemin(suffixes: List[str], name: str) -> Transform:
    async def _run(entry: FileEntry) -> FileEntry:
        optimizer = OPTIMIZERS.get(entry.path.suffix.lower())
        if optimizer is None or entry.path.suffix.lower() not in suffixes:
            return entry
        out = await optimizer(entry)
        if not out or len(out) >= len(entry.contents):
            return entry.with_metadata(saved="0")
        return entry.with_contents(out).with_metadata(saved=str(len(entry.contents) - len(out)))

    _run.plugin_name = name  # type: ignore[attr-defined]
    return _run


def imagemin() -> Transform:
    """gif / jpeg / svg (and png when the PNG path is healthy)."""
    return _imagemin([".gif", ".jpg", ".jpeg", ".svg", ".png"], "imagemin")


def imagemin_png() -> Transform:
    """Separate PNG path (optipng, then pngquant)."""
    return _imagemin([".png"], "imagemin:png")
