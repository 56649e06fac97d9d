# server.py
# Local dev server: static files from the build output + live reload.

from __future__ import annotations

import asyncio
import html
import webbrowser
from pathlib import Path
from typing import AsyncIterator, Optional, Set

import uvicorn
from fastapi import FastAPI, HTTPException
from fastapi.responses import FileResponse, HTMLResponse, Response, StreamingResponse

from .config import BuildConfig
from .ui.console import Console

LIVERELOAD_PATH = "/__livereload"

LIVERELOAD_JS = """(function () {
  var source = new EventSource("%s");
  source.addEventListener("reload", function () { window.location.reload(); });
})();
""" % LIVERELOAD_PATH

_SNIPPET = f'<script src="{LIVERELOAD_PATH}.js"></script>'


class LiveReloadHub:
    """Fan-out of "rebuilt" notifications to every connected browser (SSE)."""

    def __init__(self) -> None:
        self._queues: Set[asyncio.Queue] = set()

    @property
    def clients(self) -> int:
        return len(self._queues)

    def notify(self, name: str) -> None:
        for q in list(self._queues):
            q.put_nowait(name)

    async def stream(self) -> AsyncIterator[str]:
        q: asyncio.Queue = asyncio.Queue()
        self._queues.add(q)
        try:
            yield "retry: 1000\n\n"
            while True:
                name = await q.get()
                yield f"event: reload\ndata: {name}\n\n"
        finally:
            self._queues.discard(q)


def inject_livereload(page: bytes) -> bytes:
    marker = b"</body>"
    idx = page.lower().rfind(marker)
    snippet = _SNIPPET.encode("utf-8")
    if idx == -1:
        return page + snippet
    return page[:idx] + snippet + page[idx:]


def _listing(root: Path, directory: Path) -> str:
    rel = directory.relative_to(root).as_posix()
    prefix = "" if rel == "." else rel + "/"
    items = []
    for child in sorted(directory.iterdir(), key=lambda p: (not p.is_dir(), p.name)):
        name = child.name + ("/" if child.is_dir() else "")
        items.append(f'<li><a href="/{html.escape(prefix + name)}">{html.escape(name)}</a></li>')
    title = html.escape("/" + prefix)
    return f"<html><head><title>{title}</title></head><body><h1>{title}</h1><ul>{''.join(items)}</ul></body></html>"


def create_app(
    root: str | Path,
    hub: Optional[LiveReloadHub] = None,
    *,
    livereload: bool = True,
    directory_listing: bool = True,
) -> FastAPI:
    root = Path(root).resolve()
    hub = hub or LiveReloadHub()
    app = FastAPI(title="assetflow dev server")
    app.state.hub = hub

    @app.get(LIVERELOAD_PATH)
    async def livereload_events():
        return StreamingResponse(hub.stream(), media_type="text/event-stream")

    @app.get(LIVERELOAD_PATH + ".js")
    async def livereload_script():
        return Response(LIVERELOAD_JS, media_type="application/javascript")

    def _html(path: Path) -> Response:
        page = path.read_bytes()
        if livereload:
            page = inject_livereload(page)
        return Response(page, media_type="text/html")

    @app.get("/{path:path}")
    async def serve(path: str):
        target = (root / path).resolve()
        if target != root and root not in target.parents:
            raise HTTPException(status_code=404)
        if target.is_dir():
            index = target / "index.html"
            if index.is_file():
                return _html(index)
            if directory_listing:
                return HTMLResponse(_listing(root, target))
            raise HTTPException(status_code=404)
        if not target.is_file():
            raise HTTPException(status_code=404)
        if target.suffix in (".html", ".htm"):
            return _html(target)
        return FileResponse(target)

    return app


class DevServer:
    """uvicorn running the dev app inside the current event loop."""

    def __init__(self, config: BuildConfig, console: Console, hub: Optional[LiveReloadHub] = None):
        self.config = config
        self.console = console
        self.hub = hub or LiveReloadHub()
        self._server: Optional[uvicorn.Server] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def url(self) -> str:
        s = self.config.server
        return f"http://{s.host}:{s.port}/"

    def app(self) -> FastAPI:
        s = self.config.server
        return create_app(
            self.config.path(self.config.dest_root),
            self.hub,
            livereload=s.livereload,
            directory_listing=s.directory_listing,
        )

    async def start(self) -> None:
        s = self.config.server
        cfg = uvicorn.Config(self.app(), host=s.host, port=s.port, log_level="warning")
        self._server = uvicorn.Server(cfg)
        self._task = asyncio.create_task(self._server.serve())
        self.console.print_server_started(self.url)
        if s.open_browser:
            await asyncio.to_thread(webbrowser.open, self.url)

    async def stop(self) -> None:
        if self._server is not None:
            self._server.should_exit = True
        if self._task is not None:
            await self._task
