# config.py
from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ConfigError

DEFAULT_CONFIG_FILE = "assetflow.toml"


class ServerSettings(BaseModel):
    """Local dev server (only used in watch mode, never in production)."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    host: str = "127.0.0.1"
    port: int = 8000
    livereload: bool = True
    directory_listing: bool = True
    open_browser: bool = True


class BuildConfig(BaseModel):
    """
    Everything a task body needs to know about the build.

    Passed explicitly into every task; nothing reads a global mode flag.
    """
    model_config = ConfigDict(frozen=True, extra="forbid")

    production: bool = False
    show_error_stack: bool = False
    cwd: Path = Path(".")

    # path layout
    src_root: str = "src/"
    dest_root: str = "src/"  # compile next to the sources
    styles_src: str = "css/sass/"
    styles_dest: str = "css/"
    scripts_src: str = "js/"
    scripts_dest: str = "js/"
    images_src: str = ""
    vendor_dir: str = "vendors/"
    vendor_script_file: str = "vendors.js"
    script_file: str = "enlBase.js"

    # engine
    concurrency: int = Field(default=16, ge=1)
    debounce_seconds: float = Field(default=0.2, ge=0)

    server: ServerSettings = ServerSettings()

    @property
    def sass_style(self) -> str:
        return "compressed" if self.production else "expanded"

    @property
    def source_maps(self) -> bool:
        return not self.production

    def src(self, *parts: str) -> str:
        return self.src_root + "".join(parts)

    def dest(self, *parts: str) -> str:
        return self.dest_root + "".join(parts)

    def path(self, relative: str) -> Path:
        return (self.cwd / relative).resolve()


def load_config(path: str | Path | None = None, **overrides: Any) -> BuildConfig:
    """
    Build a BuildConfig from an optional TOML file plus explicit overrides.

    Lookup: `path` if given (must exist), else `assetflow.toml` in the cwd
    override (or the current directory) when present.
    Overrides set to None are ignored so CLI defaults don't clobber the file.
    """
    data: dict[str, Any] = {}
    cwd = Path(overrides.get("cwd") or ".")

    if path is not None:
        cfg_path = Path(path)
        if not cfg_path.exists():
            raise ConfigError("Config file not found", {"path": str(cfg_path)})
    else:
        cfg_path = cwd / DEFAULT_CONFIG_FILE

    if cfg_path.exists():
        try:
            with cfg_path.open("rb") as f:
                raw = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError("Invalid TOML in config file", {"path": str(cfg_path), "error": str(e)}) from e
        data.update(raw.get("assetflow", raw))

    data.update({k: v for k, v in overrides.items() if v is not None})

    try:
        return BuildConfig(**data)
    except ValidationError as e:
        raise ConfigError("Invalid configuration", {"errors": e.errors(include_url=False)}) from e
