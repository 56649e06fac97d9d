from __future__ import annotations

from pathlib import Path

import pytest

from assetflow.config import BuildConfig, load_config
from assetflow.errors import ConfigError


def test_defaults_and_derived_settings():
    dev = BuildConfig()
    assert dev.sass_style == "expanded" and dev.source_maps
    prod = BuildConfig(production=True)
    assert prod.sass_style == "compressed" and not prod.source_maps
    assert dev.src(dev.scripts_src, dev.vendor_dir) == "src/js/vendors/"


def test_config_is_immutable():
    with pytest.raises(Exception):
        BuildConfig().production = True


def test_toml_file_and_overrides(tmp_path):
    (tmp_path / "assetflow.toml").write_text(
        "[assetflow]\n"
        "script_file = 'app.js'\n"
        "concurrency = 4\n"
        "\n"
        "[assetflow.server]\n"
        "port = 9000\n"
    )
    config = load_config(cwd=tmp_path, concurrency=None, production=True)
    assert config.script_file == "app.js"
    assert config.concurrency == 4  # None override ignored
    assert config.production
    assert config.server.port == 9000
    assert config.cwd == tmp_path


def test_missing_default_file_is_fine(tmp_path):
    assert load_config(cwd=tmp_path) == BuildConfig(cwd=tmp_path)


def test_explicit_missing_file(tmp_path):
    with pytest.raises(ConfigError):
        load_config(tmp_path / "nope.toml")


@pytest.mark.parametrize(
    "body",
    [
        "[assetflow]\nconcurrency = 0\n",
        "[assetflow]\nunknown_key = 1\n",
        "[assetflow\n",
    ],
)
def test_invalid_config_is_config_error(tmp_path, body):
    path = tmp_path / "custom.toml"
    path.write_text(body)
    with pytest.raises(ConfigError):
        load_config(path)


def test_path_resolves_against_cwd(tmp_path):
    config = BuildConfig(cwd=tmp_path)
    assert config.path("src/css") == (tmp_path / "src/css").resolve()
    assert isinstance(config.cwd, Path)
