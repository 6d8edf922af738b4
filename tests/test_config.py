from __future__ import annotations

import logging
from pathlib import Path

import pytest
from pydantic import ValidationError

from mdpreview.config import ServerConfig, load_config


def test_server_config_defaults() -> None:
    config = ServerConfig()

    assert config.host == "localhost"
    assert config.port == 6419
    assert config.theme == "auto"
    assert config.bounding_box is True
    assert config.browser is True


@pytest.mark.parametrize("theme", ["light", "dark", "auto"])
def test_known_themes_are_kept(theme: str) -> None:
    assert ServerConfig(theme=theme).theme == theme


@pytest.mark.parametrize("theme", ["solarized", "Dark", "", None, 3])
def test_unknown_theme_falls_back_to_auto(theme: object, caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING, logger="mdpreview.config"):
        config = ServerConfig(theme=theme)

    assert config.theme == "auto"
    assert "defaulting to 'auto'" in caplog.text


def test_server_config_is_immutable() -> None:
    config = ServerConfig()
    with pytest.raises(ValidationError):
        config.port = 9000  # type: ignore[misc]


def test_port_outside_range_is_rejected() -> None:
    with pytest.raises(ValidationError):
        ServerConfig(port=70000)


def test_merged_ignores_unset_values_and_revalidates() -> None:
    base = ServerConfig(host="0.0.0.0", port=8080)

    merged = base.merged(host=None, port=9000, theme="neon", browser=False)

    assert merged.host == "0.0.0.0"
    assert merged.port == 9000
    assert merged.theme == "auto"
    assert merged.browser is False
    assert base.port == 8080
    assert base.merged() is base


def test_load_config_from_directory_without_file_uses_defaults(tmp_path: Path) -> None:
    assert load_config(tmp_path) == ServerConfig()


def test_load_config_reads_yaml_in_directory(tmp_path: Path) -> None:
    (tmp_path / "mdpreview.yml").write_text(
        "host: 0.0.0.0\nport: 8123\ntheme: dark\nbounding_box: false\nbrowser: false\n",
        encoding="utf-8",
    )

    config = load_config(tmp_path)

    assert config == ServerConfig(host="0.0.0.0", port=8123, theme="dark", bounding_box=False, browser=False)


def test_load_config_missing_explicit_file_raises(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "missing.yml")


def test_load_config_rejects_malformed_yaml(tmp_path: Path) -> None:
    path = tmp_path / "broken.yml"
    path.write_text("port: [8000\n", encoding="utf-8")

    with pytest.raises(ValueError, match="Invalid YAML"):
        load_config(path)


def test_load_config_rejects_non_mapping(tmp_path: Path) -> None:
    path = tmp_path / "list.yml"
    path.write_text("- 1\n- 2\n", encoding="utf-8")

    with pytest.raises(ValueError, match="mapping"):
        load_config(path)
