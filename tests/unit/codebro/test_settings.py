from __future__ import annotations

import os
from pathlib import Path

import pytest
from pydantic import ValidationError

from codebro.config import DEFAULT_IGNORED_PATHS, Markers
from codebro.settings import Settings, api_key_from_env, load_env, load_settings


@pytest.mark.unit
def test_settings_defaults() -> None:
    settings = Settings()

    assert settings.model == "grok-3"
    assert settings.api_base_url == "https://api.x.ai/v1"
    assert settings.max_file_size_bytes == 50 * 1024
    assert settings.max_total_context_chars == 100_000
    assert settings.ignore_patterns == DEFAULT_IGNORED_PATHS
    assert settings.markers == Markers()
    assert settings.backup_dir == Path(".codebro/backups")


@pytest.mark.unit
def test_settings_are_frozen_and_strict() -> None:
    settings = Settings()

    with pytest.raises(ValidationError):
        settings.model = "other"  # type: ignore[misc]
    with pytest.raises(ValidationError):
        Settings(unknown_field=True)  # type: ignore[call-arg]
    with pytest.raises(ValidationError):
        Settings(max_total_context_chars=-1)


@pytest.mark.unit
def test_api_key_is_hidden_from_repr() -> None:
    assert "sekrit" not in repr(Settings(api_key="sekrit"))


@pytest.mark.unit
def test_api_key_from_env_uses_first_non_empty_variable() -> None:
    assert api_key_from_env({"API_KEY": "c", "VITE_XAI_API_KEY": "b", "XAI_API_KEY": " "}) == "b"
    assert api_key_from_env({}) == ""


@pytest.mark.unit
def test_load_settings_layers_yaml_env_and_overrides(tmp_path: Path) -> None:
    config = tmp_path / "codebro.yaml"
    config.write_text(
        "model: grok-2\nmax_total_context_chars: 500\napi_key: from-yaml\nmarkers:\n  start: '<<<'\n",
        encoding="utf-8",
    )

    settings = load_settings(
        config,
        environ={"XAI_API_KEY": "from-env"},
        max_total_context_chars=700,
        model=None,
    )

    assert settings.model == "grok-2"
    assert settings.max_total_context_chars == 700
    assert settings.api_key == "from-env"
    assert settings.markers.start == "<<<"
    assert settings.markers.end == Markers().end


@pytest.mark.unit
def test_load_settings_without_file_or_key() -> None:
    settings = load_settings(environ={})

    assert settings == Settings()


@pytest.mark.unit
def test_load_settings_missing_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_settings(tmp_path / "nope.yaml", environ={})


@pytest.mark.unit
def test_load_settings_rejects_non_mapping(tmp_path: Path) -> None:
    config = tmp_path / "codebro.yaml"
    config.write_text("- a\n- b\n", encoding="utf-8")

    with pytest.raises(TypeError):
        load_settings(config, environ={})


@pytest.mark.unit
def test_load_settings_rejects_unknown_keys(tmp_path: Path) -> None:
    config = tmp_path / "codebro.yaml"
    config.write_text("colour: blue\n", encoding="utf-8")

    with pytest.raises(ValidationError):
        load_settings(config, environ={})


@pytest.fixture
def clean_key(monkeypatch: pytest.MonkeyPatch) -> str:
    name = "CODEBRO_TEST_KEY"
    # registered with monkeypatch so whatever load_env sets is undone
    monkeypatch.setenv(name, "placeholder")
    monkeypatch.delenv(name)
    return name


@pytest.mark.unit
def test_load_env_prefers_env_local(tmp_path: Path, clean_key: str) -> None:
    (tmp_path / ".env.local").write_text(f"{clean_key}=from-local\n", encoding="utf-8")
    (tmp_path / ".env").write_text(f"{clean_key}=from-env\n", encoding="utf-8")

    load_env(tmp_path)

    assert os.environ[clean_key] == "from-local"


@pytest.mark.unit
def test_load_env_never_overrides(tmp_path: Path, clean_key: str, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(clean_key, "already-set")
    (tmp_path / ".env.local").write_text(f"{clean_key}=from-local\n", encoding="utf-8")

    load_env(tmp_path)

    assert os.environ[clean_key] == "already-set"


@pytest.mark.unit
def test_load_env_finds_dotenv_above_the_given_directory(
    tmp_path: Path, clean_key: str, monkeypatch: pytest.MonkeyPatch
) -> None:
    project = tmp_path / "project"
    nested = project / "packages" / "web"
    nested.mkdir(parents=True)
    (project / ".env").write_text(f"{clean_key}=from-project\n", encoding="utf-8")
    elsewhere = tmp_path / "elsewhere"
    elsewhere.mkdir()
    (elsewhere / ".env").write_text(f"{clean_key}=from-cwd\n", encoding="utf-8")
    monkeypatch.chdir(elsewhere)

    load_env(nested)

    assert os.environ[clean_key] == "from-project"
