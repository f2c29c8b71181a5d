# ==============================
# Config Precedence Tests
# ==============================
from __future__ import annotations

import textwrap

import pytest

from broker.config.loader import load_settings


def _write_yaml(path, body: str) -> None:  # type: ignore[no-untyped-def]
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(body), encoding="utf-8")


def _base_configs(root):  # type: ignore[no-untyped-def]
    _write_yaml(root / "configs" / "app.yaml", """\
    port: 1111
    """)
    _write_yaml(root / "configs" / "store.yaml", """\
    url: redis://config-host:6379/0
    page_size: 50
    """)
    _write_yaml(root / "configs" / "integrations.yaml", """\
    enabled: [store]
    """)


def test_defaults_without_any_files(tmp_path) -> None:  # type: ignore[no-untyped-def]
    settings, _ = load_settings(repo_root=str(tmp_path), env={})

    assert settings.app.name == "toolbroker"
    assert settings.store.url is None
    assert settings.neon.api_key is None
    assert settings.store.page_size == 100
    assert settings.integrations.enabled == ["store", "neon"]
    assert settings.repo_root_path() == tmp_path.resolve()


def test_config_precedence(tmp_path) -> None:  # type: ignore[no-untyped-def]
    _base_configs(tmp_path)
    _write_yaml(tmp_path / "secrets" / "secrets.yaml", """\
    redis_url: redis://secret-host:6379/0
    neon_api_key: from-secrets
    """)
    (tmp_path / ".env").write_text("NEON_API_KEY=from-dotenv\nexport TOOLBROKER__APP__PORT='2222'\n", encoding="utf-8")

    settings, _ = load_settings(repo_root=str(tmp_path), env={"TOOLBROKER__STORE__PAGE_SIZE": "25"})

    assert settings.app.port == 2222
    assert settings.store.page_size == 25
    assert settings.store.url == "redis://secret-host:6379/0"
    assert settings.neon.api_key == "from-dotenv"
    assert settings.integrations.enabled == ["store"]


def test_real_env_beats_dotenv_and_overrides_beat_env(tmp_path) -> None:  # type: ignore[no-untyped-def]
    (tmp_path / ".env").write_text("REDIS_URL=redis://dotenv:6379/0\n", encoding="utf-8")
    env = {"REDIS_URL": "redis://env:6379/0", "NEON_API_KEY": "env-key"}

    settings, _ = load_settings(repo_root=str(tmp_path), env=env)
    assert settings.store.url == "redis://env:6379/0"

    settings, _ = load_settings(
        repo_root=str(tmp_path),
        env=env,
        overrides={"store": {"url": "redis://cli:6379/3"}, "neon": {"api_key": None}},
    )
    assert settings.store.url == "redis://cli:6379/3"
    assert settings.neon.api_key == "env-key"


def test_nested_env_list_and_uncoerced_keys(tmp_path) -> None:  # type: ignore[no-untyped-def]
    env = {
        "TOOLBROKER__INTEGRATIONS__ENABLED": "neon,store",
        "TOOLBROKER__NEON__API_KEY": "12345",
        "TOOLBROKER__LOGGING__JSON": "false",
    }
    settings, _ = load_settings(repo_root=str(tmp_path), env=env)

    assert settings.integrations.enabled == ["neon", "store"]
    assert settings.neon.api_key == "12345"
    assert settings.logging.json_lines is False


def test_invalid_configuration_raises_value_error(tmp_path) -> None:  # type: ignore[no-untyped-def]
    with pytest.raises(ValueError, match="Invalid configuration"):
        load_settings(repo_root=str(tmp_path), env={"TOOLBROKER__STORE__PAGE_SIZE": "0"})
    with pytest.raises(ValueError, match="Invalid configuration"):
        load_settings(repo_root=str(tmp_path), env={"TOOLBROKER__STORE__BOGUS": "1"})
