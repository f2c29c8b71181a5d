# ==============================
# Config Loader (only env reader)
# ==============================
"""
Config loader for toolbroker.

Rules:
- This is the ONLY place allowed to read os.environ and .env.
- This is the ONLY place allowed to read secrets/secrets.yaml.
- Everything else receives a validated Settings object.

Precedence:
startup overrides > env > .env > secrets/secrets.yaml > configs/*.yaml > defaults

Well-known variables (honored in addition to TOOLBROKER__ nesting):
  REDIS_URL     -> store.url
  NEON_API_KEY  -> neon.api_key

Testability:
- All functions accept injected paths and env dict.
- No hardcoded absolute paths.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml
from pydantic import ValidationError

from broker.config.schema import Settings


ENV_PREFIX = "TOOLBROKER__"

# env var -> (section, key)
WELL_KNOWN_ENV: Dict[str, Tuple[str, str]] = {
    "REDIS_URL": ("store", "url"),
    "NEON_API_KEY": ("neon", "api_key"),
}

_SECTIONS = ("app", "logging", "store", "neon", "integrations")


# ==============================
# YAML Helpers
# ==============================


def _read_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    raw = path.read_text(encoding="utf-8").strip()
    if not raw:
        return {}
    data = yaml.safe_load(raw)
    return data if isinstance(data, dict) else {}


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """
    Deep-merge dictionaries: override wins.
    """
    out: Dict[str, Any] = dict(base)
    for k, v in override.items():
        if k in out and isinstance(out[k], dict) and isinstance(v, dict):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = v
    return out


# ==============================
# .env Loader
# ==============================


def _read_dotenv(dotenv_path: Path) -> Dict[str, str]:
    """
    Minimal .env parser (KEY=VALUE).
    - Ignores comments and blank lines.
    - Strips surrounding quotes.
    """
    if not dotenv_path.exists():
        return {}
    envs: Dict[str, str] = {}
    for line in dotenv_path.read_text(encoding="utf-8").splitlines():
        s = line.strip()
        if not s or s.startswith("#") or "=" not in s:
            continue
        if s.startswith("export "):
            s = s[len("export ") :].strip()
        key, val = s.split("=", 1)
        key = key.strip()
        val = val.strip().strip('"').strip("'")
        if key:
            envs[key] = val
    return envs


def _coerce(v: str) -> Any:
    vs = v.strip()
    if vs.lower() in {"true", "false"}:
        return vs.lower() == "true"
    if vs.isdigit() or (vs.startswith("-") and vs[1:].isdigit()):
        return int(vs)
    if "." in vs:
        try:
            return float(vs)
        except ValueError:
            return vs
    if "," in vs:
        return [p.strip() for p in vs.split(",") if p.strip()]
    return vs


def _apply_env_overrides(cfg: Dict[str, Any], env: Dict[str, str]) -> Dict[str, Any]:
    """
    Apply environment overrides with TOOLBROKER__ style nesting.

    Example:
      TOOLBROKER__APP__PORT=8001
      TOOLBROKER__STORE__PAGE_SIZE=500
      TOOLBROKER__INTEGRATIONS__ENABLED=store,neon

    Rules:
    - Split by '__' after prefix TOOLBROKER__
    - Lowercase keys for dict insertion
    - Coerce booleans/ints/floats/comma lists when obvious
    - Connection strings and keys are never coerced
    """
    out = dict(cfg)

    for k, v in env.items():
        if not k.startswith(ENV_PREFIX):
            continue
        path = k[len(ENV_PREFIX) :].split("__")
        if not path or any(not p for p in path):
            continue
        cur: Dict[str, Any] = out
        for i, seg in enumerate(path):
            key = seg.lower()
            if i == len(path) - 1:
                cur[key] = v if key in {"url", "api_key", "base_url"} else _coerce(v)
            else:
                nxt = cur.get(key)
                if not isinstance(nxt, dict):
                    nxt = {}
                    cur[key] = nxt
                cur = nxt
    return out


def _apply_well_known(cfg: Dict[str, Any], env: Dict[str, str]) -> Dict[str, Any]:
    out = dict(cfg)
    for var, (section, key) in WELL_KNOWN_ENV.items():
        val = env.get(var)
        if val:
            out = _deep_merge(out, {section: {key: val}})
    return out


# ==============================
# Public Loader API
# ==============================


def load_settings(
    *,
    repo_root: Optional[str] = None,
    configs_dir: Optional[str] = None,
    secrets_file: Optional[str] = None,
    dotenv_file: Optional[str] = None,
    env: Optional[Dict[str, str]] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> Tuple[Settings, Dict[str, Any]]:
    """
    Load and validate Settings.

    Returns:
    - (Settings, merged_raw_dict)

    Inputs:
    - repo_root: defaults to current working directory
    - configs_dir: defaults to <repo_root>/configs
    - secrets_file: defaults to <repo_root>/secrets/secrets.yaml
    - dotenv_file: defaults to <repo_root>/.env
    - env: injected env vars (defaults to os.environ)
    - overrides: startup arguments (e.g. CLI --redis-url), nested like Settings; highest precedence
    """
    env_vars = dict(env) if env is not None else dict(os.environ)

    root = Path(repo_root or os.getcwd()).expanduser().resolve()
    cfg_dir = root / (configs_dir or "configs")

    # base configs: one yaml per section
    merged: Dict[str, Any] = {}
    for section in _SECTIONS:
        merged = _deep_merge(merged, {section: _read_yaml(cfg_dir / f"{section}.yaml")})

    # secrets.yaml (optional)
    sec_path = Path(secrets_file) if secrets_file else (root / "secrets" / "secrets.yaml")
    secrets_cfg = _read_yaml(sec_path)
    merged = _deep_merge(merged, {"secrets": secrets_cfg})
    merged = _hydrate_backend_secrets(merged)

    # .env (optional): real env wins over it
    dotenv_path = Path(dotenv_file) if dotenv_file else (root / ".env")
    effective_env = dict(env_vars)
    for k, v in _read_dotenv(dotenv_path).items():
        effective_env.setdefault(k, v)

    merged = _apply_well_known(merged, effective_env)
    merged = _apply_env_overrides(merged, effective_env)

    if overrides:
        merged = _deep_merge(merged, _drop_none(overrides))

    # ensure repo_root is set deterministically (override configs)
    merged = _deep_merge(merged, {"app": {"paths": {"repo_root": str(root)}}})

    try:
        settings = Settings.model_validate(merged)
    except ValidationError as e:
        raise ValueError(f"Invalid configuration: {e}") from e

    return settings, merged


def _hydrate_backend_secrets(merged: Dict[str, Any]) -> Dict[str, Any]:
    """
    Map secrets into backend sections; secrets beat configs/*.yaml.
    """
    secrets = merged.get("secrets", {}) or {}
    fill: Dict[str, Any] = {}
    if secrets.get("redis_url"):
        fill["store"] = {"url": secrets["redis_url"]}
    if secrets.get("neon_api_key"):
        fill["neon"] = {"api_key": secrets["neon_api_key"]}
    return _deep_merge(merged, fill) if fill else merged


def _drop_none(d: Dict[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for k, v in d.items():
        if v is None:
            continue
        out[k] = _drop_none(v) if isinstance(v, dict) else v
    return out
