from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional

import streamlit as st

CONFIG_FILE_NAME = "settings.json"
DB_FILE_NAME = "greenstock.db"
SESSION_DATA_DIR = "greenstock_data_dir"
ENV_DATA_DIR = "GREENSTOCK_DATA_DIR"
ENV_LOG_LEVEL = "GREENSTOCK_LOG_LEVEL"


@dataclass(frozen=True)
class Settings:
    data_dir: Path
    db_path: Path
    currency: str = "BRL"
    log_level: str = "INFO"


def _default_data_dir() -> Path:
    return Path.home() / ".greenstock"


def _expand(p: Any) -> Path:
    return Path(str(p)).expanduser().resolve()


def _load_persisted_settings(folder: Path) -> dict:
    cfg = folder / CONFIG_FILE_NAME
    if not cfg.exists():
        return {}
    try:
        data = json.loads(cfg.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return {}
    return data if isinstance(data, dict) else {}


def persist_data_dir(data_dir_str: str) -> None:
    """
    Remember a new data directory.

    settings.json always lives in the default folder, since that is the
    only place get_settings() can find it before knowing the data dir.
    """
    data_dir = _expand(data_dir_str)
    data_dir.mkdir(parents=True, exist_ok=True)

    home = _default_data_dir()
    home.mkdir(parents=True, exist_ok=True)
    (home / CONFIG_FILE_NAME).write_text(json.dumps({"data_dir": str(data_dir)}, indent=2), encoding="utf-8")

    st.session_state[SESSION_DATA_DIR] = str(data_dir)


def resolve_data_dir(session: Optional[Mapping[str, Any]] = None) -> Path:
    """Session choice, then GREENSTOCK_DATA_DIR, then settings.json, then ~/.greenstock."""
    session = session or {}
    if SESSION_DATA_DIR in session:
        return _expand(session[SESSION_DATA_DIR])
    env = os.getenv(ENV_DATA_DIR)
    if env:
        return _expand(env)
    home = _default_data_dir()
    return _expand(_load_persisted_settings(home).get("data_dir", home))


@st.cache_resource
def get_settings() -> Settings:
    data_dir = resolve_data_dir(dict(st.session_state))
    data_dir.mkdir(parents=True, exist_ok=True)
    return Settings(
        data_dir=data_dir,
        db_path=data_dir / DB_FILE_NAME,
        log_level=os.getenv(ENV_LOG_LEVEL, "INFO").upper(),
    )
