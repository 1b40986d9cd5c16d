"""
Client configuration: ~/.clau/config.json, overridden by CLAU_* environment variables.
"""

import json
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel

from clau_insights.store import DEFAULT_STATE_FILE
from clau_insights.transport.http import DEFAULT_BASE_URL, DEFAULT_TIMEOUT_S

CONFIG_FILE = Path.home() / ".clau" / "config.json"

_ENV_OVERRIDES = {
    "CLAU_BASE_URL": "base_url",
    "CLAU_ACCESS_TOKEN": "access_token",
    "CLAU_USER_ID": "user_id",
    "CLAU_CLIENT_ID": "client_id",
    "CLAU_TIMEOUT": "timeout",
    "CLAU_STATE_FILE": "state_file",
    "CLAU_USE_CONNECTED_DATA": "use_connected_data",
}


class ClientConfig(BaseModel):
    base_url: str = DEFAULT_BASE_URL
    access_token: Optional[str] = None
    user_id: Optional[str] = None
    email: Optional[str] = None
    client_id: Optional[str] = None
    timeout: float = DEFAULT_TIMEOUT_S
    use_connected_data: bool = False
    use_direct_data: bool = False
    integration_mode: str = "default"
    state_file: Path = DEFAULT_STATE_FILE


def _read(path: Path) -> dict:
    try:
        data = json.loads(path.read_text())
    except (FileNotFoundError, json.JSONDecodeError):
        return {}
    return data if isinstance(data, dict) else {}


def load_config(path: Path = CONFIG_FILE, environ: Optional[dict[str, str]] = None) -> ClientConfig:
    env = os.environ if environ is None else environ
    data = _read(path)
    for var, field in _ENV_OVERRIDES.items():
        if env.get(var):
            data[field] = env[var]
    return ClientConfig.model_validate(data)


def save_config(config: ClientConfig, path: Path = CONFIG_FILE) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(config.model_dump_json(indent=2, exclude_none=True))
