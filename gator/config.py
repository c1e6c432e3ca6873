"""Reading and writing the per-user configuration file."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

CONFIG_FILE_NAME = ".gatorconfig.json"

_DB_URL_KEY = "Db_url"
_USERNAME_KEY = "Username"


def config_path() -> Path:
    """Return the location of the configuration file in the home directory."""
    return Path.home() / CONFIG_FILE_NAME


def _string_field(raw: dict[str, Any], name: str, current: str) -> str:
    """Look a key up case-insensitively; the last matching key wins."""
    value = current
    wanted = name.lower()
    for key, item in raw.items():
        if key.lower() != wanted:
            continue
        if item is None:
            continue
        if not isinstance(item, str):
            raise ValueError(f"config field {key!r} must be a string")
        value = item
    return value


@dataclass
class Config:
    """Database location and the name of the logged-in user."""

    db_url: str = ""
    username: str = ""
    path: Path | None = field(default=None, repr=False, compare=False)

    def set_user(self, username: str) -> None:
        """Make ``username`` the current user and persist the change."""
        self.username = username
        self.save()

    def save(self) -> None:
        """Write the configuration to its file."""
        target = self.path if self.path is not None else config_path()
        payload = json.dumps(
            {_DB_URL_KEY: self.db_url, _USERNAME_KEY: self.username},
            separators=(",", ":"),
        )
        fd = os.open(target, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o664)
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(payload)


def read(path: str | os.PathLike[str] | None = None) -> Config:
    """Load the configuration from ``path`` or from the home directory."""
    target = Path(path) if path is not None else config_path()
    raw = json.loads(target.read_text(encoding="utf-8"))
    if raw is None:
        return Config(path=target)
    if not isinstance(raw, dict):
        raise ValueError("config file must hold a JSON object")
    return Config(
        db_url=_string_field(raw, _DB_URL_KEY, ""),
        username=_string_field(raw, _USERNAME_KEY, ""),
        path=target,
    )