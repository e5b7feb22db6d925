# fsbatch/app/config_loader.py
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

import yaml

from fsbatch.core.errors import ConfigError
from .config import parse_delimiter


class ConfigLoader:
    """
    Load an optional YAML config file into FsBatchConfig keyword overrides.

    Example:

        watcher:
          driver: inotifywait
        events:
          allow: [close_write, moved_to, delete]
        delimiter: "\\0"
        grace_s: 1.5
        retry_delay_s: 30
        env_var: SYNC_EVENTS
    """

    TOP_LEVEL_KEYS = (
        "watcher",
        "events",
        "delimiter",
        "grace_s",
        "retry_delay_s",
        "env_var",
        "terminate_timeout_s",
        "read_chunk_size",
    )

    def __init__(self, path: Path):
        self.path = Path(path)
        self.doc: Dict[str, Any] = {}

    def load(self) -> Dict[str, Any]:
        if not self.path.is_file():
            raise ConfigError(
                f"Config file not found: {self.path}",
                details={"path": str(self.path)},
            )

        try:
            self.doc = self._load_yaml()
        except yaml.YAMLError as e:
            raise ConfigError(
                f"Config file is not valid YAML: {self.path}",
                hint=str(e),
                details={"path": str(self.path)},
            ) from None

        if not isinstance(self.doc, dict):
            raise self._shape_error("top level must be a mapping")

        unknown = sorted(set(self.doc) - set(self.TOP_LEVEL_KEYS))
        if unknown:
            raise self._shape_error(
                f"unknown key(s): {', '.join(unknown)}",
                hint="Known keys: " + ", ".join(self.TOP_LEVEL_KEYS),
            )

        out: Dict[str, Any] = {}
        out.update(self._watcher_section(self.doc.get("watcher")))
        out.update(self._events_section(self.doc.get("events")))

        if "delimiter" in self.doc:
            out["delimiter"] = parse_delimiter(self.doc["delimiter"])
        for key in ("grace_s", "retry_delay_s", "terminate_timeout_s"):
            if key in self.doc:
                out[key] = self._number(key, self.doc[key])
        if "read_chunk_size" in self.doc:
            out["read_chunk_size"] = int(self._number("read_chunk_size", self.doc["read_chunk_size"]))
        if "env_var" in self.doc:
            out["env_var"] = str(self.doc["env_var"])

        return out

    # ---------------- sections ----------------
    def _watcher_section(self, section: Any) -> Dict[str, Any]:
        if section is None:
            return {}
        if not isinstance(section, dict):
            raise self._shape_error("'watcher' must be a mapping")

        out: Dict[str, Any] = {}
        if "driver" in section:
            out["watcher_driver"] = str(section["driver"])
        if "argv" in section:
            argv = section["argv"]
            if not isinstance(argv, list) or not all(isinstance(a, (str, int, float)) for a in argv):
                raise self._shape_error("'watcher.argv' must be a list of strings")
            out["watcher_argv"] = tuple(str(a) for a in argv)
        if "append_watch_dir" in section:
            out["watcher_append_dir"] = bool(section["append_watch_dir"])
        return out

    def _events_section(self, section: Any) -> Dict[str, Any]:
        if section is None:
            return {}
        if not isinstance(section, dict):
            raise self._shape_error("'events' must be a mapping")

        out: Dict[str, Any] = {}
        for key, target in (("allow", "allowed_events"), ("exclude", "excluded_events")):
            if key not in section:
                continue
            values = section[key] or []
            if not isinstance(values, list):
                raise self._shape_error(f"'events.{key}' must be a list")
            out[target] = tuple(str(v) for v in values)
        return out

    # ---------------- helpers ----------------
    def _number(self, key: str, value: Any) -> float:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise self._shape_error(f"'{key}' must be a number, got {value!r}")
        return float(value)

    def _shape_error(self, what: str, *, hint: str | None = None) -> ConfigError:
        return ConfigError(
            f"Invalid config file {self.path}: {what}.",
            hint=hint,
            details={"path": str(self.path)},
        )

    def _load_yaml(self) -> Any:
        with open(self.path, "r", encoding="utf-8") as f:
            return yaml.safe_load(f) or {}
