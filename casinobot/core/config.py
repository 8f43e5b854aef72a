from __future__ import annotations
import yaml
from typing import Any

class Config(dict):
    """YAML settings. Lookups take key paths: get("casino", "prefix") or get("casino.prefix")."""

    @staticmethod
    def load(path: str) -> "Config":
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{path} must contain a mapping at the top level")
        return Config(data)

    @staticmethod
    def _path(keys) -> list[str]:
        out = []
        for k in keys:
            out.extend(str(k).split("."))
        return out

    def get(self, *keys, default=None):
        node: Any = self
        for k in self._path(keys):
            if not isinstance(node, dict) or k not in node:
                return default
            node = node[k]
        return node

    def section(self, *keys) -> "Config":
        node = self.get(*keys, default={})
        return Config(node if isinstance(node, dict) else {})

    def get_int(self, *keys, default: int = 0) -> int:
        value = self.get(*keys, default=default)
        try:
            return int(value)
        except (TypeError, ValueError):
            return default

    def get_float(self, *keys, default: float = 0.0) -> float:
        value = self.get(*keys, default=default)
        try:
            return float(value)
        except (TypeError, ValueError):
            return default
