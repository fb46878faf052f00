# utils/config.py
"""YAML configuration of the bridge, loaded through OmegaConf."""

from __future__ import annotations
from dataclasses import fields
from pathlib import Path
from typing import Any, Dict, cast
from omegaconf import OmegaConf
from utils.logger import Logger
from utils.settings import BridgeCfg, paths

DEFAULT_CONFIG_PATH = paths.CONF_DIR / "app.yaml"


def flatten(data: Dict[str, Any], prefix: str = "") -> Dict[str, Any]:
    """``{"Color0": {"fps": 15}}`` -> ``{"Color0.fps": 15}``."""
    flat: Dict[str, Any] = {}
    for key, value in data.items():
        name = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, dict):
            flat.update(flatten(value, name))
        else:
            flat[name] = value
    return flat


class ConfigLoader:
    """Strategy interface for config loading."""

    def load(self, filename: Path | str) -> Dict[str, Any]:
        raise NotImplementedError


class YamlConfigLoader(ConfigLoader):
    def load(self, filename: Path | str) -> Dict[str, Any]:
        """Load a YAML mapping with interpolations resolved."""
        cfg = OmegaConf.load(filename)
        data = OmegaConf.to_container(cfg, resolve=True)
        if not isinstance(data, dict):
            raise ValueError(f"{filename}: top level must be a mapping")
        return cast(Dict[str, Any], data)


class Config:
    _data: Dict[str, Any] | None = None
    _loader: ConfigLoader = YamlConfigLoader()
    _logger = Logger.get_logger("utils.config")

    @classmethod
    def load(
        cls, filename: Path | str = DEFAULT_CONFIG_PATH, force_reload: bool = False
    ) -> None:
        """Load ``filename`` once and apply its ``logging`` section."""
        if cls._data is not None and not force_reload:
            return
        try:
            cls._data = cls._loader.load(filename)
        except Exception as e:
            cls._logger.error(f"Failed to load config {filename}: {e}")
            raise
        logging_cfg = cls._data.get("logging") or {}
        Logger.configure(
            level=logging_cfg.get("level"),
            log_dir=logging_cfg.get("log_dir"),
            json_format=logging_cfg.get("json"),
        )
        cls._logger.info(f"Config loaded from {filename}")

    @classmethod
    def get(cls, path: str, default: Any | None = None) -> Any:
        """Value at dotted ``path``, or ``default`` when absent."""
        if cls._data is None:
            cls.load()
        value: Any = cls._data
        for key in path.split("."):
            if not isinstance(value, dict) or value.get(key) is None:
                cls._logger.debug(f"{path}: '{key}' not set, using default")
                return default
            value = value[key]
        return value

    @classmethod
    def bridge(cls, **overrides: Any) -> BridgeCfg:
        """:class:`BridgeCfg` from the ``bridge`` and ``parameters`` sections.

        ``overrides`` (e.g. from the command line) win over the file; ``None``
        values are ignored and ``parameters`` are merged, not replaced.
        Unknown keys in the file are dropped with a warning.
        """
        section = dict(cls.get("bridge", {}) or {})
        known = {f.name for f in fields(BridgeCfg)} - {"parameters"}
        for key in sorted(set(section) - known):
            cls._logger.warning(f"Unknown bridge option '{key}' ignored")
        values = {k: v for k, v in section.items() if k in known}

        params = flatten(cls.get("parameters", {}) or {})
        params.update(overrides.pop("parameters", None) or {})
        values.update({k: v for k, v in overrides.items() if v is not None})
        return BridgeCfg(**values, parameters=params)

    @classmethod
    def set_loader(cls, loader: ConfigLoader) -> None:
        """Replace the config loader strategy (useful for testing)."""
        cls._loader = loader
        cls._logger.debug(f"Config loader set to {loader.__class__.__name__}")
