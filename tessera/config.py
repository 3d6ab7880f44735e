"""
Config system - Typed template configuration with layered loading.

A TemplateConfig value is built once per render call and passed
explicitly through every compile stage; nothing reads process-wide state.
"""

from typing import Any, Dict, Iterable, Iterator, Optional, Tuple
from dataclasses import dataclass, fields, replace
from pathlib import Path
import glob
import json
import os

from tessera.faults.domains import ConfigInvalidFault


DEFAULT_MAX_INCLUDE_DEPTH = 16


@dataclass(frozen=True)
class TemplateConfig:
    """
    Options recognised by the compiler and the cache manager.

    Attributes:
        template_root: Directory every template identifier resolves inside
        cache_root: Directory holding compiled artifacts
        cache_enabled: Reuse fresh artifacts instead of recompiling
        trim_whitespace: Collapse whitespace runs outside sensitive elements
        remove_html_comments: Drop ``<!-- -->`` comments (conditional ones survive)
        allow_raw_code: Emit ``{? code ?}`` blocks instead of deleting them
        max_include_depth: Ceiling for nested include expansion
    """

    template_root: Path
    cache_root: Path
    cache_enabled: bool = True
    trim_whitespace: bool = False
    remove_html_comments: bool = False
    allow_raw_code: bool = False
    max_include_depth: int = DEFAULT_MAX_INCLUDE_DEPTH

    def __post_init__(self):
        for key in ("template_root", "cache_root"):
            value = getattr(self, key)
            if not isinstance(value, (str, os.PathLike)) or not str(value):
                raise ConfigInvalidFault(key, "expected a non-empty path")
            object.__setattr__(self, key, Path(value).expanduser().resolve())

        for key in ("cache_enabled", "trim_whitespace", "remove_html_comments", "allow_raw_code"):
            if not isinstance(getattr(self, key), bool):
                raise ConfigInvalidFault(key, f"expected bool, got {type(getattr(self, key)).__name__}")

        depth = self.max_include_depth
        if isinstance(depth, bool) or not isinstance(depth, int) or depth < 0:
            raise ConfigInvalidFault("max_include_depth", "expected a non-negative integer")

    @classmethod
    def from_mapping(cls, data: Dict[str, Any]) -> "TemplateConfig":
        """Build a config from a plain mapping, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        kwargs = {key: value for key, value in data.items() if key in known}

        for required in ("template_root", "cache_root"):
            if required not in kwargs:
                raise ConfigInvalidFault(required, "required option is missing")

        return cls(**kwargs)

    def with_options(self, **changes: Any) -> "TemplateConfig":
        """Return a copy with some options replaced."""
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        """Export config as a JSON-friendly dictionary."""
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data["template_root"] = str(self.template_root)
        data["cache_root"] = str(self.cache_root)
        return data


def _deep_merge(target: Dict[str, Any], source: Dict[str, Any]) -> None:
    """Merge ``source`` into ``target``; nested mappings merge, anything else replaces."""
    for key, value in source.items():
        existing = target.get(key)
        if isinstance(existing, dict) and isinstance(value, dict):
            _deep_merge(existing, value)
        else:
            target[key] = value


_TRUE_WORDS = {"true", "yes", "on"}
_FALSE_WORDS = {"false", "no", "off"}
_GLOB_CHARS = set("*?[")


def coerce_env_value(raw: str) -> Any:
    """
    Interpret an environment string: booleans, integers and JSON
    arrays / objects are converted, everything else stays a string.
    """
    lowered = raw.strip().lower()
    if lowered in _TRUE_WORDS:
        return True
    if lowered in _FALSE_WORDS:
        return False
    if lowered.lstrip("-").isdigit():
        return int(lowered)
    if raw[:1] in ("{", "["):
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            return raw
    return raw


class ConfigLoader:
    """
    Layered configuration: files, then ``TESSERA_*`` environment
    variables, then explicit overrides. Later layers win.

    Environment keys nest on double underscores, so
    ``TESSERA_TEMPLATES__TRIM_WHITESPACE=on`` sets
    ``templates.trim_whitespace = True``.

    Example:
        loader = ConfigLoader.load(paths=["tessera.yaml"])
        config = loader.template_config(cache_root=".tessera-cache")
    """

    FILE_READERS = {
        ".json": "_read_json",
        ".yaml": "_read_yaml",
        ".yml": "_read_yaml",
    }

    def __init__(self, env_prefix: str = "TESSERA_"):
        self.env_prefix = env_prefix
        self.config_data: Dict[str, Any] = {}

    @classmethod
    def load(
        cls,
        paths: Optional[Iterable[str]] = None,
        env_prefix: str = "TESSERA_",
        overrides: Optional[Dict[str, Any]] = None,
    ) -> "ConfigLoader":
        """
        Build a loader from every layer.

        Args:
            paths: Config files, YAML or JSON; glob patterns are expanded
                and a pattern matching nothing is skipped
            env_prefix: Prefix selecting environment variables
            overrides: Highest-precedence values

        Raises:
            ConfigInvalidFault: A named file is missing, has an unknown
                suffix, or does not hold a mapping
        """
        loader = cls(env_prefix=env_prefix)

        for path in loader._expand(paths or []):
            _deep_merge(loader.config_data, loader._read_file(path))

        for keys, value in loader._env_entries(os.environ):
            loader._assign(keys, value)

        if overrides:
            _deep_merge(loader.config_data, overrides)

        return loader

    # ------------------------------------------------------------------
    # Layers
    # ------------------------------------------------------------------

    def _expand(self, patterns: Iterable[str]) -> Iterator[Path]:
        for pattern in patterns:
            if _GLOB_CHARS & set(pattern):
                yield from (Path(match) for match in sorted(glob.glob(pattern)))
            elif Path(pattern).is_file():
                yield Path(pattern)
            else:
                raise ConfigInvalidFault(pattern, "config file does not exist")

    def _read_file(self, path: Path) -> Dict[str, Any]:
        reader = self.FILE_READERS.get(path.suffix.lower())
        if reader is None:
            raise ConfigInvalidFault(str(path), "unsupported config file type")

        data = getattr(self, reader)(path)
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigInvalidFault(str(path), "top level must be a mapping")
        return data

    def _read_json(self, path: Path) -> Any:
        return json.loads(path.read_text(encoding="utf-8"))

    def _read_yaml(self, path: Path) -> Any:
        import yaml
        return yaml.safe_load(path.read_text(encoding="utf-8"))

    def _env_entries(self, environ: Dict[str, str]) -> Iterator[Tuple[list, Any]]:
        for name, raw in environ.items():
            if name.startswith(self.env_prefix) and len(name) > len(self.env_prefix):
                keys = name[len(self.env_prefix):].lower().split("__")
                yield keys, coerce_env_value(raw)

    def _assign(self, keys: list, value: Any) -> None:
        node = self.config_data
        for key in keys[:-1]:
            child = node.get(key)
            if not isinstance(child, dict):
                child = node[key] = {}
            node = child
        node[keys[-1]] = value

    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------

    def get(self, dotted: str, default: Any = None) -> Any:
        """Value at a dot-separated path such as ``templates.cache_root``."""
        node: Any = self.config_data
        for key in dotted.split("."):
            if not isinstance(node, dict) or key not in node:
                return default
            node = node[key]
        return node

    def template_config(self, **defaults: Any) -> TemplateConfig:
        """
        Build a TemplateConfig from the ``templates`` section.

        Root-level scalar keys are used when no ``templates`` section exists.
        ``defaults`` fill in options no layer provided.
        """
        section = self.config_data.get("templates")
        if not isinstance(section, dict):
            section = {k: v for k, v in self.config_data.items() if not isinstance(v, dict)}
        return TemplateConfig.from_mapping({**defaults, **section})

    def to_dict(self) -> Dict[str, Any]:
        """Deep copy of the merged configuration."""
        return json.loads(json.dumps(self.config_data, default=str))
