"""
Shared fixtures for the template test suite.
"""

from pathlib import Path
from typing import Dict

import pytest

from tessera.config import TemplateConfig
from tessera.templates import ArtifactCodeCache, TemplateEngine, TemplateLoader, TemplateManager


@pytest.fixture
def template_root(tmp_path) -> Path:
    root = tmp_path / "templates"
    root.mkdir()
    return root


@pytest.fixture
def cache_root(tmp_path) -> Path:
    return tmp_path / "cache"


@pytest.fixture
def write_templates(template_root):
    """Write ``{name: text}`` into the template root, creating subdirectories."""

    def _write(templates: Dict[str, str]) -> Path:
        for name, text in templates.items():
            path = template_root / name
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(text, encoding="utf-8")
        return template_root

    return _write


@pytest.fixture
def loader(template_root) -> TemplateLoader:
    return TemplateLoader(template_root)


@pytest.fixture
def config(template_root, cache_root) -> TemplateConfig:
    return TemplateConfig(template_root=template_root, cache_root=cache_root)


@pytest.fixture
def code_cache() -> ArtifactCodeCache:
    return ArtifactCodeCache(capacity=16)


@pytest.fixture
def manager(config, code_cache) -> TemplateManager:
    return TemplateManager(config, code_cache=code_cache)


@pytest.fixture
def engine(config, code_cache) -> TemplateEngine:
    return TemplateEngine(config, code_cache=code_cache)
