"""
Artifact runtime - helpers visible to compiled templates.

A compiled artifact is plain Python executed with ``exec`` in a namespace
built by ``make_namespace``. The helper names below are reserved: a
binding with the same name is skipped.
"""

import builtins
from collections.abc import Mapping
from typing import Any, Callable, Dict, Iterable, Optional

from markupsafe import escape as _markup_escape


ARTIFACT_MODULE = "__tessera_artifact__"

ARTIFACT_HEADER = (
    "# Compiled by tessera from {name!r}. Do not edit.\n"
    "if __name__ != {module!r}:\n"
    "    raise SystemExit(0)\n"
)


def render_header(name: str) -> str:
    """Guard header placed at the top of every artifact."""
    return ARTIFACT_HEADER.format(name=name, module=ARTIFACT_MODULE)


def to_text(value: Any) -> str:
    """Text form of a value; None becomes an empty string."""
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", "replace")
    return str(value)


def escape(value: Any) -> str:
    """HTML-escape ``& < > " '``; None becomes an empty string."""
    # str() first so Markup values are escaped as well
    return str(_markup_escape(to_text(value)))


def lookup(thunk: Callable[[], Any]) -> Any:
    """Evaluate ``thunk``; an undefined name, key, index or attribute yields None."""
    try:
        return thunk()
    except (NameError, LookupError, AttributeError):
        return None


def iterate(value: Any) -> Iterable:
    if value is None:
        return ()
    return value


def pairs(value: Any) -> Iterable:
    """(key, item) pairs: ``items()`` for mappings, ``enumerate`` otherwise."""
    if value is None:
        return ()
    if isinstance(value, Mapping) or hasattr(value, "items"):
        return value.items()
    return enumerate(value)


HELPERS: Dict[str, Any] = {
    "_escape": escape,
    "_text": to_text,
    "_lookup": lookup,
    "_iterate": iterate,
    "_pairs": pairs,
}


def make_namespace(write: Callable[[str], Any], bindings: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    """
    Execution namespace for one render.

    Bindings become globals of the artifact; reserved names win over them.
    """
    namespace: Dict[str, Any] = dict(bindings or {})
    namespace.update(HELPERS)
    namespace["_write"] = write
    namespace["__name__"] = ARTIFACT_MODULE
    namespace["__builtins__"] = builtins
    return namespace
