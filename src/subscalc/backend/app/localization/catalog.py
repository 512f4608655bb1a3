"""Translation catalogue helpers backed by shared JSON resources."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from functools import cache
from importlib import resources
from typing import Any, Mapping

_LOGGER = logging.getLogger(__name__)

_BASE_LOCALE = "en"
_TRANSLATIONS_PACKAGE = "subscalc.translations"


@dataclass(frozen=True)
class Translator:
    """Callable helper for retrieving localized strings.

    Keyword arguments fill ``str.format`` placeholders in the template; a
    template referencing an unknown placeholder is returned unformatted.
    """

    locale: str
    _messages: Mapping[str, str]
    _fallback: Mapping[str, str]

    def __call__(self, key: str, **params: Any) -> str:
        template = self._messages.get(key) or self._fallback.get(key, key)
        if not params:
            return template
        try:
            return template.format(**params)
        except (KeyError, IndexError, ValueError):
            _LOGGER.warning("Unable to format translation '%s' for %s", key, self.locale)
            return template

    @property
    def is_rtl(self) -> bool:
        return self.locale in {"ar"}


@dataclass(frozen=True)
class Catalogue:
    """Representation of a locale catalogue backed by the shared resources."""

    locale: str
    backend: Mapping[str, str]


@cache
def _available_locales() -> tuple[str, ...]:
    """Return the set of locales with published translation payloads."""

    root = resources.files(_TRANSLATIONS_PACKAGE)
    locales = sorted(
        entry.name.rsplit(".", 1)[0]
        for entry in root.iterdir()
        if entry.name.endswith(".json")
    )
    return tuple(locales) or (_BASE_LOCALE,)


@cache
def _read_catalogue_payload(locale: str) -> dict[str, Any]:
    """Load the raw translation payload for the requested locale."""

    resource = resources.files(_TRANSLATIONS_PACKAGE).joinpath(f"{locale}.json")
    if not resource.is_file():
        return {"backend": {}}

    with resource.open("r", encoding="utf-8") as handle:
        payload = json.load(handle)

    backend = payload.get("backend") or {}
    if not isinstance(backend, dict):
        backend = {}

    return {"backend": backend}


@cache
def _load_catalogue(locale: str) -> Catalogue:
    """Return a cached catalogue representation for the locale."""

    payload = _read_catalogue_payload(locale)
    backend = {key: str(value) for key, value in payload["backend"].items()}
    return Catalogue(locale=locale, backend=backend)


def normalise_locale(locale: str | None) -> str:
    """Normalise requested locale to a supported catalogue key."""

    if not locale:
        return _BASE_LOCALE

    normalized = locale.lower().split("-")[0].strip()
    return normalized if normalized in _available_locales() else _BASE_LOCALE


def get_translator(locale: str | None = None) -> Translator:
    """Return a translator instance for the requested locale."""

    normalized = normalise_locale(locale)
    catalogue = _load_catalogue(normalized)
    fallback = _load_catalogue(_BASE_LOCALE)
    fallback_messages = fallback.backend if normalized != _BASE_LOCALE else catalogue.backend

    return Translator(
        locale=catalogue.locale,
        _messages=catalogue.backend,
        _fallback=fallback_messages,
    )


def load_translations(locale: str | None = None) -> dict[str, Any]:
    """Expose message catalogues so API clients can render error and row keys."""

    normalized = normalise_locale(locale)
    catalogue = _load_catalogue(normalized)
    fallback = _load_catalogue(_BASE_LOCALE)

    return {
        "locale": normalized,
        "available_locales": list(_available_locales()),
        "backend": dict(catalogue.backend),
        "fallback": {
            "locale": _BASE_LOCALE,
            "backend": dict(fallback.backend),
        },
    }


__all__ = [
    "Translator",
    "Catalogue",
    "get_translator",
    "load_translations",
    "normalise_locale",
]
