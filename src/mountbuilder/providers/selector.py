"""Provider selection.

Pure decision over the two providers' static capability sets, no I/O.
A substituted translation is always reported on the returned selection.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from mountbuilder.providers.base import ContentProvider

log = structlog.get_logger()


@dataclass(frozen=True)
class ProviderSelection:
    provider: ContentProvider
    effective_translation: str
    requested_translation: str
    substituted: bool = False


class ProviderSelector:
    """Picks the provider serving a translation.

    Precedence: secondary provider, then primary provider, then the primary
    provider with ``default_translation`` (flagged as substituted).
    """

    def __init__(
        self,
        primary: ContentProvider,
        secondary: ContentProvider,
        default_translation: str = "WEB",
    ) -> None:
        if not primary.supports(default_translation):
            raise ValueError(
                f"Default translation {default_translation!r} is not served by {primary.name}"
            )
        self.primary = primary
        self.secondary = secondary
        self.default_translation = default_translation.upper()

    def select(self, translation: str, *, book: str | None = None) -> ProviderSelection:
        """Choose a provider for ``translation``.

        When ``book`` is given and the chosen provider cannot address it, the
        default translation on the primary provider is used instead.
        """
        code = translation.strip().upper()

        for provider in (self.secondary, self.primary):
            if provider.supports(code):
                if book is None or provider.supports_book(book):
                    return ProviderSelection(
                        provider=provider,
                        effective_translation=code,
                        requested_translation=translation,
                    )
                log.info(
                    "translation_substituted",
                    requested=translation,
                    effective=self.default_translation,
                    reason="book_not_supported",
                    provider=provider.name,
                    book=book,
                )
                return self._fallback(translation)

        log.info(
            "translation_substituted",
            requested=translation,
            effective=self.default_translation,
            reason="translation_not_supported",
        )
        return self._fallback(translation)

    def _fallback(self, translation: str) -> ProviderSelection:
        return ProviderSelection(
            provider=self.primary,
            effective_translation=self.default_translation,
            requested_translation=translation,
            substituted=True,
        )
