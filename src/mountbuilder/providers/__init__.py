from __future__ import annotations

from mountbuilder.providers.base import ContentProvider
from mountbuilder.providers.bible_api import BibleApiProvider
from mountbuilder.providers.bolls import BollsProvider
from mountbuilder.providers.selector import ProviderSelection, ProviderSelector

__all__ = [
    "ContentProvider",
    "BibleApiProvider",
    "BollsProvider",
    "ProviderSelection",
    "ProviderSelector",
]
