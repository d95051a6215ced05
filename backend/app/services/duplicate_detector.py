"""Slug uniqueness checks for a single import batch."""

from __future__ import annotations

from collections.abc import Iterable

from app.core.exceptions import DuplicateSlugError


class DuplicateDetector:
    """Track slugs accepted in this batch alongside slugs already persisted.

    Only rows that already passed schema validation reach this check, so
    slugs are compared verbatim.
    """

    def __init__(self, existing_slugs: Iterable[str]):
        self._existing = frozenset(existing_slugs)
        self._seen: set[str] = set()

    def check_and_register(self, slug: str) -> None:
        """Register ``slug`` for this batch or raise ``DuplicateSlugError``."""
        # In-file duplicates are reported first, they are the cheaper fix.
        if slug in self._seen:
            raise DuplicateSlugError(f'Duplicate slug in import file: "{slug}"')
        if slug in self._existing:
            raise DuplicateSlugError(f'Slug already exists in database: "{slug}"')
        self._seen.add(slug)

    @property
    def registered(self) -> frozenset[str]:
        return frozenset(self._seen)
