"""Reference data snapshot (catalogs, existing slugs) loaded once per import job."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Protocol

from app.core.exceptions import CatalogNotFoundError

logger = logging.getLogger(__name__)


class ReferenceSource(Protocol):
    def load_catalogs(self, level: int) -> list[tuple[str, str]]: ...

    def load_existing_slugs(self) -> set[str]: ...


def normalize_catalog_name(name: str) -> str:
    return name.strip().lower()


@dataclass(frozen=True)
class ReferenceSnapshot:
    """Immutable view of the lookup tables used while a job runs."""

    catalog_ids_by_name: Mapping[str, str]
    existing_slugs: frozenset[str]


def load_reference_data(source: ReferenceSource, catalog_level: int) -> ReferenceSnapshot:
    """Load catalog names and persisted slugs in two bounded queries."""
    catalogs = source.load_catalogs(catalog_level)
    by_name: dict[str, str] = {}
    for name, catalog_id in catalogs:
        key = normalize_catalog_name(name)
        if key in by_name and by_name[key] != catalog_id:
            # Names are not unique per level; keep the first match.
            logger.warning(f"Catalog name '{name}' is ambiguous at level {catalog_level}")
            continue
        by_name[key] = catalog_id

    slugs = frozenset(source.load_existing_slugs())
    logger.info(
        f"Loaded reference data: {len(by_name)} catalogs (level {catalog_level}), "
        f"{len(slugs)} existing slugs"
    )
    return ReferenceSnapshot(
        catalog_ids_by_name=MappingProxyType(by_name),
        existing_slugs=slugs,
    )


class CatalogResolver:
    """Resolve human-entered catalog names to catalog ids."""

    def __init__(self, catalog_ids_by_name: Mapping[str, str]):
        self._catalogs = catalog_ids_by_name

    def resolve(self, name: str | None) -> str | None:
        """Return the catalog id, ``None`` for a blank name.

        Raises:
            CatalogNotFoundError: the name is non-empty and matches no catalog.
        """
        if name is None or not name.strip():
            return None
        catalog_id = self._catalogs.get(normalize_catalog_name(name))
        if catalog_id is None:
            raise CatalogNotFoundError(f'Catalog "{name}" not found')
        return catalog_id
