"""Metadata catalog: descriptive records for each component label.

The catalog asset is JSON of the form::

    {"components": [{"name": ..., "description": ...,
                     "specs": [...], "common_projects": [...]}, ...]}

Lookups never raise. A missing asset, an invalid catalog, or an unknown
label all resolve to the default "Information unavailable" record.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, ValidationError

from componentid.errors import MetadataFault
from componentid.ml.results import MetadataLookup, Outcome

if TYPE_CHECKING:
    from componentid.ml.assets import AssetStore

logger = logging.getLogger(__name__)

UNAVAILABLE_DESCRIPTION = "Information unavailable"


class ComponentMetadata(BaseModel):
    """Descriptive record for a single component label."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    specs: list[str]
    common_projects: list[str]


class Catalog(BaseModel):
    """The full metadata catalog, in file order."""

    components: list[ComponentMetadata]

    def find(self, name: str) -> ComponentMetadata | None:
        """Return the first record whose name matches exactly, or None."""
        return next((record for record in self.components if record.name == name), None)

    def index(self) -> dict[str, ComponentMetadata]:
        """Map names to records; the first record wins for duplicate names."""
        by_name: dict[str, ComponentMetadata] = {}
        for record in self.components:
            by_name.setdefault(record.name, record)
        return by_name


def default_metadata(name: str) -> ComponentMetadata:
    """Return the placeholder record used when no metadata is available."""
    return ComponentMetadata(name=name, description=UNAVAILABLE_DESCRIPTION, specs=[], common_projects=[])


class MetadataResolver:
    """Resolves component labels to metadata records.

    By default the catalog is re-read and re-validated on every lookup.
    With cache=True it is parsed once, on the first successful load.
    """

    def __init__(self, assets: AssetStore, catalog_name: str, *, cache: bool = False) -> None:
        self._assets = assets
        self._catalog_name = catalog_name
        self._cache = cache
        self._index: dict[str, ComponentMetadata] | None = None
        self._lock = threading.Lock()

    def lookup(self, name: str) -> ComponentMetadata:
        """Return the metadata record for a label, or the default record."""
        return self.resolve(name).metadata

    def resolve(self, name: str) -> MetadataLookup:
        """Return the metadata record for a label, tagged with the outcome."""
        try:
            record = self._find(name)
        except MetadataFault as exc:
            logger.warning("Metadata lookup for %r failed: %s", name, exc)
            return MetadataLookup(metadata=default_metadata(name), outcome=Outcome.DEGRADED, fault=str(exc))
        return MetadataLookup(metadata=record)

    def load_catalog(self) -> Catalog:
        """Read and validate the catalog asset.

        Raises:
            MetadataFault: If the asset is missing or does not match the schema.
        """
        try:
            text = self._assets.read_text(self._catalog_name)
        except (OSError, UnicodeDecodeError) as exc:
            raise MetadataFault(f"Cannot read catalog '{self._catalog_name}': {exc}") from exc

        try:
            return Catalog.model_validate_json(text)
        except ValidationError as exc:
            raise MetadataFault(
                f"Catalog '{self._catalog_name}' is invalid ({exc.error_count()} errors)"
            ) from exc

    def _find(self, name: str) -> ComponentMetadata:
        if self._cache:
            record = self._cached_index().get(name)
        else:
            record = self.load_catalog().find(name)

        if record is None:
            raise MetadataFault(f"No catalog entry named {name!r}")
        return record

    def _cached_index(self) -> dict[str, ComponentMetadata]:
        with self._lock:
            if self._index is None:
                self._index = self.load_catalog().index()
                logger.info("Cached %d catalog entries from %s", len(self._index), self._catalog_name)
            return self._index
