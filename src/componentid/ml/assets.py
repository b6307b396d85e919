"""Asset storage: where the model, labels, and metadata catalog come from.

Assets are addressed by file name. A LocalAssetStore reads them from a
directory; a HubAssetStore downloads them from a HuggingFace repository
into a local directory first.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from huggingface_hub import hf_hub_download

if TYPE_CHECKING:
    from componentid.config import Settings

logger = logging.getLogger(__name__)


class AssetStore(Protocol):
    """Protocol for read-only asset access."""

    def read_bytes(self, name: str) -> bytes:
        """Return the raw contents of an asset.

        Raises:
            OSError: If the asset does not exist or cannot be read.
        """
        ...

    def read_text(self, name: str) -> str:
        """Return the contents of an asset decoded as UTF-8.

        Raises:
            OSError: If the asset does not exist or cannot be read.
            UnicodeDecodeError: If the asset is not valid UTF-8.
        """
        ...


class LocalAssetStore:
    """Reads assets from a local directory."""

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def read_bytes(self, name: str) -> bytes:
        return (self._root / name).read_bytes()

    def read_text(self, name: str) -> str:
        return (self._root / name).read_text(encoding="utf-8")


class HubAssetStore:
    """Downloads assets from a HuggingFace repository on first access."""

    def __init__(self, repo_id: str, revision: str | None = None, local_dir: str | Path | None = None) -> None:
        self._repo_id = repo_id
        self._revision = revision
        self._local_dir = Path(local_dir) if local_dir is not None else None
        self._paths: dict[str, Path] = {}

    def ensure_downloaded(self, name: str) -> Path:
        """Download an asset if not already present locally and return its path."""
        cached = self._paths.get(name)
        if cached is not None and cached.exists():
            return cached

        downloaded = Path(
            hf_hub_download(
                repo_id=self._repo_id,
                filename=name,
                revision=self._revision,
                local_dir=str(self._local_dir) if self._local_dir is not None else None,
            )
        )
        self._paths[name] = downloaded
        logger.info("Downloaded %s from %s to %s", name, self._repo_id, downloaded)
        return downloaded

    def read_bytes(self, name: str) -> bytes:
        return self._fetch(name).read_bytes()

    def read_text(self, name: str) -> str:
        return self._fetch(name).read_text(encoding="utf-8")

    def _fetch(self, name: str) -> Path:
        try:
            return self.ensure_downloaded(name)
        except OSError:
            raise
        except Exception as exc:
            # Hub errors (missing repo/file, network) surface as missing assets.
            raise FileNotFoundError(f"Asset '{name}' unavailable from {self._repo_id}: {exc}") from exc


def create_asset_store(settings: Settings) -> AssetStore:
    """Return the asset store selected by the settings."""
    if settings.hub_repo_id:
        return HubAssetStore(
            repo_id=settings.hub_repo_id,
            revision=settings.hub_revision,
            local_dir=settings.assets_dir,
        )
    return LocalAssetStore(settings.assets_dir)
