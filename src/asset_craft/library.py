"""
Local asset library.

Saved assets live under `<root>/<user_id>/`, one image file per asset plus a
`library.yml` index holding the asset records in save order.
"""

import re
import uuid
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Union

import yaml

from .api.exceptions import InvalidImageError
from .config import DEFAULT_LIBRARY_DIR
from .core.models import AssetRecord
from .logging_utils import log_error, log_info
from .processing.image_utils import get_unique_name, save_image_bytes, save_image_bytes_as_png

INDEX_FILENAME = "library.yml"

_UNSAFE_CHARS = re.compile(r"[^a-z0-9]+")


def _slug(text: str, max_len: int = 40) -> str:
    slug = _UNSAFE_CHARS.sub("_", text.lower()).strip("_")
    return slug[:max_len].rstrip("_") or "asset"


class AssetLibrary:
    """
    File-backed store of saved assets.

    Args:
        root: Library directory; one sub-folder per user is created inside.
    """

    def __init__(self, root: Union[str, Path] = DEFAULT_LIBRARY_DIR):
        self.root = Path(root)

    def user_dir(self, user_id: str) -> Path:
        return self.root / _slug(user_id, max_len=64)

    def _index_path(self, user_id: str) -> Path:
        return self.user_dir(user_id) / INDEX_FILENAME

    def _load_index(self, user_id: str) -> List[dict]:
        path = self._index_path(user_id)
        if not path.exists():
            return []
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        return list(data.get("assets") or [])

    def _write_index(self, user_id: str, entries: List[dict]) -> None:
        path = self._index_path(user_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as f:
            yaml.dump({"assets": entries}, f, sort_keys=False, allow_unicode=True)

    def save_asset(self, record: AssetRecord, image_bytes: bytes) -> AssetRecord:
        """
        Write the image and append the record to the user's index.

        The image is stored byte-for-byte with the extension of its detected
        format. The returned record has id, image_path, created_at and status
        filled in.

        Raises:
            InvalidImageError: If the bytes are not a displayable image
                (placeholders included).
        """
        folder = self.user_dir(record.user_id)
        folder.mkdir(parents=True, exist_ok=True)

        stem = _slug(record.asset_subtype or record.asset_type or record.prompt)
        stem = self._unique_stem(folder, stem)
        try:
            image_path = save_image_bytes(image_bytes, folder / stem)
        except InvalidImageError as e:
            log_error("Library save refused", str(e))
            raise

        record.id = record.id or uuid.uuid4().hex
        record.image_path = image_path.name
        record.created_at = record.created_at or datetime.now()
        record.status = "saved"

        entries = self._load_index(record.user_id)
        entries.append(record.to_dict())
        self._write_index(record.user_id, entries)
        log_info(f"Saved asset {record.id} to {image_path}")
        return record

    @staticmethod
    def _unique_stem(folder: Path, stem: str) -> str:
        taken = {p.stem for p in folder.iterdir() if p.is_file()}
        candidate, counter = stem, 1
        while candidate in taken:
            counter += 1
            candidate = f"{stem}_{counter}"
        return candidate

    def list_assets(self, user_id: str, favorites_only: bool = False) -> List[AssetRecord]:
        """Saved assets for a user, newest first."""
        records = [AssetRecord.from_dict(e) for e in self._load_index(user_id)]
        if favorites_only:
            records = [r for r in records if r.is_favorite]
        records.reverse()
        return records

    def get_asset(self, user_id: str, asset_id: str) -> Optional[AssetRecord]:
        for entry in self._load_index(user_id):
            if entry.get("id") == asset_id:
                return AssetRecord.from_dict(entry)
        return None

    def image_file(self, record: AssetRecord) -> Path:
        return self.user_dir(record.user_id) / record.image_path

    def toggle_favorite(self, user_id: str, asset_id: str) -> bool:
        """
        Flip the favorite flag of an asset.

        Returns:
            The new flag value.

        Raises:
            KeyError: If the asset is not in the library.
        """
        entries = self._load_index(user_id)
        for entry in entries:
            if entry.get("id") == asset_id:
                entry["is_favorite"] = not entry.get("is_favorite", False)
                self._write_index(user_id, entries)
                return entry["is_favorite"]
        raise KeyError(asset_id)

    def delete_asset(self, user_id: str, asset_id: str) -> bool:
        """Remove an asset and its image. Returns False if it was not found."""
        entries = self._load_index(user_id)
        remaining = [e for e in entries if e.get("id") != asset_id]
        if len(remaining) == len(entries):
            return False
        removed = next(e for e in entries if e.get("id") == asset_id)
        image = self.user_dir(user_id) / str(removed.get("image_path", ""))
        if removed.get("image_path") and image.is_file():
            image.unlink()
        self._write_index(user_id, remaining)
        log_info(f"Deleted asset {asset_id}")
        return True

    def export_png(self, user_id: str, asset_id: str, dest_dir: Union[str, Path]) -> Path:
        """
        Re-encode a saved asset as PNG into dest_dir.

        Raises:
            KeyError: If the asset is not in the library.
        """
        record = self.get_asset(user_id, asset_id)
        if record is None:
            raise KeyError(asset_id)
        dest_dir = Path(dest_dir)
        dest_dir.mkdir(parents=True, exist_ok=True)
        stem = get_unique_name(dest_dir, Path(record.image_path).stem, suffix=".png")
        return save_image_bytes_as_png(self.image_file(record).read_bytes(), dest_dir / stem)
