"""SharePoint uploader -- push exported CSVs to a document library.

Uploads through the Graph drive API using the same authenticated
``GraphClient`` session as the report fetch. Upload failures are logged
and reported as ``False``; they never raise.

Typical usage::

    uploader = SharePointUploader(graph, site_id, "Documents", "Copilot/Exports")
    ok = await uploader.upload(path)
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol
from urllib.parse import quote

from copilot_usage_export.graph import GraphClient, GraphError, extract_error

logger = logging.getLogger(__name__)

# Simple upload limit for PUT .../content. Larger files need an upload session.
SIMPLE_UPLOAD_LIMIT = 250 * 1024 * 1024


class FileUploader(Protocol):
    """Anything that can upload one local file and report success."""

    async def upload(self, path: Path) -> bool:
        """Upload ``path``. Returns True on success, False on failure."""
        ...


class SharePointUploader:
    """Uploads files to a folder in a SharePoint document library.

    The drive ID of the library is resolved on first upload and cached.

    Args:
        graph: Open GraphClient (inside its ``async with`` block).
        site_id: SharePoint site ID.
        library: Document library display name (e.g. "Documents").
        folder: Folder path inside the library. Empty for the root.
    """

    def __init__(self, graph: GraphClient, site_id: str, library: str, folder: str = "") -> None:
        self._graph = graph
        self._site_id = site_id
        self._library = library
        self._folder = folder.strip("/")
        self._drive_id: str | None = None

    async def _resolve_drive_id(self) -> str:
        """Find the drive ID of the configured library.

        Returns:
            Drive ID.

        Raises:
            GraphError: If the drives cannot be listed or the library is
                not found on the site.
        """
        if self._drive_id is not None:
            return self._drive_id

        data = await self._graph.get_json(f"/v1.0/sites/{self._site_id}/drives")
        for drive in data.get("value", []):
            if drive.get("name") == self._library:
                self._drive_id = str(drive["id"])
                return self._drive_id

        names = ", ".join(str(d.get("name", "")) for d in data.get("value", []))
        raise GraphError(404, f"Document library '{self._library}' not found. Available: {names}")

    def _item_path(self, filename: str) -> str:
        """Drive-relative path of the uploaded item, URL-quoted."""
        parts = [self._folder, filename] if self._folder else [filename]
        return quote("/".join(parts))

    async def upload(self, path: Path) -> bool:
        """Upload a single file.

        Args:
            path: Local file to upload.

        Returns:
            True when Graph accepted the file, False otherwise.
        """
        try:
            content = path.read_bytes()
        except OSError as exc:
            logger.error("Upload failed for %s: cannot read file: %s", path.name, exc)
            return False

        if len(content) > SIMPLE_UPLOAD_LIMIT:
            logger.error(
                "Upload failed for %s: %d bytes exceeds simple upload limit",
                path.name,
                len(content),
            )
            return False

        try:
            drive_id = await self._resolve_drive_id()
            resp = await self._graph.request(
                "PUT",
                f"/v1.0/drives/{drive_id}/root:/{self._item_path(path.name)}:/content",
                content=content,
                headers={"Content-Type": "text/csv"},
            )
        except GraphError as exc:
            logger.error("Upload failed for %s: %s", path.name, exc)
            return False

        if resp.status_code not in (200, 201):
            logger.error(
                "Upload failed for %s: HTTP %d: %s",
                path.name,
                resp.status_code,
                extract_error(resp),
            )
            return False

        logger.info("Uploaded %s to %s/%s", path.name, self._library, self._folder)
        return True
