"""Object store access for uploaded order files (Cloudinary)."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

import cloudinary
import cloudinary.api
import cloudinary.uploader
from cloudinary.exceptions import NotFound

from config import settings

logger = logging.getLogger(__name__)

LIST_PAGE_SIZE = 500
DESTROY_OK_RESULTS = {"ok", "not found"}


@dataclass(frozen=True)
class StoredObject:
    public_id: str
    resource_type: str = "image"


class ObjectStore:
    """Minimal async interface used by the cleanup processor."""

    async def list_objects(self, prefix: str) -> List[StoredObject]:
        raise NotImplementedError

    async def delete_object(self, obj: StoredObject) -> bool:
        """Delete one object. An object that is already gone counts as deleted."""
        raise NotImplementedError

    async def delete_folder(self, folder: str) -> None:
        raise NotImplementedError


class CloudinaryObjectStore(ObjectStore):
    """Cloudinary Admin/Upload API wrapper; blocking SDK calls run in worker threads."""

    def __init__(
        self,
        *,
        cloud_name: str,
        api_key: str,
        api_secret: str,
        resource_types: Optional[Sequence[str]] = None,
    ):
        cloudinary.config(
            cloud_name=cloud_name,
            api_key=api_key,
            api_secret=api_secret,
            secure=True,
        )
        self.resource_types = list(resource_types or ["image"])

    def _list_sync(self, prefix: str) -> List[StoredObject]:
        found: List[StoredObject] = []
        for resource_type in self.resource_types:
            cursor: Optional[str] = None
            while True:
                params = {
                    "type": "upload",
                    "resource_type": resource_type,
                    "prefix": prefix,
                    "max_results": LIST_PAGE_SIZE,
                }
                if cursor:
                    params["next_cursor"] = cursor
                response = cloudinary.api.resources(**params)
                for resource in response.get("resources") or []:
                    public_id = resource.get("public_id")
                    if public_id:
                        found.append(
                            StoredObject(
                                public_id=public_id,
                                resource_type=resource.get("resource_type") or resource_type,
                            )
                        )
                cursor = response.get("next_cursor")
                if not cursor:
                    break
        return found

    async def list_objects(self, prefix: str) -> List[StoredObject]:
        return await asyncio.to_thread(self._list_sync, prefix)

    async def delete_object(self, obj: StoredObject) -> bool:
        try:
            result = await asyncio.to_thread(
                cloudinary.uploader.destroy,
                obj.public_id,
                resource_type=obj.resource_type,
                invalidate=True,
            )
        except NotFound:
            return True
        outcome = str((result or {}).get("result", "")).lower()
        if outcome not in DESTROY_OK_RESULTS:
            logger.warning("Cloudinary destroy for %s returned %r", obj.public_id, outcome)
            return False
        return True

    async def delete_folder(self, folder: str) -> None:
        await asyncio.to_thread(cloudinary.api.delete_folder, folder)


def build_object_store() -> CloudinaryObjectStore:
    """Create the process-wide object store handle from settings."""
    return CloudinaryObjectStore(
        cloud_name=settings.CLOUDINARY_CLOUD_NAME,
        api_key=settings.CLOUDINARY_API_KEY,
        api_secret=settings.CLOUDINARY_API_SECRET,
        resource_types=settings.CLOUDINARY_RESOURCE_TYPES,
    )
