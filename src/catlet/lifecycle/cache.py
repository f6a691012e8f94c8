"""Shared cache of remote catlet summaries."""

import asyncio
import logging
from typing import MutableMapping, NamedTuple, Optional

from catlet.errors import CatletError
from catlet.models.status import ABSENT, CatletStatus, CatletSummary
from catlet.providers.base import ComputeAPI


logger = logging.getLogger(__name__)


class CatletLookup(NamedTuple):
    """Result of a cache lookup.

    ``catlet_id`` is the identifier the caller should hold from now on; it
    differs from the one passed in when the catlet was found by name.
    """
    summary: CatletSummary
    catlet_id: Optional[str]


class StatusCache:
    """Lazily populated view of catlet summaries, shared by orchestrators."""

    def __init__(self, api: ComputeAPI, storage: Optional[MutableMapping[str, CatletStatus]] = None):
        """Initialize status cache."""
        self.api = api
        self._entries: MutableMapping[str, CatletStatus] = storage if storage is not None else {}
        self._populated = False
        self._lock = asyncio.Lock()
        self._generation = 0

    @property
    def populated(self) -> bool:
        return self._populated

    async def lookup(self, catlet_id: Optional[str], name: Optional[str] = None) -> CatletLookup:
        """Look up a catlet by id, falling back to its name."""
        async with self._lock:
            if not self._populated:
                await self._populate()
            return self._find(catlet_id, name)

    async def lookup_or_refresh(
        self,
        catlet_id: Optional[str],
        name: Optional[str] = None,
        refresh: bool = False,
    ) -> CatletLookup:
        """Look up a catlet, re-fetching it from the API when ``refresh`` is set."""
        if not refresh or not catlet_id:
            return await self.lookup(catlet_id, name)

        async with self._lock:
            if not self._populated:
                await self._populate()
            self._entries.pop(catlet_id, None)
            catlet = await self.api.get_resource(catlet_id)
            if catlet:
                self._entries[catlet.id] = catlet
            else:
                logger.debug(f"Catlet {catlet_id} no longer exists")
            return self._find(catlet_id, name)

    def invalidate(self):
        """Drop every cached summary; the next lookup re-populates.

        Does not wait for the lock. A bulk list in flight when this runs
        is never marked as populated.
        """
        self._generation += 1
        self._entries.clear()
        self._populated = False
        logger.debug("Catlet status cache invalidated")

    async def _populate(self):
        generation = self._generation
        self._entries.clear()
        try:
            catlets = await self.api.list_resources()
        except CatletError as e:
            logger.warning(f"Failed to list catlets, treating status as unknown: {e}")
            catlets = []
        for catlet in catlets:
            self._entries[catlet.id] = catlet
        # the snapshot still answers the current lookup, the next one lists again
        if generation != self._generation:
            logger.debug("Catlet status cache invalidated while listing")
            return
        self._populated = True
        logger.debug(f"Loaded status of {len(self._entries)} catlets")

    def _find(self, catlet_id: Optional[str], name: Optional[str]) -> CatletLookup:
        if catlet_id and catlet_id in self._entries:
            return CatletLookup(self._entries[catlet_id], catlet_id)

        if name:
            for catlet in self._entries.values():
                if catlet.name == name:
                    if catlet.id != catlet_id:
                        logger.info(f"Found catlet {name} by name, using id {catlet.id}")
                    return CatletLookup(catlet, catlet.id)

        return CatletLookup(ABSENT, catlet_id)
