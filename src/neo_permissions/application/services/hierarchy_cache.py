"""
Role hierarchy cache - holder of the current hierarchy index snapshot.

Rebuilds never mutate an index in place: a new index is built and the
reference swapped, so readers keep using whichever snapshot they already hold.
"""
import asyncio
import time
from typing import Optional

from loguru import logger

from ...core.exceptions import AdapterUnavailableError, CyclicHierarchyError
from ...domain.protocols.grant_store import GrantStoreProtocol
from .hierarchy_index import RoleHierarchyIndex


class RoleHierarchyCache:
    """
    Injected owner of the hierarchy index.

    A rebuild that finds a cycle puts the cache in a failed state: ``index``
    re-raises the CyclicHierarchyError until a later rebuild succeeds, so no
    decision is served from a corrupt hierarchy.
    """

    def __init__(self, grant_store: GrantStoreProtocol, index: Optional[RoleHierarchyIndex] = None):
        self.grant_store = grant_store
        self._index = index
        self._failure: Optional[CyclicHierarchyError] = None
        self._rebuild_lock = asyncio.Lock()
        self.generation = 0 if index is None else 1

    @property
    def is_ready(self) -> bool:
        """Check if a usable index is available."""
        return self._index is not None and self._failure is None

    @property
    def failure(self) -> Optional[CyclicHierarchyError]:
        """The error that put the cache in a failed state, if any."""
        return self._failure

    @property
    def index(self) -> RoleHierarchyIndex:
        """
        Current index snapshot.

        Raises:
            CyclicHierarchyError: if the last rebuild found a cycle
            RuntimeError: if the cache was never built
        """
        if self._failure is not None:
            raise self._failure
        if self._index is None:
            raise RuntimeError("Role hierarchy index has not been built; call rebuild() first")
        return self._index

    async def ensure_ready(self) -> RoleHierarchyIndex:
        """Build the index on first use and return it."""
        if self._index is None and self._failure is None:
            await self.rebuild()
        return self.index

    async def rebuild(self) -> RoleHierarchyIndex:
        """
        Fetch roles, build a new index and swap it in.

        Only rebuilds are serialized; readers never wait on the lock.

        Raises:
            CyclicHierarchyError: if the fetched hierarchy has a cycle
            AdapterUnavailableError: if roles cannot be fetched
        """
        async with self._rebuild_lock:
            started = time.perf_counter()
            try:
                roles = await self.grant_store.fetch_roles()
            except AdapterUnavailableError:
                raise
            except Exception as e:
                logger.error(f"Failed to fetch roles for hierarchy rebuild: {e}")
                raise AdapterUnavailableError(
                    "Failed to fetch roles", operation="fetch_roles", cause=e
                ) from e

            try:
                index = RoleHierarchyIndex.build(roles)
            except CyclicHierarchyError as e:
                logger.critical(f"Role hierarchy rebuild failed, refusing decisions: {e.message}")
                self._failure = e
                raise

            self._index = index
            self._failure = None
            self.generation += 1
            elapsed_ms = (time.perf_counter() - started) * 1000
            logger.info(
                f"Role hierarchy index rebuilt (generation {self.generation}, "
                f"{len(index)} roles, {elapsed_ms:.1f}ms)"
            )
            return index

    async def invalidate_hierarchy_cache(self) -> RoleHierarchyIndex:
        """Invalidation signal from the persistence layer after a role change."""
        logger.debug("Role hierarchy invalidated")
        return await self.rebuild()

    def swap(self, index: RoleHierarchyIndex) -> None:
        """Install a prebuilt index, e.g. one produced by ``with_edge``."""
        self._index = index
        self._failure = None
        self.generation += 1
