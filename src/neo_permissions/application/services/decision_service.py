"""
Permission decision service - public entry point of the engine.

Orchestrates one decision:
grant store fetch -> shape and temporal filtering -> delegation expansion ->
role hierarchy expansion -> conflict resolution -> verdict -> audit record.
"""
import time
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Union

from loguru import logger

from ...config.settings import PermissionEngineSettings, get_settings
from ...core.exceptions import (
    ADAPTER_UNAVAILABLE,
    INTERNAL_ERROR,
    AdapterUnavailableError,
    CyclicHierarchyError,
)
from ...domain.entities.verdict import Verdict
from ...domain.protocols.audit import AuditSinkProtocol
from ...domain.protocols.grant_store import GrantStoreProtocol
from ...domain.value_objects.audit_record import DecisionAuditRecord
from ...domain.value_objects.permission_request import PermissionRequest
from ...utils.datetime import to_utc, utc_now
from .conflict_resolver import ConflictResolver
from .decision_context import DecisionContext
from .delegation_walker import DelegationChainWalker
from .grant_collector import GrantCollector
from .hierarchy_cache import RoleHierarchyCache
from .hierarchy_index import RoleHierarchyIndex


RequestLike = Union[PermissionRequest, str, Sequence[Optional[str]]]


class PermissionDecisionService:
    """
    Permission resolution engine.

    Features:
    - Specificity-first conflict resolution with deny-wins ties
    - Role hierarchy expansion through an injected, swappable index
    - Delegated authority with depth limits and cycle exclusion
    - Fail-closed on adapter errors, with a distinct error code
    - One grant store round trip per permission code in bulk checks

    The service holds no per-call state; concurrent calls are independent.
    """

    def __init__(
        self,
        grant_store: GrantStoreProtocol,
        hierarchy_cache: Optional[RoleHierarchyCache] = None,
        settings: Optional[PermissionEngineSettings] = None,
        audit_sink: Optional[AuditSinkProtocol] = None,
        clock: Callable[[], datetime] = utc_now,
        resolver: Optional[ConflictResolver] = None,
        collector: Optional[GrantCollector] = None,
        walker: Optional[DelegationChainWalker] = None
    ):
        self.grant_store = grant_store
        self.hierarchy_cache = hierarchy_cache or RoleHierarchyCache(grant_store)
        self.settings = settings or get_settings()
        self.audit_sink = audit_sink
        self.clock = clock
        self.resolver = resolver or ConflictResolver()
        self.collector = collector or GrantCollector()
        self.walker = walker or DelegationChainWalker(
            resolver=self.resolver,
            collector=self.collector,
            max_hops=self.settings.max_delegation_hops
        )

    async def check_permission(
        self,
        user_id: str,
        permission_code: str,
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
        as_of: Optional[datetime] = None,
        debug: Optional[bool] = None
    ) -> Verdict:
        """
        Decide whether the user may use ``permission_code`` on the resource.

        The trail only holds the selected grant unless ``debug`` (or the
        ``debug_trail`` setting) asks for the full explanation.
        """
        record_trail = self.settings.debug_trail if debug is None else debug
        request = PermissionRequest(permission_code, resource_type, resource_id)
        verdicts = await self._decide(user_id, [request], as_of, record_trail, prefetch=False)
        return verdicts[0]

    async def explain(
        self,
        user_id: str,
        permission_code: str,
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
        as_of: Optional[datetime] = None
    ) -> Verdict:
        """Same decision as ``check_permission`` with the full trail populated."""
        request = PermissionRequest(permission_code, resource_type, resource_id)
        verdicts = await self._decide(user_id, [request], as_of, True, prefetch=False)
        return verdicts[0]

    async def check_bulk(
        self,
        user_id: str,
        checks: Iterable[RequestLike],
        as_of: Optional[datetime] = None,
        debug: Optional[bool] = None
    ) -> List[Verdict]:
        """
        Decide several requests for one user.

        Candidate grants and delegations are fetched once per unique
        permission code. A failure for one code only denies the requests for
        that code. Verdicts come back in request order.
        """
        requests = [PermissionRequest.coerce(check) for check in checks]
        if not requests:
            return []
        record_trail = self.settings.debug_trail if debug is None else debug
        return await self._decide(user_id, requests, as_of, record_trail, prefetch=True)

    async def check_any(
        self,
        user_id: str,
        permission_codes: Sequence[str],
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
        as_of: Optional[datetime] = None
    ) -> Verdict:
        """Return the first allowing verdict, or the first deny if none allows."""
        if not permission_codes:
            raise ValueError("At least one permission must be specified")
        verdicts = await self.check_bulk(
            user_id,
            [PermissionRequest(code, resource_type, resource_id) for code in permission_codes],
            as_of
        )
        for verdict in verdicts:
            if verdict.allowed:
                return verdict
        return verdicts[0]

    async def check_all(
        self,
        user_id: str,
        permission_codes: Sequence[str],
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
        as_of: Optional[datetime] = None
    ) -> Verdict:
        """Return the first denying verdict, or the last allow if all allow."""
        if not permission_codes:
            raise ValueError("At least one permission must be specified")
        verdicts = await self.check_bulk(
            user_id,
            [PermissionRequest(code, resource_type, resource_id) for code in permission_codes],
            as_of
        )
        for verdict in verdicts:
            if verdict.denied:
                return verdict
        return verdicts[-1]

    async def invalidate_hierarchy_cache(self) -> RoleHierarchyIndex:
        """Rebuild the role hierarchy after a role change in the persistence layer."""
        return await self.hierarchy_cache.invalidate_hierarchy_cache()

    async def _decide(
        self,
        user_id: str,
        requests: List[PermissionRequest],
        as_of: Optional[datetime],
        record_trail: bool,
        prefetch: bool
    ) -> List[Verdict]:
        evaluated_at = to_utc(as_of) if as_of is not None else to_utc(self.clock())

        try:
            hierarchy = await self.hierarchy_cache.ensure_ready()
        except AdapterUnavailableError as e:
            logger.error(f"Role hierarchy unavailable, denying {len(requests)} request(s): {e.message}")
            return await self._emit_all([
                self._failed(user_id, request, evaluated_at, ADAPTER_UNAVAILABLE) for request in requests
            ], record_trail)

        context = DecisionContext(self.grant_store, hierarchy, evaluated_at, record_trail)
        failed_codes: Dict[str, str] = {}

        if prefetch:
            failed_codes = await self._prefetch(context, user_id, requests)

        verdicts: List[Verdict] = []
        for request in requests:
            if request.permission_code in failed_codes:
                verdicts.append(self._failed(
                    user_id, request, evaluated_at, failed_codes[request.permission_code]
                ))
                continue
            verdicts.append(await self._evaluate(context, user_id, request))

        return await self._emit_all(verdicts, record_trail)

    async def _prefetch(
        self,
        context: DecisionContext,
        user_id: str,
        requests: List[PermissionRequest]
    ) -> Dict[str, str]:
        """
        Load every scope of each unique code in one round trip per code.

        Returns:
            permission code -> error code for codes whose fetch failed
        """
        codes = list(dict.fromkeys(request.permission_code for request in requests))
        try:
            await context.user_roles(user_id)
        except AdapterUnavailableError:
            return {code: ADAPTER_UNAVAILABLE for code in codes}

        failed: Dict[str, str] = {}
        for code in codes:
            try:
                await context.candidate_grants(user_id, code)
                await context.delegations(user_id, code)
            except AdapterUnavailableError:
                logger.warning(f"Bulk prefetch failed for {code}; denying its requests")
                failed[code] = ADAPTER_UNAVAILABLE
        return failed

    async def _evaluate(
        self,
        context: DecisionContext,
        user_id: str,
        request: PermissionRequest
    ) -> Verdict:
        """Run one request through the pipeline. Never raises for per-call failures."""
        started = time.perf_counter()
        code = request.permission_code
        try:
            collected = await self.collector.collect(
                context, user_id, code, request.resource_type, request.resource_id
            )
            expansion = await self.walker.expand(
                user_id, code, request.resource_type, request.resource_id, context
            )
            resolution = self.resolver.resolve(
                collected.grants + expansion.grants,
                request.resource_type,
                request.resource_id,
                record_trail=context.record_trail,
                hierarchy=context.hierarchy
            )
        except AdapterUnavailableError as e:
            logger.error(f"Denying {request} for user {user_id}: {e.message}")
            return self._failed(user_id, request, context.as_of, ADAPTER_UNAVAILABLE, started)
        except CyclicHierarchyError:
            raise
        except Exception:
            logger.exception(f"Unexpected failure deciding {request} for user {user_id}")
            return self._failed(user_id, request, context.as_of, INTERNAL_ERROR, started)

        if context.record_trail:
            trail = collected.trail + expansion.trail + resolution.trail
        else:
            trail = resolution.trail

        verdict = Verdict(
            allowed=resolution.allowed,
            user_id=user_id,
            permission_code=code,
            evaluated_at=context.as_of,
            resource_type=request.resource_type,
            resource_id=request.resource_id,
            matched_grant=resolution.matched_grant,
            explanation_trail=trail,
            duration_ms=_elapsed_ms(started)
        )
        logger.debug(f"{verdict.decision_reason} [{request}, user {user_id}]")
        return verdict

    def _failed(
        self,
        user_id: str,
        request: PermissionRequest,
        evaluated_at: datetime,
        error_code: str,
        started: Optional[float] = None
    ) -> Verdict:
        verdict = Verdict.deny(
            user_id,
            request.permission_code,
            evaluated_at,
            resource_type=request.resource_type,
            resource_id=request.resource_id,
            error_code=error_code
        )
        if started is not None:
            verdict = verdict.with_timing(_elapsed_ms(started))
        return verdict

    async def _emit_all(self, verdicts: List[Verdict], explained: bool) -> List[Verdict]:
        """Hand one audit record per verdict to the sink; sink failures never change verdicts."""
        if self.audit_sink is None or not self.settings.audit_enabled:
            return verdicts
        for verdict in verdicts:
            try:
                await self.audit_sink.record(DecisionAuditRecord.from_verdict(verdict, explained))
            except Exception as e:
                logger.warning(f"Audit sink failed for {verdict}: {e}")
        return verdicts


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 3)
