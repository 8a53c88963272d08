"""A builder that assembles plans step by step."""

from __future__ import annotations

import copy
from typing import Any, Awaitable, Callable, Optional

from tikvlite.plan import (
    Backoff,
    DefaultProcessor,
    Dispatch,
    ExtractError,
    MergeResponse,
    MultiRegion,
    Plan,
    PreserveKey,
    ProcessResponse,
    ResolveLock,
    RetryRegion,
)
from tikvlite.store import PdClient, Store


class PlanBuilder:
    """Builds a plan around a request.

    A plan must be aimed at its target stores, with ``single_region``,
    ``single_region_with_store`` or ``multi_region``, before ``plan`` or
    ``extract_error`` may be called. Each step returns a new builder.
    """

    def __init__(self, pd_client: PdClient, request: Any) -> None:
        self.pd_client = pd_client
        self._plan: Plan = Dispatch(request)
        self._targeted = False

    def _next(self, plan: Plan, targeted: Optional[bool] = None) -> "PlanBuilder":
        builder = copy.copy(self)
        builder._plan = plan
        if targeted is not None:
            builder._targeted = targeted
        return builder

    def _require_target(self, step: str) -> None:
        if not self._targeted:
            raise RuntimeError(f"{step} requires a plan with a target")

    def _require_no_target(self, step: str) -> None:
        if self._targeted:
            raise RuntimeError(f"{step} requires a plan without a target")

    def _require_dispatch(self, step: str) -> Dispatch:
        self._require_no_target(step)
        if not isinstance(self._plan, Dispatch):
            raise RuntimeError(f"{step} requires an unwrapped request")
        return self._plan

    def resolve_lock(
        self,
        backoff: Backoff,
        resolver: Optional[Callable[[list, PdClient], Awaitable[bool]]] = None,
    ) -> "PlanBuilder":
        """Resolve locks reported in the response and retry the request."""
        return self._next(
            ResolveLock(
                inner=self._plan,
                pd_client=self.pd_client,
                backoff=backoff,
                resolver=resolver,
            )
        )

    def retry_region(self, backoff: Backoff) -> "PlanBuilder":
        """Re-shard and retry while a region error is reported.

        This must wrap a multi-region plan for the request to be re-sharded.
        """
        return self._next(
            RetryRegion(inner=self._plan, pd_client=self.pd_client, backoff=backoff)
        )

    def merge(self, merge: Any) -> "PlanBuilder":
        """Combine the per-region results with the given strategy."""
        return self._next(MergeResponse(inner=self._plan, merge=merge))

    def post_process_default(self) -> "PlanBuilder":
        """Turn the response into its high-level result."""
        return self._next(ProcessResponse(inner=self._plan, processor=DefaultProcessor()))

    def multi_region(self) -> "PlanBuilder":
        """Split the request into shards, one per region."""
        self._require_no_target("multi_region")
        return self._next(
            MultiRegion(inner=self._plan, pd_client=self.pd_client), targeted=True
        )

    async def single_region(self) -> "PlanBuilder":
        """Aim the request at the region holding its key."""
        dispatch = self._require_dispatch("single_region")
        store = await self.pd_client.store_for_key(bytes(dispatch.request.key))
        return self._set_single_region_store(dispatch, store)

    async def single_region_with_store(self, store: Store) -> "PlanBuilder":
        """Aim the request at the given store."""
        dispatch = self._require_dispatch("single_region_with_store")
        return self._set_single_region_store(dispatch, store)

    def _set_single_region_store(self, dispatch: Dispatch, store: Store) -> "PlanBuilder":
        request = copy.deepcopy(dispatch.request)
        request.context = store.region.context()
        return self._next(Dispatch(request, store.client), targeted=True)

    def preserve_keys(self) -> "PlanBuilder":
        """Pair the response with the keys of the request."""
        self._require_no_target("preserve_keys")
        return self._next(PreserveKey(inner=self._plan))

    def extract_error(self) -> "PlanBuilder":
        """Raise errors left in the response."""
        self._require_target("extract_error")
        return self._next(ExtractError(inner=self._plan))

    def plan(self) -> Plan:
        """The finished plan."""
        self._require_target("plan")
        return self._plan