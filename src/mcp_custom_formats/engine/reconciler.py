"""Reconciliation engine: push a batch of local custom formats to one instance.

Flow:
1. Ownership/service-kind checks for the whole batch (fail fast, fail whole)
2. One listing of the instance's custom formats, indexed by name
3. Per record, independently: transform, create or update, ledger upsert
4. Three-bucket BatchResult (created / updated / failed)

A failing item never stops its siblings. Nothing is retried or rolled back
here; retries belong to the remote client.
"""
import asyncio
import functools
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from ..config.inventory import InstanceInventory
from ..config.settings import get_max_parallel
from ..errors import RemoteError, UpstreamError
from ..remote import RemoteInstanceClient, create_client
from ..schema import BatchResult, ConfigRecord, FailedItem, Instance, specs_to_json
from ..store import RecordStore
from ..utils.audit_log import log_change
from ..utils.logging_config import timed_section
from .guard import OwnershipGuard
from .ledger import DeploymentLedger
from .transformer import build_payload

logger = logging.getLogger(__name__)

ClientFactory = Callable[[Instance], RemoteInstanceClient]


class NameMatcher:
    """Match local records to remote custom formats by display name.

    Duplicate remote names collapse to the last one in listing order.
    """

    def __init__(self, remote_formats: list[dict[str, Any]]):
        self._index: dict[str, dict[str, Any]] = {}
        for remote in remote_formats:
            name = remote.get("name")
            if name is not None:
                self._index[name] = remote

    def match(self, record: ConfigRecord) -> Optional[dict[str, Any]]:
        return self._index.get(record.name)


@dataclass
class ItemOutcome:
    """Result of deploying a single record."""
    name: str
    action: Optional[str] = None  # "created" / "updated"
    error: Optional[str] = None


class ReconciliationEngine:
    """Deploy batches of records to remote instances."""

    def __init__(
        self,
        store: RecordStore,
        inventory: InstanceInventory,
        ledger: Optional[DeploymentLedger] = None,
        client_factory: ClientFactory = create_client,
        max_parallel: Optional[int] = None,
        matcher_factory: Callable[[list[dict[str, Any]]], NameMatcher] = NameMatcher,
    ):
        self.store = store
        self.guard = OwnershipGuard(store, inventory)
        self.ledger = ledger or DeploymentLedger(store, inventory)
        self.client_factory = client_factory
        self.max_parallel = max_parallel or get_max_parallel()
        self.matcher_factory = matcher_factory
        self._background: set[asyncio.Task] = set()

    async def deploy_batch(
        self,
        owner: str,
        record_ids: list[str],
        instance_id: str,
    ) -> BatchResult:
        """Deploy records to an instance.

        Args:
            owner: Caller identity
            record_ids: Local record ids to deploy
            instance_id: Target instance

        Returns:
            BatchResult; ``success`` is False when any item failed

        Raises:
            Unauthorized, NotFound, ServiceMismatch: before any remote call
            UpstreamError: the instance could not be listed
        """
        instance, records = self.guard.authorize_batch(owner, record_ids, instance_id)
        abandon = asyncio.Event()

        task = asyncio.ensure_future(self._run_batch(owner, instance, records, abandon))
        self._background.add(task)
        task.add_done_callback(functools.partial(self._batch_done, abandon))

        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            # In-flight remote calls finish and get ledgered; queued ones are dropped
            abandon.set()
            logger.warning(
                f"Deployment to {instance.id} abandoned by caller; "
                f"letting in-flight items complete"
            )
            raise

    def _batch_done(self, abandon: asyncio.Event, task: asyncio.Future) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        # A caller still awaiting the shield sees the error itself
        if error is not None and abandon.is_set():
            logger.error(
                f"Deployment batch abandoned by its caller failed: {error}",
                exc_info=error,
            )

    async def drain(self) -> None:
        """Wait for batches that outlived their caller."""
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    async def _run_batch(
        self,
        owner: str,
        instance: Instance,
        records: list[ConfigRecord],
        abandon: asyncio.Event,
    ) -> BatchResult:
        client = self.client_factory(instance)

        async with timed_section("deploy_batch", instance_id=instance.id, count=len(records)):
            try:
                try:
                    await client.open()
                    remote_formats = await client.list_custom_formats()
                except Exception as e:
                    logger.exception(
                        f"Failed to list custom formats on {instance.id} "
                        f"(owner={owner}, records={len(records)})"
                    )
                    raise UpstreamError(
                        f"Failed to fetch custom formats from instance {instance.id}"
                    ) from e

                matcher = self.matcher_factory(remote_formats)
                semaphore = asyncio.Semaphore(self.max_parallel)

                outcomes = await asyncio.gather(*(
                    self._deploy_item(owner, instance, client, matcher, record, semaphore, abandon)
                    for record in records
                ))
            finally:
                await client.close()

        result = BatchResult()
        for outcome in outcomes:
            if outcome.error is not None:
                result.failed.append(FailedItem(name=outcome.name, error=outcome.error))
            elif outcome.action == "created":
                result.created.append(outcome.name)
            else:
                result.updated.append(outcome.name)

        logger.info(
            f"Deployed to {instance.id}: {len(result.created)} created, "
            f"{len(result.updated)} updated, {len(result.failed)} failed"
        )
        return result

    async def _deploy_item(
        self,
        owner: str,
        instance: Instance,
        client: RemoteInstanceClient,
        matcher: NameMatcher,
        record: ConfigRecord,
        semaphore: asyncio.Semaphore,
        abandon: asyncio.Event,
    ) -> ItemOutcome:
        async with semaphore:
            if abandon.is_set():
                return ItemOutcome(record.name, error="Deployment abandoned before dispatch")

            existing = None
            operation = "create_custom_format"

            try:
                existing = matcher.match(record)
                payload = build_payload(record)
                if existing is not None and existing.get("id") is not None:
                    operation = "update_custom_format"

                if operation == "update_custom_format":
                    response = await client.update_custom_format(
                        existing["id"],
                        {**existing, **payload},
                    )
                else:
                    response = await client.create_custom_format(payload)
                remote_id = self._remote_id(response, existing)
            except Exception as e:
                message = str(e) or type(e).__name__
                logger.warning(f"Deploying '{record.name}' to {instance.id} failed: {message}")
                self._audit(owner, instance, operation, record, None, message)
                return ItemOutcome(record.name, error=message)

            self._audit(owner, instance, operation, record, remote_id, None)

            try:
                self.ledger.record_deployment(
                    owner=owner,
                    record_id=record.id,
                    instance_id=instance.id,
                    remote_id=remote_id,
                    version=record.version,
                    specs_snapshot=specs_to_json(record.specifications),
                )
            except Exception:
                # Remote object exists but is untracked; redeploying repairs it
                logger.exception(
                    f"'{record.name}' (record {record.id}, v{record.version}) was deployed "
                    f"to {instance.id} as remote id {remote_id} but the ledger write failed"
                )
                return ItemOutcome(
                    record.name,
                    error="Deployed to instance but failed to record the deployment",
                )

            is_update = operation == "update_custom_format"
            return ItemOutcome(record.name, action="updated" if is_update else "created")

    @staticmethod
    def _remote_id(response: Any, existing: Optional[dict[str, Any]]) -> int:
        if isinstance(response, dict) and response.get("id") is not None:
            return int(response["id"])
        if existing is not None and existing.get("id") is not None:
            return int(existing["id"])
        raise RemoteError("Remote instance did not return a custom format id")

    @staticmethod
    def _audit(
        owner: str,
        instance: Instance,
        operation: str,
        record: ConfigRecord,
        remote_id: Optional[int],
        error: Optional[str],
    ) -> None:
        log_change(
            instance_id=instance.id,
            operation=operation,
            user=owner,
            success=error is None,
            parameters={
                "record_id": record.id,
                "name": record.name,
                "version": record.version,
                "remote_id": remote_id,
            },
            error=error,
        )
