"""Exchange points for rewards through guardian-approved redemptions."""

import logging
from typing import Any

from taskledger.core.clock import Clock
from taskledger.core.config import Constants
from taskledger.core.db_client import DocumentStore, RecordNotFoundError
from taskledger.core.errors import InsufficientBalance, InvalidTransition, NotFound
from taskledger.core.logging import log_with_context, span
from taskledger.domain.history import HistoryEntry, HistoryStatus
from taskledger.domain.reward import Redemption, RedemptionStatus, Reward
from taskledger.services.ledger import PointsLedger


logger = logging.getLogger(__name__)

REWARDS_COLLECTION = "rewards"
REDEMPTIONS_COLLECTION = "redemptions"


class RedemptionProcessor:
    """Creates redemption requests and turns approvals into ledger debits."""

    def __init__(self, *, store: DocumentStore, clock: Clock, ledger: PointsLedger) -> None:
        self._store = store
        self._clock = clock
        self._ledger = ledger

    async def _get(self, collection: str, record_id: str) -> dict[str, Any]:
        try:
            return await self._store.get_record(collection=collection, record_id=record_id)
        except RecordNotFoundError as e:
            raise NotFound(collection=collection, record_id=record_id) from e

    async def _load_pending(self, redemption_id: str, *, operation: str) -> Redemption:
        redemption = Redemption.model_validate(await self._get(REDEMPTIONS_COLLECTION, redemption_id))
        if redemption.status != RedemptionStatus.PENDING:
            raise InvalidTransition(entity_id=redemption_id, current=redemption.status, operation=operation)
        return redemption

    async def request(self, *, reward_id: str, user_id: str) -> Redemption:
        """Create a pending redemption with a snapshot of the reward.

        The balance check is advisory: nothing stops two requests made at the
        same moment from together exceeding the balance.

        Raises:
            NotFound: If the reward does not exist
            InsufficientBalance: If the user's balance is below the reward cost
        """
        with span("redemption.request"):
            reward = Reward.model_validate(await self._get(REWARDS_COLLECTION, reward_id))

            balance = await self._ledger.balance(user_id)
            if balance < reward.cost:
                log_with_context(
                    logger, "info", "Redemption refused", user_id=user_id, balance=balance, cost=reward.cost
                )
                raise InsufficientBalance(balance=balance, cost=reward.cost)

            data = {
                "reward_id": reward_id,
                "reward_title": reward.title,
                "cost": reward.cost,
                "requested_by": user_id,
                "status": RedemptionStatus.PENDING,
                "requested_at": self._clock.now().isoformat(),
            }
            record = await self._store.create_record(collection=REDEMPTIONS_COLLECTION, data=data)

            log_with_context(
                logger, "info", "Redemption requested", redemption_id=record["id"], user_id=user_id, cost=reward.cost
            )
            return Redemption.model_validate(record)

    async def approve(self, redemption_id: str) -> Redemption:
        """Debit the reward cost and mark the redemption approved.

        The debit carries the redemption id as its event key, so at most one
        debit exists per redemption even if an approval is retried after a
        failure between the two writes.

        Raises:
            NotFound: If the redemption does not exist
            InvalidTransition: If the redemption is not pending
        """
        with span("redemption.approve"):
            redemption = await self._load_pending(redemption_id, operation="approve")

            entry = HistoryEntry(
                task_id=f"{Constants.REDEMPTION_TASK_PREFIX}{redemption_id}",
                task_title=f"Redeemed: {redemption.reward_title}",
                assigned_to=redemption.requested_by,
                points=-abs(redemption.cost),
                status=HistoryStatus.VERIFIED,
                date=self._clock.today_date().isoformat(),
                completed_at=self._clock.now().isoformat(),
                redemption_id=redemption_id,
                event_key=f"redemption:{redemption_id}",
            )

            # Re-check immediately before mutating to narrow the double-approval window
            await self._load_pending(redemption_id, operation="approve")

            await self._ledger.append(entry)
            record = await self._store.update_record(
                collection=REDEMPTIONS_COLLECTION,
                record_id=redemption_id,
                data={"status": RedemptionStatus.APPROVED, "resolved_at": self._clock.now().isoformat()},
            )

            log_with_context(
                logger,
                "info",
                "Redemption approved",
                redemption_id=redemption_id,
                user_id=redemption.requested_by,
                cost=redemption.cost,
            )
            return Redemption.model_validate(record)

    async def reject(self, redemption_id: str) -> Redemption:
        """Mark a pending redemption rejected; no ledger write.

        Raises:
            NotFound: If the redemption does not exist
            InvalidTransition: If the redemption is not pending
        """
        with span("redemption.reject"):
            await self._load_pending(redemption_id, operation="reject")
            record = await self._store.update_record(
                collection=REDEMPTIONS_COLLECTION,
                record_id=redemption_id,
                data={"status": RedemptionStatus.REJECTED, "resolved_at": self._clock.now().isoformat()},
            )
            log_with_context(logger, "info", "Redemption rejected", redemption_id=redemption_id)
            return Redemption.model_validate(record)

    async def list_redemptions(self, *, status: RedemptionStatus | None = None) -> list[Redemption]:
        filter_query = f'status = "{status}"' if status else ""
        records = await self._store.list_all(collection=REDEMPTIONS_COLLECTION, filter_query=filter_query)
        return [Redemption.model_validate(record) for record in records]
