"""Repository for per-event-kind ingestion checkpoints."""

import logging
from datetime import datetime, timezone

from sqlalchemy import insert, select, update
from sqlalchemy.engine import Engine

from services.indexer.src.indexer.db.models import event_query_state
from services.indexer.src.indexer.domain.models import EventCheckpoint

logger = logging.getLogger(__name__)


class CheckpointRepository:
    """Durable event kind -> {from_block, to_block} records."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def get_checkpoint(self, event_type: str) -> EventCheckpoint | None:
        """
        Get the last fully ingested block range for an event kind.

        Args:
            event_type: Event kind key (e.g., 'SP_DEPOSIT_UPDATED')

        Returns:
            The stored checkpoint, or None if the kind was never scanned
        """
        stmt = select(event_query_state).where(
            event_query_state.c.event_type == event_type
        )

        with self.engine.connect() as conn:
            row = conn.execute(stmt).fetchone()
            if row is None:
                return None
            return EventCheckpoint(
                event_type=row.event_type,
                from_block=int(row.last_queried_from_block),
                to_block=int(row.last_queried_to_block),
                updated_at=row.updated_at,
            )

    def advance_checkpoint(
        self, event_type: str, from_block: int, to_block: int
    ) -> EventCheckpoint:
        """
        Record that [from_block, to_block] has been persisted for an event kind.

        Call only after the batch for that range is durably written. The stored
        to_block never decreases: a request behind the current high-water mark
        leaves the row unchanged.

        Args:
            event_type: Event kind key
            from_block: First block of the ingested range
            to_block: Last block of the ingested range (inclusive)

        Returns:
            The checkpoint as stored after the call
        """
        if to_block < from_block:
            raise ValueError(
                f"Invalid range for {event_type}: {from_block} > {to_block}"
            )

        now = datetime.now(timezone.utc)
        select_stmt = select(event_query_state).where(
            event_query_state.c.event_type == event_type
        )

        with self.engine.begin() as conn:
            existing = conn.execute(select_stmt).fetchone()

            if existing is None:
                conn.execute(
                    insert(event_query_state).values(
                        event_type=event_type,
                        last_queried_from_block=from_block,
                        last_queried_to_block=to_block,
                        updated_at=now,
                        created_at=now,
                    )
                )
            elif to_block < int(existing.last_queried_to_block):
                logger.warning(
                    f"Refusing to move {event_type} checkpoint back from "
                    f"{existing.last_queried_to_block} to {to_block}"
                )
                return EventCheckpoint(
                    event_type=event_type,
                    from_block=int(existing.last_queried_from_block),
                    to_block=int(existing.last_queried_to_block),
                    updated_at=existing.updated_at,
                )
            else:
                conn.execute(
                    update(event_query_state)
                    .where(event_query_state.c.event_type == event_type)
                    .values(
                        last_queried_from_block=from_block,
                        last_queried_to_block=to_block,
                        updated_at=now,
                    )
                )

        logger.info(
            f"Updated event query state for {event_type}: from {from_block} to {to_block}"
        )
        return EventCheckpoint(
            event_type=event_type,
            from_block=from_block,
            to_block=to_block,
            updated_at=now,
        )

    def get_all_checkpoints(self) -> list[EventCheckpoint]:
        stmt = select(event_query_state).order_by(event_query_state.c.event_type)

        with self.engine.connect() as conn:
            return [
                EventCheckpoint(
                    event_type=row.event_type,
                    from_block=int(row.last_queried_from_block),
                    to_block=int(row.last_queried_to_block),
                    updated_at=row.updated_at,
                )
                for row in conn.execute(stmt)
            ]
