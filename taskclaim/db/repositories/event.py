"""Conversation event repository for database operations."""

import json
from typing import List, Optional

from .base import BaseRepository
from ..database_models.event import ConversationEventDO


class EventLogRepository(BaseRepository):
    """Append-only audit log of conversation transitions."""

    def append(self, event: ConversationEventDO) -> Optional[int]:
        """
        Append an event.

        Args:
            event: ConversationEventDO instance

        Returns:
            Event ID if successful, None otherwise
        """
        try:
            result = self.conn.execute("""
                INSERT INTO conversation_events (id, tenant_id, task_id, event_type, from_state, to_state, detail, created_at)
                VALUES (nextval('conversation_events_id_seq'), ?, ?, ?, ?, ?, ?, ?)
                RETURNING id
            """, [
                event.tenant_id,
                event.task_id,
                event.event_type,
                event.from_state,
                event.to_state,
                json.dumps(event.detail),
                event.created_at,
            ]).fetchone()

            event_id = result[0] if result else None
            if event_id:
                self.logger.debug(
                    f"Logged {event.event_type} for {event.tenant_id}/{event.task_id} (event {event_id})"
                )
            return event_id
        except Exception as e:
            self.logger.error(f"Failed to append conversation event: {e}")
            return None

    def list_for_task(self, tenant_id: str, task_id: str, limit: int = 100) -> List[ConversationEventDO]:
        """
        Get events of one conversation.

        Args:
            tenant_id: Tenant ID
            task_id: Task ID
            limit: Maximum number of events to return

        Returns:
            List of ConversationEventDO instances (chronological order)
        """
        try:
            results = self.conn.execute("""
                SELECT id, tenant_id, task_id, event_type, from_state, to_state, detail, created_at
                FROM conversation_events
                WHERE tenant_id = ? AND task_id = ?
                ORDER BY id DESC
                LIMIT ?
            """, [tenant_id, task_id, limit]).fetchall()

            events = [
                ConversationEventDO(
                    id=row[0],
                    tenant_id=row[1],
                    task_id=row[2],
                    event_type=row[3],
                    from_state=row[4],
                    to_state=row[5],
                    detail=json.loads(row[6]) if isinstance(row[6], str) else (row[6] or {}),
                    created_at=row[7],
                )
                for row in results
            ]

            # Reverse to get chronological order
            events.reverse()
            return events
        except Exception as e:
            self.logger.error(f"Failed to get conversation events: {e}")
            return []
