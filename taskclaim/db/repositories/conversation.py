"""Conversation repository for database operations.

Every statement is scoped by ``tenant_id``. Mutations are single conditional
statements (compare-and-set); a ``None``/``False`` result means the expected
precondition no longer held or the statement failed.
"""

import json
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from .base import BaseRepository
from ..database_models.conversation import CLAIM_REQUEST, ConversationDO, ConversationState

_COLUMNS = (
    "tenant_id, task_id, task_name, state, candidate_owner_ref, candidate_owner_name, "
    "declined_owner_refs, task_deadline, last_message_sent_at, last_reply_received_at, "
    "follow_ups_sent, pending_message, resolution_note, created_at, updated_at"
)

# Columns a transition may change; identity and created_at are fixed
_MUTABLE = {
    "task_name",
    "state",
    "candidate_owner_ref",
    "candidate_owner_name",
    "declined_owner_refs",
    "task_deadline",
    "last_message_sent_at",
    "last_reply_received_at",
    "follow_ups_sent",
    "pending_message",
    "resolution_note",
    "created_at",
}

_LIST_COLUMNS = {"declined_owner_refs", "follow_ups_sent"}

_TICK = timedelta(microseconds=1)


def dump_list(values: List[str]) -> str:
    """Canonical JSON encoding for list columns (used for equality checks)."""
    return json.dumps(list(values))


def next_updated_at(previous: datetime, now: datetime) -> datetime:
    """updated_at for the next write; strictly greater than the previous one."""
    return max(now, previous + _TICK)


def _to_param(column: str, value: Any) -> Any:
    if column in _LIST_COLUMNS:
        return dump_list(value or [])
    if isinstance(value, ConversationState):
        return value.value
    return value


class ConversationRepository(BaseRepository):
    """Repository for Conversation CRUD and compare-and-set transitions."""

    def _row_to_do(self, row) -> ConversationDO:
        return ConversationDO(
            tenant_id=row[0],
            task_id=row[1],
            task_name=row[2],
            state=ConversationState(row[3]),
            candidate_owner_ref=row[4],
            candidate_owner_name=row[5],
            declined_owner_refs=json.loads(row[6]) if row[6] else [],
            task_deadline=row[7],
            last_message_sent_at=row[8],
            last_reply_received_at=row[9],
            follow_ups_sent=json.loads(row[10]) if row[10] else [],
            pending_message=row[11],
            resolution_note=row[12],
            created_at=row[13],
            updated_at=row[14],
        )

    def create(self, conversation: ConversationDO) -> bool:
        """
        Insert a new conversation record.

        Args:
            conversation: ConversationDO instance

        Returns:
            True if inserted, False if a record for (tenant, task) already exists
            or the insert failed
        """
        try:
            self.conn.execute(f"""
                INSERT INTO conversations ({_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, [
                conversation.tenant_id,
                conversation.task_id,
                conversation.task_name,
                conversation.state.value,
                conversation.candidate_owner_ref,
                conversation.candidate_owner_name,
                dump_list(conversation.declined_owner_refs),
                conversation.task_deadline,
                conversation.last_message_sent_at,
                conversation.last_reply_received_at,
                dump_list(conversation.follow_ups_sent),
                conversation.pending_message,
                conversation.resolution_note,
                conversation.created_at,
                conversation.updated_at,
            ])
            self.logger.info(
                f"Created conversation record: {conversation.tenant_id}/{conversation.task_id} "
                f"({conversation.state.value})"
            )
            return True
        except Exception as e:
            self.logger.warning(
                f"Failed to create conversation {conversation.tenant_id}/{conversation.task_id}: {e}"
            )
            return False

    def get(self, tenant_id: str, task_id: str) -> Optional[ConversationDO]:
        """
        Get a conversation by identity.

        Args:
            tenant_id: Tenant ID
            task_id: Task ID

        Returns:
            ConversationDO instance or None
        """
        try:
            result = self.conn.execute(f"""
                SELECT {_COLUMNS}
                FROM conversations
                WHERE tenant_id = ? AND task_id = ?
            """, [tenant_id, task_id]).fetchone()

            return self._row_to_do(result) if result else None
        except Exception as e:
            self.logger.error(f"Failed to get conversation {tenant_id}/{task_id}: {e}")
            return None

    def list_by_tenant(
        self,
        tenant_id: str,
        state: Optional[ConversationState] = None
    ) -> List[ConversationDO]:
        """
        List conversations of a tenant, newest activity first.

        Args:
            tenant_id: Tenant ID
            state: Optional state filter

        Returns:
            List of ConversationDO instances
        """
        try:
            sql = f"SELECT {_COLUMNS} FROM conversations WHERE tenant_id = ?"
            params: List[Any] = [tenant_id]
            if state is not None:
                sql += " AND state = ?"
                params.append(state.value)
            sql += " ORDER BY updated_at DESC"

            results = self.conn.execute(sql, params).fetchall()
            return [self._row_to_do(row) for row in results]
        except Exception as e:
            self.logger.error(f"Failed to list conversations for tenant {tenant_id}: {e}")
            return []

    def list_awaiting_by_candidate(self, tenant_id: str, user_ref: str) -> List[ConversationDO]:
        """
        List conversations waiting on a given person, most recently messaged first.

        Args:
            tenant_id: Tenant ID
            user_ref: Chat user reference of the candidate

        Returns:
            List of ConversationDO instances
        """
        try:
            results = self.conn.execute(f"""
                SELECT {_COLUMNS}
                FROM conversations
                WHERE tenant_id = ? AND candidate_owner_ref = ? AND state = ?
                ORDER BY last_message_sent_at DESC NULLS LAST, updated_at DESC
            """, [tenant_id, user_ref, ConversationState.AWAITING_RESPONSE.value]).fetchall()
            return [self._row_to_do(row) for row in results]
        except Exception as e:
            self.logger.error(f"Failed to list conversations for candidate {user_ref}: {e}")
            return []

    def list_reminder_candidates(self, tenant_id: str) -> List[ConversationDO]:
        """
        List conversations of a tenant the follow-up scheduler has to evaluate.

        Args:
            tenant_id: Tenant ID

        Returns:
            Conversations in AWAITING_RESPONSE that carry a deadline
        """
        try:
            results = self.conn.execute(f"""
                SELECT {_COLUMNS}
                FROM conversations
                WHERE tenant_id = ? AND state = ? AND task_deadline IS NOT NULL
                ORDER BY task_deadline ASC
            """, [tenant_id, ConversationState.AWAITING_RESPONSE.value]).fetchall()
            return [self._row_to_do(row) for row in results]
        except Exception as e:
            self.logger.error(f"Failed to list reminder candidates for tenant {tenant_id}: {e}")
            return []

    def list_sweep_tenants(self) -> List[str]:
        """
        List tenant IDs with at least one conversation still in negotiation.

        Returns:
            Sorted list of tenant IDs
        """
        try:
            results = self.conn.execute("""
                SELECT DISTINCT tenant_id
                FROM conversations
                WHERE state IN (?, ?)
                ORDER BY tenant_id
            """, [
                ConversationState.AWAITING_RESPONSE.value,
                ConversationState.DECLINED_SEARCHING.value,
            ]).fetchall()
            return [row[0] for row in results]
        except Exception as e:
            self.logger.error(f"Failed to list tenants to sweep: {e}")
            return []

    def list_stale_deliveries(self, tenant_id: str, older_than: datetime) -> List[ConversationDO]:
        """
        List active conversations whose pending delivery was never confirmed.

        Args:
            tenant_id: Tenant ID
            older_than: Only records not updated since this instant

        Returns:
            List of ConversationDO instances
        """
        try:
            results = self.conn.execute(f"""
                SELECT {_COLUMNS}
                FROM conversations
                WHERE tenant_id = ? AND state = ? AND pending_message IS NOT NULL
                  AND updated_at < ?
            """, [tenant_id, ConversationState.AWAITING_RESPONSE.value, older_than]).fetchall()
            return [self._row_to_do(row) for row in results]
        except Exception as e:
            self.logger.error(f"Failed to list stale deliveries for tenant {tenant_id}: {e}")
            return []

    def list_stalled_searches(self, tenant_id: str, older_than: datetime) -> List[ConversationDO]:
        """
        List conversations stuck in DECLINED_SEARCHING.

        A live search moves on within a few collaborator calls, so a record
        left there past ``older_than`` was abandoned mid-search.

        Args:
            tenant_id: Tenant ID
            older_than: Only records not updated since this instant

        Returns:
            List of ConversationDO instances
        """
        try:
            results = self.conn.execute(f"""
                SELECT {_COLUMNS}
                FROM conversations
                WHERE tenant_id = ? AND state = ? AND updated_at < ?
            """, [tenant_id, ConversationState.DECLINED_SEARCHING.value, older_than]).fetchall()
            return [self._row_to_do(row) for row in results]
        except Exception as e:
            self.logger.error(f"Failed to list stalled searches for tenant {tenant_id}: {e}")
            return []

    def transition(
        self,
        current: ConversationDO,
        changes: Dict[str, Any],
        now: datetime
    ) -> Optional[ConversationDO]:
        """
        Compare-and-set update keyed by identity, state and updated_at.

        Args:
            current: The record as read before the transition
            changes: Column -> new value
            now: Wall-clock time of the write

        Returns:
            The updated record, or None if the stored record moved on
        """
        unknown = set(changes) - _MUTABLE
        if unknown:
            raise ValueError(f"Unknown or immutable conversation fields: {sorted(unknown)}")

        columns = sorted(changes)
        set_clauses = [f"{column} = ?" for column in columns] + ["updated_at = ?"]
        params = [_to_param(column, changes[column]) for column in columns]
        params.append(next_updated_at(current.updated_at, now))
        params.extend([
            current.tenant_id,
            current.task_id,
            current.state.value,
            current.updated_at,
        ])

        try:
            changed = self._execute_count(f"""
                UPDATE conversations
                SET {', '.join(set_clauses)}
                WHERE tenant_id = ? AND task_id = ? AND state = ? AND updated_at = ?
            """, params)
        except Exception as e:
            self.logger.error(
                f"Failed to update conversation {current.tenant_id}/{current.task_id}: {e}"
            )
            return None

        if changed != 1:
            return None
        return self.get(current.tenant_id, current.task_id)

    def append_follow_up(
        self,
        tenant_id: str,
        task_id: str,
        tier: str,
        expected_follow_ups: List[str],
        now: datetime
    ) -> Optional[ConversationDO]:
        """
        Record a reminder tier, conditioned on the follow-ups already sent.

        The tier is appended and reserved as the pending delivery in one
        statement; it only applies while the conversation is awaiting a
        response, ``follow_ups_sent`` still equals ``expected_follow_ups``
        and no claim request is waiting to be sent.

        Args:
            tenant_id: Tenant ID
            task_id: Task ID
            tier: Reminder tier to record
            expected_follow_ups: follow_ups_sent as observed by the caller
            now: Wall-clock time of the write

        Returns:
            The updated record, or None if another writer got there first
        """
        if tier in expected_follow_ups:
            return None

        try:
            changed = self._execute_count("""
                UPDATE conversations
                SET follow_ups_sent = ?,
                    pending_message = ?,
                    updated_at = GREATEST(?, updated_at + INTERVAL '1 microsecond')
                WHERE tenant_id = ? AND task_id = ? AND state = ? AND follow_ups_sent = ?
                  AND COALESCE(pending_message, '') <> ?
            """, [
                dump_list(list(expected_follow_ups) + [tier]),
                tier,
                now,
                tenant_id,
                task_id,
                ConversationState.AWAITING_RESPONSE.value,
                dump_list(expected_follow_ups),
                CLAIM_REQUEST,
            ])
        except Exception as e:
            self.logger.error(f"Failed to record follow-up {tier} for {tenant_id}/{task_id}: {e}")
            return None

        if changed != 1:
            return None
        return self.get(tenant_id, task_id)

    def release_follow_up(
        self,
        tenant_id: str,
        task_id: str,
        tier: str,
        expected_follow_ups: List[str],
        now: datetime
    ) -> bool:
        """
        Undo ``append_follow_up`` for a reminder that could not be sent.

        Only applies while ``tier`` is still the pending delivery and the
        last recorded tier, so the next sweep finds it due again.

        Args:
            tenant_id: Tenant ID
            task_id: Task ID
            tier: Reminder tier to release
            expected_follow_ups: follow_ups_sent before the tier was appended
            now: Wall-clock time of the write

        Returns:
            True if the tier was released
        """
        try:
            changed = self._execute_count("""
                UPDATE conversations
                SET follow_ups_sent = ?,
                    pending_message = NULL,
                    updated_at = GREATEST(?, updated_at + INTERVAL '1 microsecond')
                WHERE tenant_id = ? AND task_id = ? AND pending_message = ? AND follow_ups_sent = ?
            """, [
                dump_list(expected_follow_ups),
                now,
                tenant_id,
                task_id,
                tier,
                dump_list(list(expected_follow_ups) + [tier]),
            ])
            return changed == 1
        except Exception as e:
            self.logger.error(f"Failed to release follow-up {tier} for {tenant_id}/{task_id}: {e}")
            return False

    def mark_delivered(self, tenant_id: str, task_id: str, token: str, sent_at: datetime) -> bool:
        """
        Confirm a pending delivery: clear the token and stamp last_message_sent_at.

        State is left untouched, so a conversation closed mid-send stays closed.

        Args:
            tenant_id: Tenant ID
            task_id: Task ID
            token: The pending_message value reserved before the send
            sent_at: Time the message was accepted by the chat platform

        Returns:
            True if the token was still held and is now cleared
        """
        try:
            changed = self._execute_count("""
                UPDATE conversations
                SET pending_message = NULL,
                    last_message_sent_at = ?,
                    updated_at = GREATEST(?, updated_at + INTERVAL '1 microsecond')
                WHERE tenant_id = ? AND task_id = ? AND pending_message = ?
            """, [sent_at, sent_at, tenant_id, task_id, token])
            return changed == 1
        except Exception as e:
            self.logger.error(f"Failed to confirm delivery for {tenant_id}/{task_id}: {e}")
            return False

    def close(self, tenant_id: str, task_id: str, now: datetime) -> bool:
        """
        Move a conversation to CLOSED from any state.

        Args:
            tenant_id: Tenant ID
            task_id: Task ID
            now: Wall-clock time of the write

        Returns:
            True if the record changed, False if it was already closed or absent
        """
        try:
            changed = self._execute_count("""
                UPDATE conversations
                SET state = ?,
                    pending_message = NULL,
                    updated_at = GREATEST(?, updated_at + INTERVAL '1 microsecond')
                WHERE tenant_id = ? AND task_id = ? AND state <> ?
            """, [
                ConversationState.CLOSED.value,
                now,
                tenant_id,
                task_id,
                ConversationState.CLOSED.value,
            ])
            return changed == 1
        except Exception as e:
            self.logger.error(f"Failed to close conversation {tenant_id}/{task_id}: {e}")
            return False
