"""Tenant repository - the read side backs the tenant registry."""

from typing import List, Optional

from .base import BaseRepository
from ..database_models.tenant import TenantDO
from ...integrations.base import TenantRegistry

_COLUMNS = (
    "id, name, chat_workspace_id, task_bot_user_id, chat_bot_token, task_workspace_id, "
    "task_api_token, sheet_id, sheet_api_key, admin_user_ref, created_at, updated_at"
)


class TenantRepository(BaseRepository, TenantRegistry):
    """Repository for tenants; lookups by external id rely on UNIQUE columns."""

    def _row_to_do(self, row) -> TenantDO:
        return TenantDO(
            id=row[0],
            name=row[1],
            chat_workspace_id=row[2],
            task_bot_user_id=row[3],
            chat_bot_token=row[4],
            task_workspace_id=row[5],
            task_api_token=row[6],
            sheet_id=row[7],
            sheet_api_key=row[8],
            admin_user_ref=row[9],
            created_at=row[10],
            updated_at=row[11],
        )

    def upsert(self, tenant: TenantDO) -> bool:
        """
        Insert or replace a tenant record (used when seeding the registry).

        Args:
            tenant: TenantDO instance

        Returns:
            True if successful, False otherwise
        """
        try:
            # Replace as delete + insert; UNIQUE columns cannot be rewritten in place
            self.conn.begin()
            self.conn.execute("DELETE FROM tenants WHERE id = ?", [tenant.id])
            self.conn.execute(f"""
                INSERT INTO tenants ({_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, [
                tenant.id,
                tenant.name,
                tenant.chat_workspace_id,
                tenant.task_bot_user_id,
                tenant.chat_bot_token,
                tenant.task_workspace_id,
                tenant.task_api_token,
                tenant.sheet_id,
                tenant.sheet_api_key,
                tenant.admin_user_ref,
                tenant.created_at,
                tenant.updated_at,
            ])
            self.conn.commit()
            self.logger.info(f"Registered tenant: {tenant.id} ({tenant.name})")
            return True
        except Exception as e:
            self.conn.rollback()
            self.logger.error(f"Failed to register tenant {tenant.id}: {e}")
            return False

    def _get_one(self, column: str, value: str) -> Optional[TenantDO]:
        try:
            result = self.conn.execute(
                f"SELECT {_COLUMNS} FROM tenants WHERE {column} = ?", [value]
            ).fetchone()
            return self._row_to_do(result) if result else None
        except Exception as e:
            self.logger.error(f"Failed to look up tenant by {column}={value}: {e}")
            return None

    def get_tenant(self, tenant_id: str) -> Optional[TenantDO]:
        return self._get_one("id", tenant_id)

    def get_by_chat_workspace(self, workspace_id: str) -> Optional[TenantDO]:
        return self._get_one("chat_workspace_id", workspace_id)

    def get_by_task_bot_user(self, bot_user_id: str) -> Optional[TenantDO]:
        return self._get_one("task_bot_user_id", bot_user_id)

    def list_tenants(self) -> List[TenantDO]:
        try:
            results = self.conn.execute(
                f"SELECT {_COLUMNS} FROM tenants ORDER BY created_at ASC"
            ).fetchall()
            return [self._row_to_do(row) for row in results]
        except Exception as e:
            self.logger.error(f"Failed to list tenants: {e}")
            return []
