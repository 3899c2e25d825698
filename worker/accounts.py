"""
Platform account lookups for the worker.
"""

import logging
from datetime import datetime
from typing import Optional

from core.encryption import load_session_payload
from core.errors import AccountNotFoundError
from core.models import AccountStatus, PlatformAccount, SessionPayload
from worker.database import Database

logger = logging.getLogger(__name__)


class AccountStore:
    """Reads connected accounts and flags ones whose session went stale."""

    def __init__(self, db: Database, encryption_key: Optional[str] = None):
        self.db = db
        self.encryption_key = encryption_key

    async def get_platform_account(self, user_id: str, marketplace: str) -> PlatformAccount:
        row = await self.db.fetchone(
            """SELECT * FROM platform_accounts
               WHERE user_id = ? AND marketplace = ? AND status = ?
               ORDER BY updated_at DESC
               LIMIT 1""",
            (user_id, marketplace, AccountStatus.CONNECTED.value),
        )
        if not row:
            raise AccountNotFoundError(
                f"No connected {marketplace} account for user {user_id}"
            )
        return PlatformAccount.from_row(row)

    def load_session(self, account: PlatformAccount) -> SessionPayload:
        data = load_session_payload(account.session_payload_encrypted, self.encryption_key)
        return SessionPayload.from_dict(data)

    async def mark_needs_reauth(self, account_id: str) -> bool:
        try:
            changed = await self.db.execute(
                "UPDATE platform_accounts SET status = ?, updated_at = ? WHERE id = ?",
                (AccountStatus.NEEDS_REAUTH.value, datetime.utcnow().isoformat(), account_id),
            )
        except Exception as e:
            logger.warning(f"Could not mark account {account_id} for re-auth: {e}")
            return False
        logger.info(f"Account {account_id} marked needs_reauth")
        return changed > 0
