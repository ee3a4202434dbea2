"""
Journal of submitted transactions and their outcomes.
"""

import sqlite3
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional


@dataclass
class TransactionEntry:
    """Record of a submitted transaction."""
    tx_hash: str
    flow: str  # "create", "join", "play" or "timeout"
    account: str
    submitted_at: datetime
    game_id: Optional[int] = None
    value: int = 0
    status: str = "pending"  # "pending", "confirmed", "reverted", "timed_out_waiting", "failed"
    resolved_at: Optional[datetime] = None
    detail: Optional[str] = None


class TransactionJournal:
    """sqlite journal of transactions this client submitted."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._init_db()

    def _init_db(self):
        """Initialize database tables."""
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS transactions (
                    tx_hash TEXT PRIMARY KEY,
                    flow TEXT NOT NULL,
                    game_id TEXT,
                    account TEXT NOT NULL,
                    value TEXT NOT NULL,
                    status TEXT NOT NULL,
                    submitted_at TEXT NOT NULL,
                    resolved_at TEXT,
                    detail TEXT
                )
            """)
            conn.commit()

    def record_submission(self, entry: TransactionEntry):
        """Record a freshly submitted transaction."""
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.cursor()
            # uint256 values do not fit sqlite integers, store as text
            cursor.execute("""
                INSERT OR REPLACE INTO transactions (
                    tx_hash, flow, game_id, account, value, status, submitted_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """, (
                entry.tx_hash,
                entry.flow,
                str(entry.game_id) if entry.game_id is not None else None,
                entry.account,
                str(entry.value),
                entry.status,
                entry.submitted_at.isoformat(),
            ))
            conn.commit()

    def update_status(
        self,
        tx_hash: str,
        status: str,
        game_id: Optional[int] = None,
        detail: Optional[str] = None,
    ):
        """Update a transaction's outcome."""
        resolved_at = None if status == "timed_out_waiting" else datetime.now().isoformat()
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute("""
                UPDATE transactions
                SET status = ?, resolved_at = ?, detail = ?,
                    game_id = COALESCE(?, game_id)
                WHERE tx_hash = ?
            """, (
                status,
                resolved_at,
                detail,
                str(game_id) if game_id is not None else None,
                tx_hash,
            ))
            conn.commit()

    @staticmethod
    def _row_to_entry(row) -> TransactionEntry:
        return TransactionEntry(
            tx_hash=row[0],
            flow=row[1],
            game_id=int(row[2]) if row[2] is not None else None,
            account=row[3],
            value=int(row[4]),
            status=row[5],
            submitted_at=datetime.fromisoformat(row[6]),
            resolved_at=datetime.fromisoformat(row[7]) if row[7] else None,
            detail=row[8],
        )

    _COLUMNS = "tx_hash, flow, game_id, account, value, status, submitted_at, resolved_at, detail"

    def get_transaction(self, tx_hash: str) -> Optional[TransactionEntry]:
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"SELECT {self._COLUMNS} FROM transactions WHERE tx_hash = ?",
                (tx_hash,),
            )
            row = cursor.fetchone()
            return self._row_to_entry(row) if row else None

    def get_unresolved(self) -> List[TransactionEntry]:
        """Transactions still pending or whose wait timed out."""
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute(f"""
                SELECT {self._COLUMNS} FROM transactions
                WHERE status IN ('pending', 'timed_out_waiting')
                ORDER BY submitted_at
            """)
            return [self._row_to_entry(row) for row in cursor.fetchall()]

    def get_history(self, limit: int = 100) -> List[Dict[str, Any]]:
        """Get transaction history, newest first."""
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute(f"""
                SELECT {self._COLUMNS} FROM transactions
                ORDER BY submitted_at DESC
                LIMIT ?
            """, (limit,))

            history = []
            for row in cursor.fetchall():
                history.append({
                    "tx_hash": row[0],
                    "flow": row[1],
                    "game_id": row[2],
                    "account": row[3],
                    "value": row[4],
                    "status": row[5],
                    "submitted_at": row[6],
                    "resolved_at": row[7],
                    "detail": row[8],
                })
            return history

    def get_statistics(self) -> Dict[str, Any]:
        """Get counts per flow and status."""
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute("""
                SELECT flow, status, COUNT(*)
                FROM transactions
                GROUP BY flow, status
            """)

            by_flow: Dict[str, Dict[str, int]] = {}
            total = 0
            for flow, status, count in cursor.fetchall():
                by_flow.setdefault(flow, {})[status] = count
                total += count

            return {
                "total": total,
                "flows": by_flow,
            }
