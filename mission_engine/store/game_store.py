"""
Game Store — persistence for agents, units and deployments.

Behavioral Contract:
- Every record is stored as full JSON plus the indexed columns queries need.
- transaction() groups writes: BEGIN IMMEDIATE, commit on success, rollback
  on any error. Nested transaction() calls join the outer one.
- update_deployment() is a compare-and-swap on status: the write only lands
  if the stored status still equals `expected_status`. This is what makes
  completion exactly-once.
- The first COMPLETED transition of an agent on a mission is also written to
  mission_completions. That ledger outlives purged deployments and is what
  prerequisite checks read.
- claim_unit() is a conditional write on is_deployed: a unit can only be
  claimed by one deployment at a time.
- sqlite3 failures surface as TransientError.
"""

import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Iterable, Iterator, List, Optional

from mission_engine.errors import ConflictError, NotFoundError, TransientError
from mission_engine.models.agent import Agent, Unit
from mission_engine.models.deployment import Deployment, DeploymentStatus


def _ts(value: Optional[datetime]) -> Optional[float]:
    return value.timestamp() if value else None


class GameStore:
    """
    SQLite-backed store. One connection, serialised by a re-entrant lock.
    Prototype default is in-memory; pass a file path for durability.
    """

    def __init__(self, db_path: str = ":memory:"):
        self.db_path = db_path
        self._conn = sqlite3.connect(
            db_path, check_same_thread=False, isolation_level=None
        )
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self._depth = 0
        self._init_schema()

    def _init_schema(self) -> None:
        """Create tables if they don't exist."""
        with self.transaction():
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS agents (
                    agent_id TEXT PRIMARY KEY,
                    account_id TEXT NOT NULL UNIQUE,
                    record_json TEXT NOT NULL
                )
            """)
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS units (
                    unit_id TEXT PRIMARY KEY,
                    agent_id TEXT NOT NULL,
                    nft_id TEXT NOT NULL,
                    is_deployed INTEGER NOT NULL DEFAULT 0,
                    record_json TEXT NOT NULL,
                    UNIQUE (agent_id, nft_id)
                )
            """)
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS deployments (
                    deployment_id TEXT PRIMARY KEY,
                    mission_id TEXT NOT NULL,
                    agent_id TEXT NOT NULL,
                    unit_id TEXT NOT NULL,
                    status TEXT NOT NULL,
                    deployed_at REAL NOT NULL,
                    completes_at REAL NOT NULL,
                    updated_at REAL NOT NULL,
                    version INTEGER NOT NULL DEFAULT 0,
                    record_json TEXT NOT NULL
                )
            """)
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS mission_completions (
                    agent_id TEXT NOT NULL,
                    mission_id TEXT NOT NULL,
                    deployment_id TEXT NOT NULL,
                    completed_at REAL NOT NULL,
                    PRIMARY KEY (agent_id, mission_id)
                )
            """)
            self._conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_deployments_due
                ON deployments(status, completes_at)
            """)
            self._conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_deployments_agent
                ON deployments(agent_id, mission_id, status)
            """)
            self._conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_units_agent ON units(agent_id)
            """)

    # --- Transactions ---

    @contextmanager
    def transaction(self) -> Iterator["GameStore"]:
        """Atomic unit of work. Re-entrant on the same thread."""
        with self._lock:
            if self._depth > 0:
                self._depth += 1
                try:
                    yield self
                finally:
                    self._depth -= 1
                return

            self._depth = 1
            try:
                self._conn.execute("BEGIN IMMEDIATE")
                yield self
            except sqlite3.Error as e:
                self._conn.rollback()
                raise TransientError(f"Storage failure: {e}") from e
            except BaseException:
                self._conn.rollback()
                raise
            else:
                try:
                    self._conn.commit()
                except sqlite3.Error as e:
                    raise TransientError(f"Storage commit failed: {e}") from e
            finally:
                self._depth = 0

    def _query(self, sql: str, params: Iterable[Any] = ()) -> List[sqlite3.Row]:
        with self._lock:
            try:
                return self._conn.execute(sql, tuple(params)).fetchall()
            except sqlite3.Error as e:
                raise TransientError(f"Storage read failed: {e}") from e

    # --- Agents ---

    def create_agent(self, agent: Agent) -> Agent:
        with self.transaction():
            try:
                self._conn.execute(
                    "INSERT INTO agents (agent_id, account_id, record_json) VALUES (?, ?, ?)",
                    (agent.agent_id, agent.account_id, agent.model_dump_json()),
                )
            except sqlite3.IntegrityError as e:
                raise ConflictError(f"Agent already exists: {agent.account_id}") from e
        return agent

    def get_agent(self, agent_id: str) -> Optional[Agent]:
        rows = self._query("SELECT record_json FROM agents WHERE agent_id = ?", (agent_id,))
        return Agent.model_validate_json(rows[0]["record_json"]) if rows else None

    def get_agent_by_account(self, account_id: str) -> Optional[Agent]:
        rows = self._query(
            "SELECT record_json FROM agents WHERE account_id = ?", (account_id,)
        )
        return Agent.model_validate_json(rows[0]["record_json"]) if rows else None

    def update_agent(self, agent: Agent) -> Agent:
        with self.transaction():
            cursor = self._conn.execute(
                "UPDATE agents SET record_json = ? WHERE agent_id = ?",
                (agent.model_dump_json(), agent.agent_id),
            )
            if cursor.rowcount == 0:
                raise NotFoundError(f"Agent not found: {agent.agent_id}")
        return agent

    def increment_agent_points(self, agent_id: str, delta: int) -> Agent:
        """Add `delta` timeline points (floored at 0) under the write lock."""
        with self.transaction():
            agent = self.get_agent(agent_id)
            if agent is None:
                raise NotFoundError(f"Agent not found: {agent_id}")
            agent.timeline_points = max(0, agent.timeline_points + delta)
            self.update_agent(agent)
        return agent

    # --- Units ---

    def create_unit(self, unit: Unit) -> Unit:
        with self.transaction():
            try:
                self._conn.execute(
                    """
                    INSERT INTO units (unit_id, agent_id, nft_id, is_deployed, record_json)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (
                        unit.unit_id,
                        unit.agent_id,
                        unit.nft_id,
                        int(unit.is_deployed),
                        unit.model_dump_json(),
                    ),
                )
            except sqlite3.IntegrityError as e:
                raise ConflictError(f"Unit already exists for NFT {unit.nft_id}") from e
        return unit

    def get_unit(self, unit_id: str) -> Optional[Unit]:
        rows = self._query("SELECT record_json FROM units WHERE unit_id = ?", (unit_id,))
        return Unit.model_validate_json(rows[0]["record_json"]) if rows else None

    def list_units(self, agent_id: str, deployed: Optional[bool] = None) -> List[Unit]:
        if deployed is None:
            rows = self._query(
                "SELECT record_json FROM units WHERE agent_id = ? ORDER BY rowid",
                (agent_id,),
            )
        else:
            rows = self._query(
                "SELECT record_json FROM units WHERE agent_id = ? AND is_deployed = ? "
                "ORDER BY rowid",
                (agent_id, int(deployed)),
            )
        return [Unit.model_validate_json(r["record_json"]) for r in rows]

    def update_unit(self, unit: Unit) -> Unit:
        with self.transaction():
            cursor = self._conn.execute(
                "UPDATE units SET is_deployed = ?, record_json = ? WHERE unit_id = ?",
                (int(unit.is_deployed), unit.model_dump_json(), unit.unit_id),
            )
            if cursor.rowcount == 0:
                raise NotFoundError(f"Unit not found: {unit.unit_id}")
        return unit

    def claim_unit(self, unit_id: str, deployed_at: datetime) -> Optional[Unit]:
        """
        Mark a unit deployed, only if it is not deployed already.
        Returns the updated unit, or None if someone else holds it.
        """
        with self.transaction():
            unit = self.get_unit(unit_id)
            if unit is None:
                raise NotFoundError(f"Unit not found: {unit_id}")
            claimed = unit.model_copy(
                update={"is_deployed": True, "last_mission_at": deployed_at}
            )
            cursor = self._conn.execute(
                "UPDATE units SET is_deployed = 1, record_json = ? "
                "WHERE unit_id = ? AND is_deployed = 0",
                (claimed.model_dump_json(), unit_id),
            )
            if cursor.rowcount == 0:
                return None
        return claimed

    def release_unit(self, unit_id: str) -> Unit:
        with self.transaction():
            unit = self.get_unit(unit_id)
            if unit is None:
                raise NotFoundError(f"Unit not found: {unit_id}")
            unit.is_deployed = False
            self.update_unit(unit)
        return unit

    # --- Deployments ---

    def _deserialize(self, row: sqlite3.Row) -> Deployment:
        return Deployment.model_validate_json(row["record_json"])

    def create_deployment(self, deployment: Deployment) -> Deployment:
        with self.transaction():
            try:
                self._conn.execute(
                    """
                    INSERT INTO deployments (
                        deployment_id, mission_id, agent_id, unit_id, status,
                        deployed_at, completes_at, updated_at, version, record_json
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        deployment.deployment_id,
                        deployment.mission_id,
                        deployment.agent_id,
                        deployment.unit_id,
                        deployment.status.value,
                        _ts(deployment.deployed_at),
                        _ts(deployment.completes_at),
                        _ts(deployment.updated_at),
                        deployment.version,
                        deployment.model_dump_json(),
                    ),
                )
            except sqlite3.IntegrityError as e:
                raise ConflictError(
                    f"Deployment already exists: {deployment.deployment_id}"
                ) from e
        return deployment

    def get_deployment(self, deployment_id: str) -> Optional[Deployment]:
        rows = self._query(
            "SELECT record_json FROM deployments WHERE deployment_id = ?",
            (deployment_id,),
        )
        return self._deserialize(rows[0]) if rows else None

    def find_active_deployments_due(self, now: datetime) -> List[Deployment]:
        """ACTIVE deployments whose completion time has passed."""
        rows = self._query(
            "SELECT record_json FROM deployments WHERE status = ? AND completes_at <= ? "
            "ORDER BY completes_at",
            (DeploymentStatus.ACTIVE.value, _ts(now)),
        )
        return [self._deserialize(r) for r in rows]

    def list_deployments(
        self,
        agent_id: Optional[str] = None,
        status: Optional[DeploymentStatus] = None,
        unit_id: Optional[str] = None,
    ) -> List[Deployment]:
        clauses, params = [], []
        if agent_id is not None:
            clauses.append("agent_id = ?")
            params.append(agent_id)
        if status is not None:
            clauses.append("status = ?")
            params.append(DeploymentStatus(status).value)
        if unit_id is not None:
            clauses.append("unit_id = ?")
            params.append(unit_id)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = self._query(
            f"SELECT record_json FROM deployments {where} ORDER BY deployed_at DESC, rowid DESC",
            params,
        )
        return [self._deserialize(r) for r in rows]

    def has_completed_mission(self, agent_id: str, mission_id: str) -> bool:
        rows = self._query(
            "SELECT 1 FROM mission_completions WHERE agent_id = ? AND mission_id = ?",
            (agent_id, mission_id),
        )
        return bool(rows)

    def _record_completion(self, deployment: Deployment) -> None:
        self._conn.execute(
            "INSERT OR IGNORE INTO mission_completions "
            "(agent_id, mission_id, deployment_id, completed_at) VALUES (?, ?, ?, ?)",
            (
                deployment.agent_id,
                deployment.mission_id,
                deployment.deployment_id,
                _ts(deployment.completed_at or deployment.updated_at),
            ),
        )

    def update_deployment(
        self,
        deployment_id: str,
        patch: Dict[str, Any],
        expected_status: DeploymentStatus,
    ) -> Optional[Deployment]:
        """
        Conditionally apply `patch` to a deployment.

        Returns the updated deployment, or None if the stored status is no
        longer `expected_status` (another writer got there first).
        Raises NotFoundError if the deployment does not exist.
        """
        expected_status = DeploymentStatus(expected_status)
        with self.transaction():
            current = self.get_deployment(deployment_id)
            if current is None:
                raise NotFoundError(f"Deployment not found: {deployment_id}")
            if current.status != expected_status:
                return None

            merged = current.model_dump()
            merged.update(patch)
            merged["version"] = current.version + 1
            updated = Deployment.model_validate(merged)

            cursor = self._conn.execute(
                """
                UPDATE deployments
                SET status = ?, updated_at = ?, version = ?, record_json = ?
                WHERE deployment_id = ? AND status = ? AND version = ?
                """,
                (
                    updated.status.value,
                    _ts(updated.updated_at),
                    updated.version,
                    updated.model_dump_json(),
                    deployment_id,
                    expected_status.value,
                    current.version,
                ),
            )
            if cursor.rowcount == 0:
                return None
            if (
                updated.status == DeploymentStatus.COMPLETED
                and current.status != DeploymentStatus.COMPLETED
            ):
                self._record_completion(updated)
        return updated

    def purge_deployments(
        self, statuses: Iterable[DeploymentStatus], older_than: datetime
    ) -> int:
        """Delete terminal deployments last touched before `older_than`."""
        values = [DeploymentStatus(s).value for s in statuses]
        if not values:
            return 0
        placeholders = ", ".join("?" for _ in values)
        with self.transaction():
            cursor = self._conn.execute(
                f"DELETE FROM deployments WHERE status IN ({placeholders}) "
                f"AND updated_at < ?",
                (*values, _ts(older_than)),
            )
            return cursor.rowcount

    def count_stuck(self, before: datetime) -> int:
        """ACTIVE deployments that should have completed before `before`."""
        rows = self._query(
            "SELECT COUNT(*) AS cnt FROM deployments WHERE status = ? AND completes_at < ?",
            (DeploymentStatus.ACTIVE.value, _ts(before)),
        )
        return rows[0]["cnt"]

    def count_deployments(self) -> int:
        rows = self._query("SELECT COUNT(*) AS cnt FROM deployments")
        return rows[0]["cnt"]

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            self._conn.close()
