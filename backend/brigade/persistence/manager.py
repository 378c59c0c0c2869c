"""
SQLite persistence manager for Brigade state.

Single-file SQLite database. The only cross-build state the core owns is
the cache volume ledger: which (project, job) pairs have a cache volume
and what size it was created with.

INVARIANT: A cache volume's size is fixed when it is first claimed.
Later claims with a different size return the recorded size. The row is
only removed by an explicit destroy, after which the next claim sizes it
afresh. Claims never take a lock: INSERT OR IGNORE followed by SELECT lets
concurrent claimants agree on whichever size landed first.
"""

import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

from ..substrate.base import bounded_name
from .errors import PersistenceError, SchemaError


# Database schema version for migrations
SCHEMA_VERSION = 1

# Seconds a connection waits on a locked database before failing
CONNECT_TIMEOUT_SECONDS = 30.0


def cache_volume_name(project_id: str, job_name: str) -> str:
    """
    Name of the persistent cache volume for a job.
    
    Project ids alone nearly fill the 63 character limit, so the job name
    is kept and the project part is shortened behind a hash.
    """
    return bounded_name(project_id, job_name)


class PersistenceManager:
    """
    Manages SQLite persistence for Brigade state.
    
    Stores:
    - Cache volume ledger (project, job name, volume name, size)
    
    Does NOT store:
    - Events or results (builds are not replayed across restarts)
    - Project definitions (file-based, see ProjectRegistry)
    """
    
    def __init__(self, db_path: Optional[str] = None):
        """
        Initialize persistence manager.
        
        Args:
            db_path: Path to SQLite database file (defaults to ./brigade.db)
        """
        if db_path is None:
            db_path = str(Path.cwd() / "brigade.db")
        
        self.db_path = db_path
        self._ensure_schema()
    
    @contextmanager
    def _connect(self):
        """Context manager for database connections."""
        conn = sqlite3.connect(self.db_path, timeout=CONNECT_TIMEOUT_SECONDS)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise PersistenceError(f"Database operation failed: {e}") from e
        finally:
            conn.close()
    
    def _ensure_schema(self):
        """Create schema if it doesn't exist."""
        with self._connect() as conn:
            cursor = conn.cursor()
            
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY,
                    applied_at TEXT NOT NULL
                )
            """)
            
            cursor.execute("SELECT version FROM schema_version ORDER BY version DESC LIMIT 1")
            row = cursor.fetchone()
            current_version = row[0] if row else 0
            
            if current_version > SCHEMA_VERSION:
                raise SchemaError(
                    f"Database {self.db_path} has schema version {current_version}, "
                    f"newer than supported version {SCHEMA_VERSION}"
                )
            
            if current_version < SCHEMA_VERSION:
                self._migrate_schema(conn, current_version)
    
    def _migrate_schema(self, conn, from_version: int):
        """Apply schema migrations."""
        cursor = conn.cursor()
        
        if from_version < 1:
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS cache_volumes (
                    project_id TEXT NOT NULL,
                    job_name TEXT NOT NULL,
                    volume_name TEXT NOT NULL,
                    size TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    PRIMARY KEY (project_id, job_name)
                )
            """)
            
            cursor.execute(
                "INSERT INTO schema_version (version, applied_at) VALUES (?, ?)",
                (1, datetime.now(timezone.utc).isoformat())
            )
    
    # Cache volume ledger
    
    def claim_cache_volume(self, project_id: str, job_name: str, size: str) -> str:
        """
        Record a cache volume for a job, or return the size already recorded.
        
        Args:
            project_id: Owning project
            job_name: Job the cache belongs to
            size: Size requested by this claim (e.g. "5Mi")
            
        Returns:
            The authoritative size of the cache volume
        """
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                INSERT OR IGNORE INTO cache_volumes
                    (project_id, job_name, volume_name, size, created_at)
                VALUES (?, ?, ?, ?, ?)
            """, (
                project_id,
                job_name,
                cache_volume_name(project_id, job_name),
                size,
                datetime.now(timezone.utc).isoformat(),
            ))
            cursor.execute(
                "SELECT size FROM cache_volumes WHERE project_id = ? AND job_name = ?",
                (project_id, job_name),
            )
            return cursor.fetchone()["size"]
    
    def get_cache_volume(self, project_id: str, job_name: str) -> Optional[Dict]:
        """
        Look up the cache volume record for a job.
        
        Returns:
            Dict with volume_name, size, created_at, or None if none exists
        """
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                SELECT project_id, job_name, volume_name, size, created_at
                FROM cache_volumes WHERE project_id = ? AND job_name = ?
            """, (project_id, job_name))
            row = cursor.fetchone()
            return dict(row) if row else None
    
    def destroy_cache_volume(self, project_id: str, job_name: str) -> bool:
        """
        Forget a cache volume so its next claim is sized afresh.
        
        Returns:
            True if a record was removed
        """
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "DELETE FROM cache_volumes WHERE project_id = ? AND job_name = ?",
                (project_id, job_name),
            )
            return cursor.rowcount > 0
    
    def list_cache_volumes(self, project_id: str) -> List[Dict]:
        """List cache volume records for a project, ordered by job name."""
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                SELECT project_id, job_name, volume_name, size, created_at
                FROM cache_volumes WHERE project_id = ? ORDER BY job_name
            """, (project_id,))
            return [dict(row) for row in cursor.fetchall()]
