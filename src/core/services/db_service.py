from typing import Any, Dict, List, Optional, Sequence
import json
import psycopg
from psycopg import sql
from psycopg_pool import ConnectionPool
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type
from src.core.models.records import VectorRecord
from src.core.services.ranking import RankedRecord
from src.core.services.vector_store import VectorStore
from src.config.settings import settings
from src.utils.logging import logger


class PostgresVectorStore(VectorStore):
    """Vector records in a pgvector table, one table per collection."""
    name = "postgres"

    def __init__(self, conninfo: Optional[str] = None, collection: Optional[str] = None):
        super().__init__(collection)
        self.conninfo = conninfo or settings.postgres_conninfo
        self.table = self.collection.replace("-", "_")
        self.pool = None

    def init_pool(self):
        """Initialize the connection pool."""
        try:
            debug_params = " ".join(
                part if not part.startswith("password=") else "password=****"
                for part in self.conninfo.split()
            )
            logger.info(f"Connection parameters: {debug_params}")

            self.pool = ConnectionPool(
                conninfo=self.conninfo,
                min_size=1,
                max_size=10,
                timeout=settings.POSTGRES_TIMEOUT,
                open=False
            )
            self.pool.open(wait=True, timeout=settings.POSTGRES_TIMEOUT)
        except Exception as e:
            logger.error(f"Failed to initialize connection pool: {e}")
            self.pool = None
            raise psycopg.OperationalError(str(e)) from e

    async def close(self):
        """Close the connection pool."""
        if self.pool:
            self.pool.close()
            self.pool = None

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=4),
        retry=retry_if_exception_type((psycopg.OperationalError, psycopg.InterfaceError)),
        reraise=True
    )
    def _connect_and_prepare(self):
        if self.pool is None:
            self.init_pool()
        with self.pool.connection() as conn:
            with conn.cursor() as cur:
                cur.execute("CREATE EXTENSION IF NOT EXISTS vector")
                cur.execute(
                    sql.SQL(
                        """
                        CREATE TABLE IF NOT EXISTS {} (
                            id TEXT PRIMARY KEY,
                            content TEXT NOT NULL,
                            metadata JSONB NOT NULL DEFAULT '{{}}'::jsonb,
                            embedding vector NOT NULL
                        )
                        """
                    ).format(sql.Identifier(self.table))
                )
            conn.commit()

    async def check_health(self) -> bool:
        """Check database connectivity and make sure the table exists."""
        try:
            self._connect_and_prepare()
            return True
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return False

    async def add(self, records: Sequence[VectorRecord]) -> int:
        """Insert records, replacing any with the same id."""
        if not records:
            return 0
        try:
            with self.pool.connection() as conn:
                with conn.cursor() as cur:
                    query = sql.SQL(
                        """
                        INSERT INTO {} (id, content, metadata, embedding)
                        VALUES (%s, %s, %s::jsonb, %s::vector)
                        ON CONFLICT (id) DO UPDATE
                        SET content = EXCLUDED.content,
                            metadata = EXCLUDED.metadata,
                            embedding = EXCLUDED.embedding
                        """
                    ).format(sql.Identifier(self.table))
                    cur.executemany(query, [
                        (
                            record.id,
                            record.content,
                            json.dumps(record.metadata),
                            json.dumps(record.vector)
                        )
                        for record in records
                    ])
                conn.commit()
            self._index = None
            return len(records)
        except Exception as e:
            logger.error(f"Error inserting vectors: {e}")
            raise

    async def count(self) -> int:
        with self.pool.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(sql.SQL("SELECT COUNT(*) FROM {}").format(sql.Identifier(self.table)))
                return cur.fetchone()[0]

    async def _load_records(self) -> List[Dict[str, Any]]:
        with self.pool.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    sql.SQL("SELECT id, content, metadata, embedding::text FROM {} ORDER BY id")
                    .format(sql.Identifier(self.table))
                )
                return [
                    {
                        "id": row[0],
                        "content": row[1],
                        "metadata": row[2] if isinstance(row[2], dict) else json.loads(row[2] or "{}"),
                        "vector": json.loads(row[3]),
                    }
                    for row in cur.fetchall()
                ]

    async def search(self, query_vector: List[float], k: int) -> List[RankedRecord]:
        try:
            with self.pool.connection() as conn:
                with conn.cursor() as cur:
                    query = sql.SQL(
                        """
                        SELECT
                            id,
                            content,
                            metadata,
                            embedding::text,
                            1 - (embedding <=> %s::vector) AS similarity
                        FROM {}
                        ORDER BY embedding <=> %s::vector
                        LIMIT %s
                        """
                    ).format(sql.Identifier(self.table))

                    logger.info(f"Searching {self.table} with limit {k}")

                    vector_literal = json.dumps(query_vector)
                    cur.execute(query, (vector_literal, vector_literal, k))
                    results = []
                    for row in cur.fetchall():
                        metadata = row[2] if isinstance(row[2], dict) else json.loads(row[2] or "{}")
                        record = VectorRecord(
                            id=row[0],
                            content=row[1],
                            metadata=metadata,
                            vector=json.loads(row[3])
                        )
                        results.append(RankedRecord(record, float(row[4])))
                    return results

        except Exception as e:
            logger.error(f"Error searching documents: {e}")
            raise
