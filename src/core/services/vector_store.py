import json
import numbers
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence
from src.core.models.records import VectorIndex, VectorRecord
from src.core.services.ranking import RankedRecord, rank_records
from src.config.settings import settings
from src.utils.errors import StoreUnavailableError
from src.utils.logging import logger


class VectorStore:
    """Common interface for vector store backends."""
    name = "base"

    def __init__(self, collection: Optional[str] = None):
        self.collection = collection or settings.COLLECTION_NAME
        self._index: Optional[VectorIndex] = None

    async def check_health(self) -> bool:
        raise NotImplementedError

    async def add(self, records: Sequence[VectorRecord]) -> int:
        raise NotImplementedError

    async def count(self) -> int:
        raise NotImplementedError

    async def _load_records(self) -> List[Dict[str, Any]]:
        raise NotImplementedError

    async def load_index(self, refresh: bool = False) -> VectorIndex:
        """Load all records into memory, dropping malformed ones."""
        if self._index is not None and not refresh:
            return self._index
        raw_records = await self._load_records()
        self._index = build_index(raw_records)
        logger.info(
            f"Loaded {len(self._index.records)} vectors "
            f"(dim={self._index.dim}) from {self.name} store"
        )
        return self._index

    async def search(self, query_vector: List[float], k: int) -> List[RankedRecord]:
        index = await self.load_index()
        return rank_records(index.records, k, query_vector=query_vector)

    async def close(self):
        pass


def _valid_vector(vector: Any) -> bool:
    return (
        isinstance(vector, list)
        and len(vector) > 0
        and all(isinstance(x, numbers.Real) and not isinstance(x, bool) for x in vector)
    )


def _normalize_record(raw: Any) -> Optional[Dict[str, Any]]:
    if not isinstance(raw, dict):
        return None
    vector = raw.get("vector", raw.get("embedding"))
    record_id = raw.get("id")
    if record_id is None or not _valid_vector(vector):
        return None
    content = raw.get("content", raw.get("document"))
    metadata = raw.get("metadata") or {}
    if not isinstance(content, str) or not isinstance(metadata, dict):
        return None
    return {"id": str(record_id), "vector": vector, "content": content, "metadata": metadata}


def extract_raw_records(payload: Any) -> List[Any]:
    """Accept a flat array, {"embeddings": [...]} or {"vectors": [...]}."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in ("embeddings", "vectors"):
            if isinstance(payload.get(key), list):
                return payload[key]
    return []


def build_index(raw_records: Sequence[Any]) -> VectorIndex:
    """Build an index whose dimension is the first valid record's length.

    Records with a different vector length or missing fields are dropped.
    """
    normalized = [r for r in (_normalize_record(raw) for raw in raw_records) if r is not None]
    if not normalized:
        raise StoreUnavailableError("No valid vectors found in vector store")

    dim = len(normalized[0]["vector"])
    records = [VectorRecord(**r) for r in normalized if len(r["vector"]) == dim]
    dropped = len(raw_records) - len(records)
    if dropped:
        logger.warning(f"Dropped {dropped} malformed vector records on load")
    return VectorIndex(records=records, dim=dim)


class FileVectorStore(VectorStore):
    """Vector records kept as a JSON array in a single file."""
    name = "file"

    def __init__(self, path: Optional[Path] = None, collection: Optional[str] = None):
        super().__init__(collection)
        self.path = Path(path) if path is not None else settings.VECTOR_FILE

    async def check_health(self) -> bool:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            return True
        except OSError as e:
            logger.error(f"File vector store unavailable at {self.path}: {e}")
            return False

    def _read_payload(self) -> Any:
        if not self.path.exists():
            return []
        with open(self.path, 'r', encoding='utf-8') as f:
            return json.load(f)

    async def add(self, records: Sequence[VectorRecord]) -> int:
        """Insert records, replacing any stored under the same id."""
        existing = extract_raw_records(self._read_payload())
        positions = {
            str(raw.get("id")): i for i, raw in enumerate(existing) if isinstance(raw, dict)
        }
        for record in records:
            payload = record.model_dump(mode="json")
            if record.id in positions:
                existing[positions[record.id]] = payload
            else:
                positions[record.id] = len(existing)
                existing.append(payload)

        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, 'w', encoding='utf-8') as f:
            json.dump(existing, f)

        self._index = None
        return len(records)

    async def count(self) -> int:
        return len(extract_raw_records(self._read_payload()))

    async def _load_records(self) -> List[Dict[str, Any]]:
        if not self.path.exists():
            raise StoreUnavailableError(f"Vector file not found: {self.path}")
        return extract_raw_records(self._read_payload())


def create_vector_store(backend: str) -> VectorStore:
    if backend == "file":
        return FileVectorStore()
    if backend == "postgres":
        from src.core.services.db_service import PostgresVectorStore
        return PostgresVectorStore()
    raise ValueError(f"Unknown vector store backend: {backend}")


async def select_vector_store(backends: Optional[Sequence[str]] = None) -> VectorStore:
    """Return the first backend that is reachable, in preference order."""
    backends = list(backends) if backends is not None else settings.vector_store_backends_list
    for backend in backends:
        try:
            store = create_vector_store(backend)
            if await store.check_health():
                logger.info(f"Using {backend} vector store")
                return store
            await store.close()
        except Exception as e:
            logger.warning(f"Vector store backend '{backend}' unavailable: {e}")
    raise StoreUnavailableError(f"No vector store backend available (tried {', '.join(backends)})")


def write_readiness_marker(
    vector_count: int,
    backend: str,
    dimension: Optional[int],
    path: Optional[Path] = None,
    collection: Optional[str] = None,
    embedding_providers: Optional[Dict[str, int]] = None
) -> Dict[str, Any]:
    path = Path(path) if path is not None else settings.READINESS_FILE
    marker = {
        "collection": collection or settings.COLLECTION_NAME,
        "backend": backend,
        "vectorCount": vector_count,
        "dimension": dimension,
        "embeddingProviders": dict(embedding_providers or {}),
        "ready": vector_count > 0,
        "createdAt": datetime.now(timezone.utc).isoformat(),
    }
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(marker, f, indent=2)
    return marker


def read_readiness_marker(path: Optional[Path] = None) -> Dict[str, Any]:
    path = Path(path) if path is not None else settings.READINESS_FILE
    if not path.exists():
        raise StoreUnavailableError(f"{path.name} not found")
    with open(path, 'r', encoding='utf-8') as f:
        marker = json.load(f)
    if not marker.get("ready"):
        raise StoreUnavailableError("Vector DB not marked as ready")
    return marker
