"""Vector store backed by a Qdrant server over its HTTP REST API."""

from __future__ import annotations

import json
import urllib.error
import urllib.request
from collections.abc import Iterable
from typing import Any, Optional

from dory.core import FilterOp, MetadataFilter, ScoredChunk, SearchRequest, VectorStore
from dory.units import Chunk, DoryError

DEFAULT_TOP_K = 10
_INTERNAL_FIELDS = frozenset({"source_doc_id", "source_uri", "content"})


def _string_values(value: Any) -> list[str]:
    if isinstance(value, (list, tuple)) and all(isinstance(v, str) for v in value):
        return list(value)
    return []


def build_qdrant_filter(metadata_filter: MetadataFilter) -> Optional[dict[str, Any]]:
    """Translate a metadata filter into Qdrant's filter format.

    Returns ``None`` for an unknown operator.
    """
    op = metadata_filter.op
    if op == FilterOp.EQ:
        match: dict[str, Any] = {"value": metadata_filter.value}
    elif op in (FilterOp.IN, FilterOp.ANY_OF):
        match = {"any": _string_values(metadata_filter.value)}
    else:
        return None
    return {"must": [{"key": metadata_filter.field, "match": match}]}


class QdrantStore(VectorStore):
    """A vector store in a Qdrant collection using cosine distance."""

    def __init__(
        self,
        url: str,
        collection_name: str,
        dimensions: int,
        api_key: str = "",
    ) -> None:
        if not url:
            raise DoryError("dory/store: Qdrant URL must not be empty")
        if not collection_name:
            raise DoryError("dory/store: Qdrant collection name must not be empty")
        if dimensions <= 0:
            raise DoryError("dory/store: Qdrant dimensions must be > 0")
        self.url = url.rstrip("/")
        self.collection_name = collection_name
        self.dimensions = dimensions
        self.api_key = api_key

    @property
    def collection_url(self) -> str:
        return f"{self.url}/collections/{self.collection_name}"

    def ensure_collection(self) -> None:
        """Create the collection on the server."""
        body = {"vectors": {"size": self.dimensions, "distance": "Cosine"}}
        self._request("PUT", self.collection_url, body)

    def store(self, chunks: Iterable[Chunk]) -> None:
        points = []
        for chunk in chunks:
            payload: dict[str, Any] = {
                "source_doc_id": chunk.source_document_id,
                "source_uri": chunk.source_uri,
                "content": chunk.as_text(),
            }
            if chunk.metadata:
                payload.update(chunk.metadata)
            points.append(
                {
                    "id": chunk.id,
                    "vector": [float(v) for v in chunk.vector or ()],
                    "payload": payload,
                }
            )
        if not points:
            return
        self._request("PUT", self.collection_url + "/points", {"points": points})

    def search(self, request: SearchRequest) -> list[ScoredChunk]:
        top_k = request.top_k if request.top_k > 0 else DEFAULT_TOP_K
        body: dict[str, Any] = {
            "nearest": {"vector": [float(v) for v in request.query_vector or ()]},
            "limit": top_k,
            "with_payload": True,
        }
        if request.filter is not None:
            body["filter"] = build_qdrant_filter(request.filter)

        raw = self._request("POST", self.collection_url + "/points/query", body)
        try:
            response = json.loads(raw)
        except ValueError as exc:
            raise DoryError(f"dory/store: unmarshal search response: {exc}") from exc

        result = response.get("result") if isinstance(response, dict) else None
        points = result.get("points") if isinstance(result, dict) else None
        results: list[ScoredChunk] = []
        for point in points or ():
            if not isinstance(point, dict):
                raise DoryError("dory/store: unmarshal search response: point is not an object")
            point_id = point.get("id")
            if not isinstance(point_id, str):
                raise DoryError("dory/store: unmarshal search response: point id is not a string")
            payload = point.get("payload") or {}
            source_doc_id = payload.get("source_doc_id")
            content = payload.get("content")
            metadata = {k: v for k, v in payload.items() if k not in _INTERNAL_FIELDS}
            chunk = Chunk(
                point_id,
                source_doc_id if isinstance(source_doc_id, str) else "",
                content if isinstance(content, str) else "",
                metadata,
            )
            results.append(ScoredChunk(chunk, float(point.get("score") or 0.0)))
        return results

    def delete(self, ids: Iterable[str]) -> None:
        id_list = list(ids)
        if not id_list:
            return
        self._request("POST", self.collection_url + "/points/delete", {"points": id_list})

    def _request(self, method: str, url: str, body: Optional[Any]) -> bytes:
        data = None
        if body is not None:
            try:
                data = json.dumps(body).encode("utf-8")
            except (TypeError, ValueError) as exc:
                raise DoryError(f"dory/store: marshal request body: {exc}") from exc
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["api-key"] = self.api_key
        req = urllib.request.Request(url, data=data, headers=headers, method=method)
        try:
            with urllib.request.urlopen(req) as resp:
                return resp.read()
        except urllib.error.HTTPError as exc:
            detail = exc.read().decode("utf-8", errors="replace")
            raise DoryError(
                f"dory/store: qdrant {method} {url} returned {exc.code}: {detail}"
            ) from exc
        except (urllib.error.URLError, OSError) as exc:
            raise DoryError(f"dory/store: request {method} {url}: {exc}") from exc