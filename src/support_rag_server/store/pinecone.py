"""
Pinecone REST Client

Implements the vector store contract against Pinecone's HTTP API using
integrated embeddings:

- control plane (https://api.pinecone.io): list/create/describe/delete index
- data plane (per-index host): records upsert and search, fetch, delete,
  describe_index_stats

Index hosts are resolved once through describe_index and cached.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import quote

import httpx

from .base import (
    IndexConfig,
    IndexStats,
    NamespaceStats,
    RerankRequest,
    UpsertRecord,
    VectorStoreClient,
)
from ..config import settings
from ..core.errors import (
    ConfigurationError,
    ExternalServiceError,
    IndexNotFoundError,
    raise_for_service_status,
)

logger = logging.getLogger("support.pinecone")

SERVICE = "pinecone"


class PineconeClient(VectorStoreClient):
    """
    Async Pinecone client.

    Construct one per process and inject it; the only state it keeps is the
    index-name -> host cache.
    """

    supports_rerank = True
    supports_fetch = True

    def __init__(
        self,
        api_key: Optional[str] = None,
        control_url: Optional[str] = None,
        api_version: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = api_key or settings.pinecone_api_key.get_secret_value()
        if not self.api_key:
            raise ConfigurationError("PINECONE_API_KEY is required")

        self.control_url = (control_url or settings.pinecone_control_url).rstrip("/")
        self.api_version = api_version or settings.pinecone_api_version
        self.timeout = timeout or settings.http_timeout
        self._transport = transport
        self._hosts: Dict[str, str] = {}

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _headers(self, content_type: str = "application/json") -> Dict[str, str]:
        return {
            "Api-Key": self.api_key,
            "X-Pinecone-API-Version": self.api_version,
            "Content-Type": content_type,
        }

    async def _request(
        self,
        method: str,
        url: str,
        *,
        json_body: Any = None,
        content: Optional[str] = None,
        params: Any = None,
        content_type: str = "application/json",
        index_name: Optional[str] = None,
        namespace: Optional[str] = None,
    ) -> Any:
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                resp = await client.request(
                    method,
                    url,
                    json=json_body,
                    content=content,
                    params=params,
                    headers=self._headers(content_type),
                )
        except httpx.HTTPError as exc:
            logger.error("Pinecone %s %s failed: %s", method, url, exc)
            raise ExternalServiceError(SERVICE, f"{type(exc).__name__}: {exc}") from exc

        if resp.status_code == 404 and index_name is not None:
            raise IndexNotFoundError(index_name, namespace)

        raise_for_service_status(resp, SERVICE)

        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError:
            return None

    async def _data_url(self, index_name: str, path: str) -> str:
        host = self._hosts.get(index_name)
        if host is None:
            description = await self.describe_index(index_name)
            host = description.get("host")
            if not host:
                raise ExternalServiceError(SERVICE, f"index {index_name} has no host yet")
            self._hosts[index_name] = host
        if not host.startswith("http"):
            host = f"https://{host}"
        return f"{host}{path}"

    # ------------------------------------------------------------------
    # Control plane
    # ------------------------------------------------------------------

    async def list_indexes(self) -> List[str]:
        data = await self._request("GET", f"{self.control_url}/indexes") or {}
        return [i["name"] for i in data.get("indexes") or [] if "name" in i]

    async def describe_index(self, name: str) -> Dict[str, Any]:
        return await self._request(
            "GET", f"{self.control_url}/indexes/{quote(name, safe='')}", index_name=name
        ) or {}

    async def create_index(self, config: IndexConfig) -> None:
        logger.info("Creating index with integrated embeddings: %s", config.name)
        await self._request(
            "POST",
            f"{self.control_url}/indexes/create-for-model",
            json_body={
                "name": config.name,
                "cloud": config.cloud,
                "region": config.region,
                "embed": {
                    "model": config.model,
                    "field_map": {"text": config.text_field},
                },
            },
        )
        if config.wait_until_ready:
            await self.wait_for_index(config.name)
        logger.info("Index %s created", config.name)

    async def wait_for_index(
        self,
        name: str,
        timeout: float = 300.0,
        poll_interval: float = 5.0,
    ) -> None:
        deadline = time.monotonic() + timeout
        while True:
            description = await self.describe_index(name)
            if (description.get("status") or {}).get("ready"):
                logger.info("Index %s is ready", name)
                return
            if time.monotonic() >= deadline:
                raise ExternalServiceError(SERVICE, f"timed out waiting for index {name}")
            logger.info("Waiting for index %s to be ready...", name)
            await asyncio.sleep(poll_interval)

    async def delete_index(self, name: str) -> None:
        logger.info("Deleting index: %s", name)
        await self._request(
            "DELETE", f"{self.control_url}/indexes/{quote(name, safe='')}", index_name=name
        )
        self._hosts.pop(name, None)

    # ------------------------------------------------------------------
    # Data plane
    # ------------------------------------------------------------------

    async def get_stats(self, name: str) -> IndexStats:
        url = await self._data_url(name, "/describe_index_stats")
        data = await self._request("POST", url, json_body={}, index_name=name) or {}

        return IndexStats(
            dimension=data.get("dimension") or 0,
            total_vector_count=data.get("totalVectorCount") or 0,
            index_fullness=data.get("indexFullness") or 0.0,
            namespaces={
                ns: NamespaceStats(vector_count=(info or {}).get("vectorCount") or 0)
                for ns, info in (data.get("namespaces") or {}).items()
            },
        )

    async def upsert(
        self,
        index_name: str,
        namespace: str,
        records: Sequence[UpsertRecord],
    ) -> None:
        if not records:
            return
        url = await self._data_url(
            index_name, f"/records/namespaces/{quote(namespace, safe='')}/upsert"
        )
        body = "\n".join(
            json.dumps({"_id": r.id, **r.fields()}, ensure_ascii=False) for r in records
        )
        await self._request(
            "POST",
            url,
            content=body,
            content_type="application/x-ndjson",
            index_name=index_name,
            namespace=namespace,
        )

    async def query_by_text(
        self,
        index_name: str,
        namespace: str,
        text: str,
        top_k: int,
        filter: Optional[Dict[str, Any]] = None,
        rerank: Optional[RerankRequest] = None,
    ) -> List[Dict[str, Any]]:
        url = await self._data_url(
            index_name, f"/records/namespaces/{quote(namespace, safe='')}/search"
        )

        query: Dict[str, Any] = {"inputs": {"text": text}, "top_k": top_k}
        if filter:
            query["filter"] = filter
        body: Dict[str, Any] = {"query": query}
        if rerank is not None:
            body["rerank"] = {
                "model": rerank.model,
                "top_n": rerank.top_n,
                "rank_fields": list(rerank.rank_fields),
            }

        data = await self._request(
            "POST", url, json_body=body, index_name=index_name, namespace=namespace
        ) or {}
        return list((data.get("result") or {}).get("hits") or [])

    async def fetch(
        self,
        index_name: str,
        namespace: str,
        ids: Sequence[str],
    ) -> Dict[str, Dict[str, Any]]:
        if not ids:
            return {}
        url = await self._data_url(index_name, "/vectors/fetch")
        params = [("ids", i) for i in ids] + [("namespace", namespace)]
        data = await self._request(
            "GET", url, params=params, index_name=index_name, namespace=namespace
        ) or {}

        return {
            record_id: dict(vector.get("metadata") or {})
            for record_id, vector in (data.get("vectors") or {}).items()
        }

    async def delete_all(self, index_name: str, namespace: str) -> None:
        url = await self._data_url(index_name, "/vectors/delete")
        await self._request(
            "POST",
            url,
            json_body={"deleteAll": True, "namespace": namespace},
            index_name=index_name,
            namespace=namespace,
        )

    async def delete_by_ids(
        self,
        index_name: str,
        namespace: str,
        ids: Sequence[str],
    ) -> None:
        if not ids:
            return
        url = await self._data_url(index_name, "/vectors/delete")
        await self._request(
            "POST",
            url,
            json_body={"ids": list(ids), "namespace": namespace},
            index_name=index_name,
            namespace=namespace,
        )
