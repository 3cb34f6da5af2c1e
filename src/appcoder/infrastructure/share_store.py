from __future__ import annotations

import hashlib
import logging
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from threading import RLock
from typing import Dict, Optional

import httpx

from ..core.errors import PublishFailure
from ..domain.models import PublishRecord

logger = logging.getLogger("appcoder.share")


@dataclass(frozen=True)
class SharedApp:
    share_id: str
    artifact: str
    prompt: str
    model_identifier: str
    created_at: str


class InMemoryShareStore:
    """Process-local publish backend.

    Publishing the same artifact, prompt and model again hands back the
    identifier issued the first time.
    """

    def __init__(self) -> None:
        self._apps: Dict[str, SharedApp] = {}
        self._by_digest: Dict[str, str] = {}
        self._lock = RLock()

    def _now_iso(self) -> str:
        return datetime.now(UTC).isoformat().replace("+00:00", "Z")

    @staticmethod
    def _digest(artifact: str, prompt: str, model_identifier: str) -> str:
        h = hashlib.sha256()
        for part in (model_identifier, prompt, artifact):
            h.update(part.encode("utf-8"))
            h.update(b"\x00")
        return h.hexdigest()

    async def publish(self, *, artifact: str, prompt: str, model_identifier: str) -> PublishRecord:
        digest = self._digest(artifact, prompt, model_identifier)
        with self._lock:
            existing = self._by_digest.get(digest)
            if existing:
                return PublishRecord(share_id=existing)
            share_id = uuid.uuid4().hex
            self._apps[share_id] = SharedApp(
                share_id=share_id,
                artifact=artifact,
                prompt=prompt,
                model_identifier=model_identifier,
                created_at=self._now_iso(),
            )
            self._by_digest[digest] = share_id
            return PublishRecord(share_id=share_id)

    def get(self, share_id: str) -> Optional[SharedApp]:
        with self._lock:
            return self._apps.get(share_id)

    def count(self) -> int:
        with self._lock:
            return len(self._apps)


class HttpShareBackend:
    """Publishes through a remote endpoint answering ``{"shareId": ...}``."""

    def __init__(
        self,
        url: str,
        *,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.url = url
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def publish(self, *, artifact: str, prompt: str, model_identifier: str) -> PublishRecord:
        body = {"generatedCode": artifact, "prompt": prompt, "model": model_identifier}
        try:
            resp = await self._get_client().post(self.url, json=body, timeout=self._timeout)
        except httpx.HTTPError as exc:
            raise PublishFailure(f"publish request failed: {exc!r}") from exc
        if not resp.is_success:
            raise PublishFailure(
                f"publish backend answered {resp.status_code} {resp.reason_phrase}".strip(),
                status_code=resp.status_code,
            )
        try:
            data = resp.json()
        except ValueError as exc:
            raise PublishFailure("publish backend returned invalid JSON") from exc
        share_id = (data.get("shareId") or data.get("id")) if isinstance(data, dict) else None
        if not isinstance(share_id, str) or not share_id:
            raise PublishFailure("publish backend response carried no share id")
        logger.debug("Published app share_id=%s", share_id)
        return PublishRecord(share_id=share_id)

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
