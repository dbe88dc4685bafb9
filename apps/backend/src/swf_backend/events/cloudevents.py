"""CloudEvents 1.0 delivery to the workflow engine over HTTP (binary content mode)."""

from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

import httpx
from pydantic import BaseModel, Field

from ..clients.base import BaseClient, ClientError

logger = logging.getLogger(__name__)

SPEC_VERSION = "1.0"


class CloudEvent(BaseModel):
    type: str
    source: str
    data: Any = None
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    time: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    datacontenttype: str = "application/json"
    # Extension attributes, e.g. kogitoprocrefid for correlation
    extensions: dict[str, str] = {}

    def to_headers(self) -> dict[str, str]:
        headers = {
            "ce-specversion": SPEC_VERSION,
            "ce-id": self.id,
            "ce-type": self.type,
            "ce-source": self.source,
            "ce-time": self.time.isoformat(),
            "content-type": self.datacontenttype,
        }
        for name, value in self.extensions.items():
            headers[f"ce-{name.lower()}"] = value
        return headers


class CloudEventResponse(BaseModel):
    success: bool
    error: Optional[str] = None


class CloudEventClient(BaseClient):
    service_name = "cloudevents"

    def __init__(self, http_client: httpx.AsyncClient, base_url: str) -> None:
        super().__init__(http_client)
        self._base = base_url.rstrip("/")

    async def send(self, event: CloudEvent, endpoint: str | None = None) -> CloudEventResponse:
        """Emit ``event``; delivery problems are logged and reported, not raised."""
        target_url = f"{self._base}/{endpoint}" if endpoint else self._base
        body = json.dumps(event.data, default=str)
        logger.info("Sending CloudEvent %s to %s with data %s", event.type, target_url, body)
        try:
            resp = await self.http.post(target_url, content=body, headers=event.to_headers())
            self._check_error(resp)
        except (ClientError, httpx.HTTPError) as exc:
            logger.error("Failed to send CloudEvent %s: %s", event.id, exc)
            return CloudEventResponse(success=False, error=str(exc))
        return CloudEventResponse(success=True)
