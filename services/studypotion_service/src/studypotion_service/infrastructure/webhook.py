from __future__ import annotations

import httpx
import structlog

from studypotion_service.domain.exceptions import WebhookError
from studypotion_service.domain.interfaces import WebhookNotifierPort

logger = structlog.get_logger(__name__)


class HttpWebhookNotifier(WebhookNotifierPort):
    """Posts uploaded files as multipart form data to an automation webhook (n8n and the like)."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        webhook_url: str | None,
        timeout: float = 30.0,
    ) -> None:
        self._client = client
        self._webhook_url = webhook_url or None
        self._timeout = timeout

    @property
    def enabled(self) -> bool:
        return self._webhook_url is not None

    async def notify_file_uploaded(
        self,
        document_name: str,
        content_type: str,
        content: bytes,
        fields: dict[str, str],
    ) -> None:
        if self._webhook_url is None:
            return

        try:
            response = await self._client.post(
                self._webhook_url,
                files={"file": (document_name, content, content_type)},
                data=fields,
                timeout=self._timeout,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise WebhookError(f"webhook answered {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise WebhookError(str(exc)) from exc

        logger.debug(
            "webhook.request.completed",
            status_code=response.status_code,
            size_bytes=len(content),
        )
