"""HTTP client for the external content-generation service."""

import json
import logging
from dataclasses import dataclass
from typing import Any, Protocol

import httpx

from bulkgen.errors.exceptions import GenerationServiceError, GenerationTimeoutError
from bulkgen.models.bulk_job import BulkItem, SelectedSections
from bulkgen.services.credentials import ForwardedAuth

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerationResult:
    content: str
    content_id: str | None = None


class ContentGenerator(Protocol):
    async def generate(
        self,
        item: BulkItem,
        *,
        owner_id: str,
        selected_sections: SelectedSections,
        auth: ForwardedAuth,
    ) -> GenerationResult: ...


def _error_text(response: httpx.Response) -> str:
    """Prefer the ``error`` field of a JSON body, fall back to the raw text."""
    try:
        body = response.json()
    except ValueError:
        return response.text
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return response.text


def _content_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False)


class HttpGenerationClient:
    """Calls ``POST {base_url}/api/generate`` for one item.

    The caller's authorization headers are forwarded so generation runs with
    the submitting user's privileges. Callers are expected to bound the whole
    call with their own timeout; ``timeout`` here only caps the transport.
    """

    path = "/api/generate"

    def __init__(
        self,
        base_url: str,
        user_agent: str = "BulkGen-Processor/1.0",
        timeout: float | None = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.user_agent = user_agent
        self.timeout = timeout
        self._transport = transport

    async def generate(
        self,
        item: BulkItem,
        *,
        owner_id: str,
        selected_sections: SelectedSections,
        auth: ForwardedAuth,
    ) -> GenerationResult:
        payload = {
            "productName": item.product_name,
            "features": item.features,
            "platform": str(item.platform),
            "isBackgroundJob": True,
            "userId": owner_id,
            "selectedSections": selected_sections,
        }
        headers = {
            "Content-Type": "application/json",
            "User-Agent": self.user_agent,
            **auth.headers(),
        }

        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, timeout=self.timeout, transport=self._transport
            ) as client:
                resp = await client.post(self.path, json=payload, headers=headers)
        except httpx.TimeoutException as exc:
            raise GenerationTimeoutError(self.timeout or 0) from exc

        if not resp.is_success:
            logger.info("Generation for %s rejected with HTTP %d", item.id, resp.status_code)
            raise GenerationServiceError(resp.status_code, _error_text(resp))

        data = resp.json()
        content = data.get("result") if isinstance(data, dict) else None
        if not content:
            raise GenerationServiceError(resp.status_code, "response did not include generated content")

        content_id = data.get("contentId")
        return GenerationResult(
            content=_content_text(content),
            content_id=str(content_id) if content_id is not None else None,
        )
