"""VOTECHAIN — Firestore Block Store.

Async gateway over the Firestore REST v1 API using httpx. Blocks
live in one collection (default ``blockchain``), one document per
block keyed by the decimal index.

Environment:
    FIRESTORE_PROJECT_ID=voting-system-12345
    FIRESTORE_API_KEY=AIza...           (optional, web API key)
    FIRESTORE_ID_TOKEN=eyJhbGciOi...    (optional, bearer token)
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Any

import httpx

from votechain.chain.block import Block
from votechain.exceptions import ConflictError, PersistenceError
from votechain.storage.codec import block_to_document, document_id, document_to_block

logger = logging.getLogger("votechain.storage.firestore")

DEFAULT_BASE_URL = "https://firestore.googleapis.com/v1"
DEFAULT_TIMEOUT = 30.0

_TIMESTAMP_RE = re.compile(
    r"^(?P<base>\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})(?:\.(?P<frac>\d+))?(?P<tz>Z|[+-]\d{2}:\d{2})$"
)


# ─── Typed value codec ───────────────────────────────────────────────


def encode_value(value: Any) -> dict[str, Any]:
    """Python value → Firestore typed JSON value."""
    if value is None:
        return {"nullValue": None}
    if isinstance(value, bool):
        return {"booleanValue": value}
    if isinstance(value, int):
        return {"integerValue": str(value)}
    if isinstance(value, float):
        return {"doubleValue": value}
    if isinstance(value, str):
        return {"stringValue": value}
    if isinstance(value, datetime):
        return {"timestampValue": format_timestamp(value)}
    if isinstance(value, dict):
        return {"mapValue": {"fields": encode_fields(value)}}
    if isinstance(value, (list, tuple)):
        return {"arrayValue": {"values": [encode_value(v) for v in value]}}
    raise TypeError(f"Cannot encode {type(value).__name__} as a Firestore value")


def encode_fields(doc: dict[str, Any]) -> dict[str, Any]:
    return {key: encode_value(val) for key, val in doc.items()}


def decode_value(value: dict[str, Any]) -> Any:
    """Firestore typed JSON value → Python value."""
    if "nullValue" in value:
        return None
    if "booleanValue" in value:
        return bool(value["booleanValue"])
    if "integerValue" in value:
        return int(value["integerValue"])
    if "doubleValue" in value:
        return float(value["doubleValue"])
    if "stringValue" in value:
        return value["stringValue"]
    if "timestampValue" in value:
        return parse_timestamp(value["timestampValue"])
    if "mapValue" in value:
        return decode_fields(value["mapValue"].get("fields", {}))
    if "arrayValue" in value:
        return [decode_value(v) for v in value["arrayValue"].get("values", [])]
    raise ValueError(f"Unsupported Firestore value: {sorted(value)}")


def decode_fields(fields: dict[str, Any]) -> dict[str, Any]:
    return {key: decode_value(val) for key, val in fields.items()}


def format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(raw: str) -> datetime:
    """Parse RFC 3339 with up to nanosecond precision (truncated to µs)."""
    match = _TIMESTAMP_RE.match(raw)
    if not match:
        raise ValueError(f"Invalid timestamp: {raw!r}")
    frac = (match.group("frac") or "")[:6].ljust(6, "0")
    tz = match.group("tz")
    tz = "+00:00" if tz == "Z" else tz
    return datetime.fromisoformat(f"{match.group('base')}.{frac}{tz}")


# ─── Gateway ─────────────────────────────────────────────────────────


class FirestoreGateway:
    """Block store in a Firestore collection.

    Usage::

        async with FirestoreGateway("voting-system-12345", api_key="AIza...") as fs:
            blocks = await fs.load_all_ordered()
    """

    def __init__(
        self,
        project_id: str,
        *,
        api_key: str | None = None,
        id_token: str | None = None,
        collection: str = "blockchain",
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ):
        if not project_id:
            raise ValueError("FIRESTORE_PROJECT_ID is required")

        self.project_id = project_id
        self.collection = collection
        self._documents_url = (
            f"{base_url.rstrip('/')}/projects/{project_id}/databases/(default)/documents"
        )
        self._params = {"key": api_key} if api_key else {}
        self._headers = {"Content-Type": "application/json"}
        if id_token:
            self._headers["Authorization"] = f"Bearer {id_token}"
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def __aenter__(self) -> FirestoreGateway:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Shut down the HTTP client."""
        await self._client.aclose()

    # ─── Internal ────────────────────────────────────────────────────

    async def _request(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, str] | None = None,
        json_body: Any = None,
    ) -> Any:
        query = {**self._params, **(params or {})}
        try:
            resp = await self._client.request(
                method, url, params=query, json=json_body, headers=self._headers
            )
        except httpx.TimeoutException as e:
            raise PersistenceError(f"Firestore request timed out: {e}", status_code=408) from e
        except httpx.HTTPError as e:
            raise PersistenceError(f"Firestore connection error: {e}") from e

        if resp.status_code >= 400:
            try:
                detail = resp.json().get("error", {}).get("message", resp.text)
            except (ValueError, AttributeError):
                detail = resp.text
            if resp.status_code == 409:
                raise ConflictError(f"Firestore conflict: {detail}", status_code=409)
            raise PersistenceError(
                f"Firestore error {resp.status_code}: {detail}", status_code=resp.status_code
            )

        try:
            return resp.json()
        except ValueError as e:
            raise PersistenceError(
                f"Invalid JSON from Firestore: {e}", status_code=resp.status_code
            ) from e

    def _document_url(self, doc_id: str) -> str:
        return f"{self._documents_url}/{self.collection}/{doc_id}"

    # ─── Gateway protocol ────────────────────────────────────────────

    async def put_block(self, block: Block) -> None:
        await self._request(
            "PATCH",
            self._document_url(document_id(block.index)),
            json_body={"fields": encode_fields(block_to_document(block))},
        )

    async def insert_block(self, block: Block) -> None:
        await self._request(
            "POST",
            f"{self._documents_url}/{self.collection}",
            params={"documentId": document_id(block.index)},
            json_body={"fields": encode_fields(block_to_document(block))},
        )

    async def load_all_ordered(self) -> list[Block]:
        query = {
            "structuredQuery": {
                "from": [{"collectionId": self.collection}],
                "orderBy": [{"field": {"fieldPath": "index"}, "direction": "ASCENDING"}],
            }
        }
        results = await self._request("POST", f"{self._documents_url}:runQuery", json_body=query)

        blocks = []
        for item in results or []:
            document = item.get("document")
            if document is None:
                # Empty result sets still return one item carrying readTime
                continue
            try:
                blocks.append(document_to_block(decode_fields(document.get("fields", {}))))
            except (KeyError, TypeError, ValueError) as e:
                raise PersistenceError(
                    f"Malformed block document {document.get('name', '?')}: {e}"
                ) from e
        logger.debug("Loaded %d blocks from Firestore", len(blocks))
        return blocks

    def __repr__(self) -> str:
        return f"FirestoreGateway(project={self.project_id!r}, collection={self.collection!r})"
