"""Gmail API client — retry wrapper, label-based idempotency, message parsing.

Usage:
    from app.utils.gmail_client import GmailClient
    gc = GmailClient(access_token)
    label_id = await gc.ensure_label("processed-by-agent")
    stubs = await gc.list_unconsumed("processed-by-agent", max_results=5)
    msg = parse_message(await gc.get_message(stubs[0]["id"]))
    await gc.apply_label(msg.id, label_id)

Every failure surfaces as ChannelTransportError: 4xx answers immediately,
429/5xx and connection errors after the retries are spent.
"""
import asyncio
import base64
import logging
import re
from dataclasses import dataclass

import httpx

from ..exceptions import ChannelTransportError

log = logging.getLogger("parlevel.gmail")

GMAIL_BASE = "https://gmail.googleapis.com/gmail/v1/users/me"

MAX_RETRIES = 3
BACKOFF_BASE = 2  # seconds — exponential: 2, 4, 8

ANGLE_ADDR_RE = re.compile(r"<([^<>]+)>")


@dataclass(frozen=True)
class MailMessage:
    id: str
    sender: str | None
    subject: str
    snippet: str
    body: str

    @property
    def text(self) -> str:
        """Order text: the plain-text body when there is one, else the snippet."""
        return self.body or self.snippet


class GmailClient:
    """Thin wrapper around the Gmail REST API with retry."""

    def __init__(self, access_token: str, *, timeout: int = 30):
        self.timeout = timeout
        self._base_headers = {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
        }

    # ── Labels ──────────────────────────────────────────────────────

    async def list_labels(self) -> list[dict]:
        data = await self._request("GET", "/labels")
        return data.get("labels", [])

    async def create_label(self, name: str) -> dict:
        return await self._request(
            "POST",
            "/labels",
            json_data={
                "name": name,
                "labelListVisibility": "labelShow",
                "messageListVisibility": "show",
            },
        )

    async def ensure_label(self, name: str) -> str:
        """Get or create the label and return its id."""
        for label in await self.list_labels():
            if label.get("name") == name:
                return label["id"]
        created = await self.create_label(name)
        log.info(f"Created Gmail label '{name}' ({created.get('id')})")
        return created["id"]

    # ── Messages ────────────────────────────────────────────────────

    async def list_unconsumed(self, label_name: str, max_results: int = 5) -> list[dict]:
        """Message stubs ({id, threadId}) that do not carry the label yet."""
        stubs, _ = await self.list_unconsumed_page(label_name, max_results)
        return stubs

    async def list_unconsumed_page(
        self, label_name: str, max_results: int = 5, page_token: str | None = None
    ) -> tuple[list[dict], str | None]:
        """One page of unlabeled message stubs plus the token for the next page."""
        query_label = label_name.replace(" ", "-")
        params = {"maxResults": max_results, "q": f"-label:{query_label}"}
        if page_token:
            params["pageToken"] = page_token
        data = await self._request("GET", "/messages", params=params)
        return data.get("messages", []), data.get("nextPageToken")

    async def get_message(self, message_id: str) -> dict:
        return await self._request(
            "GET", f"/messages/{message_id}", params={"format": "full"}
        )

    async def apply_label(self, message_id: str, label_id: str) -> dict:
        return await self._request(
            "POST",
            f"/messages/{message_id}/modify",
            json_data={"addLabelIds": [label_id]},
        )

    # ── Internal retry logic ────────────────────────────────────────

    async def _request(
        self,
        method: str,
        path: str,
        params: dict | None = None,
        json_data: dict | None = None,
    ) -> dict:
        url = path if path.startswith("http") else f"{GMAIL_BASE}{path}"
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await self._request_with_retry(
                client, method, url, params=params, json_data=json_data
            )

    async def _request_with_retry(
        self,
        client: httpx.AsyncClient,
        method: str,
        url: str,
        params: dict | None = None,
        json_data: dict | None = None,
    ) -> dict:
        """Execute HTTP request with exponential backoff on 429 / 5xx."""
        last_error: Exception | None = None
        last_status: int | None = None
        last_body = ""

        for attempt in range(MAX_RETRIES + 1):
            try:
                resp = await client.request(
                    method, url, params=params, json=json_data, headers=self._base_headers
                )
            except (httpx.TimeoutException, httpx.ConnectError) as e:
                last_error = e
                wait = BACKOFF_BASE ** (attempt + 1)
                log.warning(f"Gmail connection error — retry in {wait}s: {e}")
                await asyncio.sleep(wait)
                continue

            if resp.status_code in (200, 201):
                return resp.json()
            if resp.status_code == 204:
                return {}

            last_status, last_body = resp.status_code, resp.text[:300]

            if resp.status_code == 429:
                wait = int(resp.headers.get("Retry-After", BACKOFF_BASE ** (attempt + 1)))
                log.warning(f"Gmail 429 — retry in {wait}s (attempt {attempt + 1})")
                await asyncio.sleep(wait)
                continue

            if resp.status_code >= 500:
                wait = BACKOFF_BASE ** (attempt + 1)
                log.warning(f"Gmail {resp.status_code} — retry in {wait}s (attempt {attempt + 1})")
                await asyncio.sleep(wait)
                continue

            # Client error (400, 401, 403, 404) — don't retry
            log.error(f"Gmail {resp.status_code}: {last_body}")
            raise ChannelTransportError(
                f"Gmail {method} {url} failed with status {resp.status_code}",
                status_code=resp.status_code,
                body=last_body,
            )

        log.error(f"Gmail request failed after {MAX_RETRIES} retries: {url}")
        raise ChannelTransportError(
            f"Gmail {method} {url} failed after {MAX_RETRIES} retries"
            + (f": {last_error}" if last_error else ""),
            status_code=last_status,
            body=last_body,
        ) from last_error


# ── Message parsing ─────────────────────────────────────────────────


def extract_address(from_header: str | None) -> str | None:
    """'Alice <alice@x.com>' → 'alice@x.com'; a bare address is returned as-is."""
    if not from_header:
        return None
    m = ANGLE_ADDR_RE.search(from_header)
    addr = (m.group(1) if m else from_header).strip()
    return addr or None


def _decode(data: str) -> str:
    padded = data + "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(padded).decode("utf-8", errors="ignore")


def _find_part(part: dict, mime_type: str) -> str:
    """Depth-first search for the first body part of the given MIME type."""
    if part.get("mimeType") == mime_type and part.get("body", {}).get("data"):
        return _decode(part["body"]["data"])
    for sub in part.get("parts") or []:
        found = _find_part(sub, mime_type)
        if found:
            return found
    return ""


def clean_body(body: str) -> str:
    """Strip HTML tags and quoted replies, collapse whitespace, keep newlines."""
    if not body:
        return ""
    text = re.sub(r"<br\s*/?>|</p>|</tr>|</li>|</div>", "\n", body, flags=re.IGNORECASE)
    text = re.sub(r"<[^>]+>", " ", text)
    kept = []
    for line in text.splitlines():
        if line.lstrip().startswith(">"):
            continue
        if re.match(r"\s*On .+ wrote:\s*$", line):
            break
        kept.append(re.sub(r"[^\S\n]+", " ", line).strip())
    text = "\n".join(kept)
    return re.sub(r"\n{3,}", "\n\n", text).strip()


def parse_message(raw: dict) -> MailMessage:
    """Flatten a Gmail `format=full` message into a MailMessage."""
    payload = raw.get("payload") or {}
    headers = {h.get("name", "").lower(): h.get("value", "") for h in payload.get("headers", [])}

    body = _find_part(payload, "text/plain") or _find_part(payload, "text/html")
    return MailMessage(
        id=raw.get("id", ""),
        sender=extract_address(headers.get("from")),
        subject=headers.get("subject", ""),
        snippet=raw.get("snippet", "") or "",
        body=clean_body(body),
    )
