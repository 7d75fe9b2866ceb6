"""
Email senders for the email_action step.

    Office365Sender  client-credentials token, then Graph /users/{from}/sendMail
    GmailSender      refresh-token exchange, then Gmail messages.send with a
                     base64url MIME message

Both return a SendResult instead of raising; the step decides what a
failed send means for the run.
"""

from __future__ import annotations

import base64
import re
from email.message import EmailMessage as MimeMessage
from typing import Any

import httpx

from docflow.core.config import settings
from docflow.core.logging import get_logger
from docflow.pipeline.interfaces import EmailMessage, EmailProviderSettings, SendResult

logger = get_logger(__name__)

GRAPH_SCOPE = "https://graph.microsoft.com/.default"


def split_addresses(value: str | None) -> list[str]:
    """'a@x.com; b@y.com,c@z.com' -> ['a@x.com', 'b@y.com', 'c@z.com']"""
    if not value:
        return []
    return [part.strip() for part in re.split(r"[;,]", value) if part.strip()]


def _error_text(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            return str(error.get("message") or error)
        if error:
            return str(body.get("error_description") or error)
    return response.text


class _HttpSender:
    def __init__(self, timeout: float | None = None, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.timeout = timeout if timeout is not None else settings.HTTP_TIMEOUT_SECONDS
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)


class Office365Sender(_HttpSender):
    async def send(self, provider: EmailProviderSettings, message: EmailMessage) -> SendResult:
        try:
            async with self._client() as client:
                token_response = await client.post(
                    settings.OFFICE365_TOKEN_URL.format(tenant_id=provider.tenant_id),
                    data={
                        "client_id": provider.client_id,
                        "client_secret": provider.client_secret,
                        "scope": GRAPH_SCOPE,
                        "grant_type": "client_credentials",
                    },
                )
                if not token_response.is_success:
                    return SendResult(success=False, error=f"Office 365 token request failed: {_error_text(token_response)}")
                token = token_response.json().get("access_token")

                response = await client.post(
                    f"{settings.GRAPH_API_BASE_URL}/users/{message.from_address}/sendMail",
                    headers={"Authorization": f"Bearer {token}"},
                    json=self._graph_payload(message),
                )
        except httpx.HTTPError as exc:
            logger.error("Office 365 send failed", error=str(exc))
            return SendResult(success=False, error=str(exc))

        if not response.is_success:
            return SendResult(success=False, error=_error_text(response))
        return SendResult(success=True, provider_response={"provider": "office365", "status": response.status_code})

    @staticmethod
    def _graph_payload(message: EmailMessage) -> dict[str, Any]:
        graph_message: dict[str, Any] = {
            "subject": message.subject,
            "body": {"contentType": "HTML", "content": message.body},
            "toRecipients": [{"emailAddress": {"address": a}} for a in split_addresses(message.to)],
        }
        cc = split_addresses(message.cc)
        if cc:
            graph_message["ccRecipients"] = [{"emailAddress": {"address": a}} for a in cc]
        if message.attachment is not None:
            graph_message["attachments"] = [{
                "@odata.type": "#microsoft.graph.fileAttachment",
                "name": message.attachment.filename,
                "contentType": message.attachment.content_type,
                "contentBytes": message.attachment.content_base64,
            }]
        return {"message": graph_message, "saveToSentItems": True}


class GmailSender(_HttpSender):
    async def send(self, provider: EmailProviderSettings, message: EmailMessage) -> SendResult:
        try:
            raw = build_mime(message)
            async with self._client() as client:
                token_response = await client.post(
                    settings.GMAIL_TOKEN_URL,
                    data={
                        "client_id": provider.client_id,
                        "client_secret": provider.client_secret,
                        "refresh_token": provider.refresh_token,
                        "grant_type": "refresh_token",
                    },
                )
                if not token_response.is_success:
                    return SendResult(success=False, error=f"Gmail token refresh failed: {_error_text(token_response)}")
                token = token_response.json().get("access_token")

                response = await client.post(
                    settings.GMAIL_SEND_URL,
                    headers={"Authorization": f"Bearer {token}"},
                    json={"raw": raw},
                )
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("Gmail send failed", error=str(exc))
            return SendResult(success=False, error=str(exc))

        if not response.is_success:
            return SendResult(success=False, error=_error_text(response))
        body = response.json()
        return SendResult(success=True, provider_response={"provider": "gmail", "messageId": body.get("id")})


def build_mime(message: EmailMessage) -> str:
    """The base64url-encoded RFC 822 message Gmail expects."""
    mime = MimeMessage()
    mime["From"] = message.from_address
    mime["To"] = ", ".join(split_addresses(message.to))
    if message.cc:
        mime["Cc"] = ", ".join(split_addresses(message.cc))
    mime["Subject"] = message.subject
    mime.set_content(message.body, subtype="html")

    if message.attachment is not None:
        maintype, _, subtype = message.attachment.content_type.partition("/")
        mime.add_attachment(
            base64.b64decode(message.attachment.content_base64),
            maintype=maintype,
            subtype=subtype or "octet-stream",
            filename=message.attachment.filename,
        )
    return base64.urlsafe_b64encode(mime.as_bytes()).decode("ascii")
