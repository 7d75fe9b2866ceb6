"""
Paramiko-based SFTP file transport.

Paramiko is blocking, so each upload runs in a worker thread via
asyncio.to_thread and opens its own connection.  Remote folder precedence:
the step's path override, then the target's folder for the upload type,
then the configured default folder.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import io
import posixpath
from typing import Any

import paramiko

from docflow.core.config import settings
from docflow.core.constants import UploadType
from docflow.core.logging import get_logger
from docflow.pipeline.errors import TransferError
from docflow.pipeline.interfaces import SftpTarget, TransferRequest

logger = get_logger(__name__)

DEFAULT_REMOTE_PATHS = {
    UploadType.PDF: settings.SFTP_DEFAULT_PDF_PATH,
    UploadType.JSON: settings.SFTP_DEFAULT_JSON_PATH,
    UploadType.XML: settings.SFTP_DEFAULT_XML_PATH,
    UploadType.CSV: settings.SFTP_DEFAULT_CSV_PATH,
}


def remote_directory(request: TransferRequest) -> str:
    if request.path_override:
        return request.path_override
    target_path = getattr(request.target, f"{request.upload_type}_path", None)
    return target_path or DEFAULT_REMOTE_PATHS.get(request.upload_type, "/")


def encode_content(request: TransferRequest) -> bytes:
    if request.content_is_base64:
        try:
            return base64.b64decode(request.content, validate=False)
        except (binascii.Error, ValueError) as exc:
            raise TransferError(f"Document content is not valid base64: {exc}") from exc
    return request.content.encode("utf-8")


class ParamikoFileTransport:
    """FileTransport that writes one file per call over SFTP."""

    def __init__(self, connect_timeout: float | None = None) -> None:
        self.connect_timeout = connect_timeout or settings.SFTP_CONNECT_TIMEOUT_SECONDS

    async def upload(self, request: TransferRequest) -> dict[str, Any]:
        data = encode_content(request)
        directory = remote_directory(request)
        remote_path = posixpath.join(directory, request.filename)

        try:
            await asyncio.to_thread(self._put, request.target, directory, remote_path, data)
        except (paramiko.SSHException, OSError) as exc:
            logger.error(
                "SFTP upload failed",
                host=request.target.host,
                remote_path=remote_path,
                error=str(exc),
            )
            raise TransferError(f"SFTP upload failed: {exc}") from exc

        logger.info("SFTP upload complete", host=request.target.host, remote_path=remote_path, bytes=len(data))
        return {
            "success": True,
            "host": request.target.host,
            "remotePath": remote_path,
            "uploadedFiles": {request.upload_type: remote_path},
            "bytesWritten": len(data),
            "fileTypes": request.file_types,
            "exactFilename": request.exact_filename,
            "originalFilename": request.original_filename,
            "formatType": request.format_type,
        }

    def _put(self, target: SftpTarget, directory: str, remote_path: str, data: bytes) -> None:
        client = paramiko.SSHClient()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        try:
            client.connect(
                hostname=target.host,
                port=target.port,
                username=target.username,
                password=target.password,
                timeout=self.connect_timeout,
                allow_agent=False,
                look_for_keys=False,
            )
            sftp = client.open_sftp()
            try:
                _ensure_directory(sftp, directory)
                sftp.putfo(io.BytesIO(data), remote_path)
            finally:
                sftp.close()
        finally:
            client.close()


def _ensure_directory(sftp: paramiko.SFTPClient, directory: str) -> None:
    """mkdir -p on the remote side."""
    current = "/" if directory.startswith("/") else ""
    for part in [p for p in directory.split("/") if p]:
        current = posixpath.join(current, part) if current else part
        try:
            sftp.stat(current)
        except FileNotFoundError:
            sftp.mkdir(current)
