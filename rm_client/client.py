"""
reMarkable Cloud client.

A thin object holding a device token, the current user token and the
storage root URL, on top of the calls in rm_client.endpoints.
"""

import io
import json
import logging
import os
import threading
import zipfile
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Union

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from rm_client import endpoints
from rm_client.errors import APIError, AuthError, DiscoveryError, UploadError
from rm_client.models import DOCUMENT_TYPE, ROOT_ID, Document, Tokens, format_timestamp

logger = logging.getLogger(__name__)

try:
    _HTTP_RETRIES = int(os.environ.get("REMARKABLE_HTTP_RETRIES", "0"))
except ValueError:
    logger.warning("Invalid REMARKABLE_HTTP_RETRIES value, retries disabled")
    _HTTP_RETRIES = 0

# Extensions the tablet accepts as uploaded documents
SUPPORTED_FILE_TYPES = {".pdf": "pdf", ".epub": "epub"}


def _make_session(retries: int = _HTTP_RETRIES) -> requests.Session:
    """Connection-pooling session, optionally retrying 5xx responses."""
    session = requests.Session()
    retry_strategy = Retry(
        total=retries,
        backoff_factor=0.5,
        status_forcelist=[500, 502, 503, 504],
        allowed_methods=["GET", "PUT"],
    )
    adapter = HTTPAdapter(max_retries=retry_strategy, pool_connections=10, pool_maxsize=10)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    return session


def _short(token: str) -> str:
    return f"{token[:8]}..." if token else "<none>"


def build_package(doc_id: str, data: bytes, file_type: str) -> bytes:
    """Zip raw file bytes into the layout the tablet expects for a document."""
    content = {
        "extraMetadata": {},
        "fileType": file_type,
        "lastOpenedPage": 0,
        "lineHeight": -1,
        "margins": 100,
        "pageCount": 0,
        "textScale": 1,
        "transform": {},
    }
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
        zf.writestr(f"{doc_id}.{file_type}", data)
        zf.writestr(f"{doc_id}.content", json.dumps(content))
        zf.writestr(f"{doc_id}.pagedata", "")
    return buffer.getvalue()


class RemarkableClient:
    """Client for the reMarkable document-storage API."""

    def __init__(
        self,
        device_token: str,
        user_token: str = "",
        storage_url: str = endpoints.STORAGE_API_URL_ROOT,
        session: Optional[requests.Session] = None,
    ):
        self.device_token = device_token
        self.user_token = user_token
        self.storage_url = storage_url
        self._session = session if session is not None else _make_session()
        self._token_lock = threading.Lock()

    @classmethod
    def from_token(cls, auth_token: str, user_token: str = "", **kwargs) -> "RemarkableClient":
        """Create a client from an existing device token."""
        logger.debug("New client with device token %s", _short(auth_token))
        return cls(device_token=auth_token, user_token=user_token, **kwargs)

    @classmethod
    def from_tokens(cls, tokens: Tokens, **kwargs) -> "RemarkableClient":
        return cls.from_token(tokens.device_token, tokens.user_token, **kwargs)

    @classmethod
    def register(cls, code: str, **kwargs) -> "RemarkableClient":
        """Register with a one-time code and return a client for the new device."""
        session = kwargs.get("session")
        device_token = endpoints.register_client(code, session=session)
        return cls.from_token(device_token, **kwargs)

    @property
    def tokens(self) -> Tokens:
        return Tokens(device_token=self.device_token, user_token=self.user_token)

    def refresh_token(self) -> str:
        """Exchange the device token for a new user token."""
        logger.debug("Refreshing auth token")
        self.user_token = endpoints.refresh_token(self.device_token, session=self._session)
        logger.debug("New user token %s", _short(self.user_token))
        return self.user_token

    def discover_storage(self) -> str:
        """Resolve the storage host for this account, keeping the default on failure."""
        if not self.user_token:
            self.refresh_token()
        try:
            self.storage_url = endpoints.discover_storage(self.user_token, session=self._session)
        except DiscoveryError as e:
            logger.warning("Storage discovery failed, using %s: %s", self.storage_url, e)
        return self.storage_url

    def _call(self, func, *args, **kwargs):
        """Call an authenticated endpoint, refreshing once on HTTP 401."""
        if not self.user_token:
            self.refresh_token()

        used_token = self.user_token
        try:
            return func(self.storage_url, used_token, *args, session=self._session, **kwargs)
        except APIError as e:
            if e.status_code != 401:
                raise
            logger.info("User token rejected, refreshing")

        with self._token_lock:
            # Another thread may have refreshed already
            if self.user_token == used_token:
                self.refresh_token()
        try:
            return func(self.storage_url, self.user_token, *args, session=self._session, **kwargs)
        except APIError as e:
            if e.status_code == 401:
                raise AuthError(
                    "Token rejected after refresh.\nRe-register by running: rm-client --setup"
                ) from e
            raise

    def sync_root(self) -> List[Document]:
        """List every document and folder in the account."""
        return self._call(endpoints.sync_root)

    def get_files(self, doc_id: str, with_blob: bool = True) -> Document:
        return self._call(endpoints.get_files, doc_id, with_blob=with_blob)

    def download(self, doc_id: str) -> bytes:
        """Download a document's zip package."""
        doc = self.get_files(doc_id, with_blob=True)
        if not doc.blob_url_get:
            raise APIError(f"No download URL returned for {doc_id}")
        return endpoints.download_blob(doc.blob_url_get, session=self._session)

    def upload_file(
        self,
        file: Union[str, Path, bytes],
        name: Optional[str] = None,
        parent: str = ROOT_ID,
        file_type: Optional[str] = None,
    ) -> Document:
        """
        Upload a PDF or EPUB.

        Args:
            file: Path to the file, or its raw bytes
            name: Visible name; defaults to the file stem
            parent: Folder ID to upload into ("" is the root)
            file_type: "pdf" or "epub"; required when passing bytes

        Returns:
            The Document as published by update-status
        """
        if isinstance(file, (str, Path)):
            path = Path(file)
            file_type = file_type or SUPPORTED_FILE_TYPES.get(path.suffix.lower())
            if file_type not in SUPPORTED_FILE_TYPES.values():
                raise UploadError(f"Unsupported file type: {file_type or path.suffix or path.name}")
            name = name or path.stem
            data = path.read_bytes()
        else:
            if file_type not in SUPPORTED_FILE_TYPES.values():
                raise UploadError(f"Unsupported file type: {file_type}")
            data = bytes(file)
            name = name or "Untitled"

        logger.debug("Uploading a file to the cloud: %s (%s)", name, file_type)
        slot = self._call(endpoints.upload_request, doc_type=DOCUMENT_TYPE)
        package = build_package(slot.id, data, file_type)
        endpoints.upload_blob(slot.blob_url_put, package, session=self._session)

        metadata = {
            "ID": slot.id,
            "Parent": parent,
            "VissibleName": name,
            "ModifiedClient": format_timestamp(datetime.now(timezone.utc)),
            "Type": DOCUMENT_TYPE,
            "Version": slot.version,
        }
        return self._call(endpoints.update_status, metadata)

    def delete(self, doc_id: str) -> None:
        """Delete an item by ID, looking up its current version first."""
        doc = self.get_files(doc_id, with_blob=False)
        self._call(endpoints.delete, doc_id, doc.version)
