"""
reMarkable Cloud REST endpoints.

One function per API call. Each sends a single request with the fixed
headers the service expects, branches on the status code and decodes
the text or JSON body. Token handling lives in rm_client.client.

All functions accept an optional ``session`` (anything with the
requests API); without one they go through the ``requests`` module.
"""

import json
import logging
import os
from typing import Any, Dict, List, Optional
from uuid import uuid4

import requests

from rm_client.errors import (
    APIError,
    AuthError,
    DiscoveryError,
    DocumentNotFound,
    RegistrationError,
    UploadError,
)
from rm_client.models import DOCUMENT_TYPE, Document, UploadSlot

logger = logging.getLogger(__name__)

AUTH_API_URL_ROOT = "https://webapp-prod.cloud.remarkable.engineering"
AUTH_API_VERSION = "2"
NEW_CLIENT_URL = f"{AUTH_API_URL_ROOT}/token/json/{AUTH_API_VERSION}/device/new"
NEW_TOKEN_URL = f"{AUTH_API_URL_ROOT}/token/json/{AUTH_API_VERSION}/user/new"

SERVICE_MANAGER_URL = (
    "https://service-manager-production-dot-remarkable-production.appspot.com"
    "/service/json/1/document-storage"
)
SERVICE_DISCOVERY_PARAMS = {
    "environment": "production",
    "group": "auth0|5a68dc51cb30df3877a1d7c4",
    "apiVer": "2",
}

STORAGE_API_URL_ROOT = "https://document-storage-production-dot-remarkable-production.appspot.com"
STORAGE_API_VERSION = "2"
STORAGE_API_PATH = f"/document-storage/json/{STORAGE_API_VERSION}"
DOCS_PATH = f"{STORAGE_API_PATH}/docs"
UPLOAD_REQUEST_PATH = f"{STORAGE_API_PATH}/upload/request"
UPDATE_STATUS_PATH = f"{STORAGE_API_PATH}/upload/update-status"
DELETE_PATH = f"{STORAGE_API_PATH}/delete"

DEVICE_DESC = "desktop-windows"
USER_AGENT = "rm-client"

try:
    DEFAULT_TIMEOUT = float(os.environ.get("REMARKABLE_HTTP_TIMEOUT", "30"))
except ValueError:
    logger.warning("Invalid REMARKABLE_HTTP_TIMEOUT value, using default of 30 seconds")
    DEFAULT_TIMEOUT = 30.0
UPLOAD_TIMEOUT = max(DEFAULT_TIMEOUT, 300.0)


def _bearer(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _json_headers(token: str) -> Dict[str, str]:
    headers = _bearer(token)
    headers["Accept"] = "application/json"
    headers["Content-Type"] = "application/json"
    return headers


def _ok(response) -> bool:
    return 200 <= response.status_code < 300


def _decode_array(response, what: str) -> List[Dict[str, Any]]:
    """Decode a JSON array body. An empty or null body is an empty list."""
    if not response.text or not response.text.strip():
        return []
    try:
        data = response.json()
    except ValueError as e:
        raise APIError(
            f"Invalid JSON in {what} response: {e}\nResponse was: {response.text[:200]}",
            response.status_code,
        ) from e
    if data is None:
        return []
    if not isinstance(data, list):
        raise APIError(f"Unexpected {what} response format: {str(data)[:200]}", response.status_code)
    return data


def register_client(code: str, session=None) -> str:
    """
    Exchange a one-time code for a device token.

    Args:
        code: Code from https://my.remarkable.com/device/desktop/connect

    Returns:
        The device token

    Raises:
        RegistrationError: If the code is rejected or the request fails
    """
    http = session or requests
    body = {
        "code": code,
        "deviceDesc": DEVICE_DESC,
        "deviceID": str(uuid4()),
    }
    logger.info("Registering client with reMarkable Cloud")

    try:
        response = http.post(
            NEW_CLIENT_URL,
            json=body,
            headers={"Content-Type": "application/json"},
            timeout=DEFAULT_TIMEOUT,
        )
    except requests.RequestException as e:
        raise RegistrationError(f"Network error during registration: {e}") from e

    if _ok(response) and response.text and response.text.strip():
        return response.text.strip()

    logger.error("Error registering client: HTTP %s", response.status_code)
    raise RegistrationError(
        f"Registration failed (HTTP {response.status_code}). This usually means:\n"
        "  1. The code has expired (codes are single-use)\n"
        "  2. The code was already used\n"
        "  3. The code was typed incorrectly\n\n"
        "Get a new code from: https://my.remarkable.com/device/desktop/connect"
    )


def refresh_token(auth_token: str, session=None) -> str:
    """Exchange a device token for a fresh user token."""
    if not auth_token:
        raise AuthError("No device token available")

    http = session or requests
    headers = _bearer(auth_token)
    headers["Accept"] = "application/json"
    headers["Content-Length"] = "0"
    logger.info("Refreshing token")

    try:
        response = http.post(NEW_TOKEN_URL, headers=headers, timeout=DEFAULT_TIMEOUT)
    except requests.RequestException as e:
        raise AuthError(f"Network error during token refresh: {e}") from e

    if _ok(response) and response.text and response.text.strip():
        return response.text.strip()

    raise AuthError(
        f"Failed to refresh user token (HTTP {response.status_code}).\n"
        "Re-register by running: rm-client --setup"
    )


def discover_storage(auth_token: str, session=None) -> str:
    """
    Ask the service manager which storage host backs this account.

    Returns:
        The storage root URL, e.g. "https://document-storage-....appspot.com"
    """
    http = session or requests
    headers = _json_headers(auth_token)
    headers["User-Agent"] = USER_AGENT

    try:
        response = http.get(
            SERVICE_MANAGER_URL,
            headers=headers,
            params=SERVICE_DISCOVERY_PARAMS,
            timeout=DEFAULT_TIMEOUT,
        )
    except requests.RequestException as e:
        raise DiscoveryError(f"Network error during storage discovery: {e}") from e

    if not _ok(response):
        raise DiscoveryError(f"Storage discovery failed (HTTP {response.status_code})")

    try:
        data = response.json()
    except ValueError as e:
        raise DiscoveryError(f"Invalid JSON from service manager: {e}") from e

    if not isinstance(data, dict) or data.get("Status") != "OK" or not data.get("Host"):
        raise DiscoveryError(f"Unexpected service manager response: {str(data)[:200]}")

    host = data["Host"]
    if "://" not in host:
        host = f"https://{host}"
    return host.rstrip("/")


def sync_root(storage_url: str, auth_token: str, session=None) -> List[Document]:
    """List every document and folder stored in the cloud."""
    http = session or requests
    url = f"{storage_url}{DOCS_PATH}"
    logger.debug("Getting items stored in the cloud")

    try:
        response = http.get(url, headers=_bearer(auth_token), timeout=DEFAULT_TIMEOUT)
    except requests.RequestException as e:
        raise APIError(f"Network error while listing documents: {e}") from e

    if not _ok(response):
        raise APIError(
            f"Failed to list documents (HTTP {response.status_code}): {response.text[:200]}",
            response.status_code,
        )

    return [Document.from_api(item) for item in _decode_array(response, "docs")]


def get_files(
    storage_url: str,
    auth_token: str,
    doc_id: str,
    with_blob: bool = True,
    session=None,
) -> Document:
    """Fetch a single item, with a signed download URL when ``with_blob`` is set."""
    http = session or requests
    url = f"{storage_url}{DOCS_PATH}"
    params = {"doc": doc_id}
    if with_blob:
        params["withBlob"] = "true"

    try:
        response = http.get(url, headers=_bearer(auth_token), params=params, timeout=DEFAULT_TIMEOUT)
    except requests.RequestException as e:
        raise APIError(f"Network error while fetching {doc_id}: {e}") from e

    if response.status_code == 404:
        raise DocumentNotFound(f"Document not found: {doc_id}", 404)
    if not _ok(response):
        raise APIError(
            f"Failed to fetch {doc_id} (HTTP {response.status_code}): {response.text[:200]}",
            response.status_code,
        )

    items = _decode_array(response, "docs")
    if not items:
        raise DocumentNotFound(f"Document not found: {doc_id}", response.status_code)
    return Document.from_api(items[0])


def upload_request(
    storage_url: str,
    auth_token: str,
    doc_id: Optional[str] = None,
    doc_type: str = DOCUMENT_TYPE,
    version: int = 1,
    session=None,
) -> UploadSlot:
    """Reserve an ID and get a signed URL to upload its content to."""
    http = session or requests
    url = f"{storage_url}{UPLOAD_REQUEST_PATH}"
    payload = [{"ID": doc_id or str(uuid4()), "Type": doc_type, "Version": version}]

    try:
        response = http.put(
            url, headers=_json_headers(auth_token), data=json.dumps(payload), timeout=DEFAULT_TIMEOUT
        )
    except requests.RequestException as e:
        raise UploadError(f"Network error during upload request: {e}") from e

    if not _ok(response):
        raise UploadError(
            f"Upload request failed (HTTP {response.status_code}): {response.text[:200]}",
            response.status_code,
        )

    try:
        items = _decode_array(response, "upload request")
    except APIError as e:
        raise UploadError(str(e), response.status_code) from e
    if not items:
        raise UploadError("Upload request returned no slot", response.status_code)

    slot = UploadSlot.from_api(items[0])
    if not slot.success or not slot.blob_url_put:
        raise UploadError(
            f"Upload request rejected: {slot.message or 'no upload URL returned'}",
            response.status_code,
        )
    return slot


def upload_blob(blob_url: str, data: bytes, session=None) -> None:
    """PUT the opaque content bytes to a signed blob URL."""
    http = session or requests
    logger.debug("Uploading %d bytes", len(data))

    try:
        response = http.put(blob_url, data=data, timeout=UPLOAD_TIMEOUT)
    except requests.RequestException as e:
        raise UploadError(f"Network error during upload: {e}") from e

    if not _ok(response):
        raise UploadError(
            f"Upload failed (HTTP {response.status_code}): {response.text[:200]}",
            response.status_code,
        )


def update_status(
    storage_url: str, auth_token: str, metadata: Dict[str, Any], session=None
) -> Document:
    """Publish metadata for an uploaded item so it appears in listings."""
    http = session or requests
    url = f"{storage_url}{UPDATE_STATUS_PATH}"

    try:
        response = http.put(
            url, headers=_json_headers(auth_token), data=json.dumps([metadata]), timeout=DEFAULT_TIMEOUT
        )
    except requests.RequestException as e:
        raise APIError(f"Network error during status update: {e}") from e

    if not _ok(response):
        raise APIError(
            f"Status update failed (HTTP {response.status_code}): {response.text[:200]}",
            response.status_code,
        )

    items = _decode_array(response, "update-status")
    if items and not items[0].get("Success", True):
        raise APIError(f"Status update rejected: {items[0].get('Message', '')}", response.status_code)

    merged = dict(metadata)
    if items:
        merged.update({k: v for k, v in items[0].items() if v not in (None, "")})
    return Document.from_api(merged)


def delete(storage_url: str, auth_token: str, doc_id: str, version: int, session=None) -> None:
    """Delete an item. ``version`` must match the item's current version."""
    http = session or requests
    url = f"{storage_url}{DELETE_PATH}"
    payload = [{"ID": doc_id, "Version": version}]

    try:
        response = http.put(
            url, headers=_json_headers(auth_token), data=json.dumps(payload), timeout=DEFAULT_TIMEOUT
        )
    except requests.RequestException as e:
        raise APIError(f"Network error while deleting {doc_id}: {e}") from e

    if not _ok(response):
        raise APIError(
            f"Failed to delete {doc_id} (HTTP {response.status_code}): {response.text[:200]}",
            response.status_code,
        )

    items = _decode_array(response, "delete")
    if items and not items[0].get("Success", True):
        raise APIError(f"Delete rejected: {items[0].get('Message', '')}", response.status_code)


def download_blob(blob_url: str, session=None) -> bytes:
    """Download content from a signed blob URL."""
    http = session or requests

    try:
        response = http.get(blob_url, timeout=UPLOAD_TIMEOUT)
    except requests.RequestException as e:
        raise APIError(f"Network error during download: {e}") from e

    if not _ok(response):
        raise APIError(f"Download failed (HTTP {response.status_code})", response.status_code)
    return response.content
