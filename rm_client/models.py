"""
Data models for the reMarkable document-storage API.

The storage API speaks PascalCase JSON (including its historic
``VissibleName`` typo); these dataclasses map it to snake_case fields.
"""

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from rm_client.errors import TokenFileInvalid

DOCUMENT_TYPE = "DocumentType"
COLLECTION_TYPE = "CollectionType"

ROOT_ID = ""
TRASH_ID = "trash"


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an RFC3339 timestamp as sent by the API (may carry nanoseconds)."""
    if not value:
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    # fromisoformat only handles up to microseconds
    if "." in text:
        head, _, rest = text.partition(".")
        digits = ""
        while rest and rest[0].isdigit():
            digits += rest[0]
            rest = rest[1:]
        text = f"{head}.{digits[:6].ljust(6, '0')}{rest}"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: datetime) -> str:
    """Format a datetime the way the API expects in ModifiedClient."""
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


@dataclass
class Document:
    """A document or folder stored in the reMarkable cloud."""

    id: str
    version: int = 0
    name: str = ""
    doc_type: str = DOCUMENT_TYPE
    parent: str = ROOT_ID
    last_modified: Optional[datetime] = None
    current_page: int = 0
    bookmarked: bool = False
    blob_url_get: str = ""
    blob_url_get_expires: Optional[datetime] = None
    message: str = ""
    success: bool = True

    @property
    def is_folder(self) -> bool:
        return self.doc_type == COLLECTION_TYPE

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Document":
        """Build a Document from one element of a docs/update-status response."""
        return cls(
            id=data.get("ID", ""),
            version=int(data.get("Version") or 0),
            name=data.get("VissibleName", "") or data.get("ID", ""),
            doc_type=data.get("Type", DOCUMENT_TYPE) or DOCUMENT_TYPE,
            parent=data.get("Parent", ROOT_ID) or ROOT_ID,
            last_modified=parse_timestamp(data.get("ModifiedClient")),
            current_page=int(data.get("CurrentPage") or 0),
            bookmarked=bool(data.get("Bookmarked", False)),
            blob_url_get=data.get("BlobURLGet", "") or "",
            blob_url_get_expires=parse_timestamp(data.get("BlobURLGetExpires")),
            message=data.get("Message", "") or "",
            success=bool(data.get("Success", True)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "version": self.version,
            "name": self.name,
            "type": self.doc_type,
            "parent": self.parent,
            "last_modified": self.last_modified,
            "current_page": self.current_page,
            "bookmarked": self.bookmarked,
        }


@dataclass
class UploadSlot:
    """A reserved document ID with a signed URL to PUT its content to."""

    id: str
    blob_url_put: str
    blob_url_put_expires: Optional[datetime] = None
    version: int = 1
    success: bool = True
    message: str = ""

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "UploadSlot":
        return cls(
            id=data.get("ID", ""),
            blob_url_put=data.get("BlobURLPut", "") or "",
            blob_url_put_expires=parse_timestamp(data.get("BlobURLPutExpires")),
            version=int(data.get("Version") or 1),
            success=bool(data.get("Success", False)),
            message=data.get("Message", "") or "",
        )


@dataclass
class Tokens:
    """Device token (long-lived) and user token (refreshed per session)."""

    device_token: str
    user_token: str = ""

    def to_json(self) -> str:
        return json.dumps({"devicetoken": self.device_token, "usertoken": self.user_token})

    @classmethod
    def from_text(cls, text: str) -> "Tokens":
        """
        Parse token file content.

        Accepts:
            - JSON with devicetoken and optional usertoken
            - A raw JWT device token (legacy single-token files)
        """
        text = text.strip()

        if text.startswith("{"):
            try:
                data = json.loads(text)
            except json.JSONDecodeError as e:
                raise TokenFileInvalid(f"Token file is not valid JSON: {e}") from e
            device_token = data.get("devicetoken", "") if isinstance(data, dict) else ""
            if not device_token:
                raise TokenFileInvalid("Token file has no devicetoken")
            return cls(device_token=device_token, user_token=data.get("usertoken", "") or "")

        # JWTs start with "eyJ" (base64 of '{"')
        if text.startswith("eyJ"):
            return cls(device_token=text)

        raise TokenFileInvalid(
            f"Invalid token format. Expected JSON or JWT token.\n"
            f"Token starts with: {text[:20]}..."
        )
