"""
reMarkable Cloud client

A client library and CLI for the reMarkable Cloud document-storage API:
device registration, token refresh, document listing and file upload.
"""

from rm_client.api import get_client, read_tokens, register_and_get_token, write_tokens
from rm_client.client import RemarkableClient
from rm_client.errors import (
    APIError,
    AuthError,
    DiscoveryError,
    DocumentNotFound,
    RegistrationError,
    RemarkableError,
    TokenFileInvalid,
    TokenFileNotFound,
    UploadError,
)
from rm_client.models import Document, Tokens, UploadSlot

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "RemarkableClient",
    "get_client",
    "read_tokens",
    "write_tokens",
    "register_and_get_token",
    "Document",
    "Tokens",
    "UploadSlot",
    # Errors
    "RemarkableError",
    "AuthError",
    "RegistrationError",
    "DiscoveryError",
    "APIError",
    "DocumentNotFound",
    "UploadError",
    "TokenFileNotFound",
    "TokenFileInvalid",
]
