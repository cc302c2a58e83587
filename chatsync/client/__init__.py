"""Chat API client and credential providers."""

from chatsync.client.credentials import (
    CallableCredentialProvider,
    CredentialProvider,
    StaticCredentialProvider,
)
from chatsync.client.transport import ChatAPIClient

__all__ = [
    "CallableCredentialProvider",
    "ChatAPIClient",
    "CredentialProvider",
    "StaticCredentialProvider",
]
