# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Credential provider selection for the source and destination sides.

Explicit access keys yield a static provider that never refreshes; anything
else delegates to botocore's default discovery chain (environment, shared
config, container and instance metadata). Selection never fails: a missing
chain only surfaces when credentials are first fetched.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Protocol

import structlog

from ddbcrr.errors import explain_missing_credentials
from ddbcrr.exceptions import ConfigurationError

logger = structlog.get_logger()


@dataclass(frozen=True)
class Credentials:
    """A resolved access key pair."""

    access_key_id: str
    secret_access_key: str = field(repr=False)
    session_token: str | None = field(default=None, repr=False)


class CredentialsProvider(Protocol):
    """Protocol for credential providers."""

    async def get_credentials(self) -> Credentials:
        ...

    def refresh(self) -> None:
        ...

    def client_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments for aiobotocore's create_client()."""
        ...


class StaticCredentialsProvider:
    """Always yields the same key pair."""

    def __init__(self, access_key_id: str, secret_access_key: str):
        self._credentials = Credentials(access_key_id, secret_access_key)

    async def get_credentials(self) -> Credentials:
        return self._credentials

    def refresh(self) -> None:
        pass

    def client_kwargs(self) -> Dict[str, Any]:
        return {
            "aws_access_key_id": self._credentials.access_key_id,
            "aws_secret_access_key": self._credentials.secret_access_key,
        }

    def __repr__(self) -> str:
        return f"StaticCredentialsProvider(access_key_id={self._credentials.access_key_id!r})"


class DefaultChainCredentialsProvider:
    """Delegates to botocore's default credential chain."""

    def __init__(self, session: Any = None):
        self._session = session

    def _get_session(self) -> Any:
        if self._session is None:
            from aiobotocore.session import get_session

            self._session = get_session()
        return self._session

    async def get_credentials(self) -> Credentials:
        credentials = await self._get_session().get_credentials()
        if credentials is None:
            raise ConfigurationError(explain_missing_credentials())
        frozen = await credentials.get_frozen_credentials()
        return Credentials(frozen.access_key, frozen.secret_key, frozen.token)

    def refresh(self) -> None:
        # Refreshable chain credentials renew themselves on fetch
        pass

    def client_kwargs(self) -> Dict[str, Any]:
        return {}

    def __repr__(self) -> str:
        return "DefaultChainCredentialsProvider()"


def select_credentials_provider(
    access_key_id: str | None,
    secret_access_key: str | None,
    session: Any = None,
) -> CredentialsProvider:
    """
    Choose the credential provider for one replication side.

    Args:
        access_key_id: Explicit access key id, if any
        secret_access_key: Explicit secret key, if any
        session: aiobotocore session backing the default chain

    Returns:
        StaticCredentialsProvider when both keys are given, else
        DefaultChainCredentialsProvider
    """
    if access_key_id and secret_access_key:
        return StaticCredentialsProvider(access_key_id, secret_access_key)

    if access_key_id or secret_access_key:
        logger.warning(
            "incomplete_static_credentials",
            has_access_key_id=bool(access_key_id),
            has_secret_access_key=bool(secret_access_key),
        )
    return DefaultChainCredentialsProvider(session)
