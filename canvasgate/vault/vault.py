"""Encrypted credential storage and resolution.

Secrets are encrypted before they reach the store and decrypted only at the
moment of use. Plaintext is returned to the caller and never cached,
persisted or logged here.
"""

from __future__ import annotations

from typing import Any, Mapping

from canvasgate.config import GatewaySettings
from canvasgate.exceptions import CredentialNotFound, EncryptionError, ValidationError
from canvasgate.observability.logging import get_logger, log_user_action
from canvasgate.providers import BaseProvider
from canvasgate.security import AccessControl, AccessLevel, ResourceType
from canvasgate.store import Credential, GraphStore, new_id
from canvasgate.validation import SUPPORTED_PROVIDERS, validate_nickname, validate_provider_name
from canvasgate.vault.encryption import EncryptionManager

logger = get_logger(__name__)

CREDENTIAL_NOT_FOUND = "API key not found or access denied"


class KeyVault:
    """Owns the credential lifecycle and the resolution cascade.

    Resolution order, first match wins:

    1. the board's default credential, if its provider matches
    2. the subject's newest active credential for the provider
    3. the process-wide fallback key, for providers that support one
    """

    def __init__(
        self,
        store: GraphStore,
        cipher: EncryptionManager,
        acl: AccessControl,
        settings: GatewaySettings,
        providers: Mapping[str, BaseProvider],
    ) -> None:
        self.store = store
        self.cipher = cipher
        self.acl = acl
        self.settings = settings
        self.providers = providers

    async def add_credential(self, subject_id: str, provider: str, secret: str, nickname: str) -> Credential:
        provider = validate_provider_name(provider, SUPPORTED_PROVIDERS)
        nickname = validate_nickname(nickname)
        if not isinstance(secret, str) or not secret.strip():
            raise ValidationError("api key cannot be empty", field="api_key")
        secret = secret.strip()

        adapter = self.providers.get(provider)
        if adapter is None or not adapter.verify_credential(secret):
            raise ValidationError(f"{provider} API key failed verification", field="api_key")

        credential = Credential(
            id=new_id(),
            owner_id=subject_id,
            provider=provider,
            nickname=nickname,
            last4=secret[-4:],
            encrypted_secret=self.cipher.encrypt(secret),
        )
        await self.store.save_credential(credential)
        log_user_action("credential_added", subject_id, "credential", credential.id, provider=provider)
        return credential

    async def list_credentials(self, subject_id: str) -> list[dict[str, Any]]:
        """Active credentials owned by the subject, without secret material."""
        credentials = await self.store.list_credentials(subject_id, status="active")
        return [credential.public_view() for credential in credentials]

    async def revoke_credential(self, subject_id: str, credential_id: str) -> None:
        await self.acl.require_access(
            subject_id, ResourceType.CREDENTIAL, credential_id, AccessLevel.ADMIN, action="revoke"
        )
        credential = await self.store.get_credential(credential_id)
        if credential is None:
            raise CredentialNotFound(message=CREDENTIAL_NOT_FOUND)
        credential.status = "revoked"
        await self.store.save_credential(credential)
        log_user_action("credential_revoked", subject_id, "credential", credential_id)

    async def decrypt_credential(self, subject_id: str, credential_id: str) -> str:
        """Owner-only decrypt. Denials are audited with ``success=False``."""
        await self.acl.require_access(
            subject_id, ResourceType.CREDENTIAL, credential_id, AccessLevel.ADMIN, action="decrypt"
        )
        credential = await self.store.get_credential(credential_id)
        if credential is None or credential.status != "active":
            raise CredentialNotFound(message=CREDENTIAL_NOT_FOUND)
        return self.cipher.decrypt(credential.encrypted_secret)

    async def set_board_default_credential(
        self,
        subject_id: str,
        board_id: str,
        credential_id: str | None,
    ) -> None:
        await self.acl.require_access(subject_id, ResourceType.BOARD, board_id, AccessLevel.ADMIN, action="manage")
        if credential_id is not None:
            credential = await self.store.get_credential(credential_id)
            if credential is None or credential.owner_id != subject_id or credential.status != "active":
                raise CredentialNotFound(message=CREDENTIAL_NOT_FOUND)

        board = await self.store.get_board(board_id)
        if board is None:
            raise CredentialNotFound(message=CREDENTIAL_NOT_FOUND)
        board.default_credential_id = credential_id
        await self.store.save_board(board)

    async def resolve_credential(
        self,
        subject_id: str,
        provider: str,
        board_default_id: str | None = None,
    ) -> str:
        """Return the plaintext secret for ``provider``.

        Raises:
            CredentialNotFound: If no source yields a credential. The message
                names the provider and never any part of a secret.
        """
        if board_default_id:
            credential = await self.store.get_credential(board_default_id)
            if credential is not None and credential.status == "active" and credential.provider == provider:
                secret = self._decrypt(credential)
                if secret:
                    logger.debug("credential_resolved", provider=provider, source="board_default")
                    return secret

        own = await self.store.list_credentials(subject_id, provider=provider, status="active")
        for credential in reversed(own):
            secret = self._decrypt(credential)
            if secret:
                logger.debug("credential_resolved", provider=provider, source="subject")
                return secret

        adapter = self.providers.get(provider)
        if adapter is not None and adapter.supports_fallback:
            fallback = self.settings.fallback_key(provider)
            if fallback:
                logger.debug("credential_resolved", provider=provider, source="fallback")
                return fallback

        raise CredentialNotFound(provider)

    def _decrypt(self, credential: Credential) -> str | None:
        try:
            return self.cipher.decrypt(credential.encrypted_secret)
        except EncryptionError:
            logger.warning("credential_decrypt_failed", resource_id=credential.id, provider=credential.provider)
            return None
