"""Courier account storage: encrypted credential slots plus a settings map."""

import json
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.couriers.models import CourierCredentials, CourierType
from src.db.models import CourierAccount, generate_uuid
from src.errors.domain import NotFoundError
from src.services.credential_encryption import (
    decrypt_credentials,
    encrypt_credentials,
    field_aad,
)

logger = logging.getLogger(__name__)

ACCOUNT_TABLE = "courier_accounts"
_SECRET_FIELDS = ("api_key", "api_secret", "access_token", "account_id", "channel_id")


def _aad(account: CourierAccount) -> str:
    return field_aad(ACCOUNT_TABLE, account.id, "credentials_encrypted")


def build_account(
    name: str,
    courier: CourierType,
    credentials: CourierCredentials,
    key: bytes,
    is_default: bool = False,
) -> CourierAccount:
    """Create an unsaved account row with its credentials encrypted."""
    account = CourierAccount(
        id=generate_uuid(),
        name=name,
        courier_type=courier.value,
        settings_json=json.dumps(credentials.settings),
        is_default=is_default,
    )
    secrets = {f: getattr(credentials, f) for f in _SECRET_FIELDS if getattr(credentials, f)}
    account.credentials_encrypted = encrypt_credentials(secrets, key, _aad(account))
    return account


def account_credentials(account: CourierAccount, key: bytes) -> CourierCredentials:
    """Decrypt an account into the adapter-facing credentials model.

    Raises:
        CredentialDecryptionError: If the envelope cannot be decrypted.
    """
    secrets = decrypt_credentials(account.credentials_encrypted, key, _aad(account))
    return CourierCredentials(
        **{f: secrets.get(f) for f in _SECRET_FIELDS},
        settings=account.settings,
    )


async def get_default_account(session: AsyncSession, courier: CourierType) -> CourierAccount:
    """The default active account for a carrier, else its oldest active one.

    Raises:
        NotFoundError: If the carrier has no active account.
    """
    account = (
        await session.execute(
            select(CourierAccount)
            .where(
                CourierAccount.courier_type == courier.value,
                CourierAccount.is_active.is_(True),
            )
            .order_by(CourierAccount.is_default.desc(), CourierAccount.created_at)
        )
    ).scalars().first()
    if account is None:
        raise NotFoundError("Courier account", courier.value)
    return account
