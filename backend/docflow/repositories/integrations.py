"""
Integration settings repository: API profiles, email provider settings,
SFTP targets and user emails.

Repository rules:
- Pure data-access logic only
- Every function receives AsyncSession explicitly
"""

from __future__ import annotations

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from docflow.core.constants import ApiSourceType
from docflow.db.models.api_profile import ApiProfile
from docflow.db.models.email_provider_config import EmailProviderConfig
from docflow.db.models.sftp_config import SftpConfig
from docflow.db.models.user import User


async def get_api_profile(db: AsyncSession, source_type: str, profile_id: str | None = None) -> ApiProfile | None:
    """The active main profile, or a specific secondary profile by id."""
    stmt = select(ApiProfile).where(ApiProfile.is_active.is_(True))
    if source_type == ApiSourceType.SECONDARY:
        if not profile_id:
            return None
        stmt = stmt.where(ApiProfile.id == profile_id, ApiProfile.source_type == ApiSourceType.SECONDARY)
    else:
        stmt = stmt.where(ApiProfile.source_type == ApiSourceType.MAIN).order_by(desc(ApiProfile.updated_at))
    result = await db.execute(stmt.limit(1))
    return result.scalar_one_or_none()


async def get_email_provider_config(db: AsyncSession) -> EmailProviderConfig | None:
    stmt = (
        select(EmailProviderConfig)
        .where(EmailProviderConfig.is_active.is_(True))
        .order_by(desc(EmailProviderConfig.created_at))
        .limit(1)
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def get_sftp_config(db: AsyncSession) -> SftpConfig | None:
    stmt = (
        select(SftpConfig)
        .where(SftpConfig.is_active.is_(True))
        .order_by(desc(SftpConfig.created_at))
        .limit(1)
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def get_active_user_email(db: AsyncSession, user_id: str) -> str | None:
    stmt = select(User.email).where(User.id == user_id, User.is_active.is_(True))
    result = await db.execute(stmt)
    return result.scalar_one_or_none()
