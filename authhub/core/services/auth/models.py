"""Authentication service database models."""

import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import JSON, Boolean, DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from authhub.core.auth.entities import utcnow
from authhub.infrastructure.database.connection import Base


def _new_id() -> str:
    return str(uuid.uuid4())


class UserModel(Base):
    """
    Database model for user accounts.

    Users are created by federation and never hard-deleted.
    """

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=_new_id,
        doc="Opaque user identifier"
    )

    external_id: Mapped[Optional[str]] = mapped_column(
        String(255),
        unique=True,
        nullable=True,
        index=True,
        doc="Identity provider user id"
    )

    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
        doc="User email address"
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        doc="Display name"
    )

    avatar_url: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        doc="Avatar image URL"
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="active",
        doc="Account status: active, inactive or suspended"
    )

    email_verified: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        doc="Whether the provider verified the email"
    )

    preferences: Mapped[Dict[str, Any]] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
        doc="Free-form user preferences"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=utcnow,
        doc="Account creation timestamp"
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
        doc="Last account update timestamp"
    )

    last_login_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime,
        nullable=True,
        doc="Last successful login timestamp"
    )

    def __repr__(self) -> str:
        """String representation of user model."""
        return f"<UserModel(id={self.id}, email='{self.email}', status='{self.status}')>"


class RefreshTokenModel(Base):
    """
    Database model for refresh tokens.

    Stores the digest of each refresh token with expiry and revocation state.
    """

    __tablename__ = "user_tokens"
    __table_args__ = (
        Index("ix_user_tokens_user_id_is_revoked", "user_id", "is_revoked"),
    )

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=_new_id,
        doc="Unique token identifier"
    )

    user_id: Mapped[str] = mapped_column(
        String(36),
        nullable=False,
        index=True,
        doc="ID of user this token belongs to"
    )

    token_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="refresh",
        doc="Token kind"
    )

    token_hash: Mapped[str] = mapped_column(
        String(128),
        unique=True,
        nullable=False,
        index=True,
        doc="Digest of the token secret"
    )

    expires_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        index=True,
        doc="Token expiration timestamp"
    )

    is_revoked: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        doc="Whether token has been revoked"
    )

    revoked_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime,
        nullable=True,
        doc="First revocation timestamp"
    )

    device_info: Mapped[Dict[str, Any]] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
        doc="Client details captured at issuance"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=utcnow,
        doc="Token creation timestamp"
    )

    def __repr__(self) -> str:
        """String representation of refresh token model."""
        return f"<RefreshTokenModel(id={self.id}, user_id={self.user_id}, revoked={self.is_revoked})>"


class LoginLogModel(Base):
    """
    Database model for the login audit trail.

    Rows are written once and only removed by age.
    """

    __tablename__ = "login_logs"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=_new_id,
        doc="Unique entry identifier"
    )

    user_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        nullable=True,
        index=True,
        doc="User the attempt was attributed to"
    )

    login_method: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        doc="federated_login or token_refresh"
    )

    success: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        doc="Whether the attempt succeeded"
    )

    error_message: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        doc="Failure reason"
    )

    ip_address: Mapped[Optional[str]] = mapped_column(
        String(45),
        nullable=True,
        index=True,
        doc="Client IP address"
    )

    user_agent: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        doc="Client user agent"
    )

    location: Mapped[Optional[Dict[str, Any]]] = mapped_column(
        JSON,
        nullable=True,
        doc="Structured context of the attempt"
    )

    login_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=utcnow,
        index=True,
        doc="Attempt timestamp"
    )

    def __repr__(self) -> str:
        """String representation of login log model."""
        return f"<LoginLogModel(id={self.id}, user_id={self.user_id}, success={self.success})>"
