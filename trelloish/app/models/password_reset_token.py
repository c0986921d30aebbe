"""
models/password_reset_token.py — PasswordResetToken table definition.

At most one live token per user: issuing a new one deletes the previous
rows for that user. A token is deleted on its first successful use.

token_hash is a salted bcrypt hash, so it cannot be looked up by value;
the credential service scans live rows and compares each.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from trelloish.app.extensions import db


class PasswordResetToken(db.Model):
    __tablename__ = "password_reset_tokens"

    id: Mapped[int] = mapped_column(primary_key=True)

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    token_hash: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    user: Mapped["User"] = relationship(  # noqa: F821
        "User",
        back_populates="reset_tokens",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<PasswordResetToken id={self.id} user_id={self.user_id}>"
