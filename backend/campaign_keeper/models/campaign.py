"""Campaign model - top-level container with its member roster."""

from datetime import datetime

from sqlalchemy import String, Text, Integer, DateTime, JSON
from sqlalchemy.orm import Mapped, mapped_column

from campaign_keeper.db.database import Base, generate_id, utcnow


class Campaign(Base):
    __tablename__ = "campaigns"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    title: Mapped[str] = mapped_column(String(200))
    description: Mapped[str] = mapped_column(Text)
    user_id: Mapped[str] = mapped_column(String(36), index=True)  # owner
    image_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    # [{"email": ..., "role": ..., "status": ...}] or NULL when nobody is invited
    members: Mapped[list | None] = mapped_column(JSON, nullable=True)
    # scenario ids picked on the campaign form, cloned in after creation
    imported_scenarios: Mapped[list | None] = mapped_column(JSON, nullable=True)

    # Bumped on every update; compared against If-Match for roster writes
    version: Mapped[int] = mapped_column(Integer, default=1)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    def has_member(self, email: str) -> bool:
        email = (email or "").strip().lower()
        return any((m.get("email") or "").strip().lower() == email for m in self.members or [])
