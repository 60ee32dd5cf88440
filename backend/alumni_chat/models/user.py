"""User model."""
from sqlalchemy import Column, String, Boolean, DateTime, Uuid
from datetime import datetime
import uuid

from alumni_chat.database import Base


class User(Base):
    """Alumni directory entry with API key authentication.

    Owned by the user-directory service; chat tables only reference ``id``.
    """

    __tablename__ = "users"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(120), nullable=False)
    email = Column(String(255), unique=True, index=True)
    profile_image = Column(String(500))
    batch = Column(String(20))  # graduation year, e.g. "2019"
    branch = Column(String(120))
    api_key_hash = Column(String(255), unique=True, nullable=False, index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<User {self.id} name={self.name!r}>"
