from sqlalchemy import Column, DateTime, Integer, Text
from sqlalchemy.orm import relationship

from chatrelay.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    phone = Column(Text, unique=True, nullable=False, index=True)
    name = Column(Text)
    created_at = Column(DateTime(timezone=True), nullable=False)
    last_active_at = Column(DateTime(timezone=True))

    messages = relationship("ConversationMessage", back_populates="user")
