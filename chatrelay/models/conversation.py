from sqlalchemy import Column, DateTime, ForeignKey, Integer, Text
from sqlalchemy.orm import relationship

from chatrelay.database import Base


class ConversationMessage(Base):
    """One line of the append-only conversation log."""

    __tablename__ = "conversations"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    message = Column(Text, nullable=False)
    sender = Column(Text, nullable=False)  # user, bot
    timestamp = Column(DateTime(timezone=True), nullable=False, index=True)

    user = relationship("User", back_populates="messages")
