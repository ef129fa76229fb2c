from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from chatrelay.models import ConversationMessage, User

SENDER_USER = "user"
SENDER_BOT = "bot"


def get_or_create_user(db: Session, phone: str, name: Optional[str] = None) -> User:
    """Find user by phone or create a new one; refreshes activity and name."""
    now = datetime.now(timezone.utc)
    user = db.query(User).filter(User.phone == phone).first()

    if not user:
        user = User(phone=phone, name=name, created_at=now, last_active_at=now)
        db.add(user)
        try:
            db.flush()
        except IntegrityError:
            # Another request inserted the same phone first.
            db.rollback()
            user = db.query(User).filter(User.phone == phone).one()
        else:
            return user

    user.last_active_at = now
    if name and user.name != name:
        user.name = name
    db.flush()
    return user


def save_message(db: Session, user: User, sender: str, text: str) -> ConversationMessage:
    """Append a message to the user's conversation log."""
    message = ConversationMessage(
        user_id=user.id,
        message=text,
        sender=sender,
        timestamp=datetime.now(timezone.utc),
    )
    db.add(message)
    db.flush()
    return message
