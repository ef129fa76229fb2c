from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from chatrelay.models import ConversationMessage, User


def get_stats(db: Session, now: Optional[datetime] = None) -> dict:
    """Aggregate counts over the conversation log."""
    now = now or datetime.now(timezone.utc)
    start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
    day_ago = now - timedelta(hours=24)

    total_users = db.query(func.count(User.id)).scalar() or 0
    total_messages = db.query(func.count(ConversationMessage.id)).scalar() or 0
    messages_today = (
        db.query(func.count(ConversationMessage.id)).filter(ConversationMessage.timestamp >= start_of_day).scalar()
        or 0
    )
    active_users = (
        db.query(func.count(func.distinct(ConversationMessage.user_id)))
        .filter(ConversationMessage.timestamp >= day_ago)
        .scalar()
        or 0
    )
    return {
        "total_users": total_users,
        "total_messages": total_messages,
        "messages_today": messages_today,
        "active_users_24h": active_users,
    }


def list_recent_messages(db: Session, limit: int = 50, offset: int = 0) -> list[dict]:
    """Newest messages first, with the user they belong to."""
    rows = (
        db.query(ConversationMessage, User)
        .join(User, ConversationMessage.user_id == User.id)
        .order_by(ConversationMessage.timestamp.desc(), ConversationMessage.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return [
        {
            "id": message.id,
            "phone_number": user.phone,
            "name": user.name,
            "message": message.message,
            "sender": message.sender,
            "timestamp": message.timestamp,
        }
        for message, user in rows
    ]


def list_users(db: Session) -> list[dict]:
    """Users with message counts, most recently active first."""
    rows = (
        db.query(User, func.count(ConversationMessage.id))
        .outerjoin(ConversationMessage, ConversationMessage.user_id == User.id)
        .group_by(User.id)
        .order_by(User.last_active_at.desc(), User.id.desc())
        .all()
    )
    return [
        {
            "id": user.id,
            "phone_number": user.phone,
            "name": user.name,
            "message_count": count,
            "created_at": user.created_at,
            "last_active_at": user.last_active_at,
        }
        for user, count in rows
    ]


def get_user_history(db: Session, phone: str, limit: int = 100) -> Optional[dict]:
    """Latest ``limit`` messages of a user, returned oldest-first. None for unknown users."""
    user = db.query(User).filter(User.phone == phone).first()
    if not user:
        return None

    messages = (
        db.query(ConversationMessage)
        .filter(ConversationMessage.user_id == user.id)
        .order_by(ConversationMessage.timestamp.desc(), ConversationMessage.id.desc())
        .limit(limit)
        .all()
    )
    return {
        "phone_number": user.phone,
        "name": user.name,
        "messages": [
            {
                "id": msg.id,
                "message": msg.message,
                "sender": msg.sender,
                "timestamp": msg.timestamp,
            }
            for msg in reversed(messages)
        ],
    }
