from chatrelay.models.conversation import ConversationMessage
from chatrelay.models.user import User

__all__ = [
    "User",
    "ConversationMessage",
]
