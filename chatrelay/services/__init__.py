from chatrelay.services.conversation_service import get_or_create_user, save_message
from chatrelay.services.pipeline_service import EventOutcome, MessagePipeline
from chatrelay.services.reply_service import ReplyResolver, rule_based_reply
from chatrelay.services.result import Result
from chatrelay.services.two_factor_service import TwoFactorManager
