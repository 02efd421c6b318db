from inbox_api.schemas.conversation import ConversationResponse, ConversationSummaryResponse, ReplyRequest
from inbox_api.schemas.message import MessagePageResponse, MessageResponse
from inbox_api.schemas.webhook import TwilioWebhookForm

__all__ = [
    "ConversationResponse",
    "ConversationSummaryResponse",
    "ReplyRequest",
    "MessagePageResponse",
    "MessageResponse",
    "TwilioWebhookForm",
]
