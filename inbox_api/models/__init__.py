from inbox_api.models.contact import Contact
from inbox_api.models.conversation import Conversation
from inbox_api.models.message import Message
from inbox_api.models.tenant import Tenant

__all__ = [
    "Tenant",
    "Conversation",
    "Message",
    "Contact",
]
