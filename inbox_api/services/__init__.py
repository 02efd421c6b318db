from inbox_api.services.conversation_service import (
    get_or_create_conversation,
    get_owned_conversation,
    mark_handled,
    restore_conversation,
    set_mode,
    soft_delete_conversation,
)
from inbox_api.services.message_service import (
    get_messages,
    save_message,
)
from inbox_api.services.state_machine import (
    ConversationMode,
    MessageDirection,
    inbound_action,
)
