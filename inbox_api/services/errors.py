"""Error taxonomy shared by services and routers.

Every error carries the HTTP status it maps to and a stable ``code`` so the
inbox client can branch on it without parsing messages.
"""


class InboxError(Exception):
    status_code = 500
    code = "inbox_error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class MissingHost(InboxError):
    status_code = 400
    code = "missing_host"


class InvalidSubdomain(InboxError):
    status_code = 400
    code = "invalid_subdomain"


class TenantNotFound(InboxError):
    status_code = 404
    code = "tenant_not_found"


class StoreUnavailable(InboxError):
    status_code = 503
    code = "store_unavailable"


class ConversationNotFound(InboxError):
    status_code = 404
    code = "conversation_not_found"


class MessageNotFound(InboxError):
    status_code = 404
    code = "message_not_found"


class ContactNotFound(InboxError):
    status_code = 404
    code = "contact_not_found"


class TenantOwnershipMismatch(InboxError):
    status_code = 403
    code = "tenant_ownership_mismatch"


class AlreadyDeleted(InboxError):
    status_code = 400
    code = "already_deleted"


class NotDeleted(InboxError):
    status_code = 409
    code = "not_deleted"


class InvalidCursor(InboxError):
    status_code = 400
    code = "invalid_cursor"


class InvalidPayload(InboxError):
    status_code = 400
    code = "invalid_payload"


class TransportFailure(InboxError):
    status_code = 502
    code = "transport_failure"
