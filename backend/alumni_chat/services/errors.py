"""Errors raised by the chat stores.

Routes translate these into HTTP responses; the messages are safe to show
to the caller and never list a conversation's participants.
"""


class ChatError(Exception):
    """Base class for chat store errors."""
    status_code = 400


class ConversationNotFound(ChatError):
    """Raised when the referenced conversation does not exist."""
    status_code = 404

    def __init__(self, message: str = "Conversation not found"):
        super().__init__(message)


class RecipientNotFound(ChatError):
    """Raised when the requested chat partner is unknown or inactive."""
    status_code = 404

    def __init__(self, message: str = "Recipient not found"):
        super().__init__(message)


class NotParticipant(ChatError):
    """Raised when the caller is not a participant of the conversation."""
    status_code = 403

    def __init__(self, message: str = "You are not part of this conversation"):
        super().__init__(message)


class SelfConversationError(ChatError):
    """Raised when a user tries to open a conversation with themselves."""
    status_code = 403

    def __init__(self, message: str = "Cannot start a conversation with yourself"):
        super().__init__(message)
