"""
Error taxonomy for the Chat Capture Gateway

Every failure the gateway can meet falls into one of five families.
The family decides what the chat user sees:

- UserInputError:     shown verbatim, with a usage hint
- TransientIOError:   generic "could not process" on extraction paths,
                      silently absorbed when persisting a receipt
- StateError:         "expired, please send again"
- AuthorizationError: rejected before any business logic runs
- anything else:      internal fault, logged and answered generically

Service modules subclass these (e.g. OCRError, StorageError) so the
dialogue controller only has to reason about the families.
"""


class ChamberError(Exception):
    """Base exception for all gateway errors."""
    pass


class UserInputError(ChamberError):
    """The user sent something we cannot turn into an expense."""

    def __init__(self, message: str, hint: str = ""):
        self.hint = hint
        super().__init__(message)


class TransientIOError(ChamberError):
    """A remote call (download, AI, OCR, storage, Bot API) failed."""
    pass


class StateError(ChamberError):
    """The conversation is not in the state the event expects."""
    pass


class CaptureExpiredError(StateError):
    """A payment method was picked but no live pending capture exists."""
    pass


class AuthorizationError(ChamberError):
    """The caller is not allowed to use the gateway."""
    pass


class UnlinkedChatError(AuthorizationError):
    """The chat has not been linked to a Chamber account."""

    def __init__(self, chat_id: int):
        self.chat_id = chat_id
        super().__init__(f"Chat {chat_id} is not linked to any account")
