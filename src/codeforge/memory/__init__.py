from codeforge.memory.store import (
    FragmentRecord,
    MessageRole,
    MessageStore,
    MessageType,
    StoredMessage,
)

__all__ = ["FragmentRecord", "MessageRole", "MessageStore", "MessageType", "StoredMessage"]
