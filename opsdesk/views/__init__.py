from opsdesk.views.queue import ConversationQueue, MessageDraft
from opsdesk.views.table import ConversationTable

__all__ = ["ConversationQueue", "ConversationTable", "MessageDraft"]
