"""
HR Assist Schemas

Tagged record variants and conversation models.
"""

from .records import (
    RecordKind,
    TaskKind,
    Collection,
    Employee,
    Shift,
    Task,
    Job,
    Candidate,
    Recognition,
    Record,
    parse_record,
    record_from_dict,
)
from .conversation import (
    MessageRole,
    AssistantType,
    ChatMessage,
    ConversationState,
    ContextMetadata,
)

__all__ = [
    "RecordKind",
    "TaskKind",
    "Collection",
    "Employee",
    "Shift",
    "Task",
    "Job",
    "Candidate",
    "Recognition",
    "Record",
    "parse_record",
    "record_from_dict",
    "MessageRole",
    "AssistantType",
    "ChatMessage",
    "ConversationState",
    "ContextMetadata",
]
