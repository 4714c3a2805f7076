"""Extract edit directives from language-model output and apply them to a versioned file store."""

from .directives import (
    CreateFileDirective,
    DeleteDirective,
    DeleteFileDirective,
    Directive,
    InsertDirective,
    OperationResult,
)
from .engine import ContentMismatchError, FileSnapshot, LinePatchError, OutOfRangeError, apply_line_directives
from .errors import PatchbotError
from .executor import BatchExecutor, CommitMessages, apply_batch
from .extraction import ExtractionParseError, extract_directives
from .scheduler import BatchPlan, order_line_directives, plan_batch
from .session import ChatSession, ChatTurn, ConversationHistory
from .validation import ValidationRejected, validate, validate_candidates

__all__ = [
    "BatchExecutor",
    "BatchPlan",
    "ChatSession",
    "ChatTurn",
    "CommitMessages",
    "ContentMismatchError",
    "ConversationHistory",
    "CreateFileDirective",
    "DeleteDirective",
    "DeleteFileDirective",
    "Directive",
    "ExtractionParseError",
    "FileSnapshot",
    "InsertDirective",
    "LinePatchError",
    "OperationResult",
    "OutOfRangeError",
    "PatchbotError",
    "ValidationRejected",
    "apply_batch",
    "apply_line_directives",
    "extract_directives",
    "order_line_directives",
    "plan_batch",
    "validate",
    "validate_candidates",
]
