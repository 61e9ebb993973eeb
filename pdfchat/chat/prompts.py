"""Prompt templates for grounded and ungrounded chat."""

from typing import List, Sequence

from ..models import ConversationMessage

DOCUMENT_SYSTEM_PROMPT = (
    "You are a helpful AI assistant. Use the following context from the PDF document "
    "to answer the user's question. If you cannot find the answer in the context, say so."
)

CHAT_SYSTEM_PROMPT = (
    "You are a helpful AI assistant. Answer the user's question to the best of your ability."
)

CONTEXT_SEPARATOR = "\n\n"


def format_history(history: Sequence[ConversationMessage]) -> str:
    """Render history as one `role: content` line per message."""
    return "\n".join(f"{message.role.value}: {message.content}" for message in history)


def build_document_prompt(message: str, history: Sequence[ConversationMessage], context: List[str]) -> str:
    return (
        f"{DOCUMENT_SYSTEM_PROMPT}\n\n"
        f"Context from PDF:\n{CONTEXT_SEPARATOR.join(context)}\n\n"
        f"Chat History:\n{format_history(history)}\n\n"
        f"User: {message}\n"
        f"Assistant:"
    )


def build_chat_prompt(message: str, history: Sequence[ConversationMessage]) -> str:
    return (
        f"{CHAT_SYSTEM_PROMPT}\n\n"
        f"Chat History:\n{format_history(history)}\n\n"
        f"User: {message}\n"
        f"Assistant:"
    )
