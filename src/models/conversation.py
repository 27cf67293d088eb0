"""Pydantic models for conversation requests and outcomes."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel


class OutcomeKind(str, Enum):
    RESPONSE = "response"
    TERMINAL = "terminal"  # recognized server-side signal, session closed
    CRASHED = "crashed"  # automation failure, session closed


class ConversationOutcome(BaseModel):
    """Classified result of one prompt/response exchange."""

    kind: OutcomeKind
    text: str

    @property
    def session_closed(self) -> bool:
        return self.kind is not OutcomeKind.RESPONSE

    @classmethod
    def response(cls, text: str) -> ConversationOutcome:
        return cls(kind=OutcomeKind.RESPONSE, text=text)

    @classmethod
    def terminal(cls, text: str) -> ConversationOutcome:
        return cls(kind=OutcomeKind.TERMINAL, text=text)

    @classmethod
    def crashed(cls, text: str) -> ConversationOutcome:
        return cls(kind=OutcomeKind.CRASHED, text=text)


class StartResponse(BaseModel):
    chatId: str


class ConversationResponse(BaseModel):
    response: str


class MessageResponse(BaseModel):
    message: str
