"""Conversation transcript and stream event models"""
from datetime import datetime, timezone
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, Field

IMAGE_PLACEHOLDER = "[image delivered to the user]"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# Transcript
class ToolInvocation(BaseModel):
    """One tool call requested by the model and its outcome"""
    call_id: str
    tool_name: str
    arguments: Any = None
    state: Literal["pending", "completed", "errored"] = "pending"
    result: Any = None
    error_message: Optional[str] = None

    def model_payload(self) -> dict:
        """What the language model sees as the tool's response."""
        if self.state == "errored":
            if isinstance(self.result, dict):
                return self.result
            return {"error": self.error_message or "Tool failed"}
        if self.state == "pending":
            return {"error": "Tool call did not complete"}
        if isinstance(self.result, dict):
            if "imageDataUrl" in self.result:
                return {**self.result, "imageDataUrl": IMAGE_PLACEHOLDER}
            return self.result
        return {"result": self.result}


class Message(BaseModel):
    """Transcript entry"""
    role: Literal["user", "assistant"]
    content: str = ""
    tool_invocations: list[ToolInvocation] = Field(default_factory=list)


# Stream events
class TextDelta(BaseModel):
    """Incremental assistant text"""
    type: Literal["text_delta"] = "text_delta"
    timestamp: datetime = Field(default_factory=utcnow)
    step: int
    text: str


class ToolCallStart(BaseModel):
    """Tool dispatched"""
    type: Literal["tool_start"] = "tool_start"
    timestamp: datetime = Field(default_factory=utcnow)
    step: int
    call_id: str
    tool_name: str
    arguments: Any = None


class ToolCallResult(BaseModel):
    """Tool finished, successfully or not"""
    type: Literal["tool_complete", "tool_error"]
    timestamp: datetime = Field(default_factory=utcnow)
    step: int
    call_id: str
    tool_name: str
    result: Any = None
    error: Optional[str] = None


class StepComplete(BaseModel):
    """One model turn (and its tool calls) finished"""
    type: Literal["step_complete"] = "step_complete"
    timestamp: datetime = Field(default_factory=utcnow)
    step: int
    tool_calls: int


class AgentComplete(BaseModel):
    """Loop finished normally"""
    type: Literal["complete"] = "complete"
    timestamp: datetime = Field(default_factory=utcnow)
    final_message: str
    steps: int
    finish_reason: Literal["stop", "step_budget"]
    images: list[str] = Field(default_factory=list)
    messages: list[Message] = Field(default_factory=list)


class AgentError(BaseModel):
    """Loop aborted (model transport failure or timeout); the response is incomplete"""
    type: Literal["error"] = "error"
    timestamp: datetime = Field(default_factory=utcnow)
    error: str
    incomplete: bool = True


AgentEvent = Union[TextDelta, ToolCallStart, ToolCallResult, StepComplete, AgentComplete, AgentError]
