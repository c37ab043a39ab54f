from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict


class ModelTask(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str


class ModelEntry(BaseModel):
    """
    A model record from the models/search endpoint.
    Only `name` and `task.name` are relied on; everything else is kept as-is.
    """
    model_config = ConfigDict(extra="allow")

    name: str
    task: ModelTask


class ModelSearchResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    result: List[ModelEntry]


class CompletionResult(BaseModel):
    model_config = ConfigDict(extra="allow")

    response: str


class ChatCompletionResponse(BaseModel):
    """
    Envelope of a non-streaming /run/{model} response:
        {"success": true, "result": {"response": "..."}, "errors": [], ...}
    """
    model_config = ConfigDict(extra="allow")

    success: bool
    result: Optional[CompletionResult] = None
    errors: List[Dict[str, Any]] = []


class StreamChunk(BaseModel):
    """Data payload of one streamed event: {"response": "..."}"""
    model_config = ConfigDict(extra="allow")

    response: str
