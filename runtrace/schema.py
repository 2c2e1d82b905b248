"""Payload types carried by callback events.

Observed operations hand these to run managers; handlers receive them
unchanged.
"""

from typing import Any

from pydantic import BaseModel, Field

__all__ = [
    "AgentAction",
    "AgentFinish",
    "ChainValues",
    "Generation",
    "LLMResult",
]

# Inputs and outputs of a chain run, keyed by variable name.
ChainValues = dict[str, Any]


class Generation(BaseModel):
    """A single completion produced by a model."""

    text: str
    generation_info: dict[str, Any] | None = None


class LLMResult(BaseModel):
    """Result of a model run: one list of generations per prompt."""

    generations: list[list[Generation]] = Field(default_factory=list)
    llm_output: dict[str, Any] | None = None


class AgentAction(BaseModel):
    """Tool call chosen by an agent."""

    tool: str
    tool_input: str
    log: str = ""


class AgentFinish(BaseModel):
    """Final answer returned by an agent."""

    return_values: dict[str, Any] = Field(default_factory=dict)
    log: str = ""
