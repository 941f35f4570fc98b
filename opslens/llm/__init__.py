"""Inference provider client, prompts and response parsing."""

from opslens.llm.client import DispatchError, InferenceClient
from opslens.llm.parser import parse_response
from opslens.llm.prompts import SYSTEM_PROMPT, build_messages

__all__ = ["SYSTEM_PROMPT", "DispatchError", "InferenceClient", "build_messages", "parse_response"]
