"""Budgeted telemetry context assembly."""

from opslens.context.assembler import AssembledContext, ContextAssembler, ContextBudget, estimate_tokens

__all__ = ["AssembledContext", "ContextAssembler", "ContextBudget", "estimate_tokens"]
