"""Prompt templates for the calling agent."""

from swizz.prompts.agent import AGENT_NAME, build_system_prompt

__all__ = [
    "AGENT_NAME",
    "build_system_prompt",
]
