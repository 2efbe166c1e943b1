"""Prompt templates for the classifier, critic and retrospective passes."""

from .render_prompt import render_prompts

__all__ = ["render_prompts"]
