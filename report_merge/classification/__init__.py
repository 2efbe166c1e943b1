"""Oracle-driven section classification with glossary and critic passes."""

from .batcher import Batch, iter_batches
from .classifier import classify_items
from .critic import apply_critic_flags, run_critic
from .glossary import Glossary, apply_glossary_overrides, resolve_section_map
from .oracle import LLMOracle, Oracle, OracleContext, OracleReply, OracleRequest
from .prompt_factory import load_template_guidance, recent_corrections
from .response_parser import parse_critic_response, parse_section_response
from .retrospective import analyze_corrections

__all__ = [
    "Batch",
    "Glossary",
    "LLMOracle",
    "Oracle",
    "OracleContext",
    "OracleReply",
    "OracleRequest",
    "analyze_corrections",
    "apply_critic_flags",
    "apply_glossary_overrides",
    "classify_items",
    "iter_batches",
    "load_template_guidance",
    "parse_critic_response",
    "parse_section_response",
    "recent_corrections",
    "resolve_section_map",
    "run_critic",
]
