"""Fan classification batches out to the oracle and gather the decisions.

Batches run concurrently on a thread pool. Every batch writes into its own
result slot, and results are only combined after all batches have finished,
so token usage from successful batches is still reported when another batch
fails.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Sequence

from report_merge.config import MergeConfiguration
from report_merge.errors import OracleError
from report_merge.llm import LLMParseError
from report_merge.models import ClassificationDecision, LLMUsage, WorkItem
from report_merge.retrieval import TfidfIndex

from .batcher import Batch, iter_batches
from .oracle import PURPOSE_CLASSIFY, Oracle, OracleContext, OracleRequest, usage_from_error
from .prompt_factory import build_classifier_prompts, select_examples
from .response_parser import parse_section_response

logger = logging.getLogger(__name__)


@dataclass
class BatchOutcome:
    """What one batch produced: decisions or an error, plus its spend."""

    index: int
    decisions: dict[int, ClassificationDecision] = field(default_factory=dict)
    usage: LLMUsage = field(default_factory=LLMUsage)
    error: Exception | None = None


def _classify_batch(
    oracle: Oracle,
    batch: Batch,
    context: OracleContext,
    index: TfidfIndex | None,
    config: MergeConfiguration,
) -> BatchOutcome:
    examples = select_examples(batch, context.existing, index, config.example_count)
    system_prompt, user_prompt = build_classifier_prompts(
        batch, context, examples, config.example_max_chars
    )
    request = OracleRequest(
        purpose=PURPOSE_CLASSIFY,
        system_prompt=system_prompt,
        user_prompt=user_prompt,
        batch_index=batch.index,
        items=batch.items,
        context=context,
        examples=examples,
    )
    logger.debug(
        "Classifying batch %d: %d items, %d examples",
        batch.index,
        len(batch.items),
        len(examples),
    )

    try:
        reply = oracle(request)
    except Exception as exc:
        return BatchOutcome(
            index=batch.index,
            usage=usage_from_error(exc) or LLMUsage(),
            error=exc,
        )

    try:
        decisions = parse_section_response(reply.text, usage=reply.usage)
    except LLMParseError as exc:
        return BatchOutcome(index=batch.index, usage=reply.usage, error=exc)

    return BatchOutcome(index=batch.index, decisions=decisions, usage=reply.usage)


def classify_items(
    oracle: Oracle,
    items: Sequence[WorkItem],
    context: OracleContext,
    config: MergeConfiguration,
    index: TfidfIndex | None = None,
) -> tuple[dict[int, ClassificationDecision], LLMUsage]:
    """Classify ``items`` batch by batch and return the merged decisions.

    Returns:
        (decisions keyed by work item id, total usage across all batches)

    Raises:
        OracleError: If any batch failed. The error names the first failed
            batch and carries the usage summed over every batch.
    """
    batches = list(iter_batches(items, config.batch_size))
    if not batches:
        return {}, LLMUsage()

    max_workers = config.max_workers or len(batches)
    logger.info(
        "Classifying %d items in %d batches (workers=%d)",
        len(items),
        len(batches),
        min(max_workers, len(batches)),
    )

    slots: dict[int, BatchOutcome] = {}
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = {
            executor.submit(_classify_batch, oracle, batch, context, index, config): batch.index
            for batch in batches
        }
        for future in as_completed(futures):
            batch_index = futures[future]
            try:
                slots[batch_index] = future.result()
            except Exception as exc:
                # Prompt rendering failures land here.
                slots[batch_index] = BatchOutcome(index=batch_index, error=exc)

    total = LLMUsage()
    decisions: dict[int, ClassificationDecision] = {}
    first_failure: BatchOutcome | None = None
    for batch_index in sorted(slots):
        outcome = slots[batch_index]
        total.add(outcome.usage)
        if outcome.error is not None:
            logger.error("Classification batch %d failed: %s", outcome.index, outcome.error)
            if first_failure is None:
                first_failure = outcome
            continue
        decisions.update(outcome.decisions)

    if first_failure is not None:
        raise OracleError(
            f"classification batch {first_failure.index} failed: {first_failure.error}",
            usage=total,
            batch_index=first_failure.index,
        ) from first_failure.error

    logger.info(
        "Classified %d items (input_tokens=%d output_tokens=%d)",
        len(decisions),
        total.input_tokens,
        total.output_tokens,
    )
    return decisions, total
