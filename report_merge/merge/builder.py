"""End-to-end report build: parse, classify, merge, render."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Sequence

from report_merge.classification import (
    Glossary,
    Oracle,
    OracleContext,
    apply_critic_flags,
    apply_glossary_overrides,
    classify_items,
    load_template_guidance,
    recent_corrections,
    resolve_section_map,
    run_critic,
)
from report_merge.config import MergeConfiguration
from report_merge.errors import CriticError, StructuralError
from report_merge.models import (
    ClassificationDecision,
    CorrectionRecord,
    ExistingItemContext,
    HistoricalExample,
    LLMUsage,
    ReportTemplate,
    SectionOption,
    WorkItem,
    section_options,
)
from report_merge.retrieval import TfidfIndex
from report_merge.template import (
    parse_template,
    render_boss_markdown,
    render_team_markdown,
    strip_team_title,
)

from .engine import (
    build_existing_context,
    merge_incoming_items,
    reorder_template_items,
    trim_done_items,
)

logger = logging.getLogger(__name__)


@dataclass
class BuildResult:
    """Everything one build produced.

    Attributes:
        template: The merged, reordered template
        team_report: Team view Markdown
        boss_report: Boss view Markdown
        decisions: Final decisions keyed by work item id (after overrides)
        options: Section options offered for this build
        usage: Tokens spent across classification and critic calls
        first_ever: True when there was no prior report to build on
        critic_error: Set when the critic pass failed; the build still succeeded
    """

    template: ReportTemplate
    team_report: str
    boss_report: str
    decisions: dict[int, ClassificationDecision] = field(default_factory=dict)
    options: list[SectionOption] = field(default_factory=list)
    usage: LLMUsage = field(default_factory=LLMUsage)
    first_ever: bool = False
    critic_error: CriticError | None = None


class ReportBuilder:
    """Build the next weekly report from the prior one and new work items.

    The oracle is optional. Without one, nothing is classified: glossary rules
    still apply, and every other item goes to Undetermined.
    """

    def __init__(
        self,
        oracle: Oracle | None = None,
        config: MergeConfiguration | None = None,
        *,
        critic_oracle: Oracle | None = None,
        glossary: Glossary | None = None,
    ) -> None:
        self.config = config or MergeConfiguration()
        self.config.validate()
        self.oracle = oracle
        self.critic_oracle = critic_oracle or oracle
        if glossary is None and self.config.glossary_path is not None:
            glossary = Glossary.from_yaml(self.config.glossary_path)
        self.glossary = glossary
        self.guidance = load_template_guidance(self.config.guide_path)

    def load_template(self, prior_report: str | None) -> tuple[ReportTemplate, bool]:
        """Parse the prior report, or start from the first-ever template.

        Raises:
            StructuralError: If the prior report has no category headings
        """
        if prior_report is None:
            logger.info("No prior report, starting from the first-ever template")
            return ReportTemplate.first_ever(), True
        template = parse_template(prior_report)
        if not template.named_categories():
            raise StructuralError("prior report contains no '#### Category' headings")
        return template, False

    def build(
        self,
        prior_report: str | None,
        items: Sequence[WorkItem],
        *,
        examples: Sequence[HistoricalExample] = (),
        corrections: Sequence[CorrectionRecord] = (),
        glossary: Glossary | None = None,
    ) -> BuildResult:
        """Merge ``items`` into ``prior_report`` and render both views.

        ``glossary`` replaces the builder's own glossary for this build only.

        Raises:
            StructuralError: If the prior report cannot be parsed into categories
            OracleError: If any classification batch failed
        """
        template, first_ever = self.load_template(prior_report)
        strip_team_title(template, self.config.team_name)

        merged = template.clone()
        removed = trim_done_items(merged)
        options = section_options(template)
        existing = build_existing_context(merged, options)
        logger.info(
            "Prior report: %d sections, %d carried-over items (%d done items dropped)",
            len(options),
            len(existing),
            removed,
        )

        decisions: dict[int, ClassificationDecision] = {}
        usage = LLMUsage()
        critic_error: CriticError | None = None
        if options and items and not first_ever:
            critic_error = self._classify(
                items,
                options,
                existing,
                examples,
                corrections,
                glossary if glossary is not None else self.glossary,
                decisions,
                usage,
            )

        merge_incoming_items(
            merged,
            items,
            options,
            decisions,
            existing,
            self.config.confidence_threshold,
        )
        reorder_template_items(merged)

        return BuildResult(
            template=merged,
            team_report=render_team_markdown(merged),
            boss_report=render_boss_markdown(merged),
            decisions=decisions,
            options=options,
            usage=usage,
            first_ever=first_ever,
            critic_error=critic_error,
        )

    def _classify(
        self,
        items: Sequence[WorkItem],
        options: list[SectionOption],
        existing: list[ExistingItemContext],
        examples: Sequence[HistoricalExample],
        corrections: Sequence[CorrectionRecord],
        glossary: Glossary | None,
        decisions: dict[int, ClassificationDecision],
        usage: LLMUsage,
    ) -> CriticError | None:
        """Fill ``decisions`` and ``usage``; return the critic error, if any."""

        if self.oracle is not None:
            context = OracleContext(
                options=options,
                existing=existing,
                corrections=recent_corrections(corrections, self.config.max_corrections),
                guidance=self.guidance,
            )
            index = TfidfIndex.build(examples) if examples else None
            found, spent = classify_items(self.oracle, items, context, self.config, index)
            decisions.update(found)
            usage.add(spent)
        else:
            logger.info("No oracle configured; skipping classification")

        if glossary is not None:
            section_map = resolve_section_map(glossary, options)
            changed = apply_glossary_overrides(items, decisions, glossary, section_map)
            logger.info("Glossary overrode %d decisions", changed)

        if not (self.config.critic_enabled and decisions and self.critic_oracle is not None):
            return None
        try:
            flags, spent = run_critic(self.critic_oracle, items, decisions, options)
        except CriticError as exc:
            logger.warning("Critic pass failed (non-fatal): %s", exc)
            usage.add(exc.usage)
            return exc
        usage.add(spent)
        apply_critic_flags(decisions, flags, options)
        return None
