"""LLM-assisted story generation.

Two flows, both built on the graph model:
- ``generate_story``: a whole story from a premise.
- ``generate_from_step``: new branches below a selected step of an existing
  story.

Model output goes through ``extract_steps`` and ``StoryGraph.load``, then the
validator. Rejected output is sent back to the model with the errors'
``to_llm_feedback()`` text for another attempt.
"""

from __future__ import annotations

import json
from collections import Counter
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from avventura.generation.extract import extract_steps
from avventura.graph.errors import DuplicateStepError, SchemaError, StoryValidationError
from avventura.graph.story_graph import DEFAULT_START_STEP, StoryGraph
from avventura.graph.suggest import continuation_start
from avventura.graph.validation import redirect_dangling_paths, validate_story_graph
from avventura.observability.logging import get_logger
from avventura.prompts.loader import PromptLoader
from avventura.providers.content import extract_text

if TYPE_CHECKING:
    from langchain_core.language_models import BaseChatModel

    from avventura.graph.validation import PathRedirect
    from avventura.graph.validation_types import ValidationReport
    from avventura.models.step import Step

log = get_logger(__name__)

DEFAULT_LEVELS = 5
DEFAULT_MAX_ATTEMPTS = 2

_RETRYABLE = (SchemaError, DuplicateStepError, StoryValidationError)


@dataclass
class GenerationResult:
    """Outcome of one generation request.

    Attributes:
        graph: The generated story, or the existing story plus new steps.
        report: Validation of ``graph``; never has fatal defects in new steps.
        new_steps: Steps the model contributed, ascending by number.
        skipped: Model steps dropped because they reused an existing
            number or had no options or paths.
        redirects: Dangling paths rewritten to the start step, if requested.
        attempts: Model calls made.
    """

    graph: StoryGraph
    report: ValidationReport
    new_steps: list[Step]
    skipped: list[Step] = field(default_factory=list)
    redirects: list[PathRedirect] = field(default_factory=list)
    attempts: int = 1


class StoryGenerator:
    """Generate story steps with a LangChain chat model.

    Args:
        chat_model: Any LangChain chat model.
        loader: Prompt loader; defaults to the packaged templates.
        max_attempts: Model calls allowed per request, including retries.
    """

    def __init__(
        self,
        chat_model: BaseChatModel,
        *,
        loader: PromptLoader | None = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._model = chat_model
        self._loader = loader or PromptLoader()
        self._max_attempts = max_attempts

    async def _ask(self, messages: list[BaseMessage]) -> str:
        response = await self._model.ainvoke(messages)
        return extract_text(response.content)

    async def generate_story(
        self,
        premise: str,
        *,
        levels: int = DEFAULT_LEVELS,
        start_step: int = DEFAULT_START_STEP,
        redirect_dangling: bool = False,
    ) -> GenerationResult:
        """Generate a complete story.

        Args:
            premise: What the story is about.
            levels: Depth of the decision tree to ask for.
            start_step: Number of the first step.
            redirect_dangling: Rewrite paths to missing steps to the start
                step instead of rejecting the output.

        Returns:
            The generated story and its validation report.

        Raises:
            SchemaError, DuplicateStepError, StoryValidationError: The last
                rejection once every attempt has failed.
        """
        prompt = self._loader.load("story").render(
            premise=premise, levels=levels, start_step=start_step
        )
        messages: list[BaseMessage] = [
            SystemMessage(content=prompt.system),
            HumanMessage(content=prompt.user),
        ]

        last_error: Exception | None = None
        for attempt in range(1, self._max_attempts + 1):
            text = await self._ask(messages)
            try:
                graph = StoryGraph.load(extract_steps(text), start_step=start_step)
                redirects = redirect_dangling_paths(graph) if redirect_dangling else []
                report = validate_story_graph(graph)
                report.raise_for_fatal()
            except _RETRYABLE as e:
                last_error = e
                log.warning("generation_rejected", attempt=attempt, error=str(e))
                messages = [
                    *messages,
                    AIMessage(content=text),
                    HumanMessage(content=e.to_llm_feedback()),
                ]
                continue

            log.info("story_generated", steps=len(graph), attempts=attempt)
            return GenerationResult(
                graph=graph,
                report=report,
                new_steps=graph.serialize(),
                redirects=redirects,
                attempts=attempt,
            )

        assert last_error is not None
        raise last_error

    async def generate_from_step(
        self,
        graph: StoryGraph,
        selected_step: int,
        premise: str,
        *,
        depth: int = DEFAULT_LEVELS,
        redirect_dangling: bool = False,
    ) -> GenerationResult:
        """Generate new branches below *selected_step*.

        The input graph is not modified; the result holds a copy with the
        new steps added.

        Args:
            graph: The existing story.
            selected_step: Step to continue from. Must exist.
            premise: What the story is about.
            depth: Levels of new story to ask for (>= 1).
            redirect_dangling: Rewrite dangling paths in new steps to the
                start step instead of rejecting the output.

        Raises:
            ValueError: If *depth* is below 1.
            StepNotFoundError: If *selected_step* is not in the graph.
            SchemaError, DuplicateStepError, StoryValidationError: The last
                rejection once every attempt has failed.
        """
        if depth < 1:
            raise ValueError(f"depth must be a positive number, got {depth}")

        selected = graph.require(selected_step, context="generate_from_step")
        first_step = continuation_start(graph, selected_step)
        prompt = self._loader.load("continuation").render(
            premise=premise,
            first_step=first_step,
            start_step=graph.start_step,
            depth=depth,
            selected_step=json.dumps(selected.to_dict(), ensure_ascii=False),
            existing_steps=", ".join(str(n) for n in graph),
        )
        messages: list[BaseMessage] = [
            SystemMessage(content=prompt.system),
            HumanMessage(content=prompt.user),
        ]

        last_error: Exception | None = None
        for attempt in range(1, self._max_attempts + 1):
            text = await self._ask(messages)
            try:
                result = self._merge_continuation(graph, extract_steps(text), redirect_dangling)
            except _RETRYABLE as e:
                last_error = e
                log.warning("generation_rejected", attempt=attempt, error=str(e))
                messages = [
                    *messages,
                    AIMessage(content=text),
                    HumanMessage(content=e.to_llm_feedback()),
                ]
                continue

            result.attempts = attempt
            log.info(
                "continuation_generated",
                selected_step=selected_step,
                added=len(result.new_steps),
                skipped=len(result.skipped),
                attempts=attempt,
            )
            return result

        assert last_error is not None
        raise last_error

    def _merge_continuation(
        self,
        graph: StoryGraph,
        steps: list[Step],
        redirect_dangling: bool,
    ) -> GenerationResult:
        """Add usable generated steps to a copy of *graph* and validate.

        Raises:
            DuplicateStepError: If the model repeated a new step number.
            StoryValidationError: If a new step has a fatal defect.
        """
        existing = graph.all_step_numbers()
        new_steps: list[Step] = []
        skipped: list[Step] = []
        for step in steps:
            if step.step in existing or not step.options or not step.paths:
                log.debug("generated_step_skipped", step=step.step)
                skipped.append(step)
            else:
                new_steps.append(step)

        counts = Counter(s.step for s in new_steps)
        duplicates = sorted(n for n, c in counts.items() if c > 1)
        if duplicates:
            raise DuplicateStepError(duplicates)

        merged = graph.copy()
        for step in new_steps:
            merged.upsert(step)

        redirects: list[PathRedirect] = []
        if redirect_dangling:
            redirects = redirect_dangling_paths(merged, only=set(counts))

        report = validate_story_graph(merged)
        new_fatal = [d for d in report.fatal if d.step in counts]
        if new_fatal:
            raise StoryValidationError(new_fatal)

        return GenerationResult(
            graph=merged,
            report=report,
            new_steps=sorted(new_steps, key=lambda s: s.step),
            skipped=skipped,
            redirects=redirects,
        )
