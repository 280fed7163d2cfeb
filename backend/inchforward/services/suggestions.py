import logging
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional

from inchforward.schemas.goal import MoveSuggestion
from inchforward.services import prompts
from inchforward.services.ai_service import (
    SuggestionClient,
    SuggestionServiceError,
    UnsuccessfulRequestError,
    EmptyResponseError,
)
from inchforward.services.parsing import parse_suggestions, parse_object

logger = logging.getLogger(__name__)


@dataclass
class SuggestionOutcome:
    suggestions: List[MoveSuggestion] = field(default_factory=list)
    error: Optional[str] = None


@dataclass
class AdjustmentOutcome:
    title: Optional[str] = None
    description: Optional[str] = None
    duration: Optional[float] = None  # seconds
    error: Optional[str] = None


@dataclass
class SmartGoalOutcome:
    title: Optional[str] = None
    description: Optional[str] = None
    error: Optional[str] = None


def describe_failure(exc: SuggestionServiceError) -> str:
    """The one message a user sees for a failed call; the log keeps the detail."""
    if isinstance(exc, UnsuccessfulRequestError):
        return f"AI service error ({exc.status_code}). Check the server log for details."
    if isinstance(exc, EmptyResponseError):
        return "AI did not provide valid suggestions."
    # ServiceUnreachableError and anything else from the transport
    return f"Could not reach AI service. Details: {exc}"


class SuggestionOrchestrator:
    def __init__(self, client: SuggestionClient, timeout_seconds: Optional[float] = None):
        self.client = client
        self.timeout_seconds = timeout_seconds

    async def _ask(self, prompt, schema, generation, system_instruction):
        max_tokens, temperature = generation
        return await self.client.send(
            prompt,
            schema,
            max_output_tokens=max_tokens,
            temperature=temperature,
            timeout_seconds=self.timeout_seconds,
            system_instruction=system_instruction,
        )

    async def _suggest(self, goal, prompt) -> SuggestionOutcome:
        try:
            text = await self._ask(
                prompt,
                prompts.SUGGESTION_LIST_SCHEMA,
                prompts.SUGGESTION_GENERATION,
                prompts.MOVE_COACH_INSTRUCTION,
            )
        except SuggestionServiceError as e:
            return SuggestionOutcome(error=describe_failure(e))

        result = parse_suggestions(text)
        if not result.ok:
            logger.error(f"❌ [SUGGEST] Could not parse suggestions for '{goal.title}': {result.error}. Text: {text}")
            return SuggestionOutcome(error=f"Could not understand AI suggestions. Details: {result.error}")

        if result.strategy != "strict":
            logger.warning(f"⚠️ [SUGGEST] Recovered suggestions with the '{result.strategy}' parser.")
        suggestions = [MoveSuggestion(title=p["title"], description=p["description"]) for p in result.value]
        logger.info(f"✅ [SUGGEST] {len(suggestions)} suggestions for '{goal.title}'.")
        return SuggestionOutcome(suggestions=suggestions)

    async def suggest_new_moves(self, goal, today: date, recent_moves=()) -> SuggestionOutcome:
        context = prompts.PromptContext.for_goal(goal, today, recent_moves)
        logger.info(f"🔄 [SUGGEST] New moves for goal '{goal.title}'...")
        return await self._suggest(goal, prompts.new_moves_prompt(context))

    async def suggest_alternatives(self, goal, today: date, excluding=None, recent_moves=()) -> SuggestionOutcome:
        context = prompts.PromptContext.for_goal(goal, today, recent_moves)
        excluding_title = excluding.title if excluding is not None else None
        logger.info(f"🔄 [SUGGEST] Alternatives for goal '{goal.title}' (excluding {excluding_title!r})...")
        return await self._suggest(goal, prompts.alternative_moves_prompt(context, excluding_title))

    async def adjust_detail_level(self, goal, move, level, today: date, recent_moves=()) -> AdjustmentOutcome:
        context = prompts.PromptContext.for_goal(goal, today, recent_moves)
        try:
            text = await self._ask(
                prompts.adjust_detail_prompt(context, move, level),
                prompts.ADJUSTED_MOVE_SCHEMA,
                prompts.REWRITE_GENERATION,
                prompts.MOVE_COACH_INSTRUCTION,
            )
        except SuggestionServiceError as e:
            return AdjustmentOutcome(error=describe_failure(e))

        result = parse_object(text, ("title", "description", "duration"), required=("title",))
        if not result.ok:
            logger.error(f"❌ [ADJUST] Could not parse rewritten move '{move.title}': {result.error}")
            return AdjustmentOutcome(error=f"Could not understand AI suggestions. Details: {result.error}")

        fields = result.value
        duration = None
        try:
            minutes = float(fields.get("duration"))
            if minutes > 0:
                duration = minutes * 60
        except (TypeError, ValueError):
            pass
        description = fields.get("description")
        return AdjustmentOutcome(
            title=fields["title"].strip(),
            description=description.strip() if isinstance(description, str) else None,
            duration=duration,
        )

    async def format_goal_as_smart(self, goal, today: date) -> SmartGoalOutcome:
        context = prompts.PromptContext.for_goal(goal, today)
        try:
            text = await self._ask(
                prompts.smart_goal_prompt(context),
                prompts.SMART_GOAL_SCHEMA,
                prompts.REWRITE_GENERATION,
                prompts.SMART_COACH_INSTRUCTION,
            )
        except SuggestionServiceError as e:
            return SmartGoalOutcome(error=describe_failure(e))

        result = parse_object(text, ("smartTitle", "smartDescription"), required=("smartTitle",))
        if not result.ok:
            logger.error(f"❌ [SMART] Could not parse SMART goal for '{goal.title}': {result.error}")
            return SmartGoalOutcome(error=f"Could not understand AI suggestions. Details: {result.error}")
        description = result.value.get("smartDescription")
        return SmartGoalOutcome(
            title=result.value["smartTitle"].strip(),
            description=description.strip() if isinstance(description, str) else None,
        )
