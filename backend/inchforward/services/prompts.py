import enum
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional, Tuple

# --- SYSTEM INSTRUCTIONS ---
MOVE_COACH_INSTRUCTION = (
    "You are a helpful assistant that suggests small, actionable steps (moves) for long-term goals. "
    "Each move should build momentum on what the user already did and never repeat existing work."
)

SMART_COACH_INSTRUCTION = (
    "You are a goal-setting coach. You rewrite goals so they are Specific, Measurable, Achievable, "
    "Relevant and Time-bound (SMART), keeping the user's intent and voice."
)

# --- RESPONSE SHAPES ---
SUGGESTION_LIST_SCHEMA = {
    "description": "List of move suggestions",
    "type": "array",
    "items": {
        "type": "object",
        "properties": {
            "title": {"type": "string", "description": "The title of the suggested move"},
            "description": {"type": "string", "description": "A brief description of the suggested move"},
        },
        "required": ["title", "description"],
    },
}

SMART_GOAL_SCHEMA = {
    "description": "A goal rewritten in SMART form",
    "type": "object",
    "properties": {
        "smartTitle": {"type": "string", "description": "Short SMART goal title"},
        "smartDescription": {"type": "string", "description": "SMART goal description with measurable outcome and timeline"},
    },
    "required": ["smartTitle", "smartDescription"],
}

ADJUSTED_MOVE_SCHEMA = {
    "description": "A move rewritten for a different level of detail",
    "type": "object",
    "properties": {
        "title": {"type": "string", "description": "The rewritten move title"},
        "description": {"type": "string", "description": "The rewritten move description"},
        "duration": {"type": "number", "description": "Estimated duration in minutes"},
    },
    "required": ["title", "description", "duration"],
}

# (max output tokens, temperature)
SUGGESTION_GENERATION = (1024, 0.7)
REWRITE_GENERATION = (512, 0.4)

RECENT_MOVES_LIMIT = 3


class DetailLevel(str, enum.Enum):
    VAGUE = "vague"
    CONCISE = "concise"
    DETAILED = "detailed"
    GRANULAR = "granular"
    STEP_BY_STEP = "step_by_step"

    @property
    def label(self) -> str:
        return _LEVEL_INFO[self][0]

    @property
    def blurb(self) -> str:
        return _LEVEL_INFO[self][1]

    @property
    def time_multiplier(self) -> float:
        return _LEVEL_INFO[self][2]


_LEVEL_INFO = {
    DetailLevel.VAGUE: ("Vague", "High-level, less overwhelming", 0.5),
    DetailLevel.CONCISE: ("Concise", "Brief and focused", 0.75),
    DetailLevel.DETAILED: ("Detailed", "Default detail level", 1.0),
    DetailLevel.GRANULAR: ("Granular", "More specific steps", 1.5),
    DetailLevel.STEP_BY_STEP: ("Step-by-Step", "Micro-steps, easy to complete", 2.5),
}


@dataclass
class PromptContext:
    """Everything a prompt knows about the goal besides the request itself."""

    goal_title: str
    goal_description: str
    today: date
    recent_moves: List[Tuple[str, str]] = field(default_factory=list)
    existing_titles: List[str] = field(default_factory=list)

    @classmethod
    def for_goal(cls, goal, today: date, recent_moves=()):
        return cls(
            goal_title=goal.title,
            goal_description=goal.description or "",
            today=today,
            recent_moves=[(m.title, m.description or "") for m in list(recent_moves)[:RECENT_MOVES_LIMIT]],
            existing_titles=[m.title for m in goal.moves],
        )

    def render(self) -> str:
        lines = []
        if self.recent_moves:
            lines.append("Recently completed moves (most recent first), build on these and do not repeat them:")
            for title, description in self.recent_moves:
                lines.append(f'- "{title}": {description}' if description else f'- "{title}"')
        if self.existing_titles:
            quoted = ", ".join(f'"{t}"' for t in self.existing_titles)
            lines.append(f"Moves that already exist for this goal (do not suggest duplicates): {quoted}.")
        lines.append(
            f"Today's date is {long_date(self.today)}. Any dates or timelines you mention must be "
            f"realistic and in the future relative to today."
        )
        return "\n".join(lines)


def long_date(day: date) -> str:
    return f"{day:%A}, {day:%B} {day.day}, {day:%Y}"


def _goal_line(context: PromptContext) -> str:
    return f'My current goal is: "{context.goal_title}". Description: "{context.goal_description}".'


def new_moves_prompt(context: PromptContext) -> str:
    return "\n\n".join([
        _goal_line(context)
        + " Suggest 3-5 concise, actionable steps (moves) to help achieve this goal."
        " Each move should have a short title (max 10 words) and a brief description (max 30 words).",
        context.render(),
        "Provide the suggestions as a JSON array, where each object has 'title' and 'description' keys.",
    ])


def alternative_moves_prompt(context: PromptContext, excluding_title: Optional[str] = None) -> str:
    exclusion = ""
    if excluding_title:
        exclusion = f' The current move is "{excluding_title}", so please suggest different ones.'
    return "\n\n".join([
        f'For the goal: "{context.goal_title}" (Description: "{context.goal_description}"),'
        f" suggest 3 alternative actionable steps (moves).{exclusion}"
        " Each move should have a short title (max 10 words) and a brief description (max 30 words).",
        context.render(),
        "Provide the suggestions as a JSON array, where each object has 'title' and 'description' keys.",
    ])


def adjust_detail_prompt(context: PromptContext, move, level: DetailLevel) -> str:
    minutes = max(1, round((move.estimated_duration or 0) / 60))
    target = max(1, round(minutes * level.time_multiplier))
    return "\n\n".join([
        _goal_line(context),
        f'Rewrite this move at the "{level.label}" detail level ({level.blurb.lower()}).\n'
        f'Move title: "{move.title}"\n'
        f'Move description: "{move.description or ""}"\n'
        f"Current estimate: {minutes} minutes. As a guide, the {level.label} level usually takes about "
        f"{level.time_multiplier:g}x the baseline, roughly {target} minutes.",
        context.render(),
        "Respond with a JSON object with 'title', 'description' and 'duration' (minutes) keys.",
    ])


def smart_goal_prompt(context: PromptContext) -> str:
    return "\n\n".join([
        f'Rewrite this goal in SMART form.\nGoal title: "{context.goal_title}"\n'
        f'Goal description: "{context.goal_description}"',
        context.render(),
        "Keep the title under 12 words. Respond with a JSON object with 'smartTitle' and 'smartDescription' keys.",
    ])
