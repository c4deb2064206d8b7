import json
import logging
import re
from typing import Optional

from google import genai
from google.genai import types

from models import Briefing, PlanResult

logger = logging.getLogger(__name__)


def _repair_truncated_json(raw: str) -> str:
    """
    Best-effort repair for JSON that was cut off mid-stream by a token limit.
    Drops a dangling key/value, then closes every open string, array and
    object in LIFO order.
    """
    text = raw.strip()
    text = re.sub(r',\s*"[^"]*$', '', text)           # dangling key-value pair
    text = re.sub(r'"[^"]*$', '"…"', text)             # dangling string value

    stack = []
    in_string = False
    escape_next = False
    for ch in text:
        if escape_next:
            escape_next = False
            continue
        if ch == '\\' and in_string:
            escape_next = True
            continue
        if ch == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if ch in ('{', '['):
            stack.append('}' if ch == '{' else ']')
        elif ch in ('}', ']') and stack and stack[-1] == ch:
            stack.pop()

    return text.rstrip(', \n\r\t') + ''.join(reversed(stack))


def plan_digest(plan: PlanResult) -> dict:
    """The slice of a plan the model needs; keeps prompts small."""
    def rows(kind):
        return [
            {"title": b.title, "time": f"{b.start}-{b.end}"}
            for b in plan.blocks if b.kind == kind
        ]

    return {
        "date": plan.date.isoformat(),
        "total_blocks": len(plan.blocks),
        "tasks": rows("task"),
        "habits": rows("habit"),
        "gym": rows("gym"),
        "fixed_events": [
            {"title": b.title, "time": f"{b.start}-{b.end}"}
            for b in plan.blocks if b.kind not in ("task", "habit", "gym")
        ],
        "unscheduled": [u.title for u in plan.unscheduled],
        "stats": plan.stats.model_dump(),
    }


class BriefingGenerator:
    """
    Optional morning briefing on top of a finished plan.

    The planner never depends on it: with no API key, or when the model call
    or its output fails, `generate` returns None and the plan stands alone.
    """

    SYSTEM_PROMPT = """You are a friendly productivity assistant. Generate a concise, motivating morning briefing.

Given the user's schedule, create a brief personalized summary. Be encouraging but practical.

Rules:
1. Keep each field to 1-2 sentences max.
2. Be specific about the user's actual tasks.
3. Use a warm, supportive tone.
4. Focus on the most important items.

Output ONLY valid JSON matching the Briefing schema."""

    def __init__(self, api_key: Optional[str] = None, model: str = "gemini-2.5-flash", client=None):
        self.model = model
        if client is not None:
            self.client = client
        elif api_key:
            self.client = genai.Client(api_key=api_key)
        else:
            self.client = None

    @property
    def available(self) -> bool:
        return self.client is not None

    def generate(self, plan: PlanResult, current_time: str = "07:00") -> Optional[Briefing]:
        if self.client is None:
            return None

        user_prompt = f"""
## Today's schedule
{json.dumps(plan_digest(plan), indent=2)}

Current time: {current_time}

Write the briefing now."""

        try:
            response = self.client.models.generate_content(
                model=self.model,
                contents=user_prompt,
                config=types.GenerateContentConfig(
                    system_instruction=self.SYSTEM_PROMPT,
                    response_mime_type="application/json",
                    response_schema=Briefing,
                    temperature=0.7,
                    max_output_tokens=1024,
                ),
            )
        except Exception as exc:   # network / quota / auth: the briefing is optional
            logger.warning("briefing generation failed: %s", exc)
            return None

        if response.parsed is not None:
            return response.parsed
        return self._parse_text(response.text or "")

    @staticmethod
    def _parse_text(raw_text: str) -> Optional[Briefing]:
        if not raw_text:
            logger.warning("briefing model returned an empty response")
            return None
        for candidate in (raw_text, _repair_truncated_json(raw_text)):
            try:
                return Briefing.model_validate_json(candidate)
            except ValueError:
                continue
        logger.warning("briefing response could not be parsed: %s", raw_text[:200])
        return None
