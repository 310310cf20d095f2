"""Scripted generation service for pipeline tests."""

from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from beatweaver.models import Beat
from beatweaver.providers import GenerationOptions, GenerationResponse


@dataclass
class RecordedCall:
    system_prompt: str
    user_prompt: str
    options: GenerationOptions


Reply = str | dict[str, Any] | Exception | Callable[[RecordedCall], str]


@dataclass
class ScriptedGeneration:
    """GenerationService double answering per stage from a script.

    Each stage maps to a list of replies consumed in order; the last reply
    repeats. A reply is JSON-dumped when it is a dict, raised when it is
    an exception, and called with the recorded call when callable.
    """

    script: dict[str, list[Reply]] = field(default_factory=dict)
    calls: list[RecordedCall] = field(default_factory=list)

    async def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        options: GenerationOptions,
    ) -> GenerationResponse:
        call = RecordedCall(system_prompt, user_prompt, options)
        self.calls.append(call)
        replies = self.script.get(options.stage)
        if not replies:
            raise AssertionError(f"No scripted reply for stage {options.stage!r}")
        reply = replies.pop(0) if len(replies) > 1 else replies[0]
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            reply = reply(call)
        if isinstance(reply, dict):
            reply = json.dumps(reply)
        return GenerationResponse(content=reply, model="scripted")

    def stages(self) -> list[str]:
        return [call.options.stage for call in self.calls]

    def calls_for(self, stage: str) -> list[RecordedCall]:
        return [call for call in self.calls if call.options.stage == stage]


def beat_dict(number: int, **overrides: Any) -> dict[str, Any]:
    """Raw beat payload as a generator would send it."""
    beat: dict[str, Any] = {
        "beat_number": number,
        "type": "rising_action",
        "summary": f"Beat {number} happens",
        "characters": ["Mara Vell", "Tomas"],
        "location": "Village Square",
        "mood": "tense",
    }
    beat.update(overrides)
    return beat


def make_beat(number: int, **overrides: Any) -> Beat:
    return Beat.model_validate(beat_dict(number, **overrides))


def clean_continuity(summary: str = "No problems found") -> dict[str, Any]:
    return {"issues": [], "is_valid": True, "summary": summary}
