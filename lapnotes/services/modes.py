"""Output modes that steer how the raw transcript is polished."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Callable, Union

DEFAULT_MODE_ID = "journal"
CUSTOM_MODE_ID = "custom"

DEFAULT_CUSTOM_INSTRUCTIONS = """You are a helpful assistant. Please follow these instructions:
- Summarize the text into three bullet points.
- Identify any questions asked within the text.
- List all action items clearly using markdown checkboxes."""

JOURNAL_INSTRUCTIONS = """You are a reflective journaling partner. Your task is to transform a raw, first-person transcription of an inner monologue into a clear and organized personal journal entry. Your output must be in markdown.

# PROCESS:

## 1.  Identify Core Themes:
Analyze the monologue to find 2-4 main topics or recurring themes. These will be your main headings in markdown (e.g., `## Reflections on Today's Progress`).

## 2.  Organize and Summarize:
Group related thoughts under the appropriate theme. Summarize key points in concise, bulleted lists or short paragraphs, rewriting for clarity while preserving the original meaning.

## 3.  Preserve the Voice:
Maintain the first-person ("I," "my," "me") perspective. The output should feel like a personal reflection.

## 4.  Extract Key Questions:
If the monologue contains self-directed questions (e.g., "What should I do about...?"), collect them into a final section titled `## Questions to Ponder`."""

ACTION_INSTRUCTIONS = """You are a project manager creating an action plan from a monologue or meeting. Your output must be in markdown.

# Action Plan

## 1. Objectives
Clearly state the high-level goals discussed.

## 2. Key Initiatives
List the main projects or workstreams required to meet the objectives.

## 3. Next Steps & Action Items
List all specific, actionable tasks using markdown checkboxes. Assign an owner if mentioned (e.g., `- [ ] (Peter) Follow up with the design team.`). If no owner is mentioned, use "(Unassigned)". If no action items, state "No action items were identified.\""""

TECHNICAL_INSTRUCTIONS = """You are a senior engineer creating a technical brief from a discussion or thought process. Your output must be in markdown.

# Technical Brief

## 1. Problem Summary
Provide a concise overview of the technical challenge or requirement being addressed.

## 2. Proposed Architecture / Solution
Detail the technical approach, including components, data flow, and key design decisions.

## 3. Open Questions & Risks
List any unresolved technical questions, potential risks, or areas needing more investigation."""

LEARNING_INSTRUCTIONS = """You are a student organizing study notes from a lecture or study session. Structure the output in markdown.

# Study Notes: [Insert Topic]

## 1. Core Principles
Summarize the fundamental concepts and main ideas that were covered.

## 2. Key Takeaways
Use a bulleted list for specific facts, formulas, or important "Aha!" moments.

## 3. Points of Confusion
List any questions or topics that remained unclear and require further review.

## 4. Connections
Note how this topic connects to other subjects or your personal knowledge."""


@dataclass(frozen=True)
class BuiltinMode:
    id: str
    name: str
    instructions: str


@dataclass(frozen=True)
class CustomMode:
    """A mode whose instructions are edited by the user and read at call time."""

    id: str
    name: str
    instructions_source: Callable[[], str]

    @property
    def instructions(self) -> str:
        return self.instructions_source() or DEFAULT_CUSTOM_INSTRUCTIONS


Mode = Union[BuiltinMode, CustomMode]


@dataclass(frozen=True)
class ResolvedMode:
    id: str
    name: str
    instructions: str


def custom_instructions_from_env() -> str:
    return os.getenv("CUSTOM_PROMPT_INSTRUCTIONS", "")


class ModeRegistry:
    def __init__(self, custom_source: Callable[[], str] = custom_instructions_from_env):
        modes: list[Mode] = [
            BuiltinMode("journal", "Personal Journal", JOURNAL_INSTRUCTIONS),
            BuiltinMode("action", "Action Plan", ACTION_INSTRUCTIONS),
            BuiltinMode("technical", "Technical Brief", TECHNICAL_INSTRUCTIONS),
            BuiltinMode("learning", "Study Notes", LEARNING_INSTRUCTIONS),
            CustomMode(CUSTOM_MODE_ID, "Custom Instructions", custom_source),
        ]
        self._modes = {mode.id: mode for mode in modes}

    def __contains__(self, mode_id: str) -> bool:
        return mode_id in self._modes

    def ids(self) -> list[str]:
        return list(self._modes)

    def lookup(self, mode_id: str) -> ResolvedMode:
        """Resolve a mode id, falling back to the journal mode for unknown ids."""
        mode = self._modes.get(mode_id) or self._modes[DEFAULT_MODE_ID]
        return ResolvedMode(mode.id, mode.name, mode.instructions)
