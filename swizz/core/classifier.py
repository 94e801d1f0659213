"""Heuristic speaker classification: live person or automated system.

A transcript counts as human only when it contains more distinct human
greeting phrases than distinct IVR/hold phrases, and at least one. Phrases
match anywhere in the lowercased text, so "hi" also counts inside "this".
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class SpeakerClass(str, Enum):
    """Who produced a transcript."""

    HUMAN = "human"
    AUTOMATED = "automated"


HUMAN_INDICATORS: tuple[str, ...] = (
    "hello",
    "hi",
    "how can i help",
    "speaking",
    "this is",
    "my name is",
    "what can i do for you",
    "how may i assist",
    "good morning",
    "good afternoon",
)

AUTOMATED_INDICATORS: tuple[str, ...] = (
    "press",
    "dial",
    "enter",
    "menu",
    "option",
    "please hold",
    "your call is important",
    "estimated wait time",
    "all representatives are busy",
    "thank you for calling",
)


@dataclass(frozen=True, slots=True)
class SpeakerScore:
    """Distinct indicator phrases found in a transcript."""

    human: int
    automated: int

    @property
    def speaker(self) -> SpeakerClass:
        if self.human > 0 and self.human > self.automated:
            return SpeakerClass.HUMAN
        return SpeakerClass.AUTOMATED


def score(transcript: str) -> SpeakerScore:
    text = " ".join(transcript.lower().split())
    return SpeakerScore(
        human=sum(1 for phrase in HUMAN_INDICATORS if phrase in text),
        automated=sum(1 for phrase in AUTOMATED_INDICATORS if phrase in text),
    )


def classify(transcript: str) -> SpeakerClass:
    """Classify a transcript. Empty or ambiguous text is automated."""
    return score(transcript).speaker
