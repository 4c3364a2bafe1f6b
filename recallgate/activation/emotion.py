"""Emotion vocabulary and keyword heuristics for the `emotion` condition."""

import re
from typing import Iterable

from recallgate.conversation.snapshot import Message

# Labels produced by the host's expression classifier
VALID_EMOTIONS = (
    "admiration", "amusement", "anger", "annoyance", "approval", "caring",
    "confusion", "curiosity", "desire", "disappointment", "disapproval",
    "disgust", "embarrassment", "excitement", "fear", "gratitude", "grief",
    "joy", "love", "nervousness", "neutral", "optimism", "pride",
    "realization", "relief", "remorse", "sadness", "surprise",
)

# Keyword heuristics; emotions without an entry are only detectable via expressions
EMOTION_PATTERNS: dict[str, list[str]] = {
    "amusement": [r"\b(ha){2,}\b", r"\blol\b", r"\blaugh(s|ed|ing)?\b", r"\bgiggl(e|es|ed|ing)\b"],
    "anger": [r"\bangr(y|ily)\b", r"\bfurious\b", r"\brage\b", r"\bglar(e|es|ed|ing)\b", r"\bsnarl(s|ed)?\b"],
    "annoyance": [r"\bannoy(ed|ing|s)?\b", r"\birritat(ed|ing)\b", r"\bsigh(s|ed)?\b"],
    "caring": [r"\bcomfort(s|ed|ing)?\b", r"\bgently\b", r"\breassur(e|es|ed|ing)\b"],
    "confusion": [r"\bconfus(ed|ing)\b", r"\bpuzzled\b", r"\bwhat do you mean\b"],
    "curiosity": [r"\bcurious\b", r"\bwonder(s|ed|ing)?\b", r"\btell me more\b"],
    "disgust": [r"\bdisgust(ed|ing)?\b", r"\bgross\b", r"\brevolting\b"],
    "embarrassment": [r"\bblush(es|ed|ing)?\b", r"\bembarrass(ed|ing)\b"],
    "excitement": [r"\bexcit(ed|ing)\b", r"\bthrilled\b", r"!{2,}"],
    "fear": [r"\bafraid\b", r"\bscared\b", r"\bterrified\b", r"\btrembl(e|es|ed|ing)\b", r"\bfear\b"],
    "gratitude": [r"\bthank(s| you)\b", r"\bgrateful\b"],
    "grief": [r"\bmourn(s|ed|ing)?\b", r"\bgriev(e|es|ed|ing)\b"],
    "joy": [r"\bhappy\b", r"\bjoy(ful)?\b", r"\bsmil(e|es|ed|ing)\b", r"\bdelighted\b"],
    "love": [r"\blove(s|d)?\b", r"\badore(s|d)?\b"],
    "nervousness": [r"\bnervous(ly)?\b", r"\banxious(ly)?\b", r"\bfidget(s|ed|ing)?\b"],
    "relief": [r"\brelie(f|ved)\b", r"\bphew\b"],
    "remorse": [r"\bsorry\b", r"\bapologi(ze|zes|zed|se|ses|sed)\b", r"\bregret(s|ted)?\b"],
    "sadness": [r"\bsad(ly|ness)?\b", r"\bcr(y|ies|ied|ying)\b", r"\btears?\b", r"\bsob(s|bed|bing)?\b"],
    "surprise": [r"\bsurpris(e|ed|ing)\b", r"\bgasp(s|ed)?\b", r"\bwow\b", r"\bshock(ed)?\b"],
}

_COMPILED = {
    emotion: [re.compile(p, re.IGNORECASE) for p in patterns]
    for emotion, patterns in EMOTION_PATTERNS.items()
}


def detect_emotions(messages: Iterable[Message]) -> set[str]:
    """Return every emotion whose keyword heuristics fire in the given messages."""
    found: set[str] = set()
    for message in messages:
        if not message.text:
            continue
        for emotion, patterns in _COMPILED.items():
            if emotion not in found and any(p.search(message.text) for p in patterns):
                found.add(emotion)
    return found


def normalize_emotion(label: str | None) -> str | None:
    """Lowercase a classifier label; None for blank or missing."""
    if not label or not str(label).strip():
        return None
    return str(label).strip().lower()
