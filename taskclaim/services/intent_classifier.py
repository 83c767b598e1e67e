"""Rule-based classification of replies to a claim request."""

import re
from enum import Enum
from typing import FrozenSet, List, Tuple


class Intent(str, Enum):
    ACCEPT = "accept"
    DECLINE = "decline"
    UNKNOWN = "unknown"


ACCEPT_PHRASES: FrozenSet[str] = frozenset({
    "yes", "yeah", "yep", "yup", "sure", "ok", "okay", "absolutely", "definitely",
    "on it", "i'm on it", "im on it",
    "i'll take it", "ill take it", "i will take it", "i can take it",
    "i'll do it", "ill do it", "i will do it", "i can do it",
    "i'll own it", "i'll claim it", "claim it", "mine",
    "will do", "sounds good", "happy to", "count me in", "assign it to me",
    "no problem", "no worries",
})

DECLINE_PHRASES: FrozenSet[str] = frozenset({
    "no", "nope", "nah", "pass", "i'll pass", "ill pass",
    "can't", "cant", "cannot", "can not", "won't", "wont",
    "not me", "not mine", "not now", "not right now", "no thanks", "no thank you", "decline",
    "not available", "unavailable", "too busy", "i'm busy", "im busy",
    "unable", "not able", "no capacity", "someone else",
})

# Hedges win over any accept/decline hit
UNCERTAIN_PHRASES: FrozenSet[str] = frozenset({
    "not sure", "unsure", "maybe", "perhaps", "possibly",
    "don't know", "dont know", "let me check", "i'll check", "later",
})

# An accept phrase preceded by one of these within NEGATION_WINDOW words
# counts as a decline ("not happy to", "don't assign it to me")
NEGATORS: FrozenSet[str] = frozenset({
    "not", "don't", "dont", "never", "isn't", "isnt", "wasn't", "wasnt",
    "doesn't", "doesnt", "wouldn't", "wouldnt", "shouldn't", "shouldnt",
})
NEGATION_WINDOW = 2

# Accepting idioms built from decline words; removed before decline matching
DECLINE_EXEMPT_IDIOMS: Tuple[Tuple[str, ...], ...] = (("no", "problem"), ("no", "worries"))

# Negator + word pairs that do not negate what follows ("don't mind, I'll do it")
NEGATION_EXEMPT_FOLLOWERS: FrozenSet[str] = frozenset({"mind", "worry"})

_APOSTROPHES = str.maketrans({"’": "'", "‘": "'", "`": "'"})
_STRIP = re.compile(r"[^a-z0-9' ]+")


def normalize(text: str) -> str:
    """Casefold, unify apostrophes, drop punctuation and collapse whitespace."""
    lowered = (text or "").casefold().translate(_APOSTROPHES)
    words = (word.strip("'") for word in _STRIP.sub(" ", lowered).split())
    return " ".join(word for word in words if word)


def _phrase_starts(words: Tuple[str, ...], phrases: FrozenSet[str]) -> List[int]:
    """Word offsets at which any of ``phrases`` occurs."""
    starts = []
    for phrase in phrases:
        target = tuple(phrase.split())
        size = len(target)
        for start in range(len(words) - size + 1):
            if words[start:start + size] == target:
                starts.append(start)
    return starts


def _negated(words: Tuple[str, ...], start: int, window: int) -> bool:
    for i in range(max(0, start - window), start):
        if words[i + 1] in NEGATION_EXEMPT_FOLLOWERS:
            continue
        if words[i] in NEGATORS:
            return True
        if words[i] == "longer" and i > 0 and words[i - 1] == "no":
            return True
    return False


def _without_idioms(words: Tuple[str, ...]) -> Tuple[str, ...]:
    kept = []
    i = 0
    while i < len(words):
        for idiom in DECLINE_EXEMPT_IDIOMS:
            if words[i:i + len(idiom)] == idiom:
                i += len(idiom)
                break
        else:
            kept.append(words[i])
            i += 1
    return tuple(kept)


def classify(text: str) -> Intent:
    """
    Classify a free-text reply as ACCEPT, DECLINE or UNKNOWN.

    Phrases match on whole words. An accept phrase shortly after a negator
    ("not happy to") is a decline; a decline phrase right after one
    ("not too busy") is ambiguous. A reply hitting both sets, or containing
    a hedge such as "not sure", is UNKNOWN.
    """
    words = tuple(normalize(text).split())
    if not words:
        return Intent.UNKNOWN
    if _phrase_starts(words, UNCERTAIN_PHRASES):
        return Intent.UNKNOWN

    accepts = negated_accepts = False
    for start in _phrase_starts(words, ACCEPT_PHRASES):
        if _negated(words, start, NEGATION_WINDOW):
            negated_accepts = True
        else:
            accepts = True

    decline_words = _without_idioms(words)
    declines = negated_accepts
    for start in _phrase_starts(decline_words, DECLINE_PHRASES):
        if _negated(decline_words, start, 1):
            return Intent.UNKNOWN
        declines = True

    if accepts and not declines:
        return Intent.ACCEPT
    if declines and not accepts:
        return Intent.DECLINE
    return Intent.UNKNOWN
