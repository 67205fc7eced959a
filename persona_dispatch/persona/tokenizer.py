# persona_dispatch/persona/tokenizer.py
"""
Message tokenization rules used by the persona router.

Mentions:
    An ``@`` followed by one or more ASCII word characters (letters, digits,
    underscore), either at the very start of the message or immediately after
    a whitespace character. Only the first such token counts.

Intent tokens:
    The message is lower-cased and split on every run of characters outside
    ``[a-z0-9]``. Tokens shorter than ``min_length`` are dropped, so
    "what's" yields "what" and the dangling "s" disappears.

Phrases:
    Every surviving token (unigram) plus every pair of adjacent surviving
    tokens joined by one space (bigram). Bigrams are formed after filtering,
    so "burn a rate" still produces "burn rate". Repeated phrases are kept
    and score once per occurrence, matching the token count used for
    normalization.
"""

import re
from typing import List, NamedTuple, Optional

MENTION_PATTERN = re.compile(r"(?:^|\s)@(\w+)", re.ASCII)
TOKEN_SPLIT_PATTERN = re.compile(r"[^a-z0-9]+")


class Mention(NamedTuple):
    slug: str
    start: int
    end: int


def find_mention(message: str) -> Optional[Mention]:
    """Returns the first @mention in the message, slug lower-cased.

    ``start``/``end`` span the whole match including the whitespace character
    preceding the ``@`` (if any).
    """
    match = MENTION_PATTERN.search(message)
    if not match:
        return None
    return Mention(slug=match.group(1).lower(), start=match.start(), end=match.end())


def strip_mention(message: str, mention: Mention) -> str:
    """Removes the mention from the message; falls back to the original if nothing is left."""
    stripped = (message[: mention.start] + message[mention.end :]).strip()
    return stripped or message


def tokenize(message: str, min_length: int = 3) -> List[str]:
    return [
        token
        for token in TOKEN_SPLIT_PATTERN.split(message.lower())
        if len(token) >= min_length
    ]


def build_phrases(tokens: List[str]) -> List[str]:
    phrases = list(tokens)
    phrases.extend(f"{a} {b}" for a, b in zip(tokens, tokens[1:]))
    return phrases
