"""Intent parsing orchestrator for Zhuzh commands.

Parsing has two stages:
1. Command bypass - empty input and help words go straight to help
2. Pattern matching - ordered regexes, first match wins

Anything that matches no pattern falls back to UNKNOWN, which the interpreter
answers with a short "didn't understand" hint.
"""

from __future__ import annotations

import logging
import re

from .patterns import IntentPatternMatcher
from .taxonomy import IntentResult

logger = logging.getLogger(__name__)

# Security: Maximum input length to prevent regex abuse
MAX_INPUT_LENGTH = 10_000

# Optional slash-command prefix, as typed in chat or the CLI
COMMAND_PREFIX = re.compile(r"^/?zhuzh\b\s*", re.IGNORECASE)

# Curly quotes some clients substitute for apostrophes
APOSTROPHES = str.maketrans({"‘": "'", "’": "'", "ʼ": "'"})

# Single-word commands that show help
COMMAND_ALIASES: dict[str, str] = {
    "help": "help",
    "?": "help",
    "commands": "help",
}


class IntentParser:
    """Classify command text into an IntentResult.

    Attributes:
        pattern_matcher: Ordered regex classifier
    """

    def __init__(self) -> None:
        self.pattern_matcher = IntentPatternMatcher()

    def normalize(self, text: str) -> str:
        """Strip the command prefix, straighten apostrophes, collapse whitespace."""
        text = text.strip()

        # Security: truncate excessively long input
        if len(text) > MAX_INPUT_LENGTH:
            logger.warning(f"Input truncated from {len(text)} to {MAX_INPUT_LENGTH} chars")
            text = text[:MAX_INPUT_LENGTH]

        text = COMMAND_PREFIX.sub("", text, count=1)
        text = text.translate(APOSTROPHES)
        text = " ".join(text.split())
        return text.rstrip("?!. ")

    def parse(self, text: str) -> IntentResult:
        """Parse command text.

        Args:
            text: Raw command text, with or without a leading "/zhuzh"

        Returns:
            IntentResult with the detected intent and entities
        """
        text = self.normalize(text)

        # Stage 1: Command bypass
        if not text or text.lower() in COMMAND_ALIASES:
            return IntentResult.help(text)

        # Stage 2: Pattern matching
        match = self.pattern_matcher.match(text)
        if match is not None:
            logger.debug(f"Parsed {text!r} as {match.intent.value}")
            return self.pattern_matcher.to_intent_result(match, text)

        logger.debug(f"No intent matched {text!r}")
        return IntentResult.unknown(text)


def create_parser() -> IntentParser:
    """Factory function to create an IntentParser."""
    return IntentParser()


__all__ = ["COMMAND_ALIASES", "IntentParser", "MAX_INPUT_LENGTH", "create_parser"]
