"""Intent parsing for Zhuzh commands.

This module turns chat commands into typed intents with extracted entities
(hours, project and person references, target week, timer notes).

Example usage:
    ```python
    from zhuzh.core.intent import IntentParser, IntentType

    parser = IntentParser()

    result = parser.parse("/zhuzh add 4h to GCN for Ryan next week")
    assert result.intent == IntentType.ADD_HOURS
    assert result.entities["project_query"] == "GCN"
    assert result.entities["week"] == "next"
    ```
"""

from .entities import (
    SELF_WORDS,
    ExtractedEntities,
    is_self_reference,
)
from .parser import (
    COMMAND_ALIASES,
    MAX_INPUT_LENGTH,
    IntentParser,
    create_parser,
)
from .patterns import (
    IntentPatternMatcher,
    PatternMatch,
)
from .taxonomy import (
    IntentResult,
    IntentType,
)

__all__ = [
    # Main parser
    "IntentParser",
    "create_parser",
    "COMMAND_ALIASES",
    "MAX_INPUT_LENGTH",
    # Pattern matching
    "IntentPatternMatcher",
    "PatternMatch",
    # Taxonomy
    "IntentType",
    "IntentResult",
    # Entity extraction
    "ExtractedEntities",
    "SELF_WORDS",
    "is_self_reference",
]
