"""Core modules for the Zhuzh conversational assistant."""

from .assistant import Assistant, create_assistant
from .conversation import (
    ConversationKey,
    ConversationStore,
    ExpirySweeper,
    InMemoryConversationStore,
    JsonConversationStore,
    Presentation,
)
from .errors import (
    InvalidInputError,
    NotFoundError,
    PermissionDeniedError,
    PersistenceError,
    ZhuzhError,
)
from .matching import PERSON_WEIGHTS, PROJECT_WEIGHTS, EntityMatcher, ScoringWeights
from .models import (
    CallerIdentity,
    EntityKind,
    EntityRef,
    MatchCandidate,
    Person,
    Project,
    Reply,
    Role,
)
from .resolver import DisambiguationResolver, Resolution, ResolutionStatus

__all__ = [
    # Facade
    "Assistant",
    "create_assistant",
    # Conversation state
    "ConversationKey",
    "ConversationStore",
    "ExpirySweeper",
    "InMemoryConversationStore",
    "JsonConversationStore",
    "Presentation",
    # Errors
    "InvalidInputError",
    "NotFoundError",
    "PermissionDeniedError",
    "PersistenceError",
    "ZhuzhError",
    # Matching
    "DisambiguationResolver",
    "EntityMatcher",
    "PERSON_WEIGHTS",
    "PROJECT_WEIGHTS",
    "Resolution",
    "ResolutionStatus",
    "ScoringWeights",
    # Models
    "CallerIdentity",
    "EntityKind",
    "EntityRef",
    "MatchCandidate",
    "Person",
    "Project",
    "Reply",
    "Role",
]
