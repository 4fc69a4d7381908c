"""Round lifecycle and match resolution client for tournament brackets."""

from .api import BracketApi
from .config import ClientConfig, read_client_config
from .errors import (
    BracketError,
    Conflict,
    Forbidden,
    InvalidArgument,
    InvariantViolation,
    NetworkFailure,
    NotFound,
    PreconditionFailed,
    StaleTarget,
    TournamentCompleted,
    Unauthorized,
)
from .models import (
    Match,
    Player,
    Round,
    RoundSnapshot,
    SessionRecord,
    Tournament,
    TournamentCompletion,
)
from .players import PlayerDirectoryCache
from .progression import Intent, Phase, RoundView, TournamentProgressionGate
from .registration import TournamentRegistry
from .resolution import MatchResolutionService
from .rounds import RoundLifecycleController
from .session import SessionStore

__all__ = [
    "BracketApi",
    "BracketError",
    "ClientConfig",
    "Conflict",
    "Forbidden",
    "Intent",
    "InvalidArgument",
    "InvariantViolation",
    "Match",
    "MatchResolutionService",
    "NetworkFailure",
    "NotFound",
    "Phase",
    "Player",
    "PlayerDirectoryCache",
    "PreconditionFailed",
    "Round",
    "RoundLifecycleController",
    "RoundSnapshot",
    "RoundView",
    "SessionRecord",
    "SessionStore",
    "StaleTarget",
    "Tournament",
    "TournamentCompleted",
    "TournamentCompletion",
    "TournamentProgressionGate",
    "TournamentRegistry",
    "Unauthorized",
    "read_client_config",
]
