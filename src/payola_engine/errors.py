"""Exceptions raised by the engine."""


class PayolaError(Exception):
    """Base class for all engine errors."""


# Configuration errors: caller/setup bugs, never retried


class ConfigurationError(PayolaError, ValueError):
    """Bad game configuration."""


class UnsupportedMapSize(ConfigurationError):
    """Requested edge count is not one of the allowed map sizes."""


class InvalidPlayerCount(ConfigurationError):
    """Player count does not fit the chosen mode/variant."""


class UnknownVariant(ConfigurationError):
    """No rule record for this mode/variant."""


class UnmappedLetter(ConfigurationError):
    """A pattern letter has no player assigned."""


class MissingNPC(UnmappedLetter):
    """Pattern uses the NPC letter, but the game has no NPC."""


# Validation errors: state unchanged, safe to retry with corrected input


class RuleViolation(PayolaError, ValueError):
    """Action rejected by the game rules."""


class PhaseClosed(RuleViolation):
    """Action is not accepted in the current phase."""


class DuplicateBid(RuleViolation):
    """Player already bid in this bidding round."""


class NotEligibleToBid(RuleViolation):
    """Player may not bid in this bidding round."""


class UnknownSong(RuleViolation):
    """Song is not available in this game."""


class InsufficientFunds(RuleViolation):
    """Bid exceeds the player's spendable resources."""


class CardNotAvailable(RuleViolation):
    """Card selection references cards the player does not hold."""


class AmountMismatch(RuleViolation):
    """Selected cards do not add up to the bid amount."""


class TooManyCards(RuleViolation):
    """Card selection exceeds this round's card cap."""


class InvalidBribe(RuleViolation):
    """Sole briber must bid zero or the exact overtaking amount."""


class TurnMismatch(RuleViolation):
    """It is not this player's turn."""


class EdgeNotHighlighted(RuleViolation):
    """Edge is not in this round's highlighted set."""


class EdgeOccupied(RuleViolation):
    """Edge already carries a token."""


class InvalidToken(RuleViolation):
    """Token type not allowed for this player."""


class UnknownPlayer(RuleViolation):
    """Player is not part of this game."""


class DuplicatePlayer(RuleViolation):
    """Player id already taken."""


class LobbyFull(RuleViolation):
    """No more seats in the lobby."""


class UnknownAction(RuleViolation):
    """Unknown advance keyword."""


# Data integrity errors: fatal for the request


class DataIntegrityError(PayolaError, RuntimeError):
    """Persisted data is malformed or inconsistent."""


class InvalidEdgeId(DataIntegrityError, ValueError):
    """Malformed edge id string."""


class MissingPrecursorState(DataIntegrityError):
    """State required at a phase boundary is absent."""


class InsufficientEdges(DataIntegrityError):
    """Fewer free edges than requested."""


# Storage


class GameNotFound(PayolaError, KeyError):
    """No game with this id."""


class ConcurrentModification(PayolaError):
    """Stored game changed since it was loaded."""


class DuplicateGame(PayolaError):
    """A game with this id already exists."""
