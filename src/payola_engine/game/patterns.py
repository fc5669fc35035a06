"""Turn orders from the fixed letter patterns."""

from random import Random
from typing import Sequence

from payola_engine.data.models import NPC_LETTER, PLAYER_LETTERS, Song, VariantRules
from payola_engine.errors import MissingNPC, UnmappedLetter

NPC_PLAYER_ID = "NPC"
"""Reserved id of the synthetic NPC participant."""

LetterMapping = dict[str, str]


def random_letter_mapping(
    player_ids: Sequence[str],
    rng: Random,
    *,
    npc_id: str | None = None,
) -> LetterMapping:
    """Random bijection from pattern letters to players.

    Letters are taken in order and zipped against a shuffled player list.
    """
    if len(player_ids) > len(PLAYER_LETTERS):
        raise UnmappedLetter(f"Too many players for the pattern letters: {len(player_ids)}")
    shuffled = list(player_ids)
    rng.shuffle(shuffled)
    mapping = dict(zip(PLAYER_LETTERS, shuffled))
    if npc_id is not None:
        mapping[NPC_LETTER] = npc_id
    return mapping


def materialize(pattern: str, mapping: LetterMapping) -> list[str]:
    """Turn a pattern string into a sequence of player ids."""
    res: list[str] = []
    for letter in pattern:
        try:
            res.append(mapping[letter])
        except KeyError as ke:
            if letter == NPC_LETTER:
                raise MissingNPC(f"Pattern {pattern!r} needs an NPC, none exists") from ke
            raise UnmappedLetter(f"No player for letter {letter!r} in {pattern!r}") from ke
    return res


def materialize_turn_orders(
    rules: VariantRules, mapping: LetterMapping
) -> dict[Song, list[str]]:
    """Concrete turn order for every song of a variant."""
    return {song: materialize(pat, mapping) for song, pat in rules.songs.items()}


def build_turn_orders(
    rules: VariantRules,
    player_ids: Sequence[str],
    rng: Random,
) -> dict[Song, list[str]]:
    """Fresh random mapping, applied to all songs."""
    npc_id = NPC_PLAYER_ID if rules.has_npc else None
    mapping = random_letter_mapping(player_ids, rng, npc_id=npc_id)
    return materialize_turn_orders(rules, mapping)


def turns_per_player(turn_order: Sequence[str]) -> dict[str, int]:
    """How many placements each player gets from a turn order."""
    res: dict[str, int] = {}
    for pid in turn_order:
        res[pid] = res.get(pid, 0) + 1
    return res
