"""
Recording match results and advancing winners through the bracket.

The pure functions here work on copies and never mutate their arguments.
The store-backed operations read what they need through a MatchStore,
validate everything first and then write the scored match and the
downstream match in a single update, so a rejected call leaves no partial
change behind.

Writers must be serialised per tournament (BracketService does this with
MatchStore.lock); a filled downstream slot is only detected, not prevented.
"""
import copy
import logging
from typing import Optional, Tuple

from bracket.errors import InvalidResultError, InvalidStateError, MatchNotFoundError, ValidationError
from bracket.models import Match, MatchStatus
from bracket.storage import MatchStore

logger = logging.getLogger(__name__)


def _validate_score(value, name):
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidResultError(f'{name} must be an integer, got {value!r}')
    if value < 0:
        raise InvalidResultError(f'{name} cannot be negative, got {value}')


def apply_result(match: Match, winner_id, score1: int, score2: int) -> Match:
    """Return a completed copy of match with winner and scores set."""
    if match.is_completed:
        raise InvalidResultError(f'Match {match.match_number} is already completed')
    if not match.has_both_players:
        raise InvalidResultError(f'Match {match.match_number} does not have two players assigned yet')
    if winner_id is None or winner_id not in (match.player1_id, match.player2_id):
        raise InvalidResultError(f'Winner {winner_id} is not a player in match {match.match_number}')
    _validate_score(score1, 'score1')
    _validate_score(score2, 'score2')

    scored = copy.copy(match)
    scored.score1 = score1
    scored.score2 = score2
    scored.winner_id = winner_id
    scored.status = MatchStatus.COMPLETED
    return scored


def place_winner(next_match: Match, completed: Match) -> Match:
    """
    Return a copy of next_match with the winner of completed in the slot it
    feeds. Status is left as it is.
    """
    if completed.winner_id is None:
        raise InvalidStateError(f'Match {completed.match_number} has no winner to advance')

    advanced = copy.copy(next_match)
    if next_match.source_match1 == completed.match_number:
        slot = 'player1_id'
    elif next_match.source_match2 == completed.match_number:
        slot = 'player2_id'
    else:
        raise InvalidStateError(
            f'Match {next_match.match_number} is not fed by match {completed.match_number}'
        )

    current = getattr(advanced, slot)
    if current is not None:
        logger.error('Advancement conflict: match %s %s already holds %s, refusing to overwrite with %s '
                     'from match %s', next_match.match_number, slot, current, completed.winner_id,
                     completed.match_number)
        raise InvalidStateError(
            f'Match {next_match.match_number} {slot} is already filled by {current}'
        )

    setattr(advanced, slot, completed.winner_id)
    return advanced


def _load_match(store: MatchStore, match_id) -> Match:
    match = store.get_match(match_id)
    if match is None:
        raise MatchNotFoundError(f'Match {match_id} not found')
    return match


def record_result(store: MatchStore, match_id, winner_id, score1: int,
                  score2: int) -> Tuple[Match, Optional[Match]]:
    """
    Score a match and advance its winner.

    Returns (updated_match, advanced_match); advanced_match is None when the
    scored match was the final.
    """
    match = _load_match(store, match_id)
    scored = apply_result(match, winner_id, score1, score2)

    next_match = store.find_match_by_source(match.tournament_id, match.round + 1, match.match_number)
    advanced = place_winner(next_match, scored) if next_match is not None else None

    changed = [scored] if advanced is None else [scored, advanced]
    store.update_matches(changed)

    logger.info('Recorded result for match %s (tournament %s): winner %s, %s-%s',
                scored.match_number, scored.tournament_id, winner_id, score1, score2)
    if advanced is not None:
        logger.debug('Advanced %s into match %s', winner_id, advanced.match_number)
    else:
        logger.info('Match %s was the final of tournament %s', scored.match_number, scored.tournament_id)
    return scored, advanced


def advance_winner(store: MatchStore, match_id) -> Optional[Match]:
    """
    Push the winner of an already completed match into its downstream match.

    record_result does this itself; calling it again for the same match
    raises InvalidStateError because the slot is already filled.
    """
    match = _load_match(store, match_id)
    if not match.is_completed:
        raise InvalidResultError(f'Match {match.match_number} has no result to advance')

    next_match = store.find_match_by_source(match.tournament_id, match.round + 1, match.match_number)
    if next_match is None:
        return None

    advanced = place_winner(next_match, match)
    store.update_matches([advanced])
    return advanced


def start_match(store: MatchStore, match_id) -> Match:
    """Move a ready match from pending to in_progress."""
    match = _load_match(store, match_id)
    if match.status != MatchStatus.PENDING:
        raise ValidationError(f'Match {match.match_number} cannot start from status {match.status}')
    if not match.has_both_players:
        raise ValidationError(f'Match {match.match_number} does not have two players assigned yet')

    started = copy.copy(match)
    started.status = MatchStatus.IN_PROGRESS
    store.update_matches([started])
    logger.info('Match %s of tournament %s started', started.match_number, started.tournament_id)
    return started
