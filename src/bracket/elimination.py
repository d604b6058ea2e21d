"""
Single elimination bracket generation and read-only bracket queries.
"""
import logging
import math
from typing import Dict, List, Optional

from bracket.errors import InvalidStateError, ValidationError
from bracket.models import Match, MatchStatus
from bracket.seeding import is_power_of_two

logger = logging.getLogger(__name__)


def get_round_name(players_in_round: int) -> str:
    """Get the name of a round based on number of players still in it."""
    if players_in_round == 2:
        return "Final"
    elif players_in_round == 4:
        return "Semifinal"
    elif players_in_round == 8:
        return "Quarterfinal"
    else:
        return f"Round of {players_in_round}"


def build_bracket(tournament_id, seeded_slots: List) -> List[Match]:
    """
    Build every match of a single elimination bracket.

    Round 1 pairs slots (0, 1), (2, 3), ... with concrete players. Every
    later round holds placeholder matches whose source_match1/source_match2
    point at the two previous-round matches feeding player1/player2.
    Match numbers start at 1 and increase round by round, left to right.

    Matches are returned in creation order; the last one is the final.
    Checking that the tournament has no bracket yet is the caller's job.
    """
    num_players = len(seeded_slots)
    if num_players < 2 or not is_power_of_two(num_players):
        raise ValidationError(
            f'Bracket needs a power of two number of slots (2, 4, 8, ...), got {num_players}'
        )
    if any(player_id is None for player_id in seeded_slots):
        raise ValidationError('Every bracket slot must hold a participant')
    if len({str(player_id) for player_id in seeded_slots}) != num_players:
        raise ValidationError('A participant occupies more than one bracket slot')

    total_rounds = int(math.log2(num_players))
    matches = []
    match_number = 1

    # First round with actual seeded players
    previous_round_numbers = []
    for i in range(0, num_players, 2):
        matches.append(Match(
            tournament_id=tournament_id,
            round=1,
            match_number=match_number,
            player1_id=seeded_slots[i],
            player2_id=seeded_slots[i + 1],
            status=MatchStatus.PENDING,
        ))
        previous_round_numbers.append(match_number)
        match_number += 1

    # Subsequent rounds wait for the winners of their source matches
    for round_num in range(2, total_rounds + 1):
        round_numbers = []
        for i in range(0, len(previous_round_numbers), 2):
            matches.append(Match(
                tournament_id=tournament_id,
                round=round_num,
                match_number=match_number,
                source_match1=previous_round_numbers[i],
                source_match2=previous_round_numbers[i + 1],
                status=MatchStatus.PENDING,
            ))
            round_numbers.append(match_number)
            match_number += 1
        previous_round_numbers = round_numbers

    logger.info('Built bracket for tournament %s: %d players, %d rounds, %d matches',
                tournament_id, num_players, total_rounds, len(matches))
    return matches


def group_matches_by_round(matches: List[Match]) -> Dict[int, List[Match]]:
    """Group matches by round number, each round ordered by match number."""
    rounds: Dict[int, List[Match]] = {}
    for match in sorted(matches, key=lambda m: (m.round, m.match_number)):
        rounds.setdefault(match.round, []).append(match)
    return rounds


def find_next_match(matches: List[Match], completed: Match) -> Optional[Match]:
    """The match in the following round fed by completed, or None for the final."""
    candidates = [
        m for m in matches
        if m.round == completed.round + 1
        and completed.match_number in (m.source_match1, m.source_match2)
    ]
    if len(candidates) > 1:
        raise InvalidStateError(
            f'Match {completed.match_number} feeds {len(candidates)} matches in round {completed.round + 1}'
        )
    return candidates[0] if candidates else None


def find_final_match(matches: List[Match]) -> Optional[Match]:
    """The only match whose number no other match uses as a source."""
    referenced = set()
    for match in matches:
        if match.source_match1 is not None:
            referenced.add(match.source_match1)
        if match.source_match2 is not None:
            referenced.add(match.source_match2)

    finals = [m for m in matches if m.match_number not in referenced]
    if len(finals) != 1:
        return None
    return finals[0]


def is_tournament_complete(matches: List[Match]) -> bool:
    """True once every match of the last round is completed."""
    if not matches:
        return False
    final_round = max(m.round for m in matches)
    return all(m.is_completed for m in matches if m.round == final_round)


def get_tournament_winner(matches: List[Match]):
    """
    Winner of the final, or None while it is still open.

    Also None when the matches do not contain exactly one final (no match
    set, or source references that leave several or no unreferenced
    matches); a malformed bracket reports no champion rather than raising.
    """
    final_match = find_final_match(matches)
    if final_match is None or not final_match.is_completed:
        return None
    return final_match.winner_id


def get_bracket_display(matches: List[Match]) -> Dict:
    """
    Get bracket data formatted for UI display.

    Returns dict with:
    - 'rounds': round name -> list of match dicts, in round order
    - 'bracket_size': number of first round players
    - 'total_rounds': number of rounds
    - 'matches_per_round': round name -> match count
    - 'is_complete': whether the final has been scored
    - 'champion': winner of the final, if any
    """
    by_round = group_matches_by_round(matches)
    bracket_size = len(by_round.get(1, [])) * 2

    rounds = {}
    matches_per_round = {}
    for round_num, round_matches in by_round.items():
        players_in_round = bracket_size // (2 ** (round_num - 1)) if bracket_size else 0
        round_name = get_round_name(players_in_round)
        round_list = []
        for match in round_matches:
            match_data = match.to_dict()
            match_data['round_name'] = round_name
            match_data['is_placeholder'] = not match.has_both_players
            match_data['is_playable'] = match.has_both_players and not match.is_completed
            round_list.append(match_data)
        rounds[round_name] = round_list
        matches_per_round[round_name] = len(round_list)

    return {
        'rounds': rounds,
        'bracket_size': bracket_size,
        'total_rounds': len(by_round),
        'matches_per_round': matches_per_round,
        'is_complete': is_tournament_complete(matches),
        'champion': get_tournament_winner(matches),
    }
