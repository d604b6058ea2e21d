"""
Bracket operations for one match store, serialised per tournament.
"""
import logging
from typing import Dict, List, Optional, Tuple

from bracket import advancement
from bracket.elimination import build_bracket, get_bracket_display
from bracket.errors import MatchNotFoundError, ValidationError
from bracket.models import Match, Participant
from bracket.seeding import eligible_participants, seed
from bracket.storage import MatchStore

logger = logging.getLogger(__name__)


class BracketService:
    def __init__(self, store: MatchStore):
        self.store = store

    def generate_bracket(self, tournament_id, participants: List[Participant]) -> List[Match]:
        """
        Seed the accepted participants and insert the whole bracket.
        A tournament gets exactly one bracket; later requests are rejected.
        """
        accepted = eligible_participants(participants)
        with self.store.lock(tournament_id):
            if self.store.has_matches(tournament_id):
                raise ValidationError(f'Bracket already generated for tournament {tournament_id}')
            slots = seed(accepted)
            matches = self.store.insert_matches(build_bracket(tournament_id, slots))
        logger.info('Generated bracket for tournament %s with %d participants (%d not accepted)',
                    tournament_id, len(accepted), len(participants) - len(accepted))
        return matches

    def _tournament_of(self, match_id):
        match = self.store.get_match(match_id)
        if match is None:
            raise MatchNotFoundError(f'Match {match_id} not found')
        return match.tournament_id

    def record_result(self, match_id, winner_id, score1: int, score2: int) -> Tuple[Match, Optional[Match]]:
        with self.store.lock(self._tournament_of(match_id)):
            return advancement.record_result(self.store, match_id, winner_id, score1, score2)

    def start_match(self, match_id) -> Match:
        with self.store.lock(self._tournament_of(match_id)):
            return advancement.start_match(self.store, match_id)

    def list_matches(self, tournament_id) -> List[Match]:
        return self.store.list_matches(tournament_id)

    def get_bracket(self, tournament_id) -> Dict:
        return get_bracket_display(self.store.list_matches(tournament_id))
