"""
Tests for BracketService: generation guard, full tournaments and
serialised writes.
"""
import pytest
import sys
import os
import threading

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from bracket.errors import InvalidResultError, MatchNotFoundError, ValidationError
from bracket.models import MatchStatus
from bracket.service import BracketService
from conftest import make_participants


def _by_number(matches):
    return {m.match_number: m for m in matches}


class TestGenerateBracket:
    """Tests for generate_bracket()."""

    def test_generate_four(self, service, four_participants):
        matches = _by_number(service.generate_bracket('t1', four_participants))
        assert (matches[1].player1_id, matches[1].player2_id) == ('A', 'D')
        assert (matches[2].player1_id, matches[2].player2_id) == ('B', 'C')
        assert (matches[3].source_match1, matches[3].source_match2) == (1, 2)
        assert matches[3].player1_id is None and matches[3].player2_id is None
        assert all(m.id for m in matches.values())

    def test_generate_twice_rejected(self, service, memory_store, four_participants):
        """A second generation fails and leaves the first bracket alone."""
        service.generate_bracket('t1', four_participants)
        with pytest.raises(ValidationError):
            service.generate_bracket('t1', four_participants)
        assert len(memory_store.list_matches('t1')) == 3

    def test_pending_participants_excluded(self, service):
        """Only accepted participants are seeded."""
        participants = make_participants(['A', 'B']) + make_participants(['X', 'Y'], status='pending')
        matches = service.generate_bracket('t1', participants)
        assert len(matches) == 1
        assert {matches[0].player1_id, matches[0].player2_id} == {'A', 'B'}

    def test_non_power_of_two_rejected(self, service, memory_store):
        with pytest.raises(ValidationError):
            service.generate_bracket('t1', make_participants(['A', 'B', 'C']))
        assert not memory_store.has_matches('t1')

    def test_too_few_accepted_rejected(self, service):
        participants = make_participants(['A']) + make_participants(['B'], status='rejected')
        with pytest.raises(ValidationError):
            service.generate_bracket('t1', participants)

    def test_tournaments_are_independent(self, service, four_participants):
        service.generate_bracket('t1', four_participants)
        service.generate_bracket('t2', four_participants)
        assert len(service.list_matches('t2')) == 3

    @pytest.mark.slow
    def test_concurrent_generation_creates_one_bracket(self, service, memory_store, eight_participants):
        errors = []

        def generate():
            try:
                service.generate_bracket('t1', eight_participants)
            except ValidationError as e:
                errors.append(e)

        threads = [threading.Thread(target=generate) for _ in range(6)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(errors) == 5
        assert len(memory_store.list_matches('t1')) == 7


class TestTournamentFlow:
    """End to end tournaments through the service."""

    def test_four_player_tournament(self, service, four_participants):
        matches = _by_number(service.generate_bracket('t1', four_participants))

        _, advanced = service.record_result(matches[1].id, 'A', 3, 0)
        assert advanced.player1_id == 'A'
        _, advanced = service.record_result(matches[2].id, 'B', 3, 2)
        assert advanced.player2_id == 'B'

        service.start_match(matches[3].id)
        final, advanced = service.record_result(matches[3].id, 'B', 1, 3)
        assert advanced is None
        assert final.winner_id == 'B'

        bracket = service.get_bracket('t1')
        assert bracket['is_complete'] is True
        assert bracket['champion'] == 'B'

    def test_eight_player_chalk(self, service, eight_participants):
        """Top seeds winning every match puts P1 and P2 in the final."""
        seed_rank = {f'P{i}': i for i in range(1, 9)}
        service.generate_bracket('t1', eight_participants)

        for round_num in (1, 2, 3):
            for match in service.list_matches('t1'):
                if match.round != round_num:
                    continue
                winner = min(match.player1_id, match.player2_id, key=seed_rank.get)
                service.record_result(match.id, winner, 2, 0)
            if round_num == 2:
                final = _by_number(service.list_matches('t1'))[7]
                assert (final.player1_id, final.player2_id) == ('P1', 'P2')

        assert service.get_bracket('t1')['champion'] == 'P1'

    def test_unknown_match(self, service):
        with pytest.raises(MatchNotFoundError):
            service.record_result('missing', 'A', 1, 0)
        with pytest.raises(MatchNotFoundError):
            service.start_match('missing')

    def test_rescoring_rejected(self, service, four_participants):
        matches = _by_number(service.generate_bracket('t1', four_participants))
        service.record_result(matches[1].id, 'A', 3, 0)
        with pytest.raises(InvalidResultError):
            service.record_result(matches[1].id, 'D', 0, 3)

    @pytest.mark.slow
    def test_sibling_results_recorded_concurrently(self, service, memory_store, eight_participants):
        """Siblings finishing at once both reach the shared downstream match."""
        matches = _by_number(service.generate_bracket('t1', eight_participants))
        barrier = threading.Barrier(4)

        def finish(match):
            barrier.wait()
            service.record_result(match.id, match.player1_id, 1, 0)

        threads = [threading.Thread(target=finish, args=(matches[n],)) for n in (1, 2, 3, 4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        semis = _by_number(memory_store.list_matches('t1'))
        assert (semis[5].player1_id, semis[5].player2_id) == ('P1', 'P4')
        assert (semis[6].player1_id, semis[6].player2_id) == ('P2', 'P3')
        assert all(semis[n].status == MatchStatus.COMPLETED for n in (1, 2, 3, 4))


class TestYamlBackedService:
    """The same flow over the YAML store."""

    def test_four_player_tournament_on_disk(self, yaml_store, four_participants):
        service = BracketService(yaml_store)
        matches = _by_number(service.generate_bracket('cup', four_participants))
        service.record_result(matches[1].id, 'D', 1, 2)
        service.record_result(matches[2].id, 'C', 0, 2)

        final = _by_number(yaml_store.list_matches('cup'))[3]
        assert (final.player1_id, final.player2_id) == ('D', 'C')

        with pytest.raises(ValidationError):
            service.generate_bracket('cup', four_participants)
