from datetime import datetime, timezone

from bracket.errors import ValidationError


class MatchStatus:
    PENDING = 'pending'
    IN_PROGRESS = 'in_progress'
    COMPLETED = 'completed'

    ALL = (PENDING, IN_PROGRESS, COMPLETED)


class Participant:
    def __init__(self, id, registered_at, status='accepted'):
        self.id = id
        self.registered_at = registered_at  # datetime or ISO-8601 string
        self.status = status

    @property
    def eligible(self):
        return self.status == 'accepted'

    @property
    def registered_at_datetime(self):
        """Registration time as an aware datetime; naive values are taken as UTC."""
        if isinstance(self.registered_at, datetime):
            moment = self.registered_at
        else:
            text = str(self.registered_at).strip()
            if text.endswith('Z'):
                text = text[:-1] + '+00:00'
            moment = datetime.fromisoformat(text)
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        return moment

    @classmethod
    def from_dict(cls, data):
        """Build a participant, raising ValidationError for a malformed entry."""
        if not isinstance(data, dict) or data.get('id') is None or not data.get('registered_at'):
            raise ValidationError('Each participant needs "id" and "registered_at".')
        participant = cls(
            id=data['id'],
            registered_at=data['registered_at'],
            status=data.get('status', 'accepted'),
        )
        try:
            participant.registered_at_datetime
        except (TypeError, ValueError):
            raise ValidationError(
                f'Invalid registered_at for participant {data["id"]}: {data["registered_at"]}'
            )
        return participant

    def __repr__(self):
        return f"Participant(id={self.id}, registered_at={self.registered_at}, status={self.status})"


class Match:
    FIELDS = (
        'id', 'tournament_id', 'round', 'match_number',
        'player1_id', 'player2_id', 'source_match1', 'source_match2',
        'winner_id', 'status', 'score1', 'score2',
    )

    def __init__(self, tournament_id, round, match_number, player1_id=None, player2_id=None,
                 source_match1=None, source_match2=None, winner_id=None,
                 status=MatchStatus.PENDING, score1=None, score2=None, id=None):
        self.id = id  # Assigned by the store on insert
        self.tournament_id = tournament_id
        self.round = round
        self.match_number = match_number
        self.player1_id = player1_id
        self.player2_id = player2_id
        self.source_match1 = source_match1
        self.source_match2 = source_match2
        self.winner_id = winner_id
        self.status = status
        self.score1 = score1
        self.score2 = score2

    @property
    def has_both_players(self):
        return self.player1_id is not None and self.player2_id is not None

    @property
    def is_ready(self):
        return self.has_both_players and self.status == MatchStatus.PENDING

    @property
    def is_completed(self):
        return self.status == MatchStatus.COMPLETED

    def to_dict(self):
        return {field: getattr(self, field) for field in self.FIELDS}

    @classmethod
    def from_dict(cls, data):
        return cls(**{field: data.get(field) for field in cls.FIELDS if field in data})

    def __eq__(self, other):
        if not isinstance(other, Match):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self):
        return (f"Match(id={self.id}, round={self.round}, match_number={self.match_number}, "
                f"players=({self.player1_id}, {self.player2_id}), "
                f"sources=({self.source_match1}, {self.source_match2}), "
                f"status={self.status}, winner={self.winner_id})")
