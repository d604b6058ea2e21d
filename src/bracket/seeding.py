"""
Seeding for single elimination brackets.

Seed rank comes from registration time: the earliest registrant is seed 1.
This is a placement rule, not a skill rating; registration order is the
only ranking signal available to the engine.
"""
import logging
from typing import Dict, List

from bracket.errors import ValidationError
from bracket.models import Participant

logger = logging.getLogger(__name__)


def is_power_of_two(n: int) -> bool:
    return n > 0 and (n & (n - 1)) == 0


def eligible_participants(participants: List[Participant]) -> List[Participant]:
    """Keep only participants whose registration was accepted."""
    return [p for p in participants if p.eligible]


def rank_participants(participants: List[Participant]) -> List[Participant]:
    """
    Order participants by seed: earliest registration first.
    Equal timestamps fall back to the participant id so the order never
    depends on input order.
    """
    return sorted(participants, key=lambda p: (p.registered_at_datetime, str(p.id)))


def bracket_order(bracket_size: int) -> List[int]:
    """
    Generate the standard tournament bracket order as 0-based seed indices,
    one per slot.

    For 8 slots: [0, 7, 3, 4, 1, 6, 2, 5]
    i.e. seeds 1v8, 4v5, 2v7, 3v6, so seeds 1 and 2 can only meet in the
    final and seeds 1-4 only from the semifinal onward.
    """
    if bracket_size == 1:
        return [0]

    half_size = bracket_size // 2
    upper_half = bracket_order(half_size)

    # Pair each seed with its complement in the doubled bracket
    result = []
    for seed in upper_half:
        result.extend([seed, bracket_size - 1 - seed])

    return result


def validate_field_size(num_participants: int):
    if num_participants < 2:
        raise ValidationError(
            f'Need at least 2 accepted participants for a bracket, got {num_participants}'
        )
    if not is_power_of_two(num_participants):
        raise ValidationError(
            f'Number of accepted participants must be a power of two (2, 4, 8, 16, ...), '
            f'got {num_participants}'
        )


def seed(participants: List[Participant]) -> List:
    """
    Assign participants to bracket slots.

    The caller passes eligible participants only. Returns a list of
    participant ids of the same length, indexed by slot, where slots
    (0, 1), (2, 3), ... become the first round pairings.

    Raises ValidationError for fewer than 2 participants, a count that is
    not a power of two, an ineligible participant or a duplicated id.
    """
    ineligible = [p.id for p in participants if not p.eligible]
    if ineligible:
        raise ValidationError(f'Participants not accepted for bracket placement: {ineligible}')

    seen: Dict[str, Participant] = {}
    for participant in participants:
        key = str(participant.id)
        if key in seen:
            raise ValidationError(f'Participant {participant.id} appears more than once')
        seen[key] = participant

    validate_field_size(len(participants))

    ranked = rank_participants(participants)
    slots = [ranked[seed_index].id for seed_index in bracket_order(len(ranked))]

    logger.debug('Seeded %d participants into slots %s', len(slots), slots)
    return slots
