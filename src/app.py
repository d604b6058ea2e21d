"""
Flask JSON API for the bracket engine.
"""
import os

from filelock import Timeout
from flask import Flask, request, jsonify

from bracket.errors import InvalidResultError, InvalidStateError, MatchNotFoundError, ValidationError
from bracket.models import Participant
from bracket.service import BracketService
from bracket.storage import YamlMatchStore

app = Flask(__name__)
# Bracket rounds are returned in play order
app.json.sort_keys = False

BASE_DIR = os.path.dirname(os.path.dirname(__file__))
DATA_DIR = os.environ.get('BRACKET_DATA_DIR', os.path.join(BASE_DIR, 'data'))
LOCK_TIMEOUT = float(os.environ.get('BRACKET_LOCK_TIMEOUT', '10'))


def get_service() -> BracketService:
    """Bracket service over the YAML store in DATA_DIR."""
    return BracketService(YamlMatchStore(DATA_DIR, lock_timeout=LOCK_TIMEOUT))


def _error(message: str, status: int):
    return jsonify({'success': False, 'error': message}), status


@app.errorhandler(MatchNotFoundError)
def handle_match_not_found(e):
    return _error(str(e), 404)


@app.errorhandler(ValidationError)
@app.errorhandler(InvalidResultError)
def handle_rejected(e):
    app.logger.info(f'Rejected bracket operation: {e}')
    return _error(str(e), 400)


@app.errorhandler(InvalidStateError)
def handle_invalid_state(e):
    app.logger.error(f'Bracket consistency fault: {e}')
    return _error(str(e), 409)


@app.errorhandler(Timeout)
def handle_lock_timeout(e):
    app.logger.warning(f'Timed out waiting for bracket lock: {e}')
    return _error('Bracket is busy, try again.', 503)


def _parse_participants(data) -> list:
    """Build Participant objects from the request payload."""
    items = data.get('participants') if isinstance(data, dict) else None
    if not isinstance(items, list):
        raise ValidationError('Request body must contain a "participants" list.')
    return [Participant.from_dict(item) for item in items]


@app.route('/api/tournaments/<tournament_id>/bracket', methods=['POST'])
def api_generate_bracket(tournament_id):
    """Generate the single elimination bracket for a tournament."""
    participants = _parse_participants(request.get_json(silent=True))
    matches = get_service().generate_bracket(tournament_id, participants)
    app.logger.info(f'Bracket generated for {tournament_id}: {len(matches)} matches')
    return jsonify({'success': True, 'matches': [m.to_dict() for m in matches]}), 201


@app.route('/api/tournaments/<tournament_id>/bracket', methods=['GET'])
def api_get_bracket(tournament_id):
    return jsonify(get_service().get_bracket(tournament_id))


@app.route('/api/tournaments/<tournament_id>/matches', methods=['GET'])
def api_list_matches(tournament_id):
    matches = get_service().list_matches(tournament_id)
    return jsonify({'matches': [m.to_dict() for m in matches]})


@app.route('/api/matches/<match_id>/start', methods=['POST'])
def api_start_match(match_id):
    match = get_service().start_match(match_id)
    return jsonify({'success': True, 'match': match.to_dict()})


@app.route('/api/matches/<match_id>/result', methods=['POST'])
def api_record_result(match_id):
    """Record a match result and advance the winner."""
    data = request.get_json(silent=True) or {}
    if 'winner_id' not in data:
        raise InvalidResultError('winner_id is required.')
    match, advanced = get_service().record_result(
        match_id, data['winner_id'], data.get('score1'), data.get('score2')
    )
    return jsonify({
        'success': True,
        'match': match.to_dict(),
        'advanced_match': advanced.to_dict() if advanced else None,
    })


if __name__ == '__main__':
    app.run(debug=True)
