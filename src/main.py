# Command line entry point for generating brackets and recording results

import argparse
import os
import sys

import yaml
from filelock import Timeout

from bracket.errors import BracketError, ValidationError
from bracket.models import Participant
from bracket.service import BracketService
from bracket.storage import YamlMatchStore


def load_participants(file_path):
    with open(file_path, mode='r', encoding='utf-8') as file:
        data = yaml.safe_load(file) or []
    if isinstance(data, dict):
        data = data.get('participants', [])
    if not isinstance(data, list):
        raise ValidationError(f'{file_path} must hold a list of participants')
    return [Participant.from_dict(item) for item in data]


def print_bracket(bracket):
    if not bracket['rounds']:
        print("No bracket generated.")
        return
    for round_name, matches in bracket['rounds'].items():
        print(f"\n# {round_name}")
        for match in matches:
            player1 = match['player1_id'] if match['player1_id'] is not None else f"Winner M{match['source_match1']}"
            player2 = match['player2_id'] if match['player2_id'] is not None else f"Winner M{match['source_match2']}"
            line = f"  M{match['match_number']}: {player1} vs {player2} [{match['status']}]"
            if match['winner_id'] is not None:
                line += f" winner {match['winner_id']} ({match['score1']}-{match['score2']})"
            print(line)
    if bracket['champion'] is not None:
        print(f"\nChampion: {bracket['champion']}")


def build_parser():
    script_dir = os.path.dirname(__file__)
    default_data_dir = os.environ.get('BRACKET_DATA_DIR', os.path.join(os.path.dirname(script_dir), 'data'))

    parser = argparse.ArgumentParser(description='Single elimination bracket engine')
    parser.add_argument('--data-dir', default=default_data_dir, help='Directory holding match YAML files')
    subparsers = parser.add_subparsers(dest='command', required=True)

    generate = subparsers.add_parser('generate', help='Seed participants and create the bracket')
    generate.add_argument('tournament_id')
    generate.add_argument('participants_file', help='YAML list of {id, registered_at, status}')

    show = subparsers.add_parser('show', help='Print the bracket of a tournament')
    show.add_argument('tournament_id')

    start = subparsers.add_parser('start', help='Mark a ready match as in progress')
    start.add_argument('match_id')

    result = subparsers.add_parser('result', help='Record a result and advance the winner')
    result.add_argument('match_id')
    result.add_argument('winner_id')
    result.add_argument('score1', type=int)
    result.add_argument('score2', type=int)

    return parser


def _match_player_id(service, match_id, winner_arg):
    """Winner ids arrive as strings on the command line; match the stored type."""
    match = service.store.get_match(match_id)
    if match is not None:
        for player_id in (match.player1_id, match.player2_id):
            if player_id is not None and str(player_id) == winner_arg:
                return player_id
    return winner_arg


def main(argv=None):
    args = build_parser().parse_args(argv)
    service = BracketService(YamlMatchStore(args.data_dir))

    try:
        if args.command == 'generate':
            matches = service.generate_bracket(args.tournament_id, load_participants(args.participants_file))
            print(f"Generated {len(matches)} matches for tournament {args.tournament_id}")
            print_bracket(service.get_bracket(args.tournament_id))
        elif args.command == 'show':
            print_bracket(service.get_bracket(args.tournament_id))
        elif args.command == 'start':
            match = service.start_match(args.match_id)
            print(f"Match M{match.match_number} is now {match.status}")
        elif args.command == 'result':
            winner_id = _match_player_id(service, args.match_id, args.winner_id)
            match, advanced = service.record_result(args.match_id, winner_id, args.score1, args.score2)
            print(f"Match M{match.match_number} completed, winner {match.winner_id}")
            if advanced is not None:
                print(f"{match.winner_id} advances to M{advanced.match_number}")
            else:
                print(f"{match.winner_id} wins the tournament")
    except (BracketError, Timeout) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
