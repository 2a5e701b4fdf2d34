"""Match API: listings, manual scheduling, result reporting."""
from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_login import current_user

from chessmgr.auth import login_required_json
from chessmgr.blueprints.serializers import serialize_match
from chessmgr.services.audit import log_admin_action
from chessmgr.services.match import MatchService

matches_bp = Blueprint('matches', __name__)


@matches_bp.route('', methods=['GET'])
def list_matches():
    return jsonify([serialize_match(m) for m in MatchService.list_matches()])


@matches_bp.route('/ongoing', methods=['GET'])
def list_ongoing():
    return jsonify([serialize_match(m) for m in MatchService.list_ongoing()])


@matches_bp.route('/<match_id>', methods=['GET'])
def get_match(match_id):
    return jsonify(serialize_match(MatchService.get_match(match_id)))


@matches_bp.route('/tournament/<tournament_id>', methods=['GET'])
def list_by_tournament(tournament_id):
    return jsonify([serialize_match(m) for m in MatchService.list_by_tournament(tournament_id)])


@matches_bp.route('/tournament/<tournament_id>/round/<int(signed=True):round_number>', methods=['GET'])
def list_by_round(tournament_id, round_number):
    matches = MatchService.list_by_round(tournament_id, round_number)
    return jsonify([serialize_match(m) for m in matches])


@matches_bp.route('/player/<player_id>', methods=['GET'])
def list_by_player(player_id):
    return jsonify([serialize_match(m) for m in MatchService.list_by_player(player_id)])


@matches_bp.route('', methods=['POST'])
@login_required_json
def create_match():
    data = request.get_json(silent=True) or {}
    tournament_id = data.get('tournament_id')
    white_player_id = data.get('white_player_id')
    black_player_id = data.get('black_player_id')
    if not tournament_id or not white_player_id or not black_player_id:
        return jsonify({'error': 'tournament_id, white_player_id and black_player_id are required'}), 400

    round_number = data.get('round')
    if round_number is not None:
        try:
            round_number = int(round_number)
        except (TypeError, ValueError):
            return jsonify({'error': 'Round must be a whole number'}), 400

    match = MatchService.create_match(
        tournament_id,
        white_player_id,
        black_player_id,
        round_number=round_number,
        actor=current_user,
    )

    log_admin_action(
        user=current_user,
        action='create',
        entity_type='match',
        entity_id=match.id,
        metadata={'tournament_id': tournament_id, 'round': match.round},
    )

    return jsonify(serialize_match(match)), 201


@matches_bp.route('/<match_id>/start', methods=['PATCH', 'POST'])
@login_required_json
def start_match(match_id):
    match = MatchService.start_match(match_id, actor=current_user)
    log_admin_action(user=current_user, action='start', entity_type='match', entity_id=match.id)
    return jsonify(serialize_match(match))


@matches_bp.route('/<match_id>/result', methods=['PATCH', 'PUT'])
@login_required_json
def update_result(match_id):
    data = request.get_json(silent=True) or {}
    result = data.get('result')
    if not result:
        return jsonify({'error': 'Result is required'}), 400

    match = MatchService.update_match_result(match_id, result, actor=current_user)

    log_admin_action(
        user=current_user,
        action='result',
        entity_type='match',
        entity_id=match.id,
        metadata={'result': match.result.value},
    )

    return jsonify(serialize_match(match))


@matches_bp.route('/<match_id>', methods=['DELETE'])
@login_required_json
def delete_match(match_id):
    MatchService.delete_match(match_id, actor=current_user)
    log_admin_action(user=current_user, action='delete', entity_type='match', entity_id=match_id)
    return jsonify({'message': 'Match deleted'})
