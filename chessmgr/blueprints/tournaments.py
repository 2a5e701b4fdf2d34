"""Tournament management API."""
from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_login import current_user

from chessmgr.auth import login_required_json
from chessmgr.blueprints.serializers import serialize_match, serialize_tournament
from chessmgr.services.audit import log_admin_action
from chessmgr.services.pairing import generate_round
from chessmgr.services.standings import compute_standings
from chessmgr.services.tournament import TournamentService, count_inscriptions, ensure_can_manage

tournaments_bp = Blueprint('tournaments', __name__)


# ============= Queries =============

@tournaments_bp.route('', methods=['GET'])
def list_tournaments():
    """List tournaments, optionally filtered by ``?status=``."""
    tournaments = TournamentService.list_tournaments(status=request.args.get('status'))
    return jsonify([
        serialize_tournament(t, count_inscriptions(t.id)) for t in tournaments
    ])


@tournaments_bp.route('/upcoming', methods=['GET'])
def list_upcoming():
    return jsonify([
        serialize_tournament(t, count_inscriptions(t.id)) for t in TournamentService.list_upcoming()
    ])


@tournaments_bp.route('/<tournament_id>', methods=['GET'])
def get_tournament(tournament_id):
    tournament = TournamentService.get_tournament(tournament_id)
    return jsonify(serialize_tournament(tournament, count_inscriptions(tournament.id)))


@tournaments_bp.route('/<tournament_id>/standings', methods=['GET'])
def standings(tournament_id):
    rows = compute_standings(tournament_id)
    return jsonify([row.to_dict() for row in rows])


@tournaments_bp.route('/<tournament_id>/deletion-info', methods=['GET'])
@login_required_json
def deletion_info(tournament_id):
    return jsonify(TournamentService.get_deletion_info(tournament_id))


# ============= Mutations =============

@tournaments_bp.route('', methods=['POST'])
@login_required_json
def create_tournament():
    data = request.get_json(silent=True) or {}
    tournament = TournamentService.create_tournament(
        name=data.get('name', ''),
        start_date=data.get('start_date'),
        end_date=data.get('end_date'),
        location=data.get('location'),
        description=data.get('description'),
        registration_deadline=data.get('registration_deadline'),
        max_participants=data.get('max_participants'),
        tournament_format=data.get('tournament_format'),
        total_rounds=data.get('total_rounds'),
        creator=current_user,
    )

    log_admin_action(
        user=current_user,
        action='create',
        entity_type='tournament',
        entity_id=tournament.id,
        metadata={'name': tournament.name, 'format': tournament.tournament_format.value},
    )

    return jsonify(serialize_tournament(tournament, 0)), 201


@tournaments_bp.route('/<tournament_id>', methods=['PUT', 'PATCH'])
@login_required_json
def update_tournament(tournament_id):
    data = request.get_json(silent=True) or {}
    tournament = TournamentService.update_tournament(tournament_id, data, actor=current_user)

    log_admin_action(
        user=current_user,
        action='update',
        entity_type='tournament',
        entity_id=tournament.id,
        metadata={'fields': sorted(data)},
    )

    return jsonify(serialize_tournament(tournament, count_inscriptions(tournament.id)))


@tournaments_bp.route('/<tournament_id>/status', methods=['PATCH', 'POST'])
@login_required_json
def update_status(tournament_id):
    data = request.get_json(silent=True) or {}
    status = data.get('status')
    if not status:
        return jsonify({'error': 'Status is required'}), 400

    previous = TournamentService.get_tournament(tournament_id).status
    tournament = TournamentService.update_tournament_status(tournament_id, status, actor=current_user)

    log_admin_action(
        user=current_user,
        action='status_change',
        entity_type='tournament',
        entity_id=tournament.id,
        metadata={'from': previous.value, 'to': tournament.status.value},
    )

    return jsonify(serialize_tournament(tournament, count_inscriptions(tournament.id)))


@tournaments_bp.route('/<tournament_id>/start', methods=['POST'])
@login_required_json
def start_tournament(tournament_id):
    tournament = TournamentService.start_tournament(tournament_id, actor=current_user)
    log_admin_action(user=current_user, action='start', entity_type='tournament', entity_id=tournament.id)
    return jsonify(serialize_tournament(tournament, count_inscriptions(tournament.id)))


@tournaments_bp.route('/<tournament_id>/finish', methods=['POST'])
@login_required_json
def finish_tournament(tournament_id):
    tournament = TournamentService.finish_tournament(tournament_id, actor=current_user)
    log_admin_action(user=current_user, action='finish', entity_type='tournament', entity_id=tournament.id)
    return jsonify(serialize_tournament(tournament, count_inscriptions(tournament.id)))


@tournaments_bp.route('/<tournament_id>/cancel', methods=['POST'])
@login_required_json
def cancel_tournament(tournament_id):
    tournament = TournamentService.cancel_tournament(tournament_id, actor=current_user)
    log_admin_action(user=current_user, action='cancel', entity_type='tournament', entity_id=tournament.id)
    return jsonify(serialize_tournament(tournament, count_inscriptions(tournament.id)))


@tournaments_bp.route('/<tournament_id>/generate-matches', methods=['POST'])
@login_required_json
def generate_matches(tournament_id):
    """Pair the next Swiss round."""
    tournament = TournamentService.get_tournament(tournament_id)
    ensure_can_manage(current_user, tournament)

    matches = generate_round(tournament_id)
    round_number = matches[0].round if matches else None

    log_admin_action(
        user=current_user,
        action='round_generated',
        entity_type='tournament',
        entity_id=tournament_id,
        metadata={'round': round_number, 'matches': len(matches)},
    )

    return jsonify({
        'round': round_number,
        'matches': [serialize_match(m) for m in matches],
    }), 201


@tournaments_bp.route('/<tournament_id>', methods=['DELETE'])
@login_required_json
def delete_tournament(tournament_id):
    TournamentService.delete_tournament(tournament_id, actor=current_user)
    log_admin_action(user=current_user, action='delete', entity_type='tournament', entity_id=tournament_id)
    return jsonify({'message': 'Tournament deleted'})
