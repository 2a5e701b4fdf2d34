"""Tournament registration API."""
from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_login import current_user

from chessmgr.auth import login_required_json
from chessmgr.blueprints.serializers import serialize_inscription
from chessmgr.services.audit import log_admin_action
from chessmgr.services.inscription import InscriptionService

inscriptions_bp = Blueprint('inscriptions', __name__)


@inscriptions_bp.route('/<inscription_id>', methods=['GET'])
def get_inscription(inscription_id):
    return jsonify(serialize_inscription(InscriptionService.get_inscription(inscription_id)))


@inscriptions_bp.route('/tournament/<tournament_id>', methods=['GET'])
def list_by_tournament(tournament_id):
    inscriptions = InscriptionService.list_by_tournament(tournament_id)
    return jsonify([serialize_inscription(i) for i in inscriptions])


@inscriptions_bp.route('/user/<user_id>', methods=['GET'])
def list_by_user(user_id):
    inscriptions = InscriptionService.list_by_user(user_id)
    return jsonify([serialize_inscription(i) for i in inscriptions])


@inscriptions_bp.route('', methods=['POST'])
@login_required_json
def create_inscription():
    """Register in a tournament; defaults to the signed-in user."""
    data = request.get_json(silent=True) or {}
    tournament_id = data.get('tournament_id')
    if not tournament_id:
        return jsonify({'error': 'tournament_id is required'}), 400
    user_id = data.get('user_id') or current_user.id

    inscription = InscriptionService.create_inscription(user_id, tournament_id, actor=current_user)

    log_admin_action(
        user=current_user,
        action='register',
        entity_type='inscription',
        entity_id=inscription.id,
        metadata={'tournament_id': tournament_id, 'user_id': user_id},
    )

    return jsonify(serialize_inscription(inscription)), 201


@inscriptions_bp.route('/cancel', methods=['POST', 'DELETE'])
@login_required_json
def cancel_inscription():
    data = request.get_json(silent=True) or {}
    tournament_id = data.get('tournament_id')
    if not tournament_id:
        return jsonify({'error': 'tournament_id is required'}), 400
    user_id = data.get('user_id') or current_user.id

    InscriptionService.cancel_inscription(user_id, tournament_id, actor=current_user)

    log_admin_action(
        user=current_user,
        action='cancel',
        entity_type='inscription',
        metadata={'tournament_id': tournament_id, 'user_id': user_id},
    )

    return jsonify({'message': 'Registration cancelled'})


@inscriptions_bp.route('/<inscription_id>', methods=['DELETE'])
@login_required_json
def delete_inscription(inscription_id):
    InscriptionService.delete_inscription(inscription_id, actor=current_user)
    log_admin_action(user=current_user, action='delete', entity_type='inscription', entity_id=inscription_id)
    return jsonify({'message': 'Registration removed'})
