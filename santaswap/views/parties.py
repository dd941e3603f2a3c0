from __future__ import annotations

import logging

from flask import Blueprint, current_app, jsonify, request
from flask.views import MethodView

from ..extensions import get_engine, get_store
from ..policies import RateLimitedMixin
from ..services.parties import (
    GuestLinkNotFound,
    GuestNotInParty,
    PartyNotFound,
    assignment_for_guest,
    create_party,
    get_party,
    guest_view,
)
from ..validation import GUEST_NAME_MAX, ValidationError, sanitize_string, validate_party_payload

logger = logging.getLogger(__name__)

api_bp = Blueprint("api", __name__, url_prefix="/api")

GUEST_TOKEN_LENGTH = 36


def _error(message: str, status: int):
    return jsonify(error=message), status


class CreatePartyView(RateLimitedMixin):
    def post(self):
        payload = request.get_json(silent=True)
        try:
            draft = validate_party_payload(payload)
        except ValidationError as e:
            return _error(str(e), 400)

        logger.info("Party creation request: %s (%d guests)", draft.name, len(draft.guests))
        party, guest_urls = create_party(
            get_store(),
            draft,
            base_url=current_app.config["BASE_URL"],
            tz_name=current_app.config["TIMEZONE"],
        )
        return jsonify(partyId=party.id, guestUrls=guest_urls, party=party.to_dict())


class PartyDetailView(MethodView):
    def get(self, party_id: str):
        party = get_party(get_store(), party_id)
        if party is None:
            return _error("Party not found", 404)
        return jsonify(party.to_dict())


class AssignView(RateLimitedMixin):
    def post(self, party_id: str):
        payload = request.get_json(silent=True)
        if not isinstance(payload, dict):
            return _error("Guest name is required", 400)
        raw_name = payload.get("guestName")
        if not raw_name or not isinstance(raw_name, str):
            return _error("Guest name is required", 400)

        guest_name = sanitize_string(raw_name, GUEST_NAME_MAX)
        if not guest_name:
            return _error("Invalid guest name", 400)

        try:
            assignment = assignment_for_guest(get_engine(), get_store(), party_id, guest_name)
        except PartyNotFound:
            return _error("Party not found", 404)
        except GuestNotInParty:
            return _error("Guest not found in party", 400)
        return jsonify(assignment=assignment)


class GuestAssignmentView(RateLimitedMixin):
    def get(self, token: str):
        if len(token) != GUEST_TOKEN_LENGTH:
            return _error("Invalid guest ID", 400)

        try:
            view = guest_view(get_engine(), get_store(), token)
        except GuestLinkNotFound:
            return _error("Guest link not found", 404)
        except PartyNotFound:
            return _error("Party not found", 404)
        return jsonify(view)


# Register routes
api_bp.add_url_rule("/parties", view_func=CreatePartyView.as_view("create_party"), methods=["POST"])
api_bp.add_url_rule("/parties/<party_id>", view_func=PartyDetailView.as_view("party_detail"))
api_bp.add_url_rule("/parties/<party_id>/assign", view_func=AssignView.as_view("assign"), methods=["POST"])
api_bp.add_url_rule("/guest/<token>/assignment", view_func=GuestAssignmentView.as_view("guest_assignment"))
