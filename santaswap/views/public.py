from __future__ import annotations

from flask import Blueprint, jsonify
from flask.views import MethodView

from ..extensions import get_store
from ..storage import Collection


public_bp = Blueprint("public", __name__)


class HealthView(MethodView):
    def get(self):
        return jsonify(status="ok", parties=get_store().count(Collection.PARTIES))


public_bp.add_url_rule("/", view_func=HealthView.as_view("health"))
