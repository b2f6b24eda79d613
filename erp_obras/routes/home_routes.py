from flask import Blueprint, jsonify, request

from erp_obras.application.registry_service import RegistryService
from erp_obras.classification import classify_material
from erp_obras.db import get_db
from erp_obras.errors import ValidationError
from erp_obras.procurement.critical_actions import CRITICAL_ACTIONS
from erp_obras.routes.common import _critical_confirmation_details, _workspace
from erp_obras.ui_strings import frontend_bundle


home_bp = Blueprint("home", __name__)

_REGISTRY_SERVICE = RegistryService()


@home_bp.route("/api/meta/ui")
def ui_meta():
    bundle = frontend_bundle()
    bundle["critical_actions"] = {key: _critical_confirmation_details(key) for key in CRITICAL_ACTIONS}
    bundle["workspace_id"] = _workspace()
    return jsonify(bundle)


@home_bp.route("/api/dashboard")
def dashboard():
    result = _REGISTRY_SERVICE.dashboard(get_db(), workspace_id=_workspace())
    return jsonify(result.payload), result.status_code


@home_bp.route("/api/materials/classify", methods=["POST"])
def classify():
    payload = request.get_json(silent=True) or {}
    name = str(payload.get("name") or "").strip()
    if not name:
        raise ValidationError(code="name_required", message_key="name_required")
    return jsonify(classify_material(name).to_dict())
