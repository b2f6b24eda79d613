from __future__ import annotations

from flask import Blueprint, jsonify, request

from erp_obras.application.registry_service import RegistryService
from erp_obras.db import get_db
from erp_obras.routes.common import _int_arg, _json_payload, _respond, _workspace


registry_bp = Blueprint("registry", __name__)

_REGISTRY_SERVICE = RegistryService()


@registry_bp.route("/api/projects", methods=["GET", "POST"])
def projects_api():
    db = get_db()
    if request.method == "GET":
        result = _REGISTRY_SERVICE.list_projects(db, workspace_id=_workspace())
        return jsonify(result.payload), result.status_code

    result = _REGISTRY_SERVICE.create_project(db, workspace_id=_workspace(), payload=_json_payload())
    db.commit()
    return _respond(result, "project_saved")


@registry_bp.route("/api/projects/<string:project_id>", methods=["GET", "PATCH"])
def project_api(project_id: str):
    db = get_db()
    if request.method == "GET":
        result = _REGISTRY_SERVICE.project_detail(db, workspace_id=_workspace(), project_id=project_id)
        return jsonify(result.payload), result.status_code

    result = _REGISTRY_SERVICE.update_project(
        db,
        workspace_id=_workspace(),
        project_id=project_id,
        payload=_json_payload(),
    )
    db.commit()
    return _respond(result, "project_saved")


@registry_bp.route("/api/suppliers", methods=["GET", "POST"])
def suppliers_api():
    db = get_db()
    if request.method == "GET":
        result = _REGISTRY_SERVICE.list_suppliers(
            db,
            workspace_id=_workspace(),
            search=request.args.get("search"),
            category=request.args.get("category"),
            sort_key=(request.args.get("sort") or "name").strip(),
            sort_direction=(request.args.get("direction") or "asc").strip(),
            page=_int_arg("page", 1),
            per_page=_int_arg("per_page", 25),
        )
        return jsonify(result.payload), result.status_code

    result = _REGISTRY_SERVICE.create_supplier(db, workspace_id=_workspace(), payload=_json_payload())
    db.commit()
    return _respond(result, "supplier_saved")


@registry_bp.route("/api/suppliers/<string:supplier_id>", methods=["GET", "PATCH"])
def supplier_api(supplier_id: str):
    db = get_db()
    if request.method == "GET":
        result = _REGISTRY_SERVICE.supplier_detail(db, workspace_id=_workspace(), supplier_id=supplier_id)
        return jsonify(result.payload), result.status_code

    result = _REGISTRY_SERVICE.update_supplier(
        db,
        workspace_id=_workspace(),
        supplier_id=supplier_id,
        payload=_json_payload(),
    )
    db.commit()
    return _respond(result, "supplier_saved")


@registry_bp.route("/api/materials", methods=["GET", "POST"])
def materials_api():
    db = get_db()
    if request.method == "GET":
        result = _REGISTRY_SERVICE.list_materials(db, workspace_id=_workspace(), search=request.args.get("search"))
        return jsonify(result.payload), result.status_code

    result = _REGISTRY_SERVICE.create_material(db, workspace_id=_workspace(), payload=_json_payload())
    db.commit()
    return _respond(result, "material_saved")


@registry_bp.route("/api/materials/<string:material_id>", methods=["PATCH"])
def material_api(material_id: str):
    db = get_db()
    result = _REGISTRY_SERVICE.update_material(
        db,
        workspace_id=_workspace(),
        material_id=material_id,
        payload=_json_payload(),
    )
    db.commit()
    return _respond(result, "material_saved")


@registry_bp.route("/api/clients", methods=["GET"])
def clients_api():
    result = _REGISTRY_SERVICE.list_clients(get_db(), workspace_id=_workspace())
    return jsonify(result.payload), result.status_code


@registry_bp.route("/api/clients/<string:client_id>", methods=["GET"])
def client_api(client_id: str):
    result = _REGISTRY_SERVICE.client_detail(get_db(), workspace_id=_workspace(), client_id=client_id)
    return jsonify(result.payload), result.status_code
