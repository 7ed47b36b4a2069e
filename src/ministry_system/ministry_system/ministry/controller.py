from __future__ import annotations

import logging
from functools import wraps

from flask import Flask, jsonify, request

from ..container import Container
from ..core.constants import OVERRIDABLE_FIELDS
from ..core.exceptions import CorrectionWriteError, ValidationError

logger = logging.getLogger(__name__)


def register(app: Flask, container: Container) -> None:
    def json_errors(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            try:
                return view(*args, **kwargs)
            except ValidationError as e:
                return jsonify({"success": False, "message": str(e)}), 400
            except CorrectionWriteError as e:
                logger.warning("Correction write failed: %s", e)
                return jsonify({"success": False, "message": str(e)}), 502

        return wrapper

    @app.route("/api/ministries/<ministry_name>/aggregate", methods=["GET"], endpoint="ministry_aggregate")
    @json_errors
    def ministry_aggregate(ministry_name: str):
        aggregate = container.sync_service.snapshot(
            ministry_name,
            current_tenant_id=request.args.get("current_tenant_id") or None,
            home_tenant_id=request.args.get("home_tenant_id") or None,
        )
        return jsonify({"success": True, "ministry": ministry_name, **aggregate.to_dict()})

    @app.route("/api/ministries/<ministry_tenant_id>/exclusions", methods=["POST"], endpoint="ministry_exclude")
    @json_errors
    def ministry_exclude(ministry_tenant_id: str):
        data = request.get_json(silent=True) or {}
        container.corrections_service.remove_member_from_ministry(
            ministry_tenant_id=ministry_tenant_id,
            source_tenant_id=str(data.get("source_tenant_id", "")),
            member_id=str(data.get("member_id", "")),
        )
        return jsonify({"success": True}), 201

    @app.route(
        "/api/ministries/<ministry_tenant_id>/exclusions/<source_tenant_id>/<member_id>",
        methods=["DELETE"],
        endpoint="ministry_include",
    )
    @json_errors
    def ministry_include(ministry_tenant_id: str, source_tenant_id: str, member_id: str):
        removed = container.corrections_service.include_member(
            ministry_tenant_id=ministry_tenant_id, source_tenant_id=source_tenant_id, member_id=member_id
        )
        return jsonify({"success": True, "removed": removed})

    @app.route(
        "/api/ministries/<ministry_tenant_id>/overrides/<source_tenant_id>/<member_id>",
        methods=["PUT"],
        endpoint="ministry_set_override",
    )
    @json_errors
    def ministry_set_override(ministry_tenant_id: str, source_tenant_id: str, member_id: str):
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise ValidationError("Request body must be a JSON object")
        fields = {k: v for k, v in data.items() if k not in ("ministry_tenant_id", "source_tenant_id", "member_id")}
        container.corrections_service.set_override(
            ministry_tenant_id=ministry_tenant_id,
            source_tenant_id=source_tenant_id,
            member_id=member_id,
            **fields,
        )
        return jsonify({"success": True, "fields": sorted(k for k in fields if k in OVERRIDABLE_FIELDS)})

    @app.route(
        "/api/ministries/<ministry_tenant_id>/overrides/<source_tenant_id>/<member_id>",
        methods=["DELETE"],
        endpoint="ministry_clear_override",
    )
    @json_errors
    def ministry_clear_override(ministry_tenant_id: str, source_tenant_id: str, member_id: str):
        removed = container.corrections_service.clear_override(
            ministry_tenant_id=ministry_tenant_id, source_tenant_id=source_tenant_id, member_id=member_id
        )
        return jsonify({"success": True, "removed": removed})
