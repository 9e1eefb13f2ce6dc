from __future__ import annotations

import dataclasses
import logging
from functools import wraps
from typing import Any, Optional

from flask import Flask, current_app, jsonify, request, session
from werkzeug.exceptions import (
    BadRequest,
    Conflict,
    Forbidden,
    HTTPException,
    NotFound,
    ServiceUnavailable,
    Unauthorized,
)
from werkzeug.security import check_password_hash, generate_password_hash

from config import FacilityConfig
from models import FuelCategory, PaymentMethod, Vehicle, VehicleCategory
from outcome import ErrorKind, FacilityError, Outcome
from parking_facility import ParkingFacility

logger = logging.getLogger(__name__)


class PaymentRequired(HTTPException):
    code = 402
    description = "Payment was rejected."


ERROR_STATUS = {
    ErrorKind.NOT_FOUND: NotFound,
    ErrorKind.CONFLICT: Conflict,
    ErrorKind.UNAVAILABLE: ServiceUnavailable,
    ErrorKind.PAYMENT_FAILED: PaymentRequired,
}


def fail(error: FacilityError) -> None:
    exc = ERROR_STATUS[error.kind](error.message)
    exc.facility_error = error
    raise exc


def unwrap(outcome: Outcome) -> Any:
    if not outcome.ok:
        fail(outcome.error)
    return outcome.value


def get_facility() -> ParkingFacility:
    return current_app.extensions["parking_facility"]


# -------------------------
# 共通：ロールチェック
# -------------------------
def require_role(role):
    def wrapper(fn):
        @wraps(fn)
        def inner(*args, **kwargs):
            if session.get("role") != role:
                raise Forbidden("operator login required")
            return fn(*args, **kwargs)
        return inner
    return wrapper


def json_body(*required: str) -> dict:
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        raise BadRequest("expected a JSON object")
    missing = [k for k in required if not str(data.get(k) or "").strip()]
    if missing:
        raise BadRequest(f"missing fields: {', '.join(missing)}")
    return data


def parse_enum(enum_cls, value: str, field: str):
    try:
        return enum_cls.parse(str(value))
    except KeyError:
        choices = ", ".join(m.name for m in enum_cls)
        raise BadRequest(f"invalid {field} {value!r}, expected one of {choices}") from None


def register_routes(app: Flask) -> None:

    @app.errorhandler(HTTPException)
    def handle_http_error(e: HTTPException):
        error = getattr(e, "facility_error", None)
        body = error.to_dict() if error else {"error": e.name, "message": e.description}
        return jsonify(body), e.code

    # -------------------------
    # 入庫・照会・出庫
    # -------------------------
    @app.route("/park", methods=["POST"])
    def park():
        data = json_body("vehicle_id", "category", "entry_gate")
        vehicle = Vehicle(
            vehicle_id=str(data["vehicle_id"]).strip(),
            category=parse_enum(VehicleCategory, data["category"], "category"),
            fuel=parse_enum(FuelCategory, data.get("fuel") or "PETROL", "fuel"),
        )
        ticket = unwrap(get_facility().park(vehicle, data["entry_gate"]))
        return jsonify(ticket.to_dict()), 201

    @app.route("/quote/<vehicle_id>", methods=["GET"])
    def quote(vehicle_id):
        facility = get_facility()
        body = {"vehicle_id": vehicle_id, "amount": float(unwrap(facility.quote(vehicle_id)))}
        # breakdown は任意（price だけのポリシーもある）
        if hasattr(facility.pricing, "breakdown"):
            body["breakdown"] = unwrap(facility.quote_breakdown(vehicle_id)).to_dict()
        return jsonify(body)

    @app.route("/exit", methods=["POST"])
    def exit_vehicle():
        data = json_body("vehicle_id", "exit_gate", "payment_method")
        method = parse_enum(PaymentMethod, data["payment_method"], "payment_method")
        bill = unwrap(get_facility().exit(str(data["vehicle_id"]).strip(), data["exit_gate"], method))
        return jsonify(bill.to_dict())

    @app.route("/tickets/<vehicle_id>", methods=["GET"])
    def ticket_for(vehicle_id):
        ticket = get_facility().ticket_for(vehicle_id)
        if ticket is None:
            raise NotFound(f"no active ticket for vehicle {vehicle_id}")
        return jsonify(ticket.to_dict())

    @app.route("/capacity", methods=["GET"])
    def capacity():
        facility = get_facility()
        summary = facility.capacity_summary()
        summary["is_full"] = facility.is_full()
        return jsonify(summary)

    @app.route("/rates", methods=["GET"])
    def rates():
        return jsonify(get_facility().rate_table())

    @app.route("/history", methods=["GET"])
    def history():
        return jsonify([b.to_dict() for b in get_facility().list_history()])

    # -------------------------
    # ログイン（オペレーター）
    # -------------------------
    @app.route("/login", methods=["POST"])
    def login():
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            data = {}
        user = (data.get("username") or "").strip()
        pw = data.get("password") or ""

        if user == app.config["OPERATOR_USER"] and check_password_hash(
            app.config["OPERATOR_PASSWORD_HASH"], pw
        ):
            session["user"] = user
            session["role"] = "operator"
            logger.info("operator %s logged in", user)
            return jsonify({"user": user, "role": "operator"})

        raise Unauthorized("invalid username or password")

    @app.route("/logout")
    def logout():
        session.clear()
        return jsonify({"logged_out": True})

    # -------------------------
    # 管理者操作
    # -------------------------
    @app.route("/admin/slots/<slot_id>/out-of-service", methods=["POST"])
    @require_role("operator")
    def slot_out_of_service(slot_id):
        slot = unwrap(get_facility().set_out_of_service(slot_id))
        return jsonify(slot.to_dict())

    @app.route("/admin/slots/<slot_id>/in-service", methods=["POST"])
    @require_role("operator")
    def slot_in_service(slot_id):
        slot = unwrap(get_facility().return_to_service(slot_id))
        return jsonify(slot.to_dict())

    @app.route("/admin/pricing", methods=["POST"])
    @require_role("operator")
    def switch_pricing():
        data = json_body("policy")
        facility = get_facility()
        try:
            facility.use_pricing(str(data["policy"]))
        except ValueError as e:
            raise BadRequest(str(e)) from None
        return jsonify(facility.rate_table())


def create_app(
    config: Optional[dict] = None, facility: Optional[ParkingFacility] = None
) -> Flask:
    app = Flask(__name__)
    app.config.from_mapping(
        SECRET_KEY="dev-secret-key",
        OPERATOR_USER="admin",
        OPERATOR_PASSWORD_HASH=generate_password_hash("admin"),
        PRICING_POLICY="dynamic",
        ALLOCATION_POLICY="nearest",
    )
    app.config.from_prefixed_env("PARKING")
    if config:
        app.config.update(config)

    if facility is None:
        facility = ParkingFacility(
            dataclasses.replace(
                FacilityConfig.default(),
                pricing_policy=app.config["PRICING_POLICY"],
                allocation_policy=app.config["ALLOCATION_POLICY"],
            )
        )
    app.extensions["parking_facility"] = facility

    register_routes(app)
    return app


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    create_app().run(debug=True)
