# Overview: Flask API routes for staff users.

from flask import Blueprint, request

from ..errors import ValidationError
from ..models import User
from ..responses import created, dump, json_body, success
from ..services import user_service
from ..validation import ModelValidationPolicy, validate_payload

USER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "email", "phone", "outlet_id", "is_active"},
    required_on_create={"name", "email"},
    extra_fields={"password"},
)

users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("")
def list_users():
    return success(dump(user_service.list_users(outlet_id=request.args.get("outlet_id", type=int))))


@users_bp.post("")
def create_user():
    patch = validate_payload(model=User, payload=json_body(), policy=USER_POLICY, partial=False)
    password = patch.pop("password", None)
    if not isinstance(password, str):
        raise ValidationError("password is required")
    user = user_service.create_user(patch, password=password)
    return created(user.to_dict())


@users_bp.get("/<int:user_id>")
def get_user(user_id: int):
    return success(user_service.get_user(user_id).to_dict())


@users_bp.put("/<int:user_id>")
def update_user(user_id: int):
    payload = json_body()
    if "password" in payload:
        raise ValidationError("use the password endpoint to change passwords")
    patch = validate_payload(model=User, payload=payload, policy=USER_POLICY, partial=True)
    return success(user_service.update_user(user_id, patch).to_dict())


@users_bp.post("/<int:user_id>/password")
def change_password(user_id: int):
    payload = json_body()
    user_service.change_password(
        user_id,
        current_password=payload.get("current_password") or "",
        new_password=payload.get("new_password") or "",
    )
    return success(None, "password changed")


@users_bp.delete("/<int:user_id>")
def delete_user(user_id: int):
    user_service.delete_user(user_id)
    return success(None, "deleted")
