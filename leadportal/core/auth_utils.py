"""Authentication and authorization utilities"""
from typing import Optional
from sqlalchemy import false
from leadportal.core.enums import AFFILIATE_ROLES
from leadportal.core.errors import Forbidden, NotFound


def is_affiliate(current_user) -> bool:
    return current_user.role in AFFILIATE_ROLES


def filter_by_affiliate(query, model, current_user):

    if is_affiliate(current_user):
        if current_user.affiliate_id is None:
            return query.where(false())
        return query.where(model.affiliate_id == current_user.affiliate_id)
    return query


def check_ownership(item, current_user, resource_name: str = "Resource") -> None:

    if is_affiliate(current_user) and (
        current_user.affiliate_id is None or item.affiliate_id != current_user.affiliate_id
    ):
        raise Forbidden(f"Forbidden: You can only access your affiliate's {resource_name.lower()}s")


def check_not_found(item, resource_name: str = "Resource", resource_id: Optional[int] = None) -> None:

    if not item:
        if resource_id:
            raise NotFound(f"{resource_name} with id {resource_id} not found")
        raise NotFound(f"{resource_name} not found")
