"""Administrative management of the plan catalog."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping

from ..auth.policy import AuthorizationPolicy, Principal
from .errors import ConflictError, PlanNotFound, ValidationError
from .models import (
    AuditAction,
    AuditLogEntry,
    BillingCycle,
    PLAN_EDITABLE_FIELDS,
    PLAN_PRICING_FIELDS,
    Plan,
)
from .service import AuditLog, PlanCatalog

logger = logging.getLogger("billing")


def _normalize(fields: Mapping[str, Any]) -> Dict[str, Any]:
    unknown = sorted(set(fields) - set(PLAN_EDITABLE_FIELDS))
    if unknown:
        raise ValidationError(
            "Unknown plan fields",
            fields={name: "not editable" for name in unknown},
        )

    normalized = dict(fields)
    errors: Dict[str, str] = {}
    if "name" in normalized and not str(normalized["name"] or "").strip():
        errors["name"] = "required"
    if "price" in normalized:
        price = normalized["price"]
        if not isinstance(price, int) or isinstance(price, bool) or price < 0:
            errors["price"] = "must be a non-negative integer in minor units"
    if "billing_cycle" in normalized:
        try:
            normalized["billing_cycle"] = BillingCycle(normalized["billing_cycle"]).value
        except ValueError:
            errors["billing_cycle"] = "must be one of day, week, month, year"
    if "features" in normalized:
        normalized["features"] = [str(item) for item in normalized["features"] or []]
    if errors:
        raise ValidationError("Invalid plan fields", fields=errors)
    return normalized


@dataclass
class PlanCatalogService:
    """Reads for everyone, writes for administrators.

    Pricing fields stay fixed while any active subscription references the
    plan; descriptive fields can always change.
    """

    plans: PlanCatalog
    audit_log: AuditLog
    policy: AuthorizationPolicy = field(default_factory=AuthorizationPolicy)

    def list_visible_plans(self) -> List[Plan]:
        return self.plans.list_plans()

    def list_all_plans(self, *, actor: Principal) -> List[Plan]:
        self.policy.require_admin(actor)
        return self.plans.list_plans(include_hidden=True)

    def get_plan(self, plan_id: int) -> Plan:
        plan = self.plans.get_plan(plan_id)
        if plan is None:
            raise PlanNotFound(f"Plan {plan_id} not found", detail={"planId": plan_id})
        return plan

    def create_plan(self, fields: Mapping[str, Any], *, actor: Principal) -> Plan:
        self.policy.require_admin(actor)
        normalized = _normalize(fields)
        missing = [name for name in ("name", "price") if name not in normalized]
        if missing:
            raise ValidationError(
                "Missing required plan fields",
                fields={name: "required" for name in missing},
            )
        plan = self.plans.insert_plan(normalized)
        self._audit(actor, AuditAction.PLAN_CREATED, plan, {"name": plan.name, "price": plan.price})
        return plan

    def update_plan(self, plan_id: int, changes: Mapping[str, Any], *, actor: Principal) -> Plan:
        self.policy.require_admin(actor)
        normalized = _normalize(changes)
        current = self.get_plan(plan_id)

        pricing_changes = sorted(
            name
            for name in PLAN_PRICING_FIELDS
            if name in normalized and normalized[name] != _plain(getattr(current, name))
        )
        if pricing_changes and self.plans.has_active_subscriptions(plan_id):
            raise ConflictError(
                "Pricing cannot change while active subscriptions reference this plan",
                detail={"planId": plan_id, "fields": pricing_changes},
            )

        updated = self.plans.update_plan(
            plan_id, normalized, require_unreferenced=bool(pricing_changes)
        )
        if updated is None:
            if pricing_changes:
                raise ConflictError(
                    "Pricing cannot change while active subscriptions reference this plan",
                    detail={"planId": plan_id, "fields": pricing_changes},
                )
            raise PlanNotFound(f"Plan {plan_id} not found", detail={"planId": plan_id})

        self._audit(actor, AuditAction.PLAN_UPDATED, updated, {"fields": ",".join(sorted(normalized))})
        logger.info("Plan %s updated", plan_id, extra={"fields": sorted(normalized)})
        return updated

    def _audit(self, actor: Principal, action: AuditAction, plan: Plan, details: Mapping[str, Any]) -> None:
        self.audit_log.append(
            AuditLogEntry(
                user_id=getattr(actor, "id", None),
                action=action,
                entity_type="plan",
                entity_id=str(plan.id),
                details={key: str(value) for key, value in details.items()},
            )
        )


def _plain(value: Any) -> Any:
    return value.value if isinstance(value, BillingCycle) else value


__all__ = ["PlanCatalogService"]
