"""Opportunity and application service."""
import logging
from typing import Any, Dict, List, Optional

from ..backend.base import Backend
from ..core.activity import ActivityLog
from ..core.clock import Clock, system_clock
from ..core.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from ..core.logging import BusinessLogger
from ..core.permissions import PermissionResolver
from ..core.validation import parse_date
from .accounts import display_name

logger = logging.getLogger(__name__)

CATEGORIES = (
    {"id": "education", "name": "Education"},
    {"id": "health", "name": "Health"},
    {"id": "social-impact", "name": "Social Impact"},
    {"id": "economic-empowerment", "name": "Economic Empowerment"},
    {"id": "housing-infrastructure", "name": "Housing & Infrastructure"},
    {"id": "food-agriculture", "name": "Food & Agriculture"},
    {"id": "arts-culture", "name": "Arts & Culture"},
    {"id": "digital-access", "name": "Digital Access & Innovation"},
    {"id": "climate-environment", "name": "Climate & Environment"},
    {"id": "justice-governance", "name": "Justice & Governance"},
    {"id": "mental-wellness", "name": "Mental Wellness & Belonging"},
)

OPPORTUNITY_STATUSES = ("active", "closed", "draft")
APPLICATION_STATUSES = ("pending", "reviewed", "accepted", "rejected")


def _deadline_key(opportunity: Dict[str, Any]):
    parsed = parse_date(opportunity.get("deadline")) if opportunity.get("deadline") else None
    return (parsed is None, parsed.isoformat() if parsed else "")


OPPORTUNITY_SORTS = {
    "newest": (lambda o: o.get("created_at") or "", True),
    "oldest": (lambda o: o.get("created_at") or "", False),
    "deadline": (_deadline_key, False),
    "alphabetical": (lambda o: (o.get("title") or "").lower(), False),
}


class OpportunityService:
    """CRUD over ``opportunities`` and ``applications``."""

    def __init__(
        self,
        backend: Backend,
        permissions: PermissionResolver,
        activity_log: Optional[ActivityLog] = None,
        clock: Clock = system_clock,
    ):
        self.backend = backend
        self.permissions = permissions
        self.activity_log = activity_log
        self.clock = clock

    async def _log(self, action: str, data: Dict[str, Any]) -> None:
        if self.activity_log is not None:
            await self.activity_log.log(action, data)

    @staticmethod
    def categories() -> List[Dict[str, str]]:
        return [dict(c) for c in CATEGORIES]

    async def list_opportunities(
        self,
        search: str = None,
        category: str = None,
        opportunity_type: str = None,
        location: str = None,
        status: Optional[str] = "active",
        sort: str = "newest",
    ) -> List[Dict[str, Any]]:
        result = await self.backend.table("opportunities").select().execute()
        items = result.raise_for_error().rows()

        if status:
            items = [o for o in items if o.get("status", "active") == status]
        if search:
            term = search.strip().lower()
            items = [
                o for o in items
                if any(term in (o.get(f) or "").lower() for f in ("title", "description", "organization"))
            ]
        if category and category != "all":
            items = [o for o in items if o.get("category") == category]
        if opportunity_type and opportunity_type != "all":
            items = [o for o in items if o.get("type") == opportunity_type]
        if location and location != "all":
            items = [o for o in items if o.get("location") == location]

        key, reverse = OPPORTUNITY_SORTS.get(sort, OPPORTUNITY_SORTS["newest"])
        items.sort(key=key, reverse=reverse)
        return items

    async def get_opportunity(self, opportunity_id: str) -> Dict[str, Any]:
        result = await self.backend.table("opportunities").select().eq("id", opportunity_id).limit(1).execute()
        opportunity = result.raise_for_error().first()
        if opportunity is None:
            raise NotFoundError(f"Opportunity {opportunity_id} not found")
        return opportunity

    def _ensure_can_manage(self, opportunity: Dict[str, Any], actor: Dict[str, Any]) -> None:
        if opportunity.get("created_by") == actor.get("id"):
            return
        if self.permissions.has_permission(actor, "opportunities"):
            return
        raise AuthorizationError("You can only manage opportunities you created")

    async def create_opportunity(self, data: Dict[str, Any], actor: Dict[str, Any]) -> Dict[str, Any]:
        if not self.permissions.has_any(actor, ["post_opportunities", "opportunities"]):
            raise AuthorizationError("Your account cannot post opportunities")

        row = dict(data)
        row.update({
            "status": row.get("status") or "active",
            "applicants": 0,
            "created_by": actor.get("id"),
            "created_at": self.clock.now().isoformat(),
        })
        if not row.get("organization"):
            row["organization"] = actor.get("organization") or display_name(actor)

        result = await self.backend.table("opportunities").insert(row).execute()
        opportunity = result.raise_for_error().first()

        BusinessLogger.log_opportunity_event(opportunity["id"], "created", actor.get("email"), opportunity.get("title"))
        await self._log("opportunity_created", {"opportunity_id": opportunity["id"], "by": actor.get("email")})
        return opportunity

    async def update_opportunity(self, opportunity_id: str, changes: Dict[str, Any], actor: Dict[str, Any]) -> Dict[str, Any]:
        opportunity = await self.get_opportunity(opportunity_id)
        self._ensure_can_manage(opportunity, actor)
        if "status" in changes and changes["status"] not in OPPORTUNITY_STATUSES:
            raise ValidationError(f"Unknown opportunity status '{changes['status']}'")

        changes = {k: v for k, v in changes.items() if k not in ("id", "created_by", "created_at")}
        changes["updated_at"] = self.clock.now().isoformat()
        result = await self.backend.table("opportunities").update(changes).eq("id", opportunity_id).execute()
        updated = result.raise_for_error().first()

        BusinessLogger.log_opportunity_event(opportunity_id, "updated", actor.get("email"), updated.get("title"))
        return updated

    async def delete_opportunity(self, opportunity_id: str, actor: Dict[str, Any]) -> None:
        opportunity = await self.get_opportunity(opportunity_id)
        self._ensure_can_manage(opportunity, actor)

        result = await self.backend.table("opportunities").delete().eq("id", opportunity_id).execute()
        result.raise_for_error()

        BusinessLogger.log_opportunity_event(opportunity_id, "deleted", actor.get("email"), opportunity.get("title"))
        await self._log("opportunity_deleted", {
            "opportunity_id": opportunity_id,
            "title": opportunity.get("title"),
            "by": actor.get("email"),
        })

    async def apply(self, opportunity_id: str, applicant: Dict[str, Any], cover_letter: str = "") -> Dict[str, Any]:
        if not self.permissions.has_permission(applicant, "apply"):
            raise AuthorizationError("Only opportunity seekers can apply")

        opportunity = await self.get_opportunity(opportunity_id)
        if opportunity.get("status", "active") != "active":
            raise ValidationError("This opportunity is no longer accepting applications")

        existing = await (
            self.backend.table("applications").select("id")
            .eq("opportunity_id", opportunity_id)
            .eq("applicant_id", applicant["id"])
            .execute()
        )
        if existing.raise_for_error().rows():
            raise ConflictError("You have already applied to this opportunity")

        result = await self.backend.table("applications").insert({
            "opportunity_id": opportunity_id,
            "applicant_id": applicant["id"],
            "applicant_name": display_name(applicant),
            "applicant_email": applicant.get("email"),
            "cover_letter": cover_letter,
            "status": "pending",
            "created_at": self.clock.now().isoformat(),
        }).execute()
        application = result.raise_for_error().first()

        count = (opportunity.get("applicants") or 0) + 1
        bump = await self.backend.table("opportunities").update({"applicants": count}).eq("id", opportunity_id).execute()
        if not bump.ok:
            logger.warning("Could not update applicant count for %s: %s", opportunity_id, bump.error.message)

        BusinessLogger.log_application_event(application["id"], opportunity_id, "pending", applicant.get("email"))
        return application

    async def applications_for(self, applicant_id: str) -> List[Dict[str, Any]]:
        result = await (
            self.backend.table("applications").select()
            .eq("applicant_id", applicant_id)
            .order("created_at", ascending=False)
            .execute()
        )
        return result.raise_for_error().rows()

    async def list_applications(self, status: str = None, opportunity_id: str = None) -> List[Dict[str, Any]]:
        query = self.backend.table("applications").select().order("created_at", ascending=False)
        if status:
            query = query.eq("status", status)
        if opportunity_id:
            query = query.eq("opportunity_id", opportunity_id)
        return (await query.execute()).raise_for_error().rows()

    async def update_application_status(self, application_id: str, status: str, actor: Dict[str, Any]) -> Dict[str, Any]:
        if status not in APPLICATION_STATUSES:
            raise ValidationError(f"Unknown application status '{status}'")

        result = await (
            self.backend.table("applications")
            .update({"status": status, "updated_at": self.clock.now().isoformat()})
            .eq("id", application_id)
            .execute()
        )
        application = result.raise_for_error().first()
        if application is None:
            raise NotFoundError(f"Application {application_id} not found")

        BusinessLogger.log_application_event(application_id, application.get("opportunity_id"), status, actor.get("email"))
        await self._log("application_status_changed", {
            "application_id": application_id,
            "status": status,
            "by": actor.get("email"),
        })
        return application
