import math
from datetime import date
from typing import Optional, Literal, Union, Any, Dict

from pydantic import BaseModel, Field, ConfigDict


ProjectStatus = Literal["planning", "in-progress", "on-hold", "completed"]
ProjectPriority = Literal["low", "medium", "high"]
ApprovalStatus = Literal["pending", "approved", "rejected"]


class AddProjectInput(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    description: Optional[str] = None
    status: ProjectStatus = "planning"
    priority: ProjectPriority = "medium"
    category: Optional[str] = None
    client_name: Optional[str] = Field(default=None, alias="clientName")
    budget: Optional[Union[float, str]] = None
    location: Optional[str] = None
    start_date: Optional[date] = Field(default=None, alias="startDate")
    end_date: Optional[date] = Field(default=None, alias="endDate")


class ProjectSetupUpdate(BaseModel):
    """Fields a project setup/approval step may change; unset fields are left alone."""
    project_name: Optional[str] = None
    description: Optional[str] = None
    status: Optional[ProjectStatus] = None
    priority: Optional[ProjectPriority] = None
    category: Optional[str] = None
    project_manager: Optional[str] = None
    client_name: Optional[str] = None
    location: Optional[str] = None
    budget: Optional[float] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    building_permit_url: Optional[str] = None
    building_permit_storage_path: Optional[str] = None
    approval_status: Optional[ApprovalStatus] = None


class ProjectView(BaseModel):
    id: str
    ownerId: Optional[str] = None
    organizationId: Optional[str] = None
    name: str
    slug: str
    description: Optional[str] = None
    status: Optional[str] = None
    priority: Optional[str] = None
    category: Optional[str] = None
    projectManager: Optional[str] = None
    clientName: Optional[str] = None
    location: Optional[str] = None
    budget: Optional[float] = None
    startDate: Optional[str] = None
    endDate: Optional[str] = None
    createdAt: Optional[str] = None
    updatedAt: Optional[str] = None


def _iso(value: Any) -> Optional[str]:
    if value is None:
        return None
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(value)


def _str_or_none(value: Any) -> Optional[str]:
    return str(value) if value is not None else None


def _parse_budget(raw: Any) -> Optional[float]:
    if raw is None:
        return None
    if isinstance(raw, str):
        try:
            parsed = float(raw)
        except ValueError:
            return None
        return parsed if math.isfinite(parsed) else None
    return float(raw)


def map_project_from_row(record: Dict[str, Any]) -> ProjectView:
    """Translate a ``projects`` row (as a dict) into the API view model."""
    normalized_id = record.get("id") or record.get("project_id")
    if not normalized_id:
        raise ValueError("Project record is missing an id field")
    normalized_id = str(normalized_id)
    return ProjectView(
        id=normalized_id,
        ownerId=_str_or_none(record.get("owner_id")),
        organizationId=_str_or_none(record.get("organization_id")),
        name=record.get("project_name") or record.get("name") or "Untitled Project",
        slug=record.get("slug") or normalized_id,
        description=record.get("description"),
        status=record.get("status"),
        priority=record.get("priority"),
        category=record.get("category"),
        projectManager=record.get("project_manager"),
        clientName=record.get("client_name"),
        location=record.get("location"),
        budget=_parse_budget(record.get("budget")),
        startDate=_iso(record.get("start_date")),
        endDate=_iso(record.get("end_date")),
        createdAt=_iso(record.get("created_at")),
        updatedAt=_iso(record.get("updated_at")),
    )
