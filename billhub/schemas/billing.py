from enum import Enum
from typing import Optional, List
from pydantic import BaseModel, Field, field_validator


class Status(str, Enum):
    PENDING = "PENDING"
    APPROVED_PM = "APPROVED_PM"
    RATIFIED_MGR = "RATIFIED_MGR"
    REJECTED = "REJECTED"


class CapPeriod(str, Enum):
    MONTHLY = "monthly"  # resets every calendar month
    TOTAL = "total"  # whole life of the project


# =====================
# Projects
# =====================

class ProjectAssignment(BaseModel):
    subcontractor_id: str
    hours_cap: float = Field(default=0, ge=0)
    period: CapPeriod = CapPeriod.MONTHLY


class ProjectBase(BaseModel):
    name: str
    client: str
    budget: float = Field(default=0, ge=0)
    currency: str = "EUR"
    manager_id: str = ""

    @field_validator("name", "client", mode="before")
    @classmethod
    def strip_text(cls, v):
        if v is None:
            return v
        return str(v).strip()


class ProjectCreate(ProjectBase):
    id: Optional[str] = None
    assignments: List[ProjectAssignment] = Field(default_factory=list)


class ProjectUpdate(BaseModel):
    name: Optional[str] = None
    client: Optional[str] = None
    budget: Optional[float] = Field(default=None, ge=0)
    currency: Optional[str] = None
    manager_id: Optional[str] = None


class Project(ProjectBase):
    id: str
    assignments: List[ProjectAssignment] = Field(default_factory=list)

    class Config:
        extra = "ignore"

    def assignment_for(self, subcontractor_id: str) -> Optional[ProjectAssignment]:
        for a in self.assignments:
            if a.subcontractor_id == subcontractor_id:
                return a
        return None


# =====================
# Subcontractors
# =====================

class SubcontractorBase(BaseModel):
    name: str
    role: str = ""
    hourly_rate: float = Field(default=0, ge=0)
    currency: str = "EUR"
    personnel_number: Optional[str] = None
    factorial_id: Optional[str] = None
    manager_email: Optional[str] = None

    @field_validator("personnel_number", "factorial_id", "manager_email", mode="before")
    @classmethod
    def empty_to_none(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None


class SubcontractorCreate(SubcontractorBase):
    id: Optional[str] = None


class SubcontractorUpdate(BaseModel):
    name: Optional[str] = None
    role: Optional[str] = None
    hourly_rate: Optional[float] = Field(default=None, ge=0)
    currency: Optional[str] = None
    personnel_number: Optional[str] = None
    manager_email: Optional[str] = None


class Subcontractor(SubcontractorBase):
    id: str

    class Config:
        extra = "ignore"


# =====================
# Time logs
# =====================

class TimeLogCreate(BaseModel):
    project_id: str
    subcontractor_id: Optional[str] = None  # defaults to the caller's own resource
    date: str = Field(pattern=r"^\d{4}-\d{2}-\d{2}$")
    hours: float = Field(gt=0, le=24)
    description: str = Field(min_length=1)


class TimesheetRow(BaseModel):
    project_id: Optional[str] = None
    description: Optional[str] = None
    hours: List[Optional[float]] = Field(default_factory=list, max_length=7)


class TimesheetGrid(BaseModel):
    """A week of hours, one list of seven day-values per row (Monday first)."""
    week_start: str = Field(pattern=r"^\d{4}-\d{2}-\d{2}$")
    subcontractor_id: Optional[str] = None
    rows: List[TimesheetRow]


class TimeLog(BaseModel):
    id: str
    subcontractor_id: str
    project_id: str
    date: str
    hours: float
    description: str = ""
    status: Status = Status.PENDING
    feedback: Optional[str] = None
    factorial_id: Optional[str] = None

    class Config:
        extra = "ignore"


# =====================
# Invoices
# =====================

class InvoiceCreate(BaseModel):
    project_id: Optional[str] = None
    subcontractor_id: Optional[str] = None
    period: str = Field(pattern=r"^\d{4}-\d{2}$")
    amount: Optional[float] = None
    currency: str = "EUR"
    file_url: Optional[str] = None


class Invoice(BaseModel):
    id: str
    subcontractor_id: str
    project_id: str
    period: str
    amount: float
    currency: str = "EUR"
    status: Status = Status.PENDING
    feedback: Optional[str] = None
    file_url: Optional[str] = None

    class Config:
        extra = "ignore"


# =====================
# Transitions
# =====================

class TransitionRequest(BaseModel):
    status: Status
    feedback: Optional[str] = None
