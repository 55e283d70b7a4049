"""
Plain records exchanged with the capacity engine.

Input snapshots (employees, projects, assignments) are immutable copies of the
database rows taken per request. Result records are transient and recomputed
on every call.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional, Tuple

from calendar_utils import WORKING_DAYS_PER_WEEK, working_days

STANDARD_WEEKLY_HOURS = 40.0
DEFAULT_HOURLY_COST = 75.0

# Assignment lifecycle
STATUS_TENTATIVE = 'tentative'
STATUS_CONFIRMED = 'confirmed'
STATUS_COMPLETED = 'completed'
STATUS_CANCELLED = 'cancelled'
ASSIGNMENT_STATUSES = [STATUS_TENTATIVE, STATUS_CONFIRMED, STATUS_COMPLETED, STATUS_CANCELLED]
ACTIVE_STATUSES = (STATUS_TENTATIVE, STATUS_CONFIRMED)

# Conflict classification
CONFLICT_OVERLAP = 'overlap'
CONFLICT_OVERALLOCATION = 'overallocation'

SEVERITY_LOW = 'low'
SEVERITY_MEDIUM = 'medium'
SEVERITY_HIGH = 'high'

SENIORITY_JUNIOR = 'junior'
SENIORITY_MID = 'mid'
SENIORITY_SENIOR = 'senior'
SENIORITY_LEVELS = [SENIORITY_JUNIOR, SENIORITY_MID, SENIORITY_SENIOR]


@dataclass(frozen=True)
class AllocatedHours:
    """
    Canonical assignment load, stored as hours per week.

    Entry points accept either absolute weekly hours or a percentage of the
    employee's weekly capacity; both are converted here so the engine only
    ever sees weekly hours.
    """

    weekly_hours: float

    @classmethod
    def weekly(cls, hours):
        return cls(float(hours))

    @classmethod
    def from_percentage(cls, percentage, weekly_capacity=STANDARD_WEEKLY_HOURS):
        capacity = weekly_capacity or STANDARD_WEEKLY_HOURS
        return cls(float(percentage) / 100.0 * float(capacity))

    @property
    def per_working_day(self):
        return self.weekly_hours / WORKING_DAYS_PER_WEEK

    def total_for(self, days):
        """Total hours over a span of `days` working days"""
        return self.per_working_day * days

    def percentage_of(self, weekly_capacity=STANDARD_WEEKLY_HOURS):
        capacity = weekly_capacity or STANDARD_WEEKLY_HOURS
        return self.weekly_hours / capacity * 100.0


@dataclass(frozen=True)
class EmployeeRecord:
    id: int
    name: str = ''
    weekly_capacity: Optional[float] = STANDARD_WEEKLY_HOURS
    hourly_cost: Optional[float] = None
    skills: Tuple[str, ...] = ()
    seniority: Optional[str] = None
    success_rate: Optional[float] = None
    is_active: bool = True
    department_id: Optional[int] = None

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'weekly_capacity': self.weekly_capacity,
            'hourly_cost': self.hourly_cost,
            'skills': list(self.skills),
            'seniority': self.seniority,
            'success_rate': self.success_rate,
            'is_active': self.is_active,
            'department_id': self.department_id
        }


@dataclass(frozen=True)
class ProjectRecord:
    id: int
    name: str = ''
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    status: str = 'planning'
    required_skills: Tuple[str, ...] = ()
    budget: Optional[float] = None

    @property
    def is_closed(self):
        return self.status in ('completed', 'cancelled')


@dataclass(frozen=True)
class AssignmentRecord:
    id: Optional[int]
    employee_id: int
    project_id: int
    start_date: date
    end_date: date
    allocated: AllocatedHours
    status: str = STATUS_TENTATIVE
    role: Optional[str] = None
    notes: Optional[str] = None
    allocation_percentage: Optional[float] = None
    actual_hours: Optional[float] = None

    @property
    def working_days(self):
        return working_days(self.start_date, self.end_date)

    @property
    def total_hours(self):
        return self.allocated.total_for(self.working_days)

    @property
    def weekly_hours(self):
        return self.allocated.weekly_hours

    @property
    def is_active(self):
        return self.status in ACTIVE_STATUSES

    def to_dict(self):
        return {
            'id': self.id,
            'employee_id': self.employee_id,
            'project_id': self.project_id,
            'start_date': self.start_date.isoformat(),
            'end_date': self.end_date.isoformat(),
            'hours_per_week': self.weekly_hours,
            'allocation_type': 'percentage' if self.allocation_percentage is not None else 'hours',
            'allocation_percentage': self.allocation_percentage,
            'total_hours': round(self.total_hours, 2),
            'status': self.status,
            'role_on_project': self.role,
            'notes': self.notes,
            'actual_hours': self.actual_hours
        }


@dataclass
class Conflict:
    conflict_type: str
    assignment_ids: List[Optional[int]]
    overlap_days: int
    over_allocation_hours: float
    severity: str
    employee_id: Optional[int] = None

    def involves(self, assignment_id):
        return assignment_id in self.assignment_ids

    def to_dict(self):
        return {
            'conflict_type': self.conflict_type,
            'assignment_ids': list(self.assignment_ids),
            'employee_id': self.employee_id,
            'overlap_days': self.overlap_days,
            'over_allocation_hours': round(self.over_allocation_hours, 2),
            'severity': self.severity
        }


@dataclass
class Availability:
    employee_id: int
    start_date: date
    end_date: date
    working_days: int
    total_hours: float
    allocated_hours: float
    available_hours: float
    utilization_rate: float
    conflicts: List[Conflict] = field(default_factory=list)
    time_slots: list = field(default_factory=list)

    def to_dict(self, include_slots=False):
        data = {
            'employee_id': self.employee_id,
            'period': {
                'start_date': self.start_date.isoformat(),
                'end_date': self.end_date.isoformat()
            },
            'working_days': self.working_days,
            'total_hours': self.total_hours,
            'allocated_hours': round(self.allocated_hours, 2),
            'available_hours': round(self.available_hours, 2),
            'utilization_rate': round(self.utilization_rate, 4),
            'conflicts': [c.to_dict() for c in self.conflicts]
        }
        if include_slots:
            data['time_slots'] = [slot.to_dict() for slot in self.time_slots]
        return data


@dataclass
class SkillMatch:
    employee: EmployeeRecord
    match_score: float
    matched_skills: List[str]
    missing_skills: List[str]
    confidence: float

    def to_dict(self):
        return {
            'employee_id': self.employee.id,
            'employee_name': self.employee.name,
            'match_score': round(self.match_score, 4),
            'matched_skills': list(self.matched_skills),
            'missing_skills': list(self.missing_skills),
            'confidence': round(self.confidence, 4)
        }


@dataclass(frozen=True)
class ProjectRequirements:
    project_id: int
    required_skills: Tuple[str, ...] = ()
    duration: float = 30
    effort_hours: float = 0
    priority: Optional[str] = None


@dataclass
class Recommendation:
    employee_id: int
    project_id: int
    role: str
    allocated_hours: float
    confidence: float
    reasoning: str
    hourly_cost: float = DEFAULT_HOURLY_COST

    def to_dict(self):
        return {
            'employee_id': self.employee_id,
            'project_id': self.project_id,
            'role': self.role,
            'allocated_hours': round(self.allocated_hours, 2),
            'hourly_cost': self.hourly_cost,
            'confidence': round(self.confidence, 4),
            'reasoning': self.reasoning
        }


@dataclass
class OptimizationResult:
    recommendations: List[Recommendation]
    total_cost: float
    completion_time: float
    feasible: bool
    conflicts: List[Conflict]
    efficiency: float
    remaining_effort: float = 0.0

    def to_dict(self):
        return {
            'recommendations': [r.to_dict() for r in self.recommendations],
            'total_cost': round(self.total_cost, 2),
            'completion_time': round(self.completion_time, 4),
            'feasible': self.feasible,
            'conflicts': [c.to_dict() for c in self.conflicts],
            'efficiency': round(self.efficiency, 4),
            'remaining_effort': round(self.remaining_effort, 2)
        }


@dataclass
class CapacityCheck:
    employee_id: int
    is_valid: bool
    utilization_rate: float
    current_allocated_hours: float
    proposed_hours: float
    max_capacity_percentage: float = 100.0
    warnings: List[str] = field(default_factory=list)
    conflicts: List[Conflict] = field(default_factory=list)

    def to_dict(self):
        return {
            'employee_id': self.employee_id,
            'is_valid': self.is_valid,
            'utilization_rate': round(self.utilization_rate, 2),
            'current_allocated_hours': round(self.current_allocated_hours, 2),
            'proposed_hours': self.proposed_hours,
            'max_capacity_percentage': self.max_capacity_percentage,
            'warnings': list(self.warnings),
            'conflicts': [c.to_dict() for c in self.conflicts]
        }


@dataclass
class ValidationReport:
    is_valid: bool = True
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)

    def fail(self, message):
        self.errors.append(message)
        self.is_valid = False

    def to_dict(self):
        return {
            'is_valid': self.is_valid,
            'errors': list(self.errors),
            'warnings': list(self.warnings),
            'recommendations': list(self.recommendations)
        }


@dataclass
class ConflictReport:
    has_conflicts: bool
    conflicts: List[dict]
    suggestions: List[str]

    def to_dict(self):
        return {
            'has_conflicts': self.has_conflicts,
            'conflicts': list(self.conflicts),
            'suggestions': list(self.suggestions)
        }


@dataclass
class UtilizationSummary:
    total_employees: int
    average_utilization: float
    overutilized_count: int
    underutilized_count: int
    total_assignments: int
    conflicts_count: int

    def to_dict(self):
        return {
            'total_employees': self.total_employees,
            'average_utilization': round(self.average_utilization, 2),
            'overutilized_count': self.overutilized_count,
            'underutilized_count': self.underutilized_count,
            'total_assignments': self.total_assignments,
            'conflicts_count': self.conflicts_count
        }
