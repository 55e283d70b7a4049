"""
Assignment lifecycle service.

Validates proposed assignments, checks them against the capacity engine
before they are written, and drives the assignment status state machine.

The create and update paths read existing assignments and then write, so two
concurrent requests for the same employee can both pass the conflict check.
The employee row is locked FOR UPDATE while checking, which serializes
writers on PostgreSQL; SQLite ignores the lock and the race remains there.
"""

from dataclasses import replace
from datetime import timedelta
import logging

from engine import calculate_availability, detect_conflicts
from errors import (
    BusinessLogicError, ConflictError, InvalidTransitionError, NotFoundError,
    ValidationError, parse_date, validate_date_range, validate_enum,
    validate_positive_number, validate_required
)
from records import (
    ACTIVE_STATUSES, STATUS_CANCELLED, STATUS_COMPLETED, STATUS_CONFIRMED,
    STATUS_TENTATIVE, STANDARD_WEEKLY_HOURS, AllocatedHours, AssignmentRecord,
    CapacityCheck, ConflictReport, UtilizationSummary, ValidationReport
)

logger = logging.getLogger(__name__)

MAX_WEEKLY_HOURS = 168.0
HIGH_UTILIZATION_THRESHOLD = 80.0
FULL_UTILIZATION = 100.0
UNDER_UTILIZATION_THRESHOLD = 70.0
LOW_ALLOCATION_PERCENTAGE = 20.0

ALLOWED_TRANSITIONS = {
    STATUS_TENTATIVE: (STATUS_CONFIRMED, STATUS_CANCELLED),
    STATUS_CONFIRMED: (STATUS_COMPLETED, STATUS_CANCELLED),
    STATUS_COMPLETED: (),
    STATUS_CANCELLED: (),
}

INITIAL_STATUSES = [STATUS_TENTATIVE, STATUS_CONFIRMED]


def can_transition(current, requested):
    return requested in ALLOWED_TRANSITIONS.get(current, ())


def conflicts_touching(conflicts, assignment_id):
    return [conflict for conflict in conflicts if conflict.involves(assignment_id)]


class AllocationService:
    """Validation, conflict gating and status transitions for assignments"""

    def __init__(self, assignments, employees, projects, max_weekly_hours=MAX_WEEKLY_HOURS,
                 standard_weekly_hours=STANDARD_WEEKLY_HOURS,
                 high_utilization_threshold=HIGH_UTILIZATION_THRESHOLD):
        self.assignments = assignments
        self.employees = employees
        self.projects = projects
        self.max_weekly_hours = max_weekly_hours
        self.standard_weekly_hours = standard_weekly_hours
        self.high_utilization_threshold = high_utilization_threshold

    # ------------------------------------------------------------------
    # Input handling

    def _parse_dates(self, data):
        start_date = parse_date(data.get('start_date'), 'start_date')
        end_date = parse_date(data.get('end_date'), 'end_date')
        validate_date_range(start_date, end_date)
        return start_date, end_date

    def _requested_load(self, data):
        """Validate the hours or percentage field; returns (weekly_hours, percentage)"""
        if data.get('allocation_percentage') is not None and data.get('hours_per_week') is None:
            percentage = validate_positive_number(data['allocation_percentage'], 'allocation_percentage',
                                                  maximum=FULL_UTILIZATION)
            return None, percentage

        if data.get('hours_per_week') is None:
            raise ValidationError("Missing required fields: hours_per_week or allocation_percentage",
                                  'hours_per_week')
        hours = validate_positive_number(data['hours_per_week'], 'hours_per_week',
                                         maximum=self.max_weekly_hours)
        return hours, None

    def _allocated_hours(self, hours, percentage, employee):
        if percentage is not None:
            return AllocatedHours.from_percentage(percentage, employee.weekly_capacity)
        return AllocatedHours.weekly(hours)

    def _load_employee(self, employee_id, lock=False):
        employee = self.employees.get(employee_id, lock=lock)
        if not employee:
            raise NotFoundError("Employee", employee_id)
        return employee

    def _require_employee(self, employee_id, lock=False):
        employee = self._load_employee(employee_id, lock=lock)
        if not employee.is_active:
            raise BusinessLogicError(f"Cannot allocate to inactive employee {employee_id}")
        return employee

    def _require_project(self, project_id):
        project = self.projects.get(project_id)
        if not project:
            raise NotFoundError("Project", project_id)
        if project.is_closed:
            raise BusinessLogicError(f"Cannot assign resources to a {project.status} project")
        return project

    @staticmethod
    def _check_within_project(project, start_date, end_date):
        if project.start_date and start_date < project.start_date:
            raise ValidationError("Assignment start date cannot be before project start date", 'start_date')
        if project.end_date and end_date > project.end_date:
            raise ValidationError("Assignment end date cannot be after project end date", 'end_date')

    # ------------------------------------------------------------------
    # Creation and updates

    def create_assignment(self, data, force=False):
        """
        Validate and persist a new assignment.

        Args:
            data: Dict with employee_id, project_id, start_date, end_date,
                role_on_project and either hours_per_week or
                allocation_percentage (of the employee's weekly capacity)
            force: Skip conflict rejection; structural validation still runs

        Returns:
            AssignmentRecord: the persisted assignment

        Raises:
            ValidationError, NotFoundError, BusinessLogicError, ConflictError
        """
        if data is None:
            raise ValidationError("Request body is required")

        # Date ordering is checked first so that an inverted range always
        # reports as a validation failure
        if data.get('start_date') and data.get('end_date'):
            self._parse_dates(data)

        validate_required(data, ['employee_id', 'project_id', 'start_date', 'end_date', 'role_on_project'])
        start_date, end_date = self._parse_dates(data)
        hours, percentage = self._requested_load(data)

        status = data.get('status') or STATUS_TENTATIVE
        validate_enum(status, INITIAL_STATUSES, 'status')

        employee = self._require_employee(data['employee_id'], lock=True)
        project = self._require_project(data['project_id'])
        self._check_within_project(project, start_date, end_date)

        allocated = self._allocated_hours(hours, percentage, employee)
        if allocated.weekly_hours > self.max_weekly_hours:
            raise ValidationError(f"hours_per_week must not exceed {self.max_weekly_hours}", 'hours_per_week')

        candidate = AssignmentRecord(
            id=None,
            employee_id=employee.id,
            project_id=project.id,
            start_date=start_date,
            end_date=end_date,
            allocated=allocated,
            status=status,
            role=str(data['role_on_project']).strip(),
            notes=data.get('notes'),
            allocation_percentage=percentage
        )

        if force:
            logger.info(f"Forced assignment for employee {employee.id} on project {project.id}")
        else:
            existing = self.assignments.find_by_employee(employee.id, start_date, end_date)
            conflicts = conflicts_touching(detect_conflicts(existing + [candidate], self.standard_weekly_hours),
                                           None)
            if conflicts:
                logger.warning(
                    f"Rejected assignment for employee {employee.id}: {len(conflicts)} scheduling conflict(s)"
                )
                raise ConflictError(
                    f"Scheduling conflict detected for employee {employee.id}",
                    conflicts
                )

        saved = self.assignments.save(candidate)
        logger.info(f"Created assignment {saved.id} ({saved.status}) for employee {saved.employee_id}")
        return saved

    def create_forced_assignment(self, data):
        """Create an assignment without conflict rejection"""
        return self.create_assignment(data, force=True)

    def update_assignment(self, assignment_id, changes):
        """
        Apply changes to an existing assignment.

        When the dates move, the employee's other active assignments are
        checked again and any overlap rejects the update.
        """
        if not changes:
            raise ValidationError("No changes provided")

        current = self.assignments.find_by_id(assignment_id)
        if current.status not in ACTIVE_STATUSES:
            raise BusinessLogicError(f"Cannot modify a {current.status} assignment")
        if 'status' in changes:
            raise ValidationError("Use the status endpoint to change an assignment's status", 'status')

        start_date = parse_date(changes['start_date'], 'start_date') if 'start_date' in changes else current.start_date
        end_date = parse_date(changes['end_date'], 'end_date') if 'end_date' in changes else current.end_date
        validate_date_range(start_date, end_date)

        employee = self._load_employee(current.employee_id, lock=True)

        allocated = current.allocated
        percentage = current.allocation_percentage
        if changes.get('hours_per_week') is not None:
            hours = validate_positive_number(changes['hours_per_week'], 'hours_per_week',
                                             maximum=self.max_weekly_hours)
            allocated, percentage = AllocatedHours.weekly(hours), None
        elif changes.get('allocation_percentage') is not None:
            percentage = validate_positive_number(changes['allocation_percentage'], 'allocation_percentage',
                                                  maximum=FULL_UTILIZATION)
            allocated = AllocatedHours.from_percentage(percentage, employee.weekly_capacity)

        role = current.role
        if 'role_on_project' in changes:
            role = (changes['role_on_project'] or '').strip()
            if not role:
                raise ValidationError("role_on_project must not be empty", 'role_on_project')

        dates_changed = (start_date, end_date) != (current.start_date, current.end_date)
        load_changed = allocated != current.allocated
        if (dates_changed or load_changed) and not employee.is_active:
            raise BusinessLogicError(f"Cannot allocate to inactive employee {employee.id}")
        if dates_changed:
            project = self._require_project(current.project_id)
            self._check_within_project(project, start_date, end_date)

        updated = replace(
            current,
            start_date=start_date,
            end_date=end_date,
            allocated=allocated,
            allocation_percentage=percentage,
            role=role,
            notes=changes.get('notes', current.notes)
        )

        if dates_changed:
            others = self.assignments.find_by_employee(current.employee_id, start_date, end_date,
                                                       exclude_id=assignment_id)
            conflicts = conflicts_touching(detect_conflicts(others + [updated], self.standard_weekly_hours),
                                           assignment_id)
            if conflicts:
                logger.warning(f"Rejected date change for assignment {assignment_id}: overlaps existing work")
                raise ConflictError(
                    f"Date update would overlap {len(conflicts)} existing assignment(s)",
                    conflicts
                )

        saved = self.assignments.save(updated)
        logger.info(f"Updated assignment {assignment_id}")
        return saved

    # ------------------------------------------------------------------
    # Status state machine

    def transition(self, assignment_id, new_status, actual_hours=None):
        """Move an assignment to a new status if the state machine allows it"""
        current = self.assignments.find_by_id(assignment_id)
        if not can_transition(current.status, new_status):
            raise InvalidTransitionError(current.status, new_status)

        if actual_hours is not None:
            if new_status != STATUS_COMPLETED:
                raise ValidationError("actual_hours can only be recorded when completing", 'actual_hours')
            try:
                actual_hours = float(actual_hours)
            except (TypeError, ValueError):
                raise ValidationError("actual_hours must be a valid number", 'actual_hours')
            if actual_hours < 0:
                raise ValidationError("actual_hours must not be negative", 'actual_hours')

        saved = self.assignments.update_status(assignment_id, new_status, actual_hours)
        logger.info(f"Assignment {assignment_id} transitioned {current.status} -> {new_status}")
        return saved

    def confirm(self, assignment_id):
        return self.transition(assignment_id, STATUS_CONFIRMED)

    def complete(self, assignment_id, actual_hours=None):
        return self.transition(assignment_id, STATUS_COMPLETED, actual_hours)

    def cancel(self, assignment_id):
        return self.transition(assignment_id, STATUS_CANCELLED)

    # ------------------------------------------------------------------
    # Capacity and advisory checks

    def check_capacity(self, employee_id, hours, start_date, end_date, exclude_id=None):
        """
        Check whether an employee can take on `hours` per week in a window.

        Utilization is measured against the standard week. Above the high
        utilization threshold a warning is attached; above 100% or with any
        scheduling conflict the check is invalid.

        Returns:
            CapacityCheck
        """
        hours = validate_positive_number(hours, 'hours', maximum=self.max_weekly_hours)
        validate_date_range(start_date, end_date)

        employee = self.employees.get(employee_id)
        if not employee:
            raise NotFoundError("Employee", employee_id)

        existing = self.assignments.find_by_employee(employee_id, start_date, end_date, exclude_id=exclude_id)
        current_hours = sum(a.weekly_hours for a in existing)
        utilization_rate = (current_hours + hours) / self.standard_weekly_hours * 100

        proposed = AssignmentRecord(
            id=None,
            employee_id=employee_id,
            project_id=0,
            start_date=start_date,
            end_date=end_date,
            allocated=AllocatedHours.weekly(hours)
        )
        conflicts = conflicts_touching(detect_conflicts(existing + [proposed], self.standard_weekly_hours), None)

        warnings = []
        if utilization_rate > FULL_UTILIZATION:
            warnings.append(f"Over-allocation detected: {utilization_rate:.1f}% capacity (max 100%)")
        elif utilization_rate > self.high_utilization_threshold:
            warnings.append(f"High utilization: {utilization_rate:.1f}% capacity")
        if conflicts:
            warnings.append(f"{len(conflicts)} scheduling conflict(s) detected")

        if warnings:
            logger.warning(f"Capacity check for employee {employee_id}: {'; '.join(warnings)}")

        return CapacityCheck(
            employee_id=employee_id,
            is_valid=utilization_rate <= FULL_UTILIZATION and not conflicts,
            utilization_rate=utilization_rate,
            current_allocated_hours=current_hours,
            proposed_hours=hours,
            warnings=warnings,
            conflicts=conflicts
        )

    def check_assignment_conflicts(self, employee_id, start_date, end_date, exclude_id=None):
        """List assignments overlapping a proposed range, with a suggested later start"""
        validate_date_range(start_date, end_date)
        overlapping = self.assignments.find_by_employee(employee_id, start_date, end_date, exclude_id=exclude_id)

        conflicts = []
        suggestions = []
        for assignment in overlapping:
            days = min(end_date, assignment.end_date) - max(start_date, assignment.start_date)
            conflicts.append({
                'assignment_id': assignment.id,
                'project_id': assignment.project_id,
                'start_date': assignment.start_date.isoformat(),
                'end_date': assignment.end_date.isoformat(),
                'hours_per_week': assignment.weekly_hours,
                'overlap_days': days.days + 1
            })

        if conflicts:
            total_hours = sum(a.weekly_hours for a in overlapping)
            suggestions.append(
                f"Found {len(conflicts)} conflicting assignment(s) totaling {total_hours:.1f} hours/week"
            )
            for conflict in conflicts:
                suggestions.append(
                    f"Conflict with project {conflict['project_id']} ({conflict['start_date']} to "
                    f"{conflict['end_date']}, {conflict['overlap_days']} days overlap, "
                    f"{conflict['hours_per_week']:.1f} hours/week)"
                )
            latest_end = max(a.end_date for a in overlapping)
            suggestions.append(f"Consider starting after {(latest_end + timedelta(days=1)).isoformat()}")

        return ConflictReport(has_conflicts=bool(conflicts), conflicts=conflicts, suggestions=suggestions)

    def validate_allocation(self, data):
        """
        Advisory validation of a proposed assignment.

        Unlike create_assignment this never raises for business problems; it
        collects errors, warnings and recommendations for the caller to show.
        """
        report = ValidationReport()
        data = data or {}

        try:
            start_date, end_date = self._parse_dates(data)
        except ValidationError as e:
            report.fail(e.message)
            start_date = end_date = None

        try:
            hours, percentage = self._requested_load(data)
        except ValidationError as e:
            report.fail(e.message)
            hours = percentage = None

        employee = self.employees.get(data.get('employee_id')) if data.get('employee_id') else None
        if not employee:
            report.fail("Employee not found")
        elif not employee.is_active:
            report.fail("Employee is not active")

        project = self.projects.get(data.get('project_id')) if data.get('project_id') else None
        if not project:
            report.fail("Project not found")
        else:
            if project.is_closed:
                report.fail("Cannot assign resources to completed or cancelled project")
            if start_date and project.start_date and start_date < project.start_date:
                report.warnings.append("Assignment starts before project start date")
            if end_date and project.end_date and end_date > project.end_date:
                report.warnings.append("Assignment extends beyond project end date")

        if employee and start_date and (hours is not None or percentage is not None):
            allocated = self._allocated_hours(hours, percentage, employee)
            capacity = self.check_capacity(employee.id, allocated.weekly_hours, start_date, end_date)
            if not capacity.is_valid:
                for warning in capacity.warnings:
                    report.fail(warning)
            else:
                report.warnings.extend(capacity.warnings)

            share = allocated.percentage_of(employee.weekly_capacity)
            if share > self.high_utilization_threshold:
                report.recommendations.append(
                    "High allocation percentage - consider leaving buffer for unexpected work"
                )
            if share < LOW_ALLOCATION_PERCENTAGE:
                report.recommendations.append(
                    "Low allocation percentage - consider consolidating with other projects"
                )

        if employee and project:
            same_project = [a for a in self.assignments.find_by_employee(employee.id)
                            if a.project_id == project.id]
            if same_project:
                report.warnings.append("Employee already assigned to this project")
                report.recommendations.append("Consider updating existing assignment instead of creating new one")

            if project.required_skills and not set(project.required_skills) & set(employee.skills):
                report.warnings.append("Employee may not have required skills for this project")
                report.recommendations.append("Verify employee skills match project requirements")

        return report

    def utilization_summary(self, start_date, end_date):
        """Organisation-wide utilization over a window"""
        utilizations = []
        total_assignments = 0
        conflicts_count = 0

        for employee in self.employees.all_active():
            assignments = self.assignments.find_by_employee(employee.id, start_date, end_date)
            availability = calculate_availability(employee.id, start_date, end_date, assignments,
                                                  self.standard_weekly_hours)
            utilizations.append(availability.utilization_rate * 100)
            total_assignments += len(assignments)
            conflicts_count += len(availability.conflicts)

        total_employees = len(utilizations)
        return UtilizationSummary(
            total_employees=total_employees,
            average_utilization=sum(utilizations) / total_employees if total_employees else 0.0,
            overutilized_count=len([u for u in utilizations if u > FULL_UTILIZATION]),
            underutilized_count=len([u for u in utilizations if u < UNDER_UTILIZATION_THRESHOLD]),
            total_assignments=total_assignments,
            conflicts_count=conflicts_count
        )
