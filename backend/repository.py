"""
SQLAlchemy-backed collaborators for the capacity engine.

The engine and the lifecycle service only see immutable records; these
classes are the one place that turns rows into records and back.
"""

import logging

from db import db
from errors import NotFoundError, safe_db_operation
from records import ACTIVE_STATUSES

logger = logging.getLogger(__name__)


def get_models():
    """Import models - call this inside repository methods"""
    from models import Employee, Project, Assignment
    return Employee, Project, Assignment


class EmployeeDirectory:
    """Read access to employee snapshots"""

    def get(self, employee_id, lock=False):
        """
        Fetch an employee snapshot.

        With lock=True the row is selected FOR UPDATE so that concurrent
        assignment writers for the same employee serialize on databases that
        honour row locks.
        """
        Employee, _, _ = get_models()
        employee = db.session.get(Employee, employee_id, with_for_update=lock or None)
        return employee.to_record() if employee else None

    def all_active(self):
        Employee, _, _ = get_models()
        employees = Employee.query.filter(Employee.is_active.is_(True)).order_by(Employee.id).all()
        return [employee.to_record() for employee in employees]


class ProjectDirectory:
    """Read access to project snapshots"""

    def get(self, project_id):
        _, Project, _ = get_models()
        project = db.session.get(Project, project_id)
        return project.to_record() if project else None


class AssignmentRepository:
    """Persistence of assignment records"""

    def find_by_id(self, assignment_id):
        _, _, Assignment = get_models()
        assignment = db.session.get(Assignment, assignment_id)
        if not assignment:
            raise NotFoundError("Assignment", assignment_id)
        return assignment.to_record()

    def find_by_employee(self, employee_id, start_date=None, end_date=None,
                         exclude_id=None, active_only=True):
        """
        Assignments of an employee intersecting [start_date, end_date].

        Args:
            employee_id: ID of the employee
            start_date, end_date: Optional window; both bounds inclusive
            exclude_id: Assignment to leave out (used on updates)
            active_only: Only tentative/confirmed assignments

        Returns:
            list: AssignmentRecord ordered by start date then id
        """
        _, _, Assignment = get_models()
        query = Assignment.query.filter(Assignment.employee_id == employee_id)

        if start_date:
            query = query.filter(Assignment.end_date >= start_date)
        if end_date:
            query = query.filter(Assignment.start_date <= end_date)
        if exclude_id is not None:
            query = query.filter(Assignment.id != exclude_id)
        if active_only:
            query = query.filter(Assignment.status.in_(ACTIVE_STATUSES))

        assignments = query.order_by(Assignment.start_date, Assignment.id).all()
        return [assignment.to_record() for assignment in assignments]

    def find_all(self, employee_id=None, project_id=None, status=None):
        _, _, Assignment = get_models()
        query = Assignment.query

        if employee_id:
            query = query.filter(Assignment.employee_id == employee_id)
        if project_id:
            query = query.filter(Assignment.project_id == project_id)
        if status:
            query = query.filter(Assignment.status == status)

        return [assignment.to_record() for assignment in query.order_by(Assignment.id).all()]

    def update_status(self, assignment_id, status, actual_hours=None):
        """Persist a status change; actual_hours is kept unless given"""
        _, _, Assignment = get_models()
        assignment = db.session.get(Assignment, assignment_id)
        if not assignment:
            raise NotFoundError("Assignment", assignment_id)

        assignment.status = status
        if actual_hours is not None:
            assignment.actual_hours = actual_hours

        safe_db_operation(db.session.commit, "Failed to update assignment status")
        return assignment.to_record()

    def save(self, record):
        """
        Insert or update an assignment from its record.

        Returns:
            AssignmentRecord: the persisted state, including its id
        """
        _, _, Assignment = get_models()

        if record.id is None:
            assignment = Assignment(
                employee_id=record.employee_id,
                project_id=record.project_id,
                start_date=record.start_date,
                end_date=record.end_date,
                hours_per_week=record.weekly_hours,
                role_on_project=record.role,
                allocation_type=(Assignment.ALLOCATION_PERCENTAGE
                                 if record.allocation_percentage is not None else Assignment.ALLOCATION_HOURS),
                allocation_percentage=record.allocation_percentage,
                status=record.status,
                notes=record.notes
            )
            db.session.add(assignment)
        else:
            assignment = db.session.get(Assignment, record.id)
            if not assignment:
                raise NotFoundError("Assignment", record.id)
            assignment.employee_id = record.employee_id
            assignment.project_id = record.project_id
            assignment.start_date = record.start_date
            assignment.end_date = record.end_date
            assignment.hours_per_week = record.weekly_hours
            assignment.allocation_type = (Assignment.ALLOCATION_PERCENTAGE
                                          if record.allocation_percentage is not None
                                          else Assignment.ALLOCATION_HOURS)
            assignment.allocation_percentage = record.allocation_percentage
            assignment.role_on_project = record.role
            assignment.notes = record.notes
            assignment.status = record.status
            assignment.actual_hours = record.actual_hours

        safe_db_operation(db.session.commit, "Failed to save assignment")
        logger.debug(f"Saved assignment {assignment.id} for employee {assignment.employee_id}")
        return assignment.to_record()
