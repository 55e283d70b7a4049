from datetime import datetime, timezone
from db import db
import json

from records import (
    STATUS_TENTATIVE, STANDARD_WEEKLY_HOURS, AllocatedHours, AssignmentRecord,
    EmployeeRecord, ProjectRecord
)


def utc_now():
    """Return current UTC time (timezone-aware)"""
    return datetime.now(timezone.utc)


def _load_skills(raw):
    return json.loads(raw) if raw else []


class Department(db.Model):
    """Department grouping employees"""
    __tablename__ = 'departments'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), unique=True, nullable=False)
    description = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=utc_now)
    updated_at = db.Column(db.DateTime, default=utc_now, onupdate=utc_now)

    # Relationships
    employees = db.relationship('Employee', backref='department', lazy=True)

    def __init__(self, name, description=None):
        self.name = name
        self.description = description

    def to_dict(self):
        """Convert department to dictionary"""
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'employee_count': len(self.employees) if self.employees else 0,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None
        }


class Employee(db.Model):
    """Employee model"""
    __tablename__ = 'employees'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=True)
    department_id = db.Column(db.Integer, db.ForeignKey('departments.id'), nullable=True)
    weekly_capacity = db.Column(db.Float, nullable=False, default=STANDARD_WEEKLY_HOURS)
    hourly_cost = db.Column(db.Float, nullable=True)
    skills = db.Column(db.Text, nullable=True)  # JSON string of skills
    seniority = db.Column(db.String(20), nullable=True)  # junior, mid, senior
    success_rate = db.Column(db.Float, nullable=True)  # 0-1 historical success
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=utc_now)
    updated_at = db.Column(db.DateTime, default=utc_now, onupdate=utc_now)

    # Relationships
    assignments = db.relationship('Assignment', backref='employee', lazy=True, cascade='all, delete-orphan')

    def __init__(self, name, weekly_capacity=STANDARD_WEEKLY_HOURS, hourly_cost=None, skills=None,
                 seniority=None, success_rate=None, is_active=True, department_id=None, email=None):
        self.name = name
        self.email = email
        self.department_id = department_id
        self.weekly_capacity = weekly_capacity
        self.hourly_cost = hourly_cost
        self.seniority = seniority
        self.success_rate = success_rate
        self.is_active = is_active
        self.set_skills_list(skills)

    def to_dict(self):
        """Convert employee to dictionary"""
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'department_id': self.department_id,
            'department': self.department.name if self.department else None,
            'weekly_capacity': self.weekly_capacity,
            'hourly_cost': self.hourly_cost,
            'skills': self.get_skills_list(),
            'seniority': self.seniority,
            'success_rate': self.success_rate,
            'is_active': self.is_active,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None
        }

    def get_skills_list(self):
        """Get skills as a list"""
        return _load_skills(self.skills)

    def set_skills_list(self, skills_list):
        """Set skills from a list"""
        self.skills = json.dumps(list(skills_list)) if skills_list else '[]'

    def to_record(self):
        """Immutable snapshot for the capacity engine"""
        return EmployeeRecord(
            id=self.id,
            name=self.name,
            weekly_capacity=self.weekly_capacity,
            hourly_cost=self.hourly_cost,
            skills=tuple(self.get_skills_list()),
            seniority=self.seniority,
            success_rate=self.success_rate,
            is_active=bool(self.is_active),
            department_id=self.department_id
        )


class Project(db.Model):
    """Project model"""
    __tablename__ = 'projects'

    STATUSES = ['planning', 'active', 'on-hold', 'completed', 'cancelled']

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    start_date = db.Column(db.Date, nullable=True)
    end_date = db.Column(db.Date, nullable=True)
    status = db.Column(db.String(20), nullable=False, default='planning')
    required_skills = db.Column(db.Text, nullable=True)  # JSON string of skills
    budget = db.Column(db.Float, nullable=True)
    created_at = db.Column(db.DateTime, default=utc_now)
    updated_at = db.Column(db.DateTime, default=utc_now, onupdate=utc_now)

    # Relationships
    assignments = db.relationship('Assignment', backref='project', lazy=True, cascade='all, delete-orphan')

    def __init__(self, name, start_date=None, end_date=None, status='planning', required_skills=None, budget=None):
        self.name = name
        self.start_date = start_date
        self.end_date = end_date
        self.status = status
        self.budget = budget
        self.set_required_skills(required_skills)

    def to_dict(self):
        """Convert project to dictionary"""
        return {
            'id': self.id,
            'name': self.name,
            'start_date': self.start_date.isoformat() if self.start_date else None,
            'end_date': self.end_date.isoformat() if self.end_date else None,
            'status': self.status,
            'required_skills': self.get_required_skills(),
            'budget': self.budget,
            'duration_days': self.duration_days,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None
        }

    @property
    def duration_days(self):
        """Calculate project duration in days"""
        if self.start_date and self.end_date:
            return (self.end_date - self.start_date).days + 1
        return None

    def get_required_skills(self):
        return _load_skills(self.required_skills)

    def set_required_skills(self, skills_list):
        self.required_skills = json.dumps(list(skills_list)) if skills_list else '[]'

    def to_record(self):
        """Immutable snapshot for the capacity engine"""
        return ProjectRecord(
            id=self.id,
            name=self.name,
            start_date=self.start_date,
            end_date=self.end_date,
            status=self.status,
            required_skills=tuple(self.get_required_skills()),
            budget=self.budget
        )


class Assignment(db.Model):
    """Employee assignment to project model"""
    __tablename__ = 'assignments'

    # Allocation entry types; hours_per_week is always the canonical value
    ALLOCATION_HOURS = 'hours'
    ALLOCATION_PERCENTAGE = 'percentage'
    ALLOCATION_TYPES = [ALLOCATION_HOURS, ALLOCATION_PERCENTAGE]

    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.Integer, db.ForeignKey('employees.id'), nullable=False, index=True)
    project_id = db.Column(db.Integer, db.ForeignKey('projects.id'), nullable=False, index=True)
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)  # inclusive
    hours_per_week = db.Column(db.Float, nullable=False, default=STANDARD_WEEKLY_HOURS)
    allocation_type = db.Column(db.String(20), nullable=False, default='hours')
    allocation_percentage = db.Column(db.Float, nullable=True)
    status = db.Column(db.String(20), nullable=False, default=STATUS_TENTATIVE)
    role_on_project = db.Column(db.String(100), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    actual_hours = db.Column(db.Float, nullable=True)
    created_at = db.Column(db.DateTime, default=utc_now)
    updated_at = db.Column(db.DateTime, default=utc_now, onupdate=utc_now)

    def __init__(self, employee_id, project_id, start_date, end_date, hours_per_week=STANDARD_WEEKLY_HOURS,
                 role_on_project=None, allocation_type='hours', allocation_percentage=None,
                 status=STATUS_TENTATIVE, notes=None):
        self.employee_id = employee_id
        self.project_id = project_id
        self.start_date = start_date
        self.end_date = end_date
        self.hours_per_week = hours_per_week
        self.role_on_project = role_on_project or ''
        self.allocation_type = allocation_type
        self.allocation_percentage = allocation_percentage
        self.status = status
        self.notes = notes

    def to_dict(self):
        """Convert assignment to dictionary"""
        return {
            'id': self.id,
            'employee_id': self.employee_id,
            'project_id': self.project_id,
            'start_date': self.start_date.isoformat() if self.start_date else None,
            'end_date': self.end_date.isoformat() if self.end_date else None,
            'hours_per_week': self.hours_per_week,
            'allocation_type': self.allocation_type,
            'allocation_percentage': self.allocation_percentage,
            'status': self.status,
            'role_on_project': self.role_on_project,
            'notes': self.notes,
            'actual_hours': self.actual_hours,
            'total_hours': round(self.to_record().total_hours, 2),
            'employee_name': self.employee.name if self.employee else None,
            'project_name': self.project.name if self.project else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None
        }

    def to_record(self):
        """Immutable snapshot for the capacity engine"""
        return AssignmentRecord(
            id=self.id,
            employee_id=self.employee_id,
            project_id=self.project_id,
            start_date=self.start_date,
            end_date=self.end_date,
            allocated=AllocatedHours.weekly(self.hours_per_week),
            status=self.status,
            role=self.role_on_project,
            notes=self.notes,
            allocation_percentage=(self.allocation_percentage
                                   if self.allocation_type == self.ALLOCATION_PERCENTAGE else None),
            actual_hours=self.actual_hours
        )
