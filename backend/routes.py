from flask import Blueprint, request, jsonify, current_app
from dateutil.relativedelta import relativedelta
from errors import (
    ValidationError, NotFoundError, StaffingError,
    validate_required, validate_date_range, validate_positive_number, validate_enum,
    parse_date, safe_db_operation
)
from records import (
    ASSIGNMENT_STATUSES, SENIORITY_LEVELS, AllocatedHours, AssignmentRecord,
    ProjectRequirements
)

api = Blueprint('api', __name__)

def get_models():
    """Import models and db - call this inside route functions"""
    from db import db
    from models import Department, Employee, Project, Assignment
    return db, Department, Employee, Project, Assignment


def get_allocation_service():
    """Build the lifecycle service with its storage collaborators"""
    from lifecycle import AllocationService
    from repository import AssignmentRepository, EmployeeDirectory, ProjectDirectory

    return AllocationService(
        AssignmentRepository(),
        EmployeeDirectory(),
        ProjectDirectory(),
        max_weekly_hours=current_app.config['MAX_WEEKLY_HOURS'],
        standard_weekly_hours=current_app.config['STANDARD_WEEKLY_HOURS'],
        high_utilization_threshold=current_app.config['HIGH_UTILIZATION_THRESHOLD']
    )


def get_optimizer():
    from engine import AllocationOptimizer
    from repository import EmployeeDirectory

    return AllocationOptimizer(
        EmployeeDirectory(),
        standard_weekly_hours=current_app.config['STANDARD_WEEKLY_HOURS'],
        default_hourly_cost=current_app.config['DEFAULT_HOURLY_COST']
    )

# Error handling decorator
def handle_errors(f):
    """Decorator to log unexpected errors before the global handler sees them"""
    def wrapper(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except StaffingError:
            # Already handled by the global error handler
            raise
        except Exception as e:
            current_app.logger.error(f"Unexpected error in {f.__name__}: {str(e)}")
            raise
    wrapper.__name__ = f.__name__
    return wrapper


def get_json_body():
    data = request.get_json(silent=True)
    if data is None:
        raise ValidationError("Request body must be JSON")
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def parse_flag(value, field_name):
    """Accept a JSON boolean or the strings 'true'/'false'"""
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ('true', 'false'):
        return value.lower() == 'true'
    raise ValidationError(f"{field_name} must be a boolean", field_name)


def get_window_args(default_months=None):
    """Parse start_date/end_date query parameters"""
    start_arg = request.args.get('start_date')
    end_arg = request.args.get('end_date')

    if not start_arg or (not end_arg and default_months is None):
        raise ValidationError("start_date and end_date parameters are required")

    start_date = parse_date(start_arg, 'start_date')
    if end_arg:
        end_date = parse_date(end_arg, 'end_date')
    else:
        end_date = start_date + relativedelta(months=default_months)
    validate_date_range(start_date, end_date)
    return start_date, end_date


def validate_skill_list(value, field_name):
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(s, str) for s in value):
        raise ValidationError(f"{field_name} must be a list of skill names", field_name)
    return value

# Validation helpers
def validate_employee_data(data):
    """Validate employee data"""
    validate_required(data, ['name'])

    if data.get('weekly_capacity') is not None:
        validate_positive_number(data['weekly_capacity'], 'weekly_capacity',
                                 maximum=current_app.config['MAX_WEEKLY_HOURS'])
    if data.get('hourly_cost') is not None:
        validate_positive_number(data['hourly_cost'], 'hourly_cost')
    if data.get('seniority') is not None:
        validate_enum(data['seniority'], SENIORITY_LEVELS, 'seniority')
    if data.get('success_rate') is not None:
        rate = data['success_rate']
        if not isinstance(rate, (int, float)) or not 0 <= rate <= 1:
            raise ValidationError("success_rate must be between 0 and 1", 'success_rate')
    validate_skill_list(data.get('skills'), 'skills')


def validate_project_data(data):
    """Validate project data"""
    from models import Project

    validate_required(data, ['name'])
    validate_enum(data.get('status', 'planning'), Project.STATUSES, 'status')

    start_date = parse_date(data['start_date'], 'start_date') if data.get('start_date') else None
    end_date = parse_date(data['end_date'], 'end_date') if data.get('end_date') else None
    validate_date_range(start_date, end_date)

    if 'budget' in data and data['budget'] is not None:
        if not isinstance(data['budget'], (int, float)) or data['budget'] < 0:
            raise ValidationError("budget must be a non-negative number")
    validate_skill_list(data.get('required_skills'), 'required_skills')
    return start_date, end_date


# EMPLOYEE ENDPOINTS

@api.route('/employees', methods=['GET'])
@handle_errors
def get_employees():
    """Get all employees with optional filtering"""
    db, Department, Employee, Project, Assignment = get_models()

    query = Employee.query
    department_id = request.args.get('department_id', type=int)
    if department_id:
        query = query.filter(Employee.department_id == department_id)
    if request.args.get('active', '').lower() == 'true':
        query = query.filter(Employee.is_active.is_(True))

    return jsonify([employee.to_dict() for employee in query.order_by(Employee.id).all()])

@api.route('/employees', methods=['POST'])
@handle_errors
def create_employee():
    """Create a new employee"""
    db, Department, Employee, Project, Assignment = get_models()

    data = get_json_body()
    validate_employee_data(data)

    if data.get('department_id') and not db.session.get(Department, data['department_id']):
        raise NotFoundError("Department", data['department_id'])

    employee = Employee(
        name=data['name'],
        email=data.get('email'),
        department_id=data.get('department_id'),
        weekly_capacity=data.get('weekly_capacity') or 40.0,
        hourly_cost=data.get('hourly_cost'),
        skills=data.get('skills'),
        seniority=data.get('seniority'),
        success_rate=data.get('success_rate'),
        is_active=data.get('is_active', True)
    )

    safe_db_operation(lambda: (db.session.add(employee), db.session.commit())[1], "Failed to create employee")
    return jsonify(employee.to_dict()), 201

@api.route('/employees/<int:employee_id>', methods=['GET'])
@handle_errors
def get_employee(employee_id):
    """Get a specific employee by ID"""
    db, Department, Employee, Project, Assignment = get_models()

    employee = db.session.get(Employee, employee_id)
    if not employee:
        raise NotFoundError("Employee", employee_id)
    return jsonify(employee.to_dict())


# PROJECT ENDPOINTS

@api.route('/projects', methods=['GET'])
@handle_errors
def get_projects():
    """Get all projects with optional status filter"""
    db, Department, Employee, Project, Assignment = get_models()

    query = Project.query
    status = request.args.get('status')
    if status:
        query = query.filter(Project.status == status)
    return jsonify([project.to_dict() for project in query.order_by(Project.id).all()])

@api.route('/projects', methods=['POST'])
@handle_errors
def create_project():
    """Create a new project"""
    db, Department, Employee, Project, Assignment = get_models()

    data = get_json_body()
    start_date, end_date = validate_project_data(data)

    project = Project(
        name=data['name'],
        start_date=start_date,
        end_date=end_date,
        status=data.get('status', 'planning'),
        required_skills=data.get('required_skills'),
        budget=data.get('budget')
    )

    safe_db_operation(lambda: (db.session.add(project), db.session.commit())[1], "Failed to create project")
    return jsonify(project.to_dict()), 201

@api.route('/projects/<int:project_id>', methods=['GET'])
@handle_errors
def get_project(project_id):
    """Get a specific project by ID"""
    db, Department, Employee, Project, Assignment = get_models()

    project = db.session.get(Project, project_id)
    if not project:
        raise NotFoundError("Project", project_id)
    return jsonify(project.to_dict())


# CAPACITY ENGINE ENDPOINTS

@api.route('/employees/<int:employee_id>/availability', methods=['GET'])
@handle_errors
def get_employee_availability(employee_id):
    """
    Availability and utilization of an employee over a window.

    Query Parameters:
        start_date (required): Window start (YYYY-MM-DD)
        end_date (optional): Window end, defaults to one month after start
        include_slots (optional): 'true' to include per-day slots
    """
    from engine import calculate_availability
    from repository import AssignmentRepository, EmployeeDirectory

    start_date, end_date = get_window_args(default_months=1)
    if not EmployeeDirectory().get(employee_id):
        raise NotFoundError("Employee", employee_id)

    assignments = AssignmentRepository().find_by_employee(employee_id, start_date, end_date)
    availability = calculate_availability(employee_id, start_date, end_date, assignments,
                                          current_app.config['STANDARD_WEEKLY_HOURS'])

    include_slots = request.args.get('include_slots', 'false').lower() == 'true'
    return jsonify(availability.to_dict(include_slots=include_slots))

@api.route('/employees/<int:employee_id>/conflicts', methods=['GET'])
@handle_errors
def get_employee_conflicts(employee_id):
    """
    Scheduling conflicts among an employee's active assignments in a window.

    Query Parameters:
        start_date (required): Start date (YYYY-MM-DD)
        end_date (required): End date (YYYY-MM-DD)
    """
    from engine import detect_conflicts
    from repository import AssignmentRepository, EmployeeDirectory

    start_date, end_date = get_window_args()
    if not EmployeeDirectory().get(employee_id):
        raise NotFoundError("Employee", employee_id)

    assignments = AssignmentRepository().find_by_employee(employee_id, start_date, end_date)
    conflicts = detect_conflicts(assignments, current_app.config['STANDARD_WEEKLY_HOURS'])
    return jsonify({
        'employee_id': employee_id,
        'conflicts': [conflict.to_dict() for conflict in conflicts],
        'assignments_count': len(assignments)
    })

@api.route('/conflicts/detect', methods=['POST'])
@handle_errors
def detect_conflicts_endpoint():
    """
    Detect conflicts in a posted list of assignments.

    Request Body:
        assignments: list of {id, employee_id, start_date, end_date,
            hours_per_week | allocation_percentage (+ weekly_capacity)}
    """
    from engine import detect_conflicts

    data = get_json_body()
    validate_required(data, ['assignments'])
    if not isinstance(data['assignments'], list):
        raise ValidationError("assignments must be a list", 'assignments')

    records = []
    for index, item in enumerate(data['assignments']):
        if not isinstance(item, dict):
            raise ValidationError(f"Assignment {index} must be a JSON object", 'assignments')
        validate_required(item, ['employee_id', 'start_date', 'end_date'])
        start_date = parse_date(item['start_date'], 'start_date')
        end_date = parse_date(item['end_date'], 'end_date')
        validate_date_range(start_date, end_date)
        if item.get('hours_per_week') is not None:
            allocated = AllocatedHours.weekly(validate_positive_number(
                item['hours_per_week'], 'hours_per_week', maximum=current_app.config['MAX_WEEKLY_HOURS']
            ))
        elif item.get('allocation_percentage') is not None:
            allocated = AllocatedHours.from_percentage(
                validate_positive_number(item['allocation_percentage'], 'allocation_percentage', maximum=100),
                item.get('weekly_capacity')
            )
        else:
            raise ValidationError(f"Assignment {index} needs hours_per_week or allocation_percentage")

        records.append(AssignmentRecord(
            id=item.get('id', index),
            employee_id=item['employee_id'],
            project_id=item.get('project_id', 0),
            start_date=start_date,
            end_date=end_date,
            allocated=allocated
        ))

    conflicts = detect_conflicts(records, current_app.config['STANDARD_WEEKLY_HOURS'])
    return jsonify({'conflicts': [conflict.to_dict() for conflict in conflicts]})

@api.route('/skill-matches', methods=['POST'])
@handle_errors
def get_skill_matches():
    """
    Rank active employees against required skills.

    Request Body:
        required_skills (required): list of skill names
        limit (optional): maximum number of matches returned
    """
    from engine import find_skill_matches
    from repository import EmployeeDirectory

    data = get_json_body()
    required_skills = validate_skill_list(data.get('required_skills'), 'required_skills')

    matches = find_skill_matches(required_skills, EmployeeDirectory().all_active())
    limit = data.get('limit')
    if limit is not None:
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
            raise ValidationError("limit must be a positive integer", 'limit')
        matches = matches[:limit]
    return jsonify([match.to_dict() for match in matches])

@api.route('/projects/<int:project_id>/optimize', methods=['POST'])
@handle_errors
def optimize_project_staffing(project_id):
    """
    Greedy staffing recommendations for a project.

    Request Body:
        effort_hours (required): total effort to staff
        duration (optional): days, defaults to the project's duration
        required_skills (optional): defaults to the project's skills
    """
    db, Department, Employee, Project, Assignment = get_models()

    project = db.session.get(Project, project_id)
    if not project:
        raise NotFoundError("Project", project_id)

    data = get_json_body()
    validate_required(data, ['effort_hours'])
    try:
        effort_hours = float(data['effort_hours'])
    except (TypeError, ValueError):
        raise ValidationError("effort_hours must be a valid number", 'effort_hours')
    if effort_hours < 0:
        raise ValidationError("effort_hours must not be negative", 'effort_hours')

    duration = data.get('duration', project.duration_days)
    if duration is None:
        raise ValidationError("duration is required when the project has no dates", 'duration')
    duration = validate_positive_number(duration, 'duration')

    required_skills = data.get('required_skills')
    if required_skills is None:
        required_skills = project.get_required_skills()
    required_skills = validate_skill_list(required_skills, 'required_skills')

    requirements = ProjectRequirements(
        project_id=project_id,
        required_skills=tuple(required_skills),
        duration=duration,
        effort_hours=effort_hours,
        priority=data.get('priority')
    )
    result = get_optimizer().optimize(requirements)
    return jsonify(result.to_dict())


# ASSIGNMENT ENDPOINTS

@api.route('/assignments', methods=['GET'])
@handle_errors
def get_assignments():
    """Get all assignments with optional filtering"""
    from repository import AssignmentRepository

    status = request.args.get('status')
    if status:
        validate_enum(status, ASSIGNMENT_STATUSES, 'status')

    records = AssignmentRepository().find_all(
        employee_id=request.args.get('employee_id', type=int),
        project_id=request.args.get('project_id', type=int),
        status=status
    )
    return jsonify([record.to_dict() for record in records])

@api.route('/assignments', methods=['POST'])
@handle_errors
def create_assignment():
    """
    Create a new assignment.

    Conflicting assignments are rejected with 409 unless `force` is true in
    the body or query string.
    """
    data = get_json_body()
    force = parse_flag(data.pop('force', False), 'force')
    force = force or parse_flag(request.args.get('force', 'false'), 'force')

    record = get_allocation_service().create_assignment(data, force=force)
    return jsonify(record.to_dict()), 201

@api.route('/assignments/<int:assignment_id>', methods=['GET'])
@handle_errors
def get_assignment_by_id(assignment_id):
    """Get a specific assignment by ID"""
    from repository import AssignmentRepository

    return jsonify(AssignmentRepository().find_by_id(assignment_id).to_dict())

@api.route('/assignments/<int:assignment_id>', methods=['PUT'])
@handle_errors
def update_assignment(assignment_id):
    """Update an assignment's dates, hours, role or notes"""
    data = get_json_body()
    record = get_allocation_service().update_assignment(assignment_id, data)
    return jsonify(record.to_dict())

@api.route('/assignments/<int:assignment_id>/status', methods=['POST'])
@handle_errors
def transition_assignment(assignment_id):
    """
    Change an assignment's status.

    Request Body:
        status (required): confirmed, completed or cancelled
        actual_hours (optional): recorded when completing
    """
    data = get_json_body()
    validate_required(data, ['status'])
    validate_enum(data['status'], ASSIGNMENT_STATUSES, 'status')

    record = get_allocation_service().transition(assignment_id, data['status'], data.get('actual_hours'))
    return jsonify(record.to_dict())

@api.route('/assignments/validate', methods=['POST'])
@handle_errors
def validate_assignment_endpoint():
    """Advisory validation of a proposed assignment"""
    data = get_json_body()
    report = get_allocation_service().validate_allocation(data)
    return jsonify(report.to_dict())

@api.route('/assignments/conflict-check', methods=['POST'])
@handle_errors
def check_assignment_conflicts_endpoint():
    """
    List existing assignments that overlap a proposed range.

    Request Body:
        employee_id, start_date, end_date (required)
        exclude_assignment_id (optional): for updates
    """
    data = get_json_body()
    validate_required(data, ['employee_id', 'start_date', 'end_date'])

    report = get_allocation_service().check_assignment_conflicts(
        data['employee_id'],
        parse_date(data['start_date'], 'start_date'),
        parse_date(data['end_date'], 'end_date'),
        exclude_id=data.get('exclude_assignment_id')
    )
    return jsonify(report.to_dict())

@api.route('/capacity/check', methods=['POST'])
@handle_errors
def check_capacity_endpoint():
    """
    Check whether an employee can take on additional weekly hours.

    Request Body:
        employee_id, hours, start_date, end_date (required)
        exclude_assignment_id (optional)
    """
    data = get_json_body()
    validate_required(data, ['employee_id', 'hours', 'start_date', 'end_date'])

    result = get_allocation_service().check_capacity(
        data['employee_id'],
        data['hours'],
        parse_date(data['start_date'], 'start_date'),
        parse_date(data['end_date'], 'end_date'),
        exclude_id=data.get('exclude_assignment_id')
    )
    return jsonify(result.to_dict())

@api.route('/utilization/summary', methods=['GET'])
@handle_errors
def get_utilization_summary():
    """Organisation-wide utilization over a window"""
    start_date, end_date = get_window_args()
    summary = get_allocation_service().utilization_summary(start_date, end_date)
    return jsonify(summary.to_dict())
