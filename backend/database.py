from datetime import date
import logging

from models import Department, Employee, Project, Assignment

logger = logging.getLogger(__name__)


def init_db():
    """Initialize the database and create all tables"""
    from models import db
    db.create_all()
    logger.info("Database initialized successfully")


def seed_database():
    """Seed the database with sample data for development"""
    from models import db

    # Check if data already exists
    if Employee.query.first():
        logger.info("Database already seeded")
        return

    departments_data = [
        {'name': 'Engineering', 'description': 'Product engineering and platform teams'},
        {'name': 'Data', 'description': 'Data engineering and analytics'},
        {'name': 'Infrastructure', 'description': 'Cloud operations and reliability'},
    ]
    departments = {}
    for data in departments_data:
        department = Department(**data)
        db.session.add(department)
        departments[data['name']] = department
    db.session.flush()

    employees_data = [
        {'name': 'Ada Morgan', 'department': 'Engineering', 'hourly_cost': 95.0, 'seniority': 'senior',
         'success_rate': 0.95, 'skills': ['Python', 'PostgreSQL', 'AWS']},
        {'name': 'Ben Okafor', 'department': 'Engineering', 'hourly_cost': 80.0, 'seniority': 'mid',
         'success_rate': 0.85, 'skills': ['React', 'TypeScript', 'Node.js']},
        {'name': 'Chloe Verma', 'department': 'Engineering', 'hourly_cost': 60.0, 'seniority': 'junior',
         'success_rate': 0.7, 'skills': ['React', 'Vue.js']},
        {'name': 'Diego Santos', 'department': 'Data', 'hourly_cost': 90.0, 'seniority': 'senior',
         'success_rate': 0.92, 'skills': ['Python', 'MongoDB', 'PostgreSQL']},
        {'name': 'Elena Petrova', 'department': 'Infrastructure', 'hourly_cost': 100.0, 'seniority': 'senior',
         'success_rate': 0.88, 'skills': ['Docker', 'Kubernetes', 'AWS']},
        {'name': 'Farid Haddad', 'department': 'Infrastructure', 'hourly_cost': 70.0, 'seniority': 'mid',
         'weekly_capacity': 32.0, 'skills': ['Docker', 'Python']},
    ]
    employees = []
    for data in employees_data:
        department = departments[data.pop('department')]
        employee = Employee(department_id=department.id, **data)
        db.session.add(employee)
        employees.append(employee)

    projects_data = [
        {'name': 'Customer Portal Rebuild', 'start_date': date(2025, 1, 6), 'end_date': date(2025, 6, 27),
         'status': 'active', 'required_skills': ['React', 'Node.js', 'PostgreSQL'], 'budget': 450000.0},
        {'name': 'Data Platform Migration', 'start_date': date(2025, 2, 3), 'end_date': date(2025, 9, 26),
         'status': 'active', 'required_skills': ['Python', 'PostgreSQL', 'AWS'], 'budget': 620000.0},
        {'name': 'Cluster Hardening', 'start_date': date(2025, 4, 1), 'end_date': date(2025, 7, 31),
         'status': 'planning', 'required_skills': ['Docker', 'Kubernetes'], 'budget': 180000.0},
    ]
    projects = []
    for data in projects_data:
        project = Project(**data)
        db.session.add(project)
        projects.append(project)
    db.session.flush()

    assignments_data = [
        (0, 1, date(2025, 2, 3), date(2025, 6, 27), 30.0, 'Backend Developer', 'confirmed'),
        (1, 0, date(2025, 1, 6), date(2025, 6, 27), 40.0, 'Frontend Developer', 'confirmed'),
        (2, 0, date(2025, 3, 3), date(2025, 6, 27), 20.0, 'Frontend Developer', 'tentative'),
        (3, 1, date(2025, 2, 3), date(2025, 9, 26), 32.0, 'Database Developer', 'confirmed'),
        (4, 2, date(2025, 4, 1), date(2025, 7, 31), 24.0, 'DevOps Engineer', 'tentative'),
    ]
    for employee_idx, project_idx, start, end, hours, role, status in assignments_data:
        db.session.add(Assignment(
            employee_id=employees[employee_idx].id,
            project_id=projects[project_idx].id,
            start_date=start,
            end_date=end,
            hours_per_week=hours,
            role_on_project=role,
            status=status
        ))

    db.session.commit()
    logger.info("Database seeded with sample data")
