"""
Unit tests for the staffing capacity API routes
"""

import pytest
from datetime import date
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app import create_app
from models import db, Department, Employee, Project, Assignment


@pytest.fixture
def app():
    """Create and configure a test app instance."""
    app = create_app('testing')
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    """A test client for the app."""
    return app.test_client()


@pytest.fixture
def test_data(app):
    """Create test data for API testing."""
    with app.app_context():
        department = Department(name="Engineering")
        db.session.add(department)
        db.session.flush()

        alice = Employee(name="Alice", department_id=department.id, hourly_cost=90.0,
                         skills=['Python', 'PostgreSQL'], seniority='senior')
        bob = Employee(name="Bob", department_id=department.id, hourly_cost=70.0,
                       skills=['React', 'Python'])
        db.session.add_all([alice, bob])

        project = Project(
            name="Platform",
            start_date=date(2025, 1, 1),
            end_date=date(2025, 12, 31),
            status="active",
            required_skills=['Python', 'PostgreSQL'],
            budget=500000.0
        )
        db.session.add(project)
        db.session.flush()

        assignment = Assignment(
            employee_id=alice.id,
            project_id=project.id,
            start_date=date(2025, 1, 1),
            end_date=date(2025, 1, 31),
            hours_per_week=30.0,
            role_on_project="Backend Developer",
            status="confirmed"
        )
        db.session.add(assignment)
        db.session.commit()

        return {
            'department_id': department.id,
            'alice_id': alice.id,
            'bob_id': bob.id,
            'project_id': project.id,
            'assignment_id': assignment.id
        }


class TestHealthCheck:
    """Test health check endpoint"""

    def test_health_check(self, client):
        response = client.get('/api/health')
        assert response.status_code == 200
        assert response.get_json()['status'] == 'healthy'


class TestEmployeeEndpoints:
    """Test employee API endpoints"""

    def test_get_employees(self, client, test_data):
        response = client.get('/api/employees')
        assert response.status_code == 200
        assert [e['name'] for e in response.get_json()] == ['Alice', 'Bob']

    def test_create_employee(self, client, test_data):
        response = client.post('/api/employees', json={
            'name': 'Chloe',
            'department_id': test_data['department_id'],
            'weekly_capacity': 32,
            'skills': ['Vue.js'],
            'seniority': 'junior'
        })
        assert response.status_code == 201
        data = response.get_json()
        assert data['weekly_capacity'] == 32
        assert data['skills'] == ['Vue.js']

    def test_create_employee_invalid(self, client):
        response = client.post('/api/employees', json={'name': 'X', 'seniority': 'wizard'})
        assert response.status_code == 400
        assert response.get_json()['error']['type'] == 'ValidationError'

    def test_create_employee_unknown_department(self, client):
        response = client.post('/api/employees', json={'name': 'X', 'department_id': 999})
        assert response.status_code == 404

    def test_get_employee_not_found(self, client):
        response = client.get('/api/employees/999')
        assert response.status_code == 404
        assert response.get_json()['error']['type'] == 'NotFoundError'


class TestProjectEndpoints:
    """Test project API endpoints"""

    def test_create_project(self, client):
        response = client.post('/api/projects', json={
            'name': 'New Project',
            'start_date': '2025-03-01',
            'end_date': '2025-03-31',
            'required_skills': ['Go']
        })
        assert response.status_code == 201
        data = response.get_json()
        assert data['status'] == 'planning'
        assert data['duration_days'] == 31

    def test_create_project_inverted_dates(self, client):
        response = client.post('/api/projects', json={
            'name': 'Backwards',
            'start_date': '2025-03-31',
            'end_date': '2025-03-01'
        })
        assert response.status_code == 400

    def test_get_project(self, client, test_data):
        response = client.get(f"/api/projects/{test_data['project_id']}")
        assert response.status_code == 200
        assert response.get_json()['required_skills'] == ['Python', 'PostgreSQL']


class TestCapacityEndpoints:
    """Test availability, conflict and skill endpoints"""

    def test_availability(self, client, test_data):
        response = client.get(
            f"/api/employees/{test_data['alice_id']}/availability?start_date=2025-01-06&end_date=2025-01-31"
        )
        assert response.status_code == 200
        data = response.get_json()
        assert data['working_days'] == 20
        assert data['total_hours'] == 160
        assert data['allocated_hours'] == 120
        assert data['available_hours'] == 40
        assert data['utilization_rate'] == 0.75
        assert 'time_slots' not in data

    def test_availability_with_slots(self, client, test_data):
        response = client.get(
            f"/api/employees/{test_data['alice_id']}/availability"
            "?start_date=2025-01-06&end_date=2025-01-10&include_slots=true"
        )
        slots = response.get_json()['time_slots']
        assert len(slots) == 5
        assert slots[0] == {'date': '2025-01-06', 'allocated_hours': 6.0}

    def test_availability_default_window(self, client, test_data):
        """Without end_date the window runs one month"""
        response = client.get(f"/api/employees/{test_data['alice_id']}/availability?start_date=2025-02-03")
        assert response.status_code == 200
        assert response.get_json()['period']['end_date'] == '2025-03-03'

    def test_availability_weekend_window(self, client, test_data):
        response = client.get(
            f"/api/employees/{test_data['alice_id']}/availability?start_date=2025-01-11&end_date=2025-01-12"
        )
        assert response.status_code == 422
        assert response.get_json()['error']['type'] == 'DegenerateWindowError'

    def test_availability_requires_start(self, client, test_data):
        response = client.get(f"/api/employees/{test_data['alice_id']}/availability")
        assert response.status_code == 400

    def test_availability_unknown_employee(self, client):
        response = client.get('/api/employees/999/availability?start_date=2025-01-06&end_date=2025-01-31')
        assert response.status_code == 404

    def test_employee_conflicts(self, client, test_data):
        client.post('/api/assignments?force=true', json={
            'employee_id': test_data['alice_id'],
            'project_id': test_data['project_id'],
            'start_date': '2025-01-15',
            'end_date': '2025-02-15',
            'hours_per_week': 15,
            'role_on_project': 'Database Developer'
        })

        response = client.get(
            f"/api/employees/{test_data['alice_id']}/conflicts?start_date=2025-01-01&end_date=2025-03-31"
        )
        assert response.status_code == 200
        data = response.get_json()
        assert data['assignments_count'] == 2
        assert len(data['conflicts']) == 1
        assert data['conflicts'][0]['over_allocation_hours'] == 5
        assert data['conflicts'][0]['severity'] == 'high'

    def test_detect_conflicts(self, client):
        response = client.post('/api/conflicts/detect', json={'assignments': [
            {'id': 1, 'employee_id': 1, 'start_date': '2025-01-01', 'end_date': '2025-01-10',
             'hours_per_week': 25},
            {'id': 2, 'employee_id': 1, 'start_date': '2025-01-10', 'end_date': '2025-01-20',
             'allocation_percentage': 50},
        ]})
        assert response.status_code == 200
        conflicts = response.get_json()['conflicts']
        assert len(conflicts) == 1
        assert conflicts[0]['conflict_type'] == 'overallocation'
        assert conflicts[0]['overlap_days'] == 1
        assert conflicts[0]['over_allocation_hours'] == 5

    def test_detect_conflicts_missing_load(self, client):
        response = client.post('/api/conflicts/detect', json={'assignments': [
            {'employee_id': 1, 'start_date': '2025-01-01', 'end_date': '2025-01-10'}
        ]})
        assert response.status_code == 400

    def test_skill_matches(self, client, test_data):
        response = client.post('/api/skill-matches', json={'required_skills': ['Python', 'PostgreSQL']})
        assert response.status_code == 200
        data = response.get_json()
        assert [m['employee_id'] for m in data] == [test_data['alice_id'], test_data['bob_id']]
        assert data[0]['match_score'] == 1.0
        assert data[1]['missing_skills'] == ['PostgreSQL']

    def test_optimize(self, client, test_data):
        response = client.post(f"/api/projects/{test_data['project_id']}/optimize", json={
            'effort_hours': 100,
            'duration': 14
        })
        assert response.status_code == 200
        data = response.get_json()
        assert data['feasible'] is True
        assert data['efficiency'] == 1.0
        assert data['recommendations'][0]['employee_id'] == test_data['alice_id']
        assert data['recommendations'][0]['allocated_hours'] == 80
        assert data['total_cost'] == 80 * 90.0 + 20 * 70.0

    def test_optimize_unknown_project(self, client):
        response = client.post('/api/projects/999/optimize', json={'effort_hours': 10})
        assert response.status_code == 404


class TestAssignmentEndpoints:
    """Test assignment API endpoints"""

    def new_assignment(self, test_data, **overrides):
        data = {
            'employee_id': test_data['bob_id'],
            'project_id': test_data['project_id'],
            'start_date': '2025-02-03',
            'end_date': '2025-02-28',
            'hours_per_week': 20,
            'role_on_project': 'Frontend Developer'
        }
        data.update(overrides)
        return data

    def test_get_assignments(self, client, test_data):
        response = client.get(f"/api/assignments?employee_id={test_data['alice_id']}")
        assert response.status_code == 200
        assert len(response.get_json()) == 1

    def test_create_assignment(self, client, test_data):
        response = client.post('/api/assignments', json=self.new_assignment(test_data))
        assert response.status_code == 201
        data = response.get_json()
        assert data['status'] == 'tentative'
        assert data['hours_per_week'] == 20

    def test_create_conflicting_assignment(self, client, test_data):
        response = client.post('/api/assignments', json=self.new_assignment(
            test_data, employee_id=test_data['alice_id'], start_date='2025-01-15', end_date='2025-02-15',
            hours_per_week=15
        ))
        assert response.status_code == 409
        error = response.get_json()['error']
        assert error['type'] == 'ConflictError'
        assert error['details']['conflicts'][0]['severity'] == 'high'

    def test_create_forced_assignment(self, client, test_data):
        response = client.post('/api/assignments', json=self.new_assignment(
            test_data, employee_id=test_data['alice_id'], start_date='2025-01-15', end_date='2025-02-15',
            hours_per_week=15, force=True
        ))
        assert response.status_code == 201

    def test_create_inverted_dates(self, client, test_data):
        response = client.post('/api/assignments', json=self.new_assignment(
            test_data, start_date='2025-02-28', end_date='2025-02-03'
        ))
        assert response.status_code == 400

    def test_update_assignment(self, client, test_data):
        response = client.put(f"/api/assignments/{test_data['assignment_id']}", json={'hours_per_week': 20})
        assert response.status_code == 200
        assert response.get_json()['hours_per_week'] == 20

    def test_update_into_conflict(self, client, test_data):
        created = client.post('/api/assignments', json=self.new_assignment(
            test_data, employee_id=test_data['alice_id']
        )).get_json()

        response = client.put(f"/api/assignments/{created['id']}", json={'start_date': '2025-01-20'})
        assert response.status_code == 409

    def test_status_transitions(self, client, test_data):
        assignment_id = test_data['assignment_id']

        response = client.post(f'/api/assignments/{assignment_id}/status',
                               json={'status': 'completed', 'actual_hours': 130})
        assert response.status_code == 200
        assert response.get_json()['actual_hours'] == 130

        response = client.post(f'/api/assignments/{assignment_id}/status', json={'status': 'cancelled'})
        assert response.status_code == 409
        assert response.get_json()['error']['type'] == 'InvalidTransitionError'

    def test_status_unknown_value(self, client, test_data):
        response = client.post(f"/api/assignments/{test_data['assignment_id']}/status",
                               json={'status': 'archived'})
        assert response.status_code == 400

    def test_get_assignment_not_found(self, client):
        response = client.get('/api/assignments/999')
        assert response.status_code == 404

    def test_validate_assignment(self, client, test_data):
        response = client.post('/api/assignments/validate', json=self.new_assignment(test_data))
        assert response.status_code == 200
        data = response.get_json()
        assert data['is_valid'] is True
        assert data['errors'] == []

    def test_conflict_check(self, client, test_data):
        response = client.post('/api/assignments/conflict-check', json={
            'employee_id': test_data['alice_id'],
            'start_date': '2025-01-20',
            'end_date': '2025-02-10'
        })
        assert response.status_code == 200
        data = response.get_json()
        assert data['has_conflicts'] is True
        assert data['suggestions'][-1] == 'Consider starting after 2025-02-01'

    def test_capacity_check(self, client, test_data):
        response = client.post('/api/capacity/check', json={
            'employee_id': test_data['alice_id'],
            'hours': 15,
            'start_date': '2025-01-15',
            'end_date': '2025-02-15'
        })
        assert response.status_code == 200
        data = response.get_json()
        assert data['is_valid'] is False
        assert data['utilization_rate'] == 112.5

    def test_utilization_summary(self, client, test_data):
        response = client.get('/api/utilization/summary?start_date=2025-01-06&end_date=2025-01-31')
        assert response.status_code == 200
        data = response.get_json()
        assert data['total_employees'] == 2
        assert data['average_utilization'] == 37.5
        assert data['total_assignments'] == 1


class TestRequestValidation:
    """Test malformed request bodies and flags are rejected"""

    def conflicting_request(self, test_data, **overrides):
        data = {
            'employee_id': test_data['alice_id'],
            'project_id': test_data['project_id'],
            'start_date': '2025-01-15',
            'end_date': '2025-02-15',
            'hours_per_week': 15,
            'role_on_project': 'Database Developer'
        }
        data.update(overrides)
        return data

    def test_force_false_string_keeps_conflict_gate(self, client, test_data):
        """A 'false' string does not force a conflicting assignment through"""
        response = client.post('/api/assignments', json=self.conflicting_request(test_data, force='false'))
        assert response.status_code == 409
        assert response.get_json()['error']['type'] == 'ConflictError'

        listed = client.get(f"/api/assignments?employee_id={test_data['alice_id']}").get_json()
        assert len(listed) == 1

    def test_force_true_string(self, client, test_data):
        response = client.post('/api/assignments', json=self.conflicting_request(test_data, force='TRUE'))
        assert response.status_code == 201

    def test_force_invalid_value(self, client, test_data):
        response = client.post('/api/assignments', json=self.conflicting_request(test_data, force='yes'))
        assert response.status_code == 400
        assert response.get_json()['error']['details']['field'] == 'force'

    def test_force_invalid_query_value(self, client, test_data):
        response = client.post('/api/assignments?force=1', json=self.conflicting_request(test_data))
        assert response.status_code == 400

    def test_list_body_rejected(self, client):
        """A JSON array is not a valid request body"""
        response = client.post('/api/assignments', json=[1, 2])
        assert response.status_code == 400
        assert response.get_json()['error']['message'] == 'Request body must be a JSON object'

    def test_list_body_rejected_on_skill_matches(self, client):
        response = client.post('/api/skill-matches', json=['Python'])
        assert response.status_code == 400

    def test_skill_match_limit_not_a_number(self, client, test_data):
        response = client.post('/api/skill-matches', json={'required_skills': ['Python'], 'limit': 'abc'})
        assert response.status_code == 400
        assert response.get_json()['error']['details']['field'] == 'limit'

    def test_skill_match_limit_not_positive(self, client, test_data):
        response = client.post('/api/skill-matches', json={'required_skills': ['Python'], 'limit': 0})
        assert response.status_code == 400

    def test_skill_match_limit(self, client, test_data):
        response = client.post('/api/skill-matches', json={'required_skills': ['Python'], 'limit': 1})
        assert response.status_code == 200
        assert len(response.get_json()) == 1

    def test_detect_conflicts_hours_ceiling(self, client):
        """Posted rows are held to the weekly hours ceiling"""
        response = client.post('/api/conflicts/detect', json={'assignments': [
            {'id': 1, 'employee_id': 1, 'start_date': '2025-01-01', 'end_date': '2025-01-10',
             'hours_per_week': 500},
        ]})
        assert response.status_code == 400
        assert response.get_json()['error']['details']['field'] == 'hours_per_week'

    def test_detect_conflicts_non_object_row(self, client):
        response = client.post('/api/conflicts/detect', json={'assignments': [42]})
        assert response.status_code == 400


class TestConfiguredStandardWeek:
    """Test endpoints share the configured standard week"""

    def test_availability_and_conflicts_agree(self, app, client, test_data):
        app.config['STANDARD_WEEKLY_HOURS'] = 25
        window = 'start_date=2025-01-06&end_date=2025-01-31'

        availability = client.get(f"/api/employees/{test_data['alice_id']}/availability?{window}").get_json()
        conflicts = client.get(f"/api/employees/{test_data['alice_id']}/conflicts?{window}").get_json()

        assert len(availability['conflicts']) == 1
        assert availability['conflicts'] == conflicts['conflicts']
        assert availability['conflicts'][0]['over_allocation_hours'] == 5
