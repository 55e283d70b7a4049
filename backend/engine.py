"""
Capacity & conflict resolution engine.

Everything in this module is computed synchronously over records that the
caller has already fetched: availability over a date window, pairwise
conflict detection, skill matching and the greedy allocation optimizer.
Nothing here touches the database.
"""

from collections import defaultdict
import logging

from calendar_utils import (
    HOURS_PER_WORKING_DAY, daily_slots, overlap_days, working_days
)
from errors import DegenerateWindowError, ValidationError
from records import (
    CONFLICT_OVERALLOCATION, CONFLICT_OVERLAP, DEFAULT_HOURLY_COST,
    SENIORITY_JUNIOR, SENIORITY_SENIOR, SEVERITY_HIGH, SEVERITY_LOW,
    SEVERITY_MEDIUM, STANDARD_WEEKLY_HOURS, Availability, Conflict,
    OptimizationResult, Recommendation, SkillMatch
)

logger = logging.getLogger(__name__)

# Severity policy
HIGH_SEVERITY_HOURS = 15
MEDIUM_SEVERITY_HOURS = 5
HIGH_SEVERITY_DAYS = 10
MEDIUM_SEVERITY_DAYS = 5

SENIOR_CONFIDENCE_BONUS = 0.10
JUNIOR_CONFIDENCE_PENALTY = 0.05
SUCCESS_RATE_THRESHOLD = 0.9
SUCCESS_RATE_BONUS = 0.05

# Above this many weekly hours a post-hoc optimizer conflict is high severity
OPTIMIZER_HIGH_WEEKLY_HOURS = 50

ROLE_SKILL_HINTS = [
    ('Frontend Developer', ('React', 'Vue.js', 'Angular')),
    ('Backend Developer', ('Node.js', 'Python', 'Java')),
    ('Database Developer', ('PostgreSQL', 'MongoDB', 'MySQL')),
    ('DevOps Engineer', ('Docker', 'Kubernetes', 'AWS')),
]
DEFAULT_ROLE = 'Developer'


def assess_conflict_severity(over_allocation_hours, overlap_day_count):
    """
    Classify a conflict by how far it exceeds capacity and how long it lasts.

    Args:
        over_allocation_hours: Weekly hours above the standard week
        overlap_day_count: Calendar days the assignments overlap

    Returns:
        str: 'high', 'medium' or 'low'
    """
    if over_allocation_hours > HIGH_SEVERITY_HOURS or overlap_day_count > HIGH_SEVERITY_DAYS:
        return SEVERITY_HIGH
    if over_allocation_hours > MEDIUM_SEVERITY_HOURS or overlap_day_count > MEDIUM_SEVERITY_DAYS:
        return SEVERITY_MEDIUM
    return SEVERITY_LOW


def group_by_employee(assignments):
    """Group assignments by employee id, keeping first-seen order"""
    grouped = defaultdict(list)
    for assignment in assignments:
        grouped[assignment.employee_id].append(assignment)
    return grouped


def calculate_over_allocation(first, second, standard_weekly_hours=STANDARD_WEEKLY_HOURS):
    """Weekly hours by which two concurrent assignments exceed the standard week"""
    return max(0.0, first.weekly_hours + second.weekly_hours - standard_weekly_hours)


def detect_conflicts(assignments, standard_weekly_hours=STANDARD_WEEKLY_HOURS):
    """
    Detect scheduling conflicts in a set of assignments.

    Assignments are grouped by employee and every pair is compared, so the
    result contains every pairwise conflict rather than a minimal cover.
    Single assignments above the standard week are reported on their own.

    Args:
        assignments: Iterable of AssignmentRecord (may span many employees)
        standard_weekly_hours: Capacity baseline per week

    Returns:
        list: Conflict records
    """
    conflicts = []

    for employee_id, employee_assignments in group_by_employee(assignments).items():
        count = len(employee_assignments)
        for i in range(count):
            for j in range(i + 1, count):
                first = employee_assignments[i]
                second = employee_assignments[j]

                days = overlap_days(first.start_date, first.end_date,
                                    second.start_date, second.end_date)
                if days <= 0:
                    continue

                over_allocation = calculate_over_allocation(first, second, standard_weekly_hours)
                conflicts.append(Conflict(
                    conflict_type=CONFLICT_OVERALLOCATION if over_allocation > 0 else CONFLICT_OVERLAP,
                    assignment_ids=[first.id, second.id],
                    overlap_days=days,
                    over_allocation_hours=over_allocation,
                    severity=assess_conflict_severity(over_allocation, days),
                    employee_id=employee_id
                ))

        for assignment in employee_assignments:
            excess = assignment.weekly_hours - standard_weekly_hours
            if excess > 0:
                conflicts.append(Conflict(
                    conflict_type=CONFLICT_OVERALLOCATION,
                    assignment_ids=[assignment.id],
                    overlap_days=0,
                    over_allocation_hours=excess,
                    severity=assess_conflict_severity(excess, 0),
                    employee_id=employee_id
                ))

    logger.debug(f"Detected {len(conflicts)} conflicts across {len(assignments)} assignments")
    return conflicts


def calculate_availability(employee_id, start_date, end_date, assignments,
                           standard_weekly_hours=STANDARD_WEEKLY_HOURS):
    """
    Calculate an employee's availability over a date window.

    Each assignment's hours are spread evenly over its own working days and
    added to the daily slots of the window that it covers.

    Args:
        employee_id: ID of the employee
        start_date, end_date: Window to evaluate (inclusive)
        assignments: The employee's assignments, already fetched
        standard_weekly_hours: Baseline for the attached conflicts

    Returns:
        Availability: hours, utilization and conflicts for the window

    Raises:
        ValidationError: end_date is before start_date
        DegenerateWindowError: the window has no working days
    """
    if end_date < start_date:
        raise ValidationError("end_date must not be before start_date", 'end_date')

    window_days = working_days(start_date, end_date)
    if window_days == 0:
        raise DegenerateWindowError(start_date, end_date)

    total_hours = window_days * HOURS_PER_WORKING_DAY
    slots = daily_slots(start_date, end_date)

    for assignment in assignments:
        if overlap_days(assignment.start_date, assignment.end_date, start_date, end_date) == 0:
            continue
        assignment_days = assignment.working_days
        if assignment_days == 0:
            continue
        daily_share = assignment.total_hours / assignment_days
        for slot in slots:
            if assignment.start_date <= slot.day <= assignment.end_date:
                slot.allocated_hours += daily_share

    allocated_hours = sum(slot.allocated_hours for slot in slots)

    return Availability(
        employee_id=employee_id,
        start_date=start_date,
        end_date=end_date,
        working_days=window_days,
        total_hours=total_hours,
        allocated_hours=allocated_hours,
        available_hours=total_hours - allocated_hours,
        utilization_rate=allocated_hours / total_hours,
        conflicts=detect_conflicts(assignments, standard_weekly_hours),
        time_slots=slots
    )


def calculate_skill_match_confidence(matched_skills, missing_skills, employee):
    """Confidence in a skill match, adjusted for seniority and track record"""
    considered = len(matched_skills) + len(missing_skills)
    confidence = len(matched_skills) / considered if considered else 1.0

    if employee.seniority == SENIORITY_SENIOR:
        confidence += SENIOR_CONFIDENCE_BONUS
    elif employee.seniority == SENIORITY_JUNIOR:
        confidence -= JUNIOR_CONFIDENCE_PENALTY

    if employee.success_rate is not None and employee.success_rate > SUCCESS_RATE_THRESHOLD:
        confidence += SUCCESS_RATE_BONUS

    return min(1.0, max(0.0, confidence))


def find_skill_matches(required_skills, employees):
    """
    Score employees against a list of required skills.

    Args:
        required_skills: Skill names the work needs
        employees: Iterable of EmployeeRecord

    Returns:
        list: SkillMatch records, best match first. Ties keep input order.
    """
    required = list(required_skills or [])
    matches = []

    for employee in employees:
        employee_skills = set(employee.skills or ())
        matched = [skill for skill in required if skill in employee_skills]
        missing = [skill for skill in required if skill not in employee_skills]

        match_score = len(matched) / len(required) if required else 1.0

        matches.append(SkillMatch(
            employee=employee,
            match_score=match_score,
            matched_skills=matched,
            missing_skills=missing,
            confidence=calculate_skill_match_confidence(matched, missing, employee)
        ))

    # sorted() is stable
    return sorted(matches, key=lambda m: m.match_score, reverse=True)


def suggest_role(matched_skills):
    """Suggest a role label from the skills a candidate matched"""
    for role, hints in ROLE_SKILL_HINTS:
        if any(skill in matched_skills for skill in hints):
            return role
    return DEFAULT_ROLE


def identify_potential_conflicts(recommendations, duration_days,
                                 standard_weekly_hours=STANDARD_WEEKLY_HOURS):
    """
    Flag employees whose recommended hours exceed the standard week.

    Recommendations cover the whole project duration, so cumulative hours are
    converted to a weekly figure before comparing.
    """
    employee_hours = defaultdict(float)
    for rec in recommendations:
        employee_hours[rec.employee_id] += rec.allocated_hours

    weeks = duration_days / 7.0 if duration_days and duration_days > 0 else 1.0
    conflicts = []
    for employee_id, hours in employee_hours.items():
        weekly = hours / weeks
        if weekly > standard_weekly_hours:
            conflicts.append(Conflict(
                conflict_type=CONFLICT_OVERALLOCATION,
                assignment_ids=[r.project_id for r in recommendations if r.employee_id == employee_id],
                overlap_days=0,
                over_allocation_hours=weekly - standard_weekly_hours,
                severity=SEVERITY_HIGH if weekly > OPTIMIZER_HIGH_WEEKLY_HOURS else SEVERITY_MEDIUM,
                employee_id=employee_id
            ))
    return conflicts


class AllocationOptimizer:
    """
    First-fit greedy staffing of a project's effort.

    Candidates are taken in skill-match order (stable, so directory order
    breaks ties) and each receives as many hours as their weekly capacity
    allows over the project duration. This is a heuristic; the order of
    recommendations is part of its contract.
    """

    def __init__(self, employee_directory, standard_weekly_hours=STANDARD_WEEKLY_HOURS,
                 default_hourly_cost=DEFAULT_HOURLY_COST):
        self.employee_directory = employee_directory
        self.standard_weekly_hours = standard_weekly_hours
        self.default_hourly_cost = default_hourly_cost

    def optimize(self, requirements):
        """
        Build staffing recommendations for a project.

        Args:
            requirements: ProjectRequirements

        Returns:
            OptimizationResult
        """
        effort_hours = float(requirements.effort_hours or 0)
        if effort_hours <= 0:
            return OptimizationResult(
                recommendations=[], total_cost=0.0, completion_time=0.0,
                feasible=True, conflicts=[], efficiency=1.0
            )

        required_skills = list(requirements.required_skills or [])
        duration = float(requirements.duration or 0)
        candidates = find_skill_matches(required_skills, self.employee_directory.all_active())

        recommendations = []
        remaining_effort = effort_hours
        total_cost = 0.0
        completion_time = 0.0

        for match in candidates:
            if remaining_effort <= 0:
                break
            if required_skills and not match.matched_skills:
                continue

            employee = match.employee
            weekly_capacity = employee.weekly_capacity or self.standard_weekly_hours
            max_allocation = min(remaining_effort, weekly_capacity * (duration / 7.0))
            if max_allocation <= 0:
                continue

            allocation = min(max_allocation, remaining_effort)
            hourly_cost = employee.hourly_cost or self.default_hourly_cost

            recommendations.append(Recommendation(
                employee_id=employee.id,
                project_id=requirements.project_id,
                role=suggest_role(match.matched_skills),
                allocated_hours=allocation,
                confidence=match.confidence,
                reasoning=f"{round(match.match_score * 100)}% skill match, {', '.join(match.matched_skills)}",
                hourly_cost=hourly_cost
            ))

            remaining_effort -= allocation
            total_cost += allocation * hourly_cost
            completion_time = max(completion_time, allocation / weekly_capacity)

        feasible = remaining_effort <= 0
        conflicts = [] if feasible else identify_potential_conflicts(
            recommendations, duration, self.standard_weekly_hours
        )
        efficiency = 1.0 if feasible else 1 - remaining_effort / effort_hours

        logger.debug(
            f"Optimized project {requirements.project_id}: {len(recommendations)} recommendations, "
            f"feasible={feasible}, remaining={remaining_effort:.2f}h"
        )

        return OptimizationResult(
            recommendations=recommendations,
            total_cost=total_cost,
            completion_time=completion_time,
            feasible=feasible,
            conflicts=conflicts,
            efficiency=efficiency,
            remaining_effort=max(0.0, remaining_effort)
        )
