"""Closed set of user roles and the landing page each role is sent to."""

from enum import StrEnum


class Role(StrEnum):
    HEADADMIN = "headadmin"
    ADMIN = "admin"
    TEACHER = "teacher"
    STUDENT = "student"
    # Teacher sub-roles
    DIRECTOR = "director"
    COORDINATOR = "coordinator"
    CLASS_TEACHER = "class_teacher"
    SUBJECT_TEACHER = "subject_teacher"


# Roles that sign in through the school login form (headadmin has its own).
SCHOOL_LOGIN_ROLES = frozenset({Role.STUDENT, Role.TEACHER, Role.ADMIN})

ROLE_LANDING_PATHS: dict[Role, str] = {
    Role.HEADADMIN: "/protected/headadmin",
    Role.ADMIN: "/protected/admin",
    Role.TEACHER: "/protected/teachers",
    Role.STUDENT: "/protected/students",
    Role.DIRECTOR: "/protected/teacher/director/dashboard",
    Role.COORDINATOR: "/protected/teacher/coordinator/dashboard",
    Role.CLASS_TEACHER: "/protected/teacher/class/dashboard",
    Role.SUBJECT_TEACHER: "/protected/teacher/subject/dashboard",
}


def parse_role(value: str | None) -> Role | None:
    """Return the Role for a stored string, or None if it is not a known role."""
    if value is None:
        return None
    try:
        return Role(value)
    except ValueError:
        return None


def landing_path(role: Role | str) -> str | None:
    parsed = parse_role(str(role))
    if parsed is None:
        return None
    return ROLE_LANDING_PATHS[parsed]
