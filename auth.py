# auth.py
from enum import Enum


class Role(str, Enum):
    PATIENT = "patient"
    DOCTOR = "medecin"
    ADMIN = "admin"


class Action(str, Enum):
    VIEW_OWN_RECORD = "view_own_record"
    VIEW_PATIENTS = "view_patients"
    MANAGE_PATIENTS = "manage_patients"
    RECORD_LAB_RESULTS = "record_lab_results"
    GENERATE_DEMO_DATA = "generate_demo_data"
    MANAGE_WORKFLOWS = "manage_workflows"
    MANAGE_DOCTORS = "manage_doctors"


class PermissionDenied(Exception):
    def __init__(self, role, action):
        self.role = role
        self.action = action
        role_name = getattr(role, "value", role)
        action_name = getattr(action, "value", action).replace("_", " ")
        super().__init__(f"Role '{role_name}' may not {action_name}")


_PERMISSIONS = {
    Role.PATIENT: frozenset({Action.VIEW_OWN_RECORD}),
    Role.DOCTOR: frozenset({
        Action.VIEW_OWN_RECORD,
        Action.VIEW_PATIENTS,
        Action.MANAGE_PATIENTS,
        Action.RECORD_LAB_RESULTS,
        Action.GENERATE_DEMO_DATA,
        Action.MANAGE_WORKFLOWS,
    }),
    Role.ADMIN: frozenset({
        Action.VIEW_PATIENTS,
        Action.MANAGE_PATIENTS,
        Action.MANAGE_WORKFLOWS,
        Action.MANAGE_DOCTORS,
    }),
}

# Every role must have an entry; adding a role without one is a bug
_unmapped = set(Role) - set(_PERMISSIONS)
if _unmapped:
    raise RuntimeError(f"Roles without a permission set: {sorted(r.value for r in _unmapped)}")


def authorize(role, action) -> bool:
    """True if the role is allowed to perform the action"""
    return Action(action) in _PERMISSIONS[Role(role)]


def require_role(role, action) -> Role:
    action = Action(action)
    try:
        role = Role(role)
    except ValueError:
        raise PermissionDenied(role, action)
    if not authorize(role, action):
        raise PermissionDenied(role, action)
    return role
