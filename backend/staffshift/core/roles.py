from enum import Enum


class Role(str, Enum):
    owner = "owner"
    manager = "manager"
    staff = "staff"


MANAGER_ROLES = {Role.owner, Role.manager}
