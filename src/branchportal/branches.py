"""Branch identifiers, display names and login-id to branch mapping."""
from dataclasses import dataclass
from typing import Optional

BRANCH_NAMES = {
    "PURLEY": "Purley Branch",
    "LEATHERHEAD": "Leatherhead Branch",
    "DOVER": "Dover Branch",
    "BRANCH_B": "Branch B",
    "BRANCH_C": "Branch C",
    "BRANCH_D": "Branch D",
}

VALID_BRANCH_IDS = list(BRANCH_NAMES)

UNKNOWN_BRANCH = "Unknown Branch"


@dataclass
class BranchInfo:
    login_id: Optional[str]
    base_branch_id: Optional[str]
    branch_name: str
    role: str  # "manager", "staff" or "unknown"


def normalize_branch_id(branch_id: Optional[str]) -> str:
    return (branch_id or "").strip().upper()


def is_valid_branch(branch_id: Optional[str]) -> bool:
    return normalize_branch_id(branch_id) in BRANCH_NAMES


def resolve_branch(login_id: Optional[str], user_email: Optional[str] = None) -> BranchInfo:
    """Map a login id such as ``purley manager`` onto its base branch and role."""
    login = normalize_branch_id(login_id)
    base = login
    has_manager_suffix = login.endswith("MANAGER") and login != "MANAGER"
    if has_manager_suffix:
        base = login[: -len("MANAGER")].rstrip(" _")

    email = (user_email or "").strip().lower()
    valid = base in BRANCH_NAMES
    if email.startswith("manager.") or has_manager_suffix:
        role = "manager"
    elif email.startswith("staff.") or valid:
        role = "staff"
    else:
        role = "unknown"

    return BranchInfo(
        login_id=login or None,
        base_branch_id=base if valid else None,
        branch_name=BRANCH_NAMES.get(base, UNKNOWN_BRANCH),
        role=role,
    )
