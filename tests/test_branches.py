from branchportal.branches import is_valid_branch, resolve_branch


def test_staff_login():
    info = resolve_branch("purley")
    assert info.base_branch_id == "PURLEY"
    assert info.branch_name == "Purley Branch"
    assert info.role == "staff"


def test_manager_suffix():
    for login in ("PURLEY MANAGER", "purleymanager", "Dover Manager"):
        info = resolve_branch(login)
        assert info.role == "manager"
        assert info.base_branch_id in ("PURLEY", "DOVER")


def test_email_prefix_decides_role():
    assert resolve_branch("LEATHERHEAD", "manager.jo@example.com").role == "manager"
    assert resolve_branch("BRANCH_B", "staff.al@example.com").role == "staff"


def test_unknown_branch():
    info = resolve_branch("CROYDON")
    assert info.base_branch_id is None
    assert info.branch_name == "Unknown Branch"
    assert info.role == "unknown"


def test_is_valid_branch():
    assert is_valid_branch("purley")
    assert is_valid_branch(" BRANCH_C ")
    assert not is_valid_branch("CROYDON")
    assert not is_valid_branch(None)
