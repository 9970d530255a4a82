import importlib.util

import pytest

from conftest import REPO_ROOT, bearer

_spec = importlib.util.spec_from_file_location("create_account", REPO_ROOT / "scripts" / "create_account.py")
create_account = importlib.util.module_from_spec(_spec)
_spec.loader.exec_module(create_account)


def _output(capsys) -> dict:
    lines = capsys.readouterr().out.strip().splitlines()
    return dict(line.split(": ", 1) for line in lines[1:])


def test_creates_department_that_can_log_in(client, capsys):
    create_account.main(["department", "--code", "hostel001", "--password", "hostelpass"])
    out = _output(capsys)
    assert out["login"] == "HOSTEL001"

    resp = client.post("/api/auth/department/login", data={"username": "HOSTEL001", "password": "hostelpass"})
    assert resp.status_code == 200
    assert resp.json()["id"] == out["id"]


def test_creates_admin_with_usable_token(client, capsys):
    create_account.main(["admin", "--email", "ops@example.com", "--password", "opspass123"])
    out = _output(capsys)

    me = client.get("/api/auth/me", headers=bearer(out["access_token"]))
    assert me.status_code == 200
    assert me.json()["role"] == "admin"
    assert me.json()["email"] == "ops@example.com"


def _login_role(client, email, password):
    return client.post("/api/auth/login", data={"username": email, "password": password}).json()["role"]


def test_existing_admin_is_not_demoted_without_flag(client, capsys):
    create_account.main(["admin", "--email", "chief@example.com", "--password", "chiefpass1"])
    admin_id = _output(capsys)["id"]

    with pytest.raises(SystemExit) as excinfo:
        create_account.main(["user", "--email", "chief@example.com"])
    assert "Refusing to change role" in str(excinfo.value.code)
    assert _login_role(client, "chief@example.com", "chiefpass1") == "admin"

    create_account.main(["user", "--email", "chief@example.com", "--change-role"])
    assert _output(capsys)["id"] == admin_id
    assert _login_role(client, "chief@example.com", "chiefpass1") == "user"
