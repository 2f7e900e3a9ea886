"""
Tests for the operator scripts under scripts/admin
"""
import importlib.util
import os
from unittest.mock import patch

import pytest
import yaml
from werkzeug.security import check_password_hash

from conftest import FAST_HASH

ADMIN_SCRIPTS = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "scripts", "admin")


def load_script(name):
    spec = importlib.util.spec_from_file_location(name, os.path.join(ADMIN_SCRIPTS, f"{name}.py"))
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def admin_pass_gen():
    module = load_script("admin_pass_gen")
    with patch.object(module, "PASSCODE_HASH_METHOD", FAST_HASH):
        yield module


class TestAdminPassGen:
    def test_hash_verifies(self, admin_pass_gen):
        hashed = admin_pass_gen.hash_admin_password("s3cret")
        assert check_password_hash(hashed, "s3cret")
        assert not check_password_hash(hashed, "other")

    def test_prints_settings_line(self, admin_pass_gen, capsys):
        with patch.object(admin_pass_gen.getpass, "getpass", side_effect=["s3cret", "s3cret"]), patch(
            "sys.argv", ["admin_pass_gen.py"]
        ):
            assert admin_pass_gen.main() == 0
        assert "admin_password: 'pbkdf2:sha256:1000$" in capsys.readouterr().out

    @pytest.mark.parametrize("answers", [["", ""], ["one", "two"]])
    def test_rejects_empty_or_mismatched(self, admin_pass_gen, answers, capsys):
        with patch.object(admin_pass_gen.getpass, "getpass", side_effect=answers), patch(
            "sys.argv", ["admin_pass_gen.py"]
        ):
            assert admin_pass_gen.main() == 1
        assert "admin_password" not in capsys.readouterr().out


class TestBulkAddAccounts:
    def test_imports_list_file(self, tmp_path, settings, feeds, http_session, capsys):
        settings["server"]["database_path"] = str(tmp_path / "registry.db")
        config_file = tmp_path / "settings.yaml"
        config_file.write_text(yaml.dump(settings))
        list_file = tmp_path / "accounts.txt"
        list_file.write_text("alice https://a.example/twtxt.txt\nbob https://b.example/twtxt.txt\n")
        feeds.serve("https://a.example/twtxt.txt", "2023-01-01T00:00:00Z\thi\n")

        registrations = load_script("bulk_add_accounts").bulk_add(
            str(list_file), str(config_file), http_session=http_session
        )

        assert len(registrations) == 2
        printed = capsys.readouterr().out.splitlines()
        assert [line.split("\t")[0] for line in printed] == ["alice", "bob"]
        assert all(len(line.split("\t")[2]) == 20 for line in printed)
        assert (tmp_path / "registry.db").exists()
