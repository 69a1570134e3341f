"""Tests for admin bearer-token checks."""

import pytest

from storeman.auth import check_authentication
from storeman.tests.conftest import make_token


class TestCheckAuthentication:
    """Tests for check_authentication()."""

    def test_no_header(self):
        result = check_authentication({}, admin_group="Administrators")
        assert result.status_code == 401
        assert not result.ok

    def test_none_headers(self):
        assert check_authentication(None, admin_group="Administrators").status_code == 401

    def test_admin(self):
        headers = {"Authorization": f"Bearer {make_token('u1', ['Administrators', 'Players'])}"}
        result = check_authentication(headers, admin_group="Administrators")
        assert result.ok
        assert result.user_id == "u1"
        assert result.is_admin

    def test_header_name_case_insensitive(self):
        headers = {"authorization": f"Bearer {make_token('u1', ['Administrators'])}"}
        assert check_authentication(headers, admin_group="Administrators").is_admin

    def test_token_without_bearer_prefix(self):
        headers = {"Authorization": make_token("u1", ["Administrators"])}
        assert check_authentication(headers, admin_group="Administrators").is_admin

    def test_group_as_string(self):
        headers = {"Authorization": f"Bearer {make_token('u1', 'Administrators')}"}
        assert check_authentication(headers, admin_group="Administrators").is_admin

    @pytest.mark.parametrize("groups", [None, [], ["Players"], ["administrators"]])
    def test_not_admin(self, groups):
        headers = {"Authorization": f"Bearer {make_token('u1', groups)}"}
        result = check_authentication(headers, admin_group="Administrators")
        assert result.ok
        assert not result.is_admin

    def test_missing_sub(self):
        headers = {"Authorization": f"Bearer {make_token('', ['Administrators'])}"}
        result = check_authentication(headers, admin_group="Administrators")
        assert result.status_code == 401
        assert "no user context" in result.message

    @pytest.mark.parametrize("token", ["garbage", "a.b.c", ""])
    def test_malformed_token(self, token):
        result = check_authentication({"Authorization": f"Bearer {token}"}, admin_group="Administrators")
        assert result.status_code == 401

    def test_admin_group_from_settings(self, settings):
        settings.STOREMAN = {**settings.STOREMAN, "ADMIN_GROUP": "Staff"}
        headers = {"Authorization": f"Bearer {make_token('u1', ['Staff'])}"}
        assert check_authentication(headers).is_admin
