import unittest

from drivepicker.auth import AuthInfo
from drivepicker.errors import AuthError


class TestAuthInfo(unittest.TestCase):
    def test_auth_info_valid(self) -> None:
        info = AuthInfo(access_token="tok", organization_id="org-1")
        self.assertEqual(info.headers, {"Authorization": "Bearer tok"})
        self.assertEqual(info.organization_id, "org-1")

    def test_token_is_not_in_repr(self) -> None:
        info = AuthInfo(access_token="secret-token")
        self.assertNotIn("secret-token", repr(info))

    def test_empty_token_is_not_authenticated(self) -> None:
        with self.assertRaises(AuthError):
            AuthInfo(access_token="  ")

    def test_blank_org_id_rejected(self) -> None:
        with self.assertRaises(AuthError):
            AuthInfo(access_token="tok", organization_id=" ")

    def test_from_env(self) -> None:
        info = AuthInfo.from_env(
            {"DRIVEPICKER_ACCESS_TOKEN": "tok", "DRIVEPICKER_ORG_ID": "org"}
        )
        self.assertEqual(info.access_token, "tok")
        self.assertEqual(info.organization_id, "org")

    def test_from_env_missing_token(self) -> None:
        with self.assertRaises(AuthError):
            AuthInfo.from_env({})


if __name__ == "__main__":
    unittest.main()
