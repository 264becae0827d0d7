"""
领取身份解析测试
"""

import pytest

from app.core.exceptions import MissingIdentityError
from app.services.identity_resolver import resolve_identity, resolve_network_address


class TestResolveNetworkAddress:
    """网络地址解析测试类"""

    def test_forwarded_first_hop(self):
        headers = {"x-forwarded-for": "203.0.113.7, 10.0.0.1, 10.0.0.2"}
        assert resolve_network_address(headers, "10.0.0.2") == "203.0.113.7"

    def test_client_host_fallback(self):
        assert resolve_network_address({}, "198.51.100.4") == "198.51.100.4"

    def test_blank_forwarded_header(self):
        assert resolve_network_address({"x-forwarded-for": " , "}, "198.51.100.4") == "198.51.100.4"

    def test_forwarded_not_trusted(self):
        headers = {"x-forwarded-for": "203.0.113.7"}
        assert resolve_network_address(headers, "10.0.0.2", trust_forwarded_for=False) == "10.0.0.2"

    def test_unknown_address(self):
        assert resolve_network_address({}, None) == "unknown"


class TestResolveIdentity:
    """领取身份解析测试类"""

    def test_resolve(self):
        identity = resolve_identity(
            {"sessionId": "abc123"},
            {"x-forwarded-for": "203.0.113.7"},
            "10.0.0.1",
            cookie_name="sessionId",
            trust_forwarded_for=True
        )

        assert identity.session_token == "abc123"
        assert identity.network_address == "203.0.113.7"
        assert identity.window_keys == ["session:abc123", "ip:203.0.113.7"]

    def test_unknown_address_is_session_only(self):
        identity = resolve_identity({"sessionId": "abc123"}, {}, None, cookie_name="sessionId")

        assert identity.network_address == "unknown"
        assert identity.has_network_address is False
        assert identity.window_keys == ["session:abc123"]

    def test_missing_cookie(self):
        with pytest.raises(MissingIdentityError) as exc_info:
            resolve_identity({}, {}, "10.0.0.1", cookie_name="sessionId")

        assert exc_info.value.status_code == 400
        assert exc_info.value.code == "missing_identity"
        assert "enable cookies" in exc_info.value.message

    @pytest.mark.parametrize("token", ["", "   ", "abc-123", "a" * 129, "ab;cd"])
    def test_malformed_cookie(self, token):
        with pytest.raises(MissingIdentityError):
            resolve_identity({"sessionId": token}, {}, "10.0.0.1", cookie_name="sessionId")

    def test_identity_is_hashable(self):
        first = resolve_identity({"sessionId": "abc"}, {}, "10.0.0.1", trust_forwarded_for=False)
        second = resolve_identity({"sessionId": "abc"}, {}, "10.0.0.1", trust_forwarded_for=False)
        assert first == second
        assert len({first, second}) == 1
