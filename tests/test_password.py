"""비밀번호 유틸리티 테스트."""

from airvik_auth.utils.password import burn_password_check, hash_password, verify_password


class TestPassword:
    """bcrypt 해싱/검증 테스트."""

    def test_hash_and_verify(self):
        """해시 검증 성공/실패."""
        hashed = hash_password("guest-pass-123!", rounds=4)
        assert hashed.startswith("$2b$04$")
        assert verify_password("guest-pass-123!", hashed)
        assert not verify_password("wrong", hashed)

    def test_malformed_hash_never_matches(self):
        """손상된 해시는 불일치."""
        assert verify_password("anything", "not-a-bcrypt-hash") is False

    def test_burn_check_returns_nothing(self):
        """미존재 계정용 비교."""
        assert burn_password_check("anything") is None
