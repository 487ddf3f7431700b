"""비밀번호 해싱 및 검증 유틸리티 모듈.

Password hashing and verification for the password login.
Uses bcrypt directly. A login for an unknown e-mail still pays for one
bcrypt comparison so response time does not reveal which accounts exist.
"""

from functools import lru_cache

import bcrypt

DEFAULT_ROUNDS: int = 12


def hash_password(password: str, rounds: int = DEFAULT_ROUNDS) -> str:
    """평문 비밀번호를 bcrypt 해시로 변환합니다.

    Args:
        password: 평문 비밀번호 (Plain text password to hash)
        rounds: bcrypt 비용 계수 (Cost factor; the hash records it for verification)

    Returns:
        str: bcrypt 해시 문자열 (Bcrypt hash string, ~60 chars)
    """
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """평문 비밀번호와 bcrypt 해시를 비교 검증합니다.

    Verify a password against a stored bcrypt hash. A malformed stored
    hash never matches.

    Returns:
        bool: 일치하면 True (True if the password matches)
    """
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        return False


@lru_cache(maxsize=1)
def _dummy_hash() -> str:
    return hash_password("airvik-dummy-password")


def burn_password_check(plain_password: str) -> None:
    """존재하지 않는 계정에도 동일한 비용의 비교 수행 — Equalise timing for unknown accounts."""
    verify_password(plain_password, _dummy_hash())
