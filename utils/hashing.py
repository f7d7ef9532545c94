from passlib.context import CryptContext

from core.config import settings

# bcrypt ignores everything past 72 bytes
BCRYPT_MAX_BYTES = 72


def _truncate(password: str) -> str:
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES].decode("utf-8", errors="ignore")


class PasswordHasher:
    """
    Salted bcrypt hashing with a tunable cost factor.

    verify() never raises: a mismatch or an unreadable digest is just False.
    """

    def __init__(self, rounds: int = 10):
        self.rounds = rounds
        self._context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)
        self._dummy_hash = self._context.hash("not-a-real-password")

    def hash(self, password: str) -> str:
        return self._context.hash(_truncate(password))

    def verify(self, plain_password: str, hashed_password: str | None) -> bool:
        if not hashed_password:
            return False
        try:
            return self._context.verify(_truncate(plain_password), hashed_password)
        except (ValueError, TypeError):
            return False

    def dummy_verify(self, plain_password: str) -> None:
        """Spend one verification so unknown users cost the same as known ones."""
        self._context.verify(_truncate(plain_password), self._dummy_hash)


password_hasher = PasswordHasher(rounds=settings.BCRYPT_ROUNDS)


def get_password_hash(password: str) -> str:
    return password_hasher.hash(password)


def verify_password(plain_password: str, hashed_password: str | None) -> bool:
    return password_hasher.verify(plain_password, hashed_password)
