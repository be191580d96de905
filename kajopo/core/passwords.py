"""Password hashing."""
import bcrypt

# bcrypt only reads this many bytes of a password
MAX_PASSWORD_BYTES = 72


class PasswordHasher:
    """bcrypt hashing and verification."""

    def __init__(self, rounds: int = 12):
        self.rounds = rounds
        self._dummy_hash = None

    def hash_password(self, password: str) -> str:
        """Hash password using bcrypt.

        Raises ``ValueError`` for passwords longer than ``MAX_PASSWORD_BYTES``.
        """
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")

    def verify_password(self, plain_password: str, hashed_password: str) -> bool:
        """Verify password against hash; a missing or malformed hash never matches.

        Over-long passwords never match either.
        """
        encoded = plain_password.encode("utf-8")
        if not hashed_password or len(encoded) > MAX_PASSWORD_BYTES:
            self.dummy_verify(plain_password)
            return False
        try:
            return bcrypt.checkpw(encoded, hashed_password.encode("utf-8"))
        except ValueError:
            return False

    def dummy_verify(self, plain_password: str) -> None:
        """Spend the same time as a real check when there is no account."""
        if self._dummy_hash is None:
            self._dummy_hash = self.hash_password("kajopo-dummy-password").encode("utf-8")
        bcrypt.checkpw(plain_password.encode("utf-8")[:MAX_PASSWORD_BYTES], self._dummy_hash)
