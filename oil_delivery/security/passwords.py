from pwdlib import PasswordHash


password_hash = PasswordHash.recommended()

MIN_PASSWORD_LENGTH = 6
WEAK_PASSWORD_MESSAGE = 'Password is too weak. Please choose a stronger password.'


def hash_password(raw_password: str) -> str:
    return password_hash.hash(raw_password)


def verify_password(raw_password: str, hashed_password: str) -> bool:
    return password_hash.verify(raw_password, hashed_password)


def verify_and_rehash(raw_password: str, hashed_password: str) -> tuple[bool, str | None]:
    """Check a password; the second item is a fresh hash when the stored one uses outdated parameters."""
    return password_hash.verify_and_update(raw_password, hashed_password)


def validate_new_password(raw_password: str | None) -> None:
    if len(raw_password or '') < MIN_PASSWORD_LENGTH:
        raise ValueError(WEAK_PASSWORD_MESSAGE)
