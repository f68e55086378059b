def normalize_email(email: str) -> str:
    return email.strip().lower()


def _private_helper() -> None:
    return None
