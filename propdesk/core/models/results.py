from pydantic import BaseModel


class Rejected(BaseModel):
    """Typed failure returned to callers instead of raising."""
    code: str
    error: str


def rejected(code: str, error: str) -> Rejected:
    return Rejected(code=code, error=error)
