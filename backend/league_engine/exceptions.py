from pydantic import BaseModel
from typing import Optional


class ProblemDetail(BaseModel):
    """RFC 7807 compliant error response."""

    type: str = "about:blank"
    title: str
    detail: Optional[str] = None
    status: int
    instance: Optional[str] = None
    code: str


class DomainException(Exception):
    """Base class for domain-specific exceptions."""

    def __init__(
        self,
        status_code: int,
        title: str,
        *,
        code: str,
        detail: str | None = None,
        type_: str = "about:blank",
    ) -> None:
        super().__init__(detail or title)
        self.status_code = status_code
        self.title = title
        self.detail = detail
        self.type = type_
        self.code = code


class ValidationError(DomainException):
    """Raised for requests the engine refuses without touching any state.

    Covers rounds that cannot be generated (no active players, round already
    exists) and malformed or incomplete match scores.
    """

    def __init__(self, detail: str) -> None:
        super().__init__(
            status_code=400,
            title="Validation failed",
            detail=detail,
            code="validation_error",
        )


class DataIntegrityError(DomainException):
    """A match references a player missing from the ratings or registrations."""

    def __init__(self, detail: str, *, player_id: str | None = None) -> None:
        super().__init__(
            status_code=409,
            title="Data integrity error",
            detail=detail,
            code="data_integrity_error",
        )
        self.player_id = player_id


class PersistenceError(DomainException):
    """A write to the result store or the derived caches failed."""

    def __init__(self, detail: str) -> None:
        super().__init__(
            status_code=503,
            title="Persistence failure",
            detail=detail,
            code="persistence_error",
        )


class PlayerNotFound(DomainException):
    def __init__(self, player_id: str) -> None:
        super().__init__(
            status_code=404,
            title="Player not found",
            detail=f"player '{player_id}' not found",
            code="player_not_found",
        )


class MatchNotFound(DomainException):
    def __init__(self, match_id: str) -> None:
        super().__init__(
            status_code=404,
            title="Match not found",
            detail=f"match '{match_id}' not found",
            code="match_not_found",
        )
