"""Pydantic models for vault records and their lifecycle status."""

import hashlib
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class IllegalTransitionError(ValueError):
    """Raised when a record is moved between statuses the lifecycle forbids."""

    pass


class RecordStatus(str, Enum):
    """Lifecycle status of a record in the local vault."""

    REMOTE_ONLY = "REMOTE_ONLY"
    TRANSFERRING = "TRANSFERRING"
    MATERIALIZED = "MATERIALIZED"
    CONFLICTED = "CONFLICTED"

    @property
    def holds_local_copy(self) -> bool:
        """Whether a record in this status has a copy in the local store."""
        return self in (RecordStatus.MATERIALIZED, RecordStatus.CONFLICTED)

    def can_transition_to(self, target: "RecordStatus") -> bool:
        """Check a move against the transition table."""
        return target in ALLOWED_TRANSITIONS[self]


ALLOWED_TRANSITIONS: dict[RecordStatus, frozenset[RecordStatus]] = {
    RecordStatus.REMOTE_ONLY: frozenset({RecordStatus.TRANSFERRING}),
    RecordStatus.TRANSFERRING: frozenset(
        {RecordStatus.MATERIALIZED, RecordStatus.REMOTE_ONLY}
    ),
    RecordStatus.MATERIALIZED: frozenset(
        {RecordStatus.CONFLICTED, RecordStatus.REMOTE_ONLY}
    ),
    RecordStatus.CONFLICTED: frozenset(
        {RecordStatus.MATERIALIZED, RecordStatus.REMOTE_ONLY}
    ),
}


def _validate_transition_table() -> None:
    missing = set(RecordStatus) - set(ALLOWED_TRANSITIONS)
    if missing:
        raise RuntimeError(f"Transition table has no entry for: {sorted(m.value for m in missing)}")
    for source, targets in ALLOWED_TRANSITIONS.items():
        if source in targets:
            raise RuntimeError(f"Transition table allows a self-loop on {source.value}")


_validate_transition_table()


class Record(BaseModel):
    """Represents a vault record as seen by the local client.

    Field aliases follow the remote catalog's JSON shape, which is also the
    shape persisted in the local store.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        validate_assignment=True,
        json_schema_extra={
            "example": {
                "id": "DATA-001",
                "title": "Network Config Pack",
                "category": "WIFI",
                "content": "Pre-cached local network settings for high-speed offline access.",
                "timestamp": "2024-05-10",
                "lastModified": 1715340000000,
                "status": "REMOTE_ONLY",
                "progress": 0,
            }
        },
    )

    id: str = Field(default=..., min_length=1, description="Unique, stable record identifier")
    title: str = Field(default=..., description="Record title")
    category: str = Field(default=..., description="Category tag (WIFI, SYSTEM, MANUAL, ...)")
    content: str = Field(default="", description="Record body")
    created_timestamp: str = Field(
        default="", alias="timestamp", description="Creation date for display"
    )
    last_modified: int = Field(
        default=0, ge=0, alias="lastModified", description="Last modification, epoch millis"
    )
    status: RecordStatus = Field(default=RecordStatus.REMOTE_ONLY)
    transfer_progress: int = Field(
        default=0, ge=0, le=100, alias="progress", description="Transfer progress percent"
    )
    owner_id: str | None = Field(
        default=None, alias="userId", description="Identity that owns the local copy"
    )

    def transition_to(self, target: RecordStatus) -> None:
        """Move the record to ``target``, enforcing the transition table.

        Progress is reset whenever the record enters or leaves TRANSFERRING.

        Raises:
            IllegalTransitionError: If the move is not in the table
        """
        if not self.status.can_transition_to(target):
            raise IllegalTransitionError(
                f"Record {self.id}: {self.status.value} -> {target.value} is not allowed"
            )
        self.status = target
        self.transfer_progress = 0

    def as_remote(self) -> "Record":
        """Return a fresh REMOTE_ONLY copy without local ownership."""
        return self.model_copy(
            update={
                "status": RecordStatus.REMOTE_ONLY,
                "transfer_progress": 0,
                "owner_id": None,
            }
        )


class Identity(BaseModel):
    """Active session identity that scopes which local records are visible."""

    id: str = Field(default=..., min_length=1, description="Stable identity id")
    display_name: str = Field(default="Operator", description="Name shown to the user")
    email: str | None = Field(default=None, description="Sign-in email")
    token: str | None = Field(default=None, description="Bearer token for remote pushes")

    @classmethod
    def from_email(
        cls, email: str, display_name: str = "Operator", token: str | None = None
    ) -> "Identity":
        """Derive an identity whose id is stable for the same email.

        The id hashes the whole address, case-insensitively, so addresses that
        only share a prefix never map to the same identity.
        """
        digest = hashlib.sha256(email.strip().casefold().encode("utf-8")).hexdigest()
        return cls(id=f"usr_{digest[:16]}", display_name=display_name, email=email, token=token)
