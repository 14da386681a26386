"""Property-based tests for record models and the status lifecycle."""

import hashlib

import pytest
from hypothesis import given
from hypothesis import strategies as st
from pydantic import ValidationError

from offgrid_sync.models.record import (
    ALLOWED_TRANSITIONS,
    Identity,
    IllegalTransitionError,
    Record,
    RecordStatus,
)


@st.composite
def record_strategy(draw: st.DrawFn, status: RecordStatus | None = None) -> Record:
    """Generate a random Record."""
    return Record(
        id=draw(st.text(min_size=1, max_size=12)),
        title=draw(st.text(max_size=40)),
        category=draw(st.sampled_from(["WIFI", "SYSTEM", "MANUAL", "AUTH", "GEO"])),
        content=draw(st.text(max_size=200)),
        created_timestamp="2024-05-10",
        last_modified=draw(st.integers(min_value=0, max_value=2**53)),
        status=status or draw(st.sampled_from(list(RecordStatus))),
    )


def test_transition_table_covers_every_status():
    """Test that every status has an entry and none loops to itself."""
    assert set(ALLOWED_TRANSITIONS) == set(RecordStatus)
    for source, targets in ALLOWED_TRANSITIONS.items():
        assert source not in targets


def test_only_local_copy_statuses_hold_storage():
    """Test which statuses count as holding a local copy."""
    assert RecordStatus.MATERIALIZED.holds_local_copy
    assert RecordStatus.CONFLICTED.holds_local_copy
    assert not RecordStatus.REMOTE_ONLY.holds_local_copy
    assert not RecordStatus.TRANSFERRING.holds_local_copy


@given(
    record=record_strategy(),
    target=st.sampled_from(list(RecordStatus)),
)
def test_transition_follows_table(record: Record, target: RecordStatus):
    """Property: a transition succeeds exactly when the table allows it."""
    source = record.status
    if target in ALLOWED_TRANSITIONS[source]:
        record.transfer_progress = 50 if source == RecordStatus.TRANSFERRING else 0
        record.transition_to(target)
        assert record.status == target
        assert record.transfer_progress == 0
    else:
        with pytest.raises(IllegalTransitionError):
            record.transition_to(target)
        assert record.status == source


def test_remote_only_cannot_skip_to_materialized():
    """Test that materializing requires passing through TRANSFERRING."""
    record = Record(id="DATA-001", title="t", category="WIFI")

    with pytest.raises(IllegalTransitionError, match="REMOTE_ONLY -> MATERIALIZED"):
        record.transition_to(RecordStatus.MATERIALIZED)


def test_record_accepts_catalog_aliases():
    """Test that catalog JSON field names populate the record."""
    record = Record.model_validate(
        {
            "id": "DATA-002",
            "title": "Offline Resource Bundle",
            "category": "SYSTEM",
            "content": "Core system assets.",
            "timestamp": "2024-05-12",
            "lastModified": 1715512800000,
            "status": "MATERIALIZED",
            "progress": 0,
            "userId": "usr_abc",
        }
    )

    assert record.created_timestamp == "2024-05-12"
    assert record.last_modified == 1715512800000
    assert record.status == RecordStatus.MATERIALIZED
    assert record.owner_id == "usr_abc"

    dumped = record.model_dump(by_alias=True)
    assert dumped["lastModified"] == 1715512800000
    assert dumped["userId"] == "usr_abc"


def test_record_rejects_out_of_range_values():
    """Test that progress and timestamps are validated."""
    with pytest.raises(ValidationError):
        Record(id="DATA-001", title="t", category="WIFI", transfer_progress=101)
    with pytest.raises(ValidationError):
        Record(id="DATA-001", title="t", category="WIFI", last_modified=-1)
    with pytest.raises(ValidationError):
        Record(id="", title="t", category="WIFI")

    record = Record(id="DATA-001", title="t", category="WIFI")
    with pytest.raises(ValidationError):
        record.transfer_progress = 150


@given(record=record_strategy())
def test_as_remote_drops_local_state(record: Record):
    """Property: as_remote keeps content and clears status, progress and owner."""
    record.owner_id = "usr_someone"

    remote = record.as_remote()

    assert remote.status == RecordStatus.REMOTE_ONLY
    assert remote.transfer_progress == 0
    assert remote.owner_id is None
    assert remote.id == record.id
    assert remote.content == record.content
    assert remote.last_modified == record.last_modified


@given(email=st.emails())
def test_identity_from_email_is_stable(email: str):
    """Property: the same email always yields the same identity id."""
    first = Identity.from_email(email)
    second = Identity.from_email(email.upper(), display_name="Someone Else")

    assert first.id == second.id
    assert first.id.startswith("usr_")
    assert len(first.id) == len("usr_") + 16


@given(
    local=st.from_regex(r"[a-z]{6,12}", fullmatch=True),
    domains=st.lists(
        st.from_regex(r"[a-z]{1,10}\.example", fullmatch=True), min_size=2, max_size=2, unique=True
    ),
)
def test_identity_from_email_distinguishes_shared_prefixes(local: str, domains: list[str]):
    """Property: emails sharing a local part still get distinct identities."""
    first, second = (Identity.from_email(f"{local}@{domain}") for domain in domains)

    assert first.id != second.id


def test_identity_from_email_known_value():
    """Test the derived id for a known email."""
    identity = Identity.from_email("operator@offgrid.sync", token="abc")

    assert identity.id == "usr_" + hashlib.sha256(b"operator@offgrid.sync").hexdigest()[:16]
    assert identity.id != Identity.from_email("operator@offgrid.example").id
    assert identity.display_name == "Operator"
    assert identity.token == "abc"
