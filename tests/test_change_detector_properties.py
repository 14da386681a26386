"""Property-based tests for catalog merging and conflict detection."""

from hypothesis import given
from hypothesis import strategies as st

from offgrid_sync.models.record import Record, RecordStatus
from offgrid_sync.sync.change_detector import ChangeDetector

IDS = [f"DATA-{i:03d}" for i in range(1, 9)]


def remote(record_id: str, last_modified: int) -> Record:
    return Record(
        id=record_id,
        title=f"Remote {record_id}",
        category="GEO",
        content="remote body",
        last_modified=last_modified,
    )


def local(record_id: str, last_modified: int, status=RecordStatus.MATERIALIZED) -> Record:
    return Record(
        id=record_id,
        title=f"Local {record_id}",
        category="GEO",
        content="local body",
        last_modified=last_modified,
        status=status,
        owner_id="usr_a",
    )


timestamps = st.integers(min_value=0, max_value=10**13)


@st.composite
def catalog_and_local(draw: st.DrawFn) -> tuple[list[Record], list[Record]]:
    catalog_ids = draw(st.lists(st.sampled_from(IDS), unique=True, max_size=len(IDS)))
    local_ids = draw(st.lists(st.sampled_from(IDS), unique=True, max_size=len(IDS)))
    catalog = [remote(i, draw(timestamps)) for i in catalog_ids]
    local_records = [local(i, draw(timestamps)) for i in local_ids]
    return catalog, local_records


def test_merge_without_local_copies():
    """Test that every catalog record comes through REMOTE_ONLY."""
    result = ChangeDetector().merge([remote("DATA-001", 5), remote("DATA-002", 6)], [])

    assert [r.id for r in result.records] == ["DATA-001", "DATA-002"]
    assert all(r.status == RecordStatus.REMOTE_ONLY for r in result.records)
    assert not result.has_conflicts
    assert result.orphan_ids == []


def test_merge_detects_strictly_newer_remote():
    """Test conflicts at 100 vs 200 and none for equal timestamps."""
    result = ChangeDetector().merge(
        [remote("DATA-001", 200), remote("DATA-002", 100)],
        [local("DATA-001", 100), local("DATA-002", 100)],
    )

    first, second = result.records
    assert first.status == RecordStatus.CONFLICTED
    assert first.title == "Local DATA-001"
    assert second.status == RecordStatus.MATERIALIZED
    assert result.conflicted_ids == ["DATA-001"]


def test_merge_appends_orphans_in_id_order():
    """Test that local copies missing from the catalog come last, sorted."""
    result = ChangeDetector().merge(
        [remote("DATA-002", 1)],
        [local("DATA-009", 1), local("DATA-003", 1)],
    )

    assert [r.id for r in result.records] == ["DATA-002", "DATA-003", "DATA-009"]
    assert result.orphan_ids == ["DATA-003", "DATA-009"]
    assert result.records[1].status == RecordStatus.MATERIALIZED


def test_merge_ignores_local_leftovers_with_other_statuses():
    """Test that stored copies not in MATERIALIZED status are not used."""
    result = ChangeDetector().merge(
        [remote("DATA-001", 1)],
        [local("DATA-001", 50, status=RecordStatus.TRANSFERRING)],
    )

    assert result.records[0].status == RecordStatus.REMOTE_ONLY
    assert result.records[0].title == "Remote DATA-001"


def test_merge_drops_duplicate_catalog_ids():
    """Test that a repeated catalog id appears once."""
    result = ChangeDetector().merge([remote("DATA-001", 1), remote("DATA-001", 2)], [])

    assert len(result.records) == 1
    assert result.records[0].last_modified == 1


@given(data=catalog_and_local())
def test_merge_properties(data):
    """Property: merge statuses follow presence and timestamp comparison.

    Every catalog id appears once in catalog order, followed by orphans;
    nothing is TRANSFERRING and progress is always 0.
    """
    catalog, local_records = data
    local_by_id = {r.id: r for r in local_records}

    result = ChangeDetector().merge(catalog, local_records)

    catalog_ids = [r.id for r in catalog]
    orphans = sorted(set(local_by_id) - set(catalog_ids))
    assert [r.id for r in result.records] == catalog_ids + orphans
    assert result.orphan_ids == orphans

    remote_by_id = {r.id: r for r in catalog}
    for record in result.records:
        assert record.transfer_progress == 0
        held = local_by_id.get(record.id)
        if held is None:
            assert record.status == RecordStatus.REMOTE_ONLY
        elif record.id in remote_by_id and remote_by_id[record.id].last_modified > held.last_modified:
            assert record.status == RecordStatus.CONFLICTED
            assert record.id in result.conflicted_ids
        else:
            assert record.status == RecordStatus.MATERIALIZED


@given(local_modified=timestamps, remote_modified=timestamps)
def test_is_stale_is_strict(local_modified: int, remote_modified: int):
    """Property: a local copy is stale only when the remote is strictly newer."""
    detector = ChangeDetector()

    stale = detector.is_stale(local("DATA-001", local_modified), remote("DATA-001", remote_modified))

    assert stale == (remote_modified > local_modified)
