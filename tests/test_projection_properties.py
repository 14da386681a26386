"""Property-based tests for filtered and sorted record views."""

from hypothesis import given
from hypothesis import strategies as st

from offgrid_sync.models.record import Record, RecordStatus
from offgrid_sync.query.projection import (
    ProjectionOptions,
    categories,
    group_by_status,
    matches,
    project,
)


def rec(record_id: str, title: str = "", last_modified: int = 0, **fields) -> Record:
    return Record(
        id=record_id,
        title=title or f"Title {record_id}",
        category=fields.pop("category", "WIFI"),
        last_modified=last_modified,
        **fields,
    )


@st.composite
def records_strategy(draw: st.DrawFn) -> list[Record]:
    ids = draw(st.lists(st.integers(min_value=0, max_value=50), unique=True, max_size=15))
    return [
        rec(
            f"DATA-{i:03d}",
            title=draw(st.sampled_from(["Alpha", "beta", "Gamma", "alpha"])),
            last_modified=draw(st.integers(min_value=0, max_value=5)),
            category=draw(st.sampled_from(["WIFI", "GEO", "AUTH"])),
            status=draw(st.sampled_from(list(RecordStatus))),
        )
        for i in ids
    ]


def test_default_view_is_newest_first():
    """Test that the default sort is last_modified descending."""
    records = [rec("A", last_modified=1), rec("B", last_modified=3), rec("C", last_modified=2)]

    assert [r.id for r in project(records)] == ["B", "C", "A"]


def test_ties_break_by_id_ascending_in_both_directions():
    """Test that equal sort keys order by id ascending, ascending or descending."""
    records = [rec("C", last_modified=5), rec("A", last_modified=5), rec("B", last_modified=9)]

    desc = project(records, ProjectionOptions(sort_dir="desc"))
    asc = project(records, ProjectionOptions(sort_dir="asc"))

    assert [r.id for r in desc] == ["B", "A", "C"]
    assert [r.id for r in asc] == ["A", "C", "B"]


def test_title_sort_is_case_insensitive():
    records = [rec("1", "banana"), rec("2", "Apple"), rec("3", "cherry")]

    result = project(records, ProjectionOptions(sort_key="title", sort_dir="asc"))

    assert [r.title for r in result] == ["Apple", "banana", "cherry"]


def test_search_matches_title_or_content():
    """Test case-insensitive search over title and content."""
    records = [
        rec("1", "Network Config Pack", content="settings"),
        rec("2", "Map Data", content="Offline NETWORK terrain"),
        rec("3", "Auth Keys", content="tokens"),
    ]

    result = project(records, ProjectionOptions(search_text="network", sort_dir="asc"))

    assert [r.id for r in result] == ["1", "2"]


def test_category_filter_is_case_insensitive():
    records = [rec("1", category="WIFI"), rec("2", category="GEO")]

    assert [r.id for r in project(records, ProjectionOptions(category="geo"))] == ["2"]


def test_offline_view_keeps_local_copies():
    """Test that the offline view shows MATERIALIZED and CONFLICTED records."""
    records = [
        rec("1", status=RecordStatus.REMOTE_ONLY),
        rec("2", status=RecordStatus.MATERIALIZED),
        rec("3", status=RecordStatus.CONFLICTED),
        rec("4", status=RecordStatus.TRANSFERRING, transfer_progress=40),
    ]

    result = project(records, ProjectionOptions(only_materialized=True, sort_dir="asc"))

    assert [r.id for r in result] == ["2", "3"]


def test_project_leaves_input_untouched():
    records = [rec("B", last_modified=1), rec("A", last_modified=2)]

    project(records, ProjectionOptions(sort_dir="asc"))

    assert [r.id for r in records] == ["B", "A"]


def test_group_by_status_and_categories():
    records = [
        rec("1", category="WIFI"),
        rec("2", category="GEO", status=RecordStatus.MATERIALIZED),
        rec("3", category="WIFI", status=RecordStatus.MATERIALIZED),
    ]

    groups = group_by_status(records)

    assert [r.id for r in groups[RecordStatus.MATERIALIZED]] == ["2", "3"]
    assert [r.id for r in groups[RecordStatus.REMOTE_ONLY]] == ["1"]
    assert groups[RecordStatus.CONFLICTED] == []
    assert categories(records) == ["GEO", "WIFI"]


@given(
    records=records_strategy(),
    sort_key=st.sampled_from(["last_modified", "title"]),
    sort_dir=st.sampled_from(["asc", "desc"]),
    only_materialized=st.booleans(),
)
def test_projection_is_a_total_order(records, sort_key, sort_dir, only_materialized):
    """Property: the view is the matching subset in key order, ties by id ascending."""
    options = ProjectionOptions(
        sort_key=sort_key, sort_dir=sort_dir, only_materialized=only_materialized
    )

    result = project(records, options)

    assert sorted(r.id for r in result) == sorted(r.id for r in records if matches(r, options))

    def key(r: Record):
        return r.title.casefold() if sort_key == "title" else r.last_modified

    for a, b in zip(result, result[1:]):
        if key(a) == key(b):
            assert a.id < b.id
        elif sort_dir == "asc":
            assert key(a) < key(b)
        else:
            assert key(a) > key(b)

    # Projecting again gives the same order
    assert [r.id for r in project(list(reversed(records)), options)] == [r.id for r in result]
