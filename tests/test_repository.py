import io
from datetime import date
from pathlib import Path

import pandas as pd
import pytest

from capacityplan.core.errors import CapacityPlanError, InvalidQuantityError
from capacityplan.core.models import AllocationMode, HorizonOptions, NewWorkInput
from capacityplan.data.db import Db
from capacityplan.data.repository import Repository

OPTIONS = HorizonOptions(reference_date=date(2026, 2, 18), week_count=4)


def make_excel_bytes(data: dict) -> bytes:
    """Create a minimal Excel file from a column->values dict."""
    bio = io.BytesIO()
    pd.DataFrame(data).to_excel(bio, index=False)
    bio.seek(0)
    return bio.read()


@pytest.fixture()
def repo(tmp_path) -> Repository:
    db = Db(Path(tmp_path) / "test.db")
    db.ensure_schema()
    return Repository(db)


@pytest.fixture()
def staffed_repo(repo) -> Repository:
    repo.upsert_team_member(name="Ana", hours_per_cycle=80)
    repo.upsert_team_member(name="Luis", hours_per_cycle=80)
    return repo


def test_team_members_drive_weekly_capacity(repo):
    assert repo.get_weekly_capacity() == 0.0

    member_id = repo.upsert_team_member(name="Ana", hours_per_cycle=80)
    repo.upsert_team_member(name="Luis", hours_per_cycle=80)
    assert repo.get_weekly_capacity() == 40.0

    repo.upsert_team_member(member_id=member_id, name="Ana", hours_per_cycle=40)
    assert repo.get_weekly_capacity() == 30.0

    assert repo.delete_team_member(member_id=member_id)
    assert repo.get_weekly_capacity() == 20.0
    assert [m.name for m in repo.get_team_members_model()] == ["Luis"]


def test_negative_member_hours_rejected(repo):
    with pytest.raises(InvalidQuantityError):
        repo.upsert_team_member(name="Bad", hours_per_cycle=-1)


def test_commit_and_list_work_items(staffed_repo):
    first = staffed_repo.commit_work_item(name="Alpha", total_hours=10, start_date="2026-02-16")
    second = staffed_repo.commit_work_item(
        name="Beta",
        total_hours=20,
        start_date="2026-02-16",
        deadline="2026-03-01",
        allocation_mode="even",
    )

    items = staffed_repo.get_work_items_model()
    assert [i.item_id for i in items] == [str(second), str(first)]
    beta = items[0]
    assert beta.deadline == date(2026, 3, 1)
    assert beta.allocation_mode is AllocationMode.EVEN
    assert items[1].allocation_mode is AllocationMode.FILL_CAPACITY


def test_commit_rejects_invalid_work(staffed_repo):
    with pytest.raises(CapacityPlanError):
        staffed_repo.commit_work_item(name="", total_hours=10, start_date="2026-02-16")
    with pytest.raises(ValueError, match="Deadline cannot be before start date"):
        staffed_repo.commit_work_item(name="X", total_hours=10, start_date="2026-02-16", deadline="2026-02-01")
    assert staffed_repo.get_work_items_rows() == []


def test_commit_to_unknown_team_fails(staffed_repo):
    with pytest.raises(ValueError, match="unknown team"):
        staffed_repo.commit_work_item(name="X", total_hours=10, start_date="2026-02-16", team_id="ghost")


def test_delete_work_item(staffed_repo):
    wid = staffed_repo.commit_work_item(name="Alpha", total_hours=10, start_date="2026-02-16")
    assert staffed_repo.delete_work_item(work_item_id=wid) is True
    assert staffed_repo.delete_work_item(work_item_id=wid) is False
    assert staffed_repo.get_work_items_model() == []


def test_malformed_rows_are_skipped(staffed_repo):
    staffed_repo.commit_work_item(name="Good", total_hours=10, start_date="2026-02-16")
    with staffed_repo.db.connect() as con:
        con.execute(
            "INSERT INTO work_items(team_id, name, estimated_hours, start_date) VALUES('default', 'Bad', 5, 'soon')"
        )

    assert [i.name for i in staffed_repo.get_work_items_model()] == ["Good"]


def test_buffer_update_and_limits(staffed_repo):
    assert staffed_repo.update_buffer(buffer_hours_per_week=5.4) == 5
    assert staffed_repo.get_buffer_hours_per_week() == 5.0

    with pytest.raises(InvalidQuantityError, match="cannot exceed weekly capacity"):
        staffed_repo.update_buffer(buffer_hours_per_week=41)
    assert staffed_repo.get_buffer_hours_per_week() == 5.0


def test_dashboard_snapshot(staffed_repo):
    staffed_repo.update_buffer(buffer_hours_per_week=5)
    staffed_repo.commit_work_item(name="Big", total_hours=140, start_date="2026-02-16")

    snap = staffed_repo.get_dashboard_snapshot(options=OPTIONS)

    # 5h buffer each week, then 35h of headroom per week filled in order
    assert [b.committed_hours for b in snap.week_buckets] == [40.0, 40.0, 40.0, 40.0]
    assert snap.total_committed_hours == 160
    assert snap.total_capacity_hours == 160
    assert snap.max_utilization_pct == 100
    assert snap.buffer_hours_per_week == 5.0


def test_evaluate_work_does_not_persist(staffed_repo):
    work = NewWorkInput(name="What if", total_hours=20, start_date=date(2026, 2, 16), allocation_mode=AllocationMode.EVEN)
    result = staffed_repo.evaluate_work(work, options=OPTIONS)

    assert result.deltas.total_committed_hours == 20
    assert result.applied.per_week_hours == 5.0
    assert staffed_repo.get_work_items_rows() == []
    assert staffed_repo.get_dashboard_snapshot(options=OPTIONS).total_committed_hours == 0


def test_import_work_items_excel(staffed_repo):
    content = make_excel_bytes(
        {
            "Name": ["Alpha", "Beta", None],
            "Estimated Hours": [12, 30.5, None],
            "Start Date": ["2026-02-16", "2026-02-23", None],
            "Deadline": [None, "2026-03-08", None],
            "Mode": [None, "even", None],
        }
    )

    assert staffed_repo.import_excel_bytes(kind="work_items", content=content) == 2

    items = {i.name: i for i in staffed_repo.get_work_items_model()}
    assert items["Alpha"].estimated_hours == 12.0
    assert items["Alpha"].deadline is None
    assert items["Alpha"].allocation_mode is AllocationMode.FILL_CAPACITY
    assert items["Beta"].deadline == date(2026, 3, 8)
    assert items["Beta"].allocation_mode is AllocationMode.EVEN


def test_import_work_items_replace_mode(staffed_repo):
    staffed_repo.commit_work_item(name="Old", total_hours=10, start_date="2026-02-16")
    content = make_excel_bytes({"name": ["New"], "hours": [8], "start": ["2026-02-16"]})

    staffed_repo.import_excel_bytes(kind="work", content=content, mode="replace")

    assert [i.name for i in staffed_repo.get_work_items_model()] == ["New"]


def test_import_work_items_reports_bad_row(staffed_repo):
    content = make_excel_bytes(
        {"name": ["Alpha", "Beta"], "estimated_hours": [10, 0], "start_date": ["2026-02-16", "2026-02-16"]}
    )

    with pytest.raises(ValueError, match="Row 3"):
        staffed_repo.import_excel_bytes(kind="work_items", content=content)
    assert staffed_repo.get_work_items_rows() == []


def test_import_work_items_missing_columns(staffed_repo):
    content = make_excel_bytes({"name": ["Alpha"], "start_date": ["2026-02-16"]})
    with pytest.raises(ValueError, match="Missing columns"):
        staffed_repo.import_excel_bytes(kind="work_items", content=content)


def test_import_team_members_excel(repo):
    content = make_excel_bytes({"Name": ["Ana", "Luis"], "Hours per cycle": [80, 40]})

    assert repo.import_excel_bytes(kind="team_members", content=content) == 2
    assert repo.get_weekly_capacity() == 30.0

    again = make_excel_bytes({"Name": ["Marta"], "Hours": [160]})
    repo.import_excel_bytes(kind="members", content=again, mode="replace")
    assert [m.name for m in repo.get_team_members_model()] == ["Marta"]
    assert repo.get_weekly_capacity() == 40.0


def test_import_rejects_unknown_kind_and_mode(repo):
    content = make_excel_bytes({"name": ["x"]})
    with pytest.raises(ValueError, match="kind not supported"):
        repo.import_excel_bytes(kind="orders", content=content)
    with pytest.raises(ValueError, match="mode not supported"):
        repo.import_excel_bytes(kind="work_items", content=content, mode="merge")
