from datetime import date, datetime, timezone
import csv
import io
import json
from types import SimpleNamespace
from uuid import UUID, uuid4

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from vault_api.core.errors import AuthorizationError, NotFoundError, ValidationError
from vault_api.models.enums import EditRequestStatus, SpaceType, UserRole, UserStatus
from vault_api.models.item import EditRequest, Item, Revision
from vault_api.models.space import Space
from vault_api.models.user import User
from vault_api.services.authorization import Actor, WriteMode, resolve_write_mode
from vault_api.services.export import (
    CSV_HEADERS,
    export_filename,
    export_record,
    exportable_space_ids,
    render_csv,
    render_json,
    render_markdown,
)
from vault_api.services.items import write_item_update, write_new_item
from vault_api.services.moderation import (
    approve_edit_request,
    list_edit_requests,
    list_revisions,
    reject_edit_request,
    revert_item,
)


def _user(db: Session, email: str, *, role: str = UserRole.MEMBER) -> Actor:
    user = User(email=email, display_name=email.split("@")[0].title(), role=role, status=UserStatus.APPROVED)
    db.add(user)
    db.flush()
    return Actor.from_user(user)


def _space(db: Session, *, type_: str, owner: Actor | None = None, is_public: bool = False) -> Space:
    space = Space(
        name=f"{type_}-{uuid4().hex[:6]}",
        type=type_,
        owner_id=owner.id if owner else None,
        is_public=is_public,
        created_by=owner.id if owner else None,
    )
    db.add(space)
    db.flush()
    return space


@pytest.fixture
def world(db_session: Session) -> SimpleNamespace:
    admin = _user(db_session, "admin@example.com", role=UserRole.ADMIN)
    member = _user(db_session, "member@example.com")
    other = _user(db_session, "other@example.com")
    return SimpleNamespace(
        db=db_session,
        admin=admin,
        member=member,
        other=other,
        personal=_space(db_session, type_=SpaceType.PERSONAL, owner=member),
        other_personal=_space(db_session, type_=SpaceType.PERSONAL, owner=other),
        common=_space(db_session, type_=SpaceType.COMMON, is_public=True),
        private_common=_space(db_session, type_=SpaceType.COMMON, is_public=False),
    )


def test_write_mode_rules(world):
    assert resolve_write_mode(world.member, world.personal) == WriteMode.DIRECT
    assert resolve_write_mode(world.member, world.common) == WriteMode.MODERATED
    assert resolve_write_mode(world.admin, world.common) == WriteMode.DIRECT
    assert resolve_write_mode(world.admin, world.other_personal) == WriteMode.DIRECT
    with pytest.raises(AuthorizationError):
        resolve_write_mode(world.member, world.other_personal)
    with pytest.raises(AuthorizationError):
        resolve_write_mode(world.member, world.private_common)


def test_direct_write_creates_item_and_first_revision(world):
    db = world.db
    result = write_new_item(
        db,
        actor=world.member,
        space=world.personal,
        values={"title": "Notes", "content": "hello", "tags": ["a"], "type": "note"},
    )
    assert result["mode"] == "direct"
    assert result["revision"]["version"] == 1
    assert sorted(result["revision"]["changed_fields"]) == ["content", "tags", "title", "type"]
    assert db.execute(select(func.count()).select_from(EditRequest)).scalar_one() == 0


def test_member_write_to_common_space_only_creates_edit_request(world):
    db = world.db
    result = write_new_item(
        db,
        actor=world.member,
        space=world.common,
        values={"title": "Shared", "content": "draft", "tags": ["team"], "url": "https://example.com/"},
        reason="Please add",
    )
    assert result["mode"] == "moderated"
    edit_request = result["edit_request"]
    assert edit_request["status"] == "pending"
    assert edit_request["item_id"] is None
    assert edit_request["payload"] == {"url": "https://example.com/"}
    assert edit_request["reason"] == "Please add"
    assert db.execute(select(func.count()).select_from(Item)).scalar_one() == 0


def test_approve_creates_item_and_double_review_is_rejected(world):
    db = world.db
    pending = write_new_item(
        db,
        actor=world.member,
        space=world.common,
        values={"title": "Shared", "content": "draft", "tags": ["team"]},
    )["edit_request"]

    edit_request, item, revision = approve_edit_request(
        db, request_id=UUID(pending["id"]), reviewer=world.admin, note="ok"
    )
    assert edit_request.status == EditRequestStatus.APPROVED
    assert edit_request.reviewed_by == world.admin.id
    assert edit_request.item_id == item.id
    assert item.space_id == world.common.id
    assert item.created_by == world.member.id
    assert revision.version == 1

    with pytest.raises(ValidationError, match="already been reviewed"):
        approve_edit_request(db, request_id=UUID(pending["id"]), reviewer=world.admin)
    with pytest.raises(ValidationError):
        reject_edit_request(db, request_id=UUID(pending["id"]), reviewer=world.admin)
    assert db.execute(select(func.count()).select_from(Item)).scalar_one() == 1


def test_update_proposal_approval_appends_revision(world):
    db = world.db
    created = write_new_item(db, actor=world.admin, space=world.common, values={"title": "Doc", "content": "v1"})
    assert created["mode"] == "direct"
    item = db.execute(select(Item).where(Item.title == "Doc")).scalar_one()

    proposal = write_item_update(
        db, actor=world.member, item=item, space=world.common, changes={"content": "v2"}, reason="typo"
    )
    assert proposal["mode"] == "moderated"
    db.refresh(item)
    assert item.content == "v1"

    _, updated, revision = approve_edit_request(
        db, request_id=UUID(proposal["edit_request"]["id"]), reviewer=world.admin
    )
    assert updated.id == item.id
    assert updated.content == "v2"
    assert revision.version == 2
    assert revision.changed_fields == ["content"]


def test_reject_leaves_items_untouched(world):
    db = world.db
    pending = write_new_item(db, actor=world.member, space=world.common, values={"title": "Nope"})["edit_request"]
    rejected = reject_edit_request(db, request_id=UUID(pending["id"]), reviewer=world.admin, note="duplicate")
    assert rejected.status == EditRequestStatus.REJECTED
    assert rejected.review_note == "duplicate"
    assert db.execute(select(func.count()).select_from(Item)).scalar_one() == 0

    with pytest.raises(NotFoundError):
        reject_edit_request(db, request_id=uuid4(), reviewer=world.admin)


def test_list_edit_requests_scopes_members_to_their_own(world):
    db = world.db
    write_new_item(db, actor=world.member, space=world.common, values={"title": "Mine"})
    write_new_item(db, actor=world.other, space=world.common, values={"title": "Theirs"})

    own, own_total = list_edit_requests(db, actor=world.member)
    assert own_total == 1
    assert own[0].title == "Mine"

    everything, total = list_edit_requests(db, actor=world.admin, status=EditRequestStatus.PENDING)
    assert total == 2
    assert {row.title for row in everything} == {"Mine", "Theirs"}
    assert list_edit_requests(db, actor=world.admin, status=EditRequestStatus.APPROVED) == ([], 0)


def test_revert_appends_new_revision(world):
    db = world.db
    write_new_item(db, actor=world.member, space=world.personal, values={"title": "Draft", "content": "one"})
    item = db.execute(select(Item).where(Item.title == "Draft")).scalar_one()
    write_item_update(
        db, actor=world.member, item=item, space=world.personal, changes={"title": "Final", "content": "two"}
    )
    history = list_revisions(db, item.id)
    assert [revision.version for revision in history] == [2, 1]

    item, revision = revert_item(db, item=item, revision_id=history[-1].id, actor=world.member)
    assert item.title == "Draft"
    assert item.content == "one"
    assert revision.version == 3
    assert revision.note == "Reverted to version 1"
    assert db.execute(select(func.count()).select_from(Revision)).scalar_one() == 3

    with pytest.raises(NotFoundError):
        revert_item(db, item=item, revision_id=uuid4(), actor=world.member)


def test_no_op_update_does_not_create_revision(world):
    db = world.db
    write_new_item(db, actor=world.member, space=world.personal, values={"title": "Same", "tags": ["x"]})
    item = db.execute(select(Item).where(Item.title == "Same")).scalar_one()
    result = write_item_update(
        db, actor=world.member, item=item, space=world.personal, changes={"title": "Same", "tags": ["x"]}
    )
    assert result["revision"] is None
    assert len(list_revisions(db, item.id)) == 1


def test_exportable_spaces(world):
    db = world.db
    member_spaces = set(exportable_space_ids(db, actor=world.member))
    assert member_spaces == {world.personal.id, world.common.id}

    admin_spaces = set(exportable_space_ids(db, actor=world.admin))
    assert admin_spaces == {world.common.id, world.private_common.id}

    narrowed = exportable_space_ids(db, actor=world.member, space_ids=[world.common.id, world.other_personal.id])
    assert narrowed == [world.common.id]


def _record() -> dict:
    item = SimpleNamespace(
        id=uuid4(),
        title="Paper, \"quoted\"",
        content="Body text",
        url="https://example.com/paper",
        excerpt="Short",
        type="bookmark",
        tags=["ml", "papers"],
        is_favorite=True,
        created_at=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
        updated_at=datetime(2024, 5, 2, 12, 0, tzinfo=timezone.utc),
    )
    return export_record(item, "Research")


def test_export_renderers():
    record = _record()
    info = {"exported_at": "2024-05-03T00:00:00Z", "total_items": 1, "format": "json"}

    parsed = json.loads(render_json([record], info))
    assert parsed["export_info"]["total_items"] == 1
    assert parsed["items"][0]["space_name"] == "Research"
    assert "attachments" not in parsed["items"][0]

    rows = list(csv.reader(io.StringIO(render_csv([record]))))
    assert tuple(rows[0]) == CSV_HEADERS
    assert rows[1][CSV_HEADERS.index("title")] == 'Paper, "quoted"'
    assert rows[1][CSV_HEADERS.index("tags")] == "ml, papers"

    markdown = render_markdown([record], info)
    assert markdown.startswith("# Vault Export")
    assert "## Paper, \"quoted\"" in markdown
    assert "- **Tags:** ml, papers" in markdown
    assert "> Short" in markdown

    assert export_filename("markdown", today=date(2024, 5, 3)) == "vault-export-2024-05-03.md"
    assert export_filename("csv", today=date(2024, 5, 3)) == "vault-export-2024-05-03.csv"
