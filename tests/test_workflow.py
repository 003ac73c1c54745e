from decimal import Decimal

import pytest

from extensions import db
from models import AuditLog, Bid, Issue, IssueAssignment, Profile, Tender, User
from utils.errors import AuthorizationError, NotFoundError, ValidationError
from utils.workflow import (
    TENDER_AWARD_NOTE,
    assign_issue,
    award_bid,
    cast_vote,
    create_issue,
    create_tender,
    parse_decimal,
    register_identity,
    retract_vote,
    set_workflow_stage,
    submit_bid,
    update_tender_status,
)


def _issue(reporter, **overrides):
    fields = {"title": "Pothole on Main St", "description": "Deep pothole near the bus stop", "category": "roads"}
    fields.update(overrides)
    return create_issue(reporter, **fields)


def test_new_issue_is_routed_to_area_admin(make_profile, make_area):
    area = make_area("Central Business District")
    area_admin = make_profile("area_super_admin", assigned_area_id=area.id, is_verified=True)
    citizen = make_profile("user")

    issue = _issue(citizen, area="Central Business District")

    assert issue.workflow_stage == "area_review"
    assert issue.status == "pending"
    assert issue.assigned_area_id == area.id
    assert issue.current_assignee_id == area_admin.id
    assert issue.upvotes == 0 and issue.downvotes == 0


def test_new_issue_without_verified_area_admin_stays_unassigned(make_profile, make_area):
    area = make_area("Historic District")
    make_profile("area_super_admin", assigned_area_id=area.id, is_verified=False)
    citizen = make_profile("user")

    issue = _issue(citizen, area="Historic District")

    assert issue.workflow_stage == "area_review"
    assert issue.assigned_area_id == area.id
    assert issue.current_assignee_id is None


def test_new_issue_in_unknown_area_still_succeeds(make_profile):
    citizen = make_profile("user")

    issue = _issue(citizen, area="Atlantis")

    assert issue.id is not None
    assert issue.assigned_area_id is None
    assert issue.current_assignee_id is None


def test_create_issue_rejects_blank_title_before_insert(make_profile):
    citizen = make_profile("user")

    with pytest.raises(ValidationError):
        _issue(citizen, title="   ")

    assert Issue.query.count() == 0


def test_create_issue_rejects_unknown_category(make_profile):
    citizen = make_profile("user")

    with pytest.raises(ValidationError):
        _issue(citizen, category="spaceships")


def test_award_via_status_change_hands_issue_to_contractor(make_profile):
    citizen = make_profile("user")
    manager = make_profile("department_admin")
    contractor = make_profile("tender")
    issue = _issue(citizen)
    tender = create_tender(manager, title="Repave Main St", source_issue_id=issue.id)

    assignment = update_tender_status(tender, "awarded", manager, awarded_to=contractor.id, awarded_amount="1500")

    db.session.refresh(issue)
    assert issue.workflow_stage == "contractor_assigned"
    assert issue.status == "in_progress"
    assert issue.current_assignee_id == contractor.id
    assert assignment is not None
    rows = IssueAssignment.query.filter_by(issue_id=issue.id).all()
    assert len(rows) == 1
    assert rows[0].assignment_type == "department_to_contractor"
    assert rows[0].assigned_to == contractor.id
    assert rows[0].assignment_notes == TENDER_AWARD_NOTE
    assert tender.awarded_amount == Decimal("1500")


def test_resaving_an_awarded_tender_does_not_create_another_assignment(make_profile):
    citizen = make_profile("user")
    manager = make_profile("admin")
    contractor = make_profile("tender")
    issue = _issue(citizen)
    tender = create_tender(manager, title="Fix drain", source_issue_id=issue.id)
    update_tender_status(tender, "awarded", manager, awarded_to=contractor.id)

    again = update_tender_status(tender, "awarded", manager)

    assert again is None
    assert IssueAssignment.query.filter_by(issue_id=issue.id).count() == 1


def test_awarded_tender_cannot_switch_contractor_or_amount(make_profile):
    citizen = make_profile("user")
    manager = make_profile("admin")
    first = make_profile("tender")
    second = make_profile("tender")
    issue = _issue(citizen)
    tender = create_tender(manager, title="Fix drain", source_issue_id=issue.id)
    update_tender_status(tender, "awarded", manager, awarded_to=first.id, awarded_amount="800")

    with pytest.raises(ValidationError):
        update_tender_status(tender, "awarded", manager, awarded_to=second.id)
    with pytest.raises(ValidationError):
        update_tender_status(tender, "awarded", manager, awarded_amount="950")

    assert update_tender_status(tender, "awarded", manager, awarded_to=first.id, awarded_amount="800.00") is None
    db.session.refresh(tender)
    db.session.refresh(issue)
    assert tender.awarded_to == first.id == issue.current_assignee_id
    assert tender.awarded_amount == Decimal("800")
    assert IssueAssignment.query.filter_by(issue_id=issue.id).count() == 1


def test_award_without_source_issue_is_a_no_op(make_profile):
    manager = make_profile("admin")
    contractor = make_profile("tender")
    tender = create_tender(manager, title="General maintenance")

    assignment = update_tender_status(tender, "awarded", manager, awarded_to=contractor.id)

    assert assignment is None
    assert tender.status == "awarded"
    assert IssueAssignment.query.count() == 0


def test_award_requires_a_contractor(make_profile):
    manager = make_profile("admin")
    tender = create_tender(manager, title="General maintenance")

    with pytest.raises(ValidationError):
        update_tender_status(tender, "awarded", manager)


def test_award_bid_accepts_one_and_rejects_the_rest(make_profile):
    citizen = make_profile("user")
    manager = make_profile("department_admin")
    first = make_profile("tender")
    second = make_profile("tender")
    issue = _issue(citizen)
    tender = create_tender(manager, title="Streetlights", source_issue_id=issue.id)
    winning = submit_bid(tender, first, amount="900.50", timeline_days=10)
    losing = submit_bid(tender, second, amount="1200")

    assignment = award_bid(winning, manager)

    assert winning.status == "accepted"
    assert db.session.get(Bid, losing.id).status == "rejected"
    assert tender.status == "awarded"
    assert tender.awarded_to == first.id
    assert tender.awarded_amount == Decimal("900.50")
    assert assignment.assigned_to == first.id


def test_award_bid_twice_is_rejected(make_profile):
    manager = make_profile("admin")
    first = make_profile("tender")
    second = make_profile("tender")
    tender = create_tender(manager, title="Bridge paint")
    bid_a = submit_bid(tender, first, amount="100")
    bid_b = submit_bid(tender, second, amount="200")
    award_bid(bid_a, manager)

    with pytest.raises(ValidationError):
        award_bid(bid_b, manager)


def test_only_tender_accounts_may_bid(make_profile):
    manager = make_profile("admin")
    citizen = make_profile("user")
    tender = create_tender(manager, title="Bridge paint")

    with pytest.raises(AuthorizationError):
        submit_bid(tender, citizen, amount="10")


def test_bids_on_closed_tenders_are_rejected(make_profile):
    manager = make_profile("admin")
    contractor = make_profile("tender")
    tender = create_tender(manager, title="Bridge paint", status="draft")

    with pytest.raises(ValidationError):
        submit_bid(tender, contractor, amount="10")


def test_citizen_cannot_create_tender(make_profile):
    citizen = make_profile("user")

    with pytest.raises(AuthorizationError):
        create_tender(citizen, title="Free money")

    assert Tender.query.count() == 0


def test_vote_counters_follow_insert_change_and_delete(make_profile):
    citizen = make_profile("user")
    voter = make_profile("user")
    issue = _issue(citizen)

    cast_vote(issue, voter, "upvote")
    assert (issue.upvotes, issue.downvotes) == (1, 0)

    cast_vote(issue, voter, "downvote")
    assert (issue.upvotes, issue.downvotes) == (0, 1)

    assert retract_vote(issue, voter) is True
    assert (issue.upvotes, issue.downvotes) == (0, 0)


def test_repeating_the_same_vote_changes_nothing(make_profile):
    citizen = make_profile("user")
    voter = make_profile("user")
    issue = _issue(citizen)

    first = cast_vote(issue, voter, "upvote")
    second = cast_vote(issue, voter, "upvote")

    assert first.id == second.id
    assert issue.upvotes == 1


def test_vote_counters_never_go_negative(make_profile):
    citizen = make_profile("user")
    voter = make_profile("user")
    issue = _issue(citizen)
    cast_vote(issue, voter, "downvote")
    issue.downvotes = 0
    db.session.commit()

    retract_vote(issue, voter)

    assert issue.downvotes == 0
    assert issue.upvotes == 0


def test_retracting_without_a_vote_returns_false(make_profile):
    citizen = make_profile("user")
    issue = _issue(citizen)

    assert retract_vote(issue, citizen) is False


def test_manual_assignment_supersedes_active_assignments(make_profile, make_area, make_department):
    area = make_area("Industrial Area")
    department = make_department()
    admin = make_profile("admin")
    area_admin = make_profile("area_super_admin", assigned_area_id=area.id)
    issue = _issue(make_profile("user"))

    first = assign_issue(issue, admin, "admin_to_area", area_id=area.id)
    second = assign_issue(issue, area_admin, "area_to_department", department_id=department.id, notes="PWD please")

    assert db.session.get(IssueAssignment, first.id).status == "reassigned"
    assert second.status == "active"
    assert issue.workflow_stage == "department_assigned"
    assert issue.assigned_department_id == department.id


def test_assignment_requires_its_target(make_profile):
    admin = make_profile("admin")
    issue = _issue(make_profile("user"))

    with pytest.raises(ValidationError):
        assign_issue(issue, admin, "department_to_contractor")


def test_assignment_to_missing_department_is_not_found(make_profile):
    admin = make_profile("admin")
    issue = _issue(make_profile("user"))

    with pytest.raises(NotFoundError):
        assign_issue(issue, admin, "area_to_department", department_id="missing")


def test_citizen_cannot_assign(make_profile):
    citizen = make_profile("user")
    issue = _issue(citizen)

    with pytest.raises(AuthorizationError):
        assign_issue(issue, citizen, "department_to_contractor", assigned_to=citizen.id)

    assert IssueAssignment.query.count() == 0
    assert AuditLog.query.filter_by(action_type="UNAUTHORIZED_ACCESS").count() == 1


def test_resolving_an_issue_completes_active_assignments(make_profile):
    admin = make_profile("admin")
    contractor = make_profile("tender")
    issue = _issue(make_profile("user"))
    assignment = assign_issue(issue, admin, "department_to_contractor", assigned_to=contractor.id)

    set_workflow_stage(issue, "resolved", admin)

    assert issue.status == "resolved"
    refreshed = db.session.get(IssueAssignment, assignment.id)
    assert refreshed.status == "completed"
    assert refreshed.completed_at is not None


def test_backward_stage_move_is_allowed(make_profile):
    admin = make_profile("admin")
    issue = _issue(make_profile("user"))
    set_workflow_stage(issue, "department_review", admin)

    set_workflow_stage(issue, "area_review", admin)

    assert issue.workflow_stage == "area_review"


def test_citizen_cannot_change_stage(make_profile):
    citizen = make_profile("user")
    issue = _issue(citizen)

    with pytest.raises(AuthorizationError):
        set_workflow_stage(issue, "resolved", citizen)


def test_registration_bootstraps_profile_with_same_id(ctx):
    user = register_identity("New.Person@Civicmail.net", "Secret123", {"full_name": "New Person", "user_type": "tender"})

    profile = db.session.get(Profile, user.id)
    assert profile is not None
    assert profile.email == "new.person@civicmail.net"
    assert profile.user_type == "tender"
    assert profile.full_name == "New Person"


def test_registration_cannot_self_assign_privileged_role(ctx):
    user = register_identity("sneaky@civicmail.net", "Secret123", {"user_type": "admin"})

    assert user.profile.user_type == "user"


def test_registration_rejects_duplicate_email(ctx):
    register_identity("dup@civicmail.net", "Secret123")

    with pytest.raises(ValidationError):
        register_identity("DUP@civicmail.net", "Secret123")

    assert User.query.count() == 1


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("12.5", Decimal("12.5")),
        (" 7 ", Decimal("7")),
        ("abc", Decimal("0")),
        ("", Decimal("0")),
        (None, Decimal("0")),
        ("NaN", Decimal("0")),
        (3, Decimal("3")),
    ],
)
def test_parse_decimal_defaults_on_garbage(raw, expected):
    assert parse_decimal(raw) == expected
