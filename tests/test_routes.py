import io
import os

from extensions import db
from models import Area, AuditLog, Department, Issue, WorkProgress
from utils.media_store import LocalMediaStore, MediaUploadError


def test_health(client):
    resp = client.get("/health")

    assert resp.status_code == 200
    assert resp.get_json() == {"status": "ok", "database": "ok"}
    assert resp.headers["X-Content-Type-Options"] == "nosniff"


def test_api_requires_login(client):
    resp = client.get("/api/areas")

    assert resp.status_code == 401
    assert resp.get_json()["error"] == "unauthorized"


def test_unknown_route_is_json_404(client):
    resp = client.get("/api/nothing-here")

    assert resp.status_code == 404
    assert resp.get_json()["error"] == "not_found"


def test_register_login_and_me(client):
    resp = client.post(
        "/auth/register",
        json={"email": "ana@civicmail.net", "password": "longenough1", "full_name": "Ana", "user_type": "admin"},
    )
    assert resp.status_code == 201
    assert resp.get_json()["profile"]["user_type"] == "user"

    resp = client.post("/auth/login", json={"email": "ana@civicmail.net", "password": "longenough1"})
    assert resp.status_code == 200

    me = client.get("/auth/me").get_json()
    assert me["email"] == "ana@civicmail.net"
    assert me["profile"]["full_name"] == "Ana"

    assert client.post("/auth/logout").status_code == 200
    assert client.get("/auth/me").status_code == 401


def test_register_rejects_weak_password(client):
    resp = client.post("/auth/register", json={"email": "weak@civicmail.net", "password": "short"})

    assert resp.status_code == 400
    assert resp.get_json()["error"] == "validation_error"


def test_register_rejects_malformed_email(client):
    resp = client.post("/auth/register", json={"email": "not-an-email", "password": "longenough1"})

    assert resp.status_code == 400
    assert "email" in resp.get_json()["details"]["fields"]


def test_bad_login_is_audited(app, client, account):
    acct = account("user")

    resp = client.post("/auth/login", json={"email": acct["email"], "password": "wrong-password1"})

    assert resp.status_code == 401
    with app.app_context():
        assert AuditLog.query.filter_by(action_type="LOGIN_FAILED").count() == 1


def test_admin_manages_areas_and_citizens_see_active_only(client, account, login):
    admin = account("admin")
    citizen = account("user")

    login(admin)
    created = client.post("/api/areas", json={"name": "Industrial Area", "code": "ind"})
    assert created.status_code == 201
    assert created.get_json()["code"] == "IND"
    assert created.get_json()["is_active"] is True
    hidden = client.post("/api/areas", json={"name": "Closed Zone", "code": "CLZ", "is_active": False})
    assert hidden.get_json()["is_active"] is False
    assert len(client.get("/api/areas").get_json()) == 2

    duplicate = client.post("/api/areas", json={"name": "Again", "code": "IND"})
    assert duplicate.status_code == 409

    login(citizen)
    visible = client.get("/api/areas").get_json()
    assert [row["code"] for row in visible] == ["IND"]
    assert client.post("/api/areas", json={"name": "Mine", "code": "MIN"}).status_code == 403


def test_department_update_validates_category(client, account, login):
    login(account("admin"))
    dept = client.post(
        "/api/departments", json={"name": "Parks", "code": "PRD", "category": "parks"}
    ).get_json()

    bad = client.patch(f"/api/departments/{dept['id']}", json={"category": "magic"})
    good = client.patch(f"/api/departments/{dept['id']}", json={"contact_email": "parks@city.gov"})

    assert bad.status_code == 400
    assert good.status_code == 200
    assert good.get_json()["contact_email"] == "parks@city.gov"
    assert good.get_json()["category"] == "parks"


def test_admin_promotes_profile(client, account, login):
    admin = account("admin")
    target = account("user")
    login(admin)
    area = client.post("/api/areas", json={"name": "Suburban Area", "code": "SUB"}).get_json()

    resp = client.patch(
        f"/api/profiles/{target['id']}",
        json={"user_type": "area_super_admin", "assigned_area_id": area["id"], "is_verified": True},
    )

    assert resp.status_code == 200
    body = resp.get_json()
    assert body["user_type"] == "area_super_admin"
    assert body["assigned_area_id"] == area["id"]
    assert body["is_verified"] is True


def test_non_admin_cannot_edit_profiles(client, account, login):
    me = account("department_admin")
    login(me)

    resp = client.patch(f"/api/profiles/{me['id']}", json={"user_type": "admin"})

    assert resp.status_code == 403


def test_issue_report_vote_and_assignment_listing(client, account, login):
    reporter = account("user")
    voter = account("user")
    admin = account("admin")

    login(reporter)
    resp = client.post(
        "/api/issues",
        json={
            "title": "Overflowing bin",
            "description": "Bin on 5th Ave not emptied for a week",
            "category": "sanitation",
            "priority": "high",
            "latitude": 40.7,
            "longitude": -73.9,
            "images": ["https://cdn.example.org/bin.jpg"],
        },
    )
    assert resp.status_code == 201
    issue = resp.get_json()
    assert issue["workflow_stage"] == "area_review"
    assert issue["images"] == ["https://cdn.example.org/bin.jpg"]

    login(voter)
    voted = client.post(f"/api/issues/{issue['id']}/votes", json={"vote_type": "upvote"}).get_json()
    assert voted["issue"]["upvotes"] == 1
    switched = client.post(f"/api/issues/{issue['id']}/votes", json={"vote_type": "downvote"}).get_json()
    assert (switched["issue"]["upvotes"], switched["issue"]["downvotes"]) == (0, 1)
    removed = client.delete(f"/api/issues/{issue['id']}/votes").get_json()
    assert removed["removed"] is True
    assert removed["issue"]["downvotes"] == 0

    assert client.get(f"/api/issues/{issue['id']}/assignments").status_code == 403

    login(admin)
    contractor = account("tender")
    created = client.post(
        f"/api/issues/{issue['id']}/assignments",
        json={"assignment_type": "department_to_contractor", "assigned_to": contractor["id"], "due_date": "2030-01-31"},
    )
    assert created.status_code == 201
    assert created.get_json()["issue"]["workflow_stage"] == "contractor_assigned"
    history = client.get(f"/api/issues/{issue['id']}/assignments").get_json()
    assert len(history) == 1

    login(contractor)
    mine = client.get("/api/assignments/mine").get_json()
    assert [row["issue_id"] for row in mine] == [issue["id"]]


def test_invalid_vote_type_is_rejected(client, account, login):
    login(account("user"))
    issue = client.post("/api/issues", json={"title": "t", "description": "d"}).get_json()

    resp = client.post(f"/api/issues/{issue['id']}/votes", json={"vote_type": "sideways"})

    assert resp.status_code == 400


def test_missing_issue_is_404(client, account, login):
    login(account("user"))

    resp = client.get("/api/issues/does-not-exist")

    assert resp.status_code == 404
    assert resp.get_json()["error"] == "not_found"


def test_stage_change_requires_privilege(client, account, login):
    reporter = account("user")
    login(reporter)
    issue = client.post("/api/issues", json={"title": "t", "description": "d"}).get_json()

    denied = client.patch(f"/api/issues/{issue['id']}/stage", json={"workflow_stage": "resolved"})
    assert denied.status_code == 403

    login(account("area_super_admin"))
    allowed = client.patch(f"/api/issues/{issue['id']}/stage", json={"workflow_stage": "resolved"})
    assert allowed.status_code == 200
    assert allowed.get_json()["status"] == "resolved"


def test_tender_bid_award_flow(app, client, account, login):
    reporter = account("user")
    manager = account("department_admin")
    winner = account("tender")
    loser = account("tender")

    login(reporter)
    issue = client.post("/api/issues", json={"title": "Collapsed wall", "description": "Park wall fell"}).get_json()

    login(manager)
    tender = client.post(
        "/api/tenders",
        json={"title": "Rebuild park wall", "source_issue_id": issue["id"], "estimated_budget": "20000"},
    ).get_json()
    assert tender["status"] == "open"

    login(winner)
    bid = client.post(f"/api/tenders/{tender['id']}/bids", json={"amount": 18000, "timeline_days": 30})
    assert bid.status_code == 201
    again = client.post(f"/api/tenders/{tender['id']}/bids", json={"amount": 17000})
    assert again.status_code == 409

    login(loser)
    assert client.post(f"/api/tenders/{tender['id']}/bids", json={"amount": 19500}).status_code == 201
    assert client.get(f"/api/tenders/{tender['id']}/bids").status_code == 403

    login(manager)
    assert len(client.get(f"/api/tenders/{tender['id']}/bids").get_json()) == 2

    evaluation = client.post(
        f"/api/tenders/{tender['id']}/evaluations",
        json={"bid_id": bid.get_json()["id"], "technical_score": 90, "financial_score": 80, "recommendation": "accept"},
    )
    assert evaluation.status_code == 201
    assert evaluation.get_json()["total_score"] == 60.0
    revised = client.patch(
        f"/api/evaluations/{evaluation.get_json()['id']}", json={"experience_score": 100, "timeline_score": 100}
    )
    assert revised.get_json()["total_score"] == 90.0

    awarded = client.post(f"/api/bids/{bid.get_json()['id']}/award")
    assert awarded.status_code == 200
    body = awarded.get_json()
    assert body["tender"]["status"] == "awarded"
    assert body["tender"]["awarded_to"] == winner["id"]
    assert body["assignment"]["assigned_to"] == winner["id"]

    repeat = client.post(f"/api/bids/{bid.get_json()['id']}/award")
    assert repeat.status_code == 400

    with app.app_context():
        stored = db.session.get(Issue, issue["id"])
        assert stored.workflow_stage == "contractor_assigned"
        assert stored.current_assignee_id == winner["id"]


def test_contractor_cannot_publish_tender(client, account, login):
    login(account("tender"))

    resp = client.post("/api/tenders", json={"title": "Self-dealing"})

    assert resp.status_code == 403


def test_progress_submission_with_photos(app, client, account, login, png_bytes):
    contractor = account("tender")
    login(account("user"))
    issue = client.post("/api/issues", json={"title": "Leak", "description": "Water main leak"}).get_json()

    login(contractor)
    resp = client.post(
        "/api/work-progress",
        data={
            "issue_id": issue["id"],
            "title": "Excavation",
            "description": "Trench dug to the main",
            "progress_percentage": "30",
            "materials_used": ["pipe", "gravel"],
            "images": [(io.BytesIO(png_bytes()), "a.png"), (io.BytesIO(png_bytes("green")), "b.png")],
        },
        content_type="multipart/form-data",
    )

    assert resp.status_code == 201, resp.get_json()
    body = resp.get_json()
    assert body["warnings"] == []
    progress = body["progress"]
    assert progress["progress_percentage"] == 30
    assert progress["materials_used"] == ["pipe", "gravel"]
    assert len(progress["images"]) == 2
    assert all(url.startswith("/media/") for url in progress["images"])
    assert os.listdir(app.config["PROGRESS_STAGING_FOLDER"]) == []


def test_progress_json_submission_without_description_is_rejected(app, client, account, login):
    contractor = account("tender")
    login(account("user"))
    issue = client.post("/api/issues", json={"title": "Leak", "description": "Water main leak"}).get_json()

    login(contractor)
    resp = client.post("/api/work-progress", json={"issue_id": issue["id"], "title": "Day 1", "description": ""})

    assert resp.status_code == 400
    assert resp.get_json()["details"]["missing"] == ["description"]
    with app.app_context():
        assert WorkProgress.query.count() == 0


def test_progress_rejects_non_image_upload(client, account, login):
    login(account("tender"))

    resp = client.post(
        "/api/work-progress",
        data={
            "tender_id": "anything",
            "title": "t",
            "description": "d",
            "images": [(io.BytesIO(b"MZ..."), "payload.png")],
        },
        content_type="multipart/form-data",
    )

    assert resp.status_code == 400
    assert resp.get_json()["details"]["field"] == "images"


def test_citizens_cannot_submit_progress(client, account, login):
    login(account("user"))

    resp = client.post("/api/work-progress", json={"issue_id": "x", "title": "t", "description": "d"})

    assert resp.status_code == 403


def test_progress_listing_annotation_and_dashboard(client, account, login):
    contractor = account("tender")
    rival = account("tender")
    manager = account("admin")

    login(manager)
    tender = client.post("/api/tenders", json={"title": "Sidewalk"}).get_json()
    client.patch(
        f"/api/tenders/{tender['id']}/status",
        json={"status": "awarded", "awarded_to": contractor["id"], "awarded_amount": "2500"},
    )

    login(contractor)
    progress = client.post(
        "/api/work-progress", json={"tender_id": tender["id"], "title": "Pour", "description": "Concrete poured"}
    ).get_json()["progress"]
    assert client.get(f"/api/work-progress?contractor_id={rival['id']}").status_code == 403
    assert len(client.get("/api/work-progress").get_json()) == 1
    assert client.patch(
        f"/api/work-progress/{progress['id']}/annotation", json={"quality_rating": 5}
    ).status_code == 403

    login(manager)
    annotated = client.patch(
        f"/api/work-progress/{progress['id']}/annotation",
        json={"quality_rating": 4, "supervisor_notes": "Even finish"},
    )
    assert annotated.status_code == 200
    assert annotated.get_json()["quality_rating"] == 4
    assert client.get("/api/contractor/dashboard").status_code == 403

    login(contractor)
    dashboard = client.get("/api/contractor/dashboard").get_json()
    assert [row["id"] for row in dashboard["assigned_work"]] == [tender["id"]]
    assert dashboard["stats"] == {
        "active_projects": 1,
        "completed_projects": 0,
        "total_earnings": 2500.0,
        "avg_rating": 4.0,
    }
    assert dashboard["recent_progress"][0]["supervisor_notes"] == "Even finish"


def test_seed_reference_data_is_idempotent(app):
    runner = app.test_cli_runner()

    first = runner.invoke(args=["seed-reference-data"])
    second = runner.invoke(args=["seed-reference-data"])

    assert "Seeded 5 area(s) and 5 department(s)." in first.output
    assert "Seeded 0 area(s) and 0 department(s)." in second.output
    with app.app_context():
        assert Area.query.count() == 5
        assert Department.query.count() == 5


def test_progress_warnings_name_uploads_by_filename(app, client, account, login, png_bytes, monkeypatch):
    def reject(self, source):
        raise MediaUploadError(f"Media not found: {source}")

    monkeypatch.setattr(LocalMediaStore, "upload", reject)
    contractor = account("tender")
    login(account("user"))
    issue = client.post("/api/issues", json={"title": "Leak", "description": "Water main leak"}).get_json()

    login(contractor)
    resp = client.post(
        "/api/work-progress",
        data={
            "issue_id": issue["id"],
            "title": "Excavation",
            "description": "Trench dug",
            "materials_used": "cement, sand",
            "images": [(io.BytesIO(png_bytes()), "trench.png")],
        },
        content_type="multipart/form-data",
    )

    assert resp.status_code == 201
    body = resp.get_json()
    assert body["progress"]["images"] == []
    assert body["progress"]["materials_used"] == ["cement", "sand"]
    assert body["warnings"][0]["details"]["failed"] == [{"source": "trench.png", "error": "Media not found: trench.png"}]
    assert app.config["PROGRESS_STAGING_FOLDER"] not in resp.get_data(as_text=True)
