"""
HTTP tests through FastAPI's TestClient with the in-memory database and the scripted oracle.
"""
import base64

import pytest

from spellquest.settings import settings


def _student_headers(client, code="MOA-176"):
    response = client.post("/auth/student", json={"code": code})
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


def _teacher_headers(client):
    response = client.post(
        "/auth/token",
        data={"username": settings.seed_teacher_email, "password": settings.seed_teacher_password},
    )
    assert response.status_code == 200
    assert response.json()["role"] == "TEACHER"
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.mark.integration
class TestAuth:
    def test_health(self, api_client):
        body = api_client.get("/health").json()
        assert body["status"] == "ok"
        assert body["storage_version"] == settings.storage_version

    def test_unknown_code(self, api_client):
        assert api_client.post("/auth/student", json={"code": "NOPE-000"}).status_code == 401

    def test_student_login_starts_streak(self, api_client):
        headers = _student_headers(api_client, " moa-176 ")
        me = api_client.get("/students/me", headers=headers).json()
        assert me["id"] == "s1"
        assert me["current_streak"] == 1

    def test_me_reports_role(self, api_client):
        body = api_client.get("/auth/me", headers=_student_headers(api_client)).json()
        assert body["role"] == "STUDENT"
        assert body["student"]["name"] == "Nethalee"

    def test_wrong_teacher_password(self, api_client):
        response = api_client.post("/auth/token", data={"username": settings.seed_teacher_email, "password": "nope"})
        assert response.status_code == 401

    def test_missing_or_bad_token(self, api_client):
        assert api_client.get("/students/me").status_code == 401
        assert api_client.get("/students/me", headers={"Authorization": "Bearer garbage"}).status_code == 401

    def test_roles_are_enforced(self, api_client):
        assert api_client.get("/teacher/classes", headers=_student_headers(api_client)).status_code == 403
        assert api_client.get("/students/me", headers=_teacher_headers(api_client)).status_code == 403

    def test_register_teacher(self, api_client):
        payload = {"name": "Ms. K", "email": "k@school.nz", "password": "secret123", "class_name": "Room 7"}
        first = api_client.post("/auth/register", json=payload)
        assert first.status_code == 201
        headers = {"Authorization": f"Bearer {first.json()['access_token']}"}
        classes = api_client.get("/teacher/classes", headers=headers).json()
        assert [c["group"]["name"] for c in classes] == ["Room 7"]
        assert api_client.post("/auth/register", json=payload).status_code == 409


@pytest.mark.integration
class TestStudentViews:
    def test_module_locks(self, api_client):
        views = {v["module"]["id"]: v for v in api_client.get("/students/me/modules", headers=_student_headers(api_client)).json()}
        assert views["l1_satpin"]["locked"] is False
        assert views["l1_short_vowels"]["locked"] is True
        assert views["l2_magic_e"]["assigned"] is True

    def test_classmates(self, api_client):
        mates = api_client.get("/students/me/classmates", headers=_student_headers(api_client)).json()
        assert {m["id"] for m in mates} == {"s1", "s2"}

    def test_shop(self, api_client):
        headers = _student_headers(api_client)
        assert len(api_client.get("/shop/items").json()) == 12
        assert api_client.post("/students/me/shop/hat_top", headers=headers).status_code == 400
        assert api_client.post("/students/me/shop/hat_unicorn", headers=headers).status_code == 404


@pytest.mark.integration
class TestLessonRoutes:
    def test_locked_module_refused(self, api_client):
        response = api_client.post("/lessons/start", json={"module_id": "l1_short_vowels"}, headers=_student_headers(api_client))
        assert response.status_code == 403

    def test_assigned_module_allowed_while_locked(self, api_client):
        response = api_client.post("/lessons/start", json={"module_id": "l2_magic_e"}, headers=_student_headers(api_client))
        assert response.status_code == 200
        assert response.json()["phase"] == "INTRO"

    def test_unknown_module(self, api_client):
        response = api_client.post("/lessons/start", json={"module_id": "l99"}, headers=_student_headers(api_client))
        assert response.status_code == 404

    def test_generation_failure(self, api_client, fake_oracle):
        fake_oracle.lesson = RuntimeError("down")
        response = api_client.post("/lessons/start", json={"module_id": "l1_satpin"}, headers=_student_headers(api_client))
        assert response.json()["phase"] == "ERROR"
        sid = response.json()["session_id"]
        assert api_client.get(f"/lessons/{sid}", headers=_student_headers(api_client)).status_code == 404

    def test_full_lesson(self, api_client):
        headers = _student_headers(api_client)
        sid = api_client.post("/lessons/start", json={"module_id": "l1_satpin"}, headers=headers).json()["session_id"]

        def post(path, **kwargs):
            response = api_client.post(f"/lessons/{sid}{path}", headers=headers, **kwargs)
            assert response.status_code == 200, response.text
            return response.json()

        assert api_client.post(f"/lessons/{sid}/answer", json={"answer": "sun"}, headers=headers).status_code == 409
        assert post("/begin")["phase"] == "PRACTICE"
        assert post("/answer", json={"answer": "sun"})["state"]["feedback"] == "correct"
        post("/next")
        post("/answer", json={"answer": "cat"})
        assert post("/next")["phase"] == "CONCEPT"
        assert post("/concept", json={"answer": "consonant vowel consonant"})["concept_passed"] is True
        assert post("/concept/continue")["phase"] == "TEST"
        post("/answer", json={"answer": "cat"})
        post("/next")
        post("/answer", json={"answer": "dog"})
        assert post("/next")["phase"] == "RATING"
        summary = post("/rating", json={"confidence": 5})
        assert summary["phase"] == "SUMMARY"
        assert summary["final_percentage"] == 100

        finished = post("/finish")
        assert finished["final_percentage"] == 100
        assert finished["student"]["progress"]["l1_satpin"]["completed"] is True
        assert finished["student"]["xp"] == 190
        assert api_client.get(f"/lessons/{sid}", headers=headers).status_code == 404

        views = {v["module"]["id"]: v for v in api_client.get("/students/me/modules", headers=headers).json()}
        assert views["l1_short_vowels"]["locked"] is False

    def test_exit_makes_lesson_resumable(self, api_client):
        headers = _student_headers(api_client)
        sid = api_client.post("/lessons/start", json={"module_id": "l1_satpin"}, headers=headers).json()["session_id"]
        api_client.post(f"/lessons/{sid}/begin", headers=headers)
        api_client.post(f"/lessons/{sid}/exit", headers=headers)

        views = {v["module"]["id"]: v for v in api_client.get("/students/me/modules", headers=headers).json()}
        assert views["l1_satpin"]["resumable"] is True
        again = api_client.post("/lessons/start", json={"module_id": "l1_satpin"}, headers=headers).json()
        assert again["resumed"] is True
        assert again["phase"] == "PRACTICE"

    def test_other_students_session_hidden(self, api_client):
        sid = api_client.post("/lessons/start", json={"module_id": "l1_satpin"}, headers=_student_headers(api_client)).json()["session_id"]
        other = _student_headers(api_client, "HAKA-283")
        assert api_client.get(f"/lessons/{sid}", headers=other).status_code == 404


@pytest.mark.integration
class TestTudor:
    def test_lesson_context_carries_hidden_answer(self, api_client, fake_oracle):
        headers = _student_headers(api_client)
        sid = api_client.post("/lessons/start", json={"module_id": "l1_satpin"}, headers=headers).json()["session_id"]
        api_client.post(f"/lessons/{sid}/begin", headers=headers)
        response = api_client.post("/tudor/ask", json={"query": "what is it?", "session_id": sid}, headers=headers)
        assert response.json()["reply"] == "It rhymes with 'log'!"
        context = fake_oracle.last_tudor_context
        assert context.correct_answer == "sun"
        assert context.module_title == "Initial Sounds (SATPIN)"
        assert "cat" in context.example_words

    def test_general_help(self, api_client, fake_oracle):
        response = api_client.post("/tudor/ask", json={"query": "hi"}, headers=_student_headers(api_client))
        assert response.status_code == 200
        assert fake_oracle.last_tudor_context.module_title == "General help"

    def test_blank_query(self, api_client):
        assert api_client.post("/tudor/ask", json={"query": "  "}, headers=_student_headers(api_client)).status_code == 400


@pytest.mark.integration
class TestPlacementAndReading:
    def test_placement_flow(self, api_client):
        headers = _student_headers(api_client)
        started = api_client.post("/placement/start", headers=headers).json()
        sid = started["session_id"]
        first = started["questions"][0]
        assert first["options"] == sorted(["Cat", "Kat", "Catt", "Caat"])

        assert api_client.post(f"/placement/{sid}/finish", headers=headers).status_code == 409
        answers = ["Cat", "Happy", "Becoz", "Necessary", "Acommodation"]
        results = [api_client.post(f"/placement/{sid}/answer", json={"answer": a}, headers=headers).json() for a in answers]
        assert [r["is_correct"] for r in results] == [True, True, False, True, False]
        assert results[-1]["done"] is True
        assert api_client.post(f"/placement/{sid}/answer", json={"answer": "x"}, headers=headers).status_code == 409

        body = api_client.post(f"/placement/{sid}/finish", headers=headers).json()
        assert body["outcome"]["level"] == 3
        assert body["student"]["placement_test_status"] == "COMPLETED"
        assert body["student"]["placement_level"] == 3
        # the XP-derived level is untouched
        assert body["student"]["level"] == 1

    def test_skip_placement(self, api_client):
        body = api_client.post("/placement/skip", headers=_student_headers(api_client)).json()
        assert body["placement_test_status"] == "SKIPPED"

    def test_passage_uses_assessment_level(self, api_client, fake_oracle):
        api_client.post("/reading/passage", json={"theme": "Space"}, headers=_student_headers(api_client, "VONAL-10"))
        assert fake_oracle.last_passage_level == 10

    def test_passage_uses_year_level(self, api_client, fake_oracle):
        api_client.post("/reading/passage", json={}, headers=_student_headers(api_client))
        assert fake_oracle.last_passage_level == 4

    def test_analyze_reading_logs_session(self, api_client):
        headers = _student_headers(api_client)
        audio = base64.b64encode(b"fake audio bytes").decode()
        response = api_client.post("/reading/analyze", json={"audio_base64": audio, "target_text": "The kiwi."}, headers=headers)
        assert response.status_code == 200
        body = response.json()
        assert body["session"]["id"].startswith("read_")
        assert body["session"]["assessed_level"] == "Fluent Level 4"
        assert body["student"]["xp"] == 20
        assert body["student"]["stars"] == 1
        assert len(body["student"]["reading_log"]) == 1

    def test_analyze_rejects_bad_audio(self, api_client):
        response = api_client.post("/reading/analyze", json={"audio_base64": "not base64!!"}, headers=_student_headers(api_client))
        assert response.status_code == 400


@pytest.mark.integration
class TestTeacherRoutes:
    def test_classes_and_enrolment(self, api_client):
        headers = _teacher_headers(api_client)
        classes = api_client.get("/teacher/classes", headers=headers).json()
        assert {c["group"]["id"] for c in classes} == {"c1", "c2"}

        created = api_client.post("/teacher/classes/c1/students", json={"name": "Aroha"}, headers=headers)
        assert created.status_code == 201
        code = created.json()["login_code"]
        assert _student_headers(api_client, code)

    def test_assessment_drives_suggestions(self, api_client):
        headers = _teacher_headers(api_client)
        body = api_client.put(
            "/teacher/students/s1/assessment",
            json={"reading_level": 1, "focus_areas": ["Blends"]},
            headers=headers,
        ).json()
        assert "l1_blends" in body["suggested_module_ids"]
        # suggested modules may be started while locked
        start = api_client.post("/lessons/start", json={"module_id": "l1_blends"}, headers=_student_headers(api_client))
        assert start.status_code == 200

    def test_bulk_assign(self, api_client):
        headers = _teacher_headers(api_client)
        first = api_client.post("/teacher/classes/c1/assign", json={"module_id": "l1_cvc"}, headers=headers).json()
        again = api_client.post("/teacher/classes/c1/assign", json={"module_id": "l1_cvc"}, headers=headers).json()
        assert (first["changed"], again["changed"]) == (True, False)
        assert "l1_cvc" in api_client.get("/teacher/students/s2", headers=headers).json()["assigned_module_ids"]

    def test_toggle_assignment_and_reward(self, api_client):
        headers = _teacher_headers(api_client)
        body = api_client.post("/teacher/students/s1/modules/l2_magic_e", headers=headers).json()
        assert "l2_magic_e" not in body["assigned_module_ids"]
        body = api_client.post("/teacher/students/s1/rewards", json={"label": "Extra playtime"}, headers=headers).json()
        assert body["custom_rewards"][0] == "Extra playtime"

    def test_custom_module(self, api_client):
        headers = _teacher_headers(api_client)
        created = api_client.post("/teacher/modules", json={"title": "Space words", "words": "rocket, comet"}, headers=headers)
        assert created.status_code == 201
        module_id = created.json()["id"]
        views = {v["module"]["id"]: v for v in api_client.get("/students/me/modules", headers=_student_headers(api_client)).json()}
        assert views[module_id]["locked"] is False

    def test_foreign_class_hidden(self, api_client):
        payload = {"name": "Ms. K", "email": "k@school.nz", "password": "secret123"}
        token = api_client.post("/auth/register", json=payload).json()["access_token"]
        headers = {"Authorization": f"Bearer {token}"}
        assert api_client.get("/teacher/students/s1", headers=headers).status_code == 404
        assert api_client.post("/teacher/classes/c1/assign", json={"module_id": "l1_cvc"}, headers=headers).status_code == 404
