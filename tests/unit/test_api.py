"""
Tests for the HTTP API.

The app runs against the in-memory Snowflake mock and mock storage; the
settings, connection and storage dependencies are overridden per test.
"""

from datetime import date

import pytest
from fastapi.testclient import TestClient

from teammanager.api.dependencies import (
    get_readiness_connection,
    get_settings,
    get_snowflake_connection,
    get_storage_client,
)
from teammanager.config.settings import Settings
from teammanager.infrastructure.snowflake.client import MockSnowflakeConnection, SnowflakeConnectionError
from teammanager.infrastructure.storage.client import MockStorageClient
from teammanager.main import create_app

API_KEY = "test-key"
HEADERS = {"X-API-Key": API_KEY}


def _seed(conn: MockSnowflakeConnection) -> None:
    conn._seed("seasons", [
        {"seasonid": 2, "description": "2024-25", "seasonstart": date(2024, 9, 1), "seasonend": date(2025, 8, 31)},
    ])
    conn._seed("athletes", [
        {"fincode": 101, "name": "Bianchi Luca", "groups": "EA,EB", "photo": "portraits/101.jpg"},
        {"fincode": 102, "name": "Rossi Anna", "groups": "EA", "photo": None},
    ])
    conn._seed("roster", [
        {"season": "2024-25", "fincode": 101, "name": "Bianchi Luca", "groups": "EA,EB", "photo": None},
        {"season": "2024-25", "fincode": 102, "name": "Rossi Anna", "groups": "EA", "photo": None},
        {"season": "2024-25", "fincode": 104, "name": "Gialli Sara", "groups": "EB", "photo": None},
    ])
    conn._seed("sessions", [
        {"session_id": 1, "date": date(2025, 1, 13), "type": "Swim", "groups": "EA", "title": "Aerobic"},
        {"session_id": 2, "date": date(2025, 1, 20), "type": "Swim", "groups": "EA,EB"},
    ])
    conn._seed("attendance", [
        {"attendance_id": 1, "session_id": 1, "fincode": 102, "status": "A"},
    ])
    conn._seed("attendance_to_sessions", [
        {"attendance_id": 1, "session_id": 1, "fincode": 102, "status": "A",
         "type": "Swim", "groups": "EA", "date": date(2025, 1, 13)},
        {"attendance_id": 2, "session_id": 1, "fincode": 101, "status": "P",
         "type": "Swim", "groups": "EA", "date": date(2025, 1, 13)},
        {"attendance_id": 3, "session_id": 2, "fincode": 101, "status": "J",
         "type": "Swim", "groups": "EA,EB", "date": date(2025, 1, 20)},
    ])


@pytest.fixture
def conn():
    connection = MockSnowflakeConnection()
    _seed(connection)
    return connection


@pytest.fixture
def storage():
    client = MockStorageClient()
    client._seed("portraits/101.jpg")
    return client


@pytest.fixture
def client(conn, storage):
    settings = Settings(
        _env_file=None,
        api_keys=API_KEY,
        snowflake_mock_mode=True,
        r2_mock_mode=True,
    )
    app = create_app()
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_snowflake_connection] = lambda: conn
    app.dependency_overrides[get_readiness_connection] = lambda: conn
    app.dependency_overrides[get_storage_client] = lambda: storage

    with TestClient(app) as test_client:
        yield test_client


# ---------------------------------------------------------------------------
# Health and Authentication
# ---------------------------------------------------------------------------

class TestHealth:
    def test_liveness_needs_no_key(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_readiness_in_mock_mode(self, client):
        response = client.get("/health/ready")
        assert response.status_code == 200
        assert response.json()["status"] == "ready"

    def test_readiness_reports_database_failure(self, client, conn):
        conn._fail_next("SELECT 1")
        response = client.get("/health/ready")
        assert response.status_code == 503
        assert response.json()["status"] == "not_ready"

    def test_readiness_reports_unreachable_database(self, monkeypatch):
        def unreachable(config=None, mock_mode=False):
            raise SnowflakeConnectionError("Database connection failed: unreachable")

        monkeypatch.setattr("teammanager.api.dependencies.create_snowflake_connection", unreachable)
        settings = Settings(
            _env_file=None,
            snowflake_account="acme",
            snowflake_user="svc",
            snowflake_password="secret",
            r2_mock_mode=True,
        )
        app = create_app()
        app.dependency_overrides[get_settings] = lambda: settings

        with TestClient(app) as test_client:
            response = test_client.get("/health/ready")

        assert response.status_code == 503
        checks = {c["name"]: c for c in response.json()["checks"]}
        assert checks["configuration"]["status"] == "ok"
        assert checks["database"]["status"] == "error"


class TestAuthentication:
    def test_missing_key(self, client):
        assert client.get("/api/v1/athletes").status_code == 403

    def test_wrong_key(self, client):
        assert client.get("/api/v1/athletes", headers={"X-API-Key": "nope"}).status_code == 403


# ---------------------------------------------------------------------------
# Athletes and Calendar
# ---------------------------------------------------------------------------

class TestAthletes:
    def test_list_with_portraits(self, client):
        response = client.get("/api/v1/athletes", headers=HEADERS)

        assert response.status_code == 200
        athletes = response.json()
        assert [a["fincode"] for a in athletes] == [101, 102]
        assert athletes[0]["groups"] == ["EA", "EB"]
        assert athletes[0]["photo_url"] == "mock://storage/portraits/101.jpg"
        assert athletes[1]["photo_url"].startswith("https://ui-avatars.com/api/?name=Rossi%20Anna")

    def test_unknown_group(self, client):
        assert client.get("/api/v1/athletes?group=XX", headers=HEADERS).status_code == 422

    def test_database_failure_is_bad_gateway(self, client, conn):
        conn._fail_next("SELECT")
        assert client.get("/api/v1/athletes", headers=HEADERS).status_code == 502


class TestCalendar:
    def test_session_calendar(self, client):
        response = client.get("/api/v1/calendar/sessions?month=2025-01", headers=HEADERS)

        assert response.status_code == 200
        body = response.json()
        assert body["label"] == "January 2025"
        assert body["previous_month"] == "2024-12"
        assert body["next_month"] == "2025-02"
        # 1 January 2025 was a Wednesday
        first_week = body["weeks"][0]
        assert first_week[:2] == [None, None]
        assert first_week[2]["date"] == "2025-01-01"

        cells = {cell["date"]: cell for week in body["weeks"] for cell in week if cell}
        assert [e["session_id"] for e in cells["2025-01-13"]["entries"]] == [1]
        assert cells["2025-01-14"]["entries"] == []

    def test_attendance_calendar(self, client):
        response = client.get(
            "/api/v1/calendar/attendance?fincode=101&month=2025-01&type=Swim",
            headers=HEADERS,
        )

        cells = {cell["date"]: cell for week in response.json()["weeks"] for cell in week if cell}
        assert cells["2025-01-13"]["entries"][0]["status"] == "P"
        assert cells["2025-01-20"]["entries"][0]["status"] == "J"

    def test_bad_month(self, client):
        assert client.get("/api/v1/calendar/sessions?month=2025-13", headers=HEADERS).status_code == 422


# ---------------------------------------------------------------------------
# Attendance
# ---------------------------------------------------------------------------

class TestAttendanceSheet:
    """Tests for loading and saving a session sheet."""

    def test_sheet_lists_eligible_roster(self, client):
        response = client.get("/api/v1/attendance/sessions/1", headers=HEADERS)

        assert response.status_code == 200
        body = response.json()
        assert body["season"] == "2024-25"
        assert [(e["fincode"], e["status"]) for e in body["entries"]] == [(101, "N"), (102, "A")]

    def test_missing_session(self, client):
        assert client.get("/api/v1/attendance/sessions/99", headers=HEADERS).status_code == 404

    def test_save_writes_only_differences(self, client, conn):
        payload = {"statuses": {"101": "P", "102": "N"}}

        first = client.put("/api/v1/attendance/sessions/1", json=payload, headers=HEADERS)
        second = client.put("/api/v1/attendance/sessions/1", json=payload, headers=HEADERS)

        assert first.status_code == 200
        assert first.json()["deleted"] == [102]
        assert first.json()["upserted"] == [{"fincode": 101, "status": "P"}]
        assert second.json()["deleted"] == []
        assert second.json()["upserted"] == []
        assert [(r["fincode"], r["status"]) for r in conn._rows("attendance")] == [(101, "P")]

    def test_off_roster_athlete_is_rejected(self, client):
        payload = {"statuses": {"104": "P"}}
        response = client.put("/api/v1/attendance/sessions/1", json=payload, headers=HEADERS)
        assert response.status_code == 422

    def test_unknown_status_is_rejected(self, client):
        payload = {"statuses": {"101": "X"}}
        response = client.put("/api/v1/attendance/sessions/1", json=payload, headers=HEADERS)
        assert response.status_code == 422

    def test_failed_save_keeps_stored_rows(self, client, conn):
        conn._fail_next("MERGE")
        payload = {"statuses": {"101": "P", "102": "N"}}

        response = client.put("/api/v1/attendance/sessions/1", json=payload, headers=HEADERS)

        assert response.status_code == 500
        assert [(r["fincode"], r["status"]) for r in conn._rows("attendance")] == [(102, "A")]

    def test_session_outside_every_season_cannot_be_loaded(self, client, conn):
        conn._seed("sessions", [{"session_id": 3, "date": date(2020, 1, 8), "type": "Swim", "groups": "EA"}])

        response = client.get("/api/v1/attendance/sessions/3", headers=HEADERS)

        assert response.status_code == 422

    def test_session_outside_every_season_cannot_be_saved(self, client, conn):
        conn._seed("sessions", [{"session_id": 3, "date": date(2020, 1, 8), "type": "Swim", "groups": "EA"}])
        before = conn._rows("attendance")

        response = client.put(
            "/api/v1/attendance/sessions/3",
            json={"statuses": {"101": "P"}},
            headers=HEADERS,
        )

        assert response.status_code == 422
        assert conn._rows("attendance") == before


class TestAttendanceReports:
    def test_summary(self, client):
        response = client.get("/api/v1/attendance/summary?season=2024-25", headers=HEADERS)

        assert response.status_code == 200
        rows = response.json()["rows"]
        assert [r["fincode"] for r in rows] == [101, 104, 102]
        assert rows[0]["presenze"] == 1
        assert rows[0]["giustificate"] == 1
        assert rows[0]["percent"] == 50.0

    def test_summary_counts_sessions_held_for_each_group(self, client):
        response = client.get("/api/v1/attendance/summary?season=2024-25", headers=HEADERS)

        totals = {r["fincode"]: r["total_sessions"] for r in response.json()["rows"]}
        assert totals == {101: 2, 102: 2, 104: 1}

    def test_summary_group_filter(self, client):
        response = client.get("/api/v1/attendance/summary?season=2024-25&group=EA", headers=HEADERS)
        assert [r["fincode"] for r in response.json()["rows"]] == [101, 102]

    def test_unknown_season(self, client):
        response = client.get("/api/v1/attendance/summary?season=1999-00", headers=HEADERS)
        assert response.status_code == 422

    def test_trend(self, client):
        response = client.get("/api/v1/attendance/trend?fincode=101&season=2024-25", headers=HEADERS)

        months = response.json()["months"]
        assert len(months) == 12
        assert months[4] == {"month": "2025-01", "attendance_percentage": 50.0, "sessions": 2}
        assert months[0]["sessions"] == 0


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

class TestResults:
    """Tests for ranking, personal bests, progress and meets."""

    def test_rankings(self, client, conn):
        conn._seed("permillili_results", [
            {"season": "2024-25", "groups": "EA", "fincode": 101, "name": "Bianchi Luca", "permillili": 620, "course": 2},
            {"season": "2024-25", "groups": "EA", "fincode": 101, "name": "Bianchi Luca", "permillili": 700, "course": 2},
            {"season": "2024-25", "groups": "EA", "fincode": 102, "name": "Rossi Anna", "permillili": 650, "course": 1},
        ])

        response = client.get("/api/v1/results/rankings?group=EA&season=2024-25", headers=HEADERS)

        entries = response.json()["entries"]
        assert [(e["position"], e["fincode"], e["permillili"]) for e in entries] == [
            (1, 101, 700.0), (2, 102, 650.0),
        ]
        assert entries[0]["course"] == "25m"

    def test_personal_bests_strategies(self, client, conn):
        conn._seed("races", [{"raceid": 1, "distance": 50, "stroke_shortname": "SL", "relaycount": 1}])
        conn._seed("personal_bests", [
            {"athlete_name": "Rossi Anna", "distance": 50, "stroke_shortname": "SL",
             "course": "25m", "tempofin": "30.50", "meet": "Slow"},
            {"athlete_name": "Rossi Anna", "distance": 50, "stroke_shortname": "SL",
             "course": "25m", "tempofin": "29.10", "meet": "Fast"},
        ])

        default = client.get("/api/v1/results/personal-bests?athlete=Rossi", headers=HEADERS).json()
        fastest = client.get(
            "/api/v1/results/personal-bests?athlete=Rossi&strategy=fastest_time",
            headers=HEADERS,
        ).json()

        assert default["strategy"] == "first_match"
        assert default["events"][0]["pool25m"]["time"] == "30.50"
        assert fastest["events"][0]["pool25m"]["time"] == "29.10"
        assert fastest["events"][0]["pool50m"]["time"] is None

    def test_unknown_strategy(self, client):
        response = client.get("/api/v1/results/personal-bests?athlete=Rossi&strategy=slowest", headers=HEADERS)
        assert response.status_code == 422

    def test_progress(self, client, conn):
        conn._seed("progress_results", [
            {"course": 1, "selgroup": "EA", "season": "2024-25", "name": "Rossi Anna", "distance": 50,
             "stroke_shortname": "SL", "miglioramento_perc": 4.0},
            {"course": 1, "selgroup": "EA", "season": "2024-25", "name": "Bianchi Luca", "distance": 50,
             "stroke_shortname": "SL", "miglioramento_perc": 2.0},
        ])

        body = client.get("/api/v1/results/progress?course=1&group=EA", headers=HEADERS).json()

        assert body["course"] == "50m"
        assert body["team_average"] == 3.0
        assert [s["name"] for s in body["swimmers"]] == ["Bianchi Luca", "Rossi Anna"]

    @pytest.mark.parametrize("course", ["50m", "1", "50M"])
    def test_progress_accepts_numeric_and_named_course(self, client, conn, course):
        conn._seed("progress_results", [
            {"course": 1, "selgroup": "EA", "season": "2024-25", "name": "Rossi Anna", "distance": 50,
             "stroke_shortname": "SL", "miglioramento_perc": 4.0},
        ])

        body = client.get(f"/api/v1/results/progress?course={course}&group=EA", headers=HEADERS).json()

        assert body["course"] == "50m"
        assert body["valid_count"] == 1

    @pytest.mark.parametrize("course", ["25m", "2", "0"])
    def test_short_course_queries_course_code_two(self, client, conn, course):
        conn._seed("progress_results", [
            {"course": 2, "selgroup": "EA", "season": "2024-25", "name": "Rossi Anna", "distance": 50,
             "stroke_shortname": "SL", "miglioramento_perc": 1.5},
            {"course": 1, "selgroup": "EA", "season": "2024-25", "name": "Rossi Anna", "distance": 50,
             "stroke_shortname": "SL", "miglioramento_perc": 9.0},
        ])

        body = client.get(f"/api/v1/results/progress?course={course}&group=EA", headers=HEADERS).json()

        assert body["course"] == "25m"
        assert body["team_average"] == 1.5

    def test_unknown_course(self, client):
        response = client.get("/api/v1/results/progress?course=3&group=EA", headers=HEADERS)
        assert response.status_code == 422

    def test_meets_of_season(self, client, conn):
        conn._seed("meets", [
            {"meetsid": 1, "meetname": "Summer", "mindate": date(2024, 6, 1), "course": 1},
            {"meetsid": 2, "meetname": "Winter", "mindate": date(2024, 12, 14), "course": 2},
        ])

        meets = client.get("/api/v1/results/meets?season=2024-25", headers=HEADERS).json()

        assert [(m["meetname"], m["course"]) for m in meets] == [("Winter", "25m")]

    def test_meet_events_and_event_results(self, client, conn):
        conn._seed("events", [
            {"ms_id": 10, "meet_id": 1, "event_numb": 1, "ms_race_id": 1, "gender": "F", "ms_cat": "Ragazzi"},
        ])
        conn._seed("races", [{"raceid": 1, "distance": 50, "stroke_shortname": "SL", "relaycount": 1}])
        conn._seed("results_detail", [
            {"meetsid": 1, "eventnumb": 1, "fincode": 102, "name": "Rossi Anna", "totaltime": 31.2, "formatted_time": "31.20"},
            {"meetsid": 1, "eventnumb": 1, "fincode": 104, "name": "Gialli Sara", "totaltime": 30.1, "formatted_time": "30.10"},
        ])

        events = client.get("/api/v1/results/meets/1/events", headers=HEADERS).json()
        results = client.get("/api/v1/results/meets/1/results?event=1", headers=HEADERS).json()

        assert events == [{
            "ms_id": 10, "event_numb": 1, "label": "1 - 50m SL - F - Ragazzi", "distance": 50,
            "stroke_shortname": "SL", "gender": "F", "category": "Ragazzi",
        }]
        assert [(e["position"], e["name"], e["time"]) for e in results["entries"]] == [
            (1, "Gialli Sara", "30.10"), (2, "Rossi Anna", "31.20"),
        ]

    def test_event_results_need_an_event(self, client):
        response = client.get("/api/v1/results/meets/1/results", headers=HEADERS)
        assert response.status_code == 422

    def test_season_permillili_grouped_per_athlete(self, client, conn):
        conn._seed("permillili_results", [
            {"season": "2024-25", "groups": "EA", "gender": "F", "name": "Rossi Anna", "permillili": 650, "course": 1},
            {"season": "2024-25", "groups": "EB", "gender": "M", "name": "Bianchi Luca", "permillili": 700, "course": 2},
            {"season": "2024-25", "groups": "EA", "gender": "F", "name": "Rossi Anna", "permillili": 640, "course": 2},
            {"season": "2023-24", "groups": "EA", "gender": "F", "name": "Rossi Anna", "permillili": 600},
        ])

        body = client.get("/api/v1/results/permillili?season=2024-25", headers=HEADERS).json()

        assert body["total"] == 3
        assert [(a["name"], a["gender"], len(a["results"])) for a in body["athletes"]] == [
            ("Rossi Anna", "F", 2), ("Bianchi Luca", "M", 1),
        ]
        assert body["athletes"][0]["results"][0]["course"] == "50m"

    def test_racesheet_lists_meets_not_yet_swum(self, client, conn):
        conn._seed("meets", [
            {"meetsid": 1, "meetname": "Regional", "mindate": date(2025, 3, 1), "course": 2},
            {"meetsid": 2, "meetname": "Winter", "mindate": date(2024, 12, 14), "course": 2},
        ])
        conn._seed("results", [
            {"meetsid": 1, "totaltime": 0},
            {"meetsid": 2, "totaltime": 62.4},
        ])
        conn._seed("racesheet_results", [
            {"meetsid": 1, "eventnumb": 3, "fincode": 102, "athlete_name": "Rossi Anna", "distance": 100,
             "stroke_shortname": "SL", "personal_best": "1:08.20", "limit_str": "1:10.00"},
        ])

        meets = client.get("/api/v1/results/racesheet", headers=HEADERS).json()
        sheet = client.get("/api/v1/results/racesheet/1", headers=HEADERS).json()

        assert [m["meetname"] for m in meets] == ["Regional"]
        assert sheet == [{
            "eventnumb": 3, "name": "Rossi Anna", "fincode": 102, "distance": 100,
            "stroke_shortname": "SL", "personal_best": "1:08.20", "limit": "1:10.00",
        }]
