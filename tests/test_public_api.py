import json
from datetime import datetime

from conftest import make_video
from models import Feedback, LearningPath, PathStep, User, UserProgress, db


def _urls(resp) -> list[str]:
    return [v["url"] for v in resp.get_json()["videos"]]


def test_list_only_published_sorted_by_bci(client):
    make_video("https://example.com/low", bci=40)
    make_video("https://example.com/high", bci=90)
    make_video("https://example.com/hidden", bci=100, is_published=False)

    resp = client.get("/api/videos")

    assert resp.status_code == 200
    assert _urls(resp) == ["https://example.com/high", "https://example.com/low"]
    body = resp.get_json()
    assert body["pagination"] == {"page": 1, "limit": 20, "total": 2, "totalPages": 1}
    assert body["videos"][0]["bciLabel"] == {"label": "零基础首选", "style": "badge-beginner"}
    assert body["videos"][1]["bciLabel"] == {"label": "", "style": ""}


def test_beginner_level_filters_on_difficulty_not_score(client):
    make_video("https://example.com/easy-low", bci=10, difficulty="easy")
    make_video("https://example.com/hard-high", bci=95, difficulty="hard")

    assert _urls(client.get("/api/videos?level=beginner")) == ["https://example.com/easy-low"]
    assert _urls(client.get("/api/videos?level=intermediate")) == ["https://example.com/hard-high"]


def test_duration_language_tag_and_keyword_filters(client):
    make_video("https://example.com/short", duration_min=8, language="ja", tags=json.dumps(["python"]))
    make_video("https://example.com/medium", duration_min=20, language="en", tags=json.dumps(["python", "web"]))
    make_video("https://example.com/long", duration_min=90, language="ja", tags=json.dumps(["go"]), channel="GoTV")

    assert _urls(client.get("/api/videos?duration=short")) == ["https://example.com/short"]
    assert set(_urls(client.get("/api/videos?duration=short,long"))) == {
        "https://example.com/short",
        "https://example.com/long",
    }
    assert set(_urls(client.get("/api/videos?language=ja"))) == {
        "https://example.com/short",
        "https://example.com/long",
    }
    assert _urls(client.get("/api/videos?tags=python,web")) == ["https://example.com/medium"]
    assert _urls(client.get("/api/videos?q=GoTV")) == ["https://example.com/long"]


def test_sort_options(client):
    make_video("https://example.com/old", published_at=datetime(2020, 1, 1), like_ratio=0.99, quality_score=0.1)
    make_video("https://example.com/new", published_at=datetime(2026, 1, 1), like_ratio=0.5, quality_score=0.9)

    assert _urls(client.get("/api/videos?sort=newest"))[0] == "https://example.com/new"
    assert _urls(client.get("/api/videos?sort=popular"))[0] == "https://example.com/old"
    assert _urls(client.get("/api/videos?sort=recommended"))[0] == "https://example.com/new"


def test_invalid_query_params_are_rejected(client):
    assert client.get("/api/videos?level=expert").status_code == 400
    assert client.get("/api/videos?sort=random").status_code == 400
    assert client.get("/api/videos?page=abc").status_code == 400


def test_pagination_clamps_limit(client):
    for i in range(3):
        make_video(f"https://example.com/p{i}")

    body = client.get("/api/videos?limit=2&page=2").get_json()
    assert len(body["videos"]) == 1
    assert body["pagination"]["totalPages"] == 2

    assert client.get("/api/videos?limit=500").get_json()["pagination"]["limit"] == 100


def test_video_detail_with_related(client):
    video = make_video("https://example.com/main", tags=json.dumps(["python"]))
    make_video("https://example.com/rel", bci=80, tags=json.dumps(["python", "basics"]))
    make_video("https://example.com/other", tags=json.dumps(["rust"]))

    body = client.get(f"/api/videos/{video.id}").get_json()

    assert body["video"]["tags"] == ["python"]
    assert [v["url"] for v in body["relatedVideos"]] == ["https://example.com/rel"]


def test_unpublished_video_detail_is_404(client):
    video = make_video("https://example.com/draft", is_published=False)
    assert client.get(f"/api/videos/{video.id}").status_code == 404


def test_paths_list_and_detail(client):
    video = make_video("https://example.com/step")
    path = LearningPath(title="入门路线", target_audience="零基础", goal="入门", total_time_estimate=20)
    path.steps.append(PathStep(video_id=video.id, order=1, why_this="先看", checkpoint_question="?"))
    db.session.add(path)
    db.session.add(LearningPath(title="草稿", target_audience="-", goal="-", is_published=False))
    db.session.commit()

    body = client.get("/api/paths").get_json()
    assert [p["title"] for p in body["paths"]] == ["入门路线"]
    assert body["paths"][0]["stepCount"] == 1

    detail = client.get(f"/api/paths/{path.id}").get_json()["path"]
    assert detail["steps"][0]["video"]["url"] == "https://example.com/step"


def test_feedback_requires_login(client):
    assert client.post("/api/feedback", json={"videoId": "x", "type": "error"}).status_code == 401


def test_feedback_create(user_client):
    video = make_video("https://example.com/fb")

    resp = user_client.post("/api/feedback", json={"videoId": video.id, "type": "difficult", "comment": "太快了"})

    assert resp.status_code == 201
    assert Feedback.query.one().comment == "太快了"

    assert user_client.post("/api/feedback", json={"videoId": video.id, "type": "spam"}).status_code == 400
    assert user_client.post("/api/feedback", json={"videoId": "missing", "type": "error"}).status_code == 404


def test_like_wildcards_in_filters_match_literally(client):
    make_video("https://example.com/percent", title="100% 入门", tags=json.dumps(["c_lang"]))
    make_video("https://example.com/plain", title="snakeXcase", tags=json.dumps(["cxlang"]))

    assert _urls(client.get("/api/videos", query_string={"q": "%"})) == ["https://example.com/percent"]
    assert _urls(client.get("/api/videos", query_string={"q": "snake_case"})) == []
    assert _urls(client.get("/api/videos", query_string={"tags": "c_lang"})) == ["https://example.com/percent"]


def test_related_videos_match_underscore_tags_literally(client):
    video = make_video("https://example.com/main", tags=json.dumps(["a_b"]))
    make_video("https://example.com/same", tags=json.dumps(["a_b"]))
    make_video("https://example.com/lookalike", tags=json.dumps(["axb"]))

    body = client.get(f"/api/videos/{video.id}").get_json()

    assert [v["url"] for v in body["relatedVideos"]] == ["https://example.com/same"]


# ---- 标签 ----


def test_tags_are_normalized_and_sorted_by_frequency(client):
    make_video("https://example.com/a", tags=json.dumps(["Python", " flask "]))
    make_video("https://example.com/b", tags=json.dumps(["python", "SQL", "Flask", ""]))
    make_video("https://example.com/c", tags=json.dumps(["python"]))
    make_video("https://example.com/hidden", tags=json.dumps(["hidden"]), is_published=False)
    make_video("https://example.com/broken", tags="not json")

    resp = client.get("/api/tags")

    assert resp.status_code == 200
    assert resp.get_json() == {"tags": ["python", "flask", "sql"]}


# ---- 学习进度 ----


def test_progress_requires_login(client):
    assert client.get("/api/progress").status_code == 401
    assert client.post("/api/progress", json={"videoId": "x", "watched": True}).status_code == 401


def test_progress_upsert_only_touches_given_flags(user_client):
    video = make_video("https://example.com/watch")

    resp = user_client.post("/api/progress", json={"videoId": video.id, "watched": True})
    assert resp.status_code == 200
    progress = resp.get_json()["progress"]
    assert progress["watched"] is True
    assert progress["bookmarked"] is False

    progress = user_client.post("/api/progress", json={"videoId": video.id, "bookmarked": True}).get_json()["progress"]
    assert progress["watched"] is True
    assert progress["bookmarked"] is True

    row = UserProgress.query.one()
    assert row.user_id == User.query.filter_by(account="learner").one().id


def test_progress_rejects_bad_input(user_client):
    video = make_video("https://example.com/watch")

    assert user_client.post("/api/progress", json={"videoId": video.id, "watched": "yes"}).status_code == 400
    assert user_client.post("/api/progress", json={"watched": True}).status_code == 400
    assert user_client.post("/api/progress", json={"videoId": "missing", "watched": True}).status_code == 404
    assert UserProgress.query.count() == 0


def test_progress_list_is_paginated_with_video_info(user_client):
    first = make_video("https://example.com/first", bci=80, tags=json.dumps(["python"]))
    second = make_video("https://example.com/second", duration_min=25)
    user_client.post("/api/progress", json={"videoId": first.id, "watched": True})
    user_client.post("/api/progress", json={"videoId": second.id, "bookmarked": True})

    body = user_client.get("/api/progress?limit=1").get_json()

    assert body["pagination"] == {"page": 1, "limit": 1, "total": 2, "totalPages": 2}
    assert len(body["data"]) == 1
    assert body["data"][0]["video"]["id"] == second.id

    item = user_client.get("/api/progress?page=2&limit=1").get_json()["data"][0]
    assert item["videoId"] == first.id
    assert item["video"] == {
        "id": first.id,
        "title": "first",
        "channel": "channel",
        "durationMin": 10,
        "difficulty": "easy",
        "bci": 80,
        "tags": ["python"],
    }
