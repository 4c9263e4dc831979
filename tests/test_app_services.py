import datetime

import pytest

import app_services as svc


def test_clean_filter_value():
    assert svc.clean_filter_value(" all ") == ""
    assert svc.clean_filter_value("全部") == ""
    assert svc.clean_filter_value(" beginner ") == "beginner"
    assert svc.clean_filter_value(None) == ""


def test_parse_pub_dt():
    assert svc.parse_pub_dt("2025-05-12") == datetime.datetime(2025, 5, 12)
    assert svc.parse_pub_dt("2025-05-12", end=True) == datetime.datetime(2025, 5, 12, 23, 59, 59)
    assert svc.parse_pub_dt("2025-05-12T08:30:00") == datetime.datetime(2025, 5, 12, 8, 30)
    assert svc.parse_pub_dt("2025-05-12T08:30:00Z").tzinfo is None
    assert svc.parse_pub_dt("not a date") is None
    assert svc.parse_pub_dt("") is None


def test_tags_round_trip_tolerates_bad_data():
    assert svc.load_tags(svc.dump_tags(["python", "入门"])) == ["python", "入门"]
    assert svc.load_tags(svc.dump_tags("a, b")) == ["a", "b"]
    assert svc.load_tags("{broken") == []
    assert svc.load_tags('{"a": 1}') == []
    assert svc.load_tags(None) == []


@pytest.mark.parametrize("rating, expected", [(None, "easy"), (1, "hard"), (2, "hard"), (3, "normal"), (4, "easy"), (5, "easy")])
def test_difficulty_from_rating(rating, expected):
    assert svc.difficulty_from_rating(rating) == expected


def test_normalize_import_items_dedupes_by_url():
    items = svc.normalize_import_items(
        [{"url": "https://a", "title": "one"}, {"url": "https://b"}, {"url": "https://a", "title": "two"}]
    )
    assert [i.get("title") for i in items] == ["two", None]


def test_normalize_import_items_accepts_wrapped_body():
    assert len(svc.normalize_import_items({"videos": [{"url": "https://a"}]})) == 1


@pytest.mark.parametrize(
    "body",
    [
        None,
        {"videos": None},
        [{"url": ""}],
        [{"url": "https://a", "rating": 0}],
        [{"url": "https://a", "durationMin": "10"}],
        [{"url": "https://a", "title": 5}],
        [{"url": "https://a", "memo": "x" * 2001}],
    ],
)
def test_normalize_import_items_rejects_bad_input(body):
    with pytest.raises(ValueError):
        svc.normalize_import_items(body)


def test_password_hashing():
    hashed = svc.hash_password("pw")
    assert svc.is_hashed_password(hashed)
    assert svc.verify_password(hashed, "pw")
    assert not svc.verify_password(hashed, "other")
    assert not svc.verify_password("plain", "plain")


def test_default_nickname():
    assert svc.default_nickname("admin2024") == "用户2024"
    assert svc.default_nickname("ab") == "用户ab"
    assert svc.default_nickname("") == "用户"


def test_validate_feedback():
    assert svc.validate_feedback({"videoId": "v", "type": "outdated"}) == {
        "video_id": "v",
        "type": "outdated",
        "comment": None,
    }
    with pytest.raises(ValueError):
        svc.validate_feedback({"videoId": "v", "type": "outdated", "comment": "x" * 1001})
