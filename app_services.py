"""业务/工具函数集合（为了减少文件数量集中在一个模块里）。

阅读提示（可读性优先）：
1) 这个文件只放“可复用”的函数：参数清洗、序列化、简单校验、少量 DB 操作封装等。
2) 路由层（`app_routes.py`）只做 request/response/权限控制，不要塞复杂业务逻辑。
3) BCI 的计算规则本身在 `core/` 里，这里只负责“把 ORM 对象喂给评分器、把结果写回去”。
4) 本文件从上到下按“通用 -> 业务”的顺序排：
   - 常量与约定
   - API 响应 / 权限
   - 参数清洗与文本解析
   - 账号/密码
   - 视频相关（查询过滤/序列化/评分/编辑/导入）
   - 学习路线
   - 反馈
   - 学习进度 / 标签 / 用户
"""

from __future__ import annotations

import json
import math
from collections import Counter
from datetime import datetime
from functools import wraps

from flask import jsonify
from flask_login import current_user
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from werkzeug.security import check_password_hash, generate_password_hash

from core.bci import DIFFICULTIES, BCICalculator, bci_label, round_half_up
from core.bci_weights import WeightStore
from core.recalculate import video_factors
from models import Feedback, LearningPath, PathStep, UserProgress, Video, db

# ============================================================
# 1) 常量与约定（尽量集中，便于改动）
# ============================================================

DEFAULT_PAGE_LIMIT = 20
MAX_PAGE_LIMIT = 100
ADMIN_VIDEOS_DEFAULT_LIMIT = 50
RELATED_VIDEOS_LIMIT = 6
RECENT_WATCH_LIMIT = 20  # 后台用户列表里每人最多展示的最近观看数

# 列表页时长筛选（分钟）
DURATION_SHORT_MAX = 10
DURATION_MEDIUM_MAX = 30

# level 筛选直接看 difficulty 字段，与 BCI 标签阈值无关
LEVEL_DIFFICULTIES = {
    "beginner": ("easy",),
    "intermediate": ("normal", "hard"),
}
SORT_OPTIONS = {"bci", "newest", "popular", "recommended"}

FEEDBACK_TYPES = ("difficult", "error", "broken_link", "outdated")
FEEDBACK_COMMENT_MAX = 1000
IMPORT_MEMO_MAX = 2000
DURATION_MAX_MIN = 2**31 - 1  # Integer 列上限

PASSWORD_HASH_METHOD = "pbkdf2:sha256:260000"
PASSWORD_SALT_LENGTH = 8  # keep hash length within DB column limits


# ============================================================
# 2) 通用：API 响应 / 权限
# ============================================================


def api_ok(msg: str = "OK", *, code: int = 200, **extra):
    """统一成功返回结构：{code,msg,...}"""
    return jsonify({"code": code, "msg": msg, **extra})


def api_error(msg: str, *, code: int = 400, http_status: int = 400, **extra):
    """统一失败返回结构：({code,msg,...}, http_status)"""
    return jsonify({"code": code, "msg": msg, **extra}), http_status


def admin_required(view):
    """管理员接口守卫：未登录 401，非管理员 403。"""

    @wraps(view)
    def wrapped(*args, **kwargs):
        if not current_user.is_authenticated:
            return api_error("请先登录", code=401, http_status=401)
        if not getattr(current_user, "is_admin", False):
            return api_error("Forbidden", code=403, http_status=403)
        return view(*args, **kwargs)

    return wrapped


# ============================================================
# 3) 通用：参数清洗与文本解析
# ============================================================


def clamp_int(value: int, *, lo: int, hi: int) -> int:
    """把整数夹在 [lo, hi] 之间（防止前端乱传参数）。"""
    return max(lo, min(int(value), hi))


def clean_filter_value(value: str | None) -> str:
    """规范化筛选参数，把 all/全部/不限 统一转为空字符串。"""
    value = (value or "").strip()
    if value.lower() in {"all", "全部", "不限"}:
        return ""
    return value


def split_csv(value: str | None) -> list[str]:
    """逗号分隔参数 -> list（去空白、去空项）。"""
    return [p for p in (x.strip() for x in (value or "").split(",")) if p]


def parse_page_args(args, *, default_limit: int = DEFAULT_PAGE_LIMIT) -> tuple[int, int]:
    """分页参数：page >= 1，limit 夹在 [1, MAX_PAGE_LIMIT]；非整数抛 ValueError。"""
    raw_page = (args.get("page") or "1").strip()
    raw_limit = (args.get("limit") or str(default_limit)).strip()
    try:
        page = int(raw_page)
        limit = int(raw_limit)
    except ValueError:
        raise ValueError("page/limit must be a number") from None
    return max(1, page), clamp_int(limit, lo=1, hi=MAX_PAGE_LIMIT)


def parse_pub_dt(value, *, end: bool = False) -> datetime | None:
    """尽量宽容地解析日期时间：支持 YYYY-MM-DD 或 ISO 字符串（带时区的转为本地无时区时间）。"""
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        return None
    value = value.strip()
    if not value:
        return None
    try:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone().replace(tzinfo=None)
    if end and len(value) == 10:
        return dt.replace(hour=23, minute=59, second=59)
    return dt


def dump_tags(tags) -> str:
    if isinstance(tags, str):
        tags = split_csv(tags)
    return json.dumps(list(tags or []), ensure_ascii=False)


def load_tags(raw: str | None) -> list[str]:
    """tags 列存 JSON 数组；坏数据按空列表处理。"""
    try:
        tags = json.loads(raw or "[]")
    except ValueError:
        return []
    return tags if isinstance(tags, list) else []


def _is_number(value) -> bool:
    """有限数字（排除 bool、NaN、Infinity）。"""
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return isinstance(value, float) and math.isfinite(value)


def escape_like(value: str) -> str:
    """转义 LIKE 通配符，配合 `.like(pattern, escape="\\")` 使用。"""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


# ============================================================
# 4) 账号/密码（登录用）
# ============================================================


def is_hashed_password(value: str) -> bool:
    """粗略判断字符串看起来是否像 Werkzeug 的密码哈希。"""
    return isinstance(value, str) and value.count("$") >= 2


def hash_password(password: str) -> str:
    """生成密码哈希；统一算法与 salt 长度。"""
    return generate_password_hash(password, method=PASSWORD_HASH_METHOD, salt_length=PASSWORD_SALT_LENGTH)


def verify_password(stored: str, candidate: str) -> bool:
    """安全校验密码；遇到坏数据返回 False（不抛异常）。"""
    if not stored or not candidate or not is_hashed_password(stored):
        return False
    try:
        return check_password_hash(stored, candidate)
    except ValueError:
        return False


def default_nickname(account: str) -> str:
    """兜底昵称生成：用户xxxx（取账号后 4 位）。"""
    account = (account or "").strip()
    if not account:
        return "用户"
    suffix = account[-4:] if len(account) >= 4 else account
    return f"用户{suffix}"


# ============================================================
# 5) 视频：查询过滤 / 序列化 / 评分
# ============================================================


def apply_video_fuzzy_filter(query, keyword: str):
    """统一的“模糊匹配”过滤：标题/频道名称。"""
    keyword = (keyword or "").strip()
    if not keyword:
        return query
    like_kw = f"%{escape_like(keyword)}%"
    return query.filter(or_(Video.title.like(like_kw, escape="\\"), Video.channel.like(like_kw, escape="\\")))


def apply_catalog_filters(query, args):
    """公开视频列表的筛选：level/duration/language/tags/q。非法取值抛 ValueError。"""
    level = clean_filter_value(args.get("level"))
    if level:
        if level not in LEVEL_DIFFICULTIES:
            raise ValueError("level must be one of: beginner, intermediate")
        query = query.filter(Video.difficulty.in_(LEVEL_DIFFICULTIES[level]))

    duration_conditions = []
    for d in split_csv(args.get("duration")):
        if d == "short":
            duration_conditions.append(Video.duration_min <= DURATION_SHORT_MAX)
        elif d == "medium":
            duration_conditions.append(
                (Video.duration_min > DURATION_SHORT_MAX) & (Video.duration_min <= DURATION_MEDIUM_MAX)
            )
        elif d == "long":
            duration_conditions.append(Video.duration_min > DURATION_MEDIUM_MAX)
    if duration_conditions:
        query = query.filter(or_(*duration_conditions))

    language = clean_filter_value(args.get("language"))
    if language:
        query = query.filter(Video.language == language)

    for tag in split_csv(args.get("tags")):
        query = query.filter(Video.tags.like(f"%{escape_like(tag)}%", escape="\\"))

    return apply_video_fuzzy_filter(query, args.get("q", ""))


def apply_catalog_sort(query, sort: str | None):
    sort = (sort or "bci").strip().lower()
    if sort not in SORT_OPTIONS:
        raise ValueError("sort must be one of: bci, newest, popular, recommended")
    if sort == "newest":
        return query.order_by(Video.published_at.desc())
    if sort == "popular":
        return query.order_by(Video.like_ratio.desc())
    if sort == "recommended":
        return query.order_by(Video.quality_score.desc())
    return query.order_by(Video.bci.desc())


def serialize_video(v) -> dict:
    """统一前端视频结构（多接口复用）。"""
    score = v.bci or 0
    return {
        "id": v.id,
        "url": v.url,
        "title": v.title,
        "channel": v.channel or "",
        "language": v.language or "",
        "durationMin": v.duration_min or 0,
        "publishedAt": v.published_at.isoformat() if v.published_at else None,
        "tags": load_tags(v.tags),
        "hasCc": bool(v.has_cc),
        "hasChapters": bool(v.has_chapters),
        "hasSampleCode": bool(v.has_sample_code),
        "difficulty": v.difficulty,
        "likeRatio": v.like_ratio or 0.0,
        "qualityScore": v.quality_score or 0.0,
        "bci": score,
        "bciLabel": bci_label(score),
        "transcriptSummary": v.transcript_summary,
        "sourceNotes": v.source_notes,
        "isPublished": bool(v.is_published),
    }


def serialize_page(items: list[dict], *, page: int, limit: int, total: int, key: str = "videos") -> dict:
    return {
        key: items,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "totalPages": math.ceil(total / limit) if limit else 0,
        },
    }


def load_calculator(session=None, *, logger=None) -> BCICalculator:
    """每次现读权重（管理员可能刚改过），再构造评分器。"""
    store = WeightStore(session or db.session)
    return BCICalculator(store.load(logger=logger))


def rescore_video(video, calculator: BCICalculator) -> int:
    """用视频当前（已合并新旧字段后的）完整因子重算 BCI 并写回对象。"""
    video.bci = calculator.score(video_factors(video))
    return video.bci


def related_videos(video, *, limit: int = RELATED_VIDEOS_LIMIT) -> list:
    """标签有交集的其它已发布视频，按 BCI 降序。"""
    tags = load_tags(video.tags)
    if not tags:
        return []
    return (
        Video.query.filter(Video.is_published.is_(True), Video.id != video.id)
        .filter(or_(*[Video.tags.like(f"%{escape_like(t)}%", escape="\\") for t in tags]))
        .order_by(Video.bci.desc())
        .limit(limit)
        .all()
    )


# ============================================================
# 6) 视频：后台编辑 / 导入
# ============================================================

def _check_str(v) -> bool:
    return isinstance(v, str)


def _check_opt_str(v) -> bool:
    return v is None or isinstance(v, str)


def _check_bool(v) -> bool:
    return isinstance(v, bool)


def _check_unit(v) -> bool:
    return _is_number(v) and 0 <= v <= 1


def _check_minutes(v) -> bool:
    return _is_number(v) and 0 <= v <= DURATION_MAX_MIN


def _check_difficulty(v) -> bool:
    return v in DIFFICULTIES


# API 字段名 -> (列名, 校验函数)
VIDEO_EDIT_FIELDS = {
    "title": ("title", _check_str),
    "channel": ("channel", _check_str),
    "language": ("language", _check_str),
    "durationMin": ("duration_min", _check_minutes),
    "hasCc": ("has_cc", _check_bool),
    "hasChapters": ("has_chapters", _check_bool),
    "hasSampleCode": ("has_sample_code", _check_bool),
    "difficulty": ("difficulty", _check_difficulty),
    "likeRatio": ("like_ratio", _check_unit),
    "qualityScore": ("quality_score", _check_unit),
    "sourceNotes": ("source_notes", _check_opt_str),
    "transcriptSummary": ("transcript_summary", _check_opt_str),
    "isPublished": ("is_published", _check_bool),
}


def apply_video_edit(video, data) -> None:
    """校验并应用后台的部分更新；只改动传入的字段，非法值抛 ValueError（不做任何修改）。"""
    if not isinstance(data, dict):
        raise ValueError("请求体必须是 JSON 对象")

    changes: dict = {}
    for key, value in data.items():
        if key == "publishedAt":
            dt = parse_pub_dt(value)
            if dt is None:
                raise ValueError("Invalid value for publishedAt")
            changes["published_at"] = dt
        elif key == "tags":
            if not isinstance(value, (str, list)):
                raise ValueError("Invalid value for tags")
            changes["tags"] = dump_tags(value)
        elif key in VIDEO_EDIT_FIELDS:
            column, check = VIDEO_EDIT_FIELDS[key]
            if not check(value):
                raise ValueError(f"Invalid value for {key}")
            changes[column] = round_half_up(value) if column == "duration_min" else value

    for column, value in changes.items():
        setattr(video, column, value)


def normalize_import_items(body) -> list[dict]:
    """导入请求体：数组或 {"videos": [...]}；每项必须带 url。按 url 去重（后出现的覆盖先出现的）。"""
    items = body.get("videos") if isinstance(body, dict) else body
    if not isinstance(items, list):
        raise ValueError("Request body must contain an array of videos")

    unique: dict[str, dict] = {}
    for idx, item in enumerate(items):
        if not isinstance(item, dict) or not isinstance(item.get("url"), str) or not item["url"].strip():
            raise ValueError(f"videos[{idx}].url is required")
        rating = item.get("rating")
        if rating is not None and not (_is_number(rating) and 1 <= rating <= 5):
            raise ValueError(f"videos[{idx}].rating must be 1-5")
        duration = item.get("durationMin")
        if duration is not None and not _check_minutes(duration):
            raise ValueError(f"videos[{idx}].durationMin must be a number")
        for key in ("title", "channel", "language", "publishedAt", "memo"):
            if not _check_opt_str(item.get(key)):
                raise ValueError(f"videos[{idx}].{key} must be a string")
        if len(item.get("memo") or "") > IMPORT_MEMO_MAX:
            raise ValueError(f"videos[{idx}].memo is too long")
        unique[item["url"].strip()] = item
    return list(unique.values())


def difficulty_from_rating(rating) -> str:
    """人工评级 -> 难度：<=2 hard，3 normal，其余（含未评级）easy。"""
    if rating and rating <= 2:
        return "hard"
    if rating and rating <= 3:
        return "normal"
    return "easy"


def import_videos(items: list[dict], calculator: BCICalculator) -> dict:
    """批量导入（按 url upsert）；缺 title 或 durationMin 的条目跳过。"""
    created = updated = skipped = 0

    for item in items:
        title = (item.get("title") or "").strip()
        # 先取整再判断，0.4 分钟这种按缺时长处理
        duration = round_half_up(item["durationMin"]) if item.get("durationMin") is not None else 0
        if not title or not duration:
            skipped += 1
            continue

        rating = item.get("rating")
        fields = {
            "title": title,
            "channel": item.get("channel") or "",
            "language": item.get("language") or "ja",
            "duration_min": duration,
            "published_at": parse_pub_dt(item.get("publishedAt")) or datetime.now(),
            "tags": dump_tags(item.get("tags") or []),
            "source_notes": item.get("memo") or None,
            "quality_score": max(0.0, min(1.0, (rating - 1) / 4)) if rating else 0.0,
            "difficulty": difficulty_from_rating(rating),
            "has_cc": False,
            "has_chapters": False,
            "has_sample_code": False,
            "like_ratio": 0.0,
        }

        url = item["url"].strip()
        video = Video.query.filter_by(url=url).first()
        if video is None:
            video = Video(url=url)
            db.session.add(video)
            created += 1
        else:
            updated += 1

        for column, value in fields.items():
            setattr(video, column, value)
        rescore_video(video, calculator)

    db.session.commit()
    return {"created": created, "updated": updated, "skipped": skipped, "total": created + updated}


def delete_video(video) -> None:
    """删除视频，同时清理引用它的路线步骤、反馈和学习进度。"""
    PathStep.query.filter_by(video_id=video.id).delete()
    Feedback.query.filter_by(video_id=video.id).delete()
    UserProgress.query.filter_by(video_id=video.id).delete()
    db.session.delete(video)
    db.session.commit()


# ============================================================
# 7) 学习路线
# ============================================================


def serialize_path(p, *, with_steps: bool = False) -> dict:
    data = {
        "id": p.id,
        "title": p.title,
        "targetAudience": p.target_audience,
        "goal": p.goal,
        "totalTimeEstimate": p.total_time_estimate or 0,
        "isPublished": bool(p.is_published),
        "stepCount": len(p.steps),
    }
    if with_steps:
        data["steps"] = [
            {
                "order": s.order,
                "whyThis": s.why_this,
                "checkpointQuestion": s.checkpoint_question,
                "video": serialize_video(s.video) if s.video else None,
            }
            for s in p.steps
        ]
    return data


# API 字段名 -> 列名（必须是非空字符串）
PATH_TEXT_FIELDS = {
    "title": "title",
    "targetAudience": "target_audience",
    "goal": "goal",
}


def _path_field_changes(data: dict, *, partial: bool) -> dict:
    """校验路线本身的字段；partial=True 时只校验传入的键。"""
    changes: dict = {}
    for key, column in PATH_TEXT_FIELDS.items():
        if partial and key not in data:
            continue
        value = data.get(key)
        if not isinstance(value, str) or not value.strip():
            raise ValueError(f"{key} is required")
        changes[column] = value.strip()

    if not partial or "totalTimeEstimate" in data:
        if not _check_minutes(data.get("totalTimeEstimate")):
            raise ValueError("totalTimeEstimate is required")
        changes["total_time_estimate"] = round_half_up(data["totalTimeEstimate"])

    if data.get("isPublished") is not None:
        if not isinstance(data["isPublished"], bool):
            raise ValueError("isPublished must be a boolean")
        changes["is_published"] = data["isPublished"]
    return changes


def _build_steps(steps: list) -> list[PathStep]:
    """校验并构造步骤；步骤引用的视频必须存在。"""
    built = []
    for idx, step in enumerate(steps):
        if not isinstance(step, dict):
            raise ValueError(f"steps[{idx}] must be an object")
        video_id = step.get("videoId")
        if not isinstance(video_id, str) or not video_id or db.session.get(Video, video_id) is None:
            raise ValueError(f"steps[{idx}].videoId not found")
        if not _is_number(step.get("order")):
            raise ValueError(f"steps[{idx}].order is required")
        for key in ("whyThis", "checkpointQuestion"):
            if not isinstance(step.get(key), str) or not step[key].strip():
                raise ValueError(f"steps[{idx}].{key} is required")
        built.append(
            PathStep(
                video_id=video_id,
                order=int(step["order"]),
                why_this=step["whyThis"],
                checkpoint_question=step["checkpointQuestion"],
            )
        )
    return built


def create_path(data) -> LearningPath:
    """校验并创建学习路线（至少一步）。"""
    if not isinstance(data, dict):
        raise ValueError("请求体必须是 JSON 对象")
    changes = _path_field_changes(data, partial=False)

    steps = data.get("steps")
    if not isinstance(steps, list) or not steps:
        raise ValueError("At least one step is required")

    changes.setdefault("is_published", True)
    path = LearningPath(**changes)
    path.steps.extend(_build_steps(steps))

    db.session.add(path)
    db.session.commit()
    return path


def update_path(path, data) -> LearningPath:
    """
    部分更新学习路线

    传了 steps 就整体替换全部步骤（旧步骤随 delete-orphan 删除），
    与字段修改在同一个事务里提交。任何校验失败都不做修改。
    """
    if not isinstance(data, dict):
        raise ValueError("请求体必须是 JSON 对象")
    changes = _path_field_changes(data, partial=True)

    new_steps = None
    if "steps" in data:
        if not isinstance(data["steps"], list):
            raise ValueError("steps must be an array")
        new_steps = _build_steps(data["steps"])

    for column, value in changes.items():
        setattr(path, column, value)
    if new_steps is not None:
        path.steps = new_steps

    db.session.commit()
    return path


# ============================================================
# 8) 反馈
# ============================================================


def validate_feedback(data) -> dict:
    if not isinstance(data, dict):
        raise ValueError("请求体必须是 JSON 对象")
    if not isinstance(data.get("videoId"), str) or not data["videoId"]:
        raise ValueError("videoId is required")
    if data.get("type") not in FEEDBACK_TYPES:
        raise ValueError("type must be one of: " + ", ".join(FEEDBACK_TYPES))
    comment = data.get("comment")
    if comment is not None and (not isinstance(comment, str) or len(comment) > FEEDBACK_COMMENT_MAX):
        raise ValueError(f"comment must be a string of at most {FEEDBACK_COMMENT_MAX} characters")
    return {"video_id": data["videoId"], "type": data["type"], "comment": comment or None}


def serialize_feedback(f) -> dict:
    return {
        "id": f.id,
        "videoId": f.video_id,
        "type": f.type,
        "comment": f.comment,
        "resolved": bool(f.resolved),
        "createdAt": f.created_at.isoformat() if f.created_at else None,
        "video": {"id": f.video.id, "title": f.video.title, "channel": f.video.channel} if f.video else None,
    }


# ============================================================
# 9) 学习进度 / 标签 / 用户
# ============================================================

PROGRESS_FLAGS = ("watched", "bookmarked")


def validate_progress(data) -> dict:
    """进度请求体：videoId 必填；watched/bookmarked 可选，给了就必须是布尔值。"""
    if not isinstance(data, dict):
        raise ValueError("请求体必须是 JSON 对象")
    if not isinstance(data.get("videoId"), str) or not data["videoId"]:
        raise ValueError("videoId is required")
    fields = {"video_id": data["videoId"]}
    for key in PROGRESS_FLAGS:
        if key in data:
            if not isinstance(data[key], bool):
                raise ValueError(f"{key} must be a boolean")
            fields[key] = data[key]
    return fields


def _stage_progress(user_id: int, fields: dict):
    progress = UserProgress.query.filter_by(user_id=user_id, video_id=fields["video_id"]).first()
    if progress is None:
        progress = UserProgress(user_id=user_id, video_id=fields["video_id"], watched=False, bookmarked=False)
        db.session.add(progress)
    for key in PROGRESS_FLAGS:
        if key in fields:
            setattr(progress, key, fields[key])
    return progress


def upsert_progress(user_id: int, fields: dict):
    """按 (用户, 视频) upsert；只改传入的布尔值，新建时未传的为 False。"""
    progress = _stage_progress(user_id, fields)
    try:
        db.session.commit()
    except IntegrityError:
        # 同一行被并发请求先插入：回滚后按更新再来一次
        db.session.rollback()
        progress = _stage_progress(user_id, fields)
        db.session.commit()
    return progress


def serialize_progress(p) -> dict:
    v = p.video
    return {
        "id": p.id,
        "videoId": p.video_id,
        "watched": bool(p.watched),
        "bookmarked": bool(p.bookmarked),
        "updatedAt": p.updated_at.isoformat() if p.updated_at else None,
        "video": {
            "id": v.id,
            "title": v.title,
            "channel": v.channel or "",
            "durationMin": v.duration_min or 0,
            "difficulty": v.difficulty,
            "bci": v.bci or 0,
            "tags": load_tags(v.tags),
        }
        if v
        else None,
    }


def popular_tags() -> list[str]:
    """已发布视频的标签（去空白、小写），按出现次数降序；坏 JSON 跳过。"""
    counts: Counter = Counter()
    for (raw,) in db.session.query(Video.tags).filter(Video.is_published.is_(True)):
        try:
            parsed = json.loads(raw or "[]")
        except ValueError:
            continue
        if not isinstance(parsed, list):
            continue
        for tag in parsed:
            if isinstance(tag, str) and tag.strip():
                counts[tag.strip().lower()] += 1
    return [tag for tag, _ in counts.most_common()]


def serialize_admin_user(user) -> dict:
    """后台用户列表：基本资料 + 最近观看（最多 RECENT_WATCH_LIMIT 条）+ 观看总数。"""
    watched = UserProgress.query.filter(UserProgress.user_id == user.id, UserProgress.watched.is_(True))
    recent = (
        watched.order_by(UserProgress.updated_at.desc(), UserProgress.id.desc()).limit(RECENT_WATCH_LIMIT).all()
    )
    watched_videos = [
        {
            "videoId": p.video.id,
            "title": p.video.title,
            "channel": p.video.channel or "",
            "durationMin": p.video.duration_min or 0,
            "difficulty": p.video.difficulty,
            "watchedAt": p.updated_at.isoformat() if p.updated_at else None,
        }
        for p in recent
        if p.video
    ]
    return {
        "id": user.id,
        "name": user.username or default_nickname(user.account),
        "account": user.account,
        "role": user.role,
        "createdAt": user.created_at.isoformat() if user.created_at else None,
        "watchedVideos": watched_videos,
        "totalWatchMin": sum(v["durationMin"] for v in watched_videos),
        "watchedCount": watched.count(),
    }
