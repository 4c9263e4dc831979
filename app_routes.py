"""路由层（Blueprint）全集（为了减少文件数量集中在一个模块里）。

阅读提示（可读性优先）：
1) 这个文件只做“薄路由”：取参数 -> 校验/登录态 -> 调用 `app_services.py` / `core` -> 返回。
2) 大块业务逻辑/重复逻辑尽量下沉到 `app_services.py`，避免路由越来越肥。
3) 从上到下按“用户访问路径”排序：
   - 认证（/login /logout）
   - API：视频（/api/videos）
   - API：学习路线（/api/paths）
   - API：反馈（/api/feedback）
   - API：学习进度 / 标签（/api/progress /api/tags）
   - 管理后台：BCI 权重 / 重算（/api/admin/bci-*）
   - 管理后台：视频 / 导入 / 路线 / 反馈 / 用户
"""

from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required, login_user, logout_user
from sqlalchemy.exc import SQLAlchemyError

from core.bci_weights import WeightStore, WeightValidationError
from core.recalculate import recalculate_all
from models import Feedback, LearningPath, User, UserProgress, Video, db

import app_services as svc


# 对外只暴露 3 个 Blueprint，`app.py` 会负责注册。
__all__ = ["auth_bp", "api_bp", "admin_bp"]


auth_bp = Blueprint("auth", __name__)
api_bp = Blueprint("api", __name__, url_prefix="/api")
admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


def _request_data() -> dict:
    """JSON 优先，表单兜底。"""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else request.form.to_dict()


# ============================================================
# 1) 认证（Auth）
# ============================================================


@auth_bp.post("/login")
def login():
    """登录：账号 + 密码。"""
    data = _request_data()
    account = (data.get("account") or "").strip()
    password = data.get("password")
    if not account or not password:
        return svc.api_error("请输入账号和密码")

    user = User.query.filter_by(account=account).first()
    if not user or not svc.verify_password(user.password, password):
        return svc.api_error("账号或密码错误", code=401, http_status=401)

    login_user(user)
    return svc.api_ok(
        "登录成功",
        user={"id": user.id, "username": user.username or svc.default_nickname(user.account), "role": user.role},
    )


@auth_bp.post("/logout")
@login_required
def logout():
    """退出登录。"""
    logout_user()
    return svc.api_ok("已退出")


# ============================================================
# 2) API：视频（Videos）
# ============================================================


@api_bp.get("/videos")
def get_videos():
    """视频列表：筛选 + 排序 + 分页（只含已发布视频）。"""
    try:
        page, limit = svc.parse_page_args(request.args)
        query = Video.query.filter(Video.is_published.is_(True))
        query = svc.apply_catalog_filters(query, request.args)
        query = svc.apply_catalog_sort(query, request.args.get("sort"))
    except ValueError as exc:
        return svc.api_error(str(exc))

    total = query.count()
    videos = query.offset((page - 1) * limit).limit(limit).all()
    return jsonify(
        svc.serialize_page([svc.serialize_video(v) for v in videos], page=page, limit=limit, total=total)
    )


@api_bp.get("/videos/<video_id>")
def get_video(video_id: str):
    """视频详情 + 相关视频（标签有交集）。"""
    video = db.session.get(Video, video_id)
    if not video or not video.is_published:
        return svc.api_error("Video not found", code=404, http_status=404)

    return jsonify(
        {
            "video": svc.serialize_video(video),
            "relatedVideos": [svc.serialize_video(v) for v in svc.related_videos(video)],
        }
    )


# ============================================================
# 3) API：学习路线（Paths）
# ============================================================


@api_bp.get("/paths")
def get_paths():
    """已发布的学习路线（新的在前）。"""
    try:
        page, limit = svc.parse_page_args(request.args)
    except ValueError as exc:
        return svc.api_error(str(exc))

    query = LearningPath.query.filter(LearningPath.is_published.is_(True))
    total = query.count()
    paths = query.order_by(LearningPath.created_at.desc()).offset((page - 1) * limit).limit(limit).all()
    return jsonify(
        svc.serialize_page([svc.serialize_path(p) for p in paths], page=page, limit=limit, total=total, key="paths")
    )


@api_bp.get("/paths/<path_id>")
def get_path(path_id: str):
    path = db.session.get(LearningPath, path_id)
    if not path or not path.is_published:
        return svc.api_error("Path not found", code=404, http_status=404)
    return jsonify({"path": svc.serialize_path(path, with_steps=True)})


# ============================================================
# 4) API：反馈（Feedback）
# ============================================================


@api_bp.post("/feedback")
@login_required
def create_feedback():
    """学习者提交反馈。"""
    try:
        fields = svc.validate_feedback(request.get_json(silent=True))
    except ValueError as exc:
        return svc.api_error(str(exc))

    if db.session.get(Video, fields["video_id"]) is None:
        return svc.api_error("Video not found", code=404, http_status=404)

    feedback = Feedback(user_id=current_user.id, **fields)
    db.session.add(feedback)
    db.session.commit()
    return jsonify({"feedback": svc.serialize_feedback(feedback)}), 201


# ============================================================
# 5) API：学习进度 / 标签
# ============================================================


@api_bp.get("/progress")
@login_required
def get_progress():
    """当前用户的学习进度（最近更新的在前）。"""
    try:
        page, limit = svc.parse_page_args(request.args)
    except ValueError as exc:
        return svc.api_error(str(exc))

    query = UserProgress.query.filter_by(user_id=current_user.id)
    total = query.count()
    rows = (
        query.order_by(UserProgress.updated_at.desc(), UserProgress.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return jsonify(
        svc.serialize_page([svc.serialize_progress(p) for p in rows], page=page, limit=limit, total=total, key="data")
    )


@api_bp.post("/progress")
@login_required
def post_progress():
    """标记看过 / 收藏（按用户 + 视频 upsert）。"""
    try:
        fields = svc.validate_progress(request.get_json(silent=True))
    except ValueError as exc:
        return svc.api_error(str(exc))

    if db.session.get(Video, fields["video_id"]) is None:
        return svc.api_error("Video not found", code=404, http_status=404)

    try:
        progress = svc.upsert_progress(current_user.id, fields)
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Failed to update progress")
        return svc.api_error("Failed to update progress", code=500, http_status=500)
    return jsonify({"progress": svc.serialize_progress(progress)})


@api_bp.get("/tags")
def get_tags():
    """已发布视频的标签，按出现频率降序。"""
    return jsonify({"tags": svc.popular_tags()})


# ============================================================
# 6) 管理后台：BCI 权重 / 重算
# ============================================================


@admin_bp.get("/bci-weights")
@svc.admin_required
def get_bci_weights():
    """当前生效的权重（默认值 + 库中覆盖项）。"""
    return jsonify(WeightStore(db.session).load(logger=current_app.logger))


@admin_bp.put("/bci-weights")
@svc.admin_required
def put_bci_weights():
    """整体替换权重；缺键/非数字/越界返回 400 并逐项列出字段。"""
    body = request.get_json(silent=True)
    try:
        saved = WeightStore(db.session).save(body)
    except WeightValidationError as exc:
        return svc.api_error(exc.errors[0]["message"], errors=exc.errors)
    except SQLAlchemyError:
        current_app.logger.exception("Failed to save BCI weights")
        return svc.api_error("Failed to save BCI weights", code=500, http_status=500)

    current_app.logger.info("BCI weights updated by user %s: %s", current_user.id, saved)
    return jsonify(saved)


@admin_bp.post("/bci-recalculate")
@svc.admin_required
def post_bci_recalculate():
    """按当前权重重算全部视频；失败时整体回滚，只返回一条失败信息。"""
    try:
        result = recalculate_all(db.session, logger=current_app.logger)
    except SQLAlchemyError:
        current_app.logger.exception("Failed to recalculate BCI")
        return svc.api_error("Failed to recalculate BCI", code=500, http_status=500)

    current_app.logger.info(
        "BCI recalculated: %d examined, %d updated", result["totalVideosExamined"], result["videosUpdated"]
    )
    return jsonify(result)


# ============================================================
# 7) 管理后台：视频 / 导入
# ============================================================


@admin_bp.get("/videos")
@svc.admin_required
def admin_list_videos():
    """后台视频列表（含未发布），按更新时间倒序。"""
    try:
        page, limit = svc.parse_page_args(request.args, default_limit=svc.ADMIN_VIDEOS_DEFAULT_LIMIT)
    except ValueError as exc:
        return svc.api_error(str(exc))

    query = svc.apply_video_fuzzy_filter(Video.query, request.args.get("q", ""))
    total = query.count()
    videos = query.order_by(Video.updated_at.desc()).offset((page - 1) * limit).limit(limit).all()
    return jsonify(
        svc.serialize_page([svc.serialize_video(v) for v in videos], page=page, limit=limit, total=total)
    )


@admin_bp.patch("/videos/<video_id>")
@svc.admin_required
def admin_update_video(video_id: str):
    """部分更新视频；用合并后的完整因子重算 BCI。"""
    video = db.session.get(Video, video_id)
    if not video:
        return svc.api_error("Video not found", code=404, http_status=404)

    try:
        svc.apply_video_edit(video, request.get_json(silent=True))
    except ValueError as exc:
        return svc.api_error(str(exc))

    svc.rescore_video(video, svc.load_calculator(logger=current_app.logger))
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Failed to update video %s", video_id)
        return svc.api_error("Failed to update video", code=500, http_status=500)
    return jsonify({"video": svc.serialize_video(video)})


@admin_bp.delete("/videos/<video_id>")
@svc.admin_required
def admin_delete_video(video_id: str):
    video = db.session.get(Video, video_id)
    if not video:
        return svc.api_error("Video not found", code=404, http_status=404)
    svc.delete_video(video)
    return svc.api_ok("删除成功", id=video_id)


@admin_bp.post("/import")
@svc.admin_required
def admin_import_videos():
    """批量导入视频（按 url upsert），导入时即计算 BCI。"""
    try:
        items = svc.normalize_import_items(request.get_json(silent=True))
    except ValueError as exc:
        return svc.api_error(str(exc))

    calculator = svc.load_calculator(logger=current_app.logger)
    try:
        result = svc.import_videos(items, calculator)
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Failed to import videos")
        return svc.api_error("Failed to import videos", code=500, http_status=500)
    return jsonify(result)


# ============================================================
# 8) 管理后台：学习路线 / 反馈
# ============================================================


@admin_bp.get("/paths")
@svc.admin_required
def admin_list_paths():
    paths = LearningPath.query.order_by(LearningPath.updated_at.desc()).all()
    return jsonify({"paths": [svc.serialize_path(p, with_steps=True) for p in paths]})


@admin_bp.post("/paths")
@svc.admin_required
def admin_create_path():
    try:
        path = svc.create_path(request.get_json(silent=True))
    except ValueError as exc:
        return svc.api_error(str(exc))
    return jsonify({"path": svc.serialize_path(path, with_steps=True)}), 201


@admin_bp.get("/paths/<path_id>")
@svc.admin_required
def admin_get_path(path_id: str):
    path = db.session.get(LearningPath, path_id)
    if not path:
        return svc.api_error("Path not found", code=404, http_status=404)
    return jsonify({"path": svc.serialize_path(path, with_steps=True)})


@admin_bp.patch("/paths/<path_id>")
@svc.admin_required
def admin_update_path(path_id: str):
    """部分更新路线；传 steps 时整体替换步骤（同一事务）。"""
    path = db.session.get(LearningPath, path_id)
    if not path:
        return svc.api_error("Path not found", code=404, http_status=404)

    try:
        svc.update_path(path, request.get_json(silent=True))
    except ValueError as exc:
        db.session.rollback()
        return svc.api_error(str(exc))
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Failed to update path %s", path_id)
        return svc.api_error("Failed to update path", code=500, http_status=500)
    return jsonify({"path": svc.serialize_path(path, with_steps=True)})


@admin_bp.delete("/paths/<path_id>")
@svc.admin_required
def admin_delete_path(path_id: str):
    path = db.session.get(LearningPath, path_id)
    if not path:
        return svc.api_error("Path not found", code=404, http_status=404)
    db.session.delete(path)
    db.session.commit()
    return svc.api_ok("删除成功", id=path_id)


@admin_bp.get("/feedback")
@svc.admin_required
def admin_list_feedback():
    """反馈列表；resolved=true/false 可筛选。"""
    query = Feedback.query
    resolved = (request.args.get("resolved") or "").lower()
    if resolved == "true":
        query = query.filter(Feedback.resolved.is_(True))
    elif resolved == "false":
        query = query.filter(Feedback.resolved.is_(False))
    feedbacks = query.order_by(Feedback.created_at.desc()).all()
    return jsonify({"feedbacks": [svc.serialize_feedback(f) for f in feedbacks]})


@admin_bp.patch("/feedback/<int:feedback_id>")
@svc.admin_required
def admin_resolve_feedback(feedback_id: int):
    data = request.get_json(silent=True)
    if not isinstance(data, dict) or not isinstance(data.get("resolved"), bool):
        return svc.api_error("resolved (boolean) is required")

    feedback = db.session.get(Feedback, feedback_id)
    if not feedback:
        return svc.api_error("Feedback not found", code=404, http_status=404)
    feedback.resolved = data["resolved"]
    db.session.commit()
    return jsonify({"feedback": svc.serialize_feedback(feedback)})


# ============================================================
# 9) 管理后台：用户
# ============================================================


@admin_bp.get("/users")
@svc.admin_required
def admin_list_users():
    """用户列表（新注册的在前），附带最近观看和观看时长合计。"""
    try:
        page, limit = svc.parse_page_args(request.args)
    except ValueError as exc:
        return svc.api_error(str(exc))

    total = User.query.count()
    users = User.query.order_by(User.created_at.desc(), User.id.desc()).offset((page - 1) * limit).limit(limit).all()
    return jsonify(
        svc.serialize_page([svc.serialize_admin_user(u) for u in users], page=page, limit=limit, total=total, key="users")
    )
