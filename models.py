"""数据模型定义：封装所有与数据库表对应的 SQLAlchemy ORM 类。"""

import uuid

from flask_sqlalchemy import SQLAlchemy
from flask_login import UserMixin
from sqlalchemy import func

db = SQLAlchemy()


def _new_id() -> str:
    return uuid.uuid4().hex


class Video(db.Model):
    """收录的教学视频：既存储原始元数据，也存储入门友好度（BCI）等派生字段。"""

    __tablename__ = 'videos'

    id = db.Column(db.String(32), primary_key=True, default=_new_id)
    url = db.Column(db.String(500), unique=True, nullable=False)

    # 基础信息
    title = db.Column(db.String(255), nullable=False)
    channel = db.Column(db.String(255), default="")
    language = db.Column(db.String(10), default="ja", index=True)
    duration_min = db.Column(db.Integer, default=0)  # 分钟
    published_at = db.Column(db.DateTime, index=True)
    tags = db.Column(db.Text, default="[]")  # JSON 数组文本

    # BCI 评分因子
    has_cc = db.Column(db.Boolean, default=False)
    has_chapters = db.Column(db.Boolean, default=False)
    has_sample_code = db.Column(db.Boolean, default=False)
    difficulty = db.Column(db.String(10), default="easy", index=True)
    like_ratio = db.Column(db.Float, default=0.0)

    # 派生字段
    quality_score = db.Column(db.Float, default=0.0)  # 0-1，由导入时的人工评级换算
    bci = db.Column(db.Integer, default=0, index=True)

    transcript_summary = db.Column(db.Text)
    source_notes = db.Column(db.Text)

    is_published = db.Column(db.Boolean, default=True, index=True)
    created_at = db.Column(db.DateTime, default=func.now())
    updated_at = db.Column(db.DateTime, default=func.now(), onupdate=func.now())


class User(UserMixin, db.Model):
    """用户账户表：仅存储基本资料、角色和密码哈希。"""

    __tablename__ = 'users'
    id = db.Column(db.Integer, primary_key=True)
    account = db.Column(db.String(50), unique=True, index=True, nullable=False)
    username = db.Column(db.String(50))
    password = db.Column(db.String(255))
    role = db.Column(db.String(20), default="user", nullable=False)
    created_at = db.Column(db.DateTime, default=func.now())

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class AppSetting(db.Model):
    """全局配置表：key -> JSON 文本（如 bci-weights）。"""

    __tablename__ = 'app_settings'
    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(100), unique=True, nullable=False)
    value = db.Column(db.Text, nullable=False)
    updated_at = db.Column(db.DateTime, default=func.now(), onupdate=func.now())


class LearningPath(db.Model):
    """学习路线：按顺序串起若干视频。"""

    __tablename__ = 'learning_paths'
    id = db.Column(db.String(32), primary_key=True, default=_new_id)
    title = db.Column(db.String(255), nullable=False)
    target_audience = db.Column(db.String(255), nullable=False)
    goal = db.Column(db.String(500), nullable=False)
    total_time_estimate = db.Column(db.Integer, default=0)  # 分钟
    is_published = db.Column(db.Boolean, default=True, index=True)
    created_at = db.Column(db.DateTime, default=func.now())
    updated_at = db.Column(db.DateTime, default=func.now(), onupdate=func.now())

    steps = db.relationship(
        "PathStep",
        backref="path",
        order_by="PathStep.order",
        cascade="all, delete-orphan",
    )


class PathStep(db.Model):
    __tablename__ = 'path_steps'
    id = db.Column(db.Integer, primary_key=True)
    path_id = db.Column(db.String(32), db.ForeignKey('learning_paths.id'), nullable=False)
    video_id = db.Column(db.String(32), db.ForeignKey('videos.id'), nullable=False)
    order = db.Column(db.Integer, nullable=False)
    why_this = db.Column(db.Text, nullable=False)
    checkpoint_question = db.Column(db.Text, nullable=False)

    video = db.relationship("Video")


class Feedback(db.Model):
    """学习者反馈：看不懂/内容有误/链接失效/内容过时。"""

    __tablename__ = 'feedback'
    id = db.Column(db.Integer, primary_key=True)
    video_id = db.Column(db.String(32), db.ForeignKey('videos.id'), nullable=False)
    user_id = db.Column(db.Integer)
    type = db.Column(db.String(20), nullable=False)
    comment = db.Column(db.String(1000))
    resolved = db.Column(db.Boolean, default=False, index=True)
    created_at = db.Column(db.DateTime, default=func.now())

    video = db.relationship("Video")


class UserProgress(db.Model):
    """学习进度：每个用户对每个视频一行（看过 / 收藏）。"""

    __tablename__ = 'user_progress'
    __table_args__ = (db.UniqueConstraint('user_id', 'video_id', name='uq_user_progress_user_video'),)

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    video_id = db.Column(db.String(32), db.ForeignKey('videos.id'), nullable=False)
    watched = db.Column(db.Boolean, default=False, nullable=False)
    bookmarked = db.Column(db.Boolean, default=False, nullable=False)
    updated_at = db.Column(db.DateTime, default=func.now(), onupdate=func.now())

    video = db.relationship("Video")
