"""批量重算脚本：按当前权重重新计算所有视频的 BCI

使用方法：
    python -m core.recalculate [--dry-run]

说明：
1. 修改权重后，已入库的分数不会自动更新，需要管理员手动触发重算
2. 整批只读取一次权重，所有视频使用同一份快照
3. 只更新分数有变化的视频，并在一个事务里提交（要么全部成功，要么全部回滚）
"""

import argparse
from datetime import datetime
from typing import Dict, Optional

from sqlalchemy.exc import SQLAlchemyError

from core.bci import BCICalculator
from core.bci_weights import WeightStore
from models import Video


def video_factors(video) -> Dict:
    """把 ORM 对象转为 BCICalculator 需要的因子字典。"""
    return {
        "duration_min": video.duration_min or 0,
        "has_cc": bool(video.has_cc),
        "has_chapters": bool(video.has_chapters),
        "difficulty": video.difficulty or "hard",
        "published_at": video.published_at,
        "has_sample_code": bool(video.has_sample_code),
        "like_ratio": video.like_ratio or 0.0,
    }


def recalculate_all(
    session,
    store: Optional[WeightStore] = None,
    *,
    now: Optional[datetime] = None,
    dry_run: bool = False,
    logger=None,
) -> Dict[str, int]:
    """
    按当前权重重算全部视频

    Args:
        session: 数据库 session
        store: 权重仓库，缺省用同一个 session 新建
        now: 评估时刻，缺省为当前时间
        dry_run: 为 True 时只计算、不提交

    Returns:
        {"totalVideosExamined": 检查数, "videosUpdated": 实际更新数}
    """
    store = store or WeightStore(session)
    calculator = BCICalculator(store.load(logger=logger))
    now = now or datetime.now()

    videos = session.query(Video).all()
    changed = []
    for video in videos:
        new_score = calculator.score(video_factors(video), now=now)
        if new_score != video.bci:
            changed.append((video, new_score))

    if changed and not dry_run:
        try:
            for video, new_score in changed:
                video.bci = new_score
            session.commit()
        except SQLAlchemyError:
            session.rollback()
            raise

    return {"totalVideosExamined": len(videos), "videosUpdated": len(changed)}


def main(argv=None):
    parser = argparse.ArgumentParser(description="按当前权重重算所有视频的 BCI")
    parser.add_argument("--dry-run", action="store_true", help="只计算并打印，不写库")
    args = parser.parse_args(argv)

    from app import create_app
    from models import db

    app = create_app()
    with app.app_context():
        print(f"干预模式: {args.dry_run}")
        print("-" * 50)
        result = recalculate_all(db.session, dry_run=args.dry_run, logger=app.logger)
        print(f"检查视频: {result['totalVideosExamined']}")
        print(f"需要更新: {result['videosUpdated']}")


if __name__ == "__main__":
    main()
