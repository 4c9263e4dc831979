"""入门友好度评分器（Beginner Comfort Index, BCI）

评分公式：
BCI = 各项因子得分之和，封顶 100，四舍五入为整数

评分维度说明：
- 时长：15 分钟以内满分，15-30 分钟得一半
- 字幕：有字幕得满分
- 章节：有章节标记得满分
- 难度：easy 满分，normal 一半，hard 不得分
- 新鲜度：近 2 年内发布得满分
- 示例代码：提供示例代码得满分
- 好评率：>=90% 满分，>=80% 一半

每一项的“满分”由权重表决定，权重表可由管理员修改（见 core.bci_weights）。
"""

import math
from datetime import date, datetime
from typing import Dict, List, Optional

# ============================================================================
# 权重配置
# ============================================================================

WEIGHT_KEYS = (
    "shortDuration",
    "closedCaptions",
    "chapterMarkers",
    "easyDifficulty",
    "recentPublish",
    "sampleCode",
    "healthyLikeRatio",
)

# 默认权重合计 100：满足所有条件的视频恰好得 100 分
DEFAULT_BCI_WEIGHTS: Dict[str, float] = {
    "shortDuration": 20,
    "closedCaptions": 15,
    "chapterMarkers": 15,
    "easyDifficulty": 20,
    "recentPublish": 10,
    "sampleCode": 10,
    "healthyLikeRatio": 10,
}

WEIGHT_MIN = 0
WEIGHT_MAX = 30

# 时长阈值（分钟）
SHORT_DURATION_MAX = 15
MEDIUM_DURATION_MAX = 30

# 好评率阈值
LIKE_RATIO_HIGH = 0.9
LIKE_RATIO_MEDIUM = 0.8

RECENT_PUBLISH_YEARS = 2

DIFFICULTIES = ("easy", "normal", "hard")

# 标签阈值
LABEL_EXCELLENT = 70
LABEL_GOOD = 50

BCI_MAX = 100


def round_half_up(value: float) -> int:
    """x.5 一律向上取整（Python 内置 round 是银行家舍入，这里不用）。"""
    return int(math.floor(value + 0.5))


def years_before(moment: datetime, years: int) -> datetime:
    """回退若干个自然年；2 月 29 日落到非闰年时取 3 月 1 日。"""
    try:
        return moment.replace(year=moment.year - years)
    except ValueError:
        return moment.replace(year=moment.year - years, month=3, day=1)


def _as_datetime(value) -> Optional[datetime]:
    """统一成本地无时区时间；带时区的先换算到本地再去掉 tzinfo。"""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone().replace(tzinfo=None)
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    return None


class BCICalculator:
    """入门友好度评分器"""

    def __init__(self, weights: Optional[Dict[str, float]] = None):
        """
        初始化评分器

        Args:
            weights: 权重表 {权重名: 满分值}，缺省使用 DEFAULT_BCI_WEIGHTS
        """
        self.weights = dict(weights) if weights is not None else dict(DEFAULT_BCI_WEIGHTS)

    def score(self, factors: Dict, now: Optional[datetime] = None) -> int:
        """
        计算视频的入门友好度

        Args:
            factors: 因子字典，需包含以下字段：
                - duration_min, has_cc, has_chapters, difficulty
                - published_at (datetime 或 date)
                - has_sample_code, like_ratio
            now: 评估时刻，缺省为当前时间

        Returns:
            整数评分 0-100
        """
        total = (
            self._score_duration(factors)
            + self._score_flag(factors, "has_cc", "closedCaptions")
            + self._score_flag(factors, "has_chapters", "chapterMarkers")
            + self._score_difficulty(factors)
            + self._score_freshness(factors, _as_datetime(now) or datetime.now())
            + self._score_flag(factors, "has_sample_code", "sampleCode")
            + self._score_like_ratio(factors)
        )

        return min(BCI_MAX, round_half_up(total))

    def _score_duration(self, factors: Dict) -> float:
        duration = factors.get("duration_min") or 0
        full = self.weights["shortDuration"]

        if duration <= SHORT_DURATION_MAX:
            return full
        elif duration <= MEDIUM_DURATION_MAX:
            return full * 0.5
        return 0

    def _score_flag(self, factors: Dict, field: str, weight_key: str) -> float:
        return self.weights[weight_key] if factors.get(field) else 0

    def _score_difficulty(self, factors: Dict) -> float:
        difficulty = factors.get("difficulty")
        full = self.weights["easyDifficulty"]

        if difficulty == "easy":
            return full
        elif difficulty == "normal":
            return full * 0.5
        return 0

    def _score_freshness(self, factors: Dict, now: datetime) -> float:
        """
        计算新鲜度分

        发布时间 >= (评估时刻 - 2 个自然年) 得满分，否则 0。
        未知发布时间不得分。
        """
        published = _as_datetime(factors.get("published_at"))
        if published is None:
            return 0

        cutoff = years_before(now, RECENT_PUBLISH_YEARS)
        if published >= cutoff:
            return self.weights["recentPublish"]
        return 0

    def _score_like_ratio(self, factors: Dict) -> float:
        ratio = factors.get("like_ratio") or 0
        full = self.weights["healthyLikeRatio"]

        if ratio >= LIKE_RATIO_HIGH:
            return full
        elif ratio >= LIKE_RATIO_MEDIUM:
            return full * 0.5
        return 0

    def batch_score(self, videos: List[Dict], now: Optional[datetime] = None) -> List[int]:
        """
        批量评分

        所有视频共用同一个评估时刻，保证同一批次结果一致。
        """
        now = _as_datetime(now) or datetime.now()
        return [self.score(v, now=now) for v in videos]


def calculate_bci(
    factors: Dict,
    weights: Optional[Dict[str, float]] = None,
    *,
    now: Optional[datetime] = None,
) -> int:
    """单条评分的便捷入口。"""
    return BCICalculator(weights).score(factors, now=now)


def bci_label(score: int) -> Dict[str, str]:
    """
    评分 -> 展示标签

    - >= 70：零基础首选
    - 50-69：适合入门
    - < 50：不显示标签（空字符串）

    注意：这只影响展示。视频列表的 level=beginner 筛选看的是 difficulty 字段，
    两者相互独立。
    """
    if score >= LABEL_EXCELLENT:
        return {"label": "零基础首选", "style": "badge-beginner"}
    if score >= LABEL_GOOD:
        return {"label": "适合入门", "style": "badge-intro"}
    return {"label": "", "style": ""}
