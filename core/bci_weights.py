"""BCI 权重存储

权重表以 JSON 文本形式存放在 app_settings 表的一行里（key="bci-weights"）。

- 读：每次都重新查库，不做缓存（权重可能在两次请求之间被修改）。
- 读到旧版本/残缺的配置时，以默认值为底、逐键覆盖（新加的权重键自动取默认值）。
- 写：七个键必须齐全，且每个值都是 [0, 30] 内的数字，否则整体拒绝。
"""

from __future__ import annotations

import json
import math
from numbers import Real

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from core.bci import DEFAULT_BCI_WEIGHTS, WEIGHT_KEYS, WEIGHT_MAX, WEIGHT_MIN
from models import AppSetting

SETTING_KEY = "bci-weights"


class WeightValidationError(ValueError):
    """权重校验失败；errors 逐项列出出问题的字段，方便前端定位到具体控件。"""

    def __init__(self, errors: list[dict]):
        self.errors = errors
        super().__init__("; ".join(e["message"] for e in errors))


def _is_number(value) -> bool:
    # bool 是 int 的子类，这里单独排除
    if isinstance(value, bool) or not isinstance(value, Real):
        return False
    return isinstance(value, int) or not math.isnan(value)


def validate_weights(weights) -> dict:
    """校验完整权重表；通过则返回只含七个键的新字典，否则抛 WeightValidationError。"""
    if not isinstance(weights, dict):
        raise WeightValidationError(
            [{"field": "", "reason": "invalid", "message": "weights must be an object"}]
        )

    errors: list[dict] = []
    for key in WEIGHT_KEYS:
        if key not in weights:
            errors.append({"field": key, "reason": "missing", "message": f"Missing weight key: {key}"})
            continue
        value = weights[key]
        if not _is_number(value):
            errors.append(
                {
                    "field": key,
                    "reason": "not_a_number",
                    "message": f"Invalid value for {key}: must be a number {WEIGHT_MIN}-{WEIGHT_MAX}",
                }
            )
        elif not WEIGHT_MIN <= value <= WEIGHT_MAX:
            errors.append(
                {
                    "field": key,
                    "reason": "out_of_range",
                    "message": f"Invalid value for {key}: must be a number {WEIGHT_MIN}-{WEIGHT_MAX}",
                }
            )

    if errors:
        raise WeightValidationError(errors)
    return {key: weights[key] for key in WEIGHT_KEYS}


def merge_with_defaults(stored: dict) -> dict:
    """以默认权重为底，覆盖库里已有的合法键；未知键忽略。"""
    merged = dict(DEFAULT_BCI_WEIGHTS)
    for key in WEIGHT_KEYS:
        if key in stored and _is_number(stored[key]):
            merged[key] = stored[key]
    return merged


class WeightStore:
    """权重仓库：load()/save()，由调用方注入数据库 session。"""

    def __init__(self, session):
        self.session = session

    def _get_row(self):
        return self.session.query(AppSetting).filter_by(key=SETTING_KEY).first()

    def load(self, *, logger=None) -> dict:
        """读取当前生效的权重表（默认值 + 库中覆盖项）。"""
        row = self._get_row()
        if row is None:
            return dict(DEFAULT_BCI_WEIGHTS)

        try:
            stored = json.loads(row.value)
        except (TypeError, ValueError):
            stored = None

        if not isinstance(stored, dict):
            if logger is not None:
                logger.warning("Stored %s is unreadable, falling back to defaults: %r", SETTING_KEY, row.value)
            return dict(DEFAULT_BCI_WEIGHTS)

        return merge_with_defaults(stored)

    def _upsert(self, payload: str) -> None:
        row = self._get_row()
        if row is None:
            self.session.add(AppSetting(key=SETTING_KEY, value=payload))
        else:
            row.value = payload
        self.session.commit()

    def save(self, weights) -> dict:
        """校验并整体覆盖保存（不存在则新建）；返回实际保存的权重表。"""
        cleaned = validate_weights(weights)
        payload = json.dumps(cleaned)

        try:
            try:
                self._upsert(payload)
            except IntegrityError:
                # 并发的首次保存抢先插入了这一行：回滚后覆盖它（后写者生效）
                self.session.rollback()
                self._upsert(payload)
        except SQLAlchemyError:
            self.session.rollback()
            raise

        return cleaned
