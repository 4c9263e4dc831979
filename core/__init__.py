"""核心业务模块

包含：
- BCICalculator / calculate_bci: 入门友好度评分器
- bci_label: 评分 -> 展示标签
- WeightStore: 权重存储（读时合并默认值，写时整体校验）
- recalculate_all: 按当前权重批量重算
"""

from .bci import (
    BCICalculator,
    DEFAULT_BCI_WEIGHTS,
    DIFFICULTIES,
    WEIGHT_KEYS,
    bci_label,
    calculate_bci,
)
from .bci_weights import WeightStore, WeightValidationError, validate_weights
from .recalculate import recalculate_all, video_factors

__all__ = [
    "BCICalculator",
    "DEFAULT_BCI_WEIGHTS",
    "DIFFICULTIES",
    "WEIGHT_KEYS",
    "bci_label",
    "calculate_bci",
    "WeightStore",
    "WeightValidationError",
    "validate_weights",
    "recalculate_all",
    "video_factors",
]
