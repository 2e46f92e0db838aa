"""
utils/config.py - 配置 dataclass 的 JSON 序列化

所有规划器配置 (PTPConfig / ShellPlannerConfig / AT2OptConfig) 共用:
to_dict / from_dict (忽略未知字段, 缺失字段用默认值) / to_json / from_json。
"""

from __future__ import annotations

import json
from dataclasses import fields
from pathlib import Path
from typing import Any, Dict, Mapping


class JsonConfigMixin:
    """为 @dataclass 配置类提供 JSON 序列化"""

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def to_json(self, filepath: str | Path) -> str:
        """保存到 JSON 文件, 返回路径字符串"""
        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)
        with open(filepath, 'w', encoding='utf-8') as f:
            json.dump(self.to_dict(), f, indent=2, ensure_ascii=False)
        return str(filepath)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]):
        valid = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in valid})

    @classmethod
    def from_json(cls, filepath: str | Path):
        with open(Path(filepath), 'r', encoding='utf-8') as f:
            return cls.from_dict(json.load(f))


def flatten_parameters(params: Mapping[str, Any], prefix: str = "",
                       sep: str = ".") -> Dict[str, Any]:
    """将嵌套参数字典展平为单层 key-value (实验日志用)

    Example:
        >>> flatten_parameters({"ptp": {"time_per_goal": 1.0}, "name": "AT2Opt"})
        {'ptp.time_per_goal': 1.0, 'name': 'AT2Opt'}
    """
    flat: Dict[str, Any] = {}
    for key, value in params.items():
        full = f"{prefix}{sep}{key}" if prefix else str(key)
        if isinstance(value, Mapping):
            flat.update(flatten_parameters(value, full, sep))
        else:
            flat[full] = value
    return flat
