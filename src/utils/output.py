"""Output path and JSON helpers for experiment artifacts."""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any

import numpy as np


def make_output_dir(category: str, name: str, root: str | Path | None = None) -> Path:
    """Create a timestamped output directory.

    Args:
        category: Top-level category (e.g. "experiments", "reports")
        name: Sub-name for this run
        root: Base directory (defaults to ``<repo>/output``)

    Returns:
        Path to the created directory
    """
    ts = datetime.now().strftime("%Y%m%d_%H%M%S")
    base = Path(root) if root is not None else Path(__file__).resolve().parents[2] / "output"
    path = base / category / f"{name}_{ts}"
    path.mkdir(parents=True, exist_ok=True)
    return path


def json_default(obj: Any) -> Any:
    """json.dump 的 default: 处理 numpy 标量与数组."""
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if isinstance(obj, np.integer):
        return int(obj)
    if isinstance(obj, np.floating):
        return float(obj)
    if isinstance(obj, np.bool_):
        return bool(obj)
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def save_json(data: Any, filepath: str | Path) -> str:
    """保存为 JSON 文件 (自动创建父目录), 返回路径字符串."""
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)
    with open(filepath, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=2, ensure_ascii=False, default=json_default)
    return str(filepath)
