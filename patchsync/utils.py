from typing import Optional

BYTES_PER_MB = 1024 * 1024


def to_mb(size: int) -> float:
    return size / BYTES_PER_MB


def format_eta(seconds: Optional[float]) -> str:
    """将剩余秒数格式化为 HH:MM:SS"""
    if seconds is None or seconds < 0:
        return "--:--:--"
    total = int(round(seconds))
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def map_range(
    value: float,
    from_low: float,
    from_high: float,
    to_low: float = 0.0,
    to_high: float = 100.0,
) -> float:
    """将 value 从 [from_low, from_high] 线性映射到 [to_low, to_high]"""
    if from_high == from_low:
        return to_high
    return (value - from_low) / (from_high - from_low) * (to_high - to_low) + to_low


def is_safe_filename(filename: str) -> bool:
    """文件名是否只指向数据目录内部（非绝对路径且不含 ``..``）"""
    if not filename or "\x00" in filename:
        return False
    normalized = filename.replace("\\", "/")
    if normalized.startswith("/") or (len(normalized) > 1 and normalized[1] == ":"):
        return False
    parts = [part for part in normalized.split("/") if part not in ("", ".")]
    return bool(parts) and ".." not in parts
