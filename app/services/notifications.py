"""Toast messages surfaced to the user on the next rendered page."""
from collections import deque
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Optional


class ToastLevel(str, Enum):
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class Toast:
    title: str
    description: str = ""
    level: ToastLevel = ToastLevel.SUCCESS

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["level"] = self.level.value
        return d


class Notifier:
    """FIFO of pending toasts. Views drain it when rendering."""

    def __init__(self, maxlen: int = 20) -> None:
        self._toasts: deque[Toast] = deque(maxlen=maxlen)

    def push(self, title: str, description: str = "", level: ToastLevel = ToastLevel.SUCCESS) -> Toast:
        toast = Toast(title=title, description=description, level=level)
        self._toasts.append(toast)
        return toast

    def success(self, title: str, description: str = "") -> Toast:
        return self.push(title, description, ToastLevel.SUCCESS)

    def warning(self, title: str, description: str = "") -> Toast:
        return self.push(title, description, ToastLevel.WARNING)

    def error(self, title: str, description: str = "") -> Toast:
        return self.push(title, description, ToastLevel.ERROR)

    def pending(self) -> list[Toast]:
        return list(self._toasts)

    def drain(self) -> list[Toast]:
        out = list(self._toasts)
        self._toasts.clear()
        return out

    def last(self, level: Optional[ToastLevel] = None) -> Optional[Toast]:
        for toast in reversed(self._toasts):
            if level is None or toast.level == level:
                return toast
        return None
