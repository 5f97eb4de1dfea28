from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING
import time

if TYPE_CHECKING:
    from resumeai.services.flow import FlowController


@dataclass(frozen=True)
class UploadedFile:
    name: str
    media_type: str
    data: str  # base64, no data-URL prefix

    @property
    def size(self) -> int:
        """Decoded byte length, computed from the base64 text."""
        padding = self.data.count("=", -2) if self.data else 0
        return len(self.data) * 3 // 4 - padding


@dataclass
class Session:
    session_id: str
    controller: FlowController
    created_at: float = field(default_factory=lambda: time.time())
