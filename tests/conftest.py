# tests/conftest.py
import sys
from pathlib import Path

import pytest

# Корень репозитория в sys.path, чтобы работал импорт "core.…"
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from core.proxy.executor import Success, Rejected  # noqa: E402


class FakeClock:
    """Управляемые часы для SuccessMemo/SessionProbe"""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FakeExecutor:
    """StrategyExecutor без сети: исход задаётся по имени персоны"""

    def __init__(self, outcomes=None, default=None):
        self.outcomes = dict(outcomes or {})
        self.default = default or Rejected(403)
        self.calls = []

    @property
    def attempts(self) -> int:
        return len(self.calls)

    @property
    def tried(self):
        return [name for name, _ in self.calls]

    async def attempt(self, target, persona, cookie=None):
        self.calls.append((persona.name, cookie))
        return self.outcomes.get(persona.name, self.default)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def webp_success():
    return Success(200, "image/webp", b"RIFF....WEBPVP8 ")


@pytest.fixture
def make_executor():
    return FakeExecutor
