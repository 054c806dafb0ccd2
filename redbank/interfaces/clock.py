"""Clock protocol: block time in seconds."""
from typing import Protocol


class Clock(Protocol):
    def now(self) -> int: ...
