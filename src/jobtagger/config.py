"""
Walker configuration.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class WalkerConfig:
    """
    Member names the walker recognizes inside metric and node records.

    trace_tokens makes the reader print one line per visited token when no
    explicit trace callback is supplied.
    """
    series_key: str = "series"
    data_key: str = "data"
    trace_tokens: bool = False

    def __post_init__(self):
        if not self.series_key or not self.data_key:
            raise ValueError("series_key and data_key must be non-empty")
        if self.series_key == self.data_key:
            raise ValueError(f"series_key and data_key must differ, both are {self.series_key!r}")


DEFAULT_CONFIG = WalkerConfig()
