"""
Client configuration
All tunables for one FTPClient live here; nothing is process-wide
"""

from dataclasses import dataclass
from typing import Optional, Tuple

from .negotiator import DataChannelMode


@dataclass
class FTPClientConfig:
    """Settings for a single session"""

    # Control connection
    timeout: float = 30.0
    encoding: str = 'utf-8'
    abort_reply_grace: float = 1.0

    # Data connection
    data_timeout: float = 30.0
    buffer_size: int = 8192
    data_channel_mode: DataChannelMode = DataChannelMode.PASSIVE
    prefer_extended_passive: bool = False
    remote_verification: bool = True
    passive_nat_workaround: bool = True
    active_bind_address: Optional[str] = None
    active_external_address: Optional[str] = None
    active_port_range: Optional[Tuple[int, int]] = None

    # Keep-alive during transfers; 0 disables the monitor
    keepalive_idle_timeout: float = 0.0
    keepalive_progress_aware: bool = True

    # Directory listings
    system_key: Optional[str] = None
    max_unparsed_fraction: float = 0.25
    allow_empty_listing: bool = False
    list_hidden: bool = False

    def __post_init__(self):
        if self.active_port_range is not None:
            low, high = self.active_port_range
            if not 0 < low <= high < 65536:
                raise ValueError(f"Invalid active port range: {self.active_port_range}")
        if not 0.0 <= self.max_unparsed_fraction < 1.0:
            raise ValueError("max_unparsed_fraction must be in [0, 1)")
        if self.abort_reply_grace < 0:
            raise ValueError("abort_reply_grace must not be negative")
