"""Network statistics counters for KCP sessions."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field, fields

_HEADER = (
    ("BytesSent", "bytes_sent"),
    ("BytesReceived", "bytes_received"),
    ("MaxConn", "max_conn"),
    ("ActiveOpens", "active_opens"),
    ("PassiveOpens", "passive_opens"),
    ("CurrEstab", "curr_estab"),
    ("InErrs", "in_errs"),
    ("InCsumErrors", "in_csum_errors"),
    ("KCPInErrors", "kcp_in_errors"),
    ("InPkts", "in_pkts"),
    ("OutPkts", "out_pkts"),
    ("InSegs", "in_segs"),
    ("OutSegs", "out_segs"),
    ("InBytes", "in_bytes"),
    ("OutBytes", "out_bytes"),
    ("RetransSegs", "retrans_segs"),
    ("FastRetransSegs", "fast_retrans_segs"),
    ("EarlyRetransSegs", "early_retrans_segs"),
    ("LostSegs", "lost_segs"),
    ("RepeatSegs", "repeat_segs"),
    ("FECParityShards", "fec_parity_shards"),
    ("FECErrs", "fec_errs"),
    ("FECRecovered", "fec_recovered"),
    ("FECShortShards", "fec_short_shards"),
)


@dataclass
class Snmp:
    """Counters of bytes, packets, segments and FEC outcomes."""

    bytes_sent: int = 0
    bytes_received: int = 0
    max_conn: int = 0
    active_opens: int = 0
    passive_opens: int = 0
    curr_estab: int = 0
    in_errs: int = 0
    in_csum_errors: int = 0
    kcp_in_errors: int = 0
    in_pkts: int = 0
    out_pkts: int = 0
    in_segs: int = 0
    out_segs: int = 0
    in_bytes: int = 0
    out_bytes: int = 0
    retrans_segs: int = 0
    fast_retrans_segs: int = 0
    early_retrans_segs: int = 0
    lost_segs: int = 0
    repeat_segs: int = 0
    fec_recovered: int = 0
    fec_errs: int = 0
    fec_parity_shards: int = 0
    fec_short_shards: int = 0
    _lock: threading.Lock = field(
        default_factory=threading.Lock, init=False, repr=False, compare=False
    )

    def header(self) -> list[str]:
        """Names of all counters, in report order."""
        return [name for name, _ in _HEADER]

    def to_list(self) -> list[str]:
        """Current counter values as strings, in the order of :meth:`header`."""
        snapshot = self.copy()
        return [str(getattr(snapshot, attr)) for _, attr in _HEADER]

    def copy(self) -> "Snmp":
        """A consistent snapshot of the counters."""
        with self._lock:
            values = {f.name: getattr(self, f.name) for f in fields(self) if f.init}
        return Snmp(**values)

    def reset(self) -> None:
        """Set every counter to zero."""
        with self._lock:
            for f in fields(self):
                if f.init:
                    setattr(self, f.name, 0)


DEFAULT_SNMP = Snmp()