from remproxy.kcp.snmp import DEFAULT_SNMP, Snmp


def test_header_order_and_size():
    header = Snmp().header()
    assert len(header) == 24
    assert header[0] == "BytesSent"
    assert header[-4:] == ["FECParityShards", "FECErrs", "FECRecovered", "FECShortShards"]


def test_to_list_aligned_with_header():
    snmp = Snmp()
    snmp.bytes_sent = 10
    snmp.fec_parity_shards = 7
    snmp.fec_short_shards = 3
    values = dict(zip(snmp.header(), snmp.to_list()))
    assert values["BytesSent"] == "10"
    assert values["FECParityShards"] == "7"
    assert values["FECShortShards"] == "3"
    assert values["InPkts"] == "0"
    assert len(snmp.to_list()) == len(snmp.header())


def test_copy_is_independent():
    snmp = Snmp(in_pkts=5, out_bytes=9)
    snapshot = snmp.copy()
    snmp.in_pkts = 6
    assert snapshot.in_pkts == 5
    assert snapshot.out_bytes == 9
    assert snapshot is not snmp


def test_reset_zeroes_all():
    snmp = Snmp(bytes_sent=1, curr_estab=2, lost_segs=4)
    snmp.reset()
    assert snmp.to_list() == ["0"] * 24
    assert snmp == Snmp()


def test_default_instance_exists():
    assert DEFAULT_SNMP.header() == Snmp().header()