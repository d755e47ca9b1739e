import shutil

import nmap
import pytest

from netscope.scanners.nmap import parse_open_ports, summarize_ports, port_scan, fast_probe

XML = """<?xml version="1.0"?>
<nmaprun scanner="nmap" args="nmap -sT -oX out.xml 10.0.0.5" start="1760000000" version="7.94" xmloutputversion="1.05">
<scaninfo type="connect" protocol="tcp" numservices="1000" services="1-1000"/>
<host starttime="1760000000" endtime="1760000001">
<status state="up" reason="conn-refused" reason_ttl="0"/>
<address addr="10.0.0.5" addrtype="ipv4"/>
<hostnames><hostname name="db.lan" type="PTR"/></hostnames>
<ports>
<port protocol="tcp" portid="22"><state state="open" reason="syn-ack" reason_ttl="0"/><service name="ssh" product="OpenSSH" version="9.6" method="probed" conf="10"/></port>
<port protocol="tcp" portid="80"><state state="closed" reason="conn-refused" reason_ttl="0"/><service name="http" method="table" conf="3"/></port>
<port protocol="tcp" portid="5432"><state state="open" reason="syn-ack" reason_ttl="0"/><service name="postgresql" method="table" conf="3"/></port>
</ports>
</host>
<runstats><finished time="1760000001" timestr="Thu Oct  9 10:00:01 2025" elapsed="1.02" summary="" exit="success"/><hosts up="1" down="0" total="1"/></runstats>
</nmaprun>
"""

needs_nmap = pytest.mark.skipif(shutil.which("nmap") is None, reason="nmap binary not installed")


@needs_nmap
def test_parse_open_ports():
    ports = parse_open_ports(XML)
    assert [(p["port"], p["service"]) for p in ports] == [(22, "ssh"), (5432, "postgresql")]
    assert ports[0]["product"] == "OpenSSH 9.6"


@needs_nmap
def test_truncated_xml_raises():
    with pytest.raises(nmap.PortScannerError):
        parse_open_ports(XML[: len(XML) // 2])


def test_summarize_ports():
    assert summarize_ports([]) == "Open ports: 0"
    ports = [{"port": 22, "protocol": "tcp", "service": "ssh", "product": ""}]
    assert summarize_ports(ports) == "Open ports: 1 (22/tcp ssh)"


def test_port_scan_puts_xml_output_before_target():
    cmd = port_scan("10.0.0.5", elevated=False, xml_out="/tmp/x.xml")
    assert cmd[-3:] == ["-oX", "/tmp/x.xml", "10.0.0.5"]
    assert "-sT" in cmd


def test_fast_probe_is_bounded():
    cmd = fast_probe("172.17.0.0/16", "50ms")
    assert cmd == ["nmap", "-sn", "-PE", "--max-retries", "0", "--host-timeout", "50ms", "172.17.0.0/16"]
