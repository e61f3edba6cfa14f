from __future__ import annotations

import pytest

from nfc_bridge_server.models import BeaconStatus
from nfc_bridge_server.payload import classify_payload, company_id_le, extract_uid, is_idle_beacon

PREFIX = b"\xff\xff"


def test_extract_uid_stops_at_first_non_hex_and_uppercases() -> None:
    assert extract_uid(PREFIX + b"UID:1a2B9Z") == "1A2B9"


def test_extract_uid_reads_to_end_of_payload() -> None:
    assert extract_uid(PREFIX + b"UID:deadbeef") == "DEADBEEF"


def test_extract_uid_marker_at_end_returns_none() -> None:
    assert extract_uid(PREFIX + b"xxUID:") is None


def test_extract_uid_marker_followed_by_non_hex_returns_none() -> None:
    assert extract_uid(PREFIX + b"UID:ZZ12") is None


def test_extract_uid_uses_only_first_marker() -> None:
    # 第一个标记后没有十六进制字符时不会继续找第二个标记
    assert extract_uid(PREFIX + b"UID:-UID:ABCD") is None
    assert extract_uid(PREFIX + b"UID:12 UID:ABCD") == "12"


def test_extract_uid_ignores_non_ascii_bytes_elsewhere() -> None:
    assert extract_uid(b"\xff\xff\x80\xfe\x00UID:0a0b\x99") == "0A0B"


def test_extract_uid_without_marker() -> None:
    assert extract_uid(PREFIX + b"NOTHING HERE") is None


@pytest.mark.parametrize("data", [b"", b"UID:1", b"\xff\xffUID", None])
def test_short_payload_is_unrecognized(data) -> None:
    assert extract_uid(data) is None
    assert is_idle_beacon(data) is False
    assert classify_payload(data).status is BeaconStatus.UNRECOGNIZED


def test_idle_marker_anywhere_wins_over_uid() -> None:
    for data in (PREFIX + b"IDLE", PREFIX + b"UID:ABCD IDLE", PREFIX + b"IDLEUID:ABCD"):
        result = classify_payload(data)
        assert result.is_idle
        assert result.uid is None


def test_classify_identified() -> None:
    result = classify_payload(PREFIX + b"UID:1234abcd")
    assert result.status is BeaconStatus.IDENTIFIED
    assert result.uid == "1234ABCD"


def test_classify_unrecognized_when_marker_has_no_hex() -> None:
    assert classify_payload(PREFIX + b"UID:\x00\x00").status is BeaconStatus.UNRECOGNIZED


def test_company_id_is_little_endian() -> None:
    assert company_id_le(b"\x4c\x00rest") == 0x004C
    assert company_id_le(b"\xff\xff") == 0xFFFF
    assert company_id_le(b"\x01") is None
