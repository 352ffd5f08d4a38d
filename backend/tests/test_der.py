"""最小 DER リーダーのテスト。"""

import pytest

from safe_download.services import der


def test_read_short_form_element():
    element, end = der.read_element(b"\x04\x03abc")
    assert element.tag == der.TAG_OCTET_STRING
    assert element.value == b"abc"
    assert end == 5


def test_read_long_form_length():
    value = b"x" * 200
    element = der.read_single(b"\x04\x81\xc8" + value)
    assert element.value == value


def test_non_minimal_long_form_length_is_rejected():
    with pytest.raises(der.DerError):
        der.read_single(b"\x04\x81\x03abc")


def test_indefinite_length_is_rejected():
    with pytest.raises(der.DerError):
        der.read_single(b"\x30\x80\x05\x00\x00\x00")


def test_truncated_value_is_rejected():
    with pytest.raises(der.DerError):
        der.read_single(b"\x04\x05abc")


def test_trailing_data_is_rejected():
    with pytest.raises(der.DerError):
        der.read_single(b"\x05\x00\x05\x00")


def test_read_children_of_sequence():
    seq = der.read_single(b"\x30\x06\x05\x00\x04\x02hi")
    children = der.read_children(seq)
    assert [child.tag for child in children] == [der.TAG_NULL, der.TAG_OCTET_STRING]
    assert children[1].value == b"hi"


def test_read_children_requires_constructed_element():
    with pytest.raises(der.DerError):
        der.read_children(der.DerElement(tag=der.TAG_OCTET_STRING, value=b""))


@pytest.mark.parametrize(
    "encoded, dotted",
    [
        ("608648016503040201", "2.16.840.1.101.3.4.2.1"),
        ("2b0e03021a", "1.3.14.3.2.26"),
        ("2a864886f70d010101", "1.2.840.113549.1.1.1"),
    ],
)
def test_decode_oid(encoded, dotted):
    assert der.decode_oid(bytes.fromhex(encoded)) == dotted


def test_decode_truncated_oid_is_rejected():
    with pytest.raises(der.DerError):
        der.decode_oid(b"\x60\x86")
