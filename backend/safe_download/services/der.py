"""DigestInfo の解析に必要な範囲だけを扱う最小限の DER リーダー。"""

from dataclasses import dataclass
from typing import List

TAG_OCTET_STRING = 0x04
TAG_NULL = 0x05
TAG_OID = 0x06
TAG_SEQUENCE = 0x30


class DerError(ValueError):
    """DER 符号化が不正。"""


@dataclass(frozen=True)
class DerElement:
    """1 つの TLV 要素。"""

    tag: int
    value: bytes

    @property
    def is_constructed(self) -> bool:
        return bool(self.tag & 0x20)


def read_element(data: bytes, offset: int = 0) -> tuple[DerElement, int]:
    """offset から 1 要素を読み、(要素, 次の offset) を返す。"""
    if offset + 2 > len(data):
        raise DerError("truncated header")
    tag = data[offset]
    if tag & 0x1F == 0x1F:
        raise DerError("high tag numbers are not supported")
    first = data[offset + 1]
    pos = offset + 2
    if first < 0x80:
        length = first
    elif first == 0x80:
        raise DerError("indefinite length is not allowed in DER")
    else:
        count = first & 0x7F
        if count > 4 or pos + count > len(data):
            raise DerError("invalid length encoding")
        length = int.from_bytes(data[pos : pos + count], "big")
        if length < 0x80 or data[pos] == 0:
            raise DerError("non-minimal length encoding")
        pos += count
    end = pos + length
    if end > len(data):
        raise DerError("truncated value")
    return DerElement(tag=tag, value=data[pos:end]), end


def read_single(data: bytes) -> DerElement:
    """data 全体がちょうど 1 要素であることを確認して読む。"""
    element, end = read_element(data)
    if end != len(data):
        raise DerError("trailing data after element")
    return element


def read_children(element: DerElement) -> List[DerElement]:
    """構造型要素の子要素を順に読む。"""
    if not element.is_constructed:
        raise DerError("element is not constructed")
    children: List[DerElement] = []
    offset = 0
    while offset < len(element.value):
        child, offset = read_element(element.value, offset)
        children.append(child)
    return children


def decode_oid(value: bytes) -> str:
    """OBJECT IDENTIFIER の値部分をドット区切り文字列にする。"""
    if not value:
        raise DerError("empty OID")
    arcs: List[int] = []
    current = 0
    for index, byte in enumerate(value):
        if current == 0 and byte == 0x80:
            raise DerError("non-minimal OID arc")
        current = (current << 7) | (byte & 0x7F)
        if not byte & 0x80:
            arcs.append(current)
            current = 0
        elif index == len(value) - 1:
            raise DerError("truncated OID arc")
    first = arcs[0]
    if first < 40:
        head = [0, first]
    elif first < 80:
        head = [1, first - 40]
    else:
        head = [2, first - 80]
    return ".".join(str(arc) for arc in head + arcs[1:])
