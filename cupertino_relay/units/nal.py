"""
H.264 NAL Unit Utilities
========================

Splitting and classification helpers used by the RTSP source.

The relay itself never looks inside a payload; these helpers only exist so
the source can cut demuxed access units into NAL units and label them for
logging.
"""

from typing import Dict, Iterator, List, Tuple

NAL_UNIT_TYPE_NON_IDR_SLICE = 1
NAL_UNIT_TYPE_PARTITION_A = 2
NAL_UNIT_TYPE_PARTITION_B = 3
NAL_UNIT_TYPE_PARTITION_C = 4
NAL_UNIT_TYPE_IDR_SLICE = 5
NAL_UNIT_TYPE_SEI = 6
NAL_UNIT_TYPE_SPS = 7
NAL_UNIT_TYPE_PPS = 8
NAL_UNIT_TYPE_AUD = 9
NAL_UNIT_TYPE_EOS = 10
NAL_UNIT_TYPE_FILLER_DATA = 12

NAL_TYPE_NAMES: Dict[int, str] = {
    NAL_UNIT_TYPE_NON_IDR_SLICE: "NON_IDR_SLICE",
    NAL_UNIT_TYPE_PARTITION_A: "PARTITION_A",
    NAL_UNIT_TYPE_PARTITION_B: "PARTITION_B",
    NAL_UNIT_TYPE_PARTITION_C: "PARTITION_C",
    NAL_UNIT_TYPE_IDR_SLICE: "IDR_SLICE",
    NAL_UNIT_TYPE_SEI: "SEI",
    NAL_UNIT_TYPE_SPS: "SPS",
    NAL_UNIT_TYPE_PPS: "PPS",
    NAL_UNIT_TYPE_AUD: "AUD",
    NAL_UNIT_TYPE_EOS: "EOS",
    NAL_UNIT_TYPE_FILLER_DATA: "FILLER_DATA",
}


def nal_unit_type(nalu: bytes) -> int:
    """
    Return the NAL unit type (low 5 bits of the header byte).

    Examples:
        >>> nal_unit_type(bytes([0x67, 0x42]))
        7
        >>> nal_unit_type(bytes([0x65]))
        5
    """
    if not nalu:
        raise ValueError("Empty NAL unit has no header")
    return nalu[0] & 0x1F


def nal_type_name(nal_type: int) -> str:
    """Human readable name for a NAL unit type"""
    return NAL_TYPE_NAMES.get(nal_type, "Unhandled NAL Type")


def has_start_code(data: bytes) -> bool:
    """True if data begins with an Annex B start code (00 00 01 or 00 00 00 01)"""
    return data[:3] == b"\x00\x00\x01" or data[:4] == b"\x00\x00\x00\x01"


def split_annexb(data: bytes) -> Iterator[bytes]:
    """
    Split an Annex B byte stream into NAL units (start codes removed).

    Leading bytes before the first start code, and empty units between two
    consecutive start codes, are skipped.

    Examples:
        >>> list(split_annexb(b"\\x00\\x00\\x00\\x01\\x67\\x42\\x00\\x00\\x01\\x68\\xce"))
        [b'gB', b'h\\xce']
    """
    length = len(data)
    start = _find_start_code(data, 0)
    while start is not None:
        payload_start = start + (4 if data[start:start + 4] == b"\x00\x00\x00\x01" else 3)
        nxt = _find_start_code(data, payload_start)
        end = nxt if nxt is not None else length

        nalu = data[payload_start:end]
        # trailing_zero_8bits belong to the next start code
        while nxt is not None and nalu.endswith(b"\x00"):
            nalu = nalu[:-1]
        if nalu:
            yield nalu

        start = nxt


def _find_start_code(data: bytes, offset: int):
    idx = data.find(b"\x00\x00\x01", offset)
    if idx < 0:
        return None
    if idx > offset and data[idx - 1] == 0:
        return idx - 1
    return idx


def split_length_prefixed(data: bytes, length_size: int = 4) -> Iterator[bytes]:
    """
    Split an AVCC (length-prefixed) access unit into NAL units.

    Raises:
        ValueError: If a length prefix or a NAL unit runs past the end of data
    """
    if length_size not in (1, 2, 4):
        raise ValueError(f"Invalid NAL length size: {length_size}")

    offset = 0
    length = len(data)
    while offset + length_size <= length:
        nalu_size = int.from_bytes(data[offset:offset + length_size], "big")
        offset += length_size
        if offset + nalu_size > length:
            raise ValueError(
                f"Truncated NAL unit: need {nalu_size} bytes at offset {offset}, "
                f"only {length - offset} available"
            )
        if nalu_size:
            yield data[offset:offset + nalu_size]
        offset += nalu_size

    if offset < length:
        raise ValueError(
            f"Truncated NAL length prefix: {length - offset} trailing bytes at offset {offset}"
        )


def parse_parameter_sets(extradata: bytes) -> Tuple[List[bytes], List[bytes], int]:
    """
    Extract SPS/PPS from codec extradata.

    Handles both AVCDecoderConfigurationRecord (avcC, first byte 0x01) and
    Annex B extradata (as produced for RTSP sprop-parameter-sets).

    Returns:
        (sps_list, pps_list, length_size) where length_size is 0 for Annex B

    Raises:
        ValueError: If an avcC record is shorter than it declares
    """
    if not extradata:
        return [], [], 0

    if extradata[0] != 1:
        sps, pps = [], []
        for nalu in split_annexb(extradata):
            nal_type = nal_unit_type(nalu)
            if nal_type == NAL_UNIT_TYPE_SPS:
                sps.append(nalu)
            elif nal_type == NAL_UNIT_TYPE_PPS:
                pps.append(nalu)
        return sps, pps, 0

    if len(extradata) < 7:
        raise ValueError("avcC record too short")

    length_size = (extradata[4] & 0x03) + 1
    offset = 5
    total = len(extradata)
    sps, pps = [], []
    for target, count_mask in ((sps, 0x1F), (pps, 0xFF)):
        if offset >= total:
            raise ValueError("avcC record truncated")
        count = extradata[offset] & count_mask
        offset += 1
        for _ in range(count):
            if offset + 2 > total:
                raise ValueError("avcC record truncated")
            size = int.from_bytes(extradata[offset:offset + 2], "big")
            offset += 2
            if offset + size > total:
                raise ValueError("avcC record truncated")
            target.append(extradata[offset:offset + size])
            offset += size

    return sps, pps, length_size
