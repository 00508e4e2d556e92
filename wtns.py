"""
wtns.py

Reader for the header of the binary witness files written by the circom
witness calculator (.wtns, iden3 binary container format):

    "wtns" | version:u32 | n_sections:u32 | { type:u32 | size:u64 | payload }*

Section 1 (header) payload: n8:u32 | prime:n8 bytes LE | n_witness:u32.
Only the header is decoded; the values themselves are exported through snarkjs.
"""

import struct
from dataclasses import dataclass
from pathlib import Path
from typing import Union

WTNS_MAGIC = b"wtns"
HEADER_SECTION = 1


@dataclass
class WtnsHeader:
    version: int
    field_size: int  # n8, bytes per field element
    prime: int
    num_witness: int


def read_wtns_header(path: Union[str, Path]) -> WtnsHeader:
    """
    Parse the header section of a .wtns file.

    :raises ValueError: the file is truncated or not a wtns container
    """
    data = Path(path).read_bytes()
    if len(data) < 12 or data[:4] != WTNS_MAGIC:
        raise ValueError(f"{path} is not a wtns file")
    version, n_sections = struct.unpack_from("<II", data, 4)
    pos = 12
    for _ in range(n_sections):
        if pos + 12 > len(data):
            break
        section_type, size = struct.unpack_from("<IQ", data, pos)
        pos += 12
        if section_type == HEADER_SECTION:
            if pos + 4 > len(data):
                break
            (n8,) = struct.unpack_from("<I", data, pos)
            if pos + 4 + n8 + 4 > len(data):
                break
            prime = int.from_bytes(data[pos + 4:pos + 4 + n8], "little")
            (n_witness,) = struct.unpack_from("<I", data, pos + 4 + n8)
            return WtnsHeader(version=version, field_size=n8, prime=prime, num_witness=n_witness)
        pos += size
    raise ValueError(f"{path}: wtns header section missing or truncated")
