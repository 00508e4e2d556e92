"""
symbols.py

Decode a witness vector into named signals using the symbol table (.sym)
emitted by circom.

Each .sym line is "label_index,witness_index,component_index,qualified.name",
e.g. "3,3,0,main.out[1]". The witness index points into the vector exported
by `snarkjs wtns export json`; signals removed by the optimizer carry -1.

Only signals that belong directly to the root component are kept; indexed
names such as out[1][0] are regrouped into nested lists.
"""

import re
from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

import numpy as np

from models import CircuitSignals, SignalValue

RE_INDEXED = re.compile(r"^([A-Za-z_$][A-Za-z0-9_$]*)((?:\[\d+\])*)$")
RE_INDEX = re.compile(r"\[(\d+)\]")


@dataclass
class SymbolEntry:
    label_index: int
    witness_index: int
    component_index: int
    name: str


def parse_symbols(text: str) -> List[SymbolEntry]:
    """
    Parse the content of a .sym file. Lines that do not have four
    comma-separated fields with integer indices are skipped.
    """
    entries: List[SymbolEntry] = []
    for line in text.splitlines():
        parts = line.strip().split(",", 3)
        if len(parts) < 4:
            continue
        try:
            label, wit, comp = int(parts[0]), int(parts[1]), int(parts[2])
        except ValueError:
            continue
        entries.append(SymbolEntry(label, wit, comp, parts[3].strip()))
    return entries


def split_indexed_name(name: str) -> Tuple[str, Tuple[int, ...]]:
    """
    "out[1][0]" -> ("out", (1, 0)); "sum" -> ("sum", ()).
    """
    m = RE_INDEXED.match(name)
    if not m:
        return name, ()
    return m.group(1), tuple(int(i) for i in RE_INDEX.findall(m.group(2)))


def _assemble(cells: List[Tuple[Tuple[int, ...], str]]) -> SignalValue:
    ndim = len(cells[0][0])
    cells = [c for c in cells if len(c[0]) == ndim]
    shape = tuple(max(idx[d] for idx, _ in cells) + 1 for d in range(ndim))
    arr = np.empty(shape, dtype=object)
    for idx, value in cells:
        arr[idx] = value
    return arr.tolist()


def decode_signals(entries: Sequence[SymbolEntry], witness: Sequence[str], prefix: str = "main") -> CircuitSignals:
    """
    Build the name -> value mapping of the root component's signals.

    :param entries: parsed symbol table
    :param witness: witness vector (decimal strings), index-aligned with the
                    witness indices of the symbol table
    :param prefix: name of the root component
    """
    root = prefix + "."
    scalars: Dict[str, SignalValue] = {}
    arrays: Dict[str, List[Tuple[Tuple[int, ...], str]]] = {}
    order: List[str] = []

    for entry in entries:
        if not entry.name.startswith(root):
            continue
        local = entry.name[len(root):]
        if "." in local:
            # belongs to a sub-component
            continue
        if entry.witness_index < 0 or entry.witness_index >= len(witness):
            continue
        value = str(witness[entry.witness_index])
        base, idx = split_indexed_name(local)
        if base not in scalars and base not in arrays:
            order.append(base)
        if idx:
            arrays.setdefault(base, []).append((idx, value))
        else:
            scalars[base] = value

    out: CircuitSignals = {}
    for base in order:
        if base in arrays:
            out[base] = _assemble(arrays[base])
        else:
            out[base] = scalars[base]
    return out
