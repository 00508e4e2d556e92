"""
runner.py
High-level pipeline runner. Chains the orchestrator stages for one circuit
(compile -> info -> ptau -> setup -> prove -> verify) and prints a compact
summary for human reading.
"""

from pathlib import Path
from typing import Any, Dict, Optional, Union

from circomkit import Circomkit
from models import CircuitConfig, CircuitInfo, CircuitSignals
from ptau import download_ptau, get_recommended_ptau


def resolve_ptau(kit: Circomkit, circuit: CircuitConfig, info: Optional[CircuitInfo] = None) -> Path:
    """
    Path of the recommended PTAU for a compiled circuit, downloading it into
    the configured ptau directory when missing.
    """
    info = info if info is not None else kit.info(circuit)
    recommended = get_recommended_ptau(max(info.constraints, 1))
    return download_ptau(recommended, kit.config.dir_ptau)


def run_pipeline(kit: Circomkit,
                 circuit: CircuitConfig,
                 inputs: CircuitSignals,
                 ptau_path: Union[str, Path, None] = None,
                 quiet: bool = False) -> Dict[str, Any]:
    """
    Run every stage for `circuit` with `inputs`.

    :param kit: configured orchestrator
    :param circuit: circuit instance to build
    :param inputs: input signals used for the proof
    :param ptau_path: trusted-setup parameters; recommended file is fetched if None
    :param quiet: if True, suppress printing
    :return: summary dict (artifacts, info, public signals, validity)
    """
    if not quiet:
        print(f"[runner] Compiling {circuit.name} ...")
    artifacts = kit.compile(circuit)
    info = kit.info(circuit)

    ptau = Path(ptau_path) if ptau_path else resolve_ptau(kit, circuit, info)
    if not quiet:
        print(f"[runner] Setting up keys with {ptau} ...")
    artifacts = kit.setup(circuit, ptau)

    if not quiet:
        print("[runner] Proving ...")
    proof, public_signals = kit.prove(circuit, inputs)
    valid = kit.verify(circuit, proof, public_signals)

    summary = {
        "circuit": circuit.name,
        "protocol": str(kit.config.protocol),
        "artifacts": artifacts,
        "info": info,
        "public_signals": list(public_signals),
        "valid": valid,
    }
    if not quiet:
        print_summary(summary)
    return summary


def print_summary(summary: Dict[str, Any]) -> None:
    """
    Print a compact summary of a pipeline run.
    """
    info: CircuitInfo = summary["info"]
    print("=== Pipeline Summary ===")
    print(f"Circuit: {summary['circuit']} ({summary['protocol']})")
    print(f"Constraints: {info.constraints}")
    print(f"Inputs: {info.private_inputs} private, {info.public_inputs} public")
    print(f"Outputs: {info.public_outputs}")
    print(f"Public signals: {', '.join(summary['public_signals']) or '-'}")
    print(f"Proof valid: {summary['valid']}")
    print("========================")
