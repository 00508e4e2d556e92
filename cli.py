#!/usr/bin/env python3
"""
cli.py
Command-line entrypoint for the circuit build-and-prove pipeline.

Circuits are looked up by name in circuits.json; inputs by name under
<dir_inputs>/<circuit>/<input>.json.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from circomkit import Circomkit
from config import load_config, load_default_config
from errors import CircomkitError
from models import Proof, PublicSignals
from ptau import download_ptau, get_recommended_ptau
from runner import resolve_ptau, run_pipeline
from utils import read_json, setup_basic_logger


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="circuitkit",
        description="Compile, set up, prove and verify Circom circuits.",
    )
    p.add_argument(
        "--config",
        "-c",
        default=None,
        help="JSON config file. Default: ./circomkit.json when present.",
    )
    p.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Log every external command.",
    )
    sub = p.add_subparsers(dest="command", required=True)

    def circuit_cmd(name, help_text, with_input=False):
        sp = sub.add_parser(name, help=help_text)
        sp.add_argument("circuit", help="Circuit name in circuits.json.")
        if with_input:
            sp.add_argument("input", help="Input name under the inputs directory.")
        return sp

    circuit_cmd("compile", "Generate the main component and compile the circuit.")
    circuit_cmd("witness", "Compute a witness and print the decoded signals.", with_input=True)
    setup = circuit_cmd("setup", "Create proving and verification keys.")
    setup.add_argument("--ptau", default=None, help="PTAU file. Default: recommended file, downloaded if missing.")
    circuit_cmd("prove", "Generate a proof for an input.", with_input=True)
    circuit_cmd("verify", "Verify the last proof generated for the circuit.")
    circuit_cmd("contract", "Export a Solidity verifier contract.")
    circuit_cmd("calldata", "Print Solidity calldata for the last proof.")
    circuit_cmd("info", "Print constraint system statistics.")
    circuit_cmd("clean", "Remove the circuit's build directory.")
    circuit_cmd("ptau", "Download the PTAU file recommended for the circuit.")
    pipe = circuit_cmd("pipeline", "Run compile, setup, prove and verify.", with_input=True)
    pipe.add_argument("--ptau", default=None, help="PTAU file to use for setup.")
    return p


def _last_proof(kit: Circomkit, circuit):
    build_dir = kit.build_dir(circuit)
    protocol = kit.config.protocol
    proof = Proof(protocol=protocol, data=read_json(build_dir / f"{protocol}_proof.json"))
    return proof, PublicSignals(read_json(build_dir / "public.json"))


def run_command_line(args: argparse.Namespace, kit: Circomkit) -> int:
    kit.load_circuits()
    circuit = kit.get_circuit(args.circuit)
    if circuit is None:
        print(f"ERROR: circuit not found in {kit.config.circuits}: {args.circuit}", file=sys.stderr)
        return 2

    cmd = args.command
    if cmd == "compile":
        artifacts = kit.compile(circuit)
        print(f"Compiled {circuit.name}: {artifacts.r1cs}")
    elif cmd == "witness":
        witness = kit.generate_witness(circuit, kit.read_inputs(circuit.name, args.input))
        print(f"Witness: {witness.path} ({witness.num_signals} signals)")
        print(json.dumps(kit.read_signals(circuit, witness), indent=2))
    elif cmd == "setup":
        ptau = Path(args.ptau) if args.ptau else resolve_ptau(kit, circuit)
        artifacts = kit.setup(circuit, ptau)
        print(f"Proving key: {artifacts.pkey}")
        print(f"Verification key: {artifacts.vkey}")
    elif cmd == "prove":
        proof, public_signals = kit.prove(circuit, kit.read_inputs(circuit.name, args.input))
        print(json.dumps({"proof": proof.data, "publicSignals": list(public_signals)}, indent=2))
    elif cmd == "verify":
        proof, public_signals = _last_proof(kit, circuit)
        valid = kit.verify(circuit, proof, public_signals)
        print("Proof is valid" if valid else "Proof is INVALID")
        return 0 if valid else 1
    elif cmd == "contract":
        print(f"Verifier contract: {kit.export_verifier(circuit)}")
    elif cmd == "calldata":
        proof, public_signals = _last_proof(kit, circuit)
        print(kit.calldata(circuit, proof, public_signals))
    elif cmd == "info":
        info = kit.info(circuit)
        for key, value in vars(info).items():
            print(f"{key}: {value}")
    elif cmd == "clean":
        kit.clean(circuit)
    elif cmd == "ptau":
        recommended = get_recommended_ptau(max(kit.info(circuit).constraints, 1))
        print(f"PTAU: {download_ptau(recommended, kit.config.dir_ptau)}")
    elif cmd == "pipeline":
        summary = run_pipeline(kit, circuit, kit.read_inputs(circuit.name, args.input), ptau_path=args.ptau)
        return 0 if summary["valid"] else 1
    return 0


def main(argv=None):
    argv = argv if argv is not None else sys.argv[1:]
    parser = build_arg_parser()
    args = parser.parse_args(argv)

    try:
        cfg = load_config(args.config) if args.config else load_default_config()
        verbose = args.verbose or cfg.verbose
        setup_basic_logger("", level=logging.DEBUG if verbose else logging.INFO)
        kit = Circomkit(cfg)
        return run_command_line(args, kit)
    except (CircomkitError, FileNotFoundError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
