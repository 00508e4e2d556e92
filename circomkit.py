"""
circomkit.py

Pipeline orchestrator. Drives the external toolchain through the stages of a
circuit's life:

  compile          circom -> <build>/<name>.r1cs, <name>_js/<name>.wasm, <name>.sym
  generate_witness node generate_witness.js -> <build>/witness.wtns
  setup            snarkjs <protocol> setup + zkey export verificationkey
  prove            witness + snarkjs <protocol> prove -> proof.json, public.json
  verify           snarkjs <protocol> verify
  export_verifier  snarkjs zkey export solidityverifier
  calldata         snarkjs zkey export soliditycalldata

Every stage launches one external process and waits for it. Artifacts live
at deterministic paths under <dir_build>/<circuit name>; their presence on
disk is the only cache. Fixed temp file names are shared by all operations on
the same circuit, so callers must not run them concurrently.
"""

import logging
import re
import shutil
import subprocess
from contextlib import suppress
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from config import DEFAULT_CONFIG, CircomkitConfig, load_config, load_default_config
from errors import (
    CircuitNotFound,
    CompilationFailed,
    InvalidConfig,
    InvalidSignals,
    ProofGenerationFailed,
    PtauNotFound,
    VerificationFailed,
    WitnessGenerationFailed,
)
from main_component import write_main_component
from models import (
    CircuitArtifacts,
    CircuitConfig,
    CircuitInfo,
    CircuitSignals,
    Proof,
    PublicSignals,
    VerificationKey,
    Witness,
)
from signals import parse_signals
from symbols import decode_signals, parse_symbols
from utils import check_command, ensure_dir, read_json, run_command, write_json
from wtns import read_wtns_header

logger = logging.getLogger("circomkit")

# snarkjs reports verification results only as text
INVALID_PROOF_MARKERS = ("Invalid proof", "INVALID")
VALID_PROOF_MARKERS = ("OK", "valid")

RE_INFO = re.compile(r"(Constraints|Private Inputs|Public Inputs|Outputs|Labels|Wires)\s*:\s*(\d+)", re.IGNORECASE)
_INFO_FIELDS = {
    "constraints": "constraints",
    "private inputs": "private_inputs",
    "public inputs": "public_inputs",
    "outputs": "public_outputs",
    "labels": "labels",
    "wires": "wires",
}


def parse_r1cs_info(text: str) -> CircuitInfo:
    """
    Parse the text report of `snarkjs r1cs info`, e.g.

        [INFO]  snarkJS: # of Constraints: 1
        [INFO]  snarkJS: # of Private Inputs: 2
    """
    info = CircuitInfo()
    for line in text.splitlines():
        m = RE_INFO.search(line)
        if m:
            setattr(info, _INFO_FIELDS[m.group(1).lower()], int(m.group(2)))
    return info


def has_invalid_marker(text: str) -> bool:
    """Case-insensitive search for an invalid-proof report."""
    lowered = text.lower()
    return any(marker.lower() in lowered for marker in INVALID_PROOF_MARKERS)


def is_valid_output(stdout: str) -> bool:
    """
    Interpret the stdout of a verify command that exited with status 0.
    """
    if has_invalid_marker(stdout):
        return False
    return any(marker in stdout for marker in VALID_PROOF_MARKERS)


def _remove_quietly(*paths: Path) -> None:
    for p in paths:
        with suppress(OSError):
            p.unlink()


class Circomkit:
    """
    Orchestrator bound to one validated configuration.

    Typical usage:
        kit = Circomkit(CircomkitConfig(dir_build="build"))
        circuit = CircuitConfig("multiplier_3", template="Multiplier", params=(3,))
        kit.compile(circuit)
        kit.setup(circuit, "ptau/powersOfTau28_hez_final_08.ptau")
        proof, public = kit.prove(circuit, {"in": [2, 3, 4]})
        assert kit.verify(circuit, proof, public)
    """

    def __init__(self, config: Optional[CircomkitConfig] = None):
        self.config = config if config is not None else DEFAULT_CONFIG
        self.config.validate()
        self.circuits: Dict[str, CircuitConfig] = {}

    @classmethod
    def from_config_file(cls, path: Union[str, Path, None] = None) -> "Circomkit":
        """Load `path`, or circomkit.json from the working directory when omitted."""
        return cls(load_config(path) if path else load_default_config())

    # ------------------------------------------------------------------
    # circuits registry
    # ------------------------------------------------------------------

    def load_circuits(self) -> int:
        """
        Load circuit configurations from config.circuits (circuits.json) if the
        file exists. Returns the number of entries read.
        """
        path = self.config.circuits
        if not path.exists():
            return 0
        data = read_json(path)
        if not isinstance(data, dict):
            raise InvalidConfig(f"{path} must map circuit names to configurations")
        for name, entry in data.items():
            self.circuits[name] = CircuitConfig.from_dict(name, entry)
        logger.info("Loaded %d circuit configurations", len(data))
        return len(data)

    def add_circuit(self, circuit: CircuitConfig) -> None:
        self.circuits[circuit.name] = circuit

    def get_circuit(self, name: str) -> Optional[CircuitConfig]:
        return self.circuits.get(name)

    # ------------------------------------------------------------------
    # deterministic paths
    # ------------------------------------------------------------------

    def build_dir(self, circuit: CircuitConfig) -> Path:
        return self.config.build_path(circuit.name)

    def _wasm_dir(self, circuit: CircuitConfig) -> Path:
        return self.build_dir(circuit) / f"{circuit.name}_js"

    def _wasm_path(self, circuit: CircuitConfig) -> Path:
        return self._wasm_dir(circuit) / f"{circuit.name}.wasm"

    def _r1cs_path(self, circuit: CircuitConfig) -> Path:
        return self.build_dir(circuit) / f"{circuit.name}.r1cs"

    def _sym_path(self, circuit: CircuitConfig) -> Path:
        return self.build_dir(circuit) / f"{circuit.name}.sym"

    def _pkey_path(self, circuit: CircuitConfig) -> Path:
        return self.build_dir(circuit) / f"{self.config.protocol}_pkey.zkey"

    def _vkey_path(self, circuit: CircuitConfig) -> Path:
        return self.build_dir(circuit) / f"{self.config.protocol}_vkey.json"

    def artifacts(self, circuit: CircuitConfig) -> CircuitArtifacts:
        """
        Artifact paths for a circuit; key paths are set only if present on disk.
        """
        pkey, vkey = self._pkey_path(circuit), self._vkey_path(circuit)
        return CircuitArtifacts(
            r1cs=self._r1cs_path(circuit),
            wasm=self._wasm_path(circuit),
            sym=self._sym_path(circuit),
            pkey=pkey if pkey.exists() else None,
            vkey=vkey if vkey.exists() else None,
        )

    # ------------------------------------------------------------------
    # external commands
    # ------------------------------------------------------------------

    def _run(self, command: str, args: List[Any]) -> subprocess.CompletedProcess:
        return run_command(CircomkitConfig.command_argv(command) + list(args), tool=command)

    def _snarkjs(self, *args: Any) -> subprocess.CompletedProcess:
        return self._run(self.config.snarkjs_command(), list(args))

    # ------------------------------------------------------------------
    # stages
    # ------------------------------------------------------------------

    def generate_main_component(self, circuit: CircuitConfig) -> Path:
        return write_main_component(circuit, self.config)

    def compile(self, circuit: CircuitConfig) -> CircuitArtifacts:
        logger.info("Compiling circuit: %s", circuit.name)
        build_dir = ensure_dir(self.build_dir(circuit))
        main_path = self.generate_main_component(circuit)

        args: List[Any] = [
            main_path, "--r1cs", "--wasm", "--sym",
            "-o", build_dir,
            "-p", str(self.config.prime),
            f"--O{self.config.optimization}",
        ]
        for include in self.config.include:
            args += ["-l", include]

        circom = self.config.circom_command()
        check_command(self._run(circom, args), circom)

        artifacts = CircuitArtifacts(
            r1cs=self._r1cs_path(circuit),
            wasm=self._wasm_path(circuit),
            sym=self._sym_path(circuit),
        )
        missing = [str(p) for p in (artifacts.r1cs, artifacts.wasm, artifacts.sym) if not p.exists()]
        if missing:
            raise CompilationFailed(f"{circom} exited successfully but did not produce: {', '.join(missing)}")
        logger.info("Circuit compiled successfully: %s", circuit.name)
        return artifacts

    def generate_witness(self, circuit: CircuitConfig, inputs: CircuitSignals) -> Witness:
        """
        Compute a witness for `inputs`. A constraint violation makes the
        witness calculator exit nonzero, reported as WitnessGenerationFailed.
        """
        logger.info("Generating witness for: %s", circuit.name)
        build_dir = self.build_dir(circuit)
        wasm = self._wasm_path(circuit)
        if not wasm.exists():
            raise CircuitNotFound(wasm)

        try:
            input_path = write_json(build_dir / "input.json", inputs)
        except (TypeError, ValueError) as e:
            raise InvalidSignals(f"inputs are not JSON serializable: {e}") from e
        witness_path = build_dir / "witness.wtns"

        result = self._run(self.config.node_command(), [
            self._wasm_dir(circuit) / "generate_witness.js", wasm, input_path, witness_path,
        ])
        if result.returncode != 0:
            raise WitnessGenerationFailed(result.stderr or result.stdout)

        try:
            header = read_wtns_header(witness_path)
        except (OSError, ValueError) as e:
            raise WitnessGenerationFailed(f"unreadable witness file: {e}") from e
        logger.info("Witness generated successfully (%d signals)", header.num_witness)
        return Witness(path=witness_path, num_signals=header.num_witness)

    def setup(self, circuit: CircuitConfig, ptau_path: Union[str, Path]) -> CircuitArtifacts:
        logger.info("Setting up keys for: %s", circuit.name)
        r1cs = self._r1cs_path(circuit)
        if not r1cs.exists():
            raise CircuitNotFound(r1cs)
        ptau = Path(ptau_path)
        if not ptau.exists():
            raise PtauNotFound(ptau)

        snarkjs = self.config.snarkjs_command()
        pkey, vkey = self._pkey_path(circuit), self._vkey_path(circuit)
        check_command(self._snarkjs(str(self.config.protocol), "setup", r1cs, ptau, pkey), snarkjs)
        check_command(self._snarkjs("zkey", "export", "verificationkey", pkey, vkey), snarkjs)

        logger.info("Setup completed successfully")
        return CircuitArtifacts(
            r1cs=r1cs,
            wasm=self._wasm_path(circuit),
            sym=self._sym_path(circuit),
            pkey=pkey,
            vkey=vkey,
        )

    def prove(self, circuit: CircuitConfig, inputs: CircuitSignals) -> Tuple[Proof, PublicSignals]:
        logger.info("Generating proof for: %s", circuit.name)
        witness = self.generate_witness(circuit, inputs)

        pkey = self._pkey_path(circuit)
        if not pkey.exists():
            raise ProofGenerationFailed("Proving key not found. Run setup first.")

        protocol = str(self.config.protocol)
        build_dir = self.build_dir(circuit)
        proof_path = build_dir / f"{protocol}_proof.json"
        public_path = build_dir / "public.json"

        result = self._snarkjs(protocol, "prove", pkey, witness.path, proof_path, public_path)
        if result.returncode != 0:
            raise ProofGenerationFailed(result.stderr or result.stdout)

        proof_data = read_json(proof_path)
        public = read_json(public_path)
        if not isinstance(proof_data, dict) or not isinstance(public, list):
            raise ProofGenerationFailed(f"unexpected content in {proof_path} or {public_path}")

        logger.info("Proof generated successfully")
        return Proof(protocol=self.config.protocol, data=proof_data), PublicSignals(public)

    def verify(self, circuit: CircuitConfig, proof: Proof, public_signals: PublicSignals) -> bool:
        """
        Check a proof. An explicit invalid-proof report from snarkjs yields
        False; any other failure raises VerificationFailed.
        """
        logger.info("Verifying proof for: %s", circuit.name)
        vkey = self._vkey_path(circuit)
        if not vkey.exists():
            raise VerificationFailed("Verification key not found. Run setup first.")

        build_dir = self.build_dir(circuit)
        proof_path = build_dir / "temp_proof.json"
        public_path = build_dir / "temp_public.json"
        try:
            write_json(proof_path, proof.data, indent=None)
            write_json(public_path, list(public_signals), indent=None)
            result = self._snarkjs(str(self.config.protocol), "verify", vkey, public_path, proof_path)
        finally:
            _remove_quietly(proof_path, public_path)

        if result.returncode != 0:
            if has_invalid_marker(result.stderr):
                logger.info("Proof verification result: False")
                return False
            raise VerificationFailed(result.stderr or result.stdout)

        valid = is_valid_output(result.stdout)
        logger.info("Proof verification result: %s", valid)
        return valid

    # ------------------------------------------------------------------
    # exports and reports
    # ------------------------------------------------------------------

    def export_verifier(self, circuit: CircuitConfig) -> Path:
        """Export a Solidity verifier contract for the circuit's proving key."""
        logger.info("Exporting Solidity verifier for: %s", circuit.name)
        pkey = self._pkey_path(circuit)
        if not pkey.exists():
            raise ProofGenerationFailed("Proving key not found. Run setup first.")
        verifier = self.build_dir(circuit) / f"{self.config.protocol}_verifier.sol"
        check_command(
            self._snarkjs("zkey", "export", "solidityverifier", pkey, verifier),
            self.config.snarkjs_command(),
        )
        logger.info("Verifier exported: %s", verifier)
        return verifier

    def calldata(self, circuit: CircuitConfig, proof: Proof, public_signals: PublicSignals) -> str:
        """Solidity calldata for verifying `proof` on chain."""
        build_dir = self.build_dir(circuit)
        proof_path = build_dir / "calldata_proof.json"
        public_path = build_dir / "calldata_public.json"
        try:
            write_json(proof_path, proof.data, indent=None)
            write_json(public_path, list(public_signals), indent=None)
            result = self._snarkjs("zkey", "export", "soliditycalldata", public_path, proof_path)
        finally:
            _remove_quietly(proof_path, public_path)
        check_command(result, self.config.snarkjs_command())
        return result.stdout.strip()

    def verification_key(self, circuit: CircuitConfig) -> VerificationKey:
        vkey = self._vkey_path(circuit)
        if not vkey.exists():
            raise VerificationFailed("Verification key not found. Run setup first.")
        return VerificationKey(protocol=self.config.protocol, data=read_json(vkey))

    def export_witness_json(self, circuit: CircuitConfig, witness: Witness) -> Optional[List[str]]:
        """
        Export the witness vector as decimal strings. Returns None when the
        installed snarkjs cannot export witnesses.
        """
        out = self.build_dir(circuit) / "witness.json"
        result = self._snarkjs("wtns", "export", "json", witness.path, out)
        if result.returncode != 0:
            logger.warning("Witness export unsupported: %s", result.stderr.strip())
            return None
        return [str(v) for v in read_json(out)]

    def read_signals(self, circuit: CircuitConfig, witness: Witness) -> CircuitSignals:
        """
        Named signals of the root component, decoded from the witness with the
        symbol table. Empty when witness export is unsupported.
        """
        sym = self._sym_path(circuit)
        if not sym.exists():
            raise CircuitNotFound(sym)
        values = self.export_witness_json(circuit, witness)
        if values is None:
            return {}
        entries = parse_symbols(sym.read_text(encoding="utf-8"))
        return decode_signals(entries, values)

    def info(self, circuit: CircuitConfig) -> CircuitInfo:
        r1cs = self._r1cs_path(circuit)
        if not r1cs.exists():
            raise CircuitNotFound(r1cs)
        result = check_command(self._snarkjs("r1cs", "info", r1cs), self.config.snarkjs_command())
        return parse_r1cs_info(result.stdout)

    # ------------------------------------------------------------------
    # housekeeping
    # ------------------------------------------------------------------

    def clean(self, circuit: CircuitConfig) -> None:
        build_dir = self.build_dir(circuit)
        if build_dir.exists():
            shutil.rmtree(build_dir)
            logger.info("Cleaned build directory: %s", build_dir)

    def clean_all(self) -> None:
        if self.config.dir_build.exists():
            shutil.rmtree(self.config.dir_build)
            logger.info("Cleaned all build artifacts")

    def read_inputs(self, circuit: str, input_name: str) -> CircuitSignals:
        path = self.config.input_path(circuit, input_name)
        if not path.exists():
            raise InvalidSignals(f"Input file not found: {path}")
        return parse_signals(path.read_text(encoding="utf-8"))
