"""
testers.py

Stateful test harnesses on top of the orchestrator.

Both testers walk a one-way state machine:

    uninitialized -> compiled [-> keys ready]

Each transition runs at most once per tester instance; later calls are
no-ops. The flags are not synchronized with the build directory, so a
tester assumes it is the only writer for its circuit while it lives.

Example:
    tester = WitnessTester.from_file("adder_test", "circuits/adder.circom", "Adder")
    tester.expect_output({"a": 5, "b": 7}, {"sum": 12})
    tester.expect_fail({"a": "x"})
"""

import logging
from pathlib import Path
from typing import Callable, Iterable, Optional, Tuple, Union

from circomkit import Circomkit
from config import CircomkitConfig, load_default_config
from errors import CircomkitError, CircuitNotFound, ConstraintNotSatisfied, ExpectationFailed
from models import (
    CircuitConfig,
    CircuitSignals,
    Proof,
    ProofTestResult,
    PublicSignals,
    Witness,
    WitnessTestResult,
)
from signals import compare_outputs

logger = logging.getLogger("testers")


class _CircuitTester:
    def __init__(self, circuit: CircuitConfig, config: Optional[CircomkitConfig] = None):
        self.circuit = circuit
        self.circomkit = Circomkit(config if config is not None else load_default_config())
        self.compiled = False

    def ensure_compiled(self) -> None:
        if not self.compiled:
            self.circomkit.compile(self.circuit)
            self.compiled = True


class WitnessTester(_CircuitTester):
    """
    Witness-level assertions: does a witness exist for these inputs, and what
    are the resulting output signals.
    """

    @classmethod
    def from_file(cls,
                  test_name: str,
                  file_path: Union[str, Path],
                  template: str,
                  params: Iterable[int] = (),
                  public: Iterable[str] = (),
                  config: Optional[CircomkitConfig] = None) -> "WitnessTester":
        """
        Build a tester for `template` in `file_path`. Relative paths are
        resolved against the working directory; build artifacts go under the
        test name.
        """
        path = Path(file_path)
        if not path.is_absolute():
            path = Path.cwd() / path
        if not path.exists():
            raise CircuitNotFound(path)
        circuit = CircuitConfig(
            name=test_name,
            absolute_file=path,
            template=template,
            params=tuple(params),
            public=tuple(public),
        )
        return cls(circuit, config)

    def compute_witness(self, inputs: CircuitSignals) -> Witness:
        self.ensure_compiled()
        return self.circomkit.generate_witness(self.circuit, inputs)

    def read_outputs(self, witness: Witness) -> CircuitSignals:
        return self.circomkit.read_signals(self.circuit, witness)

    def expect_pass(self, inputs: CircuitSignals) -> CircuitSignals:
        """Compute a witness and return the decoded signals."""
        witness = self.compute_witness(inputs)
        return self.read_outputs(witness)

    def expect_fail(self, inputs: CircuitSignals) -> Exception:
        """
        Assert that no witness exists for `inputs`; returns the witness error.
        Any error raised while computing the witness counts as the expected
        failure. Compilation errors still propagate.
        """
        self.ensure_compiled()
        try:
            self.circomkit.generate_witness(self.circuit, inputs)
        except Exception as e:
            logger.debug("Witness generation failed as expected: %s", e)
            return e
        raise ExpectationFailed("Expected witness generation to fail, but it succeeded")

    def check_output(self, inputs: CircuitSignals, expected: CircuitSignals) -> WitnessTestResult:
        """
        Compare decoded outputs with `expected` without raising on mismatch.
        Every mismatch is collected into one "; "-joined diagnostic.
        """
        outputs = self.expect_pass(inputs)
        errors = compare_outputs(outputs, expected)
        return WitnessTestResult(
            passed=not errors,
            outputs=outputs,
            expected=expected,
            error="; ".join(errors) if errors else None,
        )

    def expect_output(self, inputs: CircuitSignals, expected: CircuitSignals) -> WitnessTestResult:
        result = self.check_output(inputs, expected)
        if not result.passed:
            raise ExpectationFailed(result.error)
        return result

    def expect_constraint_count(self, expected: int) -> None:
        self.ensure_compiled()
        info = self.circomkit.info(self.circuit)
        if info.constraints != expected:
            raise ConstraintNotSatisfied(expected=expected, actual=info.constraints)


class ProofTester(_CircuitTester):
    """
    Proof-level assertions: compiles, runs the trusted setup with the given
    PTAU file once, then proves and verifies.
    """

    def __init__(self,
                 circuit: CircuitConfig,
                 ptau_path: Union[str, Path],
                 config: Optional[CircomkitConfig] = None):
        super().__init__(circuit, config)
        self.ptau_path = Path(ptau_path)
        self.setup_complete = False

    def ensure_setup(self) -> None:
        if not self.setup_complete:
            self.ensure_compiled()
            self.circomkit.setup(self.circuit, self.ptau_path)
            self.setup_complete = True

    def generate_proof(self, inputs: CircuitSignals) -> Tuple[Proof, PublicSignals]:
        self.ensure_setup()
        return self.circomkit.prove(self.circuit, inputs)

    def verify_proof(self, proof: Proof, public_signals: PublicSignals) -> bool:
        self.ensure_setup()
        return self.circomkit.verify(self.circuit, proof, public_signals)

    def prove_and_verify(self, inputs: CircuitSignals) -> ProofTestResult:
        proof, public_signals = self.generate_proof(inputs)
        valid = self.verify_proof(proof, public_signals)
        return ProofTestResult(valid=valid, proof=proof, public_signals=public_signals)

    def expect_valid_proof(self, inputs: CircuitSignals) -> ProofTestResult:
        result = self.prove_and_verify(inputs)
        if not result.valid:
            raise ExpectationFailed("Proof was generated but verification failed")
        return result

    def expect_invalid_inputs(self, inputs: CircuitSignals) -> CircomkitError:
        """Assert that proving fails for `inputs`; returns the error."""
        self.ensure_setup()
        try:
            self.circomkit.prove(self.circuit, inputs)
        except CircomkitError as e:
            return e
        raise ExpectationFailed("Expected proof generation to fail for invalid inputs, but it succeeded")

    def expect_tampered_fails(self,
                              inputs: CircuitSignals,
                              tamper: Callable[[PublicSignals], None]) -> None:
        """
        Prove `inputs`, let `tamper` mutate the public signals in place, and
        assert that verification rejects the result.
        """
        proof, public_signals = self.generate_proof(inputs)
        tamper(public_signals)
        if self.verify_proof(proof, public_signals):
            raise ExpectationFailed("Expected verification to fail for tampered signals, but it passed")

    def export_solidity_verifier(self) -> Path:
        self.ensure_setup()
        return self.circomkit.export_verifier(self.circuit)

    def get_calldata(self, inputs: CircuitSignals) -> str:
        proof, public_signals = self.generate_proof(inputs)
        return self.circomkit.calldata(self.circuit, proof, public_signals)
