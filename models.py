"""
models.py

Data model shared by the pipeline stages and the testers:
 - Protocol / Prime choices understood by snarkjs and circom
 - SignalValue / CircuitSignals (JSON-shaped input and output signals)
 - CircuitConfig (one logical circuit instance, immutable)
 - artifact, witness, proof and report records produced by the stages
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from errors import InvalidConfig

# A signal is a decimal string, a native int, or an arbitrarily nested list of those.
SignalValue = Union[str, int, List["SignalValue"]]
CircuitSignals = Dict[str, SignalValue]


class Protocol(str, Enum):
    GROTH16 = "groth16"
    PLONK = "plonk"
    FFLONK = "fflonk"

    def __str__(self) -> str:
        return self.value


class Prime(str, Enum):
    BN128 = "bn128"
    BLS12381 = "bls12381"
    GOLDILOCKS = "goldilocks"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class CircuitConfig:
    """
    Configuration of a circuit instance.

    `file` is relative to the circuits directory; `absolute_file`, when set,
    always takes precedence over it. Instances are immutable: the `with_*`
    builders return modified copies.
    """
    name: str
    file: str = ""
    absolute_file: Optional[Path] = None
    template: str = ""
    params: Tuple[int, ...] = ()
    public: Tuple[str, ...] = ()

    def __post_init__(self):
        if not self.file:
            object.__setattr__(self, "file", f"{self.name}.circom")
        if not self.template:
            object.__setattr__(self, "template", self.name)
        if self.absolute_file is not None and not isinstance(self.absolute_file, Path):
            object.__setattr__(self, "absolute_file", Path(self.absolute_file))
        object.__setattr__(self, "params", tuple(int(p) for p in self.params))
        object.__setattr__(self, "public", tuple(str(s) for s in self.public))

    def with_file(self, file: str) -> "CircuitConfig":
        return replace(self, file=file)

    def with_absolute_file(self, path: Union[str, Path]) -> "CircuitConfig":
        return replace(self, absolute_file=Path(path))

    def with_template(self, template: str) -> "CircuitConfig":
        return replace(self, template=template)

    def with_params(self, params: Iterable[int]) -> "CircuitConfig":
        return replace(self, params=tuple(params))

    def with_public(self, public: Iterable[str]) -> "CircuitConfig":
        return replace(self, public=tuple(public))

    def add_public(self, signal: str) -> "CircuitConfig":
        return replace(self, public=self.public + (signal,))

    @property
    def has_absolute_file(self) -> bool:
        return self.absolute_file is not None

    @classmethod
    def from_dict(cls, name: str, data: Dict[str, Any]) -> "CircuitConfig":
        """
        Build a config from a circuits.json entry. The key of the entry is the
        instance name unless the entry carries its own "name". Both "public"
        and "pubs" are accepted for the public signal list, and a file given
        without extension gets ".circom" appended.
        """
        if not isinstance(data, dict):
            raise InvalidConfig(f"circuit '{name}' must be a JSON object, got {type(data).__name__}")
        try:
            params = tuple(int(p) for p in data.get("params", ()))
        except (TypeError, ValueError) as e:
            raise InvalidConfig(f"circuit '{name}' params must be integers: {e}") from e
        file = data.get("file", "")
        if file and not Path(file).suffix:
            file = f"{file}.circom"
        absolute = data.get("absolute_file") or data.get("absoluteFile")
        return cls(
            name=data.get("name", name),
            file=file,
            absolute_file=Path(absolute) if absolute else None,
            template=data.get("template", ""),
            params=params,
            public=tuple(data.get("public", data.get("pubs", ()))),
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "name": self.name,
            "file": self.file,
            "template": self.template,
            "params": list(self.params),
            "public": list(self.public),
        }
        if self.absolute_file is not None:
            out["absolute_file"] = str(self.absolute_file)
        return out


@dataclass
class CircuitArtifacts:
    r1cs: Path
    wasm: Path
    sym: Path
    pkey: Optional[Path] = None
    vkey: Optional[Path] = None


@dataclass
class Witness:
    path: Path
    # number of field elements in the .wtns file; None when not read
    num_signals: Optional[int] = None


@dataclass
class Proof:
    protocol: Protocol
    data: Dict[str, Any] = field(default_factory=dict)


class PublicSignals(list):
    """
    Ordered public signals (decimal strings). Order is protocol-significant.
    """

    def __init__(self, signals: Iterable[Any] = ()):
        super().__init__(str(s) for s in signals)


@dataclass
class VerificationKey:
    protocol: Protocol
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass
class CircuitInfo:
    constraints: int = 0
    private_inputs: int = 0
    public_inputs: int = 0
    public_outputs: int = 0
    labels: int = 0
    wires: int = 0


@dataclass
class WitnessTestResult:
    passed: bool
    outputs: CircuitSignals
    expected: Optional[CircuitSignals] = None
    error: Optional[str] = None


@dataclass
class ProofTestResult:
    valid: bool
    proof: Optional[Proof] = None
    public_signals: Optional[PublicSignals] = None
    error: Optional[str] = None
