"""
config.py
Pipeline configuration: defaults, JSON loader/saver, path resolution and the
external command names used for circom, snarkjs and node.

The configuration is a plain dataclass validated once at construction and
passed explicitly to the orchestrator; nothing here is global.
"""

import json
import logging
import shlex
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from errors import InvalidConfig
from models import Prime, Protocol

logger = logging.getLogger("config")

DEFAULT_CONFIG_FILE = "circomkit.json"

# camelCase keys found in circomkit.json -> dataclass field names
_KEY_ALIASES = {
    "dirCircuits": "dir_circuits",
    "dirInputs": "dir_inputs",
    "dirBuild": "dir_build",
    "dirPtau": "dir_ptau",
    "circomPath": "circom_path",
    "snarkjsPath": "snarkjs_path",
    "nodePath": "node_path",
    "circomVersion": "circom_version",
}

_PATH_FIELDS = ("dir_circuits", "dir_inputs", "dir_build", "dir_ptau", "circuits")


@dataclass(frozen=True)
class CircomkitConfig:
    version: str = "0.1.0"
    protocol: Protocol = Protocol.GROTH16
    prime: Prime = Prime.BN128
    optimization: int = 1
    verbose: bool = False
    dir_circuits: Path = Path("circuits")
    dir_inputs: Path = Path("inputs")
    dir_build: Path = Path("build")
    dir_ptau: Path = Path("ptau")
    circuits: Path = Path("circuits.json")
    include: List[Path] = field(default_factory=list)
    circom_path: Optional[str] = None
    snarkjs_path: Optional[str] = None
    node_path: Optional[str] = None
    circom_version: str = "2.1.9"

    def __post_init__(self):
        for name in _PATH_FIELDS:
            object.__setattr__(self, name, Path(getattr(self, name)))
        object.__setattr__(self, "include", [Path(p) for p in self.include])
        try:
            object.__setattr__(self, "protocol", Protocol(self.protocol))
            object.__setattr__(self, "prime", Prime(self.prime))
        except ValueError as e:
            raise InvalidConfig(str(e)) from e
        self.validate()

    def validate(self) -> None:
        if isinstance(self.optimization, bool) or self.optimization not in (0, 1, 2):
            raise InvalidConfig("Optimization level must be 0, 1, or 2")

    # ---- builders ----

    def with_protocol(self, protocol: Union[str, Protocol]) -> "CircomkitConfig":
        return replace(self, protocol=Protocol(protocol))

    def with_prime(self, prime: Union[str, Prime]) -> "CircomkitConfig":
        return replace(self, prime=Prime(prime))

    def with_optimization(self, level: int) -> "CircomkitConfig":
        return replace(self, optimization=min(level, 2))

    def with_verbose(self, verbose: bool) -> "CircomkitConfig":
        return replace(self, verbose=verbose)

    def with_circuits_dir(self, path: Union[str, Path]) -> "CircomkitConfig":
        return replace(self, dir_circuits=Path(path))

    def with_inputs_dir(self, path: Union[str, Path]) -> "CircomkitConfig":
        return replace(self, dir_inputs=Path(path))

    def with_build_dir(self, path: Union[str, Path]) -> "CircomkitConfig":
        return replace(self, dir_build=Path(path))

    def with_ptau_dir(self, path: Union[str, Path]) -> "CircomkitConfig":
        return replace(self, dir_ptau=Path(path))

    def with_include(self, path: Union[str, Path]) -> "CircomkitConfig":
        return replace(self, include=self.include + [Path(path)])

    def with_circom_path(self, path: str) -> "CircomkitConfig":
        return replace(self, circom_path=str(path))

    def with_snarkjs_path(self, path: str) -> "CircomkitConfig":
        return replace(self, snarkjs_path=str(path))

    def with_node_path(self, path: str) -> "CircomkitConfig":
        return replace(self, node_path=str(path))

    # ---- paths ----

    def circuit_path(self, file: str) -> Path:
        return self.dir_circuits / file

    def input_path(self, circuit: str, input_name: str) -> Path:
        return self.dir_inputs / circuit / f"{input_name}.json"

    def build_path(self, circuit: str) -> Path:
        return self.dir_build / circuit

    def ptau_path(self, filename: str) -> Path:
        return self.dir_ptau / filename

    def main_dir(self) -> Path:
        """Shared directory holding every generated main component."""
        return self.dir_build / "main"

    # ---- external commands ----

    def circom_command(self) -> str:
        return self.circom_path or "circom"

    def snarkjs_command(self) -> str:
        return self.snarkjs_path or "snarkjs"

    def node_command(self) -> str:
        return self.node_path or "node"

    @staticmethod
    def command_argv(command: str) -> List[str]:
        """Split a configured command such as "npx snarkjs" into argv form."""
        return shlex.split(command)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["protocol"] = str(self.protocol)
        data["prime"] = str(self.prime)
        for name in _PATH_FIELDS:
            data[name] = str(data[name])
        data["include"] = [str(p) for p in self.include]
        return data


DEFAULT_CONFIG = CircomkitConfig()


def _normalize_keys(data: Dict[str, Any]) -> Dict[str, Any]:
    known = {f.name for f in fields(CircomkitConfig)}
    out: Dict[str, Any] = {}
    for k, v in data.items():
        key = _KEY_ALIASES.get(k, k)
        if key not in known:
            logger.warning("Ignoring unknown configuration key: %s", k)
            continue
        out[key] = v
    return out


def load_config(path: Union[str, Path], base: CircomkitConfig = None) -> CircomkitConfig:
    """
    Load a JSON config file and merge it over base (shallow merge).

    :param path: path to JSON config file
    :param base: configuration to update (if None use DEFAULT_CONFIG)
    :return: merged, validated configuration
    """
    base = base if base is not None else DEFAULT_CONFIG
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    with p.open("r", encoding="utf-8") as fh:
        data = json.load(fh)
    if not isinstance(data, dict):
        raise InvalidConfig(f"{path} must contain a JSON object")
    return replace(base, **_normalize_keys(data))


def load_default_config(cwd: Union[str, Path] = ".") -> CircomkitConfig:
    """
    Load circomkit.json from `cwd` when it exists, otherwise return defaults.
    """
    p = Path(cwd) / DEFAULT_CONFIG_FILE
    if p.exists():
        return load_config(p)
    return DEFAULT_CONFIG


def save_config(config: CircomkitConfig, path: Union[str, Path]) -> None:
    with Path(path).open("w", encoding="utf-8") as fh:
        json.dump(config.to_dict(), fh, indent=2)
