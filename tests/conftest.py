import json
import re
import struct
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Tuple

import pytest

import circomkit
from config import CircomkitConfig
from errors import ToolNotFound

BN128_PRIME = 21888242871839275222246405745257275088548364400416422868083617

ADDER_SRC = """pragma circom 2.0.0;

template Adder() {
    signal input a;
    signal input b;
    signal output sum;
    sum <== a + b;
}
"""

FORCE_EQUAL_SRC = """pragma circom 2.0.0;

template ForceEqual() {
    signal input a;
    signal input b;
    a === b;
}
"""

MULTIPLIER_N_SRC = """pragma circom 2.0.0;

template MultiplierN(n) {
    signal input in[n];
    signal output out;
    signal intermediate[n];
    intermediate[0] <== in[0];
    for (var i = 1; i < n; i++) {
        intermediate[i] <== intermediate[i-1] * in[i];
    }
    out <== intermediate[n-1];
}
"""

RANGE_CHECK_SRC = """pragma circom 2.0.0;

include "../node_modules/circomlib/circuits/bitify.circom";

template RangeCheck(n) {
    signal input in;
    component bits = Num2Bits(n);
    bits.in <== in;
}
"""


class ConstraintViolation(Exception):
    pass


@dataclass
class FakeCircuit:
    """
    Stand-in for a compiled template: the signal layout circom would emit in
    the .sym file and a function computing the witness.
    """
    inputs: Callable[[Tuple[int, ...]], List[str]]
    outputs: Callable[[Tuple[int, ...]], List[str]]
    internals: Callable[[Tuple[int, ...]], List[str]]
    compute: Callable[[Dict[str, int], Tuple[int, ...]], Dict[str, int]]
    constraints: Callable[[Tuple[int, ...]], int]


def _flatten_input(name, value, out):
    if isinstance(value, list):
        for i, v in enumerate(value):
            _flatten_input(f"{name}[{i}]", v, out)
    else:
        out[name] = int(value) % BN128_PRIME


def _adder(sig, params):
    return {"sum": sig["a"] + sig["b"]}


def _force_equal(sig, params):
    if sig["a"] != sig["b"]:
        raise ConstraintViolation("Error: Assert Failed.\nError in template ForceEqual_0 line: 6")
    return {}


def _multiplier_n(sig, params):
    n = params[0]
    values = {}
    acc = sig["in[0]"]
    values["intermediate[0]"] = acc
    for i in range(1, n):
        acc = acc * sig[f"in[{i}]"] % BN128_PRIME
        values[f"intermediate[{i}]"] = acc
    values["out"] = acc
    return values


def _range_check(sig, params):
    n = params[0]
    if sig["in"] >= 1 << n:
        raise ConstraintViolation("Error: Assert Failed.\nError in template Num2Bits_0 line: 38")
    values = {}
    for i in range(n):
        values[f"bits.out[{i}]"] = (sig["in"] >> i) & 1
    values["bits.in"] = sig["in"]
    return values


FAKE_CIRCUITS: Dict[str, FakeCircuit] = {
    "Adder": FakeCircuit(
        inputs=lambda p: ["a", "b"],
        outputs=lambda p: ["sum"],
        internals=lambda p: [],
        compute=_adder,
        constraints=lambda p: 1,
    ),
    "ForceEqual": FakeCircuit(
        inputs=lambda p: ["a", "b"],
        outputs=lambda p: [],
        internals=lambda p: [],
        compute=_force_equal,
        constraints=lambda p: 1,
    ),
    "MultiplierN": FakeCircuit(
        inputs=lambda p: [f"in[{i}]" for i in range(p[0])],
        outputs=lambda p: ["out"],
        internals=lambda p: [f"intermediate[{i}]" for i in range(p[0])],
        compute=_multiplier_n,
        constraints=lambda p: p[0] - 1,
    ),
    "RangeCheck": FakeCircuit(
        inputs=lambda p: ["in"],
        outputs=lambda p: [],
        internals=lambda p: [f"bits.out[{i}]" for i in range(p[0])] + ["bits.in"],
        compute=_range_check,
        constraints=lambda p: p[0] + 1,
    ),
}

RE_MAIN = re.compile(r"component main(?: \{public \[(.*?)\]\})? = (\w+)\((.*?)\);")
RE_INCLUDE = re.compile(r'include "(.*?)";')


def write_wtns(path: Path, n_witness: int) -> None:
    header = struct.pack("<I", 32) + BN128_PRIME.to_bytes(32, "little") + struct.pack("<I", n_witness)
    data = b"wtns" + struct.pack("<II", 2, 2)
    data += struct.pack("<IQ", 1, len(header)) + header
    values = b"\x00" * (32 * n_witness)
    data += struct.pack("<IQ", 2, len(values)) + values
    path.write_bytes(data)


@dataclass
class Compiled:
    template: str
    params: Tuple[int, ...]
    public: List[str]


@dataclass
class FakeToolchain:
    """
    Replaces the command runner used by the orchestrator. Simulates circom,
    the node witness calculator and the snarkjs subcommands on the files the
    orchestrator passes in, and records every invocation.
    """
    calls: List[List[str]] = field(default_factory=list)
    compiled: Dict[str, Compiled] = field(default_factory=dict)
    witnesses: Dict[str, List[str]] = field(default_factory=dict)
    issued: List[Tuple[str, Tuple[str, ...]]] = field(default_factory=list)
    # program or "program subcommand" -> (exit code, stderr)
    failures: Dict[str, Tuple[int, str]] = field(default_factory=dict)
    missing: List[str] = field(default_factory=list)
    wtns_export_supported: bool = True
    verify_stdout: str = "[INFO]  snarkJS: OK!\n"

    def __call__(self, argv, tool=None):
        args = [str(a) for a in argv]
        self.calls.append(args)
        program = Path(args[0]).name
        if program in self.missing:
            raise ToolNotFound(tool or args[0])
        key = program if program != "snarkjs" else f"snarkjs {args[1]} {args[2]}"
        for k in (key, program):
            if k in self.failures:
                code, err = self.failures[k]
                return subprocess.CompletedProcess(args, code, "", err)
        handler = {"circom": self._circom, "node": self._node, "snarkjs": self._snarkjs}[program]
        return handler(args)

    def calls_to(self, program: str) -> List[List[str]]:
        return [c for c in self.calls if Path(c[0]).name == program]

    @staticmethod
    def _ok(args, stdout=""):
        return subprocess.CompletedProcess(args, 0, stdout, "")

    @staticmethod
    def _fail(args, stderr, code=1):
        return subprocess.CompletedProcess(args, code, "", stderr)

    # ---- circom ----

    def _layout(self, c: Compiled) -> List[str]:
        model = FAKE_CIRCUITS[c.template]
        return model.outputs(c.params) + model.inputs(c.params) + model.internals(c.params)

    def _circom(self, args):
        main = Path(args[1])
        out_dir = Path(args[args.index("-o") + 1])
        text = main.read_text()
        include = RE_INCLUDE.search(text).group(1)
        include_path = Path(include) if Path(include).is_absolute() else main.parent / include
        if not include_path.exists():
            return self._fail(args, f"error[P1014]: The file {include} to be included has not been found")
        m = RE_MAIN.search(text)
        public = [s.strip() for s in m.group(1).split(",")] if m.group(1) else []
        params = tuple(int(p) for p in m.group(3).split(",")) if m.group(3).strip() else ()
        name = main.stem
        compiled = Compiled(m.group(2), params, public)
        self.compiled[name] = compiled

        out_dir.mkdir(parents=True, exist_ok=True)
        (out_dir / f"{name}.r1cs").write_bytes(b"r1cs" + text.encode())
        lines = []
        for i, signal in enumerate(self._layout(compiled), start=1):
            comp = 1 if "." in signal else 0
            lines.append(f"{i},{i},{comp},main.{signal}")
        # a signal removed by the optimizer
        lines.append(f"{len(lines) + 1},-1,0,main.removed")
        (out_dir / f"{name}.sym").write_text("\n".join(lines) + "\n")
        js_dir = out_dir / f"{name}_js"
        js_dir.mkdir(exist_ok=True)
        (js_dir / f"{name}.wasm").write_bytes(b"\x00asm" + text.encode())
        (js_dir / "generate_witness.js").write_text("// witness calculator\n")
        return self._ok(args, "template instances: 1\nEverything went okay\n")

    # ---- node generate_witness.js ----

    def _node(self, args):
        wasm, input_path, wtns = Path(args[2]), Path(args[3]), Path(args[4])
        compiled = self.compiled[wasm.stem]
        model = FAKE_CIRCUITS[compiled.template]
        inputs = json.loads(input_path.read_text())
        flat: Dict[str, int] = {}
        for k, v in inputs.items():
            _flatten_input(k, v, flat)
        try:
            computed = model.compute(flat, compiled.params)
        except ConstraintViolation as e:
            return self._fail(args, str(e))
        except KeyError as e:
            return self._fail(args, f"Error: Not all inputs have been set. Missing {e}")
        values = dict(flat)
        values.update({k: v % BN128_PRIME for k, v in computed.items()})
        vector = ["1"] + [str(values.get(s, 0)) for s in self._layout(compiled)]
        write_wtns(wtns, len(vector))
        self.witnesses[str(wtns)] = vector
        return self._ok(args)

    # ---- snarkjs ----

    def _public_values(self, wtns: str, compiled: Compiled) -> List[str]:
        vector = self.witnesses[wtns]
        layout = self._layout(compiled)
        model = FAKE_CIRCUITS[compiled.template]
        names = model.outputs(compiled.params) + compiled.public
        return [vector[layout.index(n) + 1] for n in names]

    def _snarkjs(self, args):
        sub = args[1:]
        if sub[1] == "setup":
            Path(sub[4]).write_bytes(b"zkey" + sub[0].encode())
            return self._ok(args)
        if sub[:3] == ["zkey", "export", "verificationkey"]:
            Path(sub[4]).write_text(json.dumps({"protocol": "groth16", "curve": "bn128", "nPublic": 1}))
            return self._ok(args)
        if sub[1] == "prove":
            zkey, wtns, proof_path, public_path = sub[2:6]
            name = Path(zkey).parent.name
            public = self._public_values(wtns, self.compiled[name])
            proof = {"pi_a": [str(len(self.issued) + 1), "2", "1"], "protocol": sub[0], "curve": "bn128"}
            Path(proof_path).write_text(json.dumps(proof))
            Path(public_path).write_text(json.dumps(public))
            self.issued.append((json.dumps(proof, sort_keys=True), tuple(public)))
            return self._ok(args)
        if sub[1] == "verify":
            public = json.loads(Path(sub[3]).read_text())
            proof = json.loads(Path(sub[4]).read_text())
            if (json.dumps(proof, sort_keys=True), tuple(public)) in self.issued:
                return self._ok(args, self.verify_stdout)
            return self._fail(args, "[ERROR] snarkJS: Invalid proof")
        if sub[:3] == ["zkey", "export", "solidityverifier"]:
            Path(sub[4]).write_text("// SPDX-License-Identifier: GPL-3.0\ncontract Groth16Verifier {}\n")
            return self._ok(args)
        if sub[:3] == ["zkey", "export", "soliditycalldata"]:
            public = json.loads(Path(sub[3]).read_text())
            return self._ok(args, '["0x01", "0x02"],' + json.dumps(public) + "\n")
        if sub[:3] == ["wtns", "export", "json"]:
            if not self.wtns_export_supported:
                return self._fail(args, "Invalid command")
            Path(sub[4]).write_text(json.dumps(self.witnesses[sub[3]]))
            return self._ok(args)
        if sub[:2] == ["r1cs", "info"]:
            name = Path(sub[2]).stem
            compiled = self.compiled[name]
            model = FAKE_CIRCUITS[compiled.template]
            report = (
                "[INFO]  snarkJS: Curve: bn-128\n"
                f"[INFO]  snarkJS: # of Wires: {len(self._layout(compiled)) + 1}\n"
                f"[INFO]  snarkJS: # of Constraints: {model.constraints(compiled.params)}\n"
                f"[INFO]  snarkJS: # of Private Inputs: {len(model.inputs(compiled.params)) - len(compiled.public)}\n"
                f"[INFO]  snarkJS: # of Public Inputs: {len(compiled.public)}\n"
                f"[INFO]  snarkJS: # of Labels: {len(self._layout(compiled)) + 2}\n"
                f"[INFO]  snarkJS: # of Outputs: {len(model.outputs(compiled.params))}\n"
            )
            return self._ok(args, report)
        return self._fail(args, f"Invalid command: {' '.join(sub)}")


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    """Temporary project root with a circuits directory, used as cwd."""
    monkeypatch.chdir(tmp_path)
    circuits = tmp_path / "circuits"
    circuits.mkdir()
    (circuits / "adder.circom").write_text(ADDER_SRC)
    (circuits / "force_equal.circom").write_text(FORCE_EQUAL_SRC)
    (circuits / "multiplier_n.circom").write_text(MULTIPLIER_N_SRC)
    (circuits / "range_check.circom").write_text(RANGE_CHECK_SRC)
    ptau = tmp_path / "ptau"
    ptau.mkdir()
    (ptau / "test.ptau").write_bytes(b"ptau" + b"\x00" * 64)
    return tmp_path


@pytest.fixture
def fake_tools(monkeypatch):
    tools = FakeToolchain()
    monkeypatch.setattr(circomkit, "run_command", tools)
    return tools


@pytest.fixture
def config(workspace):
    return CircomkitConfig()


@pytest.fixture
def kit(config, fake_tools):
    return circomkit.Circomkit(config)
