"""
eddsa.py

EdDSA-Poseidon signatures over Baby JubJub for feeding circomlib's
EdDSAPoseidonVerifier in tests.

The curve and hash arithmetic is done by circomlibjs, run through `node`
from the working directory (so `require("circomlibjs")` resolves against the
project's node_modules, the same place circomlib circuits are included from).
"""

import json
import logging
import secrets
from dataclasses import dataclass
from typing import Dict, Union

from errors import CommandFailed
from utils import check_command, run_command

logger = logging.getLogger("eddsa")

_SIGN_SCRIPT = """
const { buildEddsa } = require("circomlibjs");
const [keyHex, message] = process.argv.slice(-2);
buildEddsa().then((eddsa) => {
  const F = eddsa.babyJub.F;
  const prv = Buffer.from(keyHex, "hex");
  const pub = eddsa.prv2pub(prv);
  const sig = eddsa.signPoseidon(prv, F.e(BigInt(message)));
  console.log(JSON.stringify({
    Ax: F.toObject(pub[0]).toString(),
    Ay: F.toObject(pub[1]).toString(),
    R8x: F.toObject(sig.R8[0]).toString(),
    R8y: F.toObject(sig.R8[1]).toString(),
    S: sig.S.toString(),
  }));
});
"""

_VERIFY_SCRIPT = """
const { buildEddsa } = require("circomlibjs");
const s = JSON.parse(process.argv[process.argv.length - 1]);
buildEddsa().then((eddsa) => {
  const F = eddsa.babyJub.F;
  const ok = eddsa.verifyPoseidon(
    F.e(BigInt(s.M)),
    { R8: [F.e(BigInt(s.R8x)), F.e(BigInt(s.R8y))], S: BigInt(s.S) },
    [F.e(BigInt(s.Ax)), F.e(BigInt(s.Ay))],
  );
  console.log(ok ? "true" : "false");
});
"""


@dataclass(frozen=True)
class PrivateKey:
    key: bytes

    def __post_init__(self):
        if len(self.key) != 32:
            raise ValueError("EdDSA private keys are 32 bytes")


@dataclass
class EdDSATestInputs:
    """Signals of EdDSAPoseidonVerifier, as decimal strings."""
    enabled: str
    ax: str
    ay: str
    r8x: str
    r8y: str
    s: str
    m: str

    def as_signals(self) -> Dict[str, str]:
        return {
            "enabled": self.enabled,
            "Ax": self.ax,
            "Ay": self.ay,
            "R8x": self.r8x,
            "R8y": self.r8y,
            "S": self.s,
            "M": self.m,
        }


def generate_private_key() -> PrivateKey:
    return PrivateKey(secrets.token_bytes(32))


def private_key_from_seed(seed: bytes) -> PrivateKey:
    return PrivateKey(bytes(seed))


def _run_node(script: str, *args: str, node: str = "node") -> str:
    result = run_command([node, "-e", script, *args], tool=node)
    check_command(result, node)
    return result.stdout.strip()


def sign_poseidon(private_key: PrivateKey, message: Union[int, str], node: str = "node") -> EdDSATestInputs:
    """
    Sign `message` (a field element) and return verifier inputs with enabled=1.
    """
    out = _run_node(_SIGN_SCRIPT, private_key.key.hex(), str(int(message)), node=node)
    try:
        sig = json.loads(out.splitlines()[-1])
    except (IndexError, json.JSONDecodeError) as e:
        raise CommandFailed(command=node, exit_code=0, stderr=f"unexpected signer output: {out!r}") from e
    return EdDSATestInputs(
        enabled="1",
        ax=sig["Ax"],
        ay=sig["Ay"],
        r8x=sig["R8x"],
        r8y=sig["R8y"],
        s=sig["S"],
        m=str(int(message)),
    )


def verify_poseidon(inputs: EdDSATestInputs, node: str = "node") -> bool:
    payload = json.dumps(inputs.as_signals())
    out = _run_node(_VERIFY_SCRIPT, payload, node=node)
    return out.splitlines()[-1:] == ["true"]
