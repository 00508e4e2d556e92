import json
import shutil
import subprocess

import pytest

import eddsa
from eddsa import (
    EdDSATestInputs,
    PrivateKey,
    generate_private_key,
    private_key_from_seed,
    sign_poseidon,
    verify_poseidon,
)
from errors import CommandFailed, ToolNotFound

SIGNATURE = {"Ax": "11", "Ay": "12", "R8x": "13", "R8y": "14", "S": "15"}


class FakeNode:
    def __init__(self, stdout="", returncode=0, stderr=""):
        self.calls = []
        self.stdout = stdout
        self.returncode = returncode
        self.stderr = stderr

    def __call__(self, argv, tool=None):
        args = [str(a) for a in argv]
        self.calls.append(args)
        return subprocess.CompletedProcess(args, self.returncode, self.stdout, self.stderr)


def test_private_keys():
    assert len(generate_private_key().key) == 32
    assert generate_private_key() != generate_private_key()
    seed = bytes(range(32))
    assert private_key_from_seed(seed) == PrivateKey(seed)
    with pytest.raises(ValueError):
        PrivateKey(b"short")


def test_sign_builds_verifier_inputs(monkeypatch):
    node = FakeNode(stdout="loading\n" + json.dumps(SIGNATURE) + "\n")
    monkeypatch.setattr(eddsa, "run_command", node)
    key = private_key_from_seed(bytes(32))
    inputs = sign_poseidon(key, 1234)
    assert inputs.as_signals() == {
        "enabled": "1", "Ax": "11", "Ay": "12", "R8x": "13", "R8y": "14", "S": "15", "M": "1234",
    }
    (argv,) = node.calls
    assert argv[:2] == ["node", "-e"]
    assert argv[-2:] == [bytes(32).hex(), "1234"]


def test_sign_with_garbage_output(monkeypatch):
    monkeypatch.setattr(eddsa, "run_command", FakeNode(stdout="not json"))
    with pytest.raises(CommandFailed):
        sign_poseidon(private_key_from_seed(bytes(32)), 1)


def test_sign_when_circomlibjs_missing(monkeypatch):
    monkeypatch.setattr(eddsa, "run_command",
                        FakeNode(returncode=1, stderr="Error: Cannot find module 'circomlibjs'"))
    with pytest.raises(CommandFailed, match="circomlibjs"):
        sign_poseidon(private_key_from_seed(bytes(32)), 1)


def test_verify(monkeypatch):
    inputs = EdDSATestInputs(enabled="1", ax="1", ay="2", r8x="3", r8y="4", s="5", m="6")
    node = FakeNode(stdout="true\n")
    monkeypatch.setattr(eddsa, "run_command", node)
    assert verify_poseidon(inputs) is True
    assert json.loads(node.calls[0][-1])["M"] == "6"
    node.stdout = "false\n"
    assert verify_poseidon(inputs) is False


def test_node_not_installed(monkeypatch):
    def missing(argv, tool=None):
        raise ToolNotFound(tool)

    monkeypatch.setattr(eddsa, "run_command", missing)
    with pytest.raises(ToolNotFound):
        verify_poseidon(EdDSATestInputs("1", "1", "2", "3", "4", "5", "6"), node="/no/node")


def _circomlibjs_available():
    if shutil.which("node") is None:
        return False
    result = subprocess.run(["node", "-e", "require('circomlibjs')"], capture_output=True)
    return result.returncode == 0


@pytest.mark.toolchain
@pytest.mark.skipif(not _circomlibjs_available(), reason="node with circomlibjs not available")
def test_real_signature_round_trip():
    key = private_key_from_seed(bytes(range(32)))
    inputs = sign_poseidon(key, 42)
    assert verify_poseidon(inputs)
    inputs.m = "43"
    assert not verify_poseidon(inputs)
