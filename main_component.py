"""
main_component.py

Produce the circom entry point ("main component") for a circuit instance.

The file is written to <build>/main/<name>.circom and regenerated from scratch
before every compilation. Example output:

    pragma circom 2.1.9;

    include "../../circuits/multiplier.circom";

    component main {public [a]} = Multiplier(3);
"""

import logging
from pathlib import Path

from config import CircomkitConfig
from models import CircuitConfig
from utils import ensure_dir

logger = logging.getLogger("main_component")


def include_path(circuit: CircuitConfig, config: CircomkitConfig) -> str:
    """
    Path written into the include directive. An absolute override is used
    verbatim; otherwise the path climbs from build/main two levels up and
    descends into the circuits directory.
    """
    if circuit.absolute_file is not None:
        return str(circuit.absolute_file)
    return f"../../{config.dir_circuits.as_posix()}/{circuit.file}"


def render_main_component(circuit: CircuitConfig, config: CircomkitConfig) -> str:
    params = ", ".join(str(p) for p in circuit.params)
    public = f" {{public [{', '.join(circuit.public)}]}}" if circuit.public else ""
    return (
        f"pragma circom {config.circom_version};\n"
        f"\n"
        f"include \"{include_path(circuit, config)}\";\n"
        f"\n"
        f"component main{public} = {circuit.template}({params});\n"
    )


def write_main_component(circuit: CircuitConfig, config: CircomkitConfig) -> Path:
    """
    Write (overwrite) the main component file and return its path.
    """
    main_dir = ensure_dir(config.main_dir())
    path = main_dir / f"{circuit.name}.circom"
    path.write_text(render_main_component(circuit, config), encoding="utf-8")
    logger.debug("Generated main component: %s", path)
    return path
