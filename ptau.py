"""
ptau.py

Powers-of-Tau (trusted setup parameter) helpers:
 - get_recommended_ptau(num_constraints): pick the Hermez ceremony file large enough
 - download_ptau(info, output_dir): fetch it with curl (wget as fallback)
 - verify_ptau(path): cheap sanity check of a local file
 - list_ptau_files(dir): local .ptau files, sorted

Downloads are delegated to the external curl/wget programs.
"""

import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import List, Union

from errors import CommandFailed, PtauNotFound, ToolNotFound
from utils import check_command, ensure_dir, run_command

logger = logging.getLogger("ptau")

HERMEZ_PTAU_BASE = "https://storage.googleapis.com/zkevm/ptau"
MIN_POWER = 8
MAX_POWER = 28
PTAU_MAGIC = b"ptau"
MIN_PTAU_SIZE = 1_000_000

# approximate file sizes in bytes; 0 when unknown
_APPROX_SIZES = {
    8: 8_388_608,
    9: 16_777_216,
    10: 33_554_432,
    11: 67_108_864,
    12: 134_217_728,
    13: 268_435_456,
    14: 536_870_912,
    15: 1_073_741_824,
    16: 2_147_483_648,
}


@dataclass
class PtauInfo:
    power: int
    filename: str
    url: str
    size: int


def get_recommended_ptau(num_constraints: int) -> PtauInfo:
    """
    Smallest ceremony file supporting `num_constraints`, clamped to 2^8..2^28.
    """
    power = math.ceil(math.log2(num_constraints)) if num_constraints > 1 else 0
    power = max(MIN_POWER, min(MAX_POWER, power))
    filename = f"powersOfTau28_hez_final_{power:02d}.ptau"
    return PtauInfo(
        power=power,
        filename=filename,
        url=f"{HERMEZ_PTAU_BASE}/{filename}",
        size=_APPROX_SIZES.get(power, 0),
    )


def download_ptau(info: PtauInfo, output_dir: Union[str, Path]) -> Path:
    """
    Download `info` into output_dir unless already present. Tries curl first
    and falls back to wget when curl is missing or fails.
    """
    output_path = Path(output_dir) / info.filename
    if output_path.exists():
        logger.info("PTAU file already exists: %s", output_path)
        return output_path

    ensure_dir(output_dir)
    logger.info("Downloading PTAU from: %s", info.url)
    logger.info("This may take a while for larger files...")

    try:
        result = run_command(["curl", "-L", "--fail", "-o", output_path, "--progress-bar", info.url])
        if result.returncode == 0:
            logger.info("Downloaded PTAU to: %s", output_path)
            return output_path
        logger.warning("curl failed (exit code %d), trying wget", result.returncode)
    except ToolNotFound:
        logger.warning("curl not found, trying wget")

    try:
        result = run_command(["wget", "-O", output_path, info.url])
    except ToolNotFound as e:
        raise ToolNotFound("curl (or wget)") from e
    try:
        check_command(result, "wget")
    except CommandFailed:
        if output_path.exists():
            output_path.unlink()
        raise
    logger.info("Downloaded PTAU to: %s", output_path)
    return output_path


def verify_ptau(path: Union[str, Path]) -> bool:
    """
    True when the file looks like a usable ptau: at least 1 MB and starting
    with the "ptau" container magic.
    """
    p = Path(path)
    if not p.exists():
        raise PtauNotFound(p)
    if p.stat().st_size < MIN_PTAU_SIZE:
        return False
    with p.open("rb") as fh:
        return fh.read(4) == PTAU_MAGIC


def list_ptau_files(directory: Union[str, Path]) -> List[Path]:
    d = Path(directory)
    if not d.exists():
        return []
    return sorted(p for p in d.iterdir() if p.suffix == ".ptau")
