"""
utils.py

Small collection of utilities: filesystem helpers, JSON read/write, a minimal
logger setup helper and the external command runner every pipeline stage goes
through.
"""

from typing import Any, List, Optional, Sequence, Union
from pathlib import Path
import json
import logging
import subprocess

from errors import CommandFailed, ToolNotFound

PathLike = Union[str, Path]


def ensure_dir(path: PathLike) -> Path:
    """
    Ensure directory exists (recursively); returns the path.
    """
    p = Path(path)
    p.mkdir(parents=True, exist_ok=True)
    return p


def write_json(path: PathLike, data: Any, indent: Optional[int] = 2) -> Path:
    """
    Write JSON in place. The data is serialized before the file is opened, so
    unserializable data leaves an existing file untouched. Not atomic: an
    interrupted write leaves a truncated file which the next reader reports
    as a parse error.
    """
    p = Path(path)
    text = json.dumps(data, indent=indent)
    p.write_text(text, encoding="utf-8")
    return p


def read_json(path: PathLike) -> Any:
    with Path(path).open("r", encoding="utf-8") as fh:
        return json.load(fh)


def setup_basic_logger(name: str = "circuitkit", level: int = logging.INFO) -> logging.Logger:
    """
    Return a logger configured with a StreamHandler and a compact formatter.
    Passing name="" configures the root logger, which every module logger
    propagates to.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)
    if logger.handlers:
        return logger
    ch = logging.StreamHandler()
    fmt = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s", datefmt="%Y-%m-%d %H:%M:%S")
    ch.setFormatter(fmt)
    logger.addHandler(ch)
    return logger


def run_command(argv: Sequence[Any], tool: Optional[str] = None) -> subprocess.CompletedProcess:
    """
    Run an external command to completion and capture its output as text.

    :param argv: program and arguments (paths are converted to str)
    :param tool: configured command name reported when the program is missing
    :raises ToolNotFound: when the program is not on the execution path
    """
    args: List[str] = [str(a) for a in argv]
    logging.getLogger("utils").debug("Running: %s", " ".join(args))
    try:
        return subprocess.run(args, capture_output=True, text=True)
    except FileNotFoundError as e:
        raise ToolNotFound(tool or args[0]) from e


def check_command(result: subprocess.CompletedProcess, command: str) -> subprocess.CompletedProcess:
    """
    Raise CommandFailed for a nonzero exit, carrying the full stderr.
    """
    if result.returncode != 0:
        raise CommandFailed(command=command, exit_code=result.returncode, stderr=result.stderr or "")
    return result
