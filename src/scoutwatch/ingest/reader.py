from pathlib import Path

from scoutwatch.exceptions import IngestIOError


def read_payload(path: Path, encoding: str = "utf-8") -> str:
    """
    Whole file as one string, lines joined without separators.
    Tablets emit a form stream as one logical line and the decoder only
    looks at ``|`` / ``||`` delimiters, so newlines carry no meaning.
    """
    try:
        with open(path, "r", encoding=encoding) as f:
            return "".join(line.rstrip("\r\n") for line in f)
    except (OSError, UnicodeDecodeError) as exc:
        raise IngestIOError(f"Cannot read {path}: {exc}", path=path) from exc
