from __future__ import annotations

from pathlib import Path
from typing import List, Union

from .errors import InvalidConfig


def load_class_labels(path: Union[str, Path]) -> List[str]:
    """
    Load class labels from a newline-delimited text file, one label per line:

        person
        bicycle
        car
        ...

    The line index is the class id. Lines are stripped; blank lines at the end
    of the file are dropped, blank lines in the middle are kept so ids do not shift.
    """

    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise InvalidConfig(f"Class label file not found: {path}") from exc

    labels = [line.strip() for line in text.splitlines()]
    while labels and not labels[-1]:
        labels.pop()
    return labels
