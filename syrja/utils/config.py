"""Read TOML config files into Pydantic models."""

from __future__ import annotations

import sys
from typing import BinaryIO
from typing import TypeVar

from pydantic import BaseModel

if sys.version_info >= (3, 11):  # pragma: >=3.11 cover
    import tomllib
else:  # pragma: <3.11 cover
    import tomli as tomllib


BaseModelT = TypeVar('BaseModelT', bound=BaseModel)


def load(model: type[BaseModelT], fp: BinaryIO) -> BaseModelT:
    """Parse TOML from a binary file to a model.

    Args:
        model: Config model type to parse TOML using.
        fp: File-like bytes stream to read in.

    Returns:
        Model initialized from TOML file.
    """
    return loads(model, fp.read().decode())


def loads(model: type[BaseModelT], data: str) -> BaseModelT:
    """Parse TOML string to a model.

    Tables missing from the TOML fall back to the defaults of the model.

    Args:
        model: Config model type to parse TOML using.
        data: TOML string to parse.

    Returns:
        Model initialized from the TOML string.

    Raises:
        pydantic.ValidationError: If the parsed values do not match the
            fields of `model`.
    """
    parsed = tomllib.loads(data)
    return model.model_validate(parsed, strict=True)
