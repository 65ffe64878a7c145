from __future__ import annotations

import os
from dataclasses import dataclass, replace


@dataclass(frozen=True)
class GenOptions:
    gen_package: str = "gen"
    runtime_module: str = "wirebody.runtime"
    file_name: str = "client_types.py"


def default_options() -> GenOptions:
    """Return generation options with environment overrides applied.

    Override with `WIREBODY_GEN_PACKAGE`, `WIREBODY_RUNTIME_MODULE` and
    `WIREBODY_FILE_NAME`.
    """
    opts = GenOptions()
    env = {
        "gen_package": os.environ.get("WIREBODY_GEN_PACKAGE"),
        "runtime_module": os.environ.get("WIREBODY_RUNTIME_MODULE"),
        "file_name": os.environ.get("WIREBODY_FILE_NAME"),
    }
    return replace(opts, **{k: v for k, v in env.items() if v})
