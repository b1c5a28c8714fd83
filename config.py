# config.py
# Default client configuration and a small JSON/env loader.

import copy
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict

logger = logging.getLogger(__name__)

E18 = 10 ** 18
ONE_YEAR = 365 * 24 * 60 * 60

DEFAULT_CONFIG: Dict[str, Any] = {
    "merkle_tree_height": 20,
    # HashKind value. "sha256" only works against the in-memory ledger; proofs
    # for deployed contracts need "poseidon" plus register_hasher().
    "hash_kind": "sha256",
    "note_format": "v1-byte-split",  # NoteFormat value
    "pool_weight": 10 ** 10,
    "reward_swap": {
        "initial_liquidity": 25000 * E18,
        "liquidity": 1000000 * E18,
        "duration": ONE_YEAR,
    },
}

ENV_TREE_HEIGHT = "MERKLE_TREE_HEIGHT"


def apply_env(config: Dict[str, Any], environ=None) -> Dict[str, Any]:
    """Override merkle_tree_height from MERKLE_TREE_HEIGHT when it is set."""
    environ = os.environ if environ is None else environ
    raw = environ.get(ENV_TREE_HEIGHT)
    if raw is None or raw.strip() == "":
        return config
    try:
        height = int(raw)
    except ValueError as e:
        raise ValueError("%s must be an integer, got: %r" % (ENV_TREE_HEIGHT, raw)) from e
    if height <= 0:
        raise ValueError("%s must be positive, got: %d" % (ENV_TREE_HEIGHT, height))
    config["merkle_tree_height"] = height
    logger.debug("[CONFIG] merkle_tree_height = %d (from %s)", height, ENV_TREE_HEIGHT)
    return config


def load_config(path: str = None, base: Dict[str, Any] = None, environ=None) -> Dict[str, Any]:
    """
    Build the effective configuration.

    :param path: optional JSON file shallow-merged over base
    :param base: base configuration (DEFAULT_CONFIG when None)
    :param environ: environment mapping (os.environ when None)
    :return: merged configuration dictionary
    """
    config = copy.deepcopy(base if base is not None else DEFAULT_CONFIG)
    if path is not None:
        p = Path(path)
        if not p.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with p.open("r", encoding="utf-8") as fh:
            data = json.load(fh)
        # shallow merge
        for k, v in data.items():
            config[k] = v
    return apply_env(config, environ)
