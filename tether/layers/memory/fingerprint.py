"""
Fingerprint Hasher - Structural identity of an element.

A fingerprint is two SHA-256 digests: one over the ancestor tag path,
one over the attribute set. It is computed the same way for a live
``ElementNode`` and for a stored ``HistoryElement``, which is what lets
a recorded element be found again in a rebuilt tree.
"""

import hashlib
import json
from dataclasses import dataclass
from typing import Dict, List, Mapping, Union

from tether.layers.memory.history import HistoryElement
from tether.layers.sense.dom_tree import ElementNode


@dataclass(frozen=True)
class Fingerprint:
    branch_path_hash: str
    attributes_hash: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "branch_path_hash": self.branch_path_hash,
            "attributes_hash": self.attributes_hash,
        }


def _sha256(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def hash_branch_path(path: List[str]) -> str:
    """Digest of ancestor tags joined root-first with ``/``."""
    return _sha256("/".join(path))


def hash_attributes(attributes: Mapping[str, str]) -> str:
    """
    Digest of the attribute set.

    Pairs are serialized in sorted key order, so the map's iteration
    order never changes the result.

    Each pair is encoded as ``json.dumps(key) + "=" + json.dumps(value)``
    rather than a bare ``key=value``. The quoting keeps the encoding
    injective: ``{"a": "b=c"}`` and ``{"a=b": "c"}`` hash differently,
    which they would not with bare pairs. Records hashed elsewhere must
    use the same encoding to match.
    """
    return _sha256("".join(
        f"{json.dumps(key)}={json.dumps(attributes[key])}"
        for key in sorted(attributes)
    ))


def fingerprint(target: Union[ElementNode, HistoryElement]) -> Fingerprint:
    """
    Fingerprint a live node or a history record.

    Live nodes walk their ``parent`` links; history records use the
    stored branch path. Structurally identical inputs hash identically.
    """
    if isinstance(target, HistoryElement):
        path = list(target.entire_parent_branch_path)
    else:
        path = target.parent_branch_path()
    return Fingerprint(
        branch_path_hash=hash_branch_path(path),
        attributes_hash=hash_attributes(target.attributes),
    )
