import json
import logging
from pathlib import Path
from typing import Any, Dict

import numpy as np

from boneprune.skinning.skin import SkinnedMesh

logger = logging.getLogger(__name__)

ASSET_EXTENSION = ".json"


def _parent_indices(bones: list) -> list[int]:
    """
    For each bone, index of its nearest ancestor that is also in ``bones``.
    """
    position = {id(b): i for i, b in enumerate(bones) if b is not None}
    parents = []
    for bone in bones:
        parent = -1
        if bone is not None:
            for ancestor in bone.iter_ancestors():
                if id(ancestor) in position:
                    parent = position[id(ancestor)]
                    break
        parents.append(parent)
    return parents


class MeshAssetStore:
    """
    Writes pruned mesh assets as JSON. One file carries all three sections:
      - mesh  -> name + vertex count
      - skin  -> joints + weights
      - bones -> hierarchy + inverse bind
    """

    def __init__(self, folder: str):
        self.folder = Path(folder)

    def unique_path(self, name: str) -> Path:
        path = self.folder / f"{name}{ASSET_EXTENSION}"
        n = 1
        while path.exists():
            path = self.folder / f"{name} {n}{ASSET_EXTENSION}"
            n += 1
        return path

    def save(self, mesh: SkinnedMesh, bones: list) -> Path:
        """
        Persist ``mesh`` together with the bone list it is bound to.

        :param mesh: The skinned mesh payload
        :param bones: Bone nodes, parallel to ``mesh.bind_poses``
        :return: The path written
        """
        if len(bones) != len(mesh.bind_poses):
            raise ValueError(
                f"bone count {len(bones)} != bind pose count {len(mesh.bind_poses)}"
            )

        self.folder.mkdir(parents=True, exist_ok=True)
        path = self.unique_path(mesh.name)

        parents = _parent_indices(bones)
        data = {
            "mesh": {
                "name": mesh.name,
                "vertex_count": mesh.vertex_count,
            },
            "skin": {
                "joints": mesh.joints.tolist(),
                "weights": mesh.weights.tolist(),
            },
            "bones": [
                {
                    "name": bone.name if bone is not None else None,
                    "parent": parents[i],
                    "inverse_bind": mesh.bind_poses[i].reshape(16).tolist(),
                }
                for i, bone in enumerate(bones)
            ],
        }

        with open(path, "w") as f:
            json.dump(data, f)

        logger.info(f"Wrote mesh asset {path}")
        return path


def load_mesh_asset(path: str) -> Dict[str, Any]:
    """
    Read a mesh asset written by ``MeshAssetStore``.

    :return: dict with "mesh" (SkinnedMesh), "names" and "parents"
    """
    with open(path, "r") as f:
        data = json.load(f)

    if "mesh" not in data:
        raise RuntimeError("Mesh asset missing 'mesh' section")
    if "skin" not in data:
        raise RuntimeError("Mesh asset missing 'skin' section")
    if "bones" not in data:
        raise RuntimeError("Mesh asset missing 'bones' section")

    skin = data["skin"]
    if "joints" not in skin or "weights" not in skin:
        raise RuntimeError("Mesh asset skin must contain 'joints' and 'weights'")

    joints = np.array(skin["joints"], dtype=np.int32).reshape(-1, 4)
    weights = np.array(skin["weights"], dtype=np.float32).reshape(-1, 4)

    if joints.shape != weights.shape:
        raise RuntimeError(f"Invalid skin: joints {joints.shape} vs weights {weights.shape}")

    names = []
    parents = []
    inverse_bind = []
    for b in data["bones"]:
        names.append(b["name"])
        parents.append(b["parent"])
        m = np.array(b["inverse_bind"], dtype=np.float32)
        inverse_bind.append(m.reshape(4, 4))

    mesh = SkinnedMesh(
        data["mesh"]["name"],
        np.array(inverse_bind, dtype=np.float32).reshape(-1, 4, 4),
        joints,
        weights,
    )

    return {
        "mesh": mesh,
        "names": names,
        "parents": parents,
    }
