import copy
import logging
from pathlib import Path
from typing import Optional

import numpy as np
from pygltflib import (
    ARRAY_BUFFER,
    FLOAT,
    GLTF2,
    MAT4,
    UNSIGNED_SHORT,
    VEC4,
    Accessor,
    Buffer,
    BufferView,
    Node,
    Scene,
    Skin,
)

from boneprune.scene.node import SceneNode
from boneprune.scene.transform_utils import mat4_to_gltf
from boneprune.skinning.skin import SkinBinding, SkinnedMesh

logger = logging.getLogger(__name__)


class GLBWriter:
    """
    Writes the scene below ``root`` back into a copy of the source document.

    - nodes that are no longer in the scene are dropped
    - node references (children, scene, skins, animations) are renumbered
    - meshes rewritten by pruning get a new glTF mesh with fresh JOINTS_0
    """

    def __init__(self, source: GLTF2, root: SceneNode):
        self.source = source
        self.root = root
        self.gltf: GLTF2 = copy.deepcopy(source)
        self._blob = bytearray(source.binary_blob() or b"")

        if self.gltf.accessors is None:
            self.gltf.accessors = []
        if self.gltf.bufferViews is None:
            self.gltf.bufferViews = []
        if self.gltf.meshes is None:
            self.gltf.meshes = []

        self._node_index: dict[int, int] = {}
        self._meshes: dict[int, int] = {}
        self._skins: dict[tuple, int] = {}
        self._skins_out: list[Skin] = []

    # -------------------------------------------------
    # Binary helpers
    # -------------------------------------------------
    def _append_view(self, data: bytes, target: Optional[int] = None) -> int:
        self._blob.extend(b"\x00" * ((4 - len(self._blob) % 4) % 4))
        offset = len(self._blob)
        self._blob.extend(data)
        self.gltf.bufferViews.append(
            BufferView(buffer=0, byteOffset=offset, byteLength=len(data), target=target)
        )
        return len(self.gltf.bufferViews) - 1

    def _add_accessor(self, array: np.ndarray, component_type: int, accessor_type: str, target=None) -> int:
        view = self._append_view(array.tobytes(), target)
        self.gltf.accessors.append(
            Accessor(
                bufferView=view,
                componentType=component_type,
                count=int(array.shape[0]),
                type=accessor_type,
            )
        )
        return len(self.gltf.accessors) - 1

    # -------------------------------------------------
    # Meshes and skins
    # -------------------------------------------------
    def _mesh_index(self, mesh: SkinnedMesh) -> Optional[int]:
        if mesh.derived_from is None:
            return mesh.source_mesh

        if id(mesh) in self._meshes:
            return self._meshes[id(mesh)]

        if mesh.source_mesh is None:
            raise ValueError(f"{mesh!r} has no source mesh to rebuild geometry from")

        out = copy.deepcopy(self.source.meshes[mesh.source_mesh])
        out.name = mesh.name
        for prim_index, start, count in mesh.primitive_ranges:
            joints = np.clip(mesh.joints[start:start + count], 0, None).astype(np.uint16)
            out.primitives[prim_index].attributes.JOINTS_0 = self._add_accessor(
                joints, UNSIGNED_SHORT, VEC4, ARRAY_BUFFER
            )

        self.gltf.meshes.append(out)
        self._meshes[id(mesh)] = len(self.gltf.meshes) - 1
        return self._meshes[id(mesh)]

    def _skin_index(self, binding: SkinBinding) -> int:
        key = (id(binding.mesh), tuple(id(b) for b in binding.bones), id(binding.root_bone))
        if key in self._skins:
            return self._skins[key]

        try:
            joints = [self._node_index[id(b)] for b in binding.bones]
        except KeyError:
            raise ValueError(f"{binding!r} references a bone outside the written scene") from None

        reuse = binding.mesh.derived_from is None and binding.source_skin is not None
        if reuse:
            inverse_bind = self.source.skins[binding.source_skin].inverseBindMatrices
            name = self.source.skins[binding.source_skin].name
        else:
            flat = np.array([mat4_to_gltf(m) for m in binding.mesh.bind_poses], dtype=np.float32)
            inverse_bind = self._add_accessor(flat.reshape(-1, 16), FLOAT, MAT4)
            name = binding.mesh.name

        skeleton = self._node_index.get(id(binding.root_bone)) if binding.root_bone is not None else None
        self._skins_out.append(
            Skin(name=name, inverseBindMatrices=inverse_bind, skeleton=skeleton, joints=joints)
        )
        self._skins[key] = len(self._skins_out) - 1
        return self._skins[key]

    # -------------------------------------------------
    # Nodes
    # -------------------------------------------------
    def _write_node(self, node: SceneNode) -> Node:
        if node.source_index is not None:
            out = copy.deepcopy(self.source.nodes[node.source_index])
        else:
            out = Node()

        out.name = node.name
        out.children = [self._node_index[id(c)] for c in node.children]

        t = node.transform
        if t.has_matrix:
            out.matrix = mat4_to_gltf(t.matrix())
            out.translation = out.rotation = out.scale = None
        else:
            out.matrix = None
            out.translation = [float(v) for v in t.position]
            out.rotation = [float(v) for v in t.rotation]
            out.scale = [float(v) for v in t.scale]

        if node.skin is not None:
            out.mesh = self._mesh_index(node.skin.mesh)
            out.skin = self._skin_index(node.skin)
        else:
            out.skin = None
        return out

    def _remap_animations(self, old_to_new: dict[int, int]):
        animations = []
        for anim in self.gltf.animations or []:
            channels = []
            for ch in anim.channels:
                if ch.target.node is None:
                    channels.append(ch)
                elif ch.target.node in old_to_new:
                    ch.target.node = old_to_new[ch.target.node]
                    channels.append(ch)
            if channels:
                anim.channels = channels
                animations.append(anim)
        self.gltf.animations = animations

    # -------------------------------------------------
    # Public API
    # -------------------------------------------------
    def build(self) -> GLTF2:
        ordered = [n for n in self.root.iter_subtree() if n is not self.root]
        self._node_index = {id(n): i for i, n in enumerate(ordered)}
        self._skins_out = []

        self.gltf.nodes = [self._write_node(n) for n in ordered]
        self.gltf.skins = self._skins_out
        self.gltf.scenes = [
            Scene(name=self.root.name, nodes=[self._node_index[id(c)] for c in self.root.children])
        ]
        self.gltf.scene = 0

        old_to_new = {
            n.source_index: self._node_index[id(n)] for n in ordered if n.source_index is not None
        }
        self._remap_animations(old_to_new)

        if not self.gltf.buffers:
            self.gltf.buffers = [Buffer()]
        self.gltf.buffers[0].byteLength = len(self._blob)
        self.gltf.set_binary_blob(bytes(self._blob))

        dropped = len(self.source.nodes or []) - len(old_to_new)
        logger.info(
            f"Built glTF: {len(ordered)} node(s) ({dropped} dropped), "
            f"{len(self._meshes)} new mesh(es), {len(self._skins_out)} skin(s)"
        )
        return self.gltf

    def write(self, path: str) -> Path:
        gltf = self.build()
        out = Path(path)
        out.parent.mkdir(parents=True, exist_ok=True)
        gltf.save_binary(str(out))
        logger.info(f"Wrote {out}")
        return out
