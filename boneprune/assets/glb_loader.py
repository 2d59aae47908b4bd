import logging
import struct
from pathlib import Path
from typing import Optional

import numpy as np
from pygltflib import GLTF2

from boneprune.scene.node import SceneNode
from boneprune.scene.transform import Transform
from boneprune.scene.transform_utils import mat4_from_gltf
from boneprune.skinning.skin import SkinBinding, SkinnedMesh

logger = logging.getLogger(__name__)


class LoadedModel:
    def __init__(self, root: SceneNode, nodes: list[SceneNode], bindings: list[SkinBinding], gltf: GLTF2, path: str):
        """
        root:     synthetic node holding the scene's root nodes
        nodes:    one SceneNode per glTF node, same order
        bindings: skin components found on mesh nodes
        gltf:     the source document, needed to write the result back
        """
        self.root = root
        self.nodes = nodes
        self.bindings = bindings
        self.gltf = gltf
        self.path = path


class GLBLoader:
    def __init__(self, path: str):
        gltf = GLTF2().load(path)
        if gltf is None:
            raise ValueError(f"Failed to load GLTF: {path}")
        self.gltf: GLTF2 = gltf
        self.path = str(path)

        binary = self.gltf.binary_blob()
        if binary is None:
            raise ValueError("GLTF has no binary blob (use .glb)")
        self._binary: bytes = binary

    # -------------------------------------------------
    # Accessor helpers
    # -------------------------------------------------
    def _component_count(self, accessor_type: str) -> int:
        return {
            "SCALAR": 1,
            "VEC2": 2,
            "VEC3": 3,
            "VEC4": 4,
            "MAT4": 16,
        }[accessor_type]

    def _component_format(self, component_type: int):
        if component_type == 5126:  # FLOAT
            return "f", 4
        if component_type == 5125:  # UNSIGNED_INT
            return "I", 4
        if component_type == 5123:  # UNSIGNED_SHORT
            return "H", 2
        if component_type == 5121:  # UNSIGNED_BYTE
            return "B", 1
        raise ValueError(f"Unsupported component type: {component_type}")

    def _read_accessor(self, acc_index: int) -> np.ndarray:
        acc = self.gltf.accessors[acc_index]
        if acc.bufferView is None:
            raise ValueError("Accessor has no bufferView")

        view = self.gltf.bufferViews[acc.bufferView]
        comp_char, comp_size = self._component_format(acc.componentType)
        comps = self._component_count(acc.type)

        stride = view.byteStride or (comp_size * comps)
        offset = (view.byteOffset or 0) + (acc.byteOffset or 0)

        fmt = "<" + comp_char * comps
        out = np.empty((acc.count, comps), dtype=np.float64)

        buf: bytes = self._binary
        for i in range(acc.count):
            out[i] = struct.unpack_from(fmt, buf, offset + i * stride)

        if acc.normalized:
            if acc.componentType == 5121:
                out /= 255.0
            elif acc.componentType == 5123:
                out /= 65535.0

        return out

    # -------------------------------------------------
    # Scene helpers
    # -------------------------------------------------
    def _node_transform(self, node) -> Transform:
        if node.matrix is not None:
            return Transform(matrix=mat4_from_gltf(node.matrix))
        return Transform(
            position=node.translation or (0.0, 0.0, 0.0),
            rotation=node.rotation or (0.0, 0.0, 0.0, 1.0),
            scale=node.scale or (1.0, 1.0, 1.0),
        )

    def _guess_root_bone(self, bones: list[SceneNode]) -> Optional[SceneNode]:
        """
        First joint whose parent is not a joint of the same skin.
        """
        members = set(bones)
        for bone in bones:
            if bone.parent not in members:
                return bone
        return None

    def _load_mesh(self, mesh_index: int, skin) -> SkinnedMesh:
        mesh = self.gltf.meshes[mesh_index]

        if skin.inverseBindMatrices is not None:
            raw = self._read_accessor(skin.inverseBindMatrices)
            bind_poses = np.array([mat4_from_gltf(r) for r in raw], dtype=np.float32)
        else:
            bind_poses = np.tile(np.eye(4, dtype=np.float32), (len(skin.joints or []), 1, 1))

        joints = []
        weights = []
        ranges = []
        start = 0
        for p, prim in enumerate(mesh.primitives):
            if prim.attributes.JOINTS_0 is None or prim.attributes.WEIGHTS_0 is None:
                continue
            j = self._read_accessor(prim.attributes.JOINTS_0).astype(np.int32)
            w = self._read_accessor(prim.attributes.WEIGHTS_0).astype(np.float32)
            joints.append(j)
            weights.append(w)
            ranges.append((p, start, len(j)))
            start += len(j)

        return SkinnedMesh(
            mesh.name or f"<mesh_{mesh_index}>",
            bind_poses.reshape(-1, 4, 4),
            np.concatenate(joints) if joints else np.zeros((0, 4), dtype=np.int32),
            np.concatenate(weights) if weights else np.zeros((0, 4), dtype=np.float32),
            source_mesh=mesh_index,
            primitive_ranges=ranges,
        )

    # -------------------------------------------------
    # Public API
    # -------------------------------------------------
    def load_model(self) -> LoadedModel:
        gltf_nodes = self.gltf.nodes or []

        nodes = []
        for i, n in enumerate(gltf_nodes):
            node = SceneNode(n.name or f"<node_{i}>", self._node_transform(n))
            node.source_index = i
            nodes.append(node)

        for i, n in enumerate(gltf_nodes):
            for child in n.children or []:
                nodes[i].add_child(nodes[child])

        root = SceneNode(Path(self.path).stem)
        if self.gltf.scenes:
            scene = self.gltf.scenes[self.gltf.scene or 0]
            scene_roots = scene.nodes or []
        else:
            scene_roots = [i for i, node in enumerate(nodes) if node.parent is None]
        for i in scene_roots:
            root.add_child(nodes[i])

        # nodes sharing mesh + skin share one mesh asset
        meshes: dict[tuple[int, int], SkinnedMesh] = {}
        bindings = []
        for i, n in enumerate(gltf_nodes):
            if n.mesh is None or n.skin is None:
                continue
            skin = self.gltf.skins[n.skin]
            key = (n.mesh, n.skin)
            if key not in meshes:
                meshes[key] = self._load_mesh(n.mesh, skin)

            bones = [nodes[j] for j in skin.joints or []]
            # skeleton may name a non-joint node (e.g. the armature)
            if skin.skeleton is not None and skin.skeleton in (skin.joints or []):
                root_bone = nodes[skin.skeleton]
            else:
                root_bone = self._guess_root_bone(bones)

            binding = SkinBinding(nodes[i], bones, root_bone, meshes[key], source_skin=n.skin)
            binding.validate()
            nodes[i].skin = binding
            bindings.append(binding)

        logger.info(
            f"Loaded {self.path}: {len(nodes)} node(s), {len(bindings)} skin binding(s)"
        )
        return LoadedModel(root, nodes, bindings, self.gltf, self.path)
