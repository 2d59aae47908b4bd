import numpy as np
import pytest

from boneprune.scene.node import SceneNode
from boneprune.scene.transform import Transform
from boneprune.skinning.skin import SkinBinding, SkinnedMesh


def _node(name, parent=None, position=(0.0, 0.0, 0.0)):
    node = SceneNode(name, Transform(position=position))
    if parent is not None:
        parent.add_child(node)
    return node


def _bind(owner, bones, root_bone, joints, weights=None, name="Body"):
    joints = np.asarray(joints, dtype=np.int32).reshape(-1, 4)
    if weights is None:
        weights = np.zeros(joints.shape, dtype=np.float32)
        weights[:, 0] = 1.0
    # bind pose i carries i in its translation so parallelism can be checked
    poses = np.tile(np.eye(4, dtype=np.float32), (len(bones), 1, 1))
    poses[:, 0, 3] = np.arange(len(bones), dtype=np.float32)
    mesh = SkinnedMesh(name, poses, joints, weights)
    owner.skin = SkinBinding(owner, bones, root_bone, mesh)
    return owner.skin


@pytest.fixture
def make_node():
    return _node


@pytest.fixture
def bind():
    return _bind


class Humanoid:
    """
    Avatar
    ├── Armature            (grouping)
    │   └── Hips            bone 0
    │       ├── Spine       bone 1
    │       │   └── Head    bone 2
    │       ├── ArmGroup    (grouping)
    │       │   └── Arm     bone 3
    │       │       └── Hand  bone 4
    │       └── Props       (no bones below)
    │           └── Hat
    └── Body                (skin component)
    """

    def __init__(self):
        self.avatar = _node("Avatar")
        self.armature = _node("Armature", self.avatar)
        self.hips = _node("Hips", self.armature, (0.0, 1.0, 0.0))
        self.spine = _node("Spine", self.hips, (0.0, 0.5, 0.0))
        self.head = _node("Head", self.spine, (0.0, 0.5, 0.0))
        self.arm_group = _node("ArmGroup", self.hips)
        self.arm = _node("Arm", self.arm_group, (0.5, 0.4, 0.0))
        self.hand = _node("Hand", self.arm, (0.5, 0.0, 0.0))
        self.props = _node("Props", self.hips)
        self.hat = _node("Hat", self.props)
        self.body = _node("Body", self.avatar)

        self.bones = [self.hips, self.spine, self.head, self.arm, self.hand]
        self.joints = np.array(
            [
                [0, -1, -1, -1],
                [1, 0, -1, -1],
                [2, 1, -1, -1],
                [3, -1, -1, -1],
                [4, 3, -1, -1],
            ],
            dtype=np.int32,
        )
        self.weights = np.array(
            [
                [1.0, 0.0, 0.0, 0.0],
                [0.6, 0.4, 0.0, 0.0],
                [0.7, 0.3, 0.0, 0.0],
                [1.0, 0.0, 0.0, 0.0],
                [0.8, 0.2, 0.0, 0.0],
            ],
            dtype=np.float32,
        )
        self.binding = _bind(self.body, self.bones, self.hips, self.joints, self.weights)


@pytest.fixture
def humanoid():
    return Humanoid()


# ------------------------------------------------------------
# Minimal skinned .glb
# ------------------------------------------------------------

def _write_glb(path, skeleton=1):
    """
    Armature -> Hips -> Spine -> Head, plus a skinned "Body" node.
    The single animation has one channel on Hips and one on Head.
    """
    from pygltflib import (
        ARRAY_BUFFER,
        FLOAT,
        GLTF2,
        MAT4,
        SCALAR,
        UNSIGNED_SHORT,
        VEC3,
        VEC4,
        Accessor,
        Animation,
        AnimationChannel,
        AnimationChannelTarget,
        AnimationSampler,
        Attributes,
        Buffer,
        BufferView,
        Mesh,
        Node,
        Primitive,
        Scene,
        Skin,
    )

    positions = np.array([[0, 1, 0], [0, 1.5, 0], [0, 2, 0]], dtype=np.float32)
    joints = np.array([[0, 0, 0, 0], [1, 0, 0, 0], [2, 1, 0, 0]], dtype=np.uint16)
    weights = np.array([[1, 0, 0, 0], [1, 0, 0, 0], [0.5, 0.5, 0, 0]], dtype=np.float32)
    inverse_bind = np.tile(np.eye(4, dtype=np.float32).reshape(16), (3, 1))
    times = np.array([0.0, 1.0], dtype=np.float32)
    rotations = np.array([[0, 0, 0, 1], [0, 0, 0, 1]], dtype=np.float32)

    blob = bytearray()
    views = []
    accessors = []

    def add(array, component_type, accessor_type, target=None):
        blob.extend(b"\x00" * ((4 - len(blob) % 4) % 4))
        data = array.tobytes()
        views.append(BufferView(buffer=0, byteOffset=len(blob), byteLength=len(data), target=target))
        blob.extend(data)
        accessors.append(
            Accessor(
                bufferView=len(views) - 1,
                componentType=component_type,
                count=int(array.shape[0]),
                type=accessor_type,
            )
        )
        return len(accessors) - 1

    pos_acc = add(positions, FLOAT, VEC3, ARRAY_BUFFER)
    accessors[pos_acc].min = positions.min(axis=0).tolist()
    accessors[pos_acc].max = positions.max(axis=0).tolist()
    joints_acc = add(joints, UNSIGNED_SHORT, VEC4, ARRAY_BUFFER)
    weights_acc = add(weights, FLOAT, VEC4, ARRAY_BUFFER)
    ibm_acc = add(inverse_bind, FLOAT, MAT4)
    time_acc = add(times, FLOAT, SCALAR)
    rot_acc = add(rotations, FLOAT, VEC4)

    gltf = GLTF2(
        scene=0,
        scenes=[Scene(nodes=[0, 4])],
        nodes=[
            Node(name="Armature", children=[1]),
            Node(name="Hips", children=[2], translation=[0.0, 1.0, 0.0]),
            Node(name="Spine", children=[3], translation=[0.0, 0.5, 0.0]),
            Node(name="Head", translation=[0.0, 0.5, 0.0]),
            Node(name="Body", mesh=0, skin=0),
        ],
        meshes=[
            Mesh(
                name="Body",
                primitives=[
                    Primitive(
                        attributes=Attributes(POSITION=pos_acc, JOINTS_0=joints_acc, WEIGHTS_0=weights_acc)
                    )
                ],
            )
        ],
        skins=[Skin(name="Rig", inverseBindMatrices=ibm_acc, skeleton=skeleton, joints=[1, 2, 3])],
        animations=[
            Animation(
                name="Nod",
                samplers=[AnimationSampler(input=time_acc, output=rot_acc)],
                channels=[
                    AnimationChannel(sampler=0, target=AnimationChannelTarget(node=1, path="rotation")),
                    AnimationChannel(sampler=0, target=AnimationChannelTarget(node=3, path="rotation")),
                ],
            )
        ],
        accessors=accessors,
        bufferViews=views,
        buffers=[Buffer(byteLength=len(blob))],
    )
    gltf.set_binary_blob(bytes(blob))
    gltf.save_binary(str(path))
    return path


@pytest.fixture
def glb_path(tmp_path):
    return _write_glb(tmp_path / "rig.glb")


@pytest.fixture
def write_glb():
    return _write_glb
