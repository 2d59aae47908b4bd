import math

import numpy as np

from boneprune.scene.node import SceneNode
from boneprune.scene.transform import Transform
from boneprune.scene.transform_utils import mat4_from_gltf, mat4_to_gltf, trs_matrix

QUARTER_TURN_Y = (0.0, math.sin(math.pi / 4), 0.0, math.cos(math.pi / 4))


def test_trs_order():
    m = trs_matrix((1.0, 2.0, 3.0), QUARTER_TURN_Y, (2.0, 1.0, 1.0))
    # scale first, then rotate +X onto -Z, then translate
    assert np.allclose(m @ [1.0, 0.0, 0.0, 1.0], [1.0, 2.0, 1.0, 1.0], atol=1e-6)


def test_gltf_matrices_are_column_major():
    m = trs_matrix((1.0, 2.0, 3.0), (0.0, 0.0, 0.0, 1.0), (1.0, 1.0, 1.0))
    values = mat4_to_gltf(m)
    assert values[12:15] == [1.0, 2.0, 3.0]
    assert np.allclose(mat4_from_gltf(values), m)


def test_explicit_matrix_wins():
    m = np.eye(4, dtype=np.float32)
    m[0, 3] = 5.0
    t = Transform(position=(1.0, 1.0, 1.0), matrix=m)
    assert t.has_matrix
    assert np.allclose(t.matrix(), m)
    assert np.allclose(t.copy().matrix(), m)


def test_world_position_through_rotated_parent():
    parent = SceneNode("Parent", Transform(position=(0.0, 1.0, 0.0), rotation=QUARTER_TURN_Y))
    child = parent.add_child(SceneNode("Child", Transform(position=(1.0, 0.0, 0.0))))
    assert np.allclose(child.world_position(), [0.0, 1.0, -1.0], atol=1e-6)


def test_clone_keeps_order_and_sources(humanoid):
    humanoid.hips.source_index = 7
    clone = humanoid.avatar.clone("Copy")

    assert clone.name == "Copy" and clone.parent is None
    assert [n.name for n in clone.iter_subtree()][1:] == [n.name for n in humanoid.avatar.iter_subtree()][1:]
    assert clone.find("Hips").source_index == 7

    skin = clone.find("Body").skin
    assert skin.node is clone.find("Body")
    assert skin.root_bone is clone.find("Hips")
    assert all(clone.is_ancestor_of(b) for b in skin.bones)
    assert skin.mesh is humanoid.binding.mesh
