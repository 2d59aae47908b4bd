import numpy as np
from pygltflib import GLTF2

from boneprune.assets.glb_loader import GLBLoader
from boneprune.assets.glb_writer import GLBWriter
from boneprune.assets.mesh_asset import MeshAssetStore
from boneprune.config import PrunerConfig
from boneprune.skinning.pruner import BonePruner


def test_load_model(glb_path):
    loaded = GLBLoader(str(glb_path)).load_model()

    assert loaded.root.name == "rig"
    assert [c.name for c in loaded.root.children] == ["Armature", "Body"]
    assert [n.source_index for n in loaded.nodes] == [0, 1, 2, 3, 4]

    (binding,) = loaded.bindings
    assert binding.node.name == "Body"
    assert [b.name for b in binding.bones] == ["Hips", "Spine", "Head"]
    assert binding.root_bone.name == "Hips"
    assert binding.mesh.joints.tolist() == [[0, 0, 0, 0], [1, 0, 0, 0], [2, 1, 0, 0]]
    assert np.allclose(binding.mesh.weights[2], [0.5, 0.5, 0.0, 0.0])
    assert np.allclose(binding.mesh.bind_poses, np.eye(4))
    assert binding.mesh.primitive_ranges == [(0, 0, 3)]


def test_world_positions_from_gltf(glb_path):
    loaded = GLBLoader(str(glb_path)).load_model()
    head = loaded.root.find("Head")
    assert np.allclose(head.world_position(), [0.0, 2.0, 0.0])


def test_unchanged_model_round_trips(glb_path, tmp_path):
    loaded = GLBLoader(str(glb_path)).load_model()
    out = GLBWriter(loaded.gltf, loaded.root).write(str(tmp_path / "same.glb"))

    gltf = GLTF2().load(str(out))
    assert [n.name for n in gltf.nodes] == ["Armature", "Hips", "Spine", "Head", "Body"]
    assert len(gltf.meshes) == 1
    assert gltf.skins[0].joints == [1, 2, 3]
    assert gltf.skins[0].inverseBindMatrices == loaded.gltf.skins[0].inverseBindMatrices


def test_prune_and_write(glb_path, tmp_path):
    loaded = GLBLoader(str(glb_path)).load_model()
    store = MeshAssetStore(str(tmp_path / "assets"))
    pruner = BonePruner(loaded.root, PrunerConfig(duplicate=False), store)
    pruner.mark("Head")
    result = pruner.delete_bones()

    assert result.assets == [tmp_path / "assets" / "Body-pruned.json"]

    out = GLBWriter(loaded.gltf, result.model).write(str(tmp_path / "pruned.glb"))
    gltf = GLTF2().load(str(out))

    assert [n.name for n in gltf.nodes] == ["Armature", "Hips", "Spine", "Body"]
    body = gltf.nodes[3]
    assert gltf.meshes[body.mesh].name == "Body-pruned"
    assert gltf.skins[body.skin].joints == [1, 2]
    assert gltf.skins[body.skin].skeleton == 1

    # Head channel dropped, Hips channel renumbered
    (anim,) = gltf.animations
    assert [ch.target.node for ch in anim.channels] == [1]

    reloaded = GLBLoader(str(out)).load_model()
    (binding,) = reloaded.bindings
    assert [b.name for b in binding.bones] == ["Hips", "Spine"]
    assert binding.mesh.joints.tolist() == [[0, 0, 0, 0], [1, 0, 0, 0], [1, 1, 0, 0]]
    assert binding.mesh.bind_poses.shape == (2, 4, 4)


def test_skeleton_outside_joints_falls_back(write_glb, tmp_path):
    # skeleton points at Armature, which is not a joint
    path = write_glb(tmp_path / "armature_root.glb", skeleton=0)
    loaded = GLBLoader(str(path)).load_model()

    (binding,) = loaded.bindings
    assert binding.root_bone.name == "Hips"

    pruner = BonePruner(loaded.root, PrunerConfig(duplicate=False))
    assert [r.name for r in pruner.forest] == ["Hips"]
    pruner.mark("Spine")
    pruner.delete_bones()

    assert [b.name for b in binding.bones] == ["Hips"]
    assert binding.mesh.joints.tolist() == [[0, 0, 0, 0], [0, 0, 0, 0], [0, 0, 0, 0]]
