from boneprune.scene.node import SceneNode
from boneprune.skinning.skin import SkinBinding


def get_skin_bindings(model: SceneNode, include_inactive: bool = False) -> list[SkinBinding]:
    """
    Skin components found under ``model`` (pre-order, model included).

    :param model: The model root
    :param include_inactive: Also return components on disabled nodes
    """
    bindings = []
    for node in model.iter_subtree():
        if node.skin is None:
            continue
        if not include_inactive and not node.is_active_in_hierarchy():
            continue
        bindings.append(node.skin)
    return bindings


def collect_bone_set(bindings: list[SkinBinding]) -> set[SceneNode]:
    """
    Distinct bones referenced by any binding. Missing (None) entries are ignored.
    """
    return {bone for binding in bindings for bone in binding.bones if bone is not None}


def count_bones(model: SceneNode, include_inactive: bool = True) -> int:
    return len(collect_bone_set(get_skin_bindings(model, include_inactive)))
