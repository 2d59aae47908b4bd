from boneprune.skinning.hierarchy import (
    deleted_bones,
    extract_bone_forest,
    find_bone_info,
    flatten_forest,
    format_forest,
)


def names(infos):
    return [i.name for i in infos]


def test_forest_keeps_bones_and_grouping_nodes(humanoid):
    forest = extract_bone_forest(humanoid.avatar)

    assert names(forest) == ["Hips"]
    flat = names(flatten_forest(forest))
    assert "ArmGroup" in flat
    for excluded in ("Props", "Hat", "Armature", "Body", "Avatar"):
        assert excluded not in flat


def test_depth_starts_at_zero(humanoid):
    forest = extract_bone_forest(humanoid.avatar)
    depths = {i.name: i.depth for i in flatten_forest(forest)}
    assert depths == {"Hips": 0, "Spine": 1, "Head": 2, "ArmGroup": 1, "Arm": 2, "Hand": 3}


def test_flatten_is_post_order(humanoid):
    forest = extract_bone_forest(humanoid.avatar)
    assert names(flatten_forest(forest)) == ["Head", "Spine", "Hand", "Arm", "ArmGroup", "Hips"]


def test_flatten_is_stable_across_clones(humanoid):
    forest = extract_bone_forest(humanoid.avatar)
    clone = humanoid.avatar.clone("Copy")
    cloned_forest = extract_bone_forest(clone)

    first = flatten_forest(forest)
    assert names(first) == names(flatten_forest(forest))
    cloned = flatten_forest(cloned_forest)
    assert names(cloned) == names(first)
    assert all(a.bone is not b.bone for a, b in zip(first, cloned))


def test_shared_root_gives_one_tree(humanoid, make_node, bind):
    eyes = make_node("Eyes", humanoid.avatar)
    bind(eyes, [humanoid.head], humanoid.hips, [[0, -1, -1, -1]], name="Eyes")

    assert names(extract_bone_forest(humanoid.avatar)) == ["Hips"]


def test_nested_root_is_not_repeated(humanoid, make_node, bind):
    eyes = make_node("Eyes", humanoid.avatar)
    bind(eyes, [humanoid.head], humanoid.spine, [[0, -1, -1, -1]], name="Eyes")

    forest = extract_bone_forest(humanoid.avatar)
    flat = names(flatten_forest(forest))
    assert names(forest) == ["Hips"]
    assert flat.count("Spine") == 1
    assert flat.count("Head") == 1


def test_separate_skeletons_give_separate_trees(humanoid, make_node, bind):
    rig = make_node("PetRig", humanoid.avatar)
    pet_root = make_node("PetRoot", rig)
    pet_tail = make_node("PetTail", pet_root)
    pet = make_node("Pet", humanoid.avatar)
    bind(pet, [pet_root, pet_tail], pet_root, [[1, -1, -1, -1]], name="Pet")

    assert names(extract_bone_forest(humanoid.avatar)) == ["Hips", "PetRoot"]


def test_no_bindings_give_empty_forest(make_node):
    root = make_node("Empty")
    make_node("Child", root)
    assert extract_bone_forest(root) == []


def test_deleted_flag_cascades_both_ways(humanoid):
    forest = extract_bone_forest(humanoid.avatar)
    arm_group = find_bone_info(forest, "ArmGroup")

    arm_group.set_deleted(True)
    assert names(deleted_bones(forest)) == ["Hand", "Arm", "ArmGroup"]

    find_bone_info(forest, "Arm").set_deleted(False)
    assert names(deleted_bones(forest)) == ["ArmGroup"]


def test_deleted_bones_closed_under_descendants(humanoid):
    forest = extract_bone_forest(humanoid.avatar)
    find_bone_info(forest, "Spine").set_deleted(True)

    for info in flatten_forest(forest):
        if info.deleted:
            assert all(c.deleted for c in info.children)


def test_find_unknown_bone(humanoid):
    assert find_bone_info(extract_bone_forest(humanoid.avatar), "Tail") is None


def test_format_forest_marks_deleted(humanoid):
    forest = extract_bone_forest(humanoid.avatar)
    find_bone_info(forest, "Head").set_deleted(True)

    lines = format_forest(forest).splitlines()
    assert lines[0] == "[ ] Hips"
    assert lines[1] == "  [ ] Spine"
    assert lines[2] == "    [x] Head"
    assert len(lines) == 6
