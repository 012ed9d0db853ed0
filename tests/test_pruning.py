import pytest

from extant_sampler.exceptions import EmptySampleError, InvariantViolation, StructureError
from extant_sampler.flat import flatten
from extant_sampler.pruning import (
    change_tree,
    find_all_leaves,
    find_deepest_leaves,
    find_root,
    leaves_to_be_removed,
    prune_to_deepest,
    remove_all_unsampled,
)
from extant_sampler.tree import assign_depths, depths_to_lengths, parse_newick, serialize


def depth_annotated(text):
    root = parse_newick(text)
    assign_depths(root, 0.0)
    return flatten(root)


def leaf_names(flat_tree, indices):
    return [flat_tree[index].name for index in indices]


def reachable_child_counts(flat_tree):
    return {len(node.child_indices()) for _, node in flat_tree.iter()}


SCENARIO = "(A:1,(B:2,C:3):1);"


def test_find_all_leaves():
    flat_tree = depth_annotated(SCENARIO)
    assert find_all_leaves(flat_tree) == [1, 3, 4]


def test_find_deepest_leaves_orders_by_depth():
    flat_tree = depth_annotated(SCENARIO)
    assert find_deepest_leaves(flat_tree, 2) == [4, 3]
    assert find_deepest_leaves(flat_tree, 3) == [4, 3, 1]


def test_find_deepest_leaves_breaks_ties_by_discovery_order():
    flat_tree = depth_annotated("((A:1,B:2):1,(C:2,D:1):1);")
    assert leaf_names(flat_tree, find_deepest_leaves(flat_tree, 4)) == ["B", "C", "A", "D"]


def test_find_deepest_leaves_over_request_keeps_all():
    flat_tree = depth_annotated(SCENARIO)
    assert sorted(find_deepest_leaves(flat_tree, 50)) == [1, 3, 4]


@pytest.mark.parametrize("nb_leaves", [0, -1])
def test_empty_sample_is_rejected(nb_leaves):
    flat_tree = depth_annotated(SCENARIO)
    with pytest.raises(EmptySampleError):
        find_deepest_leaves(flat_tree, nb_leaves)


def test_empty_sample_error_is_a_structure_error():
    assert issubclass(EmptySampleError, StructureError)


def test_leaves_without_depth_are_an_invariant_violation():
    flat_tree = flatten(parse_newick(SCENARIO))
    with pytest.raises(InvariantViolation):
        find_deepest_leaves(flat_tree, 1)


def test_leaves_to_be_removed_keeps_leaf_order():
    assert leaves_to_be_removed([1, 3, 4, 6], [4, 1]) == [3, 6]


def test_change_tree_promotes_sibling_under_grandparent():
    flat_tree = depth_annotated("((A:1,B:1):1,C:1);")
    change_tree(flat_tree, 2)
    root = flat_tree[0]
    assert root.left_child == 3
    assert flat_tree[3].parent == 0
    assert flat_tree[1].parent is None
    assert flat_tree[2].parent == 1
    assert serialize(flat_tree.to_node()) == "(B:1,C:1);"


def test_change_tree_at_root_leaves_sibling_parentless():
    flat_tree = depth_annotated(SCENARIO)
    change_tree(flat_tree, 1)
    assert flat_tree[2].parent is None
    assert flat_tree.root == 0
    assert find_root(flat_tree, 4) == 2


def test_change_tree_rejects_internal_node():
    flat_tree = depth_annotated(SCENARIO)
    with pytest.raises(InvariantViolation):
        change_tree(flat_tree, 2)


def test_change_tree_rejects_root_leaf():
    flat_tree = depth_annotated("A;")
    with pytest.raises(InvariantViolation):
        change_tree(flat_tree, 0)


def test_change_tree_rejects_missing_child_slot():
    flat_tree = depth_annotated(SCENARIO)
    flat_tree[0].left_child = 3
    with pytest.raises(InvariantViolation):
        change_tree(flat_tree, 1)


def test_prune_scenario():
    flat_tree = depth_annotated(SCENARIO)
    result = prune_to_deepest(flat_tree, 2)
    assert leaf_names(flat_tree, result.sampled) == ["C", "B"]
    assert leaf_names(flat_tree, result.removed) == ["A"]
    assert flat_tree.root == 2

    pruned = flat_tree.to_node()
    depths_to_lengths(pruned, pruned.depth)
    assert serialize(pruned) == "(B:2,C:3);"


def test_prune_over_request_removes_nothing():
    flat_tree = depth_annotated(SCENARIO)
    result = prune_to_deepest(flat_tree, 3)
    assert result.removed == []
    assert flat_tree.root == 0
    assert serialize(flat_tree.to_node()) == SCENARIO


def test_prune_removes_several_ancestors_on_one_path():
    flat_tree = depth_annotated("(((A:1,B:2):1,C:1):1,D:1);")
    result = prune_to_deepest(flat_tree, 2)
    assert leaf_names(flat_tree, result.sampled) == ["B", "A"]
    assert leaf_names(flat_tree, result.removed) == ["C", "D"]
    assert flat_tree.root == 2


def test_splice_order_does_not_matter():
    text = "(((A:1,B:2):1,C:1):1,(D:3,E:1):1);"
    forward = depth_annotated(text)
    backward = depth_annotated(text)
    removed = leaves_to_be_removed(find_all_leaves(forward), [4, 7])

    remove_all_unsampled(forward, removed)
    remove_all_unsampled(backward, list(reversed(removed)))
    forward.root = find_root(forward, 4)
    backward.root = find_root(backward, 4)
    assert serialize(forward.to_node()) == serialize(backward.to_node())


def test_binary_shape_and_leaf_count_survive_pruning():
    text = (
        "(((A:1.5,B:0.5):2,(C:3.25,D:1):0.5):1,"
        "((E:2,F:4):1,(G:0.25,(H:6,I:0.5):1):2):2);"
    )
    for nb_leaves in range(1, 10):
        flat_tree = depth_annotated(text)
        result = prune_to_deepest(flat_tree, nb_leaves)
        assert reachable_child_counts(flat_tree) <= {0, 2}
        assert len(find_all_leaves(flat_tree)) == nb_leaves
        assert sorted(find_all_leaves(flat_tree)) == sorted(result.sampled)
        assert len(result.sampled) + len(result.removed) == 9


def test_kept_leaves_are_the_deepest():
    text = "(((A:1.5,B:0.5):2,(C:3.25,D:1):0.5):1,((E:2,F:4):1,G:0.25):2);"
    flat_tree = depth_annotated(text)
    result = prune_to_deepest(flat_tree, 4)
    assert leaf_names(flat_tree, result.sampled) == ["F", "E", "C", "A"]
    assert leaf_names(flat_tree, result.removed) == ["B", "D", "G"]
