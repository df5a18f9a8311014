# src/geometry/bvh.py
import numpy as np
from core.aabb import AABB

class BVHNode:
    """
    Host-side build node. Splits at the median centroid along the axis where
    the centroids spread the most; leaves keep up to `max_leaf_size` primitives.
    """
    def __init__(self, boxes: list, order: list, start: int, end: int, max_leaf_size: int = 2):
        self.box = boxes[order[start]]
        for i in range(start + 1, end):
            self.box = AABB.surrounding_box(self.box, boxes[order[i]])
        self.start = start
        self.end = end

        object_span = end - start
        if object_span <= max_leaf_size:
            self.left = self.right = None
            self.is_leaf = True
            return

        centroids = np.array([boxes[order[i]].centroid() for i in range(start, end)])
        spread = centroids.max(axis=0) - centroids.min(axis=0)
        best_axis = int(np.argmax(spread))

        # Sort along the best axis by centroid, stable so ties keep input order
        ranked = sorted(range(start, end), key=lambda i: boxes[order[i]].centroid()[best_axis])
        order[start:end] = [order[i] for i in ranked]

        best_split = start + object_span // 2
        self.left = BVHNode(boxes, order, start, best_split, max_leaf_size)
        self.right = BVHNode(boxes, order, best_split, end, max_leaf_size)
        self.is_leaf = False

class FlatBVH:
    """
    Flattened BVH as parallel arrays (root at index 0, parent -1 at the root,
    children -1 at leaves, leaves own [prim_start, prim_end) of the permuted
    primitive list).
    """
    def __init__(self, bbox_min, bbox_max, left, right, parent, prim_start, prim_end, order):
        self.bbox_min = bbox_min
        self.bbox_max = bbox_max
        self.left = left
        self.right = right
        self.parent = parent
        self.prim_start = prim_start
        self.prim_end = prim_end
        self.order = order

    @property
    def num_nodes(self) -> int:
        return len(self.left)

    def arrays(self):
        return (self.bbox_min, self.bbox_max, self.left, self.right,
                self.parent, self.prim_start, self.prim_end)

def build_bvh(boxes: list, max_leaf_size: int = 2) -> FlatBVH:
    """
    Build and flatten a BVH over a list of primitive AABBs.

    Returns a FlatBVH whose `order` maps new primitive slots to the indices
    of `boxes`; callers must permute their primitive arrays with it.
    """
    if len(boxes) == 0:
        raise ValueError("Cannot build a BVH without primitives")
    if max_leaf_size < 1:
        raise ValueError(f"max_leaf_size must be >= 1, got {max_leaf_size}")

    order = list(range(len(boxes)))
    root = BVHNode(boxes, order, 0, len(boxes), max_leaf_size)

    nodes = []

    def traverse(node, parent_index):
        index = len(nodes)
        nodes.append(None)  # placeholder
        flat_node = {
            'bbox_min': node.box.minimum,
            'bbox_max': node.box.maximum,
            'left': -1,
            'right': -1,
            'parent': parent_index,
            'start': node.start,
            'end': node.end,
        }
        if not node.is_leaf:
            flat_node['left'] = traverse(node.left, index)
            flat_node['right'] = traverse(node.right, index)
            flat_node['start'] = flat_node['end'] = 0
        nodes[index] = flat_node
        return index

    traverse(root, -1)
    n = len(nodes)

    bbox_min = np.zeros((n, 3), dtype=np.float32)
    bbox_max = np.zeros((n, 3), dtype=np.float32)
    left_indices = -np.ones(n, dtype=np.int32)
    right_indices = -np.ones(n, dtype=np.int32)
    parent_indices = -np.ones(n, dtype=np.int32)
    prim_start = np.zeros(n, dtype=np.int32)
    prim_end = np.zeros(n, dtype=np.int32)

    for i, node in enumerate(nodes):
        bbox_min[i] = node['bbox_min']
        bbox_max[i] = node['bbox_max']
        left_indices[i] = node['left']
        right_indices[i] = node['right']
        parent_indices[i] = node['parent']
        prim_start[i] = node['start']
        prim_end[i] = node['end']

    return FlatBVH(bbox_min, bbox_max, left_indices, right_indices, parent_indices,
                   prim_start, prim_end, np.array(order, dtype=np.int32))

def validate_bvh(bvh: FlatBVH, num_primitives: int) -> None:
    """
    Raise ValueError if the flat arrays break the structural invariants the
    stackless traversal relies on.
    """
    if bvh.num_nodes == 0 or bvh.parent[0] != -1:
        raise ValueError("BVH root must be node 0 with parent -1")
    covered = np.zeros(num_primitives, dtype=np.int32)
    for i in range(bvh.num_nodes):
        l, r = bvh.left[i], bvh.right[i]
        if (l == -1) != (r == -1):
            raise ValueError(f"Node {i} has exactly one child")
        if l == -1:
            if not (0 <= bvh.prim_start[i] < bvh.prim_end[i] <= num_primitives):
                raise ValueError(f"Leaf {i} has an empty or invalid primitive range")
            covered[bvh.prim_start[i]:bvh.prim_end[i]] += 1
        if i != 0:
            p = bvh.parent[i]
            if p < 0 or (bvh.left[p] != i and bvh.right[p] != i):
                raise ValueError(f"Node {i} is not a child of its parent {p}")
    if not np.all(covered == 1):
        raise ValueError("Every primitive must belong to exactly one leaf")
