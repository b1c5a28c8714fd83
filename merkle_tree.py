# merkle_tree.py

from errors import TreeCapacityExceeded
from tools import to_int

# keccak256("tornado") mod FIELD_SIZE: value of an empty leaf.
ZERO_VALUE = int(
    "21663839004416932945382355908790599225266501822907911457504978515578255421292"
)


class MerkleTree:
    """
    Fixed-height incremental Merkle tree mirroring the on-chain tree.

    - levels: tree height; the root sits at layer `levels`.
    - hasher: explicit hash strategy; hasher.hash2(left, right) combines nodes.
      Trees built with different strategies never have comparable roots.
    - Missing right siblings are the precomputed zero subtree roots
      zeros[level], so a partially filled tree has the same root as the
      contract's filled-subtrees tree.
    - Capacity is 2**levels - 1 leaves; inserting beyond it raises
      TreeCapacityExceeded and leaves the tree untouched.
    """

    def __init__(self, levels, elements=(), hasher=None, zero_element=ZERO_VALUE):
        if hasher is None:
            raise ValueError("MerkleTree requires an explicit hasher")
        levels = int(levels)
        if levels <= 0:
            raise ValueError("levels must be a positive integer, got: %r" % levels)

        self.levels = levels
        self.capacity = (1 << levels) - 1
        self.hasher = hasher
        self.zero_element = to_int(zero_element)

        self._zeros = [self.zero_element]
        i = 1
        while i <= levels:
            prev = self._zeros[i - 1]
            self._zeros.append(hasher.hash2(prev, prev))
            i += 1

        self._layers = [[] for _ in range(levels + 1)]

        elements = [to_int(e) for e in elements]
        if len(elements) > self.capacity:
            raise TreeCapacityExceeded(levels, 0, len(elements))
        self._layers[0] = elements
        self._rebuild()

    def _h2(self, left, right):
        return self.hasher.hash2(left, right)

    def _rebuild(self):
        level = 1
        while level <= self.levels:
            below = self._layers[level - 1]
            layer = []
            i = 0
            while i < (len(below) + 1) // 2:
                left = below[2 * i]
                if 2 * i + 1 < len(below):
                    right = below[2 * i + 1]
                else:
                    right = self._zeros[level - 1]
                layer.append(self._h2(left, right))
                i += 1
            self._layers[level] = layer
            level += 1

    def _refresh_path(self, index):
        # recompute only the ancestors of leaf `index`
        level = 1
        while level <= self.levels:
            index >>= 1
            below = self._layers[level - 1]
            left = below[2 * index]
            if 2 * index + 1 < len(below):
                right = below[2 * index + 1]
            else:
                right = self._zeros[level - 1]
            parent = self._h2(left, right)
            layer = self._layers[level]
            if index == len(layer):
                layer.append(parent)
            else:
                layer[index] = parent
            level += 1

    # ---------------- public interface ----------------
    def root(self):
        top = self._layers[self.levels]
        if len(top) > 0:
            return top[0]
        return self._zeros[self.levels]

    def insert(self, element):
        if self.size() >= self.capacity:
            raise TreeCapacityExceeded(self.levels, self.size(), 1)
        self._layers[0].append(to_int(element))
        self._refresh_path(self.size() - 1)

    def bulk_insert(self, elements):
        elements = [to_int(e) for e in elements]
        if self.size() + len(elements) > self.capacity:
            raise TreeCapacityExceeded(self.levels, self.size(), len(elements))
        self._layers[0].extend(elements)
        self._rebuild()

    def update(self, index, element):
        if index < 0 or index >= self.size():
            raise IndexError("leaf index out of range: %d" % index)
        self._layers[0][index] = to_int(element)
        self._refresh_path(index)

    def path(self, index):
        """
        Return the authentication path of leaf `index`:
          {"path_elements": [sibling per level], "path_indices": [0/1 per level]}
        path_indices[level] == 1 means the current node is the right child.
        """
        if index < 0 or index >= self.size():
            raise IndexError("leaf index out of range: %d" % index)

        path_elements = []
        path_indices = []
        level = 0
        while level < self.levels:
            path_indices.append(index % 2)
            sibling = index ^ 1
            layer = self._layers[level]
            if sibling < len(layer):
                path_elements.append(layer[sibling])
            else:
                path_elements.append(self._zeros[level])
            index >>= 1
            level += 1

        return {"path_elements": path_elements, "path_indices": path_indices}

    def index_of(self, element):
        """Return the index of the first leaf equal to element, or -1."""
        target = to_int(element)
        leaves = self._layers[0]
        i = 0
        while i < len(leaves):
            if leaves[i] == target:
                return i
            i += 1
        return -1

    def elements(self):
        return list(self._layers[0])

    def zeros(self):
        return list(self._zeros)

    def size(self):
        return len(self._layers[0])

    def copy(self):
        clone = MerkleTree.__new__(MerkleTree)
        clone.levels = self.levels
        clone.capacity = self.capacity
        clone.hasher = self.hasher
        clone.zero_element = self.zero_element
        clone._zeros = list(self._zeros)
        clone._layers = [list(layer) for layer in self._layers]
        return clone


def compute_root_from_path(hasher, leaf, path_elements, path_indices):
    """
    Fold a leaf up its authentication path. path_indices may be the bit list
    or the packed integer produced by bits_to_number.
    """
    if isinstance(path_indices, int):
        bits = []
        i = 0
        while i < len(path_elements):
            bits.append((path_indices >> i) & 1)
            i += 1
    else:
        bits = list(path_indices)

    cur = to_int(leaf)
    i = 0
    while i < len(path_elements):
        sibling = to_int(path_elements[i])
        if bits[i] == 1:
            cur = hasher.hash2(sibling, cur)
        else:
            cur = hasher.hash2(cur, sibling)
        i += 1
    return cur
