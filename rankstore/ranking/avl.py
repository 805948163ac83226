"""
AVL tree ranked collection.

Height-balanced binary search tree keyed by sort key. Every node tracks the
size of its subtree, so rank and select-by-position are O(log n) alongside
O(log n) insert and delete. Suited to leaderboards with mixed reads and writes.
"""

from typing import Dict, Iterator, List, Optional

from rankstore.data_models import Identity, Score
from rankstore.ranking.base import RankedCollection, SortKey
from rankstore.utils.codec import Pair


class AVLNode:
    """AVL tree node with order-statistic bookkeeping."""
    
    __slots__ = ('key', 'identity', 'score', 'left', 'right', 'height', 'size')
    
    def __init__(self, key: SortKey, identity: Identity, score: Score):
        self.key = key
        self.identity = identity
        self.score = score
        self.left: Optional['AVLNode'] = None
        self.right: Optional['AVLNode'] = None
        self.height = 1
        self.size = 1  # Number of nodes in subtree
    
    def update_stats(self):
        """Update height and size statistics."""
        left_height = self.left.height if self.left else 0
        right_height = self.right.height if self.right else 0
        self.height = max(left_height, right_height) + 1
        
        left_size = self.left.size if self.left else 0
        right_size = self.right.size if self.right else 0
        self.size = left_size + right_size + 1


def _size(node: Optional[AVLNode]) -> int:
    return node.size if node else 0


def _balance(node: Optional[AVLNode]) -> int:
    if not node:
        return 0
    left_height = node.left.height if node.left else 0
    right_height = node.right.height if node.right else 0
    return left_height - right_height


def _rotate_right(y: AVLNode) -> AVLNode:
    x = y.left
    y.left = x.right
    x.right = y
    y.update_stats()
    x.update_stats()
    return x


def _rotate_left(x: AVLNode) -> AVLNode:
    y = x.right
    x.right = y.left
    y.left = x
    x.update_stats()
    y.update_stats()
    return y


def _rebalance(node: AVLNode) -> AVLNode:
    node.update_stats()
    balance = _balance(node)
    
    if balance > 1:
        # Left Right Case
        if _balance(node.left) < 0:
            node.left = _rotate_left(node.left)
        return _rotate_right(node)
    
    if balance < -1:
        # Right Left Case
        if _balance(node.right) > 0:
            node.right = _rotate_right(node.right)
        return _rotate_left(node)
    
    return node


class AVLRankedCollection(RankedCollection):
    """Size-augmented AVL tree strategy ("avl")."""
    
    name = 'avl'
    
    def __init__(self, ascending: bool = False):
        super().__init__(ascending)
        self._root: Optional[AVLNode] = None
        self._scores: Dict[Identity, Score] = {}
    
    def __len__(self) -> int:
        return _size(self._root)
    
    def score_of(self, identity: Identity) -> Optional[Score]:
        return self._scores.get(identity)
    
    def position_of(self, identity: Identity) -> Optional[int]:
        score = self._scores.get(identity)
        if score is None:
            return None
        
        key = self.sort_key(identity, score)
        position = 0
        node = self._root
        while node:
            if key < node.key:
                node = node.left
            elif key > node.key:
                position += _size(node.left) + 1
                node = node.right
            else:
                return position + _size(node.left)
        return None
    
    def slice(self, offset: int, count: int) -> List[Pair]:
        pairs = []
        for node in self._iter_from(offset):
            if len(pairs) >= count:
                break
            pairs.append((node.identity, node.score))
        return pairs
    
    def clear(self):
        self._root = None
        self._scores = {}
    
    def height(self) -> int:
        return self._root.height if self._root else 0
    
    def _iter_from(self, offset: int) -> Iterator[AVLNode]:
        """In-order traversal starting at 0-based position ``offset``."""
        stack = []
        node = self._root
        while node:
            left_size = _size(node.left)
            if offset < left_size:
                stack.append(node)
                node = node.left
            elif offset == left_size:
                stack.append(node)
                break
            else:
                offset -= left_size + 1
                node = node.right
        
        while stack:
            node = stack.pop()
            yield node
            child = node.right
            while child:
                stack.append(child)
                child = child.left
    
    def _insert(self, identity: Identity, score: Score):
        self._root = self._insert_node(self._root, AVLNode(self.sort_key(identity, score), identity, score))
        self._scores[identity] = score
    
    def _insert_node(self, node: Optional[AVLNode], new_node: AVLNode) -> AVLNode:
        if not node:
            return new_node
        if new_node.key < node.key:
            node.left = self._insert_node(node.left, new_node)
        else:
            node.right = self._insert_node(node.right, new_node)
        return _rebalance(node)
    
    def _remove(self, identity: Identity, score: Score):
        self._root = self._remove_node(self._root, self.sort_key(identity, score))
        del self._scores[identity]
    
    def _remove_node(self, node: Optional[AVLNode], key: SortKey) -> Optional[AVLNode]:
        if not node:
            return None
        
        if key < node.key:
            node.left = self._remove_node(node.left, key)
        elif key > node.key:
            node.right = self._remove_node(node.right, key)
        else:
            if not node.left:
                return node.right
            if not node.right:
                return node.left
            
            # Replace with in-order successor
            successor = node.right
            while successor.left:
                successor = successor.left
            node.right = self._remove_node(node.right, successor.key)
            node.key, node.identity, node.score = successor.key, successor.identity, successor.score
        
        return _rebalance(node)
    
    def _load_sorted(self, pairs: List[Pair]):
        nodes = [AVLNode(self.sort_key(identity, score), identity, score) for identity, score in pairs]
        self._root = self._build(nodes, 0, len(nodes))
        self._scores = dict(pairs)
    
    def _build(self, nodes: List[AVLNode], start: int, stop: int) -> Optional[AVLNode]:
        """Perfectly balanced tree from a sorted slice."""
        if start >= stop:
            return None
        middle = (start + stop) // 2
        node = nodes[middle]
        node.left = self._build(nodes, start, middle)
        node.right = self._build(nodes, middle + 1, stop)
        node.update_stats()
        return node
