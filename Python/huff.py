#Brad Arrington
import sys

from bitio import CompressorBitio

COMPRESSION_NAME = "static order 0 model with Huffman coding and offset decode table"

SYMBOL_COUNT = 256
FIRST_PARENT_VALUE = 0x100   # Internal node ids, never a byte value
OFFSET_BYTES = 1             # Width of each child offset in a decode table record
VALID_OFFSET_BYTES = (1, 2)


class HuffmanError(Exception):
    pass


class InvalidInputError(HuffmanError, ValueError):
    pass


class OffsetOverflowError(HuffmanError, OverflowError):
    pass


class CorruptArtifactError(HuffmanError):
    pass


class Node:
    def __init__(self, value=0, count=0, child_0=-1, child_1=-1):
        self.value = value
        self.count = count
        # Tree indices once link_tree() has run, -1 for none
        self.parent = -1
        self.child_0 = child_0
        self.child_1 = child_1

    def is_leaf(self) -> bool:
        return self.child_0 == -1

    def __repr__(self):
        return (f"Node(value={self.value}, count={self.count}, parent={self.parent}, "
                f"child_0={self.child_0}, child_1={self.child_1})")


class Code:
    def __init__(self):
        self.code = 0
        self.code_bits = 0


def record_size(offset_bytes: int) -> int:
    return 1 + 2 * offset_bytes


def check_offset_bytes(offset_bytes: int):
    if offset_bytes not in VALID_OFFSET_BYTES:
        raise InvalidInputError(
            f"Unsupported decode table offset width {offset_bytes!r}, expected one of {VALID_OFFSET_BYTES}")


def count_bytes(data, counts):
    for c in data:
        counts[c] += 1


def build_node_list(counts):
    """
    One node per occurring byte value, ascending by count.

    The sort is stable over values 0..255, so equal counts stay in ascending
    value order. Merge order, code lengths and table shape all depend on it.
    """
    nodes = [Node(value, counts[value]) for value in range(SYMBOL_COUNT) if counts[value] != 0]
    nodes.sort(key=lambda n: n.count)
    return nodes


def tree_count(symbol_count: int) -> int:
    return symbol_count * 2 - 1


def build_tree(nodes):
    """
    Merges the node list into a flat tree with the root at index zero.

    Each merge takes the first two working entries. The first becomes child_0,
    the second child_1, and both are written to the back of the tree, so
    every child sits at a higher index than its parent. The parent goes back
    into the working list ahead of any entry with an equal or larger count.
    """
    if len(nodes) < 2:
        raise InvalidInputError("A Huffman tree needs at least two distinct symbols")

    working = list(nodes)
    tree = [None] * tree_count(len(nodes))
    next_free = len(tree)
    next_parent_value = FIRST_PARENT_VALUE

    while True:
        first, second = working[0], working[1]
        new_node = Node(next_parent_value, first.count + second.count, first.value, second.value)
        next_parent_value += 1

        next_free -= 1
        tree[next_free] = first
        next_free -= 1
        tree[next_free] = second
        del working[:2]

        if not working:
            break

        insertion_point = len(working)
        for i, node in enumerate(working):
            if node.count >= new_node.count:
                insertion_point = i
                break
        working.insert(insertion_point, new_node)

    tree[0] = new_node
    link_tree(tree)
    return tree


def link_tree(tree):
    """Turns child values into tree indices and fills in the parent links."""
    index_of = {node.value: i for i, node in enumerate(tree)}
    for i, node in enumerate(tree):
        if node.child_0 == -1:
            continue
        node.child_0 = index_of[node.child_0]
        node.child_1 = index_of[node.child_1]
        tree[node.child_0].parent = i
        tree[node.child_1].parent = i


def leaf_index(tree):
    return {node.value: i for i, node in enumerate(tree) if node.is_leaf()}


def code_length(tree, node: int) -> int:
    bits = 0
    while tree[node].parent != -1:
        bits += 1
        node = tree[node].parent
    return bits


def compressed_size_info(tree, counts):
    """
    Determines the size of the compressed data.
    Returns a pair of total bytes used and bits used in the last byte,
    zero meaning the last byte is full.
    """
    total_bits = 0
    for value, i in leaf_index(tree).items():
        total_bits += counts[value] * code_length(tree, i)
    size_bytes = (total_bits + 7) // 8
    return size_bytes, total_bits % 8


def compress_data(tree, data, size_info):
    """
    Packs the code of every input byte, most significant bit first.

    Codes come out leaf first while climbing to the root, so the input is
    walked from its last byte and the buffer is filled from its last bit.
    """
    leaves = leaf_index(tree)
    output = CompressorBitio.BitBuffer.open_output_bit_buffer(*size_info)

    for i in range(len(data), 0, -1):
        node = leaves[data[i - 1]]
        while tree[node].parent != -1:
            parent = tree[node].parent
            output.output_bit_reversed(1 if tree[parent].child_1 == node else 0)
            node = parent

    if output.position() != (0, 0x80):
        raise HuffmanError(f"Encoded bit count disagrees with size info {size_info}")
    return bytes(output.data)


def build_decode_table(tree, offset_bytes: int = OFFSET_BYTES) -> bytes:
    """
    Format: one record per node, in tree order.
        1. Node value (0 for internal nodes),
        2. Distance to left child, 3. Distance to right child.
    Distances count records and are offset_bytes wide, big-endian.
    A left distance of 0 marks a leaf.
    """
    check_offset_bytes(offset_bytes)
    limit = 1 << (8 * offset_bytes)
    table = bytearray()

    for i, node in enumerate(tree):
        if node.is_leaf():
            table.append(node.value)
            table += bytes(2 * offset_bytes)
            continue

        table.append(0)
        for child in (node.child_0, node.child_1):
            distance = child - i
            if distance >= limit:
                raise OffsetOverflowError(
                    f"Node {i} child offset {distance} does not fit {offset_bytes} byte(s)")
            table += distance.to_bytes(offset_bytes, "big")

    return bytes(table)


def convert_tree_to_code(tree, codes, code_so_far, bits, node):
    if tree[node].is_leaf():
        codes[tree[node].value].code = code_so_far
        codes[tree[node].value].code_bits = bits
        return

    code_so_far <<= 1
    bits = bits + 1
    convert_tree_to_code(tree, codes, code_so_far, bits, tree[node].child_0)
    convert_tree_to_code(tree, codes, code_so_far | 1, bits, tree[node].child_1)


def build_codes(tree):
    codes = [Code() for _ in range(SYMBOL_COUNT)]
    convert_tree_to_code(tree, codes, 0, 0, 0)
    return codes


def code_string(code: Code) -> str:
    if code.code_bits == 0:
        return ""
    return f"{code.code:0{code.code_bits}b}"


def print_char(c, file=sys.stdout):
    if 0x20 <= c < 127:
        print(f"'{chr(c)}'", end="", file=file)
    else:
        print(f"{c:3d}", end="", file=file)


def print_model(tree, codes, file=sys.stdout):
    for i, node in enumerate(tree):
        print(f"node={i:3d}  value=", end="", file=file)
        if node.is_leaf():
            print_char(node.value, file)
        else:
            print(" * ", end="", file=file)
        print(f"  count={node.count:5d}  parent={node.parent:3d}", end="", file=file)

        if node.is_leaf():
            if codes is not None:
                print(f"  Huffman code={code_string(codes[node.value])}", end="", file=file)
        else:
            print(f"  child_0={node.child_0:3d}  child_1={node.child_1:3d}", end="", file=file)

        print(file=file)
