import random

import pytest

import huff


def _counts(data):
	counts = [0] * huff.SYMBOL_COUNT
	huff.count_bytes(data, counts)
	return counts


def _tree(data):
	return huff.build_tree(huff.build_node_list(_counts(data)))


def _codes(tree):
	codes = huff.build_codes(tree)
	return {node.value: huff.code_string(codes[node.value]) for node in tree if node.is_leaf()}


def test_count_bytes():
	counts = _counts(b"hello")
	assert counts[ord('l')] == 2
	assert counts[ord('h')] == 1
	assert sum(counts) == 5
	assert len(counts) == 256


def test_node_list_sorted_with_ties_by_value():
	nodes = huff.build_node_list(_counts(b"ccbbaaz"))
	assert [(n.value, n.count) for n in nodes] == [
		(ord('z'), 1), (ord('a'), 2), (ord('b'), 2), (ord('c'), 2)]


def test_node_list_drops_absent_values():
	nodes = huff.build_node_list(_counts(b"\x00\xff\x00"))
	assert [(n.value, n.count) for n in nodes] == [(255, 1), (0, 2)]


def test_aabbcc_tree_layout():
	tree = _tree(b"aabbcc")
	assert [n.value for n in tree] == [0x101, 0x100, ord('c'), ord('b'), ord('a')]
	assert [n.count for n in tree] == [6, 4, 2, 2, 2]
	assert [n.parent for n in tree] == [-1, 0, 0, 1, 1]
	assert (tree[0].child_0, tree[0].child_1) == (2, 1)
	assert (tree[1].child_0, tree[1].child_1) == (4, 3)


def test_aabbcc_codes():
	assert _codes(_tree(b"aabbcc")) == {ord('c'): "0", ord('a'): "10", ord('b'): "11"}


def test_aabbcc_bitstream_and_table():
	tree = _tree(b"aabbcc")
	size_info = huff.compressed_size_info(tree, _counts(b"aabbcc"))
	assert size_info == (2, 2)
	assert huff.compress_data(tree, b"aabbcc", size_info) == bytes([0xAF, 0x00])
	assert huff.build_decode_table(tree) == bytes([
		0, 2, 1,
		0, 3, 2,
		ord('c'), 0, 0,
		ord('b'), 0, 0,
		ord('a'), 0, 0,
	])


def test_aabbcc_is_reproducible():
	first = _tree(b"aabbcc")
	second = _tree(b"aabbcc")
	assert huff.build_decode_table(first) == huff.build_decode_table(second)
	assert _codes(first) == _codes(second)


def test_aaab_golden_bitstream():
	tree = _tree(b"aaab")
	assert _codes(tree) == {ord('a'): "1", ord('b'): "0"}
	size_info = huff.compressed_size_info(tree, _counts(b"aaab"))
	assert size_info == (1, 4)
	assert huff.compress_data(tree, b"aaab", size_info) == bytes([0xE0])
	assert huff.build_decode_table(tree) == bytes([0, 2, 1, ord('a'), 0, 0, ord('b'), 0, 0])


def test_merged_node_goes_before_equal_count():
	# b and c merge into 32, which must land ahead of a (32)
	tree = _tree(b"abac" * 16)
	assert [n.value for n in tree] == [0x101, ord('a'), 0x100, ord('c'), ord('b')]
	assert _codes(tree) == {ord('a'): "1", ord('b'): "00", ord('c'): "01"}


def test_mixed_code_lengths_pack_in_input_order():
	data = b"abac" * 16
	tree = _tree(data)
	size_info = huff.compressed_size_info(tree, _counts(data))
	assert size_info == (12, 0)
	assert huff.compress_data(tree, data, size_info) == bytes.fromhex("965965") * 4


def test_partial_last_byte():
	data = b"abac" * 16 + b"a"
	tree = _tree(data)
	size_info = huff.compressed_size_info(tree, _counts(data))
	assert size_info == (13, 1)
	assert huff.compress_data(tree, data, size_info) == bytes.fromhex("965965") * 4 + b"\x80"


def test_sizing_matches_encoding():
	rng = random.Random(7)
	for n in (2, 10, 333, 4096):
		data = bytes(rng.choice(b"abcdefgh\x00\xff") for _ in range(n))
		if len(set(data)) < 2:
			continue
		tree = _tree(data)
		size_bytes, last_bits = huff.compressed_size_info(tree, _counts(data))
		packed = huff.compress_data(tree, data, (size_bytes, last_bits))
		assert len(packed) == size_bytes


def test_sizing_disagreement_is_detected():
	tree = _tree(b"aabbcc")
	with pytest.raises(huff.HuffmanError):
		huff.compress_data(tree, b"aabbcc", (3, 2))


def test_tree_invariants():
	data = b"the quick brown fox jumps over the lazy dog" * 3
	tree = _tree(data)
	symbols = len(set(data))
	assert len(tree) == 2 * symbols - 1
	assert tree[0].parent == -1
	assert tree[0].count == len(data)
	for i, node in enumerate(tree):
		if node.is_leaf():
			continue
		assert node.child_0 > i and node.child_1 > i
		assert node.count == tree[node.child_0].count + tree[node.child_1].count
		assert tree[node.child_0].parent == i
		assert tree[node.child_1].parent == i
	assert sum(n.count for n in tree if n.is_leaf()) == len(data)


def test_build_tree_needs_two_symbols():
	with pytest.raises(huff.InvalidInputError):
		huff.build_tree(huff.build_node_list(_counts(b"zzzz")))


def test_wide_alphabet_overflows_one_byte_offsets():
	data = bytes(range(256)) + b"A" * 10000
	tree = _tree(data)
	with pytest.raises(huff.OffsetOverflowError):
		huff.build_decode_table(tree, 1)
	table = huff.build_decode_table(tree, 2)
	assert len(table) == 511 * huff.record_size(2)


def test_unsupported_offset_width():
	with pytest.raises(huff.InvalidInputError):
		huff.build_decode_table(_tree(b"aab"), 3)


def test_print_model(capsys):
	tree = _tree(b"aabbcc")
	huff.print_model(tree, huff.build_codes(tree))
	out = capsys.readouterr().out
	assert "Huffman code=10" in out
	assert "child_0=  2  child_1=  1" in out
	assert len(out.splitlines()) == 5
