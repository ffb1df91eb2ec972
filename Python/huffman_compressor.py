import struct

import huff
from bitio import CompressorBitio
from huff import CorruptArtifactError, InvalidInputError

STORED = 0
HUFFMAN = 1

ARTIFACT_MAGIC = b"HUF1"
# magic, mode, offset_bytes, uncompressed size, bitstream bytes, bits used in last byte
ARTIFACT_HEADER = struct.Struct(">4sBBIIB")


def _as_bytes(raw_data) -> bytes:
    if isinstance(raw_data, str):
        return raw_data.encode("utf-8")
    if isinstance(raw_data, (bytes, bytearray, memoryview)):
        return bytes(raw_data)
    if isinstance(raw_data, int):
        raise InvalidInputError("Expected a byte string, got an int")
    try:
        return bytes(raw_data)
    except (TypeError, ValueError) as e:
        raise InvalidInputError(f"Cannot compress {type(raw_data).__name__}: {e}") from e


def _check_decode_table(compressor):
    """Internal records need value 0 and forward offsets inside the table, leaves no offsets."""
    table = compressor.decode_table()
    width = compressor.offset_bytes()
    rec = huff.record_size(width)
    count = compressor.tree_count()

    for i in range(count):
        record = table[i * rec:(i + 1) * rec]
        left = int.from_bytes(record[1:1 + width], "big")
        right = int.from_bytes(record[1 + width:], "big")
        if left == 0 and right == 0:
            if i == 0:
                raise CorruptArtifactError("Decode table root is a leaf")
            continue
        if record[0] != 0 or left == 0 or right == 0:
            raise CorruptArtifactError(f"Decode table record {i} is malformed")
        if i + left >= count or i + right >= count:
            raise CorruptArtifactError(f"Decode table record {i} points past the table")


def _check_bitstream(compressor):
    """Decodes once; the stream must yield uncompressed_size values and stop on the end marker."""
    end_bit = CompressorBitio.bit_offset(*Decoder._end_position(compressor))
    cursor = compressor.begin()
    produced = 0
    while not cursor.at_end():
        produced += 1
        if produced > compressor.uncompressed_size():
            raise CorruptArtifactError("Bitstream decodes to more bytes than its header says")
        cursor.advance()
        if CompressorBitio.bit_offset(*cursor.position()) > end_bit:
            raise CorruptArtifactError("Bitstream overruns its end marker")

    if produced != compressor.uncompressed_size():
        raise CorruptArtifactError(
            f"Bitstream decodes to {produced} bytes, header says {compressor.uncompressed_size()}")


class HuffmanCompressor:
    """
    Compresses a fixed byte string with Huffman coding and decodes it lazily.

    The artifact is the packed bitstream followed by the decode table. When
    that would not be smaller than the input, the input is kept as is and
    is_compressed() is False.
    """

    def __init__(self, raw_data, offset_bytes: int = huff.OFFSET_BYTES):
        huff.check_offset_bytes(offset_bytes)
        data = _as_bytes(raw_data)
        if len(data) == 0:
            raise InvalidInputError("Cannot compress an empty byte string")

        self._offset_bytes = offset_bytes
        self._uncompressed_size = len(data)
        self._mode = STORED
        self._size_bytes = len(data)
        self._last_bits = 0
        self._tree_count = 0
        self._data = data

        counts = [0] * huff.SYMBOL_COUNT
        huff.count_bytes(data, counts)
        nodes = huff.build_node_list(counts)
        if len(nodes) < 2:
            return

        tree = huff.build_tree(nodes)
        size_bytes, last_bits = huff.compressed_size_info(tree, counts)
        compressed_size = size_bytes + huff.record_size(offset_bytes) * len(tree)
        if compressed_size >= len(data):
            return

        table = huff.build_decode_table(tree, offset_bytes)
        bitstream = huff.compress_data(tree, data, (size_bytes, last_bits))
        self._mode = HUFFMAN
        self._size_bytes = size_bytes
        self._last_bits = last_bits
        self._tree_count = len(tree)
        self._data = bitstream + table

    @classmethod
    def load(cls, blob) -> 'HuffmanCompressor':
        """Rebuilds a decode-only instance from the output of save()."""
        blob = bytes(blob)
        if len(blob) < ARTIFACT_HEADER.size:
            raise CorruptArtifactError("Artifact is shorter than its header")
        magic, mode, offset_bytes, uncompressed_size, size_bytes, last_bits = \
            ARTIFACT_HEADER.unpack_from(blob)
        body = blob[ARTIFACT_HEADER.size:]

        if magic != ARTIFACT_MAGIC:
            raise CorruptArtifactError(f"Bad artifact magic {magic!r}")
        if mode not in (STORED, HUFFMAN) or offset_bytes not in huff.VALID_OFFSET_BYTES or last_bits > 7:
            raise CorruptArtifactError("Bad artifact header")
        if uncompressed_size == 0:
            raise CorruptArtifactError("Artifact has no data")

        compressor = cls.__new__(cls)
        compressor._offset_bytes = offset_bytes
        compressor._uncompressed_size = uncompressed_size
        compressor._mode = mode
        compressor._size_bytes = size_bytes
        compressor._last_bits = last_bits
        compressor._data = body

        if mode == STORED:
            compressor._tree_count = 0
            if len(body) != uncompressed_size or size_bytes != uncompressed_size:
                raise CorruptArtifactError("Stored artifact length does not match its header")
        else:
            table_size = len(body) - size_bytes
            rec = huff.record_size(offset_bytes)
            if size_bytes == 0 or table_size < 3 * rec or table_size % rec != 0:
                raise CorruptArtifactError("Decode table is truncated")
            compressor._tree_count = table_size // rec
            _check_decode_table(compressor)
            _check_bitstream(compressor)
        return compressor

    def save(self) -> bytes:
        header = ARTIFACT_HEADER.pack(ARTIFACT_MAGIC, self._mode, self._offset_bytes,
                                      self._uncompressed_size, self._size_bytes, self._last_bits)
        return header + self._data

    def is_compressed(self) -> bool:
        return self._mode == HUFFMAN

    def compressed_size(self) -> int:
        return self._size_bytes + huff.record_size(self._offset_bytes) * self._tree_count

    def uncompressed_size(self) -> int:
        return self._uncompressed_size

    def bytes_saved(self) -> int:
        return max(self._uncompressed_size - self.compressed_size(), 0)

    def compressed_size_info(self):
        return self._size_bytes, self._last_bits

    def offset_bytes(self) -> int:
        return self._offset_bytes

    def tree_count(self) -> int:
        return self._tree_count

    def data(self) -> bytes:
        return self._data

    def bitstream(self) -> bytes:
        return self._data[:self._size_bytes]

    def decode_table(self) -> bytes:
        if self._mode == STORED:
            return b""
        return self._data[self._size_bytes:]

    def size(self) -> int:
        return len(self._data)

    def begin(self) -> 'Decoder':
        return Decoder(self)

    def end(self) -> 'Decoder':
        return Decoder.end(self)

    cbegin = begin
    cend = end

    def __iter__(self):
        return self.begin()

    def decode(self) -> bytes:
        return bytes(self.begin())

    def __repr__(self):
        mode = "huffman" if self.is_compressed() else "stored"
        return (f"HuffmanCompressor(mode={mode}, uncompressed_size={self._uncompressed_size}, "
                f"compressed_size={self.compressed_size()})")


class Decoder:
    """
    Forward cursor over the decoded bytes of a HuffmanCompressor.

    value holds the byte at the cursor, -1 once the stream is exhausted.
    Cursors only move their own position, so any number of them can read
    the same artifact.
    """

    def __init__(self, compressor: HuffmanCompressor, bits=None, current: int = -1):
        self._compressor = compressor
        self._data = compressor.data()
        self._table = compressor.compressed_size_info()[0]
        self._record = huff.record_size(compressor.offset_bytes())
        self._end = Decoder._end_position(compressor)
        self._bits = bits
        self.current = current
        if bits is None:
            self._bits = CompressorBitio.BitBuffer.open_input_bit_buffer(self._data)
            self.advance()

    @staticmethod
    def _end_position(compressor: HuffmanCompressor):
        if compressor.is_compressed():
            return CompressorBitio.end_position(*compressor.compressed_size_info())
        return compressor.uncompressed_size(), 0x80

    @classmethod
    def end(cls, compressor: HuffmanCompressor) -> 'Decoder':
        index, mask = cls._end_position(compressor)
        return cls(compressor, CompressorBitio.BitBuffer(compressor.data(), index, mask), -1)

    @property
    def value(self) -> int:
        return self.current

    def at_end(self) -> bool:
        return self.current == -1

    def position(self):
        return self._bits.position()

    def advance(self) -> 'Decoder':
        if self._bits.position() == self._end:
            self.current = -1
            return self

        if not self._compressor.is_compressed():
            self.current = self._bits.input_byte()
            return self

        width = self._compressor.offset_bytes()
        data = self._data
        node = self._table
        while True:
            if self._bits.input_bit():
                start = node + 1 + width
            else:
                start = node + 1
            node += int.from_bytes(data[start:start + width], "big") * self._record
            if int.from_bytes(data[node + 1:node + 1 + width], "big") == 0:
                break
        self.current = data[node]
        return self

    def copy(self) -> 'Decoder':
        return Decoder(self._compressor, self._bits.copy(), self.current)

    def __eq__(self, other):
        if not isinstance(other, Decoder):
            return NotImplemented
        return (self._data is other._data and
                self._bits.position() == other._bits.position() and
                self.current == other.current)

    __hash__ = None

    def __iter__(self):
        return self

    def __next__(self) -> int:
        if self.current == -1:
            raise StopIteration
        value = self.current
        self.advance()
        return value

    def __repr__(self):
        index, mask = self._bits.position()
        return f"Decoder(index={index}, mask=0x{mask:02x}, value={self.current})"
