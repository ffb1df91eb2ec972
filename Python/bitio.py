#Bradford Arrington 2025


class CompressorBitio:
    FIRST_MASK = 0x80

    class BitBuffer:
        """Bit position over an in-memory byte buffer, most significant bit first.

        Reading moves forward. Writing moves backward from an end position,
        which is how the Huffman encoder lays its codes down: walking from a
        leaf to the root yields the last bit of a code first.
        """

        def __init__(self, data, index: int = 0, mask: int = 0x80):
            self.data = data
            self.index: int = index
            self.mask: int = mask

        @staticmethod
        def open_input_bit_buffer(data) -> 'CompressorBitio.BitBuffer':
            return CompressorBitio.BitBuffer(data)

        @staticmethod
        def open_output_bit_buffer(size_bytes: int, last_bits: int) -> 'CompressorBitio.BitBuffer':
            index, mask = CompressorBitio.end_position(size_bytes, last_bits)
            return CompressorBitio.BitBuffer(bytearray(size_bytes), index, mask)

        def position(self):
            return self.index, self.mask

        def copy(self) -> 'CompressorBitio.BitBuffer':
            return CompressorBitio.BitBuffer(self.data, self.index, self.mask)

        def input_bit(self) -> int:
            value = self.data[self.index] & self.mask
            self.mask >>= 1
            if self.mask == 0:
                self.mask = 0x80
                self.index += 1
            return 1 if value != 0 else 0

        def input_byte(self) -> int:
            # Stored mode reads whole bytes, the mask stays at 0x80
            value = self.data[self.index]
            self.index += 1
            return value

        def output_bit_reversed(self, bit: int):
            self.mask <<= 1
            if self.mask > 0x80:
                self.mask = 0x01
                self.index -= 1
            if self.index < 0:
                raise IndexError("Fatal error in OutputBit! Start of buffer passed.")
            if bit != 0:
                self.data[self.index] |= self.mask

    @staticmethod
    def bit_offset(index: int, mask: int) -> int:
        return index * 8 + 8 - mask.bit_length()

    @staticmethod
    def end_position(size_bytes: int, last_bits: int):
        """Returns the (index, mask) reached after reading every code bit."""
        if last_bits:
            return size_bytes - 1, 0x80 >> last_bits
        return size_bytes, 0x80
