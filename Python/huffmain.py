# Bradford Arrington 2025
import os
import sys
import time
import tracemalloc
from collections import namedtuple

import psutil

import huff
from huffman_compressor import HuffmanCompressor

COMPRESS_USAGE = "infile outfile [-d] [-w 1|2]\n\nSpecifying -d will dump the modeling data\nSpecifying -w sets the decode table offset width in bytes\n"
EXPAND_USAGE = "infile outfile\n"

PerformanceSample = namedtuple("PerformanceSample", ["wall_ms", "cpu_ms", "peak_kb"])

_printed_header = False


def print_ratios(compressor: HuffmanCompressor, output_size: int):
    """Sizes of one artifact: raw input, packed data, and the saved file with its header."""
    input_size = compressor.uncompressed_size()
    ratio = 100 - (compressor.compressed_size() * 100) // input_size
    mode = "huffman" if compressor.is_compressed() else "stored"

    print(f"\nInput bytes:             {input_size}")
    print(f"Artifact bytes:          {compressor.compressed_size()} ({mode})")
    print(f"Decode table bytes:      {len(compressor.decode_table())}")
    print(f"Output file bytes:       {output_size}")
    print(f"Bytes saved:             {compressor.bytes_saved()}")
    print(f"Compression ratio:       {ratio}%")


def measure(func, *args, **kwargs):
    process = psutil.Process(os.getpid())
    cpu = process.cpu_times()
    start_cpu = cpu.user + cpu.system
    start_time = time.perf_counter()
    tracemalloc.start()
    try:
        result = func(*args, **kwargs)
        peak = tracemalloc.get_traced_memory()[1]
    finally:
        tracemalloc.stop()
    wall_ms = (time.perf_counter() - start_time) * 1000
    cpu = process.cpu_times()
    cpu_ms = (cpu.user + cpu.system - start_cpu) * 1000
    return result, PerformanceSample(wall_ms, cpu_ms, peak / 1024)


def report_performance(name: str, sample: PerformanceSample):
    global _printed_header
    if not _printed_header:
        print(f"{'Step':<20} {'Wall Time (ms)':>15} {'CPU Time (ms)':>15} {'Peak Memory (KB)':>20}")
        _printed_header = True
    print(f"{name:<20} {sample.wall_ms:15.2f} {sample.cpu_ms:15.2f} {sample.peak_kb:20.2f}")


def track_performance(name, func, *args, **kwargs):
    result, sample = measure(func, *args, **kwargs)
    report_performance(name, sample)
    return result


def short_program_name(prog_name: str) -> str:
    short_name = prog_name
    last_slash = max(prog_name.rfind('\\'), prog_name.rfind('/'), prog_name.rfind(':'))
    if last_slash != -1:
        short_name = prog_name[last_slash + 1:]
    extension = short_name.rfind('.')
    if extension != -1:
        short_name = short_name[:extension]
    return short_name


def parse_compress_options(args):
    dump = False
    offset_bytes = huff.OFFSET_BYTES
    i = 0
    while i < len(args):
        if args[i] == "-d":
            dump = True
        elif args[i] == "-w" and i + 1 < len(args):
            i += 1
            try:
                offset_bytes = int(args[i])
            except ValueError:
                raise huff.InvalidInputError(f"Bad offset width {args[i]!r}")
        else:
            print(f"Unused argument: {args[i]}")
        i += 1
    return dump, offset_bytes


def dump_model(data: bytes):
    counts = [0] * huff.SYMBOL_COUNT
    huff.count_bytes(data, counts)
    nodes = huff.build_node_list(counts)
    if len(nodes) < 2:
        print("Single symbol input, no Huffman tree")
        return
    tree = huff.build_tree(nodes)
    huff.print_model(tree, huff.build_codes(tree))


def compress_file(input_path: str, output_path: str, dump: bool, offset_bytes: int) -> HuffmanCompressor:
    with open(input_path, 'rb') as input_file:
        data = input_file.read()

    compressor = track_performance("CompressFile", HuffmanCompressor, data, offset_bytes)
    with open(output_path, 'wb') as output_file:
        track_performance("WriteArtifact", output_file.write, compressor.save())

    if dump:
        dump_model(data)
    return compressor


def expand_file(input_path: str, output_path: str) -> HuffmanCompressor:
    with open(input_path, 'rb') as input_file:
        compressor = track_performance("LoadArtifact", HuffmanCompressor.load, input_file.read())

    decoded = track_performance("ExpandFile", compressor.decode)
    with open(output_path, 'wb') as output_file:
        output_file.write(decoded)
    return compressor


def compress_main(argv=None) -> int:
    arguments = sys.argv if argv is None else argv
    if len(arguments) < 3:
        print(f"\nUsage:  {short_program_name(arguments[0])} {COMPRESS_USAGE}")
        return 0

    try:
        dump, offset_bytes = parse_compress_options(arguments[3:])
        compressor = compress_file(arguments[1], arguments[2], dump, offset_bytes)
        print(f"\nCompressing {arguments[1]} to {arguments[2]}")
        print(f"Using {huff.COMPRESSION_NAME}\n")
        if not compressor.is_compressed():
            print("Huffman coding does not shrink this input, stored uncompressed")
        print_ratios(compressor, os.stat(arguments[2]).st_size)
    except FileNotFoundError:
        print(f"Error: Input file '{arguments[1]}' not found.")
        return 1
    except Exception as e:
        print(f"An error occurred: {e}")
        return 1
    return 0


def expand_main(argv=None) -> int:
    arguments = sys.argv if argv is None else argv
    if len(arguments) < 3:
        print(f"\nUsage:  {short_program_name(arguments[0])} {EXPAND_USAGE}")
        return 0

    try:
        print(f"\nDecompressing {arguments[1]} to {arguments[2]}")
        print(f"Using {huff.COMPRESSION_NAME}\n")
        expand_file(arguments[1], arguments[2])
    except FileNotFoundError:
        print(f"Error: Input file '{arguments[1]}' not found.")
        return 1
    except Exception as e:
        print(f"An error occurred: {e}")
        return 1
    return 0


def main_c():
    sys.exit(compress_main())


def main_e():
    sys.exit(expand_main())


if __name__ == '__main__':
    sys.exit(compress_main())
