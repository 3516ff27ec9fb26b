import os
import sys
import enum
from collections import namedtuple
from pathlib import Path, PureWindowsPath

import numpy as np
from construct import ConstError, StreamError

from .fahstructs import FAIHeader, FAIEntry, FAIEntries, FAH_VER_2_00

HEADER_SIZE = FAIHeader.sizeof()
ENTRY_SIZE  = FAIEntry.sizeof()
CHUNK_SIZE  = 0x10000

CSV_HEADER = "Filename,Offset (FAB),Size (Hex),Position (FAI)"


class FAHError(Exception):
    pass

class FormatError(FAHError):
    pass

class BadMagic(FormatError):
    pass

class Truncated(FormatError):
    pass

class NameOutOfBounds(FormatError):
    pass

class ArchiveIOError(FAHError):
    pass

class OpenFailed(ArchiveIOError):
    pass

class DataTruncated(ArchiveIOError):
    pass

class UnsafePath(ArchiveIOError):
    pass


def fah_hash(name):
    """Per-lane byte sum of name, packed little endian into a u32.

    Each byte is added into lane (position % 4); lanes wrap at 256 on
    their own and never carry into each other.
    """
    if isinstance(name, str):
        name = name.encode("utf-8")
    data = np.frombuffer(name, dtype=np.uint8)
    lanes = np.zeros(-(-len(data) // 4) * 4, dtype=np.uint64)
    lanes[:len(data)] = data
    lanes = lanes.reshape(-1, 4).sum(axis=0) & 0xFF
    return int.from_bytes(lanes.astype(np.uint8).tobytes(), "little")


#
# Name table
#

def read_cstring(data, offset, start=0, end=None):
    """Null terminated bytes at offset within data[start:end]."""
    if end is None or end > len(data):
        end = len(data)
    pos = start + offset
    if pos >= end:
        raise NameOutOfBounds("name offset 0x%x outside 0x%x byte table" % (offset, max(end - start, 0)))
    term = data.find(b"\x00", pos, end)
    if term < 0:
        raise NameOutOfBounds("unterminated name at offset 0x%x" % offset)
    return data[pos:term]

def resolve_direct(names, name_offset):
    return read_cstring(names, name_offset)

def resolve_split(names, prefix_size, name_offset):
    # high half indexes the prefix table, low half the suffix table,
    # both in units of 4 bytes
    prefix = read_cstring(names, (name_offset >> 16) * 4, 0, prefix_size)
    suffix = read_cstring(names, (name_offset & 0xFFFF) * 4, prefix_size)
    return prefix + suffix


class NameEncoding(enum.Enum):
    DIRECT = "direct"
    SPLIT = "split"

    @classmethod
    def for_version(cls, version):
        return cls.DIRECT if version < FAH_VER_2_00 else cls.SPLIT

def resolve_name(encoding, names, prefix_size, name_offset):
    if encoding is NameEncoding.DIRECT:
        return resolve_direct(names, name_offset)
    return resolve_split(names, prefix_size, name_offset)


#
# Index
#

def stream_length(fd):
    pos = fd.tell()
    length = fd.seek(0, os.SEEK_END)
    fd.seek(pos)
    return length

def open_archive_file(path):
    try:
        return open(path, "rb")
    except OSError as e:
        raise OpenFailed("%s: %s" % (path, e.strerror)) from e


class FAHIndex:
    """Decoded FAI: header, entry table and the raw name table."""
    __slots__ = "header", "entries", "names", "encoding", "text_encoding"

    def __init__(self, header, entries, names, text_encoding="utf-8"):
        self.header = header
        self.entries = tuple(entries)
        self.names = bytes(names)
        self.encoding = NameEncoding.for_version(header.version)
        self.text_encoding = text_encoding

    @classmethod
    def parse_stream(cls, fd, text_encoding="utf-8"):
        length = stream_length(fd)
        fd.seek(0)
        try:
            header = FAIHeader.parse_stream(fd)
        except ConstError:
            raise BadMagic("missing FAH magic") from None
        except StreamError:
            raise Truncated("0x%x bytes is too short for a header" % length) from None

        available = (length - HEADER_SIZE) // ENTRY_SIZE
        if header.entry_count > available:
            raise Truncated("%d entries declared, room for %d" % (header.entry_count, available))
        entries = FAIEntries(header.entry_count).parse_stream(fd)

        table_size = header.index_size - header.name_table_offset
        if table_size < 0:
            raise Truncated("name table offset 0x%x past index end 0x%x"
                            % (header.name_table_offset, header.index_size))
        fd.seek(header.name_table_offset)
        names = fd.read(table_size)
        if len(names) < table_size:
            raise Truncated("name table is 0x%x bytes, expected 0x%x" % (len(names), table_size))

        return cls(header, entries, names, text_encoding)

    @classmethod
    def from_file(cls, path, text_encoding="utf-8"):
        with open_archive_file(path) as fd:
            return cls.parse_stream(fd, text_encoding)

    def __len__(self):
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)

    def raw_name(self, entry):
        return resolve_name(self.encoding, self.names,
                            self.header.name_blob_size, entry.name_offset)

    def decode(self, raw):
        return raw.decode(self.text_encoding, "surrogateescape")

    def name(self, entry):
        return self.decode(self.raw_name(entry))

    def display_name(self, raw):
        # safe to print on any stream, unlike the surrogate escaped form
        return raw.decode(self.text_encoding, "backslashreplace")

    def checksum_mismatches(self):
        for idx, entry in enumerate(self.entries):
            raw = self.raw_name(entry)
            computed = fah_hash(raw)
            if computed != entry.checksum:
                yield idx, self.decode(raw), entry.checksum, computed


#
# Inventory
#

InventoryRow = namedtuple("InventoryRow", "name data_offset data_size index_position")

def iter_inventory(index):
    for idx, entry in enumerate(index.entries):
        yield InventoryRow(index.name(entry), entry.data_offset, entry.data_size,
                           HEADER_SIZE + idx * ENTRY_SIZE)

def csv_row(row):
    return '"%s",0x%x,0x%x,0x%x' % (row.name.replace('"', '""'),
                                    row.data_offset, row.data_size, row.index_position)

def write_csv(index, out):
    print(CSV_HEADER, file=out)
    for row in iter_inventory(index):
        print(csv_row(row), file=out)


#
# Extraction
#

ExtractResult = namedtuple("ExtractResult", "extracted failed")

def output_path(root, name):
    """Join name under root, treating / and \\ as separators."""
    if name.startswith(("/", "\\")) or PureWindowsPath(name).drive:
        raise UnsafePath("refusing to write %r" % name)
    # empty components collapse, as a plain path join would
    parts = [p for p in name.replace("\\", "/").split("/") if p]
    if not parts or any(p in (".", "..") for p in parts):
        raise UnsafePath("refusing to write %r" % name)
    return Path(root).joinpath(*parts)

def copy_range(src, dst, offset, size):
    src.seek(offset)
    remaining = size
    while remaining:
        chunk = src.read(min(CHUNK_SIZE, remaining))
        if not chunk:
            raise DataTruncated("0x%x of 0x%x bytes at 0x%x" % (size - remaining, size, offset))
        dst.write(chunk)
        remaining -= len(chunk)

def extract_entry(entry, data_fd, data_length, root, name):
    path = output_path(root, name)
    if entry.data_offset + entry.data_size > data_length:
        raise DataTruncated("0x%x bytes at 0x%x past end of data (0x%x)"
                            % (entry.data_size, entry.data_offset, data_length))
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("wb") as out:
        copy_range(data_fd, out, entry.data_offset, entry.data_size)
    return path

def extract(index, data_fd, output_dir, verify=False):
    """Write every entry of index under output_dir, in table order.

    Bad names abort the run. Failures local to one file are reported on
    stderr and collected in the result while extraction carries on.
    """
    root = Path(output_dir)
    try:
        root.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise OpenFailed("cannot create %s: %s" % (root, e.strerror)) from e
    data_length = stream_length(data_fd)
    result = ExtractResult([], [])

    for entry in index.entries:
        raw = index.raw_name(entry)
        name = index.decode(raw)
        shown = index.display_name(raw)
        print("Extracting", shown)

        if verify:
            computed = fah_hash(raw)
            if computed != entry.checksum:
                sys.stderr.write("Checksum mismatch for %s: stored 0x%x, computed 0x%x\n"
                                 % (shown, entry.checksum, computed))

        try:
            path = extract_entry(entry, data_fd, data_length, root, name)
        except (ArchiveIOError, OSError) as e:
            sys.stderr.write("Failed to extract %s: %s\n" % (shown, e))
            result.failed.append((name, e))
        else:
            result.extracted.append(path)

    print("Extraction completed.")
    return result


#
# Whole-file operations
#

# fai - file archive index
# fab - file archive bytes
def unpack_file_archive(data_fai, data_fab, output_dir, text_encoding="utf-8", verify=False):
    with open_archive_file(data_fai) as fai, open_archive_file(data_fab) as fab:
        index = FAHIndex.parse_stream(fai, text_encoding)
        return extract(index, fab, output_dir, verify)

# standalone .bin FAH files found inside the main archive
def unpack_bin_archive(data_fah, output_dir, text_encoding="utf-8", verify=False):
    with open_archive_file(data_fah) as fah:
        index = FAHIndex.parse_stream(fah, text_encoding)
        return extract(index, fah, output_dir, verify)

def create_csv_list(data_fai, data_fab, output_csv, text_encoding="utf-8"):
    with open_archive_file(data_fai) as fai, open_archive_file(data_fab):
        index = FAHIndex.parse_stream(fai, text_encoding)
    try:
        out = open(output_csv, "w", encoding=text_encoding, errors="surrogateescape")
    except OSError as e:
        raise OpenFailed("cannot create %s: %s" % (output_csv, e.strerror)) from e
    with out:
        write_csv(index, out)
    print("CSV File List created successfully")
    return index
