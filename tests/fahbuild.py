"""Assemble synthetic FAH archives for the tests."""
from fahtool.fah import fah_hash
from fahtool.fahstructs import FAIHeader, FAIEntry, FAH_VER_1_00, FAH_VER_2_00

HEADER_SIZE = FAIHeader.sizeof()
ENTRY_SIZE = FAIEntry.sizeof()


def pad4(data):
    return data + b"\x00" * (-len(data) % 4)

class StringTable(object):
    def __init__(self, align=1):
        self.track = {}
        self.data = b""
        self.align = align

    def add(self, s):
        raw = s.encode("utf-8") if isinstance(s, str) else s
        if raw not in self.track:
            self.track[raw] = len(self.data)
            self.data += raw + b"\x00"
            if self.align == 4:
                self.data = pad4(self.data)
        return self.track[raw]


def build_index(entries, names, version=FAH_VER_1_00, name_blob_size=0,
                index_size=None, entry_count=None, **fields):
    """entries are (name_offset, data_offset, data_size, checksum) tuples"""
    table_offset = HEADER_SIZE + len(entries) * ENTRY_SIZE
    header = dict(
        version=version,
        reserved=0,
        index_size=table_offset + len(names) if index_size is None else index_size,
        entry_count=len(entries) if entry_count is None else entry_count,
        header_marker=32,
        name_blob_size=name_blob_size,
        name_table_offset=table_offset,
    )
    header.update(fields)
    body = b"".join(FAIEntry.build(dict(name_offset=n, data_offset=o, data_size=s, checksum=c))
                    for n, o, s, c in entries)
    return FAIHeader.build(header) + body + names


def make_archive(files, version=FAH_VER_1_00, single=False):
    """files are (name, content) pairs.

    Returns (fai, fab) bytes, or the bin bytes when single is set.
    """
    if version < FAH_VER_2_00:
        table = StringTable()
        name_offsets = [table.add(name) for name, _ in files]
        names = table.data
        blob_size = 0
    else:
        prefixes, suffixes = StringTable(4), StringTable(4)
        name_offsets = []
        for name, _ in files:
            head, sep, tail = name.rpartition("/")
            prefix = prefixes.add(head + sep)
            suffix = suffixes.add(tail)
            name_offsets.append((prefix // 4) << 16 | (suffix // 4))
        names = prefixes.data + suffixes.data
        blob_size = len(prefixes.data)

    base = HEADER_SIZE + len(files) * ENTRY_SIZE + len(names) if single else 0
    data = b""
    entries = []
    for (name, content), name_offset in zip(files, name_offsets):
        entries.append((name_offset, base + len(data), len(content), fah_hash(name)))
        data += content

    index = build_index(entries, names, version, blob_size)
    if single:
        return index + data
    return index, data


def write_archive(tmp_path, files, version=FAH_VER_1_00):
    fai, fab = make_archive(files, version)
    fai_path = tmp_path / "DATA.FAI"
    fab_path = tmp_path / "DATA.FAB"
    fai_path.write_bytes(fai)
    fab_path.write_bytes(fab)
    return fai_path, fab_path
