from construct import *

FAH_MAGIC = b"FAH\x00"

FAH_VER_1_00 = 0x100
FAH_VER_1_01 = 0x101
FAH_VER_2_00 = 0x200

FAIHeader = Struct(
    "magic"             / Const(FAH_MAGIC),
    "version"           / Int32ul,
    "reserved"          / Int32ul, #always 0
    "index_size"        / Int32ul, #size of the whole FAI
    "entry_count"       / Int32ul,
    "header_marker"     / Int32ul, #always 32
    "name_blob_size"    / Int32ul, #prefix table size, v2 only
    "name_table_offset" / Int32ul,
)

FAIEntry = Struct(
    "name_offset" / Int32ul,
    "data_offset" / Int32ul,
    "data_size"   / Int32ul,
    "checksum"    / Int32ul,
)

def FAIEntries(count):
    return Array(count, FAIEntry)

__all__ = [
    "FAH_MAGIC", "FAH_VER_1_00", "FAH_VER_1_01", "FAH_VER_2_00",
    "FAIHeader", "FAIEntry", "FAIEntries",
]
