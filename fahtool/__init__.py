from .fah import (
    FAHError, FormatError, BadMagic, Truncated, NameOutOfBounds,
    ArchiveIOError, OpenFailed, DataTruncated, UnsafePath,
    NameEncoding, FAHIndex, InventoryRow, ExtractResult,
    fah_hash, resolve_direct, resolve_split, resolve_name,
    iter_inventory, write_csv, extract,
    unpack_file_archive, unpack_bin_archive, create_csv_list,
)
