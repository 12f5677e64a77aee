import pytest

from machoparse import parse
from machoparse.macho import Protection, SegmentCommand
from machoparse.macho.constants import LoadCommandType
from machoparse.macho.exceptions import SegmentOutOfBoundsError
from .macho_builder import MachOBuilder, section_entry, segment_body

DATA_OFFSET = 0x400
SECTION_BYTES = bytes(range(0x30, 0x40))

# S_ATTR_PURE_INSTRUCTIONS | S_ATTR_SOME_INSTRUCTIONS | S_REGULAR
TEXT_FLAGS = 0x80000400


def build_text_segment(bits: int = 64, order: str = "<") -> bytes:
    cmd = LoadCommandType.SEGMENT_64 if bits == 64 else LoadCommandType.SEGMENT
    body = segment_body(
        "__TEXT",
        bits=bits,
        vmaddr=0x100000000 if bits == 64 else 0x1000,
        vmsize=0x1000,
        fileoff=0,
        filesize=DATA_OFFSET + len(SECTION_BYTES),
        maxprot=5,
        initprot=5,
        sections=(
            section_entry(
                "__text",
                "__TEXT",
                addr=0x100000400 if bits == 64 else 0x1400,
                size=len(SECTION_BYTES),
                offset=DATA_OFFSET,
                align=4,
                flags=TEXT_FLAGS,
                bits=bits,
                order=order,
            ),
        ),
        order=order,
    )
    builder = MachOBuilder(bits=bits, order=order).add(cmd, body)
    return builder.build(SECTION_BYTES, trailer_offset=DATA_OFFSET)


@pytest.mark.parametrize("bits, order", ((64, "<"), (32, "<"), (64, ">"), (32, ">")))
def test_segment_with_section(bits: int, order: str):
    data = build_text_segment(bits, order)
    (segment,) = parse(data).commands

    assert isinstance(segment, SegmentCommand)
    assert segment.type == ("segment_64" if bits == 64 else "segment")
    assert segment.name == "__TEXT"
    assert segment.vmsize == 0x1000
    assert segment.fileoff == 0
    assert segment.filesize == DATA_OFFSET + 16
    assert segment.maxprot == Protection(read=True, write=False, execute=True)
    assert segment.initprot == Protection(read=True, write=False, execute=True)
    assert segment.nsects == 1
    assert segment.flags == frozenset()

    (section,) = segment.sections
    assert section.sectname == "__text"
    assert section.segname == "__TEXT"
    assert section.size == 16
    assert section.offset == DATA_OFFSET
    assert section.align == 4
    assert section.type == "regular"
    assert section.attributes.usr == {"pure_instructions"}
    assert section.attributes.sys == {"some_instructions"}


def test_section_data_slice():
    """Section data comes from the whole file at the section's own offset."""
    data = build_text_segment()
    (segment,) = parse(data).commands

    assert isinstance(segment, SegmentCommand)
    assert segment.sections[0].data == SECTION_BYTES
    assert segment.sections[0].data == data[DATA_OFFSET : DATA_OFFSET + 16]


def test_section_outside_segment():
    """The segment's file range does not limit where its sections read from."""
    body = segment_body(
        "__DATA",
        fileoff=0x10,
        filesize=0x10,
        sections=(section_entry("__data", "__DATA", 0, 4, 0x300),),
    )
    data = MachOBuilder().add(LoadCommandType.SEGMENT_64, body).build(
        b"\xde\xad\xbe\xef", trailer_offset=0x300
    )
    (segment,) = parse(data).commands

    assert isinstance(segment, SegmentCommand)
    assert segment.sections[0].data == b"\xde\xad\xbe\xef"


def test_section_count():
    sections = tuple(
        section_entry(f"__s{i}", "__DATA", 0x1000 * i, 0, 0) for i in range(5)
    )
    body = segment_body("__DATA", sections=sections)
    data = MachOBuilder().add(LoadCommandType.SEGMENT_64, body).build()
    (segment,) = parse(data).commands

    assert isinstance(segment, SegmentCommand)
    assert segment.nsects == 5
    assert [s.sectname for s in segment.sections] == [f"__s{i}" for i in range(5)]
    assert all(len(s.data) == 0 for s in segment.sections)


PROTECTION_CASES = (
    (0, Protection(False, False, False)),
    (1, Protection(True, False, False)),
    (3, Protection(True, True, False)),
    (5, Protection(True, False, True)),
    (7, Protection(True, True, True)),
)


@pytest.mark.parametrize("value, expected", PROTECTION_CASES)
def test_protection(value: int, expected: Protection):
    assert Protection.from_raw(value) == expected


def test_pagezero():
    body = segment_body("__PAGEZERO", vmsize=0x100000000, maxprot=0, initprot=0)
    data = MachOBuilder().add(LoadCommandType.SEGMENT_64, body).build()
    (segment,) = parse(data).commands

    assert isinstance(segment, SegmentCommand)
    assert segment.initprot.is_none
    assert segment.maxprot.is_none
    assert segment.sections == ()


def test_segment_flags():
    body = segment_body("__DATA_CONST", flags=0x10)
    data = MachOBuilder().add(LoadCommandType.SEGMENT_64, body).build()
    (segment,) = parse(data).commands

    assert isinstance(segment, SegmentCommand)
    assert segment.flags == {"read_only"}


def test_zerofill_section():
    """Zerofill sections are sliced from the file like any other section."""
    section = section_entry("__bss", "__DATA", 0x2000, 0x10, 0, flags=0x1)
    body = segment_body("__DATA", sections=(section,))
    data = MachOBuilder().add(LoadCommandType.SEGMENT_64, body).build()
    (segment,) = parse(data).commands

    assert isinstance(segment, SegmentCommand)
    (bss,) = segment.sections
    assert bss.type == "zerofill"
    assert len(bss.data) == bss.size
    assert bss.data == data[0:0x10]


def test_zerofill_section_past_end_of_file():
    section = section_entry("__bss", "__DATA", 0x2000, 0x100000, 0, flags=0x1)
    body = segment_body("__DATA", sections=(section,))
    data = MachOBuilder().add(LoadCommandType.SEGMENT_64, body).build()

    with pytest.raises(SegmentOutOfBoundsError):
        parse(data)


def test_segment_header_too_short():
    data = MachOBuilder().add(LoadCommandType.SEGMENT_64, b"\x00" * 48).build()

    with pytest.raises(SegmentOutOfBoundsError):
        parse(data)


def test_nsects_past_end_of_command():
    section = section_entry("__text", "__TEXT", 0, 0, 0)
    body = segment_body("__TEXT", sections=(section,), nsects=2)
    data = MachOBuilder().add(LoadCommandType.SEGMENT_64, body).build()

    with pytest.raises(SegmentOutOfBoundsError):
        parse(data)


def test_truncated_section_entry():
    section = section_entry("__text", "__TEXT", 0, 0, 0, bits=32)
    body = segment_body("__TEXT", bits=32, sections=(section[:-4],), nsects=1)
    data = MachOBuilder(bits=32).add(LoadCommandType.SEGMENT, body).build()

    with pytest.raises(SegmentOutOfBoundsError):
        parse(data)


def test_section_data_past_end_of_file():
    section = section_entry("__text", "__TEXT", 0, 0x1000, 0x200)
    body = segment_body("__TEXT", sections=(section,))
    data = MachOBuilder().add(LoadCommandType.SEGMENT_64, body).build()

    with pytest.raises(SegmentOutOfBoundsError):
        parse(data)


def test_base_address():
    """The first segment with any initial protection sets the base address."""
    data = (
        MachOBuilder()
        .add(
            LoadCommandType.SEGMENT_64,
            segment_body("__PAGEZERO", vmsize=0x100000000, maxprot=0, initprot=0),
        )
        .add(
            LoadCommandType.SEGMENT_64,
            segment_body("__TEXT", vmaddr=0x100000000, initprot=5),
        )
        .add(
            LoadCommandType.SEGMENT_64,
            segment_body("__DATA", vmaddr=0x100004000, initprot=3),
        )
        .build()
    )
    macho = parse(data)

    assert [s.name for s in macho.segments] == ["__PAGEZERO", "__TEXT", "__DATA"]
    assert macho.base_address == 0x100000000


def test_no_base_address():
    assert parse(MachOBuilder().build()).base_address is None
