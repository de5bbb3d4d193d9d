import csv
import io

import pytest

from win_artifact_viewer.errors import RenderError
from win_artifact_viewer.rendering.renderer import (
    SEPARATOR,
    DelimitedRenderer,
    DisplayConfig,
    EventLogLayout,
    FilenamePolicy,
    MactimeRenderer,
    PlainRenderer,
    RenderMode,
    UsnLayout,
    make_renderer,
    sanitize,
)
from win_artifact_viewer.utils.sids import SidResolver
from win_artifact_viewer.utils.timestamps import TimeZoneConfig

from conftest import MAR15_NOON_UNIX, make_event, make_usn

PATH = "C/$J"


def _renderer(mode: RenderMode, layout=None, file_count: int = 1, **config):
    display = DisplayConfig(mode=mode, **config)
    return make_renderer(display, layout or UsnLayout(), file_count)


# ================================================================
# mode / filename selection
# ================================================================
def test_mactime_overrides_delimited():
    assert RenderMode.from_flags(delimited=True, mactime=True) is RenderMode.MACTIME
    assert RenderMode.from_flags(delimited=True) is RenderMode.DELIMITED
    assert RenderMode.from_flags() is RenderMode.PLAIN


def test_make_renderer_picks_mode_class():
    assert isinstance(_renderer(RenderMode.PLAIN), PlainRenderer)
    assert isinstance(_renderer(RenderMode.DELIMITED), DelimitedRenderer)
    assert isinstance(_renderer(RenderMode.MACTIME), MactimeRenderer)


@pytest.mark.parametrize("with_filename, no_filename, file_count, expected", [
    (False, False, 1, False),
    (False, False, 2, True),
    (False, True, 1, False),
    (False, True, 2, False),
    (True, False, 1, True),
    (True, False, 2, True),
    (True, True, 1, True),
    (True, True, 2, True),
])
@pytest.mark.parametrize("mode", list(RenderMode))
def test_filename_column_rule(with_filename, no_filename, file_count, expected, mode):
    policy = FilenamePolicy.from_flags(with_filename=with_filename, no_filename=no_filename)
    renderer = _renderer(mode, file_count=file_count, filename_policy=policy)
    assert renderer.show_filename is expected

    text = renderer.render(make_usn(), PATH)
    assert (PATH in text) is expected
    if mode is RenderMode.DELIMITED:
        assert renderer.header()[1].startswith("File,") is expected


# ================================================================
# plain
# ================================================================
def test_plain_usn_block():
    text = _renderer(RenderMode.PLAIN).render(make_usn(), PATH)
    assert text == (
        "USN 1024 (offset=4096, length=88):\n"
        "\tFilename:\t\treport.docx\n"
        "\tDate:\t\t\t03/15/2020\tTime:\t12:00:00 (GMT)\n"
        "\tMFT Entry:\t\t4242\tSeq:\t\t3\n"
        "\tParent MFT Entry:\t5\tSeq:\t\t5\n"
        "\tUSN Version:\t\t2.0\n"
        "\tSecurity ID:\t\t263\n"
        "\tReasons:\t\tFILE_CREATE, CLOSE\n"
        "\tSources:\tNONE\n"
        "\tFile Attributes:\tARCHIVE\n"
        + SEPARATOR + "\n"
    )


def test_plain_usn_block_with_filename_and_zone():
    zone = TimeZoneConfig.from_string("EST-5EDT,M4.1.0,M10.1.0")
    text = _renderer(RenderMode.PLAIN, file_count=2, timezone=zone).render(make_usn(), PATH)
    assert text.startswith("C/$J USN 1024 (offset=4096, length=88):\n")
    assert "\tTime:\t07:00:00 (EST-5EDT,M4.1.0,M10.1.0)\n" in text


def test_plain_event_block_with_strings_and_data():
    record = make_event(data=b"AB\x00")
    text = _renderer(RenderMode.PLAIN, EventLogLayout()).render(record, PATH)
    assert text == (
        "Record 1 (offset=48, length=140):\n"
        "\tSource:\t\t\tSecurity\n"
        "\tComputer:\t\tWKSTN01\n"
        "\tEvent ID:\t\t528\tCategory:\t2\n"
        "\tType:\t\t\tAudit Success\n"
        "\tSID:\t\t\tS-1-5-21-1-2-3-500\n"
        "\tGenerated:\t\t03/15/2020\tTime:\t12:00:00 (GMT)\n"
        "\tWritten:\t\t03/16/2020\tTime:\t23:30:00 (GMT)\n"
        "\tStrings:\n"
        "\t\t[0] alice\n"
        "\t\t[1] WKSTN01\n"
        "\tData:\n"
        "\t\t00000000  41 42 00" + " " * 15 + "   A B .\n"
        + SEPARATOR + "\n"
    )


def test_plain_event_strings_are_sanitized():
    record = make_event(strings=("line one\r\nline two\nend",))
    text = _renderer(RenderMode.PLAIN, EventLogLayout()).render(record, PATH)
    assert "\t\t[0] line one<CRLF>line two<CRLF>end\n" in text


def test_plain_event_hides_strings_and_data_when_disabled():
    record = make_event(data=b"\x01")
    text = _renderer(RenderMode.PLAIN, EventLogLayout(), show_strings=False).render(record, PATH)
    assert "Strings:" not in text
    assert "Data:" not in text
    assert text.endswith(SEPARATOR + "\n")


def test_plain_event_resolves_sid():
    resolver = SidResolver({"S-1-5-21-1-2-3-500": "Administrator"})
    text = _renderer(RenderMode.PLAIN, EventLogLayout(), sid_resolver=resolver).render(make_event(), PATH)
    assert "\tSID:\t\t\tAdministrator (S-1-5-21-1-2-3-500)\n" in text


def test_sanitize():
    assert sanitize("a\r\nb\rc\nd") == "a<CRLF>b<CRLF>c<CRLF>d"
    assert sanitize("plain") == "plain"


# ================================================================
# delimited
# ================================================================
def test_delimited_usn_header_and_row():
    renderer = _renderer(RenderMode.DELIMITED)
    assert renderer.header() == [
        'Time Zone: "GMT"',
        "Inode,Parent Inode,USN,Date,Time,Reasons,Sources,Security ID,File Attributes,Filename",
    ]
    assert renderer.render(make_usn(), PATH) == (
        '4242,5,1024,03/15/2020,12:00:00,"FILE_CREATE, CLOSE",NONE,263,ARCHIVE,report.docx\n'
    )


def test_delimited_event_header_and_row():
    renderer = _renderer(RenderMode.DELIMITED, EventLogLayout(), file_count=2)
    assert renderer.header()[1] == "File,Record,Offset,Type,Date,Time,Source,Category,Event,SID,Computer"
    assert renderer.render(make_event(), PATH) == (
        "C/$J,1,48,Audit Success,03/15/2020,12:00:00,Security,2,528,S-1-5-21-1-2-3-500,WKSTN01,alice,WKSTN01\n"
    )


@pytest.mark.parametrize("value", ['has,comma', 'has "quote"', 'both, "of" them'])
def test_delimited_quotes_fields_with_special_characters(value):
    renderer = _renderer(RenderMode.DELIMITED, EventLogLayout())
    row = renderer.render(make_event(computer=value, strings=(value,)), PATH)

    assert '"' + value.replace('"', '""') + '"' in row
    parsed = next(csv.reader(io.StringIO(row)))
    assert parsed[9] == value
    assert parsed[10] == value


def test_delimited_leaves_plain_fields_bare():
    row = _renderer(RenderMode.DELIMITED).render(make_usn(reason=0x100, file_attributes=0x20), PATH)
    assert '"' not in row
    assert row == "4242,5,1024,03/15/2020,12:00:00,FILE_CREATE,NONE,263,ARCHIVE,report.docx\n"


def test_delimited_row_stays_on_one_line():
    row = _renderer(RenderMode.DELIMITED, EventLogLayout()).render(make_event(strings=("a\nb",)), PATH)
    assert row.count("\n") == 1
    assert row.endswith(",a<CRLF>b\n")


def test_delimited_omits_strings_when_disabled():
    row = _renderer(RenderMode.DELIMITED, EventLogLayout(), show_strings=False).render(make_event(), PATH)
    assert row.rstrip("\n").split(",")[-1] == "WKSTN01"
    assert "alice" not in row


def test_timezone_line_uses_configured_label():
    zone = TimeZoneConfig.from_string("GMT-5")
    assert _renderer(RenderMode.DELIMITED, timezone=zone).header()[0] == 'Time Zone: "GMT-5"'


# ================================================================
# mactime
# ================================================================
def test_mactime_usn_line():
    line = _renderer(RenderMode.MACTIME).render(make_usn(), PATH)
    assert line == "|report.docx (FILE_CREATE, CLOSE)|4242 (3)||||||1584273600||\n"


def test_mactime_event_line():
    line = _renderer(RenderMode.MACTIME, EventLogLayout()).render(make_event(), PATH)
    assert line == f"|Security: Event 528 (Audit Success)|1 (0)||||||{MAR15_NOON_UNIX}||\n"


@pytest.mark.parametrize("layout, record", [
    (UsnLayout(), make_usn(filename="odd|name.txt")),
    (EventLogLayout(), make_event()),
])
def test_mactime_field_layout(layout, record):
    line = _renderer(RenderMode.MACTIME, layout, file_count=2).render(record, PATH).rstrip("\n")
    fields = line.split("|")
    assert len(fields) == 11
    md5, name, inode, perms, uid, gid, size, atime, mtime, ctime, crtime = fields
    assert (md5, perms, uid, gid, size) == ("", "", "", "", "")
    assert [t for t in (atime, mtime, ctime, crtime) if t] == [mtime]
    assert name.startswith(PATH + " ")


def test_mactime_has_no_header():
    assert _renderer(RenderMode.MACTIME).header() == []
    assert _renderer(RenderMode.PLAIN).header() == []


# ================================================================
# layout checks
# ================================================================
def test_wrong_record_type_raises_render_error():
    with pytest.raises(RenderError):
        _renderer(RenderMode.PLAIN, UsnLayout()).render(make_event(), PATH)


def test_filename_header_leaves_layout_columns_untouched():
    layout = UsnLayout()
    renderer = _renderer(RenderMode.DELIMITED, layout, file_count=2)
    assert renderer.header()[1].startswith("File,Inode,")
    assert renderer.header()[1].count("File,") == 1
    assert isinstance(layout.columns, tuple)
    assert layout.columns[0] == "Inode"
