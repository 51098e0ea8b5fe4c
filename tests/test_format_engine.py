from fake_host import tab
from tabclip.core.command import CopyCommand
from tabclip.core.format_engine import FormatEngine


def test_default_format_joins_tabs_with_enter():
    cmd = CopyCommand(enter="\r\n")
    text = FormatEngine().create_format_text(cmd, [
        tab(1, title="A", url="https://a"),
        tab(2, title="B", url="https://b"),
    ])
    assert text == "A\r\nhttps://a\r\nB\r\nhttps://b"


def test_separator_goes_between_tabs():
    cmd = CopyCommand(enter="\n", separator="--", format="{{ index }}:{{ title }}")
    text = FormatEngine().create_format_text(cmd, [tab(1, title="A"), tab(2, title="B")])
    assert text == "0:A\n--\n1:B"


def test_no_tabs_gives_empty_string():
    assert FormatEngine().create_format_text(CopyCommand(enter="\n"), []) == ""
