import pytest

from usbsetup.utils.format import TermColors, colorize, mib_to_human_readable


@pytest.mark.parametrize("size_mib, expected", [
    (512, "512 MiB"),
    (16384, "16 GiB"),
    (61440, "60 GiB"),
    (31040, "30.31 GiB"),
    (2 * 1024 * 1024, "2 TiB"),
])
def test_mib_to_human_readable(size_mib, expected):
    assert mib_to_human_readable(size_mib) == expected


def test_colorize():
    assert colorize("ok", TermColors.SUCCESS) == f"{TermColors.SUCCESS}ok{TermColors.ENDC}"
    assert colorize("ok", TermColors.SUCCESS, enabled=False) == "ok"
