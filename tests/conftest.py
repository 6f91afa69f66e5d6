import pytest

# 50 x 40 mm board: three 1.5 mm round fiducial-like pads in the corners, two
# 2 x 1 mm rectangular pads in the middle, outline drawn with a thin aperture.
COPPER_GERBER = """G04 test board, top copper*
%FSLAX46Y46*%
%MOMM*%
%ADD10C,1.500000*%
%ADD11R,2.000000X1.000000*%
%ADD12C,0.300000*%
D10*
X5000000Y5000000D03*
X45000000Y5000000D03*
X45000000Y35000000D03*
D11*
X20000000Y20000000D03*
X25000000Y20000000D03*
D12*
X0Y0D02*
X50000000Y0D01*
X50000000Y40000000D01*
X0Y40000000D01*
X0Y0D01*
M02*
"""

# Paste over two of the rectangular pads (slightly offset), over one corner pad,
# plus one paste opening with no copper under it.
PASTE_GERBER = """G04 test board, top paste*
%FSLAX46Y46*%
%MOMM*%
%ADD10C,1.400000*%
%ADD11R,1.800000X0.900000*%
D11*
X25100000Y20000000D03*
X20000000Y20100000D03*
D10*
X5000000Y5000000D03*
X30000000Y30000000D03*
M02*
"""

# Inch units with trailing zero suppression: X01 -> 1.0 in, X005 -> 0.5 in
INCH_GERBER = """%FSTAX24Y24*%
%MOIN*%
%ADD10C,0.0400*%
D10*
X01Y01D03*
X005Y02D03*
M02*
"""

DRILL_FILE = """M48
METRIC,TZ
T1C0.800
T2C3.000
%
T1
X10.0Y5.0
X15.5Y5.0
T2
X20.0Y20.0
M30
"""


@pytest.fixture
def copper_gerber():
    return COPPER_GERBER


@pytest.fixture
def paste_gerber():
    return PASTE_GERBER


@pytest.fixture
def inch_gerber():
    return INCH_GERBER


@pytest.fixture
def drill_file():
    return DRILL_FILE


@pytest.fixture
def board_files(tmp_path):
    copper = tmp_path / "board-F_Cu.gbr"
    paste = tmp_path / "board-F_Paste.gbr"
    copper.write_text(COPPER_GERBER)
    paste.write_text(PASTE_GERBER)
    return copper, paste
