import argparse

import pytest

from gerber2paste.cli import main, parse_height, parse_pair, parse_point


class TestArgumentParsing:
    def test_point(self):
        point = parse_point("1.5,-2")
        assert (point.x, point.y) == (1.5, -2.0)

    def test_pair(self):
        design, machine = parse_pair("0,0:5,5")
        assert (design.x, machine.x) == (0.0, 5.0)

    def test_bad_pair(self):
        with pytest.raises(argparse.ArgumentTypeError):
            parse_pair("0,0")

    def test_height(self):
        height = parse_height("C3=6.5")
        assert (height.pad_id, height.height) == ("C3", 6.5)
        with pytest.raises(argparse.ArgumentTypeError):
            parse_height("C3")


class TestCommands:
    def test_extract(self, board_files, capsys):
        copper, _ = board_files
        assert main(["extract", str(copper)]) == 0
        out = capsys.readouterr().out
        assert "5 pads" in out
        assert "origin (0.000, 40.000)" in out
        assert "Fiducial F3" in out

    def test_missing_file(self, tmp_path, capsys):
        assert main(["extract", str(tmp_path / "nope.gbr")]) == 1
        assert "File not found" in capsys.readouterr().out

    def test_fit(self, capsys):
        assert main(["fit", "--pair", "0,0:5,5", "--pair", "10,0:15,5"]) == 0
        out = capsys.readouterr().out
        assert "scale=1.000000" in out
        assert "tx=5.0000 ty=5.0000" in out

    def test_fit_collinear_affine_fails(self, capsys):
        args = ["fit", "--model", "affine", "--pair", "0,0:0,0", "--pair", "1,1:1,1", "--pair", "2,2:2,2"]
        assert main(args) == 1

    def test_move(self, tmp_path, capsys):
        plot = tmp_path / "move.png"
        assert main(["move", "--start", "0,0", "--end", "100,0", "--vx", "50", "--ax", "500",
                     "--plot", str(plot)]) == 0
        out = capsys.readouterr().out
        assert "trapezoidal move" in out
        assert "accel 2.500 mm" in out
        assert plot.exists()

    def test_plan(self, board_files, tmp_path, capsys):
        copper, paste = board_files
        output = tmp_path / "paste.gcode"
        png = tmp_path / "paste.png"
        assert main(["plan", "--copper", str(copper), "--paste", str(paste), "--outline", str(copper),
                     "--mode", "safe", "--height", "C5=6", "-o", str(output), "--png", str(png)]) == 0
        assert "4 pads to dispense" in capsys.readouterr().out
        assert output.read_text().count("M106 S255") == 4
        assert png.exists()

    def test_plan_with_speed_profiles(self, board_files, tmp_path, capsys):
        copper, paste = board_files
        output = tmp_path / "paste.gcode"
        assert main(["plan", "--paste", str(paste), "--viscosity", "high", "-o", str(output)]) == 0
        assert "[+] Speed profiles:" in capsys.readouterr().out
        assert output.read_text().count("; Travel: ") == 4

    def test_plan_rejects_unknown_viscosity(self, board_files):
        _, paste = board_files
        with pytest.raises(SystemExit):
            main(["plan", "--paste", str(paste), "--viscosity", "runny"])

    def test_plan_with_transform(self, board_files, tmp_path):
        copper, paste = board_files
        output = tmp_path / "machine.gcode"
        assert main(["plan", "--paste", str(paste), "--pair", "0,0:100,100", "--pair", "10,0:110,100",
                     "-o", str(output)]) == 0
        assert "G0 X105.000 Y105.000 F3000" in output.read_text()

    def test_plan_needs_a_layer(self, capsys):
        assert main(["plan"]) == 1
