import sys

from livesite import cli
from livesite.config import refresh_settings


def test_split_writes_one_file_per_page(tmp_path, monkeypatch, capsys) -> None:
    recording = tmp_path / "stream.txt"
    recording.write_text(
        "[NEW_PAGE: landing]<h1>Bakery</h1>[END_PAGE][ACTION: wrote landing]"
        "[NEW_PAGE: menu]<p>Bread</p>[END_PAGE]",
        encoding="utf-8",
    )
    out_dir = tmp_path / "site"
    monkeypatch.setenv("PAGE_EXTENSIONS", ".html,.htm")
    monkeypatch.setattr(sys, "argv", ["livesite", "split", str(recording), "--out", str(out_dir)])

    refresh_settings()
    assert cli.main() == 0

    assert (out_dir / "landing.html").read_text(encoding="utf-8") == "<h1>Bakery</h1>"
    assert (out_dir / "menu.html").read_text(encoding="utf-8") == "<p>Bread</p>"
    assert "* wrote landing" in capsys.readouterr().out


def test_split_never_writes_outside_the_output_directory(tmp_path, monkeypatch, capsys) -> None:
    outside = tmp_path / "outside.html"
    recording = tmp_path / "stream.txt"
    recording.write_text(
        "[NEW_PAGE: ../escaped]<p>x</p>[END_PAGE]"
        f"[NEW_PAGE: {outside.as_posix()}]<p>y</p>[END_PAGE]"
        "[NEW_PAGE: landing]<h1>ok</h1>[END_PAGE]",
        encoding="utf-8",
    )
    out_dir = tmp_path / "a" / "site"
    monkeypatch.setattr(sys, "argv", ["livesite", "split", str(recording), "--out", str(out_dir)])

    refresh_settings()
    assert cli.main() == 0

    assert not (tmp_path / "a" / "escaped.html").exists()
    assert not (tmp_path / "escaped.html").exists()
    assert not outside.exists()
    assert not outside.with_name(outside.name.lower()).exists()
    assert (out_dir / "landing.html").read_text(encoding="utf-8") == "<h1>ok</h1>"
    printed = capsys.readouterr().out
    assert "! skipped ../escaped" in printed
    assert printed.count("! skipped") == 2
