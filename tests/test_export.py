import io
import zipfile

from livesite.services.export import build_archive, export_path, write_site


def test_export_path_maps_entry_and_adds_extension() -> None:
    assert export_path("landing", entry_file="landing") == "index.html"
    assert export_path("about") == "about.html"
    assert export_path("styles.css") == "styles.css"
    assert export_path("blog/post", extension=".htm") == "blog/post.htm"
    assert export_path("landing") == "landing.html"


def test_export_path_rejects_unsafe_names() -> None:
    for name in ("../escaped", "/etc/passwd", "a/../../b", "..\\win", "c:evil", "", "   "):
        assert export_path(name) is None


def test_archive_skips_unsafe_and_duplicate_paths() -> None:
    files = {
        "landing": "<h1>Home</h1>",
        "index": "<p>clash</p>",
        "../escaped": "<p>x</p>",
        "menu": "<p>Bread</p>",
    }
    result = build_archive(files, entry_file="landing")

    assert result.files == ["index.html", "menu.html"]
    assert result.skipped == ["index", "../escaped"]
    with zipfile.ZipFile(io.BytesIO(result.archive)) as archive:
        assert archive.namelist() == ["index.html", "menu.html"]
        assert archive.read("index.html").decode("utf-8") == "<h1>Home</h1>"


def test_write_site_stays_inside_output_directory(tmp_path) -> None:
    out_dir = tmp_path / "site"
    result = write_site({"about": "<p>a</p>", "../up": "<p>b</p>", "/abs.html": "<p>c</p>"}, out_dir)

    assert result.files == ["about.html"]
    assert result.skipped == ["../up", "/abs.html"]
    assert (out_dir / "about.html").read_text(encoding="utf-8") == "<p>a</p>"
    assert not (tmp_path / "up.html").exists()
