from i2localizer.utils.encoding import read_text_safely, write_text_safely


def test_utf8_bom_is_removed(tmp_path):
    path = tmp_path / "bom.txt"
    path.write_bytes(b"\xef\xbb\xbf#Term: A\n")
    assert read_text_safely(path) == "#Term: A\n"


def test_utf16_with_bom(tmp_path):
    path = tmp_path / "wide.txt"
    path.write_bytes("#Term: A\n".encode("utf-16"))
    assert read_text_safely(path) == "#Term: A\n"


def test_legacy_encoding_falls_back(tmp_path):
    path = tmp_path / "legacy.txt"
    path.write_bytes("café crème brûlée, déjà vu\n".encode("latin-1"))
    text = read_text_safely(path)
    assert text is not None
    assert text.startswith("caf")


def test_missing_file(tmp_path):
    assert read_text_safely(tmp_path / "missing.txt") is None


def test_write_uses_lf(tmp_path):
    path = tmp_path / "out.txt"
    assert write_text_safely(path, "a\nb\n")
    assert path.read_bytes() == b"a\nb\n"


def test_write_failure(tmp_path):
    assert write_text_safely(tmp_path / "no" / "such" / "dir.txt", "x") is False
