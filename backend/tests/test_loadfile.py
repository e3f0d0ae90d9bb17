from services.loadfile import LoadFileRecord, generate_dat, generate_opt

HEADER = "BEGBATES\tENDBATES\tIMAGEPATH\tNATIVEPATH\tPAGECOUNT\r\n"


def test_dat_layout_is_exact():
    records = [
        LoadFileRecord("ABC000001", "ABC000001", "images/ABC000001.tif", "a.png", 1, "d1"),
        LoadFileRecord("ABC000002", "ABC000004", "images/ABC000002.tif", "report.pdf", 3, "d2"),
    ]
    assert generate_dat(records) == (
        HEADER
        + "ABC000001\tABC000001\timages/ABC000001.tif\ta.png\t1\r\n"
        + "ABC000002\tABC000004\timages/ABC000002.tif\treport.pdf\t3\r\n"
    )


def test_opt_matches_dat_columns():
    records = [LoadFileRecord("P000001", "P000001", "images/P000001.tif", "x.docx", 1)]
    assert generate_opt(records) == generate_dat(records)


def test_empty_scope_is_header_only():
    assert generate_dat([]) == HEADER


def test_utf8_native_names():
    out = generate_dat([LoadFileRecord("P000001", "P000001", "images/P000001.tif", "résumé.pdf", 1)])
    assert "résumé.pdf" in out.encode("utf-8").decode("utf-8")
    assert out.endswith("\r\n")
