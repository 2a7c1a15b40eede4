from brkheap.demo import main


def test_demo_prints_string_and_summary(capsys):
    assert main([]) == 0
    lines = capsys.readouterr().out.splitlines()
    assert lines[0] == "The memory chunk size: 32"
    assert lines[1] == "abc"
    assert "    Plotek poczatku: [poprawny]" in lines
    assert "    Plotek konca...: [poprawny]" in lines


def test_demo_reports_reserved_memory(capsys):
    main([])
    out = capsys.readouterr().out
    assert "Calkowita przestrzeni pamieci....: 67108864 bajtow" in out
    assert "USZKODZONY" not in out